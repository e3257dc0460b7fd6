"""
readalong - live read-along cursor driven by local speech recognition.

Follows a reader through a known reference text (Quran recitation in
Arabic by default) and keeps a character-offset cursor in step with what
is being read aloud, tolerating recognition noise, skips and re-reading.
"""

__version__ = "0.1.0"

from .aligner import Aligner, AlignerSettings, JumpRequest, Match
from .normalizer import NormalizationTable, comparison_key, is_annotation, normalize
from .reference import ReferenceText, ReferenceWord, build_reference
from .speech_provider import SpeechProvider, SpeechProviderError
from .supervisor import SessionEvent, SessionSettings, SessionSupervisor
from .transcript import TranscriptWindow

__all__ = [
    "Aligner",
    "AlignerSettings",
    "JumpRequest",
    "Match",
    "NormalizationTable",
    "normalize",
    "comparison_key",
    "is_annotation",
    "ReferenceText",
    "ReferenceWord",
    "build_reference",
    "SpeechProvider",
    "SpeechProviderError",
    "SessionEvent",
    "SessionSettings",
    "SessionSupervisor",
    "TranscriptWindow",
]
