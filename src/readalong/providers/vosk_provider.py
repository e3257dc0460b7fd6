"""
Vosk speech provider implementation.

Runs a KaldiRecognizer on a worker thread fed by AudioCapture and reports the
transcript recognized so far (the most recent committed words followed by the
current partial) whenever it changes.
"""

import json
import logging
import os
import tempfile
import threading
import urllib.request
import zipfile
from collections import deque
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

from vosk import KaldiRecognizer, Model, SetLogLevel

from ..speech_provider import (
    ErrorCallback,
    LevelCallback,
    ModelInfo,
    ProviderUnavailableError,
    SpeechProvider,
    SpeechProviderError,
    TranscriptCallback,
)

if TYPE_CHECKING:
    from ..audio import AudioCapture

logger = logging.getLogger(__name__)

# Suppress Vosk's verbose logging
SetLogLevel(-1)

MODEL_CACHE_DIR: Path = Path.home() / ".cache" / "readalong" / "models"


class VoskSpeechProvider(SpeechProvider):
    """Vosk speech recognition provider."""

    # Available Vosk models with metadata
    MODELS: ClassVar[dict[str, dict[str, Any]]] = {
        "vosk-ar-mgb2": {
            "dir": "vosk-model-ar-mgb2-0.4",
            "name": "Arabic - MGB2",
            "locale": "ar",
            "size_mb": 318,
            "url": "https://alphacephei.com/vosk/models/vosk-model-ar-mgb2-0.4.zip",
        },
        "vosk-ar-linto": {
            "dir": "vosk-model-ar-0.22-linto-1.1.0",
            "name": "Arabic - Linto",
            "locale": "ar",
            "size_mb": 1300,
            "url": "https://alphacephei.com/vosk/models/vosk-model-ar-0.22-linto-1.1.0.zip",
        },
    }

    # Loaded models shared between provider instances (loading takes seconds)
    _model_cache: ClassVar[dict[str, Model]] = {}
    _model_lock: ClassVar[threading.Lock] = threading.Lock()

    model_id: str
    model_path: str
    sample_rate: int

    def __init__(
        self,
        model_id: str,
        model_path: str | None = None,
        sample_rate: int = 16000,
        device: int | None = None,
        chunk_ms: int = 100,
        restrict_vocabulary: bool = False,
        history_words: int = 80
    ) -> None:
        """
        Initialize the Vosk provider.

        Args:
            model_id: Model identifier (e.g., "vosk-ar-mgb2")
            model_path: Custom model directory, overrides model_id lookup
            sample_rate: Audio sample rate (must match audio capture)
            device: Audio input device index, or None for default
            chunk_ms: Audio chunk size in milliseconds
            restrict_vocabulary: Limit recognition to the contextual hints
            history_words: Committed words kept for the reported transcript
        """
        self.model_id = model_id
        self.model_path = model_path or self._get_model_path(model_id)
        self.sample_rate = sample_rate
        self.device = device
        self.chunk_ms = chunk_ms
        self.restrict_vocabulary = restrict_vocabulary
        self.history_words = history_words

        self._capture: "AudioCapture | None" = None
        self._worker: threading.Thread | None = None
        self._stop_event = threading.Event()

    def start(
        self,
        locale: str,
        contextual_hints: Sequence[str],
        on_transcript: TranscriptCallback,
        on_error: ErrorCallback,
        on_level: LevelCallback | None = None
    ) -> None:
        model = self._load_model()

        from ..audio import AudioCapture

        if self.restrict_vocabulary and contextual_hints:
            grammar = json.dumps(list(dict.fromkeys(contextual_hints)) + ["[unk]"], ensure_ascii=False)
            recognizer = KaldiRecognizer(model, self.sample_rate, grammar)
        else:
            recognizer = KaldiRecognizer(model, self.sample_rate)

        capture = AudioCapture(
            sample_rate=self.sample_rate,
            chunk_duration_ms=self.chunk_ms,
            device=self.device,
            on_level=on_level,
        )
        capture.start()

        self._capture = capture
        self._stop_event.clear()
        self._worker = threading.Thread(
            target=self._run,
            args=(capture, recognizer, on_transcript, on_error),
            name="vosk-recognizer",
            daemon=True,
        )
        self._worker.start()
        logger.info("Vosk recognition started (%s, locale=%s)", self.model_id, locale)

    def prepare(self) -> None:
        """Load the model into the shared cache so start() does not have to."""
        self._load_model()

    def cancel(self) -> None:
        # The worker exits on its own within one chunk timeout
        self._stop_event.set()
        if self._capture is not None:
            self._capture.stop()
            self._capture = None
        self._worker = None

    def _run(
        self,
        capture: "AudioCapture",
        recognizer: KaldiRecognizer,
        on_transcript: TranscriptCallback,
        on_error: ErrorCallback
    ) -> None:
        """Worker loop: feed audio to the recognizer and report transcripts."""
        committed: deque[str] = deque(maxlen=self.history_words)
        last_reported = ""

        try:
            while not self._stop_event.is_set():
                chunk = capture.get_chunk(timeout=0.1)
                if chunk is None:
                    continue

                if recognizer.AcceptWaveform(chunk):
                    result: dict[str, Any] = json.loads(recognizer.Result())
                    text = result.get("text", "").strip()
                    if text:
                        committed.extend(text.split())
                    partial = ""
                else:
                    result = json.loads(recognizer.PartialResult())
                    partial = result.get("partial", "").strip()

                full = " ".join([*committed, partial] if partial else committed)
                if full and full != last_reported:
                    last_reported = full
                    on_transcript(full)
        except Exception as e:
            if not self._stop_event.is_set():
                logger.error("Vosk recognition failed: %s", e)
                on_error(SpeechProviderError(str(e)))

    def _load_model(self) -> Model:
        if not os.path.exists(self.model_path):
            raise ProviderUnavailableError(
                f"Vosk model not found at {self.model_path}. "
                f"Please download it with: readalong --download-model --model-id {self.model_id}"
            )
        with self._model_lock:
            model = self._model_cache.get(self.model_path)
            if model is None:
                print(f"Loading Vosk model from: {self.model_path}")
                try:
                    model = Model(self.model_path)
                except Exception as e:
                    raise ProviderUnavailableError(
                        f"Could not load Vosk model at {self.model_path}: {e}") from e
                self._model_cache[self.model_path] = model
        return model

    @staticmethod
    def get_available_models() -> list[ModelInfo]:
        """Get list of available Vosk models."""
        return [
            ModelInfo(
                id=model_id,
                name=info["name"],
                provider="vosk",
                size_mb=info["size_mb"],
                description=f"Vosk model - {info['name']}",
            )
            for model_id, info in VoskSpeechProvider.MODELS.items()
        ]

    @staticmethod
    def download_model(
        model_id: str,
        target_dir: str | None = None,
        progress_callback: Callable[[str, int], None] | None = None
    ) -> str:
        """
        Download a Vosk model.

        Args:
            model_id: Model identifier (e.g., "vosk-ar-mgb2")
            target_dir: Directory to save the model, or None for default
            progress_callback: Optional callback(stage, percent) for progress updates

        Returns:
            Path to the downloaded model as a string.
        """
        model_info: dict[str, Any] | None = VoskSpeechProvider.MODELS.get(model_id)
        if not model_info:
            raise ValueError(
                f"Unknown Vosk model: {model_id}. "
                f"Choose from: {list(VoskSpeechProvider.MODELS.keys())}"
            )

        target_path: Path = Path(target_dir) if target_dir else MODEL_CACHE_DIR
        target_path.mkdir(parents=True, exist_ok=True)
        model_path: Path = target_path / model_info["dir"]

        if model_path.exists():
            print(f"Model already exists at {model_path}")
            if progress_callback:
                progress_callback("complete", 100)
            return str(model_path)

        url: str = model_info["url"]
        print(f"Downloading {model_id} from {url}...")
        print("This may take a few minutes depending on your connection.")

        with tempfile.NamedTemporaryFile(suffix=".zip", delete=False) as tmp:
            tmp_path = tmp.name
            if progress_callback:
                progress_callback("downloading", 0)

            def download_hook(block_count: int, block_size: int, total_size: int) -> None:
                if progress_callback and total_size > 0:
                    downloaded = block_count * block_size
                    percent = min(100, int((downloaded / total_size) * 100))
                    progress_callback("downloading", percent)

            urllib.request.urlretrieve(url, tmp_path, download_hook)

        try:
            print("Extracting model...")
            if progress_callback:
                progress_callback("extracting", 0)

            with zipfile.ZipFile(tmp_path, "r") as zf:
                zf.extractall(target_path)

            if progress_callback:
                progress_callback("extracting", 100)
                progress_callback("complete", 100)
        finally:
            try:
                os.unlink(tmp_path)
            except OSError as e:
                print(f"Warning: Could not delete temporary file {tmp_path}: {e}")

        print(f"Model installed to {model_path}")
        return str(model_path)

    @staticmethod
    def is_downloaded(model_id: str) -> bool:
        """Check whether a registered model is present in the cache."""
        model_info = VoskSpeechProvider.MODELS.get(model_id)
        if not model_info:
            return False
        return (MODEL_CACHE_DIR / model_info["dir"]).exists()

    def _get_model_path(self, model_id: str) -> str:
        """Get the path to the model directory."""
        model_info = self.MODELS.get(model_id)
        if not model_info:
            # Assume custom model path
            return model_id
        return str(MODEL_CACHE_DIR / model_info["dir"])
