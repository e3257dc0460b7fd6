# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Debug tool for replaying a transcript through the aligner.

This CLI tool takes a saved transcript and the reference text, feeds the
transcript word by word as a growing full-so-far transcript (the way a
streaming recognizer reports it) and logs every cursor decision to help
debug alignment issues.
"""

import argparse
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal, TextIO

from .aligner import Aligner, AlignerSettings
from .reference import ReferenceText, build_reference
from .transcript import TranscriptWindow

EventType = Literal["advance", "forward_jump", "backtrack", "no_change"]

# Moving more than this many words forward in one update is logged as a jump
FORWARD_JUMP_WORDS: int = 5


@dataclass
class ReplayEvent:
    """A single alignment decision during transcript replay."""
    transcript_line: int
    transcript_word: str
    cursor_before: int
    cursor_after: int
    word_index: int
    reference_word: str
    event_type: EventType
    phase: str | None = None


def load_transcript(path: Path) -> list[str]:
    """Load transcript file and extract transcript lines.

    Filters out metadata lines (starting with '===') and blank lines.
    """
    lines: list[str] = []
    with open(path, encoding='utf-8') as f:
        for line in f:
            stripped_line: str = line.strip()
            if stripped_line.startswith('===') or not stripped_line:
                continue
            lines.append(stripped_line)
    return lines


def load_reference(path: Path) -> str:
    """Load reference text file content."""
    with open(path, encoding='utf-8') as f:
        return f.read()


def classify(reference: ReferenceText, before: int, after: int) -> EventType:
    """Classify a cursor move by how far it went."""
    if after == before:
        return "no_change"
    if after < before:
        return "backtrack"
    words_moved = reference.word_index_at(after) - reference.word_index_at(before)
    if words_moved > FORWARD_JUMP_WORDS:
        return "forward_jump"
    return "advance"


def replay_transcript(
    transcript_lines: list[str],
    reference_text: str,
    output: TextIO,
    verbose: bool = False,
    speaking: bool = False,
    settings: AlignerSettings | None = None
) -> list[ReplayEvent]:
    """Replay transcript through an aligner and log events.

    Args:
        transcript_lines: Lines of transcript text
        reference_text: The reference passage
        output: File handle to write log output
        verbose: If True, log every word. If False, only log jumps/backtracks.
        speaking: Treat the speaker as talking throughout (enables stall advance)
        settings: Aligner tuning

    Returns:
        List of all replay events
    """
    reference = build_reference(reference_text)
    aligner = Aligner(reference, settings)
    window = TranscriptWindow()
    events: list[ReplayEvent] = []

    output.write("=" * 80 + "\n")
    output.write("TRANSCRIPT REPLAY LOG\n")
    output.write(f"Generated: {datetime.now().isoformat()}\n")
    output.write(f"Reference words: {len(reference)}\n")
    output.write(f"Reference chars: {reference.total_chars}\n")
    output.write(f"Transcript lines: {len(transcript_lines)}\n")
    output.write("=" * 80 + "\n\n")

    output.write("REFERENCE WORDS:\n")
    output.write("-" * 40 + "\n")
    for i, word in enumerate(reference.words):
        marker = " (annotation)" if word.is_annotation else ""
        output.write(f"  [{i:4d}] @{word.char_offset:<6d} {word.text}{marker}\n")
    output.write("\n" + "=" * 80 + "\n\n")

    output.write("ALIGNMENT LOG:\n")
    output.write("-" * 40 + "\n")

    spoken: list[str] = []
    for line_num, line in enumerate(transcript_lines, start=1):
        output.write(f"\n--- Line {line_num} ---\n")

        for word in line.split():
            spoken.append(word)
            if not window.update(" ".join(spoken)):
                continue

            before = aligner.cursor
            aligner.on_transcript_update(window.words, speaking=speaking)
            after = aligner.cursor
            event_type = classify(reference, before, after)

            index = reference.word_index_at(after)
            reference_word = reference[index].text if len(reference) else "<END>"
            event = ReplayEvent(
                transcript_line=line_num,
                transcript_word=word,
                cursor_before=before,
                cursor_after=after,
                word_index=index,
                reference_word=reference_word,
                event_type=event_type,
                phase=aligner.last_phase if event_type != "no_change" else None,
            )
            events.append(event)

            if event_type == "backtrack":
                output.write(f"  *** BACKTRACK at \"{word}\" ***\n")
                output.write(f"      Cursor: {before} -> {after} ({event.phase})\n")
                output.write(f"      Reference word at new position: \"{reference_word}\"\n")
            elif event_type == "forward_jump":
                output.write(f"  *** FORWARD JUMP at \"{word}\" ***\n")
                output.write(f"      Cursor: {before} -> {after} ({event.phase})\n")
                output.write(f"      Reference word at new position: \"{reference_word}\"\n")
            elif verbose and event_type == "advance":
                output.write(f"  * [{index:4d}] \"{word}\" -> \"{reference_word}\" ({event.phase})\n")
            elif verbose:
                output.write(f"    [{index:4d}] \"{word}\" (no_change)\n")

    output.write("\n" + "=" * 80 + "\n")
    output.write("SUMMARY:\n")
    output.write("-" * 40 + "\n")

    counts: dict[str, int] = {kind: 0 for kind in ("advance", "forward_jump", "backtrack", "no_change")}
    for e in events:
        counts[e.event_type] += 1

    output.write(f"Total words processed: {len(spoken)}\n")
    output.write(f"Final cursor: {aligner.cursor} / {reference.total_chars}\n")
    output.write(f"Advances: {counts['advance']}\n")
    output.write(f"No change: {counts['no_change']}\n")
    output.write(f"Backtracks: {counts['backtrack']}\n")
    output.write(f"Forward jumps: {counts['forward_jump']}\n")

    return events


def main() -> None:
    """CLI entry point for the replay tool."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Debug alignment by replaying a transcript through the aligner"
    )

    parser.add_argument(
        "transcript",
        type=Path,
        help="Path to transcript file"
    )

    parser.add_argument(
        "reference",
        type=Path,
        help="Path to reference text file"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output log file path (default: stdout)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every word, not just jumps/backtracks"
    )

    parser.add_argument(
        "-s", "--speaking",
        action="store_true",
        help="Assume continuous speech so stalled alignment force-advances"
    )

    args: argparse.Namespace = parser.parse_args()

    if not args.transcript.exists():
        print(f"Error: Transcript file not found: {args.transcript}", file=sys.stderr)
        sys.exit(1)

    if not args.reference.exists():
        print(f"Error: Reference file not found: {args.reference}", file=sys.stderr)
        sys.exit(1)

    try:
        transcript_lines: list[str] = load_transcript(args.transcript)
        reference_text: str = load_reference(args.reference)
    except OSError as e:
        print(f"Error loading files: {e}", file=sys.stderr)
        sys.exit(1)

    if not transcript_lines:
        print("Error: No transcript lines found", file=sys.stderr)
        sys.exit(1)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            replay_transcript(transcript_lines, reference_text, f, args.verbose, args.speaking)
        print(f"Replay log written to: {args.output}")
    else:
        replay_transcript(transcript_lines, reference_text, sys.stdout, args.verbose, args.speaking)


if __name__ == "__main__":
    main()
