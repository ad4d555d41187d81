#!/usr/bin/env python3
"""
YouTube Transcript Extractor
============================
Download a video's captions with yt-dlp and turn them into plain text.

Usage:
    python extractor.py <youtube_url_or_id>
    python extractor.py --help
"""

import re
import sys
import json
import argparse
import subprocess
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional
from dataclasses import dataclass

from url_parser import WATCH_URL, ReferenceKind, interpret


DEFAULT_LANGUAGES = ('ko', 'en')
DEFAULT_TIMEOUT = 30.0
SUBTITLE_EXTENSIONS = ('.vtt', '.srt')

_VIDEO_ID_RE = re.compile(r'^[a-zA-Z0-9_-]{11}$')


# ============================================================================
# Result Models
# ============================================================================

class FailureKind(str, Enum):
    TOOL_MISSING = 'tool_missing'
    TIMEOUT = 'timeout'
    NO_SUBTITLES = 'no_subtitles'
    READ_FAILED = 'read_failed'
    PRIVATE_VIDEO = 'private_video'
    VIDEO_UNAVAILABLE = 'video_unavailable'
    BAD_DATA = 'bad_data'
    AGE_RESTRICTED = 'age_restricted'
    EXTRACTION_FAILED = 'extraction_failed'


FAILURE_MESSAGES = {
    FailureKind.TOOL_MISSING: "yt-dlp is not installed. Ask the administrator to install it.",
    FailureKind.TIMEOUT: "Transcript extraction timed out. Please try again.",
    FailureKind.NO_SUBTITLES: "No subtitles are available for this video.",
    FailureKind.READ_FAILED: "The subtitle file could not be read or was empty.",
    FailureKind.PRIVATE_VIDEO: "This video is private.",
    FailureKind.VIDEO_UNAVAILABLE: "This video is unavailable.",
    FailureKind.BAD_DATA: "The subtitle data returned by YouTube was empty or malformed.",
    FailureKind.AGE_RESTRICTED: "This video is age-restricted and cannot be accessed.",
    FailureKind.EXTRACTION_FAILED: (
        "Failed to fetch the transcript. The video may have no subtitles "
        "or may not be accessible."
    ),
}

# Checked in order against yt-dlp's stderr (lower-cased)
ERROR_PATTERNS = [
    (('private video',), FailureKind.PRIVATE_VIDEO),
    (('video unavailable', 'this video is unavailable'), FailureKind.VIDEO_UNAVAILABLE),
    (('there are no subtitles', 'no subtitles'), FailureKind.NO_SUBTITLES),
    (('did not get any data blocks', 'empty data'), FailureKind.BAD_DATA),
    (('sign in to confirm your age', 'age-restricted', 'age restricted'), FailureKind.AGE_RESTRICTED),
]


@dataclass(frozen=True)
class TranscriptError:
    """Typed extraction failure."""
    kind: FailureKind
    message: str
    detail: str = ""


@dataclass(frozen=True)
class TranscriptResult:
    """Plain-text transcript, or the reason there is none."""
    video_id: str
    text: Optional[str] = None
    language: Optional[str] = None
    error: Optional[TranscriptError] = None

    @property
    def ok(self) -> bool:
        return self.text is not None


class TranscriptFailure(ValueError):
    """Raised inside the extractor; converted to a TranscriptResult."""

    def __init__(self, kind: FailureKind, detail: str = ""):
        super().__init__(FAILURE_MESSAGES[kind])
        self.kind = kind
        self.detail = detail

    def to_error(self) -> TranscriptError:
        return TranscriptError(kind=self.kind, message=str(self), detail=self.detail)


def classify_tool_error(output: str) -> FailureKind:
    """Map yt-dlp diagnostics to a failure kind."""
    text = (output or "").lower()
    for needles, kind in ERROR_PATTERNS:
        if any(needle in text for needle in needles):
            return kind
    return FailureKind.EXTRACTION_FAILED


# ============================================================================
# Subtitle Cleanup
# ============================================================================

_TIMING_RE = re.compile(
    r'^\d{2}:\d{2}:\d{2}[.,]\d{3}\s*-->\s*\d{2}:\d{2}:\d{2}[.,]\d{3}'
)
_BARE_TIMESTAMP_RE = re.compile(r'^(?:\d{1,2}:)?\d{1,2}:\d{2}(?:[.,]\d{1,3})?$')
_HEADER_META_RE = re.compile(r'^(?:kind|language)\s*:', re.IGNORECASE)
_TAG_RE = re.compile(r'<[^>]*>')

# &amp; goes last so "&amp;lt;" stays "&lt;"
_ENTITIES = (
    ('&lt;', '<'),
    ('&gt;', '>'),
    ('&quot;', '"'),
    ('&amp;', '&'),
)


def _decode_entities(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def _strip_header(lines: list[str]) -> list[str]:
    """Drop the WEBVTT line and the Kind:/Language: lines that follow it."""
    index = 0
    while index < len(lines) and not lines[index].strip():
        index += 1

    if index < len(lines) and lines[index].lstrip('\ufeff').strip().startswith('WEBVTT'):
        index += 1
        while index < len(lines) and (
            not lines[index].strip() or _HEADER_META_RE.match(lines[index].strip())
        ):
            index += 1

    return lines[index:]


def clean_subtitle_text(raw: str) -> str:
    """
    Convert WebVTT or SubRip markup into readable text.

    Removes the header, cue timings, sequence numbers and inline tags,
    decodes the basic HTML entities, and keeps one caption line per line.

    Args:
        raw: Subtitle file contents

    Returns:
        Plain text; empty if nothing spoken was left
    """
    lines = raw.lstrip('\ufeff').replace('\r\n', '\n').replace('\r', '\n').split('\n')

    cleaned = []
    for line in _strip_header(lines):
        stripped = line.strip()
        if not stripped or _TIMING_RE.match(stripped) or stripped.isdigit():
            continue

        text = _decode_entities(_TAG_RE.sub('', stripped)).strip()
        if not text or text.isdigit() or _BARE_TIMESTAMP_RE.match(text):
            continue

        cleaned.append(text)

    return '\n'.join(cleaned).strip()


# ============================================================================
# Main Extractor Class
# ============================================================================

class TranscriptExtractor:
    """
    Caption extractor backed by the yt-dlp command-line tool.

    Every call runs yt-dlp once inside its own temporary directory, picks
    the best caption file and returns its text. Failures come back as typed
    results rather than exceptions.

    Usage:
        extractor = TranscriptExtractor(languages=('en',))
        result = extractor.extract_transcript("dQw4w9WgXcQ")
        print(result.text if result.ok else result.error.message)
    """

    def __init__(self,
                 languages: tuple[str, ...] = DEFAULT_LANGUAGES,
                 timeout: float = DEFAULT_TIMEOUT,
                 binary: str = "yt-dlp",
                 quiet: bool = False):
        """
        Initialize the extractor.

        Args:
            languages: Caption languages in preference order
            timeout: Upper bound in seconds for the yt-dlp run
            binary: yt-dlp executable name or path
            quiet: Suppress progress messages
        """
        if not languages:
            raise ValueError("At least one subtitle language is required")

        self.languages = tuple(languages)
        self.timeout = timeout
        self.binary = binary
        self.quiet = quiet

    def _log(self, msg: str) -> None:
        if not self.quiet:
            print(f"[*] {msg}", file=sys.stderr)

    def build_command(self, url: str) -> list[str]:
        """yt-dlp arguments for a captions-only download named by video id."""
        return [
            self.binary,
            '--write-auto-subs',
            '--write-subs',
            '--sub-langs', ','.join(self.languages),
            '--skip-download',
            '--output', '%(id)s.%(ext)s',
            url,
        ]

    def _run_tool(self, url: str, workdir: str) -> subprocess.CompletedProcess:
        cmd = self.build_command(url)
        self._log(f"Running command: {' '.join(cmd)}")

        try:
            return subprocess.run(
                cmd,
                cwd=workdir,
                capture_output=True,
                text=True,
                encoding='utf-8',
                errors='replace',
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise TranscriptFailure(FailureKind.TOOL_MISSING, str(e))
        except OSError as e:
            raise TranscriptFailure(FailureKind.EXTRACTION_FAILED, str(e))
        except subprocess.TimeoutExpired:
            raise TranscriptFailure(
                FailureKind.TIMEOUT, f"yt-dlp exceeded {self.timeout:g}s"
            )

    def find_candidates(self, workdir: Path, video_id: str) -> list[Path]:
        """Caption files for this video, in filename order."""
        return sorted(
            (
                path for path in workdir.iterdir()
                if path.is_file()
                and video_id in path.name
                and path.suffix.lower() in SUBTITLE_EXTENSIONS
            ),
            key=lambda path: path.name,
        )

    def select_candidate(self, candidates: list[Path]) -> Optional[tuple[Path, Optional[str]]]:
        """
        Pick one caption file by language preference.

        Returns:
            Tuple of (path, language) or None if there are no candidates.
            Language is None when the file matched no preferred language.
        """
        for lang in self.languages:
            for path in candidates:
                if f".{lang}." in path.name:
                    return path, lang

        if candidates:
            return candidates[0], None
        return None

    def _extract(self, video_id: str) -> tuple[str, Optional[str]]:
        url = WATCH_URL.format(video_id=video_id)

        with tempfile.TemporaryDirectory(prefix="yt-dlp-") as workdir:
            process = self._run_tool(url, workdir)

            candidates = self.find_candidates(Path(workdir), video_id)
            selected = self.select_candidate(candidates)

            if selected is None:
                if process.returncode != 0:
                    diagnostics = process.stderr or process.stdout or ""
                    raise TranscriptFailure(classify_tool_error(diagnostics), diagnostics.strip())
                raise TranscriptFailure(FailureKind.NO_SUBTITLES)

            path, language = selected
            self._log(f"Reading subtitles: {path.name}")

            try:
                raw = path.read_text(encoding='utf-8', errors='replace')
            except OSError as e:
                raise TranscriptFailure(FailureKind.READ_FAILED, str(e))

        text = clean_subtitle_text(raw)
        if not text:
            raise TranscriptFailure(FailureKind.READ_FAILED, f"{path.name} had no caption text")

        return text, language

    def extract_transcript(self, video_id: str) -> TranscriptResult:
        """
        Download and clean the captions for one video.

        Args:
            video_id: YouTube video ID

        Returns:
            TranscriptResult with text on success, or a typed error
        """
        video_id = (video_id or "").strip()
        if not video_id:
            return TranscriptResult(
                video_id=video_id,
                error=TranscriptError(FailureKind.EXTRACTION_FAILED, "A video ID is required."),
            )

        self._log(f"Extracting transcript for {video_id}")
        try:
            text, language = self._extract(video_id)
        except TranscriptFailure as e:
            self._log(f"Extraction failed ({e.kind.value}): {e}")
            return TranscriptResult(video_id=video_id, error=e.to_error())

        self._log(f"Transcript ready: {len(text)} characters")
        return TranscriptResult(video_id=video_id, text=text, language=language)


def resolve_video_id(value: str) -> Optional[str]:
    """Accept a bare 11-character ID or any YouTube video URL."""
    value = value.strip()
    if _VIDEO_ID_RE.match(value):
        return value

    ref = interpret(value)
    if ref.kind is ReferenceKind.VIDEO:
        return ref.video_id
    return None


# ============================================================================
# CLI Interface
# ============================================================================

def create_cli_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog='youtube-transcript',
        description='Extract YouTube captions as plain text using yt-dlp',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python extractor.py https://youtube.com/watch?v=dQw4w9WgXcQ
  python extractor.py youtu.be/dQw4w9WgXcQ --lang en
  python extractor.py dQw4w9WgXcQ --json
        """
    )

    parser.add_argument(
        'url',
        help='YouTube video URL or video ID'
    )

    parser.add_argument(
        '-l', '--lang',
        action='append',
        dest='languages',
        help='Subtitle language, repeat in preference order (default: ko, en)'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f'Seconds to wait for yt-dlp (default: {DEFAULT_TIMEOUT:g})'
    )

    parser.add_argument(
        '--json',
        action='store_true',
        help='Output the result as JSON (for API integration)'
    )

    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Suppress progress messages'
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    parser = create_cli_parser()
    args = parser.parse_args(argv)

    url = args.url
    if '://' not in url and not _VIDEO_ID_RE.match(url):
        url = f"https://{url}"

    video_id = resolve_video_id(url)
    if not video_id:
        print(f"Error: Invalid or unsupported URL - {args.url}", file=sys.stderr)
        return 1

    extractor = TranscriptExtractor(
        languages=tuple(args.languages or DEFAULT_LANGUAGES),
        timeout=args.timeout,
        quiet=args.quiet,
    )

    try:
        result = extractor.extract_transcript(video_id)
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 130

    if args.json:
        output = {
            "video_id": result.video_id,
            "language": result.language,
            "transcript": result.text,
            "error": None,
        }
        if result.error:
            output["error"] = {"kind": result.error.kind.value, "message": result.error.message}
        print(json.dumps(output, ensure_ascii=False, indent=2))
        return 0 if result.ok else 1

    if not result.ok:
        print(f"Error: {result.error.message}", file=sys.stderr)
        return 1

    print(result.text)
    return 0


if __name__ == '__main__':
    sys.exit(main())
