"""
YouTube URL Parser
==================
Classify pasted links as video, channel or playlist references and pull
out the identifiers needed to look them up.

Usage:
    ref = interpret("https://youtu.be/dQw4w9WgXcQ?t=1m30s")
    ref.kind, ref.video_id, ref.start_seconds
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import parse_qs, urlsplit


PRIMARY_HOSTS = frozenset({
    'youtube.com',
    'www.youtube.com',
    'm.youtube.com',
    'music.youtube.com',
})
SHORT_HOST = 'youtu.be'

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

# 1h2m3s, 90s, 5m ... every unit optional
_COMPOUND_TIME_RE = re.compile(r'(?:([0-9]+)h)?(?:([0-9]+)m)?(?:([0-9]+)s)?')
_DIGITS_RE = re.compile(r'[0-9]+')


class ReferenceKind(str, Enum):
    VIDEO = 'video'
    CHANNEL = 'channel'
    PLAYLIST = 'playlist'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class ParsedReference:
    """Result of interpreting a pasted link."""
    kind: ReferenceKind
    video_id: Optional[str] = None
    channel_id: Optional[str] = None
    channel_handle: Optional[str] = None
    playlist_id: Optional[str] = None
    start_seconds: Optional[int] = None

    @property
    def is_known(self) -> bool:
        return self.kind is not ReferenceKind.UNKNOWN

    @property
    def watch_url(self) -> Optional[str]:
        """Canonical watch address for video references, with start time."""
        if self.kind is not ReferenceKind.VIDEO or not self.video_id:
            return None
        url = WATCH_URL.format(video_id=self.video_id)
        if self.start_seconds:
            url += f"&t={self.start_seconds}s"
        return url


UNKNOWN = ParsedReference(kind=ReferenceKind.UNKNOWN)


# ============================================================================
# Start-time helpers
# ============================================================================

def parse_start_time(value: Optional[str]) -> Optional[int]:
    """
    Parse a ``t=`` query value into whole seconds.

    Accepts plain digits (``90``) or a compound duration (``1h2m3s``,
    ``5m``, ``45s``). Anything else means "no start time".

    Args:
        value: Raw query parameter value

    Returns:
        Seconds, or None if the value is missing or unrecognized
    """
    if not value:
        return None

    if _DIGITS_RE.fullmatch(value):
        return int(value)

    match = _COMPOUND_TIME_RE.fullmatch(value)
    if not match or not any(match.groups()):
        return None

    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def format_timestamp(seconds: int) -> str:
    """Format seconds as H:MM:SS, or M:SS under an hour."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


# ============================================================================
# Interpretation
# ============================================================================

def _split_youtube_url(text: str):
    """Return (host, path, query) for a YouTube URL, else None."""
    if not text:
        return None

    try:
        parts = urlsplit(text.strip())
        host = (parts.hostname or '').lower()
    except ValueError:
        return None

    if parts.scheme not in ('http', 'https') or not host:
        return None

    if host != SHORT_HOST and host not in PRIMARY_HOSTS:
        return None

    return host, parts.path, parse_qs(parts.query)


def _first(query: dict[str, list[str]], name: str) -> Optional[str]:
    values = query.get(name)
    if not values:
        return None
    return values[0] or None


def is_reference(text: str) -> bool:
    """True if the text is a URL on a YouTube host, whatever its path."""
    return _split_youtube_url(text) is not None


def interpret(text: str) -> ParsedReference:
    """
    Classify a URL as a video, channel or playlist reference.

    Never raises: malformed input and non-YouTube links come back as
    ``ReferenceKind.UNKNOWN``.

    Args:
        text: Anything the user pasted

    Returns:
        ParsedReference with only the fields of its kind populated
    """
    split = _split_youtube_url(text)
    if split is None:
        return UNKNOWN

    host, path, query = split

    if host == SHORT_HOST:
        video_id = path.lstrip('/')
        if not video_id:
            return UNKNOWN
        return ParsedReference(
            kind=ReferenceKind.VIDEO,
            video_id=video_id,
            start_seconds=parse_start_time(_first(query, 't')),
        )

    video_id = _first(query, 'v')
    if path == '/watch' and video_id:
        return ParsedReference(
            kind=ReferenceKind.VIDEO,
            video_id=video_id,
            playlist_id=_first(query, 'list'),
            start_seconds=parse_start_time(_first(query, 't')),
        )

    if path.startswith('/channel/'):
        channel_id = path[len('/channel/'):].split('/', 1)[0]
        if not channel_id:
            return UNKNOWN
        return ParsedReference(kind=ReferenceKind.CHANNEL, channel_id=channel_id)

    if path.startswith('/c/') or path.startswith('/@'):
        prefix = '/c/' if path.startswith('/c/') else '/@'
        handle = path[len(prefix):].split('/', 1)[0]
        if not handle:
            return UNKNOWN
        return ParsedReference(kind=ReferenceKind.CHANNEL, channel_handle=handle)

    playlist_id = _first(query, 'list')
    if path == '/playlist' and playlist_id:
        return ParsedReference(kind=ReferenceKind.PLAYLIST, playlist_id=playlist_id)

    return UNKNOWN
