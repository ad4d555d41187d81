"""
YouTube Data API client
=======================
Thin wrapper over the YouTube Data API v3 used to look up the channels,
videos and playlists a user is browsing.

Usage:
    api = YouTubeAPI.from_env()
    channels = api.search_channels("3blue1brown")
    videos, next_token = api.get_channel_videos(channels[0].id)
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from url_parser import WATCH_URL, format_timestamp


API_BASE_URL = "https://www.googleapis.com/youtube/v3"
API_KEY_ENV = "GOOGLE_API_KEY"
PAGE_SIZE = 50

_ISO_DURATION_RE = re.compile(r'PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?')


class YouTubeAPIError(ValueError):
    """Raised when a Data API request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# ============================================================================
# Data Models
# ============================================================================

@dataclass
class VideoItem:
    """Video summary shown in listings and passed to the chat."""
    id: str
    title: str
    description: str = ""
    thumbnail: Optional[str] = None
    published_at: str = ""
    duration: str = "0:00"
    view_count: int = 0
    channel_id: str = ""
    channel_title: str = ""
    url: str = ""

    def __post_init__(self):
        if not self.url:
            self.url = WATCH_URL.format(video_id=self.id)


@dataclass
class ChannelInfo:
    """Channel summary."""
    id: str
    title: str
    description: str = ""
    thumbnail: Optional[str] = None
    subscriber_count: int = 0
    video_count: int = 0


@dataclass
class PlaylistInfo:
    """Playlist summary, optionally with its videos."""
    id: str
    title: str = ""
    description: str = ""
    thumbnail: Optional[str] = None
    video_count: int = 0
    channel_id: str = ""
    channel_title: str = ""
    videos: list[VideoItem] = field(default_factory=list)


def parse_duration(duration: str) -> str:
    """Turn an ISO 8601 duration (PT4M13S) into 4:13."""
    match = _ISO_DURATION_RE.match(duration or "")
    if not match:
        return "0:00"
    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return format_timestamp(hours * 3600 + minutes * 60 + seconds)


def _thumbnail(snippet: dict[str, Any]) -> Optional[str]:
    thumbnails = snippet.get('thumbnails') or {}
    for size in ('high', 'medium', 'default'):
        if thumbnails.get(size, {}).get('url'):
            return thumbnails[size]['url']
    return None


def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _video_from_item(item: dict[str, Any]) -> VideoItem:
    snippet = item.get('snippet') or {}
    statistics = item.get('statistics') or {}
    details = item.get('contentDetails') or {}
    return VideoItem(
        id=item['id'],
        title=snippet.get('title', ''),
        description=snippet.get('description', ''),
        thumbnail=_thumbnail(snippet),
        published_at=snippet.get('publishedAt', ''),
        duration=parse_duration(details.get('duration', '')),
        view_count=_to_int(statistics.get('viewCount')),
        channel_id=snippet.get('channelId', ''),
        channel_title=snippet.get('channelTitle', ''),
    )


def _channel_from_item(item: dict[str, Any]) -> ChannelInfo:
    snippet = item.get('snippet') or {}
    statistics = item.get('statistics') or {}
    return ChannelInfo(
        id=item['id'],
        title=snippet.get('title', ''),
        description=snippet.get('description', ''),
        thumbnail=_thumbnail(snippet),
        subscriber_count=_to_int(statistics.get('subscriberCount')),
        video_count=_to_int(statistics.get('videoCount')),
    )


def _playlist_from_item(item: dict[str, Any]) -> PlaylistInfo:
    snippet = item.get('snippet') or {}
    details = item.get('contentDetails') or {}
    return PlaylistInfo(
        id=item['id'],
        title=snippet.get('title', ''),
        description=snippet.get('description', ''),
        thumbnail=_thumbnail(snippet),
        video_count=_to_int(details.get('itemCount')),
        channel_id=snippet.get('channelId', ''),
        channel_title=snippet.get('channelTitle', ''),
    )


# ============================================================================
# Client
# ============================================================================

class YouTubeAPI:
    """
    YouTube Data API v3 client.

    Construct one explicitly and pass it to whoever needs it.

    Usage:
        api = YouTubeAPI(api_key="...")
        video = api.get_video("dQw4w9WgXcQ")
    """

    def __init__(self,
                 api_key: str,
                 session: Optional[requests.Session] = None,
                 timeout: float = 10.0):
        if not api_key:
            raise ValueError(f"{API_KEY_ENV} is not set")

        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_env(cls, **kwargs) -> "YouTubeAPI":
        return cls(os.environ.get(API_KEY_ENV, ""), **kwargs)

    def _get(self, resource: str, **params) -> dict[str, Any]:
        params = {k: v for k, v in params.items() if v is not None}
        params['key'] = self.api_key

        try:
            resp = self.session.get(
                f"{API_BASE_URL}/{resource}", params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise YouTubeAPIError(f"YouTube API request failed: {e}")

        if resp.status_code != 200:
            message = resp.reason or "request failed"
            try:
                message = resp.json()['error']['message']
            except (ValueError, KeyError, TypeError):
                pass
            raise YouTubeAPIError(
                f"YouTube API error ({resp.status_code}): {message}", resp.status_code
            )

        return resp.json()

    def _videos(self, video_ids: list[str]) -> list[VideoItem]:
        if not video_ids:
            return []
        data = self._get(
            'videos', id=','.join(video_ids), part='snippet,statistics,contentDetails'
        )
        return [_video_from_item(item) for item in data.get('items', [])]

    def _channels(self, channel_ids: list[str]) -> list[ChannelInfo]:
        if not channel_ids:
            return []
        data = self._get('channels', id=','.join(channel_ids), part='snippet,statistics')
        return [_channel_from_item(item) for item in data.get('items', [])]

    def _playlist_items(self, playlist_id: str, max_results: int,
                        page_token: Optional[str]) -> tuple[list[VideoItem], Optional[str]]:
        data = self._get(
            'playlistItems',
            playlistId=playlist_id,
            part='snippet',
            maxResults=max_results,
            pageToken=page_token,
        )
        video_ids = [
            item['snippet']['resourceId']['videoId']
            for item in data.get('items', [])
            if item.get('snippet', {}).get('resourceId', {}).get('videoId')
        ]
        return self._videos(video_ids), data.get('nextPageToken')

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def search_channels(self, query: str, max_results: int = 10) -> list[ChannelInfo]:
        """Search channels by name and return them with statistics."""
        data = self._get(
            'search', q=query, type='channel', part='snippet', maxResults=max_results
        )
        channel_ids = [
            item['id']['channelId']
            for item in data.get('items', [])
            if item.get('id', {}).get('channelId')
        ]
        channels = {channel.id: channel for channel in self._channels(channel_ids)}
        # keep search relevance order
        return [channels[cid] for cid in channel_ids if cid in channels]

    def get_channel(self, channel_id: str) -> Optional[ChannelInfo]:
        channels = self._channels([channel_id])
        return channels[0] if channels else None

    def get_channel_by_handle(self, handle: str) -> Optional[ChannelInfo]:
        """
        Look up a channel by @handle or legacy custom name.

        Falls back to the first channel search hit when the handle lookup
        fails or finds nothing.
        """
        clean = handle[1:] if handle.startswith('@') else handle

        try:
            data = self._get('channels', forHandle=clean, part='snippet,statistics')
            items = data.get('items', [])
            if items:
                return _channel_from_item(items[0])
        except YouTubeAPIError:
            pass

        results = self.search_channels(clean, max_results=1)
        return results[0] if results else None

    def get_channel_videos(self, channel_id: str, max_results: int = 20,
                           page_token: Optional[str] = None) -> tuple[list[VideoItem], Optional[str]]:
        """
        One page of a channel's uploads, newest first.

        Returns:
            Tuple of (videos, next_page_token)
        """
        data = self._get('channels', id=channel_id, part='contentDetails')
        items = data.get('items', [])
        uploads = None
        if items:
            uploads = items[0].get('contentDetails', {}).get('relatedPlaylists', {}).get('uploads')
        if not uploads:
            raise YouTubeAPIError(f"Uploads playlist not found for channel {channel_id}")

        return self._playlist_items(uploads, max_results, page_token)

    def get_channel_playlists(self, channel_id: str) -> list[PlaylistInfo]:
        """All playlists of a channel, following every page."""
        playlists: list[PlaylistInfo] = []
        page_token = None
        while True:
            data = self._get(
                'playlists',
                channelId=channel_id,
                part='snippet,contentDetails',
                maxResults=PAGE_SIZE,
                pageToken=page_token,
            )
            playlists.extend(_playlist_from_item(item) for item in data.get('items', []))
            page_token = data.get('nextPageToken')
            if not page_token:
                return playlists

    # ------------------------------------------------------------------
    # Videos & playlists
    # ------------------------------------------------------------------

    def get_video(self, video_id: str) -> Optional[VideoItem]:
        videos = self._videos([video_id])
        return videos[0] if videos else None

    def get_playlist(self, playlist_id: str, limit: Optional[int] = None) -> PlaylistInfo:
        """
        Playlist details with its videos.

        Args:
            playlist_id: Playlist ID
            limit: Stop after this many videos (default: all of them)

        Returns:
            PlaylistInfo with videos populated
        """
        data = self._get('playlists', id=playlist_id, part='snippet,contentDetails')
        items = data.get('items', [])
        playlist = _playlist_from_item(items[0]) if items else PlaylistInfo(id=playlist_id)

        page_token = None
        while limit is None or len(playlist.videos) < limit:
            page_size = PAGE_SIZE if limit is None else min(PAGE_SIZE, limit - len(playlist.videos))
            videos, page_token = self._playlist_items(playlist_id, page_size, page_token)
            playlist.videos.extend(videos)
            if not page_token:
                break

        if limit is not None:
            del playlist.videos[limit:]
        return playlist
