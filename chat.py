"""
Chat assistant
==============
Resolve what the user is looking at into a chat context and stream answers
from an OpenAI chat model that sees that context (and the transcript, when
one was extracted).
"""

import os
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Iterator, Optional, Union

from openai import OpenAI

from url_parser import ParsedReference, ReferenceKind, format_timestamp
from youtube_api import ChannelInfo, PlaylistInfo, VideoItem, YouTubeAPI


DEFAULT_MODEL = "gpt-4o"
MODEL_ENV = "OPENAI_MODEL"
PLAYLIST_PREVIEW_SIZE = 10
PLAYLIST_PAGE_SIZE = 20

SYSTEM_PROMPT = """You are a YouTube content analysis expert. Help the user based on the YouTube videos, playlists or channels they share.

You can help with:
- Summarizing and analyzing video content
- Building a study plan
- Recommending related topics
- Suggesting a viewing order
- Listing the key points

Answer in the language the user writes in, in a friendly and helpful tone."""


# ============================================================================
# Content Context
# ============================================================================

@dataclass
class VideoContext:
    """A single video, optionally watched inside a playlist."""
    video: VideoItem
    channel: Optional[ChannelInfo] = None
    start_seconds: Optional[int] = None
    playlist: Optional[PlaylistInfo] = None
    kind: str = field(default=ReferenceKind.VIDEO.value, init=False)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.start_seconds is not None:
            data['start_time'] = format_timestamp(self.start_seconds)
        return data


@dataclass
class PlaylistContext:
    playlist: PlaylistInfo
    kind: str = field(default=ReferenceKind.PLAYLIST.value, init=False)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ChannelContext:
    channel: ChannelInfo
    videos: list[VideoItem] = field(default_factory=list)
    playlists: list[PlaylistInfo] = field(default_factory=list)
    next_page_token: Optional[str] = None
    kind: str = field(default=ReferenceKind.CHANNEL.value, init=False)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop('next_page_token')
        return data


ContentContext = Union[VideoContext, PlaylistContext, ChannelContext]


def load_context(api: YouTubeAPI, ref: ParsedReference) -> ContentContext:
    """
    Fetch everything the chat needs about a parsed reference.

    Raises:
        ValueError: If the reference is unknown or nothing was found
    """
    if ref.kind is ReferenceKind.VIDEO:
        video = api.get_video(ref.video_id)
        if video is None:
            raise ValueError(f"Video not found: {ref.video_id}")
        channel = api.get_channel(video.channel_id) if video.channel_id else None
        playlist = None
        if ref.playlist_id:
            playlist = api.get_playlist(ref.playlist_id, limit=PLAYLIST_PREVIEW_SIZE)
        return VideoContext(
            video=video,
            channel=channel,
            start_seconds=ref.start_seconds,
            playlist=playlist,
        )

    if ref.kind is ReferenceKind.CHANNEL:
        if ref.channel_id:
            channel = api.get_channel(ref.channel_id)
        else:
            channel = api.get_channel_by_handle(ref.channel_handle)
        if channel is None:
            raise ValueError(f"Channel not found: {ref.channel_id or ref.channel_handle}")
        return load_channel_context(api, channel)

    if ref.kind is ReferenceKind.PLAYLIST:
        return load_playlist_context(api, ref.playlist_id)

    raise ValueError("Not a valid YouTube URL")


def load_channel_context(api: YouTubeAPI, channel: ChannelInfo,
                         max_results: int = 20) -> ChannelContext:
    """First page of uploads plus every playlist of the channel."""
    videos, next_token = api.get_channel_videos(channel.id, max_results=max_results)
    playlists = api.get_channel_playlists(channel.id)
    return ChannelContext(
        channel=channel,
        videos=videos,
        playlists=playlists,
        next_page_token=next_token,
    )


def load_more_videos(api: YouTubeAPI, context: ChannelContext,
                     max_results: int = 20) -> ChannelContext:
    """Append the next page of uploads; unchanged when there is none."""
    if not context.next_page_token:
        return context

    videos, next_token = api.get_channel_videos(
        context.channel.id, max_results=max_results, page_token=context.next_page_token
    )
    return ChannelContext(
        channel=context.channel,
        videos=context.videos + videos,
        playlists=context.playlists,
        next_page_token=next_token,
    )


def load_playlist_context(api: YouTubeAPI, playlist_id: str) -> PlaylistContext:
    return PlaylistContext(playlist=api.get_playlist(playlist_id, limit=PLAYLIST_PAGE_SIZE))


def build_system_prompt(context: Optional[ContentContext] = None,
                        transcript: Optional[str] = None) -> str:
    """Assistant instructions plus the content currently being explored."""
    parts = [SYSTEM_PROMPT]

    if context is not None:
        parts.append(
            "Content currently being analyzed:\n"
            + json.dumps(context.to_dict(), ensure_ascii=False, indent=2)
        )

    if transcript:
        parts.append(f"Video transcript:\n{transcript}")

    return "\n\n".join(parts)


# ============================================================================
# Assistant
# ============================================================================

class ChatAssistant:
    """
    Streaming chat over an OpenAI model.

    Usage:
        assistant = ChatAssistant()
        for partial in assistant.stream_reply("Summarize this", [], context):
            print(partial)
    """

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        # OpenAI() reads OPENAI_API_KEY and fails fast without it
        self.client = client or OpenAI()
        self.model = model or os.environ.get(MODEL_ENV, DEFAULT_MODEL)

    def build_messages(self, message: str, history: list[dict[str, str]],
                       context: Optional[ContentContext] = None,
                       transcript: Optional[str] = None) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": build_system_prompt(context, transcript)}]
        messages.extend(
            {"role": turn["role"], "content": turn["content"]}
            for turn in history
            if turn.get("role") in ("user", "assistant") and turn.get("content")
        )
        messages.append({"role": "user", "content": message})
        return messages

    def stream_reply(self, message: str, history: list[dict[str, str]],
                     context: Optional[ContentContext] = None,
                     transcript: Optional[str] = None) -> Iterator[str]:
        """Yield the reply accumulated so far after every streamed chunk."""
        stream = self.client.chat.completions.create(
            model=self.model,
            messages=self.build_messages(message, history, context, transcript),
            stream=True,
        )

        reply = ""
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                reply += delta
                yield reply
