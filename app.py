import sys
import argparse
from typing import Optional

import gradio as gr
from openai import OpenAIError

from chat import (
    ChannelContext, ChatAssistant, ContentContext, PlaylistContext, VideoContext,
    load_channel_context, load_context, load_more_videos, load_playlist_context,
)
from extractor import TranscriptExtractor
from url_parser import format_timestamp, interpret, is_reference
from youtube_api import YouTubeAPI

# UI Text Dictionary
UI_TEXT = {
    "en": {
        "title": "YouTube Content Explorer",
        "description": "Search for a channel or paste a **video, channel or playlist** link, pick a video, pull its transcript and chat about it.",
        "query_label": "Channel name or YouTube URL",
        "query_placeholder": "e.g. 3blue1brown or https://www.youtube.com/watch?v=...",
        "search_label": "🔍 Search",
        "channel_label": "Channels",
        "video_label": "Videos",
        "playlist_label": "Playlists",
        "more_btn": "More videos",
        "transcript_btn": "📝 Extract Transcript",
        "transcript_label": "Transcript",
        "chat_label": "Assistant",
        "message_placeholder": "Ask about this content...",
        "send_label": "Send",
    },
    "ko": {
        "title": "YouTube 콘텐츠 탐색기",
        "description": "채널을 검색하거나 **영상, 채널, 플레이리스트** 링크를 붙여넣고, 영상을 골라 스크립트를 가져온 뒤 AI와 대화하세요.",
        "query_label": "채널 이름 또는 YouTube URL",
        "query_placeholder": "예: 3blue1brown 또는 https://www.youtube.com/watch?v=...",
        "search_label": "🔍 검색",
        "channel_label": "채널",
        "video_label": "영상",
        "playlist_label": "플레이리스트",
        "more_btn": "영상 더 보기",
        "transcript_btn": "📝 스크립트 추출",
        "transcript_label": "스크립트",
        "chat_label": "어시스턴트",
        "message_placeholder": "이 콘텐츠에 대해 물어보세요...",
        "send_label": "보내기",
    },
}


def _video_choices(context: Optional[ContentContext]) -> list[tuple[str, str]]:
    if isinstance(context, VideoContext):
        others = context.playlist.videos if context.playlist else []
        videos = [context.video] + [v for v in others if v.id != context.video.id]
    elif isinstance(context, PlaylistContext):
        videos = context.playlist.videos
    elif isinstance(context, ChannelContext):
        videos = context.videos
    else:
        videos = []
    return [(f"{v.title} ({v.duration})", v.id) for v in videos]


def _playlist_choices(context: Optional[ContentContext]) -> list[tuple[str, str]]:
    if not isinstance(context, ChannelContext):
        return []
    return [(f"{p.title} ({p.video_count} videos)", p.id) for p in context.playlists]


def describe(context: ContentContext) -> str:
    """Markdown summary of the content being explored."""
    if isinstance(context, VideoContext):
        lines = [f"### 🎬 [{context.video.title}]({context.video.url})"]
        if context.channel:
            lines.append(f"- **Channel**: {context.channel.title}")
        lines.append(f"- **Duration**: {context.video.duration}")
        lines.append(f"- **Views**: {context.video.view_count:,}")
        if context.start_seconds:
            lines.append(f"- **Starts at**: {format_timestamp(context.start_seconds)}")
        if context.playlist:
            lines.append(f"- **Playlist**: {context.playlist.title} ({len(context.playlist.videos)} videos)")
        return "\n".join(lines)

    if isinstance(context, PlaylistContext):
        playlist = context.playlist
        return f"### 📃 {playlist.title or playlist.id}\n- **Videos**: {len(playlist.videos)}"

    channel = context.channel
    return (
        f"### 📺 {channel.title}\n"
        f"- **Subscribers**: {channel.subscriber_count:,}\n"
        f"- **Videos**: {channel.video_count:,}"
    )


def focus_video(context: Optional[ContentContext], video_id: str) -> Optional[ContentContext]:
    """Narrow a listing context down to one of its videos."""
    if not video_id or context is None:
        return context
    if isinstance(context, VideoContext) and context.video.id == video_id:
        return context

    if isinstance(context, VideoContext):
        videos = context.playlist.videos if context.playlist else []
        channel, playlist = context.channel, context.playlist
    elif isinstance(context, PlaylistContext):
        videos, channel, playlist = context.playlist.videos, None, context.playlist
    else:
        videos, channel, playlist = context.videos, context.channel, None

    for video in videos:
        if video.id == video_id:
            return VideoContext(video=video, channel=channel, playlist=playlist)
    return context


class Explorer:
    """UI event handlers over explicitly constructed collaborators."""

    def __init__(self, api: YouTubeAPI, extractor: TranscriptExtractor,
                 assistant: ChatAssistant):
        self.api = api
        self.extractor = extractor
        self.assistant = assistant

    def lookup(self, query: str):
        """
        Resolve a pasted URL or search channels by name.

        Returns:
            Tuple of (status, channel_choices, video_choices, context, selected_video_id)
        """
        query = (query or "").strip()
        if not query:
            return "Error: Please enter a channel name or URL.", [], [], None, None

        try:
            if is_reference(query):
                ref = interpret(query)
                if not ref.is_known:
                    return "Error: Not a valid YouTube URL.", [], [], None, None
                context = load_context(self.api, ref)
                selected = context.video.id if isinstance(context, VideoContext) else None
                return describe(context), [], _video_choices(context), context, selected

            channels = self.api.search_channels(query)
        except ValueError as e:
            return f"Error: {e}", [], [], None, None

        if not channels:
            return f"No channels found for **{query}**.", [], [], None, None

        choices = [(f"{c.title} ({c.subscriber_count:,} subscribers)", c.id) for c in channels]
        return f"Found {len(channels)} channels.", choices, [], None, None

    def select_channel(self, channel_id: str):
        """Returns: Tuple of (status, video_choices, context)."""
        if not channel_id:
            return "", [], None

        try:
            channel = self.api.get_channel(channel_id)
            if channel is None:
                return f"Error: Channel not found: {channel_id}", [], None
            context = load_channel_context(self.api, channel)
        except ValueError as e:
            return f"Error: {e}", [], None

        return describe(context), _video_choices(context), context

    def select_playlist(self, playlist_id: str):
        """Returns: Tuple of (status, video_choices, context)."""
        if not playlist_id:
            return "", [], None

        try:
            context = load_playlist_context(self.api, playlist_id)
        except ValueError as e:
            return f"Error: {e}", [], None

        return describe(context), _video_choices(context), context

    def more_videos(self, context: Optional[ContentContext]):
        """
        Append the next page of a channel's uploads.

        Returns:
            Tuple of (status, video_choices, context)
        """
        if not isinstance(context, ChannelContext) or not context.next_page_token:
            return "No more videos.", _video_choices(context), context

        try:
            context = load_more_videos(self.api, context)
        except ValueError as e:
            return f"Error: {e}", _video_choices(context), context

        return f"Showing {len(context.videos)} videos.", _video_choices(context), context

    def fetch_transcript(self, video_id: str):
        """Returns: Tuple of (transcript_text, status)."""
        if not video_id:
            return "", "Error: Select a video first."

        result = self.extractor.extract_transcript(video_id)
        if not result.ok:
            return "", f"Error: {result.error.message}"

        return result.text, f"Transcript loaded ({len(result.text):,} characters)."

    def respond(self, message: str, history, context: Optional[ContentContext],
                video_id: Optional[str], transcript: Optional[str]):
        """Stream the assistant's reply into the chat history."""
        history = list(history or [])
        message = (message or "").strip()
        if not message:
            yield history, ""
            return

        context = focus_video(context, video_id)
        previous = list(history)
        history.append({"role": "user", "content": message})
        history.append({"role": "assistant", "content": ""})
        yield history, ""

        try:
            for partial in self.assistant.stream_reply(message, previous, context, transcript or None):
                history[-1]["content"] = partial
                yield history, ""
        except OpenAIError as e:
            history[-1]["content"] = f"Error: {e}"
            yield history, ""


# Define Custom CSS (Minimal)
custom_css = """
textarea { resize: none !important; }
"""


def build_demo(explorer: Explorer, lang: str = "en") -> gr.Blocks:
    t = UI_TEXT[lang]

    with gr.Blocks(title="YouTube Content Explorer", theme=gr.themes.Soft(), css=custom_css) as demo:
        context_state = gr.State(None)

        with gr.Row():
            with gr.Column(scale=5):
                title_md = gr.Markdown(f"# 🎥 {t['title']}")
            with gr.Column(scale=1):
                lang_radio = gr.Radio(choices=["en", "ko"], value=lang, show_label=False, interactive=True)

        description_md = gr.Markdown(t['description'])

        with gr.Row():
            with gr.Column(scale=2):
                with gr.Row():
                    query_input = gr.Textbox(
                        label=t['query_label'], placeholder=t['query_placeholder'],
                        lines=1, max_lines=1, scale=4,
                    )
                    search_btn = gr.Button(t['search_label'], variant="primary", scale=1)

                status_md = gr.Markdown()
                channel_dropdown = gr.Dropdown(label=t['channel_label'], choices=[], interactive=True)
                playlist_dropdown = gr.Dropdown(label=t['playlist_label'], choices=[], interactive=True)
                video_dropdown = gr.Dropdown(label=t['video_label'], choices=[], interactive=True)
                more_btn = gr.Button(t['more_btn'], size="sm")
                transcript_btn = gr.Button(t['transcript_btn'])
                transcript_box = gr.Textbox(label=t['transcript_label'], lines=12, max_lines=20)

            with gr.Column(scale=3):
                chatbot = gr.Chatbot(label=t['chat_label'], type="messages", height=560)
                with gr.Row():
                    message_input = gr.Textbox(
                        show_label=False, placeholder=t['message_placeholder'], scale=5,
                    )
                    send_btn = gr.Button(t['send_label'], scale=1)

        # Language Change Event
        def update_language(lang):
            t = UI_TEXT[lang]
            return (
                gr.Markdown(value=f"# 🎥 {t['title']}"),
                gr.Markdown(value=t['description']),
                gr.Textbox(label=t['query_label'], placeholder=t['query_placeholder']),
                gr.Button(value=t['search_label']),
                gr.Dropdown(label=t['channel_label']),
                gr.Dropdown(label=t['playlist_label']),
                gr.Dropdown(label=t['video_label']),
                gr.Button(value=t['more_btn']),
                gr.Button(value=t['transcript_btn']),
                gr.Textbox(label=t['transcript_label']),
                gr.Textbox(placeholder=t['message_placeholder']),
                gr.Button(value=t['send_label']),
            )

        lang_radio.change(
            fn=update_language,
            inputs=[lang_radio],
            outputs=[
                title_md, description_md, query_input, search_btn,
                channel_dropdown, playlist_dropdown, video_dropdown, more_btn,
                transcript_btn, transcript_box,
                message_input, send_btn,
            ]
        )

        def on_lookup(query):
            status, channels, videos, context, selected = explorer.lookup(query)
            return (
                status,
                gr.Dropdown(choices=channels, value=None),
                gr.Dropdown(choices=_playlist_choices(context), value=None),
                gr.Dropdown(choices=videos, value=selected),
                context,
                "",
            )

        lookup_outputs = [
            status_md, channel_dropdown, playlist_dropdown, video_dropdown, context_state, transcript_box,
        ]
        search_btn.click(fn=on_lookup, inputs=[query_input], outputs=lookup_outputs)
        query_input.submit(fn=on_lookup, inputs=[query_input], outputs=lookup_outputs)

        def on_channel(channel_id):
            status, videos, context = explorer.select_channel(channel_id)
            return (
                status,
                gr.Dropdown(choices=_playlist_choices(context), value=None),
                gr.Dropdown(choices=videos, value=None),
                context,
                "",
            )

        channel_dropdown.input(
            fn=on_channel,
            inputs=[channel_dropdown],
            outputs=[status_md, playlist_dropdown, video_dropdown, context_state, transcript_box],
        )

        def on_playlist(playlist_id):
            status, videos, context = explorer.select_playlist(playlist_id)
            return status, gr.Dropdown(choices=videos, value=None), context, ""

        playlist_dropdown.input(
            fn=on_playlist,
            inputs=[playlist_dropdown],
            outputs=[status_md, video_dropdown, context_state, transcript_box],
        )

        def on_more(context):
            status, videos, context = explorer.more_videos(context)
            return status, gr.Dropdown(choices=videos), context

        more_btn.click(
            fn=on_more,
            inputs=[context_state],
            outputs=[status_md, video_dropdown, context_state],
        )

        video_dropdown.input(fn=lambda _: "", inputs=[video_dropdown], outputs=[transcript_box])

        transcript_btn.click(
            fn=explorer.fetch_transcript,
            inputs=[video_dropdown],
            outputs=[transcript_box, status_md],
        )

        chat_inputs = [message_input, chatbot, context_state, video_dropdown, transcript_box]
        send_btn.click(fn=explorer.respond, inputs=chat_inputs, outputs=[chatbot, message_input])
        message_input.submit(fn=explorer.respond, inputs=chat_inputs, outputs=[chatbot, message_input])

    return demo


def create_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='youtube-explorer', description='YouTube content explorer web UI')
    parser.add_argument('--host', default='127.0.0.1', help='Address to bind (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=7860, help='Port to listen on (default: 7860)')
    parser.add_argument('--share', action='store_true', help='Create a public Gradio link')
    parser.add_argument('--lang', default='en', choices=list(UI_TEXT), help='Initial interface language')
    parser.add_argument('--timeout', type=float, default=30.0, help='Transcript extraction timeout in seconds')
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = create_cli_parser().parse_args(argv)

    try:
        api = YouTubeAPI.from_env()
        assistant = ChatAssistant()
    except (ValueError, OpenAIError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    explorer = Explorer(api, TranscriptExtractor(timeout=args.timeout), assistant)
    demo = build_demo(explorer, lang=args.lang)

    print("Starting Web UI...")
    demo.launch(server_name=args.host, server_port=args.port, share=args.share, inbrowser=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
