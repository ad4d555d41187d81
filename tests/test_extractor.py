"""Tests for caption cleanup and the yt-dlp backed transcript extractor."""

import json
import os
import subprocess
from pathlib import Path

import pytest

import extractor
from extractor import (
    FailureKind,
    TranscriptExtractor,
    classify_tool_error,
    clean_subtitle_text,
    resolve_video_id,
)


VTT_SAMPLE = """WEBVTT
Kind: captions
Language: en

1
00:00:01.000 --> 00:00:04.000 align:start position:0%
<c.colorE5E5E5>Tom &amp; Jerry</c> are <b>back</b>

2
00:00:04.000 --> 00:00:06,500
say &quot;hi&quot; &lt;now&gt;
"""

SRT_SAMPLE = """1
00:00:01,000 --> 00:00:02,000
Hello there

2
00:00:02,000 --> 00:00:03,000
<i>General Kenobi</i>
"""


class FakeRun:
    """Stand-in for subprocess.run that drops files into the working directory."""

    def __init__(self, files=None, returncode=0, stderr="", exc=None):
        self.files = files or {}
        self.returncode = returncode
        self.stderr = stderr
        self.exc = exc
        self.calls = []

    def __call__(self, cmd, cwd=None, **kwargs):
        self.calls.append({"cmd": cmd, "cwd": cwd, **kwargs})
        if self.exc is not None:
            raise self.exc
        for name, content in self.files.items():
            Path(cwd, name).write_text(content, encoding="utf-8")
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr=self.stderr)


@pytest.fixture
def quiet_extractor() -> TranscriptExtractor:
    return TranscriptExtractor(quiet=True)


class TestCleanSubtitleText:

    def test_vtt(self) -> None:
        assert clean_subtitle_text(VTT_SAMPLE) == 'Tom & Jerry are back\nsay "hi" <now>'

    def test_srt(self) -> None:
        assert clean_subtitle_text(SRT_SAMPLE) == "Hello there\nGeneral Kenobi"

    def test_single_cue(self) -> None:
        raw = "WEBVTT\n\n1\n00:00:00.000 --> 00:00:02.000\n<i>Fish &amp; chips</i>\n"
        assert clean_subtitle_text(raw) == "Fish & chips"

    def test_double_encoded_ampersand(self) -> None:
        raw = "WEBVTT\n\n00:00:00.000 --> 00:00:02.000\nA &amp;lt; B\n"
        assert clean_subtitle_text(raw) == "A &lt; B"

    def test_bom_and_crlf(self) -> None:
        raw = "\ufeffWEBVTT\r\n\r\n00:00:00.000 --> 00:00:01.000\r\nline one\r\n"
        assert clean_subtitle_text(raw) == "line one"

    def test_drops_bare_timestamps_and_numbers(self) -> None:
        raw = "WEBVTT\n\n00:00:00.000 --> 00:00:01.000\n<00:00:00.500>\n00:00:00.500\n42\nspoken\n"
        assert clean_subtitle_text(raw) == "spoken"

    def test_only_markup_is_empty(self) -> None:
        raw = "WEBVTT\nKind: captions\nLanguage: ko\n\n1\n00:00:00.000 --> 00:00:01.000\n<c></c>\n"
        assert clean_subtitle_text(raw) == ""


class TestClassifyToolError:

    @pytest.mark.parametrize("stderr, kind", [
        ("ERROR: [youtube] abc: Private video. Sign in", FailureKind.PRIVATE_VIDEO),
        ("ERROR: [youtube] abc: Video unavailable", FailureKind.VIDEO_UNAVAILABLE),
        ("WARNING: There are no subtitles for the requested languages", FailureKind.NO_SUBTITLES),
        ("ERROR: Did not get any data blocks", FailureKind.BAD_DATA),
        ("ERROR: Sign in to confirm your age", FailureKind.AGE_RESTRICTED),
        ("ERROR: HTTP Error 429: Too Many Requests", FailureKind.EXTRACTION_FAILED),
        ("", FailureKind.EXTRACTION_FAILED),
    ])
    def test_patterns(self, stderr: str, kind: FailureKind) -> None:
        assert classify_tool_error(stderr) is kind


class TestSelectCandidate:

    def test_language_preference(self, quiet_extractor, tmp_path) -> None:
        names = ["vid.de.vtt", "vid.en.vtt", "vid.ko.vtt"]
        paths = [tmp_path / n for n in names]
        path, lang = quiet_extractor.select_candidate(paths)
        assert path.name == "vid.ko.vtt"
        assert lang == "ko"

    def test_fallback_language(self, quiet_extractor, tmp_path) -> None:
        path, lang = quiet_extractor.select_candidate([tmp_path / "vid.de.vtt", tmp_path / "vid.en.srt"])
        assert path.name == "vid.en.srt"
        assert lang == "en"

    def test_first_remaining_candidate(self, quiet_extractor, tmp_path) -> None:
        path, lang = quiet_extractor.select_candidate([tmp_path / "vid.de.vtt", tmp_path / "vid.fr.vtt"])
        assert path.name == "vid.de.vtt"
        assert lang is None

    def test_no_candidates(self, quiet_extractor) -> None:
        assert quiet_extractor.select_candidate([]) is None

    def test_find_candidates_filters_and_sorts(self, quiet_extractor, tmp_path) -> None:
        for name in ["vid.fr.vtt", "vid.de.srt", "other.en.vtt", "vid.info.json", "vid.en.vtt.part"]:
            (tmp_path / name).write_text("x")
        found = quiet_extractor.find_candidates(tmp_path, "vid")
        assert [p.name for p in found] == ["vid.de.srt", "vid.fr.vtt"]


class TestExtractTranscript:

    def test_success_prefers_primary_language(self, quiet_extractor, monkeypatch) -> None:
        fake = FakeRun(files={
            "abc123.en.vtt": "WEBVTT\n\n00:00:00.000 --> 00:00:01.000\nenglish\n",
            "abc123.ko.vtt": "WEBVTT\n\n00:00:00.000 --> 00:00:01.000\n안녕하세요\n",
        })
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        result = quiet_extractor.extract_transcript("abc123")

        assert result.ok
        assert result.text == "안녕하세요"
        assert result.language == "ko"
        assert result.error is None
        assert not os.path.exists(fake.calls[0]["cwd"])

    def test_command_line(self, quiet_extractor, monkeypatch) -> None:
        fake = FakeRun(files={"abc123.en.srt": SRT_SAMPLE})
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        quiet_extractor.extract_transcript("abc123")

        call = fake.calls[0]
        cmd = call["cmd"]
        assert cmd[0] == "yt-dlp"
        assert cmd[-1] == "https://www.youtube.com/watch?v=abc123"
        assert "--skip-download" in cmd
        assert "--write-auto-subs" in cmd and "--write-subs" in cmd
        assert cmd[cmd.index("--sub-langs") + 1] == "ko,en"
        assert cmd[cmd.index("--output") + 1] == "%(id)s.%(ext)s"
        assert call["timeout"] == quiet_extractor.timeout
        assert os.path.basename(call["cwd"]).startswith("yt-dlp-")

    def test_each_call_gets_its_own_scratch_dir(self, quiet_extractor, monkeypatch) -> None:
        fake = FakeRun(files={"abc123.en.srt": SRT_SAMPLE})
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        quiet_extractor.extract_transcript("abc123")
        quiet_extractor.extract_transcript("abc123")

        assert fake.calls[0]["cwd"] != fake.calls[1]["cwd"]

    def test_no_candidates(self, quiet_extractor, monkeypatch) -> None:
        fake = FakeRun(files={"somethingelse.en.vtt": SRT_SAMPLE})
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        result = quiet_extractor.extract_transcript("abc123")

        assert not result.ok
        assert result.text is None
        assert result.error.kind is FailureKind.NO_SUBTITLES
        assert result.error.message == "No subtitles are available for this video."
        assert not os.path.exists(fake.calls[0]["cwd"])

    def test_tool_failure_is_classified(self, quiet_extractor, monkeypatch) -> None:
        fake = FakeRun(returncode=1, stderr="ERROR: [youtube] abc123: Private video")
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        result = quiet_extractor.extract_transcript("abc123")

        assert result.error.kind is FailureKind.PRIVATE_VIDEO
        assert "Private video" in result.error.detail
        assert not os.path.exists(fake.calls[0]["cwd"])

    def test_tool_failure_with_usable_file(self, quiet_extractor, monkeypatch) -> None:
        fake = FakeRun(files={"abc123.en.srt": SRT_SAMPLE}, returncode=1, stderr="ERROR: 429 for ko")
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        result = quiet_extractor.extract_transcript("abc123")

        assert result.ok
        assert result.language == "en"

    def test_empty_caption_file(self, quiet_extractor, monkeypatch) -> None:
        fake = FakeRun(files={"abc123.ko.vtt": "WEBVTT\n\n   \n"})
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        result = quiet_extractor.extract_transcript("abc123")

        assert result.error.kind is FailureKind.READ_FAILED
        assert not os.path.exists(fake.calls[0]["cwd"])

    def test_timeout(self, quiet_extractor, monkeypatch) -> None:
        fake = FakeRun(exc=subprocess.TimeoutExpired(cmd="yt-dlp", timeout=30))
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        result = quiet_extractor.extract_transcript("abc123")

        assert result.error.kind is FailureKind.TIMEOUT
        assert not os.path.exists(fake.calls[0]["cwd"])

    def test_tool_missing(self, tmp_path) -> None:
        missing = TranscriptExtractor(binary=str(tmp_path / "no-such-yt-dlp"), quiet=True)

        result = missing.extract_transcript("abc123")

        assert result.error.kind is FailureKind.TOOL_MISSING
        assert result.error.kind is not FailureKind.EXTRACTION_FAILED
        assert "not installed" in result.error.message

    def test_non_executable_binary(self, tmp_path) -> None:
        binary = tmp_path / "yt-dlp"
        binary.write_text("not a program")
        binary.chmod(0o644)
        broken = TranscriptExtractor(binary=str(binary), quiet=True)

        result = broken.extract_transcript("abc123")

        assert not result.ok
        assert result.error.kind is FailureKind.EXTRACTION_FAILED

    def test_os_error_from_run(self, quiet_extractor, monkeypatch) -> None:
        fake = FakeRun(exc=PermissionError(13, "Permission denied"))
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        result = quiet_extractor.extract_transcript("abc123")

        assert result.error.kind is FailureKind.EXTRACTION_FAILED
        assert "Permission denied" in result.error.detail
        assert not os.path.exists(fake.calls[0]["cwd"])

    def test_blank_video_id(self, quiet_extractor) -> None:
        result = quiet_extractor.extract_transcript("  ")
        assert not result.ok
        assert result.error.kind is FailureKind.EXTRACTION_FAILED

    def test_requires_a_language(self) -> None:
        with pytest.raises(ValueError):
            TranscriptExtractor(languages=())


class TestCli:

    def test_resolve_video_id(self) -> None:
        assert resolve_video_id("dQw4w9WgXcQ") == "dQw4w9WgXcQ"
        assert resolve_video_id("https://youtu.be/dQw4w9WgXcQ") == "dQw4w9WgXcQ"
        assert resolve_video_id("https://www.youtube.com/@handle") is None

    def test_json_output(self, monkeypatch, capsys) -> None:
        fake = FakeRun(files={"dQw4w9WgXcQ.en.srt": SRT_SAMPLE})
        monkeypatch.setattr(extractor.subprocess, "run", fake)

        code = extractor.main(["youtu.be/dQw4w9WgXcQ", "--lang", "en", "--json", "-q"])

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["video_id"] == "dQw4w9WgXcQ"
        assert output["transcript"] == "Hello there\nGeneral Kenobi"
        assert output["error"] is None
        assert fake.calls[0]["cmd"][fake.calls[0]["cmd"].index("--sub-langs") + 1] == "en"

    def test_failure_exit_code(self, monkeypatch, capsys) -> None:
        monkeypatch.setattr(extractor.subprocess, "run", FakeRun())

        code = extractor.main(["dQw4w9WgXcQ", "-q"])

        assert code == 1
        assert "No subtitles" in capsys.readouterr().err

    def test_invalid_url(self, capsys) -> None:
        assert extractor.main(["https://example.com/watch?v=1", "-q"]) == 1
        assert "Invalid or unsupported URL" in capsys.readouterr().err
