"""Tests for the clip pipeline state machine and process_video().

WHY: The pipeline owns every skip / degrade / abort decision. A wrong
decision either loses clips that could have been made, counts failures as
successes, or leaves temp files in the user's output folder.

HOW:
  - TestQuota: ranking order, the ten-clip quota, gap-free numbering
  - TestSkips: short windows, download and crop failures
  - TestCaptions: captions off, captions on, every degrade path
  - TestProcessVideo: the async entry point with a fake client

RULES:
- All external tools are replaced with FakeToolchain
- Output goes to tmp_path; tests assert on the files actually left there
"""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from conftest import SRT_SPLIT_UTF8, WHISPER_JSON_SPLIT_UTF8, FakeToolchain, make_segments

from heatmap_clipper.core.models import HighlightSegment, SubtitleBackend
from heatmap_clipper.errors import InvalidSourceError, NoHighlightsFound, ToolError
from heatmap_clipper.options import ProcessOptions, SubtitleConfig
from heatmap_clipper.pipeline import ClipPipeline, ClipState, process_video
from heatmap_clipper.tools import ffmpeg, whisper, ytdlp
from heatmap_clipper.tools.toolchain import Toolchain


def _options(tmp_path, subtitle=False, backend=None, **kwargs) -> ProcessOptions:
    return ProcessOptions(
        output_dir=tmp_path,
        subtitle=SubtitleConfig(enabled=subtitle, backend=backend),
        **kwargs,
    )


def _files(tmp_path) -> List[str]:
    return sorted(p.name for p in tmp_path.iterdir())


class FakeClient:
    """Async stand-in for HeatmapClient."""

    def __init__(self, segments):
        self.segments = segments
        self.requested: List[str] = []

    async def fetch_segments(self, video_id):
        self.requested.append(video_id)
        return list(self.segments)


# ---------------------------------------------------------------------------
# Quota and numbering
# ---------------------------------------------------------------------------


class TestQuota:
    def test_twelve_candidates_two_rejected(self, tmp_path):
        tools = FakeToolchain()
        segments = make_segments(12)
        # Window start is segment start minus padding.
        tools.fail_downloads = {segments[1].start_s - 10.0, segments[5].start_s - 10.0}

        report = ClipPipeline(tools, _options(tmp_path)).run("vid", segments, 3600)

        assert report.candidates_considered == 12
        assert report.success_count == 10
        assert report.files == ["clip_{}.mp4".format(n) for n in range(1, 11)]
        skipped = [r for r in report.results if r.state is ClipState.SKIPPED]
        assert [r.segment for r in skipped] == [segments[1], segments[5]]
        assert all("download failed" in r.note for r in skipped)

    def test_stops_at_quota(self, tmp_path):
        tools = FakeToolchain()
        report = ClipPipeline(tools, _options(tmp_path)).run("vid", make_segments(15), 3600)

        assert report.success_count == 10
        assert report.candidates_considered == 10
        assert tools.count("download") == 10

    def test_custom_quota(self, tmp_path):
        tools = FakeToolchain()
        report = ClipPipeline(tools, _options(tmp_path, max_clips=3)).run(
            "vid", make_segments(5), 3600
        )
        assert report.files == ["clip_1.mp4", "clip_2.mp4", "clip_3.mp4"]

    def test_processed_in_rank_order(self, tmp_path):
        tools = FakeToolchain()
        segments = make_segments(3)
        ClipPipeline(tools, _options(tmp_path)).run("vid", segments, 3600)
        downloads = [c[1] for c in tools.calls if c[0] == "download"]
        assert downloads == [s.start_s - 10.0 for s in segments]

    def test_fewer_candidates_than_quota(self, tmp_path):
        report = ClipPipeline(FakeToolchain(), _options(tmp_path)).run(
            "vid", make_segments(4), 3600
        )
        assert report.success_count == 4
        assert _files(tmp_path) == ["clip_1.mp4", "clip_2.mp4", "clip_3.mp4", "clip_4.mp4"]


# ---------------------------------------------------------------------------
# Candidate skips
# ---------------------------------------------------------------------------


class TestSkips:
    def test_short_window_skipped_without_tools(self, tmp_path):
        tools = FakeToolchain()
        segments = [
            HighlightSegment(start_s=150.0, duration_s=5.0, score=0.9),
            HighlightSegment(start_s=50.0, duration_s=5.0, score=0.8),
        ]
        report = ClipPipeline(tools, _options(tmp_path)).run("vid", segments, 100)

        first, second = report.results
        assert first.state is ClipState.SKIPPED
        assert first.history == [ClipState.SKIPPED]
        assert "shorter than" in first.note
        assert second.file == "clip_1.mp4"
        assert tools.count("download") == 1

    def test_crop_failure_skips_and_cleans_up(self, tmp_path):
        tools = FakeToolchain()
        tools.fail_crops = {1}
        report = ClipPipeline(tools, _options(tmp_path)).run("vid", make_segments(2), 3600)

        first, second = report.results
        assert first.state is ClipState.SKIPPED
        assert first.history == [ClipState.WINDOWED, ClipState.DOWNLOADED, ClipState.SKIPPED]
        assert "crop failed" in first.note
        # The retry reuses index 1, so numbering has no gap.
        assert second.index == 1
        assert second.file == "clip_1.mp4"
        assert _files(tmp_path) == ["clip_1.mp4"]

    def test_all_candidates_fail(self, tmp_path):
        tools = FakeToolchain()
        segments = make_segments(3)
        tools.fail_downloads = {s.start_s - 10.0 for s in segments}
        report = ClipPipeline(tools, _options(tmp_path)).run("vid", segments, 3600)

        assert report.success_count == 0
        assert report.candidates_considered == 3
        assert _files(tmp_path) == []


# ---------------------------------------------------------------------------
# Captions
# ---------------------------------------------------------------------------


class TestCaptions:
    def test_captions_disabled(self, tmp_path):
        tools = FakeToolchain()
        report = ClipPipeline(tools, _options(tmp_path)).run("vid", make_segments(1), 3600)

        result = report.results[0]
        assert result.history == [
            ClipState.WINDOWED, ClipState.DOWNLOADED, ClipState.CROPPED, ClipState.FINALIZED,
        ]
        assert result.captioned is False
        assert tools.count("burn") == 0
        assert (tmp_path / "clip_1.mp4").read_bytes() == b"cropped"

    def test_word_level_captions_burned(self, tmp_path, whisper_json_centiseconds):
        tools = FakeToolchain(
            recognition=SubtitleBackend.WORD_LEVEL, words_json=whisper_json_centiseconds,
        )
        options = _options(tmp_path, subtitle=True, backend=SubtitleBackend.WORD_LEVEL)
        report = ClipPipeline(tools, options).run("vid", make_segments(2), 3600)

        for result in report.results:
            assert result.state is ClipState.FINALIZED
            assert ClipState.CAPTIONED in result.history
            assert result.captioned is True
        assert "Word Highlight Subtitles" in tools.burned_scripts[0]
        assert _files(tmp_path) == ["clip_1.mp4", "clip_2.mp4"]
        assert (tmp_path / "clip_1.mp4").read_bytes() == b"captioned"

    def test_recognition_unavailable(self, tmp_path):
        tools = FakeToolchain(recognition=None)
        tools.fail_crops = {2}
        options = _options(tmp_path, subtitle=True, backend=None)
        report = ClipPipeline(tools, options).run("vid", make_segments(4), 3600)

        crop_successes = tools.count("crop") - len(tools.fail_crops)
        assert report.success_count == crop_successes == 3
        for result in report.clips:
            assert result.state is ClipState.FINALIZED_WITHOUT_CAPTION
            assert ClipState.CAPTION_FAILED in result.history
            assert result.captioned is False
            assert (tmp_path / result.file).read_bytes() == b"cropped"
        assert tools.count("burn") == 0

    def test_burn_failure_keeps_uncaptioned_clip(self, tmp_path, whisper_json_centiseconds):
        tools = FakeToolchain(
            recognition=SubtitleBackend.WORD_LEVEL, words_json=whisper_json_centiseconds,
        )
        tools.fail_burn = True
        options = _options(tmp_path, subtitle=True, backend=SubtitleBackend.WORD_LEVEL)
        report = ClipPipeline(tools, options).run("vid", make_segments(1), 3600)

        result = report.results[0]
        assert result.state is ClipState.FINALIZED_WITHOUT_CAPTION
        assert "captions skipped" in result.note
        assert (tmp_path / "clip_1.mp4").read_bytes() == b"cropped"
        assert _files(tmp_path) == ["clip_1.mp4"]

    def test_undecodable_transcripts_keep_clips(self, tmp_path):
        tools = FakeToolchain(
            recognition=SubtitleBackend.WORD_LEVEL,
            words_json=WHISPER_JSON_SPLIT_UTF8,
            srt_text=SRT_SPLIT_UTF8,
        )
        options = _options(tmp_path, subtitle=True, backend=SubtitleBackend.WORD_LEVEL)
        report = ClipPipeline(tools, options).run("vid", make_segments(2), 3600)

        assert report.success_count == 2
        for result in report.results:
            assert result.state is ClipState.FINALIZED_WITHOUT_CAPTION
            assert "UTF-8" in result.note
        assert _files(tmp_path) == ["clip_1.mp4", "clip_2.mp4"]

    def test_model_download_failure_tried_once(self, tmp_path, monkeypatch):
        attempts = []

        def failing_download(model, models_dir=None, on_status=None):
            attempts.append(model)
            raise ToolError(["download", model.download_url], None, message="HTTP 503")

        def fake_download(video_id, window, output):
            output.write_bytes(b"downloaded")
            return output

        def fake_crop(source, output, crop, encoder):
            output.write_bytes(b"cropped")
            return output

        def fake_extract(video, audio):
            audio.write_bytes(b"RIFF")
            return audio

        monkeypatch.setattr(ytdlp, "download_segment", fake_download)
        monkeypatch.setattr(ffmpeg, "crop_video", fake_crop)
        monkeypatch.setattr(ffmpeg, "extract_audio", fake_extract)
        monkeypatch.setattr(whisper, "ensure_model", failing_download)

        tools = Toolchain(whisper_binary="whisper-cli", models_dir=tmp_path / "models")
        options = _options(tmp_path, subtitle=True, backend=SubtitleBackend.WORD_LEVEL)
        report = ClipPipeline(tools, options).run("vid", make_segments(10), 3600)

        assert report.success_count == 10
        assert {r.state for r in report.results} == {ClipState.FINALIZED_WITHOUT_CAPTION}
        assert len(attempts) == 1

    def test_no_temp_files_left(self, tmp_path):
        tools = FakeToolchain(recognition=SubtitleBackend.WORD_LEVEL, words_json=None)
        tools.fail_crops = {1}
        options = _options(tmp_path, subtitle=True, backend=SubtitleBackend.WORD_LEVEL)
        ClipPipeline(tools, options).run("vid", make_segments(3), 3600)

        assert not [name for name in _files(tmp_path) if name.startswith("temp_")]

    def test_result_to_dict(self, tmp_path):
        report = ClipPipeline(FakeToolchain(), _options(tmp_path)).run(
            "vid", make_segments(1), 3600
        )
        data = report.results[0].to_dict()
        assert data == {
            "index": 1,
            "file": "clip_1.mp4",
            "state": "finalized",
            "captioned": False,
            "note": "",
            "score": pytest.approx(0.99),
            "start_s": 90.0,
            "end_s": 115.0,
        }


# ---------------------------------------------------------------------------
# process_video
# ---------------------------------------------------------------------------


class TestProcessVideo:
    def test_end_to_end_with_fakes(self, tmp_path):
        out = tmp_path / "clips" / "run1"
        tools = FakeToolchain()
        client = FakeClient(make_segments(3))

        report = asyncio.run(process_video(
            "https://youtu.be/abc123", _options(out), toolchain=tools, client=client,
        ))

        assert client.requested == ["abc123"]
        assert ("get_duration", "abc123") in tools.calls
        assert report.video_id == "abc123"
        assert report.files == ["clip_1.mp4", "clip_2.mp4", "clip_3.mp4"]
        assert (out / "clip_1.mp4").exists()

    def test_invalid_url(self, tmp_path):
        with pytest.raises(InvalidSourceError):
            asyncio.run(process_video(
                "https://example.com/video", _options(tmp_path),
                toolchain=FakeToolchain(), client=FakeClient([]),
            ))

    def test_no_highlights(self, tmp_path):
        tools = FakeToolchain()
        with pytest.raises(NoHighlightsFound):
            asyncio.run(process_video(
                "https://youtu.be/abc123", _options(tmp_path),
                toolchain=tools, client=FakeClient([]),
            ))
        assert tools.calls == []

    def test_resolves_backend_and_reports_effective_config(self, tmp_path):
        tools = FakeToolchain(recognition=SubtitleBackend.SEGMENT_LEVEL)
        options = _options(tmp_path, subtitle=True, hw_accel=True)

        report = asyncio.run(process_video(
            "https://www.youtube.com/watch?v=abc123", options,
            toolchain=tools, client=FakeClient(make_segments(1)),
        ))

        config = report.options.to_dict()
        assert config["backend"] == "faster-whisper"
        # The fake only offers software encoding.
        assert config["hw_accel"] is False
        assert report.results[0].captioned is True

    def test_status_messages(self, tmp_path):
        messages: List[str] = []
        asyncio.run(process_video(
            "https://youtu.be/abc123", _options(tmp_path),
            toolchain=FakeToolchain(), client=FakeClient(make_segments(1)),
            on_status=messages.append,
        ))
        assert messages[0] == "Fetching heatmap for abc123"
        assert any(m.startswith("Processing clip 1") for m in messages)
