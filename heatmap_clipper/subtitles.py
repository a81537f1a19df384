"""Caption stage: recognize speech in a clip and write its ASS script.

WHY: Recognition is the least reliable step of a run. whisper.cpp builds
differ in their JSON, models may be missing, and some clips have no speech
at all. The stage tries the richest output first and steps down instead of
giving up:

  WORD_LEVEL     audio → whisper.cpp full JSON → words? → word highlight
                                       │ no words / tool failed / unreadable
                                       └→ whisper.cpp SRT → segment captions
  SEGMENT_LEVEL  clip → faster-whisper SRT → segment captions
  None           CaptionError (no engine installed)

HOW: CaptionStage.generate() matches the backend exhaustively, writes the
script next to the clip, and deletes its intermediate artifacts (wav, json,
srt) on every exit path. Failures it cannot step down from are raised as
CaptionError / ToolError; the pipeline turns those into an uncaptioned clip.

RULES:
- Zero recognized segments at the last tier → CaptionError("no speech recognized")
- An artifact that is not valid UTF-8 is unreadable: the JSON tier steps
  down, the SRT tier raises CaptionError
- A missing whisper.cpp model is a CaptionError and skips the SRT tier,
  which would need the same model
- Intermediate artifacts share the script's stem: temp_<n>.wav / .json / .srt
- The script is only written when it has at least one event
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from heatmap_clipper.core.models import SubtitleBackend, TimedWord
from heatmap_clipper.core.transcript import parse_srt, parse_whisper_json
from heatmap_clipper.errors import CaptionError, ToolError, TranscriptUnreadable
from heatmap_clipper.formatters import FORMATTERS
from heatmap_clipper.options import SubtitleConfig
from heatmap_clipper.tools.toolchain import Toolchain

logger = logging.getLogger(__name__)


@dataclass
class CaptionScript:
    """A written ASS script and the formatter that produced it."""

    path: Path
    style: str


def _read_artifact(path: Path) -> str:
    """Decode a recognizer artifact as UTF-8.

    whisper.cpp splits tokens on byte boundaries, so a multibyte character
    can be cut in half inside its JSON.

    Raises:
        TranscriptUnreadable: The file is not valid UTF-8.
    """
    try:
        return path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise TranscriptUnreadable(
            "{} is not valid UTF-8 (byte {})".format(path.name, exc.start)
        ) from exc


class CaptionStage:
    """Turns a cropped clip into a caption script for burn-in."""

    def __init__(self, toolchain: Toolchain, config: SubtitleConfig) -> None:
        self.toolchain = toolchain
        self.config = config

    def generate(self, video: Path, script: Path) -> CaptionScript:
        """Recognize speech in ``video`` and write the ASS script to ``script``.

        Raises:
            CaptionError: No engine, no speech, or a stage that cannot step down.
            ToolError: An external tool failed at the last tier.
        """
        backend = self.config.backend
        base = Path(script).with_suffix("")
        artifacts = [base.with_suffix(s) for s in (".wav", ".json", ".srt")]
        try:
            if backend is None:
                raise CaptionError("no speech recognition backend available")
            if backend is SubtitleBackend.WORD_LEVEL:
                return self._word_level(Path(video), Path(script), base)
            if backend is SubtitleBackend.SEGMENT_LEVEL:
                return self._segment_level(Path(video), Path(script), base)
            raise CaptionError("unsupported recognition backend: {!r}".format(backend))
        finally:
            for artifact in artifacts:
                artifact.unlink(missing_ok=True)

    def _word_level(self, video: Path, script: Path, base: Path) -> CaptionScript:
        audio = self.toolchain.extract_audio(video, base.with_suffix(".wav"))

        words: List[TimedWord] = []
        try:
            transcript = self.toolchain.transcribe_words(
                audio, base, self.config.model, self.config.language
            )
            words = parse_whisper_json(_read_artifact(transcript))
        except (ToolError, TranscriptUnreadable) as exc:
            logger.warning("Word-level transcription failed, trying SRT: %s", exc)

        if words:
            return self._write(script, "word_highlight", words)

        logger.info("No word timings for %s, falling back to segment captions", video.name)
        srt = self.toolchain.transcribe_srt(audio, base, self.config.model, self.config.language)
        return self._render_srt(script, srt)

    def _segment_level(self, video: Path, script: Path, base: Path) -> CaptionScript:
        srt = self.toolchain.transcribe_segments(
            video, base.with_suffix(".srt"), self.config.model, self.config.language
        )
        return self._render_srt(script, srt)

    def _render_srt(self, script: Path, srt: Path) -> CaptionScript:
        try:
            text = _read_artifact(srt)
        except TranscriptUnreadable as exc:
            raise CaptionError(str(exc)) from exc
        segments = parse_srt(text)
        if not segments:
            raise CaptionError("no speech recognized")
        return self._write(script, "segment_captions", segments)

    def _write(self, script: Path, key: str, source) -> CaptionScript:  # noqa: ANN001
        formatter = FORMATTERS[key]()
        output = formatter.format(source)[0]
        script.write_text(output.content, encoding="utf-8")
        return CaptionScript(path=script, style=formatter.name)
