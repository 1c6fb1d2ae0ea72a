from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError

from .config import TutorialConfig
from .errors import MergeError
from .merger import merge_audio_with_video
from .tutorial import Tutorial
from .util import Clock, log

COMPLETE_VIDEO_NAME = "video-complete.webm"
NARRATED_VIDEO_NAME = "video-narrated.webm"


@dataclass
class TutorialRecording:
    tutorial: Tutorial
    output_dir: Path
    video_path: Optional[Path] = None
    narrated_path: Optional[Path] = None

    @property
    def artifact(self) -> Optional[Path]:
        """The narrated video if the merge succeeded, else the raw recording."""
        return self.narrated_path or self.video_path


async def finalize_recording(page: Any, recording: TutorialRecording) -> None:
    tutorial = recording.tutorial
    if not tutorial.active:
        return
    video = page.video
    if video is None:
        log("page is not recording video, nothing to merge", "session")
        return

    output_dir = recording.output_dir
    video_path = output_dir / COMPLETE_VIDEO_NAME
    try:
        # Closing the page stops the recorder; save_as waits for the flush.
        await page.close()
        await video.save_as(str(video_path))
    except PlaywrightError as exc:
        log(f"could not save recorded video: {exc}", "session")
        return
    recording.video_path = video_path

    chunks = tutorial.get_audio_chunks()
    if not tutorial.config.uses_edge_tts or not chunks:
        return

    config = tutorial.config
    try:
        recording.narrated_path = merge_audio_with_video(
            video_path,
            chunks,
            output_dir / NARRATED_VIDEO_NAME,
            ffmpeg_bin=config.ffmpeg_bin,
            ffprobe_bin=config.ffprobe_bin,
            probe_timeout=config.probe_timeout_s,
            encode_timeout=config.encode_timeout_s,
        )
    except MergeError as exc:
        log(f"failed to merge audio into video, keeping {video_path.name}: {exc}", "session")
        return
    log(f"narrated video: {recording.narrated_path}", "session")


@asynccontextmanager
async def tutorial_session(
    page: Any,
    config: Optional[TutorialConfig] = None,
    output_dir: Optional[Path] = None,
    *,
    clock: Optional[Clock] = None,
) -> AsyncIterator[TutorialRecording]:
    """Run a tutorial on ``page`` and mux its narration into the video on exit.

    The page is closed on exit when the tutorial is active and recording.
    Merge failures are logged and leave the raw video as the artifact.
    """
    config = config or TutorialConfig.from_env()
    tutorial = Tutorial(page, config, clock=clock)
    tutorial.set_start_time()
    recording = TutorialRecording(
        tutorial=tutorial, output_dir=Path(output_dir or Path.cwd() / "tutorial-output")
    )
    if tutorial.active:
        recording.output_dir.mkdir(parents=True, exist_ok=True)
    try:
        yield recording
    finally:
        await finalize_recording(page, recording)
