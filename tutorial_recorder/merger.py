"""
Mux recorded narration chunks into a Playwright video with ffmpeg.

Each chunk is delayed to its recorded offset with ``adelay`` and mixed with
``amix`` (no normalization, so chunks keep their relative loudness). When the
video duration is known, a silent ``anullsrc`` bed spanning the whole video is
mixed in so the audio stream lasts as long as the picture. The video stream is
copied untouched; audio is encoded to Opus for WebM.
"""

import math
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from .errors import MergeError
from .ledger import AudioChunk
from .util import log

SILENCE_SOURCE = "anullsrc=r=48000:cl=stereo"
AUDIO_CODEC = "libopus"


def run_cmd(
    cmd: list[str], description: str, timeout: float
) -> subprocess.CompletedProcess[str]:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as exc:
        raise MergeError(f"{description} failed: missing binary {cmd[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise MergeError(f"{description} timed out after {timeout:.0f}s") from exc
    if result.returncode != 0:
        tail = (result.stderr or result.stdout)[-1200:]
        raise MergeError(f"{description} failed: {tail}")
    return result


def probe_duration(
    path: Path, ffprobe_bin: str = "ffprobe", timeout: float = 10.0
) -> Optional[float]:
    """Duration of ``path`` in seconds, or None when ffprobe reports no usable value.

    A failing ffprobe (missing binary, non-zero exit, timeout) raises MergeError.
    """
    cmd = [
        ffprobe_bin,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "csv=p=0",
        str(path),
    ]
    result = run_cmd(cmd, f"ffprobe duration for {Path(path).name}", timeout)
    try:
        duration = float(result.stdout.strip())
    except ValueError as exc:
        log(f"video duration unknown: {exc}", "merge")
        return None
    if not math.isfinite(duration) or duration <= 0:
        log(f"video duration unknown: {duration}", "merge")
        return None
    return duration


def build_filter_graph(offsets: Sequence[int], has_silence: bool) -> str:
    # Input 0 is the video, input 1 the optional silence bed, chunks follow.
    first_chunk = 2 if has_silence else 1
    filters: list[str] = []
    for index, delay in enumerate(offsets):
        filters.append(f"[{index + first_chunk}:a]adelay={delay}|{delay}[a{index}]")
    mix_inputs = "".join(f"[a{index}]" for index in range(len(offsets)))
    if has_silence:
        filters.append(
            f"[1:a]{mix_inputs}amix=inputs={len(offsets) + 1}:normalize=0[aout]"
        )
    else:
        filters.append(f"{mix_inputs}amix=inputs={len(offsets)}:normalize=0[aout]")
    return ";".join(filters)


def build_merge_command(
    video_path: Path,
    chunk_paths: Sequence[Path],
    offsets: Sequence[int],
    output_path: Path,
    duration: Optional[float],
    ffmpeg_bin: str = "ffmpeg",
) -> list[str]:
    cmd = [ffmpeg_bin, "-y", "-i", str(video_path)]
    has_silence = duration is not None
    if has_silence:
        cmd.extend(["-f", "lavfi", "-t", str(duration), "-i", SILENCE_SOURCE])
    for chunk_path in chunk_paths:
        cmd.extend(["-i", str(chunk_path)])
    cmd.extend(
        [
            "-filter_complex",
            build_filter_graph(offsets, has_silence),
            "-map",
            "0:v",
            "-map",
            "[aout]",
            "-c:v",
            "copy",
            "-c:a",
            AUDIO_CODEC,
            str(output_path),
        ]
    )
    return cmd


def merge_audio_with_video(
    video_path: Path,
    chunks: Sequence[AudioChunk],
    output_path: Path,
    *,
    ffmpeg_bin: str = "ffmpeg",
    ffprobe_bin: str = "ffprobe",
    probe_timeout: float = 10.0,
    encode_timeout: float = 60.0,
) -> Optional[Path]:
    """Write ``output_path`` with the narration chunks mixed in.

    Returns None without doing anything when there are no chunks. Raises
    MergeError when ffprobe or ffmpeg fails to run.
    """
    if not chunks:
        return None

    video_path = Path(video_path)
    output_path = Path(output_path)
    duration = probe_duration(video_path, ffprobe_bin, probe_timeout)

    with tempfile.TemporaryDirectory(prefix="tutorial-audio-") as tmp:
        tmp_dir = Path(tmp)
        chunk_paths: list[Path] = []
        for index, chunk in enumerate(chunks):
            chunk_path = tmp_dir / f"chunk-{index}.mp3"
            chunk_path.write_bytes(chunk.buffer)
            chunk_paths.append(chunk_path)

        cmd = build_merge_command(
            video_path,
            chunk_paths,
            [chunk.offset_ms for chunk in chunks],
            output_path,
            duration,
            ffmpeg_bin=ffmpeg_bin,
        )
        log(
            f"mixing {len(chunks)} narration chunk(s) into {video_path.name} "
            f"(duration={'unknown' if duration is None else f'{duration:.2f}s'})",
            "merge",
        )
        run_cmd(cmd, f"Merge narration into {video_path.name}", encode_timeout)

    return output_path
