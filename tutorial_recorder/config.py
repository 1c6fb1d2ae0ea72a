import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError

TTS_LOCAL = "local"
TTS_EDGE = "edge-tts"
TTS_BACKENDS = (TTS_LOCAL, TTS_EDGE)

DEFAULT_HIGHLIGHT_TIMEOUT_MS = 3000
DEFAULT_SPEECH_TIMEOUT_MS = 30000
DEFAULT_VOICE_WAIT_MS = 3000
DEFAULT_EDGE_VOICE = "en-US-AriaNeural"

TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class TutorialConfig:
    """Settings for one tutorial session. Fixed once the session is built."""

    active: bool = False
    tts: str = TTS_LOCAL
    highlight_timeout_ms: int = DEFAULT_HIGHLIGHT_TIMEOUT_MS
    speech_timeout_ms: int = DEFAULT_SPEECH_TIMEOUT_MS
    voice_wait_ms: int = DEFAULT_VOICE_WAIT_MS
    voice: str = DEFAULT_EDGE_VOICE
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"
    probe_timeout_s: float = 10.0
    encode_timeout_s: float = 60.0

    # When set, driver.js is downloaded once into this directory and injected
    # inline instead of through CDN <script>/<link> tags.
    asset_cache_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.tts not in TTS_BACKENDS:
            raise ConfigError(
                f"Unknown TTS backend '{self.tts}' (expected one of {', '.join(TTS_BACKENDS)})"
            )
        for name in (
            "highlight_timeout_ms",
            "speech_timeout_ms",
            "voice_wait_ms",
            "probe_timeout_s",
            "encode_timeout_s",
        ):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be > 0")

    @property
    def uses_edge_tts(self) -> bool:
        return self.tts == TTS_EDGE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "TutorialConfig":
        env = os.environ if environ is None else environ
        values: dict = {
            "active": str(env.get("TUTORIAL", "")).strip().lower() in TRUTHY,
            "tts": str(env.get("TTS", TTS_LOCAL)).strip().lower() or TTS_LOCAL,
        }
        if env.get("TUTORIAL_HIGHLIGHT_MS"):
            try:
                values["highlight_timeout_ms"] = int(env["TUTORIAL_HIGHLIGHT_MS"])
            except ValueError as exc:
                raise ConfigError(
                    f"TUTORIAL_HIGHLIGHT_MS must be an integer: {env['TUTORIAL_HIGHLIGHT_MS']}"
                ) from exc
        if env.get("TTS_VOICE"):
            values["voice"] = env["TTS_VOICE"]
        if env.get("FFMPEG_BIN"):
            values["ffmpeg_bin"] = env["FFMPEG_BIN"]
        if env.get("FFPROBE_BIN"):
            values["ffprobe_bin"] = env["FFPROBE_BIN"]
        if env.get("TUTORIAL_ASSET_CACHE"):
            values["asset_cache_dir"] = Path(
                os.path.expanduser(env["TUTORIAL_ASSET_CACHE"])
            )

        known = {f.name for f in fields(cls)}
        for key in overrides:
            if key not in known:
                raise ConfigError(f"Unknown config field: {key}")
        values.update(overrides)
        return cls(**values)
