"""Highlight and narrate Playwright sessions, then mux the narration into the video."""

from .config import TTS_EDGE, TTS_LOCAL, TutorialConfig
from .errors import (
    ConfigError,
    MergeError,
    OverlayLoadError,
    ResolutionError,
    SpecError,
    TutorialError,
)
from .ledger import AudioChunk, AudioLedger
from .merger import merge_audio_with_video, probe_duration
from .narration import (
    EdgeTTSBackend,
    LocalSpeechBackend,
    NarrationBackend,
    SpeechOptions,
    create_backend,
)
from .session import TutorialRecording, tutorial_session
from .tutorial import Tutorial

__all__ = [
    "AudioChunk",
    "AudioLedger",
    "ConfigError",
    "EdgeTTSBackend",
    "LocalSpeechBackend",
    "MergeError",
    "NarrationBackend",
    "OverlayLoadError",
    "ResolutionError",
    "SpecError",
    "SpeechOptions",
    "TTS_EDGE",
    "TTS_LOCAL",
    "Tutorial",
    "TutorialConfig",
    "TutorialError",
    "TutorialRecording",
    "create_backend",
    "merge_audio_with_video",
    "probe_duration",
    "tutorial_session",
]
