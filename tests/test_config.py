from pathlib import Path

import pytest

from tutorial_recorder.config import TTS_EDGE, TTS_LOCAL, TutorialConfig
from tutorial_recorder.errors import ConfigError


def test_defaults() -> None:
    config = TutorialConfig()
    assert config.active is False
    assert config.tts == TTS_LOCAL
    assert config.highlight_timeout_ms == 3000
    assert config.speech_timeout_ms == 30000
    assert config.voice_wait_ms == 3000
    assert config.asset_cache_dir is None


def test_from_env_reads_flags() -> None:
    config = TutorialConfig.from_env(
        {
            "TUTORIAL": "1",
            "TTS": "edge-tts",
            "TUTORIAL_HIGHLIGHT_MS": "1500",
            "TTS_VOICE": "en-US-GuyNeural",
            "FFMPEG_BIN": "/opt/ffmpeg",
            "TUTORIAL_ASSET_CACHE": "/tmp/driver-cache",
        }
    )
    assert config.active is True
    assert config.tts == TTS_EDGE
    assert config.uses_edge_tts
    assert config.highlight_timeout_ms == 1500
    assert config.voice == "en-US-GuyNeural"
    assert config.ffmpeg_bin == "/opt/ffmpeg"
    assert config.asset_cache_dir == Path("/tmp/driver-cache")


@pytest.mark.parametrize("value", ["", "0", "false", "no"])
def test_from_env_inactive_values(value: str) -> None:
    assert TutorialConfig.from_env({"TUTORIAL": value}).active is False


def test_from_env_overrides_win() -> None:
    config = TutorialConfig.from_env({"TUTORIAL": "0"}, active=True, tts="edge-tts")
    assert config.active is True
    assert config.tts == TTS_EDGE


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ConfigError):
        TutorialConfig.from_env({"TTS": "festival"})


def test_bad_highlight_ms_rejected() -> None:
    with pytest.raises(ConfigError):
        TutorialConfig.from_env({"TUTORIAL_HIGHLIGHT_MS": "soon"})


def test_non_positive_timeouts_rejected() -> None:
    with pytest.raises(ConfigError):
        TutorialConfig(speech_timeout_ms=0)


def test_unknown_override_rejected() -> None:
    with pytest.raises(ConfigError):
        TutorialConfig.from_env({}, narrator="x")


def test_config_is_frozen() -> None:
    config = TutorialConfig()
    with pytest.raises(AttributeError):
        config.active = True  # type: ignore[misc]
