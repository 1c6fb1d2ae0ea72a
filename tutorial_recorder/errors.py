class TutorialError(Exception):
    """Base class for tutorial recording failures."""

    pass


class ConfigError(TutorialError):
    pass


class ResolutionError(TutorialError):
    """Raised when a highlight target never becomes visible."""

    pass


class OverlayLoadError(TutorialError):
    """Raised when driver.js cannot be loaded into the page."""

    pass


class MergeError(TutorialError):
    """Raised when ffprobe/ffmpeg fails while muxing narration into video."""

    pass


class SpecError(TutorialError):
    pass
