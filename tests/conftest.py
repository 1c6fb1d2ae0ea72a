import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from tutorial_recorder.config import TutorialConfig
from tutorial_recorder.narration import NarrationBackend


class FakeClock:
    def __init__(self, start: int = 0) -> None:
        self.value = start

    def now_ms(self) -> int:
        return self.value

    def advance(self, ms: int) -> None:
        self.value += ms


class FakeHandle:
    def __init__(self, page: "FakePage", index: int) -> None:
        self.page = page
        self.index = index
        self.destroyed = False
        self.disposed = False

    async def evaluate(self, script: str, arg: Any = None) -> None:
        self.destroyed = True
        self.page.events.append(("destroy", self.index))

    async def dispose(self) -> None:
        self.disposed = True


class FakeFrame:
    pass


class FakePage:
    """Stand-in for playwright.async_api.Page recording every call."""

    def __init__(self, evaluate_result: Any = None) -> None:
        self.main_frame = FakeFrame()
        self.listeners: dict[str, list] = {}
        self.events: list[tuple] = []
        self.evaluations: list[tuple[str, Any]] = []
        self.handles: list[FakeHandle] = []
        self.evaluate_result = evaluate_result
        self.video: Any = None
        self.closed = False

    def on(self, event: str, callback) -> None:
        self.listeners.setdefault(event, []).append(callback)

    def emit(self, event: str, *args: Any) -> None:
        for callback in self.listeners.get(event, []):
            callback(*args)

    async def add_style_tag(self, url: Optional[str] = None, content: Optional[str] = None) -> None:
        self.events.append(("style", url or content))

    async def add_script_tag(self, url: Optional[str] = None, content: Optional[str] = None) -> None:
        self.events.append(("script", url or content))

    async def wait_for_function(self, expression: str) -> None:
        self.events.append(("driver-ready",))

    async def wait_for_selector(self, selector: str, state: str = "visible") -> Any:
        self.events.append(("resolve", selector))
        return {"element": selector}

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluations.append((script, arg))
        self.events.append(("evaluate",))
        return self.evaluate_result

    async def evaluate_handle(self, script: str, arg: Any = None) -> FakeHandle:
        handle = FakeHandle(self, len(self.handles))
        self.handles.append(handle)
        self.events.append(("create", handle.index, arg))
        return handle

    async def wait_for_timeout(self, timeout: float) -> None:
        await asyncio.sleep(timeout / 1000)
        self.events.append(("timer", timeout))

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.events.append(("goto", url))

    async def close(self) -> None:
        self.closed = True

    def event_names(self) -> list[str]:
        return [event[0] for event in self.events]


class RecordingBackend(NarrationBackend):
    """Backend that takes ``duration_ms`` to speak and records each call."""

    name = "recording"

    def __init__(self, config: TutorialConfig, duration_ms: int = 0) -> None:
        super().__init__(config)
        self.duration_ms = duration_ms
        self.calls: list[tuple[str, Any, Optional[int]]] = []

    async def speak(self, page, text, options=None, *, start_ms=None):
        self.calls.append((text, options, start_ms))
        await asyncio.sleep(self.duration_ms / 1000)
        page.events.append(("narration-done", text))
        return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def active_config() -> TutorialConfig:
    return TutorialConfig(active=True, highlight_timeout_ms=20)


@pytest.fixture
def edge_config() -> TutorialConfig:
    return TutorialConfig(active=True, tts="edge-tts", highlight_timeout_ms=20)
