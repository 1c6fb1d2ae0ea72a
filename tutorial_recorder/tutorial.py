import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError

from .config import TutorialConfig
from .errors import ResolutionError
from .ledger import AudioChunk, AudioLedger
from .narration import NarrationBackend, SpeechOptions, create_backend
from .overlay import OverlayAssets, Popover, create_overlay, destroy_overlay
from .util import Clock, MonotonicClock, log


class Tutorial:
    """Highlights elements and narrates steps during a Playwright session.

    When the config is inactive every call returns immediately without
    touching the page, so the same test runs unchanged with tutorials off.
    """

    def __init__(
        self,
        page: Any,
        config: Optional[TutorialConfig] = None,
        *,
        backend: Optional[NarrationBackend] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._page = page
        self._config = config or TutorialConfig()
        self._clock = clock or MonotonicClock()
        self._ledger = AudioLedger()
        self._start_ms: Optional[int] = None
        self._injected = False
        self._overlay: Any = None
        self._backend: Optional[NarrationBackend] = None
        self._assets: Optional[OverlayAssets] = None

        if self._config.active:
            self._backend = backend or create_backend(
                self._config, ledger=self._ledger, clock=self._clock
            )
            self._assets = OverlayAssets(self._config.asset_cache_dir)
            # driver.js must be re-injected after every top-level navigation.
            self._page.on("framenavigated", self._on_frame_navigated)

    @property
    def active(self) -> bool:
        return self._config.active

    @property
    def config(self) -> TutorialConfig:
        return self._config

    @property
    def start_ms(self) -> Optional[int]:
        return self._start_ms

    def _on_frame_navigated(self, frame: Any) -> None:
        if frame == self._page.main_frame:
            self._injected = False

    def set_start_time(self, t_ms: Optional[int] = None) -> None:
        """Record the instant narration offsets are measured from.

        Only the first call counts; it should match the start of the video.
        """
        if self._start_ms is not None:
            log("start time already set, ignoring", "tutorial")
            return
        self._start_ms = self._clock.now_ms() if t_ms is None else int(t_ms)

    def get_audio_chunks(self) -> tuple[AudioChunk, ...]:
        return self._ledger.snapshot()

    async def _ensure_driver_js(self) -> None:
        if self._injected:
            return
        await self._assets.inject(self._page)
        self._injected = True

    async def _resolve(self, target: Any) -> Any:
        try:
            if isinstance(target, str):
                element = await self._page.wait_for_selector(target, state="visible")
            elif hasattr(target, "element_handle"):
                await target.wait_for(state="visible")
                element = await target.element_handle()
            else:
                await target.wait_for_element_state("visible")
                element = target
        except PlaywrightError as exc:
            raise ResolutionError(f"highlight target never became visible: {target}") from exc
        if element is None:
            raise ResolutionError(f"highlight target did not resolve: {target}")
        return element

    @asynccontextmanager
    async def _overlay_scope(self, element: Any, popover: Optional[Popover]) -> AsyncIterator[Any]:
        if self._overlay is not None:
            log("previous overlay still alive, destroying it first", "tutorial")
            previous, self._overlay = self._overlay, None
            await destroy_overlay(previous)
        handle = await create_overlay(self._page, element, popover)
        self._overlay = handle
        try:
            yield handle
        finally:
            if self._overlay is handle:
                self._overlay = None
            await destroy_overlay(handle)

    async def _narrate(self, text: str, options: Optional[SpeechOptions]) -> None:
        await self._backend.speak(self._page, text, options, start_ms=self._start_ms)

    async def highlight(
        self,
        target: Any,
        *,
        title: Optional[str] = None,
        text: Optional[str] = None,
        side: Optional[str] = None,
        align: Optional[str] = None,
        timeout: Optional[int] = None,
        speech: Optional[str] = None,
        speech_options: Optional[SpeechOptions] = None,
    ) -> None:
        """
        Spotlight ``target`` for ``timeout`` ms, optionally with a popover.

        Args:
            target: CSS selector, Playwright Locator or ElementHandle
            title, text: popover content; omit both for a bare spotlight
            side, align: popover placement passed through to driver.js
            timeout: minimum display time in ms (default from config)
            speech: narration spoken while the overlay is visible; the overlay
                stays up until both the timeout and the narration finish
        """
        if not self._config.active:
            return

        await self._ensure_driver_js()
        element = await self._resolve(target)
        popover = Popover(title=title, text=text, side=side, align=align)
        duration = self._config.highlight_timeout_ms if timeout is None else timeout

        async with self._overlay_scope(element, popover):
            waits = [asyncio.ensure_future(self._page.wait_for_timeout(duration))]
            if speech:
                waits.append(asyncio.ensure_future(self._narrate(speech, speech_options)))
            try:
                await asyncio.gather(*waits)
            except BaseException:
                # No narration may outlive a failed highlight.
                for task in waits:
                    task.cancel()
                await asyncio.gather(*waits, return_exceptions=True)
                raise

    async def speak(
        self,
        text: str,
        *,
        rate: Optional[float] = None,
        pitch: Optional[float] = None,
        lang: Optional[str] = None,
        voice: Optional[str] = None,
    ) -> None:
        """Narrate without highlighting anything."""
        if not self._config.active:
            return
        await self._narrate(
            text, SpeechOptions(rate=rate, pitch=pitch, lang=lang, voice=voice)
        )
