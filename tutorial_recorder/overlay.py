"""
driver.js overlay helpers.

Loads the driver.js library into a page and creates/destroys highlight
overlays through explicit JS handles, so nothing is parked on ``window``.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import requests
from playwright.async_api import Error as PlaywrightError

from .errors import OverlayLoadError
from .util import log

DRIVER_JS_VERSION = "1.4.0"
DRIVER_CSS_URL = (
    f"https://cdn.jsdelivr.net/npm/driver.js@{DRIVER_JS_VERSION}/dist/driver.css"
)
DRIVER_JS_URL = (
    f"https://cdn.jsdelivr.net/npm/driver.js@{DRIVER_JS_VERSION}/dist/driver.js.iife.js"
)

DRIVER_READY_JS = "() => !!(window.driver && window.driver.js && window.driver.js.driver)"

DRIVER_CONFIG = {
    "animate": True,
    "overlayOpacity": 0.5,
    "stagePadding": 8,
    "stageRadius": 5,
    "allowClose": False,
}
NO_POPOVER_CLASS = "tutorial-no-popover"

CREATE_OVERLAY_JS = """
({ element, config, popover }) => {
    const driverObj = window.driver.js.driver(config);
    const step = { element };
    if (popover) step.popover = popover;
    driverObj.highlight(step);
    return driverObj;
}
"""

DESTROY_OVERLAY_JS = "(driverObj) => driverObj.destroy()"


@dataclass(frozen=True)
class Popover:
    title: Optional[str] = None
    text: Optional[str] = None
    side: Optional[str] = None
    align: Optional[str] = None

    @property
    def has_chrome(self) -> bool:
        return bool(self.title or self.text)

    def to_js(self) -> dict[str, str]:
        data = {}
        if self.title:
            data["title"] = self.title
        if self.text:
            data["description"] = self.text
        if self.side:
            data["side"] = self.side
        if self.align:
            data["align"] = self.align
        return data


def build_config(popover: Optional[Popover]) -> dict[str, Any]:
    config = dict(DRIVER_CONFIG)
    if popover is None or not popover.has_chrome:
        config["popoverClass"] = NO_POPOVER_CLASS
    return config


def build_step(element: Any, popover: Optional[Popover]) -> dict[str, Any]:
    """Arguments for CREATE_OVERLAY_JS. Popover chrome only with a title or text."""
    return {
        "element": element,
        "config": build_config(popover),
        "popover": popover.to_js() if popover and popover.has_chrome else None,
    }


class OverlayAssets:
    """Injects driver.js into a page, from the CDN or from a local cache."""

    def __init__(self, cache_dir: Optional[Path] = None, timeout: float = 30.0) -> None:
        self.cache_dir = cache_dir
        self.timeout = timeout
        self._content: Optional[tuple[str, str]] = None

    def _download(self, url: str, destination: Path) -> str:
        if destination.exists() and destination.stat().st_size > 0:
            return destination.read_text(encoding="utf-8")
        log(f"downloading {url}", "overlay")
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise OverlayLoadError(f"driver.js download failed: {exc}") from exc
        destination.write_text(response.text, encoding="utf-8")
        return response.text

    def load_cached(self) -> tuple[str, str]:
        """Return (css, js) source, downloading into the cache on first use."""
        if self._content is None:
            if self.cache_dir is None:
                raise OverlayLoadError("driver.js cache directory is not configured")
            target = Path(self.cache_dir) / f"driver.js-{DRIVER_JS_VERSION}"
            try:
                target.mkdir(parents=True, exist_ok=True)
                css = self._download(DRIVER_CSS_URL, target / "driver.css")
                js = self._download(DRIVER_JS_URL, target / "driver.js.iife.js")
            except OSError as exc:
                raise OverlayLoadError(f"driver.js cache unusable at {target}: {exc}") from exc
            self._content = (css, js)
        return self._content

    async def inject(self, page: Any) -> None:
        try:
            if self.cache_dir is None:
                await page.add_style_tag(url=DRIVER_CSS_URL)
                await page.add_script_tag(url=DRIVER_JS_URL)
            else:
                css, js = await asyncio.to_thread(self.load_cached)
                await page.add_style_tag(content=css)
                await page.add_script_tag(content=js)
            await page.wait_for_function(DRIVER_READY_JS)
        except PlaywrightError as exc:
            raise OverlayLoadError(f"driver.js failed to load: {exc}") from exc


async def create_overlay(page: Any, element: Any, popover: Optional[Popover]) -> Any:
    """Highlight ``element`` and return a JS handle to the driver instance."""
    return await page.evaluate_handle(CREATE_OVERLAY_JS, build_step(element, popover))


async def destroy_overlay(handle: Any) -> None:
    try:
        await handle.evaluate(DESTROY_OVERLAY_JS)
    except PlaywrightError as exc:
        # Page navigated or closed; the overlay went with it.
        log(f"overlay destroy skipped: {exc}", "overlay")
    finally:
        try:
            await handle.dispose()
        except PlaywrightError:
            pass
