import argparse
import asyncio
import json
import sys
import time
from pathlib import Path
from typing import Any

from playwright.async_api import async_playwright

from .config import TTS_BACKENDS, TutorialConfig
from .errors import SpecError
from .session import tutorial_session
from .util import log

STEP_KINDS = ("speak", "highlight", "goto", "click", "fill", "pause")
HIGHLIGHT_KEYS = ("title", "text", "side", "align", "timeout", "speech")
VIEWPORT = {"width": 1280, "height": 720}


def load_tutorial_script(script_path: Path) -> dict[str, Any]:
    try:
        with script_path.open("r", encoding="utf-8") as handle:
            script = json.load(handle)
    except FileNotFoundError as exc:
        raise SpecError(f"Script not found: {script_path}") from exc
    except json.JSONDecodeError as exc:
        raise SpecError(f"Script JSON is invalid: {exc}") from exc

    if not isinstance(script, dict):
        raise SpecError("Script must be a JSON object")
    if not isinstance(script.get("url"), str) or not script["url"]:
        raise SpecError("Script missing required field: url")
    steps = script.get("steps")
    if not isinstance(steps, list) or not steps:
        raise SpecError("Script 'steps' must be a non-empty array")

    for idx, step in enumerate(steps, start=1):
        if not isinstance(step, dict):
            raise SpecError(f"Step {idx} must be an object")
        kinds = [kind for kind in STEP_KINDS if kind in step]
        if len(kinds) != 1:
            raise SpecError(
                f"Step {idx} must have exactly one of: {', '.join(STEP_KINDS)}"
            )
        kind = kinds[0]
        if kind == "fill" and "value" not in step:
            raise SpecError(f"Step {idx} fill missing value")
        if kind == "pause":
            try:
                if int(step["pause"]) < 0:
                    raise SpecError(f"Step {idx} pause must be >= 0")
            except (TypeError, ValueError) as exc:
                raise SpecError(f"Step {idx} pause must be milliseconds") from exc
        step["kind"] = kind

    return script


async def run_step(recording: Any, page: Any, step: dict[str, Any]) -> None:
    tutorial = recording.tutorial
    kind = step["kind"]
    if kind == "speak":
        await tutorial.speak(str(step["speak"]))
    elif kind == "highlight":
        options = {key: step[key] for key in HIGHLIGHT_KEYS if key in step}
        await tutorial.highlight(str(step["highlight"]), **options)
    elif kind == "goto":
        await page.goto(str(step["goto"]), wait_until="domcontentloaded")
    elif kind == "click":
        await page.locator(str(step["click"])).first.click()
    elif kind == "fill":
        await page.locator(str(step["fill"])).first.fill(str(step["value"]))
    elif kind == "pause":
        await page.wait_for_timeout(int(step["pause"]))


async def run_script(
    script: dict[str, Any], config: TutorialConfig, output_dir: Path, headed: bool
) -> Path | None:
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=not headed)
        try:
            context = await browser.new_context(
                viewport=VIEWPORT,
                record_video_dir=str(output_dir / "raw"),
                record_video_size=VIEWPORT,
            )
            # Recording starts with the page, so the session start time must
            # be taken before navigating.
            page = await context.new_page()
            async with tutorial_session(page, config, output_dir) as recording:
                log(f"navigating to {script['url']}")
                await page.goto(str(script["url"]), wait_until="domcontentloaded")
                steps = script["steps"]
                for idx, step in enumerate(steps, start=1):
                    log(f"step [{idx}/{len(steps)}]: {step['kind']}")
                    await run_step(recording, page, step)

            await context.close()
            return recording.artifact
        finally:
            await browser.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Record a highlighted, narrated browser tutorial"
    )
    parser.add_argument("script", help="Path to tutorial script JSON")
    parser.add_argument(
        "--output-dir",
        default="tutorial-output",
        help="Directory for the recorded and narrated videos",
    )
    parser.add_argument(
        "--tts",
        choices=TTS_BACKENDS,
        help="Narration backend (default: TTS env var, else local)",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    started = time.time()
    args = parse_args(argv)

    try:
        script = load_tutorial_script(Path(args.script).resolve())
        overrides: dict[str, Any] = {"active": True}
        if args.tts:
            overrides["tts"] = args.tts
        config = TutorialConfig.from_env(**overrides)
        output_dir = Path(args.output_dir).expanduser().resolve()
        output_dir.mkdir(parents=True, exist_ok=True)

        log(f"script loaded: {len(script['steps'])} step(s), tts={config.tts}")
        artifact = asyncio.run(run_script(script, config, output_dir, args.headed))
        if artifact is None:
            log("no video was recorded")
        else:
            log(f"Output: {artifact}")
        log(f"Wall-clock time: {time.time() - started:.2f}s")
        return 0
    except Exception as exc:
        log(f"ERROR: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
