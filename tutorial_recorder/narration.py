"""
Narration backends.

Two interchangeable ways to speak a line during a tutorial:

1. ``LocalSpeechBackend`` drives the page's own Web Speech API.
2. ``EdgeTTSBackend`` synthesizes MP3 audio with Microsoft Edge neural voices,
   plays it back inside the page and records it with its offset from the
   session start so it can be muxed into the recorded video afterwards.

Narration never raises. Any failure is logged and the call becomes a no-op.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import edge_tts

from .config import TutorialConfig
from .ledger import AudioChunk, AudioLedger
from .util import Clock, MonotonicClock, log

# Edge voices accept pitch as a signed Hz delta; one unit of the Web Speech
# pitch multiplier maps to this many Hz.
PITCH_HZ_PER_UNIT = 50

LOCAL_SPEAK_JS = """
async ({ text, rate, pitch, lang, voice, voiceWaitMs, timeoutMs }) => {
    const synth = window.speechSynthesis;
    if (!synth || typeof SpeechSynthesisUtterance === 'undefined') return 'unsupported';

    let voices = synth.getVoices();
    if (!voices.length) {
        voices = await new Promise((resolve) => {
            const deadline = Date.now() + voiceWaitMs;
            let timer = null;
            const check = () => {
                const current = synth.getVoices();
                if (current.length || Date.now() >= deadline) {
                    clearInterval(timer);
                    synth.removeEventListener('voiceschanged', check);
                    resolve(current);
                }
            };
            timer = setInterval(check, 100);
            synth.addEventListener('voiceschanged', check);
        });
    }
    if (!voices.length) return 'no-voices';

    const utterance = new SpeechSynthesisUtterance(text);
    if (rate !== null) utterance.rate = rate;
    if (pitch !== null) utterance.pitch = pitch;
    if (lang) utterance.lang = lang;
    if (voice) {
        const match = voices.find((v) => v.name === voice || v.voiceURI === voice);
        if (match) utterance.voice = match;
    }

    return await new Promise((resolve) => {
        const timer = setTimeout(() => resolve('timeout'), timeoutMs);
        const finish = (result) => () => {
            clearTimeout(timer);
            resolve(result);
        };
        utterance.onend = finish('spoken');
        utterance.onerror = finish('error');
        synth.speak(utterance);
    });
}
"""

PLAY_AUDIO_JS = """
async ({ src, timeoutMs }) => {
    const audio = new Audio(src);
    return await new Promise((resolve) => {
        const timer = setTimeout(() => resolve('timeout'), timeoutMs);
        const finish = (result) => {
            clearTimeout(timer);
            resolve(result);
        };
        audio.addEventListener('ended', () => finish('played'));
        audio.addEventListener('error', () => finish('error'));
        audio.play().catch(() => finish('error'));
    });
}
"""


@dataclass(frozen=True)
class SpeechOptions:
    rate: Optional[float] = None
    pitch: Optional[float] = None
    lang: Optional[str] = None
    voice: Optional[str] = None


def edge_rate(rate: Optional[float]) -> str:
    """Map a Web Speech rate multiplier (1.0 = normal) to an Edge percent delta."""
    if rate is None:
        return "+0%"
    return f"{int(round((rate - 1.0) * 100)):+d}%"


def edge_pitch(pitch: Optional[float]) -> str:
    """Map a Web Speech pitch multiplier (1.0 = normal) to an Edge Hz delta."""
    if pitch is None:
        return "+0Hz"
    return f"{int(round((pitch - 1.0) * PITCH_HZ_PER_UNIT)):+d}Hz"


class NarrationBackend(ABC):
    """Speaks a line of narration inside a page.

    ``speak`` returns the recorded chunk when the backend produces one, or
    None. It must never raise.
    """

    name = "narration"

    def __init__(self, config: TutorialConfig) -> None:
        self.config = config

    @abstractmethod
    async def speak(
        self,
        page: Any,
        text: str,
        options: Optional[SpeechOptions] = None,
        *,
        start_ms: Optional[int] = None,
    ) -> Optional[AudioChunk]:
        raise NotImplementedError


class LocalSpeechBackend(NarrationBackend):
    name = "local"

    async def speak(self, page, text, options=None, *, start_ms=None):
        options = options or SpeechOptions()
        try:
            result = await page.evaluate(
                LOCAL_SPEAK_JS,
                {
                    "text": text,
                    "rate": options.rate,
                    "pitch": options.pitch,
                    "lang": options.lang,
                    "voice": options.voice,
                    "voiceWaitMs": self.config.voice_wait_ms,
                    "timeoutMs": self.config.speech_timeout_ms,
                },
            )
        except Exception as exc:
            log(f"speech failed, continuing: {exc}", "narration")
            return None
        if result in ("no-voices", "unsupported"):
            log(f"speech skipped ({result})", "narration")
        elif result == "timeout":
            log("speech hit safety timeout, continuing", "narration")
        return None


class EdgeTTSBackend(NarrationBackend):
    name = "edge-tts"

    def __init__(
        self,
        config: TutorialConfig,
        ledger: Optional[AudioLedger] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(config)
        self.ledger = ledger
        self.clock = clock or MonotonicClock()

    async def synthesize(self, text: str, options: SpeechOptions) -> bytes:
        communicate = edge_tts.Communicate(
            text,
            options.voice or self.config.voice,
            rate=edge_rate(options.rate),
            pitch=edge_pitch(options.pitch),
        )
        audio = bytearray()
        async for chunk in communicate.stream():
            if chunk["type"] == "audio":
                audio.extend(chunk["data"])
        return bytes(audio)

    async def speak(self, page, text, options=None, *, start_ms=None):
        options = options or SpeechOptions()
        # Taken before synthesis so network latency stays out of the offset.
        offset_ms = None
        if start_ms is not None:
            offset_ms = max(0, self.clock.now_ms() - start_ms)

        try:
            buffer = await self.synthesize(text, options)
        except Exception as exc:
            log(f"edge-tts synthesis failed, continuing: {exc}", "narration")
            return None
        if not buffer:
            log("edge-tts returned no audio, skipping", "narration")
            return None

        chunk = None
        if offset_ms is None:
            log("no session start time, narration chunk not recorded", "narration")
        else:
            chunk = AudioChunk(buffer=buffer, offset_ms=offset_ms)
            if self.ledger is not None:
                self.ledger.append(chunk)

        src = "data:audio/mpeg;base64," + base64.b64encode(buffer).decode("ascii")
        try:
            result = await page.evaluate(
                PLAY_AUDIO_JS,
                {"src": src, "timeoutMs": self.config.speech_timeout_ms},
            )
        except Exception as exc:
            log(f"audio playback failed, continuing: {exc}", "narration")
            return chunk
        if result == "timeout":
            log("audio playback hit safety timeout, continuing", "narration")
        return chunk


def create_backend(
    config: TutorialConfig,
    ledger: Optional[AudioLedger] = None,
    clock: Optional[Clock] = None,
) -> NarrationBackend:
    if config.uses_edge_tts:
        return EdgeTTSBackend(config, ledger=ledger, clock=clock)
    return LocalSpeechBackend(config)
