from dataclasses import dataclass


@dataclass(frozen=True)
class AudioChunk:
    """One synthesized narration buffer and its offset from session start."""

    buffer: bytes
    offset_ms: int

    def __post_init__(self) -> None:
        if self.offset_ms < 0:
            raise ValueError(f"offset_ms must be >= 0, got {self.offset_ms}")


class AudioLedger:
    """Append-only record of narration chunks, in narration order."""

    def __init__(self) -> None:
        self._chunks: list[AudioChunk] = []

    def append(self, chunk: AudioChunk) -> None:
        self._chunks.append(chunk)

    def snapshot(self) -> tuple[AudioChunk, ...]:
        return tuple(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    def __bool__(self) -> bool:
        return bool(self._chunks)
