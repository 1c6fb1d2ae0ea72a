import time
from datetime import datetime
from typing import Optional, Protocol


def log(message: str, scope: Optional[str] = None) -> None:
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    if scope:
        print(f"[{now}] [{scope}] {message}", flush=True)
    else:
        print(f"[{now}] {message}", flush=True)


class Clock(Protocol):
    def now_ms(self) -> int: ...


class MonotonicClock:
    """Millisecond clock backed by time.monotonic()."""

    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)
