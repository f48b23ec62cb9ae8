import asyncio


class HealthGauge:
    """
    Readiness gauge for the proxy.

    Unexpected failures during resolution or request handling (anything that is not
    regular flow-control such as a missing record or an unknown space) raise the
    gauge. A background task lowers it by one every tick. A burst of failures pushes
    the value past the threshold and the readiness probe starts failing until the
    gauge has drained.
    """

    def __init__(self, value: int = 0, health_threshold: int = 100) -> None:
        self._value = value
        self._health_threshold = health_threshold
        self._lock = asyncio.Lock()

    async def womp(self, d=1) -> int:
        async with self._lock:
            self._value += int(d)
            return self._value

    async def tick(self) -> None:
        async with self._lock:
            if self._value > 0:
                self._value -= 1

    async def value(self) -> int:
        async with self._lock:
            return self._value

    async def is_healthy(self) -> bool:
        async with self._lock:
            return self._value <= self._health_threshold
