from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from storefront.core.config import ORDER_RATE_LIMIT, ORDER_RATE_WINDOW_SECONDS

DEFAULT_LIMIT = ORDER_RATE_LIMIT
DEFAULT_WINDOW_SECONDS = ORDER_RATE_WINDOW_SECONDS


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int


class RateLimiterService(ABC):
    @abstractmethod
    def check(self, *, key: str) -> RateLimitDecision:
        """Registra un intento para la clave y decide si puede continuar."""


class FixedWindowRateLimiter(RateLimiterService):
    """Rate limit en memoria por clave (dirección de red) con ventana fija.

    No es durable ni distribuido: cada proceso tiene su propio contador.
    La interfaz permite cambiarlo por un store compartido (Redis) sin tocar
    al validador.
    """

    def __init__(
        self,
        *,
        limit: int = DEFAULT_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = Lock()

    def check(self, *, key: str) -> RateLimitDecision:
        now = self._clock()

        with self._lock:
            self._purge_expired(now)
            window_start, count = self._windows.get(key, (now, 0))

            if count >= self.limit:
                retry_after = max(1, int(window_start + self.window_seconds - now))
                return RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after_seconds=retry_after,
                )

            count += 1
            self._windows[key] = (window_start, count)
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=max(0, self.limit - count),
                retry_after_seconds=0,
            )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for key in expired:
            del self._windows[key]


order_rate_limiter = FixedWindowRateLimiter()


def get_order_rate_limiter() -> RateLimiterService:
    return order_rate_limiter
