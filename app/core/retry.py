import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import backoff

from app.core.errors import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff around a single async call.
    Delay before retry n (0-based) is base_delay * multiplier ** n.
    """
    max_attempts: int = 3
    base_delay: float = 0.1
    multiplier: float = 2.0
    retry_on: Tuple[Type[Exception], ...] = (StorageError,)

    def wrap(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        return backoff.on_exception(
            backoff.expo,
            self.retry_on,
            max_tries=self.max_attempts,
            jitter=None,
            base=self.multiplier,
            factor=self.base_delay,
            on_backoff=self._log_backoff,
            on_giveup=self._log_giveup,
        )(func)

    async def run(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        return await self.wrap(func)(*args, **kwargs)

    @staticmethod
    def _log_backoff(details):
        logger.warning(
            f"[Retry] {details['target'].__name__} failed "
            f"(attempt {details['tries']}), retrying in {details['wait']:.2f}s"
        )

    @staticmethod
    def _log_giveup(details):
        logger.error(f"[Retry] {details['target'].__name__} gave up after {details['tries']} attempts")
