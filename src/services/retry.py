"""외부 capability 호출 재시도 (지수 백오프)

재시도는 호출 단위이며 TransientProviderError만 재시도.
limiter는 provider별 동시 호출 수를 제한하는 권고용 semaphore.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import TypeVar

from src.services.cancellation import CancellationToken
from src.services.errors import TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 10.0,
        multiplier: float = 2.0,
        limiter: threading.BoundedSemaphore | None = None,
    ) -> None:
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self._limiter = limiter

    def delay_for(self, attempt: int) -> float:
        """attempt번째 실패 후 대기 시간 (0부터, max_delay로 상한)"""
        return min(self.initial_delay * self.multiplier**attempt, self.max_delay)

    def call(
        self,
        fn: Callable[..., T],
        *args: object,
        label: str = "",
        cancel: CancellationToken | None = None,
    ) -> T:
        """fn(*args) 호출 (일시적 실패 시 재시도)

        Raises:
            TransientProviderError: 재시도 소진 시 마지막 에러
            ProviderError: 영구 실패 (즉시)
            PipelineCancelled: 대기 중 취소
        """
        last_error: TransientProviderError | None = None

        for attempt in range(1 + self.max_retries):
            if cancel is not None:
                cancel.raise_if_cancelled()

            try:
                if self._limiter is None:
                    return fn(*args)
                with self._limiter:
                    return fn(*args)
            except TransientProviderError as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = self.delay_for(attempt)
                    logger.warning(
                        f"{label} 일시적 실패 ({attempt + 1}/{1 + self.max_retries}), "
                        f"{delay:.1f}초 후 재시도: {e}"
                    )
                    if cancel is not None:
                        if cancel.wait(delay):
                            cancel.raise_if_cancelled()
                    else:
                        time.sleep(delay)

        assert last_error is not None
        raise last_error
