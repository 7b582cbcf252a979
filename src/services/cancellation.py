"""실행 단위 취소 토큰 (데드라인 + 명시적 취소)"""

import threading
import time

from src.services.errors import PipelineCancelled


class CancellationToken:
    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """최대 seconds 동안 대기, 취소되면 즉시 True 반환"""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(seconds)
        return self.is_cancelled()

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            reason = "데드라인 초과" if self._deadline is not None else "취소 요청"
            raise PipelineCancelled(f"실행 취소됨: {reason}")
