"""Verification Protocol

편집 이미지에 브랜드 흔적이 남았는지 재검증하는 인터페이스.
"""

from collections.abc import Sequence
from typing import Protocol

import numpy as np

from src.schemas.pipeline import VerificationResult
from src.services.errors import ProviderError


class VerificationError(ProviderError):
    pass


class Verifier(Protocol):
    """브랜드 잔여 위험도 검증 인터페이스

    구현체:
    - GeminiVerification: Google Gemini API
    """

    def verify(self, image: np.ndarray, brands: Sequence[str]) -> VerificationResult:
        """편집된 이미지 검증

        Args:
            image: 편집된 RGB 이미지
            brands: 원본에서 탐지된 브랜드

        Returns:
            VerificationResult: is_clean, 위험도, 잔여 영역 (0~1000 좌표)

        Raises:
            TransientProviderError: 네트워크/5xx (재시도 대상)
            VerificationError: 그 외 실패
        """
        ...
