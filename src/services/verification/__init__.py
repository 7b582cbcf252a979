"""Verification 모듈

사용법:
    from src.services.verification import get_verification

    verifier = get_verification()
    result = verifier.verify(edited_image, brands)

백엔드 선택 (.env VERIFICATION_PROVIDER):
    - "gemini": Google Gemini API (기본값)
"""

from src.config import get_settings
from src.services.verification.base import VerificationError, Verifier
from src.services.verification.gemini import GeminiVerification

__all__ = ["VerificationError", "Verifier", "get_verification", "set_verification"]

_verifier: Verifier | None = None


def get_verification() -> Verifier:
    """설정에 따라 verification 백엔드 반환"""
    global _verifier
    if _verifier is None:
        settings = get_settings()
        if settings.verification_provider == "gemini":
            _verifier = GeminiVerification(
                api_key=settings.gemini_api_key,
                model=settings.gemini_verification_model,
                clean_threshold=settings.clean_risk_threshold,
            )
        else:
            raise ValueError(
                f"Unknown verification provider: {settings.verification_provider!r}"
            )
    return _verifier


def set_verification(verifier: Verifier | None) -> None:
    """verification 백엔드 설정 (테스트용)"""
    global _verifier
    _verifier = verifier
