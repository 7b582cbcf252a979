"""Editing 모듈

사용법:
    from src.services.editing import get_editors

    editors = get_editors()
    edited = editors[Strategy.CONTENT_AWARE].edit(image, EditHint(regions=...), brands)

백엔드 선택:
    - CONTENT_AWARE_PROVIDER: "gemini" (기본값) | "qwen"
    - MASK_GUIDED_PROVIDER: "clipdrop" (기본값) | "iopaint" | "none"
    - occlusion/pixelation은 로컬 처리 (항상 사용 가능)
"""

from src.config import get_settings
from src.schemas.pipeline import Strategy
from src.services.editing.base import EditHint, EditingError, Editor
from src.services.editing.occlusion import OcclusionEditor
from src.services.editing.pixelation import PixelationEditor

__all__ = ["EditHint", "EditingError", "Editor", "get_editors", "set_editors"]

_editors: dict[Strategy, Editor] | None = None


def get_editors() -> dict[Strategy, Editor]:
    """설정에 따라 전략별 편집기 반환"""
    global _editors
    if _editors is None:
        settings = get_settings()
        _editors = {
            Strategy.CONTENT_AWARE: _create_content_aware(),
            Strategy.OCCLUSION: OcclusionEditor(padding_px=settings.occlusion_padding_px),
            Strategy.PIXELATION: PixelationEditor(),
        }
        mask_guided = _create_mask_guided()
        if mask_guided is not None:
            _editors[Strategy.MASK_GUIDED] = mask_guided
    return _editors


def set_editors(editors: dict[Strategy, Editor] | None) -> None:
    """편집기 설정 (테스트용)"""
    global _editors
    _editors = editors


def _create_content_aware() -> Editor:
    settings = get_settings()
    if settings.content_aware_provider == "gemini":
        from src.services.editing.gemini import GeminiImageEditor

        return GeminiImageEditor(api_key=settings.gemini_api_key, model=settings.gemini_edit_model)
    if settings.content_aware_provider == "qwen":
        from src.services.editing.qwen import QwenImageEditor

        return QwenImageEditor(api_token=settings.replicate_api_token, model=settings.qwen_model)
    raise ValueError(f"Unknown content-aware provider: {settings.content_aware_provider!r}")


def _create_mask_guided() -> Editor | None:
    settings = get_settings()
    if settings.mask_guided_provider == "clipdrop":
        from src.services.editing.clipdrop import ClipDropInpainting

        return ClipDropInpainting(
            api_key=settings.clipdrop_api_key,
            url=settings.clipdrop_url,
            timeout=settings.provider_timeout,
        )
    if settings.mask_guided_provider == "iopaint":
        from src.services.editing.iopaint import IOPaintInpainting

        return IOPaintInpainting(
            space_url=settings.iopaint_space_url,
            timeout=settings.provider_timeout,
        )
    if settings.mask_guided_provider == "none":
        return None
    raise ValueError(f"Unknown mask-guided provider: {settings.mask_guided_provider!r}")
