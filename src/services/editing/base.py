"""Editing Protocol

교체 가능한 편집 전략을 위한 인터페이스 정의.
모든 전략은 같은 시그니처를 가지며, 전략 선택/폴백은 파이프라인이 담당.
"""

from collections.abc import Sequence
from typing import Protocol

import numpy as np
from pydantic import BaseModel, ConfigDict

from src.schemas.pipeline import Region
from src.services.errors import ProviderError


class EditingError(ProviderError):
    pass


class EditHint(BaseModel):
    """편집 대상 힌트

    - regions: 0~1000/0~1 정규화 영역
    - mask: 이미지와 같은 크기의 uint8 마스크 (255 = 제거 대상)
    - aggressive: 2차 패스용 강한 제거 요청
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    regions: tuple[Region, ...] = ()
    mask: np.ndarray | None = None
    aggressive: bool = False


class Editor(Protocol):
    """브랜드 제거 편집 인터페이스

    구현체:
    - GeminiImageEditor / QwenImageEditor: 프롬프트 기반 content-aware 편집
    - ClipDropInpainting / IOPaintInpainting: 마스크 기반 inpainting
    - OcclusionEditor: 검정 사각형 덮기 (항상 성공하는 최후 수단)
    - PixelationEditor: 국소 픽셀화 + 블러
    """

    def edit(self, image: np.ndarray, hint: EditHint, brands: Sequence[str]) -> np.ndarray:
        """브랜드를 제거한 새 이미지 반환 (입력 이미지는 수정하지 않음)

        Args:
            image: RGB 이미지
            hint: 영역/마스크 힌트
            brands: 제거 대상 브랜드명

        Returns:
            편집된 RGB 이미지 (크기는 달라질 수 있음)

        Raises:
            TransientProviderError: 네트워크/5xx (재시도 대상)
            EditingError: 그 외 실패
        """
        ...


def describe_regions(regions: Sequence[Region]) -> str:
    """영역 목록을 프롬프트용 텍스트로 변환"""
    lines = []
    for region in regions:
        box = region.bounds()
        lines.append(
            f"- {region.brand} {region.kind.value} at "
            f"[ymin={box.ymin}, xmin={box.xmin}, ymax={box.ymax}, xmax={box.xmax}] (0-1000 scale)"
        )
    return "\n".join(lines)


def removal_prompt(brands: Sequence[str], regions: Sequence[Region], aggressive: bool) -> str:
    """content-aware 편집용 프롬프트"""
    brand_list = ", ".join(brands) if brands else "any brand"
    prompt = (
        f"Remove every visible {brand_list} logo, brand name, emblem and trademark "
        "from this product photo. Fill removed areas with the surrounding material, "
        "texture and color so the product looks unbranded. "
        "Keep the product shape, colors, background, lighting and framing exactly the same."
    )
    if regions:
        prompt += "\n\nKnown brand locations:\n" + describe_regions(regions)
    if aggressive:
        prompt += (
            "\n\nA previous pass left traces behind. Check every surface again, including "
            "tongues, heels, soles, tags and stitching, and remove all remaining marks."
        )
    return prompt
