"""Gemini 응답 처리 공통 유틸리티 (detection/verification/editing 공용)"""

import json
import logging
from typing import Any

import httpx
from google.genai import errors as genai_errors
from pydantic import BaseModel, Field, ValidationError

from src.schemas.pipeline import Box2D, Region, RegionKind
from src.services.errors import (
    RETRYABLE_STATUS_CODES,
    ProviderError,
    TransientProviderError,
    classify_http_error,
)

logger = logging.getLogger(__name__)


class RawRegion(BaseModel):
    """Gemini가 반환하는 영역 (box_2d: [ymin, xmin, ymax, xmax], 0~1000)"""

    brand: str = "unknown"
    type: str = "logo"
    confidence: float = 100.0
    box_2d: list[float] = Field(min_length=4, max_length=4)


def classify_gemini_error(e: Exception, error_cls: type[ProviderError]) -> ProviderError:
    """google-genai 예외를 일시적/영구적 에러로 분류"""
    if isinstance(e, ProviderError):
        return e
    if isinstance(e, genai_errors.ServerError):
        return TransientProviderError(f"Gemini 서버 오류: {e}")
    if isinstance(e, genai_errors.APIError):
        if e.code in RETRYABLE_STATUS_CODES:
            return TransientProviderError(f"Gemini 일시적 오류: {e.code}")
        return error_cls(f"Gemini API 오류: {e.code} {e.message}")
    if isinstance(e, httpx.HTTPError):
        return classify_http_error(e, error_cls)
    return error_cls(f"Gemini API 호출 실패: {e}")


def parse_json_object(text: str | None, error_cls: type[ProviderError]) -> dict[str, Any]:
    """JSON 응답 파싱 (```json 코드 블록 허용)

    Raises:
        error_cls: 빈 응답, 파싱 실패, 객체가 아닌 경우
    """
    if not text:
        raise error_cls("빈 응답")

    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[-1]
        cleaned = cleaned.rsplit("```", 1)[0]

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise error_cls(f"JSON 파싱 실패: {e}") from e

    if not isinstance(data, dict):
        raise error_cls(f"응답이 객체가 아님: {type(data).__name__}")

    return data


def parse_brands(value: Any, error_cls: type[ProviderError], field: str = "brands") -> list[str]:
    """브랜드 목록 파싱 (문자열 하나는 단일 브랜드로 취급)

    Raises:
        error_cls: 리스트/문자열/null 외의 값
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise error_cls(f"{field} 형식 오류: {type(value).__name__}")
    return [b.strip() for b in value if isinstance(b, str) and b.strip()]


def parse_flag(value: Any, error_cls: type[ProviderError], field: str, default: bool) -> bool:
    """불리언 필드 파싱 ("true"/"false" 문자열만 추가 허용)

    Raises:
        error_cls: 해석할 수 없는 값
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise error_cls(f"{field} 형식 오류: {value!r}")


def clamp_score(value: Any, default: int = 100) -> int:
    try:
        return min(100, max(0, round(float(value))))
    except (TypeError, ValueError):
        return default


def parse_regions(items: Any) -> tuple[Region, ...]:
    """원시 영역 리스트 → Region (형식 오류/퇴화 영역은 개별적으로 버림)"""
    if not isinstance(items, list):
        return ()

    regions: list[Region] = []
    for item in items:
        try:
            raw = RawRegion.model_validate(item)
            kinds = {k.value for k in RegionKind}
            kind = RegionKind(raw.type) if raw.type in kinds else RegionKind.LOGO
            confidence = raw.confidence * 100 if raw.confidence <= 1 else raw.confidence
            region = Region(
                brand=raw.brand,
                kind=kind,
                confidence=clamp_score(confidence),
                box_2d=Box2D.from_list(raw.box_2d),
            )
        except (ValidationError, ValueError) as e:
            logger.warning(f"영역 파싱 실패: {item} - {e}")
            continue

        if not region.is_valid():
            logger.warning(f"퇴화 영역 제거: {raw.brand} {raw.box_2d}")
            continue
        regions.append(region)

    return tuple(regions)
