"""Remediation 서비스: 브랜드 제거 작업 메타데이터 관리

비즈니스 로직만 담당. Task 호출은 route에서 처리.
"""

import json
import uuid
from datetime import UTC, datetime
from typing import Literal, cast

from pydantic import BaseModel

from src.config import get_settings
from src.constants import TTL, Limits, RedisPrefix, RemediationId
from src.infra.redis import get_redis
from src.schemas.base import BaseSchema
from src.schemas.pipeline import PipelineResult

JobStatus = Literal["pending", "processing", "completed", "failed"]


class RemediationMetadata(BaseModel):
    """Redis에 저장되는 작업 메타데이터"""

    remediation_id: str
    status: JobStatus
    image_path: str
    brands: list[str]
    mode: str
    created_at: str
    completed_at: str | None = None
    result_status: str | None = None  # clean | masked | failed
    risk_score: int | None = None
    brands_detected: list[str] = []
    last_strategy: str | None = None
    result_url: str | None = None
    mask_url: str | None = None
    error_message: str | None = None


class RemediationResponse(BaseSchema):
    """작업 응답"""

    remediation_id: str
    status: JobStatus
    brands: list[str]
    mode: str
    created_at: str
    completed_at: str | None = None
    result_status: str | None = None
    risk_score: int | None = None
    brands_detected: list[str] = []
    last_strategy: str | None = None
    result_url: str | None = None
    mask_url: str | None = None
    error_message: str | None = None


class InvalidBrandsError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidRemediationIdError(Exception):
    def __init__(self, remediation_id: str):
        self.remediation_id = remediation_id
        super().__init__(f"올바르지 않은 작업 ID 형식: {remediation_id}")


class RemediationNotFoundError(Exception):
    def __init__(self, remediation_id: str):
        self.remediation_id = remediation_id
        super().__init__(f"존재하지 않는 작업 ID: {remediation_id}")


def _generate_remediation_id() -> str:
    return f"{RemediationId.PREFIX}{uuid.uuid4().hex[:8]}"


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _key(remediation_id: str) -> str:
    return f"{RedisPrefix.REMEDIATION}:{remediation_id}"


def parse_brands(raw: str | None) -> list[str]:
    """쉼표 구분 브랜드 문자열 파싱 (공백 제거, 순서 유지 중복 제거)

    Raises:
        InvalidBrandsError: 개수 초과 또는 너무 긴 이름
    """
    if not raw:
        return []

    brands = list(dict.fromkeys(b.strip() for b in raw.split(",") if b.strip()))
    if len(brands) > Limits.MAX_BRANDS:
        raise InvalidBrandsError(f"브랜드는 최대 {Limits.MAX_BRANDS}개까지 가능합니다")
    if any(len(b) > Limits.MAX_BRAND_LENGTH for b in brands):
        raise InvalidBrandsError(f"브랜드 이름은 최대 {Limits.MAX_BRAND_LENGTH}자입니다")
    return brands


def _to_response(metadata: RemediationMetadata) -> RemediationResponse:
    return RemediationResponse.model_validate(metadata.model_dump(exclude={"image_path"}))


def _load(remediation_id: str) -> RemediationMetadata | None:
    data = get_redis().get(_key(remediation_id))
    if data is None:
        return None
    return RemediationMetadata.model_validate(json.loads(cast(str, data)))


def _store(metadata: RemediationMetadata) -> None:
    get_redis().set(_key(metadata.remediation_id), metadata.model_dump_json(), keepttl=True)


def create_remediation(image_path: str, brands: list[str], mode: str) -> RemediationResponse:
    """작업 생성 (메타데이터만, task 호출은 route에서)"""
    metadata = RemediationMetadata(
        remediation_id=_generate_remediation_id(),
        status="pending",
        image_path=image_path,
        brands=brands,
        mode=mode,
        created_at=_now(),
    )

    get_redis().set(_key(metadata.remediation_id), metadata.model_dump_json(), ex=TTL.DATA)
    return _to_response(metadata)


def validate_remediation_id(remediation_id: str) -> None:
    """작업 ID 형식 검증 (임의 Redis 키 조회 방지)

    Raises:
        InvalidRemediationIdError: 형식이 올바르지 않음
    """
    if not RemediationId.PATTERN.match(remediation_id):
        raise InvalidRemediationIdError(remediation_id)


def get_remediation(remediation_id: str) -> RemediationResponse | None:
    """작업 조회

    Raises:
        InvalidRemediationIdError: 형식이 올바르지 않음
    """
    validate_remediation_id(remediation_id)
    metadata = _load(remediation_id)
    if metadata is None:
        return None
    return _to_response(metadata)


def get_metadata(remediation_id: str) -> RemediationMetadata | None:
    """워커용 원본 메타데이터 조회 (이미지 경로 포함)"""
    return _load(remediation_id)


def update_status(
    remediation_id: str,
    status: JobStatus,
    error_message: str | None = None,
) -> None:
    """작업 상태 업데이트

    Raises:
        RemediationNotFoundError: 존재하지 않는 작업 ID
    """
    metadata = _load(remediation_id)
    if metadata is None:
        raise RemediationNotFoundError(remediation_id)

    metadata.status = status
    if error_message is not None:
        metadata.error_message = error_message
    if status in ("completed", "failed"):
        metadata.completed_at = _now()

    _store(metadata)


def record_result(
    remediation_id: str,
    result: PipelineResult,
    image_path: str | None = None,
    mask_path: str | None = None,
) -> None:
    """파이프라인 결과 반영 (clean/masked → completed, failed → failed)

    Raises:
        RemediationNotFoundError: 존재하지 않는 작업 ID
    """
    metadata = _load(remediation_id)
    if metadata is None:
        raise RemediationNotFoundError(remediation_id)

    base_url = get_settings().base_url
    metadata.status = "failed" if result.status == "failed" else "completed"
    metadata.completed_at = _now()
    metadata.result_status = result.status.value
    metadata.risk_score = result.risk_score
    metadata.brands_detected = list(result.brands_detected)
    metadata.last_strategy = result.last_strategy.value if result.last_strategy else None
    metadata.error_message = result.error
    if image_path:
        metadata.result_url = f"{base_url}/static/{image_path}"
    if mask_path:
        metadata.mask_url = f"{base_url}/static/{mask_path}"

    _store(metadata)
