"""파이프라인 결과 저장

파이프라인은 실행 종료(Done/Failed) 후 save()를 정확히 한 번 호출하며,
저장 실패는 로그만 남기고 이미 계산된 결과에 영향을 주지 않는다.

저장 내용:
- 최종 이미지/마스크 PNG → storage (result/{product_id}_final.png, _mask.png)
- 상태/위험도/전략 이력 JSON → Redis (remediation_result:{product_id})
"""

import json
import logging
from datetime import UTC, datetime
from typing import Protocol, cast

from pydantic import BaseModel

from src.constants import TTL, RedisPrefix
from src.infra.redis import get_redis
from src.infra.storage import StorageBackend, get_storage
from src.schemas.pipeline import PipelineResult, PipelineStatus, Strategy
from src.services.imaging import encode_png

logger = logging.getLogger(__name__)


class Persistence(Protocol):
    def save(self, product_id: str, result: PipelineResult) -> None:
        """Raises:
        Exception: 저장 실패 (호출자가 로그 후 무시)
        """
        ...


class AttemptRecord(BaseModel):
    strategy: Strategy
    succeeded: bool
    risk_score: int | None = None
    structural_valid: bool | None = None
    error: str | None = None


class RemediationRecord(BaseModel):
    """Redis에 저장되는 실행 결과 (감사 추적)"""

    product_id: str
    run_id: str
    status: PipelineStatus
    risk_score: int
    brands_detected: list[str]
    detection_passes: int
    last_strategy: Strategy | None = None
    error: str | None = None
    error_kind: str | None = None
    image_path: str | None = None
    mask_path: str | None = None
    states: list[str]
    attempts: list[AttemptRecord]
    saved_at: str


def result_paths(product_id: str) -> tuple[str, str]:
    """(최종 이미지, 마스크) 저장 상대 경로"""
    return f"result/{product_id}_final.png", f"result/{product_id}_mask.png"


class RedisPersistence:
    """storage(이미지) + Redis(메타데이터) 저장"""

    def __init__(self, storage: StorageBackend | None = None, ttl: int = TTL.DATA) -> None:
        self._storage = storage
        self._ttl = ttl

    def save(self, product_id: str, result: PipelineResult) -> None:
        storage = self._storage or get_storage()
        image_rel, mask_rel = result_paths(product_id)

        image_path = None
        if result.final_image is not None:
            image_path = storage.save_bytes(encode_png(result.final_image), image_rel)

        mask_path = None
        if result.mask is not None:
            mask_path = storage.save_bytes(encode_png(result.mask), mask_rel)

        record = RemediationRecord(
            product_id=product_id,
            run_id=result.run_id,
            status=result.status,
            risk_score=result.risk_score,
            brands_detected=list(result.brands_detected),
            detection_passes=result.detection_passes,
            last_strategy=result.last_strategy,
            error=result.error,
            error_kind=result.error_kind,
            image_path=image_path,
            mask_path=mask_path,
            states=[s.value for s in result.states],
            attempts=[
                AttemptRecord(
                    strategy=a.strategy,
                    succeeded=a.succeeded,
                    risk_score=a.risk_score,
                    structural_valid=a.structural_valid,
                    error=a.error,
                )
                for a in result.attempts
            ],
            saved_at=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        )

        get_redis().set(
            f"{RedisPrefix.RESULT}:{product_id}", record.model_dump_json(), ex=self._ttl
        )
        logger.info(f"[{product_id}] 결과 저장: status={result.status}, image={image_path}")


def load_record(product_id: str) -> RemediationRecord | None:
    data = get_redis().get(f"{RedisPrefix.RESULT}:{product_id}")
    if data is None:
        return None
    return RemediationRecord.model_validate(json.loads(cast(str, data)))


class _PersistenceHolder:
    instance: Persistence | None = None


def get_persistence() -> Persistence:
    if _PersistenceHolder.instance is None:
        _PersistenceHolder.instance = RedisPersistence()
    return _PersistenceHolder.instance


def set_persistence(persistence: Persistence | None) -> None:
    _PersistenceHolder.instance = persistence
