"""배치 서비스: 여러 이미지를 제한된 동시성으로 파이프라인 실행

이미지마다 독립된 실행(자체 데드라인 토큰)이며 실행 간 공유 상태는
provider 동시 호출 제한(RetryPolicy limiter)뿐이다.
결과는 입력 순서를 유지한다.
"""

import logging
from collections import Counter
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

import numpy as np
from pydantic import BaseModel, ConfigDict

from src.config import get_settings
from src.constants import Limits
from src.schemas.pipeline import PipelineResult, PipelineStatus
from src.services.cancellation import CancellationToken
from src.services.pipeline import RemediationPipeline

logger = logging.getLogger(__name__)


class BatchItem(BaseModel):
    """배치 입력 1건"""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    product_id: str
    image: np.ndarray
    brands: tuple[str, ...] = ()
    prior_risk_score: int | None = None


class BatchSummary(BaseModel):
    total: int
    clean: int = 0
    masked: int = 0
    failed: int = 0


class BatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: tuple[PipelineResult, ...]
    summary: BatchSummary


def summarize(results: Sequence[PipelineResult]) -> BatchSummary:
    counts = Counter(r.status for r in results)
    return BatchSummary(
        total=len(results),
        clean=counts[PipelineStatus.CLEAN],
        masked=counts[PipelineStatus.MASKED],
        failed=counts[PipelineStatus.FAILED],
    )


def remediate_batch(
    pipeline: RemediationPipeline,
    items: Sequence[BatchItem],
    concurrency: int | None = None,
    run_timeout: float | None = None,
) -> BatchResult:
    """배치 실행

    Args:
        pipeline: 공유 파이프라인 (run()은 실행마다 독립 상태)
        items: 입력 이미지 목록 (최대 Limits.MAX_BATCH_SIZE)
        concurrency: 동시 실행 수 (기본: settings.batch_concurrency)
        run_timeout: 이미지별 데드라인(초) (기본: settings.run_timeout)

    Raises:
        ValueError: 빈 배치 또는 최대 개수 초과
    """
    if not items:
        raise ValueError("최소 1개의 이미지가 필요합니다")
    if len(items) > Limits.MAX_BATCH_SIZE:
        raise ValueError(f"최대 {Limits.MAX_BATCH_SIZE}개까지 가능합니다")

    settings = get_settings()
    workers = max(1, concurrency or settings.batch_concurrency)
    timeout = run_timeout if run_timeout is not None else settings.run_timeout

    logger.info(f"배치 시작: {len(items)}개, concurrency={workers}")

    def run_one(item: BatchItem) -> PipelineResult:
        return pipeline.run(
            item.image,
            product_id=item.product_id,
            brands=item.brands,
            prior_risk_score=item.prior_risk_score,
            cancel=CancellationToken(timeout),
        )

    results: list[PipelineResult | None] = [None] * len(items)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_index = {executor.submit(run_one, item): i for i, item in enumerate(items)}
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            results[index] = future.result()

    ordered = tuple(r for r in results if r is not None)
    summary = summarize(ordered)
    logger.info(
        f"배치 완료: clean={summary.clean}, masked={summary.masked}, failed={summary.failed}"
    )
    return BatchResult(results=ordered, summary=summary)
