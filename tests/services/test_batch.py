import threading
import time
from collections.abc import Sequence

import numpy as np
import pytest

from src.constants import Limits
from src.schemas.pipeline import DetectionResult, PipelineStatus, Strategy, VerificationResult
from src.services.batch import BatchItem, remediate_batch, summarize
from src.services.editing.occlusion import OcclusionEditor
from src.services.pipeline import PipelineConfig, RemediationPipeline
from tests.conftest import FakeEditor, box_region, make_product_image, no_wait_retry

LOGO = box_region(333, 375, 500, 625)

# 이미지 (0, 0) 픽셀 값으로 시나리오 구분
CLEAN_MARK = 1
EDIT_MARK = 2
FAIL_MARK = 3
MASK_MARK = 4


def _marked(mark: int) -> np.ndarray:
    image = make_product_image()
    image[0, 0] = mark
    return image


class MarkerDetector:
    def __init__(self, slow_mark: int | None = None) -> None:
        self.slow_mark = slow_mark
        self.threads: set[str] = set()
        self._lock = threading.Lock()

    def detect(self, image: np.ndarray) -> DetectionResult:
        with self._lock:
            self.threads.add(threading.current_thread().name)
        mark = int(image[0, 0, 0])
        if mark == self.slow_mark:
            time.sleep(0.2)
        if mark == CLEAN_MARK:
            return DetectionResult(brands=[], risk_score=10)
        if mark == FAIL_MARK:
            raise RuntimeError("detector crashed")
        return DetectionResult(brands=["Nike"], risk_score=90, regions=[LOGO])


class MarkerVerifier:
    def verify(self, image: np.ndarray, brands: Sequence[str]) -> VerificationResult:
        if int(image[0, 0, 0]) == MASK_MARK:
            return VerificationResult(is_clean=False, risk_score=80, residual_regions=(LOGO,))
        return VerificationResult(is_clean=True, risk_score=5)


def _pipeline(detector: MarkerDetector) -> RemediationPipeline:
    return RemediationPipeline(
        detector=detector,
        editors={Strategy.CONTENT_AWARE: FakeEditor(), Strategy.OCCLUSION: OcclusionEditor()},
        verifier=MarkerVerifier(),
        config=PipelineConfig(multi_angle=False),
        retry=no_wait_retry(),
    )


def _items(*marks: int) -> list[BatchItem]:
    return [BatchItem(product_id=f"sku-{i}", image=_marked(m)) for i, m in enumerate(marks)]


class TestRemediateBatch:
    def test_results_keep_input_order(self) -> None:
        detector = MarkerDetector(slow_mark=EDIT_MARK)
        items = _items(EDIT_MARK, CLEAN_MARK, FAIL_MARK, MASK_MARK)

        batch = remediate_batch(_pipeline(detector), items, concurrency=4, run_timeout=30)

        assert [r.status for r in batch.results] == [
            PipelineStatus.CLEAN,
            PipelineStatus.CLEAN,
            PipelineStatus.FAILED,
            PipelineStatus.MASKED,
        ]
        assert batch.results[1].risk_score == 10
        assert batch.results[0].risk_score == 5

    def test_summary_counts(self) -> None:
        items = _items(CLEAN_MARK, EDIT_MARK, FAIL_MARK, MASK_MARK, MASK_MARK)

        batch = remediate_batch(_pipeline(MarkerDetector()), items, concurrency=2)

        assert batch.summary.total == 5
        assert batch.summary.clean == 2
        assert batch.summary.masked == 2
        assert batch.summary.failed == 1

    def test_failure_does_not_affect_others(self) -> None:
        items = _items(FAIL_MARK, EDIT_MARK)

        batch = remediate_batch(_pipeline(MarkerDetector()), items, concurrency=1)

        assert batch.results[0].status == PipelineStatus.FAILED
        assert batch.results[1].status == PipelineStatus.CLEAN

    def test_runs_concurrently(self) -> None:
        detector = MarkerDetector(slow_mark=EDIT_MARK)
        items = _items(*[EDIT_MARK] * 4)

        remediate_batch(_pipeline(detector), items, concurrency=4)

        assert len(detector.threads) > 1

    def test_brands_and_prior_risk_are_passed(self) -> None:
        detector = MarkerDetector()
        items = [
            BatchItem(product_id="a", image=_marked(EDIT_MARK), brands=("Puma",)),
            BatchItem(product_id="b", image=_marked(EDIT_MARK), prior_risk_score=5),
        ]

        batch = remediate_batch(_pipeline(detector), items, concurrency=1)

        assert batch.results[0].brands_detected == ("Puma", "Nike")
        assert batch.results[1].risk_score == 5
        assert batch.results[1].attempts == ()

    def test_each_run_gets_its_own_deadline(self) -> None:
        items = _items(EDIT_MARK, CLEAN_MARK)

        batch = remediate_batch(_pipeline(MarkerDetector()), items, run_timeout=0.0)

        assert all(r.error_kind == "cancelled" for r in batch.results)
        assert batch.summary.failed == 2

    def test_empty_batch_raises(self) -> None:
        with pytest.raises(ValueError, match="최소 1개"):
            remediate_batch(_pipeline(MarkerDetector()), [])

    def test_too_many_items_raises(self) -> None:
        items = _items(*[CLEAN_MARK] * (Limits.MAX_BATCH_SIZE + 1))
        with pytest.raises(ValueError, match=f"최대 {Limits.MAX_BATCH_SIZE}개"):
            remediate_batch(_pipeline(MarkerDetector()), items)


class TestSummarize:
    def test_empty(self) -> None:
        summary = summarize([])
        assert summary.total == 0
        assert summary.clean == summary.masked == summary.failed == 0
