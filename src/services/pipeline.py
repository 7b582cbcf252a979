"""브랜드 제거 파이프라인 (오케스트레이터)

Init → Detecting → Editing → (Structural check) → Verifying → (Remediating) → Done | Failed

전략 선택/폴백 정책은 이 모듈 하나에서 처리하고, 모드(safe/prime/clipdrop/fast)는
PipelineConfig 프리셋으로만 구분한다. 환경변수는 build_pipeline()에서 한 번만 읽음.

종료 상태:
- clean: 편집 없이 또는 생성형 편집만으로 위험도가 기준 미만
- masked: occlusion/pixelation 적용 (성공으로 취급, 위험도는 고정값)
- failed: 어떤 전략도 이미지를 만들지 못함, 취소, 예상치 못한 오류
"""

import logging
import threading
import uuid
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Any, Literal, Self

import numpy as np
from pydantic import BaseModel, ConfigDict

from src.config import Settings, get_settings
from src.constants import DEFAULT_GENERIC_BRANDS
from src.schemas.pipeline import (
    DetectionResult,
    PipelineResult,
    PipelineState,
    PipelineStatus,
    Region,
    RemediationAttempt,
    Strategy,
    VerificationResult,
)
from src.services.cancellation import CancellationToken
from src.services.detection import Detector, detect_multi_angle, get_detection
from src.services.editing import EditHint, Editor, get_editors
from src.services.errors import (
    MaskRejected,
    PipelineCancelled,
    ProviderError,
    StructuralViolation,
    UnrecoverableError,
)
from src.services.geometry import merge_overlapping, sanitize_regions
from src.services.imaging import ensure_size, normalize_image
from src.services.masking import rasterize, validate_mask
from src.services.persistence import Persistence, get_persistence
from src.services.retry import RetryPolicy
from src.services.structural import StructuralValidator
from src.services.verification import Verifier, get_verification

logger = logging.getLogger(__name__)

# occlusion/pixelation이 적용되면 masked
MASKING_STRATEGIES = {Strategy.OCCLUSION, Strategy.PIXELATION}
GENERATIVE_STRATEGIES = {Strategy.MASK_GUIDED, Strategy.CONTENT_AWARE}


class PipelineMode(StrEnum):
    SAFE = "safe"
    CLIPDROP = "clipdrop"
    PRIME = "prime"
    FAST = "fast"


MODE_PRESETS: dict[PipelineMode, dict[str, Any]] = {
    # 멀티 앵글 탐지 + 마스크 inpainting 우선 + 검증 + 잔여 영역 occlusion
    PipelineMode.SAFE: {},
    # 마스크 inpainting 전용 튜닝: 단일 앵글, 마스크 15% 확장
    PipelineMode.CLIPDROP: {
        "multi_angle": False,
        "mask_padding_ratio": 0.15,
    },
    # 단일 앵글 + content-aware 편집, 잔여 위험 시 원본 탐지 영역을 가림
    # (생성형 편집 후 재탐지 좌표는 엉뚱한 곳을 가리킴)
    PipelineMode.PRIME: {
        "multi_angle": False,
        "prefer_mask_guided": False,
        "remediation_source": "detection",
    },
    # 탐지 생략 → content-aware 2회 → 구조 검증만 (검증 생략, 위험도 가정값)
    PipelineMode.FAST: {
        "multi_angle": False,
        "skip_detection": True,
        "prefer_mask_guided": False,
        "second_pass": True,
        "verify": False,
    },
}


class PipelineConfig(BaseModel):
    """파이프라인 실행 설정 (생성 시 주입, 실행 중 불변)"""

    model_config = ConfigDict(frozen=True)

    mode: PipelineMode = PipelineMode.SAFE

    # 단계 구성
    multi_angle: bool = True
    skip_detection: bool = False
    prefer_mask_guided: bool = True
    second_pass: bool = False
    verify: bool = True
    remediation_source: Literal["verifier", "detection"] = "verifier"
    remediation_strategy: Strategy = Strategy.OCCLUSION

    # 위험도 정책
    clean_risk_threshold: int = 50
    residual_risk_threshold: int = 40
    masked_risk_score: int = 35
    unverified_risk_score: int = 10
    verification_fallback_risk_score: int = 50
    detection_fallback_risk_score: int = 100
    rotated_risk_floor: int = 80
    fallback_brands: tuple[str, ...] = DEFAULT_GENERIC_BRANDS

    # 기하/마스크
    mask_coverage_ceiling: float = 0.5
    mask_padding_px: int = 5
    mask_padding_ratio: float = 0.0
    occlusion_padding_px: int = 20
    merge_iou_threshold: float = 0.3
    dedupe_iou_threshold: float = 0.5
    max_image_dimension: int = 2048

    @classmethod
    def for_mode(cls, mode: PipelineMode | str, **overrides: Any) -> Self:
        mode = PipelineMode(mode)
        return cls(mode=mode, **{**MODE_PRESETS[mode], **overrides})

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, mode: PipelineMode | str | None = None
    ) -> Self:
        settings = settings or get_settings()
        return cls.for_mode(
            mode or settings.pipeline_mode,
            clean_risk_threshold=settings.clean_risk_threshold,
            residual_risk_threshold=settings.residual_risk_threshold,
            masked_risk_score=settings.masked_risk_score,
            remediation_strategy=Strategy(settings.remediation_strategy),
            verification_fallback_risk_score=settings.verification_fallback_risk_score,
            mask_coverage_ceiling=settings.mask_coverage_ceiling,
            mask_padding_px=settings.mask_padding_px,
            occlusion_padding_px=settings.occlusion_padding_px,
            max_image_dimension=settings.max_image_dimension,
        )


class _Run:
    """단일 실행 컨텍스트 (실행 밖으로 나가는 것은 PipelineResult뿐)"""

    def __init__(self, product_id: str | None, cancel: CancellationToken) -> None:
        self.run_id = uuid.uuid4().hex[:8]
        self.product_id = product_id or self.run_id
        self.cancel = cancel
        self.states: list[PipelineState] = []
        self.attempts: list[RemediationAttempt] = []
        self.brands: list[str] = []
        self.detection: DetectionResult | None = None
        self.mask: np.ndarray | None = None

    def enter(self, state: PipelineState) -> None:
        self.cancel.raise_if_cancelled()
        self.states.append(state)
        logger.info(f"[{self.run_id}] {state.value}")

    def add_brands(self, brands: Sequence[str]) -> None:
        for brand in brands:
            if brand and brand not in self.brands:
                self.brands.append(brand)

    @property
    def last_strategy(self) -> Strategy | None:
        return self.attempts[-1].strategy if self.attempts else None

    def annotate_last(self, **update: Any) -> None:
        if self.attempts:
            self.attempts[-1] = self.attempts[-1].model_copy(update=update)

    def finish(
        self, status: PipelineStatus, image: np.ndarray, risk_score: int
    ) -> PipelineResult:
        self.states.append(PipelineState.DONE)
        return PipelineResult(
            run_id=self.run_id,
            status=status,
            final_image=image,
            brands_detected=tuple(self.brands),
            risk_score=risk_score,
            mask=self.mask,
            last_strategy=self.last_strategy,
            attempts=tuple(self.attempts),
            states=tuple(self.states),
            detection_passes=self.detection.passes if self.detection else 0,
        )

    def fail(self, error: str, error_kind: str) -> PipelineResult:
        self.states.append(PipelineState.FAILED)
        return PipelineResult(
            run_id=self.run_id,
            status=PipelineStatus.FAILED,
            final_image=None,
            brands_detected=tuple(self.brands),
            mask=self.mask,
            error=error,
            error_kind=error_kind,
            last_strategy=self.last_strategy,
            attempts=tuple(self.attempts),
            states=tuple(self.states),
            detection_passes=self.detection.passes if self.detection else 0,
        )


class RemediationPipeline:
    """이미지 1장에 대한 브랜드 제거 실행기

    run()은 예외를 던지지 않으며 항상 clean/masked/failed 중 하나를 반환.
    """

    def __init__(
        self,
        detector: Detector,
        editors: Mapping[Strategy, Editor],
        verifier: Verifier,
        config: PipelineConfig | None = None,
        validator: StructuralValidator | None = None,
        retry: RetryPolicy | None = None,
        verification_retry: RetryPolicy | None = None,
        persistence: Persistence | None = None,
    ) -> None:
        if Strategy.OCCLUSION not in editors:
            raise ValueError("editors must include an occlusion editor")

        self._detector = detector
        self._editors = dict(editors)
        self._verifier = verifier
        self._config = config or PipelineConfig()
        self._validator = validator or StructuralValidator()
        self._retry = retry or RetryPolicy()
        self._verification_retry = verification_retry or self._retry
        self._persistence = persistence

    @property
    def config(self) -> PipelineConfig:
        return self._config

    def run(
        self,
        image: np.ndarray,
        product_id: str | None = None,
        brands: Sequence[str] | None = None,
        prior_risk_score: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> PipelineResult:
        """이미지 1장 처리

        Args:
            image: 원본 이미지 (RGB/RGBA/Grayscale)
            product_id: 저장용 식별자 (없으면 run_id)
            brands: 의심 브랜드 (탐지 결과와 합쳐짐)
            prior_risk_score: 이전 탐지 위험도 (기준 미만이면 즉시 clean)
            cancel: 데드라인/취소 토큰

        Returns:
            PipelineResult (clean | masked | failed)
        """
        run = _Run(product_id, cancel or CancellationToken())
        run.add_brands(brands or [])
        logger.info(f"[{run.run_id}] 시작: mode={self._config.mode}, brands={run.brands}")

        try:
            result = self._execute(run, image, prior_risk_score)
        except PipelineCancelled as e:
            logger.warning(f"[{run.run_id}] {e}")
            result = run.fail(str(e), "cancelled")
        except UnrecoverableError as e:
            logger.error(f"[{run.run_id}] 복구 불가: {e}")
            result = run.fail(str(e), "unrecoverable")
        except Exception as e:
            logger.exception(f"[{run.run_id}] 파이프라인 실패: {e}")
            result = run.fail(f"예상치 못한 오류: {e}", "unexpected")

        logger.info(
            f"[{run.run_id}] 파이프라인 종료: status={result.status}, risk={result.risk_score}, "
            f"strategy={result.last_strategy}"
        )
        self._persist(run, result)
        return result

    def _execute(
        self, run: _Run, image: np.ndarray, prior_risk_score: int | None
    ) -> PipelineResult:
        config = self._config

        # 1. Init
        run.enter(PipelineState.INIT)
        original = normalize_image(image, config.max_image_dimension)
        if prior_risk_score is not None and prior_risk_score < config.clean_risk_threshold:
            logger.info(f"[{run.run_id}] 이전 위험도 {prior_risk_score}, 처리 생략")
            return run.finish(PipelineStatus.CLEAN, original, prior_risk_score)

        # 2. Detecting
        if config.skip_detection:
            run.add_brands(run.brands or config.fallback_brands)
        else:
            run.enter(PipelineState.DETECTING)
            detection = self._detect(run, original)
            if detection.risk_score < config.clean_risk_threshold:
                logger.info(f"[{run.run_id}] 이미 clean: risk={detection.risk_score}")
                return run.finish(PipelineStatus.CLEAN, original, detection.risk_score)

        # 3~4. Editing + Structural check
        edited = self._edit(run, original)

        # 5. Verifying
        verification: VerificationResult | None = None
        if config.verify:
            run.enter(PipelineState.VERIFYING)
            verification = self._verify(run, edited)
            run.add_brands(verification.remaining_brands)
            run.annotate_last(risk_score=verification.risk_score)

            # 6. Remediating
            if (
                not verification.is_clean
                and verification.risk_score > config.residual_risk_threshold
            ):
                run.enter(PipelineState.REMEDIATING)
                edited = self._remediate(run, edited, verification)

        # 7. Done
        applied = [a.strategy for a in run.attempts if a.succeeded]
        if any(s in MASKING_STRATEGIES or s == Strategy.NONE for s in applied):
            return run.finish(PipelineStatus.MASKED, edited, config.masked_risk_score)
        if verification is not None:
            return run.finish(PipelineStatus.CLEAN, edited, verification.risk_score)
        return run.finish(PipelineStatus.CLEAN, edited, config.unverified_risk_score)

    # --- Detection ---

    def _detect(self, run: _Run, image: np.ndarray) -> DetectionResult:
        """탐지 (재시도 소진 시 영역 없는 고위험 기본값으로 강등)"""
        config = self._config
        try:
            if config.multi_angle:
                detection = detect_multi_angle(
                    self._detector,
                    image,
                    retry=self._retry,
                    cancel=run.cancel,
                    rotated_risk_floor=config.rotated_risk_floor,
                    dedupe_threshold=config.dedupe_iou_threshold,
                )
            else:
                detection = self._retry.call(
                    self._detector.detect, image, label="Detection", cancel=run.cancel
                )
        except PipelineCancelled:
            raise
        except Exception as e:
            if isinstance(e, ProviderError):
                logger.warning(f"[{run.run_id}] 탐지 실패, 기본값으로 진행: {e}")
            else:
                logger.exception(f"[{run.run_id}] 탐지 예외, 기본값으로 진행: {e}")
            detection = DetectionResult(
                brands=[*run.brands, *config.fallback_brands],
                risk_score=config.detection_fallback_risk_score,
                regions=(),
                passes=0,
            )

        detection = detection.model_copy(update={"regions": sanitize_regions(detection.regions)})
        run.detection = detection
        run.add_brands(detection.brands)
        logger.info(
            f"[{run.run_id}] 탐지: brands={list(detection.brands)}, risk={detection.risk_score}, "
            f"regions={len(detection.regions)}, passes={detection.passes}"
        )
        return detection

    def _detected_regions(self, run: _Run, original: np.ndarray) -> tuple[Region, ...]:
        """탐지 영역 (fast 모드처럼 탐지를 건너뛴 경우 지금 탐지)"""
        if run.detection is None:
            run.enter(PipelineState.DETECTING)
            self._detect(run, original)
        assert run.detection is not None
        return run.detection.regions

    # --- Editing ---

    def _edit_mask(self, run: _Run, original: np.ndarray, regions: Sequence[Region]) -> bool:
        """편집용 마스크 생성 후 유효 여부 반환 (run.mask에 진단용으로 보관)"""
        if not regions:
            return False

        h, w = original.shape[:2]
        mask = rasterize(
            regions,
            w,
            h,
            padding_px=self._config.mask_padding_px,
            padding_ratio=self._config.mask_padding_ratio,
        )
        run.mask = mask
        try:
            coverage = validate_mask(mask, self._config.mask_coverage_ceiling)
        except MaskRejected as e:
            logger.warning(f"[{run.run_id}] 마스크 거부, 마스크 기반 편집 생략: {e}")
            return False

        logger.info(f"[{run.run_id}] 마스크 생성: {len(regions)}개 영역, coverage={coverage:.1%}")
        return True

    def _hint_for(
        self, strategy: Strategy, original: np.ndarray, regions: Sequence[Region], run: _Run
    ) -> EditHint:
        if strategy == Strategy.CONTENT_AWARE:
            return EditHint(regions=tuple(regions))
        if strategy == Strategy.MASK_GUIDED:
            return EditHint(regions=tuple(regions), mask=run.mask)

        h, w = original.shape[:2]
        mask = rasterize(regions, w, h, padding_px=self._config.occlusion_padding_px)
        run.mask = mask
        return EditHint(regions=tuple(regions), mask=mask)

    def _attempt(
        self, run: _Run, strategy: Strategy, image: np.ndarray, hint: EditHint
    ) -> np.ndarray | None:
        """전략 1회 실행 (실패 시 None, 시도 기록은 항상 남김)"""
        editor = self._editors[strategy]
        h, w = image.shape[:2]

        try:
            if strategy in GENERATIVE_STRATEGIES:
                output = self._retry.call(
                    editor.edit,
                    image,
                    hint,
                    run.brands,
                    label=f"Edit {strategy}",
                    cancel=run.cancel,
                )
            else:
                output = editor.edit(image, hint, run.brands)
            output = ensure_size(output, w, h)
        except PipelineCancelled:
            raise
        except ProviderError as e:
            logger.warning(f"[{run.run_id}] {strategy} 실패: {e}")
            run.attempts.append(
                RemediationAttempt(strategy=strategy, input_image=image, error=str(e))
            )
            return None
        except Exception as e:
            logger.exception(f"[{run.run_id}] {strategy} 예외: {e}")
            run.attempts.append(
                RemediationAttempt(strategy=strategy, input_image=image, error=str(e))
            )
            return None

        run.attempts.append(
            RemediationAttempt(strategy=strategy, input_image=image, output_image=output)
        )
        return output

    def _check_structure(self, run: _Run, original: np.ndarray, edited: np.ndarray) -> bool:
        run.enter(PipelineState.STRUCTURAL_CHECK)
        try:
            self._validator.ensure_valid(original, edited)
        except StructuralViolation as e:
            logger.warning(f"[{run.run_id}] 구조 검증 실패 ({run.last_strategy}): {e.reason}")
            run.annotate_last(structural_valid=False)
            return False
        run.annotate_last(structural_valid=True)
        return True

    def _primary_ladder(self, mask_ok: bool) -> list[Strategy]:
        """에러 시 순서대로 시도할 생성형 전략"""
        if mask_ok and self._config.prefer_mask_guided:
            ladder = [Strategy.MASK_GUIDED, Strategy.CONTENT_AWARE]
        elif mask_ok:
            ladder = [Strategy.CONTENT_AWARE, Strategy.MASK_GUIDED]
        else:
            ladder = [Strategy.CONTENT_AWARE]
        return [s for s in ladder if s in self._editors]

    def _edit(self, run: _Run, original: np.ndarray) -> np.ndarray:
        """편집 + 구조 검증 + (fast 모드) 2차 패스

        선택 정책: 마스크 유효 → 마스크 기반, 아니면 content-aware.
        에러 시 다른 생성형 전략 → occlusion 순으로 강등.
        구조 검증 실패 시 한 번만 강등 (마스크 기반 가능하면 마스크 기반, 아니면 occlusion).

        Raises:
            UnrecoverableError: 어떤 전략으로도 이미지를 만들지 못함
        """
        regions = run.detection.regions if run.detection else ()
        mask_ok = self._edit_mask(run, original, regions)

        run.enter(PipelineState.EDITING)
        edited: np.ndarray | None = None
        for strategy in self._primary_ladder(mask_ok):
            hint = self._hint_for(strategy, original, regions, run)
            edited = self._attempt(run, strategy, original, hint)
            if edited is not None:
                break

        if edited is None:
            return self._occlude_original(run, original, "모든 생성형 전략 실패")

        if self._check_structure(run, original, edited):
            return self._second_pass(run, original, edited)

        # 구조 검증 실패 → 한 번만 강등
        tried = {a.strategy for a in run.attempts}
        if mask_ok and Strategy.MASK_GUIDED in self._editors and Strategy.MASK_GUIDED not in tried:
            hint = self._hint_for(Strategy.MASK_GUIDED, original, regions, run)
            downgraded = self._attempt(run, Strategy.MASK_GUIDED, original, hint)
            if downgraded is not None and self._check_structure(run, original, downgraded):
                return downgraded
            return self._occlude_original(run, original, "마스크 기반 강등 실패")

        return self._occlude_original(run, original, "구조 검증 실패")

    def _occlude_original(self, run: _Run, original: np.ndarray, reason: str) -> np.ndarray:
        """원본 이미지의 탐지 영역을 가림 (최후 수단)

        Raises:
            UnrecoverableError: 가릴 영역이 없음
        """
        regions = self._detected_regions(run, original)
        if not regions:
            raise UnrecoverableError(f"{reason}, 가릴 영역 없음 (마지막 전략: {run.last_strategy})")

        logger.info(f"[{run.run_id}] {reason} → occlusion ({len(regions)}개 영역)")
        hint = self._hint_for(Strategy.OCCLUSION, original, regions, run)
        occluded = self._attempt(run, Strategy.OCCLUSION, original, hint)
        if occluded is None:
            raise UnrecoverableError(f"{reason}, occlusion 실패")

        # occlusion은 대상 영역만 바꾸므로 구조 검증 결과는 기록만 함
        validation = self._validator.validate(original, occluded)
        run.annotate_last(structural_valid=validation.is_valid)
        return occluded

    def _second_pass(self, run: _Run, original: np.ndarray, edited: np.ndarray) -> np.ndarray:
        """content-aware 결과에 한 번 더 강한 제거 (실패/구조 훼손 시 1차 결과 유지)"""
        if not self._config.second_pass or run.last_strategy != Strategy.CONTENT_AWARE:
            return edited

        run.enter(PipelineState.EDITING)
        regions = run.detection.regions if run.detection else ()
        hint = EditHint(regions=regions, aggressive=True)
        second = self._attempt(run, Strategy.CONTENT_AWARE, edited, hint)
        if second is None or not self._check_structure(run, original, second):
            logger.info(f"[{run.run_id}] 2차 패스 미적용, 1차 결과 사용")
            return edited
        return second

    # --- Verification / Remediation ---

    def _verify(self, run: _Run, edited: np.ndarray) -> VerificationResult:
        """검증 (재시도 소진 시 '브랜드가 남았다고 가정'으로 강등)"""
        try:
            return self._verification_retry.call(
                self._verifier.verify, edited, run.brands, label="Verification", cancel=run.cancel
            )
        except PipelineCancelled:
            raise
        except Exception as e:
            if isinstance(e, ProviderError):
                logger.warning(f"[{run.run_id}] 검증 실패, 잔여 위험 가정: {e}")
            else:
                logger.exception(f"[{run.run_id}] 검증 예외, 잔여 위험 가정: {e}")
            return VerificationResult(
                is_clean=False,
                risk_score=self._config.verification_fallback_risk_score,
                description=f"검증 실패: {e}",
            )

    def _remediation_regions(
        self, run: _Run, verification: VerificationResult
    ) -> tuple[Region, ...]:
        residual = sanitize_regions(verification.residual_regions)
        detected = run.detection.regions if run.detection else ()
        if self._config.remediation_source == "detection":
            return detected or residual
        return residual or ()

    def _remediate(
        self, run: _Run, edited: np.ndarray, verification: VerificationResult
    ) -> np.ndarray:
        """잔여 영역을 병합 → 래스터화 → occlusion (좌표가 없으면 편집 없이 수용)

        Raises:
            UnrecoverableError: 가리기 실패
        """
        config = self._config
        regions = merge_overlapping(
            self._remediation_regions(run, verification), config.merge_iou_threshold
        )

        if not regions:
            logger.warning(
                f"[{run.run_id}] 잔여 위험 {verification.risk_score}이나 좌표 없음, 조건부 수용"
            )
            run.attempts.append(
                RemediationAttempt(
                    strategy=Strategy.NONE,
                    input_image=edited,
                    output_image=edited,
                    risk_score=config.masked_risk_score,
                    error="잔여 영역 좌표 없음",
                )
            )
            return edited

        h, w = edited.shape[:2]
        mask = rasterize(regions, w, h, padding_px=config.occlusion_padding_px)
        run.mask = mask
        strategy = config.remediation_strategy
        remediated = self._attempt(run, strategy, edited, EditHint(regions=regions, mask=mask))
        if remediated is None and strategy != Strategy.OCCLUSION:
            strategy = Strategy.OCCLUSION
            remediated = self._attempt(run, strategy, edited, EditHint(regions=regions, mask=mask))
        if remediated is None:
            raise UnrecoverableError(f"잔여 영역 {strategy} 실패")

        run.annotate_last(risk_score=config.masked_risk_score)
        logger.info(f"[{run.run_id}] 잔여 영역 {len(regions)}개 {strategy} 적용")
        return remediated

    def _persist(self, run: _Run, result: PipelineResult) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.save(run.product_id, result)
        except Exception as e:
            logger.error(f"[{run.run_id}] 결과 저장 실패 (결과는 유효): {e}")


_limiters: dict[str, threading.BoundedSemaphore] = {}
_limiters_lock = threading.Lock()


def _limiter(name: str, size: int) -> threading.BoundedSemaphore:
    """provider별 프로세스 공유 동시 호출 제한"""
    with _limiters_lock:
        if name not in _limiters:
            _limiters[name] = threading.BoundedSemaphore(size)
        return _limiters[name]


def build_pipeline(
    config: PipelineConfig | None = None, persistence: Persistence | None = None
) -> RemediationPipeline:
    """설정 기반 파이프라인 생성"""
    settings = get_settings()
    size = settings.provider_concurrency

    def policy(name: str, **overrides: Any) -> RetryPolicy:
        params: dict[str, Any] = {
            "max_retries": settings.retry_max_retries,
            "initial_delay": settings.retry_initial_delay,
            "max_delay": settings.retry_max_delay,
            "multiplier": settings.retry_backoff_multiplier,
            **overrides,
        }
        return RetryPolicy(**params, limiter=_limiter(name, size))

    return RemediationPipeline(
        detector=get_detection(),
        editors=get_editors(),
        verifier=get_verification(),
        config=config or PipelineConfig.from_settings(settings),
        validator=StructuralValidator(
            compare_size=settings.structural_compare_size,
            pixel_threshold=settings.structural_pixel_threshold,
            max_avg_diff=settings.structural_max_avg_diff,
            max_significant_ratio=settings.structural_max_significant_ratio,
        ),
        retry=policy("provider"),
        verification_retry=policy(
            "verification", max_retries=5, initial_delay=2.0, max_delay=16.0
        ),
        persistence=persistence if persistence is not None else get_persistence(),
    )
