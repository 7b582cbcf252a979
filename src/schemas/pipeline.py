"""파이프라인 데이터 모델

Detection → Editing → Verification → Remediation 전체에서 사용하는 공통 스키마.

좌표계는 타입으로 구분:
- Box2D: 0~1000 정수 정규화 좌표 (ymin, xmin, ymax, xmax) - Gemini API 관례
- Point: 0~1 실수 정규화 좌표 (polygon 꼭짓점)
- PixelBox: 이미지 기준 절대 좌표(px)
"""

import math
from enum import StrEnum
from typing import Any, NamedTuple, Self

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

BOX_SCALE = 1000


class CoordSpace(StrEnum):
    NORMALIZED_1000 = "normalized_1000"
    UNIT = "unit"


class PixelBox(NamedTuple):
    """픽셀 좌표 박스 (min_x, min_y, max_x, max_y), max는 exclusive"""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y


class Box2D(BaseModel):
    """0~1000 정규화 바운딩 박스 (ymin, xmin, ymax, xmax)

    유효성:
    - ymin <= ymax, xmin <= xmax 보장 (자동 정렬)
    - 모든 좌표는 [0, 1000]으로 클램핑
    - 면적 0인 박스는 생성은 가능하지만 is_valid() == False
    """

    model_config = ConfigDict(frozen=True)

    ymin: int
    xmin: int
    ymax: int
    xmax: int

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        """좌표 반올림, 정렬, 클램핑 (frozen 모델이라 생성 전에 처리)"""
        if not isinstance(data, dict) or any(
            data.get(k) is None for k in ("ymin", "xmin", "ymax", "xmax")
        ):
            return data

        coords = {}
        for key in ("ymin", "xmin", "ymax", "xmax"):
            value = float(data[key])
            if math.isnan(value) or math.isinf(value):
                raise ValueError(f"{key} is NaN or Inf")
            coords[key] = min(BOX_SCALE, max(0, round(value)))

        if coords["ymin"] > coords["ymax"]:
            coords["ymin"], coords["ymax"] = coords["ymax"], coords["ymin"]
        if coords["xmin"] > coords["xmax"]:
            coords["xmin"], coords["xmax"] = coords["xmax"], coords["xmin"]

        return coords

    @classmethod
    def from_list(cls, coords: list[float]) -> "Box2D":
        """[ymin, xmin, ymax, xmax] 리스트에서 생성

        Raises:
            ValueError: 좌표 개수가 4개가 아닌 경우
        """
        if len(coords) != 4:
            raise ValueError(f"box_2d requires 4 coordinates, got {len(coords)}")
        return cls(ymin=coords[0], xmin=coords[1], ymax=coords[2], xmax=coords[3])

    def to_list(self) -> list[int]:
        return [self.ymin, self.xmin, self.ymax, self.xmax]

    @property
    def width(self) -> int:
        return self.xmax - self.xmin

    @property
    def height(self) -> int:
        return self.ymax - self.ymin

    @property
    def area(self) -> int:
        return self.width * self.height

    def is_valid(self) -> bool:
        """유효한 영역인지 확인 (width > 0 and height > 0)"""
        return self.width > 0 and self.height > 0


class Point(BaseModel):
    """0~1 정규화 좌표의 polygon 꼭짓점"""

    model_config = ConfigDict(frozen=True)

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)


class RegionKind(StrEnum):
    LOGO = "logo"
    TEXT = "text"
    EMBLEM = "emblem"


class Region(BaseModel):
    """탐지된(또는 합성된) 브랜드 영역

    box_2d(0~1000)와 polygon(0~1) 중 정확히 하나를 가짐.
    """

    model_config = ConfigDict(frozen=True)

    brand: str
    kind: RegionKind = RegionKind.LOGO
    confidence: int = Field(default=100, ge=0, le=100)
    box_2d: Box2D | None = None
    polygon: tuple[Point, ...] | None = None
    source_angle: int = 0  # 탐지된 회전 각도 (0 | 180)

    @model_validator(mode="after")
    def validate_shape(self) -> Self:
        if (self.box_2d is None) == (self.polygon is None):
            raise ValueError("Region requires exactly one of box_2d or polygon")
        if self.polygon is not None and len(self.polygon) < 3:
            raise ValueError(f"polygon requires at least 3 points, got {len(self.polygon)}")
        return self

    @property
    def coord_space(self) -> CoordSpace:
        return CoordSpace.NORMALIZED_1000 if self.box_2d is not None else CoordSpace.UNIT

    def bounds(self) -> Box2D:
        """0~1000 좌표계의 외접 박스 (polygon은 min floor / max ceil)"""
        if self.box_2d is not None:
            return self.box_2d

        assert self.polygon is not None
        xs = [p.x * BOX_SCALE for p in self.polygon]
        ys = [p.y * BOX_SCALE for p in self.polygon]
        return Box2D(
            ymin=math.floor(min(ys)),
            xmin=math.floor(min(xs)),
            ymax=math.ceil(max(ys)),
            xmax=math.ceil(max(xs)),
        )

    def is_valid(self) -> bool:
        return self.bounds().is_valid()


class DetectionResult(BaseModel):
    """브랜드 탐지 결과

    brands는 순서를 유지하는 중복 없는 집합.
    """

    model_config = ConfigDict(frozen=True)

    brands: tuple[str, ...] = ()
    risk_score: int = Field(ge=0, le=100)
    regions: tuple[Region, ...] = ()
    passes: int = 1

    @model_validator(mode="before")
    @classmethod
    def dedupe_brands(cls, data: Any) -> Any:
        if isinstance(data, dict) and "brands" in data:
            data = {**data, "brands": tuple(dict.fromkeys(b for b in data["brands"] if b))}
        return data


class VerificationResult(BaseModel):
    """편집 후 재검증 결과"""

    model_config = ConfigDict(frozen=True)

    is_clean: bool
    risk_score: int = Field(ge=0, le=100)
    residual_regions: tuple[Region, ...] = ()
    remaining_brands: tuple[str, ...] = ()
    description: str = ""


class StructuralValidation(BaseModel):
    """원본 대비 편집 이미지 구조 검증 결과"""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    confidence: int = Field(ge=0, le=100)
    reason: str | None = None
    avg_diff: float = 0.0
    significant_diff_ratio: float = 0.0


class Strategy(StrEnum):
    """편집 전략 (정밀도 높은 순)"""

    MASK_GUIDED = "mask_guided"
    CONTENT_AWARE = "content_aware"
    PIXELATION = "pixelation"
    OCCLUSION = "occlusion"
    NONE = "none"  # 잔여 위험이 있으나 좌표가 없어 편집 없이 수용


class PipelineState(StrEnum):
    INIT = "init"
    DETECTING = "detecting"
    EDITING = "editing"
    STRUCTURAL_CHECK = "structural_check"
    VERIFYING = "verifying"
    REMEDIATING = "remediating"
    DONE = "done"
    FAILED = "failed"


class PipelineStatus(StrEnum):
    CLEAN = "clean"
    MASKED = "masked"
    FAILED = "failed"


class RemediationAttempt(BaseModel):
    """편집 1회 기록 (감사 추적용)"""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    strategy: Strategy
    input_image: np.ndarray
    output_image: np.ndarray | None = None
    risk_score: int | None = None
    structural_valid: bool | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.output_image is not None


class PipelineResult(BaseModel):
    """파이프라인 최종 결과 (반환 후 변경 불가)"""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    run_id: str
    status: PipelineStatus
    final_image: np.ndarray | None
    brands_detected: tuple[str, ...] = ()
    risk_score: int = Field(default=100, ge=0, le=100)
    mask: np.ndarray | None = None
    error: str | None = None
    error_kind: str | None = None  # "cancelled" | "unrecoverable" | "unexpected"
    last_strategy: Strategy | None = None
    attempts: tuple[RemediationAttempt, ...] = ()
    states: tuple[PipelineState, ...] = ()
    detection_passes: int = 0

    @model_validator(mode="after")
    def validate_status(self) -> Self:
        if self.status != PipelineStatus.FAILED and self.final_image is None:
            raise ValueError(f"{self.status} result requires final_image")
        if self.status == PipelineStatus.FAILED and not self.error:
            raise ValueError("failed result requires error")
        return self
