"""좌표 변환 및 영역 병합/중복 제거 (순수 함수, I/O 없음)"""

import logging
import math
from collections.abc import Sequence

from src.schemas.pipeline import BOX_SCALE, Box2D, CoordSpace, PixelBox, Point, Region
from src.services.errors import DegenerateRegionError

logger = logging.getLogger(__name__)

MERGE_IOU_THRESHOLD = 0.3
DEDUPE_IOU_THRESHOLD = 0.5

_SCALES = {CoordSpace.NORMALIZED_1000: BOX_SCALE, CoordSpace.UNIT: 1}


def to_pixel_box(
    box: Box2D | tuple[float, float, float, float],
    coord_space: CoordSpace,
    width: int,
    height: int,
) -> PixelBox:
    """정규화 박스 (ymin, xmin, ymax, xmax) → 픽셀 박스

    min은 floor, max는 ceil로 변환해 원본 탐지 영역보다 작아지지 않게 함.
    결과는 이미지 경계 [0, width] x [0, height]로 클램핑.

    Raises:
        DegenerateRegionError: 변환 후 max <= min
    """
    scale = _SCALES[coord_space]
    if isinstance(box, Box2D):
        ymin, xmin, ymax, xmax = box.ymin, box.xmin, box.ymax, box.xmax
    else:
        ymin, xmin, ymax, xmax = box

    min_x = max(0, math.floor(xmin * width / scale))
    min_y = max(0, math.floor(ymin * height / scale))
    max_x = min(width, math.ceil(xmax * width / scale))
    max_y = min(height, math.ceil(ymax * height / scale))

    if max_x <= min_x or max_y <= min_y:
        raise DegenerateRegionError(
            f"degenerate region: ({min_x}, {min_y}, {max_x}, {max_y}) in {width}x{height}"
        )

    return PixelBox(min_x, min_y, max_x, max_y)


def region_to_pixel_box(region: Region, width: int, height: int) -> PixelBox:
    """Region 외접 박스를 픽셀 좌표로 변환

    Raises:
        DegenerateRegionError: 변환 후 면적 0
    """
    if region.box_2d is not None:
        return to_pixel_box(region.box_2d, CoordSpace.NORMALIZED_1000, width, height)

    assert region.polygon is not None
    xs = [p.x for p in region.polygon]
    ys = [p.y for p in region.polygon]
    return to_pixel_box((min(ys), min(xs), max(ys), max(xs)), CoordSpace.UNIT, width, height)


def invert_rotation_180(box: Box2D) -> Box2D:
    """180° 회전 이미지에서 탐지한 박스를 원본 방향으로 복원 (involution)"""
    return Box2D(
        ymin=BOX_SCALE - box.ymax,
        xmin=BOX_SCALE - box.xmax,
        ymax=BOX_SCALE - box.ymin,
        xmax=BOX_SCALE - box.xmin,
    )


def invert_region_180(region: Region) -> Region:
    """Region 좌표를 180° 복원하고 source_angle 표시"""
    if region.box_2d is not None:
        return region.model_copy(
            update={"box_2d": invert_rotation_180(region.box_2d), "source_angle": 180}
        )

    assert region.polygon is not None
    polygon = tuple(Point(x=1.0 - p.x, y=1.0 - p.y) for p in region.polygon)
    return region.model_copy(update={"polygon": polygon, "source_angle": 180})


def iou(box_a: Box2D, box_b: Box2D) -> float:
    """두 박스의 IoU (겹치지 않으면 0)"""
    iy1 = max(box_a.ymin, box_b.ymin)
    ix1 = max(box_a.xmin, box_b.xmin)
    iy2 = min(box_a.ymax, box_b.ymax)
    ix2 = min(box_a.xmax, box_b.xmax)

    if ix1 >= ix2 or iy1 >= iy2:
        return 0.0

    intersection = (ix2 - ix1) * (iy2 - iy1)
    union = box_a.area + box_b.area - intersection
    if union <= 0:
        return 0.0

    return intersection / union


def union_box(box_a: Box2D, box_b: Box2D) -> Box2D:
    """두 박스를 모두 포함하는 최소 박스"""
    return Box2D(
        ymin=min(box_a.ymin, box_b.ymin),
        xmin=min(box_a.xmin, box_b.xmin),
        ymax=max(box_a.ymax, box_b.ymax),
        xmax=max(box_a.xmax, box_b.xmax),
    )


def _merge_pass(regions: Sequence[Region], iou_threshold: float) -> list[Region]:
    merged: list[Region] = []
    clustered = [False] * len(regions)

    for i, seed in enumerate(regions):
        if clustered[i]:
            continue
        clustered[i] = True

        envelope = seed.bounds()
        members = [seed]
        for j in range(i + 1, len(regions)):
            if clustered[j]:
                continue
            candidate = regions[j].bounds()
            if iou(envelope, candidate) > iou_threshold:
                envelope = union_box(envelope, candidate)
                members.append(regions[j])
                clustered[j] = True

        if len(members) == 1:
            merged.append(seed)
        else:
            merged.append(
                seed.model_copy(
                    update={
                        "box_2d": envelope,
                        "polygon": None,
                        "confidence": max(m.confidence for m in members),
                    }
                )
            )

    return merged


def merge_overlapping(
    regions: Sequence[Region], iou_threshold: float = MERGE_IOU_THRESHOLD
) -> tuple[Region, ...]:
    """겹치는 영역을 합집합 박스로 병합 (greedy clustering)

    입력 순서대로 seed를 잡고, 커지는 envelope과 IoU가 threshold를 넘는
    이후 영역을 흡수. 병합 결과끼리 다시 겹칠 수 있으므로 더 이상
    병합이 일어나지 않을 때까지 반복 (재병합해도 결과가 변하지 않음).
    단독 클러스터는 원본 Region 그대로 유지.
    """
    current = list(regions)
    while True:
        merged = _merge_pass(current, iou_threshold)
        if len(merged) == len(current):
            return tuple(merged)
        current = merged


def dedupe_by_iou(
    regions: Sequence[Region], threshold: float = DEDUPE_IOU_THRESHOLD
) -> tuple[Region, ...]:
    """같은 객체의 중복 탐지 제거 (먼저 나온 영역의 박스 유지)"""
    kept: list[Region] = []
    for region in regions:
        bounds = region.bounds()
        if any(iou(bounds, k.bounds()) > threshold for k in kept):
            continue
        kept.append(region)
    return tuple(kept)


def sanitize_regions(regions: Sequence[Region]) -> tuple[Region, ...]:
    """면적 0인 영역 제거 (해당 영역만 버리고 나머지는 유지)"""
    valid: list[Region] = []
    for region in regions:
        if region.is_valid():
            valid.append(region)
        else:
            logger.warning(f"퇴화 영역 제거: brand={region.brand}, bounds={region.bounds()}")
    return tuple(valid)
