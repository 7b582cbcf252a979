"""이미지 변환 공통 유틸리티

파이프라인 내부 이미지는 모두 RGB uint8 numpy 배열이며,
단계 간 전달 시 읽기 전용으로 고정 (in-place 수정 금지).
"""

import base64
import io

import cv2
import numpy as np
from PIL import Image

MAX_IMAGE_DIMENSION = 2048


class ImageDecodeError(ValueError):
    pass


def freeze(image: np.ndarray) -> np.ndarray:
    """읽기 전용 사본 반환 (이미 읽기 전용이면 그대로)"""
    if not image.flags.writeable:
        return image
    frozen = image.copy()
    frozen.flags.writeable = False
    return frozen


def to_rgb(image: np.ndarray) -> np.ndarray:
    """RGB/RGBA/Grayscale 이미지를 RGB로 변환"""
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)
    if len(image.shape) == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    if image.shape[2] == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2RGB)
    return image


def decode_image(data: bytes) -> np.ndarray:
    """이미지 바이트 → RGB numpy 배열

    Raises:
        ImageDecodeError: 디코딩 실패
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            return np.array(img.convert("RGB"))
    except Exception as e:
        raise ImageDecodeError(f"이미지 디코딩 실패: {e}") from e


def encode_png(image: np.ndarray) -> bytes:
    """numpy 배열 → PNG 바이트"""
    img_pil = Image.fromarray(np.ascontiguousarray(image))
    buffer = io.BytesIO()
    img_pil.save(buffer, format="PNG")
    return buffer.getvalue()


def to_base64(image: np.ndarray) -> str:
    """numpy 배열 → base64 PNG 문자열"""
    return base64.b64encode(encode_png(image)).decode()


def rotate_180(image: np.ndarray) -> np.ndarray:
    return freeze(cv2.rotate(image, cv2.ROTATE_180))


def normalize_image(image: np.ndarray, max_dimension: int = MAX_IMAGE_DIMENSION) -> np.ndarray:
    """RGB 변환 + 긴 변을 max_dimension 이하로 축소 (비율 유지)"""
    if image.size == 0:
        raise ImageDecodeError("빈 이미지입니다")

    rgb = to_rgb(image)
    h, w = rgb.shape[:2]
    longest = max(h, w)

    if longest > max_dimension:
        scale = max_dimension / longest
        size = (max(1, round(w * scale)), max(1, round(h * scale)))
        rgb = cv2.resize(rgb, size, interpolation=cv2.INTER_AREA)

    return freeze(rgb)


def ensure_size(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """편집 결과를 작업 크기로 맞춤 (생성형 편집기는 해상도를 바꿀 수 있음)"""
    rgb = to_rgb(image)
    if rgb.shape[:2] != (height, width):
        rgb = cv2.resize(rgb, (width, height), interpolation=cv2.INTER_LANCZOS4)
    return freeze(rgb)
