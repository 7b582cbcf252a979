import tempfile
from collections.abc import Generator, Sequence
from io import BytesIO
from pathlib import Path

import fakeredis
import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from src.infra.redis import set_redis
from src.infra.storage import set_storage
from src.infra.storage.local import LocalStorage
from src.main import app
from src.schemas.pipeline import (
    Box2D,
    DetectionResult,
    PipelineResult,
    Region,
    VerificationResult,
)
from src.services.editing import EditHint
from src.services.retry import RetryPolicy


def make_test_image(width: int = 800, height: int = 1200, fmt: str = "JPEG") -> BytesIO:
    """테스트용 실제 이미지 바이트 생성"""
    img = Image.new("RGB", (width, height), color="red")
    buf = BytesIO()
    img.save(buf, format=fmt)
    buf.seek(0)
    return buf


def make_product_image(width: int = 400, height: int = 300) -> np.ndarray:
    """회색 배경 + 흰 사각형 '로고'가 있는 RGB 이미지"""
    image = np.full((height, width, 3), 60, dtype=np.uint8)
    image[100:150, 150:250] = 255
    return image


def box_region(
    ymin: int, xmin: int, ymax: int, xmax: int, brand: str = "Nike", confidence: int = 90
) -> Region:
    return Region(
        brand=brand,
        confidence=confidence,
        box_2d=Box2D(ymin=ymin, xmin=xmin, ymax=ymax, xmax=xmax),
    )


# --- 파이프라인 fake capability ---


class FakeDetector:
    """호출 순서대로 결과(또는 예외)를 반환하는 detector"""

    def __init__(self, *results: DetectionResult | Exception) -> None:
        self.results = list(results)
        self.calls = 0

    def detect(self, image: np.ndarray) -> DetectionResult:
        self.calls += 1
        result = self.results[min(self.calls, len(self.results)) - 1]
        if isinstance(result, Exception):
            raise result
        return result


class FakeEditor:
    """정해진 변환(subtle | destructive | identity)을 적용하거나 예외를 던지는 editor"""

    def __init__(
        self,
        transform: str = "subtle",
        error: Exception | None = None,
    ) -> None:
        self.transform = transform
        self.error = error
        self.calls: list[EditHint] = []

    def edit(self, image: np.ndarray, hint: EditHint, brands: Sequence[str]) -> np.ndarray:
        self.calls.append(hint)
        if self.error is not None:
            raise self.error

        result = image.copy()
        if self.transform == "subtle":
            # 로고 영역만 배경색으로 채움
            result[100:150, 150:250] = 60
        elif self.transform == "destructive":
            result = 255 - result
        return result


class FakeVerifier:
    def __init__(self, *results: VerificationResult | Exception) -> None:
        self.results = list(results)
        self.calls = 0

    def verify(self, image: np.ndarray, brands: Sequence[str]) -> VerificationResult:
        self.calls += 1
        result = self.results[min(self.calls, len(self.results)) - 1]
        if isinstance(result, Exception):
            raise result
        return result


class RecordingPersistence:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.saved: list[tuple[str, PipelineResult]] = []

    def save(self, product_id: str, result: PipelineResult) -> None:
        self.saved.append((product_id, result))
        if self.error is not None:
            raise self.error


def no_wait_retry(max_retries: int = 2) -> RetryPolicy:
    return RetryPolicy(max_retries=max_retries, initial_delay=0.0, max_delay=0.0)


@pytest.fixture
def product_image() -> np.ndarray:
    return make_product_image()


@pytest.fixture
def temp_upload_dir() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def local_storage(temp_upload_dir: Path) -> LocalStorage:
    return LocalStorage(base_dir=temp_upload_dir, base_url="/static")


@pytest.fixture
def fake_redis() -> Generator[fakeredis.FakeRedis, None, None]:
    r = fakeredis.FakeRedis(decode_responses=True)
    set_redis(r)
    yield r
    set_redis(None)


@pytest.fixture
def client(
    temp_upload_dir: Path, fake_redis: fakeredis.FakeRedis
) -> Generator[TestClient, None, None]:
    storage = LocalStorage(base_dir=temp_upload_dir, base_url="http://localhost:8000/static")
    set_storage(storage)
    yield TestClient(app)
    set_storage(None)
