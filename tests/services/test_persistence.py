import fakeredis
import numpy as np

from src.constants import TTL, RedisPrefix
from src.infra.storage.local import LocalStorage
from src.schemas.pipeline import (
    PipelineResult,
    PipelineState,
    PipelineStatus,
    RemediationAttempt,
    Strategy,
)
from src.services.imaging import decode_image
from src.services.persistence import (
    RedisPersistence,
    get_persistence,
    load_record,
    result_paths,
    set_persistence,
)


def _masked_result() -> PipelineResult:
    image = np.full((20, 30, 3), 60, dtype=np.uint8)
    mask = np.zeros((20, 30), dtype=np.uint8)
    mask[5:10, 5:10] = 255
    return PipelineResult(
        run_id="abcd1234",
        status=PipelineStatus.MASKED,
        final_image=image,
        brands_detected=("Nike",),
        risk_score=35,
        mask=mask,
        last_strategy=Strategy.OCCLUSION,
        attempts=(
            RemediationAttempt(
                strategy=Strategy.CONTENT_AWARE,
                input_image=image,
                output_image=image,
                structural_valid=False,
            ),
            RemediationAttempt(strategy=Strategy.OCCLUSION, input_image=image, output_image=image),
        ),
        states=(PipelineState.INIT, PipelineState.DONE),
        detection_passes=2,
    )


def _failed_result() -> PipelineResult:
    return PipelineResult(
        run_id="ffff0000",
        status=PipelineStatus.FAILED,
        final_image=None,
        error="가릴 영역 없음",
        error_kind="unrecoverable",
        states=(PipelineState.INIT, PipelineState.FAILED),
    )


class TestRedisPersistence:
    def test_saves_images_and_record(
        self, fake_redis: fakeredis.FakeRedis, local_storage: LocalStorage
    ) -> None:
        RedisPersistence(storage=local_storage).save("sku-1", _masked_result())

        image_rel, mask_rel = result_paths("sku-1")
        assert local_storage.exists(image_rel)
        assert local_storage.exists(mask_rel)
        assert decode_image(local_storage.read_bytes(image_rel)).shape == (20, 30, 3)

        record = load_record("sku-1")
        assert record is not None
        assert record.status == PipelineStatus.MASKED
        assert record.risk_score == 35
        assert record.image_path == image_rel
        assert record.mask_path == mask_rel
        assert record.detection_passes == 2
        assert record.states == ["init", "done"]
        assert [a.strategy for a in record.attempts] == [
            Strategy.CONTENT_AWARE,
            Strategy.OCCLUSION,
        ]
        assert record.attempts[0].structural_valid is False
        assert record.saved_at.endswith("Z")

    def test_record_has_ttl(
        self, fake_redis: fakeredis.FakeRedis, local_storage: LocalStorage
    ) -> None:
        RedisPersistence(storage=local_storage).save("sku-1", _masked_result())

        ttl = fake_redis.ttl(f"{RedisPrefix.RESULT}:sku-1")
        assert 0 < ttl <= TTL.DATA

    def test_failed_result_has_no_images(
        self, fake_redis: fakeredis.FakeRedis, local_storage: LocalStorage
    ) -> None:
        RedisPersistence(storage=local_storage).save("sku-2", _failed_result())

        image_rel, mask_rel = result_paths("sku-2")
        assert not local_storage.exists(image_rel)
        assert not local_storage.exists(mask_rel)

        record = load_record("sku-2")
        assert record is not None
        assert record.status == PipelineStatus.FAILED
        assert record.error_kind == "unrecoverable"
        assert record.image_path is None

    def test_load_missing_returns_none(self, fake_redis: fakeredis.FakeRedis) -> None:
        assert load_record("nope") is None


class TestGetPersistence:
    def setup_method(self) -> None:
        set_persistence(None)

    def teardown_method(self) -> None:
        set_persistence(None)

    def test_default_is_redis(self) -> None:
        assert isinstance(get_persistence(), RedisPersistence)

    def test_returns_cached_instance(self) -> None:
        assert get_persistence() is get_persistence()
