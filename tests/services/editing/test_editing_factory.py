"""Editing 팩토리 테스트"""

from unittest.mock import patch

import pytest

from src.schemas.pipeline import Strategy
from src.services.editing import get_editors, set_editors
from src.services.editing.clipdrop import ClipDropInpainting
from src.services.editing.gemini import GeminiImageEditor
from src.services.editing.iopaint import IOPaintInpainting
from src.services.editing.occlusion import OcclusionEditor
from src.services.editing.pixelation import PixelationEditor
from src.services.editing.qwen import QwenImageEditor

FACTORY_SETTINGS = "src.services.editing.get_settings"


class TestGetEditors:
    def setup_method(self) -> None:
        set_editors(None)

    def teardown_method(self) -> None:
        set_editors(None)

    def test_default_editors(self) -> None:
        editors = get_editors()

        assert isinstance(editors[Strategy.CONTENT_AWARE], GeminiImageEditor)
        assert isinstance(editors[Strategy.MASK_GUIDED], ClipDropInpainting)
        assert isinstance(editors[Strategy.OCCLUSION], OcclusionEditor)
        assert isinstance(editors[Strategy.PIXELATION], PixelationEditor)

    def test_returns_cached_instance(self) -> None:
        assert get_editors() is get_editors()

    def test_qwen_and_iopaint(self) -> None:
        with patch(FACTORY_SETTINGS) as mock_settings:
            mock_settings.return_value.content_aware_provider = "qwen"
            mock_settings.return_value.mask_guided_provider = "iopaint"
            mock_settings.return_value.occlusion_padding_px = 20
            mock_settings.return_value.provider_timeout = 30
            editors = get_editors()

        assert isinstance(editors[Strategy.CONTENT_AWARE], QwenImageEditor)
        assert isinstance(editors[Strategy.MASK_GUIDED], IOPaintInpainting)

    def test_mask_guided_disabled(self) -> None:
        with patch(FACTORY_SETTINGS) as mock_settings:
            mock_settings.return_value.content_aware_provider = "gemini"
            mock_settings.return_value.mask_guided_provider = "none"
            mock_settings.return_value.occlusion_padding_px = 20
            editors = get_editors()

        assert Strategy.MASK_GUIDED not in editors
        assert Strategy.OCCLUSION in editors

    def test_unknown_content_aware_provider_raises(self) -> None:
        with patch(FACTORY_SETTINGS) as mock_settings:
            mock_settings.return_value.content_aware_provider = "unknown"
            with pytest.raises(ValueError, match="Unknown content-aware provider"):
                get_editors()

    def test_set_editors_overrides_factory(self) -> None:
        custom = {Strategy.OCCLUSION: OcclusionEditor()}
        set_editors(custom)  # type: ignore[arg-type]
        assert get_editors() is custom
