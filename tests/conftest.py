"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides test settings, sample templates, asset bundles and a fake rasterizer.
"""

from typing import Callable

import pytest
from pydantic_settings import SettingsConfigDict

from banner_batch.config.settings import Settings
from banner_batch.core.assets.bundle import AssetBundle
from banner_batch.core.rendering.render_target import RenderTarget
from banner_batch.core.template.loader import BannerTemplate, load_template
from banner_batch.models.schemas import ArchiveEntry

from tests.utils.data_generators import TemplateGenerator
from tests.utils.mocks import FakeRasterizer


# Test settings override
class TestSettings(Settings):
    """Test-specific settings."""

    environment: str = "testing"
    debug: bool = True
    log_level: str = "DEBUG"
    settle_delay_ms: int = 0
    font_wait_timeout_ms: int = 100
    include_template_preview: bool = False

    model_config = SettingsConfigDict(env_file=".env.test", env_prefix="BANNER_BATCH_")


@pytest.fixture(autouse=True)
def test_settings(monkeypatch: pytest.MonkeyPatch) -> TestSettings:
    """Fresh test settings installed as the global settings instance."""
    settings = TestSettings()
    monkeypatch.setattr("banner_batch.config.settings.settings", settings)
    return settings


@pytest.fixture
def make_template() -> Callable[..., BannerTemplate]:
    """Factory building a template from markup."""

    def factory(markup: str, stylesheet: str = "", name: str = "test.html") -> BannerTemplate:
        return load_template(markup, stylesheet or None, name=name)

    return factory


@pytest.fixture
def simple_template() -> BannerTemplate:
    return load_template(TemplateGenerator.simple(), name="simple.html")


@pytest.fixture
def full_template() -> BannerTemplate:
    return load_template(TemplateGenerator.full(), name="full.html")


@pytest.fixture
def asset_bundle() -> AssetBundle:
    """Bundle holding p1.png and a nested image."""
    return AssetBundle.from_entries(
        [
            ArchiveEntry(path="p1.png", content=b"p1-bytes"),
            ArchiveEntry(path="img/nested.png", content=b"nested-bytes"),
        ]
    )


@pytest.fixture
def make_target() -> Callable[..., RenderTarget]:
    def factory(template: BannerTemplate, bundle: AssetBundle = None) -> RenderTarget:
        return RenderTarget(template, bundle)

    return factory


@pytest.fixture
def fake_rasterizer() -> FakeRasterizer:
    return FakeRasterizer()
