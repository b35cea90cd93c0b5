"""
Application Settings
===================

Batch rendering settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Optional, Dict, Any
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


DEFAULT_IMAGE_GROUPS: Dict[str, Dict[str, Any]] = {
    "product_main_src": {"container": ".product", "qty_field": "product_main_qty"},
    "gift_products_src": {"container": ".giftproducts", "qty_field": "gift_products_qty"},
}


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="Banner Batch", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[Path] = Field(
        default=None, description="Directory for rotating log files (console only when unset)"
    )

    # Browser Configuration
    playwright_headless: bool = Field(default=True, description="Run browser in headless mode")
    playwright_timeout: int = Field(default=30000, description="Playwright timeout in milliseconds")
    viewport_width: int = Field(default=1200, gt=0, description="Render viewport width")
    viewport_height: int = Field(default=1200, gt=0, description="Render viewport height")

    # Capture Configuration
    export_scale: float = Field(
        default=2.0, gt=0, le=4.0, description="Device scale factor used for exported PNGs"
    )
    preview_scale: float = Field(
        default=1.0, gt=0, le=4.0, description="Device scale factor used for previews"
    )
    export_selector: str = Field(
        default=".container", description="Export root; falls back to <body> when absent"
    )
    settle_delay_ms: int = Field(
        default=300, ge=0, description="Layout stabilization delay after binding"
    )
    font_wait_timeout_ms: int = Field(
        default=5000, ge=0, description="Upper bound for waiting on document.fonts.ready"
    )
    optimize_png: bool = Field(default=False, description="Re-encode captured PNGs with Pillow")
    background_color: str = Field(default="#ffffff", description="Page background behind banners")

    # Batch Configuration
    include_template_preview: bool = Field(
        default=False, description="Export the template preview record at index 0"
    )
    timestamp_format: str = Field(default="%Y%m%d%H%M", description="Batch timestamp format")
    archive_prefix: str = Field(default="banners", description="Archive filename prefix")

    # Binding Configuration
    price_decimal_separator: str = Field(
        default=".", min_length=1, max_length=1, description="Decimal separator for prices"
    )
    image_groups: Dict[str, Dict[str, Any]] = Field(
        default_factory=lambda: json.loads(json.dumps(DEFAULT_IMAGE_GROUPS)),
        description="Repeated image groups: field name -> {container, qty_field}",
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("image_groups", mode="before")
    @classmethod
    def parse_image_groups(cls, v: Any) -> Any:
        """Parse image groups from a JSON string."""
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator("image_groups")
    @classmethod
    def validate_image_groups(cls, v: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """Every group needs a container selector."""
        for name, group in v.items():
            if not group.get("container"):
                raise ValueError(f"Image group {name!r} has no container selector")
        return v

    @field_validator("log_dir")
    @classmethod
    def create_log_dir(cls, v: Optional[Path]) -> Optional[Path]:
        """Ensure the log directory exists."""
        if v is not None:
            v.mkdir(parents=True, exist_ok=True)
        return v

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="BANNER_BATCH_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
