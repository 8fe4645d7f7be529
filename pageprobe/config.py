"""Configuration management for pageprobe."""

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CaptureMode(str, Enum):
    """Screenshot modes for page-level captures."""
    FULL_PAGE = "fullPage"
    VIEWPORT = "viewport"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PAGEPROBE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    output_dir: str = Field("./inspection-output", description="Directory for inspection artifacts")
    screenshot_dir_name: str = Field("screenshots", description="Sub-directory for captured PNGs")

    # Capture
    default_padding: int = Field(0, ge=0, description="Default padding around element captures in CSS px")
    element_padding: int = Field(10, ge=0, description="Padding used for the element close-up during inspect")
    default_zoom: float = Field(1.0, gt=0, description="Default zoom factor for captures")
    inspect_zoom: float = Field(2.0, gt=0, description="Zoom factor for zoomed inspection captures")
    highlight_color: str = Field("#FF0000", description="Outline color for highlighted element captures")
    highlight_width: int = Field(3, ge=1, description="Outline width in image pixels for highlighted captures")

    # Measurement
    alignment_tolerance: float = Field(0.5, ge=0, description="Max edge offset in CSS px for two elements to count as aligned")

    # Interaction timing
    capture_delay_ms: int = Field(500, ge=0, description="Settle time after each action step")
    scroll_settle_ms: int = Field(300, ge=0, description="Settle time after scrolling into view")
    default_wait_ms: int = Field(1000, ge=0, description="Duration of a wait step without explicit duration")

    # WCAG thresholds
    wcag_aa_ratio: float = Field(4.5, description="WCAG AA minimum ratio for normal text")
    wcag_aaa_ratio: float = Field(7.0, description="WCAG AAA minimum ratio for normal text")
    large_text_aa_ratio: float = Field(3.0, description="WCAG AA minimum ratio for large text")
    large_text_aaa_ratio: float = Field(4.5, description="WCAG AAA minimum ratio for large text")
    fallback_background: str = Field("#FFFFFF", description="Background assumed when no opaque ancestor exists")

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Emit logs as JSON")


@lru_cache
def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
