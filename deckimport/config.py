"""Parser configuration.

Uses pydantic-settings so every default can be overridden through
``DECKIMPORT_*`` environment variables or a ``.env`` file.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ParserSettings(BaseSettings):
    """Settings for one presentation parser."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DECKIMPORT_",
        extra="ignore",
    )

    # Used when presentation.xml has no usable <p:sldSz>
    default_slide_width: int = 9144000
    default_slide_height: int = 5143500

    default_theme: str = "theme1"
    max_theme_parts: int = Field(default=50, ge=1)
    media_dir: str = "ppt/media/"

    # Last resort text formatting
    fallback_font_size: float = 24
    fallback_font_family: str = "Arial"
    fallback_color: str = "#000000"

    # Audio elements whose position cannot be found are parked off-slide
    audio_fallback_x: int = -914400
    audio_fallback_y: int = 0
    audio_fallback_width: int = Field(default=457200, ge=0)
    audio_fallback_height: int = Field(default=457200, ge=0)


@lru_cache()
def get_settings() -> ParserSettings:
    """Get cached settings instance."""
    return ParserSettings()
