"""Pydantic v2 models for the parsed slide model.

This module defines the renderer-agnostic structures produced by the deck
parser. All measurements are in EMUs (English Metric Units) unless otherwise
specified. 1 inch = 914400 EMUs. Models serialise with camelCase aliases
(``model_dump(by_alias=True)``) for the slide editor.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ModelBase(BaseModel):
    """Immutable model with camelCase aliases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class AspectRatio(str, Enum):
    """Supported aspect ratio classifications."""

    WIDE = "16:9"
    STANDARD = "4:3"


class MediaKind(str, Enum):
    """Media classification by file extension."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


# ============================================================================
# Geometry Models
# ============================================================================


class Position(ModelBase):
    """Shape position in EMUs as read from an <a:xfrm>."""

    x: int = Field(default=0, description="Left position in EMUs")
    y: int = Field(default=0, description="Top position in EMUs")
    width: int = Field(default=0, ge=0, description="Width in EMUs")
    height: int = Field(default=0, ge=0, description="Height in EMUs")
    rotation: Optional[float] = Field(default=None, description="Rotation in degrees")

    def shifted(self, dx: int, dy: int) -> "Position":
        """Return a copy moved by (dx, dy)."""
        if not dx and not dy:
            return self
        return self.model_copy(update={"x": self.x + dx, "y": self.y + dy})


class Dimensions(ModelBase):
    """Slide size in EMUs."""

    width: int = Field(ge=0)
    height: int = Field(ge=0)


# ============================================================================
# Background Models
# ============================================================================


class SolidBackground(ModelBase):
    """Solid color background."""

    type: Literal["solid"] = "solid"
    color: str = Field(description="RGB hex color")


class ImageBackground(ModelBase):
    """Picture background."""

    type: Literal["image"] = "image"
    image_data: str = Field(description="Inline data URI")
    filename: str = Field(description="Source media filename")


Background = Annotated[
    Union[SolidBackground, ImageBackground],
    Field(discriminator="type"),
]


# ============================================================================
# Element Models
# ============================================================================


class PositionedElement(ModelBase):
    """Common geometry of every element placed on a slide."""

    id: str = Field(description="Slide-unique element identifier")
    x: int = Field(default=0)
    y: int = Field(default=0)
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    rotation: Optional[float] = Field(default=None, description="Rotation in degrees")


class ImageElement(PositionedElement):
    """Picture placed on a slide."""

    image_data: str = Field(description="Inline data URI")
    filename: str


class VideoElement(PositionedElement):
    """Embedded video."""

    video_data: str = Field(description="Inline data URI")
    filename: str
    mime_type: str


class AudioElement(PositionedElement):
    """Embedded audio clip."""

    audio_data: str = Field(description="Inline data URI")
    filename: str
    mime_type: str
    fallback_position: bool = Field(
        default=False,
        description="True when no transform was found and the fallback rectangle was used",
    )


class TextBoxElement(PositionedElement):
    """Rich text box; tables are flattened into this shape as well."""

    content: str = Field(description="Text with \\n line breaks and <b>/<i>/<span> markup")
    font_size: float
    font_family: str
    color: str
    bold: bool = False
    italic: bool = False
    align: Literal["left", "center", "right"] = "left"


# ============================================================================
# Theme & Color Models
# ============================================================================


class ThemeColors(BaseModel):
    """Ten-slot theme color palette; a slot is None when the theme omits it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Core colors
    dark1: Optional[str] = Field(default=None, alias="dk1")
    light1: Optional[str] = Field(default=None, alias="lt1")
    dark2: Optional[str] = Field(default=None, alias="dk2")
    light2: Optional[str] = Field(default=None, alias="lt2")

    # Accent colors
    accent1: Optional[str] = None
    accent2: Optional[str] = None
    accent3: Optional[str] = None
    accent4: Optional[str] = None
    accent5: Optional[str] = None
    accent6: Optional[str] = None

    # Font scheme (Latin typefaces)
    major_font: Optional[str] = None
    minor_font: Optional[str] = None

    def slot(self, name: str) -> Optional[str]:
        """Look up a slot by its XML name (``dk1``, ``accent3``, ...)."""
        field_name = THEME_SLOT_FIELDS.get(name)
        if field_name is None:
            return None
        return getattr(self, field_name)


# XML slot name -> ThemeColors attribute
THEME_SLOT_FIELDS = {
    "dk1": "dark1",
    "lt1": "light1",
    "dk2": "dark2",
    "lt2": "light2",
    "accent1": "accent1",
    "accent2": "accent2",
    "accent3": "accent3",
    "accent4": "accent4",
    "accent5": "accent5",
    "accent6": "accent6",
}


DEFAULT_THEME_COLORS = ThemeColors(
    dk1="#000000",
    lt1="#FFFFFF",
    dk2="#44546A",
    lt2="#E7E6E6",
    accent1="#4472C4",
    accent2="#ED7D31",
    accent3="#A5A5A5",
    accent4="#FFC000",
    accent5="#5B9BD5",
    accent6="#70AD47",
)


class ColorMap(BaseModel):
    """Semantic color key -> theme slot, read from a <p:clrMap>."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    background1: str = Field(default="lt1", alias="bg1")
    text1: str = Field(default="dk1", alias="tx1")
    background2: str = Field(default="lt2", alias="bg2")
    text2: str = Field(default="dk2", alias="tx2")
    accent1: str = "accent1"
    accent2: str = "accent2"
    accent3: str = "accent3"
    accent4: str = "accent4"
    accent5: str = "accent5"
    accent6: str = "accent6"
    hyperlink: str = Field(default="accent5", alias="hlink")
    followed_hyperlink: str = Field(default="accent6", alias="folHlink")

    def slot_for(self, key: str) -> str:
        """Map a scheme color key to a theme slot.

        Semantic keys (``bg1``, ``tx1``, ``hlink``...) go through the map;
        anything else is already a slot name and is returned unchanged.
        """
        for name, field in ColorMap.model_fields.items():
            if key == field.alias or key == name:
                return getattr(self, name)
        return key


# ============================================================================
# Slide & Presentation Models
# ============================================================================


class MasterDefaults(ModelBase):
    """Text formatting inherited from the slide master's text styles."""

    font_size: Optional[float] = None
    font_family: Optional[str] = None
    color: Optional[str] = None


class ParsedSlide(ModelBase):
    """A single parsed slide."""

    background: Optional[Background] = None
    images: list[ImageElement] = Field(default_factory=list)
    text_boxes: list[TextBoxElement] = Field(default_factory=list)
    videos: list[VideoElement] = Field(default_factory=list)
    audios: list[AudioElement] = Field(default_factory=list)
    width: int = Field(ge=0)
    height: int = Field(ge=0)


class ParsedPresentation(ModelBase):
    """Result of one import."""

    dimensions: Dimensions
    aspect_ratio: AspectRatio
    slides: list[ParsedSlide] = Field(default_factory=list)


class MediaBlob(ModelBase):
    """Raw media payload handed to the caller for upload."""

    blob: bytes
    mime_type: str
