"""Deck parser module - converts presentation archives into the slide model.

This module provides extraction of a deck archive into renderer-agnostic
slides including:
- Backgrounds inherited through slide, layout and master
- Images, videos and audio with positions in EMUs
- Rich text boxes with merged run markup
- Tables flattened into pipe-delimited text
- Theme colors resolved through the color map
"""

from deckimport.parser.archive import ArchiveReader
from deckimport.parser.color_map import ColorMapResolver
from deckimport.parser.media_extractor import MediaExtractor
from deckimport.parser.presentation import PresentationParser
from deckimport.parser.relationships import RelationshipResolver
from deckimport.parser.slide_parser import SlideParser
from deckimport.parser.style_extractor import StyleExtractor
from deckimport.parser.text_formatter import TextRunFormatter
from deckimport.parser.theme_parser import ThemeParser, apply_luminance
from deckimport.parser.transform_parser import TransformParser

__all__ = [
    "ArchiveReader",
    "ColorMapResolver",
    "MediaExtractor",
    "PresentationParser",
    "RelationshipResolver",
    "SlideParser",
    "StyleExtractor",
    "TextRunFormatter",
    "ThemeParser",
    "TransformParser",
    "apply_luminance",
]
