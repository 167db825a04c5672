"""
Edit controllers: turn selections on the live preview into overlay store mutations.
"""

from .base_editor import BaseEditor, EditorSelectionError
from .container_editor import ContainerEditor
from .element_editor import ElementEditor
from .image_editor import ImageEditor
from .section_editor import SectionEditor
from .text_editor import TextEditor

__all__ = [
    "BaseEditor",
    "EditorSelectionError",
    "TextEditor",
    "ImageEditor",
    "ContainerEditor",
    "SectionEditor",
    "ElementEditor",
]
