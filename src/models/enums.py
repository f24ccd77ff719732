"""Enums shared by models, schemas and the rendering engine."""

from enum import Enum


class TemplateType(str, Enum):
    """Entity kind a card template is designed for."""
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    SCHOOLADMIN = "SCHOOLADMIN"

    @classmethod
    def get_all_values(cls):
        """Get all type values as list."""
        return [item.value for item in cls]

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in cls.get_all_values()


class LayoutUnit(str, Enum):
    """Unit used by a layout's geometry."""
    MM = "mm"
    PT = "pt"


class ElementType(str, Enum):
    """Drawable element kinds."""
    TEXT = "text"
    IMAGE = "image"
    RECTANGLE = "rectangle"
    LINE = "line"


class BatchMode(str, Enum):
    """Packaging for multi-card output."""
    COMBINED = "combined"
    ARCHIVE = "archive"


class AuditStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
