"""Models initialization."""

from .base import BaseModel
from .enums import TemplateType, LayoutUnit, ElementType, BatchMode, AuditStatus
from .template import CardTemplate
from .audit_log import AuditLog

__all__ = [
    # Base class
    "BaseModel",

    # Enums
    "TemplateType",
    "LayoutUnit",
    "ElementType",
    "BatchMode",
    "AuditStatus",

    # Tables
    "CardTemplate",
    "AuditLog",
]

# Importing this package registers every table on SQLModel.metadata so that
# SQLModel.metadata.create_all() creates:
# - card_templates
# - audit_logs
