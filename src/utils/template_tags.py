"""Data tag whitelist and ``{{tag}}`` substitution."""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from src.models.enums import TemplateType


# Tags a template of each type may declare. A layout can only ever see
# entity fields named here.
TAG_WHITELIST: Dict[str, List[str]] = {
    TemplateType.STUDENT.value: [
        "studentName",
        "admissionNo",
        "class",
        "className",
        "fatherName",
        "motherName",
        "dob",
        "dateOfBirth",
        "bloodGroup",
        "mobile",
        "phone",
        "address",
        "photo",
        "photoUrl",
        "aadhaar",
        "aadhar",
    ],
    TemplateType.TEACHER.value: [
        "name",
        "teacherName",
        "email",
        "mobile",
        "phone",
        "classId",
        "className",
        "schoolId",
        "schoolName",
        "photo",
        "photoUrl",
    ],
    TemplateType.SCHOOLADMIN.value: [
        "name",
        "adminName",
        "email",
        "username",
        "mobile",
        "phone",
        "schoolId",
        "schoolName",
        "photo",
        "photoUrl",
    ],
}

# Injected by the engine for every card, independent of data_tags.
CONTEXT_TAGS: Set[str] = {
    "schoolName",
    "schoolAddress",
    "schoolEmail",
    "adminPhone",
    "session",
    "sessionName",
}

# {{tagName}} with optional inner whitespace; anything inside braces counts
# as a token so malformed tokens are blanked too.
TAG_PATTERN = re.compile(r"\{\{([^{}]*)\}\}")


def get_allowed_tags(template_type: str) -> List[str]:
    """Whitelist for a template type (empty for unknown types)."""
    key = template_type.value if isinstance(template_type, TemplateType) else str(template_type)
    return list(TAG_WHITELIST.get(key, []))


def validate_template_tags(data_tags: Any, template_type: str) -> Dict[str, Any]:
    """
    Validate data tags for a template type.

    Returns:
        Dict with 'valid' (bool), 'invalid_tags' (list) and 'message' (str) keys
    """
    if not isinstance(data_tags, (list, tuple)):
        return {
            "valid": False,
            "invalid_tags": [],
            "message": "dataTags must be an array",
        }

    if len(data_tags) == 0:
        return {
            "valid": False,
            "invalid_tags": [],
            "message": "dataTags cannot be empty",
        }

    type_key = template_type.value if isinstance(template_type, TemplateType) else str(template_type)
    allowed = TAG_WHITELIST.get(type_key)
    if allowed is None:
        return {
            "valid": False,
            "invalid_tags": list(data_tags),
            "message": f"Unknown template type: {type_key}",
        }

    invalid_tags = [tag for tag in data_tags if tag not in allowed]
    if invalid_tags:
        return {
            "valid": False,
            "invalid_tags": invalid_tags,
            "message": (
                f"Invalid tags for {type_key} template: {', '.join(map(str, invalid_tags))}. "
                f"Allowed tags: {', '.join(allowed)}"
            ),
        }

    return {
        "valid": True,
        "invalid_tags": [],
        "message": "All tags are valid",
    }


def normalize_tags(data_tags: Iterable[str]) -> List[str]:
    """Strip and de-duplicate while keeping first-seen order."""
    seen: Set[str] = set()
    result: List[str] = []
    for tag in data_tags:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


def extract_tags(content: Optional[str]) -> List[str]:
    """Tag names referenced by a piece of layout text."""
    if not content:
        return []
    return normalize_tags(match.group(1).strip() for match in TAG_PATTERN.finditer(content))


def substitute_tags(
    content: Optional[str],
    data: Mapping[str, Any],
    allowed: Optional[Iterable[str]] = None,
) -> str:
    """
    Replace ``{{tag}}`` tokens with values from ``data``.

    Tokens with no key in ``data`` (or a None value) become an empty string,
    never literal braces. When ``allowed`` is given, tokens outside it are
    blanked even if ``data`` happens to carry the key.
    """
    if not content:
        return ""

    allowed_set = set(allowed) if allowed is not None else None

    def replace_func(match: "re.Match[str]") -> str:
        tag = match.group(1).strip()
        if allowed_set is not None and tag not in allowed_set:
            return ""
        value = data.get(tag)
        return "" if value is None else str(value)

    return TAG_PATTERN.sub(replace_func, str(content))
