"""Expand header/body/footer zone layouts into drawable elements."""

import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

# Grid: header 20%, body 70%, footer 10% of the card height (mm).
HEADER_RATIO = 0.20
BODY_RATIO = 0.70
FOOTER_RATIO = 0.10

BAND_COLOR = "#dc2626"
TEXT_COLOR = "#000000"
PHOTO_BACKGROUND = "#e5e7eb"

PHOTO_WIDTH_MM = 25
PHOTO_HEIGHT_MM = 27.5
MAX_SECONDARY_FIELDS = 8

PRIMARY_FIELDS = {"studentname", "name", "admissionno", "classname", "class"}

# Normalised tag -> de-duplication key, so `class` and `className` count once.
FIELD_KEYS = {
    "studentname": "studentname",
    "name": "studentname",
    "admissionno": "admissionno",
    "classname": "classname",
    "class": "classname",
    "fathername": "fathername",
    "mothername": "mothername",
    "dob": "dob",
    "dateofbirth": "dob",
    "bloodgroup": "bloodgroup",
    "mobile": "mobile",
    "phone": "mobile",
    "address": "address",
}

FIELD_LABELS = {
    "studentname": "NAME",
    "name": "NAME",
    "admissionno": "ADM.",
    "classname": "CLASS",
    "class": "CLASS",
    "fathername": "F. NAME",
    "mothername": "M. NAME",
    "mobile": "Ph. No.",
    "phone": "Ph. No.",
    "dob": "D.O.B.",
    "dateofbirth": "D.O.B.",
    "address": "ADDRESS",
    "bloodgroup": "BLOOD GROUP",
}

INCH_TO_MM = 25.4


def normalize_field_tag(tag: str) -> str:
    return re.sub(r"\s+", "", tag.lower())


def field_label(tag: str) -> str:
    """Printed label for a tag, e.g. ``fatherName`` -> ``F. NAME``."""
    label = FIELD_LABELS.get(normalize_field_tag(tag))
    if label:
        return label
    if not tag:
        return tag
    return tag[0].upper() + re.sub(r"([A-Z])", r" \1", tag[1:])


def format_field_value(tag: str, value: Any) -> str:
    """Display string for a value; date fields print as DD/MM/YYYY."""
    if value is None or value == "":
        return ""

    if normalize_field_tag(tag) in ("dob", "dateofbirth"):
        if isinstance(value, (date, datetime)):
            return value.strftime("%d/%m/%Y")
        if isinstance(value, str) and "-" in value:
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%d/%m/%Y")
            except ValueError:
                pass

    return str(value)


def build_default_zones(data_tags: Iterable[str]) -> Dict[str, Any]:
    """
    Derive a zone layout from a template's data tags.

    Name, admission number and class become primary fields, everything
    else secondary; a photo tag enables the photo column.
    """
    primary: List[str] = []
    secondary: List[str] = []
    seen = set()
    has_photo = False

    for tag in data_tags:
        normalized = normalize_field_tag(tag)
        if normalized in ("photo", "photourl"):
            has_photo = True
            continue

        key = FIELD_KEYS.get(normalized, normalized)
        if key in seen:
            continue
        seen.add(key)

        if normalized in PRIMARY_FIELDS:
            primary.append(tag)
        else:
            secondary.append(tag)

    return {
        "header": {"enabled": True},
        "body": {
            "leftColumn": {"primaryFields": primary, "secondaryFields": secondary},
            "rightColumn": {"photo": {"enabled": has_photo}},
        },
        "footer": {"enabled": True},
    }


def _text(x: float, y: float, content: str, font_size: float, bold: bool = False, align: str = "left") -> Dict[str, Any]:
    return {
        "type": "text",
        "x": x,
        "y": y,
        "fontSize": font_size,
        "fontFamily": "Helvetica-Bold" if bold else "Helvetica",
        "color": TEXT_COLOR,
        "content": content,
        "align": align,
    }


def _rect(x: float, y: float, width: float, height: float, color: str) -> Dict[str, Any]:
    return {"type": "rectangle", "x": x, "y": y, "width": width, "height": height, "color": color}


def card_size_mm(layout_config: Mapping[str, Any]) -> tuple:
    width = float(layout_config.get("width") or 85.6)
    height = float(layout_config.get("height") or 53.98)
    unit = layout_config.get("unit") or "mm"
    if unit == "pt":
        return width / 2.83465, height / 2.83465
    if unit != "mm" and width < 100:
        # Legacy layouts stored inches.
        return width * INCH_TO_MM, height * INCH_TO_MM
    return width, height


def expand_zones(
    layout_config: Mapping[str, Any],
    data: Mapping[str, Any],
    data_tags: Optional[Iterable[str]] = None,
) -> List[Dict[str, Any]]:
    """
    Convert ``layout_config["zones"]`` into an element list in millimetres.

    Layouts with elements, or without zones, return their own elements
    unchanged. A zones value of ``"auto"`` is derived from ``data_tags``
    (or the data keys).
    """
    zones = layout_config.get("zones")
    if not zones or layout_config.get("elements"):
        return list(layout_config.get("elements") or [])
    if zones == "auto":
        zones = build_default_zones(data_tags if data_tags is not None else data.keys())

    width, height = card_size_mm(layout_config)
    header_height = height * HEADER_RATIO
    body_height = height * BODY_RATIO
    footer_height = height * FOOTER_RATIO

    elements: List[Dict[str, Any]] = []

    header = zones.get("header") or {}
    if header.get("enabled") is not False:
        elements.append(_rect(0, 0, width, header_height, BAND_COLOR))

        if data.get("schoolName"):
            elements.append(
                _text(width / 2, header_height * 0.3, str(data["schoolName"]).upper(), 7, bold=True, align="center")
            )

        address = str(data.get("schoolAddress") or "")
        if data.get("adminPhone"):
            address += f" Ph.: {data['adminPhone']}"
        address = address.strip()
        if address:
            elements.append(_text(width / 2, header_height * 0.65, address.upper(), 4.5, align="center"))

    body = zones.get("body")
    if body:
        body_y = header_height
        current_y = body_y + 3

        left = body.get("leftColumn") or {}
        for tag in left.get("primaryFields") or []:
            value = format_field_value(tag, data.get(tag))
            if not value:
                continue
            is_name = normalize_field_tag(tag) == "studentname"
            font_size = 4.5 if is_name else 3.5
            elements.append(_text(3, current_y, f"{field_label(tag)}: {value}", font_size, bold=is_name))
            current_y += font_size + 1.5

        for tag in (left.get("secondaryFields") or [])[:MAX_SECONDARY_FIELDS]:
            value = format_field_value(tag, data.get(tag))
            if not value:
                continue
            elements.append(_text(3, current_y, f"{field_label(tag)}: {value}", 3.5))
            current_y += 3.5 + 0.8

        photo = (body.get("rightColumn") or {}).get("photo") or {}
        if photo.get("enabled"):
            photo_x = width * 0.70
            photo_y = body_y + 1
            elements.append(_rect(photo_x, photo_y, PHOTO_WIDTH_MM, PHOTO_HEIGHT_MM, PHOTO_BACKGROUND))
            elements.append({
                "type": "image",
                "x": photo_x,
                "y": photo_y,
                "width": PHOTO_WIDTH_MM,
                "height": PHOTO_HEIGHT_MM,
                "content": data.get("photo") or data.get("photoUrl") or "",
            })

            session_name = data.get("session") or data.get("sessionName")
            if session_name:
                elements.append(
                    _text(
                        photo_x + PHOTO_WIDTH_MM / 2,
                        photo_y + PHOTO_HEIGHT_MM + 2,
                        f"SESSION : {session_name}",
                        3.5,
                        bold=True,
                        align="center",
                    )
                )

    footer = zones.get("footer") or {}
    if footer.get("enabled") is not False:
        footer_y = header_height + body_height
        elements.append(_rect(0, footer_y, width, footer_height, BAND_COLOR))
        if data.get("schoolEmail"):
            elements.append(
                _text(width / 2, footer_y + footer_height / 2, f"E-mail.: {data['schoolEmail']}", 3.5, align="center")
            )

    return elements


def expand_layout(
    layout_config: Mapping[str, Any],
    data: Mapping[str, Any],
    data_tags: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """Layout with zones replaced by millimetre elements; others pass through."""
    if not layout_config.get("zones") or layout_config.get("elements"):
        return dict(layout_config)

    width, height = card_size_mm(layout_config)
    return {
        "width": width,
        "height": height,
        "unit": "mm",
        "elements": expand_zones(layout_config, data, data_tags),
    }
