"""Draw card layouts into PDF pages with reportlab."""

import io
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from reportlab.lib import colors
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from src.core.config import settings
from src.schemas.card import CardData
from src.services.zone_layout import expand_layout
from src.utils.template_tags import CONTEXT_TAGS, substitute_tags

logger = logging.getLogger(__name__)

MM_TO_PT = 2.83465

DEFAULT_FONT = "Helvetica"
DEFAULT_FONT_SIZE = 10

PHOTO_BORDER_COLOR = "#1d4ed8"
PHOTO_BORDER_WIDTH = 0.5
PHOTO_LABEL = "[Photo]"
PHOTO_LABEL_SIZE = 6
PHOTO_LABEL_COLOR = "#9ca3af"


class ElementSkipped(Exception):
    """Raised inside the renderer when one element cannot be drawn."""


def to_points(value: Any, unit: str) -> float:
    """Convert a layout length to PDF points."""
    value = float(value)
    return value * MM_TO_PT if unit == "mm" else value


def _color(value: Optional[str]) -> colors.Color:
    if not value:
        return colors.black
    try:
        return colors.toColor(value)
    except (ValueError, TypeError):
        logger.debug(f"Invalid colour {value!r}, using black")
        return colors.black


def _font(name: Optional[str]) -> str:
    if not name:
        return DEFAULT_FONT
    try:
        pdfmetrics.getFont(name)
    except Exception:
        logger.debug(f"Unknown font {name!r}, using {DEFAULT_FONT}")
        return DEFAULT_FONT
    return name


class PageGeometry:
    """Layout units to reportlab coordinates (origin bottom-left)."""

    def __init__(self, layout: Mapping[str, Any]):
        self.unit = layout.get("unit") or "mm"
        try:
            self.width = to_points(layout.get("width") or settings.CARD_DEFAULT_WIDTH_MM, self.unit)
            self.height = to_points(layout.get("height") or settings.CARD_DEFAULT_HEIGHT_MM, self.unit)
        except (TypeError, ValueError):
            self.width = 0
            self.height = 0

        if self.width <= 0 or self.height <= 0:
            logger.warning("Invalid page size in layout, using the default card size")
            self.unit = "mm"
            self.width = settings.CARD_DEFAULT_WIDTH_MM * MM_TO_PT
            self.height = settings.CARD_DEFAULT_HEIGHT_MM * MM_TO_PT

    @property
    def size(self) -> Tuple[float, float]:
        return self.width, self.height

    def length(self, element: Mapping[str, Any], key: str, required: bool = True) -> Optional[float]:
        value = element.get(key)
        if value is None:
            if required:
                raise ElementSkipped(f"missing {key}")
            return None
        try:
            return to_points(value, self.unit)
        except (TypeError, ValueError):
            raise ElementSkipped(f"non-numeric {key}")

    def top(self, y_pt: float) -> float:
        """Flip a top-down layout y into reportlab's bottom-up axis."""
        return self.height - y_pt


class PreparedPage:
    """An entry with its layout expanded and page geometry settled, ready to draw."""

    def __init__(self, entry: CardData, layout: Mapping[str, Any], geometry: PageGeometry):
        self.entry = entry
        self.layout = layout
        self.geometry = geometry

    @property
    def elements(self) -> List[Any]:
        return self.layout.get("elements") or []


class CardRenderer:
    """
    Interpret layout configs against data dictionaries.

    Every entry becomes one page of a single PDF document. A malformed
    element is skipped and logged; it never aborts the page or the
    entries after it.
    """

    def __init__(self, canvas_factory: Callable[..., canvas.Canvas] = canvas.Canvas):
        self.canvas_factory = canvas_factory
        self._drawers: Dict[str, Callable[..., None]] = {
            "text": self._draw_text,
            "image": self._draw_image,
            "rectangle": self._draw_rectangle,
            "line": self._draw_line,
        }

    def render(self, entries: Sequence[CardData]) -> bytes:
        """One page per entry, in input order; no entries gives empty bytes."""
        return self.render_pages([self.prepare_page(entry) for entry in entries])

    def prepare_page(self, entry: CardData) -> PreparedPage:
        """
        Expand zones and settle the page size for one entry.

        Raises when the layout itself is unusable, so callers rendering
        many entries can drop just this one before any page is drawn.
        """
        layout = expand_layout(entry.layout_config or {}, entry.data, self._declared_tags(entry))
        return PreparedPage(entry, layout, PageGeometry(layout))

    def render_pages(self, pages: Sequence[PreparedPage]) -> bytes:
        if not pages:
            return b""

        buffer = io.BytesIO()
        pdf = None

        for page_index, page in enumerate(pages):
            if pdf is None:
                pdf = self.canvas_factory(buffer, pagesize=page.geometry.size)
            else:
                pdf.setPageSize(page.geometry.size)

            self._draw_page(pdf, page.geometry, page.elements, page.entry, page_index)
            pdf.showPage()

        pdf.save()
        pdf_bytes = buffer.getvalue()
        buffer.close()

        return pdf_bytes

    def render_card(self, layout_config: Mapping[str, Any], data: Mapping[str, Any]) -> bytes:
        """Render a single layout with every data key allowed."""
        return self.render([CardData(layout_config=dict(layout_config), data=dict(data))])

    @staticmethod
    def _declared_tags(entry: CardData) -> Iterable[str]:
        if entry.allowed_tags is None:
            return entry.data.keys()
        return [tag for tag in entry.allowed_tags if tag not in CONTEXT_TAGS]

    def _draw_page(
        self,
        pdf: canvas.Canvas,
        geometry: PageGeometry,
        elements: List[Any],
        entry: CardData,
        page_index: int,
    ) -> None:
        for element_index, element in enumerate(elements):
            element_type = element.get("type") if isinstance(element, Mapping) else None
            try:
                drawer = self._drawers.get(element_type)
                if drawer is None:
                    raise ElementSkipped(f"unknown element type {element_type!r}")

                pdf.saveState()
                try:
                    drawer(pdf, geometry, element, entry)
                finally:
                    pdf.restoreState()
            except Exception as e:
                reason = str(e) if isinstance(e, ElementSkipped) else f"{type(e).__name__}: {e}"
                logger.warning(
                    "Skipped card element",
                    extra={
                        "event": "card.element_skipped",
                        "template_id": entry.template_id,
                        "page_index": page_index,
                        "element_index": element_index,
                        "element_type": element_type,
                        "reason": reason,
                    },
                )

    def _draw_text(self, pdf: canvas.Canvas, geometry: PageGeometry, element: Mapping[str, Any], entry: CardData) -> None:
        text = substitute_tags(element.get("content"), entry.data, entry.allowed_tags)
        if not text.strip():
            return

        x = geometry.length(element, "x")
        y = geometry.length(element, "y")
        width = geometry.length(element, "width", required=False)
        # fontSize is in points whatever the layout unit.
        font_size = float(element.get("fontSize") or DEFAULT_FONT_SIZE)

        pdf.setFont(_font(element.get("fontFamily")), font_size)
        pdf.setFillColor(_color(element.get("color")))

        baseline = geometry.top(y + font_size)
        align = element.get("align") or "left"

        if align == "center":
            pdf.drawCentredString(x + width / 2 if width else x, baseline, text)
        elif align == "right":
            pdf.drawRightString(x + width if width else x, baseline, text)
        else:
            pdf.drawString(x, baseline, text)

    def _draw_image(self, pdf: canvas.Canvas, geometry: PageGeometry, element: Mapping[str, Any], entry: CardData) -> None:
        # Photos are placeholders: a bordered box with a label, no decoding.
        x = geometry.length(element, "x")
        y = geometry.length(element, "y")
        width = geometry.length(element, "width")
        height = geometry.length(element, "height")

        pdf.setStrokeColor(_color(PHOTO_BORDER_COLOR))
        pdf.setLineWidth(PHOTO_BORDER_WIDTH)
        pdf.rect(x, geometry.top(y + height), width, height, stroke=1, fill=0)

        pdf.setFont(DEFAULT_FONT, PHOTO_LABEL_SIZE)
        pdf.setFillColor(_color(PHOTO_LABEL_COLOR))
        pdf.drawCentredString(x + width / 2, geometry.top(y + height / 2 + PHOTO_LABEL_SIZE / 2), PHOTO_LABEL)

    def _draw_rectangle(self, pdf: canvas.Canvas, geometry: PageGeometry, element: Mapping[str, Any], entry: CardData) -> None:
        x = geometry.length(element, "x")
        y = geometry.length(element, "y")
        width = geometry.length(element, "width")
        height = geometry.length(element, "height")

        pdf.setFillColor(_color(element.get("color")))
        pdf.rect(x, geometry.top(y + height), width, height, stroke=0, fill=1)

    def _draw_line(self, pdf: canvas.Canvas, geometry: PageGeometry, element: Mapping[str, Any], entry: CardData) -> None:
        x = geometry.length(element, "x")
        y = geometry.length(element, "y")
        width = geometry.length(element, "width")

        pdf.setStrokeColor(_color(element.get("color")))
        pdf.line(x, geometry.top(y), x + width, geometry.top(y))
