"""
Field registry: turns clicks on the displayed template page into
resolution-independent field bindings.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .models import PageBox, TemplateField

logger = logging.getLogger(__name__)


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


class FieldRegistry:
    """Ordered, append-only list of template fields for one session."""

    def __init__(self) -> None:
        self._fields: List[TemplateField] = []

    def __len__(self) -> int:
        return len(self._fields)

    def __bool__(self) -> bool:
        return bool(self._fields)

    def add_field(
        self,
        click: Tuple[float, float],
        box: PageBox,
        field_name: Optional[str],
        template_mode: bool = True,
    ) -> Optional[TemplateField]:
        """
        Record a click on the page as a field binding.

        Args:
            click: (x, y) pointer position in pixels, same frame as `box`.
            box: bounding box of the rendered page.
            field_name: name entered by the user; should match a column header.
            template_mode: clicks outside template mode are ignored.

        Returns:
            The new field, or None if the click was ignored (not in template
            mode, empty name, or a degenerate page box).
        """
        if not template_mode:
            return None
        if not field_name:
            logger.debug("Ignoring click at %s: no field name given", click)
            return None
        if box.width <= 0 or box.height <= 0:
            logger.warning("Ignoring click at %s: page box has no area (%s)", click, box)
            return None

        click_x, click_y = click
        x = _clamp_percent((click_x - box.left) / box.width * 100)
        y = _clamp_percent((click_y - box.top) / box.height * 100)

        new_field = TemplateField(x=x, y=y, field_name=field_name)
        self._fields.append(new_field)
        logger.info("Added field '%s' at (%.2f%%, %.2f%%)", field_name, x, y)
        return new_field

    def list_fields(self) -> List[TemplateField]:
        # copy so callers cannot reorder the registry
        return list(self._fields)

    def remove_field(self, index: int) -> TemplateField:
        removed = self._fields.pop(index)
        logger.info("Removed field '%s' (index %d)", removed.field_name, index)
        return removed

    def clear(self) -> None:
        self._fields.clear()
