"""
Plain data types shared by the field registry, the session and the stamper.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from typing import Dict

# One record of tabular input, keyed by column header. Key order is the
# column order of the source file.
Row = Dict[str, str]


@dataclass(frozen=True)
class TemplateField:
    """A named anchor on the template's first page.

    `x` and `y` are percentages (0-100) of the rendered page width/height,
    measured from the top-left corner, so they are independent of zoom.
    """

    x: float
    y: float
    field_name: str

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class PageBox:
    """Bounding box of the rendered page, in pixels, top-left origin."""

    left: float
    top: float
    width: float
    height: float


@dataclass
class GeneratedDocument:
    filename: str
    data: bytes
    pdf_id: str = ""
    generated_at: str = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc).isoformat())

    def metadata(self) -> Dict:
        return {
            "pdf_id": self.pdf_id,
            "filename": self.filename,
            "generated_at": self.generated_at,
            "bytes": len(self.data),
        }
