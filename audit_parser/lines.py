"""
Line Reconstructor
==================
Groups positioned text fragments into reading-order lines.

Fragments whose Y coordinates fall in the same quantized band on the same
page form one line; within a line fragments are ordered left to right.
Lines come out page by page, top to bottom, regardless of the order the
fragments arrived in.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Iterable, Sequence

from .models import Fragment, Line

logger = logging.getLogger(__name__)

# Height of one vertical band; absorbs sub-pixel baseline jitter
BAND_WIDTH = 5


def quantize_y(y: float, band_width: float = BAND_WIDTH) -> float:
    """Snap Y to the nearest multiple of the band width (halves round up)."""
    return math.floor(y / band_width + 0.5) * band_width


def reconstruct_lines(
    pages: Sequence[Iterable[Fragment]],
    band_width: float = BAND_WIDTH,
) -> list[Line]:
    """
    Build the ordered line sequence for a whole document.

    Args:
        pages: One iterable of fragments per page, in document order.
        band_width: Vertical band height used to merge fragments.

    Returns:
        Lines in (page, y) order with page numbers starting at 1.
    """
    lines: list[Line] = []

    for page_idx, fragments in enumerate(pages):
        bands: dict[float, list[Fragment]] = defaultdict(list)
        for fragment in fragments:
            if not fragment.text.strip():
                continue
            bands[quantize_y(fragment.y, band_width)].append(fragment)

        for y_key in sorted(bands):
            row = sorted(bands[y_key], key=lambda f: f.x)
            text = " ".join(f.text.strip() for f in row).strip()
            if text:
                lines.append(Line(
                    text=text,
                    page=page_idx + 1,
                    y=y_key,
                    fragments=row,
                ))

    logger.debug(f"Reconstructed {len(lines)} lines from {len(pages)} pages")
    return lines


def full_text(lines: Sequence[Line]) -> str:
    """Newline-joined line texts in reading order."""
    return "\n".join(line.text for line in lines)
