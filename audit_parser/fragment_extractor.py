"""
Fragment Extractor
==================
Reads positioned text fragments from PDF pages using PyMuPDF (fitz).

Each text span becomes one Fragment: its origin gives X and the baseline Y
(PyMuPDF coordinates are already top-left origin), its bounding box gives
width and height. Pages are read one at a time, in document order.
"""

from __future__ import annotations

import logging
from typing import Optional

import fitz  # PyMuPDF

from .models import Fragment

logger = logging.getLogger(__name__)


class DocumentReadError(Exception):
    """The source document could not be opened or its text not read."""


class FragmentExtractor:
    """
    Handles PDF ingestion and span-level text extraction.

    The extraction engine only ever sees the fragment lists produced here;
    a malformed PDF is reported as DocumentReadError before that.
    """

    def get_page_count(self, pdf_path: str) -> int:
        """Get total number of pages in the PDF."""
        try:
            with fitz.open(pdf_path) as doc:
                return doc.page_count
        except Exception as e:
            raise DocumentReadError(f"Cannot open {pdf_path}: {e}") from e

    def extract(
        self,
        pdf_path: str,
        page_range: Optional[tuple[int, int]] = None,
        progress_callback: Optional[callable] = None,
    ) -> list[list[Fragment]]:
        """
        Extract the fragments of every page.

        Args:
            pdf_path: Path to the PDF file.
            page_range: Optional (start, end) range (1-indexed, inclusive).
            progress_callback: Optional callable(current, total).

        Returns:
            One list of fragments per page, pages in document order.

        Raises:
            DocumentReadError: If the PDF cannot be opened or read.
        """
        try:
            doc = fitz.open(pdf_path)
        except Exception as e:
            raise DocumentReadError(f"Cannot open {pdf_path}: {e}") from e

        pages: list[list[Fragment]] = []
        with doc:
            total_pages = doc.page_count

            start_page = 1
            end_page = total_pages
            if page_range:
                start_page = max(1, page_range[0])
                end_page = min(total_pages, page_range[1])

            logger.info(
                f"Extracting fragments from {pdf_path} "
                f"(pages {start_page} to {end_page})"
            )

            for page_idx in range(start_page - 1, end_page):
                try:
                    page_dict = doc[page_idx].get_text("dict")
                except Exception as e:
                    raise DocumentReadError(
                        f"Cannot read page {page_idx + 1} of {pdf_path}: {e}"
                    ) from e

                pages.append(self._page_fragments(page_dict))

                if progress_callback:
                    progress_callback(
                        page_idx - start_page + 2, end_page - start_page + 1
                    )

        logger.info(
            f"Extracted {sum(len(p) for p in pages)} fragments "
            f"from {len(pages)} pages"
        )
        return pages

    def _page_fragments(self, page_dict: dict) -> list[Fragment]:
        """Flatten a page's text spans into fragments."""
        fragments: list[Fragment] = []
        for block in page_dict.get("blocks", []):
            if block.get("type") != 0:  # Text
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "").strip()
                    if not text:
                        continue
                    x0, y0, x1, y1 = span["bbox"]
                    origin_x, origin_y = span.get("origin", (x0, y1))
                    fragments.append(Fragment(
                        text=text,
                        x=origin_x,
                        y=origin_y,
                        width=x1 - x0,
                        height=y1 - y0,
                    ))
        return fragments
