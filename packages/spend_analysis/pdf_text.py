"""PDF text layer extraction with pdfplumber.

Produces the positioned :class:`~spend_analysis.segmenter.TextFragment` input
the segmenter expects. pdfplumber reports word boxes with ``top``/``bottom``
measured from the top of the page; they are flipped here so that ``y`` grows
upward, as in PDF user space.
"""

from __future__ import annotations

from collections.abc import Iterator
from os import PathLike
from typing import IO, Any, TypeAlias

import pdfplumber
from pdfminer.pdfparser import PDFSyntaxError
from pdfplumber.utils.exceptions import PdfminerException

from .errors import NotTextPdfError
from .logging_setup import get_logger
from .segmenter import TextFragment

_logger = get_logger("spend_analysis.pdf_text")

PdfInput: TypeAlias = str | PathLike[str] | IO[bytes]


def page_fragments(page: Any) -> list[TextFragment]:
    """Fragments for one ``pdfplumber`` page, one per extracted word."""

    height = float(page.height)
    words = page.extract_words() or []
    return [
        TextFragment(text=w["text"], x=float(w["x0"]), y=height - float(w["bottom"]))
        for w in words
        if w.get("text")
    ]


def iter_page_fragments(source: PdfInput) -> Iterator[list[TextFragment]]:
    """Yield fragments page by page; the document stays open while iterating.

    Raises :class:`NotTextPdfError` when the file cannot be opened as a PDF.
    """

    try:
        pdf = pdfplumber.open(source)
    except (PdfminerException, PDFSyntaxError) as e:
        _logger.warning("pdf_text:open_failed error=%s", e.__class__.__name__)
        raise NotTextPdfError() from e

    with pdf:
        for page in pdf.pages:
            yield page_fragments(page)


def extract_fragments(source: PdfInput) -> list[list[TextFragment]]:
    return list(iter_page_fragments(source))


__all__ = ["extract_fragments", "iter_page_fragments", "page_fragments"]
