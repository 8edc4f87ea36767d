"""Inspection and clean-up helpers for PDFs exported by Chromium."""

from __future__ import annotations

import io
from pathlib import Path

try:
    from pdfminer.pdfpage import PDFPage  # type: ignore[import-not-found]
    from pdfminer.pdfparser import (  # type: ignore[import-not-found]
        PDFSyntaxError,
    )
    from pdfminer.psparser import PSException  # type: ignore[import-not-found]
except ImportError as exc:  # pragma: no cover - surfaces missing dependency
    raise SystemExit(
        (
            "Missing dependency 'pdfminer.six'. Install with "
            "pip install pdfminer.six"
        )
    ) from exc

try:
    from pypdf import PdfReader, PdfWriter  # type: ignore[import-not-found]
    from pypdf.errors import PyPdfError  # type: ignore[import-not-found]
except ImportError as exc:  # pragma: no cover - surfaces missing dependency
    raise SystemExit(
        "Missing dependency 'pypdf'. Install with pip install pypdf"
    ) from exc


class PdfPostProcessError(Exception):
    """Raised when an exported PDF cannot be read back or rewritten."""


def count_pdf_pages(pdf_path: str | Path) -> int:
    """Return the number of pages in ``pdf_path``."""

    source = Path(pdf_path)
    try:
        with source.open("rb") as pdf_file:
            return sum(1 for _ in PDFPage.get_pages(pdf_file))
    except (PDFSyntaxError, PSException, OSError) as exc:
        raise PdfPostProcessError(
            f"Unable to count pages of {source}: {exc}"
        ) from exc


def strip_pdf_title(pdf_path: str | Path) -> None:
    """Blank the document title of ``pdf_path`` and save it in place."""

    target = Path(pdf_path)
    try:
        # Read fully first; the writer overwrites the same file.
        reader = PdfReader(io.BytesIO(target.read_bytes()))
        writer = PdfWriter(clone_from=reader)
        writer.add_metadata({"/Title": ""})
        buffer = io.BytesIO()
        writer.write(buffer)
        target.write_bytes(buffer.getvalue())
    except (PyPdfError, OSError) as exc:
        raise PdfPostProcessError(
            f"Unable to clear title of {target}: {exc}"
        ) from exc


__all__ = ["PdfPostProcessError", "count_pdf_pages", "strip_pdf_title"]
