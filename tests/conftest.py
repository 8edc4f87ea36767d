"""
Shared pytest fixtures for the html2pdf tests.

The fake browser mimics the slice of Playwright's sync API the exporter
uses. Its ``pdf()`` writes a real PDF with pypdf so post-processing runs
against genuine files.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest
from pypdf import PdfWriter

from page_exporter import CONTENT_SELECTOR, PDF_FRAME_NAME

DEFAULT_BOX = {"x": 0.0, "y": 0.0, "width": 900.0, "height": 1200.0}


def write_pdf(
    path: Path, pages: int = 1, title: Optional[str] = None
) -> None:
    """Write a blank ``pages``-page PDF, optionally with a title."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=432, height=576)
    if title is not None:
        writer.add_metadata({"/Title": title})
    with open(path, "wb") as handle:
        writer.write(handle)


def create_catalog(root: Path, rows) -> Path:
    """Create ``contents.db`` under ``root`` holding ``rows``."""
    db_path = root / "contents.db"
    connection = sqlite3.connect(db_path)
    try:
        connection.execute(
            "CREATE TABLE Pages (PID text, Title text, PageNum integer)"
        )
        connection.executemany("INSERT INTO Pages VALUES (?, ?, ?)", rows)
        connection.commit()
    finally:
        connection.close()
    return db_path


@dataclass
class FakeFrame:
    url: str
    name: str = ""


@dataclass
class FakeDocument:
    box: Optional[dict] = field(default_factory=lambda: dict(DEFAULT_BOX))
    has_content: bool = True
    named_frame: Optional[FakeFrame] = None
    iframe_by_id: Optional[FakeFrame] = None


class FakeElement:
    def __init__(self, box=None, frame=None):
        self._box = box
        self._frame = frame

    def bounding_box(self):
        return self._box

    def content_frame(self):
        return self._frame


class FakePage:
    def __init__(self, browser: "FakeBrowser"):
        self.browser = browser
        self.url = "about:blank"
        self.document = FakeDocument(has_content=False, box=None)
        self.closed = False
        self.pdf_calls: List[dict] = []

    def goto(self, url, wait_until=None):
        self.browser.navigations.append((url, wait_until))
        self.url = url
        self.document = self.browser.documents.get(url, FakeDocument())

    def wait_for_timeout(self, timeout):
        self.browser.waits.append(timeout)

    def frame(self, name=None, url=None):
        frame = self.document.named_frame
        if frame is not None and frame.name == name:
            return frame
        return None

    def query_selector(self, selector):
        if selector == CONTENT_SELECTOR:
            if not self.document.has_content:
                return None
            return FakeElement(box=self.document.box)
        if selector == f"iframe#{PDF_FRAME_NAME}":
            if self.document.iframe_by_id is None:
                return None
            return FakeElement(frame=self.document.iframe_by_id)
        return None

    def pdf(self, **options):
        self.pdf_calls.append(options)
        self.browser.pdf_calls.append(options)
        if self.browser.pdf_error is not None:
            raise self.browser.pdf_error
        pages = self.browser.pages_for(options)
        write_pdf(Path(options["path"]), pages=pages, title="Chromium title")

    def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(
        self,
        documents: Optional[Dict[str, FakeDocument]] = None,
        pages_for: Optional[Callable[[dict], int]] = None,
    ):
        self.documents = documents or {}
        self.pages_for = pages_for or (lambda options: 1)
        self.pdf_error: Optional[Exception] = None
        self.opened: List[FakePage] = []
        self.navigations: List[tuple] = []
        self.waits: List[int] = []
        self.pdf_calls: List[dict] = []

    def new_page(self):
        page = FakePage(self)
        self.opened.append(page)
        return page


@pytest.fixture
def fake_browser():
    """Return a fake browser whose pages all carry a 900x1200 pf element."""
    return FakeBrowser()


@pytest.fixture
def make_site(tmp_path):
    """Build a root folder with a catalog and HTML files.

    ``rows`` are ``(pid, title, page_number)`` tuples; ``missing`` lists
    PIDs whose HTML file is not written.
    """

    def _make(rows, missing=()):
        create_catalog(tmp_path, rows)
        for pid, _title, _page in rows:
            if pid in missing:
                continue
            (tmp_path / f"{pid}.html").write_text(
                f'<html><body><div id="pf1">{pid}</div></body></html>',
                encoding="utf-8",
            )
        return tmp_path

    return _make
