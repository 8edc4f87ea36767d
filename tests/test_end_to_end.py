"""End-to-end conversion against a real headless Chromium."""

import pytest
from pypdf import PdfReader

from conftest import create_catalog
from html2pdf import RunArguments, run
from page_exporter import BrowserLaunchError, launch_browser

pytestmark = pytest.mark.integration

PAGE_HTML = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body style="margin:0">
<div id="pf1" style="width:900px;height:1200px;background:#eef">{title}</div>
</body>
</html>
"""


@pytest.fixture(scope="module")
def chromium_available():
    try:
        with launch_browser():
            pass
    except BrowserLaunchError as exc:
        pytest.skip(f"Chromium unavailable: {exc}")


@pytest.fixture
def book(tmp_path):
    create_catalog(
        tmp_path,
        [("ch1", "Intro: Part 1", 1), ("ch2", "Chapter Two", 2)],
    )
    for pid, title in (("ch1", "Intro"), ("ch2", "Chapter Two")):
        (tmp_path / f"{pid}.html").write_text(
            PAGE_HTML.format(title=title), encoding="utf-8"
        )
    return tmp_path


def test_converts_every_catalog_page(chromium_available, book):
    converted = run(RunArguments(root_folder=book))

    assert converted == 2
    produced = sorted(path.name for path in (book / "PDFs").iterdir())
    assert produced == ["P001-Intro_ Part 1.pdf", "P002-Chapter Two.pdf"]
    for pdf_path in (book / "PDFs").iterdir():
        metadata = PdfReader(str(pdf_path)).metadata
        assert metadata is None or not metadata.title


def test_page_range_limits_output(chromium_available, book):
    converted = run(RunArguments(root_folder=book, start_page=2, end_page=2))

    assert converted == 1
    produced = [path.name for path in (book / "PDFs").iterdir()]
    assert produced == ["P002-Chapter Two.pdf"]
