"""Render catalog pages with Playwright and export content-sized PDFs."""

# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Iterable, Iterator, Literal, Optional, Tuple

try:
    from playwright.sync_api import (  # type: ignore[import-not-found]
        Browser,
        Error as PlaywrightError,
        Frame,
        Page,
        sync_playwright,
    )
except ImportError as exc:  # pragma: no cover - surfacing missing dependency
    raise SystemExit(
        "Missing dependency 'playwright'. Install with pip install"
        " playwright && playwright install chromium"
    ) from exc

from config_loader import ConversionSettings
from page_catalog import PageRecord
from pdf_postprocess import (
    PdfPostProcessError,
    count_pdf_pages,
    strip_pdf_title,
)
from progress import ProgressReporter

LOGGER = logging.getLogger(__name__)

PDF_FRAME_NAME = "iframePdf"
# Content blocks are numbered in hex: pf1 ... pf9, pfa ... pff, pf10.
CONTENT_SELECTOR = "div[id^='pf']"
ILLEGAL_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')
INCH_QUANTUM = Decimal("0.0001")
ZERO_MARGINS = {"top": "0", "bottom": "0", "left": "0", "right": "0"}

ResultStatus = Literal["converted", "skipped", "failed"]


class PageConversionError(Exception):
    """Raised in strict mode when a page cannot be converted."""

    def __init__(self, result: "ConversionResult") -> None:
        super().__init__(
            f"Page {result.record.page_number} ({result.record.id}) "
            f"{result.status}: {result.message}"
        )
        self.result = result


class BrowserLaunchError(Exception):
    """Raised when headless Chromium cannot be started."""


def sanitize_title(title: str) -> str:
    """Replace characters that are illegal in file names with ``_``."""

    return ILLEGAL_FILENAME_CHARS.sub("_", title)


def output_file_name(record: PageRecord) -> str:
    """Return ``P<page:03d>-<sanitized title>.pdf`` for ``record``."""

    return f"P{record.page_number:03d}-{sanitize_title(record.title)}.pdf"


def format_inches(pixels: float, dpi: Decimal) -> str:
    """Convert ``pixels`` to a CSS inch length with at most 4 decimals."""

    inches = (Decimal(str(pixels)) / dpi).quantize(
        INCH_QUANTUM, rounding=ROUND_HALF_UP
    )
    text = format(inches, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text}in"


@dataclass(frozen=True, slots=True)
class DpiState:
    """Pixel-to-inch scale carried from one conversion to the next.

    The first successful export is checked for a multi-page split; if the
    renderer broke the content over several pages the scale drops to the
    low DPI for the rest of the run. Once ``verified`` is set the check
    never runs again.
    """

    dpi: Decimal
    verified: bool = False

    @classmethod
    def initial(cls, settings: ConversionSettings) -> "DpiState":
        return cls(dpi=settings.high_dpi)

    def needs_verification(self, settings: ConversionSettings) -> bool:
        return not self.verified and self.dpi > settings.low_dpi


@dataclass(frozen=True, slots=True)
class ConversionJob:
    """Input and output locations derived from one catalog record."""

    record: PageRecord
    input_path: Path
    output_path: Path

    @classmethod
    def from_record(
        cls, record: PageRecord, root_folder: Path, output_folder: str
    ) -> "ConversionJob":
        return cls(
            record=record,
            input_path=root_folder / f"{record.id}.html",
            output_path=root_folder / output_folder / output_file_name(record),
        )


@dataclass(frozen=True, slots=True)
class PageMeasurement:
    """Bounding box of the content element and the derived page size."""

    width_px: float
    height_px: float
    width: str
    height: str

    def describe(self) -> str:
        return (
            f"{self.width_px:g}x{self.height_px:g}px; "
            f"{self.width} x {self.height}"
        )


@dataclass(slots=True)
class ConversionResult:
    """Outcome of a single page conversion."""

    record: PageRecord
    output_path: Path
    status: ResultStatus
    attempted: bool = False
    measurement: Optional[PageMeasurement] = None
    message: Optional[str] = None

    @property
    def converted(self) -> bool:
        """Return True when a PDF was written and post-processed."""

        return self.status == "converted"


@dataclass(slots=True)
class RenderTarget:
    """The browsing context whose content is measured and exported.

    Either the primary page the HTML file was loaded into, or a secondary
    page opened on the ``iframePdf`` frame's own URL. Only secondary pages
    are owned by the target and closed on :meth:`release`.
    """

    page: Page
    owned: bool = False

    @classmethod
    def primary(cls, page: Page) -> "RenderTarget":
        return cls(page=page)

    @classmethod
    def from_frame_url(
        cls, browser: Browser, url: str, *, settle_delay_ms: int
    ) -> "RenderTarget":
        page = browser.new_page()
        try:
            page.goto(url, wait_until="networkidle")
            page.wait_for_timeout(settle_delay_ms)
        except PlaywrightError:
            page.close()
            raise
        return cls(page=page, owned=True)

    def release(self) -> None:
        if self.owned:
            self.page.close()


def find_pdf_frame(page: Page) -> Optional[Frame]:
    """Return the frame named or identified ``iframePdf``, if any."""

    frame = page.frame(name=PDF_FRAME_NAME)
    if frame is not None:
        return frame
    element = page.query_selector(f"iframe#{PDF_FRAME_NAME}")
    if element is None:
        return None
    return element.content_frame()


def _is_navigable(frame_url: str, host_url: str) -> bool:
    return bool(frame_url) and frame_url not in ("about:blank", host_url)


def resolve_render_target(
    browser: Browser, page: Page, settings: ConversionSettings
) -> Optional[RenderTarget]:
    """Pick the context to export.

    Returns None when there is no ``iframePdf`` frame and the loaded
    document carries no content element of its own either.
    """

    frame = find_pdf_frame(page)
    if frame is None:
        if page.query_selector(CONTENT_SELECTOR) is None:
            return None
        LOGGER.debug("No %s frame; exporting the document", PDF_FRAME_NAME)
        return RenderTarget.primary(page)
    if _is_navigable(frame.url, page.url):
        return RenderTarget.from_frame_url(
            browser, frame.url, settle_delay_ms=settings.settle_delay_ms
        )
    return RenderTarget.primary(page)


def export_pdf(
    page: Page, output_path: Path, dpi: Decimal
) -> Tuple[Optional[PageMeasurement], Optional[str]]:
    """Export ``page`` sized to its content element's bounding box.

    Returns the measurement, or ``(None, reason)`` when the content element
    or its box is missing and nothing was written.
    """

    element = page.query_selector(CONTENT_SELECTOR)
    if element is None:
        return None, "#pf element not found."
    box = element.bounding_box()
    if box is None:
        return None, "Could not get bounding box."

    measurement = PageMeasurement(
        width_px=box["width"],
        height_px=box["height"],
        width=format_inches(box["width"], dpi),
        height=format_inches(box["height"], dpi),
    )
    page.pdf(
        path=str(output_path),
        print_background=True,
        width=measurement.width,
        height=measurement.height,
        margin=ZERO_MARGINS,
        prefer_css_page_size=False,
    )
    return measurement, None


def _export_job(
    job: ConversionJob,
    target: RenderTarget,
    dpi_state: DpiState,
    settings: ConversionSettings,
) -> Tuple[ConversionResult, DpiState]:
    state = dpi_state
    try:
        measurement, reason = export_pdf(
            target.page, job.output_path, state.dpi
        )
        if measurement is not None and state.needs_verification(settings):
            LOGGER.info(
                "  Checking page count of first converted PDF to verify"
                " correct DPI setting..."
            )
            target.page.wait_for_timeout(settings.settle_delay_ms)
            page_count = count_pdf_pages(job.output_path)
            state = replace(state, verified=True)
            if page_count > 1:
                LOGGER.info(
                    "  Notice: Converted PDF has %d pages. Adjusting DPI to"
                    " %s and reconverting.",
                    page_count,
                    settings.low_dpi,
                )
                state = DpiState(dpi=settings.low_dpi, verified=True)
                measurement, reason = export_pdf(
                    target.page, job.output_path, state.dpi
                )
        if measurement is None:
            LOGGER.error("  Error: %s", reason)
            return (
                ConversionResult(
                    record=job.record,
                    output_path=job.output_path,
                    status="skipped",
                    attempted=True,
                    message=reason,
                ),
                state,
            )
        strip_pdf_title(job.output_path)
    except (PlaywrightError, PdfPostProcessError, OSError) as exc:
        LOGGER.error("  Error during PDF conversion: %s", exc)
        return (
            ConversionResult(
                record=job.record,
                output_path=job.output_path,
                status="failed",
                attempted=True,
                message=str(exc),
            ),
            state,
        )

    LOGGER.info(
        "  Done: %s [%s]", job.output_path.name, measurement.describe()
    )
    return (
        ConversionResult(
            record=job.record,
            output_path=job.output_path,
            status="converted",
            attempted=True,
            measurement=measurement,
        ),
        state,
    )


def convert_page(
    browser: Browser,
    record: PageRecord,
    root_folder: Path,
    dpi_state: DpiState,
    settings: ConversionSettings,
) -> Tuple[ConversionResult, DpiState]:
    """Convert one catalog record and return the DPI state to carry on."""

    job = ConversionJob.from_record(
        record, root_folder, settings.output_folder
    )
    if not job.input_path.exists():
        LOGGER.warning("Warning: Not found %s", job.input_path)
        return (
            ConversionResult(
                record=record,
                output_path=job.output_path,
                status="skipped",
                message=f"Not found {job.input_path}",
            ),
            dpi_state,
        )

    job.output_path.parent.mkdir(parents=True, exist_ok=True)
    LOGGER.info(
        "Converting page %d: '%s' (%s) to '%s'",
        record.page_number,
        record.title,
        record.id,
        job.output_path.name,
    )

    page = browser.new_page()
    target: Optional[RenderTarget] = None
    try:
        page.goto(job.input_path.resolve().as_uri(), wait_until="networkidle")
        target = resolve_render_target(browser, page, settings)
        if target is None:
            LOGGER.error("  Error: %s not found", PDF_FRAME_NAME)
            return (
                ConversionResult(
                    record=record,
                    output_path=job.output_path,
                    status="skipped",
                    message=f"{PDF_FRAME_NAME} not found",
                ),
                dpi_state,
            )
        return _export_job(job, target, dpi_state, settings)
    except PlaywrightError as exc:
        LOGGER.error("  Error loading %s: %s", job.input_path.name, exc)
        return (
            ConversionResult(
                record=record,
                output_path=job.output_path,
                status="failed",
                message=str(exc),
            ),
            dpi_state,
        )
    finally:
        if target is not None:
            target.release()
        page.close()


def convert_pages(
    browser: Browser,
    records: Iterable[PageRecord],
    root_folder: Path,
    settings: ConversionSettings,
    reporter: Optional[ProgressReporter] = None,
) -> list[ConversionResult]:
    """Convert ``records`` one at a time, threading the DPI state along."""

    dpi_state = DpiState.initial(settings)
    results: list[ConversionResult] = []
    for record in records:
        result, dpi_state = convert_page(
            browser, record, root_folder, dpi_state, settings
        )
        results.append(result)
        if result.attempted and reporter is not None:
            reporter.page_started()
        if settings.strict and not result.converted:
            raise PageConversionError(result)
    return results


@contextmanager
def launch_browser() -> Iterator[Browser]:
    """Context manager that yields a headless Chromium browser instance."""

    with sync_playwright() as playwright:  # type: ignore[misc]
        try:
            browser: Browser = playwright.chromium.launch(headless=True)
        except PlaywrightError as exc:
            raise BrowserLaunchError(
                "Unable to start headless Chromium. If it is not installed"
                f" run: playwright install chromium\n{exc}"
            ) from exc
        try:
            yield browser
        finally:
            browser.close()


__all__ = [
    "BrowserLaunchError",
    "CONTENT_SELECTOR",
    "ConversionJob",
    "ConversionResult",
    "DpiState",
    "PDF_FRAME_NAME",
    "PageConversionError",
    "PageMeasurement",
    "RenderTarget",
    "convert_page",
    "convert_pages",
    "export_pdf",
    "find_pdf_frame",
    "format_inches",
    "launch_browser",
    "output_file_name",
    "resolve_render_target",
    "sanitize_title",
]
