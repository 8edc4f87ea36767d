"""Batch-convert catalog HTML pages into content-sized single-page PDFs."""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from config_loader import ConfigError, load_settings
from logging_config import configure_logging
from page_catalog import CATALOG_NAME, CatalogError, iter_pages
from page_exporter import (
    BrowserLaunchError,
    PageConversionError,
    convert_pages,
    launch_browser,
)
from progress import ProgressReporter

LOGGER = logging.getLogger(__name__)

DEFAULT_START_PAGE = 1
DEFAULT_END_PAGE = 0

USAGE = (
    "Usage: html2pdf <html_root_folder> [start_page] [end_page]\n"
    f"  html_root_folder: The root folder containing the {CATALOG_NAME}"
    " file.\n"
    "  start_page: The first page to convert (inclusive, default: 1).\n"
    "  end_page: The last page to convert (inclusive, default: 0 = all"
    " pages)."
)


class UsageError(Exception):
    """Raised when the command line cannot be resolved to a root folder."""


@dataclass(frozen=True, slots=True)
class RunArguments:
    """Root folder and page range resolved from the command line."""

    root_folder: Path
    start_page: int = DEFAULT_START_PAGE
    end_page: int = DEFAULT_END_PAGE

    @property
    def catalog_path(self) -> Path:
        return self.root_folder / CATALOG_NAME


def _parse_page_number(value: Optional[str], default: int) -> int:
    """Return ``value`` as an int, or ``default`` when it does not parse."""

    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def resolve_arguments(
    positionals: Sequence[str], cwd: Optional[str] = None
) -> RunArguments:
    """Resolve ``[root_folder] [start_page] [end_page]`` positionals."""

    if not positionals:
        root_folder = Path(cwd or os.getcwd())
        if not (root_folder / CATALOG_NAME).is_file():
            raise UsageError(
                f"Current directory does not contain {CATALOG_NAME}.\n"
                f"Please provide the HTML root folder, containing the"
                f" {CATALOG_NAME} file, as a command line argument.\n{USAGE}"
            )
    elif Path(positionals[0]).is_dir():
        root_folder = Path(positionals[0])
        if not (root_folder / CATALOG_NAME).is_file():
            raise UsageError(
                f"The specified directory does not contain the"
                f" {CATALOG_NAME}: {root_folder}"
            )
    else:
        raise UsageError(
            f"Please provide the HTML root folder, containing the"
            f" {CATALOG_NAME} file, as a command line argument.\n{USAGE}"
        )

    extras = list(positionals[1:3]) + [None, None]
    return RunArguments(
        root_folder=root_folder,
        start_page=_parse_page_number(extras[0], DEFAULT_START_PAGE),
        end_page=_parse_page_number(extras[1], DEFAULT_END_PAGE),
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments for the batch converter."""

    parser = argparse.ArgumentParser(
        prog="html2pdf",
        description=(
            "Render the HTML pages listed in contents.db to one PDF per"
            " page, sized to each page's content."
        ),
    )
    # Kept as strings: unparsable page numbers fall back to defaults.
    parser.add_argument(
        "positionals",
        nargs="*",
        metavar="root_folder [start_page] [end_page]",
        help="Folder holding contents.db, then the optional page range.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Abort on the first page that cannot be converted.",
    )
    parser.add_argument("--config", help="Path to a settings JSON file.")
    parser.add_argument(
        "--log-level", default="INFO", help="Logging level (default INFO)."
    )
    parser.add_argument("--log-file", help="Write the log to this file.")
    return parser.parse_args(argv)


def run(
    arguments: RunArguments,
    settings_path: Optional[str] = None,
    *,
    strict: bool = False,
) -> int:
    """Convert every selected page and return the converted page count."""

    settings = load_settings(
        settings_path, str(arguments.root_folder), strict=strict
    )
    with launch_browser() as browser:
        pages = iter_pages(
            arguments.catalog_path, arguments.start_page, arguments.end_page
        )
        LOGGER.info("Starting conversion...")
        reporter = ProgressReporter(settings.progress_interval_s)
        try:
            results = convert_pages(
                browser,
                pages,
                arguments.root_folder,
                settings,
                reporter,
            )
        finally:
            pages.close()
    reporter.finish()

    failures = [result for result in results if not result.converted]
    if failures:
        LOGGER.warning("%d pages were not converted.", len(failures))
    return len(results) - len(failures)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Entry point for the ``html2pdf`` command."""

    args = parse_args(argv)
    configure_logging(args.log_level, to_file=args.log_file)
    try:
        arguments = resolve_arguments(args.positionals)
        run(arguments, args.config, strict=args.strict)
    except UsageError as exc:
        raise SystemExit(str(exc)) from exc
    except ConfigError as exc:
        raise SystemExit(f"Config error: {exc}") from exc
    except CatalogError as exc:
        raise SystemExit(f"Error: {exc}") from exc
    except BrowserLaunchError as exc:
        raise SystemExit(str(exc)) from exc
    except PageConversionError as exc:
        raise SystemExit(f"Aborted: {exc}") from exc


if __name__ == "__main__":
    main()
