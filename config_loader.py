"""Helpers for resolving the optional conversion settings file."""

import json
import os
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

DEFAULT_CONFIG_NAME = "html2pdf.json"
CONFIG_ENV_VAR = "HTML2PDF_CONFIG"


class ConfigError(Exception):
    """Raised when runtime configuration cannot be loaded."""


@dataclass(frozen=True, slots=True)
class ConversionSettings:
    """Tunables shared by the export driver and the progress reporter."""

    high_dpi: Decimal = Decimal("150")
    low_dpi: Decimal = Decimal("96")
    settle_delay_ms: int = 250
    output_folder: str = "PDFs"
    progress_interval_s: float = 10.0
    strict: bool = False


def _resolve_config_path(
    path: Optional[str], root_folder: Optional[str]
) -> Optional[str]:
    """Return the config path to load, or None when defaults apply.

    An explicit ``path`` (or the environment override) must exist; the
    default file name is only looked up in ``root_folder`` and the working
    directory.
    """
    explicit = path or os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        expanded = os.path.abspath(os.path.expanduser(explicit))
        if os.path.isfile(expanded):
            return expanded
        raise ConfigError(f"Configuration file not found: {explicit}")

    search_roots = [root for root in (root_folder, os.getcwd()) if root]
    for root in search_roots:
        resolved = os.path.abspath(os.path.join(root, DEFAULT_CONFIG_NAME))
        if os.path.isfile(resolved):
            return resolved
    return None


def _as_dpi(key: str, value: Any) -> Decimal:
    try:
        dpi = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigError(f"{key} must be a number, got {value!r}") from exc
    if dpi <= 0:
        raise ConfigError(f"{key} must be positive, got {value!r}")
    return dpi


def load_config(
    path: Optional[str] = None, root_folder: Optional[str] = None
) -> Dict[str, Any]:
    """Load the JSON settings file, returning an empty mapping if absent."""
    config_path = _resolve_config_path(path, root_folder)
    if config_path is None:
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as config_file:
            data = json.load(config_file)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Unable to read {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object.")
    return data


def load_settings(
    path: Optional[str] = None,
    root_folder: Optional[str] = None,
    *,
    strict: Optional[bool] = None,
) -> ConversionSettings:
    """Build :class:`ConversionSettings` from config plus CLI overrides."""
    data = load_config(path, root_folder)
    defaults = ConversionSettings()

    unknown = sorted(set(data) - set(ConversionSettings.__dataclass_fields__))
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    try:
        settings = ConversionSettings(
            high_dpi=_as_dpi(
                "high_dpi", data.get("high_dpi", defaults.high_dpi)
            ),
            low_dpi=_as_dpi("low_dpi", data.get("low_dpi", defaults.low_dpi)),
            settle_delay_ms=max(
                0, int(data.get("settle_delay_ms", defaults.settle_delay_ms))
            ),
            output_folder=str(
                data.get("output_folder", defaults.output_folder)
            ),
            progress_interval_s=float(
                data.get("progress_interval_s", defaults.progress_interval_s)
            ),
            strict=bool(data.get("strict", defaults.strict)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc

    if settings.low_dpi >= settings.high_dpi:
        raise ConfigError("low_dpi must be lower than high_dpi.")
    if not settings.output_folder.strip():
        raise ConfigError("output_folder must not be empty.")

    if strict:
        settings = replace(settings, strict=True)
    return settings


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_NAME",
    "ConfigError",
    "ConversionSettings",
    "load_config",
    "load_settings",
]
