"""Site-wide build settings, read from an optional YAML file."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from content_errors import SiteConfigError
from highlight_code import HIGHLIGHTERS

DEFAULT_CONFIG_NAME = "site.yml"
PATH_KEYS = ("content_dir", "output_dir", "layouts_dir")


@dataclass(frozen=True)
class SiteConfig:
    title: str = "My Site"
    base_url: Optional[str] = None
    content_dir: Path = Path("content")
    output_dir: Path = Path("_site")
    layouts_dir: Optional[Path] = Path("layouts")
    default_layout: str = "page"
    workers: int = 1
    include_drafts: bool = False
    highlighter: str = "none"

    def with_overrides(self, **values: Any) -> "SiteConfig":
        """Return a copy with every non-None value applied (CLI flags)."""
        changes = {key: value for key, value in values.items() if value is not None}
        for key in PATH_KEYS:
            if key in changes:
                changes[key] = Path(changes[key])
        return replace(self, **changes)


def _check_type(path: Path, key: str, value: Any, expected: type) -> None:
    if expected is int and isinstance(value, bool):
        raise SiteConfigError(path, f"'{key}' must be an integer")
    if not isinstance(value, expected):
        raise SiteConfigError(path, f"'{key}' must be of type {expected.__name__}, got {type(value).__name__}")


def load_site_config(path: Path) -> SiteConfig:
    """Read ``path`` into a SiteConfig.

    Relative directories in the file are resolved against the file's own
    directory. Unknown keys and wrongly typed values raise SiteConfigError.
    """
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise SiteConfigError(path, f"invalid YAML: {exc}") from exc
    except OSError as exc:
        raise SiteConfigError(path, f"cannot read file: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SiteConfigError(path, "expected a mapping at the top level")

    known = {f.name for f in fields(SiteConfig)}
    unknown = sorted(str(key) for key in raw if key not in known)
    if unknown:
        raise SiteConfigError(path, f"unknown keys: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if key in PATH_KEYS:
            _check_type(path, key, value, str)
            directory = Path(value)
            values[key] = directory if directory.is_absolute() else path.parent / directory
        elif key in ("title", "base_url", "default_layout", "highlighter"):
            _check_type(path, key, value, str)
            values[key] = value
        elif key == "workers":
            _check_type(path, key, value, int)
            if value < 1:
                raise SiteConfigError(path, "'workers' must be at least 1")
            values[key] = value
        elif key == "include_drafts":
            _check_type(path, key, value, bool)
            values[key] = value

    if values.get("highlighter", "none") not in HIGHLIGHTERS:
        raise SiteConfigError(path, f"'highlighter' must be one of {', '.join(HIGHLIGHTERS)}")

    return SiteConfig(**values)
