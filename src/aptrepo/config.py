"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

from aptrepo.sources.models import SortMode

DEFAULT_PROBE_TIMEOUT_MS = 3000
DEFAULT_RESOLVER_WORKERS = 2
DEFAULT_UNDO_CAPACITY = 20

PROBE_TIMEOUT_MS_CAP = 60_000
RESOLVER_WORKERS_CAP = 8
UNDO_CAPACITY_CAP = 200

CONFIG_FILE_NAME = "aptrepo.toml"

_TRISTATE_AUTO = "auto"


@dataclass(slots=True, frozen=True)
class PathsConfig:
    """Filesystem locations managed or read by the engine."""

    primary_list: Path
    sources_dir: Path
    backup_dir: Path
    cache_root: Path
    os_release: Path
    data_dir: Path


@dataclass(slots=True, frozen=True)
class ProbeConfig:
    """Metadata probe budget and pool sizing."""

    timeout_ms: int
    resolver_workers: int


@dataclass(slots=True, frozen=True)
class AppConfig:
    """Fully merged application configuration."""

    root: Path
    paths: PathsConfig
    probe: ProbeConfig
    undo_capacity: int
    sort_mode: SortMode
    paragraph_format: bool | None
    read_only: bool | None

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for status responses."""
        return {
            "root": str(self.root),
            "paths": {
                "primary_list": str(self.paths.primary_list),
                "sources_dir": str(self.paths.sources_dir),
                "backup_dir": str(self.paths.backup_dir),
                "cache_root": str(self.paths.cache_root),
                "os_release": str(self.paths.os_release),
                "data_dir": str(self.paths.data_dir),
            },
            "probe": {
                "timeout_ms": self.probe.timeout_ms,
                "resolver_workers": self.probe.resolver_workers,
            },
            "undo": {"capacity": self.undo_capacity},
            "view": {"sort_mode": self.sort_mode.value},
            "sources": {"paragraph_format": _tristate_public(self.paragraph_format)},
            "access": {"read_only": _tristate_public(self.read_only)},
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    primary_list: Path | None = None
    sources_dir: Path | None = None
    backup_dir: Path | None = None
    cache_root: Path | None = None
    data_dir: Path | None = None
    probe_timeout_ms: int | None = None
    undo_capacity: int | None = None
    sort_mode: str | None = None
    paragraph_format: bool | None = None
    read_only: bool | None = None


def default_config(root: Path) -> AppConfig:
    """Build default config for a given filesystem root."""
    resolved_root = root.resolve()
    return AppConfig(
        root=resolved_root,
        paths=PathsConfig(
            primary_list=resolved_root / "etc" / "apt" / "sources.list",
            sources_dir=resolved_root / "etc" / "apt" / "sources.list.d",
            backup_dir=resolved_root / "var" / "backups" / "aptrepo",
            cache_root=resolved_root / "var" / "lib" / "apt" / "lists",
            os_release=resolved_root / "etc" / "os-release",
            data_dir=resolved_root / "var" / "lib" / "aptrepo",
        ),
        probe=ProbeConfig(
            timeout_ms=DEFAULT_PROBE_TIMEOUT_MS,
            resolver_workers=DEFAULT_RESOLVER_WORKERS,
        ),
        undo_capacity=DEFAULT_UNDO_CAPACITY,
        sort_mode=SortMode.FILE,
        paragraph_format=None,
        read_only=None,
    )


def load_config_file(config_path: Path) -> dict[str, object]:
    """Load an optional TOML config file; a missing file yields an empty payload."""
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{config_path.name} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _optional_path(value: object, name: str, default: Path, root: Path) -> Path:
    if value is None:
        return default
    if not isinstance(value, str) or not value:
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    candidate = Path(value)
    if candidate.is_absolute():
        # Absolute paths in the file are interpreted inside the configured root.
        candidate = root / candidate.relative_to(candidate.anchor)
    else:
        candidate = root / candidate
    return candidate


def _optional_tristate(value: object, name: str, default: bool | None) -> bool | None:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if value == _TRISTATE_AUTO:
        return None
    raise ValueError(f"Config field '{name}' must be a boolean or \"auto\".")


def parse_sort_mode(value: object, name: str) -> SortMode:
    """Validate a sort mode name."""
    if not isinstance(value, str):
        raise ValueError(f"Config field '{name}' must be a string.")
    try:
        return SortMode(value)
    except ValueError:
        allowed = ", ".join(mode.value for mode in SortMode)
        raise ValueError(f"Config field '{name}' must be one of: {allowed}.") from None


def merge_config(
    base: AppConfig, file_payload: dict[str, object], overrides: CliOverrides
) -> AppConfig:
    """Merge defaults, config file, then CLI/startup overrides."""
    paths_payload = _get_table(file_payload, "paths")
    probe_payload = _get_table(file_payload, "probe")
    undo_payload = _get_table(file_payload, "undo")
    view_payload = _get_table(file_payload, "view")
    sources_payload = _get_table(file_payload, "sources")
    access_payload = _get_table(file_payload, "access")

    root = base.root
    paths = PathsConfig(
        primary_list=_optional_path(
            paths_payload.get("primary_list"), "paths.primary_list", base.paths.primary_list, root
        ),
        sources_dir=_optional_path(
            paths_payload.get("sources_dir"), "paths.sources_dir", base.paths.sources_dir, root
        ),
        backup_dir=_optional_path(
            paths_payload.get("backup_dir"), "paths.backup_dir", base.paths.backup_dir, root
        ),
        cache_root=_optional_path(
            paths_payload.get("cache_root"), "paths.cache_root", base.paths.cache_root, root
        ),
        os_release=_optional_path(
            paths_payload.get("os_release"), "paths.os_release", base.paths.os_release, root
        ),
        data_dir=_optional_path(
            paths_payload.get("data_dir"), "paths.data_dir", base.paths.data_dir, root
        ),
    )
    probe = ProbeConfig(
        timeout_ms=_optional_positive_int_with_cap(
            probe_payload.get("timeout_ms"),
            "probe.timeout_ms",
            base.probe.timeout_ms,
            PROBE_TIMEOUT_MS_CAP,
        ),
        resolver_workers=_optional_positive_int_with_cap(
            probe_payload.get("resolver_workers"),
            "probe.resolver_workers",
            base.probe.resolver_workers,
            RESOLVER_WORKERS_CAP,
        ),
    )
    undo_capacity = _optional_positive_int_with_cap(
        undo_payload.get("capacity"), "undo.capacity", base.undo_capacity, UNDO_CAPACITY_CAP
    )
    sort_mode = base.sort_mode
    if "sort_mode" in view_payload:
        sort_mode = parse_sort_mode(view_payload["sort_mode"], "view.sort_mode")

    merged = AppConfig(
        root=root,
        paths=paths,
        probe=probe,
        undo_capacity=undo_capacity,
        sort_mode=sort_mode,
        paragraph_format=_optional_tristate(
            sources_payload.get("paragraph_format"),
            "sources.paragraph_format",
            base.paragraph_format,
        ),
        read_only=_optional_tristate(
            access_payload.get("read_only"), "access.read_only", base.read_only
        ),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: AppConfig, overrides: CliOverrides) -> AppConfig:
    """Apply startup overrides at highest precedence."""
    paths = PathsConfig(
        primary_list=overrides.primary_list or config.paths.primary_list,
        sources_dir=overrides.sources_dir or config.paths.sources_dir,
        backup_dir=overrides.backup_dir or config.paths.backup_dir,
        cache_root=overrides.cache_root or config.paths.cache_root,
        os_release=config.paths.os_release,
        data_dir=(overrides.data_dir or config.paths.data_dir).resolve(),
    )
    probe = ProbeConfig(
        timeout_ms=_optional_positive_int_with_cap(
            overrides.probe_timeout_ms,
            "overrides.probe_timeout_ms",
            config.probe.timeout_ms,
            PROBE_TIMEOUT_MS_CAP,
        ),
        resolver_workers=config.probe.resolver_workers,
    )
    sort_mode = config.sort_mode
    if overrides.sort_mode is not None:
        sort_mode = parse_sort_mode(overrides.sort_mode, "overrides.sort_mode")
    return AppConfig(
        root=config.root,
        paths=paths,
        probe=probe,
        undo_capacity=_optional_positive_int_with_cap(
            overrides.undo_capacity,
            "overrides.undo_capacity",
            config.undo_capacity,
            UNDO_CAPACITY_CAP,
        ),
        sort_mode=sort_mode,
        paragraph_format=(
            overrides.paragraph_format
            if overrides.paragraph_format is not None
            else config.paragraph_format
        ),
        read_only=overrides.read_only if overrides.read_only is not None else config.read_only,
    )


def load_effective_config(
    root: Path,
    config_path: Path | None = None,
    overrides: CliOverrides | None = None,
) -> AppConfig:
    """Load effective config using merge order defaults -> config file -> overrides."""
    base = default_config(root)
    path = config_path if config_path is not None else base.root / "etc" / CONFIG_FILE_NAME
    payload = load_config_file(path)
    return merge_config(base, payload, overrides or CliOverrides())


def effective_read_only(config: AppConfig) -> bool:
    """Resolve the read-only tristate; auto means not running as root."""
    if config.read_only is not None:
        return config.read_only
    geteuid = getattr(os, "geteuid", None)
    if geteuid is None:
        return True
    return geteuid() != 0


def _tristate_public(value: bool | None) -> object:
    return _TRISTATE_AUTO if value is None else value


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
