"""
Configuration for treesync
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigError
from .models import SyncMode

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS  ── overridden by YAML profiles or command-line flags
# ══════════════════════════════════════════════════════════════════════════════

DEFAULT_MODE = SyncMode.ONE_WAY
DEFAULT_INTERVAL = 10.0  # seconds between cycles in continuous mode
DEFAULT_WORKERS = 4

# "one+no_delete" / "bi+no_delete" force delete_orphans off
NO_DELETE_SUFFIX = "+no_delete"

PROFILE_FILE = ".treesync"
IGNORE_FILE = ".treesyncignore"

# Atomic copies write ".treesync-<name>.<random>.tmp" next to the target
TEMP_PREFIX = ".treesync-"
TEMP_SUFFIX = ".tmp"

# Retry settings for transient copy errors
RETRY_MAX = 3
RETRY_BASE_DELAY = 0.5  # seconds; doubles each attempt
RETRY_MAX_DELAY = 10.0


@dataclass(frozen=True)
class SyncConfig:
    """Resolved settings for one run. Never mutated once built."""
    source: Path
    destination: Path
    mode: SyncMode = DEFAULT_MODE
    delete_orphans: bool = False
    interval: float = DEFAULT_INTERVAL
    continuous: bool = False
    debug: bool = False
    workers: int = DEFAULT_WORKERS
    dry_run: bool = False
    cache_hashes: bool = False

    def validate(self) -> "SyncConfig":
        """Raise ConfigError unless both roots and all values are usable."""
        if not isinstance(self.mode, SyncMode):
            raise ConfigError(f"invalid mode: {self.mode!r}")
        if self.interval < 0:
            raise ConfigError(f"interval must be >= 0, got {self.interval}")
        if self.workers < 1:
            raise ConfigError(f"workers must be >= 1, got {self.workers}")

        src, dst = self.source, self.destination
        if not src.exists():
            raise ConfigError(f"source does not exist: {src}")
        if not src.is_dir():
            raise ConfigError(f"source is not a directory: {src}")
        if not os.access(src, os.R_OK | os.X_OK):
            raise ConfigError(f"source is not readable: {src}")
        if dst.exists() and not dst.is_dir():
            raise ConfigError(f"destination is not a directory: {dst}")
        if self.mode is SyncMode.BI_DIRECTIONAL and not dst.exists():
            raise ConfigError(f"destination does not exist: {dst}")

        if src == dst:
            raise ConfigError("source and destination are the same directory")
        if src in dst.parents or dst in src.parents:
            raise ConfigError("source and destination must not be nested")
        return self


def parse_mode(value: Any) -> SyncMode:
    """Accept "one-way"/"one" and "bi-directional"/"bi" (any case)."""
    return split_mode(value)[0]


def split_mode(value: Any) -> tuple[SyncMode, bool]:
    """
    Parse a mode string that may carry the "+no_delete" suffix
    ("one+no_delete", "bi+no_delete"). Returns (mode, no_delete).
    """
    if isinstance(value, SyncMode):
        return value, False
    text = str(value).strip()
    no_delete = text.lower().endswith(NO_DELETE_SUFFIX)
    if no_delete:
        text = text[:-len(NO_DELETE_SUFFIX)]
    try:
        return SyncMode.parse(text), no_delete
    except ValueError as exc:
        raise ConfigError(f"invalid mode {value!r} (expected one-way, bi-directional, "
                          f"optionally with {NO_DELETE_SUFFIX})") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("0", "false", "no", "off", ""):
        return False
    if isinstance(value, int):
        return bool(value)
    raise ConfigError(f"{key} must be a boolean, got {value!r}")


def _resolve_root(value: Any, key: str, base: Optional[Path]) -> Path:
    if value is None or str(value).strip() == "":
        raise ConfigError(f"{key} path is required")
    p = Path(str(value)).expanduser()
    if not p.is_absolute() and base is not None:
        p = base / p
    return p.resolve()


def build_config(profile: Optional[dict] = None, *,
                 base_dir: Optional[Path] = None, **overrides) -> SyncConfig:
    """
    Merge a profile dict with explicit overrides (None values are ignored)
    and return a validated SyncConfig.

    Relative paths in the profile are resolved against *base_dir* (the
    directory holding the profile file), overrides against the cwd.
    """
    merged = dict(profile or {})
    given = {k: v for k, v in overrides.items() if v is not None}

    def pick(key, default=None):
        return given.get(key, merged.get(key, default))

    src_base = None if "source" in given else base_dir
    dst_base = None if "destination" in given else base_dir

    try:
        interval = float(pick("interval", DEFAULT_INTERVAL))
        workers = int(pick("workers", DEFAULT_WORKERS))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid number in configuration: {exc}") from exc

    mode, no_delete = split_mode(pick("mode", DEFAULT_MODE))
    # an explicit "+no_delete" mode wins over any delete_orphans setting
    delete_orphans = (not no_delete
                      and _as_bool(pick("delete_orphans", False), "delete_orphans"))

    cfg = SyncConfig(
        source=_resolve_root(pick("source"), "source", src_base),
        destination=_resolve_root(pick("destination"), "destination", dst_base),
        mode=mode,
        delete_orphans=delete_orphans,
        interval=interval,
        continuous=_as_bool(pick("continuous", False), "continuous"),
        debug=_as_bool(pick("debug", False), "debug"),
        workers=workers,
        dry_run=_as_bool(pick("dry_run", False), "dry_run"),
        cache_hashes=_as_bool(pick("cache_hashes", False), "cache_hashes"),
    )
    return cfg.validate()


# ══════════════════════════════════════════════════════════════════════════════
#  GLOBAL CONFIG FILE  ── $XDG_CONFIG_HOME/treesync/config.yaml
# ══════════════════════════════════════════════════════════════════════════════

def get_global_config_dir() -> Path:
    """Return the global config directory for treesync."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "treesync"
    if os.name == "nt":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "treesync"
    return Path.home() / ".config" / "treesync"


def load_global_config() -> dict:
    """Load global config from the treesync config directory."""
    cfg_path = get_global_config_dir() / "config.yaml"
    if not cfg_path.is_file():
        return {}
    try:
        return load_profile_file(cfg_path)
    except ConfigError:
        return {}


# ══════════════════════════════════════════════════════════════════════════════
#  PROJECT PROFILE FILE  ── .treesync (searched upward)
# ══════════════════════════════════════════════════════════════════════════════

def find_profile_file(start: Optional[Path] = None) -> Optional[Path]:
    """
    Search upward from *start* (default: cwd) for a .treesync YAML file.
    Returns the Path if found, or None if no .treesync exists in any parent.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / PROFILE_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_profile_file(path: Path) -> dict:
    """Parse a .treesync YAML file and return its contents as a dict."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a YAML mapping")
    return data


def get_profile(data: dict, profile_name: str = "default") -> dict:
    """
    Extract a named profile from a .treesync or config.yaml data dict.
    Falls back to the first profile if the named one is not found.
    Returns a flat profile dict merged with top-level defaults.
    """
    defaults = data.get("defaults") or {}
    profiles = data.get("profiles") or []
    if not isinstance(defaults, dict):
        raise ConfigError("'defaults' must be a mapping")
    if not isinstance(profiles, list) or not all(isinstance(p, dict) for p in profiles):
        raise ConfigError("'profiles' must be a list of mappings")
    if not profiles:
        return dict(defaults)
    profile = next((p for p in profiles if p.get("name") == profile_name), None)
    if profile is None:
        profile = profiles[0]
    merged = dict(defaults)
    merged.update(profile)
    return merged


def load_profile(profile_name: str = "default",
                 start: Optional[Path] = None) -> tuple[dict, Optional[Path]]:
    """
    Global defaults overlaid with the named profile of the nearest .treesync.
    Returns (profile, directory of the .treesync file or None).
    """
    merged = get_profile(load_global_config(), profile_name)
    path = find_profile_file(start)
    if path is None:
        return merged, None
    merged.update(get_profile(load_profile_file(path), profile_name))
    return merged, path.parent
