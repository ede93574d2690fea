"""
Runtime configuration for the cycle-time tools.

Values are resolved in order: explicit overrides (CLI flags), an optional YAML
config file, environment variables, then defaults.

Environment variables:
- GITHUB_ORG, GITHUB_REPO, GITHUB_TOKEN, GITHUB_API_URL
- CYCLE_TIME_CACHE: SQLite file (*.db, *.sqlite) or a directory for file blobs
- CYCLE_TIME_DELAY: seconds to wait between timeline requests
- CYCLE_TIME_PHASES: comma-separated phase names
"""
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional

import yaml

from errors import ConfigurationError
from ingest.enrich import DEFAULT_DELAY
from ingest.github import DEFAULT_BASE_URL
from scoring.durations import DEFAULT_PHASES, check_phases
from storage.blob import FileBlobStore
from storage.cache import Cache

SQLITE_SUFFIXES = ('.db', '.sqlite', '.sqlite3')

ENV_VARS = {
    'org': 'GITHUB_ORG',
    'repo': 'GITHUB_REPO',
    'token': 'GITHUB_TOKEN',
    'base_url': 'GITHUB_API_URL',
    'cache_path': 'CYCLE_TIME_CACHE',
    'delay': 'CYCLE_TIME_DELAY',
    'phases': 'CYCLE_TIME_PHASES',
}


@dataclass
class Settings:
    org: Optional[str] = None
    repo: Optional[str] = None
    token: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    cache_path: Optional[str] = None
    delay: float = DEFAULT_DELAY
    phases: List[str] = field(default_factory=lambda: list(DEFAULT_PHASES))
    include_max: bool = False
    since: Optional[str] = None

    def validate(self) -> 'Settings':
        """Raise ConfigurationError naming every missing required value."""
        missing = []
        if not self.org:
            missing.append('org (--org, config file or env GITHUB_ORG)')
        if not self.token:
            missing.append('token (--token, config file or env GITHUB_TOKEN)')
        if missing:
            raise ConfigurationError('Missing required option(s): ' + ', '.join(missing))
        if self.delay < 0:
            raise ConfigurationError(f"delay must be >= 0, got {self.delay}")
        check_phases(self.phases)
        return self

    def open_store(self):
        """Build the configured cache store; in-memory SQLite when no path is set."""
        if not self.cache_path:
            return Cache()
        if self.cache_path.lower().endswith(SQLITE_SUFFIXES):
            return Cache(self.cache_path)
        return FileBlobStore(self.cache_path)


def _split_phases(value: Any) -> List[str]:
    if isinstance(value, str):
        return [p.strip() for p in value.split(',') if p.strip()]
    return [str(p) for p in value]


def _coerce(name: str, value: Any) -> Any:
    try:
        if name == 'delay':
            return float(value)
        if name == 'include_max':
            if isinstance(value, str):
                return value.strip().lower() in ('1', 'true', 'yes', 'on')
            return bool(value)
        if name == 'phases':
            return _split_phases(value)
    except (TypeError, ValueError) as ex:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from ex
    return value


def load_config_file(path: str) -> Dict[str, Any]:
    """Read a YAML mapping of Settings fields."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            doc = yaml.safe_load(f) or {}
    except OSError as ex:
        raise ConfigurationError(f"Failed to read config file {path}: {ex}") from ex
    except yaml.YAMLError as ex:
        raise ConfigurationError(f"Failed to parse config file {path}: {ex}") from ex
    if not isinstance(doc, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(doc) - known)
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in {path}: {', '.join(unknown)}")
    return doc


def load_settings(overrides: Optional[Mapping[str, Any]] = None, config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve Settings from overrides, config file, environment and defaults.

    None values in overrides are ignored so unset CLI flags fall through.
    """
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    for name, var in ENV_VARS.items():
        if environ.get(var):
            values[name] = environ[var]
    if config_path:
        values.update(load_config_file(config_path))
    for name, value in (overrides or {}).items():
        if value is not None:
            values[name] = value
    return Settings(**{name: _coerce(name, value) for name, value in values.items()})
