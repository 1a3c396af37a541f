"""Process settings resolved from a `.env` file and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

_TRUE_VALUES = frozenset({'1', 'true', 'yes', 'on'})
_FALSE_VALUES = frozenset({'', '0', 'false', 'no', 'off'})
_TIMEOUT_BOUNDS = (1.0, 60.0)


def read_env_file(path: Path) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` lines, tolerating ``export`` prefixes and quoting."""
    if not path.is_file():
        return {}

    values: Dict[str, str] = {}
    for line in path.read_text().splitlines():
        line = line.strip()
        if line.startswith('export '):
            line = line[len('export '):].lstrip()
        key, sep, value = line.partition('=')
        if not sep or line.startswith('#'):
            continue
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def load_environment(env_file: str | Path = '.env') -> Dict[str, str]:
    """Return `.env` values with the process environment taking precedence."""
    environ = read_env_file(Path(env_file))
    environ.update(os.environ)
    return environ


def parse_bool(value: str | int | bool | None, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
    raise ValueError(f'Expected a boolean, got {value!r}')


@dataclass
class Settings:
    """Runtime settings for the CLI: storage, logging and exchange timeouts."""

    environment: str = 'development'
    database_url: str = 'sqlite:///data/autotrader.db'
    data_directory: Path = field(default_factory=lambda: Path('data'))
    log_level: str = 'INFO'
    request_timeout: float = 15.0
    persist_trades: bool = False

    def __post_init__(self) -> None:
        low, high = _TIMEOUT_BOUNDS
        self.request_timeout = float(self.request_timeout)
        if not low <= self.request_timeout <= high:
            raise ValueError(f'request_timeout must be between {low:g} and {high:g} seconds, got {self.request_timeout:g}')
        self.data_directory = Path(self.data_directory)

    @classmethod
    def from_mapping(cls, environ: Mapping[str, str]) -> 'Settings':
        timeout: Optional[str] = environ.get('EXCHANGE_REQUEST_TIMEOUT')
        return cls(
            environment=environ.get('APP_ENV', cls.environment),
            database_url=environ.get('DATABASE_URL', cls.database_url),
            data_directory=Path(environ.get('DATA_DIRECTORY', 'data')),
            log_level=environ.get('LOG_LEVEL', cls.log_level).upper(),
            request_timeout=float(timeout) if timeout else cls.request_timeout,
            persist_trades=parse_bool(environ.get('PERSIST_TRADES'), cls.persist_trades),
        )

    @classmethod
    def from_env(cls, env_file: str | Path = '.env') -> 'Settings':
        settings = cls.from_mapping(load_environment(env_file))
        settings.data_directory.mkdir(parents=True, exist_ok=True)
        return settings


load_settings = Settings.from_env

__all__ = ['Settings', 'load_environment', 'load_settings', 'parse_bool', 'read_env_file']
