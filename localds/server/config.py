"""Process-wide settings for the local dataset server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ROOT_DIR_ENV = 'LOCAL_DATASET_DIR'
PORT_ENV = 'PORT'
DEFAULT_PORT = 3000
API_PREFIX = '/api/local'


@dataclass(frozen=True)
class ServerConfig:
    """Immutable server settings, built once at startup and passed to `create_app`.

    A missing `root_dir` is a valid state: the server starts, and every dataset
    request is answered with a configuration error.
    """

    root_dir: Path | None
    host: str = '0.0.0.0'
    port: int = DEFAULT_PORT
    cache_max_age: int = 3600
    chunk_size: int = 64 * 1024

    @property
    def is_configured(self) -> bool:
        return self.root_dir is not None

    @classmethod
    def from_env(cls, root_dir: str | os.PathLike | None = None, port: int | None = None, **kwargs) -> ServerConfig:
        """Build a config from `LOCAL_DATASET_DIR` / `PORT`, letting explicit arguments win."""
        if root_dir is None:
            root_dir = os.getenv(ROOT_DIR_ENV) or None
        if port is None:
            port = int(os.getenv(PORT_ENV) or DEFAULT_PORT)
        return cls(root_dir=Path(root_dir).expanduser() if root_dir else None, port=int(port), **kwargs)
