"""Dataset version compatibility checks.

Dataset files are fetched either from a remote content host (the default) or,
when `LOCAL_DATASET_DIR` is set, from the local dataset server. Both are hidden
behind `build_versioned_url`, so callers do not need to know which one is used.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

import configuronic as cfn
import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from localds.server.config import API_PREFIX, DEFAULT_PORT, PORT_ENV, ROOT_DIR_ENV
from localds.utils.logging import init_logging

logger = logging.getLogger(__name__)

REMOTE_URL_ENV = 'DATASET_URL'
DEFAULT_REMOTE_URL = 'https://huggingface.co/datasets'
SUPPORTED_VERSIONS = ('v3.0', 'v2.1', 'v2.0')
INFO_PATH = 'meta/info.json'


class DatasetCompatibilityError(Exception):
    """The dataset cannot be read by the visualizer."""


class DatasetInfo(BaseModel):
    """Contents of `meta/info.json`. Unknown keys are kept as extra fields."""

    model_config = ConfigDict(extra='allow')

    features: dict[str, Any]
    codebase_version: str | None = None
    robot_type: str | None = None
    total_episodes: int | None = None
    total_frames: int | None = None
    total_tasks: int | None = None
    chunks_size: int | None = None
    data_files_size_in_mb: float | None = None
    video_files_size_in_mb: float | None = None
    fps: float | None = None
    splits: dict[str, str] | None = None
    data_path: str | None = None
    video_path: str | None = None


@dataclass(frozen=True)
class DatasetUrls:
    local_dir: str | None = None
    port: int = DEFAULT_PORT
    remote_url: str = DEFAULT_REMOTE_URL

    @classmethod
    def from_env(cls, local_dir: str | None = None, port: int | None = None, remote_url: str | None = None):
        return cls(
            local_dir=local_dir or os.getenv(ROOT_DIR_ENV) or None,
            port=int(port or os.getenv(PORT_ENV) or DEFAULT_PORT),
            remote_url=(remote_url or os.getenv(REMOTE_URL_ENV) or DEFAULT_REMOTE_URL).rstrip('/'),
        )

    @property
    def is_local(self) -> bool:
        return bool(self.local_dir)

    @property
    def local_url(self) -> str:
        return f'http://localhost:{self.port}{API_PREFIX}'

    def build_versioned_url(self, repo_id: str, version: str, file_path: str) -> str:
        """URL of `file_path` inside dataset `repo_id`.

        The local server always serves whatever is on disk, so `version` only
        matters for remote URLs, which currently always point at the main revision.
        """
        if self.is_local:
            return f'{self.local_url}/{repo_id}/{file_path}'
        return f'{self.remote_url}/{repo_id}/resolve/main/{file_path}'


_default_urls = DatasetUrls.from_env()


def build_versioned_url(repo_id: str, version: str, file_path: str) -> str:
    return _default_urls.build_versioned_url(repo_id, version, file_path)


def is_local_mode() -> bool:
    """Whether dataset files are read through the local dataset server."""
    return _default_urls.is_local


def _incompatible(repo_id: str) -> DatasetCompatibilityError:
    return DatasetCompatibilityError(
        f'Dataset {repo_id} is not compatible with this visualizer. '
        'Failed to read dataset information from the main revision.'
    )


def get_dataset_info(
    repo_id: str, urls: DatasetUrls | None = None, client: httpx.Client | None = None, timeout: float = 10.0
) -> DatasetInfo:
    """Fetch and validate `meta/info.json` of the dataset.

    Raises:
        DatasetCompatibilityError: The file cannot be fetched or lacks `features`.
    """
    urls = urls or _default_urls
    url = urls.build_versioned_url(repo_id, '', INFO_PATH)
    headers = {'Cache-Control': 'no-store'}

    try:
        if client is None:
            with httpx.Client(timeout=timeout) as own_client:
                r = own_client.get(url, headers=headers)
        else:
            r = client.get(url, headers=headers, timeout=timeout)
    except httpx.HTTPError as e:
        raise _incompatible(repo_id) from e

    if not r.is_success:
        raise DatasetCompatibilityError(f'Failed to fetch dataset info: {r.status_code}')

    try:
        data = r.json()
    except ValueError as e:
        raise _incompatible(repo_id) from e

    if not isinstance(data, dict):
        raise _incompatible(repo_id)
    if not isinstance(data.get('features'), dict):
        raise DatasetCompatibilityError('Dataset info.json does not have the expected features structure')

    try:
        return DatasetInfo.model_validate(data)
    except ValidationError as e:
        raise _incompatible(repo_id) from e


def get_dataset_version(
    repo_id: str, urls: DatasetUrls | None = None, client: httpx.Client | None = None, timeout: float = 10.0
) -> str:
    """Return the `codebase_version` of the dataset if this tool can read it.

    Raises:
        DatasetCompatibilityError: info.json is unavailable, or the version is missing or unsupported.
    """
    info = get_dataset_info(repo_id, urls=urls, client=client, timeout=timeout)

    version = info.codebase_version
    if not version:
        raise DatasetCompatibilityError('Dataset info.json does not contain codebase_version')

    if version not in SUPPORTED_VERSIONS:
        raise DatasetCompatibilityError(
            f'Dataset {repo_id} has codebase version {version}, which is not supported. '
            'This tool only works with dataset versions 3.0, 2.1, or 2.0. '
            'Please use a compatible dataset version.'
        )
    return version


@cfn.config(local_dir=None, port=None, remote_url=None)
def check(repo_id: str, local_dir: str | None, port: int | None, remote_url: str | None):
    """Check that a dataset can be opened by the visualizer.

    Args:
        repo_id: Dataset id, `{org}/{dataset}`.
        local_dir: Read through the local dataset server for this directory. Defaults to `LOCAL_DATASET_DIR`.
        port: Port of the local dataset server. Defaults to `PORT`, then 3000.
        remote_url: Remote content host. Defaults to `DATASET_URL`, then the Hugging Face datasets hub.
    """
    urls = DatasetUrls.from_env(local_dir=local_dir, port=port, remote_url=remote_url)
    source = urls.local_url if urls.is_local else urls.remote_url
    version = get_dataset_version(repo_id, urls=urls)
    logger.info(f'{repo_id} ({source}): codebase version {version}')
    return version


def _internal_main():
    init_logging()
    cfn.cli(check)


if __name__ == '__main__':
    _internal_main()
