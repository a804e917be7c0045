"""FastAPI server exposing downloaded datasets from a local directory.

Serves `{root}/{org}/{dataset}/{path}` under `/api/local/{org}/{dataset}/{path}`, so a
visualizer can read LeRobot-style datasets without a remote content host. Byte-range
requests are supported for seeking inside videos.

    localds-server --root_dir=~/datasets --port=3000
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import configuronic as cfn
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from localds.server.config import API_PREFIX, ServerConfig
from localds.server.resolver import DatasetAddress, Found, is_within_root, resolve_with_subset_prefix
from localds.server.responder import FileReadError, RangeNotSatisfiable, serve_file
from localds.utils.logging import init_logging

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse({'error': message}, status_code=status_code, headers=headers)


def handle_local_request(config: ServerConfig, segments: Sequence[str], range_header: str | None = None) -> Response:
    """Resolve a dataset address and serve the file behind it.

    Every failure is turned into a JSON error response; bodies name at most the
    requested logical path, never the location on disk.
    """
    if not config.is_configured:
        return _error(500, 'LOCAL_DATASET_DIR is not set')

    address = DatasetAddress.from_segments(segments)
    if address is None:
        return _error(400, 'Invalid path')

    resolved = resolve_with_subset_prefix(address.dataset_dir(config.root_dir), address.rel_path)
    if not isinstance(resolved, Found):
        logger.debug(f'Not found: {address}')
        return _error(404, f'File not found: {address}')

    if not is_within_root(resolved.path, config.root_dir):
        logger.warning(f'Rejected path outside of the dataset root: {address}')
        return _error(403, 'Access denied')

    try:
        return serve_file(
            resolved.path, range_header, cache_max_age=config.cache_max_age, chunk_size=config.chunk_size
        )
    except RangeNotSatisfiable as e:
        logger.debug(f'{e} ({address})')
        return _error(416, 'Range not satisfiable', headers={'Content-Range': f'bytes */{e.file_size}'})
    except FileReadError:
        logger.error(f'Failed to read {address}', exc_info=True)
        return _error(500, 'Failed to read file')


def create_app(config: ServerConfig) -> FastAPI:
    app = FastAPI(title='Local Dataset Server', version='1.0.0')

    @app.get(API_PREFIX + '/{path:path}')
    def local_file(path: str, request: Request):
        return handle_local_request(config, path.split('/'), request.headers.get('range'))

    return app


@cfn.config(root_dir=None, host='0.0.0.0', port=None, debug=False)
def main(root_dir: str | None, host: str, port: int | None, debug: bool):
    """Serve a directory of downloaded datasets over HTTP.

    Args:
        root_dir: Directory holding `{org}/{dataset}` trees. Defaults to `LOCAL_DATASET_DIR`.
        host: Interface to bind.
        port: Port to listen on. Defaults to `PORT`, then 3000.
        debug: Enable debug logging.
    """
    config = ServerConfig.from_env(root_dir=root_dir, port=port, host=host)
    if config.is_configured:
        logging.info(f'Serving datasets from {config.root_dir.resolve()}')
    else:
        logging.error('LOCAL_DATASET_DIR is not set, every request will fail until it is configured')

    app = create_app(config)
    logging.info(f'Starting local dataset server at http://{config.host}:{config.port}{API_PREFIX}')
    uvicorn.run(app, host=config.host, port=config.port, log_level='debug' if debug else 'info')


def _internal_main():
    init_logging(quiet_access_log=True)
    cfn.cli(main)


if __name__ == '__main__':
    _internal_main()
