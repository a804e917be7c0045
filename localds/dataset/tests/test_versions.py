"""Tests for dataset URL building and version compatibility checks."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from localds.dataset import versions
from localds.dataset.versions import (
    DatasetCompatibilityError,
    DatasetInfo,
    DatasetUrls,
    get_dataset_info,
    get_dataset_version,
)
from localds.server.config import ServerConfig
from localds.server.local_server import create_app

REMOTE = DatasetUrls(remote_url='https://hub.example.com/datasets')
LOCAL = DatasetUrls(local_dir='/data', port=3000)


def _mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _json_client(payload, status_code=200, seen=None) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return _mock_client(handler)


# --- URL building ---


def test_remote_url():
    url = REMOTE.build_versioned_url('acme/robotset', 'v2.1', 'meta/info.json')
    assert url == 'https://hub.example.com/datasets/acme/robotset/resolve/main/meta/info.json'
    assert not REMOTE.is_local


def test_local_url_ignores_version():
    assert LOCAL.is_local
    for version in ('', 'v2.0', 'v3.0'):
        url = LOCAL.build_versioned_url('acme/robotset', version, 'meta/info.json')
        assert url == 'http://localhost:3000/api/local/acme/robotset/meta/info.json'


def test_urls_from_env(monkeypatch):
    monkeypatch.setenv('LOCAL_DATASET_DIR', '/data')
    monkeypatch.setenv('PORT', '4000')
    urls = DatasetUrls.from_env()
    assert urls.is_local
    assert urls.local_url == 'http://localhost:4000/api/local'


def test_urls_from_env_remote(monkeypatch):
    monkeypatch.delenv('LOCAL_DATASET_DIR', raising=False)
    monkeypatch.setenv('DATASET_URL', 'https://mirror.example.com/ds/')
    urls = DatasetUrls.from_env()
    assert not urls.is_local
    assert urls.build_versioned_url('a/b', '', 'x.json') == 'https://mirror.example.com/ds/a/b/resolve/main/x.json'


def test_module_level_helpers(monkeypatch):
    monkeypatch.setattr(versions, '_default_urls', LOCAL)
    assert versions.is_local_mode()
    assert versions.build_versioned_url('a/b', 'v2.0', 'meta/info.json').startswith(LOCAL.local_url)

    monkeypatch.setattr(versions, '_default_urls', REMOTE)
    assert not versions.is_local_mode()
    assert '/resolve/main/' in versions.build_versioned_url('a/b', 'v2.0', 'meta/info.json')


# --- get_dataset_info / get_dataset_version ---


def test_get_dataset_info():
    seen = []
    payload = {'codebase_version': 'v2.1', 'fps': 30, 'total_episodes': 5, 'features': {'action': {}}, 'extra': 1}
    info = get_dataset_info('acme/robotset', urls=REMOTE, client=_json_client(payload, seen=seen))

    assert isinstance(info, DatasetInfo)
    assert info.features == {'action': {}}
    assert info.total_episodes == 5
    assert info.model_extra == {'extra': 1}
    assert str(seen[0].url) == 'https://hub.example.com/datasets/acme/robotset/resolve/main/meta/info.json'
    assert seen[0].headers['cache-control'] == 'no-store'


def test_get_dataset_info_http_error():
    client = _json_client({'error': 'nope'}, status_code=404)
    with pytest.raises(DatasetCompatibilityError, match='Failed to fetch dataset info: 404'):
        get_dataset_info('acme/robotset', urls=REMOTE, client=client)


def test_get_dataset_info_without_features():
    with pytest.raises(DatasetCompatibilityError, match='features'):
        get_dataset_info('acme/robotset', urls=REMOTE, client=_json_client({'codebase_version': 'v2.1'}))


def test_get_dataset_info_not_json():
    client = _mock_client(lambda request: httpx.Response(200, text='<html>'))
    with pytest.raises(DatasetCompatibilityError, match='not compatible'):
        get_dataset_info('acme/robotset', urls=REMOTE, client=client)


@pytest.mark.parametrize('payload', [[], ['features'], 'v3.0', 42])
def test_get_dataset_info_non_object_body(payload):
    with pytest.raises(DatasetCompatibilityError, match='Dataset acme/robotset is not compatible'):
        get_dataset_info('acme/robotset', urls=REMOTE, client=_json_client(payload))


def test_get_dataset_info_transport_error():
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    with pytest.raises(DatasetCompatibilityError, match='acme/robotset is not compatible'):
        get_dataset_info('acme/robotset', urls=REMOTE, client=_mock_client(handler))


def test_transport_error_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError('connection refused', request=request)

    with pytest.raises(DatasetCompatibilityError):
        get_dataset_version('acme/robotset', urls=REMOTE, client=_mock_client(handler))
    assert len(calls) == 1


@pytest.mark.parametrize('version', ['v3.0', 'v2.1', 'v2.0'])
def test_supported_versions(version):
    client = _json_client({'codebase_version': version, 'features': {}})
    assert get_dataset_version('acme/robotset', urls=REMOTE, client=client) == version


def test_unsupported_version():
    client = _json_client({'codebase_version': 'v1.6', 'features': {}})
    with pytest.raises(DatasetCompatibilityError, match='codebase version v1.6, which is not supported'):
        get_dataset_version('acme/robotset', urls=REMOTE, client=client)


def test_missing_version():
    client = _json_client({'features': {}})
    with pytest.raises(DatasetCompatibilityError, match='does not contain codebase_version'):
        get_dataset_version('acme/robotset', urls=REMOTE, client=client)


# --- Through the local dataset server ---


def test_version_through_local_server(tmp_path):
    subset = tmp_path / 'acme' / 'robotset' / 'VLA_Arena' / 'meta'
    subset.mkdir(parents=True)
    (subset / 'info.json').write_text(json.dumps({'codebase_version': 'v3.0', 'features': {'action': {}}}))

    client = TestClient(create_app(ServerConfig(root_dir=tmp_path)))
    urls = DatasetUrls(local_dir=str(tmp_path), port=3000)
    assert get_dataset_version('acme/robotset', urls=urls, client=client) == 'v3.0'


def test_missing_dataset_through_local_server(tmp_path):
    client = TestClient(create_app(ServerConfig(root_dir=tmp_path)))
    urls = DatasetUrls(local_dir=str(tmp_path), port=3000)
    with pytest.raises(DatasetCompatibilityError, match='404'):
        get_dataset_info('acme/missing', urls=urls, client=client)
