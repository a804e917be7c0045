import logging

from localds.utils.logging import init_logging


def test_log_level_env_override(monkeypatch):
    monkeypatch.setenv('LOG_LEVEL', 'warning')
    init_logging('DEBUG')
    assert logging.getLogger().level == logging.WARNING


def test_int_level(monkeypatch):
    monkeypatch.delenv('LOG_LEVEL', raising=False)
    init_logging(logging.DEBUG)
    assert logging.getLogger().level == logging.DEBUG


def test_quiet_access_log(monkeypatch):
    monkeypatch.delenv('LOG_LEVEL', raising=False)
    init_logging('INFO', quiet_access_log=True)
    assert logging.getLogger('uvicorn.access').level == logging.WARNING
