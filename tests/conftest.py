"""Shared fixtures and test utilities for pytest."""

import os
import tempfile
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Generator
from unittest.mock import Mock

import pytest

# The module-level config is built on import, so it needs credentials first
os.environ.setdefault('IMGUR_CLIENT_ID', 'test_client_id')
os.environ.setdefault('IMGUR_CLIENT_SECRET', 'test_client_secret')
os.environ.setdefault('LOG_FILE', '')

from config import Config  # noqa: E402
from imgur_client import ImgurClient  # noqa: E402
from settings_store import SettingsStore, USERNAME_KEY, REFRESH_TOKEN_KEY  # noqa: E402


TEST_API_URL = 'https://api.test.imgur.local/'


class ImmediateExecutor(Executor):
    """Runs submitted work synchronously."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class DeferredExecutor(Executor):
    """Holds submitted work until run_pending() is called."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_pending(self):
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def screenshot_dir(tmp_path) -> Path:
    """Directory configured as the screenshot location."""
    path = tmp_path / 'screenshots'
    path.mkdir()
    return path


@pytest.fixture
def mock_config(monkeypatch, tmp_path, screenshot_dir):
    """Create a mock config object and patch the module-level config."""
    monkeypatch.setenv('IMGUR_CLIENT_ID', 'test_client_id')
    monkeypatch.setenv('IMGUR_CLIENT_SECRET', 'test_client_secret')
    monkeypatch.setenv('IMGUR_API_URL', TEST_API_URL)
    monkeypatch.setenv('SETTINGS_FILE', str(tmp_path / 'settings.json'))
    monkeypatch.setenv('SCREENSHOT_LOCATION', str(screenshot_dir))
    monkeypatch.setenv('LOG_LEVEL', 'DEBUG')
    monkeypatch.setenv('LOG_FILE', '')

    config_instance = Config()

    # Patch the module-level config in config module and all modules that import it
    import config as config_module
    import file_processing
    import imgur_client
    import main
    import screenshot_monitor
    import screenshot_uploader
    import settings_store
    monkeypatch.setattr(config_module, 'config', config_instance)
    monkeypatch.setattr(file_processing, 'config', config_instance)
    monkeypatch.setattr(imgur_client, 'config', config_instance)
    monkeypatch.setattr(main, 'config', config_instance)
    monkeypatch.setattr(screenshot_monitor, 'config', config_instance)
    monkeypatch.setattr(screenshot_uploader, 'config', config_instance)
    monkeypatch.setattr(settings_store, 'config', config_instance)

    return config_instance


@pytest.fixture
def store(tmp_path) -> SettingsStore:
    """Empty settings store in a temporary file."""
    return SettingsStore(str(tmp_path / 'store.json'))


@pytest.fixture
def logged_in_store(store) -> SettingsStore:
    """Settings store holding a username and refresh token."""
    store.set(USERNAME_KEY, 'test_user')
    store.set(REFRESH_TOKEN_KEY, 'stored_refresh_token')
    return store


@pytest.fixture
def client(mock_config, store) -> ImgurClient:
    """Anonymous client that runs network calls synchronously."""
    return ImgurClient('test_client_id', 'test_client_secret', store=store,
                       api_url=TEST_API_URL, timeout=5, executor=ImmediateExecutor())


@pytest.fixture
def make_response():
    """Factory for mock HTTP responses."""
    def create(status_code=200, payload=None, content_type='application/json'):
        response = Mock()
        response.status_code = status_code
        if payload is None:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.json.return_value = payload
        response.headers = {'content-type': content_type}
        return response

    return create


@pytest.fixture
def mock_requests(monkeypatch, make_response):
    """Mock requests module for testing API calls."""
    mock_response = make_response(200, {'data': {'link': 'https://i.imgur.com/abc.png'}})
    mock_post = Mock(return_value=mock_response)

    monkeypatch.setattr('requests.post', mock_post)

    return {
        'post': mock_post,
        'response': mock_response
    }
