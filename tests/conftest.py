"""
Shared fixtures: a mock HTTP client and a clean process-wide parser binding.
"""
import httpx
import pytest

from jsonfetch import parsers


@pytest.fixture(autouse=True)
def _reset_default_parser():
    """Each test starts with no default parser and leaves none behind."""
    previous = parsers.set_default_parser(None)
    yield
    parsers.set_default_parser(previous)


@pytest.fixture
def make_client():
    """Return a factory building an AsyncClient that answers through `handler`."""
    def factory(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return factory


@pytest.fixture
def json_response():
    def factory(status_code=200, content=b'', headers=None):
        return lambda request: httpx.Response(status_code, content=content, headers=headers)
    return factory


class Recorder:
    """Collects callback invocations as (name, fetcher) tuples."""

    def __init__(self):
        self.calls = []

    def on_success(self, fetcher):
        self.calls.append(("success", fetcher))

    def on_failure(self, fetcher):
        self.calls.append(("failure", fetcher))

    @property
    def names(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def recorder():
    return Recorder()
