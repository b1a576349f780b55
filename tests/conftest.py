"""Shared fixtures: isolate config and credentials, and stub outgoing HTTP."""

import httpx
import pytest

from exa_agent.config import reset_settings
from exa_agent.config.local_settings import ENV_VARS


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Point config and log directories at tmp and hide real API keys."""
    monkeypatch.setenv("EXA_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("EXA_LOG_DIR", str(tmp_path / "logs"))
    for fields in ENV_VARS.values():
        for env_name in fields.values():
            monkeypatch.delenv(env_name, raising=False)
    reset_settings()
    yield
    reset_settings()


class HTTPStub:
    """Answers httpx requests from a table keyed by URL (without query) and records them."""

    def __init__(self) -> None:
        self.routes: dict[str, object] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, status_code: int = 200, **kwargs) -> None:
        self.routes[url] = lambda: httpx.Response(status_code, **kwargs)

    def fail(self, url: str, exc: Exception) -> None:
        def raise_error():
            raise exc

        self.routes[url] = raise_error

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get(str(request.url).split("?", 1)[0])
        if answer is None:
            raise httpx.ConnectError(f"No stub for {request.url}", request=request)
        return answer()


@pytest.fixture
def http_stub(monkeypatch) -> HTTPStub:
    """Route every httpx.AsyncClient through a MockTransport backed by an HTTPStub."""
    stub = HTTPStub()
    transport = httpx.MockTransport(stub)
    real_client = httpx.AsyncClient
    monkeypatch.setattr(httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport, **kwargs))
    return stub
