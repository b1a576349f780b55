"""Tests for the web_fetch and web_search tools."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from exa_agent.tools import ToolExecutionError
from exa_agent.tools.web import (
    MAX_REDIRECTS,
    RateLimiter,
    get_rate_limiter,
    is_allowed_content_type,
    validate_url,
    validate_web_fetch_parameters,
    validate_web_search_parameters,
    web_fetch_executor,
    web_search_executor,
)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestValidateUrl:
    def test_public_https(self) -> None:
        result = validate_url("https://docs.python.org/3/library/asyncio.html")

        assert result.valid is True
        assert result.domain == "docs.python.org"
        assert result.normalized_url == "https://docs.python.org/3/library/asyncio.html"

    @pytest.mark.parametrize("url", ["ftp://example.com/file", "not a url", "", "https://"])
    def test_invalid_format(self, url) -> None:
        result = validate_url(url)
        assert result.valid is False
        assert result.errors == ["Invalid URL format"]

    def test_port_not_allowed(self) -> None:
        assert validate_url("http://example.com:22/").errors == ["Port 22 not allowed"]

    def test_allowed_alternate_port(self) -> None:
        assert validate_url("http://example.com:8080/").valid is True

    def test_blocked_domain(self) -> None:
        assert "Domain localhost is blocked" in validate_url("http://localhost/").errors

    @pytest.mark.parametrize("host", ["127.0.0.1", "10.1.2.3", "192.168.0.10", "172.20.0.1", "169.254.1.1"])
    def test_private_ipv4_blocked(self, host) -> None:
        result = validate_url(f"http://{host}/")
        assert f"IP address {host} is in blocked range" in result.errors

    def test_public_ip_allowed(self) -> None:
        assert validate_url("http://172.32.0.1/").valid is True

    def test_ipv6_loopback_blocked(self) -> None:
        assert validate_url("http://[::1]/").valid is False

    def test_suspicious_keywords(self) -> None:
        result = validate_url("https://corp.internal.example.com/")
        assert result.errors == ["Domain corp.internal.example.com contains suspicious keywords"]


class TestRateLimiter:
    def test_domain_budget(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(max_per_minute=10, max_per_domain_per_minute=2, clock=clock)

        assert limiter.check("a.com") is None
        assert limiter.check("a.com") is None
        assert limiter.check("a.com") == "Domain rate limit exceeded (2/min for a.com)"
        assert limiter.check("b.com") is None

    def test_global_budget(self) -> None:
        limiter = RateLimiter(max_per_minute=2, max_per_domain_per_minute=5, clock=FakeClock())

        limiter.check("a.com")
        limiter.check("b.com")
        assert limiter.check("c.com") == "Global rate limit exceeded (2/min)"

    def test_window_resets_after_a_minute(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(max_per_minute=1, max_per_domain_per_minute=1, clock=clock)

        assert limiter.check("a.com") is None
        assert limiter.check("a.com") is not None
        clock.now += 60
        assert limiter.check("a.com") is None


class TestParameterValidation:
    def test_fetch_requires_prompt(self) -> None:
        errors = validate_web_fetch_parameters("https://example.com", "  ")
        assert errors == ["Prompt is required and cannot be empty"]

    def test_fetch_timeout_range(self) -> None:
        errors = validate_web_fetch_parameters("https://example.com", "summary", timeout_ms=500)
        assert errors == ["Timeout must be between 1,000 and 60,000 milliseconds"]

    def test_fetch_consumes_rate_limit(self) -> None:
        for _ in range(3):
            assert validate_web_fetch_parameters("https://example.com/a", "x") == []

        (error,) = validate_web_fetch_parameters("https://example.com/b", "x")
        assert error.startswith("Rate limit exceeded: Domain rate limit exceeded")

    def test_search_patterns(self) -> None:
        assert validate_web_search_parameters("python asyncio") == []
        assert validate_web_search_parameters("site:localhost admin") == [
            "Search query contains potentially harmful patterns"
        ]
        assert validate_web_search_parameters("x", max_results=50) == [
            "Max results must be between 1 and 20"
        ]
        (error,) = validate_web_search_parameters("x", search_provider="yahoo")
        assert error.startswith("Invalid search provider: yahoo")

    def test_content_types(self) -> None:
        assert is_allowed_content_type("text/html; charset=utf-8")
        assert is_allowed_content_type("application/json")
        assert not is_allowed_content_type("image/png")


class TestWebFetch:
    @pytest.mark.asyncio
    async def test_plain_text(self, http_stub) -> None:
        http_stub.add(
            "https://example.com/notes.txt", text="  hello world  ", headers={"content-type": "text/plain"}
        )

        result = await web_fetch_executor("https://example.com/notes.txt", "read it")

        assert result["content"] == "hello world"
        assert result["url"] == "https://example.com/notes.txt"
        assert result["truncated"] is False
        assert result["prompt"] == "read it"
        assert http_stub.last.method == "GET"

    @pytest.mark.asyncio
    async def test_html_is_converted(self, http_stub) -> None:
        http_stub.add(
            "https://example.com/",
            text="<html><body><p>Hi</p></body></html>",
            headers={"content-type": "text/html"},
        )
        converted = {"markdown": "# Hi", "title": "Example", "description": "A page"}

        with patch("exa_agent.tools.web.html_to_markdown", return_value=converted) as convert:
            result = await web_fetch_executor("https://example.com/", "summarize")

        convert.assert_called_once()
        assert result["content"] == "# Hi"
        assert result["title"] == "Example"
        assert result["description"] == "A page"

    @pytest.mark.asyncio
    async def test_redirect_followed(self, http_stub) -> None:
        http_stub.add("https://example.com/old", 301, headers={"location": "/new"})
        http_stub.add("https://example.com/new", text="moved", headers={"content-type": "text/plain"})

        result = await web_fetch_executor("https://example.com/old", "x")

        assert result["url"] == "https://example.com/new"
        assert result["content"] == "moved"
        assert [str(r.url) for r in http_stub.requests] == ["https://example.com/old", "https://example.com/new"]

    @pytest.mark.asyncio
    async def test_redirect_to_private_host_blocked(self, http_stub) -> None:
        http_stub.add("https://example.com/sneaky", 302, headers={"location": "http://169.254.169.254/latest"})

        with pytest.raises(ToolExecutionError, match="Redirect blocked"):
            await web_fetch_executor("https://example.com/sneaky", "x")

        assert len(http_stub.requests) == 1

    @pytest.mark.asyncio
    async def test_too_many_redirects(self, http_stub) -> None:
        http_stub.add("https://example.com/loop", 302, headers={"location": "https://example.com/loop"})

        with pytest.raises(ToolExecutionError, match=f"Too many redirects \\(max {MAX_REDIRECTS}\\)"):
            await web_fetch_executor("https://example.com/loop", "x")

    @pytest.mark.asyncio
    async def test_http_error(self, http_stub) -> None:
        http_stub.add("https://example.com/missing", 404)

        with pytest.raises(ToolExecutionError, match="HTTP 404: Not Found"):
            await web_fetch_executor("https://example.com/missing", "x")

    @pytest.mark.asyncio
    async def test_content_type_rejected(self, http_stub) -> None:
        http_stub.add("https://example.com/logo.png", content=b"\x89PNG", headers={"content-type": "image/png"})

        with pytest.raises(ToolExecutionError, match="Content type image/png not allowed"):
            await web_fetch_executor("https://example.com/logo.png", "x")

    @pytest.mark.asyncio
    async def test_connection_error(self, http_stub) -> None:
        http_stub.fail("https://example.com/", httpx.ConnectError("refused"))

        with pytest.raises(ToolExecutionError, match="Connection failed"):
            await web_fetch_executor("https://example.com/", "x")

    @pytest.mark.asyncio
    async def test_validation_failure_makes_no_request(self, http_stub) -> None:
        with pytest.raises(ToolExecutionError, match="Web fetch validation failed"):
            await web_fetch_executor("http://localhost/", "x")

        assert http_stub.requests == []


class TestWebSearch:
    @pytest.mark.asyncio
    async def test_results_mapped(self) -> None:
        with patch("exa_agent.tools.web.DDGS") as ddgs_cls:
            session = ddgs_cls.return_value.__enter__.return_value
            session.text.return_value = [
                {"title": "asyncio", "href": "https://docs.python.org/3/library/asyncio.html", "body": "Async IO"},
            ]

            result = await web_search_executor("python asyncio", max_results=3)

        session.text.assert_called_once_with("python asyncio", max_results=3, backend="auto")
        assert result["count"] == 1
        assert result["results"][0] == {
            "title": "asyncio",
            "url": "https://docs.python.org/3/library/asyncio.html",
            "snippet": "Async IO",
        }

    @pytest.mark.asyncio
    async def test_provider_failure(self) -> None:
        failing = MagicMock(side_effect=RuntimeError("rate limited"))
        with patch("exa_agent.tools.web.DDGS", failing):
            with pytest.raises(ToolExecutionError, match="Search failed: rate limited"):
                await web_search_executor("python")

    @pytest.mark.asyncio
    async def test_invalid_query(self) -> None:
        with pytest.raises(ToolExecutionError, match="Web search validation failed"):
            await web_search_executor("")
