"""Web tools: fetch a page as markdown and search the web.

Both tools are safe (no approval) but guarded: URLs must be public http(s)
addresses on standard ports, every redirect hop is re-validated, responses are
size and content-type limited, and requests are rate limited globally and per
domain.
"""

import asyncio
import ipaddress
import re
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin, urlsplit

import httpx
import trafilatura
from ddgs import DDGS

from exa_agent.config.settings import get_settings
from exa_agent.telemetry import get_logger
from exa_agent.tools.router import ToolExecutionError
from exa_agent.tools.types import ToolClass, ToolDefinition, ToolParameter

log = get_logger(__name__)

MAX_CONTENT_LENGTH = 1024 * 1024  # 1 MB
MAX_REDIRECTS = 5
ALLOWED_SCHEMES = ("http", "https")
ALLOWED_PORTS = (80, 443, 8080, 8443)
USER_AGENT = "exa-code-cli/1.0 (Web Content Fetcher)"
MAX_MARKDOWN_CHARS = 50_000

ALLOWED_CONTENT_TYPES = (
    "text/html",
    "text/plain",
    "application/xhtml+xml",
    "application/xml",
    "text/xml",
    "application/json",
)

BLOCKED_DOMAINS = frozenset({"localhost", "metadata.google.internal", "169.254.169.254"})

BLOCKED_IP_PATTERNS = (
    re.compile(r"^127\."),
    re.compile(r"^10\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^172\.(1[6-9]|2[0-9]|3[01])\."),
    re.compile(r"^169\.254\."),
    re.compile(r"^0\."),
    re.compile(r"^224\."),
)

SUSPICIOUS_QUERY_PATTERNS = (
    re.compile(r"site:localhost", re.IGNORECASE),
    re.compile(r"site:127\.0\.0\.1", re.IGNORECASE),
    re.compile(r"site:192\.168\.", re.IGNORECASE),
    re.compile(r"site:10\.", re.IGNORECASE),
    re.compile(r"intitle:index\.of", re.IGNORECASE),
    re.compile(r"filetype:sql", re.IGNORECASE),
    re.compile(r"inurl:admin", re.IGNORECASE),
)

SEARCH_PROVIDERS = ("auto", "duckduckgo", "google", "bing")


@dataclass
class URLValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    normalized_url: str | None = None
    domain: str | None = None


def validate_url(url: str) -> URLValidation:
    """Check that a URL is a public http(s) address on an allowed port."""
    if not isinstance(url, str) or not url.strip():
        return URLValidation(False, ["Invalid URL format"])

    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError as e:
        return URLValidation(False, [f"URL parsing failed: {e}"])

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES or not parts.hostname:
        return URLValidation(False, ["Invalid URL format"])

    domain = parts.hostname.lower()
    errors: list[str] = []

    if port is None:
        port = 443 if scheme == "https" else 80
    if port not in ALLOWED_PORTS:
        errors.append(f"Port {port} not allowed")

    if domain in BLOCKED_DOMAINS:
        errors.append(f"Domain {domain} is blocked")

    try:
        ip = ipaddress.ip_address(domain)
    except ValueError:
        ip = None
    if ip is not None:
        if any(p.match(domain) for p in BLOCKED_IP_PATTERNS) or (
            ip.version == 6 and (ip.is_private or ip.is_loopback or ip.is_link_local)
        ):
            errors.append(f"IP address {domain} is in blocked range")

    if "metadata" in domain or "internal" in domain:
        errors.append(f"Domain {domain} contains suspicious keywords")

    if errors:
        return URLValidation(False, errors, domain=domain)
    return URLValidation(True, [], normalized_url=parts.geturl(), domain=domain)


class RateLimiter:
    """Fixed one-minute windows: a global budget and a smaller per-domain one."""

    def __init__(
        self,
        max_per_minute: int = 10,
        max_per_domain_per_minute: int = 3,
        clock: Any = time.monotonic,
    ) -> None:
        self.max_per_minute = max_per_minute
        self.max_per_domain_per_minute = max_per_domain_per_minute
        self._clock = clock
        # key -> (window start, count)
        self._windows: dict[str, tuple[float, int]] = {}

    def _current(self, key: str, now: float) -> int:
        window = self._windows.get(key)
        if window is None or now - window[0] >= 60:
            return 0
        return window[1]

    def _bump(self, key: str, now: float) -> None:
        window = self._windows.get(key)
        if window is None or now - window[0] >= 60:
            self._windows[key] = (now, 1)
        else:
            self._windows[key] = (window[0], window[1] + 1)

    def check(self, domain: str) -> str | None:
        """Consume one request for ``domain``; return an error if over budget."""
        now = self._clock()
        if self._current("global", now) >= self.max_per_minute:
            return f"Global rate limit exceeded ({self.max_per_minute}/min)"
        domain_key = f"domain:{domain}"
        if self._current(domain_key, now) >= self.max_per_domain_per_minute:
            return f"Domain rate limit exceeded ({self.max_per_domain_per_minute}/min for {domain})"
        self._bump("global", now)
        self._bump(domain_key, now)
        return None

    def reset(self) -> None:
        self._windows.clear()


_rate_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    return _rate_limiter


def validate_web_fetch_parameters(url: str, prompt: str, timeout_ms: int | None = None) -> list[str]:
    """Validate web_fetch input. A valid URL consumes one rate-limit slot."""
    errors: list[str] = []
    validation = validate_url(url)
    if not validation.valid:
        errors.append(f"Invalid URL: {', '.join(validation.errors)}")

    if not prompt or not prompt.strip():
        errors.append("Prompt is required and cannot be empty")
    elif len(prompt) > 10_000:
        errors.append("Prompt too long (max 10,000 characters)")

    if timeout_ms is not None and not 1000 <= timeout_ms <= 60_000:
        errors.append("Timeout must be between 1,000 and 60,000 milliseconds")

    if validation.valid and validation.domain and not errors:
        rate_error = _rate_limiter.check(validation.domain)
        if rate_error:
            errors.append(f"Rate limit exceeded: {rate_error}")
    return errors


def validate_web_search_parameters(
    query: str, max_results: int | None = None, search_provider: str | None = None
) -> list[str]:
    errors: list[str] = []
    if not query or not query.strip():
        errors.append("Search query is required and cannot be empty")
    elif len(query) > 1000:
        errors.append("Search query too long (max 1,000 characters)")

    if query and any(p.search(query) for p in SUSPICIOUS_QUERY_PATTERNS):
        errors.append("Search query contains potentially harmful patterns")

    if max_results is not None and not 1 <= max_results <= 20:
        errors.append("Max results must be between 1 and 20")

    if search_provider is not None and search_provider.lower() not in SEARCH_PROVIDERS:
        errors.append(
            f"Invalid search provider: {search_provider}. Allowed: {', '.join(SEARCH_PROVIDERS)}"
        )
    return errors


def is_allowed_content_type(content_type: str) -> bool:
    lowered = content_type.lower()
    return any(allowed in lowered for allowed in ALLOWED_CONTENT_TYPES)


def html_to_markdown(html: str, url: str | None = None) -> dict[str, str]:
    """Extract the main content of an HTML page as markdown.

    Returns:
        Dictionary with ``markdown``, ``title`` and ``description``.
    """
    markdown = trafilatura.extract(
        html,
        url=url,
        output_format="markdown",
        include_comments=False,
        include_links=True,
        include_tables=True,
        include_images=False,
    ) or ""
    metadata = trafilatura.extract_metadata(html)
    title = (metadata.title if metadata and metadata.title else "") or ""
    description = (metadata.description if metadata and metadata.description else "") or ""

    # Collapse runs of blank lines
    markdown = re.sub(r"\n\s*\n\s*\n+", "\n\n", markdown).strip()
    return {"markdown": markdown, "title": title.strip(), "description": description.strip()}


async def fetch_url(url: str, timeout_seconds: float) -> tuple[str, str, str]:
    """GET a URL, re-validating every redirect hop.

    Returns:
        Tuple of (final URL, content type, body text).

    Raises:
        ToolExecutionError: On validation, transport, status, type or size failures.
    """
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }
    current = url
    async with httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=False, headers=headers) as client:
        for _ in range(MAX_REDIRECTS + 1):
            try:
                async with client.stream("GET", current) as response:
                    if response.is_redirect:
                        location = response.headers.get("location")
                        if not location:
                            raise ToolExecutionError(f"Redirect without location from {current}")
                        target = urljoin(current, location)
                        hop = validate_url(target)
                        if not hop.valid:
                            raise ToolExecutionError(
                                f"Redirect blocked: {', '.join(hop.errors)}"
                            )
                        current = hop.normalized_url or target
                        continue

                    if response.status_code >= 400:
                        raise ToolExecutionError(
                            f"HTTP {response.status_code}: {response.reason_phrase}"
                        )

                    content_type = response.headers.get("content-type", "")
                    if not is_allowed_content_type(content_type):
                        raise ToolExecutionError(f"Content type {content_type} not allowed")

                    declared = response.headers.get("content-length")
                    if declared and declared.isdigit() and int(declared) > MAX_CONTENT_LENGTH:
                        raise ToolExecutionError(
                            f"Content too large ({declared} bytes, max {MAX_CONTENT_LENGTH})"
                        )

                    body = bytearray()
                    async for chunk in response.aiter_bytes():
                        body.extend(chunk)
                        if len(body) > MAX_CONTENT_LENGTH:
                            raise ToolExecutionError(
                                f"Content too large (max {MAX_CONTENT_LENGTH} bytes)"
                            )
                    encoding = response.encoding or "utf-8"
                    return current, content_type, bytes(body).decode(encoding, errors="replace")
            except httpx.TimeoutException as e:
                raise ToolExecutionError("Request timeout") from e
            except httpx.ConnectError as e:
                raise ToolExecutionError(f"Connection failed: {e}") from e
            except httpx.HTTPError as e:
                raise ToolExecutionError(f"HTTP request failed: {e}") from e

    raise ToolExecutionError(f"Too many redirects (max {MAX_REDIRECTS})")


async def web_fetch_executor(url: str, prompt: str, timeout: int | None = None) -> dict[str, Any]:
    """Execute web_fetch tool.

    Fetches a public page and returns its main content as markdown, together
    with the prompt describing what the model wants from it.

    Args:
        url: http(s) URL to fetch.
        prompt: What to look for in the page.
        timeout: Timeout in milliseconds (1000-60000).
    """
    errors = validate_web_fetch_parameters(url, prompt, timeout)
    if errors:
        raise ToolExecutionError(f"Web fetch validation failed: {'; '.join(errors)}")

    timeout_seconds = timeout / 1000 if timeout else get_settings().web_fetch_timeout_seconds
    final_url, content_type, body = await fetch_url(url, timeout_seconds)

    if "html" in content_type.lower():
        processed = await asyncio.to_thread(html_to_markdown, body, final_url)
        content = processed["markdown"]
        title = processed["title"]
        description = processed["description"]
        if not content:
            raise ToolExecutionError(f"No readable content found at {final_url}")
    else:
        content, title, description = body.strip(), "", ""

    truncated = len(content) > MAX_MARKDOWN_CHARS
    if truncated:
        content = content[:MAX_MARKDOWN_CHARS] + "\n... [truncated]"

    log.debug("web_fetch_completed", url=final_url, chars=len(content), truncated=truncated)
    return {
        "url": final_url,
        "title": title,
        "description": description,
        "content_type": content_type,
        "content": content,
        "truncated": truncated,
        "prompt": prompt,
    }


def _search_sync(query: str, max_results: int, backend: str) -> list[dict[str, str]]:
    results: list[dict[str, str]] = []
    with DDGS() as ddgs:
        for hit in ddgs.text(query, max_results=max_results, backend=backend):
            results.append(
                {
                    "title": hit.get("title", ""),
                    "url": hit.get("href", ""),
                    "snippet": hit.get("body", ""),
                }
            )
    return results


async def web_search_executor(
    query: str, max_results: int = 5, search_provider: str = "auto"
) -> dict[str, Any]:
    """Execute web_search tool."""
    errors = validate_web_search_parameters(query, max_results, search_provider)
    if errors:
        raise ToolExecutionError(f"Web search validation failed: {'; '.join(errors)}")

    try:
        results = await asyncio.to_thread(
            _search_sync, query.strip(), max_results, search_provider.lower()
        )
    except Exception as e:
        log.warning("web_search_failed", query=query, error=str(e))
        raise ToolExecutionError(f"Search failed: {e}") from e

    return {"query": query, "provider": search_provider.lower(), "results": results, "count": len(results)}


web_fetch_tool = ToolDefinition(
    name="web_fetch",
    description=(
        "Fetch a public web page and return its main content as markdown. "
        "Describe in 'prompt' what you need from the page."
    ),
    category="web",
    tool_class=ToolClass.SAFE,
    parameters=[
        ToolParameter(name="url", type="string", description="http or https URL to fetch"),
        ToolParameter(name="prompt", type="string", description="What to extract or analyze"),
        ToolParameter(
            name="timeout",
            type="integer",
            description="Timeout in milliseconds (1000-60000)",
            required=False,
        ),
    ],
)

web_search_tool = ToolDefinition(
    name="web_search",
    description="Search the web and return result titles, URLs and snippets",
    category="web",
    tool_class=ToolClass.SAFE,
    parameters=[
        ToolParameter(name="query", type="string", description="Search query"),
        ToolParameter(
            name="max_results",
            type="integer",
            description="Number of results (1-20, default 5)",
            required=False,
            default=5,
        ),
        ToolParameter(
            name="search_provider",
            type="string",
            description="Search backend",
            required=False,
            default="auto",
            enum=list(SEARCH_PROVIDERS),
        ),
    ],
)
