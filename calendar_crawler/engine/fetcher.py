"""HTTP page fetching with ordered fallback strategies."""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Protocol
from urllib.parse import quote

import httpx
import structlog

from ..config import ScrapeConfig
from ..errors import FetchError

ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


@dataclass(slots=True)
class FetchRequest:
    """Input for a single strategy attempt."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 60.0


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    text: str
    headers: Dict[str, str]
    strategy: str = "direct"
    raw: httpx.Response | None = field(repr=False, default=None)


class FetchStrategy(Protocol):
    name: str

    def fetch(self, client: httpx.Client, request: FetchRequest) -> FetchResponse:
        """Retrieve ``request.url`` or raise :class:`FetchError`."""


def _send(client: httpx.Client, url: str, request: FetchRequest, strategy: str) -> FetchResponse:
    try:
        response = client.get(url, headers=request.headers, timeout=request.timeout)
    except httpx.TimeoutException as exc:
        raise FetchError("Request timeout", status_code=408, cause=exc, reason="timeout") from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"Network error: {exc}", status_code=503, cause=exc, reason="network") from exc
    if not response.is_success:
        raise FetchError(
            f"HTTP Error: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
            reason="http_status",
        )
    return FetchResponse(
        url=request.url,
        status_code=response.status_code,
        text=response.text,
        headers=dict(response.headers),
        strategy=strategy,
        raw=response,
    )


class DirectStrategy:
    name = "direct"

    def fetch(self, client: httpx.Client, request: FetchRequest) -> FetchResponse:
        return _send(client, request.url, request, self.name)


class RelayStrategy:
    """Fetch through a URL-prefix relay such as ``https://relay/raw?url=``."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        self.name = f"relay:{prefix}"

    def fetch(self, client: httpx.Client, request: FetchRequest) -> FetchResponse:
        return _send(client, self.prefix + quote(request.url, safe=""), request, self.name)


class BrowserStrategy:
    """Render the page in headless Chromium for script-built listings."""

    name = "browser"

    def fetch(self, client: httpx.Client, request: FetchRequest) -> FetchResponse:  # noqa: ARG002
        try:
            from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
            from playwright.sync_api import sync_playwright
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "Browser fetching requires installing the 'playwright' package."
            ) from exc

        timeout_ms = int(request.timeout * 1000)
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(
                headless=True, args=["--no-sandbox", "--disable-setuid-sandbox"]
            )
            try:
                context = browser.new_context(user_agent=request.headers.get("User-Agent"))
                page = context.new_page()
                try:
                    response = page.goto(request.url, wait_until="networkidle", timeout=timeout_ms)
                except PlaywrightTimeoutError as exc:
                    raise FetchError(
                        "Request timeout", status_code=408, cause=exc, reason="timeout"
                    ) from exc
                status_code = response.status if response else 200
                if status_code >= 400:
                    raise FetchError(
                        f"HTTP Error: {status_code}", status_code=status_code, reason="http_status"
                    )
                return FetchResponse(
                    url=page.url,
                    status_code=status_code,
                    text=page.content(),
                    headers=dict(response.headers) if response else {},
                    strategy=self.name,
                )
            finally:
                browser.close()


class PageFetcher:
    """Try each strategy in order, with bounded retries per strategy."""

    def __init__(
        self,
        config: ScrapeConfig,
        logger: structlog.BoundLogger | None = None,
        strategies: list[FetchStrategy] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        agents = [agent.strip() for agent in config.user_agents if agent.strip()]
        self._user_agents = itertools.cycle(agents) if agents else None
        self.logger = logger or structlog.get_logger("calendar_crawler.fetcher")
        self.strategies = strategies if strategies is not None else self._default_strategies()
        self.sleep = sleep
        self._client = httpx.Client(follow_redirects=True, timeout=config.timeout)

    def _default_strategies(self) -> list[FetchStrategy]:
        strategies: list[FetchStrategy] = [DirectStrategy()]
        strategies.extend(RelayStrategy(prefix) for prefix in self.config.relay_proxies)
        if self.config.use_browser:
            strategies.append(BrowserStrategy())
        return strategies

    def close(self) -> None:
        self._client.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": ACCEPT_HTML}
        if self._user_agents is not None:
            headers["User-Agent"] = next(self._user_agents)
        return headers

    def fetch(self, url: str, timeout: float | None = None) -> FetchResponse:
        request = FetchRequest(url=url, headers=self._headers(), timeout=timeout or self.config.timeout)
        last_error: Exception | None = None
        for strategy in self.strategies:
            for attempt in range(1, self.config.attempts_per_strategy + 1):
                try:
                    response = strategy.fetch(self._client, request)
                except FetchError as exc:
                    last_error = exc
                    self.logger.warning(
                        "fetch_failed",
                        url=url,
                        strategy=strategy.name,
                        attempt=attempt,
                        reason=exc.reason,
                        status_code=exc.status_code,
                    )
                except Exception as exc:  # noqa: BLE001
                    last_error = exc
                    self.logger.warning(
                        "fetch_failed", url=url, strategy=strategy.name, attempt=attempt, error=str(exc)
                    )
                else:
                    self.logger.info("fetch_succeeded", url=url, strategy=strategy.name, attempt=attempt)
                    return response
                if attempt < self.config.attempts_per_strategy and self.config.retry_backoff:
                    self.sleep(self.config.retry_backoff * 2 ** (attempt - 1))
        raise FetchError(
            "All fetch strategies failed", status_code=500, cause=last_error, reason="exhausted"
        ) from last_error


__all__ = [
    "BrowserStrategy",
    "DirectStrategy",
    "FetchRequest",
    "FetchResponse",
    "FetchStrategy",
    "PageFetcher",
    "RelayStrategy",
]
