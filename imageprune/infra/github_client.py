"""
GitHub API client infrastructure for imageprune.

Provides a clean abstraction over the GitHub REST API:
- Bearer token authentication on every request
- Lazy pagination following Link: rel="next"
- Rate limit handling: the primary limit is retried once after the
  advertised delay, the secondary (abuse) limit is never retried
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ..domain.package import GitHubRepository
from ..exit_codes import GitHubAPIError, RateLimitError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
PAGE_SIZE = 100


@dataclass
class RateLimitStatus:
    """GitHub API rate limit status."""
    remaining: int
    limit: int
    reset_time: int  # Unix timestamp
    used: int

    @property
    def seconds_until_reset(self) -> int:
        return max(0, self.reset_time - int(time.time()))

    @property
    def is_low(self) -> bool:
        """Check if rate limit is getting low (< 100 remaining)."""
        return self.remaining < 100


class GitHubClient:
    """
    Async GitHub REST API client.

    Example:
        async with GitHubClient(token) as github:
            repo = await github.get_repository("octo", "app")
            async for branch in github.iter_items(repo.branches_url):
                print(branch["name"])
    """

    def __init__(
        self,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        retries: int = 3,
        max_rate_limit_retries: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        log: Optional[logging.Logger] = None,
    ):
        """
        Initialize GitHubClient.

        Args:
            token: GitHub token sent as a bearer token
            api_url: REST API base URL (GitHub Enterprise uses its own)
            timeout: Per-request timeout in seconds
            retries: Connection-level retries done by the transport
            max_rate_limit_retries: Retries after a primary rate limit response
            transport: Custom httpx transport (used by tests)
            log: Logger to use instead of the module logger
        """
        self.token = token
        self.api_url = api_url.rstrip('/')
        self.max_rate_limit_retries = max_rate_limit_retries
        self.log = log or logger
        self._rate_limit_status: Optional[RateLimitStatus] = None
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers={
                'Accept': 'application/vnd.github+json',
                'Authorization': f'Bearer {token}',
                'X-GitHub-Api-Version': API_VERSION,
                'User-Agent': 'imageprune',
            },
            timeout=timeout,
            transport=transport or httpx.AsyncHTTPTransport(retries=retries),
        )

    async def __aenter__(self) -> 'GitHubClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def rate_limit_status(self) -> Optional[RateLimitStatus]:
        """Rate limit status seen on the last response, if any."""
        return self._rate_limit_status

    def _update_rate_limit_from_headers(self, headers: httpx.Headers) -> None:
        """Update rate limit status from response headers."""
        try:
            remaining = int(headers.get('X-RateLimit-Remaining', -1))
            limit = int(headers.get('X-RateLimit-Limit', -1))
            reset_time = int(headers.get('X-RateLimit-Reset', 0))
            used = int(headers.get('X-RateLimit-Used', 0))
        except (ValueError, TypeError):
            return

        if remaining >= 0 and limit >= 0:
            self._rate_limit_status = RateLimitStatus(
                remaining=remaining,
                limit=limit,
                reset_time=reset_time,
                used=used
            )
            if self._rate_limit_status.is_low:
                self.log.debug(
                    f"GitHub API rate limit low: {remaining}/{limit} remaining, "
                    f"resets in {self._rate_limit_status.seconds_until_reset}s"
                )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text
        if isinstance(body, dict):
            return str(body.get('message', ''))
        return ''

    def _is_secondary_rate_limit(self, response: httpx.Response) -> bool:
        if response.status_code not in (403, 429):
            return False
        return 'secondary rate limit' in self._error_message(response).lower()

    @staticmethod
    def _is_primary_rate_limit(response: httpx.Response) -> bool:
        if response.status_code not in (403, 429):
            return False
        if response.headers.get('X-RateLimit-Remaining') == '0':
            return True
        return response.status_code == 429

    @staticmethod
    def _retry_after(response: httpx.Response) -> float:
        """Seconds to wait before retrying a rate limited request."""
        retry_after = response.headers.get('Retry-After')
        if retry_after is not None:
            try:
                return max(0.0, float(retry_after))
            except ValueError:
                pass
        reset = response.headers.get('X-RateLimit-Reset')
        if reset is not None:
            try:
                return max(0.0, float(reset) - time.time())
            except ValueError:
                pass
        return 0.0

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send one request, handling rate limits.

        Raises:
            RateLimitError: secondary limit hit, or primary limit hit again
                after the allowed retries
            GitHubAPIError: any other non-2xx response
        """
        rate_limit_retries = 0
        while True:
            response = await self._client.request(method, url, params=params)
            self._update_rate_limit_from_headers(response.headers)
            self.log.debug(f"{method} {response.request.url} -> {response.status_code}")

            if self._is_secondary_rate_limit(response):
                self.log.warning(f"SecondaryRateLimit detected for request {method} {url}")
                raise RateLimitError(
                    f"Secondary rate limit hit for {method} {url}",
                    response.status_code,
                    secondary=True,
                )

            if self._is_primary_rate_limit(response):
                self.log.warning(f"Request quota exhausted for request {method} {url}")
                if rate_limit_retries < self.max_rate_limit_retries:
                    rate_limit_retries += 1
                    delay = self._retry_after(response)
                    self.log.info(f"Retrying after {delay:.0f} seconds!")
                    await asyncio.sleep(delay)
                    continue
                raise RateLimitError(
                    f"Rate limit exhausted for {method} {url}",
                    response.status_code,
                )

            if response.is_error:
                raise GitHubAPIError(
                    f"{method} {url} failed: {response.status_code} {self._error_message(response)}".rstrip(),
                    response.status_code,
                )
            return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise GitHubAPIError(
                f"Malformed JSON from {response.request.url}: {e}",
                response.status_code,
            ) from e

    async def paginate(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Lazily yield every page of a list endpoint.

        The next page URL comes from the Link header and already carries
        the query string, so params only apply to the first request.
        """
        next_url: Optional[str] = url
        page_params: Optional[Dict[str, Any]] = {'per_page': PAGE_SIZE, **(params or {})}
        while next_url:
            response = await self.request('GET', next_url, params=page_params)
            page = self._json(response)
            if not isinstance(page, list):
                raise GitHubAPIError(f"Expected a list from {next_url}, got {type(page).__name__}")
            yield page
            next_url = response.links.get('next', {}).get('url')
            page_params = None

    async def iter_items(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield every item of every page of a list endpoint."""
        async for page in self.paginate(url, params):
            for item in page:
                yield item

    async def get_repository(self, owner: str, name: str) -> GitHubRepository:
        """
        Get repository metadata.

        Args:
            owner: Repository owner
            name: Repository name

        Returns:
            GitHubRepository with hypermedia URLs and node_id
        """
        response = await self.request('GET', f"/repos/{owner}/{name}")
        return GitHubRepository.from_api_response(self._json(response))

    async def delete(self, url: str) -> None:
        """Delete the resource at url (e.g. a package version)."""
        await self.request('DELETE', url)
