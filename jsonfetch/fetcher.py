"""
HTTP transport: runs one request on the event loop and reports a FetchResult.

Handles redirects, timeouts, the response size cap and headers. Keeps network
code separate from parsing and callback dispatch.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx
import structlog

from .errors import FetcherStateError
from .request import RequestDescriptor

logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = 'jsonfetch/1.0'


@dataclass
class FetcherSettings:
    """Transport knobs. Only used when the fetcher builds its own client."""

    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 30.0
    max_redirects: int = 5
    max_response_size: int = 10 * 1024 * 1024  # 10MB

    @classmethod
    def from_config(cls, config) -> "FetcherSettings":
        section = config.fetcher
        defaults = cls()
        return cls(
            user_agent=section.get('user_agent', defaults.user_agent),
            timeout=float(section.get('timeout', defaults.timeout)),
            max_redirects=int(section.get('max_redirects', defaults.max_redirects)),
            max_response_size=int(section.get('max_response_size', defaults.max_response_size)),
        )


class FetchResult:
    def __init__(
        self,
        url: str,
        status_code: int,
        content: bytes = b'',
        headers: Dict[str, str] = None,
        final_url: str = None,
        fetch_time: float = 0.0,
        error: str = None,
        exception: Exception = None,
        content_type: str = None,
        encoding: str = None
    ):
        """Initialize a FetchResult with HTTP response data and metadata."""
        self.url = url
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.final_url = final_url or url
        self.fetch_time = fetch_time
        self.error = error
        self.exception = exception
        self.content_type = content_type
        self.encoding = encoding

    @property
    def success(self) -> bool:
        """Check if the fetch was successful (no error and 2xx status code)."""
        return self.error is None and 200 <= self.status_code < 300

    @property
    def size(self) -> int:
        """Get the size of the response content in bytes."""
        return len(self.content)

    def __repr__(self) -> str:
        return f"FetchResult(url={self.url!r}, status_code={self.status_code}, size={self.size}, error={self.error!r})"


class HTTPFetcher:
    """Drives a single RequestDescriptor through httpx.

    `on_complete` is called exactly once with a FetchResult, from the task
    running on the event loop, unless the fetch is cancelled first.
    """

    def __init__(
        self,
        request: RequestDescriptor,
        on_complete: Callable[[FetchResult], None],
        client: httpx.AsyncClient = None,
        settings: FetcherSettings = None,
    ):
        self.request = request
        self.on_complete = on_complete
        self.settings = settings or FetcherSettings()
        self._client = client
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self._result: Optional[FetchResult] = None
        self._lock = threading.Lock()

    @property
    def result(self) -> Optional[FetchResult]:
        return self._result

    @property
    def status_code(self) -> Optional[int]:
        return self._result.status_code if self._result else None

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    def start(self) -> asyncio.Task:
        """Schedule the request on the running event loop and return immediately."""
        with self._lock:
            if self._task is not None:
                raise FetcherStateError(f"Request to {self.request.url} already started")
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise FetcherStateError("start() must be called from a running event loop") from e
            self._loop = loop
            self._task = loop.create_task(self._run())
        logger.debug("transport_started", method=self.request.method, url=self.request.url)
        return self._task

    def cancel(self) -> bool:
        """Cancel the in-flight task. Safe to call from any thread."""
        with self._lock:
            task = self._task
            if task is None or task.done():
                return False
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            task.cancel()
        else:
            self._loop.call_soon_threadsafe(task.cancel)
        logger.debug("transport_cancelled", url=self.request.url)
        return True

    async def _run(self):
        result = await self.fetch()
        self._result = result
        self.on_complete(result)

    async def fetch(self) -> FetchResult:
        """Perform the HTTP call and return a FetchResult containing response data."""
        if self._client is not None:
            return await self._fetch_with(self._client)

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.timeout),
            follow_redirects=True,
            max_redirects=self.settings.max_redirects,
            headers={'User-Agent': self.settings.user_agent},
        ) as client:
            return await self._fetch_with(client)

    async def _fetch_with(self, client: httpx.AsyncClient) -> FetchResult:
        url = self.request.url
        merged_headers = {'Accept': 'application/json'}
        merged_headers.update(self.request.headers)
        max_size = self.settings.max_response_size

        start_time = time.time()

        try:
            async with client.stream(
                self.request.method,
                url,
                headers=merged_headers,
                content=self.request.body,
            ) as response:
                content_length = response.headers.get('content-length')
                if content_length and content_length.isdigit() and int(content_length) > max_size:
                    return FetchResult(
                        url=url,
                        status_code=response.status_code,
                        headers=dict(response.headers),
                        final_url=str(response.url),
                        fetch_time=time.time() - start_time,
                        error=f"Content too large: {content_length} bytes > {max_size} bytes"
                    )

                content = b''
                async for chunk in response.aiter_bytes(chunk_size=8192):
                    content += chunk
                    if len(content) > max_size:
                        logger.warning("response_too_large", url=url, max_bytes=max_size)
                        return FetchResult(
                            url=url,
                            status_code=response.status_code,
                            headers=dict(response.headers),
                            final_url=str(response.url),
                            fetch_time=time.time() - start_time,
                            error=f"Content too large: more than {max_size} bytes"
                        )

                content_type = response.headers.get('content-type', '').lower()
                return FetchResult(
                    url=url,
                    status_code=response.status_code,
                    content=content,
                    headers=dict(response.headers),
                    final_url=str(response.url),
                    fetch_time=time.time() - start_time,
                    content_type=content_type,
                    encoding=self._extract_encoding(content_type)
                )

        except httpx.TimeoutException as e:
            error = f"Timeout after {self.settings.timeout}s: {e}"
            logger.warning("transport_timeout", url=url, error=str(e))
            exception = e

        except httpx.ConnectError as e:
            error = f"Connection error: {e}"
            logger.warning("transport_connect_error", url=url, error=str(e))
            exception = e

        except httpx.HTTPError as e:
            error = f"HTTP error: {e}"
            logger.warning("transport_http_error", url=url, error=str(e))
            exception = e

        except Exception as e:
            error = f"Unexpected error: {e}"
            logger.error("transport_unexpected_error", url=url, error=str(e), exc_info=True)
            exception = e

        return FetchResult(
            url=url,
            status_code=0,
            fetch_time=time.time() - start_time,
            error=error,
            exception=exception
        )

    def _extract_encoding(self, content_type: str) -> Optional[str]:
        """Extract character encoding from the Content-Type header."""
        if 'charset=' in content_type:
            charset = content_type.split('charset=')[1].split(';')[0].strip(' \'"')
            if charset:
                return charset
        return None
