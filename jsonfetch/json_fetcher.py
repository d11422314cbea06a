"""
Fetch a URL, parse the body as JSON and report the outcome to one of two callbacks.

Lifecycle of a JSONFetcher: construct -> start -> exactly one of
on_success / on_failure, unless cancel() wins the race, in which case
neither fires. An instance is never restarted.
"""

import asyncio
import threading
import weakref
from enum import Enum
from typing import Any, Callable, Optional

import httpx
import structlog

from . import parsers
from .errors import (
    FetchError,
    FetcherStateError,
    ParseError,
    TransportError,
    UnconfiguredParserError,
)
from .fetcher import FetcherSettings, FetchResult, HTTPFetcher
from .parsers import JSONParser, ParseResult, is_json_value
from .request import RequestDescriptor, build_url_request

logger = structlog.get_logger(__name__)

ActionCallback = Callable[["JSONFetcher"], Any]


class FetchState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JSONFetcher:
    """A reusable way to obtain JSON data from a request.

    The caller must keep a reference to the fetcher until it completes. The
    transport only holds a weak reference back, so a fetcher dropped while in
    flight never calls its callbacks.
    """

    def __init__(
        self,
        request: RequestDescriptor,
        on_success: ActionCallback,
        on_failure: ActionCallback,
        *,
        parser: JSONParser = None,
        client: httpx.AsyncClient = None,
        settings: FetcherSettings = None,
    ):
        self._request = request
        self._on_success = on_success
        self._on_failure = on_failure
        self._parser = parser
        self._client = client
        self._settings = settings

        self._state = FetchState.PENDING
        self._state_lock = threading.Lock()
        self._data: Any = None
        self._error: Optional[FetchError] = None
        self._http_fetcher: Optional[HTTPFetcher] = None
        self._effective_parser: Optional[JSONParser] = None
        self._done: Optional[asyncio.Event] = None

    @classmethod
    def from_url(
        cls,
        url_string: str,
        on_success: ActionCallback,
        on_failure: ActionCallback,
        **kwargs,
    ) -> "JSONFetcher":
        """Build a fetcher for a GET of `url_string`.

        Raises ConstructionError right away when the URL is not valid.
        """
        return cls(build_url_request(url_string), on_success, on_failure, **kwargs)

    @classmethod
    def set_default_parser(cls, parser: Optional[JSONParser]) -> Optional[JSONParser]:
        """Set the parser used by every fetcher that has no parser of its own."""
        return parsers.set_default_parser(parser)

    @classmethod
    def default_parser(cls) -> Optional[JSONParser]:
        return parsers.get_default_parser()

    @property
    def request(self) -> RequestDescriptor:
        return self._request

    @property
    def state(self) -> FetchState:
        return self._state

    @property
    def data(self) -> Any:
        """The parsed JSON data. Only meaningful after success."""
        return self._data

    @property
    def error(self) -> Optional[FetchError]:
        """The transport or parser error. Only set after failure."""
        return self._error

    @property
    def http_fetcher(self) -> Optional[HTTPFetcher]:
        return self._http_fetcher

    @property
    def parser(self) -> Optional[JSONParser]:
        return self._parser

    @parser.setter
    def parser(self, parser: Optional[JSONParser]):
        self._parser = parser

    def set_parser(self, parser: Optional[JSONParser]):
        self._parser = parser

    @property
    def effective_parser(self) -> Optional[JSONParser]:
        """The parser resolved when parsing began, None before that."""
        return self._effective_parser

    def start(self):
        """Start the request. Must be called from a running event loop, once."""
        with self._state_lock:
            if self._state is not FetchState.PENDING:
                raise FetcherStateError(
                    f"JSONFetcher for {self._request.url} cannot start from state {self._state.value}"
                )
            http_fetcher = HTTPFetcher(
                self._request,
                _weak_completion(self),
                client=self._client,
                settings=self._settings,
            )
            http_fetcher.start()
            self._http_fetcher = http_fetcher
            self._done = asyncio.Event()
            self._state = FetchState.IN_FLIGHT

        logger.info("fetch_started", method=self._request.method, url=self._request.url)

    def cancel(self) -> bool:
        """Cancel the request in flight. Returns False when there was nothing to cancel."""
        with self._state_lock:
            if self._state is not FetchState.IN_FLIGHT:
                return False
            self._state = FetchState.CANCELLED

        self._http_fetcher.cancel()
        logger.info("fetch_cancelled", url=self._request.url)
        self._signal_done()
        return True

    async def wait(self) -> FetchState:
        """Wait until the fetcher reaches a terminal state and return it."""
        if self._done is None:
            raise FetcherStateError("wait() called before start()")
        await self._done.wait()
        return self._state

    def _handle_completion(self, result: FetchResult):
        if self._state is FetchState.CANCELLED:
            logger.debug("completion_after_cancel_dropped", url=self._request.url)
            return

        try:
            self._complete(result)
        except Exception as e:
            # nothing may escape into the transport task
            logger.error("completion_error", url=self._request.url, error=str(e), exc_info=True)
            if result.success:
                error = ParseError(f"Could not handle response from {self._request.url}: {e}", cause=e)
            else:
                error = TransportError(str(e), cause=e, status_code=result.status_code, result=result)
            self._finish(error=error)

    def _complete(self, result: FetchResult):
        if not result.success:
            logger.warning(
                "fetch_failed",
                url=self._request.url,
                status_code=result.status_code,
                error=result.error,
            )
            self._finish(error=TransportError.from_result(result))
            return

        parser = self._parser if self._parser is not None else parsers.get_default_parser()
        self._effective_parser = parser
        if parser is None:
            logger.error("parser_not_configured", url=self._request.url)
            self._finish(error=UnconfiguredParserError())
            return

        outcome = self._run_parser(parser, result.content)
        if outcome.is_ok:
            self._finish(data=outcome.value)
        else:
            logger.warning("parse_failed", url=self._request.url, error=str(outcome.error))
            self._finish(error=ParseError(
                f"Could not parse response from {self._request.url}: {outcome.error}",
                cause=outcome.error,
            ))

    def _run_parser(self, parser: JSONParser, raw: bytes) -> ParseResult:
        try:
            outcome = parser.parse(self, raw)
        except Exception as e:
            logger.error("parser_raised", parser=repr(parser), error=str(e), exc_info=True)
            return ParseResult.fail(e)

        if not isinstance(outcome, ParseResult):
            return ParseResult.fail(
                TypeError(f"{parser!r} returned {type(outcome).__name__}, expected ParseResult")
            )
        if outcome.is_ok and not is_json_value(outcome.value):
            return ParseResult.fail(
                TypeError(f"{parser!r} returned a non-JSON value of type {type(outcome.value).__name__}")
            )
        return outcome

    def _finish(self, data: Any = None, error: Optional[FetchError] = None):
        with self._state_lock:
            if self._state is not FetchState.IN_FLIGHT:
                return
            if error is None:
                self._data = data
                self._state = FetchState.SUCCEEDED
                callback = self._on_success
            else:
                self._error = error
                self._state = FetchState.FAILED
                callback = self._on_failure

        if error is None:
            logger.info("fetch_succeeded", url=self._request.url)

        try:
            if callback is not None:
                callback(self)
        except Exception as e:
            logger.error("callback_error", url=self._request.url, state=self._state.value, error=str(e), exc_info=True)
        finally:
            self._signal_done()

    def _signal_done(self):
        if self._done is None:
            return
        loop = self._http_fetcher.loop if self._http_fetcher else None
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if loop is None or running is loop:
            self._done.set()
        else:
            loop.call_soon_threadsafe(self._done.set)

    def __repr__(self) -> str:
        return f"JSONFetcher({self._request.method} {self._request.url}, state={self._state.value})"


def _weak_completion(fetcher: JSONFetcher) -> Callable[[FetchResult], None]:
    ref = weakref.ref(fetcher)

    def on_complete(result: FetchResult):
        target = ref()
        if target is None:
            logger.debug("fetcher_released_before_completion", url=result.url)
            return
        target._handle_completion(result)

    return on_complete
