"""Fetch a URL and hand the decoded JSON to a success or failure callback."""

from .errors import (
    ConstructionError,
    ErrorDomain,
    FetchError,
    FetcherStateError,
    ParseError,
    TransportError,
    UnconfiguredParserError,
)
from .fetcher import FetcherSettings, FetchResult, HTTPFetcher
from .json_fetcher import FetchState, JSONFetcher
from .parsers import (
    JSONParser,
    ParseResult,
    StdJSONParser,
    get_default_parser,
    set_default_parser,
)
from .request import RequestDescriptor, build_url_request

__all__ = [
    "ConstructionError",
    "ErrorDomain",
    "FetchError",
    "FetcherStateError",
    "ParseError",
    "TransportError",
    "UnconfiguredParserError",
    "FetcherSettings",
    "FetchResult",
    "HTTPFetcher",
    "FetchState",
    "JSONFetcher",
    "JSONParser",
    "ParseResult",
    "StdJSONParser",
    "get_default_parser",
    "set_default_parser",
    "RequestDescriptor",
    "build_url_request",
]
