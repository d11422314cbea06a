"""
Immutable request descriptors and URL string validation.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import httpx
import structlog

from .errors import ConstructionError

logger = structlog.get_logger(__name__)

ALLOWED_SCHEMES = ('http', 'https')


@dataclass(frozen=True)
class RequestDescriptor:
    """Method, URL, headers and body of a single HTTP call."""

    url: str
    method: str = 'GET'
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    def __post_init__(self):
        object.__setattr__(self, 'method', self.method.upper())
        object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers or {})))

    def __hash__(self):
        return hash((self.url, self.method, tuple(sorted(self.headers.items())), self.body))

    @classmethod
    def get(cls, url: str, headers: Mapping[str, str] = None) -> "RequestDescriptor":
        return cls(url=url, method='GET', headers=headers or {})


def build_url_request(url_string: str) -> RequestDescriptor:
    """Validate a URL string and turn it into a GET descriptor.

    Raises:
        ConstructionError: the string is empty, unparseable, not http(s),
            or has no host.
    """
    if not url_string or not isinstance(url_string, str):
        logger.warning("invalid_url_format", url=url_string)
        raise ConstructionError(f"Empty or invalid URL: {url_string!r}", value=url_string)

    try:
        parsed = httpx.URL(url_string.strip())
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        logger.warning("invalid_url_format", url=url_string, error=str(e))
        raise ConstructionError(f"Malformed URL {url_string!r}: {e}", value=url_string) from e

    if parsed.scheme not in ALLOWED_SCHEMES:
        logger.warning("invalid_url_scheme", url=url_string, scheme=parsed.scheme)
        raise ConstructionError(
            f"Invalid scheme {parsed.scheme!r} in URL {url_string!r}, expected http or https",
            value=url_string,
        )

    if not parsed.host:
        logger.warning("missing_url_host", url=url_string)
        raise ConstructionError(f"URL {url_string!r} has no host", value=url_string)

    return RequestDescriptor.get(str(parsed))
