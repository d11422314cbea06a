"""
Parsers turn raw response bytes into a decoded JSON value.

A parser is any object with `parse(fetcher, raw) -> ParseResult`. Failure is
reported with `ParseResult.fail(error)`, never by returning an error object in
place of the value.
"""

import codecs
import json
import threading
from typing import Any, Optional, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)

_MISSING = object()


class ParseResult:
    """Either a decoded value (`ok`) or the parser's error (`fail`)."""

    __slots__ = ('_value', '_error')

    def __init__(self, value: Any = _MISSING, error: Any = None):
        if (value is _MISSING) == (error is None):
            raise ValueError("ParseResult needs exactly one of value or error")
        self._value = value
        self._error = error

    @classmethod
    def ok(cls, value: Any) -> "ParseResult":
        return cls(value=value)

    @classmethod
    def fail(cls, error: Any) -> "ParseResult":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self._error is None

    @property
    def value(self) -> Any:
        return None if self._value is _MISSING else self._value

    @property
    def error(self) -> Any:
        return self._error

    def __repr__(self) -> str:
        if self.is_ok:
            return f"ParseResult.ok({self._value!r})"
        return f"ParseResult.fail({self._error!r})"


@runtime_checkable
class JSONParser(Protocol):
    """Given the requesting fetcher and the raw bytes, return a ParseResult."""

    def parse(self, fetcher: Any, raw: bytes) -> ParseResult:
        ...


class StdJSONParser:
    """Decodes with the standard library json module.

    Without an explicit `encoding` the charset announced by the response is
    used, falling back to UTF-8.
    """

    name = 'json'

    def __init__(self, encoding: str = None):
        self.encoding = encoding

    def parse(self, fetcher: Any, raw: bytes) -> ParseResult:
        try:
            text = raw.decode(self.encoding_for(fetcher))
            if text.startswith('\ufeff'):
                text = text[1:]
            return ParseResult.ok(json.loads(text))
        except (UnicodeDecodeError, LookupError, json.JSONDecodeError, RecursionError) as e:
            return ParseResult.fail(e)

    def encoding_for(self, fetcher: Any) -> str:
        if self.encoding:
            return self.encoding
        http_fetcher = getattr(fetcher, 'http_fetcher', None)
        result = http_fetcher.result if http_fetcher is not None else None
        detected = result.encoding if result is not None else None
        if detected:
            try:
                codecs.lookup(detected)
                return detected
            except LookupError:
                logger.warning("unknown_response_charset", charset=detected)
        return 'utf-8'

    def __repr__(self) -> str:
        return f"StdJSONParser(encoding={self.encoding!r})"


def is_json_value(value: Any) -> bool:
    """True when value is made only of null, bool, number, str, list and str-keyed dict.

    Walks with an explicit stack so deeply nested documents do not hit the
    recursion limit. A container that contains itself is rejected.
    """
    pending = [(value, False)]
    on_path = set()
    while pending:
        item, leaving = pending.pop()
        if leaving:
            on_path.discard(id(item))
            continue
        if item is None or isinstance(item, (bool, int, float, str)):
            continue
        if not isinstance(item, (list, dict)) or id(item) in on_path:
            return False
        if isinstance(item, dict):
            if not all(isinstance(k, str) for k in item):
                return False
            children = item.values()
        else:
            children = item
        on_path.add(id(item))
        pending.append((item, True))
        pending.extend((child, False) for child in children)
    return True


PARSERS = {
    'json': StdJSONParser,
}


def parser_from_name(name: Optional[str]) -> Optional[JSONParser]:
    """Build a parser from its configuration name. 'none' or empty means no parser."""
    if name is None or str(name).lower() in ('', 'none'):
        return None
    try:
        return PARSERS[str(name).lower()]()
    except KeyError:
        raise ValueError(f"Unknown parser {name!r}, expected one of {sorted(PARSERS)} or 'none'")


# Process-wide default parser
_default_parser: Optional[JSONParser] = None
_default_parser_lock = threading.Lock()


def set_default_parser(parser: Optional[JSONParser]) -> Optional[JSONParser]:
    """Bind the parser shared by fetchers without their own. Returns the previous one."""
    global _default_parser
    with _default_parser_lock:
        previous = _default_parser
        _default_parser = parser
    logger.info("default_parser_changed", parser=repr(parser), previous=repr(previous))
    return previous


def get_default_parser() -> Optional[JSONParser]:
    with _default_parser_lock:
        return _default_parser
