import json
import threading
from types import SimpleNamespace

import pytest

from jsonfetch import parsers
from jsonfetch.parsers import ParseResult, StdJSONParser, is_json_value, parser_from_name


def test_std_parser_decodes_document():
    outcome = StdJSONParser().parse(None, b'{"items": [1, 2.5, "three", null, true]}')
    assert outcome.is_ok
    assert outcome.value == {"items": [1, 2.5, "three", None, True]}


def test_std_parser_accepts_bom_and_scalars():
    assert StdJSONParser().parse(None, b'\xef\xbb\xbf[1]').value == [1]
    assert StdJSONParser().parse(None, b'null').is_ok
    assert StdJSONParser().parse(None, b'null').value is None


@pytest.mark.parametrize("raw", [b'', b'not json', b'{"a": ', b'\xff\xfe'])
def test_std_parser_reports_failure(raw):
    outcome = StdJSONParser().parse(None, raw)
    assert not outcome.is_ok
    assert outcome.value is None
    assert isinstance(outcome.error, ValueError)


def test_std_parser_custom_encoding():
    raw = json.dumps({"name": "Zoë"}, ensure_ascii=False).encode('latin-1')
    assert StdJSONParser(encoding='latin-1').parse(None, raw).value == {"name": "Zoë"}


def test_parse_result_needs_exactly_one_side():
    with pytest.raises(ValueError):
        ParseResult()
    assert ParseResult.ok(None).is_ok
    assert repr(ParseResult.fail("x")) == "ParseResult.fail('x')"


def test_std_parser_satisfies_protocol():
    assert isinstance(StdJSONParser(), parsers.JSONParser)


@pytest.mark.parametrize("value, expected", [
    (None, True),
    ({"a": [1, 2.0, "s", False, None, {"b": {}}]}, True),
    ({1: "int key"}, False),
    ((1, 2), False),
    ([1, object()], False),
    (b'bytes', False),
])
def test_is_json_value(value, expected):
    assert is_json_value(value) is expected


def test_parser_from_name():
    assert isinstance(parser_from_name("json"), StdJSONParser)
    assert isinstance(parser_from_name("JSON"), StdJSONParser)
    assert parser_from_name("none") is None
    assert parser_from_name(None) is None
    with pytest.raises(ValueError):
        parser_from_name("yaml")


def test_default_parser_is_last_writer_wins_across_threads():
    candidates = [StdJSONParser() for _ in range(8)]
    threads = [threading.Thread(target=parsers.set_default_parser, args=(p,)) for p in candidates]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert parsers.get_default_parser() in candidates


def nested_list(depth):
    value = []
    for _ in range(depth):
        value = [value]
    return value


def test_is_json_value_handles_deep_nesting():
    assert is_json_value(nested_list(5000)) is True
    assert is_json_value({"a": nested_list(5000)}) is True


def test_is_json_value_rejects_cycles_but_allows_shared_children():
    shared = [1, 2]
    assert is_json_value({"a": shared, "b": shared}) is True

    cyclic = []
    cyclic.append(cyclic)
    assert is_json_value(cyclic) is False


def test_std_parser_never_raises_on_absurd_nesting():
    raw = b'[' * 100000 + b']' * 100000
    outcome = StdJSONParser().parse(None, raw)
    if not outcome.is_ok:
        assert isinstance(outcome.error, RecursionError)


class FakeFetcher:
    def __init__(self, encoding):
        self.http_fetcher = SimpleNamespace(result=SimpleNamespace(encoding=encoding))


def test_std_parser_uses_response_charset():
    raw = '{"name": "Zoë"}'.encode('latin-1')
    assert StdJSONParser().parse(FakeFetcher('latin-1'), raw).value == {"name": "Zoë"}


def test_std_parser_explicit_encoding_wins_over_charset():
    raw = '{"name": "Zoë"}'.encode('utf-8')
    assert StdJSONParser(encoding='utf-8').parse(FakeFetcher('latin-1'), raw).value == {"name": "Zoë"}


def test_std_parser_unknown_charset_falls_back_to_utf8():
    parser = StdJSONParser()
    assert parser.encoding_for(FakeFetcher('no-such-codec')) == 'utf-8'
    assert parser.encoding_for(FakeFetcher(None)) == 'utf-8'
    assert parser.encoding_for(None) == 'utf-8'
