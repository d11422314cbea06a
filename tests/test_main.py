import asyncio
import io
import json

import httpx

from jsonfetch import StdJSONParser, set_default_parser
from jsonfetch.main import fetch_all, main


def routes(request):
    if request.url.path == "/items":
        return httpx.Response(200, json={"items": [1, 2, 3]})
    return httpx.Response(503)


def test_fetch_all_prints_documents(make_client):
    set_default_parser(StdJSONParser())
    out = io.StringIO()

    status = asyncio.run(fetch_all(["https://api.example.com/items"], client=make_client(routes), out=out))

    assert status == 0
    assert json.loads(out.getvalue()) == {"items": [1, 2, 3]}


def test_fetch_all_reports_any_failure(make_client):
    set_default_parser(StdJSONParser())
    out = io.StringIO()

    status = asyncio.run(fetch_all(
        ["https://api.example.com/items", "https://api.example.com/down"],
        client=make_client(routes),
        out=out,
    ))

    assert status == 1
    assert json.loads(out.getvalue()) == {"items": [1, 2, 3]}


def test_main_without_arguments(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().err


def test_main_rejects_bad_url(capsys, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    assert main(["not-a-url"]) == 2
    assert "not-a-url" in capsys.readouterr().err


def test_main_reports_missing_config(capsys, monkeypatch, tmp_path):
    missing = tmp_path / "absent.yaml"
    monkeypatch.setenv("JSONFETCH_CONFIG", str(missing))

    assert main(["https://api.example.com/items"]) == 2
    assert "jsonfetch:" in capsys.readouterr().err


def test_main_reports_invalid_config(capsys, monkeypatch, tmp_path):
    broken = tmp_path / "config.yaml"
    broken.write_text("fetcher: [unclosed\n")
    monkeypatch.setenv("JSONFETCH_CONFIG", str(broken))

    assert main(["https://api.example.com/items"]) == 2
    assert "Invalid YAML" in capsys.readouterr().err
