import dataclasses

import pytest

from jsonfetch.errors import ConstructionError, ErrorDomain
from jsonfetch.request import RequestDescriptor, build_url_request


def test_build_url_request_makes_get():
    request = build_url_request("https://api.example.com/items?page=2")
    assert request.method == "GET"
    assert request.url == "https://api.example.com/items?page=2"
    assert dict(request.headers) == {}
    assert request.body is None


@pytest.mark.parametrize("url", [None, "", "mailto:someone@example.com", "/relative/path", "http://"])
def test_build_url_request_rejects(url):
    with pytest.raises(ConstructionError) as exc:
        build_url_request(url)
    assert exc.value.domain is ErrorDomain.CONSTRUCTION
    assert isinstance(exc.value, ValueError)


def test_descriptor_is_immutable():
    headers = {"Accept-Language": "en"}
    request = RequestDescriptor(url="https://example.com", method="put", headers=headers, body=b'{}')
    headers["Accept-Language"] = "fr"

    assert request.method == "PUT"
    assert request.headers["Accept-Language"] == "en"
    with pytest.raises(dataclasses.FrozenInstanceError):
        request.url = "https://other.example.com"
    with pytest.raises(TypeError):
        request.headers["X-New"] = "1"


def test_descriptor_is_hashable():
    first = RequestDescriptor(url="https://example.com", headers={"A": "1", "B": "2"})
    second = RequestDescriptor(url="https://example.com", headers={"B": "2", "A": "1"})

    assert first == second
    assert hash(first) == hash(second)
    assert len({first, second, RequestDescriptor.get("https://other.example.com")}) == 2
