# tests/test_http_client.py
import random

import pytest
import requests
from urllib3.exceptions import MaxRetryError, ProtocolError, ReadTimeoutError

from modules.kariyer_jobs.lib.headers import HeaderProfileGenerator, accept_language
from modules.kariyer_jobs.lib.http_client import FetchError, FetchTimeout, HttpClient
from modules.kariyer_jobs.lib.proxy import ProxyProvider

URL = "https://www.kariyer.net/x"


def _response(status=200, body="<html><body>ok</body></html>", url="https://www.kariyer.net/"):
    resp = requests.Response()
    resp.status_code = status
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    resp.url = url
    return resp


def test_fetch_returns_any_status(monkeypatch):
    client = HttpClient(max_retries=0)
    seen = {}

    def fake_get(url, headers=None, proxies=None, timeout=None):
        seen.update(url=url, headers=headers, proxies=proxies, timeout=timeout)
        return _response(status=404, body="<p>Bulunamadı</p>", url=url)

    monkeypatch.setattr(client.session, "get", fake_get)
    resp = client.fetch("https://www.kariyer.net/x", proxy="http://p:1", headers={"A": "b"}, timeout=7)

    assert resp.status_code == 404
    assert not resp.ok
    assert resp.body == "<p>Bulunamadı</p>"
    assert seen["proxies"] == {"http": "http://p:1", "https": "http://p:1"}
    assert seen["headers"] == {"A": "b"}
    assert seen["timeout"] == 7


@pytest.mark.parametrize(
    "exc, expected",
    [
        (requests.ReadTimeout("slow"), FetchTimeout),
        (requests.ConnectionError("reset"), FetchError),
        (requests.ConnectionError(MaxRetryError(None, URL, ReadTimeoutError(None, URL, "Read timed out."))), FetchTimeout),
        (requests.ConnectionError(MaxRetryError(None, URL, ProtocolError("Connection aborted."))), FetchError),
    ],
)
def test_fetch_maps_request_errors(monkeypatch, exc, expected):
    client = HttpClient(max_retries=0)

    def fake_get(*a, **kw):
        raise exc

    monkeypatch.setattr(client.session, "get", fake_get)
    with pytest.raises(expected):
        client.fetch("https://www.kariyer.net/x")


def test_session_retries_transient_statuses():
    client = HttpClient(max_retries=4, backoff_factor=0.5)
    retry = client.session.get_adapter("https://www.kariyer.net").max_retries

    assert retry.total == 4
    assert retry.backoff_factor == 0.5
    assert {429, 500, 502, 503, 504} <= set(retry.status_forcelist)
    assert retry.raise_on_status is False


def test_rotate_identity_swaps_session():
    client = HttpClient()
    before = client.session
    client.rotate_identity()
    assert client.session is not before
    client.close()


def test_accept_language():
    assert accept_language("tr-TR") == "tr-TR,tr;q=0.9,en-US;q=0.8,en;q=0.7"
    assert accept_language("en-US") == "en-US,en;q=0.9"


def test_header_profiles_are_consistent():
    gen = HeaderProfileGenerator(rng=random.Random(7))

    chrome = gen.headers("chrome-windows")
    firefox = gen.headers("firefox-windows")

    assert "Chrome/" in chrome["User-Agent"]
    assert chrome["sec-ch-ua-platform"] == '"Windows"'
    assert "Firefox/" in firefox["User-Agent"]
    assert "sec-ch-ua" not in firefox
    assert chrome["Referer"] == "https://www.kariyer.net/is-ilanlari"
    assert chrome["Accept-Language"].startswith("tr-TR")


def test_header_generator_rejects_unknown_profile():
    with pytest.raises(ValueError):
        HeaderProfileGenerator(profiles=["lynx-amiga"])


def test_proxy_provider_rotates_and_fills_placeholders():
    provider = ProxyProvider(
        ["http://s-{session}-c-{country}:pw@a:1", "http://g-{groups}:pw@b:2"],
        country_code="tr",
        groups=["RESIDENTIAL", "TR"],
    )

    first, second, third = provider.new_proxy_url(), provider.new_proxy_url(), provider.new_proxy_url()

    assert provider.enabled
    assert first.startswith("http://s-") and first.endswith("-c-TR:pw@a:1")
    assert second == "http://g-RESIDENTIAL+TR:pw@b:2"
    assert third.startswith("http://s-") and third != first  # fresh session each call


def test_proxy_provider_disabled():
    provider = ProxyProvider()
    assert not provider.enabled
    assert provider.new_proxy_url() is None
