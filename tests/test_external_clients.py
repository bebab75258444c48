"""Crawl provider and voice platform HTTP clients (httpx.MockTransport)."""
import json

import httpx
import pytest

from apps.backend.config import Settings
from apps.backend.clients import firecrawl, vapi


def _mock_client(handler, base_url):
    return httpx.Client(base_url=base_url, transport=httpx.MockTransport(handler))


@pytest.mark.timeout(10)
def test_start_crawl_sends_body_and_returns_job_id(monkeypatch):
    seen = {}

    def handler(request: httpx.Request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "id": "job-42"})

    monkeypatch.setattr(firecrawl, "_client", lambda: _mock_client(handler, "https://fc.test/v1"))

    job_id = firecrawl.start_crawl("https://example.com", limit=30)

    assert job_id == "job-42"
    assert seen["method"] == "POST"
    assert seen["path"] == "/v1/crawl"
    assert seen["body"]["url"] == "https://example.com"
    assert seen["body"]["limit"] == 30
    assert seen["body"]["scrapeOptions"]["formats"] == ["markdown", "links"]
    assert seen["body"]["scrapeOptions"]["onlyMainContent"] is True


@pytest.mark.timeout(10)
def test_start_crawl_without_job_id_raises(monkeypatch):
    monkeypatch.setattr(
        firecrawl,
        "_client",
        lambda: _mock_client(lambda r: httpx.Response(200, json={"success": True}), "https://fc.test/v1"),
    )
    with pytest.raises(firecrawl.FirecrawlError) as exc:
        firecrawl.start_crawl("https://example.com")
    assert exc.value.code == firecrawl.FIRECRAWL_ERR_NO_JOB


@pytest.mark.timeout(10)
def test_crawl_status_non_2xx_raises_with_upstream_status(monkeypatch):
    monkeypatch.setattr(
        firecrawl,
        "_client",
        lambda: _mock_client(lambda r: httpx.Response(429, text="rate limited"), "https://fc.test/v1"),
    )
    with pytest.raises(firecrawl.FirecrawlError) as exc:
        firecrawl.get_crawl_status("job-1")
    assert exc.value.code == firecrawl.FIRECRAWL_ERR_HTTP
    assert exc.value.upstream_status == 429
    assert exc.value.detail == "Firecrawl error: 429 - rate limited"


@pytest.mark.timeout(10)
def test_crawl_status_network_error_is_unreachable(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    monkeypatch.setattr(firecrawl, "_client", lambda: _mock_client(handler, "https://fc.test/v1"))
    with pytest.raises(firecrawl.FirecrawlError) as exc:
        firecrawl.get_crawl_status("job-1")
    assert exc.value.code == firecrawl.FIRECRAWL_ERR_UNREACHABLE
    assert exc.value.status_code == 502


def test_firecrawl_requires_key(monkeypatch):
    monkeypatch.setattr(firecrawl, "get_settings", lambda: Settings(firecrawl_api_key=""))
    with pytest.raises(firecrawl.FirecrawlError) as exc:
        firecrawl.get_crawl_status("job-1")
    assert exc.value.code == firecrawl.FIRECRAWL_ERR_NOT_CONFIGURED


def test_vapi_requires_key(monkeypatch):
    monkeypatch.setattr(vapi, "get_settings", lambda: Settings(vapi_private_key=""))
    with pytest.raises(vapi.VapiError) as exc:
        vapi.list_files()
    assert exc.value.code == vapi.VAPI_ERR_NOT_CONFIGURED


def test_mask_key():
    assert vapi.mask_key(None) == "Not configured"
    assert vapi.mask_key("short") == "***"
    assert vapi.mask_key("sk_live_1234567890abcdef") == "sk_live_...cdef"


@pytest.mark.timeout(10)
def test_vapi_probe_assistant_does_not_raise_on_404(monkeypatch):
    monkeypatch.setattr(
        vapi,
        "_client",
        lambda: _mock_client(lambda r: httpx.Response(404, text="Not Found"), "https://vapi.test"),
    )
    out = vapi.probe_assistant("a-1")
    assert out["ok"] is False
    assert out["status"] == 404
    assert out["error"] == "Not Found"


@pytest.mark.timeout(10)
def test_vapi_tool_exists(monkeypatch):
    def handler(request):
        return httpx.Response(200 if request.url.path.endswith("/good") else 404, json={})

    monkeypatch.setattr(vapi, "_client", lambda: _mock_client(handler, "https://vapi.test"))
    assert vapi.tool_exists("good") is True
    assert vapi.tool_exists("gone") is False


@pytest.mark.timeout(10)
def test_vapi_tool_exists_raises_on_outage(monkeypatch):
    monkeypatch.setattr(
        vapi, "_client", lambda: _mock_client(lambda r: httpx.Response(503, text="down"), "https://vapi.test")
    )
    with pytest.raises(vapi.VapiError) as exc:
        vapi.tool_exists("t1")
    assert exc.value.upstream_status == 503

    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    monkeypatch.setattr(vapi, "_client", lambda: _mock_client(handler, "https://vapi.test"))
    with pytest.raises(vapi.VapiError) as exc:
        vapi.tool_exists("t1")
    assert exc.value.code == vapi.VAPI_ERR_UNREACHABLE


@pytest.mark.timeout(10)
def test_vapi_list_assistants_unwraps_items(monkeypatch):
    monkeypatch.setattr(
        vapi,
        "_client",
        lambda: _mock_client(lambda r: httpx.Response(200, json={"items": [{"id": "a"}]}), "https://vapi.test"),
    )
    assert vapi.list_assistants() == [{"id": "a"}]


@pytest.mark.timeout(10)
def test_vapi_end_call_patches_status(monkeypatch):
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "call-1", "status": "ended"})

    monkeypatch.setattr(vapi, "_client", lambda: _mock_client(handler, "https://vapi.test"))
    assert vapi.end_call("call-1")["status"] == "ended"
    assert seen == {"method": "PATCH", "path": "/call/call-1", "body": {"status": "ended"}}
