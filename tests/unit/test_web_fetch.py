"""Tests for tools/web_fetch.py using httpx.MockTransport."""

from __future__ import annotations

import asyncio
import base64

import httpx
import pytest

from foyer.tools import ToolSession
from foyer.tools.confirmation import ConfirmationOutcome, InfoConfirmationDetails
from foyer.tools.web_fetch import WebFetchTool, html_to_text


def _tool(handler, **session_kwargs) -> WebFetchTool:  # type: ignore[no-untyped-def]
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebFetchTool(ToolSession(**session_kwargs), client=client)


class TestHtmlToText:
    def test_strips_tags_scripts_and_entities(self) -> None:
        markup = "<html><script>var x = 1;</script><p>Fish &amp; chips</p>\n\n\n<p>Done</p></html>"
        assert html_to_text(markup) == "Fish & chips\n\nDone"


class TestWebFetchValidation:
    def test_rejects_non_http(self) -> None:
        tool = WebFetchTool(ToolSession())
        assert tool.validate_params({"url": "file:///etc/passwd"}) == (
            "URL must be an absolute http(s) URL: file:///etc/passwd"
        )
        assert tool.validate_params({"url": "https://example.com"}) is None

    @pytest.mark.asyncio
    async def test_info_confirmation_lists_url(self) -> None:
        tool = WebFetchTool(ToolSession())
        details = await tool.should_confirm_execute({"url": "https://example.com/a"}, asyncio.Event())
        assert isinstance(details, InfoConfirmationDetails)
        assert details.urls == ["https://example.com/a"]

        await details.on_confirm(ConfirmationOutcome.PROCEED_ALWAYS, None)
        assert await tool.should_confirm_execute({"url": "https://example.com/b"}, asyncio.Event()) is None


class TestWebFetchExecute:
    @pytest.mark.asyncio
    async def test_html_converted(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["user-agent"].startswith("foyer-web-fetch")
            return httpx.Response(200, html="<h1>Title</h1><p>Body</p>")

        result = await _tool(handler).execute({"url": "https://example.com"}, asyncio.Event())
        assert result.error is None
        assert result.llm_content == "TitleBody"

    @pytest.mark.asyncio
    async def test_plain_text_verbatim(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<not html>", headers={"content-type": "text/plain"})

        result = await _tool(handler).execute({"url": "https://example.com/a.txt"}, asyncio.Event())
        assert result.llm_content == "<not html>"

    @pytest.mark.asyncio
    async def test_image_as_inline_data(self) -> None:
        payload = b"\x89PNG fake"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=payload, headers={"content-type": "image/png"})

        result = await _tool(handler).execute({"url": "https://example.com/x.png"}, asyncio.Event())
        assert result.llm_content == {
            "inlineData": {"mimeType": "image/png", "data": base64.b64encode(payload).decode("ascii")}
        }

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="missing")

        result = await _tool(handler).execute({"url": "https://example.com/nope"}, asyncio.Event())
        assert result.error is not None
        assert result.error.message == "HTTP 404 fetching https://example.com/nope"

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await _tool(handler).execute({"url": "https://example.com"}, asyncio.Event())
        assert result.error is not None
        assert "connection refused" in result.error.message

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text="x")

        cancel_event = asyncio.Event()
        cancel_event.set()
        result = await _tool(handler).execute({"url": "https://example.com"}, cancel_event)
        assert result.display_summary == "Cancelled"
        assert calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_fetch(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(30)
            return httpx.Response(200, text="late")

        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel_event.set)
        result = await asyncio.wait_for(
            _tool(handler).execute({"url": "https://example.com"}, cancel_event), timeout=5
        )
        assert result.llm_content == "Fetch of https://example.com was cancelled by user."
