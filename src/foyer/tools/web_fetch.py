"""Fetch a URL over HTTP(S) and hand the content to the model."""

from __future__ import annotations

import asyncio
import base64
import html
import logging
import re
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field

from .base import BaseTool, LiveOutputCallback, ToolError, ToolResult
from .confirmation import ConfirmationDetails, InfoConfirmationDetails
from .safety import SafetyVerdict
from .session import ToolSession
from .tiers import ToolTier

logger = logging.getLogger(__name__)

_MAX_OUTPUT = 100_000
_MAX_BINARY_SIZE = 10 * 1024 * 1024
_USER_AGENT = "foyer-web-fetch/0.1"

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


class WebFetchParams(BaseModel):
    url: str = Field(description="The http(s) URL to fetch")
    timeout: float = Field(30.0, gt=0, le=120, description="Request timeout in seconds (default 30)")


def html_to_text(markup: str) -> str:
    text = _SCRIPT_STYLE_RE.sub("", markup)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text)
    return _BLANK_LINES_RE.sub("\n\n", text).strip()


def _is_binary(content_type: str) -> bool:
    return content_type.startswith(("image/", "audio/", "video/")) or content_type == "application/pdf"


class WebFetchTool(BaseTool):
    name = "web_fetch"
    display_name = "WebFetch"
    description = (
        "Fetch the content of an http(s) URL. HTML is converted to plain text; "
        "images and PDF files are returned as binary content."
    )
    params_model = WebFetchParams
    tier = ToolTier.EXECUTE

    def __init__(self, session: ToolSession, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(session)
        self._client = client

    def check_params(self, params: WebFetchParams) -> str | None:
        parsed = urlparse(params.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return f"URL must be an absolute http(s) URL: {params.url}"
        return None

    def get_description(self, args: dict[str, Any]) -> str:
        return f"Fetching {args.get('url', '')}"

    async def build_confirmation(
        self, args: dict[str, Any], verdict: SafetyVerdict, cancel_event: asyncio.Event
    ) -> ConfirmationDetails | None:
        url = str(args.get("url", ""))
        return InfoConfirmationDetails(
            title="Confirm Web Fetch",
            prompt=f"Fetch content from {url}",
            urls=[url],
            on_confirm=self._remember_tool,
        )

    async def _fetch(self, url: str, timeout: float) -> httpx.Response:
        headers = {"User-Agent": _USER_AGENT}
        if self._client is not None:
            return await self._client.get(url, headers=headers, timeout=timeout, follow_redirects=True)
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
            return await client.get(url, headers=headers)

    async def execute(
        self,
        args: dict[str, Any],
        cancel_event: asyncio.Event,
        update_output: LiveOutputCallback | None = None,
    ) -> ToolResult:
        params = self.parse_params(args)
        if cancel_event.is_set():
            return ToolResult(llm_content="Fetch was cancelled before it started.", display_summary="Cancelled")

        fetch_task = asyncio.ensure_future(self._fetch(params.url, params.timeout))
        cancel_wait = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({fetch_task, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_wait.cancel()

        if fetch_task not in done:
            fetch_task.cancel()
            return ToolResult(llm_content=f"Fetch of {params.url} was cancelled by user.", display_summary="Cancelled")

        try:
            response = fetch_task.result()
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = f"HTTP {e.response.status_code} fetching {params.url}"
            return ToolResult(llm_content=f"Error: {message}", error=ToolError(message))
        except httpx.HTTPError as e:
            message = f"Failed to fetch {params.url}: {e}"
            logger.warning("web_fetch failed: %s", e)
            return ToolResult(llm_content=f"Error: {message}", error=ToolError(message))

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if _is_binary(content_type):
            if len(response.content) > _MAX_BINARY_SIZE:
                message = f"Response too large ({len(response.content)} bytes) from {params.url}"
                return ToolResult(llm_content=f"Error: {message}", error=ToolError(message))
            data = base64.b64encode(response.content).decode("ascii")
            return ToolResult(
                llm_content={"inlineData": {"mimeType": content_type, "data": data}},
                display_summary=f"Fetched {content_type} ({len(response.content)} bytes)",
            )

        text = html_to_text(response.text) if content_type in ("text/html", "application/xhtml+xml") else response.text
        if len(text) > _MAX_OUTPUT:
            text = text[:_MAX_OUTPUT] + "\n... (truncated)"
        return ToolResult(
            llm_content=text,
            display_summary=f"Fetched {params.url} ({response.status_code}, {len(text)} chars)",
        )
