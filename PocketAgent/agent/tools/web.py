"""
网络工具 - 网页搜索与网页抓取
Web tools - web search and page fetching.
"""

from __future__ import annotations

import asyncio
import html
import logging
import re
from typing import Any

import aiohttp

from PocketAgent.agent.tools.base import Tool

logger = logging.getLogger(__name__)

DDG_API_URL = "https://api.duckduckgo.com/"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def extract_text(html_content: str) -> str:
    """从 HTML 中提取可读文本 / Extract readable text from HTML."""
    html_content = re.sub(r"<script[^>]*>.*?</script>", "", html_content, flags=re.DOTALL | re.I)
    html_content = re.sub(r"<style[^>]*>.*?</style>", "", html_content, flags=re.DOTALL | re.I)
    html_content = re.sub(r"<head[^>]*>.*?</head>", "", html_content, flags=re.DOTALL | re.I)
    text = re.sub(r"<[^>]+>", " ", html_content)
    text = html.unescape(text)
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def format_ddg_results(data: dict[str, Any], count: int) -> str:
    """
    格式化 DuckDuckGo 即时答案结果
    Format a DuckDuckGo instant-answer payload.
    """
    lines: list[str] = []

    topics = [t for t in data.get("RelatedTopics", []) if t.get("Text") and t.get("FirstURL")]
    if topics:
        lines.append("Related Topics:")
        for topic in topics[:count]:
            lines.append(f"- {topic['Text']}\n  {topic['FirstURL']}")

    if data.get("AbstractText"):
        lines.append(f"\nAbstract:\n{data['AbstractText']}")
        if data.get("AbstractURL"):
            lines.append(f"Source: {data['AbstractURL']}")

    if data.get("Answer"):
        lines.append(f"\nAnswer:\n{data['Answer']}")

    if data.get("Definition"):
        lines.append(f"\nDefinition:\n{data['Definition']}")

    return "\n".join(lines).strip()


class WebSearchTool(Tool):
    """网页搜索（DuckDuckGo，无需 API Key）/ Web search via DuckDuckGo, no API key needed."""

    def __init__(self, max_results: int = 5, timeout: int = 15) -> None:
        self._max_results = max_results
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return "Search the web. Returns titles, URLs, and snippets."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "count": {
                    "type": "integer",
                    "description": "Results (1-10)",
                    "minimum": 1,
                    "maximum": 10,
                },
            },
            "required": ["query"],
        }

    async def execute(self, query: str, count: int | None = None, **kwargs: Any) -> str:
        try:
            n = min(max(int(count or self._max_results), 1), 10)
        except (TypeError, ValueError):
            n = self._max_results

        params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}
        try:
            async with aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}) as session:
                async with session.get(
                    DDG_API_URL,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                ) as resp:
                    if resp.status != 200:
                        return f"Error searching web: HTTP {resp.status}"
                    data = await resp.json(content_type=None)
        except asyncio.TimeoutError:
            return "Error searching web: request timed out"
        except (aiohttp.ClientError, ValueError) as exc:
            return f"Error searching web: {exc}"

        result = format_ddg_results(data or {}, n)
        return result or "No results found. Try a different query."


class WebFetchTool(Tool):
    """抓取网页并提取文本 / Fetch a URL and extract its text."""

    def __init__(self, max_chars: int = 50_000, timeout: int = 30) -> None:
        self._max_chars = max_chars
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "web_fetch"

    @property
    def description(self) -> str:
        return "Fetch a URL and return its readable text content."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "The http(s) URL to fetch"},
                "max_chars": {"type": "integer", "description": "Maximum characters to return"},
            },
            "required": ["url"],
        }

    async def execute(self, url: str, max_chars: int | None = None, **kwargs: Any) -> str:
        if not url.startswith(("http://", "https://")):
            return "Error: Only http(s) URLs are supported"
        limit = int(max_chars or self._max_chars)

        try:
            async with aiohttp.ClientSession(headers={"User-Agent": USER_AGENT}) as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self._timeout)
                ) as resp:
                    if resp.status != 200:
                        return f"Error fetching URL: HTTP {resp.status}"
                    content_type = resp.headers.get("Content-Type", "")
                    if "text/html" in content_type:
                        text = extract_text(await resp.text())
                    elif "text/" in content_type or "json" in content_type:
                        text = await resp.text()
                    else:
                        return f"Error: Unsupported content type: {content_type}"
        except asyncio.TimeoutError:
            return "Error fetching URL: request timed out"
        except aiohttp.ClientError as exc:
            return f"Error fetching URL: {exc}"

        if len(text) > limit:
            text = text[:limit] + "\n\n... (content truncated)"
        return text
