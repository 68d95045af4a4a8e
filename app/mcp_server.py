# app/mcp_server.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

import anyio
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import (
    INVALID_PARAMS,
    CallToolRequest,
    CallToolResult,
    ErrorData,
    ServerResult,
    TextContent,
    Tool,
)

from services.errors import UrlAnalysisError
from services.url_analyzer import analyze_url

logger = logging.getLogger(__name__)

SERVER_NAME = "url-analyzer"
SERVER_VERSION = "1.0.0"

ANALYZE_URL_TOOL = Tool(
    name="analyze_url",
    description="Analyze a URL and extract comprehensive information",
    inputSchema={
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "The URL to analyze",
            },
            "options": {
                "type": "object",
                "properties": {
                    "includeContent": {
                        "type": "boolean",
                        "description": "Include page content analysis",
                        "default": True,
                    },
                    "includeSEO": {
                        "type": "boolean",
                        "description": "Include SEO analysis",
                        "default": True,
                    },
                    "includePerformance": {
                        "type": "boolean",
                        "description": "Include performance metrics",
                        "default": True,
                    },
                },
            },
        },
        "required": ["url"],
    },
)

server = Server(SERVER_NAME, version=SERVER_VERSION)


def _text_result(text: str, is_error: bool = False) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


def _unknown_tool(name: str) -> McpError:
    return McpError(ErrorData(code=INVALID_PARAMS, message=f"Unknown tool: {name}"))


def _is_analyze_url_args(arguments: Any) -> bool:
    return isinstance(arguments, dict) and isinstance(arguments.get("url"), str)


async def handle_list_tools() -> List[Tool]:
    return [ANALYZE_URL_TOOL]


async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> CallToolResult:
    """
    analyze_url ツールの呼び出し。
    解析エラーは例外にせず isError=True のテキスト結果として返す。
    未知のツール名だけは例外にして呼び出し自体を失敗させる。
    """
    if name != ANALYZE_URL_TOOL.name:
        raise _unknown_tool(name)

    try:
        if not _is_analyze_url_args(arguments):
            raise ValueError("Invalid arguments: expected { url: string, options?: object }")

        url = arguments["url"]
        logger.info("[mcp.analyze_url] start url=%s", url)
        # fetch はブロッキングなのでワーカースレッドで実行する
        report = await anyio.to_thread.run_sync(analyze_url, url, arguments.get("options"))
    except (UrlAnalysisError, ValueError) as e:
        logger.error("[mcp.analyze_url] failed: %s", e)
        return _text_result(f"Error analyzing URL: {e}", is_error=True)

    logger.info("[mcp.analyze_url] done url=%s status=%s", url, report.status.code)
    return _text_result(report.to_json())


server.list_tools()(handle_list_tools)
# 引数の検証は handle_call_tool 側で行い、エラーメッセージを揃える
server.call_tool(validate_input=False)(handle_call_tool)

_dispatch_call_tool = server.request_handlers[CallToolRequest]


async def handle_call_tool_request(req: CallToolRequest) -> ServerResult:
    """
    tools/call リクエストの入口。
    SDK の call_tool ハンドラは例外を isError の結果に変換してしまうので、
    未知のツール名はここで JSON-RPC エラーとして返す。
    """
    if req.params.name != ANALYZE_URL_TOOL.name:
        raise _unknown_tool(req.params.name)
    return await _dispatch_call_tool(req)


server.request_handlers[CallToolRequest] = handle_call_tool_request


async def run_stdio() -> None:
    """stdio トランスポートで MCP サーバーを起動する。セッション終了で戻る。"""
    async with stdio_server() as (read_stream, write_stream):
        logger.info("[mcp] %s %s running on stdio", SERVER_NAME, SERVER_VERSION)
        await server.run(read_stream, write_stream, server.create_initialization_options())
