# app/server.py
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import anyio
import uvicorn

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    # stdout は MCP の stdio トランスポートが使うので、ログは必ず stderr に出す
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="URL Analyzer (MCP server + HTTP test API)")
    p.add_argument("--host", help="HTTP の待ち受けアドレス（既定: HOST か 0.0.0.0）")
    p.add_argument("--port", type=int, help="HTTP のポート（既定: PORT か 3000）")
    p.add_argument("--log-level", help="DEBUG / INFO / WARNING ...")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--no-web", action="store_true", help="MCP サーバーだけを起動する")
    mode.add_argument("--web-only", action="store_true", help="HTTP サーバーだけを起動する")
    return p


def _uvicorn_server(config: Settings) -> uvicorn.Server:
    from app.main import create_app

    uv_config = uvicorn.Config(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
    return uvicorn.Server(uv_config)


async def serve(config: Settings, run_mcp: bool = True) -> None:
    """
    MCP (stdio) と HTTP (uvicorn) を同じイベントループで動かす。
    MCP セッションが終わったら HTTP 側も止める。
    """
    from app.mcp_server import run_stdio

    async with anyio.create_task_group() as tg:
        if config.enable_web:
            web = _uvicorn_server(config)
            logger.info("[server] web dashboard available at http://localhost:%s", config.port)
            tg.start_soon(web.serve)
        else:
            web = None

        if not run_mcp:
            return

        await run_stdio()
        logger.info("[server] MCP session closed, shutting down")
        if web is not None:
            web.should_exit = True


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    updates = {}
    if args.host:
        updates["host"] = args.host
    if args.port:
        updates["port"] = args.port
    if args.log_level:
        updates["log_level"] = args.log_level
    if args.no_web:
        updates["enable_web"] = False
    if args.web_only:
        updates["enable_web"] = True
    config = get_settings().model_copy(update=updates)

    configure_logging(config.log_level)
    anyio.run(serve, config, not args.web_only)


if __name__ == "__main__":
    main()
