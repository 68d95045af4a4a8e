# app/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.routes import router as api_router
from app.config import Settings, settings

logger = logging.getLogger(__name__)


def create_app(config: Settings = settings) -> FastAPI:
    """HTTP アダプタ（手動テスト用の API + ブラウザ用テストページ）を組み立てる。"""
    app = FastAPI(title="URL Analyzer", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api")

    # ルーティング優先のため static は最後にマウントする
    if config.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=config.static_dir, html=True), name="static")
    else:
        logger.warning("[main] static_dir not found: %s", config.static_dir)

    return app


app = create_app()
