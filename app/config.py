# app/config.py

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STATIC_DIR = Path(__file__).resolve().parent / "static"


class Settings(BaseSettings):
    """
    アプリ全体で使う設定クラス。
    環境変数 / .env から読み込み、属性として参照できるようにする。
    """

    # ---------- Web (HTTP アダプタ) ----------
    # PORT=8080 のように指定すれば上書きされる
    port: int = 3000
    host: str = "0.0.0.0"
    enable_web: bool = True

    # ブラウザ用テストページの置き場所
    static_dir: Path = DEFAULT_STATIC_DIR

    # ---------- Fetch ----------
    # fetch 全体（接続〜本文読み込み）の制限時間 [秒]
    fetch_timeout: float = 10.0
    user_agent: str = "Mozilla/5.0 (compatible; MCP-URL-Analyzer/1.0)"

    # ---------- Logging ----------
    log_level: str = "INFO"

    # ---------- Pydantic Settings 設定 ----------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",             # 定義外の環境変数があっても無視（エラーにしない）
    )


@lru_cache
def get_settings() -> Settings:
    """Settings をシングルトン的に使うためのヘルパ。"""
    return Settings()


# 他のモジュールからは `from app.config import settings` で利用
settings = get_settings()
