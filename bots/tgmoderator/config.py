"""Configuration helpers for the moderator bot."""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from dotenv import load_dotenv

from . import __version__

DEFAULT_MODEL = "google/gemini-2.5-flash-preview-05-20"
DEFAULT_CAS_EXPORT = "https://api.cas.chat/export.csv"
DEFAULT_LISTEN_ADDR = "0.0.0.0:8080"

TELEGRAM_TOKEN_ENV = "TELEGRAM_BOT_API_KEY"
OPENROUTER_KEY_ENV = "OPENROUTER_API_KEY"
# Sent back by Telegram in the X-Telegram-Bot-Api-Secret-Token header.
WEBHOOK_SECRET_ENV = "TELEGRAM_WEBHOOK_SECRET"


def _ensure_directory(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _listen_addr(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {value!r}")
    try:
        return host, int(port)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port in {value!r}") from None


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tgmoderator",
        description="AI-assisted anti-spam moderator for Telegram group chats.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--env-file", type=Path, help="Path to a .env-like file.")
    parser.add_argument("--db-file", type=Path, help="Where the state database lives.")
    parser.add_argument(
        "--ai-model",
        default=DEFAULT_MODEL,
        help="Model used for message analysis (default: %(default)s).",
    )
    parser.add_argument(
        "--webhook-url",
        help="Public URL Telegram posts updates to. Enables webhook mode when set.",
    )
    parser.add_argument(
        "--webhook-listen-addr",
        type=_listen_addr,
        default=_listen_addr(DEFAULT_LISTEN_ADDR),
        help=f"HOST:PORT for the webhook listener (default: {DEFAULT_LISTEN_ADDR}).",
    )
    parser.add_argument("--log-level", help="Logging level (default: INFO).")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_arg_parser().parse_args(argv)


@dataclass(slots=True)
class Settings:
    """Runtime configuration loaded from the environment and the command line."""

    bot_token: str
    openrouter_api_key: str
    data_dir: Path
    database_path: Path
    ai_model: str = DEFAULT_MODEL
    webhook_url: str | None = None
    webhook_listen_host: str = "0.0.0.0"
    webhook_listen_port: int = 8080
    webhook_secret: str | None = None
    cas_export_url: str = DEFAULT_CAS_EXPORT
    http_timeout_seconds: float = 10.0
    classifier_timeout_seconds: float = 30.0
    poll_interval_seconds: float = 3.0
    state_save_interval_seconds: int = 30
    cas_refresh_minutes: int = 60
    quarantine_messages: int = 3
    log_level: str = "INFO"

    @property
    def webhook_enabled(self) -> bool:
        return bool(self.webhook_url)

    @property
    def webhook_path(self) -> str:
        if not self.webhook_url:
            return "/"
        return urlsplit(self.webhook_url).path or "/"

    @property
    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO

    @classmethod
    def from_env(cls, args: argparse.Namespace | None = None) -> "Settings":
        if args is None:
            args = parse_args([])

        if args.env_file:
            # values from the file win over the inherited environment
            load_dotenv(args.env_file, override=True)

        token = os.getenv(TELEGRAM_TOKEN_ENV) or os.getenv("TELEGRAM_BOT_TOKEN") or ""
        if not token:
            raise RuntimeError(f"Missing {TELEGRAM_TOKEN_ENV} env var")
        openrouter_key = os.getenv(OPENROUTER_KEY_ENV) or ""
        if not openrouter_key:
            raise RuntimeError(f"Missing {OPENROUTER_KEY_ENV} env var")

        if args.db_file:
            database_path = Path(args.db_file).resolve()
            data_dir = _ensure_directory(database_path.parent)
        else:
            data_dir = _ensure_directory(
                Path(os.getenv("TGMOD_DATA_DIR", "tgmoderator_data")).resolve()
            )
            database_path = data_dir / "state.sqlite3"

        host, port = args.webhook_listen_addr

        return cls(
            bot_token=token,
            openrouter_api_key=openrouter_key,
            data_dir=data_dir,
            database_path=database_path,
            ai_model=args.ai_model,
            webhook_url=args.webhook_url,
            webhook_listen_host=host,
            webhook_listen_port=port,
            webhook_secret=os.getenv(WEBHOOK_SECRET_ENV) or None,
            cas_export_url=os.getenv("TGMOD_CAS_EXPORT", DEFAULT_CAS_EXPORT),
            http_timeout_seconds=_env_float("TGMOD_HTTP_TIMEOUT", 10.0),
            classifier_timeout_seconds=_env_float("TGMOD_CLASSIFIER_TIMEOUT", 30.0),
            poll_interval_seconds=_env_float("TGMOD_POLL_INTERVAL", 3.0),
            state_save_interval_seconds=_env_int("TGMOD_STATE_SAVE_INTERVAL", 30),
            cas_refresh_minutes=_env_int("TGMOD_CAS_REFRESH_MIN", 60),
            quarantine_messages=_env_int("TGMOD_QUARANTINE_MESSAGES", 3),
            log_level=args.log_level or os.getenv("TGMOD_LOG_LEVEL", "INFO"),
        )
