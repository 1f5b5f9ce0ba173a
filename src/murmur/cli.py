from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

from murmur.client import ChatClient
from murmur.config import ClientConfig, ConfigError
from murmur.runtime.render import TerminalRenderer
from murmur.runtime.repl import ChatREPL
from murmur.sessions.storage import JsonFileStore
from murmur.sessions.store import SessionStore


def main() -> int:
    load_dotenv()
    return _main(sys.argv[1:])


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        payload = {
            "ts": ts,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(verbose: bool = False, quiet: bool = False, log_format: str = "text") -> None:
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="murmur", description="murmur - streaming chat client")
    parser.add_argument("--url", default=None, help="Server WebSocket URL (env: MURMUR_WS_URL)")
    parser.add_argument("--data-dir", default=None, help="Where chats are stored (env: MURMUR_DATA_DIR)")
    parser.add_argument("--config", default=None, help="YAML config file")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-q", "--quiet", action="store_true")
    parser.add_argument("--log-format", default="text", choices=["text", "json"])

    subparsers = parser.add_subparsers(dest="command", required=False)
    subparsers.add_parser("chat", help="Start the interactive chat client (default)")
    subparsers.add_parser("chats", help="List stored chats and exit")
    return parser


def _load_config(args: argparse.Namespace) -> ClientConfig:
    config = ClientConfig.from_file(args.config) if args.config else ClientConfig.from_env()
    if args.url:
        config.ws_url = args.url
    if args.data_dir:
        config.data_dir = args.data_dir
    config.validate()
    return config


def _main(argv: list[str]) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet, args.log_format)

    try:
        config = _load_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    cmd = args.command or "chat"
    if cmd == "chats":
        return _cmd_chats(config)
    return _cmd_chat(config)


def _cmd_chats(config: ClientConfig) -> int:
    store = SessionStore(
        JsonFileStore(config.data_dir),
        default_title=config.default_title,
        default_system_prompt=config.default_system_prompt,
        subtitle_length=config.subtitle_length,
    )
    store.load(read_only=True)
    summaries = store.summaries()
    if not summaries:
        print("No saved chats")
        return 0
    for summary in summaries:
        marker = "*" if summary.active else " "
        print(f"{marker} {summary.id}  {summary.title} - {summary.subtitle}")
    return 0


def _cmd_chat(config: ClientConfig) -> int:
    client = ChatClient(config, on_event=TerminalRenderer())
    client.load()
    try:
        asyncio.run(ChatREPL(client).run())
    except KeyboardInterrupt:
        pass
    return 0
