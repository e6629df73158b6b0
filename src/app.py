"""Application entry point for chatdigest."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.gemini_generator import GeminiGenerator
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_transport import TelegramBotTransport
from adapters.telegram_listener import UpdateRouter
from client import build_client, build_genai_client, require_env
from core.commands import CommandService
from core.dispatcher import DigestDispatcher
from core.ingestion import Ingestor
from core.markdown import MarkdownPostprocessor

NAME = "CHATDIGEST"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/chatdigest.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    return storage


def _build_dispatcher(
    storage: SQLiteStorage,
    transport: TelegramBotTransport,
    generator: GeminiGenerator,
) -> DigestDispatcher:
    return DigestDispatcher(
        storage=storage,
        generator=generator,
        transport=transport,
        postprocessor=MarkdownPostprocessor(settings.RENDER),
        config=settings.DIGEST,
    )


async def _digest_loop(dispatcher: DigestDispatcher, interval_minutes: int) -> None:
    """In-process schedule; each tick is an independent cycle."""

    logger = logging.getLogger(__name__)
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            await dispatcher.run_cycle()
        except Exception:
            logger.exception("Scheduled digest cycle failed")


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting chatdigest")

    storage = _open_storage()
    transport = TelegramBotTransport(require_env("BOT_TOKEN"))
    postprocessor = MarkdownPostprocessor(settings.RENDER)
    generator = GeminiGenerator(build_genai_client(), settings.MODEL)
    commands = CommandService(
        storage=storage,
        generator=generator,
        transport=transport,
        postprocessor=postprocessor,
        config=settings.COMMANDS,
    )

    client = build_client()
    client.start(bot_token=require_env("BOT_TOKEN"))
    me = client.loop.run_until_complete(client.get_me())
    bot_username = getattr(me, "username", None)
    logger.info("Logged in as @%s", bot_username)

    router = UpdateRouter(Ingestor(storage), commands, transport, bot_username)

    @client.on(events.NewMessage(incoming=True))
    async def on_message(event) -> None:
        try:
            await router.handle_message(event.message)
        except Exception:
            logger.exception("Error while processing message %s in %s", event.message.id, event.chat_id)

    @client.on(events.MessageEdited(incoming=True))
    async def on_edit(event) -> None:
        try:
            await router.handle_edit(event.message)
        except Exception:
            logger.exception("Error while processing edit %s in %s", event.message.id, event.chat_id)

    if settings.DIGEST_INTERVAL_MINUTES > 0:
        dispatcher = _build_dispatcher(storage, transport, generator)
        client.loop.create_task(_digest_loop(dispatcher, settings.DIGEST_INTERVAL_MINUTES))
        logger.info("In-process digest every %s minutes", settings.DIGEST_INTERVAL_MINUTES)

    logger.info("Client connected. Listening for incoming messages...")
    client.run_until_disconnected()


def _digest() -> None:
    """Run exactly one digest cycle; meant to be invoked by cron."""

    _configure_logging()
    logger = logging.getLogger(__name__)

    storage = _open_storage()
    dispatcher = _build_dispatcher(
        storage,
        TelegramBotTransport(require_env("BOT_TOKEN")),
        GeminiGenerator(build_genai_client(), settings.MODEL),
    )
    report = asyncio.run(dispatcher.run_cycle())
    logger.info(
        "Digest cycle complete: tenants=%s, batches=%s, cleaned=%s",
        len(report.active_tenants),
        len(report.batches),
        report.cleaned_rows,
    )


def _init_db() -> None:
    _configure_logging()
    _open_storage()
    logging.getLogger(__name__).info("Database ready at %s", settings.DB_PATH)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="chatdigest")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot listener")
    subparsers.add_parser("digest", help="Run one scheduled digest cycle (cron entry point)")
    subparsers.add_parser("init-db", help="Create the message table")

    args = parser.parse_args(argv)
    if args.command == "digest":
        _digest()
        return
    if args.command == "init-db":
        _init_db()
        return
    _run()


if __name__ == "__main__":
    main()
