"""Interactive chat commands built on the digest core.

The service is transport-agnostic: it only talks to ports, so the Telethon
listener stays a thin mapping layer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.config import CommandConfig, GenerationOptions
from core.context_window import ContextWindowBuilder
from core.deep_links import build_deep_link
from core.errors import EmptyResult, InvalidSelector, log_failure
from core.markdown import MarkdownPostprocessor, escape_markdown_v2
from core import prompts
from core.ports import GeneratorPort, StoragePort, TransportPort
from core.selectors import SELECTOR_HINT, CountSelector, parse_selector

LOGGER = logging.getLogger(__name__)

PARSE_MODE = "MarkdownV2"


def format_query_results(messages) -> str:
    """Render /query hits as MarkdownV2, keeping only the link syntax raw."""

    lines = [escape_markdown_v2(prompts.QUERY_HEADER)]
    for message in messages:
        line = escape_markdown_v2(f"{message.author}: {message.content}")
        if message.sequence_id:
            link = build_deep_link(message.tenant_id, message.sequence_id)
            line = f"{line} [link]({link})"
        lines.append(line)
    return "\n".join(lines)


class CommandService:
    """Handles /status, /query, /summary and /ask for one chat at a time."""

    def __init__(
        self,
        storage: StoragePort,
        generator: GeneratorPort,
        transport: TransportPort,
        postprocessor: MarkdownPostprocessor,
        config: CommandConfig,
        windows: Optional[ContextWindowBuilder] = None,
    ) -> None:
        self._storage = storage
        self._generator = generator
        self._transport = transport
        self._postprocessor = postprocessor
        self._config = config
        self._windows = windows or ContextWindowBuilder(storage)

    def _options(self) -> GenerationOptions:
        return GenerationOptions(
            temperature=self._config.temperature,
            max_output_tokens=self._config.max_output_tokens,
        )

    async def status(self, tenant_id: int) -> None:
        await self._transport.send_message(tenant_id, prompts.STATUS_REPLY)

    async def query(self, tenant_id: int, keyword: str) -> None:
        keyword = (keyword or "").strip()
        if not keyword:
            await self._transport.send_message(tenant_id, prompts.QUERY_USAGE)
            return
        messages = await asyncio.to_thread(
            self._storage.query_by_glob_pattern,
            tenant_id,
            f"*{keyword}*",
            self._config.query_limit,
        )
        await self._transport.send_message(tenant_id, format_query_results(messages), parse_mode=PARSE_MODE)

    async def summary(self, tenant_id: int, argument: str) -> None:
        if not (argument or "").strip():
            await self._transport.send_message(tenant_id, SELECTOR_HINT)
            return
        try:
            selector = parse_selector(argument)
        except InvalidSelector as exc:
            await self._transport.send_message(
                tenant_id, prompts.SUMMARY_INVALID.format(message=exc.message, hint=exc.hint)
            )
            return

        try:
            pack = await self._windows.build(tenant_id, selector)
            if not pack:
                await self._transport.send_message(tenant_id, prompts.SUMMARY_EMPTY)
                return

            await self._transport.send_message(tenant_id, prompts.SUMMARY_ACK)
            LOGGER.info("Summarizing %s messages for %s", len(pack), tenant_id)
            try:
                text = await self._generator.generate(
                    prompts.SUMMARIZE_CHAT, pack.text_parts(), self._options()
                )
            except EmptyResult:
                text = prompts.SUMMARY_FALLBACK
            reply = self._postprocessor.render(text)
            await self._transport.send_message(tenant_id, reply, parse_mode=PARSE_MODE)
        except Exception as exc:
            log_failure(LOGGER, exc, command="summary", tenant_id=tenant_id)
            await self._transport.send_message(tenant_id, prompts.SUMMARY_APOLOGY)

    async def ask(self, tenant_id: int, question: str) -> None:
        question = (question or "").strip()
        if not question:
            await self._transport.send_message(tenant_id, prompts.ASK_USAGE)
            return
        LOGGER.info("Received question for %s: %r", tenant_id, question)

        thinking_id = await self._transport.send_message(tenant_id, prompts.ASK_THINKING)
        try:
            pack = await self._windows.build(
                tenant_id, CountSelector(self._config.ask_context_messages)
            )
            if not pack:
                await self._transport.edit_message(tenant_id, thinking_id, prompts.ASK_NO_CONTEXT)
                return

            parts = pack.text_parts() + [prompts.ASK_SEPARATOR, prompts.ASK_INSTRUCTION, question]
            try:
                text = await self._generator.generate(prompts.ANSWER_QUESTION, parts, self._options())
            except EmptyResult:
                text = prompts.ASK_FALLBACK
            reply = self._postprocessor.render(text)
            await self._transport.edit_message(tenant_id, thinking_id, reply, parse_mode=PARSE_MODE)
        except Exception as exc:
            log_failure(LOGGER, exc, command="ask", tenant_id=tenant_id)
            try:
                await self._transport.edit_message(tenant_id, thinking_id, prompts.ASK_APOLOGY)
            except Exception as edit_exc:
                log_failure(LOGGER, edit_exc, command="ask", stage="apology_edit", tenant_id=tenant_id)
