from __future__ import annotations

import asyncio

from core import prompts
from core.commands import CommandService, format_query_results
from core.config import CommandConfig, RenderConfig
from core.errors import EmptyResult, GenerationFailure
from core.markdown import MarkdownPostprocessor
from core.models import Message
from core.selectors import SELECTOR_HINT

TENANT = -100123


def _message(sequence_id: int, content: str, author: str = "alice") -> Message:
    return Message.create(
        tenant_id=TENANT,
        sequence_id=sequence_id,
        timestamp=1_000 + sequence_id,
        author=author,
        content=content,
    )


class FakeStorage:
    def __init__(self, messages: "list[Message] | None" = None) -> None:
        self.messages = messages or []
        self.glob_calls: list[tuple[int, str, int]] = []
        self.latest_calls: list[int] = []

    def query_by_tenant_since(self, tenant_id: int, since_ts: int) -> list[Message]:
        return list(self.messages)

    def query_latest_n(self, tenant_id: int, n: int) -> list[Message]:
        self.latest_calls.append(n)
        return list(reversed(self.messages))[:n]

    def query_by_glob_pattern(self, tenant_id: int, pattern: str, limit: int) -> list[Message]:
        self.glob_calls.append((tenant_id, pattern, limit))
        needle = pattern.strip("*")
        return [m for m in reversed(self.messages) if needle in m.content][:limit]


class FakeGenerator:
    model_name = "gemini-test"

    def __init__(self, reply: str = "answer", error: "Exception | None" = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, list[str], float]] = []

    async def generate(self, system_prompt, content_parts, options) -> str:
        self.calls.append((system_prompt, list(content_parts), options.temperature))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeTransport:
    def __init__(self, fail_edits: bool = False) -> None:
        self.sent: list[tuple[int, str, "str | None"]] = []
        self.edits: list[tuple[int, int, str, "str | None"]] = []
        self.fail_edits = fail_edits

    async def send_message(self, tenant_id: int, text: str, parse_mode=None) -> int:
        self.sent.append((tenant_id, text, parse_mode))
        return 900 + len(self.sent)

    async def edit_message(self, tenant_id, message_id, text, parse_mode=None) -> None:
        if self.fail_edits:
            raise RuntimeError("edit failed")
        self.edits.append((tenant_id, message_id, text, parse_mode))


def _service(storage=None, generator=None, transport=None) -> CommandService:
    return CommandService(
        storage=storage or FakeStorage(),
        generator=generator or FakeGenerator(),
        transport=transport or FakeTransport(),
        postprocessor=MarkdownPostprocessor(RenderConfig(model_name="gemini-test")),
        config=CommandConfig(),
    )


def test_status_replies_with_liveness_text() -> None:
    transport = FakeTransport()
    asyncio.run(_service(transport=transport).status(TENANT))
    assert transport.sent == [(TENANT, prompts.STATUS_REPLY, None)]


def test_query_without_keyword_shows_usage() -> None:
    storage = FakeStorage()
    transport = FakeTransport()
    asyncio.run(_service(storage, transport=transport).query(TENANT, "  "))
    assert transport.sent == [(TENANT, prompts.QUERY_USAGE, None)]
    assert storage.glob_calls == []


def test_query_searches_with_glob_and_links_results() -> None:
    storage = FakeStorage([_message(1, "deploy v1.2 done"), _message(2, "lunch")])
    transport = FakeTransport()

    asyncio.run(_service(storage, transport=transport).query(TENANT, "deploy"))

    assert storage.glob_calls == [(TENANT, "*deploy*", 50)]
    _, text, parse_mode = transport.sent[0]
    assert parse_mode == "MarkdownV2"
    assert text == "查询结果:\nalice: deploy v1\\.2 done [link](https://t.me/c/123/1)"


def test_format_query_results_escapes_content() -> None:
    text = format_query_results([_message(5, "a_b (c)", author="bob.smith")])
    assert text.splitlines()[1] == "bob\\.smith: a\\_b \\(c\\) [link](https://t.me/c/123/5)"


def test_summary_without_argument_shows_hint() -> None:
    transport = FakeTransport()
    asyncio.run(_service(transport=transport).summary(TENANT, ""))
    assert transport.sent == [(TENANT, SELECTOR_HINT, None)]


def test_summary_rejects_bad_selector() -> None:
    transport = FakeTransport()
    generator = FakeGenerator()
    asyncio.run(_service(generator=generator, transport=transport).summary(TENANT, "-3h"))
    assert transport.sent == [(TENANT, "参数错误: 小时数必须是正数。\n" + SELECTOR_HINT, None)]
    assert generator.calls == []


def test_summary_invalid_reply_shows_usage_examples() -> None:
    transport = FakeTransport()
    asyncio.run(_service(transport=transport).summary(TENANT, "abc"))
    _, text, _ = transport.sent[0]
    assert text.startswith("参数错误: 消息数量必须是有效的正整数。\n")
    assert "/summary 24h" in text
    assert "/summary 500" in text


def test_summary_with_huge_hours_reads_whole_history() -> None:
    storage = FakeStorage([_message(1, "hi")])
    transport = FakeTransport()

    for argument in ["1e13h", "1e308h"]:
        asyncio.run(_service(storage, FakeGenerator(reply="ok"), transport).summary(TENANT, argument))

    assert [text for _, text, _ in transport.sent].count(prompts.SUMMARY_ACK) == 2
    assert prompts.SUMMARY_APOLOGY not in [text for _, text, _ in transport.sent]


def test_summary_apologises_when_storage_fails() -> None:
    class BrokenStorage(FakeStorage):
        def query_by_tenant_since(self, tenant_id: int, since_ts: int) -> list[Message]:
            raise OverflowError("Python int too large to convert to SQLite INTEGER")

    transport = FakeTransport()

    asyncio.run(_service(BrokenStorage(), transport=transport).summary(TENANT, "24h"))

    assert transport.sent == [(TENANT, prompts.SUMMARY_APOLOGY, None)]


def test_summary_with_empty_window() -> None:
    transport = FakeTransport()
    asyncio.run(_service(transport=transport).summary(TENANT, "24h"))
    assert transport.sent == [(TENANT, prompts.SUMMARY_EMPTY, None)]


def test_summary_acknowledges_then_sends_rendered_digest() -> None:
    storage = FakeStorage([_message(1, "hi"), _message(2, "yo")])
    generator = FakeGenerator(reply="本日群聊总结如下：")
    transport = FakeTransport()

    asyncio.run(_service(storage, generator, transport).summary(TENANT, "2"))

    assert storage.latest_calls == [2]
    assert transport.sent[0] == (TENANT, prompts.SUMMARY_ACK, None)
    _, text, parse_mode = transport.sent[1]
    assert parse_mode == "MarkdownV2"
    assert text.endswith("**>本日群聊总结如下：||")
    system_prompt, parts, temperature = generator.calls[0]
    assert system_prompt == prompts.SUMMARIZE_CHAT
    assert parts == ["alice:", "hi", "https://t.me/c/123/1", "alice:", "yo", "https://t.me/c/123/2"]
    assert temperature == 0.4


def test_summary_falls_back_on_empty_result() -> None:
    storage = FakeStorage([_message(1, "hi")])
    transport = FakeTransport()

    asyncio.run(_service(storage, FakeGenerator(error=EmptyResult("none")), transport).summary(TENANT, "1h"))

    assert "**>生成总结时出现问题。||" in transport.sent[-1][1]


def test_summary_apologises_on_failure(caplog) -> None:
    storage = FakeStorage([_message(1, "hi")])
    transport = FakeTransport()
    generator = FakeGenerator(error=GenerationFailure("down", service_status=503))

    with caplog.at_level("ERROR"):
        asyncio.run(_service(storage, generator, transport).summary(TENANT, "1h"))

    assert transport.sent[-1] == (TENANT, prompts.SUMMARY_APOLOGY, None)
    assert "service_status=503" in caplog.text


def test_ask_without_question_shows_usage() -> None:
    transport = FakeTransport()
    asyncio.run(_service(transport=transport).ask(TENANT, ""))
    assert transport.sent == [(TENANT, prompts.ASK_USAGE, None)]


def test_ask_edits_thinking_message_with_answer() -> None:
    storage = FakeStorage([_message(1, "the release is friday")])
    generator = FakeGenerator(reply="Friday.")
    transport = FakeTransport()

    asyncio.run(_service(storage, generator, transport).ask(TENANT, "when is the release?"))

    assert storage.latest_calls == [1000]
    assert transport.sent == [(TENANT, prompts.ASK_THINKING, None)]
    tenant_id, message_id, text, parse_mode = transport.edits[0]
    assert (tenant_id, message_id, parse_mode) == (TENANT, 901, "MarkdownV2")
    assert text.endswith("**>Friday\\.||")
    system_prompt, parts, _ = generator.calls[0]
    assert system_prompt == prompts.ANSWER_QUESTION
    assert parts[-3:] == [prompts.ASK_SEPARATOR, prompts.ASK_INSTRUCTION, "when is the release?"]


def test_ask_without_context() -> None:
    transport = FakeTransport()
    generator = FakeGenerator()

    asyncio.run(_service(generator=generator, transport=transport).ask(TENANT, "anyone?"))

    assert transport.edits == [(TENANT, 901, prompts.ASK_NO_CONTEXT, None)]
    assert generator.calls == []


def test_ask_apologises_on_failure() -> None:
    storage = FakeStorage([_message(1, "hi")])
    transport = FakeTransport()

    asyncio.run(_service(storage, FakeGenerator(error=RuntimeError("down")), transport).ask(TENANT, "why?"))

    assert transport.edits == [(TENANT, 901, prompts.ASK_APOLOGY, None)]


def test_ask_survives_failed_apology_edit() -> None:
    storage = FakeStorage([_message(1, "hi")])
    transport = FakeTransport(fail_edits=True)

    asyncio.run(_service(storage, FakeGenerator(error=RuntimeError("down")), transport).ask(TENANT, "why?"))

    assert transport.edits == []
