"""Scheduled digest dispatcher.

One cycle, no state carried between cycles:
1) Cleanup: trim every tenant to the newest N messages (background task)
2) Discovery: tenants active over the trailing window, busiest first
3) Skip when nobody is active
4) Dispatch: consecutive batches of ``concurrency_limit`` digest jobs; every
   job in a batch settles before the next batch starts
5) Per tenant: context window -> generation -> post-processing -> push

A failing job is logged and recorded; it never affects its siblings.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Callable

from core.config import DigestConfig, GenerationOptions
from core.context_window import ContextWindowBuilder, hours_cutoff, now_ms
from core.errors import EmptyResult, log_failure
from core.markdown import MarkdownPostprocessor
from core.ports import GeneratorPort, StoragePort, TransportPort
from core.prompts import SUMMARIZE_CHAT
from core.selectors import HoursSelector

LOGGER = logging.getLogger(__name__)

OUTCOME_SENT = "sent"
OUTCOME_TOO_FEW = "too_few_messages"
OUTCOME_EMPTY = "empty_result"
OUTCOME_FAILED = "failed"

PARSE_MODE = "MarkdownV2"


@dataclass
class CycleReport:
    """What one dispatch cycle did, mainly for logs and tests."""

    active_tenants: list[int] = field(default_factory=list)
    batches: list[list[int]] = field(default_factory=list)
    outcomes: dict[int, str] = field(default_factory=dict)
    cleaned_rows: int = 0


def chunk(items: list[int], size: int) -> list[list[int]]:
    return [items[index:index + size] for index in range(0, len(items), size)]


class DigestDispatcher:
    """Runs the scheduled digest across every active tenant."""

    def __init__(
        self,
        storage: StoragePort,
        generator: GeneratorPort,
        transport: TransportPort,
        postprocessor: MarkdownPostprocessor,
        config: DigestConfig,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if config.concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        self._storage = storage
        self._generator = generator
        self._transport = transport
        self._postprocessor = postprocessor
        self._config = config
        self._clock = clock
        self._windows = ContextWindowBuilder(storage, clock)

    async def run_cycle(self) -> CycleReport:
        """Run one scheduled cycle."""

        report = CycleReport()
        LOGGER.info("Digest cycle starting")
        cleanup_task = asyncio.create_task(self._cleanup(report))
        try:
            await self._dispatch(report)
        finally:
            # Cleanup never blocks dispatch, but the cycle does not end before it.
            await cleanup_task
        LOGGER.info("Digest cycle finished: %s", report.outcomes)
        return report

    async def _cleanup(self, report: CycleReport) -> None:
        LOGGER.info("Cleanup: keeping %s messages per tenant", self._config.retention_per_tenant)
        try:
            report.cleaned_rows = await asyncio.to_thread(
                self._storage.delete_except_latest_n_per_tenant,
                self._config.retention_per_tenant,
            )
        except Exception as exc:
            log_failure(LOGGER, exc, stage="cleanup")
            return
        LOGGER.info("Cleanup removed %s messages", report.cleaned_rows)

    async def _dispatch(self, report: CycleReport) -> None:
        since_ts = hours_cutoff(self._clock(), self._config.activity_window_hours)
        tenants = await asyncio.to_thread(
            self._storage.list_active_tenants,
            since_ts,
            self._config.min_active_messages,
        )
        report.active_tenants = list(tenants)
        if not tenants:
            LOGGER.info("No active tenants found to summarize")
            return

        batches = chunk(report.active_tenants, self._config.concurrency_limit)
        LOGGER.info(
            "Found %s active tenants, %s batches (concurrency limit %s)",
            len(tenants),
            len(batches),
            self._config.concurrency_limit,
        )
        for number, batch in enumerate(batches, start=1):
            LOGGER.info("Processing batch %s of %s: %s", number, len(batches), batch)
            report.batches.append(batch)
            # Barrier: gather returns only once every job in the batch settled.
            results = await asyncio.gather(
                *(self.run_tenant(tenant_id) for tenant_id in batch),
                return_exceptions=True,
            )
            for tenant_id, result in zip(batch, results):
                if isinstance(result, BaseException):
                    log_failure(LOGGER, result, stage="digest", tenant_id=tenant_id)
                    result = OUTCOME_FAILED
                report.outcomes[tenant_id] = result

    async def run_tenant(self, tenant_id: int) -> str:
        """Digest job for one tenant; never raises."""

        try:
            return await self._digest(tenant_id)
        except Exception as exc:
            log_failure(LOGGER, exc, stage="digest", tenant_id=tenant_id)
            return OUTCOME_FAILED

    async def _digest(self, tenant_id: int) -> str:
        LOGGER.info("Processing tenant %s", tenant_id)
        pack = await self._windows.build(tenant_id, HoursSelector(self._config.digest_window_hours))
        if len(pack) < self._config.min_digest_messages:
            LOGGER.info("Skipping %s: only %s messages", tenant_id, len(pack))
            return OUTCOME_TOO_FEW

        options = GenerationOptions(
            temperature=self._config.temperature,
            max_output_tokens=self._config.max_output_tokens,
        )
        try:
            summary = await self._generator.generate(SUMMARIZE_CHAT, pack.text_parts(), options)
        except EmptyResult as exc:
            LOGGER.warning("Skipping %s: %s", tenant_id, exc.message)
            return OUTCOME_EMPTY

        reply = self._postprocessor.render(summary)
        await self._transport.send_message(tenant_id, reply, parse_mode=PARSE_MODE)
        LOGGER.info("Digest sent to %s", tenant_id)
        return OUTCOME_SENT
