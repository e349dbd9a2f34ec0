"""Composition root.

Created: 2026-10-06

``build_services()`` wires one transport, one worker pool and one owner
dispatcher into every service. Nothing in the package keeps module-level
service instances; callers hold the ``Services`` object.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from fincoach.categorize.batch import BatchCategorizer
from fincoach.categorize.categorizer import TransactionCategorizer
from fincoach.config import Settings, get_settings
from fincoach.insights.advisor import BudgetAdvisor
from fincoach.llm.dispatch import OwnerDispatcher, WorkerPool
from fincoach.llm.history import ConversationStore
from fincoach.llm.streaming import ChatStream, StreamingChatClient
from fincoach.llm.transport import ChatTransport
from fincoach.logging_setup import mask_key

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    transport: ChatTransport
    pool: WorkerPool
    dispatcher: OwnerDispatcher
    chat: StreamingChatClient
    advisor: BudgetAdvisor
    categorizer: TransactionCategorizer
    batch_categorizer: BatchCategorizer
    conversations: ConversationStore
    # session id -> in-flight stream, for the HTTP stop endpoint
    active_streams: dict[str, ChatStream] = field(default_factory=dict)

    async def aclose(self) -> None:
        for stream in list(self.active_streams.values()):
            stream.cancel()
        await self.pool.shutdown()
        await self.transport.aclose()


def build_services(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> Services:
    settings = settings or get_settings()
    if not settings.api_key:
        logger.warning("No API key configured; remote calls will fail and fall back")
    else:
        logger.info("Using API key %s at %s", mask_key(settings.api_key), settings.api_base_url)

    transport = ChatTransport(settings, client=http_client)
    pool = WorkerPool(settings.max_concurrent_requests)
    dispatcher = OwnerDispatcher(loop)
    chat = StreamingChatClient(transport, settings, pool=pool)

    return Services(
        settings=settings,
        transport=transport,
        pool=pool,
        dispatcher=dispatcher,
        chat=chat,
        advisor=BudgetAdvisor(chat, dispatcher=dispatcher),
        categorizer=TransactionCategorizer(transport, settings, pool=pool),
        batch_categorizer=BatchCategorizer(transport, settings, pool=pool),
        conversations=ConversationStore(settings.advisor_system_prompt),
    )
