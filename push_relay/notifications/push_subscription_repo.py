"""Repository helpers for reading and pruning Web Push subscriptions."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from push_relay.core.database import get_session_factory
from push_relay.notifications.contracts import Subscription, SubscriptionRepository
from push_relay.schema.push_subscriptions import WebPushSubscription

logger = logging.getLogger(__name__)


class PushSubscriptionRepository(SubscriptionRepository):
  """Postgres-backed subscription store."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _factory(self) -> async_sessionmaker[AsyncSession]:
    session_factory = self._session_factory or get_session_factory()
    if session_factory is None:
      raise RuntimeError("Database connection is not configured (PUSH_RELAY_PG_DSN is missing).")
    return session_factory

  async def query(self, recipient_ids: Sequence[str] | None = None) -> list[Subscription]:
    """List subscriptions, limited to the given owners when ids are supplied."""
    async with self._factory()() as session:
      return await self._query_with_session(session=session, recipient_ids=recipient_ids)

  async def _query_with_session(self, *, session: AsyncSession, recipient_ids: Sequence[str] | None) -> list[Subscription]:
    stmt = select(WebPushSubscription)
    if recipient_ids:
      stmt = stmt.where(WebPushSubscription.user_id.in_(list(recipient_ids)))

    result = await session.execute(stmt)
    rows = result.scalars().all()
    return [Subscription(endpoint=row.endpoint, p256dh=row.p256dh, auth=row.auth, owner_id=row.user_id) for row in rows]

  async def batch_delete(self, endpoints: Sequence[str]) -> None:
    """Delete every subscription whose endpoint is listed, in one statement."""
    if not endpoints:
      return

    async with self._factory()() as session:
      await self._batch_delete_with_session(session=session, endpoints=endpoints)

  async def _batch_delete_with_session(self, *, session: AsyncSession, endpoints: Sequence[str]) -> None:
    stmt = delete(WebPushSubscription).where(WebPushSubscription.endpoint.in_(list(endpoints)))
    result = await session.execute(stmt)
    await session.commit()
    logger.info("Deleted %s push subscription(s)", result.rowcount)


class NullPushSubscriptionRepository(SubscriptionRepository):
  """Empty store used when no database is configured."""

  async def query(self, recipient_ids: Sequence[str] | None = None) -> list[Subscription]:
    logger.debug("Subscription store not configured; returning no subscriptions")
    return []

  async def batch_delete(self, endpoints: Sequence[str]) -> None:
    logger.debug("Subscription store not configured; skipping delete of %d endpoint(s)", len(endpoints))
