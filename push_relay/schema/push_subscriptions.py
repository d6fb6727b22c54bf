"""SQLAlchemy model for browser Web Push subscriptions."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import DateTime, Index, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from push_relay.core.database import Base


class WebPushSubscription(Base):
  """A single browser push subscription endpoint owned by a user."""

  __tablename__ = "push_subscriptions"
  __table_args__ = (Index("ux_push_subscriptions_endpoint", "endpoint", unique=True),)

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  # Owner ids are opaque to this service; the application's user table lives elsewhere.
  user_id: Mapped[str] = mapped_column(Text, index=True, nullable=False)
  endpoint: Mapped[str] = mapped_column(Text, nullable=False)
  p256dh: Mapped[str] = mapped_column(Text, nullable=False)
  auth: Mapped[str] = mapped_column(Text, nullable=False)
  user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
