"""Removal of subscriptions that push services reported as gone."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from push_relay.notifications.contracts import DeliveryOutcome, DeliveryStatus, SubscriptionRepository

logger = logging.getLogger(__name__)


def gone_endpoints(outcomes: Iterable[DeliveryOutcome]) -> list[str]:
  """Collect unique endpoints classified as permanently invalid, in first-seen order."""
  return list(dict.fromkeys(outcome.subscription.endpoint for outcome in outcomes if outcome.status is DeliveryStatus.FAILED_GONE))


class SubscriptionCleanup:
  """Best-effort batched deletion of dead subscriptions."""

  def __init__(self, *, repository: SubscriptionRepository) -> None:
    self._repository = repository

  async def cleanup(self, endpoints: list[str]) -> None:
    """Delete all given endpoints in one call; failures are logged and swallowed."""
    unique = list(dict.fromkeys(endpoints))
    if not unique:
      return

    logger.info("Cleaning up %d expired subscription(s)", len(unique))
    try:
      await self._repository.batch_delete(unique)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed cleaning up expired subscriptions count=%d error=%s", len(unique), exc, exc_info=True)
