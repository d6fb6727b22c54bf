"""Fan-out of one notification to every matching push subscription."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from push_relay.notifications.cleanup import SubscriptionCleanup, gone_endpoints
from push_relay.notifications.contracts import DeliveryOutcome, DeliveryReport, DeliveryStatus, InvalidSubscriptionError, NotificationPayload, PayloadTooLargeError, PushSender, ServerKeyPair, Subscription, SubscriptionLookupError, SubscriptionRepository
from push_relay.notifications.encryption import encrypt_payload, max_plaintext_length
from push_relay.notifications.vapid import audience_for, sign_vapid_token

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 16


@dataclass(frozen=True)
class BroadcastRequest:
  """A caller's request to notify all (or selected) subscribers."""

  title: str
  message: str
  url: str | None = None
  tag: str | None = None
  user_ids: tuple[str, ...] | None = None


@dataclass(frozen=True)
class NotificationDefaults:
  """Presentation defaults applied when a request leaves a field unset."""

  icon: str | None = None
  badge: str | None = None
  tag: str = "default"
  url: str = "/dashboard"


class PushBroadcastService:
  """Resolves recipients, encrypts and sends per subscription, then prunes dead endpoints.

  A broadcast runs LoadKeys -> ResolveRecipients -> BuildPayload -> Dispatch ->
  Aggregate -> Cleanup exactly once. Only configuration, lookup and payload-size
  errors escape; every per-subscription problem becomes a failed outcome.
  """

  def __init__(
    self,
    *,
    subscription_repo: SubscriptionRepository,
    push_sender: PushSender,
    key_loader: Callable[[], ServerKeyPair],
    vapid_subject: str,
    defaults: NotificationDefaults | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    cleanup: SubscriptionCleanup | None = None,
  ) -> None:
    if max_concurrency <= 0:
      raise ValueError("max_concurrency must be positive")
    self._subscription_repo = subscription_repo
    self._push_sender = push_sender
    self._key_loader = key_loader
    self._vapid_subject = vapid_subject
    self._defaults = defaults or NotificationDefaults()
    self._max_concurrency = max_concurrency
    self._cleanup = cleanup or SubscriptionCleanup(repository=subscription_repo)

  async def broadcast(self, request: BroadcastRequest) -> DeliveryReport:
    """Deliver one notification and return aggregate counters."""
    # Raises PushConfigurationError before any recipient is touched.
    key_pair = self._key_loader()

    logger.info("Push request received title=%s recipients=%s", request.title, len(request.user_ids) if request.user_ids else "all")
    subscriptions = await self._resolve_recipients(request.user_ids)
    if not subscriptions:
      logger.info("No subscriptions found")
      return DeliveryReport(sent=0, failed=0, total=0)

    logger.info("Found %d subscription(s)", len(subscriptions))
    plaintext = self.build_payload(request).to_bytes()
    if len(plaintext) > max_plaintext_length():
      raise PayloadTooLargeError(f"notification of {len(plaintext)} bytes exceeds the {max_plaintext_length()} byte limit")

    outcomes = await self._dispatch(subscriptions, plaintext, key_pair)
    report = DeliveryReport.from_outcomes(outcomes)

    await self._cleanup.cleanup(gone_endpoints(outcomes))
    logger.info("Push complete: %d sent, %d failed", report.sent, report.failed)
    return report

  def build_payload(self, request: BroadcastRequest) -> NotificationPayload:
    """Build the plaintext shared by every subscription in this broadcast."""
    return NotificationPayload(title=request.title, body=request.message, icon=self._defaults.icon, badge=self._defaults.badge, tag=request.tag or self._defaults.tag, target_url=request.url or self._defaults.url)

  async def _resolve_recipients(self, user_ids: Sequence[str] | None) -> list[Subscription]:
    # An empty id list means no filter, matching an omitted list.
    recipient_ids = list(user_ids) if user_ids else None
    try:
      return list(await self._subscription_repo.query(recipient_ids))
    except Exception as exc:
      logger.error("Push subscription lookup failed error=%s", exc, exc_info=True)
      raise SubscriptionLookupError("Failed to fetch subscriptions") from exc

  async def _dispatch(self, subscriptions: list[Subscription], plaintext: bytes, key_pair: ServerKeyPair) -> list[DeliveryOutcome]:
    semaphore = asyncio.Semaphore(self._max_concurrency)
    # Tokens are bound to one push service origin and reused only within this broadcast.
    tokens: dict[str, str] = {}

    async def _bounded(subscription: Subscription) -> DeliveryOutcome:
      async with semaphore:
        return await self._deliver(subscription, plaintext, key_pair, tokens)

    return list(await asyncio.gather(*(_bounded(subscription) for subscription in subscriptions)))

  async def _deliver(self, subscription: Subscription, plaintext: bytes, key_pair: ServerKeyPair, tokens: dict[str, str]) -> DeliveryOutcome:
    """Encrypt, sign and send for one subscription, converting every failure into an outcome."""
    try:
      record = encrypt_payload(plaintext, subscription.p256dh_key(), subscription.auth_secret())

      audience = audience_for(subscription.endpoint)
      token = tokens.get(audience)
      if token is None:
        token = sign_vapid_token(audience, self._vapid_subject, key_pair)
        tokens[audience] = token

      return await self._push_sender.send(subscription, record.to_bytes(), token, key_pair.public_key_b64)

    except InvalidSubscriptionError as exc:
      logger.warning("Skipping malformed subscription owner=%s error=%s", subscription.owner_id, exc)
      return DeliveryOutcome(subscription=subscription, status=DeliveryStatus.FAILED_TRANSIENT, error_detail=str(exc))

    except Exception as exc:  # noqa: BLE001
      logger.error("Push delivery failed owner=%s error_type=%s", subscription.owner_id, type(exc).__name__, exc_info=True)
      return DeliveryOutcome(subscription=subscription, status=DeliveryStatus.FAILED_TRANSIENT, error_detail=f"{type(exc).__name__}: {exc}")
