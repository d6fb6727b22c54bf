"""Factory helpers for the push broadcast service."""

from __future__ import annotations

from functools import partial

import httpx

from push_relay.config import Settings
from push_relay.notifications.contracts import PushSender, SubscriptionRepository
from push_relay.notifications.keys import load_server_key_pair
from push_relay.notifications.push_sender import DeliveryOptions, NullPushSender, WebPushSender
from push_relay.notifications.push_subscription_repo import NullPushSubscriptionRepository, PushSubscriptionRepository
from push_relay.notifications.service import NotificationDefaults, PushBroadcastService


def build_http_client(settings: Settings) -> httpx.AsyncClient:
  """Create the client shared by every send of one broadcast."""
  # Size the pool to the fan-out bound so sends never queue for a connection.
  limits = httpx.Limits(max_connections=settings.push_max_concurrency, max_keepalive_connections=settings.push_max_concurrency)
  return httpx.AsyncClient(timeout=settings.push_timeout_seconds, limits=limits, trust_env=False)


def build_push_service(settings: Settings, *, client: httpx.AsyncClient, subscription_repo: SubscriptionRepository | None = None) -> PushBroadcastService:
  """Construct a broadcast service based on environment configuration."""
  # Persist-backed lookups only when Postgres is configured.
  if subscription_repo is None:
    subscription_repo = PushSubscriptionRepository() if settings.pg_dsn else NullPushSubscriptionRepository()

  if settings.push_notifications_enabled:
    options = DeliveryOptions(ttl_seconds=settings.push_ttl_seconds, urgency=settings.push_urgency, timeout_seconds=settings.push_timeout_seconds)
    push_sender: PushSender = WebPushSender(client=client, options=options)
  else:
    push_sender = NullPushSender()

  defaults = NotificationDefaults(icon=settings.notification_icon, badge=settings.notification_badge, tag=settings.notification_default_tag, url=settings.notification_default_url)
  key_loader = partial(load_server_key_pair, settings.vapid_public_key, settings.vapid_private_key)
  return PushBroadcastService(subscription_repo=subscription_repo, push_sender=push_sender, key_loader=key_loader, vapid_subject=settings.vapid_subject, defaults=defaults, max_concurrency=settings.push_max_concurrency)
