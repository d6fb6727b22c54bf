"""Push service delivery implementations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus

import anyio
import httpx

from push_relay.notifications.contracts import DeliveryOutcome, DeliveryStatus, PushSender, Subscription
from push_relay.notifications.vapid import vapid_authorization

logger = logging.getLogger(__name__)

# Push services answer these for endpoints that will never accept messages again.
GONE_STATUS_CODES = frozenset({HTTPStatus.BAD_REQUEST, HTTPStatus.NOT_FOUND, HTTPStatus.GONE})
_ERROR_DETAIL_LIMIT = 512


@dataclass(frozen=True)
class DeliveryOptions:
  """Per-message delivery headers and the request deadline."""

  ttl_seconds: int = 86400
  urgency: str = "normal"
  timeout_seconds: float = 10.0


def classify_status(status_code: int) -> DeliveryStatus:
  """Map a push service response code onto a delivery classification."""
  if 200 <= status_code < 300:
    return DeliveryStatus.SENT
  if status_code in GONE_STATUS_CODES:
    return DeliveryStatus.FAILED_GONE
  return DeliveryStatus.FAILED_TRANSIENT


def _short_endpoint(endpoint: str) -> str:
  return endpoint if len(endpoint) <= 60 else f"{endpoint[:60]}..."


class WebPushSender(PushSender):
  """`httpx` backed sender for aes128gcm bodies with VAPID authorization."""

  def __init__(self, *, client: httpx.AsyncClient, options: DeliveryOptions | None = None) -> None:
    self._client = client
    self._options = options or DeliveryOptions()

  def build_headers(self, body: bytes, token: str, server_public_key: str) -> dict[str, str]:
    """Return the request headers required by RFC 8030, 8291 and 8292."""
    return {
      "Content-Type": "application/octet-stream",
      "Content-Encoding": "aes128gcm",
      "Content-Length": str(len(body)),
      "TTL": str(self._options.ttl_seconds),
      "Urgency": self._options.urgency,
      "Authorization": vapid_authorization(token, server_public_key),
    }

  async def send(self, subscription: Subscription, body: bytes, token: str, server_public_key: str) -> DeliveryOutcome:
    """POST one encrypted body and classify the push service response; never raises for HTTP failures."""
    headers = self.build_headers(body, token, server_public_key)
    try:
      # httpx timeouts apply per connect/read/write step; the deadline covers the whole exchange.
      with anyio.fail_after(self._options.timeout_seconds):
        response = await self._client.post(subscription.endpoint, content=body, headers=headers, timeout=self._options.timeout_seconds)
    except TimeoutError:
      logger.warning("Push delivery exceeded deadline endpoint=%s seconds=%s", _short_endpoint(subscription.endpoint), self._options.timeout_seconds)
      return DeliveryOutcome(subscription=subscription, status=DeliveryStatus.FAILED_TRANSIENT, error_detail=f"timeout: exceeded {self._options.timeout_seconds}s deadline")
    except httpx.TimeoutException as exc:
      logger.warning("Push delivery timed out endpoint=%s", _short_endpoint(subscription.endpoint))
      return DeliveryOutcome(subscription=subscription, status=DeliveryStatus.FAILED_TRANSIENT, error_detail=f"timeout: {type(exc).__name__}")
    except httpx.HTTPError as exc:
      logger.warning("Push delivery transport error endpoint=%s error=%s", _short_endpoint(subscription.endpoint), exc)
      return DeliveryOutcome(subscription=subscription, status=DeliveryStatus.FAILED_TRANSIENT, error_detail=f"transport error: {exc}")

    status = classify_status(response.status_code)
    if status is DeliveryStatus.SENT:
      logger.info("Push sent owner=%s status=%s", subscription.owner_id, response.status_code)
      return DeliveryOutcome(subscription=subscription, status=status, status_code=response.status_code)

    detail = response.text[:_ERROR_DETAIL_LIMIT]
    logger.error("Push failed owner=%s status=%s classification=%s body=%s", subscription.owner_id, response.status_code, status.value, detail)
    return DeliveryOutcome(subscription=subscription, status=status, status_code=response.status_code, error_detail=detail or None)


class NullPushSender(PushSender):
  """No-op sender used when push delivery is disabled."""

  async def send(self, subscription: Subscription, body: bytes, token: str, server_public_key: str) -> DeliveryOutcome:
    """Drop the message while recording a debug log."""
    logger.debug("Push delivery disabled; dropping message endpoint=%s", _short_endpoint(subscription.endpoint))
    return DeliveryOutcome(subscription=subscription, status=DeliveryStatus.FAILED_TRANSIENT, error_detail="push delivery disabled")
