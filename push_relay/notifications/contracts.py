"""Contracts for encrypted Web Push delivery."""

from __future__ import annotations

import enum
import json
import struct
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Protocol

from cryptography.hazmat.primitives.asymmetric import ec

from push_relay.crypto.encoding import b64url_decode, b64url_encode

UNCOMPRESSED_POINT_LENGTH = 65
UNCOMPRESSED_POINT_PREFIX = 0x04
AUTH_SECRET_LENGTH = 16
PRIVATE_SCALAR_LENGTH = 32
SALT_LENGTH = 16


class NotificationError(Exception):
  """Base class for all push delivery failures."""


class PushConfigurationError(NotificationError):
  """Raised when the server key pair is missing or unusable; nothing is attempted."""


class SubscriptionLookupError(NotificationError):
  """Raised when the subscription repository cannot be queried."""


class InvalidSubscriptionError(NotificationError):
  """Raised when a single subscription carries malformed endpoint or key material."""


class PayloadTooLargeError(NotificationError, ValueError):
  """Raised when a notification cannot fit in a single aes128gcm record."""


class DeliveryStatus(str, enum.Enum):
  """Per-subscription delivery classification."""

  SENT = "sent"
  FAILED_TRANSIENT = "failed-transient"
  FAILED_GONE = "failed-gone"


@dataclass(frozen=True)
class Subscription:
  """A browser push subscription as stored by the repository."""

  endpoint: str
  p256dh: str
  auth: str
  owner_id: str | None = None

  def p256dh_key(self) -> bytes:
    """Decode the subscriber public key and check it is an uncompressed P-256 point."""
    key = _decode_field(self.p256dh, "p256dh")
    if len(key) != UNCOMPRESSED_POINT_LENGTH or key[0] != UNCOMPRESSED_POINT_PREFIX:
      raise InvalidSubscriptionError(f"p256dh must be a {UNCOMPRESSED_POINT_LENGTH}-byte uncompressed point (got {len(key)} bytes)")
    return key

  def auth_secret(self) -> bytes:
    """Decode the subscriber auth secret."""
    secret = _decode_field(self.auth, "auth")
    if len(secret) != AUTH_SECRET_LENGTH:
      raise InvalidSubscriptionError(f"auth secret must be {AUTH_SECRET_LENGTH} bytes (got {len(secret)} bytes)")
    return secret


def _decode_field(value: str, name: str) -> bytes:
  try:
    return b64url_decode(value)
  except ValueError as exc:
    raise InvalidSubscriptionError(f"{name} is not valid base64url") from exc


@dataclass(frozen=True)
class ServerKeyPair:
  """The deployment's static VAPID key pair."""

  public_key: bytes
  private_key: bytes = field(repr=False)

  @property
  def public_key_b64(self) -> str:
    """Return the public key in the form sent as the `k=` parameter."""
    return b64url_encode(self.public_key)

  @cached_property
  def signing_key(self) -> ec.EllipticCurvePrivateKey:
    """Return the private scalar as a P-256 signing key."""
    return ec.derive_private_key(int.from_bytes(self.private_key, "big"), ec.SECP256R1())


@dataclass(frozen=True)
class NotificationPayload:
  """Plaintext notification shown by the service worker."""

  title: str
  body: str
  icon: str | None = None
  badge: str | None = None
  tag: str | None = None
  target_url: str | None = None

  def to_dict(self) -> dict[str, Any]:
    """Build the JSON document read by the service worker `push` handler."""
    document: dict[str, Any] = {"title": self.title, "body": self.body}
    if self.icon:
      document["icon"] = self.icon
    if self.badge:
      document["badge"] = self.badge
    if self.tag:
      document["tag"] = self.tag
    if self.target_url:
      document["data"] = {"url": self.target_url}
    return document

  def to_bytes(self) -> bytes:
    """Serialize to compact UTF-8 JSON."""
    return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False).encode("utf-8")


@dataclass(frozen=True)
class EncryptedRecord:
  """A single-record aes128gcm message body (RFC 8188 header plus ciphertext)."""

  salt: bytes
  record_size: int
  key_id: bytes
  ciphertext: bytes

  def header(self) -> bytes:
    """Return `salt || rs || idlen || keyid`."""
    return self.salt + struct.pack(">IB", self.record_size, len(self.key_id)) + self.key_id

  def to_bytes(self) -> bytes:
    """Return the exact request body sent to the push service."""
    return self.header() + self.ciphertext


@dataclass(frozen=True)
class DeliveryOutcome:
  """Result of one encrypt, sign and send attempt."""

  subscription: Subscription
  status: DeliveryStatus
  status_code: int | None = None
  error_detail: str | None = None

  @property
  def success(self) -> bool:
    return self.status is DeliveryStatus.SENT


@dataclass(frozen=True)
class DeliveryReport:
  """Aggregate counters returned to the caller."""

  sent: int
  failed: int
  total: int

  @classmethod
  def from_outcomes(cls, outcomes: Iterable[DeliveryOutcome]) -> DeliveryReport:
    """Fold outcomes into counters; every outcome counts exactly once."""
    sent = 0
    failed = 0
    for outcome in outcomes:
      if outcome.success:
        sent += 1
      else:
        failed += 1
    return cls(sent=sent, failed=failed, total=sent + failed)

  def to_dict(self) -> dict[str, Any]:
    return {"success": True, "sent": self.sent, "failed": self.failed, "total": self.total}


class SubscriptionRepository(Protocol):
  """Read and prune access to stored push subscriptions."""

  async def query(self, recipient_ids: Sequence[str] | None = None) -> list[Subscription]:
    """Return subscriptions, optionally limited to the given owners."""

  async def batch_delete(self, endpoints: Sequence[str]) -> None:
    """Delete every subscription whose endpoint is listed."""


class PushSender(Protocol):
  """Delivery contract for one encrypted push message."""

  async def send(self, subscription: Subscription, body: bytes, token: str, server_public_key: str) -> DeliveryOutcome:
    """Deliver an encrypted body and classify the push service response."""
