"""Shared fixtures for push relay tests."""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from push_relay.config import Settings
from push_relay.crypto.encoding import b64url_encode
from push_relay.notifications.contracts import ServerKeyPair, Subscription
from push_relay.notifications.keys import generate_vapid_keys, load_server_key_pair


@dataclass(frozen=True)
class Subscriber:
  """A simulated browser: its ECDH key pair and auth secret."""

  private_key: ec.EllipticCurvePrivateKey
  auth_secret: bytes

  @property
  def public_key(self) -> bytes:
    return self.private_key.public_key().public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)

  def subscription(self, endpoint: str, owner_id: str | None = "user-1") -> Subscription:
    return Subscription(endpoint=endpoint, p256dh=b64url_encode(self.public_key), auth=b64url_encode(self.auth_secret), owner_id=owner_id)


class InMemorySubscriptionRepository:
  """Subscription store double that behaves like the Postgres repository."""

  def __init__(self, subscriptions: Sequence[Subscription] = ()) -> None:
    self.subscriptions = list(subscriptions)
    self.queries: list[list[str] | None] = []
    self.deletes: list[list[str]] = []

  async def query(self, recipient_ids: Sequence[str] | None = None) -> list[Subscription]:
    self.queries.append(list(recipient_ids) if recipient_ids is not None else None)
    if not recipient_ids:
      return list(self.subscriptions)
    return [subscription for subscription in self.subscriptions if subscription.owner_id in set(recipient_ids)]

  async def batch_delete(self, endpoints: Sequence[str]) -> None:
    self.deletes.append(list(endpoints))
    doomed = set(endpoints)
    self.subscriptions = [subscription for subscription in self.subscriptions if subscription.endpoint not in doomed]


def reference_decrypt(body: bytes, private_key: ec.EllipticCurvePrivateKey, auth_secret: bytes) -> bytes:
  """Decrypt a single-record aes128gcm body as a user agent would (RFC 8291), using `cryptography`'s HKDF."""
  salt = body[:16]
  key_id_length = body[20]
  key_id = body[21 : 21 + key_id_length]
  ciphertext = body[21 + key_id_length :]

  sender_key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), key_id)
  ecdh_secret = private_key.exchange(ec.ECDH(), sender_key)
  ua_public = private_key.public_key().public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)

  ikm = HKDF(algorithm=hashes.SHA256(), length=32, salt=auth_secret, info=b"WebPush: info\x00" + ua_public + key_id).derive(ecdh_secret)
  cek = HKDF(algorithm=hashes.SHA256(), length=16, salt=salt, info=b"Content-Encoding: aes128gcm\x00").derive(ikm)
  nonce = HKDF(algorithm=hashes.SHA256(), length=12, salt=salt, info=b"Content-Encoding: nonce\x00").derive(ikm)

  padded = AESGCM(cek).decrypt(nonce, ciphertext, None).rstrip(b"\x00")
  assert padded.endswith(b"\x02"), "last record must end with the 0x02 delimiter"
  return padded[:-1]


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def make_subscriber() -> Callable[[], Subscriber]:
  def _make() -> Subscriber:
    return Subscriber(private_key=ec.generate_private_key(ec.SECP256R1()), auth_secret=os.urandom(16))

  return _make


@pytest.fixture
def subscriber(make_subscriber) -> Subscriber:
  return make_subscriber()


@pytest.fixture
def vapid_keys():
  return generate_vapid_keys()


@pytest.fixture
def server_key_pair(vapid_keys) -> ServerKeyPair:
  return load_server_key_pair(vapid_keys.public_key, vapid_keys.private_key)


@pytest.fixture
def make_settings(vapid_keys) -> Callable[..., Settings]:
  def _make(**overrides) -> Settings:
    values = {
      "environment": "test",
      "debug": False,
      "log_max_bytes": 1024,
      "log_backup_count": 1,
      "allowed_origins": (),
      "pg_dsn": None,
      "pg_connect_timeout": 5,
      "push_notifications_enabled": True,
      "vapid_public_key": vapid_keys.public_key,
      "vapid_private_key": vapid_keys.private_key,
      "vapid_subject": "mailto:ops@example.com",
      "push_ttl_seconds": 86400,
      "push_urgency": "normal",
      "push_timeout_seconds": 5.0,
      "push_max_concurrency": 4,
      "notification_icon": "/em-logo-white.png",
      "notification_badge": "/em-badge.png",
      "notification_default_tag": "default",
      "notification_default_url": "/dashboard",
      "api_token": None,
    }
    values.update(overrides)
    return Settings(**values)

  return _make


@pytest.fixture
def decrypt() -> Callable[[bytes, ec.EllipticCurvePrivateKey, bytes], bytes]:
  return reference_decrypt


@pytest.fixture
def make_repository() -> Callable[..., InMemorySubscriptionRepository]:
  return InMemorySubscriptionRepository
