"""Loading and generating the server's VAPID key pair."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from push_relay.crypto.encoding import b64url_decode, b64url_encode
from push_relay.notifications.contracts import PRIVATE_SCALAR_LENGTH, UNCOMPRESSED_POINT_LENGTH, UNCOMPRESSED_POINT_PREFIX, PushConfigurationError, ServerKeyPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VapidKeyMaterial:
  """Freshly generated key pair in every encoding an operator may need."""

  public_key: str
  private_key: str = field(repr=False)
  private_key_pem: str = field(repr=False)


def load_server_key_pair(public_key: str | None, private_key: str | None) -> ServerKeyPair:
  """Decode and validate the configured VAPID key pair.

  Both values are base64url: the public key a 65-byte uncompressed point and the
  private key a 32-byte big-endian scalar. The public key must be the one
  derived from the private scalar, otherwise push services reject every token.
  """
  if not public_key:
    raise PushConfigurationError("VAPID_PUBLIC_KEY is not configured")
  if not private_key:
    raise PushConfigurationError("VAPID_PRIVATE_KEY is not configured")

  try:
    public_bytes = b64url_decode(public_key)
    private_bytes = b64url_decode(private_key)
  except ValueError as exc:
    raise PushConfigurationError("VAPID keys must be base64url encoded") from exc

  if len(public_bytes) != UNCOMPRESSED_POINT_LENGTH or public_bytes[0] != UNCOMPRESSED_POINT_PREFIX:
    raise PushConfigurationError(f"VAPID_PUBLIC_KEY must decode to a {UNCOMPRESSED_POINT_LENGTH}-byte uncompressed point")
  if len(private_bytes) != PRIVATE_SCALAR_LENGTH:
    raise PushConfigurationError(f"VAPID_PRIVATE_KEY must decode to a {PRIVATE_SCALAR_LENGTH}-byte scalar")

  key_pair = ServerKeyPair(public_key=public_bytes, private_key=private_bytes)
  try:
    derived = key_pair.signing_key.public_key().public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)
  except ValueError as exc:
    raise PushConfigurationError("VAPID_PRIVATE_KEY is not a valid P-256 scalar") from exc

  if derived != public_bytes:
    raise PushConfigurationError("VAPID_PUBLIC_KEY does not match VAPID_PRIVATE_KEY")

  logger.debug("VAPID key pair loaded public=%s...", key_pair.public_key_b64[:16])
  return key_pair


def generate_vapid_keys() -> VapidKeyMaterial:
  """Generate a new P-256 key pair for VAPID signing."""
  private_key = ec.generate_private_key(ec.SECP256R1())
  public_bytes = private_key.public_key().public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)
  private_bytes = private_key.private_numbers().private_value.to_bytes(PRIVATE_SCALAR_LENGTH, "big")
  private_pem = private_key.private_bytes(encoding=serialization.Encoding.PEM, format=serialization.PrivateFormat.PKCS8, encryption_algorithm=serialization.NoEncryption()).decode("ascii")
  return VapidKeyMaterial(public_key=b64url_encode(public_bytes), private_key=b64url_encode(private_bytes), private_key_pem=private_pem)
