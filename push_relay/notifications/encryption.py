"""Message encryption for Web Push using the aes128gcm content coding.

Implements RFC 8291 on top of the RFC 8188 record format. Each call generates
its own ephemeral ECDH key and salt, so the derived content key and nonce are
never repeated across messages or subscribers.

Derivation:

  ecdh_secret = ECDH(as_private, ua_public)
  key_info    = "WebPush: info" || 0x00 || ua_public || as_public
  IKM         = HKDF(salt=auth_secret, ikm=ecdh_secret, info=key_info, L=32)
  CEK         = HKDF(salt, IKM, "Content-Encoding: aes128gcm" || 0x00, L=16)
  NONCE       = HKDF(salt, IKM, "Content-Encoding: nonce" || 0x00, L=12)
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from push_relay.crypto.hkdf import hkdf
from push_relay.notifications.contracts import AUTH_SECRET_LENGTH, SALT_LENGTH, UNCOMPRESSED_POINT_LENGTH, UNCOMPRESSED_POINT_PREFIX, EncryptedRecord, InvalidSubscriptionError, PayloadTooLargeError

RECORD_SIZE = 4096
TAG_LENGTH = 16
KEY_LENGTH = 16
NONCE_LENGTH = 12
IKM_LENGTH = 32
LAST_RECORD_DELIMITER = b"\x02"
KEY_INFO_PREFIX = b"WebPush: info\x00"
CEK_INFO = b"Content-Encoding: aes128gcm\x00"
NONCE_INFO = b"Content-Encoding: nonce\x00"


def max_plaintext_length(record_size: int = RECORD_SIZE) -> int:
  """Return the largest plaintext that fits in a single record."""
  return record_size - len(LAST_RECORD_DELIMITER) - TAG_LENGTH


def encrypted_length(plaintext_length: int) -> int:
  """Return the body length produced for a plaintext of the given size."""
  header_length = SALT_LENGTH + 4 + 1 + UNCOMPRESSED_POINT_LENGTH
  return header_length + plaintext_length + len(LAST_RECORD_DELIMITER) + TAG_LENGTH


def _load_subscriber_key(subscriber_public_key: bytes) -> ec.EllipticCurvePublicKey:
  if len(subscriber_public_key) != UNCOMPRESSED_POINT_LENGTH or subscriber_public_key[0] != UNCOMPRESSED_POINT_PREFIX:
    raise InvalidSubscriptionError(f"subscriber key must be a {UNCOMPRESSED_POINT_LENGTH}-byte uncompressed point (got {len(subscriber_public_key)} bytes)")

  try:
    return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), subscriber_public_key)
  except ValueError as exc:
    raise InvalidSubscriptionError("subscriber key is not a point on P-256") from exc


def encrypt_payload(plaintext: bytes, subscriber_public_key: bytes, auth_secret: bytes, *, record_size: int = RECORD_SIZE, ephemeral_key: ec.EllipticCurvePrivateKey | None = None, salt: bytes | None = None) -> EncryptedRecord:
  """Encrypt `plaintext` so only the holder of the subscription keys can read it.

  `ephemeral_key` and `salt` are only supplied when reproducing published test
  vectors; production callers leave them unset so both are freshly generated.
  """
  if len(auth_secret) != AUTH_SECRET_LENGTH:
    raise InvalidSubscriptionError(f"auth secret must be {AUTH_SECRET_LENGTH} bytes (got {len(auth_secret)} bytes)")
  if len(plaintext) > max_plaintext_length(record_size):
    raise PayloadTooLargeError(f"payload of {len(plaintext)} bytes exceeds the {max_plaintext_length(record_size)} byte single-record limit")

  peer_key = _load_subscriber_key(subscriber_public_key)

  if ephemeral_key is None:
    ephemeral_key = ec.generate_private_key(ec.SECP256R1())
  if salt is None:
    salt = os.urandom(SALT_LENGTH)
  elif len(salt) != SALT_LENGTH:
    raise ValueError(f"salt must be {SALT_LENGTH} bytes")

  ephemeral_public = ephemeral_key.public_key().public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)
  ecdh_secret = ephemeral_key.exchange(ec.ECDH(), peer_key)

  key_info = KEY_INFO_PREFIX + subscriber_public_key + ephemeral_public
  ikm = hkdf(auth_secret, ecdh_secret, key_info, IKM_LENGTH)
  content_key = hkdf(salt, ikm, CEK_INFO, KEY_LENGTH)
  nonce = hkdf(salt, ikm, NONCE_INFO, NONCE_LENGTH)

  ciphertext = AESGCM(content_key).encrypt(nonce, plaintext + LAST_RECORD_DELIMITER, None)
  return EncryptedRecord(salt=salt, record_size=record_size, key_id=ephemeral_public, ciphertext=ciphertext)
