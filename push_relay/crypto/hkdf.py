"""HMAC-SHA256 based extract-and-expand key derivation (RFC 5869)."""

from __future__ import annotations

from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.kdf.hkdf import HKDFExpand

HASH_LENGTH = hashes.SHA256.digest_size
MAX_OUTPUT_LENGTH = 255 * HASH_LENGTH


def hkdf_extract(salt: bytes, ikm: bytes) -> bytes:
  """Concentrate input keying material into a pseudorandom key."""
  # An absent salt is a string of HashLen zeros.
  mac = hmac.HMAC(salt if salt else bytes(HASH_LENGTH), hashes.SHA256())
  mac.update(ikm)
  return mac.finalize()


def hkdf_expand(prk: bytes, info: bytes, length: int) -> bytes:
  """Stretch a pseudorandom key into `length` bytes bound to `info`."""
  if length <= 0 or length > MAX_OUTPUT_LENGTH:
    raise ValueError(f"HKDF output length must be between 1 and {MAX_OUTPUT_LENGTH} bytes")
  if len(prk) < HASH_LENGTH:
    raise ValueError("HKDF pseudorandom key is shorter than the hash length")

  return HKDFExpand(algorithm=hashes.SHA256(), length=length, info=info).derive(prk)


def hkdf(salt: bytes, ikm: bytes, info: bytes, length: int) -> bytes:
  """Run extract then expand in one call."""
  return hkdf_expand(hkdf_extract(salt, ikm), info, length)
