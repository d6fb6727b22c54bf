"""Conversions between DER ECDSA signatures and the fixed-width JOSE form.

`cryptography` emits ASN.1 DER (`SEQUENCE { INTEGER r, INTEGER s }`) while
ES256 tokens carry `r || s`, each left-padded to the curve size.
Push services reject DER signatures outright.
"""

from __future__ import annotations

from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature, encode_dss_signature

P256_COORDINATE_SIZE = 32


def der_to_raw(signature: bytes, coordinate_size: int = P256_COORDINATE_SIZE) -> bytes:
  """Convert a DER signature into `r || s`."""
  try:
    r, s = decode_dss_signature(signature)
  except ValueError as exc:
    raise ValueError("signature is not a valid DER ECDSA signature") from exc

  max_value = 1 << (8 * coordinate_size)
  if r >= max_value or s >= max_value:
    raise ValueError(f"signature component does not fit in {coordinate_size} bytes")

  return r.to_bytes(coordinate_size, "big") + s.to_bytes(coordinate_size, "big")


def raw_to_der(signature: bytes, coordinate_size: int = P256_COORDINATE_SIZE) -> bytes:
  """Convert `r || s` back into DER, e.g. for verification with `cryptography`."""
  if len(signature) != 2 * coordinate_size:
    raise ValueError(f"raw signature must be {2 * coordinate_size} bytes, got {len(signature)}")

  r = int.from_bytes(signature[:coordinate_size], "big")
  s = int.from_bytes(signature[coordinate_size:], "big")
  return encode_dss_signature(r, s)
