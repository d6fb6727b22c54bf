"""Base64url helpers used by every Web Push wire format."""

from __future__ import annotations

import base64
import binascii


def b64url_encode(data: bytes) -> str:
  """Encode bytes as unpadded base64url text."""
  return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
  """Decode base64url text, tolerating missing padding and standard-alphabet input.

  Browsers hand out unpadded base64url, but stored keys have been seen with
  `+`/`/` and trailing `=`; both normalize to the same bytes.
  """
  normalized = value.strip().replace("+", "-").replace("/", "_").rstrip("=")
  padded = normalized + "=" * (-len(normalized) % 4)
  try:
    return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
  except (binascii.Error, UnicodeEncodeError) as exc:
    raise ValueError("value is not valid base64url") from exc
