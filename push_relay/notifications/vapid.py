"""VAPID (RFC 8292) token signing for push service authorization."""

from __future__ import annotations

import datetime
import json
import urllib.parse

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from push_relay.crypto.ecdsa_raw import der_to_raw
from push_relay.crypto.encoding import b64url_encode
from push_relay.notifications.contracts import InvalidSubscriptionError, ServerKeyPair

VAPID_HEADER = {"alg": "ES256", "typ": "JWT"}
DEFAULT_TOKEN_LIFETIME = datetime.timedelta(hours=12)
MAX_TOKEN_LIFETIME = datetime.timedelta(hours=24)
_DEFAULT_PORTS = {"https": 443, "http": 80}


def audience_for(endpoint: str) -> str:
  """Return the origin (scheme://host[:port]) a token for `endpoint` must be bound to."""
  parsed = urllib.parse.urlsplit(endpoint.strip())
  if not parsed.scheme or not parsed.hostname:
    raise InvalidSubscriptionError("endpoint must be an absolute URL")

  host = parsed.hostname
  if ":" in host:
    host = f"[{host}]"
  try:
    port = parsed.port
  except ValueError as exc:
    raise InvalidSubscriptionError("endpoint has an invalid port") from exc

  scheme = parsed.scheme.lower()
  if port is not None and port != _DEFAULT_PORTS.get(scheme):
    host = f"{host}:{port}"
  return f"{scheme}://{host}"


def _encode_segment(document: dict) -> str:
  return b64url_encode(json.dumps(document, separators=(",", ":")).encode("utf-8"))


def sign_vapid_token(audience: str, subject: str, key_pair: ServerKeyPair, *, now: datetime.datetime | None = None, lifetime: datetime.timedelta = DEFAULT_TOKEN_LIFETIME) -> str:
  """Build a compact ES256 JWT proving the server identity to one push service origin."""
  if lifetime <= datetime.timedelta(0) or lifetime > MAX_TOKEN_LIFETIME:
    raise ValueError("VAPID token lifetime must be positive and at most 24 hours")

  issued_at = now or datetime.datetime.now(datetime.timezone.utc)
  claims = {"aud": audience, "exp": int((issued_at + lifetime).timestamp()), "sub": subject}
  signing_input = f"{_encode_segment(VAPID_HEADER)}.{_encode_segment(claims)}"

  der_signature = key_pair.signing_key.sign(signing_input.encode("ascii"), ec.ECDSA(hashes.SHA256()))
  return f"{signing_input}.{b64url_encode(der_to_raw(der_signature))}"


def vapid_authorization(token: str, public_key_b64: str) -> str:
  """Render the `Authorization` header value for the vapid scheme."""
  return f"vapid t={token}, k={public_key_b64}"
