"""Generate a VAPID key pair for Web Push signing.

Prints the values in .env form by default so they can be pasted into the
secret store. Existing subscriptions are bound to the old public key, so
rotating keys forces every browser to re-subscribe.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
  sys.path.insert(0, str(REPO_ROOT))

from push_relay.notifications.keys import generate_vapid_keys  # noqa: E402


def render(*, output_format: str, include_pem: bool) -> str:
  """Render a fresh key pair in the requested format."""
  material = generate_vapid_keys()
  if output_format == "json":
    document = {"publicKey": material.public_key, "privateKey": material.private_key}
    if include_pem:
      document["privateKeyPem"] = material.private_key_pem
    return json.dumps(document, indent=2)

  lines = [f"VAPID_PUBLIC_KEY={material.public_key}", f"VAPID_PRIVATE_KEY={material.private_key}"]
  if include_pem:
    lines.append("")
    lines.append(material.private_key_pem.rstrip())
  return "\n".join(lines)


def main() -> None:
  """Print a new VAPID key pair."""
  parser = argparse.ArgumentParser(description="Generate a VAPID key pair for Web Push.")
  parser.add_argument("--format", dest="output_format", choices=["env", "json"], default="env", help="Output format.")
  parser.add_argument("--pem", action="store_true", help="Also print the private key as PKCS#8 PEM.")
  args = parser.parse_args()
  print(render(output_format=args.output_format, include_pem=args.pem))


if __name__ == "__main__":
  main()
