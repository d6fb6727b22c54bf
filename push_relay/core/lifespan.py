import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from push_relay.core.database import dispose_engine
from push_relay.core.logging import initialize_logging
from push_relay.notifications.contracts import PushConfigurationError
from push_relay.notifications.keys import load_server_key_pair


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and report push readiness; key problems surface per request, not here."""
  from push_relay.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("push_relay.core.lifespan")

  try:
    initialize_logging(settings)
  except RuntimeError:
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  try:
    key_pair = load_server_key_pair(settings.vapid_public_key, settings.vapid_private_key)
    logger.info("VAPID keys ready (public=%s...)", key_pair.public_key_b64[:20])
  except PushConfigurationError as exc:
    logger.warning("Web Push disabled until keys are fixed: %s", exc)

  yield

  await dispose_engine()
