from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from push_relay import __version__
from push_relay.api.routes import push
from push_relay.config import get_settings
from push_relay.core.exceptions import global_exception_handler, http_exception_handler, payload_too_large_exception_handler, push_configuration_exception_handler, request_validation_exception_handler, subscription_lookup_exception_handler
from push_relay.core.lifespan import lifespan
from push_relay.notifications.contracts import PayloadTooLargeError, PushConfigurationError, SubscriptionLookupError

settings = get_settings()


def _docs_urls(environment: str) -> dict[str, str | None]:
  """Expose interactive API docs only for local development."""
  if environment == "development":
    return {"docs_url": "/docs", "redoc_url": None, "openapi_url": "/openapi.json"}
  return {"docs_url": None, "redoc_url": None, "openapi_url": None}


app = FastAPI(title="push-relay", version=__version__, lifespan=lifespan, **_docs_urls(settings.environment))

if settings.allowed_origins:
  app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"])

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(PushConfigurationError, push_configuration_exception_handler)
app.add_exception_handler(SubscriptionLookupError, subscription_lookup_exception_handler)
app.add_exception_handler(PayloadTooLargeError, payload_too_large_exception_handler)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(push.router, prefix="/v1/push", tags=["push"])
