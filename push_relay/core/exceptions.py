import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from push_relay.notifications.contracts import PayloadTooLargeError, PushConfigurationError, SubscriptionLookupError

logger = logging.getLogger("uvicorn.error")


def _error_payload(message: Any) -> dict[str, Any]:
  """Build the `{error}` body shared by every failure response."""
  return {"error": message}


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key not in {"input", "ctx", "url"}}
    scrubbed["loc"] = [str(part) for part in scrubbed.get("loc", ())]
    sanitized.append(scrubbed)

  return sanitized


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch unhandled errors without leaking internals."""
  logger.error("Global exception path=%s error_type=%s", request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error"))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors without echoing request bodies."""
  sanitized_errors = _sanitize_validation_errors(list(exc.errors()))
  logger.warning("Request validation failed path=%s method=%s errors=%s", request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Render HTTPExceptions in the `{error}` shape."""
  if exc.status_code >= 500:
    logger.error("HTTPException path=%s status_code=%s detail=%s", request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error"))

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail), headers=exc.headers)


async def push_configuration_exception_handler(request: Request, exc: PushConfigurationError) -> JSONResponse:
  """Report missing or invalid VAPID keys as service unavailable."""
  # The reason names the offending variable only; key material never reaches logs.
  logger.error("VAPID keys not configured path=%s reason=%s", request.url.path, exc)
  return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=_error_payload("Push notifications not configured"))


async def subscription_lookup_exception_handler(request: Request, exc: SubscriptionLookupError) -> JSONResponse:
  """Report repository failures without exposing database errors."""
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Failed to fetch subscriptions"))


async def payload_too_large_exception_handler(request: Request, exc: PayloadTooLargeError) -> JSONResponse:
  """Reject notifications that cannot fit in a single encrypted record."""
  logger.warning("Notification too large path=%s detail=%s", request.url.path, exc)
  return JSONResponse(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, content=_error_payload(str(exc)))
