"""Routes for sending a notification to registered push subscriptions."""

from __future__ import annotations

import hmac
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from push_relay.config import Settings, get_settings
from push_relay.notifications.factory import build_http_client, build_push_service
from push_relay.notifications.keys import load_server_key_pair
from push_relay.notifications.service import BroadcastRequest, PushBroadcastService

router = APIRouter()


class SendPushRequest(BaseModel):
  """Notification to fan out; omitting `userIds` targets every subscription."""

  title: str = Field(min_length=1, max_length=200)
  message: str = Field(min_length=1, max_length=2000)
  url: str | None = Field(default=None, max_length=2048)
  tag: str | None = Field(default=None, max_length=128)
  user_ids: list[str] | None = Field(default=None, alias="userIds", max_length=10000)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("title", "message")
  @classmethod
  def validate_text(cls, value: str) -> str:
    normalized = value.strip()
    if not normalized:
      raise ValueError("must not be blank")
    return normalized

  @field_validator("user_ids")
  @classmethod
  def validate_user_ids(cls, value: list[str] | None) -> list[str] | None:
    if value is None:
      return None
    # Drop blanks and duplicates while keeping caller order.
    return list(dict.fromkeys(item.strip() for item in value if item.strip()))

  def to_broadcast(self) -> BroadcastRequest:
    return BroadcastRequest(title=self.title, message=self.message, url=self.url, tag=self.tag, user_ids=tuple(self.user_ids) if self.user_ids else None)


class SendPushResponse(BaseModel):
  """Best-effort delivery summary."""

  success: bool
  sent: int
  failed: int
  total: int


class VapidPublicKeyResponse(BaseModel):
  public_key: str = Field(serialization_alias="publicKey")


def require_api_token(authorization: str | None = Header(default=None), settings: Settings = Depends(get_settings)) -> None:  # noqa: B008
  """Enforce the shared bearer token when one is configured."""
  if not settings.api_token:
    return

  scheme, _, token = (authorization or "").partition(" ")
  if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), settings.api_token):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})


async def get_push_service(settings: Settings = Depends(get_settings)) -> AsyncIterator[PushBroadcastService]:  # noqa: B008
  """Provide a broadcast service whose HTTP client lives for one request."""
  async with build_http_client(settings) as client:
    yield build_push_service(settings, client=client)


@router.post("/send", response_model=SendPushResponse, dependencies=[Depends(require_api_token)])
async def send_push_notification(payload: SendPushRequest, service: PushBroadcastService = Depends(get_push_service)) -> SendPushResponse:  # noqa: B008
  """Encrypt and deliver a notification to every matching subscription."""
  report = await service.broadcast(payload.to_broadcast())
  return SendPushResponse(**report.to_dict())


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse, response_model_by_alias=True)
async def get_vapid_public_key(settings: Settings = Depends(get_settings)) -> VapidPublicKeyResponse:  # noqa: B008
  """Return the application server key browsers pass to `pushManager.subscribe`."""
  key_pair = load_server_key_pair(settings.vapid_public_key, settings.vapid_private_key)
  return VapidPublicKeyResponse(public_key=key_pair.public_key_b64)
