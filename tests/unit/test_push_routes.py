from __future__ import annotations

from fastapi.testclient import TestClient

from push_relay.api.routes.push import get_push_service
from push_relay.config import get_settings
from push_relay.main import _docs_urls, app
from push_relay.notifications.contracts import DeliveryOutcome, DeliveryStatus
from push_relay.notifications.service import PushBroadcastService


class _AcceptingSender:
  def __init__(self) -> None:
    self.endpoints: list[str] = []

  async def send(self, subscription, body, token, server_public_key):
    self.endpoints.append(subscription.endpoint)
    return DeliveryOutcome(subscription=subscription, status=DeliveryStatus.SENT, status_code=201)


def _service(repository, server_key_pair) -> PushBroadcastService:
  return PushBroadcastService(subscription_repo=repository, push_sender=_AcceptingSender(), key_loader=lambda: server_key_pair, vapid_subject="mailto:ops@example.com")


def test_send_returns_delivery_summary(make_settings, make_repository, make_subscriber, server_key_pair):
  repository = make_repository([make_subscriber().subscription("https://fcm.googleapis.com/fcm/send/a", owner_id="alice"), make_subscriber().subscription("https://fcm.googleapis.com/fcm/send/b", owner_id="bob")])
  app.dependency_overrides[get_settings] = lambda: make_settings()
  app.dependency_overrides[get_push_service] = lambda: _service(repository, server_key_pair)
  client = TestClient(app)

  try:
    response = client.post("/v1/push/send", json={"title": "Rehearsal moved", "message": "Tonight at 8pm", "userIds": ["bob", "bob", " "]})
    assert response.status_code == 200
    assert response.json() == {"success": True, "sent": 1, "failed": 0, "total": 1}
    assert repository.queries == [["bob"]]
  finally:
    app.dependency_overrides.clear()


def test_send_without_subscriptions_succeeds(make_settings, make_repository, server_key_pair):
  app.dependency_overrides[get_settings] = lambda: make_settings()
  app.dependency_overrides[get_push_service] = lambda: _service(make_repository(), server_key_pair)
  client = TestClient(app)

  try:
    response = client.post("/v1/push/send", json={"title": "Hello", "message": "World"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "sent": 0, "failed": 0, "total": 0}
  finally:
    app.dependency_overrides.clear()


def test_send_reports_missing_keys_as_unavailable(make_settings):
  app.dependency_overrides[get_settings] = lambda: make_settings(vapid_private_key=None)
  client = TestClient(app)

  try:
    response = client.post("/v1/push/send", json={"title": "Hello", "message": "World"})
    assert response.status_code == 503
    assert response.json() == {"error": "Push notifications not configured"}
  finally:
    app.dependency_overrides.clear()


def test_send_reports_lookup_failure(make_settings, make_repository, server_key_pair):
  repository = make_repository()

  async def _broken_query(recipient_ids=None):
    raise ConnectionError("connection reset")

  repository.query = _broken_query
  app.dependency_overrides[get_settings] = lambda: make_settings()
  app.dependency_overrides[get_push_service] = lambda: _service(repository, server_key_pair)
  client = TestClient(app)

  try:
    response = client.post("/v1/push/send", json={"title": "Hello", "message": "World"})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch subscriptions"}
  finally:
    app.dependency_overrides.clear()


def test_send_rejects_notification_too_large_to_encrypt(make_settings, make_repository, subscriber, server_key_pair):
  repository = make_repository([subscriber.subscription("https://fcm.googleapis.com/fcm/send/a")])
  app.dependency_overrides[get_settings] = lambda: make_settings()
  app.dependency_overrides[get_push_service] = lambda: _service(repository, server_key_pair)
  client = TestClient(app)

  try:
    # Three-byte UTF-8 characters push the JSON past one record.
    response = client.post("/v1/push/send", json={"title": "Hello", "message": "€" * 2000})
    assert response.status_code == 413
    assert "error" in response.json()
  finally:
    app.dependency_overrides.clear()


def test_send_validates_request_body(make_settings, make_repository, server_key_pair):
  app.dependency_overrides[get_settings] = lambda: make_settings()
  app.dependency_overrides[get_push_service] = lambda: _service(make_repository(), server_key_pair)
  client = TestClient(app)

  try:
    assert client.post("/v1/push/send", json={"message": "World"}).status_code == 422
    assert client.post("/v1/push/send", json={"title": "   ", "message": "World"}).status_code == 422
    response = client.post("/v1/push/send", json={"title": "Hello", "message": "World", "priority": "high"})
    assert response.status_code == 422
    errors = response.json()["error"]
    assert all("input" not in error for error in errors)
  finally:
    app.dependency_overrides.clear()


def test_send_requires_bearer_token_when_configured(make_settings, make_repository, server_key_pair):
  app.dependency_overrides[get_settings] = lambda: make_settings(api_token="relay-secret")
  app.dependency_overrides[get_push_service] = lambda: _service(make_repository(), server_key_pair)
  client = TestClient(app)

  try:
    body = {"title": "Hello", "message": "World"}
    assert client.post("/v1/push/send", json=body).status_code == 401
    assert client.post("/v1/push/send", json=body, headers={"Authorization": "Bearer wrong"}).status_code == 401
    response = client.post("/v1/push/send", json=body, headers={"Authorization": "Bearer relay-secret"})
    assert response.status_code == 200
  finally:
    app.dependency_overrides.clear()


def test_vapid_public_key_is_published(make_settings, vapid_keys):
  app.dependency_overrides[get_settings] = lambda: make_settings()
  client = TestClient(app)

  try:
    response = client.get("/v1/push/vapid-public-key")
    assert response.status_code == 200
    assert response.json() == {"publicKey": vapid_keys.public_key}
  finally:
    app.dependency_overrides.clear()


def test_vapid_public_key_unavailable_without_keys(make_settings):
  app.dependency_overrides[get_settings] = lambda: make_settings(vapid_public_key=None)
  client = TestClient(app)

  try:
    response = client.get("/v1/push/vapid-public-key")
    assert response.status_code == 503
  finally:
    app.dependency_overrides.clear()


def test_health_check():
  response = TestClient(app).get("/health")
  assert response.status_code == 200
  assert response.json()["status"] == "ok"


def test_docs_are_exposed_only_in_development():
  assert _docs_urls("development")["docs_url"] == "/docs"
  assert _docs_urls("production") == {"docs_url": None, "redoc_url": None, "openapi_url": None}
  assert _docs_urls("test")["openapi_url"] is None
