"""Unit tests for the FCM gateway and the dispatcher."""

import json

import httpx
import pytest

from stepquest.errors import InvalidTokenError, TransientDeliveryError
from stepquest.notifications.messages import NotificationContent
from stepquest.notifications.push import (
    DeliveryOutcome,
    FcmPushGateway,
    LoggingPushGateway,
    NotificationDispatcher,
    PushMessage,
    build_fcm_payload,
    classify_fcm_error,
    create_gateway,
)
from stepquest.store.documents import WriteBatch, apply_ops

CONTENT = NotificationContent(title="Hi", body="Keep walking", data={"type": "daily_reward", "rank": 1})


class StubCredentials:
    valid = True
    token = "access-token"


def _gateway(handler) -> FcmPushGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FcmPushGateway("stepquest-test", StubCredentials(), client)


def _fcm_error(status: int, message: str, error_code: str | None = None) -> httpx.Response:
    details = [{"@type": "type.googleapis.com/google.firebase.fcm.v1.FcmError", "errorCode": error_code}]
    return httpx.Response(status, json={"error": {"code": status, "message": message, "details": details if error_code else []}})


class TestFcmPayload:
    def test_data_values_are_strings(self):
        payload = build_fcm_payload(PushMessage.build("tok", CONTENT), "streak_notifications")
        data = payload["message"]["data"]
        assert data["rank"] == "1"
        assert data["click_action"] == "FLUTTER_NOTIFICATION_CLICK"

    def test_android_high_priority_channel(self):
        payload = build_fcm_payload(PushMessage.build("tok", CONTENT), "streak_notifications")
        android = payload["message"]["android"]
        assert android["priority"] == "high"
        assert android["notification"]["channel_id"] == "streak_notifications"
        assert payload["message"]["token"] == "tok"


class TestClassifyFcmError:
    def test_unregistered_is_permanent(self):
        body = {"error": {"message": "Requested entity was not found.", "details": [{"errorCode": "UNREGISTERED"}]}}
        assert isinstance(classify_fcm_error(404, body), InvalidTokenError)

    def test_bad_registration_token_is_permanent(self):
        body = {"error": {"message": "The registration token is not a valid FCM registration token", "status": "INVALID_ARGUMENT"}}
        assert isinstance(classify_fcm_error(400, body), InvalidTokenError)

    def test_other_bad_request_is_transient(self):
        body = {"error": {"message": "Invalid JSON payload", "status": "INVALID_ARGUMENT"}}
        error = classify_fcm_error(400, body)
        assert isinstance(error, TransientDeliveryError)
        assert error.code == "INVALID_ARGUMENT"

    def test_quota_is_transient(self):
        body = {"error": {"message": "Quota exceeded", "details": [{"errorCode": "QUOTA_EXCEEDED"}]}}
        error = classify_fcm_error(429, body)
        assert isinstance(error, TransientDeliveryError)
        assert error.code == "QUOTA_EXCEEDED"


class TestFcmPushGateway:
    @pytest.mark.asyncio
    async def test_send_posts_bearer_request(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"name": "projects/stepquest-test/messages/1"})

        gateway = _gateway(handler)
        receipt = await gateway.send(PushMessage.build("tok-1", CONTENT))
        await gateway.aclose()

        assert receipt == "projects/stepquest-test/messages/1"
        assert seen[0].url.path == "/v1/projects/stepquest-test/messages:send"
        assert seen[0].headers["Authorization"] == "Bearer access-token"
        assert json.loads(seen[0].content)["message"]["token"] == "tok-1"

    @pytest.mark.asyncio
    async def test_unregistered_token_raises_invalid(self) -> None:
        gateway = _gateway(lambda request: _fcm_error(404, "Requested entity was not found.", "UNREGISTERED"))
        with pytest.raises(InvalidTokenError):
            await gateway.send(PushMessage.build("stale", CONTENT))

    @pytest.mark.asyncio
    async def test_server_error_raises_transient(self) -> None:
        gateway = _gateway(lambda request: _fcm_error(503, "The service is currently unavailable.", "UNAVAILABLE"))
        with pytest.raises(TransientDeliveryError):
            await gateway.send(PushMessage.build("tok", CONTENT))

    @pytest.mark.asyncio
    async def test_network_error_raises_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = _gateway(handler)
        with pytest.raises(TransientDeliveryError) as exc_info:
            await gateway.send(PushMessage.build("tok", CONTENT))
        assert exc_info.value.code == "NETWORK"


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_outcomes_never_raise(self, gateway) -> None:
        gateway.invalid_tokens.add("bad")
        gateway.flaky_tokens.add("flaky")
        dispatcher = NotificationDispatcher(gateway)

        assert await dispatcher.dispatch("u1", "good", CONTENT) is DeliveryOutcome.SENT
        assert await dispatcher.dispatch("u2", "bad", CONTENT) is DeliveryOutcome.INVALID_TOKEN
        assert await dispatcher.dispatch("u3", "flaky", CONTENT) is DeliveryOutcome.FAILED

    @pytest.mark.asyncio
    async def test_round_prunes_only_rejected_tokens(self, gateway) -> None:
        gateway.invalid_tokens.add("bad")
        gateway.flaky_tokens.add("flaky")
        delivery = NotificationDispatcher(gateway).start_round()
        await delivery.send("u1", "good", CONTENT)
        await delivery.send("u2", "bad", CONTENT)
        await delivery.send("u3", "flaky", CONTENT)

        batch = WriteBatch()
        assert delivery.prune(batch) == 1
        assert (delivery.sent, delivery.failed) == (1, 1)
        assert apply_ops({"fcmToken": "bad"}, batch.ops_for("u2")) == {"fcmToken": None}
        # A token refreshed in the meantime is left alone
        assert apply_ops({"fcmToken": "fresh"}, batch.ops_for("u2")) == {"fcmToken": "fresh"}


@pytest.mark.asyncio
async def test_logging_gateway_records_messages(settings) -> None:
    gateway = create_gateway(settings)
    assert isinstance(gateway, LoggingPushGateway)
    await gateway.send(PushMessage.build("tok", CONTENT))
    assert len(gateway.sent) == 1


@pytest.mark.asyncio
async def test_logging_gateway_keeps_only_recent_messages() -> None:
    gateway = LoggingPushGateway(keep=3)
    receipts = [await gateway.send(PushMessage.build(f"tok-{i}", CONTENT)) for i in range(5)]
    assert [message.token for message in gateway.sent] == ["tok-2", "tok-3", "tok-4"]
    assert gateway.count == 5
    assert receipts[-1] == "log/5"


def test_fcm_mode_requires_project(settings):
    with pytest.raises(ValueError):
        create_gateway(settings.model_copy(update={"push_mode": "fcm"}))


def test_unknown_push_mode(settings):
    with pytest.raises(ValueError):
        create_gateway(settings.model_copy(update={"push_mode": "carrier-pigeon"}))
