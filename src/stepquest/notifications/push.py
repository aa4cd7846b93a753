"""Push delivery: the FCM gateway and the best-effort dispatcher on top of it.

Delivery is never transactional with the store. The dispatcher absorbs
every delivery failure, classifies rejected tokens as permanent so the
caller can clear them, and never retries inside one invocation.
"""

from __future__ import annotations

import asyncio
import enum
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import structlog

from stepquest.config import Settings
from stepquest.errors import DeliveryError, InvalidTokenError, TransientDeliveryError
from stepquest.notifications.messages import CLICK_ACTION, NotificationContent
from stepquest.store import fields
from stepquest.store.documents import WriteBatch

logger = structlog.get_logger()

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_ENDPOINT = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

# FCM v1 error codes meaning the token will never work again
PERMANENT_ERROR_CODES = {"UNREGISTERED"}


@dataclass(frozen=True)
class PushMessage:
    token: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def build(cls, token: str, content: NotificationContent) -> PushMessage:
        return cls(token=token, title=content.title, body=content.body, data=dict(content.data))


class PushGateway(Protocol):
    """Sends one message. Returns a receipt id or raises a ``DeliveryError``."""

    async def send(self, message: PushMessage) -> str: ...

    async def aclose(self) -> None: ...


def build_fcm_payload(message: PushMessage, channel_id: str) -> dict[str, Any]:
    """FCM v1 message body. Data values must all be strings."""
    data = {key: str(value) for key, value in message.data.items()}
    data.setdefault("click_action", CLICK_ACTION)
    return {
        "message": {
            "token": message.token,
            "notification": {"title": message.title, "body": message.body},
            "data": data,
            "android": {
                "priority": "high",
                "notification": {
                    "channel_id": channel_id,
                    "default_sound": True,
                    "default_vibrate_timings": True,
                    "click_action": CLICK_ACTION,
                },
            },
        }
    }


def classify_fcm_error(status_code: int, body: dict[str, Any]) -> DeliveryError:
    """Map an FCM v1 error response onto the delivery error taxonomy."""
    error = body.get("error") or {}
    message = error.get("message") or f"FCM error status={status_code}"
    codes = {
        detail.get("errorCode")
        for detail in error.get("details") or []
        if isinstance(detail, dict) and detail.get("errorCode")
    }
    status = error.get("status")

    if codes & PERMANENT_ERROR_CODES or status_code == 404:
        return InvalidTokenError(message, code="UNREGISTERED")
    if status_code == 400 and "registration token" in message.lower():
        return InvalidTokenError(message, code="INVALID_ARGUMENT")
    code = next(iter(codes), None) or status
    return TransientDeliveryError(message, code=code)


class FcmPushGateway:
    """Firebase Cloud Messaging HTTP v1 client."""

    def __init__(
        self,
        project_id: str,
        credentials: Any,
        client: httpx.AsyncClient,
        channel_id: str = "streak_notifications",
    ) -> None:
        self._url = FCM_ENDPOINT.format(project_id=project_id)
        self._credentials = credentials
        self._client = client
        self._channel_id = channel_id
        self._refresh_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> FcmPushGateway:
        from google.oauth2 import service_account

        if not settings.fcm_project_id or not settings.fcm_service_account_path:
            raise ValueError("FCM push requires fcm_project_id and fcm_service_account_path")

        credentials = service_account.Credentials.from_service_account_file(
            settings.fcm_service_account_path, scopes=[FCM_SCOPE]
        )
        client = httpx.AsyncClient(timeout=settings.fcm_timeout_seconds)
        return cls(settings.fcm_project_id, credentials, client, settings.android_channel_id)

    async def _access_token(self) -> str:
        async with self._refresh_lock:
            if not self._credentials.valid:
                from google.auth.transport.requests import Request

                # google-auth refreshes synchronously
                await asyncio.to_thread(self._credentials.refresh, Request())
            return self._credentials.token

    async def send(self, message: PushMessage) -> str:
        try:
            token = await self._access_token()
        except Exception as exc:
            raise TransientDeliveryError(f"FCM auth failed: {exc}", code="AUTH") from exc

        try:
            response = await self._client.post(
                self._url,
                headers={"Authorization": f"Bearer {token}"},
                json=build_fcm_payload(message, self._channel_id),
            )
        except httpx.HTTPError as exc:
            raise TransientDeliveryError(f"FCM request failed: {exc}", code="NETWORK") from exc

        if response.is_success:
            return str(response.json().get("name", ""))

        try:
            body = response.json()
        except ValueError:
            body = {}
        raise classify_fcm_error(response.status_code, body)

    async def aclose(self) -> None:
        await self._client.aclose()


class LoggingPushGateway:
    """Development gateway: logs messages instead of sending them.

    Keeps the last ``keep`` messages for inspection.
    """

    def __init__(self, keep: int = 100) -> None:
        self.sent: deque[PushMessage] = deque(maxlen=keep)
        self.count = 0

    async def send(self, message: PushMessage) -> str:
        self.sent.append(message)
        self.count += 1
        logger.info("push_logged", title=message.title, data=message.data)
        return f"log/{self.count}"

    async def aclose(self) -> None:
        return None


def create_gateway(settings: Settings) -> PushGateway:
    if settings.push_mode == "log":
        return LoggingPushGateway()
    if settings.push_mode == "fcm":
        return FcmPushGateway.from_settings(settings)
    raise ValueError(f"Unknown push_mode: {settings.push_mode}")


class DeliveryOutcome(str, enum.Enum):
    SENT = "sent"
    INVALID_TOKEN = "invalid_token"
    FAILED = "failed"


class NotificationDispatcher:
    """Formats and sends one notification to a user's current token."""

    def __init__(self, gateway: PushGateway) -> None:
        self._gateway = gateway

    async def dispatch(self, user_id: str, token: str, content: NotificationContent) -> DeliveryOutcome:
        try:
            receipt = await self._gateway.send(PushMessage.build(token, content))
        except InvalidTokenError as exc:
            logger.info("push_token_invalid", user_id=user_id, code=exc.code)
            return DeliveryOutcome.INVALID_TOKEN
        except DeliveryError as exc:
            logger.warning("push_failed", user_id=user_id, code=exc.code, error=str(exc))
            return DeliveryOutcome.FAILED
        except Exception:
            logger.exception("push_failed_unexpectedly", user_id=user_id)
            return DeliveryOutcome.FAILED

        logger.info("push_sent", user_id=user_id, type=content.data.get("type"), receipt=receipt)
        return DeliveryOutcome.SENT

    def start_round(self) -> DispatchRound:
        return DispatchRound(self)

    async def aclose(self) -> None:
        await self._gateway.aclose()


@dataclass
class DispatchRound:
    """Delivery bookkeeping for one driver invocation."""

    dispatcher: NotificationDispatcher
    sent: int = 0
    failed: int = 0
    rejected: dict[str, str] = field(default_factory=dict)

    async def send(self, user_id: str, token: str, content: NotificationContent) -> DeliveryOutcome:
        outcome = await self.dispatcher.dispatch(user_id, token, content)
        if outcome is DeliveryOutcome.SENT:
            self.sent += 1
        elif outcome is DeliveryOutcome.INVALID_TOKEN:
            self.rejected[user_id] = token
        else:
            self.failed += 1
        return outcome

    def prune(self, batch: WriteBatch) -> int:
        """Queue a token clear for every rejected token still on its user."""
        for user_id, token in self.rejected.items():
            batch.clear_if_equal(user_id, fields.FCM_TOKEN, token)
        return len(self.rejected)
