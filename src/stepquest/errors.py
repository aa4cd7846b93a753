"""Exception hierarchy shared by the store, the push gateway and the drivers."""

from __future__ import annotations


class StepQuestError(Exception):
    """Base class for all service errors."""


class StoreError(StepQuestError):
    """The document store is unavailable or rejected a batch.

    A rejected batch has no visible effect; the next scheduled run retries
    from the unmodified state.
    """


class HistoryConflictError(StoreError):
    """A leaderboard history record already exists for the period."""

    def __init__(self, kind: str, period_key: str) -> None:
        super().__init__(f"History for {kind} period {period_key} already recorded")
        self.kind = kind
        self.period_key = period_key


class DeliveryError(StepQuestError):
    """A push notification could not be delivered."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class InvalidTokenError(DeliveryError):
    """The delivery token is invalid or no longer registered. Permanent."""


class TransientDeliveryError(DeliveryError):
    """Any other delivery failure: network, quota, gateway outage."""
