"""Duo challenge invites: one push per created invite, no period gating."""

from __future__ import annotations

import structlog

from stepquest.errors import StoreError
from stepquest.notifications import messages
from stepquest.pipeline.context import PipelineContext, RunResult, RunStatus, load_user, prune_rejected_tokens
from stepquest.store import fields

logger = structlog.get_logger()

DRIVER = "duo_invite"

FALLBACK_INVITER = "Someone"


async def send_invite_notification(
    ctx: PipelineContext,
    invite_id: str,
    from_user_id: str,
    to_user_id: str,
) -> RunResult:
    log = logger.bind(driver=DRIVER, invite_id=invite_id, user_id=to_user_id)

    try:
        recipient = await ctx.store.get(to_user_id)
        inviter = await ctx.store.get(from_user_id)
    except StoreError as exc:
        log.error("invite_users_read_failed", error=str(exc))
        return RunResult(DRIVER, RunStatus.FAILED, invite_id, error=str(exc))

    token = recipient.data.get(fields.FCM_TOKEN) if recipient else None
    if not token:
        log.info("invite_recipient_not_notifiable")
        return RunResult(DRIVER, RunStatus.SKIPPED, invite_id)

    inviter_user = load_user(inviter) if inviter else None
    inviter_name = inviter_user.username if inviter_user and inviter_user.username else FALLBACK_INVITER

    delivery = ctx.dispatcher.start_round()
    await delivery.send(to_user_id, token, messages.duo_invite(inviter_name, invite_id))
    pruned = await prune_rejected_tokens(ctx.store, delivery, log)
    return RunResult(DRIVER, RunStatus.COMMITTED, invite_id, processed=1, notified=delivery.sent, pruned=pruned)
