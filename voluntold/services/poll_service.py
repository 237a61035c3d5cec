"""Polls: creation, emailed vote links, voting, closing and results.

Vote links are not single use. A member may follow their link again to
change the answer until the poll closes or expires.
"""

import logging
from datetime import datetime
from urllib.parse import quote

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from voluntold.core.errors import (
    Forbidden,
    Gone,
    NotFound,
    RejectionReason,
    TokenRejected,
    ValidationFailed,
)
from voluntold.models.polls import Poll, PollResponse
from voluntold.models.projects import EmailBroadcast
from voluntold.models.tokens import TokenPurpose
from voluntold.schemas.polls import (
    PollCreate,
    PollOut,
    PollResponseOut,
    PollResultsOut,
    PollSendOut,
    VoteOut,
    VoteTokenOut,
)
from voluntold.services import token_service
from voluntold.services.authorization import (
    PORTAL_SCOPE,
    ActingContext,
    Action,
    authorize,
)
from voluntold.services.email_service import EmailDeliveryError, EmailDispatcher
from voluntold.services.email_templates import renderer
from voluntold.services.email_throttle import SendThrottle
from voluntold.services.member_service import get_tenant, resolve_targets

logger = logging.getLogger(__name__)

ACTIVE = "active"
CLOSED = "closed"


def get_poll(db: Session, tenant_id: int | None, poll_id: int | None) -> Poll:
    poll = db.get(Poll, poll_id) if poll_id is not None else None
    if poll is None or poll.tenant_id != tenant_id:
        raise NotFound("Poll not found")
    return poll


def create_poll(
    db: Session, actor: ActingContext, tenant_id: int, payload: PollCreate
) -> tuple[Poll, int]:
    """Create the poll and one empty response row per targeted member."""
    authorize(actor, Action.manage_polls, tenant_id)
    get_tenant(db, tenant_id)
    if payload.expires_at is not None and (
        token_service.as_utc(payload.expires_at) <= token_service.utcnow()
    ):
        raise ValidationFailed("Poll expiry must be in the future")

    targeting = resolve_targets(
        db,
        tenant_id,
        payload.target_all_members,
        payload.target_groups,
        members_only=False,
    )
    if not targeting.profiles:
        raise ValidationFailed("This poll does not reach any members")

    poll = Poll(
        tenant_id=tenant_id,
        title=payload.title.strip(),
        question=payload.question.strip(),
        poll_type=payload.poll_type,
        options=payload.options,
        is_anonymous=payload.is_anonymous,
        target_all_members=payload.target_all_members,
        target_groups=payload.target_groups,
        expires_at=payload.expires_at,
        created_by=actor.profile_id,
    )
    db.add(poll)
    db.flush()
    for profile in targeting.profiles:
        db.add(
            PollResponse(
                poll_id=poll.id,
                member_email=profile.email,
                member_name=profile.full_name,
            )
        )
    db.commit()
    db.refresh(poll)
    logger.info("Poll %s created for %d member(s)", poll.id, len(targeting.profiles))
    return poll, len(targeting.profiles)


def ensure_open(db: Session, poll: Poll, now: datetime | None = None) -> None:
    if poll.status != ACTIVE:
        raise Gone(
            "This poll has been closed and is no longer accepting responses",
            code="POLL_CLOSED",
        )
    now = now or token_service.utcnow()
    if poll.expires_at is not None and token_service.as_utc(poll.expires_at) < now:
        poll.status = CLOSED
        db.commit()
        raise Gone(
            "This poll has expired and is no longer accepting responses",
            code="POLL_EXPIRED",
        )


def _normalize_choice(poll: Poll, value: str) -> str:
    choice = value.strip()
    if poll.poll_type == "yes_no":
        choice = choice.lower()
    if choice not in poll.allowed_responses:
        raise ValidationFailed(
            f"Invalid response. Expected one of: {', '.join(poll.allowed_responses)}"
        )
    return choice


def record_vote(
    db: Session, row: PollResponse, value: str, *, now: datetime | None = None
) -> VoteOut:
    now = now or token_service.utcnow()
    poll = row.poll
    ensure_open(db, poll, now)
    choice = _normalize_choice(poll, value)

    if row.response == choice:
        return VoteOut(
            outcome="unchanged",
            response=choice,
            message=f"Your response '{choice}' has already been recorded.",
        )

    first = db.execute(
        update(PollResponse)
        .where(PollResponse.id == row.id, PollResponse.response.is_(None))
        .values(response=choice, responded_at=now)
        .execution_options(synchronize_session=False)
    )
    if first.rowcount == 1:
        db.execute(
            update(Poll)
            .where(Poll.id == poll.id)
            .values(total_responses=Poll.total_responses + 1)
            .execution_options(synchronize_session=False)
        )
        outcome, message = "recorded", f"Thank you! Your response '{choice}' has been recorded."
    else:
        row.response = choice
        row.updated_at = now
        outcome, message = "changed", f"Your response has been updated to '{choice}'."

    db.commit()
    db.expire(row)
    db.expire(poll, ["total_responses"])
    return VoteOut(outcome=outcome, response=choice, message=message)


def _close_if_poll_expired(db: Session, raw_token: str, now: datetime | None) -> None:
    # Vote tokens never outlive their poll, so poll expiry surfaces as token expiry.
    token = token_service.lookup(db, raw_token)
    poll = db.get(Poll, token.context_ref) if token and token.context_ref else None
    if poll is not None and poll.tenant_id == token.tenant_id:
        ensure_open(db, poll, now)


def _response_for_token(db: Session, raw_token: str, now: datetime | None) -> PollResponse:
    try:
        token = token_service.validate(db, raw_token, TokenPurpose.poll_response, now=now)
    except TokenRejected as exc:
        if exc.reason == RejectionReason.EXPIRED:
            _close_if_poll_expired(db, raw_token, now)
        raise
    row = db.scalars(
        select(PollResponse).where(
            PollResponse.poll_id == token.context_ref,
            PollResponse.member_email == token.subject_email,
        )
    ).first()
    if row is None or row.poll.tenant_id != token.tenant_id:
        raise NotFound("Poll response not found")
    return row


def describe_vote(
    db: Session, raw_token: str, *, now: datetime | None = None
) -> VoteTokenOut:
    row = _response_for_token(db, raw_token, now)
    return VoteTokenOut(
        poll=PollOut.model_validate(row.poll),
        member_name=row.member_name,
        current_response=row.response,
    )


def vote(
    db: Session, raw_token: str, value: str, *, now: datetime | None = None
) -> VoteOut:
    row = _response_for_token(db, raw_token, now)
    return record_vote(db, row, value, now=now)


def vote_as_member(
    db: Session,
    actor: ActingContext,
    poll_id: int,
    value: str,
    *,
    now: datetime | None = None,
) -> VoteOut:
    if actor.scope != PORTAL_SCOPE:
        raise Forbidden("Member portal session required")
    poll = get_poll(db, actor.tenant_id, poll_id)
    row = db.scalars(
        select(PollResponse).where(
            PollResponse.poll_id == poll.id, PollResponse.member_email == actor.email
        )
    ).first()
    if row is None:
        raise Forbidden("You are not a participant in this poll")
    return record_vote(db, row, value, now=now)


def close_poll(db: Session, actor: ActingContext, tenant_id: int, poll_id: int) -> Poll:
    authorize(actor, Action.manage_polls, tenant_id)
    poll = get_poll(db, tenant_id, poll_id)
    if poll.status != CLOSED:
        poll.status = CLOSED
        db.commit()
        logger.info("Poll %s closed by %s", poll.id, actor.email)
    return poll


def poll_results(
    db: Session, actor: ActingContext, tenant_id: int, poll_id: int
) -> PollResultsOut:
    authorize(actor, Action.manage_polls, tenant_id)
    poll = get_poll(db, tenant_id, poll_id)
    rows = db.scalars(
        select(PollResponse)
        .where(PollResponse.poll_id == poll.id)
        .order_by(PollResponse.responded_at, PollResponse.id)
    ).all()

    counts = {option: 0 for option in poll.allowed_responses}
    responses = []
    not_responded = 0
    for row in rows:
        if row.response is None:
            not_responded += 1
            continue
        counts[row.response] = counts.get(row.response, 0) + 1
        responses.append(
            PollResponseOut(
                member_email=None if poll.is_anonymous else row.member_email,
                member_name=None if poll.is_anonymous else row.member_name,
                response=row.response,
                responded_at=row.responded_at,
            )
        )
    return PollResultsOut(
        poll=PollOut.model_validate(poll),
        counts=counts,
        not_responded=not_responded,
        responses=responses,
    )


def _choice_label(poll: Poll, option: str) -> str:
    return option.capitalize() if poll.poll_type == "yes_no" else option


def send_poll_emails(
    db: Session,
    dispatcher: EmailDispatcher,
    throttle: SendThrottle,
    actor: ActingContext,
    tenant_id: int,
    poll_id: int,
    *,
    now: datetime | None = None,
) -> PollSendOut:
    authorize(actor, Action.send_broadcasts, tenant_id)
    now = now or token_service.utcnow()
    tenant = get_tenant(db, tenant_id)
    poll = get_poll(db, tenant_id, poll_id)
    ensure_open(db, poll, now)

    rows = db.scalars(
        select(PollResponse)
        .where(PollResponse.poll_id == poll.id)
        .order_by(PollResponse.id)
    ).all()
    if not rows:
        raise NotFound("No target members found for this poll")

    targeting_info = resolve_targets(
        db, tenant_id, poll.target_all_members, poll.target_groups, members_only=False
    ).summary
    purpose = TokenPurpose.poll_response
    ttl = token_service.default_ttl(purpose)
    if poll.expires_at is not None:
        ttl = min(ttl, token_service.as_utc(poll.expires_at) - now)
    expires_label = (
        token_service.as_utc(poll.expires_at).strftime("%B %d, %Y %H:%M UTC")
        if poll.expires_at is not None
        else None
    )

    sent = 0
    failed_emails: list[str] = []
    for row in rows:
        throttle.wait()
        issued = token_service.issue(
            db,
            purpose,
            row.member_email,
            tenant_id=tenant_id,
            context_ref=poll.id,
            ttl=ttl,
            subject_name=row.member_name or None,
            created_by=actor.profile_id,
            now=now,
        )
        message = renderer.render(
            "poll_invitation",
            poll_title=poll.title,
            tenant_name=tenant.name,
            question=poll.question,
            first_name=row.member_name.split(" ")[0] if row.member_name else "",
            choices=[
                {
                    "label": _choice_label(poll, option),
                    "link": f"{issued.url}?response={quote(option)}",
                }
                for option in poll.allowed_responses
            ],
            expires_at=expires_label,
            targeting_info=targeting_info,
        )
        try:
            token_service.deliver(db, [issued], dispatcher, row.member_email, message)
        except EmailDeliveryError:
            failed_emails.append(row.member_email)
            continue
        row.token_id = issued.token.id
        db.commit()
        sent += 1

    poll.last_emailed_at = now
    db.add(
        EmailBroadcast(
            tenant_id=tenant_id,
            broadcast_type="poll",
            recipient_count=len(rows),
            successful=sent,
            failed=len(failed_emails),
            sent_by=actor.profile_id,
            poll_id=poll.id,
            targeting_summary=targeting_info,
        )
    )
    db.commit()
    logger.info(
        "Poll %s emailed: %d sent, %d failed", poll.id, sent, len(failed_emails)
    )
    return PollSendOut(
        message=f"Poll sent to {sent} member(s)",
        sent=sent,
        failed=len(failed_emails),
        failed_emails=failed_emails,
        targeting_info=targeting_info,
    )
