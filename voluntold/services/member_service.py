import csv
import io
import logging
from dataclasses import dataclass, field

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.orm import Session

from voluntold.core.errors import Conflict, NotFound
from voluntold.models.tenants import Group, GroupMember, Role, Tenant, UserProfile
from voluntold.models.tokens import TokenPurpose
from voluntold.services import token_service
from voluntold.services.authorization import ActingContext, Action, authorize
from voluntold.services.email_service import EmailDeliveryError, EmailDispatcher
from voluntold.services.email_templates import renderer

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("email", "first_name", "last_name", "phone_number", "position", "address")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def get_tenant(db: Session, tenant_id: int) -> Tenant:
    tenant = db.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFound("Organization not found")
    return tenant


def get_member(db: Session, tenant_id: int, profile_id: int) -> UserProfile:
    profile = db.get(UserProfile, profile_id)
    if profile is None or profile.tenant_id != tenant_id:
        raise NotFound("Member not found")
    return profile


@dataclass
class ImportReport:
    processed: int = 0
    success: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def message(self) -> str:
        return (
            f"Added {self.success} member(s), skipped {self.skipped} existing,"
            f" {self.errors} error(s)"
        )


def parse_member_rows(
    csv_text: str | None = None, emails: str | None = None
) -> list[dict[str, str]]:
    """CSV rows (header optional) or a comma-separated email list, as dicts."""
    if emails:
        return [{"email": e.strip()} for e in emails.split(",") if e.strip()]

    rows: list[dict[str, str]] = []
    reader = csv.reader(io.StringIO((csv_text or "").strip()))
    for index, fields in enumerate(reader):
        values = [f.strip() for f in fields]
        if not any(values):
            continue
        # A first line without an address in the email column is a header.
        if index == 0 and "@" not in values[0]:
            continue
        rows.append(dict(zip(CSV_COLUMNS, values, strict=False)))
    return rows


def bulk_import(
    db: Session,
    actor: ActingContext,
    tenant_id: int,
    *,
    csv_text: str | None = None,
    emails: str | None = None,
) -> ImportReport:
    authorize(actor, Action.manage_members, tenant_id)
    get_tenant(db, tenant_id)

    rows = parse_member_rows(csv_text, emails)
    existing = {
        normalize_email(e)
        for e in db.scalars(
            select(UserProfile.email).where(UserProfile.tenant_id == tenant_id)
        )
    }

    report = ImportReport(processed=len(rows))
    for row in rows:
        email = normalize_email(row.get("email", ""))
        if not is_valid_email(email):
            report.errors += 1
            continue
        if email in existing:
            report.skipped += 1
            continue
        existing.add(email)
        db.add(
            UserProfile(
                email=email,
                tenant_id=tenant_id,
                first_name=row.get("first_name", ""),
                last_name=row.get("last_name", ""),
                phone_number=row.get("phone_number") or None,
                position=row.get("position") or None,
                address=row.get("address") or None,
                role=Role.member.value,
            )
        )
        report.success += 1

    db.commit()
    logger.info(
        "Bulk import for tenant %s: %d added, %d skipped, %d errors",
        tenant_id,
        report.success,
        report.skipped,
        report.errors,
    )
    return report


def list_roster(db: Session, actor: ActingContext, tenant_id: int) -> list[UserProfile]:
    authorize(actor, Action.manage_members, tenant_id)
    return list(
        db.scalars(
            select(UserProfile)
            .where(UserProfile.tenant_id == tenant_id)
            .order_by(UserProfile.last_name, UserProfile.first_name, UserProfile.id)
        )
    )


def get_group_member_emails(
    db: Session, group_ids: list[int], tenant_id: int
) -> list[str]:
    if not group_ids:
        return []
    return list(
        db.scalars(
            select(UserProfile.email)
            .join(GroupMember, GroupMember.profile_id == UserProfile.id)
            .join(Group, Group.id == GroupMember.group_id)
            .where(
                Group.id.in_(group_ids),
                Group.tenant_id == tenant_id,
                UserProfile.tenant_id == tenant_id,
            )
            .distinct()
            .order_by(UserProfile.email)
        )
    )


@dataclass
class Targeting:
    profiles: list[UserProfile] = field(default_factory=list)
    summary: str = "No Target Set"

    @property
    def emails(self) -> list[str]:
        return [p.email for p in self.profiles]


def resolve_targets(
    db: Session,
    tenant_id: int,
    target_all_members: bool,
    target_groups: list[int] | None,
    *,
    members_only: bool = True,
) -> Targeting:
    """Profiles reached by an all-members or group targeting, one per email."""
    stmt = select(UserProfile).where(UserProfile.tenant_id == tenant_id)
    if target_all_members:
        if members_only:
            stmt = stmt.where(UserProfile.role == Role.member.value)
        summary = "All Members"
    elif target_groups:
        emails = get_group_member_emails(db, target_groups, tenant_id)
        stmt = stmt.where(UserProfile.email.in_(emails))
        names = db.scalars(
            select(Group.name)
            .where(Group.id.in_(target_groups), Group.tenant_id == tenant_id)
            .order_by(Group.name)
        ).all()
        summary = f"Groups: {', '.join(names)}" if names else "Groups"
    else:
        return Targeting()

    seen: set[str] = set()
    profiles: list[UserProfile] = []
    for profile in db.scalars(stmt.order_by(UserProfile.email)):
        if profile.email in seen:
            continue
        seen.add(profile.email)
        profiles.append(profile)
    return Targeting(profiles=profiles, summary=summary)


@dataclass
class ElevationResult:
    profile: UserProfile
    email_sent: bool

    @property
    def message(self) -> str:
        if self.email_sent:
            return f"{self.profile.email} is now an administrator; a setup email was sent"
        return (
            f"{self.profile.email} is now an administrator, but the setup email"
            " could not be sent"
        )


def elevate_member(
    db: Session,
    dispatcher: EmailDispatcher,
    actor: ActingContext,
    tenant_id: int,
    profile_id: int,
    *,
    custom_message: str | None = None,
) -> ElevationResult:
    authorize(actor, Action.manage_admins, tenant_id)
    tenant = get_tenant(db, tenant_id)
    profile = get_member(db, tenant_id, profile_id)
    if profile.role != Role.member:
        raise Conflict("This member is already an administrator")

    profile.role = Role.tenant_admin.value
    db.commit()
    logger.info("Profile %s elevated to tenant_admin by %s", profile.id, actor.email)

    elevated_by = "Your organization administrator"
    if actor.profile_id is not None:
        admin = db.get(UserProfile, actor.profile_id)
        if admin is not None and admin.full_name:
            elevated_by = admin.full_name

    purpose = TokenPurpose.admin_password_setup
    issued = token_service.issue(
        db,
        purpose,
        profile.email,
        tenant_id=tenant_id,
        subject_name=profile.full_name or None,
        created_by=actor.profile_id,
    )
    message = renderer.render(
        "member_elevation",
        member_name=profile.first_name or profile.email,
        elevated_by=elevated_by,
        tenant_name=tenant.name,
        custom_message=(custom_message or "").strip(),
        link=issued.url,
        ttl_label=token_service.ttl_label(token_service.default_ttl(purpose)),
    )
    try:
        token_service.deliver(db, [issued], dispatcher, profile.email, message)
    except EmailDeliveryError:
        return ElevationResult(profile=profile, email_sent=False)
    token_service.expire_outstanding(
        db, token_service.PASSWORD_PURPOSES, profile.email, keep=issued.token
    )
    db.commit()
    return ElevationResult(profile=profile, email_sent=True)


def create_group(
    db: Session,
    actor: ActingContext,
    tenant_id: int,
    name: str,
    description: str | None = None,
) -> Group:
    authorize(actor, Action.manage_members, tenant_id)
    get_tenant(db, tenant_id)
    group = Group(tenant_id=tenant_id, name=name.strip(), description=description)
    db.add(group)
    db.commit()
    db.refresh(group)
    return group


def add_group_members(
    db: Session,
    actor: ActingContext,
    tenant_id: int,
    group_id: int,
    profile_ids: list[int],
) -> tuple[int, int]:
    """Returns (added, already_members)."""
    authorize(actor, Action.manage_members, tenant_id)
    group = db.get(Group, group_id)
    if group is None or group.tenant_id != tenant_id:
        raise NotFound("Group not found")

    current = set(
        db.scalars(select(GroupMember.profile_id).where(GroupMember.group_id == group_id))
    )
    added = already = 0
    for profile_id in dict.fromkeys(profile_ids):
        get_member(db, tenant_id, profile_id)
        if profile_id in current:
            already += 1
            continue
        db.add(GroupMember(group_id=group_id, profile_id=profile_id))
        current.add(profile_id)
        added += 1
    db.commit()
    return added, already
