from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from voluntold.api.deps import get_actor
from voluntold.core.database import get_db
from voluntold.schemas.members import (
    BulkImportIn,
    BulkImportOut,
    ElevateIn,
    ElevateOut,
    GroupCreate,
    GroupMembersIn,
    GroupMembersOut,
    GroupOut,
    MemberOut,
)
from voluntold.schemas.tenants import TenantCreate, TenantCreatedOut, TenantOut
from voluntold.services import member_service, tenant_service
from voluntold.services.authorization import ActingContext, Action, authorize
from voluntold.services.email_service import EmailDispatcher, get_email_dispatcher

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.post("", response_model=TenantCreatedOut, status_code=status.HTTP_201_CREATED)
def create_tenant(
    payload: TenantCreate,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    actor: ActingContext = Depends(get_actor),
):
    tenant, email_sent = tenant_service.create_tenant(db, dispatcher, actor, payload)
    out = TenantCreatedOut.model_validate(tenant)
    out.admin_email_sent = email_sent
    return out


@router.get("", response_model=list[TenantOut])
def list_tenants(
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    authorize(actor, Action.manage_tenants, None)
    return tenant_service.list_tenants(db)


@router.post("/{tenant_id}/members/bulk", response_model=BulkImportOut)
def bulk_import_members(
    tenant_id: int,
    payload: BulkImportIn,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    report = member_service.bulk_import(
        db, actor, tenant_id, csv_text=payload.csv_text, emails=payload.emails
    )
    return BulkImportOut(
        processed=report.processed,
        success=report.success,
        skipped=report.skipped,
        errors=report.errors,
        message=report.message,
    )


@router.get("/{tenant_id}/members", response_model=list[MemberOut])
def list_members(
    tenant_id: int,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    return member_service.list_roster(db, actor, tenant_id)


@router.post("/{tenant_id}/members/{profile_id}/elevate", response_model=ElevateOut)
def elevate_member(
    tenant_id: int,
    profile_id: int,
    payload: ElevateIn,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    actor: ActingContext = Depends(get_actor),
):
    result = member_service.elevate_member(
        db,
        dispatcher,
        actor,
        tenant_id,
        profile_id,
        custom_message=payload.custom_message,
    )
    return ElevateOut(
        email_sent=result.email_sent,
        message=result.message,
        member=MemberOut.model_validate(result.profile),
    )


@router.post(
    "/{tenant_id}/groups", response_model=GroupOut, status_code=status.HTTP_201_CREATED
)
def create_group(
    tenant_id: int,
    payload: GroupCreate,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    return member_service.create_group(
        db, actor, tenant_id, payload.name, payload.description
    )


@router.post("/{tenant_id}/groups/{group_id}/members", response_model=GroupMembersOut)
def add_group_members(
    tenant_id: int,
    group_id: int,
    payload: GroupMembersIn,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    added, already = member_service.add_group_members(
        db, actor, tenant_id, group_id, payload.profile_ids
    )
    return GroupMembersOut(added=added, already_members=already)
