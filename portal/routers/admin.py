"""Admin API endpoints: user management and the audit log."""

from fastapi import APIRouter, Depends

from portal.dependencies import CurrentAccount, get_account_manager, require_admin
from portal.schemas.admin import AuditLogResponse, UserResponse
from portal.schemas.auth import OkResponse
from portal.services.accounts import AccountManager

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


@router.get("/users", response_model=list[UserResponse])
def list_users(
    admin: CurrentAccount = Depends(require_admin),
    manager: AccountManager = Depends(get_account_manager),
) -> list[UserResponse]:
    """List all accounts."""
    accounts = manager.list_accounts(admin.account_id)
    return [UserResponse.model_validate(a) for a in accounts]


@router.post("/users/{user_id}/toggle-admin", response_model=UserResponse)
def toggle_admin(
    user_id: int,
    admin: CurrentAccount = Depends(require_admin),
    manager: AccountManager = Depends(get_account_manager),
) -> UserResponse:
    """Promote a client to admin, or demote an admin to client."""
    account = manager.toggle_admin(admin.account_id, user_id)
    return UserResponse.model_validate(account)


@router.delete("/users/{user_id}", response_model=OkResponse)
def delete_user(
    user_id: int,
    admin: CurrentAccount = Depends(require_admin),
    manager: AccountManager = Depends(get_account_manager),
) -> OkResponse:
    """Delete an account."""
    manager.delete_account(admin.account_id, user_id)
    return OkResponse()


@router.get("/audit-logs", response_model=list[AuditLogResponse])
def list_audit_logs(
    admin: CurrentAccount = Depends(require_admin),
    manager: AccountManager = Depends(get_account_manager),
) -> list[AuditLogResponse]:
    """Latest 100 audit entries, newest first."""
    entries = manager.list_audit_entries(admin.account_id)
    return [AuditLogResponse.model_validate(e) for e in entries]
