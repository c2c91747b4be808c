"""Administrative views."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from realty.api.routes.auth import AuthenticatedUser, require_role
from realty.api.routes.transactions import get_lifecycle_manager
from realty.models import UserRole
from realty.schemas.transaction import TransactionRead
from realty.services.transactions import TransactionLifecycleManager

router = APIRouter(prefix="/admin")


@router.get("/transactions", response_model=list[TransactionRead], summary="All transactions")
def list_all_transactions(
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
    _: AuthenticatedUser = Depends(require_role(UserRole.ADMIN)),
) -> list[TransactionRead]:
    return [TransactionRead.from_model(item) for item in manager.list_all()]


__all__ = ["router"]
