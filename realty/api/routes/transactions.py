"""Transaction lifecycle routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from realty.api.deps import get_db_session, get_payment_gateway
from realty.api.routes.auth import AuthenticatedUser, get_current_user
from realty.schemas.transaction import (
    TransactionComplete,
    TransactionCreate,
    TransactionOpened,
    TransactionRead,
    TransactionTransition,
)
from realty.services.payments import PaymentGateway
from realty.services.transactions import TransactionLifecycleManager, TransitionResult

router = APIRouter(prefix="/transactions")


def get_lifecycle_manager(
    session: Session = Depends(get_db_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> TransactionLifecycleManager:
    return TransactionLifecycleManager(session, gateway=gateway)


def _transition_response(result: TransitionResult) -> TransactionTransition:
    return TransactionTransition(
        transaction=TransactionRead.from_model(result.transaction),
        warnings=result.warnings,
    )


@router.post("", response_model=TransactionOpened, status_code=status.HTTP_201_CREATED)
def open_transaction(
    payload: TransactionCreate,
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
    user: AuthenticatedUser = Depends(get_current_user),
) -> TransactionOpened:
    opened = manager.open(
        property_id=payload.property_id,
        transaction_type=payload.type,
        amount=payload.amount,
        buyer_id=user.id,
        contract_details=(
            payload.contract_details.model_dump(mode="json") if payload.contract_details else None
        ),
    )
    return TransactionOpened(
        transaction=TransactionRead.from_model(opened.transaction),
        client_secret=opened.client_secret,
    )


@router.put("/{transaction_id}/complete", response_model=TransactionTransition)
def complete_transaction(
    transaction_id: str,
    payload: TransactionComplete,
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
    user: AuthenticatedUser = Depends(get_current_user),
) -> TransactionTransition:
    result = manager.complete(
        transaction_id,
        payment_method=payload.payment_method,
        actor_id=user.id,
        actor_role=user.role,
    )
    return _transition_response(result)


@router.put("/{transaction_id}/cancel", response_model=TransactionTransition)
def cancel_transaction(
    transaction_id: str,
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
    user: AuthenticatedUser = Depends(get_current_user),
) -> TransactionTransition:
    result = manager.cancel(transaction_id, actor_id=user.id, actor_role=user.role)
    return _transition_response(result)


@router.get("", response_model=list[TransactionRead])
def list_transactions(
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
    user: AuthenticatedUser = Depends(get_current_user),
) -> list[TransactionRead]:
    return [TransactionRead.from_model(item) for item in manager.list_for_user(user.id)]


@router.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(
    transaction_id: str,
    manager: TransactionLifecycleManager = Depends(get_lifecycle_manager),
    user: AuthenticatedUser = Depends(get_current_user),
) -> TransactionRead:
    transaction = manager.get(transaction_id, actor_id=user.id, actor_role=user.role)
    return TransactionRead.from_model(transaction)


__all__ = ["get_lifecycle_manager", "router"]
