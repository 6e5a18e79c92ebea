from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from syndicpro.api.deps import get_db, get_store
from syndicpro.core.audit import log_audit
from syndicpro.core.auth import User, get_current_profile, require_modify
from syndicpro.core.exceptions import EntityNotFoundError
from syndicpro.schemas.expense import ExpenseCreate, ExpenseOut
from syndicpro.services.store import DataStore

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("", response_model=List[ExpenseOut])
def list_expenses(
    store: DataStore = Depends(get_store),
    current_user: User = Depends(get_current_profile),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    search: Optional[str] = Query(None, description="search by description or category"),
):
    """Expenses, newest first."""
    return store.list_expenses(year=year, search=search)


@router.post("", response_model=ExpenseOut, status_code=201)
def create_expense(
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_modify),
):
    expense = store.create_expense(payload.model_dump())
    log_audit(
        db,
        actor=current_user,
        action="created",
        entity_type="expense",
        entity_id=str(expense.id),
        status=expense.category,
        description=f"Expense created: {expense.category} {expense.amount}",
    )
    return expense


@router.delete("/{expense_id}", status_code=204)
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_modify),
):
    try:
        expense = store.delete_expense(expense_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Expense not found")

    log_audit(
        db,
        actor=current_user,
        action="deleted",
        entity_type="expense",
        entity_id=str(expense_id),
        status=expense.category,
        description=f"Expense deleted: {expense.category} {expense.amount}",
    )
    return None
