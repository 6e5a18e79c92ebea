from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from syndicpro.api.deps import get_db, get_store
from syndicpro.core.audit import log_audit
from syndicpro.core.auth import User, get_current_profile, require_modify
from syndicpro.core.exceptions import EntityNotFoundError
from syndicpro.schemas.apartment import ApartmentCreate, ApartmentOut, ApartmentUpdate
from syndicpro.services.store import DataStore

router = APIRouter(prefix="/apartments", tags=["apartments"])


@router.get("", response_model=List[ApartmentOut])
def list_apartments(
    store: DataStore = Depends(get_store),
    current_user: User = Depends(get_current_profile),
    status: Optional[str] = Query(None, description="occupied|vacant"),
    search: Optional[str] = Query(None, description="search by number or resident name"),
):
    """
    Apartments ordered by floor, then number ("2" before "10").
    """
    return store.list_apartments(status=status, search=search)


@router.get("/{apartment_id}", response_model=ApartmentOut)
def get_apartment(
    apartment_id: int,
    store: DataStore = Depends(get_store),
    current_user: User = Depends(get_current_profile),
):
    try:
        return store.get_apartment(apartment_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Apartment not found")


@router.post("", response_model=ApartmentOut, status_code=201)
def create_apartment(
    payload: ApartmentCreate,
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_modify),
):
    apartment = store.create_apartment(payload.model_dump())
    log_audit(
        db,
        actor=current_user,
        action="created",
        entity_type="apartment",
        entity_id=str(apartment.id),
        status=apartment.status,
        description=f"Apartment created: {apartment.number}",
    )
    return apartment


@router.patch("/{apartment_id}", response_model=ApartmentOut)
def update_apartment(
    apartment_id: int,
    payload: ApartmentUpdate,
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_modify),
):
    data = payload.model_dump(exclude_unset=True)
    # Leaving "shared" drops the roommate list
    if payload.occupancy_type is not None and payload.occupancy_type != "shared":
        data["roommates"] = []
        data["roommate_count"] = 1

    try:
        apartment = store.update_apartment(apartment_id, data)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Apartment not found")

    log_audit(
        db,
        actor=current_user,
        action="updated",
        entity_type="apartment",
        entity_id=str(apartment.id),
        status=apartment.status,
        description=f"Apartment updated: {apartment.number}",
    )
    return apartment


@router.delete("/{apartment_id}", status_code=204)
def delete_apartment(
    apartment_id: int,
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_modify),
):
    """
    Delete an apartment. Its payments are removed best effort; any left
    behind are ignored by the dashboard and matrix views.
    """
    try:
        apartment = store.delete_apartment(apartment_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Apartment not found")

    log_audit(
        db,
        actor=current_user,
        action="deleted",
        entity_type="apartment",
        entity_id=str(apartment_id),
        status=apartment.status,
        description=f"Apartment deleted: {apartment.number}",
    )
    return None
