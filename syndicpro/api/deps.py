from fastapi import Depends, Request
from sqlalchemy.orm import Session

from syndicpro.core.database import SessionLocal
from syndicpro.services.store import DataStore


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_change_feed(request: Request):
    return request.app.state.change_feed


def get_reconciler(request: Request):
    return request.app.state.reconciler


def get_store(request: Request, db: Session = Depends(get_db)) -> DataStore:
    return DataStore(db, feed=request.app.state.change_feed)
