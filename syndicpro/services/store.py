"""
Data store operations over the SQLAlchemy session.

Every committed write to apartments, payments or expenses is published on the
change feed so live sessions can patch their local copies. SQLAlchemy errors
are wrapped into StoreReadError / StoreWriteError; a failed write rolls the
session back before raising.
"""
import logging
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from syndicpro.core.config import settings
from syndicpro.core.exceptions import EntityNotFoundError, StoreReadError, StoreWriteError
from syndicpro.core.permissions import Role
from syndicpro.models.apartment import Apartment
from syndicpro.models.app_setting import AppSetting, APP_SETTINGS_ID
from syndicpro.models.expense import Expense
from syndicpro.models.payment import Payment
from syndicpro.models.profile import Profile
from syndicpro.realtime.feed import ApartmentChange, ChangeFeed, ChangeType, ExpenseChange, PaymentChange
from syndicpro.schemas.app_setting import AppSettingsOut, AppSettingsSaveOut, AppSettingsUpdate, FeeCascadeOut
from syndicpro.services.optimistic import UNPAID, toggle_fields
from syndicpro.services.ordering import apartment_sort_key

logger = logging.getLogger(__name__)

PAYMENT_UNIQUE_COLUMNS = ["apartment_id", "month", "year"]

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def row_to_dict(row) -> dict:
    return {c.name: getattr(row, c.name) for c in row.__table__.columns}


def default_app_settings() -> AppSettingsOut:
    return AppSettingsOut(
        id=APP_SETTINGS_ID,
        building_name=settings.DEFAULT_BUILDING_NAME,
        building_address="",
        default_monthly_fee=settings.DEFAULT_MONTHLY_FEE,
        currency=settings.DEFAULT_CURRENCY,
    )


class DataStore:
    def __init__(self, db: Session, feed: Optional[ChangeFeed] = None):
        self.db = db
        self.feed = feed

    # --- plumbing -------------------------------------------------------------

    @contextmanager
    def _reading(self, what: str):
        try:
            yield
        except SQLAlchemyError as e:
            logger.exception("Failed to load %s", what)
            raise StoreReadError(f"Failed to load {what}") from e

    @contextmanager
    def _writing(self, what: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to write %s", what)
            raise StoreWriteError(f"Failed to write {what}") from e

    def _publish(self, change) -> None:
        if self.feed is not None:
            self.feed.publish(change)

    # --- apartments -----------------------------------------------------------

    def list_apartments(self, status: Optional[str] = None, search: Optional[str] = None) -> List[Apartment]:
        with self._reading("apartments"):
            q = self.db.query(Apartment)
            if status:
                q = q.filter(Apartment.status == status)
            if search:
                like = f"%{search.strip()}%"
                q = q.filter(Apartment.number.ilike(like) | Apartment.resident_name.ilike(like))
            rows = q.order_by(Apartment.floor, Apartment.number).all()
        # SQL orders "10" before "2"; re-sort on the natural number
        return sorted(rows, key=apartment_sort_key)

    def get_apartment(self, apartment_id: int) -> Apartment:
        with self._reading("apartment"):
            apartment = self.db.query(Apartment).filter(Apartment.id == apartment_id).first()
        if apartment is None:
            raise EntityNotFoundError(f"Apartment {apartment_id} not found")
        return apartment

    def create_apartment(self, data: dict) -> Apartment:
        with self._writing("apartment"):
            apartment = Apartment(**data)
            self.db.add(apartment)
            self.db.commit()
            self.db.refresh(apartment)
        logger.info("Apartment %s created (%s)", apartment.id, apartment.number)
        self._publish(ApartmentChange(ChangeType.INSERT, new=row_to_dict(apartment)))
        return apartment

    def update_apartment(self, apartment_id: int, data: dict) -> Apartment:
        apartment = self.get_apartment(apartment_id)
        old = row_to_dict(apartment)
        with self._writing("apartment"):
            for k, v in data.items():
                setattr(apartment, k, v)
            self.db.commit()
            self.db.refresh(apartment)
        logger.info("Apartment %s updated", apartment.id)
        self._publish(ApartmentChange(ChangeType.UPDATE, new=row_to_dict(apartment), old=old))
        return apartment

    def delete_apartment(self, apartment_id: int) -> Apartment:
        """Delete the apartment and, best effort, its payments."""
        apartment = self.get_apartment(apartment_id)
        old = row_to_dict(apartment)
        with self._writing("apartment"):
            self.db.delete(apartment)
            self.db.commit()
        self._publish(ApartmentChange(ChangeType.DELETE, old=old))
        logger.info("Apartment %s deleted", apartment_id)

        try:
            orphans = self.list_payments(apartment_id=apartment_id)
            removed = [row_to_dict(p) for p in orphans]
            with self._writing("payments"):
                for payment in orphans:
                    self.db.delete(payment)
                self.db.commit()
        except (StoreReadError, StoreWriteError):
            # Consumers filter orphaned payments, the apartment delete stands
            logger.warning("Payments of deleted apartment %s were left behind", apartment_id)
        else:
            for old_payment in removed:
                self._publish(PaymentChange(ChangeType.DELETE, old=old_payment))
        return apartment

    # --- payments -------------------------------------------------------------

    def list_payments(self, year: Optional[int] = None, apartment_id: Optional[int] = None) -> List[Payment]:
        with self._reading("payments"):
            q = self.db.query(Payment)
            if year is not None:
                q = q.filter(Payment.year == int(year))
            if apartment_id is not None:
                q = q.filter(Payment.apartment_id == apartment_id)
            return q.order_by(Payment.apartment_id, Payment.year, Payment.month).all()

    def get_payment(self, payment_id: int) -> Payment:
        with self._reading("payment"):
            payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
        if payment is None:
            raise EntityNotFoundError(f"Payment {payment_id} not found")
        return payment

    def insert_payment_seeds(self, seeds: Iterable) -> int:
        """
        Insert seed rows, silently skipping any (apartment_id, month, year) that
        already exists. Returns how many rows were actually inserted.
        """
        rows = [s.as_row() for s in seeds]
        if not rows:
            return 0

        dialect = self.db.get_bind().dialect.name
        insert = _INSERT_BY_DIALECT.get(dialect)
        if insert is None:
            raise StoreWriteError(f"Conflict-ignoring insert is not supported on {dialect}")

        stmt = (
            insert(Payment)
            .values(rows)
            .on_conflict_do_nothing(index_elements=PAYMENT_UNIQUE_COLUMNS)
            .returning(*Payment.__table__.columns)
        )
        with self._writing("payment seeds"):
            inserted = [dict(r) for r in self.db.execute(stmt).mappings().all()]
            self.db.commit()

        if len(inserted) < len(rows):
            logger.debug("%s payment seeds already existed", len(rows) - len(inserted))
        for row in inserted:
            self._publish(PaymentChange(ChangeType.INSERT, new=row))
        return len(inserted)

    def update_payment(self, payment_id: int, values: dict) -> Payment:
        payment = self.get_payment(payment_id)
        old = row_to_dict(payment)
        with self._writing("payment"):
            for k, v in values.items():
                setattr(payment, k, v)
            self.db.commit()
            self.db.refresh(payment)
        self._publish(PaymentChange(ChangeType.UPDATE, new=row_to_dict(payment), old=old))
        return payment

    def toggle_payment(self, payment_id: int) -> Payment:
        """Flip PAID/UNPAID based on the stored status."""
        payment = self.get_payment(payment_id)
        payment = self.update_payment(payment_id, toggle_fields(payment.status))
        logger.info("Payment %s is now %s", payment.id, payment.status)
        return payment

    # --- expenses -------------------------------------------------------------

    def list_expenses(self, year: Optional[int] = None, search: Optional[str] = None) -> List[Expense]:
        with self._reading("expenses"):
            q = self.db.query(Expense)
            if year is not None:
                q = q.filter(Expense.date >= date(int(year), 1, 1), Expense.date <= date(int(year), 12, 31))
            if search:
                like = f"%{search.strip()}%"
                q = q.filter(Expense.description.ilike(like) | Expense.category.ilike(like))
            return q.order_by(Expense.date.desc(), Expense.id.desc()).all()

    def create_expense(self, data: dict) -> Expense:
        data = dict(data)
        if not data.get("title"):
            data["title"] = data.get("description")
        with self._writing("expense"):
            expense = Expense(**data)
            self.db.add(expense)
            self.db.commit()
            self.db.refresh(expense)
        logger.info("Expense %s created (%s %s)", expense.id, expense.category, expense.amount)
        self._publish(ExpenseChange(ChangeType.INSERT, new=row_to_dict(expense)))
        return expense

    def delete_expense(self, expense_id: int) -> Expense:
        with self._reading("expense"):
            expense = self.db.query(Expense).filter(Expense.id == expense_id).first()
        if expense is None:
            raise EntityNotFoundError(f"Expense {expense_id} not found")
        old = row_to_dict(expense)
        with self._writing("expense"):
            self.db.delete(expense)
            self.db.commit()
        self._publish(ExpenseChange(ChangeType.DELETE, old=old))
        return expense

    # --- settings -------------------------------------------------------------

    def _settings_row(self) -> Optional[AppSetting]:
        with self._reading("settings"):
            return self.db.query(AppSetting).filter(AppSetting.id == APP_SETTINGS_ID).first()

    def get_app_settings(self) -> AppSettingsOut:
        """The "app" row, or the configured defaults while it does not exist."""
        row = self._settings_row()
        if row is None:
            return default_app_settings()
        return AppSettingsOut.model_validate(row)

    def save_app_settings(
        self,
        payload: AppSettingsUpdate,
        updated_by: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> AppSettingsSaveOut:
        """
        Upsert the settings row. When the default fee changes, rewrite apartment
        fees and payment amounts according to `scope`. A failing cascade step is
        reported in the result; the saved settings are kept.
        """
        row = self._settings_row()
        previous_fee = row.default_monthly_fee if row is not None else None

        with self._writing("settings"):
            if row is None:
                row = AppSetting(id=APP_SETTINGS_ID)
                self.db.add(row)
            for k, v in payload.model_dump().items():
                setattr(row, k, v)
            row.updated_by = updated_by
            self.db.commit()
            self.db.refresh(row)
        logger.info("Building settings saved by %s", updated_by)

        cascade = None
        if previous_fee is None or Decimal(previous_fee) != payload.default_monthly_fee:
            cascade = self.cascade_default_fee(payload.default_monthly_fee, scope or settings.FEE_CASCADE_SCOPE)
        return AppSettingsSaveOut(settings=AppSettingsOut.model_validate(row), cascade=cascade)

    def cascade_default_fee(self, fee: Decimal, scope: str) -> FeeCascadeOut:
        """
        scope "all":    every apartment fee and every payment amount, all years
        scope "unpaid": every apartment fee and UNPAID payment amounts only
        scope "none":   nothing
        """
        result = FeeCascadeOut(scope=scope)
        if scope == "none":
            return result

        try:
            apartments = self.list_apartments()
            changes = []
            with self._writing("apartment fees"):
                for apartment in apartments:
                    old = row_to_dict(apartment)
                    apartment.monthly_total = fee
                    changes.append(old)
                self.db.commit()
            for old, apartment in zip(changes, apartments):
                self._publish(ApartmentChange(ChangeType.UPDATE, new=row_to_dict(apartment), old=old))
            result.apartments_updated = len(apartments)
        except (StoreReadError, StoreWriteError) as e:
            logger.warning("Bulk apartment fee update failed: %s", e)
            result.errors.append(str(e))

        try:
            with self._reading("payments"):
                q = self.db.query(Payment)
                if scope == "unpaid":
                    q = q.filter(Payment.status == UNPAID)
                payments = q.all()
            changes = []
            with self._writing("payment amounts"):
                for payment in payments:
                    changes.append(row_to_dict(payment))
                    payment.amount = fee
                self.db.commit()
            for old, payment in zip(changes, payments):
                self._publish(PaymentChange(ChangeType.UPDATE, new=row_to_dict(payment), old=old))
            result.payments_updated = len(payments)
        except (StoreReadError, StoreWriteError) as e:
            logger.warning("Bulk payment amount update failed: %s", e)
            result.errors.append(str(e))

        logger.info(
            "Default fee %s applied (%s): %s apartments, %s payments",
            fee, scope, result.apartments_updated, result.payments_updated,
        )
        return result

    # --- profiles -------------------------------------------------------------

    def list_profiles(self) -> List[Profile]:
        with self._reading("profiles"):
            return self.db.query(Profile).order_by(Profile.created_at.desc(), Profile.id).all()

    def find_profile(self, profile_id: str) -> Optional[Profile]:
        with self._reading("profile"):
            return self.db.query(Profile).filter(Profile.id == profile_id).first()

    def get_profile(self, profile_id: str) -> Profile:
        profile = self.find_profile(profile_id)
        if profile is None:
            raise EntityNotFoundError(f"Profile {profile_id} not found")
        return profile

    def count_admins(self) -> int:
        with self._reading("profiles"):
            return self.db.query(Profile).filter(Profile.role == Role.ADMIN.value).count()

    def upsert_profile(self, profile_id: str, email: Optional[str], role: Role, display_name: Optional[str] = None) -> Profile:
        profile = self.find_profile(profile_id)
        with self._writing("profile"):
            if profile is None:
                profile = Profile(id=profile_id)
                self.db.add(profile)
            profile.email = email
            profile.role = role.value
            profile.display_name = display_name or (email.split("@")[0] if email else None)
            self.db.commit()
            self.db.refresh(profile)
        return profile

    def update_role(self, profile_id: str, role: Role) -> Profile:
        profile = self.get_profile(profile_id)
        with self._writing("profile"):
            profile.role = role.value
            self.db.commit()
            self.db.refresh(profile)
        logger.info("Profile %s role set to %s", profile_id, role.value)
        return profile

    def delete_profile(self, profile_id: str) -> Profile:
        profile = self.get_profile(profile_id)
        with self._writing("profile"):
            self.db.delete(profile)
            self.db.commit()
        logger.info("Profile %s deleted", profile_id)
        return profile
