"""
Per-session dashboard state.

A DashboardSession keeps process-local copies of the building data for one
signed-in user and keeps them current from the change feed:

- on sign-in it loads the profile, opens one feed subscription covering
  apartments, payments and expenses, and loads everything for the selected year
- on sign-out or identity change it drops the subscription and the data
- once apartments and the year's payments are loaded it seeds missing payments
- toggling a payment is applied locally first and rolled back if the store
  rejects it

Load failures set `error` and keep the last known data. Nothing here is fatal
to the session.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from syndicpro.core.exceptions import EntityNotFoundError, PermissionDeniedError, StoreError
from syndicpro.core.permissions import (
    ActionDecision,
    DenyPolicy,
    Requirement,
    Role,
    permissions_for,
    resolve_action,
)
from syndicpro.realtime.feed import (
    ApartmentChange,
    ChangeFeed,
    ChangeType,
    ExpenseChange,
    PaymentChange,
    Subscription,
    TableChange,
)
from syndicpro.schemas.apartment import ApartmentOut
from syndicpro.schemas.app_setting import AppSettingsOut
from syndicpro.schemas.dashboard import DashboardSummary
from syndicpro.schemas.expense import ExpenseOut
from syndicpro.schemas.payment import ApartmentYearRow, PaymentOut
from syndicpro.schemas.profile import ProfileOut
from syndicpro.services.aggregator import aggregate, payment_matrix
from syndicpro.services.optimistic import optimistic_update, toggle_fields
from syndicpro.services.ordering import apartment_sort_key
from syndicpro.services.reconciler import PaymentReconciler, ReconcileResult
from syndicpro.services.store import default_app_settings

logger = logging.getLogger(__name__)


@dataclass
class UIState:
    """Presentation state owned by one session."""
    theme: str = "light"
    search_query: str = ""

    def toggle_theme(self) -> str:
        self.theme = "dark" if self.theme == "light" else "light"
        return self.theme

    def matches(self, *values: Optional[str]) -> bool:
        query = self.search_query.strip().lower()
        if not query:
            return True
        return any(query in (v or "").lower() for v in values)


@dataclass
class LoadingState:
    apartments: bool = True
    payments: bool = True
    expenses: bool = True
    app_settings: bool = True

    @property
    def any(self) -> bool:
        return self.apartments or self.payments or self.expenses or self.app_settings

    def reset(self, value: bool = True) -> None:
        self.apartments = self.payments = self.expenses = self.app_settings = value


class DashboardSession:
    def __init__(
        self,
        store,
        feed: Optional[ChangeFeed] = None,
        year: Optional[int] = None,
        reconciler: Optional[PaymentReconciler] = None,
        ui: Optional[UIState] = None,
        dispatch: Optional[Callable[[TableChange], None]] = None,
    ):
        self.store = store
        self.feed = feed
        # How feed events reach apply_change; inline unless the owner hands them
        # to another thread first
        self.dispatch = dispatch or self.apply_change
        self.reconciler = reconciler or PaymentReconciler()
        self.ui = ui or UIState()
        self.year = int(year or datetime.now(timezone.utc).year)

        self.identity = None
        self.profile: Optional[ProfileOut] = None
        self.profile_loading = False

        self.apartments: List[ApartmentOut] = []
        self.payments: List[PaymentOut] = []
        self.expenses: List[ExpenseOut] = []
        self.app_settings: AppSettingsOut = default_app_settings()

        self.loading = LoadingState()
        # Year whose payments are fully loaded; reconciliation waits for it
        self._payments_year: Optional[int] = None
        self.error: Optional[Exception] = None
        self._subscription: Optional[Subscription] = None

    # --- identity -------------------------------------------------------------

    def on_auth_state_changed(self, identity) -> None:
        """React to sign-in, sign-out or a switch to another identity."""
        if identity is not None and self.identity is not None and identity.id == self.identity.id:
            return

        self._close_subscription()
        self.identity = identity
        if identity is None:
            logger.info("Signed out, clearing session data")
            self.profile = None
            self.profile_loading = False
            self.apartments, self.payments, self.expenses = [], [], []
            self._payments_year = None
            self.loading.reset(False)
            return

        self.refresh_profile()
        if self.feed is not None:
            self._subscription = self.feed.subscribe(self.dispatch)
        self.load_all()

    def refresh_profile(self) -> None:
        if self.identity is None:
            return
        self.profile_loading = True
        try:
            row = self.store.find_profile(self.identity.id)
        except StoreError as e:
            logger.warning("Profile fetch failed for %s: %s", self.identity.id, e)
            row = None
        finally:
            self.profile_loading = False

        if row is None:
            # Profile row not created yet: minimal capabilities until it appears
            self.profile = ProfileOut(id=self.identity.id, email=self.identity.email, role=Role.VIEWER.value)
        else:
            self.profile = ProfileOut.model_validate(row)

    def _close_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def close(self) -> None:
        self.on_auth_state_changed(None)

    # --- permissions ----------------------------------------------------------

    @property
    def role(self) -> str:
        return self.profile.role if self.profile is not None else Role.VIEWER.value

    def can_view(self) -> bool:
        return self.identity is not None

    def can_modify(self) -> bool:
        return self.identity is not None and permissions_for(self.role).can_modify

    def can_manage_users(self) -> bool:
        return self.identity is not None and permissions_for(self.role).can_manage_users

    def action(self, requires: Requirement, policy: DenyPolicy = DenyPolicy.DISABLE) -> ActionDecision:
        return resolve_action(
            requires,
            authenticated=self.identity is not None,
            role=self.role,
            loading=self.profile_loading,
            policy=policy,
        )

    # --- loading --------------------------------------------------------------

    def load_all(self) -> None:
        self.loading.reset(True)
        self.fetch_apartments()
        self.fetch_app_settings()
        self.fetch_payments()
        self.fetch_expenses()
        self.reconcile_payments()

    def fetch_apartments(self) -> None:
        try:
            rows = self.store.list_apartments()
            self.apartments = [ApartmentOut.model_validate(r) for r in rows]
        except StoreError as e:
            self.error = e
        finally:
            self.loading.apartments = False

    def fetch_payments(self) -> None:
        try:
            rows = self.store.list_payments(year=self.year)
            self.payments = [PaymentOut.model_validate(r) for r in rows]
            self._payments_year = self.year
        except StoreError as e:
            self.error = e
        finally:
            self.loading.payments = False

    def fetch_expenses(self) -> None:
        try:
            rows = self.store.list_expenses(year=self.year)
            self.expenses = [ExpenseOut.model_validate(r) for r in rows]
        except StoreError as e:
            self.error = e
        finally:
            self.loading.expenses = False

    def fetch_app_settings(self) -> None:
        try:
            self.app_settings = self.store.get_app_settings()
        except StoreError as e:
            self.error = e
        finally:
            self.loading.app_settings = False

    def dismiss_error(self) -> None:
        self.error = None

    def set_year(self, year: int) -> None:
        year = int(year)
        if year == self.year:
            return
        self.year = year
        self.loading.payments = self.loading.expenses = True
        self.fetch_payments()
        self.fetch_expenses()
        self.reconcile_payments()

    # --- reconciliation -------------------------------------------------------

    def reconcile_payments(self) -> Optional[ReconcileResult]:
        """
        Seed the selected year's missing payments. Waits for apartments and
        payments to be loaded, since seeding against a partial payment list
        would try to recreate rows that already exist.
        """
        if self.identity is None or not self.apartments:
            return None
        if self.loading.apartments or self.loading.payments or self._payments_year != self.year:
            return None

        try:
            result = self.reconciler.run(
                self.store,
                self.year,
                default_fee=self.app_settings.default_monthly_fee,
                apartments=self.apartments,
                payments=self.payments,
            )
        except StoreError as e:
            logger.warning("Payment sync for %s failed: %s", self.year, e)
            self.error = e
            return None

        if result.seeded:
            self.fetch_payments()
        return result

    # --- optimistic toggle ----------------------------------------------------

    def _find_payment(self, payment_id: int) -> PaymentOut:
        for payment in self.payments:
            if payment.id == payment_id:
                return payment
        raise EntityNotFoundError(f"Payment {payment_id} is not loaded")

    def _patch_payment(self, payment_id: int, values: dict) -> None:
        self.payments = [
            p.model_copy(update=values) if p.id == payment_id else p
            for p in self.payments
        ]

    def toggle_payment(self, payment_id: int) -> PaymentOut:
        """
        Flip a payment between PAID and UNPAID. The local copy changes at once;
        if the store rejects the update, the previous status and paid_at are
        restored and the error is raised to the caller.
        """
        if not self.profile_loading and not self.can_modify():
            raise PermissionDeniedError(f"Role {self.role} cannot modify payments")
        payment = self._find_payment(payment_id)
        updates = toggle_fields(payment.status)

        def apply_local() -> dict:
            previous = {"status": payment.status, "paid_at": payment.paid_at}
            self._patch_payment(payment_id, updates)
            return previous

        def commit_remote():
            return self.store.update_payment(payment_id, updates)

        def revert_local(previous: dict) -> None:
            self._patch_payment(payment_id, previous)

        try:
            optimistic_update(apply_local, commit_remote, revert_local)
        except (StoreError, EntityNotFoundError) as e:
            logger.warning("Toggling payment %s failed: %s", payment_id, e)
            raise
        return self._find_payment(payment_id)

    # --- realtime -------------------------------------------------------------

    def apply_change(self, change: TableChange) -> None:
        """Patch local copies from a feed event; the later write wins."""
        if isinstance(change, ApartmentChange):
            self._apply_apartment_change(change)
        elif isinstance(change, PaymentChange):
            self._apply_payment_change(change)
        elif isinstance(change, ExpenseChange):
            self._apply_expense_change(change)
        else:
            raise TypeError(f"Unhandled change type: {type(change).__name__}")

    def _apply_apartment_change(self, change: ApartmentChange) -> None:
        if change.event_type is ChangeType.INSERT:
            apartment = ApartmentOut.model_validate(change.new)
            others = [a for a in self.apartments if a.id != apartment.id]
            self.apartments = sorted(others + [apartment], key=apartment_sort_key)
            # A new apartment needs its twelve payment slots
            self.reconcile_payments()
        elif change.event_type is ChangeType.UPDATE:
            apartment = ApartmentOut.model_validate(change.new)
            self.apartments = [apartment if a.id == apartment.id else a for a in self.apartments]
        else:
            self.apartments = [a for a in self.apartments if a.id != change.old["id"]]

    def _apply_payment_change(self, change: PaymentChange) -> None:
        if change.event_type is ChangeType.INSERT:
            payment = PaymentOut.model_validate(change.new)
            if payment.year == self.year:
                self.payments = [p for p in self.payments if p.id != payment.id] + [payment]
        elif change.event_type is ChangeType.UPDATE:
            payment = PaymentOut.model_validate(change.new)
            self.payments = [payment if p.id == payment.id else p for p in self.payments]
        else:
            self.payments = [p for p in self.payments if p.id != change.old["id"]]

    def _apply_expense_change(self, change: ExpenseChange) -> None:
        if change.event_type is ChangeType.INSERT:
            expense = ExpenseOut.model_validate(change.new)
            if expense.date.year == self.year:
                self.expenses = [expense] + [e for e in self.expenses if e.id != expense.id]
        elif change.event_type is ChangeType.UPDATE:
            expense = ExpenseOut.model_validate(change.new)
            self.expenses = [expense if e.id == expense.id else e for e in self.expenses]
        else:
            self.expenses = [e for e in self.expenses if e.id != change.old["id"]]

    # --- derived views --------------------------------------------------------

    def summary(self) -> DashboardSummary:
        return aggregate(self.apartments, self.payments, self.expenses, self.year)

    def matrix(self) -> List[ApartmentYearRow]:
        apartments = [a for a in self.apartments if self.ui.matches(a.number, a.resident_name)]
        return payment_matrix(apartments, self.payments, self.year)

    def filtered_expenses(self) -> List[ExpenseOut]:
        return [e for e in self.expenses if self.ui.matches(e.description, e.category)]
