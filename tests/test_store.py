"""Tests for DataStore: CRUD, change publishing, fee cascade and error wrapping."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from syndicpro.core.exceptions import EntityNotFoundError, StoreReadError, StoreWriteError
from syndicpro.core.permissions import Role
from syndicpro.models.payment import Payment
from syndicpro.realtime.feed import ApartmentChange, ChangeType, PaymentChange
from syndicpro.schemas.app_setting import AppSettingsUpdate
from syndicpro.services.reconciler import PaymentReconciler


def settings_payload(fee, name="Residence Al Amal") -> AppSettingsUpdate:
    return AppSettingsUpdate(building_name=name, building_address="12 Rue Atlas", default_monthly_fee=Decimal(fee), currency="DH")


def _db_failure(*args, **kwargs):
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


class TestApartments:
    """Apartment CRUD."""

    def test_create_and_get(self, store, apartment_data) -> None:
        apt = store.create_apartment(apartment_data)

        fetched = store.get_apartment(apt.id)
        assert fetched.number == "A1"
        assert fetched.roommates == []
        assert fetched.balance == Decimal("0")

    def test_list_natural_order(self, store) -> None:
        for number, floor in [("10", 1), ("2", 1), ("1", 2), ("G", 0)]:
            store.create_apartment({"number": number, "floor": floor})

        assert [a.number for a in store.list_apartments()] == ["G", "2", "10", "1"]

    def test_list_filters(self, store) -> None:
        store.create_apartment({"number": "1", "resident_name": "Samira Idrissi", "status": "occupied"})
        store.create_apartment({"number": "2", "status": "vacant"})

        assert [a.number for a in store.list_apartments(status="vacant")] == ["2"]
        assert [a.number for a in store.list_apartments(search="samira")] == ["1"]

    def test_update_publishes_old_and_new(self, store, feed, apartment_data) -> None:
        apt = store.create_apartment(apartment_data)
        events = []
        feed.subscribe(events.append)

        store.update_apartment(apt.id, {"resident_name": "Nadia Tazi"})

        assert len(events) == 1
        assert isinstance(events[0], ApartmentChange)
        assert events[0].old["resident_name"] == "Karim Benali"
        assert events[0].new["resident_name"] == "Nadia Tazi"

    def test_missing_apartment(self, store) -> None:
        with pytest.raises(EntityNotFoundError):
            store.get_apartment(404)

    def test_delete_removes_payments(self, store, feed, db, apartment_data) -> None:
        apt = store.create_apartment(apartment_data)
        PaymentReconciler().run(store, 2026)
        events = []
        feed.subscribe(events.append)

        store.delete_apartment(apt.id)

        assert db.query(Payment).count() == 0
        assert isinstance(events[0], ApartmentChange) and events[0].event_type is ChangeType.DELETE
        assert sum(isinstance(e, PaymentChange) for e in events) == 12

    def test_delete_keeps_apartment_deleted_when_payment_cleanup_fails(self, store, monkeypatch, apartment_data) -> None:
        apt = store.create_apartment(apartment_data)

        def broken(*args, **kwargs):
            raise StoreReadError("Failed to load payments")

        monkeypatch.setattr(store, "list_payments", broken)
        store.delete_apartment(apt.id)

        with pytest.raises(EntityNotFoundError):
            store.get_apartment(apt.id)

    def test_write_failure_is_wrapped_and_rolled_back(self, store, db, monkeypatch, apartment_data) -> None:
        monkeypatch.setattr(db, "commit", _db_failure)

        with pytest.raises(StoreWriteError):
            store.create_apartment(apartment_data)

        monkeypatch.undo()
        assert store.list_apartments() == []


class TestPayments:
    """Payment updates."""

    def test_toggle_round_trip(self, store, apartment_data) -> None:
        store.create_apartment(apartment_data)
        PaymentReconciler().run(store, 2026)
        payment = store.list_payments(year=2026)[0]

        paid = store.toggle_payment(payment.id)
        assert paid.status == "PAID"
        assert paid.paid_at is not None

        unpaid = store.toggle_payment(payment.id)
        assert unpaid.status == "UNPAID"
        assert unpaid.paid_at is None

    def test_toggle_missing_payment(self, store) -> None:
        with pytest.raises(EntityNotFoundError):
            store.toggle_payment(12345)

    def test_list_filters(self, store) -> None:
        first = store.create_apartment({"number": "1"})
        store.create_apartment({"number": "2"})
        reconciler = PaymentReconciler()
        reconciler.run(store, 2025)
        reconciler.run(store, 2026)

        assert len(store.list_payments()) == 48
        assert len(store.list_payments(year=2025)) == 24
        assert len(store.list_payments(year=2026, apartment_id=first.id)) == 12


class TestExpenses:
    """Expense ledger."""

    def test_year_scope_and_order(self, store) -> None:
        store.create_expense({"category": "WATER", "amount": Decimal("120"), "description": "Water bill", "date": date(2026, 2, 1)})
        store.create_expense({"category": "CLEANING", "amount": Decimal("300"), "description": "Stairs", "date": date(2026, 5, 1)})
        store.create_expense({"category": "OTHER", "amount": Decimal("50"), "description": "Old", "date": date(2025, 12, 31)})

        expenses = store.list_expenses(year=2026)

        assert [e.description for e in expenses] == ["Stairs", "Water bill"]

    def test_title_defaults_to_description(self, store) -> None:
        expense = store.create_expense({"category": "WATER", "amount": Decimal("10"), "description": "Meter", "date": date(2026, 1, 1)})
        assert expense.title == "Meter"

    def test_search(self, store) -> None:
        store.create_expense({"category": "WATER", "amount": Decimal("10"), "description": "Meter", "date": date(2026, 1, 1)})
        store.create_expense({"category": "SECURITY", "amount": Decimal("10"), "description": "Guard", "date": date(2026, 1, 1)})

        assert [e.description for e in store.list_expenses(search="secur")] == ["Guard"]

    def test_delete_missing(self, store) -> None:
        with pytest.raises(EntityNotFoundError):
            store.delete_expense(99)


class TestAppSettings:
    """Settings row and the default fee cascade."""

    def test_defaults_until_saved(self, store) -> None:
        current = store.get_app_settings()
        assert current.id == "app"
        assert current.default_monthly_fee == Decimal("200")
        assert current.currency == "DH"
        assert current.building_name == "SyndicPro"

    def test_save_creates_row(self, store) -> None:
        result = store.save_app_settings(settings_payload("200"), updated_by="admin@syndic.test")

        assert result.settings.building_name == "Residence Al Amal"
        assert result.settings.updated_by == "admin@syndic.test"
        assert store.get_app_settings().building_address == "12 Rue Atlas"

    def _building_with_two_years(self, store):
        store.save_app_settings(settings_payload("200"))
        store.create_apartment({"number": "1", "monthly_total": Decimal("200")})
        store.create_apartment({"number": "2"})
        reconciler = PaymentReconciler()
        reconciler.run(store, 2025)
        reconciler.run(store, 2026)
        paid = store.list_payments(year=2025)[0]
        store.toggle_payment(paid.id)
        return paid.id

    def test_fee_change_rewrites_everything(self, store) -> None:
        """200 -> 250 rewrites every apartment fee and every payment of every year."""
        self._building_with_two_years(store)

        result = store.save_app_settings(settings_payload("250"))

        assert result.cascade.scope == "all"
        assert result.cascade.apartments_updated == 2
        assert result.cascade.payments_updated == 48
        assert result.cascade.errors == []
        assert {a.monthly_total for a in store.list_apartments()} == {Decimal("250")}
        assert {p.amount for p in store.list_payments()} == {Decimal("250")}

    def test_unpaid_scope_keeps_paid_amounts(self, store) -> None:
        paid_id = self._building_with_two_years(store)

        result = store.save_app_settings(settings_payload("250"), scope="unpaid")

        assert result.cascade.payments_updated == 47
        amounts = {p.id: p.amount for p in store.list_payments()}
        assert amounts.pop(paid_id) == Decimal("200")
        assert set(amounts.values()) == {Decimal("250")}
        assert {a.monthly_total for a in store.list_apartments()} == {Decimal("250")}

    def test_none_scope_only_saves_settings(self, store) -> None:
        self._building_with_two_years(store)

        result = store.save_app_settings(settings_payload("250"), scope="none")

        assert result.cascade.apartments_updated == 0
        assert store.get_app_settings().default_monthly_fee == Decimal("250")
        assert {p.amount for p in store.list_payments()} == {Decimal("200")}

    def test_unchanged_fee_does_not_cascade(self, store) -> None:
        self._building_with_two_years(store)

        result = store.save_app_settings(settings_payload("200", name="Renamed"))

        assert result.cascade is None
        assert result.settings.building_name == "Renamed"

    def test_partial_cascade_failure_keeps_settings(self, store, monkeypatch) -> None:
        self._building_with_two_years(store)

        def broken(*args, **kwargs):
            raise StoreReadError("Failed to load apartments")

        monkeypatch.setattr(store, "list_apartments", broken)
        result = store.save_app_settings(settings_payload("250"))

        assert result.cascade.errors == ["Failed to load apartments"]
        assert result.cascade.apartments_updated == 0
        assert result.cascade.payments_updated == 48
        assert store.get_app_settings().default_monthly_fee == Decimal("250")


class TestProfiles:
    """Profile rows."""

    def test_upsert_and_find(self, store) -> None:
        profile = store.upsert_profile("u-1", "salma@syndic.test", Role.EDITOR)

        assert profile.display_name == "salma"
        assert store.find_profile("u-1").role == "editor"
        assert store.find_profile("nobody") is None

    def test_count_admins(self, store, profiles) -> None:
        assert store.count_admins() == 1

    def test_update_role_and_delete(self, store, profiles) -> None:
        assert store.update_role("viewer-1", Role.EDITOR).role == "editor"

        store.delete_profile("viewer-1")
        with pytest.raises(EntityNotFoundError):
            store.get_profile("viewer-1")
