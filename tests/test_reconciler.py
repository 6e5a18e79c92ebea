"""Tests for yearly payment reconciliation."""

import threading
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from syndicpro.core.database import Base
from syndicpro.models.payment import Payment
from syndicpro.schemas.app_setting import AppSettingsUpdate
from syndicpro.services.reconciler import PaymentReconciler, PaymentSeed, reconcile
from syndicpro.services.store import DataStore


def apartment(apartment_id, monthly_total=None):
    return SimpleNamespace(id=apartment_id, monthly_total=monthly_total)


def payment(apartment_id, month, year=2026):
    return SimpleNamespace(apartment_id=apartment_id, month=month, year=year)


class TestReconcile:
    """Tests for the pure reconcile() function."""

    def test_seeds_all_twelve_months(self) -> None:
        """One apartment without payments gets twelve UNPAID seeds at the default fee."""
        seeds = reconcile([apartment(1)], [], 2026, Decimal("200"))

        assert len(seeds) == 12
        assert [s.month for s in seeds] == list(range(1, 13))
        assert all(s.apartment_id == 1 and s.year == 2026 for s in seeds)
        assert all(s.amount == Decimal("200") for s in seeds)
        assert all(s.status == "UNPAID" for s in seeds)

    def test_existing_slots_are_skipped(self) -> None:
        existing = [payment(1, 3), payment(1, 5)]
        seeds = reconcile([apartment(1)], existing, 2026, Decimal("200"))

        assert len(seeds) == 10
        assert {s.month for s in seeds}.isdisjoint({3, 5})

    def test_apartment_fee_overrides_default(self) -> None:
        seeds = reconcile([apartment(1, Decimal("350"))], [], 2026, Decimal("200"))
        assert {s.amount for s in seeds} == {Decimal("350")}

    def test_zero_fee_is_not_replaced_by_default(self) -> None:
        """A fee of 0 is a real fee, only a missing one falls back."""
        seeds = reconcile([apartment(1, Decimal("0"))], [], 2026, Decimal("200"))
        assert {s.amount for s in seeds} == {Decimal("0")}

    def test_other_years_do_not_count(self) -> None:
        existing = [payment(1, m, year=2025) for m in range(1, 13)]
        seeds = reconcile([apartment(1)], existing, 2026, 200)
        assert len(seeds) == 12

    def test_complete_year_needs_nothing(self) -> None:
        existing = [payment(a, m) for a in (1, 2) for m in range(1, 13)]
        assert reconcile([apartment(1), apartment(2)], existing, 2026, 200) == []

    def test_result_fills_every_slot_exactly_once(self) -> None:
        """Existing payments plus seeds cover each (apartment, month) once."""
        apartments = [apartment(1), apartment(2), apartment(3)]
        existing = [payment(2, 1), payment(2, 12), payment(3, 6)]
        seeds = reconcile(apartments, existing, 2026, 200)

        slots = [(p.apartment_id, p.month) for p in existing] + [(s.apartment_id, s.month) for s in seeds]
        assert len(slots) == len(set(slots)) == 36

    def test_float_fee_converted_to_decimal(self) -> None:
        seeds = reconcile([apartment(1)], [], 2026, 199.5)
        assert seeds[0].amount == Decimal("199.5")

    def test_seed_row(self) -> None:
        seed = PaymentSeed(apartment_id=4, year=2026, month=2, amount=Decimal("200"))
        assert seed.as_row() == {
            "apartment_id": 4,
            "year": 2026,
            "month": 2,
            "amount": Decimal("200"),
            "status": "UNPAID",
        }


class TestPaymentSeedInsert:
    """Tests for the conflict-ignoring seed insert."""

    def test_insert_returns_inserted_count(self, store, apartment_data) -> None:
        apt = store.create_apartment(apartment_data)
        seeds = reconcile([apt], [], 2026, Decimal("200"))

        assert store.insert_payment_seeds(seeds) == 12
        assert len(store.list_payments(year=2026)) == 12

    def test_duplicate_seeds_are_ignored(self, store, db, apartment_data) -> None:
        """Two passes working from the same stale view never duplicate rows."""
        apt = store.create_apartment(apartment_data)
        seeds = reconcile([apt], [], 2026, Decimal("200"))

        first = store.insert_payment_seeds(seeds)
        second = store.insert_payment_seeds(seeds)

        assert (first, second) == (12, 0)
        assert db.query(Payment).count() == 12

    def test_partial_overlap(self, store, db, apartment_data) -> None:
        apt = store.create_apartment(apartment_data)
        store.insert_payment_seeds(reconcile([apt], [], 2026, 200)[:4])

        inserted = store.insert_payment_seeds(reconcile([apt], [], 2026, 200))

        assert inserted == 8
        assert db.query(Payment).count() == 12

    def test_empty_seed_list(self, store) -> None:
        assert store.insert_payment_seeds([]) == 0

    def test_inserted_rows_are_published(self, store, feed, apartment_data) -> None:
        apt = store.create_apartment(apartment_data)
        events = []
        feed.subscribe(events.append)

        store.insert_payment_seeds(reconcile([apt], [], 2026, 200))

        assert len(events) == 12
        assert all(e.table == "payments" and e.event_type.value == "INSERT" for e in events)


class TestPaymentReconciler:
    """Tests for the single-flight reconciler."""

    def test_seeds_from_store(self, store, apartment_data) -> None:
        """Apartment 1, default fee 200, year 2026: twelve UNPAID payments of 200."""
        apt = store.create_apartment(apartment_data)

        result = PaymentReconciler().run(store, 2026)

        assert result.seeded == 12
        assert not result.skipped
        payments = store.list_payments(year=2026)
        assert sorted(p.month for p in payments) == list(range(1, 13))
        assert all(p.apartment_id == apt.id for p in payments)
        assert all(p.status == "UNPAID" and p.amount == Decimal("200") for p in payments)

    def test_idempotent(self, store, apartment_data) -> None:
        store.create_apartment(apartment_data)
        reconciler = PaymentReconciler()

        reconciler.run(store, 2026)
        again = reconciler.run(store, 2026)

        assert again.seeded == 0
        assert len(store.list_payments(year=2026)) == 12

    def test_no_apartments(self, store) -> None:
        result = PaymentReconciler().run(store, 2026)
        assert result.seeded == 0
        assert store.list_payments() == []

    def test_uses_saved_default_fee(self, store, apartment_data) -> None:
        store.create_apartment(apartment_data)
        store.save_app_settings(
            AppSettingsUpdate(building_name="Residence", default_monthly_fee=Decimal("300"), currency="DH"),
            scope="none",
        )

        PaymentReconciler().run(store, 2026)

        assert {p.amount for p in store.list_payments(year=2026)} == {Decimal("300")}

    def test_overlapping_run_is_skipped(self) -> None:
        """A pass started while another is running returns skipped."""
        reconciler = PaymentReconciler()
        inner = {}

        class ReentrantStore:
            def list_apartments(self):
                inner["result"] = reconciler.run(self, 2026)
                inner["in_flight"] = reconciler.in_flight(2026)
                return []

        outer = reconciler.run(ReentrantStore(), 2026)

        assert inner["result"].skipped is True
        assert inner["in_flight"] is True
        assert outer.skipped is False
        assert reconciler.in_flight(2026) is False

    def test_lock_released_after_failure(self) -> None:
        reconciler = PaymentReconciler()

        class BrokenStore:
            def list_apartments(self):
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            reconciler.run(BrokenStore(), 2026)
        assert reconciler.in_flight(2026) is False

    def test_other_year_is_not_blocked(self) -> None:
        """A pass for 2025 does not make a concurrent 2026 pass skip."""
        reconciler = PaymentReconciler()
        inner = {}

        class ReentrantStore:
            def list_apartments(self):
                inner["result"] = reconciler.run(EmptyStore(), 2026)
                inner["in_flight"] = (reconciler.in_flight(2025), reconciler.in_flight(2026))
                return []

        class EmptyStore:
            def list_apartments(self):
                return []

        reconciler.run(ReentrantStore(), 2025)

        assert inner["result"].skipped is False
        assert inner["in_flight"] == (True, False)


class TestConcurrentReconcile:
    """Passes racing from separate connections never duplicate a slot."""

    @pytest.fixture
    def session_factory(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(bind=engine)
        yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
        engine.dispose()

    def test_parallel_passes_from_stale_views(self, session_factory) -> None:
        seed_session = session_factory()
        seeder = DataStore(seed_session)
        for number in range(1, 6):
            seeder.create_apartment({"number": str(number), "floor": 0})
        seed_session.close()

        workers = 4
        barrier = threading.Barrier(workers)
        results = [None] * workers
        errors = []

        def work(index: int) -> None:
            session = session_factory()
            try:
                barrier.wait()
                # Separate reconcilers, and every pass believes no payment exists yet
                results[index] = PaymentReconciler().run(DataStore(session), 2026, payments=[])
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=work, args=(i,)) for i in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert sum(r.seeded for r in results) == 60

        check = session_factory()
        try:
            assert check.query(Payment).count() == 60
            slots = {(p.apartment_id, p.month) for p in check.query(Payment).all()}
            assert len(slots) == 60
        finally:
            check.close()
