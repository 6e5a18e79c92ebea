"""Tests for the payment toggle state machine and optimistic updates."""

from datetime import datetime, timezone

import pytest

from syndicpro.services.optimistic import PAID, UNPAID, optimistic_update, toggle_fields, toggled_status


class TestToggle:
    """Tests for toggle_fields()."""

    def test_unpaid_becomes_paid_with_timestamp(self) -> None:
        now = datetime(2026, 4, 2, 10, 0, tzinfo=timezone.utc)
        assert toggle_fields(UNPAID, now=now) == {"status": PAID, "paid_at": now}

    def test_paid_becomes_unpaid_and_clears_timestamp(self) -> None:
        assert toggle_fields(PAID) == {"status": UNPAID, "paid_at": None}

    def test_default_timestamp_is_utc_now(self) -> None:
        before = datetime.now(timezone.utc)
        fields = toggle_fields(UNPAID)
        assert fields["paid_at"] >= before
        assert fields["paid_at"].tzinfo is not None

    def test_double_toggle_round_trip(self) -> None:
        """Toggling twice returns to the starting state."""
        first = toggle_fields(UNPAID)
        second = toggle_fields(first["status"])
        assert second == {"status": UNPAID, "paid_at": None}
        assert toggled_status(toggled_status(PAID)) == PAID


class TestOptimisticUpdate:
    """Tests for optimistic_update()."""

    def test_success_keeps_local_change(self) -> None:
        state = {"status": UNPAID}

        def apply_local():
            previous = dict(state)
            state["status"] = PAID
            return previous

        result = optimistic_update(apply_local, lambda: "committed", state.update)

        assert result == "committed"
        assert state == {"status": PAID}

    def test_failure_reverts_and_reraises(self) -> None:
        state = {"status": UNPAID, "paid_at": None}
        seen_during_commit = {}

        def apply_local():
            previous = dict(state)
            state.update(status=PAID, paid_at="now")
            return previous

        def commit_remote():
            seen_during_commit.update(state)
            raise ConnectionError("network down")

        with pytest.raises(ConnectionError):
            optimistic_update(apply_local, commit_remote, state.update)

        assert seen_during_commit["status"] == PAID
        assert state == {"status": UNPAID, "paid_at": None}
