"""
Tests for voucher_sync and agent_sales.

voucher_sync: WAITING -> ACTIVE on first login, ACTIVE -> EXPIRED past
expiry with access revoked. agent_sales: one sale per used agent voucher.
"""

from datetime import datetime, timedelta, timezone

import pytest

from billing_cron.jobs.collaborators import StoreUsageSource
from billing_cron.jobs.handlers import add_months, agent_name_from_batch, compute_expiry
from billing_cron.scheduler.errors import ExternalServiceError
from billing_cron.jobs.store import VOUCHER_ACTIVE, VOUCHER_EXPIRED, VOUCHER_WAITING


UTC = timezone.utc


class FlakyUsageSource(StoreUsageSource):
    """Revoke fails the first `failures` times, then reaches the store."""

    def __init__(self, store, failures: int = 1):
        super().__init__(store)
        self.failures = failures

    def revoke(self, code: str) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise ExternalServiceError("radius", "unreachable")
        super().revoke(code)


class TestComputeExpiry:
    START = datetime(2026, 1, 31, 10, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        "value, unit, expected",
        [
            (30, "MINUTES", datetime(2026, 1, 31, 10, 30, tzinfo=UTC)),
            (5, "HOURS", datetime(2026, 1, 31, 15, 0, tzinfo=UTC)),
            (7, "days", datetime(2026, 2, 7, 10, 0, tzinfo=UTC)),
            (1, "MONTHS", datetime(2026, 2, 28, 10, 0, tzinfo=UTC)),
        ],
    )
    def test_units(self, value, unit, expected):
        assert compute_expiry(self.START, value, unit) == expected

    def test_unknown_unit(self):
        with pytest.raises(ValueError):
            compute_expiry(self.START, 1, "WEEKS")

    def test_add_months_across_year(self):
        assert add_months(datetime(2026, 11, 30, tzinfo=UTC), 3) == datetime(2027, 2, 28, tzinfo=UTC)


class TestAgentNameFromBatch:
    @pytest.mark.parametrize(
        "batch, expected",
        [("budi-001", "budi"), ("siti-2026-01", "siti"), ("promo", None), (None, None), ("", None)],
    )
    def test_prefix(self, batch, expected):
        assert agent_name_from_batch(batch) == expected


class TestVoucherSync:
    def test_first_login_activates(self, jobs, store, voucher_profile, clock):
        store.add_voucher("ABC123", voucher_profile)
        first_login = clock() - timedelta(hours=2)
        store.add_accounting_session("ABC123", first_login)
        store.add_accounting_session("ABC123", first_login + timedelta(minutes=30))

        result = jobs.voucher_sync()

        assert result.synced == 1
        assert result.expired == 0
        voucher = store.get_voucher("ABC123")
        assert voucher.status == VOUCHER_ACTIVE
        assert voucher.first_login_at == first_login
        assert voucher.expires_at == first_login + timedelta(days=1)

    def test_unused_voucher_stays_waiting(self, jobs, store, voucher_profile):
        store.add_voucher("UNUSED", voucher_profile)

        result = jobs.voucher_sync()

        assert result.synced == 0
        assert store.get_voucher("UNUSED").status == VOUCHER_WAITING

    def test_past_expiry_expires_and_revokes(self, jobs, store, add_active_voucher, clock):
        add_active_voucher("OLD1", None, clock() - timedelta(days=2))
        store.grant_access("OLD1")

        result = jobs.voucher_sync()

        assert result.expired == 1
        assert store.get_voucher("OLD1").status == VOUCHER_EXPIRED
        assert not store.has_access("OLD1")

    def test_activate_and_expire_in_one_run(self, jobs, store, clock):
        profile = store.add_voucher_profile("1 Hour", validity_value=1, validity_unit="HOURS")
        store.add_voucher("SHORT", profile)
        store.add_accounting_session("SHORT", clock() - timedelta(hours=3))

        result = jobs.voucher_sync()

        assert (result.synced, result.expired) == (1, 1)
        assert store.get_voucher("SHORT").status == VOUCHER_EXPIRED

    def test_failed_revoke_keeps_voucher_active_for_retry(self, jobs, store, add_active_voucher, clock):
        add_active_voucher("V1", None, clock() - timedelta(days=2))
        store.grant_access("V1")
        jobs.usage = FlakyUsageSource(store, failures=1)

        first = jobs.voucher_sync()

        assert first.expired == 0
        assert first.errors == ["V1: radius: unreachable"]
        assert store.get_voucher("V1").status == VOUCHER_ACTIVE

        clock.tick(60)
        second = jobs.voucher_sync()

        assert second.expired == 1
        assert second.errors == []
        assert store.get_voucher("V1").status == VOUCHER_EXPIRED
        assert not store.has_access("V1")

    def test_rerun_is_noop(self, jobs, store, voucher_profile, add_active_voucher, clock):
        store.add_voucher("NEW1", voucher_profile)
        store.add_accounting_session("NEW1", clock() - timedelta(minutes=5))
        add_active_voucher("OLD1", None, clock() - timedelta(days=2))
        jobs.voucher_sync()

        result = jobs.voucher_sync()

        assert (result.synced, result.expired) == (0, 0)
        assert result.errors == []


class TestAgentSales:
    def test_records_sale_at_reseller_fee(self, jobs, store, add_active_voucher, clock):
        agent_id = store.add_agent("budi")
        first_login = clock() - timedelta(hours=1)
        add_active_voucher("B001", "budi-001", first_login)

        result = jobs.agent_sales()

        assert result.recorded == 1
        sales = store.list_agent_sales(agent_id)
        assert len(sales) == 1
        assert sales[0]["voucher_code"] == "B001"
        assert sales[0]["amount"] == 3000
        assert sales[0]["profile_name"] == "1 Day"

    def test_rerun_records_nothing(self, jobs, store, add_active_voucher, clock):
        store.add_agent("budi")
        add_active_voucher("B001", "budi-001", clock() - timedelta(hours=1))
        jobs.agent_sales()

        result = jobs.agent_sales()

        assert result.recorded == 0
        assert result.skipped == 1
        assert len(store.list_agent_sales()) == 1

    def test_non_agent_batches_ignored(self, jobs, store, add_active_voucher, clock):
        store.add_agent("budi")
        add_active_voucher("P001", "promo", clock() - timedelta(hours=1))
        add_active_voucher("N001", None, clock() - timedelta(hours=1))

        result = jobs.agent_sales()

        assert (result.recorded, result.skipped) == (0, 0)

    def test_unknown_agent_skipped(self, jobs, store, add_active_voucher, clock):
        add_active_voucher("S001", "siti-001", clock() - timedelta(hours=1))

        result = jobs.agent_sales()

        assert result.recorded == 0
        assert result.skipped == 1
        assert result.ok

    def test_waiting_vouchers_not_counted(self, jobs, store, voucher_profile):
        store.add_agent("budi")
        store.add_voucher("W001", voucher_profile, batch_code="budi-001")

        result = jobs.agent_sales()

        assert result.recorded == 0
