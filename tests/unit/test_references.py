"""Unit tests for reference-number generation and the deterministic clock."""

import random
import re
from datetime import UTC, datetime, timedelta, timezone

import pytest

from billing_kernel.domain.clock import DeterministicClock, SystemClock
from billing_kernel.domain.references import (
    INVOICE_PREFIX,
    PAYMENT_PREFIX,
    RECEIPT_PREFIX,
    FixedReferenceGenerator,
    RandomReferenceGenerator,
    SequentialReferenceGenerator,
    epoch_millis,
    reference_stamp,
)

NOW = datetime(2025, 1, 15, 9, 30, tzinfo=UTC)


class TestReferenceStamp:

    def test_invoice_uses_calendar_date(self):
        assert reference_stamp(INVOICE_PREFIX, NOW) == "20250115"

    def test_payment_and_receipt_use_epoch_millis(self):
        assert reference_stamp(PAYMENT_PREFIX, NOW) == "1736933400000"
        assert reference_stamp(RECEIPT_PREFIX, NOW) == "1736933400000"

    def test_epoch_millis_ignores_offset(self):
        shifted = NOW.astimezone(timezone(timedelta(hours=7)))

        assert epoch_millis(shifted) == epoch_millis(NOW)


class TestSequentialReferenceGenerator:

    def test_counters_per_prefix(self):
        generator = SequentialReferenceGenerator()

        assert generator.generate(INVOICE_PREFIX, NOW) == "INV-20250115-0001"
        assert generator.generate(INVOICE_PREFIX, NOW) == "INV-20250115-0002"
        assert generator.generate(PAYMENT_PREFIX, NOW) == "PAY-1736933400000-0001"

    def test_wraps_at_ten_thousand(self):
        generator = SequentialReferenceGenerator(start=9999)

        assert generator.generate(RECEIPT_PREFIX, NOW).endswith("-9999")
        assert generator.generate(RECEIPT_PREFIX, NOW).endswith("-0000")


class TestRandomReferenceGenerator:

    def test_format(self):
        generator = RandomReferenceGenerator()

        for _ in range(50):
            assert re.fullmatch(r"PAY-\d{13}-\d{4}", generator.generate(PAYMENT_PREFIX, NOW))

    def test_seeded_rng_is_reproducible(self):
        a = RandomReferenceGenerator(rng=random.Random(7))
        b = RandomReferenceGenerator(rng=random.Random(7))

        assert [a.generate("INV", NOW) for _ in range(5)] == [
            b.generate("INV", NOW) for _ in range(5)
        ]


class TestFixedReferenceGenerator:

    def test_replays_then_repeats_last(self):
        generator = FixedReferenceGenerator([5, 6])

        suffixes = [generator.generate(INVOICE_PREFIX, NOW)[-4:] for _ in range(4)]

        assert suffixes == ["0005", "0006", "0006", "0006"]

    def test_requires_suffixes(self):
        with pytest.raises(ValueError):
            FixedReferenceGenerator([])


class TestClocks:

    def test_deterministic_clock(self):
        clock = DeterministicClock(NOW)

        assert clock.now() == NOW
        assert clock.now() == NOW
        assert clock.tick() == NOW + timedelta(seconds=1)
        clock.advance(59)
        assert clock.now() == NOW + timedelta(minutes=1)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock(NOW)
        clock.advance(10)
        later = NOW + timedelta(days=3)

        clock.set_time(later)

        assert clock.now() == later

    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None
        assert SystemClock().now_utc().utcoffset() == timedelta(0)
