"""
References -- Injectable generation of human-readable document numbers.

Responsibility:
    Produces invoice numbers, payment reference numbers, and receipt numbers.
    Engines and services never call ``random`` or the system clock directly;
    they receive a ``ReferenceGenerator`` and a ``Clock``.

Formats:
    INV-{YYYYMMDD}-{NNNN}        invoice numbers (date-stamped)
    PAY-{epochMillis}-{NNNN}     payment reference numbers
    RCP-{epochMillis}-{NNNN}     receipt numbers

Uniqueness:
    Generators do NOT guarantee uniqueness.  The persistence boundary
    enforces it with unique constraints, and the service regenerates and
    retries on collision.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime

INVOICE_PREFIX = "INV"
PAYMENT_PREFIX = "PAY"
RECEIPT_PREFIX = "RCP"

# Prefixes stamped with the calendar date instead of epoch milliseconds.
DATE_STAMPED_PREFIXES: frozenset[str] = frozenset({INVOICE_PREFIX})

SUFFIX_SPACE = 10_000


def epoch_millis(now: datetime) -> int:
    """Milliseconds since the Unix epoch for an aware datetime."""
    return int(now.timestamp() * 1000)


def reference_stamp(
    prefix: str,
    now: datetime,
    date_stamped: frozenset[str] = DATE_STAMPED_PREFIXES,
) -> str:
    """Middle segment of a reference: ``YYYYMMDD`` or epoch milliseconds."""
    if prefix in date_stamped:
        return now.strftime("%Y%m%d")
    return str(epoch_millis(now))


class ReferenceGenerator(ABC):
    """
    Abstract reference-number generator.

    Contract:
        ``generate(prefix, now)`` returns ``{prefix}-{stamp}-{NNNN}``.
        Implementations must be pure with respect to the supplied ``now``;
        the only freedom they have is the 4-digit suffix.
    """

    def __init__(self, date_stamped: frozenset[str] = DATE_STAMPED_PREFIXES):
        self._date_stamped = date_stamped

    @abstractmethod
    def next_suffix(self, prefix: str) -> int:
        """Return the next suffix in ``[0, 9999]`` for ``prefix``."""
        ...

    def generate(self, prefix: str, now: datetime) -> str:
        stamp = reference_stamp(prefix, now, self._date_stamped)
        return f"{prefix}-{stamp}-{self.next_suffix(prefix):04d}"


class RandomReferenceGenerator(ReferenceGenerator):
    """Production generator: uniformly random 4-digit suffix."""

    def __init__(
        self,
        rng: random.Random | None = None,
        date_stamped: frozenset[str] = DATE_STAMPED_PREFIXES,
    ):
        super().__init__(date_stamped)
        self._rng = rng or random.SystemRandom()

    def next_suffix(self, prefix: str) -> int:
        return self._rng.randrange(SUFFIX_SPACE)


class SequentialReferenceGenerator(ReferenceGenerator):
    """
    Deterministic generator for tests and replay.

    Each prefix has its own counter starting at ``start``; the counter wraps
    at 10000.
    """

    def __init__(
        self,
        start: int = 1,
        date_stamped: frozenset[str] = DATE_STAMPED_PREFIXES,
    ):
        super().__init__(date_stamped)
        self._start = start
        self._counters: dict[str, int] = defaultdict(int)

    def next_suffix(self, prefix: str) -> int:
        value = (self._start + self._counters[prefix]) % SUFFIX_SPACE
        self._counters[prefix] += 1
        return value


class FixedReferenceGenerator(ReferenceGenerator):
    """
    Generator that replays a scripted list of suffixes, then repeats the last.

    Used to provoke uniqueness collisions in tests.
    """

    def __init__(
        self,
        suffixes: list[int],
        date_stamped: frozenset[str] = DATE_STAMPED_PREFIXES,
    ):
        if not suffixes:
            raise ValueError("FixedReferenceGenerator requires at least one suffix")
        super().__init__(date_stamped)
        self._suffixes = list(suffixes)
        self._index = 0

    def next_suffix(self, prefix: str) -> int:
        value = self._suffixes[min(self._index, len(self._suffixes) - 1)]
        self._index += 1
        return value
