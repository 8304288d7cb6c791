"""Tests for the engine tracer (billing_engines/tracer.py)."""

from decimal import Decimal

import pytest

from billing_engines.tracer import (
    _canonicalize,
    compute_input_fingerprint,
    traced_engine,
)
from billing_kernel.domain.documents import PaymentMethod


@traced_engine("sample", "2.1", fingerprint_fields=("amount", "method"))
def _sample_engine(amount, method, note=None):
    return amount * 2


class TestCanonicalize:

    def test_scalars(self):
        assert _canonicalize(None) == "null"
        assert _canonicalize(Decimal("1.50")) == "1.50"
        assert _canonicalize(7) == "7"
        assert _canonicalize("abc") == "abc"
        assert _canonicalize(PaymentMethod.CASH) == "cash"

    def test_dict_keys_sorted(self):
        assert _canonicalize({"b": 1, "a": 2}) == "{a:2,b:1}"

    def test_sequences_keep_order(self):
        assert _canonicalize([1, (2, 3)]) == "[1,[2,3]]"


class TestFingerprint:

    def test_deterministic(self):
        args = {"amount": Decimal("10.00"), "method": PaymentMethod.CASH}

        first = compute_input_fingerprint(("amount", "method"), args)
        second = compute_input_fingerprint(("amount", "method"), dict(args))

        assert first == second
        assert len(first) == 16

    def test_sensitive_to_values(self):
        a = compute_input_fingerprint(("amount",), {"amount": Decimal("10.00")})
        b = compute_input_fingerprint(("amount",), {"amount": Decimal("10.01")})

        assert a != b

    def test_missing_field_is_null(self):
        missing = compute_input_fingerprint(("amount",), {})
        explicit = compute_input_fingerprint(("amount",), {"amount": None})

        assert missing == explicit


class TestTracedEngine:

    def test_returns_result_and_traces(self, captured_logs):
        assert _sample_engine(Decimal("2"), PaymentMethod.CASH) == Decimal("4")

        traces = [r for r in captured_logs() if r["message"] == "BILLING_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["trace_type"] == "BILLING_ENGINE_TRACE"
        assert trace["duration_ms"] >= 0

    def test_positional_and_keyword_calls_fingerprint_alike(self, captured_logs):
        _sample_engine(Decimal("2"), PaymentMethod.CASH)
        _sample_engine(amount=Decimal("2"), method=PaymentMethod.CASH)

        fingerprints = [
            r["input_fingerprint"]
            for r in captured_logs()
            if r["message"] == "BILLING_ENGINE_TRACE"
        ]
        assert len(fingerprints) == 2
        assert fingerprints[0] == fingerprints[1]

    def test_unlisted_arguments_ignored(self, captured_logs):
        _sample_engine(Decimal("2"), PaymentMethod.CASH, note="a")
        _sample_engine(Decimal("2"), PaymentMethod.CASH, note="b")

        fingerprints = {
            r["input_fingerprint"]
            for r in captured_logs()
            if r["message"] == "BILLING_ENGINE_TRACE"
        }
        assert len(fingerprints) == 1

    def test_wraps_metadata(self):
        assert _sample_engine.__name__ == "_sample_engine"

    def test_bad_call_raises_type_error(self):
        with pytest.raises(TypeError):
            _sample_engine(Decimal("1"), PaymentMethod.CASH, None, "extra")
