"""Unit tests for provider failure classification."""

import pytest

from tradedtokens.domain.errors import (
    DEFAULT_RULES,
    ClassificationRule,
    FailureKind,
    RPCError,
    classify,
)


class TestDefaultRules:
    """Each known provider signature maps to its retryable kind."""

    @pytest.mark.parametrize("message", [
        "query returned more than 10000 results",
        "eth_getLogs: query returned more than 10000 results. Try with this block range [0x1, 0x2].",
        "query returned more than  results",
    ])
    def test_infura_too_many_results(self, message):
        assert classify(RPCError(message, code=-32005)) is FailureKind.TOO_MANY_RESULTS

    def test_openethereum_timeout(self):
        err = RuntimeError("Network connection timed out. Try again later")
        assert classify(err) is FailureKind.TIMEOUT

    def test_client_timeout_needs_reason_and_code(self):
        err = RPCError("timeout exceeded", reason="timeout", code="TIMEOUT")
        assert classify(err) is FailureKind.TIMEOUT

    def test_timeout_message_alone_is_not_enough(self):
        assert classify(RPCError("timeout exceeded")) is FailureKind.UNRECOGNIZED
        assert classify(RPCError("timeout exceeded", reason="timeout", code="SERVER_ERROR")) is FailureKind.UNRECOGNIZED

    def test_timeout_must_prefix_message(self):
        err = RPCError("request timeout", reason="timeout", code="TIMEOUT")
        assert classify(err) is FailureKind.UNRECOGNIZED

    def test_network_unavailable(self):
        err = RPCError(
            "could not detect network (event=\"noNetwork\")",
            reason="could not detect network",
            code="NETWORK_ERROR",
        )
        assert classify(err) is FailureKind.NETWORK_UNAVAILABLE

    def test_network_message_with_wrong_code(self):
        err = RPCError("could not detect network", reason="could not detect network", code="TIMEOUT")
        assert classify(err) is FailureKind.UNRECOGNIZED


class TestUnrecognized:
    """Anything outside the known signatures is fatal."""

    def test_plain_values(self):
        assert classify("query returned more than 10000 results") is FailureKind.UNRECOGNIZED
        assert classify(None) is FailureKind.UNRECOGNIZED
        assert classify({"message": "timeout"}) is FailureKind.UNRECOGNIZED

    def test_other_errors(self):
        assert classify(ValueError("execution reverted")) is FailureKind.UNRECOGNIZED
        assert classify(RPCError("header not found", code=-32000)) is FailureKind.UNRECOGNIZED

    def test_unprintable_exception_does_not_raise(self):
        class Weird(Exception):
            def __str__(self):
                raise RuntimeError("no str for you")

        assert classify(Weird()) is FailureKind.UNRECOGNIZED

    def test_retryable_flag(self):
        assert FailureKind.TOO_MANY_RESULTS.retryable
        assert FailureKind.TIMEOUT.retryable
        assert FailureKind.NETWORK_UNAVAILABLE.retryable
        assert not FailureKind.UNRECOGNIZED.retryable


class TestCustomRules:
    """Rules are an ordered, pluggable list."""

    def test_extra_provider_rule(self):
        alchemy = ClassificationRule(
            "alchemy-response-size",
            lambda msg, reason, code: "Log response size exceeded" in msg,
            FailureKind.TOO_MANY_RESULTS,
        )
        err = RPCError("Log response size exceeded. You can make eth_getLogs requests with up to a 2K block range")
        assert classify(err) is FailureKind.UNRECOGNIZED
        assert classify(err, (*DEFAULT_RULES, alchemy)) is FailureKind.TOO_MANY_RESULTS

    def test_first_match_wins(self):
        rules = (
            ClassificationRule("a", lambda m, r, c: "boom" in m, FailureKind.NETWORK_UNAVAILABLE),
            ClassificationRule("b", lambda m, r, c: True, FailureKind.TIMEOUT),
        )
        assert classify(RuntimeError("boom"), rules) is FailureKind.NETWORK_UNAVAILABLE
        assert classify(RuntimeError("other"), rules) is FailureKind.TIMEOUT

    def test_raising_predicate_is_skipped(self):
        rules = (
            ClassificationRule("bad", lambda m, r, c: 1 / 0, FailureKind.TIMEOUT),
            *DEFAULT_RULES,
        )
        err = RPCError("query returned more than 5 results")
        assert classify(err, rules) is FailureKind.TOO_MANY_RESULTS
