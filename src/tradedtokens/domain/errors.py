from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence


class FailureKind(Enum):
    TOO_MANY_RESULTS = "too_many_results"
    TIMEOUT = "timeout"
    NETWORK_UNAVAILABLE = "network_unavailable"
    UNRECOGNIZED = "unrecognized"

    @property
    def retryable(self) -> bool:
        return self is not FailureKind.UNRECOGNIZED


class RPCError(RuntimeError):
    """Structured JSON-RPC/transport failure. `reason`/`code` mirror what nodes and clients attach."""

    def __init__(self, message: str, *, reason: str | None = None, code: str | int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.code = code


class RangeExhaustedError(RuntimeError):
    def __init__(self, block: int) -> None:
        super().__init__(f"Too many events in the same block ({block})")
        self.block = block


class TradeDecodeError(ValueError):
    pass


@dataclass(slots=True, frozen=True)
class ClassificationRule:
    name: str
    predicate: Callable[[str, Any, Any], bool]    # (message, reason, code)
    kind: FailureKind


_TOO_MANY_RE = re.compile(r"query returned more than \d* results")
_CONN_TIMEOUT_RE = re.compile(r"Network connection timed out")


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    # Infura
    ClassificationRule(
        "infura-too-many-results",
        lambda msg, reason, code: _TOO_MANY_RE.search(msg) is not None,
        FailureKind.TOO_MANY_RESULTS,
    ),
    # OpenEthereum
    ClassificationRule(
        "openethereum-timeout",
        lambda msg, reason, code: _CONN_TIMEOUT_RE.search(msg) is not None,
        FailureKind.TIMEOUT,
    ),
    # POA Network xDai node
    ClassificationRule(
        "client-timeout",
        lambda msg, reason, code: msg.startswith("timeout") and reason == "timeout" and code == "TIMEOUT",
        FailureKind.TIMEOUT,
    ),
    ClassificationRule(
        "network-unavailable",
        lambda msg, reason, code: (
            msg.startswith("could not detect network")
            and reason == "could not detect network"
            and code == "NETWORK_ERROR"
        ),
        FailureKind.NETWORK_UNAVAILABLE,
    ),
)


def classify(failure: object, rules: Sequence[ClassificationRule] = DEFAULT_RULES) -> FailureKind:
    """Map a failure to the first matching rule's kind. Never raises."""
    if not isinstance(failure, BaseException):
        return FailureKind.UNRECOGNIZED
    try:
        message = str(failure)
    except Exception:
        return FailureKind.UNRECOGNIZED
    reason = getattr(failure, "reason", None)
    code = getattr(failure, "code", None)
    for rule in rules:
        try:
            if rule.predicate(message, reason, code):
                return rule.kind
        except Exception:
            continue
    return FailureKind.UNRECOGNIZED
