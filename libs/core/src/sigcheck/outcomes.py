from __future__ import annotations
"""Classification of raw module status codes into case outcomes.

A case ends in exactly one of three states:

* PASS - the module honoured the contract;
* SKIP - the module declined a mechanism, function, or keypair it is not
  required to offer;
* FAIL - the module's behaviour contradicts the contract (wrong direction of
  success/failure, tampered or truncated signature accepted, recovered data
  differs).

``classify`` returns ``None`` for an expected success so the driver can move
on to the next step.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .interfaces import ReturnValue, mechanism_name, rv_name


class OutcomeStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    SKIP = "SKIP"


@dataclass(frozen=True)
class Outcome:
    status: OutcomeStatus
    reason: str = ""

    @classmethod
    def passed(cls) -> "Outcome":
        return cls(OutcomeStatus.PASS)

    @classmethod
    def failed(cls, reason: str) -> "Outcome":
        return cls(OutcomeStatus.FAIL, reason)

    @classmethod
    def skipped(cls, reason: str) -> "Outcome":
        return cls(OutcomeStatus.SKIP, reason)

    @property
    def ok(self) -> bool:
        return self.status is not OutcomeStatus.FAIL

    def __str__(self) -> str:
        return f"{self.status.value}: {self.reason}" if self.reason else self.status.value


class Step(str, Enum):
    KEYGEN = "generate_key_pair"
    SIGN_INIT = "sign_init"
    SIGN = "sign"
    VERIFY_INIT = "verify_init"
    VERIFY = "verify"
    SIGN_RECOVER_INIT = "sign_recover_init"
    SIGN_RECOVER = "sign_recover"
    VERIFY_RECOVER_INIT = "verify_recover_init"
    VERIFY_RECOVER = "verify_recover"

    @property
    def is_init(self) -> bool:
        return self.value.endswith("_init")


def classify(
    step: Step,
    rv: int,
    expected: int = ReturnValue.OK,
    mechanism: Optional[int] = None,
) -> Optional[Outcome]:
    if step.is_init and rv == ReturnValue.MECHANISM_INVALID:
        name = mechanism_name(mechanism) if mechanism is not None else "mechanism"
        return Outcome.skipped(f"{name} not implemented")
    if step is Step.SIGN_RECOVER_INIT and rv == ReturnValue.FUNCTION_NOT_SUPPORTED:
        return Outcome.skipped("sign-recover not supported")
    if rv == expected:
        if expected == ReturnValue.OK:
            return None
        return Outcome.passed()
    return Outcome.failed(f"{step.value}: expected {rv_name(expected)}, got {rv_name(rv)}")


def keypair_unavailable(mechanism: int, rv: Optional[int] = None) -> Outcome:
    detail = f" ({rv_name(rv)})" if rv is not None else ""
    return Outcome.skipped(
        f"keypair generation unsupported for mechanism {mechanism_name(mechanism)}{detail}"
    )


def recovered_mismatch(expected_len: int, recovered_len: int) -> Outcome:
    if expected_len != recovered_len:
        return Outcome.failed(
            f"verify_recover: recovered {recovered_len} bytes, expected {expected_len}"
        )
    return Outcome.failed("verify_recover: recovered data differs from signed input")
