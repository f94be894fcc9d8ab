from __future__ import annotations

from sigcheck.interfaces import Mechanism, ReturnValue, rv_name
from sigcheck.outcomes import (
    Outcome,
    OutcomeStatus,
    Step,
    classify,
    keypair_unavailable,
    recovered_mismatch,
)

RV = ReturnValue


def test_success_where_success_expected_continues():
    assert classify(Step.SIGN, RV.OK) is None
    assert classify(Step.VERIFY_INIT, RV.OK) is None


def test_mechanism_invalid_on_init_is_skip():
    for step in (Step.SIGN_INIT, Step.VERIFY_INIT, Step.SIGN_RECOVER_INIT, Step.VERIFY_RECOVER_INIT):
        outcome = classify(step, RV.MECHANISM_INVALID, mechanism=Mechanism.SHA256_RSA_PKCS)
        assert outcome.status is OutcomeStatus.SKIP
        assert "CKM_SHA256_RSA_PKCS not implemented" in outcome.reason


def test_mechanism_invalid_outside_init_is_fail():
    outcome = classify(Step.SIGN, RV.MECHANISM_INVALID)
    assert outcome.status is OutcomeStatus.FAIL


def test_function_not_supported_only_skips_sign_recover_init():
    skip = classify(Step.SIGN_RECOVER_INIT, RV.FUNCTION_NOT_SUPPORTED)
    assert skip == Outcome.skipped("sign-recover not supported")
    fail = classify(Step.SIGN_INIT, RV.FUNCTION_NOT_SUPPORTED)
    assert fail.status is OutcomeStatus.FAIL


def test_expected_negative_status_passes():
    assert classify(Step.VERIFY, RV.SIGNATURE_INVALID, expected=RV.SIGNATURE_INVALID) == Outcome.passed()
    assert classify(Step.VERIFY, RV.SIGNATURE_LEN_RANGE, expected=RV.SIGNATURE_LEN_RANGE).ok


def test_success_where_rejection_expected_fails_with_detail():
    outcome = classify(Step.VERIFY, RV.OK, expected=RV.SIGNATURE_INVALID)
    assert outcome.status is OutcomeStatus.FAIL
    assert outcome.reason == "verify: expected CKR_SIGNATURE_INVALID, got CKR_OK"


def test_wrong_negative_status_fails():
    outcome = classify(Step.VERIFY, RV.SIGNATURE_INVALID, expected=RV.SIGNATURE_LEN_RANGE)
    assert not outcome.ok


def test_keypair_unavailable_is_skip():
    outcome = keypair_unavailable(Mechanism.ECDSA, RV.TEMPLATE_INCONSISTENT)
    assert outcome.status is OutcomeStatus.SKIP
    assert outcome.reason.startswith("keypair generation unsupported for mechanism CKM_ECDSA")


def test_recovered_mismatch_reports_lengths():
    assert "recovered 63 bytes, expected 64" in recovered_mismatch(64, 63).reason
    assert recovered_mismatch(64, 64).status is OutcomeStatus.FAIL


def test_unknown_codes_render_in_hex():
    assert rv_name(0x1234) == "CKR_0x1234"
    assert str(Outcome.failed("boom")) == "FAIL: boom"
    assert str(Outcome.passed()) == "PASS"
