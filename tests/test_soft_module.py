from __future__ import annotations

import random

import pytest

from sigcheck.config import EngineConfig
from sigcheck.driver import Scenario, SignVerifyDriver, TAMPER_FIRST
from sigcheck.interfaces import Capability, KeyFamily, Mechanism, ReturnValue
from sigcheck.keys import KeyProvisioner, RECOVER
from sigcheck.matrix import TestMatrix, enumerate_cases
from sigcheck.mechanisms import get_curve, get_mechanism
from sigcheck.outcomes import OutcomeStatus
from sigcheck_soft import SoftModule

from cryptography.hazmat.primitives.asymmetric import padding

RV = ReturnValue


@pytest.fixture(scope="module")
def soft() -> SoftModule:
    # Small keys keep the suite fast; raw PKCS#1 input (62 bytes) still fits.
    return SoftModule(rsa_bits=1024)


@pytest.fixture
def driver_for(soft):
    def _make(tamper=TAMPER_FIRST, seed=0):
        rng = random.Random(seed)
        return SignVerifyDriver(soft, soft.open_session(), tamper=tamper, rng=rng)
    return _make


def test_sha256_rsa_round_trip(driver_for):
    outcome = driver_for().run(Scenario.SIGN_VERIFY, get_mechanism("SHA256-RSA"))
    assert outcome.status is OutcomeStatus.PASS, outcome.reason


def test_sha256_rsa_first_byte_corruption_rejected(driver_for):
    outcome = driver_for(tamper=TAMPER_FIRST).run(Scenario.SIGN_FAIL_VERIFY_WRONG, get_mechanism("SHA256-RSA"))
    assert outcome.status is OutcomeStatus.PASS, outcome.reason


def test_sha256_rsa_random_corruption_rejected(driver_for):
    for seed in range(3):
        outcome = driver_for(tamper="random", seed=seed).run(
            Scenario.SIGN_FAIL_VERIFY_WRONG, get_mechanism("SHA256-RSA")
        )
        assert outcome.status is OutcomeStatus.PASS, outcome.reason


def test_sha256_rsa_short_signature_length_range(driver_for):
    outcome = driver_for().run(Scenario.SIGN_FAIL_VERIFY_SHORT, get_mechanism("SHA256-RSA"))
    assert outcome.status is OutcomeStatus.PASS, outcome.reason


@pytest.mark.parametrize(
    "scenario",
    [Scenario.SIGN_VERIFY, Scenario.SIGN_FAIL_VERIFY_WRONG, Scenario.SIGN_FAIL_VERIFY_SHORT],
)
def test_ecdsa_p256_over_sha512_digest(driver_for, scenario):
    outcome = driver_for(seed=4).run(scenario, get_mechanism("ECDSA"), get_curve("NIST-SECP256R1"))
    assert outcome.status is OutcomeStatus.PASS, outcome.reason


def test_raw_rsa_sign_recover_returns_input(driver_for):
    outcome = driver_for().run(Scenario.SIGN_VERIFY_RECOVER, get_mechanism("RSA"))
    assert outcome.status is OutcomeStatus.PASS, outcome.reason


def test_raw_rsa_round_trip(driver_for):
    for seed in range(3):
        outcome = driver_for(seed=seed).run(Scenario.SIGN_VERIFY, get_mechanism("RSA"))
        assert outcome.status is OutcomeStatus.PASS, outcome.reason


def test_recover_is_rsa_only(soft):
    session = soft.open_session()
    rv, pub, priv = soft.generate_key_pair(
        session, KeyFamily.EC, get_curve("NIST-SECP256R1").encoded_parameters, RECOVER[0], RECOVER[1]
    )
    assert rv == RV.TEMPLATE_INCONSISTENT
    assert pub is None and priv is None


def test_unknown_curve_parameters_skip(soft):
    session = soft.open_session()
    keypair = KeyProvisioner(soft).provision(session, KeyFamily.EC, get_curve("NIST-SECP256R1"))
    assert keypair.valid
    keypair.release()
    rv, _, _ = soft.generate_key_pair(session, KeyFamily.EC, b"\x06\x01\x00", (Capability.VERIFY,), (Capability.SIGN,))
    assert rv == RV.TEMPLATE_INCONSISTENT


def test_key_usage_is_enforced(soft):
    session = soft.open_session()
    rv, pub, priv = soft.generate_key_pair(session, KeyFamily.RSA, None, (Capability.VERIFY,), (Capability.SIGN,))
    assert rv == RV.OK
    assert soft.sign_recover_init(session, Mechanism.RSA_PKCS, None, priv) == RV.KEY_FUNCTION_NOT_PERMITTED
    assert soft.sign_init(session, Mechanism.SHA256_RSA_PKCS, None, pub) == RV.KEY_TYPE_INCONSISTENT
    assert soft.sign_init(session, Mechanism.ECDSA, None, priv) == RV.KEY_TYPE_INCONSISTENT
    assert soft.sign_init(session, 0x7FFF, None, priv) == RV.MECHANISM_INVALID


def test_contexts_are_single_use(soft):
    session = soft.open_session()
    _, pub, priv = soft.generate_key_pair(session, KeyFamily.RSA, None, (Capability.VERIFY,), (Capability.SIGN,))
    assert soft.sign(session, b"data", 1024)[0] == RV.OPERATION_NOT_INITIALIZED
    assert soft.sign_init(session, Mechanism.SHA256_RSA_PKCS, None, priv) == RV.OK
    assert soft.sign_init(session, Mechanism.SHA256_RSA_PKCS, None, priv) == RV.OPERATION_ACTIVE
    rv, sig = soft.sign(session, b"data", 1024)
    assert rv == RV.OK and len(sig) == 128
    assert soft.sign(session, b"data", 1024)[0] == RV.OPERATION_NOT_INITIALIZED


def test_small_buffer_keeps_operation_active(soft):
    session = soft.open_session()
    _, _, priv = soft.generate_key_pair(session, KeyFamily.RSA, None, (Capability.VERIFY,), (Capability.SIGN,))
    soft.sign_init(session, Mechanism.SHA1_RSA_PKCS, None, priv)
    assert soft.sign(session, b"x", 16) == (RV.BUFFER_TOO_SMALL, b"")
    rv, sig = soft.sign(session, b"x", 1024)
    assert rv == RV.OK and len(sig) == 128


def test_raw_rsa_input_too_long(soft):
    session = soft.open_session()
    _, _, priv = soft.generate_key_pair(session, KeyFamily.RSA, None, (Capability.VERIFY,), (Capability.SIGN,))
    soft.sign_init(session, Mechanism.RSA_PKCS, None, priv)
    assert soft.sign(session, b"\x01" * 118, 1024)[0] == RV.DATA_LEN_RANGE


def test_destroyed_keys_are_gone(soft):
    session = soft.open_session()
    with KeyProvisioner(soft).provision(session, KeyFamily.RSA) as keypair:
        priv = keypair.private_handle
        assert keypair.valid
    assert soft.destroy_object(session, priv) == RV.OBJECT_HANDLE_INVALID
    assert soft.close_session(session) == RV.OK
    assert soft.close_session(session) == RV.SESSION_HANDLE_INVALID


def test_matrix_against_soft_module(soft):
    cases = enumerate_cases(["SHA256-RSA", "SHA512-RSA", "RSA", "ECDSA"], ["NIST-SECP256R1", "NIST-SECP384R1"])
    result = TestMatrix(soft, EngineConfig(seed=3)).run(cases)
    assert not result.failed, [(r.case.case_id, r.outcome.reason) for r in result.failed]
    assert result.exit_code == 0
    assert len(result.passed) == len(cases)


def _recover_keypair(soft, session):
    rv, pub, priv = soft.generate_key_pair(session, KeyFamily.RSA, None, RECOVER[0], RECOVER[1])
    assert rv == RV.OK
    return pub, priv


def test_sign_recover_output_is_standard_pkcs1(soft):
    session = soft.open_session()
    pub, priv = _recover_keypair(soft, session)
    data = bytes(range(64))
    assert soft.sign_recover_init(session, Mechanism.RSA_PKCS, None, priv) == RV.OK
    rv, sig = soft.sign_recover(session, data, 2048)
    assert rv == RV.OK
    public_key = soft._sessions[session].objects[pub].key
    assert public_key.recover_data_from_signature(sig, padding.PKCS1v15(), None) == data


def test_verify_recover_rejects_tampered_signature(soft):
    session = soft.open_session()
    pub, priv = _recover_keypair(soft, session)
    soft.sign_recover_init(session, Mechanism.RSA_PKCS, None, priv)
    _, sig = soft.sign_recover(session, b"\x42" * 64, 2048)
    tampered = sig[:-1] + bytes([(sig[-1] + 1) & 0xFF])

    assert soft.verify_recover_init(session, Mechanism.RSA_PKCS, None, pub) == RV.OK
    assert soft.verify_recover(session, tampered, 2048) == (RV.SIGNATURE_INVALID, b"")
    assert soft.verify_recover_init(session, Mechanism.RSA_PKCS, None, pub) == RV.OK
    assert soft.verify_recover(session, sig[:4], 2048) == (RV.SIGNATURE_LEN_RANGE, b"")


def test_raw_rsa_verify_rejects_tampered_signature(soft):
    session = soft.open_session()
    pub, priv = soft.generate_key_pair(session, KeyFamily.RSA, None, (Capability.VERIFY,), (Capability.SIGN,))[1:]
    soft.sign_init(session, Mechanism.RSA_PKCS, None, priv)
    _, sig = soft.sign(session, b"payload", 1024)
    soft.verify_init(session, Mechanism.RSA_PKCS, None, pub)
    assert soft.verify(session, b"payload", sig[:-1] + bytes([(sig[-1] + 1) & 0xFF])) == RV.SIGNATURE_INVALID
    soft.verify_init(session, Mechanism.RSA_PKCS, None, pub)
    assert soft.verify(session, b"other", sig) == RV.SIGNATURE_INVALID
    soft.verify_init(session, Mechanism.RSA_PKCS, None, pub)
    assert soft.verify(session, b"payload", sig) == RV.OK
