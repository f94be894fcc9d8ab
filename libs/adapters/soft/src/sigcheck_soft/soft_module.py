from __future__ import annotations
import itertools
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from sigcheck import registry
from sigcheck.interfaces import Capability, KeyFamily, Mechanism, ReturnValue

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.backends import default_backend

RV = ReturnValue

_HASHED_RSA = {
    Mechanism.MD5_RSA_PKCS: hashes.MD5,
    Mechanism.SHA1_RSA_PKCS: hashes.SHA1,
    Mechanism.SHA256_RSA_PKCS: hashes.SHA256,
    Mechanism.SHA384_RSA_PKCS: hashes.SHA384,
    Mechanism.SHA512_RSA_PKCS: hashes.SHA512,
}

# Raw ECDSA input is a digest; its length picks the hash it claims to be.
_DIGEST_BY_LEN = {
    20: hashes.SHA1,
    28: hashes.SHA224,
    32: hashes.SHA256,
    48: hashes.SHA384,
    64: hashes.SHA512,
}

_CURVES_BY_DER = {
    bytes.fromhex("06082a8648ce3d030101"): ec.SECP192R1,
    bytes.fromhex("06052b81040021"): ec.SECP224R1,
    bytes.fromhex("06082a8648ce3d030107"): ec.SECP256R1,
    bytes.fromhex("06052b81040022"): ec.SECP384R1,
    bytes.fromhex("06052b81040023"): ec.SECP521R1,
}

_RSA_ONLY_CAPS = {
    Capability.ENCRYPT,
    Capability.DECRYPT,
    Capability.SIGN_RECOVER,
    Capability.VERIFY_RECOVER,
}

_PKCS1_OVERHEAD = 11

SIGN, VERIFY, SIGN_RECOVER, VERIFY_RECOVER = "sign", "verify", "sign_recover", "verify_recover"

_REQUIRED_CAP = {
    SIGN: Capability.SIGN,
    VERIFY: Capability.VERIFY,
    SIGN_RECOVER: Capability.SIGN_RECOVER,
    VERIFY_RECOVER: Capability.VERIFY_RECOVER,
}


def _rsa_bits() -> int:
    override = os.getenv("SIGCHECK_RSA_BITS")
    if override:
        try:
            return int(override)
        except ValueError as exc:
            raise ValueError("SIGCHECK_RSA_BITS must be an integer") from exc
    return 2048


def _hash_supported(hash_cls) -> bool:
    try:
        hashes.Hash(hash_cls(), backend=default_backend())
    except UnsupportedAlgorithm:
        return False
    return True


def _i2osp(value: int, length: int) -> bytes:
    return value.to_bytes(length, "big")


def _os2ip(data: bytes) -> int:
    return int.from_bytes(data, "big")


@dataclass
class _KeyObject:
    family: str
    key: object  # cryptography private or public key
    private: bool
    caps: frozenset

    @property
    def rsa_modulus_len(self) -> int:
        return (self.key.key_size + 7) // 8

    @property
    def ec_coord_len(self) -> int:
        return (self.key.curve.key_size + 7) // 8


@dataclass
class _Operation:
    mechanism: Mechanism
    key: _KeyObject


@dataclass
class _SessionState:
    objects: Dict[int, _KeyObject] = field(default_factory=dict)
    active: Dict[str, _Operation] = field(default_factory=dict)


@registry.register("soft")
class SoftModule:
    """In-process module backed by the ``cryptography`` package.

    Implements the signing and verification function group for RSA PKCS#1
    v1.5 (raw and hashed) and raw ECDSA over NIST curves, with PKCS#11-style
    status codes, single-use operation contexts and key usage checks. Serves
    as the reference module for the engine's own test-suite.
    """
    name = "soft"

    def __init__(self, rsa_bits: Optional[int] = None) -> None:
        self._bits = rsa_bits or _rsa_bits()
        self._sessions: Dict[int, _SessionState] = {}
        self._session_ids = itertools.count(1)
        self._handle_ids = itertools.count(1)

    # -- sessions and objects -----------------------------------------------

    def open_session(self) -> int:
        sid = next(self._session_ids)
        self._sessions[sid] = _SessionState()
        return sid

    def close_session(self, session: int) -> int:
        if self._sessions.pop(session, None) is None:
            return RV.SESSION_HANDLE_INVALID
        return RV.OK

    def generate_key_pair(
        self,
        session: int,
        family: str,
        params: Optional[bytes],
        public_caps: Sequence[Capability],
        private_caps: Sequence[Capability],
    ) -> Tuple[int, Optional[int], Optional[int]]:
        state = self._sessions.get(session)
        if state is None:
            return RV.SESSION_HANDLE_INVALID, None, None
        if family == KeyFamily.RSA:
            try:
                private_key = rsa.generate_private_key(
                    public_exponent=65537, key_size=self._bits, backend=default_backend()
                )
            except (UnsupportedAlgorithm, ValueError):
                return RV.FUNCTION_FAILED, None, None
        elif family == KeyFamily.EC:
            if _RSA_ONLY_CAPS.intersection(public_caps) or _RSA_ONLY_CAPS.intersection(private_caps):
                return RV.TEMPLATE_INCONSISTENT, None, None
            curve_cls = _CURVES_BY_DER.get(bytes(params or b""))
            if curve_cls is None:
                return RV.TEMPLATE_INCONSISTENT, None, None
            try:
                private_key = ec.generate_private_key(curve_cls(), backend=default_backend())
            except (UnsupportedAlgorithm, ValueError):
                return RV.FUNCTION_FAILED, None, None
        else:
            return RV.MECHANISM_INVALID, None, None

        pub_handle = next(self._handle_ids)
        priv_handle = next(self._handle_ids)
        state.objects[pub_handle] = _KeyObject(family, private_key.public_key(), False, frozenset(public_caps))
        state.objects[priv_handle] = _KeyObject(family, private_key, True, frozenset(private_caps))
        return RV.OK, pub_handle, priv_handle

    def destroy_object(self, session: int, handle: int) -> int:
        state = self._sessions.get(session)
        if state is None:
            return RV.SESSION_HANDLE_INVALID
        if state.objects.pop(handle, None) is None:
            return RV.OBJECT_HANDLE_INVALID
        return RV.OK

    # -- operation contexts -------------------------------------------------

    def _init(self, session: int, kind: str, mechanism: int, parameter: Optional[bytes], handle: int) -> int:
        state = self._sessions.get(session)
        if state is None:
            return RV.SESSION_HANDLE_INVALID
        if kind in state.active:
            return RV.OPERATION_ACTIVE
        try:
            mech = Mechanism(mechanism)
        except ValueError:
            return RV.MECHANISM_INVALID
        if mech in (Mechanism.RSA_PKCS_KEY_PAIR_GEN, Mechanism.EC_KEY_PAIR_GEN):
            return RV.MECHANISM_INVALID
        if kind in (SIGN_RECOVER, VERIFY_RECOVER) and mech is not Mechanism.RSA_PKCS:
            return RV.MECHANISM_INVALID
        if mech in _HASHED_RSA and not _hash_supported(_HASHED_RSA[mech]):
            return RV.MECHANISM_INVALID
        if parameter:
            return RV.MECHANISM_PARAM_INVALID
        key = state.objects.get(handle)
        if key is None:
            return RV.KEY_HANDLE_INVALID
        wants_private = kind in (SIGN, SIGN_RECOVER)
        expected_family = KeyFamily.EC if mech is Mechanism.ECDSA else KeyFamily.RSA
        if key.family != expected_family or key.private != wants_private:
            return RV.KEY_TYPE_INCONSISTENT
        if _REQUIRED_CAP[kind] not in key.caps:
            return RV.KEY_FUNCTION_NOT_PERMITTED
        state.active[kind] = _Operation(mech, key)
        return RV.OK

    def _take(self, session: int, kind: str) -> Tuple[int, Optional[_Operation]]:
        state = self._sessions.get(session)
        if state is None:
            return RV.SESSION_HANDLE_INVALID, None
        op = state.active.pop(kind, None)
        if op is None:
            return RV.OPERATION_NOT_INITIALIZED, None
        return RV.OK, op

    def _restore(self, session: int, kind: str, op: _Operation) -> None:
        # A short output buffer leaves the operation active for a retry.
        self._sessions[session].active[kind] = op

    def sign_init(self, session: int, mechanism: int, parameter: Optional[bytes], key: int) -> int:
        return self._init(session, SIGN, mechanism, parameter, key)

    def verify_init(self, session: int, mechanism: int, parameter: Optional[bytes], key: int) -> int:
        return self._init(session, VERIFY, mechanism, parameter, key)

    def sign_recover_init(self, session: int, mechanism: int, parameter: Optional[bytes], key: int) -> int:
        return self._init(session, SIGN_RECOVER, mechanism, parameter, key)

    def verify_recover_init(self, session: int, mechanism: int, parameter: Optional[bytes], key: int) -> int:
        return self._init(session, VERIFY_RECOVER, mechanism, parameter, key)

    # -- single-part operations ---------------------------------------------

    def sign(self, session: int, data: bytes, buffer_len: int) -> Tuple[int, bytes]:
        return self._produce(session, SIGN, data, buffer_len)

    def sign_recover(self, session: int, data: bytes, buffer_len: int) -> Tuple[int, bytes]:
        return self._produce(session, SIGN_RECOVER, data, buffer_len)

    def _produce(self, session: int, kind: str, data: bytes, buffer_len: int) -> Tuple[int, bytes]:
        rv, op = self._take(session, kind)
        if op is None:
            return rv, b""
        rv, out = self._sign_with(op, bytes(data))
        if rv == RV.OK and len(out) > buffer_len:
            self._restore(session, kind, op)
            return RV.BUFFER_TOO_SMALL, b""
        return rv, out

    def verify(self, session: int, data: bytes, signature: bytes) -> int:
        rv, op = self._take(session, VERIFY)
        if op is None:
            return rv
        return self._verify_with(op, bytes(data), bytes(signature))

    def verify_recover(self, session: int, signature: bytes, buffer_len: int) -> Tuple[int, bytes]:
        rv, op = self._take(session, VERIFY_RECOVER)
        if op is None:
            return rv, b""
        rv, recovered = self._rsa_raw_open(op.key, bytes(signature))
        if rv == RV.OK and len(recovered) > buffer_len:
            self._restore(session, VERIFY_RECOVER, op)
            return RV.BUFFER_TOO_SMALL, b""
        return rv, recovered

    # -- primitives ---------------------------------------------------------

    def _sign_with(self, op: _Operation, data: bytes) -> Tuple[int, bytes]:
        key = op.key
        if op.mechanism is Mechanism.RSA_PKCS:
            return self._rsa_raw_seal(key, data)
        if op.mechanism in _HASHED_RSA:
            try:
                sig = key.key.sign(data, padding.PKCS1v15(), _HASHED_RSA[op.mechanism]())
            except (UnsupportedAlgorithm, ValueError):
                return RV.FUNCTION_FAILED, b""
            return RV.OK, sig
        # ECDSA
        hash_cls = _DIGEST_BY_LEN.get(len(data))
        if hash_cls is None:
            return RV.DATA_LEN_RANGE, b""
        der = key.key.sign(data, ec.ECDSA(Prehashed(hash_cls())))
        r, s = decode_dss_signature(der)
        n = key.ec_coord_len
        return RV.OK, _i2osp(r, n) + _i2osp(s, n)

    def _verify_with(self, op: _Operation, data: bytes, signature: bytes) -> int:
        key = op.key
        if op.mechanism is Mechanism.RSA_PKCS:
            rv, recovered = self._rsa_raw_open(key, signature)
            if rv != RV.OK:
                return rv
            return RV.OK if recovered == data else RV.SIGNATURE_INVALID
        if op.mechanism in _HASHED_RSA:
            if len(signature) != key.rsa_modulus_len:
                return RV.SIGNATURE_LEN_RANGE
            try:
                key.key.verify(signature, data, padding.PKCS1v15(), _HASHED_RSA[op.mechanism]())
            except InvalidSignature:
                return RV.SIGNATURE_INVALID
            return RV.OK
        n = key.ec_coord_len
        if len(signature) != 2 * n:
            return RV.SIGNATURE_LEN_RANGE
        hash_cls = _DIGEST_BY_LEN.get(len(data))
        if hash_cls is None:
            return RV.DATA_LEN_RANGE
        r, s = _os2ip(signature[:n]), _os2ip(signature[n:])
        try:
            key.key.verify(encode_dss_signature(r, s), data, ec.ECDSA(Prehashed(hash_cls())))
        except InvalidSignature:
            return RV.SIGNATURE_INVALID
        return RV.OK

    def _rsa_raw_seal(self, key: _KeyObject, data: bytes) -> Tuple[int, bytes]:
        """PKCS#1 v1.5 block type 1 formatting followed by the private operation."""
        k = key.rsa_modulus_len
        if len(data) > k - _PKCS1_OVERHEAD:
            return RV.DATA_LEN_RANGE, b""
        block = b"\x00\x01" + b"\xff" * (k - 3 - len(data)) + b"\x00" + data
        numbers = key.key.private_numbers()
        s = pow(_os2ip(block), numbers.d, numbers.public_numbers.n)
        return RV.OK, _i2osp(s, k)

    def _rsa_raw_open(self, key: _KeyObject, signature: bytes) -> Tuple[int, bytes]:
        k = key.rsa_modulus_len
        if len(signature) != k:
            return RV.SIGNATURE_LEN_RANGE, b""
        try:
            recovered = key.key.recover_data_from_signature(signature, padding.PKCS1v15(), None)
        except InvalidSignature:
            return RV.SIGNATURE_INVALID, b""
        return RV.OK, recovered
