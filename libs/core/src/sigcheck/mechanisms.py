from __future__ import annotations
"""Signature mechanisms and named curves exercised by the engine.

Each row is a descriptor the test matrix iterates over; supporting another
algorithm means adding a row here, not new control flow. Lookups by an
unknown name are engine bugs and raise instead of producing a skip.
"""
from dataclasses import dataclass, asdict
from typing import Dict, Any, List

from .errors import UnknownCurveError, UnknownMechanismError
from .interfaces import KeyFamily, Mechanism


@dataclass(frozen=True)
class MechanismDescriptor:
    name: str
    algorithm_id: Mechanism
    max_input_length: int
    requires_pre_hash: bool = False
    key_family: str = KeyFamily.RSA

    @property
    def is_ec(self) -> bool:
        return self.key_family == KeyFamily.EC

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["algorithm_id"] = self.algorithm_id.name
        return d


@dataclass(frozen=True)
class CurveDescriptor:
    name: str
    encoded_parameters: bytes  # DER ECParameters, namedCurve choice


_MECHANISMS: Dict[str, MechanismDescriptor] = {}
_CURVES: Dict[str, CurveDescriptor] = {}


def _add(name: str, alg: Mechanism, max_data: int, pre_hash: bool = False, family: str = KeyFamily.RSA) -> None:
    _MECHANISMS[name] = MechanismDescriptor(
        name=name,
        algorithm_id=alg,
        max_input_length=max_data,
        requires_pre_hash=pre_hash,
        key_family=family,
    )


def _add_curve(name: str, der_hex: str) -> None:
    _CURVES[name] = CurveDescriptor(name=name, encoded_parameters=bytes.fromhex(der_hex))


# Raw PKCS#1 v1.5 input must leave room for 11 bytes of padding in the
# smallest modulus a module is expected to offer.
_add("RSA", Mechanism.RSA_PKCS, 62)
_add("MD5-RSA", Mechanism.MD5_RSA_PKCS, 1024)
_add("SHA1-RSA", Mechanism.SHA1_RSA_PKCS, 1024)
_add("SHA256-RSA", Mechanism.SHA256_RSA_PKCS, 1024)
_add("SHA384-RSA", Mechanism.SHA384_RSA_PKCS, 1024)
_add("SHA512-RSA", Mechanism.SHA512_RSA_PKCS, 1024)
# Raw ECDSA signs a digest, never the message.
_add("ECDSA", Mechanism.ECDSA, 1024, pre_hash=True, family=KeyFamily.EC)

# OBJECT IDENTIFIER encodings of the named curves
_add_curve("NIST-SECP192R1", "06082a8648ce3d030101")
_add_curve("NIST-SECP224R1", "06052b81040021")
_add_curve("NIST-SECP256R1", "06082a8648ce3d030107")
_add_curve("NIST-SECP384R1", "06052b81040022")
_add_curve("NIST-SECP521R1", "06052b81040023")

RECOVER_MECHANISM = "RSA"


def get_mechanism(name: str) -> MechanismDescriptor:
    try:
        return _MECHANISMS[name]
    except KeyError:
        raise UnknownMechanismError(name) from None


def get_curve(name: str) -> CurveDescriptor:
    try:
        return _CURVES[name]
    except KeyError:
        raise UnknownCurveError(name) from None


def mechanism_names() -> List[str]:
    return list(_MECHANISMS)


def curve_names() -> List[str]:
    return list(_CURVES)


def list_mechanisms() -> List[MechanismDescriptor]:
    return list(_MECHANISMS.values())


def list_curves() -> List[CurveDescriptor]:
    return list(_CURVES.values())
