from __future__ import annotations
from enum import IntEnum
from typing import Any, Optional, Protocol, Sequence, Tuple

"""Module interface used by the engine.

Backends implement the ``Module`` Protocol and register themselves into the
global registry. The engine talks only to this interface, never to a vendor
library directly. Status codes follow the PKCS#11 ``CKR_*`` numbering so that
real tokens and software stand-ins report the same values.
"""


class ReturnValue(IntEnum):
    OK = 0x00
    GENERAL_ERROR = 0x05
    FUNCTION_FAILED = 0x06
    ARGUMENTS_BAD = 0x07
    DATA_LEN_RANGE = 0x21
    FUNCTION_NOT_SUPPORTED = 0x54
    KEY_HANDLE_INVALID = 0x60
    KEY_TYPE_INCONSISTENT = 0x63
    KEY_FUNCTION_NOT_PERMITTED = 0x68
    MECHANISM_INVALID = 0x70
    MECHANISM_PARAM_INVALID = 0x71
    OBJECT_HANDLE_INVALID = 0x82
    OPERATION_ACTIVE = 0x90
    OPERATION_NOT_INITIALIZED = 0x91
    SESSION_HANDLE_INVALID = 0xB3
    SIGNATURE_INVALID = 0xC0
    SIGNATURE_LEN_RANGE = 0xC1
    TEMPLATE_INCONSISTENT = 0xD1
    BUFFER_TOO_SMALL = 0x150


class Mechanism(IntEnum):
    RSA_PKCS_KEY_PAIR_GEN = 0x0000
    RSA_PKCS = 0x0001
    MD5_RSA_PKCS = 0x0005
    SHA1_RSA_PKCS = 0x0006
    SHA256_RSA_PKCS = 0x0040
    SHA384_RSA_PKCS = 0x0041
    SHA512_RSA_PKCS = 0x0042
    EC_KEY_PAIR_GEN = 0x1040
    ECDSA = 0x1041


class Capability(IntEnum):
    """Key usage attributes (``CKA_*``) a keypair is generated with."""
    ENCRYPT = 0x0104
    DECRYPT = 0x0105
    SIGN = 0x0108
    SIGN_RECOVER = 0x0109
    VERIFY = 0x010A
    VERIFY_RECOVER = 0x010B


class KeyFamily:
    RSA = "RSA"
    EC = "EC"


def rv_name(rv: int) -> str:
    try:
        return f"CKR_{ReturnValue(rv).name}"
    except ValueError:
        return f"CKR_0x{int(rv):X}"


def mechanism_name(mechanism: int) -> str:
    try:
        return f"CKM_{Mechanism(mechanism).name}"
    except ValueError:
        return f"CKM_0x{int(mechanism):X}"


Session = Any
Handle = Any


class Module(Protocol):
    """Signing/verification function group of a cryptographic module.

    Every call except ``open_session`` reports its result as a status code.
    Calls that produce bytes take the caller's buffer size and return
    ``BUFFER_TOO_SMALL`` when the output would not fit.
    """
    name: str
    def open_session(self) -> Session: ...
    def close_session(self, session: Session) -> int: ...
    def generate_key_pair(
        self,
        session: Session,
        family: str,
        params: Optional[bytes],
        public_caps: Sequence[Capability],
        private_caps: Sequence[Capability],
    ) -> Tuple[int, Optional[Handle], Optional[Handle]]: ...
    def destroy_object(self, session: Session, handle: Handle) -> int: ...
    def sign_init(self, session: Session, mechanism: int, parameter: Optional[bytes], key: Handle) -> int: ...
    def sign(self, session: Session, data: bytes, buffer_len: int) -> Tuple[int, bytes]: ...
    def verify_init(self, session: Session, mechanism: int, parameter: Optional[bytes], key: Handle) -> int: ...
    def verify(self, session: Session, data: bytes, signature: bytes) -> int: ...
    def sign_recover_init(self, session: Session, mechanism: int, parameter: Optional[bytes], key: Handle) -> int: ...
    def sign_recover(self, session: Session, data: bytes, buffer_len: int) -> Tuple[int, bytes]: ...
    def verify_recover_init(self, session: Session, mechanism: int, parameter: Optional[bytes], key: Handle) -> int: ...
    def verify_recover(self, session: Session, signature: bytes, buffer_len: int) -> Tuple[int, bytes]: ...
