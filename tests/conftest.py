from __future__ import annotations

import hashlib
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
for rel in ("libs/core/src", "libs/adapters/soft/src", "apps/cli/src"):
    candidate = str(ROOT / rel)
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

from sigcheck.interfaces import Capability, ReturnValue  # noqa: E402

RV = ReturnValue
SIG_LEN = 32


class MockModule:
    """Deterministic stand-in for a token.

    Signatures are SHA-256 over the private handle and the input, so tampering
    and truncation are detected the same way a real module would report them.
    Individual calls can be forced to return a given status code.
    """

    name = "mock"

    def __init__(self) -> None:
        self.forced: Dict[str, int] = {}
        self.raise_on: Optional[str] = None
        self.accept_any_signature = False
        self.corrupt_recovery = False
        self.empty_signature = False
        self.buffer_too_small_once: Optional[str] = None
        self.calls: List[str] = []
        self.destroyed: List[int] = []
        self.sessions_open = 0
        self.sessions_closed = 0
        self.keypairs: List[Tuple[tuple, tuple]] = []
        self.last_verify_signature: bytes = b""
        self._next_handle = 100
        self._objects: Dict[int, int] = {}  # public -> private
        self._active: Dict[str, int] = {}

    def _call(self, name: str) -> Optional[int]:
        self.calls.append(name)
        if self.raise_on == name:
            self.raise_on = None
            raise RuntimeError(f"{name} exploded")
        return self.forced.get(name)

    def _sig(self, key: int, data: bytes) -> bytes:
        return hashlib.sha256(key.to_bytes(4, "big") + data).digest()

    def open_session(self):
        self.sessions_open += 1
        return "session"

    def close_session(self, session) -> int:
        self.sessions_closed += 1
        self._active.clear()
        return RV.OK

    def generate_key_pair(self, session, family, params, public_caps, private_caps):
        forced = self._call("generate_key_pair")
        self.keypairs.append((tuple(public_caps), tuple(private_caps)))
        if forced is not None:
            return forced, None, None
        priv = self._next_handle
        pub = priv + 1
        self._next_handle += 2
        self._objects[pub] = priv
        return RV.OK, pub, priv

    def destroy_object(self, session, handle) -> int:
        self.destroyed.append(handle)
        return RV.OK

    def _init(self, name: str, key) -> int:
        forced = self._call(name)
        if forced is not None:
            return forced
        if name[: -len("_init")] in self._active:
            return RV.OPERATION_ACTIVE
        self._active[name[: -len("_init")]] = key
        return RV.OK

    def sign_init(self, session, mechanism, parameter, key) -> int:
        return self._init("sign_init", key)

    def verify_init(self, session, mechanism, parameter, key) -> int:
        return self._init("verify_init", key)

    def sign_recover_init(self, session, mechanism, parameter, key) -> int:
        return self._init("sign_recover_init", key)

    def verify_recover_init(self, session, mechanism, parameter, key) -> int:
        return self._init("verify_recover_init", key)

    def _short_buffer(self, name: str) -> bool:
        if self.buffer_too_small_once == name:
            self.buffer_too_small_once = None
            return True
        return False

    def sign(self, session, data, buffer_len):
        forced = self._call("sign")
        if self._short_buffer("sign"):
            return RV.BUFFER_TOO_SMALL, b""
        key = self._active.pop("sign")
        if forced is not None:
            return forced, b""
        if self.empty_signature:
            return RV.OK, b""
        return RV.OK, self._sig(key, data)

    def verify(self, session, data, signature) -> int:
        forced = self._call("verify")
        pub = self._active.pop("verify")
        self.last_verify_signature = bytes(signature)
        if forced is not None:
            return forced
        if self.accept_any_signature:
            return RV.OK
        if len(signature) != SIG_LEN:
            return RV.SIGNATURE_LEN_RANGE
        if signature != self._sig(self._objects[pub], data):
            return RV.SIGNATURE_INVALID
        return RV.OK

    def sign_recover(self, session, data, buffer_len):
        forced = self._call("sign_recover")
        if self._short_buffer("sign_recover"):
            return RV.BUFFER_TOO_SMALL, b""
        self._active.pop("sign_recover")
        if forced is not None:
            return forced, b""
        return RV.OK, bytes(reversed(data))

    def verify_recover(self, session, signature, buffer_len):
        forced = self._call("verify_recover")
        self._active.pop("verify_recover")
        if forced is not None:
            return forced, b""
        recovered = bytes(reversed(signature))
        if self.corrupt_recovery:
            recovered = recovered[:-1]
        return RV.OK, recovered


@pytest.fixture
def mock_module() -> MockModule:
    return MockModule()


@pytest.fixture
def recover_caps():
    return (
        (Capability.VERIFY_RECOVER, Capability.ENCRYPT),
        (Capability.SIGN_RECOVER, Capability.DECRYPT),
    )
