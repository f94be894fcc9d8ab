from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .errors import EngineError
from .interfaces import Capability, Handle, KeyFamily, Module, ReturnValue, Session, rv_name
from .mechanisms import CurveDescriptor

log = logging.getLogger(__name__)

CapabilitySet = Tuple[Capability, ...]

SIGN_VERIFY: Tuple[CapabilitySet, CapabilitySet] = (
    (Capability.VERIFY,),
    (Capability.SIGN,),
)
RECOVER: Tuple[CapabilitySet, CapabilitySet] = (
    (Capability.VERIFY_RECOVER, Capability.ENCRYPT),
    (Capability.SIGN_RECOVER, Capability.DECRYPT),
)


@dataclass
class KeyPairHandle:
    """Keypair owned by a single case.

    ``valid`` is False when the module refused to generate the pair; such a
    handle binds no objects. Used as a context manager, both objects are
    destroyed on exit.
    """

    public_handle: Optional[Handle] = None
    private_handle: Optional[Handle] = None
    valid: bool = False
    rv: int = ReturnValue.OK
    _module: Optional[Module] = None
    _session: Optional[Session] = None

    def release(self) -> None:
        if not self.valid or self._module is None:
            return
        for handle in (self.private_handle, self.public_handle):
            try:
                rv = self._module.destroy_object(self._session, handle)
            except Exception as exc:
                log.warning("destroy_object(%r) raised %s; leaving it to module teardown", handle, exc)
                continue
            if rv != ReturnValue.OK:
                log.warning("destroy_object(%r) returned %s", handle, rv_name(rv))
        self.valid = False
        self.public_handle = None
        self.private_handle = None

    def __enter__(self) -> "KeyPairHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class KeyProvisioner:
    def __init__(self, module: Module) -> None:
        self.module = module

    def provision(
        self,
        session: Session,
        family: str,
        curve: Optional[CurveDescriptor] = None,
        public_caps: Sequence[Capability] = SIGN_VERIFY[0],
        private_caps: Sequence[Capability] = SIGN_VERIFY[1],
    ) -> KeyPairHandle:
        params: Optional[bytes] = None
        if family == KeyFamily.EC:
            if curve is None:
                raise EngineError("EC keypair requested without a curve")
            params = curve.encoded_parameters

        rv, pub, priv = self.module.generate_key_pair(
            session, family, params, tuple(public_caps), tuple(private_caps)
        )
        if rv != ReturnValue.OK or pub is None or priv is None:
            log.debug(
                "keypair generation for %s%s failed: %s",
                family,
                f" ({curve.name})" if curve is not None else "",
                rv_name(rv),
            )
            return KeyPairHandle(valid=False, rv=rv if rv != ReturnValue.OK else ReturnValue.GENERAL_ERROR)
        return KeyPairHandle(
            public_handle=pub,
            private_handle=priv,
            valid=True,
            rv=rv,
            _module=self.module,
            _session=session,
        )
