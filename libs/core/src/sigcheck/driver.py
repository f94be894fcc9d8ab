from __future__ import annotations
import logging
import random
from enum import Enum
from typing import Callable, Optional, Tuple

from .datagen import DataGenerator, TestVector
from .errors import EngineError
from .interfaces import Module, ReturnValue, Session, rv_name
from .keys import RECOVER, SIGN_VERIFY, KeyPairHandle, KeyProvisioner
from .mechanisms import CurveDescriptor, MechanismDescriptor
from .outcomes import Outcome, Step, classify, keypair_unavailable, recovered_mismatch

log = logging.getLogger(__name__)

SIGNATURE_BUFFER_LEN = 1024
RECOVER_BUFFER_LEN = 2048
DRAIN_BUFFER_LEN = 1 << 16
SHORT_SIGNATURE_LEN = 4
RECOVER_INPUT_LEN = 64

TAMPER_FIRST = "first"
TAMPER_RANDOM = "random"
TAMPER_MODES = (TAMPER_FIRST, TAMPER_RANDOM)


class Scenario(str, Enum):
    SIGN_VERIFY = "SignVerify"
    SIGN_FAIL_VERIFY_WRONG = "SignFailVerifyWrong"
    SIGN_FAIL_VERIFY_SHORT = "SignFailVerifyShort"
    SIGN_VERIFY_RECOVER = "SignVerifyRecover"


class _Stop(Exception):
    """Carries a terminal outcome out of a scenario body."""

    def __init__(self, outcome: Outcome) -> None:
        super().__init__(str(outcome))
        self.outcome = outcome


def _check(step: Step, rv: int, mechanism: int, expected: int = ReturnValue.OK) -> None:
    outcome = classify(step, rv, expected=expected, mechanism=mechanism)
    if outcome is not None:
        raise _Stop(outcome)


class SignVerifyDriver:
    """Runs one scenario against a module for one mechanism.

    Every call to ``run`` provisions its own keypair and opens exactly one
    signing and one verification context on the shared session, so cases
    never see each other's state. Keys are destroyed before ``run`` returns.
    """

    def __init__(
        self,
        module: Module,
        session: Session,
        provisioner: Optional[KeyProvisioner] = None,
        generator: Optional[DataGenerator] = None,
        tamper: str = TAMPER_RANDOM,
        rng: Optional[random.Random] = None,
    ) -> None:
        if tamper not in TAMPER_MODES:
            raise EngineError(f"tamper mode must be one of {TAMPER_MODES}, got {tamper!r}")
        self.module = module
        self.session = session
        self.provisioner = provisioner or KeyProvisioner(module)
        self.generator = generator or DataGenerator(rng)
        self.tamper = tamper
        self.rng = rng if rng is not None else self.generator.rng

    def run(
        self,
        scenario: Scenario,
        descriptor: MechanismDescriptor,
        curve: Optional[CurveDescriptor] = None,
    ) -> Outcome:
        if descriptor.is_ec and curve is None:
            raise EngineError(f"mechanism {descriptor.name} needs a curve")
        caps = RECOVER if scenario is Scenario.SIGN_VERIFY_RECOVER else SIGN_VERIFY
        keypair = self.provisioner.provision(
            self.session,
            descriptor.key_family,
            curve if descriptor.is_ec else None,
            public_caps=caps[0],
            private_caps=caps[1],
        )
        if not keypair.valid:
            return keypair_unavailable(descriptor.algorithm_id, keypair.rv)

        with keypair:
            try:
                if scenario is Scenario.SIGN_VERIFY_RECOVER:
                    return self._sign_verify_recover(descriptor, keypair)
                return self._sign_then_verify(scenario, descriptor, keypair)
            except _Stop as stop:
                return stop.outcome

    # -- scenarios -----------------------------------------------------------

    def _produce(self, step: Step, call: Callable, data: bytes, buffer_len: int, mechanism: int) -> bytes:
        rv, out = call(self.session, data, buffer_len)
        if rv == ReturnValue.BUFFER_TOO_SMALL:
            # The operation stays active after a short buffer; finish it so the
            # session is clean for the next case.
            drain_rv, _ = call(self.session, data, DRAIN_BUFFER_LEN)
            log.debug("%s drained after short buffer: %s", step.value, rv_name(drain_rv))
        _check(step, rv, mechanism)
        return bytes(out)

    def _sign(self, descriptor: MechanismDescriptor, keypair: KeyPairHandle, data: TestVector) -> bytes:
        mech = descriptor.algorithm_id
        _check(Step.SIGN_INIT, self.module.sign_init(self.session, mech, None, keypair.private_handle), mech)
        return self._produce(Step.SIGN, self.module.sign, data.data, SIGNATURE_BUFFER_LEN, mech)

    def _sign_then_verify(
        self,
        scenario: Scenario,
        descriptor: MechanismDescriptor,
        keypair: KeyPairHandle,
    ) -> Outcome:
        mech = descriptor.algorithm_id
        data = self.generator.generate(descriptor)
        signature = self._sign(descriptor, keypair, data)

        if scenario is not Scenario.SIGN_VERIFY and not signature:
            return Outcome.failed("sign: produced an empty signature")

        expected: int = ReturnValue.OK
        if scenario is Scenario.SIGN_FAIL_VERIFY_WRONG:
            signature, pos = self._corrupt(signature)
            log.debug("%s: corrupted signature byte %d of %d", descriptor.name, pos, len(signature))
            expected = ReturnValue.SIGNATURE_INVALID
        elif scenario is Scenario.SIGN_FAIL_VERIFY_SHORT:
            # The true input is still supplied; only the signature is cut.
            signature = signature[:SHORT_SIGNATURE_LEN]
            expected = ReturnValue.SIGNATURE_LEN_RANGE

        _check(Step.VERIFY_INIT, self.module.verify_init(self.session, mech, None, keypair.public_handle), mech)
        rv = self.module.verify(self.session, data.data, signature)
        outcome = classify(Step.VERIFY, rv, expected=expected, mechanism=mech)
        return outcome if outcome is not None else Outcome.passed()

    def _sign_verify_recover(self, descriptor: MechanismDescriptor, keypair: KeyPairHandle) -> Outcome:
        mech = descriptor.algorithm_id
        data = self.generator.fixed(RECOVER_INPUT_LEN)

        _check(
            Step.SIGN_RECOVER_INIT,
            self.module.sign_recover_init(self.session, mech, None, keypair.private_handle),
            mech,
        )
        signature = self._produce(Step.SIGN_RECOVER, self.module.sign_recover, data.data, RECOVER_BUFFER_LEN, mech)
        log.debug(
            "sign_recover on %d bytes produced %d bytes: %s",
            data.length,
            len(signature),
            bytes(signature).hex(),
        )

        _check(
            Step.VERIFY_RECOVER_INIT,
            self.module.verify_recover_init(self.session, mech, None, keypair.public_handle),
            mech,
        )
        recovered = self._produce(Step.VERIFY_RECOVER, self.module.verify_recover, signature, RECOVER_BUFFER_LEN, mech)
        if recovered != data.data:
            return recovered_mismatch(data.length, len(recovered))
        return Outcome.passed()

    def _corrupt(self, signature: bytes) -> Tuple[bytes, int]:
        pos = 0 if self.tamper == TAMPER_FIRST else self.rng.randrange(len(signature))
        buf = bytearray(signature)
        buf[pos] = (buf[pos] + 1) & 0xFF
        return bytes(buf), pos
