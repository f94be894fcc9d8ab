from __future__ import annotations
"""The mechanism x scenario test matrix.

Cases are enumerated from the registries, executed one after another on a
single module session (replaced only after the module raises), and
collected into a ``MatrixResult`` that reporters consume. A failing case
never stops the run; engine errors do.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import EngineConfig
from .datagen import DataGenerator
from .driver import Scenario, SignVerifyDriver
from .errors import EngineError, ModuleError
from .interfaces import Module, ReturnValue, rv_name
from .keys import KeyProvisioner
from .mechanisms import (
    RECOVER_MECHANISM,
    CurveDescriptor,
    MechanismDescriptor,
    curve_names,
    get_curve,
    get_mechanism,
    mechanism_names,
)
from .outcomes import Outcome, OutcomeStatus

log = logging.getLogger(__name__)

SIGN_SCENARIOS = (
    Scenario.SIGN_VERIFY,
    Scenario.SIGN_FAIL_VERIFY_WRONG,
    Scenario.SIGN_FAIL_VERIFY_SHORT,
)


@dataclass(frozen=True)
class Case:
    mechanism: MechanismDescriptor
    scenario: Scenario
    curve: Optional[CurveDescriptor] = None

    @property
    def case_id(self) -> str:
        parts = [self.mechanism.name]
        if self.curve is not None:
            parts.append(self.curve.name)
        parts.append(self.scenario.value)
        return "/".join(parts)


@dataclass
class CaseResult:
    case: Case
    outcome: Outcome
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case": self.case.case_id,
            "mechanism": self.case.mechanism.name,
            "curve": self.case.curve.name if self.case.curve else None,
            "scenario": self.case.scenario.value,
            "status": self.outcome.status.value,
            "reason": self.outcome.reason,
            "duration_ms": round(self.duration_ms, 3),
        }


@dataclass
class MatrixResult:
    results: List[CaseResult] = field(default_factory=list)
    module: str = ""

    def _with(self, status: OutcomeStatus) -> List[CaseResult]:
        return [r for r in self.results if r.outcome.status is status]

    @property
    def passed(self) -> List[CaseResult]:
        return self._with(OutcomeStatus.PASS)

    @property
    def failed(self) -> List[CaseResult]:
        return self._with(OutcomeStatus.FAIL)

    @property
    def skipped(self) -> List[CaseResult]:
        return self._with(OutcomeStatus.SKIP)

    def counts(self) -> Dict[str, int]:
        return {s.value: len(self._with(s)) for s in OutcomeStatus}

    def by_mechanism(self) -> Dict[str, List[CaseResult]]:
        grouped: Dict[str, List[CaseResult]] = {}
        for r in self.results:
            grouped.setdefault(r.case.mechanism.name, []).append(r)
        return grouped

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "counts": self.counts(),
            "ok": self.ok,
            "results": [r.to_dict() for r in self.results],
        }


def enumerate_cases(
    mechanisms: Optional[Sequence[str]] = None,
    curves: Optional[Sequence[str]] = None,
    scenarios: Optional[Iterable[Scenario]] = None,
) -> List[Case]:
    """Cross product of mechanisms and scenarios; EC rows fan out per curve.

    The recover scenario applies to a single RSA mechanism only. Names not in
    the registries raise ``EngineError``.
    """
    mech_list = [get_mechanism(n) for n in (mechanisms or mechanism_names())]
    curve_list = [get_curve(n) for n in (curves or curve_names())]
    wanted = list(scenarios) if scenarios is not None else list(Scenario)

    cases: List[Case] = []
    for mech in mech_list:
        for scenario in SIGN_SCENARIOS:
            if scenario not in wanted:
                continue
            if mech.is_ec:
                cases.extend(Case(mech, scenario, curve) for curve in curve_list)
            else:
                cases.append(Case(mech, scenario))
        if Scenario.SIGN_VERIFY_RECOVER in wanted and mech.name == RECOVER_MECHANISM:
            cases.append(Case(mech, Scenario.SIGN_VERIFY_RECOVER))
    return cases


class TestMatrix:
    __test__ = False  # not a pytest class

    def __init__(self, module: Module, config: Optional[EngineConfig] = None) -> None:
        self.module = module
        self.config = config or EngineConfig()

    def cases(self) -> List[Case]:
        return enumerate_cases(self.config.mechanisms or None, self.config.curves or None)

    def run(self, cases: Optional[Sequence[Case]] = None) -> MatrixResult:
        if cases is None:
            cases = self.cases()
        rng = self.config.make_rng()
        try:
            session = self.module.open_session()
        except ModuleError:
            raise
        except Exception as exc:
            raise ModuleError(f"unable to open a session on module {self._module_name()}: {exc}") from exc

        result = MatrixResult(module=self._module_name())
        driver: Optional[SignVerifyDriver] = None
        try:
            driver = SignVerifyDriver(
                self.module,
                session,
                provisioner=KeyProvisioner(self.module),
                generator=DataGenerator(rng),
                tamper=self.config.tamper,
                rng=rng,
            )
            for case in cases:
                result.results.append(self._run_case(driver, case))
        finally:
            self._close(driver.session if driver is not None else session)
        log.info("matrix finished: %s", result.counts())
        return result

    def _run_case(self, driver: SignVerifyDriver, case: Case) -> CaseResult:
        log.debug("running %s", case.case_id)
        start = time.perf_counter()
        try:
            outcome = driver.run(case.scenario, case.mechanism, case.curve)
        except EngineError:
            raise
        except Exception as exc:
            log.exception("module raised during %s", case.case_id)
            outcome = Outcome.failed(f"module raised {type(exc).__name__}: {exc}")
            self._recycle(driver)
        elapsed = (time.perf_counter() - start) * 1000.0
        if outcome.status is not OutcomeStatus.PASS:
            log.info("%s %s: %s", outcome.status.value, case.case_id, outcome.reason)
        return CaseResult(case=case, outcome=outcome, duration_ms=elapsed)

    def _close(self, session) -> None:
        rv = self.module.close_session(session)
        if rv != ReturnValue.OK:
            log.warning("close_session returned %s", rv_name(rv))

    def _recycle(self, driver: SignVerifyDriver) -> None:
        # Closing the session discards whatever operation the failed case left
        # active, so the next case starts from a clean session.
        self._close(driver.session)
        try:
            driver.session = self.module.open_session()
        except Exception as exc:
            raise ModuleError(f"unable to reopen a session on module {self._module_name()}: {exc}") from exc

    def _module_name(self) -> str:
        return getattr(self.module, "name", type(self.module).__name__)
