
from .interfaces import Capability, KeyFamily, Mechanism, Module, ReturnValue, mechanism_name, rv_name
from .registry import registry
from .errors import EngineError, ModuleError, UnknownCurveError, UnknownMechanismError
from .mechanisms import (
    CurveDescriptor,
    MechanismDescriptor,
    get_curve,
    get_mechanism,
    curve_names,
    mechanism_names,
)
from .datagen import DataGenerator, TestVector
from .keys import KeyPairHandle, KeyProvisioner
from .outcomes import Outcome, OutcomeStatus, Step, classify
from .driver import Scenario, SignVerifyDriver
from .config import EngineConfig
from .matrix import Case, CaseResult, MatrixResult, TestMatrix, enumerate_cases

__all__ = [
    "Capability",
    "KeyFamily",
    "Mechanism",
    "Module",
    "ReturnValue",
    "mechanism_name",
    "rv_name",
    "registry",
    "EngineError",
    "ModuleError",
    "UnknownCurveError",
    "UnknownMechanismError",
    "CurveDescriptor",
    "MechanismDescriptor",
    "get_curve",
    "get_mechanism",
    "curve_names",
    "mechanism_names",
    "DataGenerator",
    "TestVector",
    "KeyPairHandle",
    "KeyProvisioner",
    "Outcome",
    "OutcomeStatus",
    "Step",
    "classify",
    "Scenario",
    "SignVerifyDriver",
    "EngineConfig",
    "Case",
    "CaseResult",
    "MatrixResult",
    "TestMatrix",
    "enumerate_cases",
]
