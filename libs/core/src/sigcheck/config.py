from __future__ import annotations
import os
import random
from dataclasses import dataclass, field
from typing import List, Optional

from .driver import TAMPER_MODES, TAMPER_RANDOM

"""Engine settings, with environment-variable overrides.

``SIGCHECK_SEED``        integer seed for reproducible test data
``SIGCHECK_TAMPER``      ``first`` or ``random`` byte corruption
``SIGCHECK_MECHANISMS``  comma-separated mechanism names to run
``SIGCHECK_CURVES``      comma-separated curve names to run
"""


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _seed_from_env() -> Optional[int]:
    raw = os.getenv("SIGCHECK_SEED")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError("SIGCHECK_SEED must be an integer") from exc


@dataclass
class EngineConfig:
    seed: Optional[int] = None
    tamper: str = TAMPER_RANDOM
    mechanisms: List[str] = field(default_factory=list)
    curves: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.tamper not in TAMPER_MODES:
            raise ValueError(f"tamper must be one of {', '.join(TAMPER_MODES)}; got {self.tamper!r}")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            seed=_seed_from_env(),
            tamper=os.getenv("SIGCHECK_TAMPER", TAMPER_RANDOM).strip().lower(),
            mechanisms=_split(os.getenv("SIGCHECK_MECHANISMS")),
            curves=_split(os.getenv("SIGCHECK_CURVES")),
        )

    def make_rng(self) -> random.Random:
        if self.seed is None:
            return random.SystemRandom()
        return random.Random(self.seed)
