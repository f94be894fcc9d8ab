from __future__ import annotations
import hashlib
import random
from dataclasses import dataclass
from typing import Optional

from .mechanisms import MechanismDescriptor

"""Test input generation honouring per-mechanism input constraints."""

SHA512_DIGEST_LEN = 64


@dataclass(frozen=True)
class TestVector:
    __test__ = False  # not a pytest class

    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)


def _random_bytes(rng: random.Random, n: int) -> bytes:
    if n <= 0:
        return b""
    return rng.getrandbits(8 * n).to_bytes(n, "little")


class DataGenerator:
    """Produces one ``TestVector`` per case.

    ``rng`` defaults to ``random.SystemRandom`` so production runs draw from
    the OS entropy pool; pass a seeded ``random.Random`` for reproducible
    inputs.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng if rng is not None else random.SystemRandom()

    def random_bytes(self, n: int) -> bytes:
        return _random_bytes(self.rng, n)

    def generate(self, descriptor: MechanismDescriptor) -> TestVector:
        length = self.rng.randrange(descriptor.max_input_length) if descriptor.max_input_length > 0 else 0
        if descriptor.requires_pre_hash:
            preimage = self.random_bytes(length)
            return TestVector(hashlib.sha512(preimage).digest())
        return TestVector(self.random_bytes(length))

    def fixed(self, length: int) -> TestVector:
        return TestVector(self.random_bytes(length))
