"""Software module backend for sigcheck.

Importing the package registers ``SoftModule`` under the name ``soft``.
"""

from .soft_module import SoftModule

__all__ = ["SoftModule"]
