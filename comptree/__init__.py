"""
Compressor tree generator for weighted bit collections
"""

from .approximations import Approximations, ColumnTruncation, Miscounting, ORCompression, RowTruncation
from .bit_matrix import BitMatrix
from .compressor_tree import CompressorTree
from .context import Context, State
from .counters import ASIC, Counter, FitnessMetric, Intel, Library, SevenSeries, VarLenCounter, Versal, get_library
from .errors import CompressorTreeError, ConfigurationError, InvariantError, SchedulingError
from .signature import MultSignature, Signature, StringSignature

__version__ = "0.1.0"

__all__ = [
    "ASIC",
    "Approximations",
    "BitMatrix",
    "ColumnTruncation",
    "CompressorTree",
    "CompressorTreeError",
    "ConfigurationError",
    "Context",
    "Counter",
    "FitnessMetric",
    "Intel",
    "InvariantError",
    "Library",
    "Miscounting",
    "MultSignature",
    "ORCompression",
    "RowTruncation",
    "SchedulingError",
    "SevenSeries",
    "Signature",
    "State",
    "StringSignature",
    "VarLenCounter",
    "Versal",
    "get_library",
]
