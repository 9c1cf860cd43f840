"""
Approximation styles for compressor trees
"""

from dataclasses import dataclass

from .errors import ConfigurationError


class Approximation:
    """Base class for approximation styles"""

    def __post_init__(self):
        for name, value in vars(self).items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(
                    f"{type(self).__name__}.{name} must be a non-negative integer, got {value!r}"
                )


@dataclass(frozen=True)
class ColumnTruncation(Approximation):
    """Drop the ``width`` least significant columns entirely"""

    width: int


@dataclass(frozen=True)
class ORCompression(Approximation):
    """Replace each column below ``width`` by the OR of its bits"""

    width: int


@dataclass(frozen=True)
class RowTruncation(Approximation):
    """Drop the first ``rows`` rows of a multiplier's partial products"""

    rows: int


@dataclass(frozen=True)
class Miscounting(Approximation):
    """Allow approximate counters only in columns below ``width``"""

    width: int


class Approximations:
    """Normalized set of active approximations

    At most one approximation of each kind may be active. The order in which
    they are given has no influence on generation.
    """

    def __init__(self, approximations=()):
        self._by_kind = {}
        for approx in approximations:
            if not isinstance(approx, Approximation):
                raise ConfigurationError(f"unsupported approximation {approx!r}")
            kind = type(approx)
            if kind in self._by_kind:
                raise ConfigurationError(
                    f"conflicting approximations {self._by_kind[kind]} and {approx}"
                )
            self._by_kind[kind] = approx

    def get(self, kind):
        return self._by_kind.get(kind)

    @property
    def column_truncation(self):
        return self.get(ColumnTruncation)

    @property
    def or_compression(self):
        return self.get(ORCompression)

    @property
    def row_truncation(self):
        return self.get(RowTruncation)

    @property
    def miscounting(self):
        return self.get(Miscounting)

    @property
    def truncation_width(self):
        ct = self.column_truncation
        return ct.width if ct is not None else 0

    @property
    def or_width(self):
        orc = self.or_compression
        return orc.width if orc is not None else 0

    @property
    def start_column(self):
        """First column whose bits are inserted one by one"""
        return max(self.truncation_width, self.or_width)

    @property
    def is_approximate(self):
        """Whether approximate counters may be used"""
        return self.miscounting is not None

    def __iter__(self):
        return iter(self._by_kind.values())

    def __len__(self):
        return len(self._by_kind)

    def __eq__(self, other):
        if not isinstance(other, Approximations):
            return NotImplemented
        return self._by_kind == other._by_kind

    def __repr__(self):
        return f"Approximations({list(self._by_kind.values())})"
