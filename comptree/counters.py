"""
Counter catalogs for compressor tree generation

Collection of counters for different device types:
- ASIC                        (``ASIC``)
- Xilinx 7 Series/UltraScale  (``SevenSeries``)
- Xilinx Versal               (``Versal``)
- Intel FPGAs                 (``Intel``)

The scheduler only looks at a counter's signature and cost. How a counter is
realized is captured by its ``logic`` function, which maps input bit values
(grouped by column, least significant first) to output bit values (grouped
the same way).
"""

import enum
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence, Tuple

from .errors import ConfigurationError, InvariantError
from .signals import Cell

logger = logging.getLogger(__name__)

# Length at which variable-length counters are ranked against each other
VARLEN_REFERENCE_LENGTH = 3


class FitnessMetric(enum.Enum):
    STRENGTH = "strength"
    EFFICIENCY = "efficiency"

    @classmethod
    def parse(cls, metric):
        if isinstance(metric, cls):
            return metric
        key = str(metric).lower()
        for member in cls:
            if key in (member.value, member.value[0]):
                return member
        raise ConfigurationError(
            f"unsupported fitness metric {metric!r}, must be one of 'e' (efficiency) or 's' (strength)"
        )


def capacity(sig):
    """Largest weighted sum a signature can represent"""
    return sum(cnt << col for col, cnt in enumerate(sig))


def encode(value, out_sig):
    """Spread a value over the bits of an output signature

    Columns are filled greedily from the most significant one down.
    """
    out_bits = []
    for col in reversed(range(len(out_sig))):
        ones = min(out_sig[col], value >> col)
        value -= ones << col
        out_bits.append([1] * ones + [0] * (out_sig[col] - ones))
    if value:
        raise InvariantError(f"value does not fit output signature {list(out_sig)}")
    return [bit for col_bits in reversed(out_bits) for bit in col_bits]


def exact_logic(in_sig, out_sig):
    """Build the logic function of an exact counter"""
    weights = [col for col, cnt in enumerate(in_sig) for _ in range(cnt)]

    def logic(bits):
        value = sum(bit << weight for bit, weight in zip(bits, weights))
        return encode(value, out_sig)

    return logic


@dataclass(frozen=True)
class Counter:
    """Counter descriptor

    Args:
        name: unique name within a library
        in_sig: input bits per column, least significant first
        out_sig: output bits per column, least significant first
        cost: hardware cost (for FPGAs: no. of LUTs, for ASICs: ~number of XORs)
        exact: whether the counter computes an exact sum
        logic: bit-level behaviour, derived from the signatures for exact counters
    """

    name: str
    in_sig: Tuple[int, ...]
    out_sig: Tuple[int, ...]
    cost: Optional[int] = None
    exact: bool = True
    logic: Optional[Callable] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "in_sig", tuple(self.in_sig))
        object.__setattr__(self, "out_sig", tuple(self.out_sig))
        if not self.in_sig or not self.out_sig or min(self.in_sig + self.out_sig) < 0:
            raise ConfigurationError(f"counter {self.name} has an invalid signature")
        # Half adders keep the bit count but move a bit up one column
        if sum(self.in_sig) < sum(self.out_sig) or (
            sum(self.in_sig) == sum(self.out_sig) and not self.is_half_adder
        ):
            raise ConfigurationError(
                f"counter {self.name} is not compressive "
                f"({sum(self.in_sig)} inputs, {sum(self.out_sig)} outputs)"
            )
        if self.exact and capacity(self.out_sig) < capacity(self.in_sig):
            raise ConfigurationError(
                f"exact counter {self.name} cannot represent the sum of its inputs"
            )
        if self.logic is None:
            if not self.exact:
                raise ConfigurationError(f"approximate counter {self.name} needs explicit logic")
            object.__setattr__(self, "logic", exact_logic(self.in_sig, self.out_sig))
        produced = len(self.logic([0] * sum(self.in_sig)))
        if produced != sum(self.out_sig):
            raise ConfigurationError(
                f"counter {self.name} logic drives {produced} bits, expected {sum(self.out_sig)}"
            )

    @property
    def strength(self):
        """Compression ratio, following Preusser [2017]"""
        return sum(self.in_sig) / sum(self.out_sig)

    @property
    def efficiency(self):
        """Bits removed per unit of cost, following Preusser [2017]"""
        if self.cost is None:
            return float("-inf")
        return (sum(self.in_sig) - sum(self.out_sig)) / self.cost

    def metric(self, metric):
        if metric is FitnessMetric.EFFICIENCY:
            return self.efficiency
        return self.strength

    @property
    def is_half_adder(self):
        return self.in_sig == (2,)

    def evaluate(self, bits):
        return self.logic(bits)


@dataclass(frozen=True)
class VarLenCounter:
    """Counter that can be cascaded to an arbitrary length ``n``

    Args:
        name: unique name within a library
        in_sig_fn: input signature for a given length
        out_sig_fn: output signature for a given length
        cost_fn: hardware cost for a given length
        exact: whether the counter computes an exact sum
        logic_fn: bit-level behaviour for a given length (exact if omitted)
    """

    name: str
    in_sig_fn: Callable[[int], Sequence[int]] = field(repr=False)
    out_sig_fn: Callable[[int], Sequence[int]] = field(repr=False)
    cost_fn: Callable[[int], Optional[int]] = field(default=lambda n: None, repr=False)
    exact: bool = True
    logic_fn: Optional[Callable] = field(default=None, compare=False, repr=False)
    _instances: Dict[int, Counter] = field(default_factory=dict, compare=False, repr=False)

    def in_sig(self, n):
        return tuple(self.in_sig_fn(n))

    def out_sig(self, n):
        return tuple(self.out_sig_fn(n))

    def cost(self, n):
        return self.cost_fn(n)

    def strength(self, n):
        return sum(self.in_sig(n)) / sum(self.out_sig(n))

    def efficiency(self, n):
        cost = self.cost(n)
        if cost is None:
            return float("-inf")
        return (sum(self.in_sig(n)) - sum(self.out_sig(n))) / cost

    def metric(self, metric, n):
        if metric is FitnessMetric.EFFICIENCY:
            return self.efficiency(n)
        return self.strength(n)

    def at(self, n) -> Counter:
        """Fixed-length counter of length ``n``"""
        if n not in self._instances:
            self._instances[n] = Counter(
                f"{self.name}_{n}",
                self.in_sig(n),
                self.out_sig(n),
                self.cost(n),
                exact=self.exact,
                logic=self.logic_fn(n) if self.logic_fn is not None else None,
            )
        return self._instances[n]


# ---------------------------------------------------------------------------
#  Approximate counter logic
# ---------------------------------------------------------------------------
def _maj(a, b, c):
    return (a & (b | c)) | (b & c)


def momeni_d1(bits):
    """Approximate 4:2 compressor, design 1 from Momeni et al. [2014]"""
    x1, x2, x3, x4, cin = bits
    s = (1 - cin) & ((1 - (x1 ^ x2)) | (1 - (x3 ^ x4)))
    c = cin
    cout = x1 & x2 & x3 & x4
    return [s, c, cout]


def momeni_d2(bits):
    """Approximate 4:2 compressor, design 2 from Momeni et al. [2014]"""
    x1, x2, x3, x4, _cin = bits
    s = (1 - (x1 ^ x2)) | (1 - (x3 ^ x4))
    c = x1 & x2 & x3 & x4
    return [s, c]


def moaiyeri(bits):
    """Approximate majority-based 4:2 compressor from Moaiyeri et al. [2017]"""
    x1, x2, x3, x4, cin = bits
    s = _maj(x1, x2, 1 - _maj(x3, x4, 1 - cin))
    return [s, x4, x3]


def boroumand_brisk(bits):
    """Approximate 8:3 counter from Boroumand and Brisk [2019]

    One half adder and three full adders, with x6, x7 and x8 OR'ed together.
    """
    x1, x2, x3, x4, x5, x6, x7, x8 = bits
    ha_s, ha_c = x1 ^ x2, x1 & x2
    fa1_s, fa1_c = x3 ^ x4 ^ x5, _maj(x3, x4, x5)
    or678 = x6 | x7 | x8
    fa2_s, fa2_c = ha_s ^ fa1_s ^ or678, _maj(ha_s, fa1_s, or678)
    fa3_s, fa3_c = ha_c ^ fa1_c ^ fa2_c, _maj(ha_c, fa1_c, fa2_c)
    return [fa2_s, fa3_s, fa3_c]


# ---------------------------------------------------------------------------
#  Libraries
# ---------------------------------------------------------------------------
class Library:
    """Counter library for a target device

    Args:
        counters: regular counters (exact and approximate)
        varlen_counters: variable-length counters (exact and approximate)
        height_goal: terminal number of rows per column
        terminal: kind of final multi-operand adder
    """

    name = "generic"
    height_goal = 2
    terminal = "binary"

    def __init__(self, counters=(), varlen_counters=(), height_goal=None, terminal=None):
        self.counters = tuple(counters)
        self.varlen_counters = tuple(varlen_counters)
        if height_goal is not None:
            self.height_goal = height_goal
        if terminal is not None:
            self.terminal = terminal

        names = [c.name for c in self.counters + self.varlen_counters]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"duplicate counter names in library: {duplicates}")

        self._sorted = {}

    @property
    def exact_counters(self):
        return tuple(c for c in self.counters if c.exact)

    @property
    def approx_counters(self):
        """Approximate and exact counters"""
        return self.counters

    @property
    def exact_varlen_counters(self):
        return tuple(c for c in self.varlen_counters if c.exact)

    @property
    def approx_varlen_counters(self):
        """Approximate and exact variable-length counters"""
        return self.varlen_counters

    def sorted_counters(self, metric, approximate=False):
        """Regular counters ranked best-first by a fitness metric

        Ties go to the counter listed later in the library.
        """
        key = ("regular", metric, approximate)
        if key not in self._sorted:
            pool = self.approx_counters if approximate else self.exact_counters
            self._sorted[key] = sorted(pool, key=lambda c: c.metric(metric))[::-1]
        return self._sorted[key]

    def sorted_varlen_counters(self, metric, approximate=False):
        """Variable-length counters ranked best-first at the reference length"""
        key = ("varlen", metric, approximate)
        if key not in self._sorted:
            pool = self.approx_varlen_counters if approximate else self.exact_varlen_counters
            ranked = sorted(pool, key=lambda c: c.metric(metric, VARLEN_REFERENCE_LENGTH))
            self._sorted[key] = ranked[::-1]
        return self._sorted[key]

    def construct(self, counter, inputs, name, stage=0, column=0):
        """Instantiate a counter on the given input signals

        Args:
            counter: the (fixed-length) counter to construct
            inputs: input signals, grouped by column
            name: instance name
            stage: compression stage the counter belongs to
            column: least significant column the counter is placed at

        Returns:
            a ``Cell`` whose outputs match the counter's output signature
        """
        if len(inputs) != sum(counter.in_sig):
            raise InvariantError(
                f"counter {counter.name} takes {sum(counter.in_sig)} inputs, got {len(inputs)}"
            )
        return Cell(
            name,
            counter.name,
            inputs,
            sum(counter.out_sig),
            counter.evaluate,
            stage=stage,
            column=column,
            exact=counter.exact,
            in_sig=counter.in_sig,
        )

    def __repr__(self):
        return f"{type(self).__name__}({len(self.counters)} counters, {len(self.varlen_counters)} variable-length)"


class ASIC(Library):
    """Counters for ASIC

    - (2 : 1,1]   half adder
    - (3 : 1,1]   full adder
    - (5 : 2,1]   4:2 compressor
    - (5 : 1,1,1]
    - (7 : 1,1,1]
    - (5 : 2,1]   approximate, Momeni et al. design 1
    - (5 : 1,1]   approximate, Momeni et al. design 2
    - (5 : 2,1]   approximate, Moaiyeri et al.
    - (8 : 1,1,1] approximate, Boroumand and Brisk
    """

    name = "asic"

    def __init__(self):
        super().__init__(
            counters=[
                Counter("Counter2_11", (2,), (1, 1), 2),
                Counter("Counter3_11", (3,), (1, 1), 3),
                Counter("Counter4_21", (5,), (1, 2), 6),
                Counter("Counter5_111", (5,), (1, 1, 1), 8),
                Counter("Counter7_111", (7,), (1, 1, 1), 12),
                Counter("Counter4_21Momeni", (5,), (1, 2), 5, exact=False, logic=momeni_d1),
                Counter("Counter4_11Momeni", (5,), (1, 1), 4, exact=False, logic=momeni_d2),
                Counter("Counter4_21Moaiyeri", (5,), (1, 2), 4, exact=False, logic=moaiyeri),
                Counter("Counter8_111", (8,), (1, 1, 1), 11, exact=False, logic=boroumand_brisk),
            ]
        )


def compose(atoms):
    """Signature of a carry-chain counter composed of LUT atoms

    Each atom covers one or two columns of a carry chain; the chain's
    carry-in adds one extra input bit to column 0 and every chain position
    contributes one output bit, plus the carry-out.
    """
    ins = [cnt for atom in atoms for cnt in atom.in_sig]
    ins[0] += 1
    outs = [1] * (len(ins) + 1)
    return tuple(ins), tuple(outs)


@dataclass(frozen=True)
class Atom:
    name: str
    in_sig: Tuple[int, ...]
    luts: int = 2


ATOM22 = Atom("22", (2, 2))
ATOM14 = Atom("14", (4, 1))
ATOM06 = Atom("06", (6, 0))


def composed_counter(atoms):
    in_sig, out_sig = compose(atoms)
    name = "ComposedCounter" + "_".join(atom.name for atom in atoms)
    return Counter(name, in_sig, out_sig, sum(atom.luts for atom in atoms))


class SevenSeries(Library):
    """Counters for Xilinx 7 Series and UltraScale FPGAs

    Standalone counters (2 : 1,1], (3 : 1,1], (2,5 : 1,2,1] and the
    approximate (8 : 1,1,1], plus all two-atom compositions of the
    (2,2), (1,4) and (0,6) atoms on a CARRY4 chain.
    """

    name = "7series"
    height_goal = 3
    terminal = "ternary"

    def __init__(self):
        composed = [
            composed_counter(pair) for pair in itertools.product((ATOM22, ATOM14, ATOM06), repeat=2)
        ]
        super().__init__(
            counters=[
                Counter("Counter2_11", (2,), (1, 1), 1),
                Counter("Counter3_11", (3,), (1, 1), 1),
                Counter("Counter25_121", (5, 2), (1, 2, 1), 2),
            ]
            + composed
            + [Counter("Counter8_111", (8,), (1, 1, 1), 4, exact=False, logic=boroumand_brisk)]
        )


def ripple_sum(n):
    """Input signature of a chain of ``n`` full adders (2n+1 inputs, n+1 outputs)"""
    return (3,) + (2,) * (n - 1)


def dual_rail_ripple_sum(n):
    """Input signature of a chain of ``n`` 4:2 compressors (4n+1 inputs, 2n+1 outputs)"""
    return (5,) + (4,) * (n - 1)


class Versal(Library):
    """Counters for Xilinx Versal FPGAs

    Standalone counters (2 : 1,1], (3 : 1,1], (2,5 : 1,2,1], (7 : 1,1,1],
    (10 : 4,2] and the approximate (8 : 1,1,1], four-atom compositions of
    the (2,2) and (1,4) atoms on a LOOKAHEAD8 chain, and two variable-length
    ripple-sum counters from Hossfeld et al. [2024].
    """

    name = "versal"

    def __init__(self):
        composed = [
            composed_counter([ATOM22] * k + [ATOM14] * (4 - k)) for k in range(4, -1, -1)
        ]
        super().__init__(
            counters=[
                Counter("Counter2_11", (2,), (1, 1), 1),
                Counter("Counter3_11", (3,), (1, 1), 1),
                Counter("Counter25_121", (5, 2), (1, 2, 1), 2),
                Counter("Counter7_111", (7,), (1, 1, 1), 3),
                Counter("Counter10_42", (10,), (2, 4), 3),
            ]
            + composed
            + [Counter("Counter8_111", (8,), (1, 1, 1), 3, exact=False, logic=boroumand_brisk)],
            varlen_counters=[
                VarLenCounter("RippleSum", ripple_sum, lambda n: (1,) * (n + 1), lambda n: n),
                VarLenCounter(
                    "DualRailRippleSum", dual_rail_ripple_sum, lambda n: (1,) + (2,) * n, lambda n: 2 * n
                ),
            ],
        )


class Intel(Library):
    """Counters for Intel FPGAs"""

    name = "intel"

    def __init__(self):
        super().__init__(
            counters=[
                Counter("Counter2_11", (2,), (1, 1), 1),
                Counter("Counter3_11", (3,), (1, 1), 2),
                Counter("Counter8_111", (8,), (1, 1, 1), 4, exact=False, logic=boroumand_brisk),
            ]
        )


_LIBRARY_TYPES = {
    "": ASIC,
    "asic": ASIC,
    "7series": SevenSeries,
    "ultrascale": SevenSeries,
    "versal": Versal,
    "intel": Intel,
}
_LIBRARIES = {}


def get_library(target_device=""):
    """Return the (shared) counter library for a target device"""
    device = (target_device or "").lower()
    if device not in _LIBRARY_TYPES:
        raise ConfigurationError(
            f"unsupported target device {target_device!r}, must be one of "
            f"{sorted(d for d in _LIBRARY_TYPES if d)}"
        )
    cls = _LIBRARY_TYPES[device]
    if cls not in _LIBRARIES:
        logger.debug(f"Instantiating {cls.__name__} counter library")
        _LIBRARIES[cls] = cls()
    return _LIBRARIES[cls]
