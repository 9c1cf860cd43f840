"""
Compressor tree generation context and bookkeeping state
"""

import logging

from .approximations import Approximations
from .counters import FitnessMetric, Library, get_library
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

TERMINAL_OPERANDS = {"ternary": 3, "quaternary": 4}


class Context:
    """Compressor tree generation context

    Controls the selection of counters, the compression goal, and the final
    adder. Read-only once constructed.

    Args:
        out_width: targeted output width (defaults to the signature's)
        target_device: "" (ASIC), "asic", "7series", "ultrascale", "versal" or "intel"
        approximations: approximation styles to apply
        metric: fitness metric, 'e' (efficiency) or 's' (strength)
        height_goal: override of the library's terminal row count
        library: explicit counter library (takes precedence over target_device)
        terminal: override of the library's final adder ("binary", "ternary", "quaternary")
    """

    def __init__(
        self,
        out_width=None,
        target_device="",
        approximations=(),
        metric="e",
        height_goal=None,
        library=None,
        terminal=None,
    ):
        if out_width is not None and out_width < 0:
            raise ConfigurationError(f"output width must be non-negative, got {out_width}")
        self.out_width = out_width
        self.target_device = target_device

        if library is None:
            library = get_library(target_device)
        elif not isinstance(library, Library):
            raise ConfigurationError(f"expected a counter library, got {library!r}")
        self.library = library

        self.metric = FitnessMetric.parse(metric)

        if not isinstance(approximations, Approximations):
            approximations = Approximations(approximations)
        self.approximations = approximations

        self.goal = library.height_goal if height_goal is None else height_goal
        if self.goal < 1:
            raise ConfigurationError(f"compression goal must be at least 1, got {self.goal}")

        if terminal is None:
            terminal = library.terminal
            # A library's fused adder only applies at its own goal
            if TERMINAL_OPERANDS.get(terminal, self.goal) != self.goal:
                logger.debug(f"{terminal} adder does not match goal {self.goal}, using a binary adder tree")
                terminal = "binary"
        self.terminal = terminal.lower()
        if self.terminal != "binary" and self.terminal not in TERMINAL_OPERANDS:
            raise ConfigurationError(f"unsupported terminal adder {self.terminal!r}")
        if TERMINAL_OPERANDS.get(self.terminal, self.goal) != self.goal:
            raise ConfigurationError(
                f"{self.terminal} terminal adder requires a compression goal of "
                f"{TERMINAL_OPERANDS[self.terminal]}, got {self.goal}"
            )

    @property
    def is_approximate(self):
        return self.approximations.is_approximate

    @property
    def counters(self):
        """Regular counters ranked by the selected metric"""
        return self.library.sorted_counters(self.metric, self.is_approximate)

    @property
    def varlen_counters(self):
        """Variable-length counters ranked by the selected metric"""
        return self.library.sorted_varlen_counters(self.metric, self.is_approximate)

    def __repr__(self):
        return (
            f"Context(library={self.library.name}, goal={self.goal}, metric={self.metric.value}, "
            f"terminal={self.terminal}, approximations={list(self.approximations)})"
        )


class State:
    """Compressor generation state

    Tracks how many counters of each kind are placed in each stage, as
    needed by placement-aware backends.
    """

    def __init__(self):
        self.stages = 0
        self.counters = [{}]

    def add_stage(self):
        self.stages += 1
        self.counters.append({})

    def add_counter(self, counter):
        stage_counters = self.counters[self.stages]
        stage_counters[counter.name] = stage_counters.get(counter.name, 0) + 1

    def total(self, name=None):
        """Total number of placed counters, optionally of one kind"""
        if name is None:
            return sum(sum(stage.values()) for stage in self.counters)
        return sum(stage.get(name, 0) for stage in self.counters)
