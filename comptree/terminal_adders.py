"""
Terminal adders for the final multi-operand summation

All adders take ``goal`` operands of equal width (lists of signals, least
significant bit first) and produce their sum truncated to that width. Fused
ternary and quaternary adders only change how operands are grouped, never
the result.
"""

from .signals import signal_value


def operand_value(values, operand):
    return sum(signal_value(values, bit) << i for i, bit in enumerate(operand))


class TerminalAdder:
    """Abstract terminal adder

    Args:
        operands: input operands, each a list of ``width`` signals
        width: in-/output bit width
    """

    # Number of operands summed by one adder node
    fan_in = 2

    def __init__(self, operands, width):
        self.operands = [list(op) for op in operands]
        self.width = width
        for op in self.operands:
            if len(op) != width:
                raise ValueError(f"operand of width {len(op)} does not match adder width {width}")

    @property
    def mask(self):
        return (1 << self.width) - 1

    def reduce(self, values):
        """Sum integer operand values level by level in groups of ``fan_in``"""
        while len(values) > 1:
            values = [
                sum(values[i:i + self.fan_in]) & self.mask for i in range(0, len(values), self.fan_in)
            ]
        return values[0] if values else 0

    def evaluate(self, values):
        """Compute the sum given a map of signal values"""
        return self.reduce([operand_value(values, op) for op in self.operands])

    def depth(self):
        """Number of adder levels"""
        levels = 0
        count = len(self.operands)
        while count > 1:
            count = -(-count // self.fan_in)
            levels += 1
        return levels


class BinaryAdderTree(TerminalAdder):
    """Balanced tree of two-operand adders"""

    fan_in = 2


class TernaryAdder(TerminalAdder):
    """Ternary adder, as built from LUT6_2 and CARRY4 primitives on 7 Series FPGAs"""

    fan_in = 3


class QuaternaryAdder(TerminalAdder):
    """Quaternary adder, as built from LUT6CY and LOOKAHEAD8 primitives on Versal FPGAs"""

    fan_in = 4


TERMINAL_ADDERS = {
    "binary": BinaryAdderTree,
    "ternary": TernaryAdder,
    "quaternary": QuaternaryAdder,
}


def make_terminal_adder(kind, operands, width):
    """Instantiate a terminal adder by name"""
    try:
        adder_type = TERMINAL_ADDERS[kind]
    except KeyError:
        raise ValueError(f"unsupported terminal adder {kind!r}") from None
    return adder_type(operands, width)
