"""
Single-bit signal handles and the cells that drive them
"""


class Signal:
    """Opaque reference to a single-bit value"""

    __slots__ = ("name",)

    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f"Signal({self.name})"


class Constant(Signal):
    """Constant-valued bit, used as filler in the final summation"""

    __slots__ = ("value",)

    def __init__(self, value):
        super().__init__(f"1'b{int(bool(value))}")
        self.value = int(bool(value))

    def __repr__(self):
        return f"Constant({self.value})"


ZERO = Constant(0)


def signal_value(values, signal):
    """Look up the value of a signal, resolving constants directly"""
    if isinstance(signal, Constant):
        return signal.value
    return values[signal]


class Cell:
    """A placed component: a counter instance or an OR-compression gate

    Args:
        name: unique instance name, e.g. ``Counter3_11_s1_c4_n0``
        kind: name of the component (counter name or ``"or"``)
        inputs: signals consumed, grouped by column (least significant first)
        num_outputs: number of freshly created output signals
        logic: pure function mapping input bit values to output bit values
        stage: compression stage index (0 for matrix construction)
        column: least significant column the cell is anchored at
        exact: whether the cell computes an exact sum
        in_sig: inputs per column (defaults to all inputs in one column)
    """

    def __init__(self, name, kind, inputs, num_outputs, logic, stage=0, column=0, exact=True, in_sig=None):
        self.name = name
        self.kind = kind
        self.inputs = list(inputs)
        self.in_sig = tuple(in_sig) if in_sig is not None else (len(self.inputs),)
        self.outputs = [Signal(f"{name}_o{i}") for i in range(num_outputs)]
        self.logic = logic
        self.stage = stage
        self.column = column
        self.exact = exact

    def evaluate(self, values):
        """Compute this cell's outputs and store them in ``values``"""
        in_bits = [signal_value(values, sig) for sig in self.inputs]
        out_bits = self.logic(in_bits)
        if len(out_bits) != len(self.outputs):
            raise ValueError(
                f"{self.kind} produced {len(out_bits)} bits, expected {len(self.outputs)}"
            )
        for sig, bit in zip(self.outputs, out_bits):
            values[sig] = int(bit)

    def __repr__(self):
        return f"Cell({self.name}, {len(self.inputs)}->{len(self.outputs)})"
