#!/usr/bin/env python3
"""
Compressor Tree Generator using Bit Matrix Compression
Schedules counters greedily until every column meets the device's height goal
Supports: ASIC, Xilinx 7 Series/UltraScale/Versal and Intel counter libraries
Supports: column truncation, OR compression, row truncation and miscounting
"""

import argparse
import logging
import sys

from .approximations import ColumnTruncation, Miscounting, ORCompression, RowTruncation
from .bit_matrix import BitMatrix
from .context import Context, State
from .errors import CompressorTreeError, ConfigurationError, InvariantError, SchedulingError
from .signals import ZERO, Cell, Signal
from .signature import MultSignature, StringSignature
from .terminal_adders import make_terminal_adder

logger = logging.getLogger(__name__)


def or_logic(bits):
    return [int(any(bits))]


class CompressorTree:
    """Compressor tree for a signature

    Args:
        signature: the input signature
        context: the generation context (built from ``context_options`` if omitted)
        inputs: flat list of input signals, column by column (created if omitted)
        context_options: keyword arguments for ``Context``

    The tree is generated on construction. ``evaluate`` simulates it.
    """

    def __init__(self, signature, context=None, inputs=None, **context_options):
        if context is None:
            context = Context(**context_options)
        elif context_options:
            raise ConfigurationError("pass either a context or context options, not both")
        self.signature = signature
        self.context = context
        self.out_width = signature.output_width if context.out_width is None else context.out_width

        if inputs is None:
            inputs = [Signal(f"in[{i}]") for i in range(signature.count)]
        elif len(inputs) != signature.count:
            raise ConfigurationError(
                f"signature {signature} needs {signature.count} input bits, got {len(inputs)}"
            )
        self.inputs = list(inputs)

        self.state = State()
        self.cells = []
        self.stages = []
        self.operands = []
        self.adder = None

        self._check_approximations()
        self.build()

    # =================================================================
    # Generation
    # =================================================================

    def _check_approximations(self):
        approx = self.context.approximations
        rt = approx.row_truncation
        if rt is not None:
            if not isinstance(self.signature, MultSignature):
                raise ConfigurationError("can only apply row truncation to multiplier signatures")
            # Raises for row counts the multiplier does not have
            self.signature.truncated(rt.rows)

        orc = approx.or_compression
        if orc is not None and orc.width <= approx.truncation_width:
            logger.warning(
                f"OR compression up to column {orc.width} has no effect below "
                f"column truncation width {approx.truncation_width}"
            )
        for kind in (ColumnTruncation, ORCompression, Miscounting):
            ap = approx.get(kind)
            if ap is not None and ap.width > len(self.signature):
                logger.warning(f"{ap} reaches beyond the {len(self.signature)} columns of the signature")

    def build(self):
        """Build the bit matrix, compress it and schedule the final summation"""
        logger.debug(f"Building compressor tree for signature {self.signature}")
        logger.debug(f"  {self.context}")

        matrix = self.build_matrix()
        self.stages.append(matrix.copy())
        logger.debug(f"  Heights after matrix construction: {matrix.heights()}")

        # Iteratively compress the bit matrix till the compression goal is reached
        while not matrix.meets_goal(self.context.goal):
            matrix = self.compress(matrix)
            self.stages.append(matrix.copy())

        self.final_summation(matrix)
        logger.debug(
            f"  Done: {self.num_stages} stages, {self.state.total()} counters, "
            f"{len(self.operands)}-operand {self.context.terminal} summation of {self.out_width} bits"
        )

    def column_bits(self, log2_weight):
        """Input signals of a signature column, in row order"""
        start = self.signature.offsets[log2_weight]
        return self.inputs[start:start + self.signature[log2_weight]]

    def build_matrix(self):
        """Construct the initial bit matrix, applying pre-scheduling approximations"""
        sig = self.signature
        approx = self.context.approximations
        res = BitMatrix()

        # Column truncation: the least significant columns are never inserted
        ct_width = min(approx.truncation_width, len(sig))
        if ct_width:
            logger.debug(f"  Truncating {ct_width} columns ({sum(sig[:ct_width])} bits)")

        # OR compression: a single bit per column stands in for the column
        for log2_weight in range(ct_width, min(approx.or_width, len(sig))):
            bits = self.column_bits(log2_weight)
            if len(bits) == 1:
                res.insert(bits[0], log2_weight)
            elif bits:
                cell = Cell(f"or_c{log2_weight}", "or", bits, 1, or_logic, column=log2_weight, exact=False)
                self.cells.append(cell)
                res.insert(cell.outputs[0], log2_weight)

        # Row truncation: skip the bits of the leading rows in each column
        rt = approx.row_truncation
        trunc_sig = sig.truncated(rt.rows) if rt is not None else None

        for log2_weight in range(approx.start_column, len(sig)):
            skip = trunc_sig[log2_weight] if trunc_sig is not None else 0
            for bit in self.column_bits(log2_weight)[skip:]:
                res.insert(bit, log2_weight)
        return res

    def compress(self, bits):
        """Schedule and construct one compression stage

        Args:
            bits: the input bit matrix (drained by this call)

        Returns:
            the bit matrix after this stage
        """
        self.state.add_stage()
        res = BitMatrix()
        before = bits.count
        before_height = bits.max_height()
        first_cell = len(self.cells)

        # Place a new counter in the bit matrix while possible
        while not bits.meets_goal(self.context.goal):
            self.place_largest_counter(bits, res)

        # Transfer any remaining bits to the next stage
        transferred = self.transfer_bits(bits, res)

        placed = self.cells[first_cell:]
        consumed = sum(len(cell.inputs) for cell in placed)
        produced = sum(len(cell.outputs) for cell in placed)
        if before - consumed != transferred or res.count != produced + transferred:
            raise InvariantError(
                f"stage {self.state.stages} lost bits: {before} in, {consumed} consumed, "
                f"{produced} produced, {transferred} transferred, {res.count} out"
            )

        logger.debug(
            f"  Stage {self.state.stages}: {len(placed)} counters, "
            f"max height {before_height} -> {res.max_height()}"
        )
        return res

    def fits(self, in_sig, exact, bits, lsb_col):
        """Check whether an input signature fits in a bit matrix at a column"""
        mscnt = self.context.approximations.miscounting
        if mscnt is not None and not exact and lsb_col + len(in_sig) > mscnt.width:
            return False
        return all(bits.height(lsb_col + col) >= cnt for col, cnt in enumerate(in_sig))

    def can_place(self, counter, in_bits, out_bits, lsb_col):
        """Check whether a counter fits starting from the given column

        A half adder is only placeable if it finishes the compression of its
        column, counting the bits already produced into the output matrix.
        """
        if counter.is_half_adder:
            in_cnt, out_cnt = in_bits.height(lsb_col), out_bits.height(lsb_col)
            return in_cnt >= 2 and in_cnt + out_cnt - 1 <= self.context.goal
        return self.fits(counter.in_sig, counter.exact, in_bits, lsb_col)

    def max_varlen_length(self, vlcntr, bits, lsb_col):
        """Binary search for the longest variable-length counter that fits

        Lengths from 2 up are searched; the caller has already checked that
        length 1 fits. The search is bounded by the matrix width and the
        height of its tallest column.
        """
        low = 2
        high = max(len(bits) - lsb_col, bits.max_height())
        max_len = 1
        while low < high:
            mid = (low + high) // 2
            if self.fits(vlcntr.in_sig(mid), vlcntr.exact, bits, lsb_col):
                max_len = mid
                low = mid + 1
            else:
                high = mid
        return max_len

    def select_counter(self, in_bits, out_bits, lsb_col):
        """Pick the best counter for a column, as a fixed-length ``Counter``"""
        metric = self.context.metric

        best_reg = None
        for cntr in self.context.counters:
            if self.can_place(cntr, in_bits, out_bits, lsb_col):
                best_reg = (cntr, cntr.metric(metric))
                break

        best_vl = None
        for vlcntr in self.context.varlen_counters:
            if self.fits(vlcntr.in_sig(1), vlcntr.exact, in_bits, lsb_col):
                length = self.max_varlen_length(vlcntr, in_bits, lsb_col)
                best_vl = (vlcntr.at(length), vlcntr.metric(metric, length))
                break

        if best_reg is not None and best_vl is not None:
            return best_reg[0] if best_reg[1] >= best_vl[1] else best_vl[0]
        if best_reg is not None:
            return best_reg[0]
        if best_vl is not None:
            return best_vl[0]

        # Last resort: a half adder that does not finish the column
        if in_bits.height(lsb_col) >= 2:
            for cntr in self.context.counters:
                if cntr.is_half_adder:
                    return cntr
        return None

    def place_largest_counter(self, in_bits, out_bits):
        """Place and construct the best counter at the least significant column
        that still needs compression

        Args:
            in_bits: the current bit matrix (will be updated)
            out_bits: the output bit matrix (will be updated)
        """
        goal = self.context.goal
        lsb_col = in_bits.first_column_above(goal)
        if lsb_col is None:
            raise InvariantError("input bit matrix does not need compression")

        counter = self.select_counter(in_bits, out_bits, lsb_col)
        if counter is None:
            raise SchedulingError(lsb_col, in_bits.height(lsb_col), goal)
        self.state.add_counter(counter)

        # ... inputs first
        inputs = []
        for col, cnt in enumerate(counter.in_sig):
            for _ in range(cnt):
                inputs.append(in_bits.pop(lsb_col + col))

        stage = self.state.stages
        index = sum(self.state.counters[stage].values()) - 1
        name = f"{counter.name}_s{stage}_c{lsb_col}_n{index}"
        cell = self.context.library.construct(counter, inputs, name, stage=stage, column=lsb_col)
        if len(cell.outputs) != sum(counter.out_sig):
            raise InvariantError(f"{name} has {len(cell.outputs)} outputs, expected {sum(counter.out_sig)}")
        self.cells.append(cell)

        # ... outputs second
        index = 0
        for col, cnt in enumerate(counter.out_sig):
            for _ in range(cnt):
                out_bits.insert(cell.outputs[index], lsb_col + col)
                index += 1

    def transfer_bits(self, in_bits, out_bits):
        """Move all remaining bits from one matrix to another"""
        transferred = 0
        for log2_weight in range(len(in_bits)):
            while in_bits.height(log2_weight):
                out_bits.insert(in_bits.pop(log2_weight), log2_weight)
                transferred += 1
        if in_bits.count:
            raise InvariantError("current bit matrix has not been fully transferred")
        return transferred

    def final_summation(self, bits):
        """Pad every column to the goal and sum the resulting operands"""
        goal = self.context.goal
        for log2_weight in range(self.out_width):
            if bits.height(log2_weight) > goal:
                raise InvariantError(f"column {log2_weight} exceeds the compression goal {goal}")

        dropped = sum(bits.height(i) for i in range(self.out_width, len(bits)))
        if dropped:
            logger.debug(f"  Dropping {dropped} bits beyond output width {self.out_width}")

        # Add constant-zero bits to all the columns with less than `goal` bits
        for log2_weight in range(self.out_width):
            while bits.height(log2_weight) < goal:
                bits.insert(ZERO, log2_weight)

        self.operands = [[bits.pop(i) for i in range(self.out_width)] for _ in range(goal)]
        self.adder = make_terminal_adder(self.context.terminal, self.operands, self.out_width)
        return self.adder

    # =================================================================
    # Inspection and simulation
    # =================================================================

    @property
    def num_stages(self):
        return self.state.stages

    @property
    def is_exact(self):
        return len(self.context.approximations) == 0

    def stage_cells(self, stage):
        return [cell for cell in self.cells if cell.stage == stage]

    def evaluate_bits(self, bits):
        """Simulate the tree for a flat list of input bit values"""
        if len(bits) != len(self.inputs):
            raise ValueError(f"expected {len(self.inputs)} input bits, got {len(bits)}")
        values = {sig: int(bit) for sig, bit in zip(self.inputs, bits)}
        for cell in self.cells:
            cell.evaluate(values)
        return self.adder.evaluate(values)

    def evaluate(self, value):
        """Simulate the tree for an integer whose bit ``i`` drives input ``i``"""
        return self.evaluate_bits([(value >> i) & 1 for i in range(len(self.inputs))])

    def print_summary(self, console=None):
        """Print generation summary with matrix visualization"""
        from .visualize import render_summary

        return render_summary(self, console=console)


def parse_signature(args):
    if args.mult is not None:
        a_width, b_width = args.mult
        return MultSignature(a_width, b_width, a_signed=args.signed, b_signed=args.signed, radix=args.radix)
    return StringSignature(args.signature)


def parse_approximations(args):
    approx = []
    if args.column_truncation is not None:
        approx.append(ColumnTruncation(args.column_truncation))
    if args.or_compression is not None:
        approx.append(ORCompression(args.or_compression))
    if args.row_truncation is not None:
        approx.append(RowTruncation(args.row_truncation))
    if args.miscounting is not None:
        approx.append(Miscounting(args.miscounting))
    return approx


def main(argv=None):
    parser = argparse.ArgumentParser(description="Generate a compressor tree for a bit signature")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("-s", "--signature", type=str, help="Comma-separated bit counts, LSB first")
    source.add_argument(
        "-m", "--mult", type=int, nargs=2, metavar=("AW", "BW"), help="Multiplier operand widths"
    )
    parser.add_argument("--signed", action="store_true", help="Signed multiplication")
    parser.add_argument("--radix", type=int, default=2, choices=[2, 4], help="Multiplier radix")
    parser.add_argument(
        "-d",
        "--device",
        type=str,
        default="asic",
        choices=["asic", "7series", "ultrascale", "versal", "intel"],
        help="Target device",
    )
    parser.add_argument("--metric", type=str, default="e", choices=["e", "s"], help="Fitness metric")
    parser.add_argument("--goal", type=int, default=None, help="Override the compression goal")
    parser.add_argument("--out-width", type=int, default=None, help="Output width")
    parser.add_argument("--column-truncation", type=int, default=None, metavar="WIDTH")
    parser.add_argument("--or-compression", type=int, default=None, metavar="WIDTH")
    parser.add_argument("--row-truncation", type=int, default=None, metavar="ROWS")
    parser.add_argument("--miscounting", type=int, default=None, metavar="WIDTH")
    parser.add_argument("--summary", action="store_true", help="Print summary")
    parser.add_argument("-v", "--visualize", action="store_true", help="Print stage-by-stage visualization")
    parser.add_argument("-o", "--output", type=str, default=None, help="Save the visualization to a text file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING, format="%(levelname)s: %(message)s")

    try:
        tree = CompressorTree(
            parse_signature(args),
            out_width=args.out_width,
            target_device=args.device,
            approximations=parse_approximations(args),
            metric=args.metric,
            height_goal=args.goal,
        )
    except CompressorTreeError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"\nCompressor Tree Configuration:")
    print(f"  Signature: {tree.signature}")
    print(f"  Device: {tree.context.library.name}")
    print(f"  Input Bits: {tree.signature.count}")
    print(f"  Output Width: {tree.out_width}")
    print(f"  Compression Goal: {tree.context.goal}")
    print(f"  Stages: {tree.num_stages}")
    print(f"  Counters: {tree.state.total()}")

    if args.summary:
        for stage, counters in enumerate(tree.state.counters[1:], start=1):
            parts = [f"{count} {name}" for name, count in sorted(counters.items())]
            print(f"  Stage {stage}: {', '.join(parts)}")

    if args.visualize or args.output:
        from .visualize import render_summary, save_summary

        if args.output:
            save_summary(tree, args.output)
            print(f"\nSaved visualization to {args.output}")
        if args.visualize:
            render_summary(tree)
    return 0


if __name__ == "__main__":
    sys.exit(main())
