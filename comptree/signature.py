"""
Compressor tree signatures

A signature describes a weighted collection of bits to be summed: entry
``w`` holds the number of bits with weight ``2**w``.
"""

from typing import List, Sequence

from .errors import ConfigurationError


class Signature:
    """Immutable per-column bit count description"""

    def __init__(self, counts: Sequence[int]):
        counts = tuple(counts)
        for log2_weight, cnt in enumerate(counts):
            if isinstance(cnt, bool) or not isinstance(cnt, int) or cnt < 0:
                raise ConfigurationError(
                    f"invalid bit count {cnt!r} in column {log2_weight} of signature"
                )
        self._counts = counts

        # Flat index of the first bit of each column
        offsets = []
        index = 0
        for cnt in counts:
            offsets.append(index)
            index += cnt
        self._offsets = tuple(offsets)
        self._count = index

        total = sum(cnt << log2_weight for log2_weight, cnt in enumerate(counts))
        self._output_width = total.bit_length()

    @property
    def counts(self):
        return self._counts

    @property
    def count(self):
        """Total number of input bits"""
        return self._count

    @property
    def output_width(self):
        """Smallest width that holds the maximum possible weighted sum"""
        return self._output_width

    @property
    def offsets(self):
        return self._offsets

    def __len__(self):
        return len(self._counts)

    def __getitem__(self, log2_weight):
        return self._counts[log2_weight]

    def __iter__(self):
        return iter(self._counts)

    def __eq__(self, other):
        if not isinstance(other, Signature):
            return NotImplemented
        return self._counts == other._counts

    def __hash__(self):
        return hash(self._counts)

    def __str__(self):
        return ",".join(str(cnt) for cnt in self._counts)

    def __repr__(self):
        return f"{type(self).__name__}({list(self._counts)})"


class StringSignature(Signature):
    """Signature parsed from comma-separated counts, e.g. ``"3,4,5"``"""

    def __init__(self, signature: str):
        try:
            counts = [int(part) for part in signature.split(",") if part.strip()]
        except ValueError:
            raise ConfigurationError(f"cannot parse signature {signature!r}") from None
        super().__init__(counts)


class MultSignature(Signature):
    """Partial product matrix of an integer multiplier

    Args:
        a_width: width of the first operand (one radix-2 row per bit)
        b_width: width of the second operand
        a_signed: whether the first operand is signed
        b_signed: whether the second operand is signed
        radix: 2 for plain AND-array partial products, 4 for Booth recoding
    """

    def __init__(self, a_width, b_width, a_signed=False, b_signed=False, radix=2):
        if a_width < 1 or b_width < 1:
            raise ConfigurationError(
                f"multiplier operands must be at least one bit wide, got {a_width}x{b_width}"
            )
        if radix not in (2, 4):
            raise ConfigurationError(f"unsupported multiplier radix {radix}, must be 2 or 4")

        self.a_width = a_width
        self.b_width = b_width
        self.a_signed = a_signed
        self.b_signed = b_signed
        self.radix = radix
        self.unsigned = not (a_signed or b_signed)

        if radix == 2:
            width, rows, constants = self._radix2_rows()
        else:
            width, rows, constants = self._radix4_rows()
        self.rows: List[List[int]] = rows
        self.constants: List[int] = constants

        counts = [0] * width
        for row in rows:
            for col in row:
                counts[col] += 1
        for col in constants:
            counts[col] += 1
        super().__init__(counts)

    def _radix2_rows(self):
        a_w, b_w = self.a_width, self.b_width
        width = a_w + b_w - (1 if self.unsigned else 0)
        rows = [list(range(j, j + b_w)) for j in range(a_w)]

        # Sign-extension constants
        constants = []
        if not self.unsigned:
            constants = [min(a_w, b_w) - 1, max(a_w, b_w) - 1, a_w + b_w - 1]
        return width, rows, constants

    def _radix4_rows(self):
        a_w, b_w = self.a_width, self.b_width
        width = a_w + b_w
        num_pp = b_w // 2 + 1 if self.unsigned else (b_w + 1) // 2

        rows = []
        for pp_idx in range(num_pp):
            offset = pp_idx * 2
            row = []

            # Regular bits plus the inverted MSB at offset + a_w
            for bit in range(a_w + 1):
                if offset + bit < width:
                    row.append(offset + bit)

            # Negation correction bit
            if offset < width:
                row.append(offset)

            # Sign extension bits
            for ext_pos in range(offset + a_w + 1, width):
                row.append(ext_pos)
            rows.append(sorted(row))
        return width, rows, []

    def truncated(self, rows: int) -> Signature:
        """Signature of the bits contributed by the first ``rows`` rows"""
        if rows < 0 or rows > len(self.rows):
            raise ConfigurationError(
                f"cannot truncate {rows} rows of a multiplier with {len(self.rows)} rows"
            )
        counts = [0] * len(self)
        for row in self.rows[:rows]:
            for col in row:
                counts[col] += 1
        return Signature(counts)

    def __repr__(self):
        return (
            f"MultSignature({self.a_width}, {self.b_width}, a_signed={self.a_signed}, "
            f"b_signed={self.b_signed}, radix={self.radix})"
        )
