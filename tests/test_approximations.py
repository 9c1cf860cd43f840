import logging

import pytest

from comptree import (
    Approximations,
    ColumnTruncation,
    CompressorTree,
    ConfigurationError,
    Miscounting,
    MultSignature,
    ORCompression,
    RowTruncation,
    Signature,
)
from helpers import all_vectors, column_bits, random_vectors, weighted_sum


def test_widths_must_be_non_negative():
    with pytest.raises(ConfigurationError):
        ColumnTruncation(-1)
    with pytest.raises(ConfigurationError):
        RowTruncation("2")


def test_duplicate_kinds_conflict():
    with pytest.raises(ConfigurationError):
        Approximations([ColumnTruncation(1), ColumnTruncation(2)])


def test_unknown_approximation():
    with pytest.raises(ConfigurationError):
        Approximations(["truncate"])


def test_order_does_not_matter():
    a = Approximations([ColumnTruncation(2), ORCompression(4), Miscounting(3)])
    b = Approximations([Miscounting(3), ORCompression(4), ColumnTruncation(2)])
    assert a == b
    assert a.start_column == 4
    assert a.truncation_width == 2
    assert a.or_width == 4
    assert a.is_approximate


def test_empty_approximations():
    approx = Approximations()
    assert len(approx) == 0
    assert approx.start_column == 0
    assert not approx.is_approximate
    assert approx.row_truncation is None


def test_column_truncation_drops_low_columns():
    sig = Signature([2, 2, 2])
    tree = CompressorTree(sig, approximations=[ColumnTruncation(1)])
    assert not tree.is_exact
    for bits in all_vectors(sig.count):
        expected = weighted_sum(sig, bits) - sum(column_bits(sig, bits, 0))
        assert tree.evaluate_bits(bits) == expected


def test_or_compression_merges_low_columns():
    sig = Signature([3, 2, 2])
    tree = CompressorTree(sig, approximations=[ORCompression(2)])
    assert [cell.kind for cell in tree.stage_cells(0)] == ["or", "or"]
    for bits in all_vectors(sig.count):
        expected = (
            int(any(column_bits(sig, bits, 0)))
            + 2 * int(any(column_bits(sig, bits, 1)))
            + 4 * sum(column_bits(sig, bits, 2))
        )
        assert tree.evaluate_bits(bits) == expected


def test_or_compression_keeps_single_bits():
    tree = CompressorTree(Signature([1, 3]), approximations=[ORCompression(1)])
    assert tree.stage_cells(0) == []


def test_column_truncation_and_or_compression_commute():
    sig = Signature([3, 2, 2, 2])
    first = CompressorTree(sig, approximations=[ColumnTruncation(1), ORCompression(3)])
    second = CompressorTree(sig, approximations=[ORCompression(3), ColumnTruncation(1)])
    assert [m.heights() for m in first.stages] == [m.heights() for m in second.stages]
    assert [c.kind for c in first.cells] == [c.kind for c in second.cells]
    for bits in all_vectors(sig.count):
        assert first.evaluate_bits(bits) == second.evaluate_bits(bits)


def test_shadowed_or_compression_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="comptree.compressor_tree"):
        tree = CompressorTree(Signature([3, 3]), approximations=[ColumnTruncation(2), ORCompression(1)])
    assert "no effect" in caplog.text
    assert tree.stage_cells(0) == []


def test_row_truncation_skips_leading_rows():
    sig = MultSignature(4, 4)
    skip = sig.truncated(2).counts
    tree = CompressorTree(sig, approximations=[RowTruncation(2)])
    for bits in random_vectors(sig.count, 200):
        assert tree.evaluate_bits(bits) == weighted_sum(sig, bits, skip=skip)


def test_row_truncation_of_every_row():
    sig = MultSignature(3, 3)
    tree = CompressorTree(sig, approximations=[RowTruncation(3)])
    assert tree.num_stages == 0
    assert tree.evaluate((1 << sig.count) - 1) == 0


def test_row_truncation_needs_multiplier():
    with pytest.raises(ConfigurationError):
        CompressorTree(Signature([3, 3]), approximations=[RowTruncation(1)])


def test_row_truncation_beyond_rows():
    with pytest.raises(ConfigurationError):
        CompressorTree(MultSignature(4, 4), approximations=[RowTruncation(5)])


def test_miscounting_bounds_approximate_counters():
    width = 8
    tree = CompressorTree(MultSignature(8, 8), approximations=[Miscounting(width)])
    approx_cells = [cell for cell in tree.cells if not cell.exact]
    assert approx_cells
    for cell in approx_cells:
        assert cell.column + len(cell.in_sig) <= width


def test_exact_catalog_without_miscounting():
    tree = CompressorTree(MultSignature(8, 8), approximations=[ColumnTruncation(2)])
    assert all(cell.exact for cell in tree.cells)
