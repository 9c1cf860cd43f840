import logging

import pytest

from comptree import (
    ConfigurationError,
    Context,
    CompressorTree,
    Counter,
    InvariantError,
    Miscounting,
    MultSignature,
    SchedulingError,
    Signature,
)
from comptree.signals import Signal
from helpers import all_vectors, column_bits, full_adder, half_adder, library, random_vectors, weighted_sum

DEVICES = ["asic", "7series", "versal", "intel"]

SMALL_SIGNATURES = [[3], [2, 3], [4, 4], [1, 5, 2], [7], [0, 6, 1], [5, 2, 3]]

LARGE_SIGNATURES = [
    Signature([128]),
    Signature([32, 32]),
    Signature([16, 16, 16, 16]),
    MultSignature(8, 8),
    MultSignature(8, 8, a_signed=True, b_signed=True),
    MultSignature(8, 6, radix=4),
    MultSignature(8, 8, a_signed=True, b_signed=True, radix=4),
]


def check_exact(tree, vectors):
    mask = (1 << tree.out_width) - 1
    for bits in vectors:
        assert tree.evaluate_bits(bits) == weighted_sum(tree.signature, bits) & mask


def check_stages(tree):
    goal = tree.context.goal
    assert len(tree.stages) == tree.num_stages + 1
    for matrix in tree.stages[:-1]:
        assert not matrix.meets_goal(goal)
    assert tree.stages[-1].meets_goal(goal)


@pytest.mark.parametrize("device", DEVICES)
@pytest.mark.parametrize("counts", SMALL_SIGNATURES, ids=str)
def test_small_signatures_exhaustive(device, counts):
    sig = Signature(counts)
    tree = CompressorTree(sig, target_device=device)
    assert tree.is_exact
    check_stages(tree)
    check_exact(tree, all_vectors(sig.count))


@pytest.mark.parametrize("device", DEVICES)
@pytest.mark.parametrize("sig", LARGE_SIGNATURES, ids=repr)
@pytest.mark.parametrize("metric", ["e", "s"])
def test_large_signatures_sampled(device, sig, metric):
    tree = CompressorTree(sig, target_device=device, metric=metric)
    check_stages(tree)
    check_exact(tree, random_vectors(sig.count, 50))


@pytest.mark.parametrize("device", DEVICES)
def test_stage_count_grows_logarithmically(device):
    tree = CompressorTree(Signature([128]), target_device=device)
    assert 0 < tree.num_stages <= 2 * (128).bit_length()


def test_already_compressed():
    tree = CompressorTree(Signature([2, 1, 2]))
    assert tree.num_stages == 0
    assert tree.cells == []
    assert len(tree.operands) == 2
    check_exact(tree, all_vectors(5))


def test_empty_signature():
    tree = CompressorTree(Signature([]))
    assert tree.num_stages == 0
    assert tree.evaluate_bits([]) == 0


def test_half_adder_only_catalog():
    lib = library(half_adder(), height_goal=1)
    tree = CompressorTree(Signature([3]), library=lib)
    assert [m.heights() for m in tree.stages] == [[3], [2, 1], [1, 2], [1, 1, 1]]
    assert tree.num_stages == 3
    assert tree.state.total("Counter2_11") == 3
    for bits in all_vectors(3):
        assert tree.evaluate_bits(bits) == sum(bits)


def test_half_adder_placement_counts_output_bits():
    # Without a cost the full adder ranks below the half adder
    lib = library(half_adder(), Counter("Counter3_11", (3,), (1, 1)))
    sig = Signature([3, 3])
    tree = CompressorTree(sig, library=lib)
    assert tree.state.counters[1] == {"Counter2_11": 1, "Counter3_11": 1}
    assert tree.stages[1].heights() == [2, 2, 1]
    check_exact(tree, all_vectors(sig.count))


def test_approximate_counter_with_miscounting():
    def approx_4_11(bits):
        x1, x2, x3, x4 = bits
        return [(x1 ^ x2) | (x3 ^ x4), (x1 & x2) | (x3 & x4)]

    lib = library(
        half_adder(),
        full_adder(),
        Counter("Approx4_11", (4,), (1, 1), 1, exact=False, logic=approx_4_11),
    )
    sig = Signature([4, 4])
    tree = CompressorTree(sig, library=lib, approximations=[Miscounting(1)])
    approx_cells = [cell for cell in tree.cells if not cell.exact]
    assert [cell.column for cell in approx_cells] == [0]

    differs = False
    for bits in all_vectors(sig.count):
        diff = tree.evaluate_bits(bits) - weighted_sum(sig, bits)
        assert -2 <= diff <= 0
        if sum(column_bits(sig, bits, 0)) < 4 and diff:
            differs = True
    assert differs
    assert tree.evaluate(0) == 0


def test_variable_length_counter_on_versal():
    sig = Signature([5, 4, 4, 4])
    tree = CompressorTree(sig, target_device="versal", metric="s")
    assert tree.state.counters[1] == {"DualRailRippleSum_4": 1}
    assert tree.stages[1].heights() == [1, 2, 2, 2, 2]
    check_exact(tree, random_vectors(sig.count, 200))


def test_scheduling_error_without_fitting_counter():
    with pytest.raises(SchedulingError) as exc_info:
        CompressorTree(Signature([2]), library=library(full_adder(), height_goal=1))
    assert (exc_info.value.column, exc_info.value.height, exc_info.value.goal) == (0, 2, 1)


def test_catalog_bug_is_reported_before_generation():
    # Declares two output bits but drives three
    broken = lambda bits: [1, 1, 1]
    with pytest.raises(ConfigurationError):
        library(full_adder(), Counter("Broken3_2", (3,), (2,), 1, exact=False, logic=broken))


def test_ties_prefer_later_counters():
    tree = CompressorTree(Signature([7]))
    assert tree.state.counters[1] == {"Counter7_111": 1}
    assert tree.stages[1].heights() == [1, 1, 1]
    check_exact(tree, all_vectors(7))


def test_invariant_check_on_lost_bits(monkeypatch):
    transfer = CompressorTree.transfer_bits

    def leaky_transfer(self, in_bits, out_bits):
        if in_bits.height(0):
            in_bits.pop(0)
        return transfer(self, in_bits, out_bits)

    monkeypatch.setattr(CompressorTree, "transfer_bits", leaky_transfer)
    with pytest.raises(InvariantError):
        CompressorTree(Signature([4]))


def test_deterministic_generation():
    first = CompressorTree(MultSignature(6, 6), target_device="7series")
    second = CompressorTree(MultSignature(6, 6), target_device="7series")
    assert [c.name for c in first.cells] == [c.name for c in second.cells]
    assert first.state.counters == second.state.counters


def test_output_width_truncates_result():
    sig = Signature([4, 4, 4])
    tree = CompressorTree(sig, out_width=3)
    assert tree.out_width == 3
    assert all(len(op) == 3 for op in tree.operands)
    check_exact(tree, all_vectors(sig.count))


def test_quaternary_terminal():
    sig = Signature([6, 6, 6])
    tree = CompressorTree(sig, height_goal=4, terminal="quaternary")
    assert len(tree.operands) == 4
    assert tree.stages[-1].max_height() <= 4
    check_exact(tree, random_vectors(sig.count, 200))


def test_explicit_context():
    ctx = Context(target_device="7series")
    tree = CompressorTree(Signature([6, 6]), context=ctx)
    assert tree.context is ctx
    assert len(tree.operands) == 3
    with pytest.raises(ConfigurationError):
        CompressorTree(Signature([6, 6]), context=ctx, metric="s")


def test_explicit_inputs():
    inputs = [Signal(f"x{i}") for i in range(4)]
    tree = CompressorTree(Signature([4]), inputs=inputs)
    assert tree.cells[0].inputs[0] in inputs
    with pytest.raises(ConfigurationError):
        CompressorTree(Signature([4]), inputs=inputs[:3])


def test_evaluate_checks_length():
    tree = CompressorTree(Signature([3]))
    with pytest.raises(ValueError):
        tree.evaluate_bits([1, 0])


def test_debug_logging(caplog):
    with caplog.at_level(logging.DEBUG, logger="comptree"):
        CompressorTree(Signature([7, 7]))
    assert "Stage 1" in caplog.text
