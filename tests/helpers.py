"""Reference models shared by the compressor tree tests."""

import random

from comptree import Counter, Library


def column_bits(signature, bits, log2_weight):
    start = signature.offsets[log2_weight]
    return bits[start:start + signature[log2_weight]]


def weighted_sum(signature, bits, skip=None):
    """True weighted sum of a flat bit vector, optionally skipping leading bits per column"""
    total = 0
    for log2_weight in range(len(signature)):
        col = column_bits(signature, bits, log2_weight)
        if skip is not None:
            col = col[skip[log2_weight]:]
        total += sum(col) << log2_weight
    return total


def all_vectors(n):
    for value in range(1 << n):
        yield [(value >> i) & 1 for i in range(n)]


def random_vectors(n, count, seed=42):
    rng = random.Random(seed)
    yield [0] * n
    yield [1] * n
    for _ in range(count):
        yield [rng.getrandbits(1) for _ in range(n)]


def half_adder():
    return Counter("Counter2_11", (2,), (1, 1), 2)


def full_adder():
    return Counter("Counter3_11", (3,), (1, 1), 3)


def library(*counters, **options):
    return Library(counters=counters, **options)
