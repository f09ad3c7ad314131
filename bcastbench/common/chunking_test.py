import itertools

import numpy as np
import pytest  # type: ignore

from bcastbench.common.chunking import Chunk, partition
from bcastbench.misc import ConfigError, InvalidConfig


def test_partition_concrete_scenario():
    plan = partition(16, 5)
    assert list(plan) == [(0, 5), (5, 5), (10, 5), (15, 1)]
    assert plan[3] == Chunk(offset=15, length=1)
    assert plan.chunk_size == 5
    assert plan.total_bytes == 16


def test_partition_exact_multiple_has_no_empty_chunk():
    plan = partition(16, 4)
    assert list(plan) == [(0, 4), (4, 4), (8, 4), (12, 4)]


def test_partition_chunk_larger_than_total():
    plan = partition(10, 100)
    assert list(plan) == [(0, 10)]


@pytest.mark.parametrize(
    "total_bytes,chunk_size",
    itertools.product([1, 2, 7, 16, 100, 1023], [1, 2, 3, 5, 64, 1000, 5000]),
)
def test_partition_covers_without_gaps(total_bytes, chunk_size):
    plan = partition(total_bytes, chunk_size)
    assert sum(c.length for c in plan) == total_bytes
    assert all(c.length > 0 for c in plan)
    assert all(c.length == chunk_size for c in plan.chunks[:-1])

    expected_offset = 0
    for chunk in plan:
        assert chunk.offset == expected_offset
        expected_offset += chunk.length
    assert expected_offset == total_bytes


@pytest.mark.parametrize("chunk_size", [0, -1, -100])
def test_partition_rejects_non_positive_chunk(chunk_size):
    with pytest.raises(InvalidConfig):
        partition(16, chunk_size)


def test_partition_rejects_empty_buffer():
    with pytest.raises(ConfigError):
        partition(0, 4)


def test_plan_views_are_in_place():
    buf = np.zeros(16, dtype=np.uint8)
    plan = partition(16, 5)
    for i, view in enumerate(plan.views(buf)):
        view[:] = i + 1
    np.testing.assert_array_equal(buf, [1] * 5 + [2] * 5 + [3] * 5 + [4])


def test_plan_views_size_mismatch():
    plan = partition(16, 5)
    with pytest.raises(ValueError):
        list(plan.views(np.zeros(15, dtype=np.uint8)))
