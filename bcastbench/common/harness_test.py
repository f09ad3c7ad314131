import itertools

import pytest  # type: ignore

from bcastbench.common.config import BenchmarkConfig
from bcastbench.common.harness import MISMATCH_MESSAGE, Report, run, run_config
from bcastbench.common.strategy import STRATEGY_NAMES, BroadcastStrategy, get_strategy
from bcastbench.misc import ConfigError, VerificationMismatch
from bcastbench.testing.fixture import fixture_local_groups
from bcastbench.testing.util import multi_thread_help


@pytest.fixture(name="new_group")
def fixture_new_group_wrapper():
    yield from fixture_local_groups()


def _run_group(new_group, size, fn):
    group = new_group(size)
    results = {}

    def wrapped(rank, size):
        return fn(group.communicator(rank))

    errors = multi_thread_help(size=size, fn=wrapped, group=group, results=results)
    for error in errors:
        raise error
    return results


@pytest.mark.parametrize(
    "name,size,chunk_size",
    itertools.product(STRATEGY_NAMES, [1, 2, 4, 5], [5, 64, 1000]),
)
def test_run_consistent(new_group, name, size, chunk_size):
    num_bytes = 1000

    def fn(comm):
        return run(get_strategy(name), comm, num_bytes=num_bytes, chunk_size=chunk_size)

    reports = _run_group(new_group, size, fn)
    root = reports[0]
    assert root.consistent is True
    assert root.elapsed_seconds >= 0
    assert root.size == size
    assert root.strategy == name
    for rank in range(1, size):
        assert reports[rank].consistent is None
        assert reports[rank].elapsed_seconds is None
        assert not reports[rank].is_root


def test_run_concrete_scenario(new_group):
    config = BenchmarkConfig.create(
        "asynchronous_pipelined_bintree_bcast", num_bytes=16, chunk_size=5
    )
    reports = _run_group(new_group, 4, lambda comm: run_config(config, comm))
    assert reports[0].consistent is True
    line = reports[0].format()
    assert line.startswith(
        "implementation: asynchronous_pipelined_bintree_bcast | chunksize: 5 | time: "
    )


@pytest.mark.parametrize("name", STRATEGY_NAMES)
def test_single_process_group(new_group, name):
    config = BenchmarkConfig.create(name, num_bytes=100, chunk_size=7)
    reports = _run_group(new_group, 1, lambda comm: run_config(config, comm))
    assert reports[0].consistent is True
    assert 0 <= reports[0].elapsed_seconds < 5


@pytest.mark.parametrize("root_rank", [1, 3])
def test_run_non_zero_root(new_group, root_rank):
    config = BenchmarkConfig.create(
        "asynchronous_pipelined_ring_bcast",
        num_bytes=200,
        chunk_size=33,
        root_rank=root_rank,
    )
    reports = _run_group(new_group, 4, lambda comm: run_config(config, comm))
    assert reports[root_rank].consistent is True
    assert [r for r, rep in reports.items() if rep.is_root] == [root_rank]


class CorruptingStrategy(BroadcastStrategy):
    """Runs a real strategy then flips one byte on the given ranks."""

    name = "corrupting"

    def __init__(self, inner, corrupt_ranks):
        super().__init__()
        self.inner = inner
        self.corrupt_ranks = corrupt_ranks

    def broadcast(self, context, buf, plan, root_rank=0):
        self.inner.broadcast(context, buf, plan, root_rank)
        if context.rank() in self.corrupt_ranks:
            buf[0] ^= 0xFF


@pytest.mark.parametrize("corrupt_ranks", [{1}, {2}, {1, 2, 3}])
def test_mismatch_is_detected_without_deadlock(new_group, corrupt_ranks):
    size = 4

    def fn(comm):
        strategy = CorruptingStrategy(get_strategy("pipelined_ring_bcast"), corrupt_ranks)
        report = run(strategy, comm, num_bytes=64, chunk_size=10)
        # Every rank, corrupted or not, gets past the final barrier
        comm.barrier()
        return report

    reports = _run_group(new_group, size, fn)
    root = reports[0]
    assert root.consistent is False
    assert root.format() == MISMATCH_MESSAGE.strip()
    with pytest.raises(VerificationMismatch):
        root.raise_for_status()


def test_root_rank_out_of_group(new_group):
    group = new_group(2)
    with pytest.raises(ConfigError):
        run(
            get_strategy("naive_bcast"),
            group.communicator(0),
            num_bytes=8,
            chunk_size=8,
            root_rank=2,
        )


def test_report_format():
    report = Report(
        strategy="ring_bcast",
        chunk_size=100,
        num_bytes=1000,
        size=4,
        consistent=True,
        elapsed_seconds=1.23456,
    )
    assert report.format() == "implementation: ring_bcast | chunksize: 100 | time: 1.235"
    report.raise_for_status()

    with pytest.raises(ValueError):
        Report(strategy="ring_bcast", chunk_size=1, num_bytes=1, size=2).format()



# Every group size up to 64 in steps of 7, plus odd and power-of-two sizes.
LARGE_GROUP_SIZES = sorted(set(range(1, 65, 7)) | {6, 7, 16, 33, 64})


@pytest.mark.parametrize(
    "name,size", itertools.product(STRATEGY_NAMES, LARGE_GROUP_SIZES)
)
def test_run_consistent_large_groups(new_group, name, size):
    # 97 does not divide 1001, so the last chunk is short.
    def fn(comm):
        return run(get_strategy(name), comm, num_bytes=1001, chunk_size=97)

    reports = _run_group(new_group, size, fn)
    assert reports[0].consistent is True
    assert sum(1 for rep in reports.values() if rep.is_root) == 1


@pytest.mark.parametrize(
    "name", ["asynchronous_pipelined_ring_bcast", "asynchronous_pipelined_bintree_bcast"]
)
def test_last_wait_policy_releases_every_handle(new_group, name):
    config = BenchmarkConfig.create(
        name, num_bytes=1000, chunk_size=10, wait_policy="last"
    )
    group = new_group(4)

    def fn(rank, size):
        comm = group.communicator(rank)
        return [run_config(config, comm) for _ in range(3)]

    results = {}
    errors = multi_thread_help(size=4, fn=fn, group=group, results=results)
    for error in errors:
        raise error

    assert all(report.consistent for report in results[0])
    assert len(group.hm.status) == 0
    assert len(group.hm.detached) == 0
