import os

import pytest  # type: ignore

from bcastbench.common import const
from bcastbench.common.collective_comm.broadcast import SendWaitPolicy
from bcastbench.common.config import BenchmarkConfig, parse_positive_int
from bcastbench.common.strategy import RingBroadcast
from bcastbench.misc import ConfigError


@pytest.fixture(name="clean_env")
def fixture_clean_env():
    yield None
    os.environ.pop(const.BCB_NUM_BYTES, None)
    os.environ.pop(const.BCB_CHUNK_SIZE, None)


def test_defaults(clean_env):
    config = BenchmarkConfig.create("ring_bcast")
    assert config.num_bytes == const.NUM_BYTES
    # chunk size falls back to the whole buffer
    assert config.chunk_size == const.NUM_BYTES
    assert config.seed == const.RAND_SEED
    assert config.root_rank == 0
    assert config.wait_policy is SendWaitPolicy.ALL
    assert isinstance(config.build_strategy(), RingBroadcast)


def test_env_overrides(clean_env):
    os.environ[const.BCB_NUM_BYTES] = "1000"
    os.environ[const.BCB_CHUNK_SIZE] = "64"
    config = BenchmarkConfig.create("pipelined_ring_bcast")
    assert (config.num_bytes, config.chunk_size) == (1000, 64)

    config = BenchmarkConfig.create("pipelined_ring_bcast", chunk_size="10")
    assert config.chunk_size == 10


def test_bad_env_value(clean_env):
    os.environ[const.BCB_CHUNK_SIZE] = "lots"
    with pytest.raises(ConfigError, match="chunk size"):
        BenchmarkConfig.create("pipelined_ring_bcast", num_bytes=10)


@pytest.mark.parametrize("strategy", [None, "", "fancy_bcast"])
def test_bad_strategy(strategy):
    with pytest.raises(ConfigError):
        BenchmarkConfig.create(strategy)


@pytest.mark.parametrize("chunk_size", ["abc", "0", "-3", "1.5", 0, True])
def test_bad_chunk_size(chunk_size):
    with pytest.raises(ConfigError, match="chunk size"):
        BenchmarkConfig.create("naive_bcast", num_bytes=16, chunk_size=chunk_size)


def test_root_rank_checks():
    with pytest.raises(ConfigError):
        BenchmarkConfig.create("naive_bcast", num_bytes=16, root_rank=-1)
    config = BenchmarkConfig.create("naive_bcast", num_bytes=16, root_rank=3)
    config.check_group(4)
    with pytest.raises(ConfigError, match="out of the group"):
        config.check_group(3)


def test_parse_positive_int():
    assert parse_positive_int(" 42 ", "x") == 42
    assert parse_positive_int(7, "x") == 7
    with pytest.raises(ConfigError, match="Invalid <x> argument"):
        parse_positive_int("", "x")
