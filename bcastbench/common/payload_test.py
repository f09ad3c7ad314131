import numpy as np
import pytest  # type: ignore

from bcastbench.common.payload import (
    allocate_buffer,
    checksum,
    checksum_message,
    fill_random,
)
from bcastbench.misc import AllocationError


def test_checksum_reads_signed_bytes():
    buf = np.array([1, 2, 255, 128], dtype=np.uint8)
    # 255 -> -1, 128 -> -128
    assert checksum(buf) == 1 + 2 - 1 - 128


def test_checksum_is_stable():
    buf = allocate_buffer(1000)
    ref = fill_random(buf, seed=7)
    assert ref == checksum(buf)
    assert checksum(buf) == checksum(buf)
    assert checksum(buf.copy()) == ref


def test_fill_random_is_deterministic():
    buf_a = allocate_buffer(4096)
    buf_b = allocate_buffer(4096)
    assert fill_random(buf_a, seed=842270) == fill_random(buf_b, seed=842270)
    np.testing.assert_array_equal(buf_a, buf_b)

    buf_c = allocate_buffer(4096)
    fill_random(buf_c, seed=1)
    assert not np.array_equal(buf_a, buf_c)


def test_allocate_buffer_is_zeroed():
    buf = allocate_buffer(16)
    assert buf.dtype == np.uint8
    assert buf.nbytes == 16
    assert not buf.any()


def test_allocate_buffer_failure():
    with pytest.raises(AllocationError):
        allocate_buffer(-1)


def test_checksum_message_bytes():
    msg = checksum_message(-12345)
    assert msg.dtype == np.int64
    assert int(msg.view(np.uint8).view(np.int64)[0]) == -12345
