# Copyright 2022 Bluefog Team. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import numpy as np  # type: ignore

from bcastbench.common import const
from bcastbench.misc import AllocationError


def allocate_buffer(num_bytes: int) -> np.ndarray:
    """Zero-filled byte buffer. Non-root ranks keep it as the receive target."""
    try:
        return np.zeros(num_bytes, dtype=np.uint8)
    except (MemoryError, ValueError) as e:
        raise AllocationError(f"Out of memory! Cannot allocate {num_bytes} bytes.") from e


def fill_random(buf: np.ndarray, seed: int = const.RAND_SEED) -> int:
    """Fill ``buf`` with seeded random bytes and return its checksum."""
    rng = np.random.default_rng(seed)
    buf[:] = rng.integers(0, 256, size=buf.size, dtype=np.uint8)
    return checksum(buf)


def checksum(buf: np.ndarray) -> int:
    # Bytes are summed as signed chars.
    return int(buf.view(np.int8).sum(dtype=np.int64))


def checksum_message(value: int) -> np.ndarray:
    return np.array([value], dtype=np.int64)
