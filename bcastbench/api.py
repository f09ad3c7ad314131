# Copyright 2021 Bluefog Team. All Rights Reserved.
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

from typing import Optional, Union

import numpy as np  # type: ignore

from bcastbench.common import const
from bcastbench.common.basics import BcastBenchGroup
from bcastbench.common.collective_comm.broadcast import SendWaitPolicy
from bcastbench.common.config import BenchmarkConfig
from bcastbench.common.harness import Report

_global_group = BcastBenchGroup()

# import basic methods and wrap it with default global group.


def init(backend: str = "mpi", *, group=None, **kwargs):
    if group is None:
        group = _global_group
    group.init(backend, **kwargs)


def shutdown(group=None):
    if group is None:
        group = _global_group
    group.shutdown()


def size(group=None) -> int:
    if group is None:
        group = _global_group
    return group.size()


def rank(group=None) -> int:
    if group is None:
        group = _global_group
    return group.rank()


def broadcast(
    array: np.ndarray,
    root_rank: int = 0,
    *,
    strategy: str = "default_bcast",
    chunk_size: Optional[int] = None,
    wait_policy: Union[str, SendWaitPolicy] = SendWaitPolicy.ALL,
    group=None
) -> np.ndarray:
    if group is None:
        group = _global_group
    return group.broadcast(
        array=array,
        root_rank=root_rank,
        strategy=strategy,
        chunk_size=chunk_size,
        wait_policy=wait_policy,
    )


def benchmark(
    strategy: str,
    *,
    chunk_size: Optional[int] = None,
    num_bytes: Optional[int] = None,
    seed: int = const.RAND_SEED,
    root_rank: int = 0,
    wait_policy: Union[str, SendWaitPolicy] = SendWaitPolicy.ALL,
    check: bool = False,
    group=None
) -> Report:
    if group is None:
        group = _global_group
    config = BenchmarkConfig.create(
        strategy,
        chunk_size=chunk_size,
        num_bytes=num_bytes,
        seed=seed,
        root_rank=root_rank,
        wait_policy=wait_policy,
    )
    return group.benchmark(config, check=check)
