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

import dataclasses
from typing import Optional

import numpy as np  # type: ignore

from bcastbench.common import const
from bcastbench.common.chunking import partition
from bcastbench.common.comm.base import ANY_SOURCE, Communicator
from bcastbench.common.config import BenchmarkConfig
from bcastbench.common.logger import Logger
from bcastbench.common.payload import (
    allocate_buffer,
    checksum,
    checksum_message,
    fill_random,
)
from bcastbench.common.strategy import BroadcastStrategy
from bcastbench.misc import ConfigError, VerificationMismatch

MISMATCH_MESSAGE = "\t** Non-matching checksum! **"


@dataclasses.dataclass(frozen=True)
class Report:
    """Outcome of one benchmark run as seen by one rank.

    Only the root verifies and times the run, so ``consistent`` and
    ``elapsed_seconds`` are None on every other rank.
    """

    strategy: str
    chunk_size: int
    num_bytes: int
    size: int
    consistent: Optional[bool] = None
    elapsed_seconds: Optional[float] = None

    @property
    def is_root(self) -> bool:
        return self.consistent is not None

    def format(self) -> str:
        if not self.is_root:
            raise ValueError("Only the root rank holds the verified timing.")
        if not self.consistent or self.elapsed_seconds is None:
            return MISMATCH_MESSAGE.strip()
        return (
            f"implementation: {self.strategy} | chunksize: {self.chunk_size} "
            f"| time: {self.elapsed_seconds:.3f}"
        )

    def raise_for_status(self) -> None:
        if self.consistent is False:
            raise VerificationMismatch(
                f"{self.strategy} delivered a buffer with a non-matching checksum "
                f"(chunk size {self.chunk_size}, group size {self.size})."
            )


def verify_broadcast(
    context: Communicator, reference: int, *, tag: int = const.CHECKSUM_TAG
) -> bool:
    """Collect one checksum from every other rank and compare with ``reference``.

    Keep receiving after a mismatch so every rank reaches the final barrier.
    """
    consistent = True
    msg = np.zeros(1, dtype=np.int64)
    for _ in range(context.size() - 1):
        context.recv(ANY_SOURCE, msg, tag=tag)
        received = int(msg[0])
        if consistent and received != reference:
            Logger.get().debug(
                "Non-matching checksum: expected %d, received %d", reference, received
            )
            consistent = False
    return consistent


def run(
    strategy: BroadcastStrategy,
    context: Communicator,
    *,
    num_bytes: int,
    chunk_size: int,
    seed: int = const.RAND_SEED,
    root_rank: int = 0,
) -> Report:
    size = context.size()
    rank = context.rank()
    if not 0 <= root_rank < size:
        raise ConfigError(f"Root rank {root_rank} is out of the group of size {size}")

    plan = partition(num_bytes, chunk_size)
    buf = allocate_buffer(num_bytes)

    is_root = rank == root_rank
    reference = fill_random(buf, seed) if is_root else 0

    context.barrier()
    start_time = context.now() if is_root else 0.0

    Logger.get().debug("start %r with %r", strategy, plan)
    strategy.broadcast(context, buf, plan, root_rank)

    consistent: Optional[bool] = None
    if is_root:
        consistent = verify_broadcast(context, reference)
    else:
        context.send(root_rank, checksum_message(checksum(buf)), tag=const.CHECKSUM_TAG)

    context.barrier()
    elapsed_seconds = context.now() - start_time if is_root else None

    return Report(
        strategy=strategy.name,
        chunk_size=chunk_size,
        num_bytes=num_bytes,
        size=size,
        consistent=consistent,
        elapsed_seconds=elapsed_seconds,
    )


def run_config(config: BenchmarkConfig, context: Communicator) -> Report:
    config.check_group(context.size())
    return run(
        config.build_strategy(),
        context,
        num_bytes=config.num_bytes,
        chunk_size=config.chunk_size,
        seed=config.seed,
        root_rank=config.root_rank,
    )
