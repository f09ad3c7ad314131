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
import os
from typing import Any, Optional, Union

from bcastbench.common import const
from bcastbench.common.collective_comm.broadcast import SendWaitPolicy
from bcastbench.common.strategy import (
    STRATEGIES,
    BroadcastStrategy,
    get_strategy,
    parse_wait_policy,
)
from bcastbench.misc import ConfigError


def parse_positive_int(value: Any, what: str) -> int:
    """Parse ``value`` as an integer >= 1 or raise ConfigError naming ``what``."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid <{what}> argument: {value!r}")
    try:
        parsed = int(str(value).strip()) if not isinstance(value, int) else value
    except ValueError as e:
        raise ConfigError(f"Invalid <{what}> argument: {value!r}") from e
    if parsed < 1:
        raise ConfigError(f"Invalid <{what}> argument: {value!r} is not positive")
    return parsed


def _env_int(name: str, what: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None:
        return default
    return parse_positive_int(value, what)


@dataclasses.dataclass(frozen=True)
class BenchmarkConfig:
    strategy: str
    chunk_size: int
    num_bytes: int = const.NUM_BYTES
    seed: int = const.RAND_SEED
    root_rank: int = 0
    wait_policy: SendWaitPolicy = SendWaitPolicy.ALL

    @classmethod
    def create(
        cls,
        strategy: Optional[str],
        *,
        chunk_size: Optional[Any] = None,
        num_bytes: Optional[Any] = None,
        seed: int = const.RAND_SEED,
        root_rank: int = 0,
        wait_policy: Union[str, SendWaitPolicy] = SendWaitPolicy.ALL,
    ) -> "BenchmarkConfig":
        """Validate everything once. Missing sizes fall back to BCB_* env vars.

        The chunk size defaults to the number of bytes, i.e. a single chunk.
        """
        if not strategy:
            raise ConfigError("Missing <bcast implementation name> argument")
        if strategy not in STRATEGIES:
            raise ConfigError(f"Unknown bcast implementation name '{strategy}'")

        if num_bytes is None:
            num_bytes = _env_int(const.BCB_NUM_BYTES, "number of bytes", const.NUM_BYTES)
        num_bytes = parse_positive_int(num_bytes, "number of bytes")

        if chunk_size is None:
            chunk_size = _env_int(const.BCB_CHUNK_SIZE, "chunk size", num_bytes)
        chunk_size = parse_positive_int(chunk_size, "chunk size")

        if not isinstance(root_rank, int) or root_rank < 0:
            raise ConfigError(f"Invalid <root rank> argument: {root_rank!r}")

        return cls(
            strategy=strategy,
            chunk_size=chunk_size,
            num_bytes=num_bytes,
            seed=int(seed),
            root_rank=root_rank,
            wait_policy=parse_wait_policy(wait_policy),
        )

    def check_group(self, size: int) -> None:
        if self.root_rank >= size:
            raise ConfigError(
                f"Root rank {self.root_rank} is out of the group of size {size}"
            )

    def build_strategy(self) -> BroadcastStrategy:
        return get_strategy(self.strategy, wait_policy=self.wait_policy)
