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

import abc
from typing import TYPE_CHECKING, Dict, Tuple, Type, Union

import numpy as np  # type: ignore

from bcastbench.common import const
from bcastbench.common.chunking import ChunkPlan
from bcastbench.common.collective_comm.broadcast import (
    SendWaitPolicy,
    broadcast_async_pipelined_bintree,
    broadcast_async_pipelined_ring,
    broadcast_default,
    broadcast_one_to_all,
    broadcast_pipelined_ring,
    broadcast_ring,
)
from bcastbench.misc import ConfigError

if TYPE_CHECKING:
    from bcastbench.common.comm.base import Communicator


class BroadcastStrategy(abc.ABC):
    """One way of delivering the root's buffer to every rank of the group.

    ``pipelined`` strategies move the buffer chunk by chunk following the
    ``ChunkPlan``. The others ignore the plan and move the whole buffer at once.
    """

    name: str = ""
    pipelined: bool = False

    def __init__(
        self,
        *,
        wait_policy: SendWaitPolicy = SendWaitPolicy.ALL,
        tag: int = const.BCAST_TAG,
    ):
        self.wait_policy = wait_policy
        self.tag = tag

    def __repr__(self) -> str:
        return f"{type(self).__name__}(wait_policy={self.wait_policy.value})"

    @abc.abstractmethod
    def broadcast(
        self,
        context: "Communicator",
        buf: np.ndarray,
        plan: ChunkPlan,
        root_rank: int = 0,
    ) -> None:
        raise NotImplementedError


class DefaultBroadcast(BroadcastStrategy):
    name = "default_bcast"

    def broadcast(self, context, buf, plan, root_rank=0):
        broadcast_default(context, buf, root_rank)


class NaiveBroadcast(BroadcastStrategy):
    name = "naive_bcast"

    def broadcast(self, context, buf, plan, root_rank=0):
        broadcast_one_to_all(context, buf, root_rank, tag=self.tag)


class RingBroadcast(BroadcastStrategy):
    name = "ring_bcast"

    def broadcast(self, context, buf, plan, root_rank=0):
        broadcast_ring(context, buf, root_rank, tag=self.tag)


class PipelinedRingBroadcast(BroadcastStrategy):
    name = "pipelined_ring_bcast"
    pipelined = True

    def broadcast(self, context, buf, plan, root_rank=0):
        broadcast_pipelined_ring(context, buf, plan, root_rank, tag=self.tag)


class AsyncPipelinedRingBroadcast(BroadcastStrategy):
    name = "asynchronous_pipelined_ring_bcast"
    pipelined = True

    def broadcast(self, context, buf, plan, root_rank=0):
        broadcast_async_pipelined_ring(
            context, buf, plan, root_rank, tag=self.tag, wait_policy=self.wait_policy
        )


class AsyncPipelinedBintreeBroadcast(BroadcastStrategy):
    name = "asynchronous_pipelined_bintree_bcast"
    pipelined = True

    def broadcast(self, context, buf, plan, root_rank=0):
        broadcast_async_pipelined_bintree(
            context, buf, plan, root_rank, tag=self.tag, wait_policy=self.wait_policy
        )


STRATEGIES: Dict[str, Type[BroadcastStrategy]] = {
    cls.name: cls
    for cls in (
        DefaultBroadcast,
        NaiveBroadcast,
        RingBroadcast,
        PipelinedRingBroadcast,
        AsyncPipelinedRingBroadcast,
        AsyncPipelinedBintreeBroadcast,
    )
}

STRATEGY_NAMES: Tuple[str, ...] = tuple(STRATEGIES)


def parse_wait_policy(value: Union[str, SendWaitPolicy]) -> SendWaitPolicy:
    if isinstance(value, SendWaitPolicy):
        return value
    try:
        return SendWaitPolicy(str(value).lower())
    except ValueError as e:
        choices = ", ".join(p.value for p in SendWaitPolicy)
        raise ConfigError(
            f"Unknown wait policy '{value}'. Choose from: {choices}"
        ) from e


def get_strategy(
    name: str, *, wait_policy: Union[str, SendWaitPolicy] = SendWaitPolicy.ALL
) -> BroadcastStrategy:
    if name not in STRATEGIES:
        raise ConfigError(f"Unknown bcast implementation name '{name}'")
    return STRATEGIES[name](wait_policy=parse_wait_policy(wait_policy))
