import enum
import math
from typing import TYPE_CHECKING, List, Optional, Tuple

import numpy as np  # type: ignore

from bcastbench.common import const
from bcastbench.common.chunking import ChunkPlan
from bcastbench.common.logger import Logger
from bcastbench.common.topology import (
    bintree_children,
    bintree_parent,
    ring_predecessor,
    ring_successor,
    to_real_rank,
    to_virtual_rank,
)

if TYPE_CHECKING:
    # pylint: disable=cyclic-import
    from bcastbench.common.comm.base import Communicator, THandle


class SendWaitPolicy(enum.Enum):
    # Wait on every issued isend before returning.
    ALL = "all"
    # Keep only the latest handle(s) and wait on those, earlier ones are
    # dropped without a wait.
    LAST = "last"


def _ring_neighbors(
    context: "Communicator", root_rank: int
) -> Tuple[Optional[int], Optional[int]]:
    size = context.size()
    virtual_rank = to_virtual_rank(context.rank(), root_rank, size)
    prev_v = ring_predecessor(virtual_rank)
    next_v = ring_successor(virtual_rank, size)
    prev_rank = None if prev_v is None else to_real_rank(prev_v, root_rank, size)
    next_rank = None if next_v is None else to_real_rank(next_v, root_rank, size)
    return prev_rank, next_rank


def broadcast_default(context: "Communicator", buf: np.ndarray, root_rank: int):
    context.bcast(buf, root_rank)


def broadcast_one_to_all(
    context: "Communicator", buf: np.ndarray, root_rank: int, *, tag=const.BCAST_TAG
):
    # assume the input are all well-defined and behaved.
    if context.rank() != root_rank:
        context.recv(root_rank, buf, tag=tag)
        return

    size = context.size()
    for v in range(1, size):
        context.send(to_real_rank(v, root_rank, size), buf, tag=tag)


def broadcast_ring(
    context: "Communicator", buf: np.ndarray, root_rank: int, *, tag=const.BCAST_TAG
):
    prev_rank, next_rank = _ring_neighbors(context, root_rank)
    if prev_rank is not None:
        context.recv(prev_rank, buf, tag=tag)
    if next_rank is not None:
        context.send(next_rank, buf, tag=tag)


def broadcast_pipelined_ring(
    context: "Communicator",
    buf: np.ndarray,
    plan: ChunkPlan,
    root_rank: int,
    *,
    tag=const.BCAST_TAG,
):
    prev_rank, next_rank = _ring_neighbors(context, root_rank)
    for chunk in plan.views(buf):
        if prev_rank is not None:
            context.recv(prev_rank, chunk, tag=tag)
        if next_rank is not None:
            context.send(next_rank, chunk, tag=tag)


def broadcast_async_pipelined_ring(
    context: "Communicator",
    buf: np.ndarray,
    plan: ChunkPlan,
    root_rank: int,
    *,
    tag=const.BCAST_TAG,
    wait_policy: SendWaitPolicy = SendWaitPolicy.ALL,
):
    prev_rank, next_rank = _ring_neighbors(context, root_rank)
    handles: List["THandle"] = []
    for chunk in plan.views(buf):
        if prev_rank is not None:
            context.recv(prev_rank, chunk, tag=tag)
        if next_rank is not None:
            handle = context.isend(next_rank, chunk, tag=tag)
            if wait_policy is SendWaitPolicy.LAST:
                for dropped in handles:
                    context.free(dropped)
                handles = [handle]
            else:
                handles.append(handle)

    Logger.get().debug(
        "async ring: waiting on %d of %d sends", len(handles), len(plan)
    )
    context.waitall(handles)


def broadcast_async_pipelined_bintree(
    context: "Communicator",
    buf: np.ndarray,
    plan: ChunkPlan,
    root_rank: int,
    *,
    tag=const.BCAST_TAG,
    wait_policy: SendWaitPolicy = SendWaitPolicy.ALL,
):
    size = context.size()
    virtual_rank = to_virtual_rank(context.rank(), root_rank, size)
    parent_v = bintree_parent(virtual_rank)
    parent = None if parent_v is None else to_real_rank(parent_v, root_rank, size)
    children = [
        to_real_rank(c, root_rank, size) for c in bintree_children(virtual_rank, size)
    ]

    handles: List["THandle"] = []
    for chunk in plan.views(buf):
        if parent is not None:
            context.recv(parent, chunk, tag=tag)
        # left child first, then right child
        sent = [context.isend(child, chunk, tag=tag) for child in children]
        if wait_policy is SendWaitPolicy.LAST:
            for dropped in handles:
                context.free(dropped)
            handles = sent
        else:
            handles.extend(sent)

    Logger.get().debug(
        "async bintree: parent %s, children %s, waiting on %d sends",
        parent,
        children,
        len(handles),
    )
    context.waitall(handles)


def broadcast_spreading(
    context: "Communicator", buf: np.ndarray, root_rank: int, *, tag=const.BCAST_TAG
):
    # Using the 0->1 | 0->2, 1->3 | 0->4, 1->5, 2->6, 3->7 style.
    size = context.size()
    virtual_rank = to_virtual_rank(context.rank(), root_rank, size)
    rounds = math.ceil(math.log2(size))

    for r in range(rounds):
        rank_diff = 1 << r

        if virtual_rank < rank_diff:
            virtual_send_to = virtual_rank + rank_diff
            if virtual_send_to >= size:
                continue
            context.send(to_real_rank(virtual_send_to, root_rank, size), buf, tag=tag)
        elif rank_diff <= virtual_rank < 2 * rank_diff:
            virtual_recv_from = virtual_rank - rank_diff
            context.recv(to_real_rank(virtual_recv_from, root_rank, size), buf, tag=tag)
        else:
            pass
