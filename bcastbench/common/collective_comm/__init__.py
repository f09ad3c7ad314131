from bcastbench.common.collective_comm.broadcast import (
    SendWaitPolicy,
    broadcast_async_pipelined_bintree,
    broadcast_async_pipelined_ring,
    broadcast_default,
    broadcast_one_to_all,
    broadcast_pipelined_ring,
    broadcast_ring,
    broadcast_spreading,
)
