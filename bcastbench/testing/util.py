import threading
import time
from typing import Any, Callable, Dict, List, Optional

from bcastbench.common.comm.local import LocalGroup
from bcastbench.common.logger import Logger


def multi_thread_help(
    size: int,
    fn: Callable[..., Any],
    timeout=10,
    *,
    group: Optional[LocalGroup] = None,
    results: Optional[Dict[int, Any]] = None,
) -> List[Exception]:
    """Run ``fn(rank=rank, size=size)`` on one thread per rank.

    Return values are stored in ``results`` keyed by rank. If ``group`` is
    given it is aborted when a rank fails or some thread outlives the
    timeout, so the remaining ranks are released instead of hanging.
    """
    errors: List[Exception] = []

    def wrap_fn(rank, size):
        try:
            ret = fn(rank=rank, size=size)
            if results is not None:
                results[rank] = ret
        except Exception as e:  # pylint: disable=broad-except
            Logger.get().debug("rank %d failed: %s", rank, e)
            errors.append(e)
            if group is not None and not group.aborted:
                group.abort(f"rank {rank} raised {type(e).__name__}")

    thread_list = [
        threading.Thread(target=wrap_fn, args=(rank, size), daemon=True)
        for rank in range(size)
    ]

    for t in thread_list:
        t.start()

    rest_timeout = timeout
    for t in thread_list:
        t_start = time.time()
        t.join(timeout=max(0.5, rest_timeout))
        rest_timeout -= time.time() - t_start

    alive = [t for t in thread_list if t.is_alive()]
    if alive:
        errors.append(TimeoutError(f"Thread cannot finish within {timeout} seconds."))
        if group is not None:
            group.abort("test timeout")
            for t in alive:
                t.join(timeout=1)

    return errors
