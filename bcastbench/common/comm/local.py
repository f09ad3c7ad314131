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

import collections
import dataclasses
import threading
import time
from typing import Deque, Dict, List, Optional

import numpy as np  # type: ignore

from bcastbench.common import const
from bcastbench.common.collective_comm.broadcast import broadcast_spreading
from bcastbench.common.comm.base import ANY_SOURCE, Communicator
from bcastbench.common.handle_manager import (
    EventStatus,
    EventStatusEnum,
    HandleManager,
)
from bcastbench.common.logger import Logger
from bcastbench.misc import MessagingError


@dataclasses.dataclass
class Envelope:
    src: int
    tag: int
    # A view on the sender's memory. The receiver copies out of it and only
    # then completes the sender's handle (rendezvous).
    payload: memoryview
    handle: int


# One LocalGroup holds the shared state of all ranks living in this process.
# Each rank talks to it through its own LocalCommunicator, usually from its
# own thread.
class LocalGroup:
    def __init__(self, size: int, *, timeout: Optional[float] = None):
        if size < 1:
            raise ValueError(f"Group size must be at least 1, got {size}")
        self._size = size
        self.timeout = timeout
        self.hm = HandleManager()

        self._mutex = threading.Lock()
        self._cv = threading.Condition(self._mutex)
        self._mailboxes: Dict[int, Deque[Envelope]] = {
            r: collections.deque() for r in range(size)
        }
        self._barrier = threading.Barrier(size)
        self._abort_reason: Optional[str] = None
        self._closed = False

    @property
    def size(self) -> int:
        return self._size

    @property
    def aborted(self) -> bool:
        return self._abort_reason is not None

    def communicator(self, rank: int) -> "LocalCommunicator":
        return LocalCommunicator(self, rank)

    def communicators(self) -> List["LocalCommunicator"]:
        return [self.communicator(r) for r in range(self._size)]

    def _check_alive(self) -> None:
        if self._abort_reason is not None:
            raise MessagingError(f"The group was aborted: {self._abort_reason}")
        if self._closed:
            raise MessagingError("The group is already closed.")

    def post(self, dst: int, envelope: Envelope) -> None:
        with self._mutex:
            self._check_alive()
            self._mailboxes[dst].append(envelope)
            self._cv.notify_all()

    def take(self, rank: int, src: int, tag: int) -> Envelope:
        """Block until the oldest message from ``src`` with ``tag`` arrives."""
        mailbox = self._mailboxes[rank]
        found: List[Envelope] = []

        def _ready():
            if self._abort_reason is not None or self._closed:
                return True
            for envelope in mailbox:
                if envelope.tag == tag and src in (ANY_SOURCE, envelope.src):
                    found.append(envelope)
                    return True
            return False

        with self._mutex:
            if not self._cv.wait_for(_ready, self.timeout):
                raise MessagingError(
                    f"Rank {rank} timed out after {self.timeout}s waiting for "
                    f"a message from {src} with tag {tag}."
                )
            self._check_alive()
            envelope = found[0]
            mailbox.remove(envelope)
            return envelope

    def barrier(self) -> None:
        try:
            self._barrier.wait(timeout=self.timeout)
        except threading.BrokenBarrierError as e:
            if self._abort_reason is not None:
                raise MessagingError(
                    f"The group was aborted: {self._abort_reason}"
                ) from e
            raise MessagingError(
                f"Barrier broken, not every rank arrived within {self.timeout}s."
            ) from e

    def abort(self, reason: str) -> None:
        with self._mutex:
            if self._abort_reason is None:
                self._abort_reason = reason
            self._cv.notify_all()
        self._barrier.abort()
        self.hm.markAllPending(EventStatus(status=EventStatusEnum.ERROR, err=reason))
        Logger.get().error("Local group aborted: %s", reason)

    def close(self) -> None:
        with self._mutex:
            if self._closed:
                return
            self._closed = True
            self._cv.notify_all()
        self._barrier.abort()
        unfinished = self.hm.markAllPending(
            EventStatus(
                status=EventStatusEnum.WARN,
                err="Unfinished send/recv after the group is closed.",
            )
        )
        if unfinished:
            Logger.get().warning("Closed the local group with %d unfinished sends.", unfinished)


class LocalCommunicator(Communicator):
    def __init__(self, group: LocalGroup, rank: int):
        self._group = group
        self._rank = rank
        self.check_rank(rank)

    def rank(self) -> int:
        return self._rank

    def size(self) -> int:
        return self._group.size

    @property
    def group(self) -> LocalGroup:
        return self._group

    def isend(self, dst: int, data: np.ndarray, *, tag: int = const.BCAST_TAG) -> int:
        self.check_rank(dst)
        hm = self._group.hm
        handle = hm.allocate()
        envelope = Envelope(
            src=self._rank, tag=tag, payload=memoryview(data).cast("B"), handle=handle
        )
        try:
            self._group.post(dst, envelope)
        except MessagingError:
            hm.release(handle)
            raise
        return handle

    def send(self, dst: int, data: np.ndarray, *, tag: int = const.BCAST_TAG) -> None:
        handle = self.isend(dst, data, tag=tag)
        self.wait(handle)

    def recv(
        self, src: int, buf: np.ndarray, *, tag: int = const.BCAST_TAG
    ) -> np.ndarray:
        if src != ANY_SOURCE:
            self.check_rank(src)
        envelope = self._group.take(self._rank, src, tag)
        target = memoryview(buf).cast("B")
        nbytes = envelope.payload.nbytes
        if nbytes > target.nbytes:
            err = (
                f"Recv Buffer size ({target.nbytes}) should be equal or "
                f"larger than the sending one ({nbytes})."
            )
            self._group.hm.markDone(
                envelope.handle, EventStatus(status=EventStatusEnum.ERROR, err=err)
            )
            raise MessagingError(err)
        target[:nbytes] = envelope.payload
        self._group.hm.markDone(envelope.handle)
        return buf

    def wait(self, handle: int) -> None:
        hm = self._group.hm
        if hm.poll(handle).status == EventStatusEnum.UNKNOWN:
            raise MessagingError(f"Unknown or already released handle {handle}")
        try:
            finished = hm.wait(handle, timeout=self._group.timeout)
        except MessagingError:
            hm.release(handle)
            raise
        if not finished:
            event_status = hm.poll(handle)
            if event_status.status == EventStatusEnum.ALLOCATED:
                raise MessagingError(
                    f"Rank {self._rank} timed out after {self._group.timeout}s "
                    f"waiting for send handle {handle}."
                )
            hm.release(handle)
            raise MessagingError(f"Send did not complete: {event_status.err}")
        hm.release(handle)

    def free(self, handle: int) -> None:
        self._group.hm.detach(handle)

    def barrier(self) -> None:
        self._group.barrier()

    def now(self) -> float:
        return time.perf_counter()

    def bcast(self, buf: np.ndarray, root_rank: int) -> None:
        self.check_rank(root_rank)
        broadcast_spreading(self, buf, root_rank)

    def abort(self, errorcode: int = 1) -> None:
        self._group.abort(f"rank {self._rank} called abort({errorcode})")
