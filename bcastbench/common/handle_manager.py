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

from dataclasses import dataclass
import enum
import threading
from typing import Dict, Optional, Set

from bcastbench.common.logger import Logger
from bcastbench.misc import MessagingError


class EventStatusEnum(enum.Enum):
    UNKNOWN = 0
    ALLOCATED = 1
    DONE = 2
    ERROR = 3
    WARN = 4


@dataclass(frozen=True)
class EventStatus:
    status: EventStatusEnum
    err: str


DONE_EVENT = EventStatus(status=EventStatusEnum.DONE, err="")

_FINISHED = (EventStatusEnum.DONE, EventStatusEnum.ERROR, EventStatusEnum.WARN)


class HandleManager:
    """Book-keeping of in-flight non-blocking sends.

    A handle is allocated when the send is dispatched, marked done by whoever
    consumes the message (possibly another thread) and released by ``wait``.
    One manager is shared by all the ranks of a local group.
    """

    def __init__(self):
        self.status: Dict[int, EventStatus] = {}  # Handle -> Finished Or Not
        # Handles nobody will wait on, dropped as soon as they finish.
        self.detached: Set[int] = set()
        self._last_handle = -1
        self.mutex = threading.Lock()
        self.cv = threading.Condition(self.mutex)

    @property
    def last_handle(self):
        return self._last_handle

    def allocate(self) -> int:
        with self.mutex:
            self._last_handle += 1
            self.status[self._last_handle] = EventStatus(EventStatusEnum.ALLOCATED, "")
            return self._last_handle

    def poll(self, handle: int) -> EventStatus:
        with self.mutex:
            return self.status.get(
                handle, EventStatus(EventStatusEnum.UNKNOWN, "Not exist")
            )

    def markDone(self, handle: int, event_status: Optional[EventStatus] = None):
        """Change the status of event to some finished status.

        It is called by the receiving side, so it should not raise.
        """
        with self.mutex:
            if handle not in self.status:
                return
            if handle in self.detached:
                self.detached.discard(handle)
                self.status.pop(handle)
                if event_status is not None and event_status.err:
                    Logger.get().debug(
                        "Detached handle %d finished with: %s", handle, event_status.err
                    )
                self.cv.notify_all()
                return
            self.status[handle] = event_status if event_status else DONE_EVENT
            self.cv.notify_all()

    def markAllPending(self, event_status: EventStatus) -> int:
        """Finish every handle that is still allocated. Returns how many."""
        with self.mutex:
            pending = [
                h for h, s in self.status.items() if s.status == EventStatusEnum.ALLOCATED
            ]
            for h in pending:
                if h in self.detached:
                    self.detached.discard(h)
                    self.status.pop(h)
                else:
                    self.status[h] = event_status
            self.cv.notify_all()
            return len(pending)

    def release(self, handle: int) -> EventStatus:
        with self.mutex:
            return self.status.pop(handle)

    def detach(self, handle: int) -> None:
        """Give up on a handle without waiting for it.

        A finished handle is released at once, a pending one when it finishes.
        """
        with self.mutex:
            event_status = self.status.get(handle)
            if event_status is None:
                return
            if event_status.status == EventStatusEnum.ALLOCATED:
                self.detached.add(handle)
            else:
                self.status.pop(handle)

    def wait(self, handle: int, timeout: Optional[float] = None) -> bool:
        """Block until the handle is finished.

        Returns False if the timeout expired or the event finished with a
        warning. Raises MessagingError if it finished with an error.
        """

        def _is_finished():
            return self.status[handle].status in _FINISHED

        with self.mutex:
            if handle not in self.status:
                raise MessagingError(f"Unknown or already released handle {handle}")
            if not self.cv.wait_for(_is_finished, timeout):
                return False

            return self.postProcess(handle)

    def postProcess(self, handle):
        event_status = self.status[handle]
        if event_status.status == EventStatusEnum.DONE:
            return True

        if event_status.status == EventStatusEnum.ERROR:
            raise MessagingError(f"Encounter error: {event_status.err}")

        if event_status.status == EventStatusEnum.WARN:
            Logger.get().warning(
                "Checking the finished status event encounted warning: %s",
                event_status.err,
            )
            return False

        return False

    def num_pending(self) -> int:
        with self.mutex:
            return sum(
                1 for s in self.status.values() if s.status == EventStatusEnum.ALLOCATED
            )

    def _reset(self):
        """This is a danger function and does not handle event notification."""
        with self.mutex:
            self.status = {}
            self.detached = set()
            self._last_handle = -1
