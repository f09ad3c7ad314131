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
from typing import Any, Iterable

import numpy as np  # type: ignore

from bcastbench.common import const

ANY_SOURCE = const.ANY_SOURCE

# Opaque in-flight send: an int for the local backend, an MPI.Request for MPI.
THandle = Any


class Communicator(abc.ABC):
    """The point-to-point messaging a broadcast strategy is allowed to use.

    All payloads are contiguous numpy arrays and are moved as raw bytes.
    Blocking ``send`` returns once the transfer is owned by the peer,
    ``isend`` returns at once and must be paired with ``wait``.
    """

    @abc.abstractmethod
    def rank(self) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    def size(self) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    def send(self, dst: int, data: np.ndarray, *, tag: int = const.BCAST_TAG) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def recv(
        self, src: int, buf: np.ndarray, *, tag: int = const.BCAST_TAG
    ) -> np.ndarray:
        raise NotImplementedError

    @abc.abstractmethod
    def isend(
        self, dst: int, data: np.ndarray, *, tag: int = const.BCAST_TAG
    ) -> THandle:
        raise NotImplementedError

    @abc.abstractmethod
    def wait(self, handle: THandle) -> None:
        raise NotImplementedError

    def waitall(self, handles: Iterable[THandle]) -> None:
        for h in handles:
            self.wait(h)

    def free(self, handle: THandle) -> None:
        """Drop a handle that will never be waited on."""

    @abc.abstractmethod
    def barrier(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def now(self) -> float:
        """Monotonic wall-clock in seconds."""
        raise NotImplementedError

    @abc.abstractmethod
    def bcast(self, buf: np.ndarray, root_rank: int) -> None:
        """The broadcast provided by the messaging runtime itself."""
        raise NotImplementedError

    @abc.abstractmethod
    def abort(self, errorcode: int = 1) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def check_rank(self, rank: int) -> None:
        error_msg = "dst or src must be an integer between 0 and size-1."
        if not isinstance(rank, (int, np.integer)) or not 0 <= rank < self.size():
            raise ValueError(f"{error_msg} Got {rank}.")
