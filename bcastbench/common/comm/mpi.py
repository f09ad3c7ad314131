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

import contextlib
from typing import Iterable, Iterator, Optional

import numpy as np  # type: ignore
from mpi4py import MPI  # type: ignore

from bcastbench.common import const
from bcastbench.common.comm.base import ANY_SOURCE, Communicator
from bcastbench.common.logger import Logger
from bcastbench.misc import MessagingError


@contextlib.contextmanager
def _translate_errors(op: str) -> Iterator[None]:
    try:
        yield
    except MPI.Exception as e:
        raise MessagingError(f"MPI {op} failed: {e.Get_error_string()}") from e


class MPICommunicator(Communicator):
    """Communicator backed by an mpi4py communicator (COMM_WORLD by default)."""

    def __init__(self, comm: Optional["MPI.Comm"] = None):
        self._comm = comm if comm is not None else MPI.COMM_WORLD
        self._comm.Set_errhandler(MPI.ERRORS_RETURN)
        self._rank = self._comm.Get_rank()
        self._size = self._comm.Get_size()
        Logger.set_rank(self._rank)
        Logger.get().debug("MPI communicator ready: rank %d of %d", self._rank, self._size)

    def rank(self) -> int:
        return self._rank

    def size(self) -> int:
        return self._size

    def send(self, dst: int, data: np.ndarray, *, tag: int = const.BCAST_TAG) -> None:
        self.check_rank(dst)
        with _translate_errors("Send"):
            self._comm.Send([data, MPI.BYTE], dest=dst, tag=tag)

    def recv(
        self, src: int, buf: np.ndarray, *, tag: int = const.BCAST_TAG
    ) -> np.ndarray:
        source = MPI.ANY_SOURCE if src == ANY_SOURCE else src
        if src != ANY_SOURCE:
            self.check_rank(src)
        with _translate_errors("Recv"):
            self._comm.Recv([buf, MPI.BYTE], source=source, tag=tag)
        return buf

    def isend(
        self, dst: int, data: np.ndarray, *, tag: int = const.BCAST_TAG
    ) -> "MPI.Request":
        self.check_rank(dst)
        with _translate_errors("Isend"):
            return self._comm.Isend([data, MPI.BYTE], dest=dst, tag=tag)

    def wait(self, handle: "MPI.Request") -> None:
        with _translate_errors("Wait"):
            handle.Wait()

    def waitall(self, handles: Iterable["MPI.Request"]) -> None:
        requests = list(handles)
        if not requests:
            return
        with _translate_errors("Waitall"):
            MPI.Request.Waitall(requests)

    def free(self, handle: "MPI.Request") -> None:
        # MPI_Request_free lets a pending send complete in the background.
        with _translate_errors("Request_free"):
            handle.Free()

    def barrier(self) -> None:
        with _translate_errors("Barrier"):
            self._comm.Barrier()

    def now(self) -> float:
        return MPI.Wtime()

    def bcast(self, buf: np.ndarray, root_rank: int) -> None:
        self.check_rank(root_rank)
        with _translate_errors("Bcast"):
            self._comm.Bcast([buf, MPI.BYTE], root=root_rank)

    def abort(self, errorcode: int = 1) -> None:
        Logger.get().error("Aborting MPI group with error code %d", errorcode)
        self._comm.Abort(errorcode)
