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

from typing import Optional, Union

import numpy as np  # type: ignore

from bcastbench.common.chunking import partition
from bcastbench.common.collective_comm.broadcast import SendWaitPolicy
from bcastbench.common.comm import Communicator, create_communicator
from bcastbench.common.config import BenchmarkConfig
from bcastbench.common.harness import Report, run_config
from bcastbench.common.logger import Logger
from bcastbench.common.strategy import get_strategy


class BcastBenchGroup:
    def __init__(self) -> None:
        self._comm: Optional[Communicator] = None

    def init(
        self, backend: str = "mpi", *, communicator: Optional[Communicator] = None, **kwargs
    ):
        if communicator is None:
            communicator = create_communicator(backend, **kwargs)
        self._comm = communicator
        Logger.get().debug(
            "bcastbench initialized: rank %d of %d", self.rank(), self.size()
        )

    def shutdown(self):
        if self._comm is not None:
            self._comm.close()
        self._comm = None

    @property
    def communicator(self) -> Communicator:
        if self._comm is None:
            raise RuntimeError("bcastbench must call init() function first.")
        return self._comm

    def rank(self) -> int:
        return self.communicator.rank()

    def size(self) -> int:
        return self.communicator.size()

    def _as_bytes(self, array: np.ndarray) -> np.ndarray:
        if not isinstance(array, np.ndarray):
            raise ValueError("Input array has to be numpy array only for now")
        if not array.flags.c_contiguous:
            raise ValueError("Only support the array that has contiguous memory.")
        return array.reshape(-1).view(np.uint8)

    def broadcast(
        self,
        *,
        array: np.ndarray,
        root_rank: int,
        strategy: str,
        chunk_size: Optional[int],
        wait_policy: Union[str, SendWaitPolicy],
    ) -> np.ndarray:
        """Broadcast ``array`` in place with the named strategy."""
        self.communicator.check_rank(root_rank)
        buf = self._as_bytes(array)
        if buf.nbytes == 0:
            return array
        plan = partition(buf.nbytes, chunk_size if chunk_size is not None else buf.nbytes)
        get_strategy(strategy, wait_policy=wait_policy).broadcast(
            self.communicator, buf, plan, root_rank
        )
        return array

    def benchmark(self, config: BenchmarkConfig, *, check: bool = False) -> Report:
        report = run_config(config, self.communicator)
        if check:
            report.raise_for_status()
        return report

    def abort(self, errorcode: int = 1):
        self.communicator.abort(errorcode)
