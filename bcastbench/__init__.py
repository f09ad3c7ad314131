from bcastbench.api import init, shutdown
from bcastbench.api import rank, size
from bcastbench.api import broadcast, benchmark

from bcastbench.misc import (
    AllocationError,
    BcastBenchError,
    ConfigError,
    MessagingError,
    VerificationMismatch,
)
from bcastbench.version import __version__

from bcastbench.common.collective_comm import SendWaitPolicy
from bcastbench.common.config import BenchmarkConfig
from bcastbench.common.harness import Report
from bcastbench.common.strategy import STRATEGY_NAMES, get_strategy
