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

import logging
import os
from typing import List, Optional

from bcastbench.common import const

_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class _RankFilter(logging.Filter):
    """Attach the rank to every record and drop the ones from unselected ranks."""

    def filter(self, record: logging.LogRecord) -> bool:
        rank = Logger.current_rank()
        record.rank = rank if rank is not None else "?"
        return Logger.shouldLogging(rank)


class Logger:
    _bcb_logger: Optional[logging.Logger] = None
    _rank: Optional[int] = None

    @classmethod
    def get(cls) -> logging.Logger:
        # Handlers are attached lazily so BCB_LOG_LEVEL can be set before first use.
        if cls._bcb_logger:
            return cls._bcb_logger

        bcb_logger = logging.getLogger(const.BCB_LOGGER)

        set_level = os.getenv(const.BCB_LOG_LEVEL)
        if set_level is None:
            set_level = "warn"
        level = _LEVELS.get(set_level.lower(), logging.WARNING)
        bcb_logger.setLevel(level)

        ch = logging.StreamHandler()
        ch.setLevel(level)
        formatter = logging.Formatter(
            "R%(rank)s: %(asctime)-15s %(filename)s:%(lineno)d %(levelname)s  %(message)s"
        )
        ch.setFormatter(formatter)
        bcb_logger.addHandler(ch)
        bcb_logger.addFilter(_RankFilter())
        cls._bcb_logger = bcb_logger
        return cls._bcb_logger

    @classmethod
    def set_rank(cls, rank: Optional[int]) -> None:
        cls._rank = rank

    @classmethod
    def current_rank(cls) -> Optional[int]:
        if cls._rank is not None:
            return cls._rank
        env_rank = os.getenv(const.BCB_WORLD_RANK)
        return int(env_rank) if env_rank is not None else None

    @classmethod
    def remove_logger(cls) -> None:
        if cls._bcb_logger is not None:
            for h in list(cls._bcb_logger.handlers):
                cls._bcb_logger.removeHandler(h)
            for f in list(cls._bcb_logger.filters):
                cls._bcb_logger.removeFilter(f)
        cls._bcb_logger = None
        cls._rank = None

    @classmethod
    def checkRanks(cls, ranks: List[str]) -> bool:
        """Check the value for BCB_LOG_RANKS is valid or not."""
        world_size = os.getenv(const.BCB_WORLD_SIZE)
        try:
            for rank in ranks:
                if int(rank) < 0:
                    return False
                if world_size is not None and int(rank) >= int(world_size):
                    return False
        except ValueError:
            return False
        return True

    @classmethod
    def shouldLogging(cls, rank: Optional[int]) -> bool:
        log_ranks_str = os.getenv(const.BCB_LOG_RANKS)
        if log_ranks_str is None or rank is None:
            return True
        ranks = [r.strip() for r in log_ranks_str.split(",") if r.strip()]
        if not cls.checkRanks(ranks):
            # The rank is failed to parse, so just always logging
            return True
        return str(rank) in ranks
