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


class BcastBenchError(RuntimeError):
    """Base class of all the errors raised by bcastbench."""


class ConfigError(BcastBenchError, ValueError):
    """Raised when the strategy name, chunk size or other settings are invalid."""


# The partitioner reports bad chunk settings under this name.
InvalidConfig = ConfigError


class AllocationError(BcastBenchError, MemoryError):
    """Raised when the payload buffer cannot be obtained."""


class MessagingError(BcastBenchError):
    """Raised when send/recv/wait fails or the group is aborted.

    It is never retried: a broadcast cannot be resumed in the middle.
    """


class VerificationMismatch(BcastBenchError):
    """Raised on request when the root detected a non-matching checksum."""
