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

# Environment variables
BCB_WORLD_RANK = "BCB_WORLD_RANK"
BCB_WORLD_SIZE = "BCB_WORLD_SIZE"
BCB_LOG_LEVEL = "BCB_LOG_LEVEL"
BCB_LOG_RANKS = "BCB_LOG_RANKS"
BCB_NUM_BYTES = "BCB_NUM_BYTES"
BCB_CHUNK_SIZE = "BCB_CHUNK_SIZE"

BCB_LOGGER = "BCB_LOGGER"

# Number of bytes to broadcast
NUM_BYTES = 100_000_000

# Seed for the payload on the root rank.
RAND_SEED = 842270

# Message tags. Checksums travel on their own tag so they can never be
# matched by a broadcast receive.
BCAST_TAG = 1
CHECKSUM_TAG = 2

ANY_SOURCE = -1

# Seconds a local group used by the tests waits before treating a hang as an error.
LOCAL_GROUP_TEST_TIMEOUT = 10.0
