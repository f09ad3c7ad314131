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

# Every broadcast topology is described in a virtual rank space where the root
# is rank 0, i.e. virtual_rank = (rank - root_rank) % size.

from typing import List, Optional


def to_virtual_rank(rank: int, root_rank: int, size: int) -> int:
    return (rank - root_rank) % size


def to_real_rank(virtual_rank: int, root_rank: int, size: int) -> int:
    return (virtual_rank + root_rank) % size


def ring_predecessor(virtual_rank: int) -> Optional[int]:
    """0 -> 1 -> 2 -> ... -> size-1. The root has no predecessor."""
    if virtual_rank == 0:
        return None
    return virtual_rank - 1


def ring_successor(virtual_rank: int, size: int) -> Optional[int]:
    if virtual_rank >= size - 1:
        return None
    return virtual_rank + 1


def bintree_parent(virtual_rank: int) -> Optional[int]:
    """Complete binary tree stored in rank order: parent of r is (r-1)/2."""
    if virtual_rank == 0:
        return None
    return (virtual_rank - 1) // 2


def bintree_children(virtual_rank: int, size: int) -> List[int]:
    """Left child first, then right child, dropping the ones out of the group."""
    return [c for c in (2 * virtual_rank + 1, 2 * virtual_rank + 2) if c < size]
