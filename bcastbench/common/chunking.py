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
from typing import Iterator, List

import numpy as np

from bcastbench.misc import InvalidConfig

Chunk = collections.namedtuple("Chunk", ["offset", "length"])


class ChunkPlan:
    """Ordered, gap-free split of ``[0, total_bytes)`` into chunks."""

    def __init__(self, total_bytes: int, chunk_size: int, chunks: List[Chunk]):
        self.total_bytes = total_bytes
        self.chunk_size = chunk_size
        self.chunks = chunks

    def __iter__(self) -> Iterator[Chunk]:
        return iter(self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)

    def __getitem__(self, index: int) -> Chunk:
        return self.chunks[index]

    def __repr__(self) -> str:
        return (
            f"ChunkPlan(total_bytes={self.total_bytes}, "
            f"chunk_size={self.chunk_size}, num_chunks={len(self.chunks)})"
        )

    def views(self, buf: np.ndarray) -> Iterator[np.ndarray]:
        """Yield the slice of ``buf`` for every chunk, in plan order."""
        if buf.nbytes != self.total_bytes:
            raise ValueError(
                f"Buffer has {buf.nbytes} bytes but the plan covers {self.total_bytes}."
            )
        for chunk in self.chunks:
            yield buf[chunk.offset : chunk.offset + chunk.length]


def partition(total_bytes: int, chunk_size: int) -> ChunkPlan:
    if chunk_size <= 0:
        raise InvalidConfig(f"chunk size must be a positive integer, got {chunk_size}")
    if total_bytes <= 0:
        raise InvalidConfig(
            f"number of bytes must be a positive integer, got {total_bytes}"
        )

    chunks: List[Chunk] = []
    length = chunk_size
    offset = 0
    while offset < total_bytes:
        if offset > total_bytes - chunk_size:
            length = total_bytes % chunk_size
        if length == 0:
            # Unreachable with the boundary test above, never emit it anyway.
            raise InvalidConfig(
                f"zero-length chunk at offset {offset} for {total_bytes} bytes "
                f"split by {chunk_size}"
            )
        chunks.append(Chunk(offset=offset, length=length))
        offset += length
    return ChunkPlan(total_bytes=total_bytes, chunk_size=chunk_size, chunks=chunks)
