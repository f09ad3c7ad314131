from typing import Callable, Iterator, List, Optional

from bcastbench.common import const
from bcastbench.common.comm.local import LocalGroup


def fixture_local_groups(
    timeout: Optional[float] = const.LOCAL_GROUP_TEST_TIMEOUT,
) -> Iterator[Callable[[int], LocalGroup]]:
    """Yield a factory of LocalGroups and close every group it created."""
    groups: List[LocalGroup] = []

    def _create(size: int) -> LocalGroup:
        group = LocalGroup(size, timeout=timeout)
        groups.append(group)
        return group

    yield _create
    for group in groups:
        group.close()
