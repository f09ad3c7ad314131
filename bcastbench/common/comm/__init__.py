from bcastbench.common.comm.base import ANY_SOURCE, Communicator, THandle

BACKENDS = ("mpi", "local")


def create_communicator(backend: str = "mpi", **kwargs) -> Communicator:
    """Create the communicator of this process.

    ``local`` needs ``local_group`` and ``rank`` keyword arguments. Backends are
    imported lazily so that mpi4py is only loaded when it is used.
    """
    if backend == "mpi":
        from bcastbench.common.comm.mpi import (  # pylint: disable=import-outside-toplevel
            MPICommunicator,
        )

        return MPICommunicator(kwargs.get("comm"))
    if backend == "local":
        from bcastbench.common.comm.local import (  # pylint: disable=import-outside-toplevel
            LocalCommunicator,
        )

        return LocalCommunicator(kwargs["local_group"], kwargs["rank"])
    raise ValueError(f"Unknown backend {backend}. Choose from {BACKENDS}.")
