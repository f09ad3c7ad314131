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

import argparse
import sys
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from bcastbench.common import const
from bcastbench.common.comm import BACKENDS, Communicator, create_communicator
from bcastbench.common.comm.local import LocalGroup
from bcastbench.common.config import BenchmarkConfig, parse_positive_int
from bcastbench.common.harness import MISMATCH_MESSAGE, run_config
from bcastbench.common.logger import Logger
from bcastbench.common.strategy import STRATEGY_NAMES
from bcastbench.misc import (
    AllocationError,
    ConfigError,
    MessagingError,
)
from bcastbench.version import __version__

USAGE_EPILOG = """\
MPIRUN arguments:
  mpirun -np <num processes> [--hostfile <host file>] bcastbench <bcast implementation name> [-c <chunk size>]

PROGRAM arguments:
  <bcast implementation name>: the name of the broadcast implementation, one of
      {names}
  [-c <chunk size>]: chunk size in bytes for message splitting (optional)
""".format(
    names=", ".join(STRATEGY_NAMES)
)


class _ArgumentParser(argparse.ArgumentParser):
    # Turn argparse failures into ConfigError so that only rank 0 reports them.
    def error(self, message):
        raise ConfigError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="bcastbench",
        description="Broadcast implementation benchmark",
        epilog=USAGE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="store_true",
        dest="version",
        help="Shows bcastbench version.",
    )

    parser.add_argument(
        "implementation",
        nargs="?",
        help="The name of the broadcast implementation (e.g., naive_bcast).",
    )

    parser.add_argument(
        "-c",
        "--chunk-size",
        action="store",
        dest="chunk_size",
        default=None,
        help="Chunk size in bytes for message splitting. Defaults to the buffer size.",
    )

    parser.add_argument(
        "-n",
        "--num-bytes",
        action="store",
        dest="num_bytes",
        default=None,
        help=f"Number of bytes to broadcast (default {const.NUM_BYTES}).",
    )

    parser.add_argument(
        "--seed",
        action="store",
        dest="seed",
        type=int,
        default=const.RAND_SEED,
        help="Seed of the random payload on the root rank.",
    )

    parser.add_argument(
        "--root",
        action="store",
        dest="root_rank",
        type=int,
        default=0,
        help="Rank that owns the data to broadcast.",
    )

    parser.add_argument(
        "--wait-policy",
        action="store",
        dest="wait_policy",
        default="all",
        help="'all' waits on every non-blocking send, 'last' only on the "
        "latest one(s) like the reference implementation.",
    )

    parser.add_argument(
        "--backend",
        action="store",
        dest="backend",
        default="mpi",
        help=f"Messaging backend, one of {', '.join(BACKENDS)}.",
    )

    parser.add_argument(
        "-np",
        "--num-proc",
        action="store",
        dest="np",
        default=None,
        help="Number of ranks, for the local backend only.",
    )

    return parser


def parse_args(
    argv: Optional[Sequence[str]] = None,
) -> Tuple[argparse.Namespace, BenchmarkConfig]:
    """Parse and validate the command line. ``--version`` is handled by main."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.backend not in BACKENDS:
        raise ConfigError(f"Unknown backend '{args.backend}'")
    config = BenchmarkConfig.create(
        args.implementation,
        chunk_size=args.chunk_size,
        num_bytes=args.num_bytes,
        seed=args.seed,
        root_rank=args.root_rank,
        wait_policy=args.wait_policy,
    )
    return args, config


def _peek_backend(argv: Sequence[str]) -> str:
    peek = argparse.ArgumentParser(add_help=False)
    peek.add_argument("--backend", default="mpi")
    known, _ = peek.parse_known_args(argv)
    return known.backend


def print_config_error(err: ConfigError) -> None:
    print(f"Configuration error: {err}", file=sys.stderr)
    build_parser().print_usage(sys.stderr)
    print(USAGE_EPILOG, file=sys.stderr)


def _describe_failure(err: Exception) -> str:
    if isinstance(err, AllocationError):
        return f"Allocation error: {err}"
    if isinstance(err, MessagingError):
        return f"Messaging error: {err}"
    return f"Error: {err}"


def run_rank(context: Communicator, config: BenchmarkConfig) -> int:
    """Run the benchmark on this rank and print the root's verdict."""
    report = run_config(config, context)
    if report.is_root:
        if report.consistent:
            print(report.format(), flush=True)
        else:
            print(MISMATCH_MESSAGE, file=sys.stderr, flush=True)
    return 0


def _main_mpi(argv: Sequence[str]) -> int:
    context = create_communicator("mpi")
    try:
        _, config = parse_args(argv)
        config.check_group(context.size())
    except ConfigError as e:
        if context.rank() == 0:
            print_config_error(e)
        context.abort(1)
        return 1

    try:
        return run_rank(context, config)
    except Exception as e:  # pylint: disable=broad-except
        Logger.get().error(_describe_failure(e))
        context.abort(1)
        return 1


def run_local_group(group: LocalGroup, config: BenchmarkConfig) -> int:
    """Run every rank of ``group`` on its own thread and wait for all of them."""
    failures: Dict[int, Exception] = {}

    def worker(rank):
        context = group.communicator(rank)
        try:
            run_rank(context, config)
        except Exception as e:  # pylint: disable=broad-except
            failures[rank] = e
            if not group.aborted:
                # Releases the ranks still blocked in recv/barrier.
                context.abort(1)

    threads: List[threading.Thread] = [
        threading.Thread(target=worker, args=(rank,), name=f"bcastbench-rank-{rank}")
        for rank in range(group.size)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    group.close()

    if failures:
        first_rank = next(iter(failures))
        print(
            f"Rank {first_rank}: {_describe_failure(failures[first_rank])}",
            file=sys.stderr,
        )
        return 1
    return 0


def _main_local(argv: Sequence[str]) -> int:
    try:
        args, config = parse_args(argv)
        if args.np is None:
            raise ConfigError("argument -np/--num-proc is required with --backend local")
        num_proc = parse_positive_int(args.np, "num processes")
        config.check_group(num_proc)
    except ConfigError as e:
        print_config_error(e)
        return 1

    return run_local_group(LocalGroup(num_proc), config)


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    if "-v" in argv or "--version" in argv:
        print(__version__)
        return 0

    if _peek_backend(argv) == "local":
        return _main_local(argv)
    return _main_mpi(argv)


if __name__ == "__main__":
    sys.exit(main())
