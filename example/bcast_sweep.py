"""Time every broadcast implementation over a range of chunk sizes.

mpirun -np 8 python example/bcast_sweep.py
"""
import bcastbench

bcastbench.init()

num_bytes = 10_000_000
chunk_sizes = [1_000, 10_000, 100_000, 1_000_000, num_bytes]
for strategy in bcastbench.STRATEGY_NAMES:
    for chunk_size in chunk_sizes:
        report = bcastbench.benchmark(
            strategy, chunk_size=chunk_size, num_bytes=num_bytes, check=True
        )
        if bcastbench.rank() == 0:
            print(report.format())

bcastbench.shutdown()
