import bcastbench
import numpy as np

bcastbench.init()
print(f"I am rank {bcastbench.rank()} among size {bcastbench.size()}.")

data = np.array([1, 2, 3, 4]) if bcastbench.rank() == 0 else np.zeros(4, dtype=np.int64)
bcastbench.broadcast(data, root_rank=0, strategy="ring_bcast")
print("recv data:", data)

bcastbench.shutdown()
