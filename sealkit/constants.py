"""Graph, buffer and proof-layout constants for sector sealing."""

from __future__ import annotations

import struct
from enum import IntEnum


class SectorSizeLg(IntEnum):
    """Base-two logarithm of each supported sector size in bytes."""

    SECTOR_2KB = 11
    SECTOR_4KB = 12
    SECTOR_16KB = 14
    SECTOR_32KB = 15
    SECTOR_8MB = 23
    SECTOR_16MB = 24
    SECTOR_512MB = 29
    SECTOR_1GB = 30
    SECTOR_32GB = 35
    SECTOR_64GB = 36


# Graph constants
NODE_SIZE_LG = 5  # bytes, SHA-256 digest size
NODE_SIZE = 1 << NODE_SIZE_LG
NODE_WORDS = NODE_SIZE // 4

PARENT_COUNT_BASE = 6  # parents from the same layer
PARENT_COUNT_EXP = 8  # parents from the previous layer
PARENT_COUNT = PARENT_COUNT_BASE + PARENT_COUNT_EXP
PARENT_SIZE = 4

NODE_0_REPEAT = 1
NODE_0_BLOCKS = 2
LAYER_1_REPEAT = 3
LAYERS_GT_1_REPEAT = 7
NODE_GT_0_BLOCKS = 20

# Full padding block for the hash buffer of node 0 in each layer.
NODE_0_PADDING = bytes(3) + b"\x80" + bytes(57) + b"\x02" + bytes(2)

# Half padding block for the hash buffer of nodes other than node 0.
NODE_PADDING_X2 = (bytes(3) + b"\x80" + bytes(25) + b"\x27" + bytes(2)) * 2

PAGE_SIZE = 4096

NODES_PER_HASHER = 2

# Test inputs: on-chain ticket and porep seed.
TICKET = bytes([1] * 32)
SEED = bytes(32)

# PC1 buffer sizing
PARENT_PTR_BATCH_SIZE = PARENT_COUNT
PAGE_BATCH_SIZE = PARENT_COUNT - 1

PARENT_BUFFER_BATCHES = 1 << 18
PARENT_BUFFER_NODES = PARENT_BUFFER_BATCHES * PAGE_BATCH_SIZE

NODE_BUFFER_BATCHES = PARENT_BUFFER_BATCHES * 2
NODE_BUFFER_NODES = NODE_BUFFER_BATCHES
NODE_BUFFER_SYNC_LG_BATCH_SIZE = 2
NODE_BUFFER_SYNC_BATCH_SIZE = 1 << NODE_BUFFER_SYNC_LG_BATCH_SIZE
NODE_BUFFER_SYNC_BATCH_MASK = NODE_BUFFER_SYNC_BATCH_SIZE - 1
NODE_BUFFER_SYNC_BATCHES = NODE_BUFFER_BATCHES // NODE_BUFFER_SYNC_BATCH_SIZE

COORD_BATCH_SIZE = 256
COORD_BATCH_COUNT = 4
COORD_BATCH_NODE_COUNT = COORD_BATCH_SIZE * COORD_BATCH_COUNT

# C1 proof layout
LABEL_PARENTS = 37
LAYER_ONE_REPEAT_SEQ = 6
LAYER_ONE_FINAL_SEQ = LABEL_PARENTS % (LAYER_ONE_REPEAT_SEQ * PARENT_COUNT_BASE)
LAYER_N_REPEAT_SEQ = 2
LAYER_N_FINAL_SEQ = LABEL_PARENTS % (LAYER_N_REPEAT_SEQ * PARENT_COUNT)

SINGLE_PROOF_DATA = 0


def nodes_per_page(parallel_sectors: int) -> int:
    """Number of packed nodes stored per page for the given sector count."""
    stride = parallel_sectors * NODE_SIZE
    if parallel_sectors <= 0 or PAGE_SIZE % stride != 0:
        raise ValueError(
            f"{parallel_sectors} parallel sectors do not evenly fit in a page"
        )
    return PAGE_SIZE // stride


def _check_node(node: bytes) -> bytes:
    data = bytes(node)
    if len(data) != NODE_SIZE:
        raise ValueError(f"node must be {NODE_SIZE} bytes, got {len(data)}")
    return data


def reverse_words(node: bytes) -> bytes:
    """Swap the byte order of each 32-bit word of a node."""
    data = _check_node(node)
    return struct.pack(f">{NODE_WORDS}I", *struct.unpack(f"<{NODE_WORDS}I", data))


def reverse_halves(node: bytes) -> bytes:
    """Swap the byte order of each 16-bit half-word of a node."""
    data = _check_node(node)
    count = NODE_WORDS * 2
    return struct.pack(f">{count}H", *struct.unpack(f"<{count}H", data))