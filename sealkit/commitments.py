"""Read, write and derive a sector's commitments from its cache directory."""

from __future__ import annotations

import os

from sealkit.constants import NODE_SIZE, PAGE_SIZE
from sealkit.sector import SectorParameters, parameters_for
from sealkit.tree_d_cc import cc_comm_d
from sealkit.tree_proof import Hasher

P_AUX_NAME = "p_aux"
TREE_C_STEM = "sc-02-data-tree-c"
TREE_R_STEM = "sc-02-data-tree-r-last"
TREE_D_NAME = "sc-02-data-tree-d.dat"

MAX_PARALLEL_SECTORS = 128

PathLike = str | os.PathLike[str]


def _p_aux_path(cache_path: PathLike) -> str:
    return os.path.join(cache_path, P_AUX_NAME)


def read_p_aux(cache_path: PathLike) -> tuple[bytes, bytes]:
    """Return ``(comm_c, comm_r_last)`` stored in the p_aux file."""
    path = _p_aux_path(cache_path)
    with open(path, "rb") as handle:
        data = handle.read(2 * NODE_SIZE)
    if len(data) != 2 * NODE_SIZE:
        raise ValueError(f"p_aux file {path} must hold two nodes")
    return data[:NODE_SIZE], data[NODE_SIZE:]


def write_p_aux(cache_path: PathLike, index: int, value: bytes) -> None:
    """Overwrite node ``index`` of an existing p_aux file.

    At index 0 one or both nodes may be written; at index 1 only one.
    """
    data = bytes(value)
    if index == 0:
        allowed = (NODE_SIZE, 2 * NODE_SIZE)
    elif index == 1:
        allowed = (NODE_SIZE,)
    else:
        raise ValueError(f"p_aux index must be 0 or 1, got {index}")
    if len(data) not in allowed:
        raise ValueError(
            f"cannot write {len(data)} bytes at p_aux index {index}"
        )
    path = _p_aux_path(cache_path)
    with open(path, "r+b") as handle:
        size = os.fstat(handle.fileno()).st_size
        if size < 2 * NODE_SIZE:
            raise ValueError(f"p_aux file {path} must hold two nodes")
        handle.seek(index * NODE_SIZE)
        handle.write(data)


def get_comm_c(cache_path: PathLike) -> bytes:
    """Return comm_c from the p_aux file."""
    return read_p_aux(cache_path)[0]


def set_comm_c(cache_path: PathLike, value: bytes) -> None:
    """Store comm_c in the p_aux file."""
    write_p_aux(cache_path, 0, _node(value, "comm_c"))


def get_comm_r_last(cache_path: PathLike) -> bytes:
    """Return comm_r_last from the p_aux file."""
    return read_p_aux(cache_path)[1]


def set_comm_r_last(cache_path: PathLike, value: bytes) -> None:
    """Store comm_r_last in the p_aux file."""
    write_p_aux(cache_path, 1, _node(value, "comm_r_last"))


def get_comm_r(cache_path: PathLike, hasher: Hasher) -> bytes:
    """Derive comm_r by hashing comm_c and comm_r_last together."""
    comm_c, comm_r_last = read_p_aux(cache_path)
    return _node(hasher(comm_c + comm_r_last), "comm_r")


def _node(value: bytes, what: str) -> bytes:
    data = bytes(value)
    if len(data) != NODE_SIZE:
        raise ValueError(f"{what} must be {NODE_SIZE} bytes, got {len(data)}")
    return data


def _last_node(path: str) -> bytes:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Failed to open tree file {path}")
    with open(path, "rb") as handle:
        size = os.fstat(handle.fileno()).st_size
        if size < NODE_SIZE:
            raise ValueError(f"tree file {path} is too small to hold a root")
        handle.seek(size - NODE_SIZE)
        return handle.read(NODE_SIZE)


def _comm_from_tree(
    params: SectorParameters, cache_path: PathLike, stem: str, hasher: Hasher
) -> bytes:
    count = params.tree_rc_files
    if count == 1:
        return _last_node(os.path.join(cache_path, f"{stem}.dat"))
    roots = [
        _last_node(os.path.join(cache_path, f"{stem}-{index}.dat"))
        for index in range(count)
    ]
    return _node(hasher(b"".join(roots)), "commitment")


def get_comm_c_from_tree(
    params: SectorParameters, cache_path: PathLike, hasher: Hasher
) -> bytes:
    """Compute comm_c from the root(s) of the tree C file(s)."""
    return _comm_from_tree(params, cache_path, TREE_C_STEM, hasher)


def get_comm_r_last_from_tree(
    params: SectorParameters, cache_path: PathLike, hasher: Hasher
) -> bytes:
    """Compute comm_r_last from the root(s) of the tree R file(s)."""
    return _comm_from_tree(params, cache_path, TREE_R_STEM, hasher)


def get_comm_d(cache_path: PathLike) -> bytes:
    """Return comm_d, the last node of the tree D file."""
    return _last_node(os.path.join(cache_path, TREE_D_NAME))


def get_cc_comm_d(sector_size: int) -> bytes:
    """Return comm_d of a committed-capacity sector of the given size."""
    return cc_comm_d(parameters_for(sector_size).tree_d_levels)


def get_slot_size(num_sectors: int, sector_size: int, num_controllers: int) -> int:
    """Number of pages each controller needs to store all layers of the sectors."""
    if not (
        0 < num_sectors <= MAX_PARALLEL_SECTORS
        and num_sectors & (num_sectors - 1) == 0
    ):
        raise ValueError(f"Unsupported number of sectors {num_sectors}")
    if num_controllers < 1:
        raise ValueError(f"at least one controller is needed, got {num_controllers}")
    num_layers = parameters_for(sector_size).num_layers
    nodes_per_page = PAGE_SIZE // (num_sectors * NODE_SIZE)
    pages_per_layer = sector_size // NODE_SIZE // nodes_per_page
    per_controller = -(-pages_per_layer // num_controllers)
    return per_controller * num_layers