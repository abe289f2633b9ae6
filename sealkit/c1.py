"""Commit phase 1: challenge derivation and vanilla seal proof files."""

from __future__ import annotations

import hashlib
import mmap
import os
import struct
from types import TracebackType
from typing import Any, BinaryIO

from sealkit.challenge import Challenge, NodeSource
from sealkit.column_proof import column_proof_size
from sealkit.constants import (
    NODE_SIZE,
    PARENT_COUNT_BASE,
    PARENT_COUNT_EXP,
    SINGLE_PROOF_DATA,
)
from sealkit.label_proof import label_proof_size
from sealkit.sector import SectorParameters
from sealkit.tree_d_cc import cc_comm_d
from sealkit.tree_proof import Hasher, tree_proof_size

_U64 = struct.Struct("<Q")

OUTPUT_NAME = "commit-phase1-output"
TREE_OUTPUT_NAME = "commit-phase1-output-tree"
NODE_OUTPUT_NAME = "commit-phase1-output-node"
COMBINED_OUTPUT_NAME = "commit-phase1-output-comb"

TREE_R_STEM = "sc-02-data-tree-r-last"
TREE_C_STEM = "sc-02-data-tree-c"
TREE_D_NAME = "sc-02-data-tree-d.dat"
P_AUX_NAME = "p_aux"
REPLICA_NAME = "sealed-file"


def _node(value: bytes, what: str) -> bytes:
    data = bytes(value)
    if len(data) != NODE_SIZE:
        raise ValueError(f"{what} must be {NODE_SIZE} bytes, got {len(data)}")
    return data


def derive_challenges(
    params: SectorParameters, replica_id: bytes, seed: bytes
) -> list[int]:
    """Derive the challenged leaves of every partition; leaf 0 is never chosen."""
    replica_id = _node(replica_id, "replica id")
    seed = _node(seed, "seed")
    modulus = params.num_leaves - 1
    if modulus < 1:
        raise ValueError("a sector needs at least two leaves to be challenged")
    per_partition = params.num_challenges // params.num_partitions
    challenges = []
    for j in range(per_partition * params.num_partitions):
        # Only the low 16 bits of the challenge index enter the hash.
        message = replica_id + seed + struct.pack("<I", j & 0xFFFF)
        digest = hashlib.sha256(message).digest()
        challenges.append(int.from_bytes(digest, "little") % modulus + 1)
    return challenges


def _component_sizes(params: SectorParameters) -> tuple[int, int]:
    """Sizes of one challenge's tree proof and node proof."""
    tree_d = tree_proof_size(params.tree_d_arity, params.tree_d_levels, SINGLE_PROOF_DATA)
    tree_rc = tree_proof_size(
        params.tree_rc_arity, params.tree_rc_levels(), params.tree_rc_config
    )
    labels = label_proof_size(params.num_layers, False)
    encoding = label_proof_size(params.num_layers, True)
    columns = (1 + PARENT_COUNT_BASE + PARENT_COUNT_EXP) * column_proof_size(params) + 2 * 8
    return tree_d + tree_rc, labels + encoding + columns


def proof_size(params: SectorParameters, do_tree: bool, do_node: bool) -> int:
    """Size of a proof file holding tree proofs, node proofs or both."""
    tree_size, node_size = _component_sizes(params)
    size = params.num_partitions * 8 + 8
    if do_tree:
        size += tree_size * params.num_challenges + 2 * NODE_SIZE
    if do_node:
        size += node_size * params.num_challenges + 3 * NODE_SIZE
    return size


def _map_file(path: str) -> Any:
    with open(path, "rb") as handle:
        if os.fstat(handle.fileno()).st_size == 0:
            return b""
        return mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ)


def _read_exact(handle: BinaryIO, count: int) -> bytes:
    data = handle.read(count)
    if len(data) != count:
        raise ValueError(f"expected {count} bytes, found only {len(data)}")
    return data


def _check_size(path: str, expected: int) -> None:
    actual = os.path.getsize(path)
    if actual != expected:
        raise ValueError(f"file {path} is size {actual}, expected {expected}")


class C1:
    """Gathers the trees, labels and roots of a sector and writes its proofs."""

    def __init__(
        self,
        params: SectorParameters,
        reader: NodeSource | None = None,
        hasher: Hasher | None = None,
    ) -> None:
        self.params = params
        self.reader = reader
        self.hasher = hasher
        self.replica_id: bytes | None = None
        self.seed: bytes | None = None
        self.ticket: bytes | None = None
        self.challenges: list[int] | None = None
        self.tree_r_bufs: list[Any] = []
        self.tree_c_bufs: list[Any] = []
        self.tree_d_buf: Any = None
        self.comm_d: bytes | None = None
        self.tree_c_root: bytes | None = None
        self.tree_r_root: bytes | None = None
        self.comm_r: bytes | None = None
        self.replica: Any = None
        self.parents: Any = None
        self._maps: list[Any] = []

    @property
    def challenges_per_partition(self) -> int:
        return self.params.num_challenges // self.params.num_partitions

    def _open(self, path: str) -> Any:
        mapping = _map_file(path)
        self._maps.append(mapping)
        return mapping

    def derive_challenges(self, replica_id: bytes, seed: bytes) -> list[int]:
        """Record the replica id and seed and derive the challenges from them."""
        self.replica_id = _node(replica_id, "replica id")
        self.seed = _node(seed, "seed")
        self.challenges = derive_challenges(self.params, self.replica_id, self.seed)
        return self.challenges

    def _tree_files(self, cache: str | os.PathLike[str], stem: str) -> list[Any]:
        count = self.params.tree_rc_files
        if count == 1:
            names = [f"{stem}.dat"]
        else:
            names = [f"{stem}-{index}.dat" for index in range(count)]
        buffers = []
        for name in names:
            path = os.path.join(cache, name)
            if not os.path.isfile(path):
                raise FileNotFoundError(f"Failed to open tree file {path}")
            buffers.append(self._open(path))
        return buffers

    def load_tree_r(self, cache: str | os.PathLike[str]) -> None:
        self.tree_r_bufs = self._tree_files(cache, TREE_R_STEM)

    def load_tree_c(self, cache: str | os.PathLike[str]) -> None:
        self.tree_c_bufs = self._tree_files(cache, TREE_C_STEM)

    def load_tree_d(self, cache: str | os.PathLike[str]) -> None:
        """Map tree D and take comm_d from it; without the file, assume a CC sector."""
        path = os.path.join(cache, TREE_D_NAME)
        if not os.path.isfile(path):
            self.tree_d_buf = None
            self.comm_d = cc_comm_d(self.params.tree_d_levels)
            return
        buf = self._open(path)
        if len(buf) < NODE_SIZE:
            raise ValueError(f"tree D file {path} is too small to hold a root")
        self.tree_d_buf = buf
        self.comm_d = bytes(buf[-NODE_SIZE:])

    def load_roots(self, cache: str | os.PathLike[str]) -> None:
        """Read the tree C and tree R roots from p_aux and derive comm_r."""
        path = os.path.join(cache, P_AUX_NAME)
        with open(path, "rb") as handle:
            p_aux = handle.read(2 * NODE_SIZE)
        if len(p_aux) != 2 * NODE_SIZE:
            raise ValueError(f"p_aux file {path} must hold two nodes")
        self.tree_c_root = p_aux[:NODE_SIZE]
        self.tree_r_root = p_aux[NODE_SIZE:]
        self.comm_r = _node(self.hasher(p_aux), "comm_r") if self.hasher else None

    def load_replica(self, path: str | os.PathLike[str]) -> None:
        self.replica = self._open(os.path.join(path, REPLICA_NAME))

    def load_parents(self, path: str | os.PathLike[str]) -> None:
        self.parents = self._open(os.fspath(path))

    def _check_inputs(self, do_tree: bool, do_node: bool) -> None:
        if self.challenges is None or self.seed is None or self.replica_id is None:
            raise ValueError("challenges must be derived before writing proofs")
        if not (do_tree or do_node):
            raise ValueError("at least one of tree or node proofs must be written")
        missing = []
        if do_tree:
            if not self.tree_r_bufs:
                missing.append("tree R")
            if self.replica is None:
                missing.append("replica")
            if self.comm_d is None:
                missing.append("comm_d")
            if self.tree_r_root is None:
                missing.append("tree R root")
            if self.comm_r is None:
                missing.append("comm_r")
        if do_node:
            if not self.tree_c_bufs:
                missing.append("tree C")
            if self.parents is None:
                missing.append("parents")
            if self.reader is None:
                missing.append("node reader")
            if self.tree_c_root is None:
                missing.append("tree C root")
            if self.ticket is None:
                missing.append("ticket")
        if missing:
            raise ValueError("missing inputs: " + ", ".join(missing))
        if do_node:
            self.ticket = _node(self.ticket, "ticket")  # type: ignore[arg-type]

    def _challenge_proof(self, challenge: int, do_tree: bool, do_node: bool) -> bytes:
        proof = Challenge(
            self.params,
            challenge,
            self.tree_r_root,  # type: ignore[arg-type]
            self.tree_c_root,  # type: ignore[arg-type]
            self.comm_d,
            self.hasher,
        )
        if do_node:
            proof.get_parents(self.parents)
            proof.get_nodes(self.reader)  # type: ignore[arg-type]
            if do_tree:
                proof.get_tree_r_nodes(self.replica)
                return proof.write_proof(self.tree_r_bufs, self.tree_c_bufs, self.tree_d_buf)
            return proof.write_node_proof(self.tree_c_bufs)
        proof.get_tree_r_nodes(self.replica)
        return proof.write_tree_proof(self.tree_r_bufs, self.tree_d_buf)

    def write_proofs(
        self, filename: str | os.PathLike[str], do_tree: bool = True, do_node: bool = True
    ) -> int:
        """Write the proofs of every challenge; return the number of bytes written."""
        self._check_inputs(do_tree, do_node)
        assert self.challenges is not None
        expected = proof_size(self.params, do_tree, do_node)
        per = self.challenges_per_partition
        with open(filename, "wb") as out:
            out.write(_U64.pack(self.params.num_partitions))
            for partition in range(self.params.num_partitions):
                out.write(_U64.pack(per))
                for challenge in self.challenges[partition * per:(partition + 1) * per]:
                    out.write(self._challenge_proof(challenge, do_tree, do_node))
            if do_tree:
                out.write(self.comm_r)  # type: ignore[arg-type]
                out.write(self.comm_d)  # type: ignore[arg-type]
            if do_node:
                out.write(self.replica_id)  # type: ignore[arg-type]
                out.write(self.seed)  # type: ignore[arg-type]
                out.write(self.ticket)  # type: ignore[arg-type]
            written = out.tell()
        if written != expected:
            raise RuntimeError(f"wrote {written} bytes of proofs, expected {expected}")
        return written

    def close(self) -> None:
        for mapping in self._maps:
            if isinstance(mapping, mmap.mmap):
                mapping.close()
        self._maps = []
        self.tree_r_bufs = []
        self.tree_c_bufs = []
        self.tree_d_buf = None
        self.replica = None
        self.parents = None

    def __enter__(self) -> C1:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def combine_proofs(
    params: SectorParameters,
    filename: str | os.PathLike[str],
    tree_filename: str | os.PathLike[str],
    node_filename: str | os.PathLike[str],
) -> int:
    """Interleave a tree-only and a node-only proof file into a full proof file."""
    tree_size, node_size = _component_sizes(params)
    _check_size(os.fspath(tree_filename), proof_size(params, True, False))
    _check_size(os.fspath(node_filename), proof_size(params, False, True))
    per = params.num_challenges // params.num_partitions
    with open(tree_filename, "rb") as tree, open(node_filename, "rb") as node, open(
        filename, "wb"
    ) as out:
        _read_exact(tree, 8)
        _read_exact(node, 8)
        out.write(_U64.pack(params.num_partitions))
        for _ in range(params.num_partitions):
            _read_exact(tree, 8)
            _read_exact(node, 8)
            out.write(_U64.pack(per))
            for _ in range(per):
                out.write(_read_exact(tree, tree_size))
                out.write(_read_exact(node, node_size))
        # comm_r and comm_d, then replica id, seed and ticket.
        out.write(_read_exact(tree, 2 * NODE_SIZE))
        out.write(_read_exact(node, 3 * NODE_SIZE))
        written = out.tell()
    expected = proof_size(params, True, True)
    if written != expected:
        raise RuntimeError(f"wrote {written} bytes of proofs, expected {expected}")
    return written


def run_c1(
    params: SectorParameters,
    reader: NodeSource,
    hasher: Hasher,
    replica_id: bytes,
    seed: bytes,
    ticket: bytes,
    cache_path: str | os.PathLike[str],
    parents_filename: str | os.PathLike[str],
    replica_path: str | os.PathLike[str],
    output_dir: str | os.PathLike[str],
) -> str:
    """Write the full commit phase 1 output; return its path."""
    with C1(params, reader, hasher) as c1:
        c1.ticket = _node(ticket, "ticket")
        c1.derive_challenges(replica_id, seed)
        c1.load_tree_r(cache_path)
        c1.load_tree_c(cache_path)
        c1.load_tree_d(cache_path)
        c1.load_roots(cache_path)
        c1.load_replica(replica_path)
        c1.load_parents(parents_filename)
        path = os.path.join(output_dir, OUTPUT_NAME)
        c1.write_proofs(path, True, True)
    return path


def run_c1_tree(
    params: SectorParameters,
    reader: NodeSource | None,
    hasher: Hasher,
    replica_id: bytes,
    seed: bytes,
    cache_path: str | os.PathLike[str],
    replica_path: str | os.PathLike[str],
    output_dir: str | os.PathLike[str],
) -> str:
    """Write only the tree proofs; return the output path."""
    with C1(params, reader, hasher) as c1:
        c1.derive_challenges(replica_id, seed)
        c1.load_tree_r(cache_path)
        c1.load_tree_d(cache_path)
        c1.load_roots(cache_path)
        c1.load_replica(replica_path)
        path = os.path.join(output_dir, TREE_OUTPUT_NAME)
        c1.write_proofs(path, True, False)
    return path


def run_c1_node(
    params: SectorParameters,
    reader: NodeSource,
    hasher: Hasher | None,
    replica_id: bytes,
    seed: bytes,
    ticket: bytes,
    cache_path: str | os.PathLike[str],
    parents_filename: str | os.PathLike[str],
    output_dir: str | os.PathLike[str],
) -> str:
    """Write only the node proofs; return the output path."""
    with C1(params, reader, hasher) as c1:
        c1.ticket = _node(ticket, "ticket")
        c1.derive_challenges(replica_id, seed)
        c1.load_tree_c(cache_path)
        c1.load_parents(parents_filename)
        c1.load_roots(cache_path)
        path = os.path.join(output_dir, NODE_OUTPUT_NAME)
        c1.write_proofs(path, False, True)
    return path


def run_c1_combine(params: SectorParameters, output_dir: str | os.PathLike[str]) -> str:
    """Combine the tree and node outputs in ``output_dir``; return the result's path."""
    path = os.path.join(output_dir, COMBINED_OUTPUT_NAME)
    combine_proofs(
        params,
        path,
        os.path.join(output_dir, TREE_OUTPUT_NAME),
        os.path.join(output_dir, NODE_OUTPUT_NAME),
    )
    return path