import hashlib
import struct
from pathlib import Path
from types import SimpleNamespace

import pytest

from sealkit.c1 import (
    C1,
    combine_proofs,
    derive_challenges,
    proof_size,
    run_c1,
    run_c1_combine,
    run_c1_node,
    run_c1_tree,
)
from sealkit.constants import NODE_SIZE, PARENT_COUNT
from sealkit.node_reader import NodeReader
from sealkit.sector import parameters_for
from sealkit.tree_d_cc import cc_comm_d

PARAMS = parameters_for(2048)
REPLICA_ID = bytes(range(32))
SEED = bytes([7] * 32)
TICKET = bytes([1] * 32)


def fake_hash(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def make_node(index: int, tag: str) -> bytes:
    return hashlib.sha256(f"{tag}-{index}".encode()).digest()


def build_tree(leaves: list[bytes], arity: int) -> list[list[bytes]]:
    rows = [leaves]
    while len(rows[-1]) > 1:
        row = rows[-1]
        rows.append(
            [fake_hash(b"".join(row[i:i + arity])) for i in range(0, len(row), arity)]
        )
    return rows


@pytest.fixture
def sector(tmp_path: Path):
    leaves = PARAMS.num_leaves
    cache = tmp_path / "cache"
    cache.mkdir()
    replica = tmp_path / "replica"
    replica.mkdir()
    out = tmp_path / "out"
    out.mkdir()

    tree_c = build_tree([make_node(i, "c") for i in range(leaves)], 8)
    (cache / "sc-02-data-tree-c.dat").write_bytes(b"".join(b"".join(r) for r in tree_c))
    tree_d = build_tree([make_node(i, "d") for i in range(leaves)], 2)
    (cache / "sc-02-data-tree-d.dat").write_bytes(b"".join(b"".join(r) for r in tree_d))
    (cache / "sc-02-data-tree-r-last.dat").write_bytes(make_node(0, "r"))
    p_aux = make_node(0, "comm_c") + make_node(0, "comm_r_last")
    (cache / "p_aux").write_bytes(p_aux)
    (replica / "sealed-file").write_bytes(
        b"".join(make_node(i, "replica") for i in range(leaves))
    )

    layer_files = []
    for layer in range(PARAMS.num_layers):
        path = tmp_path / f"layer-{layer}.dat"
        path.write_bytes(b"".join(make_node(i, f"layer{layer}") for i in range(leaves)))
        layer_files.append(str(path))

    parents = tmp_path / "parents.dat"
    parents.write_bytes(
        b"".join(
            struct.pack(
                f"<{PARENT_COUNT}I", *[(i * 7 + k * 5) % leaves for k in range(PARENT_COUNT)]
            )
            for i in range(leaves)
        )
    )

    reader = NodeReader(PARAMS.sector_size, layer_files)
    yield SimpleNamespace(
        cache=str(cache),
        replica=str(replica),
        out=str(out),
        parents=str(parents),
        reader=reader,
        p_aux=p_aux,
        comm_d=tree_d[-1][0],
    )
    reader.close()


def test_derive_challenges_in_range_and_deterministic():
    challenges = derive_challenges(PARAMS, REPLICA_ID, SEED)
    assert len(challenges) == PARAMS.num_challenges
    assert all(1 <= c < PARAMS.num_leaves for c in challenges)
    assert derive_challenges(PARAMS, REPLICA_ID, SEED) == challenges


def test_derive_challenges_large_sector_depends_on_seed():
    params = parameters_for(1 << 35)
    first = derive_challenges(params, REPLICA_ID, SEED)
    second = derive_challenges(params, REPLICA_ID, bytes(32))
    assert len(first) == params.num_challenges
    assert all(1 <= c < params.num_leaves for c in first)
    assert first != second


def test_derive_challenges_rejects_short_replica_id():
    with pytest.raises(ValueError):
        derive_challenges(PARAMS, b"short", SEED)


def test_proof_size_header_only():
    assert proof_size(PARAMS, False, False) == 16


def test_proof_size_parts_add_up():
    full = proof_size(PARAMS, True, True)
    tree = proof_size(PARAMS, True, False)
    node = proof_size(PARAMS, False, True)
    assert full == tree + node - proof_size(PARAMS, False, False)
    assert tree > proof_size(PARAMS, False, False)


def test_full_proof_layout(sector):
    path = run_c1(
        PARAMS, sector.reader, fake_hash, REPLICA_ID, SEED, TICKET,
        sector.cache, sector.parents, sector.replica, sector.out,
    )
    assert path.endswith("commit-phase1-output")
    data = Path(path).read_bytes()
    assert len(data) == proof_size(PARAMS, True, True)
    per = PARAMS.num_challenges // PARAMS.num_partitions
    assert data[:8] == struct.pack("<Q", PARAMS.num_partitions)
    assert data[8:16] == struct.pack("<Q", per)
    # First tree D proof: a single-proof type tag, then its root.
    assert data[16:20] == bytes(4)
    assert data[20:20 + NODE_SIZE] == sector.comm_d
    tail = data[-5 * NODE_SIZE:]
    assert tail[:NODE_SIZE] == fake_hash(sector.p_aux)
    assert tail[NODE_SIZE:2 * NODE_SIZE] == sector.comm_d
    assert tail[2 * NODE_SIZE:] == REPLICA_ID + SEED + TICKET


def test_combined_output_equals_full_output(sector):
    full = run_c1(
        PARAMS, sector.reader, fake_hash, REPLICA_ID, SEED, TICKET,
        sector.cache, sector.parents, sector.replica, sector.out,
    )
    tree = run_c1_tree(
        PARAMS, None, fake_hash, REPLICA_ID, SEED, sector.cache, sector.replica, sector.out
    )
    node = run_c1_node(
        PARAMS, sector.reader, fake_hash, REPLICA_ID, SEED, TICKET,
        sector.cache, sector.parents, sector.out,
    )
    assert Path(tree).stat().st_size == proof_size(PARAMS, True, False)
    assert Path(node).read_bytes()[-3 * NODE_SIZE:] == REPLICA_ID + SEED + TICKET
    combined = run_c1_combine(PARAMS, sector.out)
    assert Path(combined).read_bytes() == Path(full).read_bytes()


def test_cc_sector_without_tree_d(sector):
    Path(sector.cache, "sc-02-data-tree-d.dat").unlink()
    path = run_c1_tree(
        PARAMS, None, fake_hash, REPLICA_ID, SEED, sector.cache, sector.replica, sector.out
    )
    data = Path(path).read_bytes()
    assert len(data) == proof_size(PARAMS, True, False)
    assert data[-NODE_SIZE:] == cc_comm_d(PARAMS.tree_d_levels)


def test_missing_tree_c_raises(tmp_path):
    with C1(PARAMS) as c1:
        with pytest.raises(FileNotFoundError):
            c1.load_tree_c(str(tmp_path))


def test_write_before_deriving_challenges_raises(tmp_path):
    with C1(PARAMS, None, fake_hash) as c1:
        with pytest.raises(ValueError):
            c1.write_proofs(str(tmp_path / "proof"), True, True)


def test_write_without_any_proof_kind_raises(tmp_path):
    with C1(PARAMS, None, fake_hash) as c1:
        c1.derive_challenges(REPLICA_ID, SEED)
        with pytest.raises(ValueError):
            c1.write_proofs(str(tmp_path / "proof"), False, False)


def test_node_proof_without_ticket_raises(sector, tmp_path):
    with C1(PARAMS, sector.reader, fake_hash) as c1:
        c1.derive_challenges(REPLICA_ID, SEED)
        c1.load_tree_c(sector.cache)
        c1.load_parents(sector.parents)
        c1.load_roots(sector.cache)
        with pytest.raises(ValueError):
            c1.write_proofs(str(tmp_path / "proof"), False, True)


def test_combine_rejects_wrong_sized_tree_file(tmp_path):
    tree = tmp_path / "tree"
    node = tmp_path / "node"
    tree.write_bytes(bytes(10))
    node.write_bytes(bytes(proof_size(PARAMS, False, True)))
    with pytest.raises(ValueError):
        combine_proofs(PARAMS, str(tmp_path / "comb"), str(tree), str(node))