import hashlib

import pytest

from sealkit.column_proof import ColumnProof, column_proof_size
from sealkit.sector import parameters_for
from sealkit.tree_proof import TreeProof


def h(data):
    return hashlib.sha256(data).digest()


def tree_c():
    leaves = [h(i.to_bytes(4, "little")) for i in range(64)]
    rows = [leaves]
    while len(rows[-1]) > 1:
        prev = rows[-1]
        rows.append([h(b"".join(prev[i:i + 8])) for i in range(0, len(prev), 8)])
    return leaves, rows[-1][0], b"".join(node for row in rows for node in row)


@pytest.fixture
def params():
    return parameters_for(2048)


@pytest.fixture
def labels():
    return [bytes([i]) * 32 for i in range(30)]


def test_layout(params, labels):
    leaves, root, buf = tree_c()
    proof = ColumnProof(params, 13, labels, 3, 15, [buf], root)
    data = proof.to_bytes(0)

    assert len(data) == column_proof_size(params)
    assert data[:4] == (13).to_bytes(4, "little")
    assert data[4:12] == params.num_layers.to_bytes(8, "little")
    assert data[12:44] == labels[3]
    assert data[44:76] == labels[18]

    reference = TreeProof(8, 2, [buf])
    reference.root = root
    reference.gen_inclusion_path(13)
    assert data[76:] == reference.to_bytes(0)
    assert proof.tree.leaf == leaves[13]


def test_raw_label_buffer(params, labels):
    _, root, buf = tree_c()
    from_list = ColumnProof(params, 40, labels, 0, 15, [buf], root).to_bytes(0)
    from_raw = ColumnProof(params, 40, b"".join(labels), 0, 15, [buf], root).to_bytes(0)
    assert from_list == from_raw


def test_every_challenge_has_full_path(params, labels):
    _, root, buf = tree_c()
    for challenge in range(64):
        proof = ColumnProof(params, challenge, labels, 1, 15, [buf], root)
        assert len(proof.tree.path) == params.tree_rc_levels()
        assert len(proof.to_bytes(0)) == column_proof_size(params)


def test_missing_label_raises(params):
    _, root, buf = tree_c()
    proof = ColumnProof(params, 2, [bytes(32)], 0, 15, [buf], root)
    with pytest.raises(IndexError):
        proof.to_bytes(0)