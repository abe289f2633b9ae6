import struct

import pytest

from sealkit.constants import LABEL_PARENTS, NODE_SIZE, PARENT_COUNT
from sealkit.label_proof import LabelProof, label_proof_size

LABEL_INC = PARENT_COUNT + 1


def make_labels(layers):
    return [bytes([i % 256]) * NODE_SIZE for i in range(layers * LABEL_INC)]


def make_proof(layers, challenge=12345):
    return LabelProof(challenge, layers, make_labels(layers), LABEL_INC)


@pytest.mark.parametrize("layers", [1, 2, 11])
@pytest.mark.parametrize("enc", [False, True])
def test_size_matches_serialization(layers, enc):
    proof = make_proof(layers)
    assert len(proof.to_bytes(enc)) == label_proof_size(layers, enc)


@pytest.mark.parametrize("layers", [1, 2, 11])
def test_encoding_is_last_layer_block(layers):
    proof = make_proof(layers)
    full = proof.to_bytes(False)
    enc = proof.to_bytes(True)
    assert full.endswith(enc)


def test_single_layer_size_relation():
    assert label_proof_size(1, False) == label_proof_size(1, True) + 8


def test_encoding_size_independent_of_layer_count():
    assert label_proof_size(2, True) == label_proof_size(11, True)


def test_header_fields():
    proof = make_proof(2, challenge=777)
    data = proof.to_bytes(False)
    assert struct.unpack_from("<Q", data, 0)[0] == 2
    assert struct.unpack_from("<Q", data, 8)[0] == LABEL_PARENTS
    # first label of layer one is the first base parent
    assert data[16:16 + NODE_SIZE] == proof.labels[1]


def test_trailer_holds_layer_and_challenge():
    proof = make_proof(2, challenge=777)
    data = proof.to_bytes(True)
    layer, challenge = struct.unpack_from("<IQ", data, len(data) - 12)
    assert layer == 2
    assert challenge == 777


def test_layer_n_uses_previous_layer_expander_parents():
    proof = make_proof(2)
    data = proof.to_bytes(True)
    start = 8
    nodes = [data[start + i * NODE_SIZE:start + (i + 1) * NODE_SIZE] for i in range(14)]
    assert nodes[:6] == [proof.labels[LABEL_INC + c + 1] for c in range(6)]
    assert nodes[6:14] == [proof.labels[c + 7] for c in range(8)]


def test_zero_layers_rejected():
    with pytest.raises(ValueError):
        label_proof_size(0, False)
    with pytest.raises(ValueError):
        LabelProof(1, 0, [], LABEL_INC)


def test_bad_label_length_rejected():
    with pytest.raises(ValueError):
        LabelProof(1, 1, [b"\x00" * 5], LABEL_INC)


def test_missing_labels_raise():
    proof = LabelProof(1, 2, make_labels(1), LABEL_INC)
    with pytest.raises(IndexError):
        proof.to_bytes(False)