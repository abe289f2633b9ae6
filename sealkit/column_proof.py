"""Column proofs: a node's labels on every layer plus its tree C path."""

from __future__ import annotations

import struct
from collections.abc import Sequence
from typing import Any

from sealkit.constants import NODE_SIZE
from sealkit.sector import SectorParameters
from sealkit.tree_proof import TreeProof, _node_at, tree_proof_size

_U64 = struct.Struct("<Q")
_U32 = struct.Struct("<I")


def column_proof_size(params: SectorParameters) -> int:
    """Serialized size of one column proof."""
    return (
        4
        + 8
        + NODE_SIZE * params.num_layers
        + tree_proof_size(params.tree_rc_arity, params.tree_rc_levels(), params.tree_rc_config)
    )


class ColumnProof:
    """Labels of a column across all layers and its inclusion in tree C.

    The label of layer ``l`` is ``labels[label_idx + l * label_inc]``.
    """

    def __init__(
        self,
        params: SectorParameters,
        challenge: int,
        labels: Sequence[bytes] | bytes,
        label_idx: int,
        label_inc: int,
        tree_bufs: Sequence[Any],
        root: bytes,
    ) -> None:
        self.challenge = challenge
        self.layers = params.num_layers
        self.labels = labels
        self.label_idx = label_idx
        self.label_inc = label_inc
        self.tree = TreeProof(params.tree_rc_arity, params.tree_rc_levels(), tree_bufs)
        self.tree.root = root
        self.tree.gen_inclusion_path(challenge)

    def to_bytes(self, proof_type: int = 0) -> bytes:
        parts = [_U32.pack(self.challenge & 0xFFFFFFFF), _U64.pack(self.layers)]
        parts.extend(
            _node_at(self.labels, self.label_idx + layer * self.label_inc)
            for layer in range(self.layers)
        )
        parts.append(self.tree.to_bytes(proof_type))
        return b"".join(parts)