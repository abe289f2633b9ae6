"""Labeling and encoding proofs of a challenged node."""

from __future__ import annotations

import struct
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from sealkit.constants import (
    LABEL_PARENTS,
    LAYER_N_FINAL_SEQ,
    LAYER_N_REPEAT_SEQ,
    LAYER_ONE_FINAL_SEQ,
    LAYER_ONE_REPEAT_SEQ,
    NODE_SIZE,
    PARENT_COUNT_BASE,
    PARENT_COUNT_EXP,
)

_U64 = struct.Struct("<Q")
_U32 = struct.Struct("<I")


def label_proof_size(layers: int, enc: bool) -> int:
    """Serialized size of a labeling proof (or encoding proof when ``enc``)."""
    if layers < 1:
        raise ValueError(f"a label proof needs at least one layer, got {layers}")
    size = 8
    if not enc or layers == 1:
        if not enc:
            size += layers * 8
        size += NODE_SIZE * LAYER_ONE_REPEAT_SEQ * PARENT_COUNT_BASE
        size += NODE_SIZE * LAYER_ONE_FINAL_SEQ
        size += 4 + 8
        layers -= 1
    if enc and layers > 1:
        layers = 1
    size += layers * NODE_SIZE * LAYER_N_REPEAT_SEQ * PARENT_COUNT_BASE
    size += layers * NODE_SIZE * LAYER_N_REPEAT_SEQ * PARENT_COUNT_EXP
    size += layers * NODE_SIZE * LAYER_N_FINAL_SEQ
    size += layers * (4 + 8)
    return size


@dataclass(frozen=True)
class LabelProof:
    """Parent labels of a challenge on every layer.

    ``labels`` holds, for each layer, the challenged node followed by its
    base and expander parents; consecutive layers are ``label_inc`` apart.
    """

    challenge: int
    layers: int
    labels: Sequence[bytes]
    label_inc: int

    def __post_init__(self) -> None:
        if self.layers < 1:
            raise ValueError(f"a label proof needs at least one layer, got {self.layers}")
        for label in self.labels:
            if len(label) != NODE_SIZE:
                raise ValueError(f"labels must be {NODE_SIZE} bytes, got {len(label)}")

    def _label(self, offset: int, layer: int) -> bytes:
        return bytes(self.labels[offset + 1 + layer * self.label_inc])

    def _layer_labels(self, layer: int) -> Iterator[bytes]:
        current = layer - 1
        if layer == 1:
            for _ in range(LAYER_ONE_REPEAT_SEQ):
                for c in range(PARENT_COUNT_BASE):
                    yield self._label(c, current)
            for c in range(LAYER_ONE_FINAL_SEQ):
                yield self._label(c, current)
            return
        previous = layer - 2
        for _ in range(LAYER_N_REPEAT_SEQ):
            for c in range(PARENT_COUNT_BASE):
                yield self._label(c, current)
            for c in range(PARENT_COUNT_EXP):
                yield self._label(c + PARENT_COUNT_BASE, previous)
        for c in range(LAYER_N_FINAL_SEQ):
            yield self._label(c, current if c < PARENT_COUNT_BASE else previous)

    def to_bytes(self, enc: bool = False) -> bytes:
        """Serialize every layer, or only the last one for an encoding proof."""
        parts: list[bytes] = []
        if enc:
            first = self.layers
        else:
            parts.append(_U64.pack(self.layers))
            first = 1
        for layer in range(first, self.layers + 1):
            parts.append(_U64.pack(LABEL_PARENTS))
            parts.extend(self._layer_labels(layer))
            parts.append(_U32.pack(layer))
            parts.append(_U64.pack(self.challenge))
        return b"".join(parts)