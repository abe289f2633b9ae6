"""Bottom-up scheduling of tree hashes with a pool of reusable buffers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sealkit.sector import SectorParameters


@dataclass(frozen=True, order=True)
class NodeId:
    """A layer and node combined into one ordered identifier."""

    id: int

    @classmethod
    def of(cls, params: SectorParameters, layer: int, node: int) -> NodeId:
        if not 0 <= node <= params.node_mask:
            raise ValueError(f"node {node} does not fit in {params.node_bits} bits")
        if layer < 0:
            raise ValueError(f"negative layer {layer}")
        return cls((layer << params.node_bits) | node)

    def layer(self, params: SectorParameters) -> int:
        return self.id >> params.node_bits

    def node(self, params: SectorParameters) -> int:
        return self.id & params.node_mask


@dataclass
class WorkItem:
    """One hash: the node it produces and the buffers it consumes."""

    idx: NodeId
    is_leaf: bool
    inputs: list[Any] = field(default_factory=list)
    dependencies_ready: int = 0
    buf: Any = None

    def leaf_num(self, arity: int) -> int:
        """Position of this node among its siblings."""
        return self.idx.id & (arity - 1)


class BufferPool:
    """Buffers of a fixed size, reused after they are returned."""

    def __init__(self, num_elements: int, factory: Callable[[int], Any] | None = None) -> None:
        self.num_elements = num_elements
        self._factory = factory if factory is not None else bytearray
        self._free: list[Any] = []
        self.created = 0

    def get(self) -> Any:
        if self._free:
            return self._free.pop()
        self.created += 1
        return self._factory(self.num_elements)

    def put(self, buf: Any) -> None:
        self._free.append(buf)

    def __len__(self) -> int:
        return len(self._free)


HashCallback = Callable[[WorkItem], None]


class Scheduler:
    """Orders the hashes of a tree depth first so few buffers are live at once."""

    def __init__(
        self, params: SectorParameters, initial_nodes: int, arity: int, buffers: BufferPool
    ) -> None:
        if arity < 2 or arity & (arity - 1):
            raise ValueError(f"arity must be a power of two of at least 2, got {arity}")
        if initial_nodes < 1:
            raise ValueError("at least one initial node is needed")
        self.params = params
        self.initial_nodes = initial_nodes
        self.arity = arity
        self.buffers = buffers
        self.hash_count = 0
        self._stack: list[WorkItem] = []
        self._wip: dict[NodeId, WorkItem] = {}
        self.reset()

    def _item(self, idx: NodeId, is_leaf: bool) -> WorkItem:
        return WorkItem(idx, is_leaf, [None] * self.arity)

    def reset(self) -> None:
        """Queue the leaf hashes again, node 0 first."""
        self.hash_count = 0
        self._wip.clear()
        # Layer 1: the hash result belongs to the layer above its inputs.
        self._stack = [
            self._item(NodeId.of(self.params, 1, self.initial_nodes - i - 1), True)
            for i in range(self.initial_nodes)
        ]

    def next(self, hash_cb: HashCallback) -> bool:
        """Perform one hash; return whether more work is queued."""
        if not self._stack:
            return False
        work = self._stack.pop()
        work.buf = self.buffers.get()
        hash_cb(work)
        self.hash_count += 1

        if not work.is_leaf:
            for buf in work.inputs:
                self.buffers.put(buf)

        parent_id = NodeId.of(
            self.params,
            work.idx.layer(self.params) + 1,
            work.idx.node(self.params) // self.arity,
        )
        parent = self._wip.get(parent_id)
        if parent is None:
            parent = self._wip[parent_id] = self._item(parent_id, False)
        parent.inputs[work.leaf_num(self.arity)] = work.buf
        parent.dependencies_ready += 1
        if parent.dependencies_ready == self.arity:
            self._stack.append(parent)
            del self._wip[parent_id]

        return bool(self._stack)

    def is_done(self) -> bool:
        """Check that only the root's single result remains pending."""
        if len(self._wip) != 1:
            raise RuntimeError("expected exactly one pending work item")
        work = next(iter(self._wip.values()))
        if work.inputs[0] is None:
            raise RuntimeError("expected the root result in the first input")
        if work.inputs[1] is not None:
            raise RuntimeError("expected no second input at the root")
        return True

    def run(self, hash_cb: HashCallback) -> Any:
        """Perform every hash and return the buffer holding the root."""
        while self.next(hash_cb):
            pass
        if not self._wip:
            raise RuntimeError("no result is pending")
        return next(iter(self._wip.values())).inputs[0]