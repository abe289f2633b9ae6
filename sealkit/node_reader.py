"""Read layer nodes from memory-mapped layer files."""

from __future__ import annotations

import mmap
import os
from collections.abc import Iterable, Sequence
from types import TracebackType

from sealkit.constants import NODE_SIZE


def _map_file(path: str | os.PathLike[str], size: int | None = None) -> mmap.mmap:
    """Map a file read-only, checking its size when one is given."""
    with open(path, "rb") as handle:
        actual = os.fstat(handle.fileno()).st_size
        if size is not None and actual != size:
            raise ValueError(f"file {os.fspath(path)} is size {actual}, expected {size}")
        if actual == 0:
            raise ValueError(f"file {os.fspath(path)} is empty")
        return mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ)


class NodeReader:
    """Nodes of every layer of one sector, each layer in its own file."""

    data_is_big_endian = True

    def __init__(
        self, sector_size: int, layer_filenames: Sequence[str | os.PathLike[str]]
    ) -> None:
        self.sector_size = sector_size
        self._maps: list[mmap.mmap] = []
        self._closed = False
        try:
            for name in layer_filenames:
                self._maps.append(_map_file(name, sector_size))
        except BaseException:
            self.close()
            raise

    @property
    def num_layers(self) -> int:
        return len(self._maps)

    @property
    def num_nodes(self) -> int:
        return self.sector_size // NODE_SIZE

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("node reader is closed")

    def get_node(self, layer: int, node: int) -> bytes:
        """Return one node of one layer."""
        self._check_open()
        if not 0 <= layer < self.num_layers:
            raise IndexError(f"layer {layer} out of range")
        if not 0 <= node < self.num_nodes:
            raise IndexError(f"node {node} out of range")
        start = node * NODE_SIZE
        return bytes(self._maps[layer][start:start + NODE_SIZE])

    def get_nodes(self, nodes: Iterable[tuple[int, int]]) -> list[bytes]:
        """Return the nodes named by ``(layer, node)`` pairs, in order."""
        return [self.get_node(layer, node) for layer, node in nodes]

    def load_layers(self, node: int, node_count: int) -> bytes:
        """Return ``node_count`` nodes from ``node`` on, layer after layer."""
        self._check_open()
        if node < 0 or node_count < 0 or node + node_count > self.num_nodes:
            raise IndexError(f"nodes {node}..{node + node_count} out of range")
        start, end = node * NODE_SIZE, (node + node_count) * NODE_SIZE
        return b"".join(layer[start:end] for layer in self._maps)

    def close(self) -> None:
        for mapping in self._maps:
            mapping.close()
        self._maps = []
        self._closed = True

    def __enter__(self) -> NodeReader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()