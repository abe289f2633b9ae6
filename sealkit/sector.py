"""Per-sector-size parameters of the sealing graph, trees and proofs."""

from __future__ import annotations

from dataclasses import dataclass

from sealkit.constants import NODE_SIZE, NODE_SIZE_LG, SectorSizeLg

ONE_KB = 1024
ONE_MB = ONE_KB * 1024
ONE_GB = ONE_MB * 1024

_U64_MASK = (1 << 64) - 1

SECTOR_SIZES: dict[str, int] = {
    "2KiB": 1 << SectorSizeLg.SECTOR_2KB,
    "4KiB": 1 << SectorSizeLg.SECTOR_4KB,
    "16KiB": 1 << SectorSizeLg.SECTOR_16KB,
    "32KiB": 1 << SectorSizeLg.SECTOR_32KB,
    "8MiB": 1 << SectorSizeLg.SECTOR_8MB,
    "16MiB": 1 << SectorSizeLg.SECTOR_16MB,
    "512MiB": 1 << SectorSizeLg.SECTOR_512MB,
    "1GiB": 1 << SectorSizeLg.SECTOR_1GB,
    "32GiB": 1 << SectorSizeLg.SECTOR_32GB,
    "64GiB": 1 << SectorSizeLg.SECTOR_64GB,
}

# Sizes whose tree R/C is a single flat arity-8 tree.
_FLAT_TREES = frozenset({2 * ONE_KB, 8 * ONE_MB, 512 * ONE_MB})
# Sizes whose tree R/C has a top layer of arity 2.
_TOP_TREES = frozenset({32 * ONE_KB, 64 * ONE_GB})
# Sizes whose tree R/C has a sub layer of arity 2.
_SUB2_TREES = frozenset({4 * ONE_KB, 16 * ONE_MB, 1 * ONE_GB})


@dataclass(frozen=True)
class SectorParameters:
    """Parameters derived from a sector size in bytes."""

    sector_size: int

    def __post_init__(self) -> None:
        size = self.sector_size
        if size < NODE_SIZE or size & (size - 1):
            raise ValueError(
                f"sector size must be a power of two of at least {NODE_SIZE}, got {size}"
            )

    @property
    def sector_size_lg(self) -> int:
        return self.sector_size.bit_length() - 1

    @property
    def node_bits(self) -> int:
        return self.sector_size_lg - NODE_SIZE_LG

    @property
    def node_mask(self) -> int:
        return (1 << self.node_bits) - 1

    @property
    def num_challenges(self) -> int:
        return 2 if self.sector_size <= ONE_GB else 180

    @property
    def num_partitions(self) -> int:
        return 1 if self.sector_size <= ONE_GB else 10

    @property
    def num_layers(self) -> int:
        return 2 if self.sector_size <= ONE_GB else 11

    @property
    def num_leaves(self) -> int:
        return self.sector_size // NODE_SIZE

    @property
    def num_nodes(self) -> int:
        return self.num_leaves

    @property
    def tree_d_arity(self) -> int:
        return 2

    @property
    def tree_d_levels(self) -> int:
        return self.num_leaves.bit_length() - 1

    @property
    def tree_rc_config(self) -> int:
        if self.sector_size in _FLAT_TREES:
            return 0
        if self.sector_size in _TOP_TREES:
            return 2
        return 1

    @property
    def tree_rc_lg_arity(self) -> int:
        return 3

    @property
    def tree_rc_arity(self) -> int:
        return 1 << self.tree_rc_lg_arity

    @property
    def tree_rc_arity_dt(self) -> int:
        return self.tree_rc_arity + 1

    @property
    def tree_rc_sub_arity(self) -> int:
        if self.sector_size in _FLAT_TREES:
            return 0
        if self.sector_size in _SUB2_TREES:
            return 2
        return 8

    @property
    def tree_rc_top_arity(self) -> int:
        return 2 if self.sector_size in _TOP_TREES else 0

    @property
    def tree_r_discard_rows(self) -> int:
        return 1 if self.sector_size <= 32 * ONE_KB else 2

    @property
    def tree_rc_files(self) -> int:
        top, sub = self.tree_rc_top_arity, self.tree_rc_sub_arity
        if top == 0 and sub == 0:
            return 1
        if top > 0:
            return top * sub
        return sub

    @property
    def tree_r_labels(self) -> int:
        return self.tree_rc_arity ** (self.tree_r_discard_rows + 1)

    @property
    def challenge_start_mask(self) -> int:
        """64-bit mask that clears the offset of a node within its tree R label group."""
        return ~(self.tree_r_labels - 1) & _U64_MASK

    def tree_rc_levels(self) -> int:
        """Number of levels of tree R/C; only uniform arity-8 trees are supported."""
        if self.tree_rc_top_arity != 0 or self.tree_rc_sub_arity == 2:
            raise ValueError(
                f"tree R/C levels are not defined for the non-uniform tree of a"
                f" {self.sector_size} byte sector"
            )
        return (self.num_leaves.bit_length() - 1) // self.tree_rc_lg_arity


def parameters_for(sector_size: int) -> SectorParameters:
    """Return the parameters of a supported sector size."""
    if sector_size not in SECTOR_SIZES.values():
        raise ValueError(f"Invalid sector size {sector_size}")
    return SectorParameters(sector_size)


def sector_size_from_string(text: str) -> int:
    """Translate a name such as ``32GiB`` into a sector size in bytes."""
    try:
        return SECTOR_SIZES[text]
    except KeyError:
        raise ValueError(f"Invalid sector size {text!r}") from None