"""Tree D node values for committed-capacity sectors.

A committed-capacity sector holds only zeros, so every node on a level of
its tree D is equal. Level 0 is the zero leaf; each following level is the
truncated SHA-256 of two copies of the level below.
"""

from __future__ import annotations

_HEX_VALUES = (
    "0000000000000000 0000000000000000 0000000000000000 0000000000000000",
    "f5a5fd42d16a2030 2798ef6ed309979b 43003d2320d9f0e8 ea9831a92759fb0b",
    "3731bb99ac689f66 eef5973e4a94da18 8f4ddcae580724fc 6f3fd60dfd488333",
    "642a607ef886b004 bf2c1978463ae1d4 693ac0f410eb2d1b 7a47fe205e5e750f",
    "57a2381a28652bf4 7f6bef7aca679be4 aede5871ab5cf3eb 2c08114488cb8526",
    "1f7ac9595510e09e a41c460b176430bb 322cd6fb412ec57c b17d989a4310372f",
    "fc7e928296e516fa ade986b28f92d44a 4f24b93548522337 6a799027bc18f833",
    "08c47b38ee13bc43 f41b915c0eed9911 a26086b3ed62401b f9d58b8d19dff624",
    "b2e47bfb11facd94 1f62af5c750f3ea5 cc4df517d5c4f16d b2b4d77baec1a32f",
    "f9226160c8f927bf dcc418cdf2034931 46008eaefb7d0219 4d5e548189005108",
    "2c1a964bb90b59eb fe0f6da29ad65ae3 e417724a8f7c1174 5a40cac1e5e74011",
    "fee378cef16404b1 99ede0b13e11b624 ff9d784fbbed878d 83297e795e024f02",
    "8e9e2403fa884cf6 237f60df25f83ee4 0dca9ed879eb6f63 52d15084f5ad0d3f",
    "752d9693fa167524 395476e317a98580 f00947afb7a30540 d625a9291cc12a07",
    "7022f60f7ef6adfa 17117a52619e30ce a82c68075adf1c66 7786ec506eef2d19",
    "d99887b973573a96 e11393645236c17b 1f4c7034d723c7a9 9f709bb4da61162b",
    "d0b530dbb0b4f25c 5d2f2a28dfee808b 53412a02931f18c4 99f5a254086b1326",
    "84c0421ba0685a01 bf795a2344064fe4 24bd52a9d24377b3 94ff4c4b4568e811",
    "65f29e5d98d246c3 8b388cfc06db1f6b 021303c5a289000b dce832a9c3ec421c",
    "a224750828585096 5b7e334b3127b0c0 42b1d046dc544021 37627cd8799ce13a",
    "dafdab6da9364453 c26d33726b9fefe3 43be8f81649ec009 aad3faff50617508",
    "d941d5e0d6314a99 5c33ffbd4fbe6911 8d73d4e5fd2cd31f 0f7c86ebdd14e706",
    "514c435c3d04d349 a5365fbd59ffc713 629111785991c1a3 c53af22079741a2f",
    "ad06853969d37d34 ff08e09f56930a4a d19a89def60cbfee 7e1d3381c1e71c37",
    "39560e7b13a93b07 a243fd2720ffa7cb 3e1d2e505ab3629e 79f46313512cda06",
    "ccc3c012f5b05e81 1a2bbfdd0f6833b8 4275b47bf229c005 2a82484f3c1a5b3d",
    "7df29b69773199e8 f2b40b77919d0485 09eed768e2c7297b 1f1437034fc3c62c",
    "66ce05a3667552cf 45c02bcc4e839291 9bdeac35de2ff562 71848e9f7b675107",
    "d8610218425ab5e9 5b1ca6239d29a2e4 20d706a96f373e2f 9c9a91d759d19b01",
    "6d364b1ef846441a 5a4a68862314acc0 a46f016717e53443 e839eedf83c2853c",
    "077e5fde35c50a93 03a55009e3498a4e bedff39c42b710b7 30d8ec7ac7afa63e",
    # Placeholder for the 64GiB level, which is not filled in.
    "0000000000000000 0000000000000000 0000000000000000 0000000000000000",
)

CC_TREE_D_NODE_VALUES: tuple[bytes, ...] = tuple(
    bytes.fromhex(value) for value in _HEX_VALUES
)

MAX_CC_LEVELS = 31


def cc_node(level: int) -> bytes:
    """Return the value shared by every node on the given tree D level."""
    if not 0 <= level < len(CC_TREE_D_NODE_VALUES):
        raise IndexError(f"no committed-capacity node value for level {level}")
    return CC_TREE_D_NODE_VALUES[level]


def cc_comm_d(levels: int) -> bytes:
    """Return comm_d, the tree D root, for a committed-capacity sector."""
    if not 0 <= levels <= MAX_CC_LEVELS:
        raise ValueError(
            f"committed-capacity tree D supports at most {MAX_CC_LEVELS} levels,"
            f" got {levels}"
        )
    return CC_TREE_D_NODE_VALUES[levels]