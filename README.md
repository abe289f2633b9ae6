# sealkit

Helpers for working with sealed storage sectors. The package covers sector
geometry, commit-phase-1 (C1) proof files, Merkle inclusion proofs, column and
labeling proofs, and the commitments kept in a sector's cache directory. It
uses only the standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Sector parameters

```python
from sealkit.sector import parameters_for, sector_size_from_string

params = parameters_for(sector_size_from_string("32GiB"))
params.num_layers        # 11
params.tree_rc_files     # 8
params.tree_rc_levels()  # levels of tree R/C
```

`sector_size_from_string` accepts `2KiB`, `4KiB`, `16KiB`, `32KiB`, `8MiB`,
`16MiB`, `512MiB`, `1GiB`, `32GiB` and `64GiB` and raises `ValueError` for
anything else; `parameters_for` raises `ValueError` for an unsupported size.
`SectorParameters.tree_rc_levels()` raises `ValueError` for sizes whose tree
R/C is not a uniform arity-8 tree (4KiB, 16MiB, 1GiB, 32KiB, 64GiB).

`sealkit.constants` holds the graph and proof-layout constants (node size,
parent counts, label sequence lengths, page size) together with
`nodes_per_page`, `reverse_words` and `reverse_halves`.

## Hashing

Tree R and tree C are built with Poseidon, which this package does not
implement. Wherever a Poseidon hash is needed (rebuilding discarded tree R
rows, comm_r, comm_c and comm_r_last from several tree files), the caller
passes a `hasher`: any callable that takes the concatenated 32-byte nodes as
`bytes` and returns a 32-byte node.

## Commit phase 1

`sealkit.c1` provides:

- `derive_challenges(params, replica_id, seed)` – the challenged leaves of
  every partition, derived with SHA-256; leaf 0 is never chosen.
- `proof_size(params, do_tree, do_node)` – the size of a proof file.
- `C1` – loads tree R, tree C and tree D files, the `p_aux` roots, the
  replica and the parents graph, and writes proofs with `write_proofs`.
  It is a context manager that unmaps its files on exit.
- `combine_proofs(params, filename, tree_filename, node_filename)` –
  interleaves a tree-only and a node-only file into one full proof file.
- `run_c1`, `run_c1_tree`, `run_c1_node` and `run_c1_combine` – the full
  pass, the split passes and their combination.

```python
from sealkit.c1 import run_c1
from sealkit.node_reader import NodeReader

with NodeReader(params.sector_size, layer_filenames) as reader:
    path = run_c1(params, reader, poseidon, replica_id, seed, ticket,
                  cache_dir, parents_file, replica_dir, output_dir)
```

The cache directory is expected to hold `sc-02-data-tree-r-last*.dat`,
`sc-02-data-tree-c*.dat`, optionally `sc-02-data-tree-d.dat` (without it the
sector is taken to be committed capacity) and `p_aux`; the replica directory
holds `sealed-file`. Output is written to `commit-phase1-output` (or the
`-tree`, `-node` and `-comb` variants) in the output directory.

`sealkit.node_reader.NodeReader` memory-maps one file per layer and returns
nodes with `get_node`, `get_nodes` and `load_layers`.

## Proof building blocks

- `sealkit.tree_proof` – `TreeProof`, `TreeDCCProof`, `PathElement`,
  `tree_paths` and `tree_proof_size`.
- `sealkit.column_proof` – `ColumnProof` and `column_proof_size`.
- `sealkit.label_proof` – `LabelProof` and `label_proof_size`.
- `sealkit.challenge` – `Challenge`, which gathers the parents, layer nodes
  and replica labels of one challenge and serializes its proofs.
- `sealkit.tree_d_cc` – tree D node values for committed-capacity sectors
  (`cc_node`, `cc_comm_d`), for up to 31 levels.

## Commitments

`sealkit.commitments` reads and updates a cache directory:

- `read_p_aux`, `write_p_aux`, `get_comm_c`, `set_comm_c`,
  `get_comm_r_last`, `set_comm_r_last` – the `p_aux` file, which must
  already exist and hold two nodes.
- `get_comm_r(cache_path, hasher)` – hashes comm_c and comm_r_last.
- `get_comm_c_from_tree`, `get_comm_r_last_from_tree`, `get_comm_d` – the
  roots stored at the end of the tree files.
- `get_cc_comm_d(sector_size)` – comm_d of a committed-capacity sector.
- `get_slot_size(num_sectors, sector_size, num_controllers)` – pages each
  controller needs for all layers of a batch of sectors.

## Other modules

- `sealkit.topology` – `parse_config` reads libconfig-style text;
  `Topology.from_file` / `Topology.from_text` build the drive and core
  layout, and `Topology.describe` renders the hasher-to-core table.
- `sealkit.planner` – `Scheduler`, `BufferPool`, `WorkItem` and `NodeId`
  order the hashes of a tree bottom-up so few buffers are live at once.
- `sealkit.stats` – `QueueStat` and `CounterStat` with snapshots and
  one-line reports.

## What this package does not do

It does not perform the sealing itself: there is no layer labelling
(pre-commit phase 1), no building of tree C or tree R (pre-commit phase 2),
no Poseidon implementation, no NVMe or other device access, and no
command-line program. It works on files that those steps produced.