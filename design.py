# design.py
"""
Block design data model.

A design assigns N treatments (1..N) to B blocks of k distinct treatments.
Designs are immutable values: a swap produces a new design, so any snapshot
can be scored or handed to worker processes without copying.

Also covers:
- Structural validation of designs and forbidden pairs
- Reading and writing the B x k design table (CSV)
"""

import os
import numpy as np
import pandas as pd
from typing import Iterable, NamedTuple, Sequence, Tuple
from dataclasses import dataclass

Block = Tuple[int, ...]
ForbiddenPair = Tuple[int, int]

#-----------------------------------------------------------------------------
# Errors
#-----------------------------------------------------------------------------
class InvalidInputError(ValueError):
    """Initial design or forbidden pairs are structurally invalid."""

#-----------------------------------------------------------------------------
# Core types
#-----------------------------------------------------------------------------
class SwapCandidate(NamedTuple):
    """Exchange source_treatment (in source_block) with destination_treatment (in destination_block)."""
    source_treatment: int
    destination_treatment: int
    source_block: int
    destination_block: int


@dataclass(frozen=True)
class BlockDesign:
    """Ordered blocks of treatments; block ids are 0-based row indices."""
    blocks: Tuple[Block, ...]
    n_treatments: int

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[int]], n_treatments: int) -> "BlockDesign":
        return cls(tuple(tuple(int(t) for t in row) for row in rows), int(n_treatments))

    @property
    def n_blocks(self) -> int:
        return len(self.blocks)

    @property
    def block_size(self) -> int:
        return len(self.blocks[0]) if self.blocks else 0

    def as_array(self) -> np.ndarray:
        return np.array(self.blocks, dtype=np.int64).reshape(self.n_blocks, self.block_size)

    def apply_swap(self, candidate: SwapCandidate) -> "BlockDesign":
        """
        Return the design with the candidate's two treatments exchanged.

        The swapped-in treatment takes the position of the swapped-out one in
        each block, so the remaining treatments keep their order.
        """
        x, y, b, r = candidate
        blocks = list(self.blocks)
        blocks[b] = tuple(y if t == x else t for t in blocks[b])
        blocks[r] = tuple(x if t == y else t for t in blocks[r])
        return BlockDesign(tuple(blocks), self.n_treatments)

    def treatment_frequencies(self) -> np.ndarray:
        """Number of blocks containing each treatment (index t - 1)."""
        return np.bincount(self.as_array().ravel() - 1, minlength=self.n_treatments)

#-----------------------------------------------------------------------------
# Input validation
#-----------------------------------------------------------------------------
def validate_design(design: BlockDesign, n_blocks: int = None, block_size: int = None) -> None:
    """
    Check the structural invariants a design must satisfy before repair.

    Args:
        design: Design to check
        n_blocks: Expected number of blocks (skipped if None)
        block_size: Expected block size (skipped if None)

    Raises:
        InvalidInputError: On k >= N, wrong dimensions, duplicate treatments
            within a block or treatments outside 1..N
    """
    n = design.n_treatments
    if design.n_blocks == 0:
        raise InvalidInputError("Design has no blocks")
    if n_blocks is not None and design.n_blocks != n_blocks:
        raise InvalidInputError(f"Expected {n_blocks} blocks, got {design.n_blocks}")

    k = design.block_size if block_size is None else block_size
    if k < 1:
        raise InvalidInputError("Block size must be positive")
    if k >= n:
        raise InvalidInputError(f"Design is not incomplete: block size {k} >= {n} treatments")

    for block_id, block in enumerate(design.blocks):
        if len(block) != k:
            raise InvalidInputError(
                f"Block {block_id + 1} has {len(block)} treatments, expected {k}")
        if len(set(block)) != len(block):
            duplicates = sorted({t for t in block if block.count(t) > 1})
            raise InvalidInputError(
                f"Block {block_id + 1} contains duplicate treatments: {duplicates}")
        out_of_range = [t for t in block if t < 1 or t > n]
        if out_of_range:
            raise InvalidInputError(
                f"Block {block_id + 1} has treatments outside 1..{n}: {out_of_range}")


def normalize_forbidden_pairs(pairs: Iterable[Sequence[int]], n_treatments: int) -> Tuple[ForbiddenPair, ...]:
    """
    Convert raw pairs to an immutable tuple, keeping input order.

    Element order inside a pair is kept as given: it decides which treatment
    is tried first when swapping out of a block.

    Raises:
        InvalidInputError: If a pair is not two distinct treatments in 1..N
            or the same unordered pair appears twice
    """
    normalized = []
    seen = set()
    for raw in pairs:
        pair = tuple(int(t) for t in raw)
        if len(pair) != 2:
            raise InvalidInputError(f"Forbidden pair must have two treatments: {list(raw)}")
        a, b = pair
        if a == b:
            raise InvalidInputError(f"Forbidden pair repeats a treatment: {pair}")
        if not (1 <= a <= n_treatments and 1 <= b <= n_treatments):
            raise InvalidInputError(f"Forbidden pair {pair} outside treatments 1..{n_treatments}")
        key = frozenset(pair)
        if key in seen:
            raise InvalidInputError(f"Forbidden pair listed twice: {pair}")
        seen.add(key)
        normalized.append(pair)
    return tuple(normalized)

#-----------------------------------------------------------------------------
# Design table I/O
#-----------------------------------------------------------------------------
def design_to_frame(design: BlockDesign) -> pd.DataFrame:
    """B x k table, one row per block, index 'block' numbered from 1."""
    columns = [f"t{p + 1}" for p in range(design.block_size)]
    df = pd.DataFrame(design.as_array(), columns=columns)
    df.index = pd.RangeIndex(1, design.n_blocks + 1, name="block")
    return df


def save_design_table(design: BlockDesign, output_path: str) -> str:
    """Write the design table to CSV and return the path."""
    folder = os.path.dirname(output_path)
    if folder:
        os.makedirs(folder, exist_ok=True)
    design_to_frame(design).to_csv(output_path)
    return output_path


def load_design_table(input_path: str, n_treatments: int) -> BlockDesign:
    """
    Read a design table written by save_design_table.

    Rows keep file order; the 'block' column is only a label.
    """
    if not os.path.exists(input_path):
        raise FileNotFoundError(f"Design table not found: {input_path}")

    df = pd.read_csv(input_path, index_col=0)
    if df.empty:
        raise InvalidInputError(f"Design table is empty: {input_path}")
    if df.isnull().values.any():
        raise InvalidInputError(f"Design table has missing entries: {input_path}")

    values = df.apply(pd.to_numeric, errors="coerce").to_numpy(dtype=float)
    if np.isnan(values).any():
        raise InvalidInputError(f"Design table has non-numeric entries: {input_path}")
    if not np.all(np.mod(values, 1) == 0):
        raise InvalidInputError(f"Design table has non-integer entries: {input_path}")

    return BlockDesign.from_rows(values.astype(np.int64).tolist(), n_treatments)
