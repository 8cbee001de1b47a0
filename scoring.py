# scoring.py
"""
Co-occurrence scoring for block designs.

The co-occurrence matrix C of a design is the N x N symmetric count matrix
with C[i, i] = number of blocks containing treatment i + 1 and
C[i, j] = number of blocks containing both i + 1 and j + 1.

A perfectly balanced design has every pairwise count equal, so the objective
is the sample variance of the strictly lower-triangular entries of C
(denominator m - 1, m = N(N - 1) / 2). The variance is assembled from exact
integer moments, which makes two equally good swaps score identically and
keeps tie-breaking deterministic.

Swaps can be scored two ways with identical results:
- full: rebuild C for the swapped design (O(B k^2 + N^2))
- incremental: adjust the moments for the 2(k - 1) changed entries (O(k))
"""

import numpy as np
from numba import jit
from typing import Dict, Tuple

from design import BlockDesign, SwapCandidate

SCORING_METHODS = ("incremental", "full")

#-----------------------------------------------------------------------------
# JIT-compiled core calculations
#-----------------------------------------------------------------------------
@jit(nopython=True)
def _cooccurrence_jit(table: np.ndarray, n_treatments: int) -> np.ndarray:
    """Accumulate pair counts block by block (treatment t sits at index t - 1)."""
    counts = np.zeros((n_treatments, n_treatments), dtype=np.int64)
    n_blocks, block_size = table.shape
    for b in range(n_blocks):
        for p in range(block_size):
            i = table[b, p] - 1
            for q in range(block_size):
                counts[i, table[b, q] - 1] += 1
    return counts

@jit(nopython=True)
def _lower_triangle_moments_jit(counts: np.ndarray) -> Tuple[int, int]:
    """Sum and sum of squares of the strictly lower-triangular entries."""
    total = 0
    total_sq = 0
    n = counts.shape[0]
    for i in range(1, n):
        for j in range(i):
            c = counts[i, j]
            total += c
            total_sq += c * c
    return total, total_sq

#-----------------------------------------------------------------------------
# Matrix and variance
#-----------------------------------------------------------------------------
def cooccurrence_matrix(design: BlockDesign) -> np.ndarray:
    """Build the co-occurrence matrix of a design from scratch."""
    return _cooccurrence_jit(design.as_array(), design.n_treatments)

def n_lower_entries(n_treatments: int) -> int:
    return n_treatments * (n_treatments - 1) // 2

def variance_from_moments(m: int, total: int, total_sq: int) -> float:
    """Sample variance of m values given their integer sum and sum of squares."""
    if m < 2:
        return 0.0
    return (m * total_sq - total * total) / (m * (m - 1))

def lower_triangle_moments(counts: np.ndarray) -> Tuple[int, int, int]:
    """
    Returns:
        (number of entries, sum, sum of squares) of the strict lower triangle
    """
    total, total_sq = _lower_triangle_moments_jit(counts)
    return n_lower_entries(counts.shape[0]), int(total), int(total_sq)

def lower_triangle_variance(counts: np.ndarray) -> float:
    """Sample variance of the pairwise co-occurrence counts (diagonal excluded)."""
    return variance_from_moments(*lower_triangle_moments(counts))

def design_variance(design: BlockDesign) -> float:
    return lower_triangle_variance(cooccurrence_matrix(design))

#-----------------------------------------------------------------------------
# Swap scoring
#-----------------------------------------------------------------------------
def swap_count_changes(design: BlockDesign, candidate: SwapCandidate) -> Dict[Tuple[int, int], int]:
    """
    Pairwise count changes caused by a swap, keyed by lower-triangle index.

    x leaves block b and y enters it; y leaves block r and x enters it.
    The pair (x, y) itself is unaffected since x and y never share b or r.
    Changes that cancel (a treatment present in both blocks) are dropped.
    """
    x, y, b, r = candidate
    changes: Dict[Tuple[int, int], int] = {}

    def bump(t1: int, t2: int, delta: int) -> None:
        key = (max(t1, t2) - 1, min(t1, t2) - 1)
        changes[key] = changes.get(key, 0) + delta

    for t in design.blocks[b]:
        if t != x:
            bump(x, t, -1)
            bump(y, t, +1)
    for t in design.blocks[r]:
        if t != y:
            bump(y, t, -1)
            bump(x, t, +1)

    return {key: delta for key, delta in changes.items() if delta != 0}


class DesignScorer:
    """Scores swaps against one fixed design snapshot."""

    def __init__(self, design: BlockDesign):
        self.design = design
        self.counts = cooccurrence_matrix(design)
        self.n_entries, self.total, self.total_sq = lower_triangle_moments(self.counts)

    @property
    def variance(self) -> float:
        return variance_from_moments(self.n_entries, self.total, self.total_sq)

    def score_swap_full(self, candidate: SwapCandidate) -> float:
        """Variance of the swapped design, rebuilding its matrix."""
        return design_variance(self.design.apply_swap(candidate))

    def score_swap_incremental(self, candidate: SwapCandidate) -> float:
        """Variance of the swapped design, updating only the changed entries."""
        total = self.total
        total_sq = self.total_sq
        for (i, j), delta in swap_count_changes(self.design, candidate).items():
            old = int(self.counts[i, j])
            new = old + delta
            total += delta
            total_sq += new * new - old * old
        return variance_from_moments(self.n_entries, total, total_sq)

    def score_swap(self, candidate: SwapCandidate, method: str = "incremental") -> float:
        if method == "incremental":
            return self.score_swap_incremental(candidate)
        if method == "full":
            return self.score_swap_full(candidate)
        raise ValueError(f"Unknown scoring method: {method} (expected one of {SCORING_METHODS})")
