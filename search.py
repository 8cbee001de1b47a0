# search.py
"""
Swap search for repairing forbidden-pair violations.

Consolidates:
- Exclusion set and candidate pool construction
- Enumeration of valid swap candidates for one (pair, block) violation
- Scoring of candidates and minimum-variance selection, optionally in parallel

Enumeration order is fixed (pair element order, then destination blocks in
pool order, then treatments in block order) and the minimum is taken with a
strict comparison, so the earliest candidate wins ties.
"""

import numpy as np
from concurrent.futures import ProcessPoolExecutor
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Set, Tuple

from design import BlockDesign, ForbiddenPair, SwapCandidate
from constraints import partners_of
from scoring import SCORING_METHODS, DesignScorer

#-----------------------------------------------------------------------------
# Candidate generation
#-----------------------------------------------------------------------------
def compute_forbidden_set(block: Sequence[int], pairs: Iterable[ForbiddenPair]) -> Set[int]:
    """
    Treatments that may not be swapped into a block.

    The block's own treatments plus both elements of every forbidden pair
    touching the block.
    """
    members = set(block)
    forbidden = set(members)
    for a, b in pairs:
        if a in members or b in members:
            forbidden.add(a)
            forbidden.add(b)
    return forbidden

def compute_candidate_pool(design: BlockDesign, legitimate: Iterable[int],
                           forbidden: Set[int]) -> Dict[int, Tuple[int, ...]]:
    """Per legitimate block, its treatments outside the exclusion set (block order kept)."""
    return {r: tuple(t for t in design.blocks[r] if t not in forbidden) for r in legitimate}

def find_swap_candidates(design: BlockDesign, pair: ForbiddenPair, block_id: int,
                         legitimate: Iterable[int],
                         pairs: Iterable[ForbiddenPair]) -> Tuple[SwapCandidate, ...]:
    """
    Enumerate valid swaps that break a forbidden pair in one block.

    Args:
        design: Current design
        pair: Violated forbidden pair (both elements are in the block)
        block_id: Illegitimate block holding the pair
        legitimate: Legitimate block ids to draw destinations from
        pairs: All forbidden pairs

    Returns:
        Candidates in enumeration order; empty if the violation cannot be
        repaired against the current pool
    """
    pairs = tuple(pairs)
    source = design.blocks[block_id]
    forbidden = compute_forbidden_set(source, pairs)
    pool = compute_candidate_pool(design, legitimate, forbidden)

    # A destination holding either pair element would reproduce the pattern
    pool = {r: treatments for r, treatments in pool.items()
            if pair[0] not in design.blocks[r] and pair[1] not in design.blocks[r]}

    candidates: List[SwapCandidate] = []
    for x in pair:
        x_partners = partners_of(x, pairs)
        for r, treatments in pool.items():
            if r == block_id:
                continue
            destination = design.blocks[r]
            if x in destination or x_partners.intersection(destination):
                continue
            for y in treatments:
                candidates.append(SwapCandidate(x, y, block_id, r))

    return tuple(candidates)

#-----------------------------------------------------------------------------
# Candidate evaluation
#-----------------------------------------------------------------------------
class SwapChoice(NamedTuple):
    """Winning swap with its variance and the design it produces."""
    candidate: SwapCandidate
    variance: float
    design: BlockDesign


def _score_chunk_worker(args: Tuple) -> List[float]:
    """Score a chunk of candidates against a design snapshot (runs in a worker process)."""
    blocks, n_treatments, method, candidates = args
    scorer = DesignScorer(BlockDesign(blocks, n_treatments))
    return [scorer.score_swap(candidate, method) for candidate in candidates]

def _split_chunks(items: Sequence, n_chunks: int) -> List[Sequence]:
    n_chunks = max(1, min(n_chunks, len(items)))
    bounds = np.linspace(0, len(items), n_chunks + 1).astype(int)
    return [items[bounds[i]:bounds[i + 1]] for i in range(n_chunks)]


class SwapEvaluator:
    """
    Score swap candidates by resulting co-occurrence variance and pick the minimum.

    With processes > 1 scoring fans out over a process pool. Workers only
    receive immutable snapshots; chunks come back in submission order, so
    the reduction sees candidates in enumeration order either way.

    Use as a context manager so the pool lives for a whole repair run.
    """

    def __init__(self, method: str = "incremental", processes: int = 1,
                 min_parallel_candidates: int = 64):
        if method not in SCORING_METHODS:
            raise ValueError(f"Unknown scoring method: {method} (expected one of {SCORING_METHODS})")
        if processes < 1:
            raise ValueError("processes must be at least 1")
        self.method = method
        self.processes = processes
        self.min_parallel_candidates = min_parallel_candidates
        self._executor: Optional[ProcessPoolExecutor] = None

    def __enter__(self) -> "SwapEvaluator":
        if self.processes > 1:
            self._executor = ProcessPoolExecutor(max_workers=self.processes)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown()
            self._executor = None

    def score(self, design: BlockDesign, candidates: Sequence[SwapCandidate]) -> List[float]:
        """Variance after each candidate swap, in candidate order."""
        candidates = list(candidates)
        if not candidates:
            return []

        if self._executor is None or len(candidates) < self.min_parallel_candidates:
            scorer = DesignScorer(design)
            return [scorer.score_swap(candidate, self.method) for candidate in candidates]

        chunks = _split_chunks(candidates, self.processes)
        jobs = [(design.blocks, design.n_treatments, self.method, chunk) for chunk in chunks]
        scores: List[float] = []
        for chunk_scores in self._executor.map(_score_chunk_worker, jobs):
            scores.extend(chunk_scores)
        return scores

    def select_best(self, design: BlockDesign,
                    candidates: Sequence[SwapCandidate]) -> Optional[SwapChoice]:
        """
        Pick the candidate giving the lowest variance (earliest wins ties).

        Returns:
            SwapChoice with the applied design, or None if there are no candidates
        """
        candidates = list(candidates)
        scores = self.score(design, candidates)

        best_index = None
        min_variance = float('inf')
        for index, variance in enumerate(scores):
            if variance < min_variance:
                min_variance = variance
                best_index = index

        if best_index is None:
            return None

        best = candidates[best_index]
        return SwapChoice(best, min_variance, design.apply_swap(best))


def select_best_swap(design: BlockDesign, candidates: Sequence[SwapCandidate],
                     method: str = "incremental") -> Optional[SwapChoice]:
    """Serial shortcut for SwapEvaluator.select_best."""
    return SwapEvaluator(method=method).select_best(design, candidates)
