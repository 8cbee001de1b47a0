# repair.py
"""
Repair loop for block designs with forbidden pairs.

For each forbidden pair, every block that currently holds the pair gets one
repair attempt: find valid swaps against the current legitimate blocks, apply
the one giving the lowest co-occurrence variance, and carry the new design
forward. Attempts with no valid swap are recorded and skipped.

The final design depends on the order pairs and blocks are visited, because
every swap changes the matrix seen by later steps. Both orders are explicit
settings; each order is deterministic and yields a valid (but different)
design.
"""

import time
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
from tqdm import tqdm

from design import BlockDesign, ForbiddenPair, SwapCandidate, validate_design, normalize_forbidden_pairs
from constraints import block_contains_pair, classify_blocks, count_violations
from search import SwapEvaluator, find_swap_candidates
from scoring import design_variance
from validation import ConstraintReport, check_constraints

PAIR_ORDERS = ("input", "sorted")
BLOCK_ORDERS = ("ascending", "descending")

#-----------------------------------------------------------------------------
# Result types
#-----------------------------------------------------------------------------
class RepairState(Enum):
    SCANNING = "scanning"
    REPAIRING = "repairing"
    DONE = "done"


class UnrepairablePairError(Exception):
    """No valid swap existed for a (pair, block) occurrence; recorded, not raised."""

    def __init__(self, pair: ForbiddenPair, block_id: int):
        self.pair = pair
        self.block_id = block_id
        super().__init__(f"No valid swap for pair {pair} in block {block_id + 1}")


@dataclass(frozen=True)
class RepairStep:
    """One applied swap."""
    pair: ForbiddenPair
    block_id: int
    candidate: SwapCandidate
    variance: float
    n_candidates: int
    violations_after: int


@dataclass
class RepairResult:
    design: BlockDesign
    initial_design: BlockDesign
    report: ConstraintReport
    steps: List[RepairStep] = field(default_factory=list)
    failures: List[UnrepairablePairError] = field(default_factory=list)
    elapsed: float = 0.0
    timed_out: bool = False

    @property
    def satisfied(self) -> bool:
        return self.report.satisfied

    @property
    def unresolved_pairs(self) -> Tuple[ForbiddenPair, ...]:
        return self.report.unresolved_pairs

#-----------------------------------------------------------------------------
# Iteration order
#-----------------------------------------------------------------------------
def order_pairs(pairs: Sequence[ForbiddenPair], pair_order: str = "input") -> Tuple[ForbiddenPair, ...]:
    if pair_order == "input":
        return tuple(pairs)
    if pair_order == "sorted":
        return tuple(sorted(pairs, key=lambda pair: (min(pair), max(pair))))
    raise ValueError(f"Unknown pair_order: {pair_order} (expected one of {PAIR_ORDERS})")

def order_blocks(block_ids: Sequence[int], block_order: str = "ascending") -> Tuple[int, ...]:
    if block_order == "ascending":
        return tuple(sorted(block_ids))
    if block_order == "descending":
        return tuple(sorted(block_ids, reverse=True))
    raise ValueError(f"Unknown block_order: {block_order} (expected one of {BLOCK_ORDERS})")

#-----------------------------------------------------------------------------
# Orchestrator
#-----------------------------------------------------------------------------
class RepairOrchestrator:
    """
    Drives repair over (pair, block) occurrences, threading the design value.

    States: SCANNING while moving between pairs, REPAIRING while working the
    blocks of the current pair, DONE once every occurrence was visited or
    the time limit expired.
    """

    def __init__(self, pairs: Sequence[ForbiddenPair], pair_order: str = "input",
                 block_order: str = "ascending", scoring_method: str = "incremental",
                 processes: int = 1, time_limit: Optional[float] = None,
                 show_progress: bool = False, verbose: bool = False):
        if block_order not in BLOCK_ORDERS:
            raise ValueError(f"Unknown block_order: {block_order} (expected one of {BLOCK_ORDERS})")
        if time_limit is not None and time_limit <= 0:
            raise ValueError(f"time_limit must be positive or None: {time_limit}")
        self.pairs = tuple(pairs)
        self.ordered_pairs = order_pairs(self.pairs, pair_order)
        self.block_order = block_order
        self.scoring_method = scoring_method
        self.processes = processes
        self.time_limit = time_limit
        self.show_progress = show_progress
        self.verbose = verbose
        self.state = RepairState.SCANNING

    def _expired(self, start_time: float) -> bool:
        return self.time_limit is not None and (time.time() - start_time) > self.time_limit

    def repair_occurrence(self, design: BlockDesign, pair: ForbiddenPair, block_id: int,
                          evaluator: SwapEvaluator) -> Tuple[BlockDesign, Optional[RepairStep]]:
        """
        Try to break one pair in one block.

        Returns:
            (design after the attempt, applied step or None if no swap existed)
        """
        legitimate = classify_blocks(design, self.pairs).legitimate
        candidates = find_swap_candidates(design, pair, block_id, legitimate, self.pairs)
        choice = evaluator.select_best(design, candidates)
        if choice is None:
            return design, None

        step = RepairStep(pair, block_id, choice.candidate, choice.variance, len(candidates),
                          count_violations(choice.design, self.pairs))
        return choice.design, step

    def run(self, design: BlockDesign) -> RepairResult:
        start_time = time.time()
        initial_design = design
        steps: List[RepairStep] = []
        failures: List[UnrepairablePairError] = []
        timed_out = False
        self.state = RepairState.SCANNING

        # Blocks only ever lose violations, so the initial illegitimate set
        # bounds the work for the progress bar
        initial_occurrences = count_violations(design, self.pairs)
        pbar = tqdm(total=initial_occurrences, desc="Repairing", unit="occ",
                    disable=not self.show_progress)

        with SwapEvaluator(self.scoring_method, self.processes) as evaluator:
            for pair in self.ordered_pairs:
                if timed_out:
                    break
                self.state = RepairState.REPAIRING
                illegitimate = classify_blocks(design, self.pairs).illegitimate

                for block_id in order_blocks(illegitimate, self.block_order):
                    # Earlier swaps may already have separated this pair
                    if not block_contains_pair(design.blocks[block_id], pair):
                        continue
                    if self._expired(start_time):
                        timed_out = True
                        break

                    design, step = self.repair_occurrence(design, pair, block_id, evaluator)
                    if step is None:
                        failures.append(UnrepairablePairError(pair, block_id))
                        if self.verbose:
                            print(f"  Pair {pair}, block {block_id + 1}: no valid swap, skipped")
                    else:
                        steps.append(step)
                        if self.verbose:
                            x, y, _, r = step.candidate
                            print(f"  Pair {pair}, block {block_id + 1}: swapped {x} <-> {y} "
                                  f"with block {r + 1} (variance {step.variance:.6f}, "
                                  f"{step.n_candidates} candidates)")
                    pbar.update(1)

                self.state = RepairState.SCANNING

        pbar.close()
        self.state = RepairState.DONE

        return RepairResult(
            design=design,
            initial_design=initial_design,
            report=check_constraints(design, self.pairs),
            steps=steps,
            failures=failures,
            elapsed=time.time() - start_time,
            timed_out=timed_out,
        )


def repair_design(design: BlockDesign, pairs, pair_order: str = "input",
                  block_order: str = "ascending", scoring_method: str = "incremental",
                  processes: int = 1, time_limit: Optional[float] = None,
                  show_progress: bool = False, verbose: bool = False) -> RepairResult:
    """
    Validate inputs and repair a design against forbidden pairs.

    Args:
        design: Initial design (never modified)
        pairs: Forbidden pairs, in the order they should be processed for 'input' order
        pair_order: 'input' or 'sorted'
        block_order: 'ascending' or 'descending' block ids
        scoring_method: 'incremental' or 'full'
        processes: Worker processes for candidate scoring
        time_limit: Seconds before stopping early (None for unlimited)
        show_progress: Show a progress bar
        verbose: Print each repair step

    Returns:
        RepairResult with the final design and constraint report

    Raises:
        InvalidInputError: If the design or pairs are structurally invalid
    """
    validate_design(design)
    pairs = normalize_forbidden_pairs(pairs, design.n_treatments)

    orchestrator = RepairOrchestrator(pairs, pair_order, block_order, scoring_method,
                                      processes, time_limit, show_progress, verbose)
    return orchestrator.run(design)


def summarize_variance(result: RepairResult) -> Tuple[float, float]:
    """Lower-triangular co-occurrence variance before and after repair."""
    return design_variance(result.initial_design), design_variance(result.design)
