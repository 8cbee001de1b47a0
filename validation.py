# validation.py
"""
Constraint checking and validation for block design repair.

This module consolidates:
- The final forbidden-pair check (ConstraintReport)
- Block and co-occurrence matrix invariant checks
- Checks over a recorded repair run (monotone violation count, idempotence)
"""

import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field

from design import BlockDesign, ForbiddenPair, normalize_forbidden_pairs
from constraints import block_contains_pair, count_violations
from scoring import cooccurrence_matrix

#-----------------------------------------------------------------------------
# Constraint validator
#-----------------------------------------------------------------------------
class DegenerateConstraintSetError(Exception):
    """Forbidden pairs could not all be separated given the block structure."""

    def __init__(self, unresolved_pairs: Sequence[ForbiddenPair]):
        self.unresolved_pairs = tuple(unresolved_pairs)
        super().__init__(f"{len(self.unresolved_pairs)} forbidden pair(s) still co-occur: "
                         f"{list(self.unresolved_pairs)}")


@dataclass(frozen=True)
class ConstraintReport:
    """Outcome of checking a design against its forbidden pairs."""
    satisfied: bool
    unresolved_pairs: Tuple[ForbiddenPair, ...] = ()
    violation_counts: Dict[ForbiddenPair, int] = field(default_factory=dict)

    def raise_if_unsatisfied(self) -> None:
        if not self.satisfied:
            raise DegenerateConstraintSetError(self.unresolved_pairs)


def check_constraints(design: BlockDesign, pairs: Sequence[ForbiddenPair]) -> ConstraintReport:
    """
    Report whether any forbidden pair still shares a block.

    Reads the pair entries of the final co-occurrence matrix; an entry of
    zero means the pair never co-occurs.

    Raises:
        InvalidInputError: If a pair is not two distinct treatments in 1..N
    """
    pairs = normalize_forbidden_pairs(pairs, design.n_treatments)
    counts = cooccurrence_matrix(design)
    violation_counts = {}
    for a, b in pairs:
        n = int(counts[a - 1, b - 1])
        if n:
            violation_counts[(a, b)] = n
    unresolved = tuple(violation_counts)
    return ConstraintReport(not unresolved, unresolved, violation_counts)

#-----------------------------------------------------------------------------
# Validation result classes
#-----------------------------------------------------------------------------
@dataclass
class ValidationResult:
    """Result of a single validation check."""
    test_name: str
    passed: bool
    message: str
    details: Optional[Dict] = None

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return f"{status}: {self.test_name} - {self.message}"

@dataclass
class ValidationSuite:
    """Results from a complete validation suite."""
    results: List[ValidationResult]

    @property
    def all_passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for result in self.results if result.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.results if not result.passed)

    def print_summary(self):
        """Print validation summary."""
        print(f"\nValidation Summary: {self.passed_count}/{len(self.results)} checks passed")

        for result in self.results:
            print(f"  {result}")
            if result.details and not result.passed:
                for key, value in result.details.items():
                    print(f"    {key}: {value}")

        if self.all_passed:
            print("\nAll validation checks passed!")
        else:
            print(f"\n{self.failed_count} check(s) failed - review results above")

#-----------------------------------------------------------------------------
# Individual checks
#-----------------------------------------------------------------------------
def check_block_invariants(design: BlockDesign, block_size: int) -> ValidationResult:
    """Every block has block_size distinct treatments in 1..N."""
    bad_blocks = []
    for block_id, block in enumerate(design.blocks):
        if (len(block) != block_size or len(set(block)) != len(block)
                or min(block) < 1 or max(block) > design.n_treatments):
            bad_blocks.append(block_id + 1)

    passed = not bad_blocks
    message = f"{design.n_blocks} blocks checked, {len(bad_blocks)} malformed"
    return ValidationResult("Block Invariants", passed, message,
                            {"malformed_blocks": bad_blocks[:20]})

def check_cooccurrence_invariants(design: BlockDesign) -> ValidationResult:
    """Matrix is symmetric, non-negative, and its diagonal equals treatment frequencies."""
    counts = cooccurrence_matrix(design)
    symmetric = bool(np.array_equal(counts, counts.T))
    non_negative = bool((counts >= 0).all())
    diagonal_ok = bool(np.array_equal(np.diag(counts), design.treatment_frequencies()))

    passed = symmetric and non_negative and diagonal_ok
    message = f"symmetric={symmetric}, non_negative={non_negative}, diagonal={diagonal_ok}"
    return ValidationResult("Co-occurrence Invariants", passed, message)

def check_constraint_satisfaction(design: BlockDesign, pairs: Sequence[ForbiddenPair]) -> ValidationResult:
    report = check_constraints(design, pairs)
    message = (f"{len(pairs) - len(report.unresolved_pairs)}/{len(pairs)} forbidden pairs separated")
    return ValidationResult("Constraint Satisfaction", report.satisfied, message,
                            {"unresolved_pairs": list(report.unresolved_pairs)})

def check_monotone_repair(initial_design: BlockDesign, steps: Sequence,
                          pairs: Sequence[ForbiddenPair]) -> ValidationResult:
    """
    Replay recorded swaps and confirm each one removes its targeted violation
    and the total violation count strictly drops.
    """
    design = initial_design
    violations = count_violations(design, pairs)
    problems = []

    for index, step in enumerate(steps):
        design = design.apply_swap(step.candidate)
        after = count_violations(design, pairs)
        if block_contains_pair(design.blocks[step.block_id], step.pair):
            problems.append(f"step {index + 1}: pair {step.pair} still in block {step.block_id + 1}")
        if after >= violations:
            problems.append(f"step {index + 1}: violations {violations} -> {after}")
        violations = after

    passed = not problems
    message = f"{len(steps)} swaps replayed, {len(problems)} problems"
    return ValidationResult("Monotone Repair", passed, message, {"problems": problems[:20]})

def check_repair_idempotence(design: BlockDesign, pairs: Sequence[ForbiddenPair]) -> ValidationResult:
    """A further repair pass over a valid design leaves it unchanged."""
    from repair import repair_design

    if not check_constraints(design, pairs).satisfied:
        return ValidationResult("Repair Idempotence", True, "skipped: design still has violations")

    second = repair_design(design, pairs)
    passed = second.design == design and not second.steps
    message = "second pass left design unchanged" if passed else "second pass changed the design"
    return ValidationResult("Repair Idempotence", passed, message)

#-----------------------------------------------------------------------------
# Suite runner
#-----------------------------------------------------------------------------
def run_validation_suite(result, pairs: Sequence[ForbiddenPair], verbose: bool = True) -> bool:
    """
    Run all checks on a finished repair run.

    Args:
        result: RepairResult from repair.repair_design
        pairs: Forbidden pairs used for the run
        verbose: Print the summary

    Returns:
        True if every check passed
    """
    block_size = result.initial_design.block_size
    suite = ValidationSuite([
        check_block_invariants(result.initial_design, block_size),
        check_block_invariants(result.design, block_size),
        check_cooccurrence_invariants(result.design),
        check_monotone_repair(result.initial_design, result.steps, pairs),
        check_constraint_satisfaction(result.design, pairs),
        check_repair_idempotence(result.design, pairs),
    ])

    if verbose:
        suite.print_summary()

    return suite.all_passed
