"""
Tests for the repair loop.
"""

import pytest

import repair
from constraints import block_contains_pair, count_violations
from design import BlockDesign, InvalidInputError
from initial_design import generate_initial_design
from repair import (RepairOrchestrator, RepairState, UnrepairablePairError,
                    order_blocks, order_pairs, repair_design)
from validation import DegenerateConstraintSetError

PAIRS = [(1, 2), (3, 4), (5, 6), (7, 8), (9, 10), (2, 9)]


@pytest.fixture
def crowded_design():
    """Design seeded with several forbidden co-occurrences."""
    design = generate_initial_design(20, 20, 5, n_repeats=3, seed=42)
    rows = [list(block) for block in design.blocks]
    # Plant pairs into specific blocks by overwriting two slots with fresh treatments
    for block_id, (a, b) in zip([0, 3, 7], [(1, 2), (3, 4), (5, 6)]):
        row = [t for t in rows[block_id] if t not in (a, b)][:3]
        rows[block_id] = row + [a, b]
    return BlockDesign.from_rows(rows, 20)


def assert_well_formed(design, block_size):
    for block in design.blocks:
        assert len(block) == block_size
        assert len(set(block)) == block_size


def test_three_block_scenario(three_block_design):
    result = repair_design(three_block_design, [(1, 2)])

    assert result.satisfied
    assert result.design.blocks == ((3, 2), (1, 4), (5, 6))
    assert len(result.steps) == 1
    assert result.steps[0].n_candidates == 8
    assert result.failures == []
    assert result.initial_design == three_block_design


def test_saturated_scenario_is_recorded_not_raised(saturated_design):
    result = repair_design(saturated_design, [(1, 2)])

    assert not result.satisfied
    assert result.design == saturated_design
    assert result.unresolved_pairs == ((1, 2),)
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert isinstance(failure, UnrepairablePairError)
    assert failure.pair == (1, 2)
    assert failure.block_id == 0
    with pytest.raises(DegenerateConstraintSetError):
        result.report.raise_if_unsatisfied()


def test_repair_resolves_planted_violations(crowded_design):
    assert count_violations(crowded_design, PAIRS) >= 3

    result = repair_design(crowded_design, PAIRS)

    assert result.satisfied
    assert count_violations(result.design, PAIRS) == 0
    assert_well_formed(result.design, 5)


def test_each_swap_removes_target_and_violations_never_increase(crowded_design):
    result = repair_design(crowded_design, PAIRS)

    design = crowded_design
    previous = count_violations(design, PAIRS)
    for step in result.steps:
        design = design.apply_swap(step.candidate)
        assert_well_formed(design, 5)
        assert not block_contains_pair(design.blocks[step.block_id], step.pair)
        assert step.violations_after == count_violations(design, PAIRS)
        assert step.violations_after < previous
        previous = step.violations_after
    assert design == result.design


def test_repair_leaves_input_untouched(crowded_design):
    snapshot = crowded_design.blocks
    repair_design(crowded_design, PAIRS)
    assert crowded_design.blocks == snapshot


def test_repair_of_valid_design_is_a_no_op(crowded_design):
    repaired = repair_design(crowded_design, PAIRS).design
    second = repair_design(repaired, PAIRS)

    assert second.satisfied
    assert second.design == repaired
    assert second.steps == []
    assert second.failures == []


def test_repair_is_deterministic(crowded_design):
    first = repair_design(crowded_design, PAIRS)
    second = repair_design(crowded_design, PAIRS)
    assert first.design == second.design
    assert first.steps == second.steps


@pytest.mark.parametrize("pair_order, block_order", [
    ("input", "ascending"),
    ("sorted", "ascending"),
    ("input", "descending"),
    ("sorted", "descending"),
])
def test_every_order_gives_valid_design(crowded_design, pair_order, block_order):
    result = repair_design(crowded_design, PAIRS, pair_order=pair_order, block_order=block_order)
    assert result.satisfied
    assert_well_formed(result.design, 5)


def test_full_scoring_gives_same_result(crowded_design):
    incremental = repair_design(crowded_design, PAIRS, scoring_method="incremental")
    full = repair_design(crowded_design, PAIRS, scoring_method="full")
    assert incremental.design == full.design


def test_parallel_repair_matches_serial(crowded_design):
    serial = repair_design(crowded_design, PAIRS)
    parallel = repair_design(crowded_design, PAIRS, processes=2)
    assert parallel.design == serial.design


def test_time_limit_stops_early(crowded_design, monkeypatch):
    class SteppingClock:
        def __init__(self):
            self.now = 0.0

        def time(self):
            self.now += 10.0
            return self.now

    monkeypatch.setattr(repair, "time", SteppingClock())
    result = repair_design(crowded_design, PAIRS, time_limit=5.0)

    assert result.timed_out
    assert result.steps == []
    assert result.design == crowded_design
    assert not result.satisfied
    assert (1, 2) in result.unresolved_pairs


@pytest.mark.parametrize("time_limit", [0.0, -1.0])
def test_non_positive_time_limit_is_rejected(three_block_design, time_limit):
    with pytest.raises(ValueError, match="time_limit"):
        repair_design(three_block_design, [(1, 2)], time_limit=time_limit)


def test_generous_time_limit_does_not_stop(three_block_design):
    result = repair_design(three_block_design, [(1, 2)], time_limit=3600.0)
    assert not result.timed_out
    assert result.satisfied


def test_orchestrator_ends_in_done_state(three_block_design):
    orchestrator = RepairOrchestrator([(1, 2)])
    assert orchestrator.state == RepairState.SCANNING
    orchestrator.run(three_block_design)
    assert orchestrator.state == RepairState.DONE


def test_invalid_design_is_fatal():
    design = BlockDesign.from_rows([[1, 1], [3, 4]], n_treatments=6)
    with pytest.raises(InvalidInputError):
        repair_design(design, [(1, 2)])


def test_invalid_pair_is_fatal(three_block_design):
    with pytest.raises(InvalidInputError):
        repair_design(three_block_design, [(1, 9)])


def test_order_helpers():
    assert order_pairs([(9, 3), (1, 2), (4, 2)], "sorted") == ((1, 2), (4, 2), (9, 3))
    assert order_pairs([(9, 3), (1, 2)], "input") == ((9, 3), (1, 2))
    assert order_blocks([4, 1, 7], "descending") == (7, 4, 1)
    with pytest.raises(ValueError):
        order_pairs([(1, 2)], "random")
    with pytest.raises(ValueError):
        order_blocks([1], "random")
