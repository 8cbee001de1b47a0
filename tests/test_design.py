"""
Tests for the design data model, input validation and the design table format.
"""

import numpy as np
import pytest

from design import (BlockDesign, InvalidInputError, SwapCandidate, design_to_frame,
                    load_design_table, normalize_forbidden_pairs, save_design_table,
                    validate_design)


def test_apply_swap_returns_new_design_and_keeps_positions():
    design = BlockDesign.from_rows([[1, 2, 3], [4, 5, 6]], n_treatments=7)
    swapped = design.apply_swap(SwapCandidate(2, 5, 0, 1))

    assert swapped.blocks == ((1, 5, 3), (4, 2, 6))
    assert design.blocks == ((1, 2, 3), (4, 5, 6))


def test_treatment_frequencies():
    design = BlockDesign.from_rows([[1, 2], [1, 3], [2, 4]], n_treatments=5)
    assert design.treatment_frequencies().tolist() == [2, 2, 1, 1, 0]


def test_validate_design_accepts_well_formed(three_block_design):
    validate_design(three_block_design, n_blocks=3, block_size=2)


@pytest.mark.parametrize("rows, n, message", [
    ([[1, 2], [3, 3]], 6, "duplicate"),
    ([[1, 2, 3], [4, 5, 6]], 3, "not incomplete"),
    ([[1, 2], [3, 4, 5]], 6, "expected 2"),
    ([[1, 2], [3, 9]], 6, "outside"),
    ([[0, 2], [3, 4]], 6, "outside"),
])
def test_validate_design_rejects(rows, n, message):
    with pytest.raises(InvalidInputError, match=message):
        validate_design(BlockDesign.from_rows(rows, n))


def test_validate_design_checks_block_count(three_block_design):
    with pytest.raises(InvalidInputError, match="Expected 4 blocks"):
        validate_design(three_block_design, n_blocks=4)


def test_normalize_forbidden_pairs_keeps_order():
    pairs = normalize_forbidden_pairs([[4, 3], (1, 2)], n_treatments=6)
    assert pairs == ((4, 3), (1, 2))


@pytest.mark.parametrize("pairs", [
    [[1, 1]],
    [[1, 7]],
    [[1, 2, 3]],
    [[1, 2], [2, 1]],
])
def test_normalize_forbidden_pairs_rejects(pairs):
    with pytest.raises(InvalidInputError):
        normalize_forbidden_pairs(pairs, n_treatments=6)


def test_design_table_round_trip(tmp_path):
    design = BlockDesign.from_rows([[5, 1, 3], [2, 4, 6], [6, 3, 1], [4, 5, 2]], n_treatments=6)
    path = save_design_table(design, str(tmp_path / "out" / "design.csv"))

    loaded = load_design_table(path, n_treatments=6)

    assert loaded == design


def test_design_frame_layout(three_block_design):
    df = design_to_frame(three_block_design)
    assert list(df.columns) == ["t1", "t2"]
    assert df.index.name == "block"
    assert df.index.tolist() == [1, 2, 3]
    np.testing.assert_array_equal(df.to_numpy(), three_block_design.as_array())


def test_load_design_table_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_design_table(str(tmp_path / "missing.csv"), n_treatments=6)


@pytest.mark.parametrize("cell, message", [("2.7", "non-integer"), ("x", "non-numeric")])
def test_load_design_table_rejects_bad_cells(tmp_path, cell, message):
    path = tmp_path / "design.csv"
    path.write_text(f"block,t1,t2\n1,1,{cell}\n2,3,4\n3,5,6\n")

    with pytest.raises(InvalidInputError, match=message):
        load_design_table(str(path), n_treatments=6)


def test_load_design_table_accepts_integral_floats(tmp_path, three_block_design):
    path = tmp_path / "design.csv"
    path.write_text("block,t1,t2\n1,1.0,2.0\n2,3,4\n3,5,6\n")

    assert load_design_table(str(path), n_treatments=6) == three_block_design
