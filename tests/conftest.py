import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from design import BlockDesign


@pytest.fixture
def three_block_design():
    """N=6, k=2: [[1,2],[3,4],[5,6]]"""
    return BlockDesign.from_rows([[1, 2], [3, 4], [5, 6]], n_treatments=6)


@pytest.fixture
def saturated_design():
    """Every other block already holds 1 or 2, so (1, 2) in block 1 cannot be broken."""
    return BlockDesign.from_rows([[1, 2], [1, 3], [2, 4]], n_treatments=5)
