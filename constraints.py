# constraints.py
"""
Forbidden-pair constraint handling.

A block is legitimate if it holds no forbidden pair, illegitimate if it
holds both treatments of at least one. Classification is a linear scan over
blocks x pairs and is recomputed from the current design whenever it is needed.
"""

from typing import Iterable, List, Set, Tuple
from dataclasses import dataclass

from design import BlockDesign, ForbiddenPair

#-----------------------------------------------------------------------------
# Pair membership
#-----------------------------------------------------------------------------
def block_contains_pair(block: Iterable[int], pair: ForbiddenPair) -> bool:
    members = set(block)
    return pair[0] in members and pair[1] in members

def block_violations(block: Iterable[int], pairs: Iterable[ForbiddenPair]) -> List[ForbiddenPair]:
    """Forbidden pairs fully present in a block, in pair order."""
    members = set(block)
    return [pair for pair in pairs if pair[0] in members and pair[1] in members]

def count_violations(design: BlockDesign, pairs: Iterable[ForbiddenPair]) -> int:
    """Total number of (pair, block) forbidden occurrences in a design."""
    pairs = tuple(pairs)
    return sum(len(block_violations(block, pairs)) for block in design.blocks)

def partners_of(treatment: int, pairs: Iterable[ForbiddenPair]) -> Set[int]:
    """Treatments that may never share a block with the given treatment."""
    partners = set()
    for a, b in pairs:
        if a == treatment:
            partners.add(b)
        elif b == treatment:
            partners.add(a)
    return partners

#-----------------------------------------------------------------------------
# Block classification
#-----------------------------------------------------------------------------
@dataclass(frozen=True)
class BlockClassification:
    """Disjoint block id sets, each in ascending order."""
    legitimate: Tuple[int, ...]
    illegitimate: Tuple[int, ...]

    @property
    def all_legitimate(self) -> bool:
        return not self.illegitimate


def classify_blocks(design: BlockDesign, pairs: Iterable[ForbiddenPair]) -> BlockClassification:
    """
    Partition block ids into legitimate and illegitimate.

    Args:
        design: Current design
        pairs: Forbidden pairs

    Returns:
        BlockClassification covering every block exactly once
    """
    pairs = tuple(pairs)
    legitimate = []
    illegitimate = []
    for block_id, block in enumerate(design.blocks):
        members = set(block)
        if any(a in members and b in members for a, b in pairs):
            illegitimate.append(block_id)
        else:
            legitimate.append(block_id)
    return BlockClassification(tuple(legitimate), tuple(illegitimate))
