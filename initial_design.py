# initial_design.py
"""
Starting designs for repair.

Stands in for an external block design optimizer: blocks are filled from a
stream of shuffled permutations of all treatments, which keeps treatment
frequencies within one of each other and never repeats a treatment inside
a block. The construction is repeated n_repeats times and the one with the
lowest lower-triangular co-occurrence variance is kept.
"""

import numpy as np
from typing import List, Optional

from design import BlockDesign, InvalidInputError
from scoring import design_variance


def build_design_once(n_treatments: int, n_blocks: int, block_size: int,
                      rng: np.random.Generator) -> BlockDesign:
    """One randomized construction; each block takes the first k distinct treatments in the stream."""
    stream: List[int] = []
    blocks = []
    for _ in range(n_blocks):
        block: List[int] = []
        deferred: List[int] = []
        while len(block) < block_size:
            if not stream:
                stream = [int(t) + 1 for t in rng.permutation(n_treatments)]
            t = stream.pop(0)
            if t in block:
                deferred.append(t)
            else:
                block.append(t)
        # Deferred treatments go first in line for the next block
        stream = deferred + stream
        blocks.append(tuple(block))
    return BlockDesign(tuple(blocks), n_treatments)


def generate_initial_design(n_treatments: int, n_blocks: int, block_size: int,
                            n_repeats: int = 5, seed: Optional[int] = None,
                            verbose: bool = False) -> BlockDesign:
    """
    Generate an approximately balanced incomplete block design.

    Args:
        n_treatments: Number of treatments N
        n_blocks: Number of blocks B
        block_size: Treatments per block k (must be < N)
        n_repeats: Independent constructions to compare
        seed: Random seed for reproducible designs
        verbose: Print the variance of each construction

    Returns:
        Design with the lowest lower-triangular variance (first one wins ties)
    """
    if block_size >= n_treatments:
        raise InvalidInputError(f"Design is not incomplete: block size {block_size} >= {n_treatments} treatments")
    if block_size < 1 or n_blocks < 1:
        raise InvalidInputError("Block size and number of blocks must be positive")
    if n_repeats < 1:
        raise InvalidInputError("n_repeats must be at least 1")

    rng = np.random.default_rng(seed)
    best_design = None
    best_variance = float('inf')

    for repeat in range(n_repeats):
        design = build_design_once(n_treatments, n_blocks, block_size, rng)
        variance = design_variance(design)
        if verbose:
            print(f"  Construction {repeat + 1}/{n_repeats}: variance {variance:.6f}")
        if variance < best_variance:
            best_variance = variance
            best_design = design

    return best_design
