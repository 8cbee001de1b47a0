# display.py
"""
Display and output formatting for block design repair.
"""

import os
from datetime import datetime
from typing import Optional

from config import Config
from design import BlockDesign, save_design_table
from constraints import count_violations
from repair import RepairResult, summarize_variance

#-----------------------------------------------------------------------------
# Design display
#-----------------------------------------------------------------------------
def print_design(design: BlockDesign, title: str = "Design", max_blocks: int = 30) -> None:
    """Print blocks one per line."""
    print(f"\n{title} ({design.n_blocks} blocks x {design.block_size}):")
    width = len(str(design.n_treatments))
    for block_id, block in enumerate(design.blocks[:max_blocks]):
        print(f"  {block_id + 1:>4}: " + " ".join(f"{t:>{width}}" for t in block))
    if design.n_blocks > max_blocks:
        print(f"  ... {design.n_blocks - max_blocks} more blocks")

#-----------------------------------------------------------------------------
# Results display
#-----------------------------------------------------------------------------
def print_repair_header() -> None:
    print(f"\n" + "="*60)
    print("BLOCK DESIGN REPAIR")
    print("="*60)

def print_initial_state(design: BlockDesign, pairs) -> None:
    frequencies = design.treatment_frequencies()
    print("\nInitial Design:")
    print(f"  Treatment frequencies: min={frequencies.min()}, max={frequencies.max()}")
    print(f"  Forbidden occurrences: {count_violations(design, pairs)}")

def print_repair_results(result: RepairResult, verbose: bool = False) -> None:
    """Print the outcome of a repair run."""
    before, after = summarize_variance(result)

    print(f"\nRepair Summary:")
    print(f"  Swaps applied: {len(result.steps)}")
    print(f"  Unrepairable occurrences: {len(result.failures)}")
    print(f"  Co-occurrence variance: {before:.6f} -> {after:.6f}")
    print(f"  Total time: {result.elapsed:.2f}s")
    if result.timed_out:
        print(f"  Time limit reached: repair stopped early")

    if verbose and result.failures:
        print("\nUnrepairable occurrences:")
        for failure in result.failures:
            print(f"  {failure}")

    print(f"\nAll constraints satisfied: {result.satisfied}")
    if not result.satisfied:
        print("  Unresolved forbidden pairs:")
        for pair in result.unresolved_pairs:
            print(f"    {pair}: {result.report.violation_counts[pair]} block(s)")

#-----------------------------------------------------------------------------
# CSV output
#-----------------------------------------------------------------------------
def default_output_path(config: Config) -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    config_name = os.path.basename(config._config_path).replace('.yaml', '')
    filename = f"output_design_{config_name}_{timestamp}.csv"
    return os.path.join(config.paths.output_folder, filename)

def save_repair_results(result: RepairResult, config: Config,
                        output_path: Optional[str] = None) -> str:
    """
    Save the repaired design table to CSV.

    Args:
        result: Finished repair run
        config: Configuration object (for the default output location)
        output_path: Explicit path, overrides the default

    Returns:
        Path to saved CSV file
    """
    return save_design_table(result.design, output_path or default_output_path(config))
