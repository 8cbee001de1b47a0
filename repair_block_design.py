# repair_block_design.py
"""
Block design repair software

Takes an incomplete block design (N treatments in B blocks of size k) and
swaps treatments between blocks until no forbidden pair shares a block,
choosing each swap to keep pairwise co-occurrence counts as even as possible
(minimum variance of the lower-triangular co-occurrence matrix).

Usage:
    # Generate an initial design from the config and repair it
    python repair_block_design.py --config config.yaml

    # Repair an existing design table and validate the result
    python repair_block_design.py --config config.yaml --initial-design input/design.csv --validate

    # Parallel candidate scoring with a time budget
    python repair_block_design.py --config config.yaml --processes 8 --time-limit 600

"""

import argparse
import sys
import time
from pathlib import Path

from config import Config, load_config, print_config_summary, create_default_config
from design import BlockDesign, InvalidInputError, load_design_table, validate_design
from initial_design import generate_initial_design
from repair import RepairResult, repair_design
from display import (print_repair_header, print_initial_state, print_design,
                     print_repair_results, save_repair_results)
from validation import run_validation_suite

#-----------------------------------------------------------------------------
# Pipeline
#-----------------------------------------------------------------------------
def prepare_initial_design(config: Config, initial_design_path: str = None) -> BlockDesign:
    """Load the initial design table if one is given, otherwise generate one."""
    d = config.design
    path = initial_design_path or config.paths.initial_design_table

    if path:
        print(f"\nLoading initial design from {path}...")
        design = load_design_table(path, d.n_treatments)
    else:
        print(f"\nGenerating initial design ({d.n_repeats} repeats, seed {d.seed})...")
        start_time = time.time()
        design = generate_initial_design(d.n_treatments, d.n_blocks, d.block_size,
                                         n_repeats=d.n_repeats, seed=d.seed,
                                         verbose=config.visualization.verbose_output)
        print(f"  Generated in {time.time() - start_time:.2f}s")

    validate_design(design, n_blocks=d.n_blocks, block_size=d.block_size)
    return design

def run_repair(config: Config, design: BlockDesign, processes: int = None,
               time_limit: float = None) -> RepairResult:
    """Repair a design with the configured settings (arguments override config)."""
    r = config.repair
    pairs = [tuple(pair) for pair in config.design.forbidden_pairs]

    print_initial_state(design, pairs)
    print(f"\nRepairing {len(pairs)} forbidden pair(s)...")

    return repair_design(
        design, pairs,
        pair_order=r.pair_order,
        block_order=r.block_order,
        scoring_method=r.scoring_method,
        processes=processes if processes is not None else r.processes,
        time_limit=time_limit if time_limit is not None else r.time_limit_seconds,
        show_progress=r.show_progress_bar,
        verbose=config.visualization.verbose_output,
    )

#-----------------------------------------------------------------------------
# Command-line interface
#-----------------------------------------------------------------------------
def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Repair a block design so that forbidden treatment pairs never share a block.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Repair a generated design
  python repair_block_design.py --config config.yaml

  # Repair a saved design and write the result to a chosen file
  python repair_block_design.py --initial-design input/design.csv --output output/repaired.csv

  # Validation and detailed output
  python repair_block_design.py --config config.yaml --validate --verbose
        """
    )

    # Basic options
    parser.add_argument('--config', type=str, default='config.yaml',
                       help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--create-config', action='store_true',
                       help='Write a default configuration file to --config and exit')
    parser.add_argument('--verbose', action='store_true',
                       help='Print every repair step')

    # Input/output
    parser.add_argument('--initial-design', type=str, default=None,
                       help='CSV design table to repair (default: generate from config)')
    parser.add_argument('--output', type=str, default=None,
                       help='Output CSV path (default: timestamped file in output folder)')

    # Repair options
    parser.add_argument('--processes', type=int, default=None,
                       help='Worker processes for candidate scoring (default: from config)')
    parser.add_argument('--time-limit', type=float, default=None,
                       help='Time limit in seconds (default: from config)')

    # Reporting
    parser.add_argument('--validate', action='store_true',
                       help='Run validation suite on the repaired design')
    parser.add_argument('--plot', action='store_true',
                       help='Save co-occurrence heatmaps before and after repair')

    args = parser.parse_args()
    if args.processes is not None and args.processes < 1:
        parser.error(f"--processes must be at least 1: {args.processes}")
    if args.time_limit is not None and args.time_limit <= 0:
        parser.error(f"--time-limit must be positive: {args.time_limit}")
    return args

def main():
    """Main entry point."""
    args = parse_arguments()

    if args.create_config:
        create_default_config(args.config)
        return

    config = load_config(args.config)
    if args.verbose:
        config.visualization.verbose_output = True

    print_repair_header()
    print_config_summary(config)

    try:
        design = prepare_initial_design(config, args.initial_design)
        result = run_repair(config, design, args.processes, args.time_limit)
    except InvalidInputError as e:
        print(f"\nInvalid input: {e}")
        sys.exit(1)

    if config.visualization.verbose_output:
        print_design(result.design, title="Repaired Design")

    print_repair_results(result, verbose=config.visualization.verbose_output)

    csv_path = save_repair_results(result, config, args.output)
    print(f"\nDesign saved to: {csv_path}")

    if args.plot or config.visualization.plot_cooccurrence:
        from plots import plot_cooccurrence_heatmaps
        plot_path = str(Path(csv_path).with_suffix('.png'))
        plot_cooccurrence_heatmaps(result.initial_design, result.design, plot_path)
        print(f"Co-occurrence heatmaps saved to: {plot_path}")

    if args.validate:
        pairs = [tuple(pair) for pair in config.design.forbidden_pairs]
        print("\nRunning validation suite...")
        if not run_validation_suite(result, pairs):
            print("Validation failed.")
            sys.exit(1)

if __name__ == "__main__":
    main()
