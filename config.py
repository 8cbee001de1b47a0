#!/usr/bin/env python3
"""
Configuration Management for Block Design Repair

This module provides structured configuration loading, validation,
and management for repairing block designs against forbidden pairs.
It handles the design dimensions, forbidden pairs, file paths,
and repair settings.

Features:
- YAML-based configuration with comprehensive validation
- Optional initial design table (otherwise a design is generated)
- Automatic creation of the output folder
- Clear error messages for configuration issues

"""

import yaml
import os
from typing import List, Optional, Union
from dataclasses import dataclass, field


@dataclass
class DesignConfig:
    """Design dimensions and constraints."""

    n_treatments: int
    n_blocks: int
    block_size: int

    # Unordered treatment pairs that may never share a block
    forbidden_pairs: List[List[int]] = field(default_factory=list)

    # Initial design generation
    n_repeats: int = 5
    seed: Optional[int] = 123


@dataclass
class PathConfig:
    """File paths for input and output."""
    output_folder: str = "output/designs"
    initial_design_table: str = ""


@dataclass
class RepairConfig:
    """Repair loop settings."""

    # Iteration order (different orders give different valid designs)
    pair_order: str = "input"
    block_order: str = "ascending"

    # Candidate scoring
    scoring_method: str = "incremental"
    processes: int = 1

    # Seconds, or "Inf"/None for unlimited
    time_limit: Union[float, str, None] = None

    show_progress_bar: bool = True

    @property
    def time_limit_seconds(self) -> Optional[float]:
        if self.time_limit is None or str(self.time_limit).lower() in ("inf", "none", ""):
            return None
        return float(self.time_limit)


@dataclass
class VisualizationConfig:
    """Console and plot settings."""
    verbose_output: bool = False
    plot_cooccurrence: bool = False


@dataclass
class Config:
    """Complete configuration container."""
    design: DesignConfig
    paths: PathConfig
    repair: RepairConfig
    visualization: VisualizationConfig

    # Internal tracking
    _config_path: str = "config.yaml"


def load_config(config_path: str = "config.yaml") -> Config:
    """
    Load and validate configuration from YAML file.

    Args:
        config_path: Path to configuration YAML file

    Returns:
        Validated Config object with all settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If configuration is invalid
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML configuration: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")

    # Validate required sections exist
    required_sections = ['design']
    missing_sections = [section for section in required_sections if section not in raw_config]
    if missing_sections:
        raise ValueError(f"Missing required configuration sections: {missing_sections}")

    # Parse configuration sections
    try:
        design = DesignConfig(**raw_config['design'])
    except (KeyError, TypeError) as e:
        raise ValueError(f"Error parsing design configuration: {e}")

    # Optional sections with defaults
    try:
        paths = PathConfig(**(raw_config.get('paths') or {}))
    except TypeError as e:
        raise ValueError(f"Error parsing paths configuration: {e}")

    try:
        repair = RepairConfig(**(raw_config.get('repair') or {}))
    except TypeError as e:
        raise ValueError(f"Error parsing repair configuration: {e}")

    try:
        visualization = VisualizationConfig(**(raw_config.get('visualization') or {}))
    except TypeError as e:
        raise ValueError(f"Error parsing visualization configuration: {e}")

    config = Config(design, paths, repair, visualization, config_path)

    # Validate the complete configuration
    validate_config(config)

    os.makedirs(config.paths.output_folder, exist_ok=True)

    return config


def validate_config(config: Config) -> None:
    """
    Perform comprehensive validation of configuration.

    Args:
        config: Configuration object to validate

    Raises:
        ValueError: If any validation check fails
    """
    d = config.design

    for name in ('n_treatments', 'n_blocks', 'block_size', 'n_repeats'):
        value = getattr(d, name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")

    if d.block_size >= d.n_treatments:
        raise ValueError(
            f"Design must be incomplete: block_size ({d.block_size}) "
            f"must be less than n_treatments ({d.n_treatments})"
        )

    # Check forbidden pairs
    seen = set()
    for pair in d.forbidden_pairs:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ValueError(f"Forbidden pair must be a list of two treatments: {pair!r}")
        a, b = pair
        if a == b:
            raise ValueError(f"Forbidden pair repeats a treatment: {pair}")
        invalid = [t for t in pair if not isinstance(t, int) or not 1 <= t <= d.n_treatments]
        if invalid:
            raise ValueError(f"Forbidden pair {pair} has treatments outside 1..{d.n_treatments}: {invalid}")
        key = frozenset(pair)
        if key in seen:
            raise ValueError(f"Duplicate forbidden pair: {pair}")
        seen.add(key)

    # Validate repair settings
    r = config.repair
    if r.pair_order not in ("input", "sorted"):
        raise ValueError(f"pair_order must be 'input' or 'sorted', got '{r.pair_order}'")
    if r.block_order not in ("ascending", "descending"):
        raise ValueError(f"block_order must be 'ascending' or 'descending', got '{r.block_order}'")
    if r.scoring_method not in ("incremental", "full"):
        raise ValueError(f"scoring_method must be 'incremental' or 'full', got '{r.scoring_method}'")
    if not isinstance(r.processes, int) or r.processes < 1:
        raise ValueError("processes must be a positive integer")

    try:
        time_limit = r.time_limit_seconds
    except ValueError:
        raise ValueError(f"time_limit must be a number or 'Inf', got {r.time_limit!r}")
    if time_limit is not None and time_limit <= 0:
        raise ValueError("time_limit must be positive")

    if config.paths.initial_design_table and not os.path.exists(config.paths.initial_design_table):
        raise FileNotFoundError(f"Initial design table not found: {config.paths.initial_design_table}")


def print_config_summary(config: Config) -> None:
    """Print human-readable configuration summary."""
    d = config.design
    r = config.repair

    print(f"\nConfiguration Summary:")
    print(f"  Config file: {config._config_path}")
    print(f"  Treatments: {d.n_treatments}, blocks: {d.n_blocks}, block size: {d.block_size}")
    print(f"  Forbidden pairs ({len(d.forbidden_pairs)}): {[tuple(p) for p in d.forbidden_pairs]}")

    if config.paths.initial_design_table:
        print(f"  Initial design: {config.paths.initial_design_table}")
    else:
        print(f"  Initial design: generated (repeats={d.n_repeats}, seed={d.seed})")

    time_limit = r.time_limit_seconds
    print(f"  Repair: pair_order={r.pair_order}, block_order={r.block_order}, "
          f"scoring={r.scoring_method}, processes={r.processes}, "
          f"time_limit={'unlimited' if time_limit is None else f'{time_limit}s'}")
    print(f"  Output folder: {config.paths.output_folder}")


def create_default_config(output_path: str = "config.yaml") -> None:
    """
    Create a default configuration file with common settings.

    Args:
        output_path: Path where to save the default config
    """
    default_config = {
        'design': {
            'n_treatments': 24,
            'n_blocks': 24,
            'block_size': 6,
            'forbidden_pairs': [[3, 4], [11, 12], [19, 20]],
            'n_repeats': 5,
            'seed': 123
        },
        'paths': {
            'output_folder': 'output/designs',
            'initial_design_table': ''
        },
        'repair': {
            'pair_order': 'input',
            'block_order': 'ascending',
            'scoring_method': 'incremental',
            'processes': 1,
            'time_limit': 'Inf',
            'show_progress_bar': True
        },
        'visualization': {
            'verbose_output': False,
            'plot_cooccurrence': False
        }
    }

    with open(output_path, 'w') as f:
        yaml.dump(default_config, f, default_flow_style=False, indent=2, sort_keys=False)

    print(f"Default configuration saved to: {output_path}")
