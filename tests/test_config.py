"""
Tests for YAML configuration loading and validation.
"""

import pytest
import yaml

from config import create_default_config, load_config


def write_config(tmp_path, **sections):
    raw = {
        'design': {'n_treatments': 12, 'n_blocks': 12, 'block_size': 4,
                   'forbidden_pairs': [[1, 2], [5, 6]]},
        'paths': {'output_folder': str(tmp_path / "designs")},
    }
    for name, values in sections.items():
        raw.setdefault(name, {}).update(values)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(raw))
    return str(path)


def test_load_config_defaults(tmp_path):
    config = load_config(write_config(tmp_path))

    assert config.design.n_repeats == 5
    assert config.design.forbidden_pairs == [[1, 2], [5, 6]]
    assert config.repair.pair_order == "input"
    assert config.repair.scoring_method == "incremental"
    assert config.repair.time_limit_seconds is None
    assert not config.visualization.verbose_output
    assert (tmp_path / "designs").is_dir()


@pytest.mark.parametrize("time_limit, expected", [("Inf", None), (None, None), (30, 30.0)])
def test_time_limit_parsing(tmp_path, time_limit, expected):
    config = load_config(write_config(tmp_path, repair={'time_limit': time_limit}))
    assert config.repair.time_limit_seconds == expected


@pytest.mark.parametrize("sections, message", [
    ({'design': {'block_size': 12}}, "incomplete"),
    ({'design': {'forbidden_pairs': [[1, 1]]}}, "repeats"),
    ({'design': {'forbidden_pairs': [[1, 13]]}}, "outside"),
    ({'design': {'forbidden_pairs': [[1, 2], [2, 1]]}}, "Duplicate"),
    ({'repair': {'pair_order': 'random'}}, "pair_order"),
    ({'repair': {'block_order': 'shuffled'}}, "block_order"),
    ({'repair': {'scoring_method': 'fast'}}, "scoring_method"),
    ({'repair': {'processes': 0}}, "processes"),
    ({'repair': {'time_limit': -1}}, "time_limit"),
    ({'repair': {'time_limit': 'soon'}}, "time_limit"),
    ({'repair': {'unknown_option': 1}}, "repair configuration"),
])
def test_invalid_configuration(tmp_path, sections, message):
    with pytest.raises(ValueError, match=message):
        load_config(write_config(tmp_path, **sections))


def test_missing_design_section(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({'paths': {'output_folder': str(tmp_path)}}))
    with pytest.raises(ValueError, match="Missing required"):
        load_config(str(path))


def test_missing_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))
    with pytest.raises(FileNotFoundError):
        load_config(write_config(tmp_path, paths={'initial_design_table': str(tmp_path / "none.csv")}))


def test_default_config_loads(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    create_default_config("config.yaml")
    config = load_config("config.yaml")
    assert config.design.block_size < config.design.n_treatments
    assert config.repair.time_limit_seconds is None
