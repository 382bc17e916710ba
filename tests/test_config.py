"""
Tests for configuration loading and validation.
"""

from pathlib import Path

import pytest
import yaml

from barrier_evac.config import (expand_cells, load_config, parse_config, points,
                                 rectangle)
from barrier_evac.model.engine import SimulationClock
from barrier_evac.model.errors import InvalidGoal

CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"


def base_raw():
    return {
        'grid': {'width': 10, 'height': 6},
        'simulation': {'max_ticks': 50, 'agent_count': 4, 'seed': 3},
        'layout': {
            'barriers': [{'type': 'rectangle', 'x': 4, 'y': 0, 'width': 1, 'height': 5}],
            'exits': [{'type': 'points', 'coords': [[9, 0], [9, 5]]}],
        },
    }


def write_yaml(tmp_path, raw):
    path = tmp_path / "scenario.yaml"
    path.write_text(yaml.safe_dump(raw))
    return path


def test_load_config_with_defaults(tmp_path):
    config = load_config(write_yaml(tmp_path, base_raw()))
    assert config.grid.width == 10
    assert config.max_ticks == 50
    assert config.agent_count == 4
    assert config.seed == 3
    assert config.agents.base_speed == 1.0
    assert config.agents.distance_preference == 1.0
    assert config.agents.panic_cap is None
    assert config.agents.max_replan_attempts is None
    assert config.layout.spawn.distribution == "uniform"
    assert config.csv_enabled and config.events_enabled and config.snapshot_enabled
    assert not config.gif_enabled
    assert expand_cells(config.layout.exits, 10, 6) == {(9, 0), (9, 5)}
    assert len(expand_cells(config.layout.barriers, 10, 6)) == 5


def test_agent_tunables_and_events(tmp_path):
    raw = base_raw()
    raw['agents'] = {'base_speed': 1.5, 'panic_radius': 2, 'panic_factor': 0.3,
                     'panic_cap': 0.5, 'distance_preference': 2,
                     'max_replan_attempts': 5}
    raw['layout']['spawn'] = {'distribution': 'zones',
                              'zones': [{'type': 'rectangle', 'x': 0, 'y': 0,
                                         'width': 2, 'height': 2}]}
    raw['layout']['barrier_events'] = [
        {'tick': 20, 'remove': [{'type': 'points', 'coords': [[4, 4]]}]},
        {'tick': 5, 'add': [{'type': 'points', 'coords': [[4, 5]]}]},
    ]
    raw['export'] = {'csv': False, 'gif': True}
    config = load_config(write_yaml(tmp_path, raw))
    assert config.agents.base_speed == 1.5
    assert config.agents.panic_cap == 0.5
    assert config.agents.max_replan_attempts == 5
    assert config.layout.spawn.distribution == "zones"
    assert [e.tick for e in config.layout.barrier_events] == [5, 20]
    assert not config.csv_enabled
    assert config.gif_enabled


@pytest.mark.parametrize("mutate", [
    lambda raw: raw['layout'].update(exits=[]),
    lambda raw: raw['layout']['barriers'].append({'type': 'circle'}),
    lambda raw: raw['layout'].update(spawn={'distribution': 'gaussian'}),
    lambda raw: raw['layout'].update(spawn={'distribution': 'zones'}),
    lambda raw: raw.update(agents={'base_speed': -1}),
    lambda raw: raw.update(agents={'max_replan_attempts': 0}),
    lambda raw: raw['simulation'].update(max_ticks=0),
    lambda raw: raw['grid'].update(width=0),
    lambda raw: raw['layout'].update(barrier_events=[{'tick': 0}]),
    lambda raw: raw['layout']['exits'].append({'type': 'points', 'coords': [[20, 1]]}),
])
def test_invalid_configs_rejected(mutate):
    raw = base_raw()
    mutate(raw)
    with pytest.raises(ValueError):
        config = parse_config(raw)
        expand_cells(config.layout.exits, config.grid.width, config.grid.height)


def test_quoted_optional_tunables_are_converted():
    raw = base_raw()
    raw['agents'] = {'panic_cap': '0.5', 'max_replan_attempts': '3'}
    agents = parse_config(raw).agents
    assert agents.panic_cap == 0.5
    assert agents.max_replan_attempts == 3


@pytest.mark.parametrize("agents", [
    {'panic_cap': 'high'},
    {'max_replan_attempts': 'often'},
    {'panic_cap': '-1'},
])
def test_bad_optional_tunables_raise_value_error(agents):
    raw = base_raw()
    raw['agents'] = agents
    with pytest.raises(ValueError):
        parse_config(raw)


def test_non_mapping_yaml_rejected(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_expand_cells_clips_rectangles():
    cells = expand_cells([rectangle(8, 4, 5, 5)], 10, 6)
    assert cells == {(8, 4), (9, 4), (8, 5), (9, 5)}
    assert expand_cells([points([(1, 1), (1, 1)])], 10, 6) == {(1, 1)}


def test_overlapping_barriers_and_exits_rejected():
    raw = base_raw()
    raw['layout']['exits'] = [{'type': 'points', 'coords': [[4, 2]]}]
    config = parse_config(raw)
    with pytest.raises(InvalidGoal):
        SimulationClock(config)


@pytest.mark.parametrize("name", ["corridor.yaml", "office.yaml"])
def test_shipped_configs_build(name):
    config = load_config(CONFIG_DIR / name)
    clock = SimulationClock(config)
    assert len(clock.pool) == config.agent_count
    state = clock.step()
    for agent in state.agents:
        assert (agent.x, agent.y) not in state.barriers
