from decimal import Decimal

import pytest

from bomgraph.config.engine import EngineSettings, get_engine_settings, resolve
from bomgraph.domain.bom.tree import build_tree
from bomgraph.domain.shared.exceptions import TraversalBudgetExceededException


def test_defaults_come_from_django_settings():
    engine = get_engine_settings()
    assert engine.max_traversal_depth == 50
    assert engine.max_traversal_nodes == 10000
    assert engine.critical_cost_threshold == Decimal('10000')


def test_override_through_django_settings(settings, sample_records):
    settings.BOM_ENGINE = {'MAX_TRAVERSAL_NODES': 3, 'UNKNOWN_KNOB': True}
    assert get_engine_settings().max_traversal_nodes == 3
    with pytest.raises(TraversalBudgetExceededException) as exc_info:
        build_tree(sample_records)
    assert exc_info.value.details['budget'] == 'nodes'


def test_from_mapping_ignores_unknown_keys():
    engine = EngineSettings.from_mapping({'ROOT_LEVEL': 1, 'COLOUR': 'blue'})
    assert engine.root_level == 1
    assert engine.max_traversal_depth == 50


@pytest.mark.parametrize('overrides', [
    {'max_traversal_depth': 0},
    {'max_traversal_nodes': -1},
    {'root_level': -1},
])
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValueError):
        EngineSettings(**overrides)


def test_explicit_settings_win(settings):
    settings.BOM_ENGINE = {'MAX_TRAVERSAL_DEPTH': 2}
    explicit = EngineSettings(max_traversal_depth=7)
    assert resolve(explicit) is explicit
    assert resolve(None).max_traversal_depth == 2
