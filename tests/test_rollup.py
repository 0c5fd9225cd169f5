from decimal import Decimal

import pytest

from bomgraph.config.engine import EngineSettings
from bomgraph.domain.bom import rollup
from bomgraph.domain.shared.exceptions import InvalidFieldException


def test_actual_quantity_applies_scrap(sample_tree):
    bolt = sample_tree.get('n11')
    assert bolt.actual_quantity == Decimal('4.4000')
    assert bolt.total_cost == Decimal('11.00')


def test_actual_quantity_rounds_half_up(make_node):
    node = make_node('a', quantity='0.0002', scrap_rate=25)
    # 0.00025 rounds up, not to even
    assert rollup.actual_quantity(node) == Decimal('0.0003')


def test_total_cost_precision_from_settings(make_node):
    node = make_node('a', quantity=3, unit_cost='0.3333')
    assert rollup.total_cost(node) == Decimal('1.00')
    assert rollup.total_cost(node, EngineSettings(money_decimal_places=4)) == Decimal('0.9999')


def test_grand_total_skips_inactive(make_node):
    nodes = [
        make_node('a', unit_cost=10),
        make_node('b', unit_cost=20, is_active=False),
    ]
    assert rollup.grand_total(nodes) == Decimal('10.00')
    assert rollup.grand_total(nodes, include_inactive_items=True) == Decimal('30.00')


def test_cost_by_level(sample_tree):
    assert rollup.cost_by_level(sample_tree.nodes) == {
        0: Decimal('600.00'),
        1: Decimal('71.00'),
        2: Decimal('15.00'),
    }


def test_extended_quantity_compounds_along_the_chain(sample_tree):
    assert rollup.extended_quantity(sample_tree, 'n121') == Decimal('3.0000')
    assert rollup.extended_quantity(sample_tree, 'n121', Decimal(10)) == Decimal('30.0000')
    assert rollup.extended_quantity(sample_tree, 'n11') == Decimal('4.4000')


def test_subtree_costs(sample_tree):
    costs = rollup.subtree_costs(sample_tree)
    assert costs['n1'] == Decimal('186.00')
    assert costs['n12'] == Decimal('75.00')
    assert costs['n2'] == Decimal('500.00')
    assert sum(costs[n.id] for n in sample_tree.root_nodes()) == sample_tree.total_cost


@pytest.mark.parametrize('field, value', [
    ('quantity', 0),
    ('quantity', -1),
    ('scrap_rate', 101),
    ('scrap_rate', -1),
    ('unit_cost', -5),
    ('sequence', -1),
    ('quantity', 'abc'),
])
def test_invalid_fields_rejected(make_node, field, value):
    with pytest.raises(InvalidFieldException) as exc_info:
        make_node('a', **{field: value})
    assert exc_info.value.field == field


def test_unknown_component_type_rejected(make_node):
    with pytest.raises(InvalidFieldException) as exc_info:
        make_node('a', component_type='GIZMO')
    assert exc_info.value.field == 'component_type'
