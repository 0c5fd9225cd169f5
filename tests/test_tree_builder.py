import logging
from decimal import Decimal

import pytest

from bomgraph.config.engine import EngineSettings
from bomgraph.domain.bom.tree import OrphanReference, build_tree
from bomgraph.domain.shared.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    InvalidFieldException,
    StructuralCycleException,
    TraversalBudgetExceededException,
)


def ids(nodes):
    return [n.id for n in nodes]


def test_levels_follow_parents(sample_tree):
    for index, node in enumerate(sample_tree.nodes):
        parent = sample_tree.parents[index]
        expected = 0 if parent is None else sample_tree.nodes[parent].level + 1
        assert node.level == expected


def test_stored_level_is_ignored(make_node):
    tree = build_tree([
        make_node('r', level=7),
        make_node('c', parent_id='r', level=3),
    ])
    assert tree.get('r').level == 0
    assert tree.get('c').level == 1


def test_roots_and_children_sorted_by_sequence(sample_tree):
    assert ids(sample_tree.root_nodes()) == ['n1', 'n2']
    assert ids(sample_tree.children_of('n1')) == ['n12', 'n11']
    assert ids(sample_tree.children_of(None)) == ['n1', 'n2']


def test_preorder(sample_tree):
    assert ids(sample_tree.preorder()) == ['n1', 'n12', 'n121', 'n11', 'n2']


def test_totals(sample_tree):
    assert sample_tree.total_items == 5
    assert sample_tree.total_cost == Decimal('686.00')
    assert sample_tree.max_level == 2
    assert sample_tree.product_id == 'P-A'
    assert len(sample_tree) == 5


def test_navigation(sample_tree):
    assert ids(sample_tree.ancestors_of('n121')) == ['n1', 'n12']
    assert sample_tree.component_path('n121') == ('C-FRAME', 'C-PANEL')
    assert sample_tree.component_path('n1') == ()
    assert ids(sample_tree.descendants_of('n1')) == ['n12', 'n121', 'n11']
    assert sample_tree.parent_of('n11').id == 'n1'
    assert sample_tree.parent_of('n1') is None
    assert sample_tree.has_children('n12')
    assert not sample_tree.has_children('n2')
    assert 'n121' in sample_tree
    assert 'missing' not in sample_tree


def test_get_unknown_line(sample_tree):
    with pytest.raises(EntityNotFoundException):
        sample_tree.get('missing')


def test_nested(sample_tree):
    nested = sample_tree.nested()
    assert [entry['node'].id for entry in nested] == ['n1', 'n2']
    assert [entry['node'].id for entry in nested[0]['children']] == ['n12', 'n11']
    assert nested[0]['children'][0]['children'][0]['node'].id == 'n121'
    assert nested[1]['children'] == []


def test_orphan_becomes_root(make_node, caplog):
    with caplog.at_level(logging.WARNING, logger='bomgraph'):
        tree = build_tree([
            make_node('r', sequence=1),
            make_node('o', parent_id='gone', sequence=2),
        ])
    assert ids(tree.root_nodes()) == ['r', 'o']
    assert tree.get('o').level == 0
    assert tree.orphans == (OrphanReference('o', 'gone'),)
    assert 'missing parent gone' in caplog.text


def test_self_parent_is_a_cycle(make_node):
    with pytest.raises(StructuralCycleException) as exc_info:
        build_tree([make_node('a', parent_id='a')])
    assert exc_info.value.path == ('a', 'a')


def test_parent_loop_is_a_cycle(make_node):
    with pytest.raises(StructuralCycleException) as exc_info:
        build_tree([
            make_node('r'),
            make_node('a', parent_id='b'),
            make_node('b', parent_id='a'),
        ])
    path = exc_info.value.path
    assert path[0] == path[-1]
    assert set(path) == {'a', 'b'}
    assert exc_info.value.code == 'STRUCTURAL_CYCLE'


def test_duplicate_ids_rejected(make_node):
    with pytest.raises(InvalidFieldException) as exc_info:
        build_tree([make_node('a'), make_node('a', sequence=2)])
    assert exc_info.value.field == 'id'


def test_duplicate_sibling_sequence_rejected(make_node):
    with pytest.raises(BusinessRuleViolationException) as exc_info:
        build_tree([
            make_node('r'),
            make_node('a', parent_id='r', sequence=1),
            make_node('b', parent_id='r', sequence=1),
        ])
    assert exc_info.value.rule == 'DUPLICATE_SEQUENCE'


def test_leaf_only_component_cannot_own_children(make_node):
    with pytest.raises(BusinessRuleViolationException) as exc_info:
        build_tree([
            make_node('r', component_type='RAW_MATERIAL'),
            make_node('c', parent_id='r'),
        ])
    assert exc_info.value.rule == 'LEAF_COMPONENT_HAS_CHILDREN'


def test_depth_budget(make_node):
    records = [
        make_node('l0'),
        make_node('l1', parent_id='l0'),
        make_node('l2', parent_id='l1'),
        make_node('l3', parent_id='l2'),
    ]
    build_tree(records, settings=EngineSettings(max_traversal_depth=3))
    with pytest.raises(TraversalBudgetExceededException) as exc_info:
        build_tree(records, settings=EngineSettings(max_traversal_depth=2))
    assert exc_info.value.details['budget'] == 'depth'


def test_node_budget(sample_records):
    with pytest.raises(TraversalBudgetExceededException) as exc_info:
        build_tree(sample_records, settings=EngineSettings(max_traversal_nodes=3))
    assert exc_info.value.details['limit'] == 3


def test_configured_root_level(sample_records):
    tree = build_tree(sample_records, settings=EngineSettings(root_level=1))
    assert tree.get('n1').level == 1
    assert tree.get('n121').level == 3
    assert tree.max_level == 3


def test_inactive_lines_out_of_totals(make_node):
    records = [
        make_node('r', unit_cost=10),
        make_node('x', sequence=2, unit_cost=5, is_active=False),
    ]
    tree = build_tree(records)
    assert len(tree) == 2
    assert tree.total_items == 1
    assert tree.total_cost == Decimal('10.00')

    everything = build_tree(records, include_inactive_items=True)
    assert everything.total_items == 2
    assert everything.total_cost == Decimal('15.00')


def test_empty_input():
    tree = build_tree([])
    assert len(tree) == 0
    assert tree.total_cost == 0
    assert tree.max_level == 0
    assert tree.product_id is None
