from decimal import Decimal
import logging

import pytest

from bomgraph.application.services import BOMCommandService, BOMQueryService
from bomgraph.domain.bom.diff import DifferenceType
from bomgraph.domain.bom.entities import BOMHeader
from bomgraph.domain.bom.filters import FilterOptions
from bomgraph.domain.shared.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    InvalidFieldException,
    StructuralCycleException,
    VersionConflictException,
)
from bomgraph.domain.shared.value_objects import ComponentType
from bomgraph.infrastructure.stores.memory import InMemoryNodeStore


@pytest.fixture
def queries(store):
    return BOMQueryService(store)


@pytest.fixture
def commands(store):
    return BOMCommandService(store)


def test_get_tree(queries):
    view = queries.get_tree('BOM-A')
    assert view.header.id == 'BOM-A'
    assert view.tree.total_cost == Decimal('686.00')
    assert view.statistics.total_items == 5


def test_get_tree_with_filter(queries):
    view = queries.get_tree('BOM-A', FilterOptions(include_optional_items=False))
    assert view.statistics.total_items == 4
    assert len(view.tree) == 5


def test_unknown_bom(queries):
    with pytest.raises(EntityNotFoundException):
        queries.get_tree('BOM-Z')


def test_attach_commits_new_revision(commands, store):
    result = commands.attach_component('BOM-A', 'C-NUT', ComponentType.PURCHASED_PART, 'n1', quantity=8)
    assert result.header.revision == 2
    assert result.item.sequence == 3
    assert result.events[0].event_type == 'BOMItemAttached'
    assert len(store.list_items('BOM-A')) == 6
    assert store.get_bom('BOM-A').revision == 2


def test_update_and_deactivate(commands, store):
    commands.update_component('BOM-A', 'n12', quantity=3)
    result = commands.deactivate_component('BOM-A', 'n1', include_descendants=True)
    assert result.header.revision == 3
    assert result.item_ids == ('n1', 'n12', 'n121', 'n11')
    assert [i.id for i in store.list_items('BOM-A') if i.is_active] == ['n2']


def test_noop_update_does_not_commit(commands, store):
    result = commands.update_component('BOM-A', 'n12', quantity=2)
    assert result.events == ()
    assert store.get_bom('BOM-A').revision == 1


def test_move(commands, store):
    commands.attach_component('BOM-A', 'C-BRACKET', ComponentType.SUB_ASSEMBLY, item_id='n3')
    result = commands.move_component('BOM-A', 'n11', 'n3')
    assert result.item.parent_id == 'n3'
    assert result.header.revision == 3


def test_one_active_bom_per_product(store, make_node):
    assert store.find_active_bom('P-A').id == 'BOM-A'
    store.add_bom(BOMHeader('BOM-A2', 'P-A', version='2.0'), [make_node('m1', 'C-NEW', bom_id='BOM-A2')])
    assert store.find_active_bom('P-A').id == 'BOM-A2'
    assert not store.get_bom('BOM-A').is_active
    assert store.list_product_graph_edges('P-A') == ['C-NEW']
    assert store.find_active_bom('P-Z') is None


def test_stale_commit_rejected(store, sample_records):
    store.commit_items('BOM-A', sample_records, expected_revision=1)
    with pytest.raises(VersionConflictException) as exc_info:
        store.commit_items('BOM-A', sample_records, expected_revision=1)
    assert exc_info.value.details['actual_revision'] == 2


def test_concurrent_writer_causes_conflict(store, commands):
    stale = commands.load('BOM-A')
    commands.update_component('BOM-A', 'n12', quantity=4)
    stale.update_component('n11', quantity=6)
    with pytest.raises(VersionConflictException):
        store.commit_items('BOM-A', stale.items, stale.header.revision)


def test_attach_cycle_through_other_bom(commands, store, make_node):
    store.add_bom(
        BOMHeader('BOM-X', 'P-X'),
        [make_node('x1', 'P-A', bom_id='BOM-X', product_id='P-X')],
    )
    with pytest.raises(StructuralCycleException) as exc_info:
        commands.attach_component('BOM-A', 'P-X', ComponentType.SUB_ASSEMBLY, 'n1')
    assert exc_info.value.path == ('P-X', 'P-A')
    assert store.get_bom('BOM-A').revision == 1


def test_compare(queries, store, sample_records):
    store.add_bom(
        BOMHeader('BOM-A2', 'P-A', version='2.0'),
        [r.with_changes(bom_id='BOM-A2', quantity=r.quantity * 2) if r.id == 'n12'
         else r.with_changes(bom_id='BOM-A2') for r in sample_records],
    )
    result = queries.compare('BOM-A', 'BOM-A2')
    difference, = result.differences
    assert difference.type is DifferenceType.QUANTITY_CHANGED
    assert result.statistics.cost_difference == Decimal('60.00')


def test_validate_structure_reports_stale_levels(queries):
    report = queries.validate_structure('BOM-A')
    assert report.items_count == 5
    # stored levels in the fixture are all zero
    assert {i.type for i in report.issues} == {'incorrect_level'}
    assert {i.item_id for i in report.issues} == {'n11', 'n12', 'n121'}


def test_validate_structure_reports_problems(make_node):
    store = InMemoryNodeStore()
    store.add_bom(BOMHeader('BOM-B', 'P-B'), [
        make_node('r', 'C-R', bom_id='BOM-B', product_id='P-B'),
        make_node('a', 'C-A', 'b', bom_id='BOM-B', product_id='P-B'),
        make_node('b', 'C-B', 'a', bom_id='BOM-B', product_id='P-B'),
        make_node('o', 'C-O', 'gone', sequence=2, bom_id='BOM-B', product_id='P-B'),
        make_node('s', 'C-S', 'r', sequence=1, level=1, component_type='RAW_MATERIAL',
                  bom_id='BOM-B', product_id='P-B'),
        make_node('t', 'C-T', 's', level=2, bom_id='BOM-B', product_id='P-B'),
    ])
    report = BOMQueryService(store).validate_structure('BOM-B')
    assert not report.valid
    types = {i.type for i in report.issues}
    assert {'circular_reference', 'orphan', 'leaf_has_children'} <= types


def test_validate_structure_deep_chain_listed_leaf_first(make_node):
    chain = [make_node(f'n{i}', f'C-{i}', f'n{i - 1}' if i else None) for i in range(1500)]
    store = InMemoryNodeStore()
    store.add_bom(BOMHeader('BOM-A', 'P-A'), reversed(chain))
    report = BOMQueryService(store).validate_structure('BOM-A')

    stale = [i for i in report.issues if i.type == 'incorrect_level']
    assert len(stale) == 1499
    assert stale[0].item_id == 'n1499'
    assert stale[0].message == 'Level mismatch: expected 1499, got 0'
    assert report.issues[-1].type == 'traversal_budget_exceeded'


def test_validate_structure_graph_cycle(make_node):
    store = InMemoryNodeStore()
    store.add_bom(BOMHeader('BOM-A', 'P-A'), [make_node('n1', 'P-X')])
    store.add_bom(BOMHeader('BOM-X', 'P-X'), [make_node('x1', 'P-A', bom_id='BOM-X', product_id='P-X')])
    report = BOMQueryService(store).validate_structure('BOM-A')
    issue, = report.issues
    assert issue.type == 'circular_reference'
    assert issue.item_id == 'n1'


def test_commit_rechecks_whole_structure(make_node):
    store = InMemoryNodeStore()
    store.add_bom(BOMHeader('BOM-A', 'P-A'), [
        make_node('n1', 'P-X'),
        make_node('n2', 'C-PAD', sequence=2, component_type='CONSUMABLE'),
    ])
    store.add_bom(BOMHeader('BOM-X', 'P-X'), [make_node('x1', 'P-A', bom_id='BOM-X', product_id='P-X')])
    with pytest.raises(StructuralCycleException):
        BOMCommandService(store).update_component('BOM-A', 'n2', quantity=3)
    assert store.get_bom('BOM-A').revision == 1


def test_copy_bom(commands, store):
    result = commands.copy_bom(
        'BOM-A', 'P-B', '1.0', FilterOptions(include_optional_items=False),
        cost_adjustment_rate=Decimal('10'), bom_id='BOM-B', description='Copied frame',
    )
    assert result.header == BOMHeader('BOM-B', 'P-B', version='1.0', description='Copied frame')
    assert store.find_active_bom('P-B') == result.header
    assert store.find_active_bom('P-A').id == 'BOM-A'
    assert [i.id for i in store.list_items('BOM-B')] == list(result.copied_ids)
    assert result.skipped_ids == ('n2',)
    assert result.events[0].event_type == 'BOMCopied'

    assert result.statistics.total_items == 4
    assert result.statistics.total_cost == Decimal('204.60')
    assert result.source_total_cost == Decimal('686.00')
    assert result.cost_difference == Decimal('-481.40')
    assert result.cost_change_percentage == Decimal('-70.17')
    assert result.adjusted_items_count == 4
    assert len(result.warnings) == 2


def test_copy_bom_rejects_duplicate_or_missing_version(commands, store):
    with pytest.raises(BusinessRuleViolationException) as exc_info:
        commands.copy_bom('BOM-A', 'P-A', '1.0')
    assert exc_info.value.rule == 'DUPLICATE_VERSION'

    with pytest.raises(InvalidFieldException):
        commands.copy_bom('BOM-A', 'P-B', ' ')
    assert store.list_boms('P-B') == []


def test_copy_bom_cycle_through_other_bom(commands, store, make_node):
    store.add_bom(
        BOMHeader('BOM-F', 'C-FRAME'),
        [make_node('f1', 'P-X', bom_id='BOM-F', product_id='C-FRAME')],
    )
    with pytest.raises(StructuralCycleException):
        commands.copy_bom('BOM-A', 'P-X', '1.0')
    assert store.list_boms('P-X') == []


def test_copy_from_inactive_bom_warns(commands, store, make_node, caplog):
    store.add_bom(BOMHeader('BOM-A2', 'P-A', version='2.0'), [make_node('m1', 'C-NEW', bom_id='BOM-A2')])
    with caplog.at_level(logging.WARNING, logger='bomgraph'):
        result = commands.copy_bom('BOM-A', 'P-C', '1.0')
    assert 'Copying from inactive BOM BOM-A' in caplog.text
    assert len(result.copied_ids) == 5
    assert result.cost_change_percentage == Decimal('0.00')
    assert result.warnings == ()
