import pytest

from bomgraph.domain.bom.projector import (
    FocusMove,
    collapse,
    collapse_all,
    expand,
    expand_all,
    expand_to_level,
    move_focus,
    project,
    toggle,
)

ALL_IDS = frozenset({'n1', 'n11', 'n12', 'n121', 'n2'})


def visible_ids(rows):
    return [row.id for row in rows]


def test_nothing_expanded_shows_roots(sample_tree):
    assert visible_ids(project(sample_tree, frozenset())) == ['n1', 'n2']


def test_everything_expanded_is_preorder(sample_tree):
    rows = project(sample_tree, ALL_IDS)
    assert visible_ids(rows) == ['n1', 'n12', 'n121', 'n11', 'n2']
    assert [row.index for row in rows] == [0, 1, 2, 3, 4]
    assert [row.depth for row in rows] == [0, 1, 2, 1, 0]


def test_expansion_flags(sample_tree):
    rows = {row.id: row for row in project(sample_tree, {'n1', 'n2'})}
    assert rows['n1'].has_children and rows['n1'].is_expanded
    assert rows['n12'].has_children and not rows['n12'].is_expanded
    # n2 is a leaf, so it never reports as expanded
    assert not rows['n2'].has_children and not rows['n2'].is_expanded


def test_hidden_ancestor_hides_expanded_descendant(sample_tree):
    assert visible_ids(project(sample_tree, {'n12'})) == ['n1', 'n2']


def test_unknown_expanded_ids_are_ignored(sample_tree):
    assert visible_ids(project(sample_tree, {'ghost'})) == ['n1', 'n2']


def test_project_accepts_plain_records(sample_records):
    assert visible_ids(project(sample_records, {'n1'})) == ['n1', 'n12', 'n11', 'n2']


def test_expand_all_and_collapse_all(sample_tree):
    assert expand_all(sample_tree) == frozenset({'n1', 'n12'})
    assert visible_ids(project(sample_tree, expand_all(sample_tree))) == ['n1', 'n12', 'n121', 'n11', 'n2']
    assert collapse_all() == frozenset()


def test_expand_to_level(sample_tree):
    expanded = expand_to_level(sample_tree, 0)
    assert expanded == frozenset({'n1', 'n2'})
    assert visible_ids(project(sample_tree, expanded)) == ['n1', 'n12', 'n11', 'n2']
    assert expand_to_level(sample_tree, 1) == frozenset({'n1', 'n2', 'n12', 'n11'})


@pytest.mark.parametrize('start', [frozenset(), frozenset({'n1'}), frozenset({'n2'})])
def test_double_toggle_restores(sample_tree, start):
    assert toggle(sample_tree, toggle(sample_tree, start, 'n1'), 'n1') == start


def test_collapse_forgets_descendants(sample_tree):
    expanded = frozenset({'n1', 'n12', 'n2'})
    assert collapse(sample_tree, expanded, 'n1') == frozenset({'n2'})
    assert toggle(sample_tree, expanded, 'n1') == frozenset({'n2'})


def test_expand_does_not_mutate_input():
    original = {'n1'}
    assert expand(original, 'n12') == frozenset({'n1', 'n12'})
    assert original == {'n1'}


def test_move_focus(sample_tree):
    rows = project(sample_tree, ALL_IDS)
    assert move_focus(rows, 'n12', FocusMove.DOWN).id == 'n121'
    assert move_focus(rows, 'n12', FocusMove.UP).id == 'n1'
    assert move_focus(rows, 'n1', FocusMove.UP).id == 'n1'
    assert move_focus(rows, 'n2', FocusMove.DOWN).id == 'n2'
    assert move_focus(rows, 'n121', FocusMove.HOME).id == 'n1'
    assert move_focus(rows, 'n1', FocusMove.END).id == 'n2'
    assert move_focus(rows, 'n121', FocusMove.PARENT).id == 'n12'
    assert move_focus(rows, 'n11', 'PARENT').id == 'n1'
    assert move_focus(rows, 'n1', FocusMove.PARENT).id == 'n1'


def test_move_focus_without_current(sample_tree):
    rows = project(sample_tree, frozenset())
    assert move_focus(rows, None, FocusMove.DOWN).id == 'n1'
    assert move_focus([], 'n1', FocusMove.DOWN) is None
