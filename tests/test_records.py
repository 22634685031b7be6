# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Tests for NestedSetRecord, ProtectionPolicy and hierarchy helpers."""

import pytest

from genro_nestedset import (
    MassAssignmentError,
    NestedSetColumns,
    NestedSetRecord,
    ProtectionPolicy,
    is_valid_nested_set,
    to_hierarchy,
    validation_errors,
)


def rec(key, parent, depth, left, right, **attr):
    return NestedSetRecord(
        {'id': key, 'parent_id': parent, 'depth': depth, 'lft': left, 'rgt': right, **attr},
        exists=True,
    )


class TestNestedSetRecord:
    """Tests for NestedSetRecord."""

    def test_structural_properties(self):
        """Test key, parent, depth and bounds read from attr."""
        record = rec(2, 1, 1, 2, 3, name='child')
        assert (record.key, record.parent_key, record.depth) == (2, 1, 1)
        assert (record.left, record.right) == (2, 3)
        assert record.is_leaf
        assert record.get_attr('name') == 'child'
        assert record.get_attr('missing', 'default') == 'default'

    def test_custom_columns(self):
        """Test properties follow the column configuration."""
        columns = NestedSetColumns(key='uid', left='l', right='r')
        record = NestedSetRecord({'uid': 'x', 'l': 1, 'r': 2}, columns=columns)
        assert record.key == 'x'
        assert (record.left, record.right) == (1, 2)

    def test_guarded_follows_column_names(self):
        """Test the default guarded set uses the configured column names."""
        columns = NestedSetColumns(key='uid', parent='pid', left='l', right='r')
        assert columns.guarded == {'uid', 'pid', 'depth', 'l', 'r'}
        assert NestedSetColumns().guarded == {'id', 'parent_id', 'depth', 'lft', 'rgt'}
        assert NestedSetColumns(guarded=['lft']).guarded == frozenset({'lft'})

    def test_contains(self):
        """Test strict bound containment."""
        parent = rec(1, None, 0, 1, 6)
        assert parent.contains(rec(2, 1, 1, 2, 3))
        assert not parent.contains(rec(3, None, 0, 7, 8))
        assert not parent.contains(parent)
        assert not parent.contains(NestedSetRecord({'id': 4}))

    def test_dirty_tracking(self):
        """Test new records are all dirty and stored ones only after changes."""
        fresh = NestedSetRecord({'name': 'x'})
        assert fresh.get_dirty() == {'name': 'x'}
        stored = rec(1, None, 0, 1, 2, name='x')
        assert not stored.is_dirty
        stored.set_attr(name='y')
        assert stored.get_dirty() == {'name': 'y'}
        stored.sync_original()
        assert not stored.is_dirty

    def test_repr(self):
        """Test representation shows key, bounds and state."""
        assert repr(rec(1, None, 0, 1, 2)) == 'NestedSetRecord(1, 1:2)'
        assert 'new' in repr(NestedSetRecord({'id': 5}))

    def test_fill_without_policy(self):
        """Test fill writes everything when no policy is given."""
        record = NestedSetRecord()
        record.fill({'lft': 1, 'name': 'x'})
        assert record.attr == {'lft': 1, 'name': 'x'}


class TestProtectionPolicy:
    """Tests for ProtectionPolicy and guarded fills."""

    def test_guarded_attributes_skipped(self):
        """Test fill drops guarded attributes."""
        policy = ProtectionPolicy({'id', 'lft'})
        record = NestedSetRecord().fill({'id': 9, 'lft': 3, 'name': 'x'}, policy)
        assert record.attr == {'name': 'x'}

    def test_unguarded_block(self):
        """Test protection is lifted inside unguarded() only."""
        policy = ProtectionPolicy({'lft'})
        with policy.unguarded():
            assert policy.is_unguarded
            record = NestedSetRecord().fill({'lft': 3}, policy)
        assert record.attr == {'lft': 3}
        assert not policy.is_unguarded
        assert not policy.is_fillable('lft')

    def test_nested_unguarded(self):
        """Test nested blocks restore protection only at the outermost exit."""
        policy = ProtectionPolicy({'lft'})
        with policy.unguarded():
            with policy.unguarded():
                pass
            assert policy.is_unguarded
        assert not policy.is_unguarded

    def test_restored_after_exception(self):
        """Test protection comes back when the block raises."""
        policy = ProtectionPolicy({'lft'})
        with pytest.raises(RuntimeError):
            with policy.unguarded():
                raise RuntimeError()
        assert not policy.is_unguarded

    def test_totally_guarded(self):
        """Test a '*' policy refuses any fill until lifted."""
        policy = ProtectionPolicy({'*'})
        with pytest.raises(MassAssignmentError):
            NestedSetRecord().fill({'name': 'x'}, policy)
        with policy.unguarded():
            assert NestedSetRecord().fill({'name': 'x'}, policy).attr == {'name': 'x'}


class TestHierarchy:
    """Tests for to_hierarchy."""

    RECORDS = [
        rec(1, None, 0, 1, 8, name='a'),
        rec(4, 3, 2, 5, 6, name='d'),
        rec(2, 1, 1, 2, 3, name='b'),
        rec(3, 1, 1, 4, 7, name='c'),
        rec(5, None, 0, 9, 10, name='e'),
    ]

    def test_nesting(self):
        """Test records nest by bound containment, in left order."""
        assert to_hierarchy(self.RECORDS) == [
            {'id': 1, 'name': 'a', 'children': [
                {'id': 2, 'name': 'b'},
                {'id': 3, 'name': 'c', 'children': [{'id': 4, 'name': 'd'}]},
            ]},
            {'id': 5, 'name': 'e'},
        ]

    def test_with_bounds_and_children_key(self):
        """Test bounds can be kept and the children key renamed."""
        tree = to_hierarchy(self.RECORDS[:3], children_key='kids', with_bounds=True)
        assert tree[0]['lft'] == 1
        assert tree[0]['kids'][0] == {
            'id': 2, 'parent_id': 1, 'depth': 1, 'lft': 2, 'rgt': 3, 'name': 'b',
        }

    def test_empty(self):
        """Test no records give an empty forest."""
        assert to_hierarchy([]) == []


class TestValidation:
    """Tests for nested-set validation."""

    def test_valid_forest(self):
        """Test a consistent forest passes."""
        assert is_valid_nested_set(TestHierarchy.RECORDS)
        assert validation_errors(TestHierarchy.RECORDS) == []

    def test_inverted_bounds(self):
        """Test left >= right is reported."""
        errors = validation_errors([rec(1, None, 0, 3, 2)])
        assert any('not below right' in e for e in errors)

    def test_duplicate_bounds(self):
        """Test bounds shared by two records are reported."""
        errors = validation_errors([rec(1, None, 0, 1, 2), rec(2, None, 0, 2, 3)])
        assert any('already used' in e for e in errors)

    def test_child_outside_parent(self):
        """Test children must lie inside their parent."""
        errors = validation_errors([rec(1, None, 0, 1, 2), rec(2, 1, 1, 3, 4)])
        assert any('not inside parent' in e for e in errors)

    def test_wrong_depth(self):
        """Test depth must follow the parent's."""
        errors = validation_errors([rec(1, None, 0, 1, 4), rec(2, 1, 3, 2, 3)])
        assert any('under parent at depth' in e for e in errors)
        assert not is_valid_nested_set([rec(1, None, 2, 1, 2)])

    def test_missing_parent_and_bounds(self):
        """Test dangling parents and unbounded records are reported."""
        errors = validation_errors([
            rec(1, 9, 1, 1, 2),
            NestedSetRecord({'id': 2}, exists=True),
        ])
        assert any('does not exist' in e for e in errors)
        assert any('missing bounds' in e for e in errors)

    def test_overlap(self):
        """Test partially overlapping intervals are reported."""
        errors = validation_errors([rec(1, None, 0, 1, 4), rec(2, None, 0, 3, 6)])
        assert any('overlaps' in e for e in errors)
