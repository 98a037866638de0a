"""Tests for the structural snapshot diff."""
import pytest

from app.core.snapshot_diff import (
    ChangeType,
    CollectionRule,
    SnapshotSchema,
    bootstrap_snapshot,
    diff_snapshots,
)


def courses(*items):
    return {"courses": list(items)}


class TestScalarsAndRecords:
    def test_identical_snapshots_have_no_deltas(self):
        snapshot = {"term": "2025 Fall", "notes": "x"}
        result = diff_snapshots(snapshot, dict(snapshot))
        assert result.deltas == []
        assert result.similarity == 100.0

    def test_modified_scalar(self):
        result = diff_snapshots({"term": "Fall", "notes": "x"}, {"term": "Spring", "notes": "x"})
        assert len(result.deltas) == 1
        delta = result.deltas[0]
        assert delta.entity_type == "catalog"
        assert delta.entity_id == "root"
        assert delta.property_name == "term"
        assert delta.change_type is ChangeType.MODIFIED
        assert (delta.old_value, delta.new_value) == ("Fall", "Spring")
        assert result.similarity == 50.0

    def test_added_field_with_null_value_is_added(self):
        result = diff_snapshots({}, {"notes": None})
        assert [d.change_type for d in result.deltas] == [ChangeType.ADDED]

    def test_nested_record_property_path(self):
        old = {"policy": {"grading": {"scale": "A-F"}}}
        new = {"policy": {"grading": {"scale": "Pass/Fail"}}}
        result = diff_snapshots(old, new)
        assert [d.property_name for d in result.deltas] == ["policy.grading.scale"]

    def test_boolean_is_not_equal_to_integer(self):
        result = diff_snapshots({"open": True}, {"open": 1})
        assert len(result.deltas) == 1

    def test_similarity_rounds_to_two_decimals(self):
        result = diff_snapshots({"a": 1, "b": 2, "c": 3}, {"a": 1, "b": 2, "c": 4})
        assert result.similarity == 66.67

    def test_empty_snapshots_are_fully_similar(self):
        assert diff_snapshots({}, {}).similarity == 100.0


class TestCollections:
    def test_keyed_course_modified_and_added(self):
        old = courses({"course_code": "CS101", "credits": 3})
        new = courses(
            {"course_code": "CS101", "credits": 4},
            {"course_code": "CS102", "credits": 3},
        )
        result = diff_snapshots(old, new)
        assert [(d.entity_type, d.entity_id, d.property_name, d.change_type) for d in result.deltas] == [
            ("course", "CS101", "credits", ChangeType.MODIFIED),
            ("course", "CS102", None, ChangeType.ADDED),
        ]

    def test_keyed_match_ignores_order(self):
        a = {"course_code": "A", "credits": 3}
        b = {"course_code": "B", "credits": 4}
        assert diff_snapshots(courses(a, b), courses(b, a)).deltas == []

    def test_nested_entity_ids_are_qualified_by_parent(self):
        old = courses({"course_code": "CS101", "sections": [{"section_id": "01", "capacity": 30}]})
        new = courses({"course_code": "CS101", "sections": [{"section_id": "01", "capacity": 35}]})
        delta = diff_snapshots(old, new).deltas[0]
        assert delta.entity_type == "section"
        assert delta.entity_id == "CS101/01"
        assert delta.property_name == "capacity"

    def test_set_fields_ignore_order(self):
        old = courses({"course_code": "CS201", "prerequisites": ["CS101", "MATH150"]})
        new = courses({"course_code": "CS201", "prerequisites": ["MATH150", "CS101"]})
        assert diff_snapshots(old, new).deltas == []

    def test_set_member_added(self):
        old = courses({"course_code": "CS201", "prerequisites": ["CS101"]})
        new = courses({"course_code": "CS201", "prerequisites": ["CS101", "MATH150"]})
        result = diff_snapshots(old, new)
        assert len(result.deltas) == 1
        delta = result.deltas[0]
        assert delta.property_name == "prerequisites"
        assert delta.change_type is ChangeType.ADDED
        assert delta.new_value == "MATH150"

    def test_positional_list_by_default(self):
        result = diff_snapshots({"announcements": ["a", "b"]}, {"announcements": ["a"]})
        assert len(result.deltas) == 1
        assert result.deltas[0].property_name == "announcements[1]"
        assert result.deltas[0].change_type is ChangeType.REMOVED
        assert result.deltas[0].old_value == "b"

    def test_duplicate_keys_do_not_collapse(self):
        old = courses({"course_code": "A", "credits": 3})
        new = courses({"course_code": "A", "credits": 3}, {"course_code": "A", "credits": 4})
        result = diff_snapshots(old, new)
        assert [(d.entity_id, d.change_type) for d in result.deltas] == [("A#1", ChangeType.ADDED)]

    def test_keys_of_different_types_do_not_collide(self):
        new = courses({"course_code": 1, "credits": 3}, {"course_code": "1", "credits": 4})
        result = diff_snapshots(courses(), new)
        assert [(d.entity_id, d.change_type) for d in result.deltas] == [
            ("1", ChangeType.ADDED), ("1#1", ChangeType.ADDED),
        ]

    def test_unhashable_keys_are_matched_by_value(self):
        old = courses({"course_code": ["CS", 101], "credits": 3})
        new = courses({"course_code": ["CS", 101], "credits": 4})
        delta = diff_snapshots(old, new).deltas[0]
        assert (delta.entity_id, delta.property_name) == ('["CS",101]', "credits")
        assert delta.change_type is ChangeType.MODIFIED

    def test_custom_schema(self):
        schema = SnapshotSchema(collections={
            "rooms": CollectionRule(match="key", key="room_id", entity_type="room"),
        })
        old = {"rooms": [{"room_id": "R1", "seats": 20}]}
        new = {"rooms": [{"room_id": "R1", "seats": 25}]}
        delta = diff_snapshots(old, new, schema).deltas[0]
        assert (delta.entity_type, delta.entity_id, delta.property_name) == ("room", "R1", "seats")

    def test_invalid_collection_rules(self):
        with pytest.raises(ValueError):
            CollectionRule(match="fuzzy")
        with pytest.raises(ValueError):
            CollectionRule(match="key")


class TestSymmetry:
    def test_reverse_diff_is_inverse(self, catalog_content):
        changed = {
            "term": "2025 Fall",
            "courses": [
                {"course_code": "CS101", "title": "Intro to Programming", "credits": 3,
                 "prerequisites": [], "sections": [{"section_id": "02", "capacity": 25}]},
                {"course_code": "CS301", "title": "Algorithms", "credits": 3},
            ],
        }
        forward = diff_snapshots(catalog_content, changed)
        backward = diff_snapshots(changed, catalog_content)

        assert forward.deltas
        assert [d.inverted() for d in forward.deltas] == backward.deltas
        assert forward.similarity == backward.similarity
        assert forward.count(ChangeType.ADDED) == backward.count(ChangeType.REMOVED)
        assert forward.count(ChangeType.MODIFIED) == backward.count(ChangeType.MODIFIED)


class TestBootstrap:
    def test_everything_is_added(self):
        result = bootstrap_snapshot({
            "term": "2025 Fall",
            "courses": [{"course_code": "CS101", "credits": 4}],
        })
        assert [(d.entity_type, d.entity_id, d.property_name) for d in result.deltas] == [
            ("course", "CS101", None),
            ("catalog", "root", "term"),
        ]
        assert all(d.change_type is ChangeType.ADDED for d in result.deltas)

    def test_scalar_content(self):
        result = bootstrap_snapshot("plain text catalog")
        assert len(result.deltas) == 1
        assert result.deltas[0].change_type is ChangeType.ADDED
