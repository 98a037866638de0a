"""Structural diff of catalog content snapshots.

A snapshot is a generic tree of JSON values (dicts, lists, scalars). The
diff walks two trees side by side and emits one ``FieldDelta`` per
differing leaf field, and one per child entity added to or removed from
a keyed collection. The same routine backs both the change history
recorded at version creation and ad-hoc version comparisons.

List-valued fields are matched according to the ``SnapshotSchema``:
- "key": elements are dicts matched by a declared key field and become
  child entities (e.g. courses matched by ``course_code``)
- "set": elements are compared as an unordered set of values
- "position": elements are matched by index (the default)

The walk visits keys in sorted order, so diff(a, b) and diff(b, a)
produce deltas at the same positions with inverse change types.
"""
import enum
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

ROOT_ENTITY_ID = "root"


class ChangeType(str, enum.Enum):
    """Kind of field-level difference."""
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    REMOVED = "REMOVED"

    @property
    def inverse(self) -> "ChangeType":
        if self is ChangeType.ADDED:
            return ChangeType.REMOVED
        if self is ChangeType.REMOVED:
            return ChangeType.ADDED
        return ChangeType.MODIFIED


@dataclass(frozen=True)
class FieldDelta:
    """One difference between two snapshots."""
    entity_type: str
    entity_id: str
    property_name: Optional[str]  # None for whole-entity add/remove
    change_type: ChangeType
    old_value: Any = None
    new_value: Any = None

    def inverted(self) -> "FieldDelta":
        return FieldDelta(
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            property_name=self.property_name,
            change_type=self.change_type.inverse,
            old_value=self.new_value,
            new_value=self.old_value,
        )

    def describe(self) -> str:
        target = f"{self.entity_type} {self.entity_id}"
        if self.property_name is None:
            return f"{target} {self.change_type.value.lower()}"
        return f"{target}: {self.property_name} {self.change_type.value.lower()}"


@dataclass(frozen=True)
class CollectionRule:
    """How elements of one list-valued field are matched."""
    match: str = "position"  # "key" | "set" | "position"
    key: Optional[str] = None
    entity_type: Optional[str] = None

    def __post_init__(self):
        if self.match not in ("key", "set", "position"):
            raise ValueError(f"Unknown collection match mode: {self.match}")
        if self.match == "key" and not self.key:
            raise ValueError("Keyed collections must declare a key field")


@dataclass(frozen=True)
class SnapshotSchema:
    """Per-path matching rules for list-valued fields.

    Paths are dotted dict keys from the snapshot root, ignoring list
    positions: ``courses.sections`` addresses the ``sections`` list of
    every course.
    """
    collections: Dict[str, CollectionRule] = field(default_factory=dict)
    root_entity_type: str = "catalog"

    def rule_for(self, path: str) -> CollectionRule:
        return self.collections.get(path, CollectionRule())


DEFAULT_SNAPSHOT_SCHEMA = SnapshotSchema(
    collections={
        "courses": CollectionRule(match="key", key="course_code", entity_type="course"),
        "courses.sections": CollectionRule(match="key", key="section_id", entity_type="section"),
        "courses.prerequisites": CollectionRule(match="set"),
        "courses.corequisites": CollectionRule(match="set"),
        "courses.tags": CollectionRule(match="set"),
        "programs": CollectionRule(match="key", key="program_code", entity_type="program"),
        "programs.required_courses": CollectionRule(match="set"),
        "departments": CollectionRule(match="key", key="department_code", entity_type="department"),
    }
)


@dataclass
class DiffResult:
    """Deltas plus the field counts that drive the similarity score."""
    deltas: List[FieldDelta] = field(default_factory=list)
    fields_considered: int = 0
    fields_equal: int = 0

    @property
    def similarity(self) -> float:
        """Percentage of considered fields that are equal, rounded to 2 places."""
        if self.fields_considered == 0:
            return 100.0
        return round(self.fields_equal * 100.0 / self.fields_considered, 2)

    def count(self, change_type: ChangeType) -> int:
        return sum(1 for d in self.deltas if d.change_type is change_type)


@dataclass(frozen=True)
class _Context:
    entity_type: str
    entity_id: str
    prefix: Optional[str]  # property path relative to the entity

    def prop(self, name: str) -> str:
        return f"{self.prefix}.{name}" if self.prefix else name

    def index(self, position: int) -> str:
        return f"{self.prefix}[{position}]" if self.prefix else f"[{position}]"


def canonical_json(value: Any) -> str:
    """Stable JSON encoding used for set matching, sizes and checksums."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def count_leaves(value: Any) -> int:
    """Number of leaf fields in a subtree; empty containers count as one."""
    if isinstance(value, dict):
        return sum(count_leaves(v) for v in value.values()) or 1
    if isinstance(value, list):
        return sum(count_leaves(v) for v in value) or 1
    return 1


def _sort_key(value: Any) -> Tuple[str, str]:
    return (type(value).__name__, str(value))


def _scalars_equal(old: Any, new: Any) -> bool:
    # JSON distinguishes true from 1
    if isinstance(old, bool) or isinstance(new, bool):
        return type(old) is type(new) and old == new
    return old == new


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


class _Walker:
    def __init__(self, schema: SnapshotSchema):
        self.schema = schema
        self.result = DiffResult()

    def emit(self, ctx: _Context, prop: Optional[str], change_type: ChangeType,
             old: Any = None, new: Any = None) -> None:
        self.result.deltas.append(FieldDelta(
            entity_type=ctx.entity_type,
            entity_id=ctx.entity_id,
            property_name=prop,
            change_type=change_type,
            old_value=old,
            new_value=new,
        ))

    def removed(self, ctx: _Context, prop: Optional[str], old: Any) -> None:
        self.result.fields_considered += count_leaves(old)
        self.emit(ctx, prop, ChangeType.REMOVED, old=old)

    def added(self, ctx: _Context, prop: Optional[str], new: Any) -> None:
        self.result.fields_considered += count_leaves(new)
        self.emit(ctx, prop, ChangeType.ADDED, new=new)

    def walk(self, old: Any, new: Any, path: str, ctx: _Context) -> None:
        if isinstance(old, dict) and isinstance(new, dict):
            self.walk_dict(old, new, path, ctx)
        elif isinstance(old, list) and isinstance(new, list):
            rule = self.schema.rule_for(path)
            if rule.match == "key":
                self.walk_keyed(old, new, path, rule, ctx)
            elif rule.match == "set":
                self.walk_set(old, new, ctx)
            else:
                self.walk_positional(old, new, path, ctx)
        elif isinstance(old, (dict, list)) or isinstance(new, (dict, list)):
            # Shape changed (e.g. scalar became a record)
            self.result.fields_considered += max(count_leaves(old), count_leaves(new))
            self.emit(ctx, ctx.prefix, ChangeType.MODIFIED, old=old, new=new)
        else:
            self.result.fields_considered += 1
            if _scalars_equal(old, new):
                self.result.fields_equal += 1
            else:
                self.emit(ctx, ctx.prefix, ChangeType.MODIFIED, old=old, new=new)

    def walk_dict(self, old: dict, new: dict, path: str, ctx: _Context) -> None:
        for name in sorted(set(old) | set(new), key=_sort_key):
            child_ctx = _Context(ctx.entity_type, ctx.entity_id, ctx.prop(str(name)))
            if name in old and name in new:
                self.walk(old[name], new[name], _join(path, str(name)), child_ctx)
            elif name in old:
                self.removed(ctx, child_ctx.prefix, old[name])
            else:
                self.added(ctx, child_ctx.prefix, new[name])

    def walk_keyed(self, old: list, new: list, path: str, rule: CollectionRule,
                   ctx: _Context) -> None:
        entity_type = rule.entity_type or path
        # Nested entities are qualified by their parent (course CS101 -> section CS101/01)
        parent = "" if ctx.entity_id == ROOT_ENTITY_ID else f"{ctx.entity_id}/"
        old_items = _index_by_key(old, rule.key)
        new_items = _index_by_key(new, rule.key)
        for key in sorted(set(old_items) | set(new_items), key=_sort_key):
            child_ctx = _Context(entity_type, f"{parent}{key}", None)
            if key in old_items and key in new_items:
                self.walk(old_items[key], new_items[key], path, child_ctx)
            elif key in old_items:
                self.removed(child_ctx, None, old_items[key])
            else:
                self.added(child_ctx, None, new_items[key])

    def walk_set(self, old: list, new: list, ctx: _Context) -> None:
        old_members = {canonical_json(v): v for v in old}
        new_members = {canonical_json(v): v for v in new}
        union = sorted(set(old_members) | set(new_members))
        self.result.fields_considered += len(union) or 1
        if not union:
            self.result.fields_equal += 1
            return
        for member in union:
            if member in old_members and member in new_members:
                self.result.fields_equal += 1
            elif member in old_members:
                self.emit(ctx, ctx.prefix, ChangeType.REMOVED, old=old_members[member])
            else:
                self.emit(ctx, ctx.prefix, ChangeType.ADDED, new=new_members[member])

    def walk_positional(self, old: list, new: list, path: str, ctx: _Context) -> None:
        if not old and not new:
            self.result.fields_considered += 1
            self.result.fields_equal += 1
            return
        for position in range(max(len(old), len(new))):
            prop = ctx.index(position)
            if position < len(old) and position < len(new):
                self.walk(old[position], new[position], path,
                          _Context(ctx.entity_type, ctx.entity_id, prop))
            elif position < len(old):
                self.removed(ctx, prop, old[position])
            else:
                self.added(ctx, prop, new[position])


def _index_by_key(items: list, key_field: str) -> Dict[str, Any]:
    """Map key text -> element; duplicate or missing keys get a positional suffix.

    Non-string key values (numbers, lists, objects) are keyed by their
    canonical JSON text. Two entries with the same key text, such as ``1``
    and ``"1"``, are kept apart by the positional suffix.
    """
    indexed: Dict[str, Any] = {}
    for position, item in enumerate(items):
        value = item.get(key_field) if isinstance(item, dict) else None
        if value is None:
            key = f"#{position}"
        else:
            key = value if isinstance(value, str) else canonical_json(value)
            if key in indexed:
                key = f"{key}#{position}"
        indexed[key] = item
    return indexed


def diff_snapshots(old: Any, new: Any,
                   schema: SnapshotSchema = DEFAULT_SNAPSHOT_SCHEMA) -> DiffResult:
    """Compute the structural difference from ``old`` to ``new``."""
    walker = _Walker(schema)
    root = _Context(schema.root_entity_type, ROOT_ENTITY_ID, None)
    walker.walk(old if old is not None else {}, new if new is not None else {}, "", root)
    return walker.result


def skeleton(value: Any) -> Any:
    """Empty container tree with the same nesting as ``value``.

    Diffing ``skeleton(x)`` against ``x`` reports every field and child
    entity of ``x`` as ADDED at its natural granularity.
    """
    if isinstance(value, dict):
        return {k: skeleton(v) for k, v in value.items() if isinstance(v, (dict, list))}
    if isinstance(value, list):
        return []
    return None


def bootstrap_snapshot(new: Any,
                       schema: SnapshotSchema = DEFAULT_SNAPSHOT_SCHEMA) -> DiffResult:
    """Deltas for the first version of a catalog: everything ADDED."""
    if not isinstance(new, (dict, list)):
        return diff_snapshots({}, {"value": new}, schema)
    return diff_snapshots(skeleton(new), new, schema)
