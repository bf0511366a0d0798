"""Cascading attribute selection over flat inventory records.

The pick-up page offers one dropdown per configured attribute, in a fixed
order (for example category, then brand, then size). Each dropdown only
lists values still available given the choices above it, and once every
dropdown has a value the choices resolve to a single inventory record.

Everything here works on plain inventory mappings as the API returns them
(``{"_id", "type", "style", "product", "gender", "color", "size", ...}``)
and never raises on missing or partial data.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Literal

from pydantic import BaseModel, field_validator

from app.checkin.refs import ref_id

FIELD_NAMES = ("type", "brand", "gender", "product", "color", "size")

FieldName = Literal["type", "brand", "gender", "product", "color", "size"]

# Brands are stored under the legacy "style" attribute.
ATTRIBUTE_FOR_FIELD = {"brand": "style"}

FIELD_LABELS = {"type": "Category", "brand": "Brand"}


class FieldSetting(BaseModel):
    """One attribute of the selector and whether it takes part in the cascade."""
    name: FieldName
    included: bool = True


class FieldConfig(BaseModel):
    """Ordered attribute configuration for the pick-up selector.

    List order is cascade order. Excluded entries keep their position so the
    user can switch them back on without reordering.
    """
    entries: list[FieldSetting]

    @field_validator("entries")
    @classmethod
    def no_duplicate_fields(cls, entries: list[FieldSetting]) -> list[FieldSetting]:
        names = [entry.name for entry in entries]
        if len(names) != len(set(names)):
            raise ValueError("each field may appear only once")
        return entries

    def field_order(self) -> list[str]:
        """Names of the included fields, in cascade order."""
        return [entry.name for entry in self.entries if entry.included]

    @classmethod
    def parse(cls, text: str) -> "FieldConfig":
        """
        Build a config from ``"type:off,brand,size"`` style text.

        Each comma-separated entry is a field name, optionally followed by
        ``:off`` to keep it in the list but out of the cascade.
        """
        entries = []
        for chunk in text.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            name, _, flag = chunk.partition(":")
            entries.append(
                FieldSetting(name=name.strip(), included=flag.strip().lower() != "off")
            )
        return cls(entries=entries)


DEFAULT_FIELD_CONFIG = FieldConfig(
    entries=[
        FieldSetting(name="type", included=False),
        FieldSetting(name="brand", included=True),
        FieldSetting(name="gender", included=False),
        FieldSetting(name="product", included=False),
        FieldSetting(name="color", included=False),
        FieldSetting(name="size", included=True),
    ]
)


class CascadeResult(BaseModel):
    """What the selector should show for a given set of choices.

    Attributes:
        field_order: Fields taking part in the cascade.
        selections: Choices after normalization (nothing kept after a gap).
        options_per_field: Sorted choices per field; empty for hidden fields.
        visible_fields: Fields whose dropdown is shown.
        resolved_item: Inventory record the choices resolve to, if any.
        flat_options: ``(id, label)`` pairs when no field is configured.
    """
    field_order: list[str]
    selections: dict[str, str]
    options_per_field: dict[str, list[str]]
    visible_fields: list[str]
    resolved_item: dict[str, Any] | None = None
    flat_options: list[tuple[str, str]] = []

    @property
    def resolved_id(self) -> str | None:
        if self.resolved_item is None:
            return None
        return ref_id(self.resolved_item.get("_id"))

    @property
    def is_flat(self) -> bool:
        return not self.field_order


def field_label(field: str) -> str:
    return FIELD_LABELS.get(field, field.capitalize())


def attribute_name(field: str) -> str:
    """Inventory attribute a selector field reads."""
    return ATTRIBUTE_FOR_FIELD.get(field, field)


def attribute_value(item: Any, field: str) -> str:
    """String value of a field on an inventory record, "" when missing."""
    if not isinstance(item, Mapping):
        return ""
    value = item.get(attribute_name(field))
    if value is None:
        return ""
    return str(value)


def display_label(item: Mapping) -> str:
    """Best-effort label for the flat selector: brand plus size."""
    brand = attribute_value(item, "brand") or "N/A"
    size = attribute_value(item, "size")
    return f"{brand} ({size})" if size else brand


def _order(field_order: FieldConfig | Iterable[str] | None) -> list[str]:
    if field_order is None:
        return []
    if isinstance(field_order, FieldConfig):
        field_order = field_order.field_order()
    order = []
    for field in field_order:
        if field in FIELD_NAMES and field not in order:
            order.append(field)
    return order


def _records(inventory: Iterable[Any] | None) -> list[Mapping]:
    return [item for item in inventory or [] if isinstance(item, Mapping)]


def _matches(item: Mapping, fields: Sequence[str], selections: Mapping[str, str]) -> bool:
    # An empty choice matches anything; an item without a value only
    # matches an empty choice.
    return all(
        not selections.get(field) or selections[field] == attribute_value(item, field)
        for field in fields
    )


def normalize_selections(
    field_order: FieldConfig | Iterable[str] | None,
    selections: Mapping[str, Any] | None,
) -> dict[str, str]:
    """
    Restrict choices to the configured fields and enforce the cascade.

    Returns a value for every configured field. Everything after the first
    empty field is cleared, so stale downstream choices never survive.
    """
    raw = selections if isinstance(selections, Mapping) else {}
    result = {}
    gap = False
    for field in _order(field_order):
        value = raw.get(field)
        value = "" if value is None or gap else str(value)
        if not value:
            gap = True
        result[field] = value
    return result


def apply_selection(
    field_order: FieldConfig | Iterable[str] | None,
    selections: Mapping[str, Any] | None,
    field: str,
    value: Any,
) -> dict[str, str]:
    """
    Set one field and clear every field after it.

    Downstream fields are cleared even when their old value would still be
    available under the new choice.
    """
    order = _order(field_order)
    updated = dict(selections) if isinstance(selections, Mapping) else {}
    if field in order:
        updated[field] = "" if value is None else str(value)
        for later in order[order.index(field) + 1:]:
            updated[later] = ""
    return normalize_selections(order, updated)


def options_for_field(
    inventory: Iterable[Any] | None,
    field_order: FieldConfig | Iterable[str] | None,
    selections: Mapping[str, Any] | None,
    field: str,
) -> list[str]:
    """Sorted distinct values of ``field`` under the choices made above it."""
    order = _order(field_order)
    if field not in order:
        return []
    level = order.index(field)
    chosen = normalize_selections(order, selections)
    prior = order[:level]
    if not all(chosen[name] for name in prior):
        return []
    values = {
        attribute_value(item, field)
        for item in _records(inventory)
        if _matches(item, prior, chosen)
    }
    values.discard("")
    return sorted(values)


def resolve_item(
    inventory: Iterable[Any] | None,
    field_order: FieldConfig | Iterable[str] | None,
    selections: Mapping[str, Any] | None,
) -> dict[str, Any] | None:
    """
    Inventory record matching every configured choice exactly.

    Partial choices never resolve. When several records match, the first
    one in inventory order wins.
    """
    order = _order(field_order)
    if not order:
        return None
    chosen = normalize_selections(order, selections)
    if not all(chosen.values()):
        return None
    for item in _records(inventory):
        if all(attribute_value(item, field) == chosen[field] for field in order):
            return dict(item)
    return None


def find_item(inventory: Iterable[Any] | None, item_id: Any) -> dict[str, Any] | None:
    target = ref_id(item_id)
    if target is None:
        return None
    for item in _records(inventory):
        if ref_id(item.get("_id")) == target:
            return dict(item)
    return None


def selections_from_item(
    inventory: Iterable[Any] | None,
    field_order: FieldConfig | Iterable[str] | None,
    item_id: Any,
) -> dict[str, str]:
    """
    Choices that lead back to an existing inventory record.

    Lets an edit flow open the selector fully resolved instead of making the
    user click through every level again. Unknown ids give empty choices.
    """
    order = _order(field_order)
    item = find_item(inventory, item_id)
    if item is None:
        return {field: "" for field in order}
    return normalize_selections(
        order, {field: attribute_value(item, field) for field in order}
    )


def select_for_cascade(
    inventory: Iterable[Any] | None,
    field_order: FieldConfig | Iterable[str] | None,
    selections: Mapping[str, Any] | None = None,
    selected_id: Any = None,
) -> CascadeResult:
    """
    Compute dropdown contents and the resolved record for a set of choices.

    With no configured fields the selector degrades to a single flat list of
    all records; ``selected_id`` then picks the resolved record directly.
    """
    order = _order(field_order)
    records = _records(inventory)

    if not order:
        flat = [
            (ref_id(item.get("_id")), display_label(item))
            for item in records
            if item.get("_id") is not None
        ]
        return CascadeResult(
            field_order=[],
            selections={},
            options_per_field={},
            visible_fields=[],
            resolved_item=find_item(records, selected_id),
            flat_options=flat,
        )

    chosen = normalize_selections(order, selections)
    options: dict[str, list[str]] = {}
    visible: list[str] = []
    for level, field in enumerate(order):
        if all(chosen[name] for name in order[:level]):
            visible.append(field)
            options[field] = options_for_field(records, order, chosen, field)
        else:
            options[field] = []

    return CascadeResult(
        field_order=order,
        selections=chosen,
        options_per_field=options,
        visible_fields=visible,
        resolved_item=resolve_item(records, order, chosen),
    )
