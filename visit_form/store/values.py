"""Copy-on-write store of the values entered for one visit instance."""

from collections.abc import Iterator, Mapping
from typing import Any

from visit_form.schema.catalog import FieldCatalog
from visit_form.schema.models import FieldSchema
from visit_form.store.keys import ValueKey, ValueKind
from visit_form.store.times import add_minutes_to_time, is_valid_time, normalize_time


def is_blank(value: Any) -> bool:
    """Whether a raw value counts as absent.

    None and "" are absent. A list or record is absent when every entry in
    it is absent.
    """
    if value is None or value == "":
        return True
    if isinstance(value, list):
        return all(is_blank(item) for item in value)
    if isinstance(value, dict):
        return all(is_blank(item) for item in value.values())
    return False


class FormValueStore:
    """Mapping of storage key -> raw value, never mutated in place.

    Every write goes through set(), which returns a new store. Lists of
    measurements are copied on write, so snapshots handed out earlier
    never observe later edits.
    """

    def __init__(
        self,
        catalog: FieldCatalog,
        values: Mapping[str, Any] | None = None,
    ) -> None:
        self.catalog = catalog
        self._values: dict[str, Any] = dict(values or {})

    @classmethod
    def from_mapping(cls, catalog: FieldCatalog, raw: Mapping[str, Any]) -> "FormValueStore":
        """Build a store by setting each storage key of raw in order."""
        store = cls(catalog)
        for storage_key, value in raw.items():
            key = ValueKey.parse(storage_key, known_ids=catalog.ids)
            if key.kind == ValueKind.VALUE and isinstance(value, list):
                store = store._set_measurements(key.field_id, value)
            else:
                store = store.set(key, value)
        return store

    def __contains__(self, key: object) -> bool:
        if isinstance(key, ValueKey):
            key = key.storage_key
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FormValueStore):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"FormValueStore({self._values!r})"

    def _coerce_key(self, key: ValueKey | str) -> ValueKey:
        if isinstance(key, ValueKey):
            return key
        return ValueKey.parse(key, known_ids=self.catalog.ids)

    def get(self, key: ValueKey | str, default: Any = None) -> Any:
        """Get the raw value stored at key."""
        key = self._coerce_key(key)
        stored = self._values.get(key.storage_key, default)
        if key.kind == ValueKind.VALUE and key.index is not None:
            if isinstance(stored, list) and key.index < len(stored):
                return stored[key.index]
            return default
        return stored

    def set(self, key: ValueKey | str, value: Any) -> "FormValueStore":
        """Return a new store with value written at key.

        Time values are normalized to HH:MM and an invalid time is stored
        as absent. Setting the first measurement time of an activity with
        a fixed time interval also rewrites the derived times of the other
        measurements. A single value written to the whole of a repeated
        activity becomes its only measurement.

        Raises:
            UnknownFieldError: If key names an activity not in the catalog.
            ValueError: If a measurement index is at or past repeat_count.
        """
        key = self._coerce_key(key)
        field = self.catalog.require(key.field_id)
        self._check_index(field, key.index)

        values = dict(self._values)
        if key.kind == ValueKind.TIME:
            value = _clean_time(value)
        if (
            key.kind == ValueKind.VALUE
            and key.index is None
            and field.allow_multiple
            and not field.is_calculated
            and not isinstance(value, list)
            and not is_blank(value)
        ):
            value = [value]

        if key.kind == ValueKind.VALUE and key.index is not None:
            current = values.get(key.storage_key)
            measurements = list(current) if isinstance(current, list) else []
            while len(measurements) <= key.index:
                measurements.append(None)
            measurements[key.index] = value
            values[key.storage_key] = measurements
        elif key.kind == ValueKind.VALUE and field.allow_multiple and isinstance(value, list):
            overflow = value[field.repeat_count :]
            if not is_blank(overflow):
                raise ValueError(
                    f"{len(value)} measurements given for {field.id} "
                    f"(repeat_count={field.repeat_count})"
                )
            values[key.storage_key] = list(value[: field.repeat_count])
        else:
            values[key.storage_key] = value

        if key.kind == ValueKind.TIME and key.index == 0 and field.derives_times:
            _derive_times(values, field, value)

        return FormValueStore(self.catalog, values)

    def _set_measurements(self, field_id: str, measurements: list[Any]) -> "FormValueStore":
        """Write a whole measurement list, one entry at a time."""
        field = self.catalog.require(field_id)
        if not field.allow_multiple:
            return self.set(ValueKey.value(field_id), list(measurements))
        store = self
        for index, value in enumerate(measurements[: field.repeat_count]):
            store = store.set(ValueKey.value(field_id, index), value)
        return store

    def _check_index(self, field: FieldSchema, index: int | None) -> None:
        if index is None:
            return
        if index >= field.repeat_count:
            raise ValueError(
                f"Measurement index {index} out of range for {field.id} "
                f"(repeat_count={field.repeat_count})"
            )

    def has_value(self, field_id: str, index: int | None = None) -> bool:
        """Whether a non-empty value exists for an activity.

        Args:
            field_id: The activity id.
            index: Optional measurement index. Without it, any present
                measurement counts for a multiplicity activity.
        """
        if index is not None:
            return not is_blank(self.get(ValueKey.value(field_id, index)))
        return not is_blank(self._values.get(field_id))

    def measurement_values(self, field_id: str) -> list[Any]:
        """Measurement values of an activity, padded to repeat_count."""
        field = self.catalog.require(field_id)
        stored = self._values.get(field_id)
        measurements = list(stored) if isinstance(stored, list) else []
        measurements = measurements[: field.repeat_count]
        return measurements + [None] * (field.repeat_count - len(measurements))

    def measurement_date(self, field: FieldSchema, index: int | None = None) -> Any:
        """Date applying to a measurement (the shared one if configured)."""
        if index is None or field.shared_date:
            return self.get(ValueKey.date(field.id))
        return self.get(ValueKey.date(field.id, index))

    def measurement_time(self, field: FieldSchema, index: int | None = None) -> Any:
        """Time applying to a measurement.

        Resolves the shared time when configured, and the interval-derived
        time for measurements after the first.
        """
        if index is None or field.shared_time:
            return self.get(ValueKey.time(field.id))
        if field.derives_times and index > 0:
            first = normalize_time(self.get(ValueKey.time(field.id, 0)))
            if not is_valid_time(first):
                return None
            return add_minutes_to_time(first, field.time_interval_minutes * index)
        return self.get(ValueKey.time(field.id, index))

    def input_snapshot(self) -> dict[str, Any]:
        """Entries that are user input, excluding calculated activities."""
        calculated = {field.id for field in self.catalog.calculated_fields()}
        return {
            storage_key: value
            for storage_key, value in self._values.items()
            if storage_key not in calculated
        }

    def to_dict(self) -> dict[str, Any]:
        """Copy of the underlying mapping (lists copied)."""
        return {
            storage_key: list(value) if isinstance(value, list) else value
            for storage_key, value in self._values.items()
        }


def _clean_time(value: Any) -> str | None:
    if is_blank(value):
        return value
    normalized = normalize_time(str(value))
    if not is_valid_time(normalized):
        return None
    return normalized


def _derive_times(values: dict[str, Any], field: FieldSchema, first_time: Any) -> None:
    for index in range(1, field.repeat_count):
        storage_key = ValueKey.time(field.id, index).storage_key
        if first_time:
            values[storage_key] = add_minutes_to_time(
                first_time, field.time_interval_minutes * index
            )
        else:
            values[storage_key] = None
