"""Rebuild a value store from a previously exported visit record."""

import logging
from typing import Any

from visit_form.schema.catalog import FieldCatalog
from visit_form.store.keys import ValueKey
from visit_form.store.values import FormValueStore, is_blank

logger = logging.getLogger(__name__)


def restore_store(
    record: dict[str, Any],
    catalog: FieldCatalog,
) -> tuple[FormValueStore, dict[str, str]]:
    """Load the values and description overrides of an exported record.

    Activities in the record that the catalog does not know are skipped.
    Measurements are restored in the order they were exported. Shared
    dates and times are written once, from any measurement that has them.

    Args:
        record: A visit record dict (camelCase keys, as produced by
            VisitRecord.to_dict()).
        catalog: Activities of the visit being filled.

    Returns:
        Tuple of (store, descriptions by activity id).

    Raises:
        ValueError: If a record holds more measurements than an activity allows.
    """
    store = FormValueStore(catalog)
    descriptions: dict[str, str] = {}

    for imported in record.get("activities", []):
        field = catalog.get(imported.get("id", ""))
        if field is None:
            logger.debug("Skipping unknown activity %r in record", imported.get("id"))
            continue

        if imported.get("value") is not None:
            store = store.set(ValueKey.value(field.id), imported["value"])
        if imported.get("date") is not None:
            store = store.set(ValueKey.date(field.id), imported["date"])
        if imported.get("time") is not None:
            store = store.set(ValueKey.time(field.id), imported["time"])
        if imported.get("description") and imported["description"] != field.description:
            descriptions[field.id] = imported["description"]

        measurements = imported.get("measurements")
        if not field.allow_multiple or not isinstance(measurements, list):
            continue
        if len(measurements) > field.repeat_count:
            raise ValueError(
                f"{len(measurements)} measurements in record for {field.id} "
                f"(repeat_count={field.repeat_count})"
            )

        values = [m.get("value") for m in measurements]
        if not is_blank(values):
            store = store.set(ValueKey.value(field.id), values)
        for index, measurement in enumerate(measurements):
            if measurement.get("date"):
                index_or_shared = None if field.shared_date else index
                store = store.set(ValueKey.date(field.id, index_or_shared), measurement["date"])
            if measurement.get("time"):
                if field.shared_time:
                    store = store.set(ValueKey.time(field.id), measurement["time"])
                elif not (field.derives_times and index > 0):
                    store = store.set(ValueKey.time(field.id, index), measurement["time"])

    return store, descriptions
