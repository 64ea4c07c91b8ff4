"""Read-only catalog of the activities of one visit."""

from collections.abc import Iterable, Iterator

from visit_form.schema.models import FieldSchema, FieldType, NUMERIC_TYPES


class UnknownFieldError(KeyError):
    """Raised when an activity id is not part of the catalog."""

    def __init__(self, field_id: str) -> None:
        self.field_id = field_id
        super().__init__(f"Unknown activity: {field_id}")


def normalize_name(name: str) -> str:
    """Normalize an activity name for case-insensitive lookup."""
    return name.lower().strip()


class FieldCatalog:
    """Immutable, ordered collection of FieldSchema with lookups.

    Order is the schema-declared order and is preserved by iteration.
    """

    def __init__(self, fields: Iterable[FieldSchema]) -> None:
        """Initialize the catalog.

        Args:
            fields: Activities in schema-declared order.

        Raises:
            ValueError: If two activities share an id.
        """
        self._fields: tuple[FieldSchema, ...] = tuple(fields)
        self._by_id: dict[str, FieldSchema] = {}
        for field in self._fields:
            if field.id in self._by_id:
                raise ValueError(f"Duplicate activity id: {field.id}")
            self._by_id[field.id] = field

    def __iter__(self) -> Iterator[FieldSchema]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._by_id

    @property
    def ids(self) -> list[str]:
        """Activity ids in schema order."""
        return [field.id for field in self._fields]

    def get(self, field_id: str) -> FieldSchema | None:
        """Get an activity by its id."""
        return self._by_id.get(field_id)

    def require(self, field_id: str) -> FieldSchema:
        """Get an activity by its id.

        Raises:
            UnknownFieldError: If no activity has this id.
        """
        field = self._by_id.get(field_id)
        if field is None:
            raise UnknownFieldError(field_id)
        return field

    def find_by_name(self, name: str) -> FieldSchema | None:
        """Get an activity by name (case-insensitive, trimmed)."""
        wanted = normalize_name(name)
        for field in self._fields:
            if normalize_name(field.name) == wanted:
                return field
        return None

    def of_type(self, *field_types: FieldType) -> list[FieldSchema]:
        """Activities whose type is one of field_types, in schema order."""
        return [field for field in self._fields if field.field_type in field_types]

    def formula_inputs(self) -> list[FieldSchema]:
        """Activities usable as formula variables.

        Only numeric types qualify; calculated activities are excluded so
        formulas cannot form cycles.
        """
        return self.of_type(*NUMERIC_TYPES)

    def calculated_fields(self) -> list[FieldSchema]:
        """Calculated activities that carry a formula."""
        return [
            field
            for field in self.of_type(FieldType.CALCULATED)
            if field.calculation_formula
        ]
