"""Structured keys addressing storage locations in a FormValueStore.

Storage form of each key:
    value, no index       -> "<field_id>"
    value, index i        -> entry i of the list under "<field_id>"
    date/time, no index   -> "<field_id>_date" / "<field_id>_time"
    date/time, index i    -> "<field_id>_date_<i>" / "<field_id>_time_<i>"
"""

import re
from collections.abc import Collection
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

_SUFFIX_PATTERN = re.compile(r"^(?P<field_id>.+)_(?P<kind>date|time)(?:_(?P<index>\d+))?$")


class ValueKind(str, Enum):
    """Which part of an activity a key addresses."""

    VALUE = "value"
    DATE = "date"
    TIME = "time"


class ValueKey(BaseModel):
    """Field id + sub-kind + optional measurement index."""

    model_config = ConfigDict(frozen=True)

    field_id: str
    kind: ValueKind = ValueKind.VALUE
    index: int | None = Field(default=None, ge=0)

    @classmethod
    def value(cls, field_id: str, index: int | None = None) -> "ValueKey":
        return cls(field_id=field_id, kind=ValueKind.VALUE, index=index)

    @classmethod
    def date(cls, field_id: str, index: int | None = None) -> "ValueKey":
        return cls(field_id=field_id, kind=ValueKind.DATE, index=index)

    @classmethod
    def time(cls, field_id: str, index: int | None = None) -> "ValueKey":
        return cls(field_id=field_id, kind=ValueKind.TIME, index=index)

    @property
    def storage_key(self) -> str:
        """Key of the entry in the underlying mapping."""
        if self.kind == ValueKind.VALUE:
            return self.field_id
        if self.index is None:
            return f"{self.field_id}_{self.kind.value}"
        return f"{self.field_id}_{self.kind.value}_{self.index}"

    @classmethod
    def parse(cls, raw: str, known_ids: Collection[str] | None = None) -> "ValueKey":
        """Parse the storage form of a key.

        Args:
            raw: Storage key such as "weight", "weight_date" or "weight_time_2".
            known_ids: Optional activity ids. When given, a raw key that is
                itself a known id is always a value key, even if it ends in
                "_date" or "_time".

        Returns:
            The structured key. Value keys parse without an index.

        Raises:
            ValueError: If raw is empty or names an unknown activity.
        """
        if not raw:
            raise ValueError("Empty value key")
        if known_ids is not None and raw in known_ids:
            return cls.value(raw)

        match = _SUFFIX_PATTERN.match(raw)
        if match is not None and (known_ids is None or match.group("field_id") in known_ids):
            index = match.group("index")
            return cls(
                field_id=match.group("field_id"),
                kind=ValueKind(match.group("kind")),
                index=int(index) if index is not None else None,
            )

        if known_ids is not None:
            raise ValueError(f"Value key does not match any activity: {raw}")
        return cls.value(raw)

    def __str__(self) -> str:
        if self.kind == ValueKind.VALUE and self.index is not None:
            return f"{self.field_id}[{self.index}]"
        return self.storage_key
