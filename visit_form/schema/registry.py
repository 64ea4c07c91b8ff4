"""Visit registry for loading and caching visit specifications."""

import json
import logging
from pathlib import Path

import jsonschema

from visit_form.schema.models import VisitSpec

logger = logging.getLogger(__name__)


class VisitNotFoundError(Exception):
    """Raised when a visit specification is not found."""

    pass


class VisitValidationError(Exception):
    """Raised when a visit specification fails validation."""

    pass


def _load_schema(schema_path: Path | str | None) -> dict | None:
    if not schema_path:
        return None
    with open(schema_path) as f:
        return json.load(f)


def _parse_spec(data: dict, schema: dict | None, label: str) -> VisitSpec:
    if schema:
        try:
            jsonschema.validate(data, schema)
        except jsonschema.ValidationError as e:
            raise VisitValidationError(
                f"Visit spec validation failed for {label}: {e.message}"
            ) from e
    return VisitSpec.model_validate(data)


def load_visit_spec(
    spec_path: Path | str,
    schema_path: Path | str | None = None,
) -> VisitSpec:
    """Load a single visit spec file.

    Args:
        spec_path: Path to the visit spec JSON file.
        schema_path: Optional path to the visit_spec schema for validation.

    Returns:
        The loaded VisitSpec.

    Raises:
        VisitNotFoundError: If the file doesn't exist.
        VisitValidationError: If the visit spec fails schema validation.
    """
    spec_path = Path(spec_path)
    if not spec_path.exists():
        raise VisitNotFoundError(f"Visit spec not found: {spec_path}")
    with open(spec_path) as f:
        data = json.load(f)
    return _parse_spec(data, _load_schema(schema_path), str(spec_path))


class VisitRegistry:
    """Registry for loading and caching visit specifications.

    Loads visit specs from a directory structure:
        <registry_path>/visits/<visit_id>/<version>.json

    Where version uses dashes instead of dots (e.g., 1-0-0.json for 1.0.0).
    """

    def __init__(
        self,
        registry_path: Path | str,
        schema_path: Path | str | None = None,
    ) -> None:
        """Initialize the visit registry.

        Args:
            registry_path: Path to the visit registry directory.
            schema_path: Optional path to the visit_spec schema for validation.
        """
        self.registry_path = Path(registry_path)
        self.visits_path = self.registry_path / "visits"
        self._cache: dict[tuple[str, str], VisitSpec] = {}
        self._schema = _load_schema(schema_path)

    def _version_to_filename(self, version: str) -> str:
        """Convert version string to filename (1.0.0 -> 1-0-0.json)."""
        return version.replace(".", "-") + ".json"

    def _get_spec_path(self, visit_id: str, version: str) -> Path:
        return self.visits_path / visit_id / self._version_to_filename(version)

    def get(self, visit_id: str, version: str) -> VisitSpec:
        """Get a visit specification by ID and version.

        Args:
            visit_id: The visit identifier (e.g., 'screening').
            version: The version string (e.g., '1.0.0').

        Returns:
            The loaded VisitSpec.

        Raises:
            VisitNotFoundError: If the visit spec file doesn't exist.
            VisitValidationError: If the visit spec fails schema validation.
        """
        cache_key = (visit_id, version)
        if cache_key in self._cache:
            return self._cache[cache_key]

        spec_path = self._get_spec_path(visit_id, version)
        if not spec_path.exists():
            raise VisitNotFoundError(
                f"Visit spec not found: {visit_id}@{version} "
                f"(expected at {spec_path})"
            )

        with open(spec_path) as f:
            data = json.load(f)

        spec = _parse_spec(data, self._schema, f"{visit_id}@{version}")
        logger.debug("Loaded visit spec %s@%s (%d activities)", visit_id, version, len(spec.activities))
        self._cache[cache_key] = spec
        return spec

    def list_visits(self) -> list[str]:
        """List all available visit IDs."""
        if not self.visits_path.exists():
            return []
        return sorted(d.name for d in self.visits_path.iterdir() if d.is_dir())

    def list_versions(self, visit_id: str) -> list[str]:
        """List all available versions for a visit."""
        visit_path = self.visits_path / visit_id
        if not visit_path.exists():
            return []
        # Convert filename back to version (1-0-0.json -> 1.0.0)
        versions = [f.stem.replace("-", ".") for f in visit_path.glob("*.json")]
        return sorted(versions, key=_version_key)

    def get_latest(self, visit_id: str) -> VisitSpec:
        """Get the latest version of a visit.

        Raises:
            VisitNotFoundError: If no versions exist.
        """
        versions = self.list_versions(visit_id)
        if not versions:
            raise VisitNotFoundError(f"No versions found for visit: {visit_id}")
        return self.get(visit_id, versions[-1])


def _version_key(version: str) -> tuple:
    # Numeric parts compare numerically so 1.10.0 sorts after 1.9.0
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in version.split(".")
    )
