"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any

import pytest

from visit_form.schema import FieldCatalog, FieldSchema, VisitSpec


def make_field(field_id: str, field_type: str = "simple-number", **kwargs: Any) -> FieldSchema:
    """Build an activity from camelCase or snake_case keyword arguments."""
    name = kwargs.pop("name", field_id.replace("_", " ").title())
    return FieldSchema.model_validate({"id": field_id, "name": name, "fieldType": field_type, **kwargs})


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def schemas_dir(project_root: Path) -> Path:
    """Return the schemas directory."""
    return project_root / "schemas"


@pytest.fixture
def visit_registry_path(project_root: Path) -> Path:
    """Return the visit registry path."""
    return project_root / "visit-registry"


@pytest.fixture
def visit_schema_path(schemas_dir: Path) -> Path:
    """Return the visit spec schema path."""
    return schemas_dir / "visit_spec.schema.json"


@pytest.fixture
def body_fields() -> list[FieldSchema]:
    """Weight, height and a BMI calculated from them."""
    return [
        make_field("peso", name="Peso", measurementUnit="kg", decimalPlaces=1),
        make_field("altura", name="Altura", measurementUnit="m"),
        make_field(
            "imc",
            "calculated",
            name="IMC",
            calculationFormula="peso / (altura*altura)",
            decimalPlaces=2,
        ),
    ]


@pytest.fixture
def body_catalog(body_fields: list[FieldSchema]) -> FieldCatalog:
    return FieldCatalog(body_fields)


@pytest.fixture
def body_spec(body_fields: list[FieldSchema]) -> VisitSpec:
    return VisitSpec(
        visit_id="baseline",
        version="1.0.0",
        name="Baseline",
        visit_type="baseline",
        protocol_name="HTA-2024",
        activities=body_fields,
    )
