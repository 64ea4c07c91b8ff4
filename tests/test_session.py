"""Tests for the visit form editing session."""

from datetime import datetime, timezone

import pytest

from conftest import make_field
from visit_form.schema import VisitSpec
from visit_form.serialization import SubmissionBlockedError, restore_store
from visit_form.session import SessionClosedError, VisitFormSession
from visit_form.store import FormValueStore, ValueKey
from visit_form.validation import ValidationMode

FIXED_TIME = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def spec() -> VisitSpec:
    return VisitSpec(
        visit_id="screening",
        version="1.0.0",
        name="Screening",
        visit_type="screening",
        protocol_name="HTA-2024",
        activities=[
            make_field("peso", name="Peso", required=True, decimalPlaces=1),
            make_field("altura", name="Altura", required=True),
            make_field("imc", "calculated", name="IMC", calculationFormula="peso / (altura*altura)", decimalPlaces=1),
            make_field(
                "sexo",
                "single-select",
                options=[{"value": "F", "label": "Femenino"}, {"value": "M", "label": "Masculino"}],
            ),
            make_field(
                "embarazo",
                "boolean",
                required=True,
                conditionalConfig={"dependsOn": "sexo", "showWhen": "F"},
            ),
            make_field(
                "fc",
                allowMultiple=True,
                repeatCount=3,
                requireTime=True,
                timeIntervalMinutes=5,
                validationRules=[
                    {"condition": "max", "maxValue": 100, "severity": "warning", "message": "Tachycardia"},
                ],
            ),
        ],
    )


class TestEditing:
    """Tests for applying edits."""

    def test_batch_edits_never_lose_a_write(self, spec: VisitSpec) -> None:
        """Test that several edits in one batch all land in the store."""
        session = VisitFormSession(spec)

        session.apply({"peso": 80, "altura": 2, ValueKey.value("fc", 0): 70, ValueKey.value("fc", 2): 74})

        assert session.get_value("peso") == 80
        assert session.get_value("altura") == 2
        assert session.get_value("fc") == [70, None, 74]
        assert session.get_value("imc") == 20.0

    def test_edits_applied_in_order(self, spec: VisitSpec) -> None:
        session = VisitFormSession(spec)

        session.apply([("peso", 70), ("peso", 75)])
        assert session.get_value("peso") == 75

    def test_recompute_follows_inputs(self, spec: VisitSpec) -> None:
        session = VisitFormSession(spec)

        session.set_value("peso", 80)
        assert session.get_value("imc") is None

        session.set_value("altura", 2)
        assert session.get_value("imc") == 20.0

        session.set_value("altura", "")
        assert session.get_value("imc") is None

    def test_identical_edit_leaves_values_equal(self, spec: VisitSpec) -> None:
        """Test that rewriting a value with itself changes nothing."""
        session = VisitFormSession(spec)
        session.apply({"peso": 80, "altura": 2})
        before = session.store

        after = session.set_value("peso", 80)
        assert after == before

    def test_old_snapshots_unchanged(self, spec: VisitSpec) -> None:
        session = VisitFormSession(spec)
        first = session.set_value(ValueKey.value("fc", 0), 70)

        session.set_value(ValueKey.value("fc", 1), 72)
        assert first.get("fc") == [70]
        assert session.get_value("fc") == [70, 72]

    def test_visibility(self, spec: VisitSpec) -> None:
        session = VisitFormSession(spec)
        assert not session.is_visible("embarazo")

        session.set_value("sexo", "F")
        assert session.is_visible("embarazo")

    def test_initial_store_recomputed(self, spec: VisitSpec) -> None:
        catalog_store = FormValueStore(VisitFormSession(spec).catalog).set("peso", 80).set("altura", 2)

        session = VisitFormSession(spec, store=catalog_store)
        assert session.get_value("imc") == 20.0

    def test_description_override(self, spec: VisitSpec) -> None:
        session = VisitFormSession(spec)

        session.set_description("peso", "Fasting")
        assert session.descriptions == {"peso": "Fasting"}

        session.set_description("peso", "")
        assert session.descriptions == {}


class TestValidationModes:
    """Tests for silent and live validation."""

    def test_silent_until_first_submit(self, spec: VisitSpec) -> None:
        """Test that findings stay hidden until the first submit attempt."""
        session = VisitFormSession(spec)

        assert session.mode == ValidationMode.SILENT
        assert session.report.surfaced == []
        assert session.report.has_blocking_errors

        with pytest.raises(SubmissionBlockedError):
            session.submit()

        assert session.mode == ValidationMode.LIVE
        assert {f.activity_id for f in session.report.surfaced} == {"peso", "altura"}
        assert not session.closed

    def test_live_mode_revalidates_every_edit(self, spec: VisitSpec) -> None:
        session = VisitFormSession(spec)
        with pytest.raises(SubmissionBlockedError):
            session.submit()

        session.set_value("peso", 80)
        assert [f.activity_id for f in session.report.errors] == ["altura"]

        session.set_value("sexo", "F")
        assert [f.activity_id for f in session.report.errors] == ["altura", "embarazo"]

    def test_silent_mode_does_not_revalidate_edits(self, spec: VisitSpec) -> None:
        session = VisitFormSession(spec)
        initial = session.report

        session.set_value("peso", 80)
        assert session.report is initial

        assert session.validate().for_activity("peso") == []


class TestSubmit:
    """Tests for submission."""

    def test_submit_produces_record(self, spec: VisitSpec) -> None:
        session = VisitFormSession(spec)
        session.apply({
            "peso": 80,
            "altura": 2,
            "sexo": "M",
            "fc": [90, 110],
            ValueKey.time("fc", 0): "08:00",
        })

        record = session.submit(patient_id="P-001", timestamp=FIXED_TIME)
        data = record.to_dict()

        assert session.closed
        assert data["patientId"] == "P-001"
        assert data["visitName"] == "Screening"
        assert data["protocolName"] == "HTA-2024"
        assert [a["id"] for a in data["activities"]] == ["peso", "altura", "imc", "sexo", "fc"]
        assert record.get_activity("imc").value == "20.0"
        assert record.get_activity("fc").measurements[1].time == "08:05"
        assert [f["message"] for f in data["validationErrors"]] == ["Tachycardia (measurement 2)"]

    def test_closed_session_rejects_edits(self, spec: VisitSpec) -> None:
        session = VisitFormSession(spec)
        session.apply({"peso": 80, "altura": 2})
        session.submit(timestamp=FIXED_TIME)

        with pytest.raises(SessionClosedError):
            session.set_value("peso", 81)
        with pytest.raises(SessionClosedError):
            session.set_description("peso", "late")
        with pytest.raises(SessionClosedError):
            session.submit()

    def test_resume_from_exported_record(self, spec: VisitSpec) -> None:
        """Test that a session restored from a record submits the same activities."""
        session = VisitFormSession(spec)
        session.apply({"peso": 80, "altura": 2, "sexo": "F", "embarazo": False})
        session.set_description("altura", "Measured standing")
        exported = session.submit(timestamp=FIXED_TIME).to_dict()

        store, descriptions = restore_store(exported, session.catalog)
        resumed = VisitFormSession(spec, store=store, descriptions=descriptions)

        assert resumed.submit(timestamp=FIXED_TIME).to_dict() == exported
