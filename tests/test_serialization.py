"""Tests for numeric formatting, the serializer and record restore."""

from datetime import datetime, timezone

import pytest

from conftest import make_field
from visit_form.schema import FieldCatalog, FieldSchema
from visit_form.serialization import (
    RecordHeader,
    Serializer,
    SubmissionBlockedError,
    format_leaf,
    format_numeric_value,
    parse_leading_number,
    restore_store,
)
from visit_form.store import FormValueStore, ValueKey

FIXED_TIME = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)


class TestFormatting:
    """Tests for fixed-precision rendering."""

    def test_parse_leading_number(self) -> None:
        assert parse_leading_number("12.5 kg") == 12.5
        assert parse_leading_number(" -3") == -3
        assert parse_leading_number(7) == 7.0
        assert parse_leading_number("kg 12") is None
        assert parse_leading_number(True) is None
        assert parse_leading_number(None) is None

    def test_format_leaf(self) -> None:
        assert format_leaf(80, 2) == "80.00"
        assert format_leaf("1.756", 2) == "1.76"
        assert format_leaf("abc", 2) == "abc"
        assert format_leaf("", 2) == ""
        assert format_leaf(None, 2) is None

    def test_format_leaf_rounds_halves_up(self) -> None:
        assert format_leaf(36.25, 1) == "36.3"
        assert format_leaf(2.5, 0) == "3"
        assert format_leaf(0.125, 2) == "0.13"
        assert format_leaf("36.25", 1) == "36.3"

    def test_lists_and_records(self) -> None:
        field = make_field("pa", "compound-number", decimalPlaces=0)

        assert format_numeric_value({"sis": "120.4", "dia": "", "nota": "x"}, field) == {
            "sis": "120",
            "dia": "",
            "nota": "x",
        }
        assert format_numeric_value([70, None, "71.6"], field) == ["70", None, "72"]

    def test_only_numeric_types_with_decimals(self) -> None:
        assert format_numeric_value(80, make_field("peso")) == 80
        assert format_numeric_value("80", make_field("nota", "short-text", decimalPlaces=2)) == "80"
        assert format_numeric_value(26.1, make_field("imc", "calculated", decimalPlaces=2)) == "26.10"


def header() -> RecordHeader:
    return RecordHeader(patient_id="P-001", protocol_name="HTA-2024", visit_name="Baseline", visit_type="baseline")


class TestSerializer:
    """Tests for the Serializer."""

    def test_record_shape(self, body_catalog: FieldCatalog) -> None:
        store = FormValueStore(body_catalog).set("peso", 80).set("altura", "1.75")

        record = Serializer(body_catalog).serialize(store, header(), timestamp=FIXED_TIME)
        data = record.to_dict()

        assert data["patientId"] == "P-001"
        assert data["protocolName"] == "HTA-2024"
        assert data["visitName"] == "Baseline"
        assert data["visitType"] == "baseline"
        assert data["timestamp"] == "2024-03-01T12:30:00+00:00"
        assert data["validationErrors"] == []
        assert [a["id"] for a in data["activities"]] == ["peso", "altura", "imc"]

        peso = data["activities"][0]
        assert peso == {
            "id": "peso",
            "name": "Peso",
            "fieldType": "simple-number",
            "measurementUnit": "kg",
            "value": "80.0",
        }

    def test_calculated_recomputed_not_stale(self, body_catalog: FieldCatalog) -> None:
        """Test that a stale stored calculated value is replaced on output."""
        store = FormValueStore(body_catalog).set("peso", 80).set("altura", 2).set("imc", 99)

        record = Serializer(body_catalog).serialize(store, header(), timestamp=FIXED_TIME)
        assert record.get_activity("imc").value == "20.00"

    def test_imc_with_undefined_height(self) -> None:
        """Test that an uncomputable calculated activity is serialized unset."""
        catalog = FieldCatalog([
            make_field("peso", name="Peso"),
            make_field("imc", "calculated", name="IMC", calculationFormula="peso / (altura*altura)"),
        ])
        store = FormValueStore(catalog).set("peso", 80)

        record = Serializer(catalog).serialize(store, header(), timestamp=FIXED_TIME)
        data = record.to_dict()

        imc = data["activities"][1]
        assert imc["id"] == "imc"
        assert "value" not in imc
        assert data["activities"][0]["value"] == 80
        assert data["validationErrors"] == []

    def test_blocked_by_errors(self) -> None:
        catalog = FieldCatalog([make_field("peso", name="Peso", required=True)])

        with pytest.raises(SubmissionBlockedError) as exc_info:
            Serializer(catalog).serialize(FormValueStore(catalog), header())

        assert exc_info.value.report.has_blocking_errors
        assert '"Peso" is required.' in str(exc_info.value)

    def test_warnings_attached(self) -> None:
        catalog = FieldCatalog([
            make_field(
                "adherencia",
                validationRules=[{"condition": "min", "minValue": 80, "severity": "warning", "message": "Low"}],
            ),
        ])
        store = FormValueStore(catalog).set("adherencia", 60)

        data = Serializer(catalog).serialize(store, header(), timestamp=FIXED_TIME).to_dict()
        assert len(data["validationErrors"]) == 1
        assert data["validationErrors"][0]["message"] == "Low"
        assert data["validationErrors"][0]["severity"] == "warning"
        assert data["validationErrors"][0]["activityId"] == "adherencia"

    def test_hidden_activities_omitted(self) -> None:
        catalog = FieldCatalog([
            make_field("fumador", "boolean"),
            make_field("cigarrillos", conditionalConfig={"dependsOn": "fumador", "showWhen": True}),
        ])
        store = FormValueStore(catalog).set("fumador", False).set("cigarrillos", 10)

        record = Serializer(catalog).serialize(store, header(), timestamp=FIXED_TIME)
        assert [a.id for a in record.activities] == ["fumador"]

    def test_description_override(self) -> None:
        catalog = FieldCatalog([make_field("nota", "short-text", description="Default", helpText="Help")])
        store = FormValueStore(catalog).set("nota", "ok")

        record = Serializer(catalog).serialize(
            store, header(), descriptions={"nota": "Patient fasted"}, timestamp=FIXED_TIME
        )
        activity = record.get_activity("nota")
        assert activity.description == "Patient fasted"
        assert activity.help_text == "Help"

    def test_single_value_with_date_and_time(self) -> None:
        catalog = FieldCatalog([make_field("glucemia", requireDate=True, requireTime=True)])
        store = FormValueStore.from_mapping(
            catalog, {"glucemia": 95, "glucemia_date": "2024-03-01", "glucemia_time": "07:45:10"}
        )

        activity = Serializer(catalog).serialize(store, header(), timestamp=FIXED_TIME).to_dict()["activities"][0]
        assert activity["value"] == 95
        assert activity["date"] == "2024-03-01"
        assert activity["time"] == "07:45"

    def test_measurements_with_derived_times(self) -> None:
        """Test that interval-derived times appear on measurements and empty ones are dropped."""
        catalog = FieldCatalog([
            make_field(
                "fc",
                allowMultiple=True,
                repeatCount=4,
                requireTime=True,
                timeIntervalMinutes=15,
                decimalPlaces=0,
            ),
        ])
        store = FormValueStore.from_mapping(catalog, {"fc": [70.4, 72, 74], "fc_time_0": "23:50"})

        activity = Serializer(catalog).serialize(store, header(), timestamp=FIXED_TIME).to_dict()["activities"][0]
        assert activity["measurements"] == [
            {"value": "70", "time": "23:50"},
            {"value": "72", "time": "00:05"},
            {"value": "74", "time": "00:20"},
            {"time": "00:35"},
        ]
        assert "value" not in activity

    def test_measurements_with_shared_date(self) -> None:
        catalog = FieldCatalog([
            make_field(
                "ps",
                allowMultiple=True,
                repeatCount=3,
                requireDate=True,
                requireDatePerMeasurement=False,
            ),
        ])
        store = FormValueStore.from_mapping(catalog, {"ps": [120, None, 130], "ps_date": "2024-03-01"})

        activity = Serializer(catalog).serialize(store, header(), timestamp=FIXED_TIME).to_dict()["activities"][0]
        assert activity["measurements"] == [
            {"value": 120, "date": "2024-03-01"},
            {"date": "2024-03-01"},
            {"value": 130, "date": "2024-03-01"},
        ]

    def test_multiplicity_without_stamps_keeps_list(self) -> None:
        catalog = FieldCatalog([make_field("fc", allowMultiple=True, repeatCount=3)])
        store = FormValueStore(catalog).set("fc", [70, 72])

        activity = Serializer(catalog).serialize(store, header(), timestamp=FIXED_TIME).to_dict()["activities"][0]
        assert activity["value"] == [70, 72]

    def test_round_trip_numeric_leaves(self) -> None:
        """Test that formatted leaves parse back to the originals within rounding."""
        fields: list[FieldSchema] = [
            make_field("peso", decimalPlaces=2),
            make_field("fc", allowMultiple=True, repeatCount=3, decimalPlaces=1),
            make_field("pa", "compound-number", decimalPlaces=0),
        ]
        catalog = FieldCatalog(fields)
        values = {"peso": 80.456, "fc": [70.04, 71.96, 73.5], "pa": {"sis": 120.4, "dia": 79.6}}
        store = FormValueStore.from_mapping(catalog, values)

        record = Serializer(catalog).serialize(store, header(), timestamp=FIXED_TIME)

        assert float(record.get_activity("peso").value) == pytest.approx(80.456, abs=0.005)
        for original, text in zip(values["fc"], record.get_activity("fc").value):
            assert float(text) == pytest.approx(original, abs=0.05)
        for name, text in record.get_activity("pa").value.items():
            assert float(text) == pytest.approx(values["pa"][name], abs=0.5)

    def test_default_timestamp_is_utc(self, body_catalog: FieldCatalog) -> None:
        record = Serializer(body_catalog).serialize(FormValueStore(body_catalog), header())
        assert datetime.fromisoformat(record.timestamp).tzinfo is not None


class TestRestoreStore:
    """Tests for rebuilding a store from an exported record."""

    def test_restore_and_reserialize(self) -> None:
        """Test that restoring an exported record and re-serializing gives the same activities."""
        catalog = FieldCatalog([
            make_field("peso", name="Peso", decimalPlaces=1, description="Weight"),
            make_field("glucemia", requireDate=True),
            make_field("fc", allowMultiple=True, repeatCount=3, requireTime=True, timeIntervalMinutes=5),
            make_field(
                "ps",
                allowMultiple=True,
                repeatCount=2,
                requireDate=True,
                requireDatePerMeasurement=False,
            ),
            make_field("imc", "calculated", calculationFormula="peso * 2"),
        ])
        store = FormValueStore.from_mapping(catalog, {
            "peso": 80,
            "glucemia": 90,
            "glucemia_date": "2024-03-01",
            "fc": [70, 71, 72],
            "fc_time_0": "08:00",
            "ps": [120, 125],
            "ps_date": "2024-03-01",
        })
        serializer = Serializer(catalog)
        exported = serializer.serialize(
            store, header(), descriptions={"peso": "Fasting weight"}, timestamp=FIXED_TIME
        ).to_dict()

        restored, descriptions = restore_store(exported, catalog)
        again = serializer.serialize(restored, header(), descriptions=descriptions, timestamp=FIXED_TIME)

        assert descriptions == {"peso": "Fasting weight"}
        assert again.to_dict()["activities"] == exported["activities"]
        assert restored.get(ValueKey.time("fc", 2)) == "08:10"
        assert restored.get("ps_date") == "2024-03-01"

    def test_unknown_activities_skipped(self, body_catalog: FieldCatalog) -> None:
        record = {"activities": [{"id": "talla", "value": 170}, {"id": "peso", "value": 80}]}

        store, descriptions = restore_store(record, body_catalog)
        assert store.to_dict() == {"peso": 80}
        assert descriptions == {}

    def test_too_many_measurements(self) -> None:
        catalog = FieldCatalog([make_field("fc", allowMultiple=True, repeatCount=2, requireTime=True)])
        record = {"activities": [{"id": "fc", "measurements": [{"value": 1}, {"value": 2}, {"value": 3}]}]}

        with pytest.raises(ValueError, match="repeat_count"):
            restore_store(record, catalog)
