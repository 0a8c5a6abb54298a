"""
test_ingestor.py
================
Tests unitarios para la ingesta de archivos de máquinas.
Ejecutar con: pytest -v
"""
from __future__ import annotations

import dataclasses
import io
import logging

import openpyxl
import pandas as pd
import pytest

from core.errors import EmptyInputError, IngestionError, MissingColumnsError, UnsupportedFormatError
from core.ingestor import (
    detect_format,
    map_row,
    parse_machine_file,
    records_to_frame,
    run_ingestion,
    split_csv,
    validate_headers,
)
from core.models import UNPARSEABLE, FieldDescriptor, MachineRecord, VibrationLevel
from core.schema import (
    FIELD_SCHEMA,
    normalize_header,
    parse_error_logs,
    parse_float,
    parse_identifier,
    parse_int,
    parse_vibration,
    resolve_alias,
)

HEADER = "Machine ID,Temperature,Vibration Level,Pressure,Operating Hours,Last Maintenance (days ago),Error Logs"


# ===========================================================================
# Fixtures
# ===========================================================================

@pytest.fixture
def scenario_csv() -> bytes:
    """CSV de referencia con dos máquinas válidas."""
    return (
        HEADER + "\n"
        "M-1,95,High,2,1200,70,Bearing warning detected\n"
        "M-2,70,Low,4,500,10,\n"
    ).encode("utf-8")


@pytest.fixture
def raw_row() -> dict:
    """Fila cruda válida con una columna extra."""
    return {
        "Machine ID": "M-7",
        "Temperature (°C)": "88.5",
        "Vibration Level": "medium",
        "Pressure (bar)": "3.2",
        "Operating Hours": "900",
        "Last Maintenance (days ago)": "15",
        "Error Logs": "",
        "Location": "Planta Norte",
    }


@pytest.fixture
def machines_df() -> pd.DataFrame:
    """DataFrame con cabeceras alternativas e ids numéricos."""
    return pd.DataFrame({
        "Asset ID": [101, 102, 103],
        "Temp C": [91.0, 65.5, "n/a"],
        "Vibration": ["high", "LOW", "Medium"],
        "Pressure bar": [2.5, 4.0, 3.0],
        "Total Hours": [1500, 300, 800],
        "Days Since Last Maintenance": [90, 5, 30],
        "Faults": ["Overheat detected", None, None],
        "Line": ["A", "B", "C"],
    })


def _xlsx_bytes(df: pd.DataFrame) -> bytes:
    buf = io.BytesIO()
    df.to_excel(buf, index=False)
    return buf.getvalue()


# ===========================================================================
# 1. Tests normalize_header
# ===========================================================================

class TestNormalizeHeader:

    @pytest.mark.parametrize("header,expected", [
        ("Machine ID",                  "machineid"),
        ("  machine_id  ",              "machineid"),
        ("MACHINE-ID",                  "machineid"),
        ("Temperature (°C)",            "temperaturec"),
        ("Last Maintenance (days ago)", "lastmaintenancedaysago"),
        ("Pressure(bar)",               "pressurebar"),
        ("",                            ""),
        (None,                          ""),
        (float("nan"),                  ""),
        (42,                            "42"),
    ])
    def test_normalize_parametrized(self, header, expected):
        assert normalize_header(header) == expected

    def test_aliases_and_headers_normalized_the_same_way(self):
        # Un alias y su cabecera escrita de otra forma deben coincidir
        for desc in FIELD_SCHEMA:
            for alias in desc.aliases:
                mangled = f"  {alias.upper().replace(' ', '_')}  "
                assert normalize_header(mangled) == normalize_header(alias)


# ===========================================================================
# 2. Tests resolve_alias
# ===========================================================================

class TestResolveAlias:

    @pytest.mark.parametrize("spelling", [
        "Machine ID", "machine id", "MACHINE_ID", " Machine-ID ", "machine.id",
    ])
    def test_equivalent_spellings_resolve(self, spelling):
        assert resolve_alias([spelling, "Other"], ("Machine ID",)) == spelling

    def test_not_found(self):
        assert resolve_alias(["Foo", "Bar"], ("Machine ID", "Asset ID")) is None

    def test_alias_order_wins_over_column_order(self):
        # "Temp C" va antes que "Temperature" en la lista de alias
        headers = ["Temperature", "Temp C"]
        aliases = ("Temp C", "Temperature")
        assert resolve_alias(headers, aliases) == "Temp C"

    def test_duplicate_normalized_headers_resolve_to_first_in_source_order(self):
        headers = ["machine id", "Machine_ID"]
        assert resolve_alias(headers, ("Machine ID",)) == "machine id"


# ===========================================================================
# 3. Tests de parsers
# ===========================================================================

class TestParsers:

    @pytest.mark.parametrize("raw,expected", [
        ("95", 95.0),
        (" 95.5 ", 95.5),
        ("95.5 C", 95.5),
        (".5", 0.5),
        ("-3", -3.0),
        (72, 72.0),
        (72.25, 72.25),
    ])
    def test_parse_float(self, raw, expected):
        assert parse_float(raw) == expected

    @pytest.mark.parametrize("raw", ["hot", "", None, float("nan"), "  "])
    def test_parse_float_unparseable(self, raw):
        assert parse_float(raw) is UNPARSEABLE

    @pytest.mark.parametrize("raw,expected", [
        ("1200", 1200),
        ("1200.0", 1200),
        ("12.7", 12),
        (12.7, 12),
        (500, 500),
    ])
    def test_parse_int(self, raw, expected):
        assert parse_int(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "", None, float("nan")])
    def test_parse_int_unparseable(self, raw):
        assert parse_int(raw) is UNPARSEABLE

    @pytest.mark.parametrize("raw,expected", [
        ("low", VibrationLevel.LOW),
        ("MEDIUM", VibrationLevel.MEDIUM),
        (" High ", VibrationLevel.HIGH),
    ])
    def test_parse_vibration(self, raw, expected):
        parsed = parse_vibration(raw)
        assert parsed is expected
        assert parsed == expected.value

    @pytest.mark.parametrize("raw", ["very high", "", None, 3])
    def test_parse_vibration_unparseable(self, raw):
        assert parse_vibration(raw) is UNPARSEABLE

    def test_parse_identifier(self):
        assert parse_identifier("  M-1 ") == "M-1"
        assert parse_identifier(101.0) == "101"
        assert parse_identifier("   ") is UNPARSEABLE
        assert parse_identifier(None) is UNPARSEABLE

    def test_parse_error_logs_default(self):
        assert parse_error_logs(None) == "None"
        assert parse_error_logs("  ") == "None"
        assert parse_error_logs(" Pump failed ") == "Pump failed"

    def test_descriptor_requires_alias(self):
        with pytest.raises(ValueError):
            FieldDescriptor(key="x", aliases=(), required=True, parse=parse_identifier)


# ===========================================================================
# 4. Tests validate_headers
# ===========================================================================

class TestValidateHeaders:

    def test_all_present(self):
        validate_headers(HEADER.split(","))  # no debe lanzar

    def test_error_logs_is_optional(self):
        validate_headers(HEADER.split(",")[:-1])

    def test_reports_all_missing_at_once(self):
        detected = ["Machine ID", "Temperature"]
        with pytest.raises(MissingColumnsError) as exc_info:
            validate_headers(detected)
        err = exc_info.value
        assert err.missing == [
            "Vibration Level",
            "Pressure (bar)",
            "Operating Hours",
            "Last Maintenance (days ago)",
        ]
        assert err.detected == detected
        msg = str(err)
        for name in err.missing:
            assert name in msg
        assert "Machine ID, Temperature" in msg

    def test_missing_columns_is_value_error(self):
        with pytest.raises(ValueError):
            validate_headers([])


# ===========================================================================
# 5. Tests map_row
# ===========================================================================

class TestMapRow:

    def test_valid_row(self, raw_row):
        record = map_row(raw_row, 1)
        assert record is not None
        assert record.machine_id == "M-7"
        assert record.temperature == 88.5
        assert record.vibration_level == "Medium"
        assert record.pressure == 3.2
        assert record.operating_hours == 900
        assert record.last_maintenance_days == 15
        assert record.error_logs == "None"

    def test_passthrough_equals_extra_columns(self, raw_row):
        raw_row["Notes"] = "revisar"
        record = map_row(raw_row, 1)
        assert dict(record.extra) == {"Location": "Planta Norte", "Notes": "revisar"}

    def test_headers_matching_any_alias_are_not_passthrough(self, raw_row):
        # Segunda columna de temperatura: coincide con un alias, no se conserva
        raw_row["temperature_c"] = "10"
        record = map_row(raw_row, 1)
        assert record.temperature == 88.5
        assert "temperature_c" not in record.extra

    def test_invalid_required_rejects_row(self, raw_row, caplog):
        raw_row["Temperature (°C)"] = "hot"
        with caplog.at_level(logging.WARNING, logger="core.ingestor"):
            assert map_row(raw_row, 4) is None
        assert len(caplog.records) == 1
        msg = caplog.records[0].getMessage()
        assert "Fila 4" in msg
        assert "Temperature (°C)" in msg
        assert "'hot'" in msg

    def test_fail_fast_reports_first_invalid_field_only(self, raw_row, caplog):
        raw_row["Machine ID"] = ""
        raw_row["Vibration Level"] = "loud"
        with caplog.at_level(logging.WARNING, logger="core.ingestor"):
            assert map_row(raw_row, 2) is None
        assert len(caplog.records) == 1
        assert "Machine ID" in caplog.records[0].getMessage()

    def test_missing_optional_uses_default(self, raw_row):
        del raw_row["Error Logs"]
        assert map_row(raw_row, 1).error_logs == "None"

    def test_record_is_immutable(self, raw_row):
        record = map_row(raw_row, 1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.machine_id = "X"
        with pytest.raises(TypeError):
            record.extra["Location"] = "Otra"


# ===========================================================================
# 6. Tests de separación CSV y formato
# ===========================================================================

class TestSplitCsv:

    def test_crlf_and_blank_lines(self):
        content = HEADER + "\r\n\r\n  \r\nM-1,95,High,2,1200,70,x\r\n\n"
        headers, rows = split_csv(content)
        assert len(headers) == 7
        assert len(rows) == 1
        assert rows[0]["Machine ID"] == "M-1"
        assert rows[0]["Error Logs"] == "x"

    def test_short_row_leaves_cells_absent(self):
        headers, rows = split_csv("A,B,C\n1,2\n")
        assert rows[0] == {"A": "1", "B": "2", "C": None}

    def test_empty_content(self):
        with pytest.raises(EmptyInputError):
            split_csv("\n  \r\n")

    @pytest.mark.parametrize("cell", ["a\x0cb", "a\x0bb", "a\x85b", "a\u2028b", "a\x1cb", "a\rb"])
    def test_only_lf_and_crlf_end_a_record(self, cell):
        content = HEADER + "\r\nM-1,95,High,2,1200,70," + cell + "\r\nM-2,70,Low,4,500,10,\n"
        headers, rows = split_csv(content)
        assert len(rows) == 2
        assert rows[0]["Error Logs"] == cell
        assert rows[1]["Machine ID"] == "M-2"


class TestDetectFormat:

    @pytest.mark.parametrize("filename,expected", [
        ("maquinas.csv", "csv"),
        ("MAQUINAS.CSV", "csv"),
        ("planta.xlsx", "excel"),
        ("legacy.xls", "excel"),
    ])
    def test_supported(self, filename, expected):
        assert detect_format(filename) == expected

    @pytest.mark.parametrize("filename", ["report.pdf", "datos.xlsm", "datos.txt", "sin_extension"])
    def test_unsupported(self, filename):
        with pytest.raises(UnsupportedFormatError, match="Formato no soportado"):
            detect_format(filename)


# ===========================================================================
# 7. Tests run_ingestion (CSV)
# ===========================================================================

class TestRunIngestionCsv:

    def test_scenario_two_records(self, scenario_csv):
        records = parse_machine_file(scenario_csv, "maquinas.csv")
        assert [r.machine_id for r in records] == ["M-1", "M-2"]
        m1, m2 = records
        assert m1.vibration_level == "High"
        assert m1.error_logs == "Bearing warning detected"
        assert m2.error_logs == "None"
        assert dict(m1.extra) == {}

    def test_bad_row_dropped_others_kept(self):
        content = (
            HEADER + "\n"
            "M-1,95,High,2,1200,70,\n"
            "M-2,hot,Low,4,500,10,\n"
            "M-3,60,Medium,3,100,5,\n"
        ).encode()
        result = run_ingestion(content, "maquinas.csv")
        assert [r.machine_id for r in result.records] == ["M-1", "M-3"]
        assert result.rejected_rows == [2]
        assert result.total_rows == 3

    def test_alias_coverage(self):
        content = (
            "Asset ID,Temp C,Vibration,Pressure bar,Op Hours,Last Maintenance Days\n"
            "P-9,81.2,low,3.5,640,12\n"
        ).encode()
        records = parse_machine_file(content, "planta.csv")
        assert len(records) == 1
        assert records[0].machine_id == "P-9"
        assert records[0].temperature == 81.2

    def test_header_only_yields_empty_result(self):
        result = run_ingestion((HEADER + "\n").encode(), "vacio.csv")
        assert result.records == []
        assert not result.has_results

    def test_all_rows_rejected_is_not_an_error(self):
        content = (HEADER + "\nM-1,hot,High,2,1200,70,\n").encode()
        result = run_ingestion(content, "malo.csv")
        assert not result.has_results
        assert result.rejected_rows == [1]

    def test_missing_columns_abort_whole_file(self):
        content = b"Machine ID,Temperature\nM-1,90\n"
        with pytest.raises(MissingColumnsError):
            run_ingestion(content, "incompleto.csv")

    def test_unsupported_format_before_reading(self):
        with pytest.raises(UnsupportedFormatError):
            run_ingestion(b"%PDF-1.4 cualquier cosa", "report.pdf")

    def test_empty_file(self):
        with pytest.raises(EmptyInputError):
            run_ingestion(b"", "vacio.csv")

    def test_cp1252_export_keeps_cells_intact(self):
        content = (
            HEADER + "\r\n"
            "M-1,95,High,2,1200,70,Fallo… detectado en válvula\r\n"
            "M-2,70,Low,4,500,10,Presión baja\r\n"
            "M-3,60,Medium,3,100,5,\r\n"
        ).encode("cp1252")
        result = run_ingestion(content, "exportacion.csv")
        assert result.rejected_rows == []
        assert [r.machine_id for r in result.records] == ["M-1", "M-2", "M-3"]
        assert result.records[0].error_logs == "Fallo… detectado en válvula"
        assert result.records[1].error_logs == "Presión baja"

    def test_form_feed_inside_cell_is_not_a_line_break(self):
        content = (
            HEADER + "\n"
            "M-1,95,High,2,1200,70,a\x0cb\u2028c\n"
            "M-2,70,Low,4,500,10,\n"
        ).encode("utf-8")
        result = run_ingestion(content, "maquinas.csv")
        assert result.rejected_rows == []
        assert result.records[0].error_logs == "a\x0cb\u2028c"
        assert len(result.records) == 2

    def test_undecodable_bytes_fall_back_to_latin1(self):
        # 0x81 no existe en cp1252
        content = (HEADER + "\nM-1,95,High,2,1200,70,x\x81y\n").encode("latin-1")
        result = run_ingestion(content, "raro.csv")
        assert result.records[0].error_logs == "x\x81y"

    def test_utf8_bom_header(self, scenario_csv):
        records = parse_machine_file(b"\xef\xbb\xbf" + scenario_csv, "bom.csv")
        assert len(records) == 2

    def test_idempotent(self, scenario_csv):
        first = parse_machine_file(scenario_csv, "maquinas.csv")
        second = parse_machine_file(scenario_csv, "maquinas.csv")
        assert first == second
        assert first is not second


# ===========================================================================
# 8. Tests run_ingestion (Excel)
# ===========================================================================

class TestRunIngestionExcel:

    def test_read_xlsx(self, machines_df):
        result = run_ingestion(_xlsx_bytes(machines_df), "planta.xlsx")
        # La fila 3 tiene temperatura "n/a" → descartada
        assert [r.machine_id for r in result.records] == ["101", "102"]
        assert result.rejected_rows == [3]
        first, second = result.records
        assert first.temperature == 91.0
        assert first.vibration_level == VibrationLevel.HIGH
        assert first.operating_hours == 1500
        assert first.error_logs == "Overheat detected"
        assert second.error_logs == "None"
        assert dict(first.extra) == {"Line": "A"}

    def test_header_only_sheet(self, machines_df):
        result = run_ingestion(_xlsx_bytes(machines_df.iloc[0:0]), "vacio.xlsx")
        assert result.records == []
        assert result.headers[0] == "Asset ID"

    def test_empty_sheet(self):
        wb = openpyxl.Workbook()
        buf = io.BytesIO()
        wb.save(buf)
        with pytest.raises(EmptyInputError):
            run_ingestion(buf.getvalue(), "vacio.xlsx")

    def test_missing_columns(self):
        df = pd.DataFrame({"Machine ID": ["M-1"], "Pressure": [3.0]})
        with pytest.raises(MissingColumnsError) as exc_info:
            run_ingestion(_xlsx_bytes(df), "parcial.xlsx")
        assert "Temperature (°C)" in exc_info.value.missing
        assert "Machine ID" not in exc_info.value.missing

    def test_corrupt_file(self):
        with pytest.raises(IngestionError):
            run_ingestion(b"esto no es un excel", "corrupto.xlsx")


# ===========================================================================
# 9. Tests records_to_frame
# ===========================================================================

class TestRecordsToFrame:

    def test_columns_canonical_then_extra(self, raw_row):
        record = map_row(raw_row, 1)
        df = records_to_frame([record])
        assert list(df.columns) == [d.key for d in FIELD_SCHEMA] + ["Location"]
        assert df.loc[0, "vibration_level"] == "Medium"

    def test_empty(self):
        df = records_to_frame([])
        assert df.empty
        assert "machine_id" in df.columns

    def test_record_as_dict_roundtrip_fields(self):
        record = MachineRecord(
            machine_id="Z", temperature=1.0, vibration_level=VibrationLevel.LOW,
            pressure=2.0, operating_hours=3, last_maintenance_days=4,
        )
        assert record.as_dict()["error_logs"] == "None"
        assert dict(record.extra) == {}
