import json
import logging

import pytest

from shared.logger import PEInfoLogger


def _lines(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.fixture
def json_log(tmp_path):
    path = tmp_path / "logs" / "peinfo.jsonl"
    log = PEInfoLogger("unit", log_level="DEBUG", log_file=path, json_logs=True, console_output=False)
    return log, path

# ---JSON file tests-----------------------------------------------------------------------------------------

def test_json_record_fields(json_log):
    """Extra keyword arguments land under "fields", tagged with the component"""
    log, path = json_log
    log.info("Import directory at RVA 0x%x", 0x2010, rva=0x2010)

    (line,) = _lines(path)
    assert line["level"] == "INFO"
    assert line["component"] == "unit"
    assert line["message"] == "Import directory at RVA 0x2010"
    assert line["fields"] == {"rva": 0x2010}
    assert "operation" not in line


def test_json_operation_scope(json_log):
    """Records inside operation() carry its name; the outer tag comes back afterwards"""
    log, path = json_log
    with log.operation("exports"):
        with log.operation("imports"):
            log.debug("inner")
        log.debug("outer")
    log.warning("after", kind="TableNotPresent")

    inner, outer, after = _lines(path)
    assert inner["operation"] == "imports"
    assert outer["operation"] == "exports"
    assert "operation" not in after
    assert after["fields"] == {"kind": "TableNotPresent"}


def test_operation_restored_on_error(json_log):
    log, path = json_log
    with pytest.raises(ValueError):
        with log.operation("imports"):
            raise ValueError("boom")
    log.info("next")
    assert "operation" not in _lines(path)[0]


def test_timed_logs_elapsed(json_log):
    log, path = json_log
    with log.timed("analysis of sample.dll"):
        pass
    (line,) = _lines(path)
    assert line["level"] == "DEBUG"
    assert line["message"].startswith("analysis of sample.dll took ")

# ---level and handler tests---------------------------------------------------------------------------------

def test_level_filters_records(tmp_path):
    path = tmp_path / "peinfo.jsonl"
    log = PEInfoLogger("filtered", log_level="WARNING", log_file=path, json_logs=True, console_output=False)
    log.debug("hidden")
    log.info("hidden")
    log.warning("shown")
    assert [line["message"] for line in _lines(path)] == ["shown"]


def test_unknown_level_means_info(tmp_path):
    path = tmp_path / "peinfo.jsonl"
    log = PEInfoLogger("lenient", log_level="chatty", log_file=path, json_logs=True, console_output=False)
    log.debug("hidden")
    log.info("shown")
    assert [line["message"] for line in _lines(path)] == ["shown"]


def test_text_file_format(tmp_path):
    path = tmp_path / "peinfo.log"
    log = PEInfoLogger("plain", log_file=path, console_output=False)
    with log.operation("sections"):
        log.info("Read %d section header(s)", 2)
    text = path.read_text(encoding="utf-8")
    assert "| INFO     | peinfo.plain | sections | Read 2 section header(s)" in text


def test_reinstantiation_replaces_handlers(tmp_path):
    """A second logger for the same component does not duplicate output"""
    PEInfoLogger("twice", log_file=tmp_path / "a.log", console_output=False)
    PEInfoLogger("twice", log_file=tmp_path / "b.log", console_output=True)
    assert len(logging.getLogger("peinfo.twice").handlers) == 2


@pytest.mark.parametrize("console_output, log_file, expected", [
    (False, None, 0),
    (False, "", 0),
    (True, None, 1),
])
def test_handler_selection(console_output, log_file, expected):
    PEInfoLogger("handlers", log_file=log_file, console_output=console_output)
    assert len(logging.getLogger("peinfo.handlers").handlers) == expected
