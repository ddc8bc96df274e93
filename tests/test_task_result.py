"""Tests for repo_linker.server.task_result."""

from repo_linker.lib.models import ScanReport
from repo_linker.server.task_result import normalize_task_result


def test_normalize_task_result_none() -> None:
    assert normalize_task_result("PENDING", None) is None


def test_normalize_task_result_dict_passthrough() -> None:
    payload = {"owner": "acme", "cleaned": 2}
    assert normalize_task_result("SUCCESS", payload) == payload


def test_normalize_task_result_scan_report() -> None:
    report = ScanReport(root_folder="/work", owner="acme", scanned=2, linked=1)
    report.links[7] = "/work/widgets"
    result = normalize_task_result("SUCCESS", report)
    assert result is not None
    assert result["linked"] == 1
    assert result["links"] == {"7": "/work/widgets"}


def test_normalize_task_result_exception() -> None:
    result = normalize_task_result("FAILURE", RuntimeError("boom"))
    assert result == {
        "error": "boom",
        "error_type": "RuntimeError",
        "status": "FAILURE",
    }


def test_normalize_task_result_other_value() -> None:
    result = normalize_task_result("SUCCESS", 123)
    assert result == {
        "value": "123",
        "value_type": "int",
        "status": "SUCCESS",
    }
