"""Smoke tests for the command-line interface."""

import json

import pytest

from fieldsched.cli import main


@pytest.fixture
def series_file(tmp_path):
    path = tmp_path / "series.json"
    path.write_text(
        json.dumps(
            {
                "id": "S1",
                "client_id": "C1",
                "title": "Pool cleaning",
                "frequency": "weekly",
                "start_date": "2024-01-01",
                "scheduled_time": "09:00",
            }
        )
    )
    return path


@pytest.fixture
def calendar_file(tmp_path):
    path = tmp_path / "calendar.json"
    path.write_text(
        json.dumps(
            {
                "series": [
                    {
                        "id": "S1",
                        "title": "Pool cleaning",
                        "frequency": "weekly",
                        "start_date": "2024-01-01",
                    }
                ],
                "instances": [
                    {
                        "id": "J1",
                        "title": "Quote visit",
                        "scheduled_date": "2024-01-09",
                        "scheduled_time": "14:00",
                    }
                ],
            }
        )
    )
    return path


@pytest.fixture
def jobs_file(tmp_path):
    path = tmp_path / "jobs.json"
    path.write_text(
        json.dumps(
            {
                "constraints": {"work_start": "08:00", "work_end": "18:00", "travel_buffer_minutes": 15},
                "jobs": [
                    {"id": "J1", "duration_minutes": 60},
                    {"id": "J2", "duration_minutes": 90},
                    {"id": "J3", "duration_minutes": 120, "earliest_time": "13:00"},
                ],
            }
        )
    )
    return path


class TestCLI:
    """End-to-end runs of each command."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_expand(self, series_file, capsys):
        code = main(["expand", str(series_file), "--start", "2024-01-01", "--end", "2024-01-31"])
        output = json.loads(capsys.readouterr().out)

        assert code == 0
        result = output["results"][0]
        assert [i["scheduled_date"] for i in result["created"]] == [
            "2024-01-01", "2024-01-08", "2024-01-15", "2024-01-22", "2024-01-29"
        ]
        assert result["new_cursor"] == "2024-01-29"

    def test_expand_rejects_inverted_window(self, series_file, capsys):
        code = main(["expand", str(series_file), "--start", "2024-02-01", "--end", "2024-01-01"])
        assert code == 2
        assert "error:" in capsys.readouterr().err

    def test_calendar_week_with_highlight(self, calendar_file, capsys):
        code = main(
            ["calendar", str(calendar_file), "--view", "week", "--anchor", "2024-01-10",
             "--highlight", "S1"]
        )
        out = capsys.readouterr().out

        assert code == 0
        assert "AGENDA 2024-01-07 - 2024-01-13" in out
        assert "2 event(s)" in out
        assert " * 09:00  Pool cleaning  [scheduled] (recurring)" in out
        assert "   14:00  Quote visit  [scheduled]" in out

    def test_optimize_report(self, jobs_file, tmp_path, capsys):
        report_path = tmp_path / "day.txt"
        code = main(["optimize", str(jobs_file), "--output", str(report_path)])
        out = capsys.readouterr().out

        assert code == 0
        assert "Efficiency:  90.0" in out
        assert "Validation: PASSED" in out
        assert report_path.read_text().startswith("=" * 72)

    def test_optimize_json(self, jobs_file, capsys):
        assert main(["optimize", str(jobs_file), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["efficiency_score"] == 90.0
        assert [s["job_id"] for s in data["ordered_slots"]] == ["J1", "J2", "J3"]

    def test_invalid_json_file(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        assert main(["optimize", str(path)]) == 2

    def test_missing_file(self, tmp_path, capsys):
        assert main(["optimize", str(tmp_path / "absent.json")]) == 2
        assert "Cannot read" in capsys.readouterr().err

    def test_non_numeric_duration(self, tmp_path, capsys):
        path = tmp_path / "jobs.json"
        path.write_text(json.dumps({"jobs": [{"id": "J1", "duration_minutes": "abc"}]}))

        assert main(["optimize", str(path)]) == 2
        assert "duration_minutes" in capsys.readouterr().err

    def test_unknown_frequency_exit_code(self, tmp_path):
        path = tmp_path / "series.json"
        path.write_text(
            json.dumps({"id": "S1", "title": "x", "frequency": "yearly", "start_date": "2024-01-01"})
        )
        assert main(["expand", str(path), "--start", "2024-01-01", "--end", "2024-01-31"]) == 2

    def test_demo(self, tmp_path, capsys):
        report_path = tmp_path / "demo.txt"
        code = main(["demo", "--anchor", "2024-03-13", "--output", str(report_path)])
        out = capsys.readouterr().out

        assert code == 0
        assert "OPTIMIZED DAY SCHEDULE" in out
        assert "AGENDA 2024-03-10 - 2024-03-16" in out
        assert report_path.exists()
