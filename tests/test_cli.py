"""
Tests for the Typer command-line interface.
"""

import re

import pytest
from typer.testing import CliRunner

from slotbooker.cli.app import app

runner = CliRunner()

TEMPLATE_YAML = """
title: Intro call
duration: 30
type: video
availability:
  monday:
    enabled: true
    timeSlots:
      - start: "09:00"
        end: "12:00"
"""

MONDAY = "2099-11-30"
TUESDAY = "2099-12-01"


@pytest.fixture
def workspace(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("timezone: UTC\ndata_file: data.json\ncreator_id: creator-1\n", encoding="utf-8")
    template_path = tmp_path / "template.yaml"
    template_path.write_text(TEMPLATE_YAML, encoding="utf-8")
    return config_path, template_path


def _create(config_path, template_path) -> str:
    result = runner.invoke(app, ["create", str(template_path), "--config", str(config_path)])
    assert result.exit_code == 0, result.output
    match = re.search(r"Share token: ([0-9a-f]{32})", result.output)
    assert match, result.output
    return match.group(1)


class TestCli:
    """End-to-end tests through the CLI."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "slotbooker" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["list", "--config", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_create_and_list(self, workspace):
        config_path, template_path = workspace
        _create(config_path, template_path)

        result = runner.invoke(app, ["list", "--config", str(config_path)])

        assert result.exit_code == 0
        assert "Intro" in result.output
        assert (config_path.parent / "data.json").exists()

    def test_list_for_other_creator_is_empty(self, workspace):
        config_path, template_path = workspace
        _create(config_path, template_path)

        result = runner.invoke(app, ["list", "--config", str(config_path), "--as", "someone-else"])

        assert result.exit_code == 0
        assert "No meetings found" in result.output

    def test_slots_on_open_day(self, workspace):
        config_path, template_path = workspace
        meeting_id = _create(config_path, template_path)

        result = runner.invoke(app, ["slots", meeting_id, "--date", MONDAY, "--config", str(config_path)])

        assert result.exit_code == 0
        assert "6 open slot(s)" in result.output
        assert "11:30" in result.output

    def test_book_with_attendee_details(self, workspace):
        config_path, template_path = workspace
        meeting_id = _create(config_path, template_path)

        result = runner.invoke(app, [
            "book", meeting_id, MONDAY, "10:30",
            "--name", "Dana Levi", "--email", "dana@example.com",
            "--config", str(config_path),
        ])

        assert result.exit_code == 0, result.output
        assert "Booked" in result.output

        again = runner.invoke(app, [
            "book", meeting_id, MONDAY, "10:30",
            "--name", "Dana Levi", "--email", "dana@example.com",
            "--config", str(config_path),
        ])

        assert again.exit_code == 1
        assert "slot_taken" in again.output

    def test_book_on_closed_day(self, workspace):
        config_path, template_path = workspace
        meeting_id = _create(config_path, template_path)

        result = runner.invoke(app, [
            "book", meeting_id, TUESDAY, "10:30",
            "--name", "Dana Levi", "--email", "dana@example.com",
            "--config", str(config_path),
        ])

        assert result.exit_code == 1
        assert "day_closed" in result.output

    def test_book_requires_participant(self, workspace):
        config_path, template_path = workspace
        meeting_id = _create(config_path, template_path)

        result = runner.invoke(app, ["book", meeting_id, MONDAY, "10:30", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "--participant" in result.output

    def test_delete_hides_meeting(self, workspace):
        config_path, template_path = workspace
        meeting_id = _create(config_path, template_path)

        deleted = runner.invoke(app, ["delete", meeting_id, "--config", str(config_path)])
        shown = runner.invoke(app, ["show", meeting_id, "--config", str(config_path)])

        assert deleted.exit_code == 0
        assert shown.exit_code == 1
        assert "not_found" in shown.output

    def test_invalid_template_file(self, workspace, tmp_path):
        config_path, _ = workspace
        bad = tmp_path / "bad.yaml"
        bad.write_text("title: Broken\nduration: 2\n", encoding="utf-8")

        result = runner.invoke(app, ["create", str(bad), "--config", str(config_path)])

        assert result.exit_code == 1
        assert "validation_error" in result.output

    def test_participant_update(self, workspace):
        config_path, _ = workspace
        added = runner.invoke(app, ["participant-add", "Dana Levi", "dana@example.com", "--config", str(config_path)])
        participant_id = re.search(r"\(([0-9a-f]{32})\)", added.output).group(1)

        result = runner.invoke(app, [
            "participant-update", participant_id, "--email", "dana.levi@example.com", "--config", str(config_path),
        ])

        assert result.exit_code == 0, result.output
        assert "dana.levi@example.com" in result.output

    def test_upcoming_lists_booking(self, workspace):
        config_path, template_path = workspace
        meeting_id = _create(config_path, template_path)
        runner.invoke(app, [
            "book", meeting_id, MONDAY, "10:30",
            "--name", "Dana Levi", "--email", "dana@example.com",
            "--config", str(config_path),
        ])

        result = runner.invoke(app, ["upcoming", "--config", str(config_path)])

        assert result.exit_code == 0
        assert MONDAY in result.output
