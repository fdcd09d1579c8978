"""Tests for CLI commands: status, queue, review, import, dedupe, delete-unit, reset, config."""

import json
from datetime import timedelta

import pytest
import yaml
from typer.testing import CliRunner

from nucleus.application.stats.metrics_calculator import utcnow
from nucleus.domain.models import ContentUnit, StudyItem
from nucleus.infrastructure.yaml_store import YamlStudyRepository
from nucleus.interface.cli import app

runner = CliRunner()


@pytest.fixture
def store_path(tmp_path, make_item):
    path = tmp_path / "store.yaml"
    repo = YamlStudyRepository(path)
    now = utcnow()
    repo.save_units([ContentUnit(key="Art. 5", title="Prazos", reading_done=True)])
    repo.save_items(
        [
            make_item(
                "q_1",
                unit_ref="Art. 5",
                ref_code="Q-1",
                primary_text="Prazo?",
                total_attempts=1,
                last_was_correct=False,
                mastery_score=30.0,
                last_reviewed_at=now - timedelta(days=3),
                next_review_at=now - timedelta(days=1),
            ),
            make_item("q_2", unit_ref="Art. 5", primary_text="Quem decide?"),
        ]
    )
    return path


def invoke(store_path, *args):
    return runner.invoke(app, ["--store", str(store_path), *args])


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "status" in result.stdout
    assert "import" in result.stdout


# --- Status / queue ---


def test_status_overview(store_path):
    result = invoke(store_path, "status")

    assert result.exit_code == 0
    assert "Art. 5: REVIEW" in result.stdout
    assert "Recommended: QUESTIONS" in result.stdout


def test_status_json(store_path):
    result = invoke(store_path, "status", "art. 5", "--json")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data[0]["status"] == "REVIEW"
    assert data[0]["activities"]["READING"] == "OK"
    assert data[0]["pending"] == 2
    assert data[0]["critical"] is True


def test_status_unknown_unit(store_path):
    result = invoke(store_path, "status", "Art. 99")
    assert result.exit_code == 1


def test_queue(store_path):
    result = invoke(store_path, "queue")

    assert result.exit_code == 0
    assert "Q-1" in result.stdout
    assert "q_2" not in result.stdout


def test_empty_store(tmp_path):
    result = invoke(tmp_path / "empty.yaml", "status")
    assert result.exit_code == 0
    assert "No content units found." in result.stdout


# --- Review / reset ---


def test_review_updates_store(store_path):
    result = invoke(store_path, "review", "q_2", "--correct", "--rating", "3", "--seconds", "8")

    assert result.exit_code == 0
    item = YamlStudyRepository(store_path).load_items()[1]
    assert item.total_attempts == 1
    assert item.last_rating == 3


def test_review_unknown_item(store_path):
    result = invoke(store_path, "review", "q_404")
    assert result.exit_code == 1


def test_review_invalid_rating(store_path):
    result = invoke(store_path, "review", "q_2", "--rating", "5")
    assert result.exit_code == 1


def test_reset(store_path):
    result = invoke(store_path, "reset", "q_1")

    assert result.exit_code == 0
    assert YamlStudyRepository(store_path).load_items()[0].total_attempts == 0


# --- Import / dedupe / delete ---


def test_import_twice_is_idempotent(store_path, tmp_path):
    batch = tmp_path / "batch.yaml"
    batch.write_text(
        yaml.safe_dump(
            [
                {"unit_ref": "Art. 6", "primary_text": "Novo"},
                {"id": "q_1", "explanation": "Lei 8.112"},
            ]
        )
    )

    first = invoke(store_path, "import", str(batch), "--mode", "merge")
    second = invoke(store_path, "import", str(batch), "--mode", "merge")

    assert first.exit_code == 0
    assert "Imported: 1  Updated: 1" in first.stdout
    assert "Imported: 0  Updated: 0  Blocked: 2" in second.stdout
    items = YamlStudyRepository(store_path).load_items()
    assert len(items) == 3
    assert items[0].explanation == "Lei 8.112"
    assert items[0].total_attempts == 1


def test_import_bad_file(store_path, tmp_path):
    batch = tmp_path / "batch.yaml"
    batch.write_text("just text\n")

    result = invoke(store_path, "import", str(batch))

    assert result.exit_code == 1


def test_dedupe(store_path):
    repo = YamlStudyRepository(store_path)
    items = repo.load_items()
    items.append(StudyItem(id="q_3", unit_ref="art 5", primary_text="quem decide"))
    repo.save_items(items)

    result = invoke(store_path, "dedupe")

    assert result.exit_code == 0
    assert "Removed 1 duplicates." in result.stdout


def test_delete_unit_requires_confirmation(store_path):
    result = runner.invoke(app, ["--store", str(store_path), "delete-unit", "Art. 5"], input="n\n")

    assert result.exit_code == 1
    assert YamlStudyRepository(store_path).load_units() != []


def test_delete_unit_force(store_path):
    result = invoke(store_path, "delete-unit", "Art. 5", "--force")

    assert result.exit_code == 0
    assert "2 items moved to trash" in result.stdout
    repo = YamlStudyRepository(store_path)
    assert repo.load_units() == []
    assert all(item.deleted_at is not None for item in repo.load_items())


# --- Config ---


def test_config_show(store_path):
    result = invoke(store_path, "config", "show")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["store_path"] == str(store_path)
    assert data["failure_decay"] == 0.5


def test_config_show_keeps_env_verbosity(store_path, monkeypatch):
    monkeypatch.setenv("NUCLEUS_VERBOSE", "0")

    quiet = invoke(store_path, "config", "show")
    loud = invoke(store_path, "-v", "config", "show")

    assert json.loads(quiet.stdout)["verbose"] == 0
    assert json.loads(loud.stdout)["verbose"] == 1
