from datetime import date
from unittest.mock import MagicMock

from clubdesk.commands import expire_makeup_deadlines
from clubdesk.schemas.absence import ExpirySweepResult


def test_run_sweeps_inline(monkeypatch):
    db = MagicMock()
    service = MagicMock()
    service.sweep.return_value = ExpirySweepResult(run_date=date(2027, 3, 9), expired_ids=["a"])
    monkeypatch.setattr(expire_makeup_deadlines, "ExpirySweepService", MagicMock(return_value=service))

    command = expire_makeup_deadlines.ExpireMakeupDeadlinesCommand(session_factory=lambda: db)
    result = command.run()

    assert result["expired_ids"] == ["a"]
    db.close.assert_called_once()


def test_main_exit_code_reflects_failures(monkeypatch, capsys):
    command = MagicMock()
    command.run.return_value = {"expired_ids": [], "failed_ids": ["x"]}
    monkeypatch.setattr(
        expire_makeup_deadlines, "ExpireMakeupDeadlinesCommand", MagicMock(return_value=command)
    )

    assert expire_makeup_deadlines.main(["run"]) == 1
    assert '"failed_ids"' in capsys.readouterr().out


def test_main_enqueue(monkeypatch):
    command = MagicMock()
    command.enqueue.return_value = {"status": "submitted", "task_id": "t-1"}
    monkeypatch.setattr(
        expire_makeup_deadlines, "ExpireMakeupDeadlinesCommand", MagicMock(return_value=command)
    )

    assert expire_makeup_deadlines.main(["enqueue"]) == 0
    command.enqueue.assert_called_once()


def test_main_without_command_prints_help(capsys):
    assert expire_makeup_deadlines.main([]) == 2
    assert "run" in capsys.readouterr().out


def test_init_db_creates_tables(monkeypatch):
    from sqlalchemy import create_engine, inspect
    from sqlalchemy.pool import StaticPool

    engine = create_engine("sqlite+pysqlite:///:memory:", future=True, poolclass=StaticPool)
    monkeypatch.setattr("clubdesk.database.engine", engine)

    assert expire_makeup_deadlines.main(["init-db"]) == 0

    tables = set(inspect(engine).get_table_names())
    assert {"absence_requests", "class_slots", "class_assignments", "holidays"} <= tables
