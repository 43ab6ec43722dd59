from __future__ import annotations

import json
from pathlib import Path

import pytest

from keystone.core.global_paths import GlobalPath
from keystone.util.log import Log, LogFormat, LogLevel


@pytest.fixture(autouse=True)
def _restore_log_config():  # type: ignore[no-untyped-def]
    yield
    Log.configure(level=LogLevel.INFO, format=LogFormat.KV, console=True, file=False)


def _single_log_file(directory: Path) -> Path:
    files = list(directory.glob("*.log"))
    assert len(files) == 1
    return files[0]


def test_log_writes_console_and_file(monkeypatch, tmp_path: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.setattr(GlobalPath, "log", classmethod(lambda cls: str(tmp_path)))
    Log.configure(level=LogLevel.INFO, format=LogFormat.KV, console=True, file=True)

    log = Log.create({"service": "test.log"})
    log.info("hello", {"value": 7})
    Log.close()

    stderr = capsys.readouterr().err
    path = _single_log_file(tmp_path)

    assert Log.file() == str(path)
    assert "msg=hello" in stderr
    assert "service=test.log" in stderr
    assert "value=7" in path.read_text(encoding="utf-8")


def test_log_supports_json_format(monkeypatch, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.setattr(GlobalPath, "log", classmethod(lambda cls: str(tmp_path)))
    Log.configure(level=LogLevel.INFO, format=LogFormat.JSON, console=False, file=True)

    log = Log.create({"service": "test.json"})
    log.info("hello world", {"meta": {"k": "v"}})
    Log.close()

    payload = json.loads(_single_log_file(tmp_path).read_text(encoding="utf-8").strip())

    assert payload["level"] == "info"
    assert payload["msg"] == "hello world"
    assert payload["service"] == "test.json"
    assert payload["meta"] == {"k": "v"}


def test_level_filters_lower_priority_messages(capsys) -> None:  # type: ignore[no-untyped-def]
    Log.configure(level=LogLevel.WARN)

    log = Log.create({"service": "test.level"})
    log.info("quiet")
    log.warn("loud")

    stderr = capsys.readouterr().err
    assert "quiet" not in stderr
    assert "msg=loud" in stderr


def test_timer_logs_failure_and_reraises(capsys) -> None:  # type: ignore[no-untyped-def]
    log = Log.create({"service": "test.timer"})

    with pytest.raises(RuntimeError):
        with log.time("stage", {"stage": "handlers"}):
            raise RuntimeError("boom")

    lines = capsys.readouterr().err.splitlines()
    assert "status=started" in lines[0]
    assert "level=error" in lines[1]
    assert "status=failed" in lines[1]
    assert "RuntimeError: boom" in lines[1]


def test_create_caches_by_service() -> None:
    assert Log.create({"service": "test.cache"}) is Log.create({"service": "test.cache"})
    assert Log.create() is not Log.create()


@pytest.mark.parametrize(
    ("text", "expected"),
    [("debug", LogLevel.DEBUG), ("WARNING", LogLevel.WARN), (" error ", LogLevel.ERROR), (None, LogLevel.INFO)],
)
def test_level_parse(text, expected) -> None:  # type: ignore[no-untyped-def]
    assert LogLevel.parse(text) is expected


def test_parse_rejects_unknown_values() -> None:
    with pytest.raises(ValueError):
        LogLevel.parse("loud")
    with pytest.raises(ValueError):
        LogFormat.parse("xml")
