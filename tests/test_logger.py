"""
accesslog — Logger, Printer and Settings Tests
===============================================

What:  Tests for Logger, StreamPrinter, LoggingPrinter, build_logger() and Settings.
Why:   The printer is the one object shared by every request; a missing lock
       shows up as garbled lines only under load.

Test Strategy:
    ✅ StreamPrinter keeps lines whole under thread contention
    ✅ LoggingPrinter picks the level from the status code
    ✅ Logger formats then emits; errors propagate
    ✅ Loggers sharing one stream share one lock
    ✅ Settings from environment, validation, build_logger wiring
    ✅ Importing the package never reads the environment
"""

import logging
import os
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest
from pydantic import ValidationError

from accesslog.config import Settings
from accesslog.creators import default_creator
from accesslog.formatters import format_combined, format_common
from accesslog.logger import Logger, LoggingPrinter, StreamPrinter, build_logger, lock_for
from accesslog.record import RequestRecord

from conftest import TIME_ONE


@pytest.fixture
def record(make_scope):
    record = RequestRecord.from_scope(make_scope())
    record.start = TIME_ONE
    record.status = 200
    record.size = 12
    record.finalize()
    return record


class SlowStream:
    """Writes one character at a time, yielding the GIL between them."""

    def __init__(self) -> None:
        self.chars = []
        self.flushes = 0

    def write(self, text: str) -> int:
        for char in text:
            self.chars.append(char)
            time.sleep(0)
        return len(text)

    def flush(self) -> None:
        self.flushes += 1

    def getvalue(self) -> str:
        return "".join(self.chars)


class TestStreamPrinter:
    def test_writes_line_and_flushes(self, record):
        stream = SlowStream()
        StreamPrinter(stream).emit(record, "one line")

        assert stream.getvalue() == "one line\n"
        assert stream.flushes == 1

    def test_threads_never_interleave(self, record):
        stream = SlowStream()
        printer = StreamPrinter(stream)

        def worker(n: int) -> None:
            for i in range(20):
                printer.emit(record, f"worker-{n}-line-{i}-" + "x" * 20)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = stream.getvalue().splitlines()
        assert len(lines) == 8 * 20
        assert sorted(lines) == sorted(
            f"worker-{n}-line-{i}-" + "x" * 20 for n in range(8) for i in range(20)
        )

    def test_loggers_sharing_a_stream_never_interleave(self, record):
        stream = SlowStream()
        loggers = [
            Logger(formatter=lambda r, n=n: f"logger-{n}-" + "y" * 30, printer=StreamPrinter(stream))
            for n in range(2)
        ]

        def worker(logger: Logger) -> None:
            for _ in range(100):
                logger.log(record)

        threads = [threading.Thread(target=worker, args=(logger,)) for logger in loggers]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = stream.getvalue().splitlines()
        assert len(lines) == 200
        assert set(lines) == {"logger-0-" + "y" * 30, "logger-1-" + "y" * 30}

    def test_lock_is_per_stream(self):
        first, second = SlowStream(), SlowStream()

        assert lock_for(first) is lock_for(first)
        assert lock_for(first) is not lock_for(second)
        assert lock_for(sys.stdout) is lock_for(sys.stdout)

    def test_lock_for_stream_without_weakref_support(self):
        class SlottedStream:
            __slots__ = ("chars",)

            def __init__(self):
                self.chars = []

            def write(self, text):
                self.chars.append(text)

            def flush(self):
                pass

        stream = SlottedStream()
        StreamPrinter(stream).emit(None, "a")
        StreamPrinter(stream).emit(None, "b")

        assert lock_for(stream) is lock_for(stream)
        assert stream.chars == ["a\n", "b\n"]

    def test_default_stream_is_current_stdout(self, record, capsys):
        StreamPrinter().emit(record, "to stdout")

        assert capsys.readouterr().out == "to stdout\n"

    def test_write_errors_propagate(self, record):
        class ClosedStream:
            def write(self, text):
                raise ValueError("I/O operation on closed file")

            def flush(self):
                pass

        with pytest.raises(ValueError, match="closed file"):
            StreamPrinter(ClosedStream()).emit(record, "lost")


class TestLoggingPrinter:
    @pytest.mark.parametrize(
        "status, level",
        [
            (200, logging.INFO),
            (302, logging.INFO),
            (404, logging.WARNING),
            (500, logging.ERROR),
            (503, logging.ERROR),
        ],
    )
    def test_level_follows_status(self, record, caplog, status, level):
        record.status = status
        caplog.set_level(logging.INFO, logger="test.access")

        LoggingPrinter("test.access").emit(record, "the line")

        (entry,) = caplog.records
        assert entry.levelno == level
        assert entry.getMessage() == "the line"
        assert entry.name == "test.access"

    def test_extra_fields(self, record, caplog):
        caplog.set_level(logging.INFO, logger="test.access")

        LoggingPrinter("test.access").emit(record, "the line")

        (entry,) = caplog.records
        assert entry.status == 200
        assert entry.size == 12
        assert entry.method == "GET"
        assert entry.request_uri == "/items?x=1"
        assert entry.remote_addr == "10.0.0.1"
        assert entry.duration_ms >= 0


class TestLogger:
    def test_defaults(self):
        logger = Logger()

        assert logger.creator is default_creator
        assert logger.formatter is format_common
        assert isinstance(logger.printer, StreamPrinter)

    def test_log_formats_then_emits(self, record, list_printer):
        logger = Logger(formatter=lambda r: f"{r.method} {r.status}", printer=list_printer)

        logger.log(record)

        assert list_printer.emitted == [(record, "GET 200")]

    def test_formatter_errors_propagate(self, record, list_printer):
        def broken(r):
            raise KeyError("missing column")

        with pytest.raises(KeyError):
            Logger(formatter=broken, printer=list_printer).log(record)
        assert list_printer.emitted == []

    def test_immutable(self):
        logger = Logger()

        with pytest.raises(AttributeError):
            logger.formatter = format_combined


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.log_format == "common"
        assert settings.log_output == "stdout"
        assert settings.logger_name == "accesslog.access"
        assert settings.skip_paths_set == set()
        assert settings.log_level == "INFO"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("ACCESSLOG_LOG_FORMAT", "combined")
        monkeypatch.setenv("ACCESSLOG_LOG_OUTPUT", "logging")
        monkeypatch.setenv("ACCESSLOG_SKIP_PATHS", "/health, /metrics,,")
        monkeypatch.setenv("ACCESSLOG_LOG_LEVEL", "debug")

        settings = Settings(_env_file=None)

        assert settings.log_format == "combined"
        assert settings.log_output == "logging"
        assert settings.skip_paths_set == {"/health", "/metrics"}
        assert settings.log_level == "DEBUG"

    def test_invalid_format_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_format="xml")

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError, match="Invalid log_level"):
            Settings(_env_file=None, log_level="LOUD")


class TestBuildLogger:
    def test_stdout_common(self):
        logger = build_logger(Settings(_env_file=None))

        assert logger.formatter is format_common
        assert isinstance(logger.printer, StreamPrinter)
        assert logger.printer.stream is sys.stdout

    def test_stderr_combined(self):
        logger = build_logger(Settings(_env_file=None, log_format="combined", log_output="stderr"))

        assert logger.formatter is format_combined
        assert logger.printer.stream is sys.stderr

    def test_logging_output(self):
        settings = Settings(_env_file=None, log_output="logging", logger_name="my.access")

        logger = build_logger(settings)

        assert isinstance(logger.printer, LoggingPrinter)
        assert logger.printer.logger.name == "my.access"

    def test_custom_creator(self):
        def creator(scope):
            return RequestRecord.from_scope(scope, identity="svc")

        assert build_logger(Settings(_env_file=None), creator=creator).creator is creator


class TestImportIgnoresEnvironment:
    """Settings are read by create_app()/Settings(), never on import."""

    ROOT = Path(__file__).resolve().parents[1]

    def run_import(self, cwd: Path, **env: str) -> subprocess.CompletedProcess:
        environ = {k: v for k, v in os.environ.items() if not k.startswith("ACCESSLOG_")}
        environ.update(env)
        environ["PYTHONPATH"] = os.pathsep.join(
            filter(None, [str(self.ROOT), environ.get("PYTHONPATH")])
        )
        return subprocess.run(
            [sys.executable, "-c", "from accesslog import AccessLogMiddleware, Logger; Logger()"],
            cwd=cwd,
            env=environ,
            capture_output=True,
            text=True,
        )

    def test_invalid_environment_value(self, tmp_path):
        result = self.run_import(tmp_path, ACCESSLOG_LOG_FORMAT="json")

        assert result.returncode == 0, result.stderr

    def test_invalid_dotenv_in_working_directory(self, tmp_path):
        (tmp_path / ".env").write_text("ACCESSLOG_LOG_LEVEL=verbose\n")

        result = self.run_import(tmp_path)

        assert result.returncode == 0, result.stderr

    def test_settings_still_validate_when_constructed(self, monkeypatch):
        monkeypatch.setenv("ACCESSLOG_LOG_FORMAT", "json")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)
