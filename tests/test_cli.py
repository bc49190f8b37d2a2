import io
import json

import pytest

from ping_sweep import cli
from ping_sweep.config import AppSettings, ReportFormat
from ping_sweep.console import Console
from ping_sweep.controller import ScanController
from ping_sweep.errors import ProbeEnvironmentError

from .conftest import SimulatedProbe


def _settings(tmp_path, **overrides):
    values = dict(
        prefix="10.0.0",
        concurrency_limit=10,
        ok_file=str(tmp_path / "ping_ok.txt"),
        false_file=str(tmp_path / "ping_false.txt"),
    )
    values.update(overrides)
    return AppSettings(**values)


def _lines(path):
    return path.read_text(encoding="utf-8").splitlines()


def test_positional_arguments_override_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    args = cli.build_parser().parse_args(["192.168.1", "30", "2", "1", "-q", "-s"])
    settings = cli.build_settings(args)

    assert settings.prefix == "192.168.1"
    assert settings.concurrency_limit == 30
    assert settings.probe_count == 2
    assert settings.probe_timeout == 1.0
    assert settings.quiet is True
    assert settings.sort_results is True


def test_arguments_override_settings_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "custom.yaml"
    path.write_text("prefix: 10.9.8\nprobe_count: 4\nquiet: true\n", encoding="utf-8")

    args = cli.build_parser().parse_args(["-c", str(path), "10.1.1", "--report-format", "json"])
    settings = cli.build_settings(args)

    assert settings.prefix == "10.1.1"
    assert settings.probe_count == 4
    assert settings.quiet is True
    assert settings.report_format is ReportFormat.JSON


@pytest.mark.parametrize("argv", [
    ["10.0"],
    ["10.0.0", "0"],
    ["10.0.0", "500"],
    ["10.0.0", "10", "25"],
    ["10.0.0", "10", "3", "0"],
])
def test_invalid_arguments_exit_before_scan(argv, tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "run", lambda settings: pytest.fail("scan must not start"))

    assert cli.main(argv) == cli.EXIT_CONFIG_ERROR
    assert "error:" in capsys.readouterr().err


def test_missing_ping_exits_with_failure(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "setup_logging", lambda *args: None)
    monkeypatch.setattr(cli, "check_ping_available", lambda: False)
    monkeypatch.setattr(cli, "run", lambda settings: pytest.fail("scan must not start"))

    assert cli.main(["10.0.0"]) == cli.EXIT_FAILURE


def test_version(capsys):
    with pytest.raises(SystemExit) as info:
        cli.main(["--version"])
    assert info.value.code == 0
    assert "ping-sweep" in capsys.readouterr().out


def test_run_writes_result_files(tmp_path):
    stream = io.StringIO()
    settings = _settings(tmp_path, sort_results=True)
    controller = ScanController(SimulatedProbe(reachable={3, 1, 2}))

    status = cli.run(settings, controller=controller, console=Console(stream=stream))

    assert status == cli.EXIT_OK
    assert _lines(tmp_path / "ping_ok.txt") == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
    unreachable = _lines(tmp_path / "ping_false.txt")
    assert len(unreachable) == 251
    assert unreachable[0] == "10.0.0.4"

    output = stream.getvalue()
    assert "✅ 10.0.0.1 reachable" in output
    assert "reachable hosts: 3" in output
    assert "unreachable hosts: 251" in output


def test_quiet_run_prints_only_summary(tmp_path):
    stream = io.StringIO()
    settings = _settings(tmp_path, quiet=True)

    cli.run(settings, controller=ScanController(SimulatedProbe()),
            console=Console(quiet=True, stream=stream))

    output = stream.getvalue()
    assert "unreachable hosts: 254" in output
    assert "❌" not in output


def test_run_writes_report(tmp_path):
    report = tmp_path / "report.json"
    settings = _settings(tmp_path, report_file=str(report), report_format=ReportFormat.JSON)

    cli.run(settings, controller=ScanController(SimulatedProbe(reachable={7})),
            console=Console(quiet=True, stream=io.StringIO()))

    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["reachable_hosts"] == ["10.0.0.7"]
    assert data["summary"]["unreachable"] == 253


def test_cancelled_run_saves_partial_results(tmp_path):
    settings = _settings(tmp_path, concurrency_limit=1)
    controller = ScanController(SimulatedProbe())

    seen = []

    def on_outcome(outcome):
        seen.append(outcome)
        if len(seen) == 5:
            controller.cancel()

    console = Console(quiet=True, stream=io.StringIO())
    console.outcome = on_outcome

    status = cli.run(settings, controller=controller, console=console)

    assert status == cli.EXIT_FAILURE
    assert len(_lines(tmp_path / "ping_false.txt")) == 5
    assert _lines(tmp_path / "ping_ok.txt") == []


def test_systemic_failure_exit_status(tmp_path):
    def probe(address):
        raise ProbeEnvironmentError("ping: permission denied")

    stream = io.StringIO()
    settings = _settings(tmp_path, concurrency_limit=1)

    status = cli.run(settings, controller=ScanController(probe, failure_threshold=2),
                     console=Console(quiet=True, stream=stream))

    assert status == cli.EXIT_FAILURE
    assert "scan failed" in stream.getvalue()
    assert len(_lines(tmp_path / "ping_false.txt")) == 1
