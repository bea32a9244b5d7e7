import importlib

from influx_reporter.monitoring.registry import Registry


def _isolate(monkeypatch, tmp_path):
    settings_mod = importlib.import_module("influx_reporter.config.settings")
    for var in settings_mod.ENV_KEYS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("INFLUX_REPORTER_ENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.setenv("INFLUX_REPORTER_LOG_ROOT", str(tmp_path / "logs"))
    monkeypatch.setattr("influx_reporter.main.setup_logging", lambda level, root: None)


def test_main_passes_arguments_to_reporter(monkeypatch, tmp_path):
    """main resolve argumentos e chama o reporter com destino, tags e opções."""
    _isolate(monkeypatch, tmp_path)
    calls = {}

    def fake_run(*args, **kwargs):
        calls["args"] = args
        calls["kwargs"] = kwargs

    monkeypatch.setattr("influx_reporter.main._run_reporter", fake_run)
    from influx_reporter.main import main

    reg = Registry()
    main(
        [
            "--url",
            "http://influx:8086",
            "--org",
            "acme",
            "--bucket",
            "metrics",
            "--token",
            "tok",
            "--tag",
            "host=a",
            "-i",
            "15",
            "--align",
            "--stat-tag-key",
            "bucketId",
            "-c",
            "2",
        ],
        registry=reg,
    )
    args = calls["args"]
    assert args[0] is reg
    assert args[1:7] == (15.0, "http://influx:8086", "acme", "metrics", "metrics", "tok")
    assert args[7] == {"host": "a"}
    assert args[8] is True
    assert calls["kwargs"]["stat_tag_key"] == "bucketId"
    assert calls["kwargs"]["cycles"] == 2


def test_main_registers_host_metrics(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    registered = []
    monkeypatch.setattr("influx_reporter.main._run_reporter", lambda *a, **k: None)
    monkeypatch.setattr("influx_reporter.main.register_host_metrics", lambda reg: registered.append(reg))
    mod = importlib.import_module("influx_reporter.main")

    mod.main(["--url", "http://influx:8086", "--host-metrics"])
    assert len(registered) == 1
    assert isinstance(registered[0], Registry)


def test_main_runs_reporter_cycle_with_fake_client(monkeypatch, tmp_path):
    """Fluxo completo: main -> reporter -> cliente, sem rede."""
    _isolate(monkeypatch, tmp_path)
    written = []

    class _Api:
        def write_points(self, *points):
            written.extend(points)

    class _Client:
        def __init__(self, url, token):
            self.url = url

        def write_api_blocking(self, org, bucket):
            return _Api()

        def ready(self):
            return True

        def close(self):
            pass

    orig = importlib.import_module("influx_reporter.core.core").influxdb_with_tags
    monkeypatch.setattr(
        "influx_reporter.main._run_reporter",
        lambda *a, **k: orig(*a, client_factory=_Client, sleep=lambda s: None, **k),
    )
    from influx_reporter.main import main

    reg = Registry()
    reg.counter("jobs").inc(3)
    main(["--url", "http://influx:8086", "--org", "o", "--bucket", "b", "-i", "0.01", "-c", "1"], registry=reg)
    assert [dict(p.fields) for p in written] == [{"jobs.count": 3}]
