import logging

from eoi_telemetry import main as host
from eoi_telemetry.models.snapshot import TelemetrySnapshot


def test_cli_overrides_configuration(monkeypatch, tmp_path):
    monkeypatch.setenv('HOME', str(tmp_path))
    monkeypatch.delenv('CAN_ADAPTER', raising=False)
    args = host.parse_args(['--adapter', 'sim', '--topology', 'channel', '--keepalive', '--log-level', 'debug'])
    cfg = host.load_config(args)
    assert cfg.can_settings.adapter_type == 'sim'
    assert cfg.pipeline_settings.topology == 'channel'
    assert cfg.pipeline_settings.keepalive_enabled is True
    assert cfg.app_settings.log_level == 'DEBUG'


def test_snapshot_logger_throttles(caplog):
    clock = iter([0.0, 1.0, 6.0]).__next__
    snap_logger = host.SnapshotLogger(interval=5.0, clock=clock)
    snap = TelemetrySnapshot(clock=lambda: 0.0)
    snap.battery_state_of_charge.update(97.65)
    with caplog.at_level(logging.INFO, logger=host.logger.name):
        snap_logger(snap)
        snap_logger(snap)
        snap_logger(snap)
    lines = [r.getMessage() for r in caplog.records if r.name == host.logger.name]
    assert len(lines) == 2
    assert 'soc=97.6 %' in lines[0] or 'soc=97.7 %' in lines[0]
    assert 'net=- W' in lines[0]


def test_main_reports_invalid_configuration(monkeypatch, tmp_path):
    monkeypatch.setenv('HOME', str(tmp_path))
    monkeypatch.setenv('TELEMETRY_TTL', '-1')
    assert host.main(['--adapter', 'sim']) == 1


def test_snapshot_summary_shows_host_address():
    snap = TelemetrySnapshot(clock=lambda: 0.0)
    assert 'ip=-' in host.SnapshotLogger.summary(snap)
    snap.set_ip_address('192.168.4.17')
    assert 'ip=192.168.4.17' in host.SnapshotLogger.summary(snap)
