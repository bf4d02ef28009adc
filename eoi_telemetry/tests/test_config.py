import json
import logging

import pytest

from eoi_telemetry.config import ConfigManager, PipelineSettings, configure_logging
from eoi_telemetry.exceptions import ConfigurationError

_ENV = ('CAN_ADAPTER', 'CAN_CHANNEL', 'CAN_INTERFACE', 'CAN_BITRATE',
        'TELEMETRY_TOPOLOGY', 'TELEMETRY_TTL', 'LOG_LEVEL')


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)
    # keep the user's real config file out of the tests
    monkeypatch.setenv('HOME', str(tmp_path))
    return monkeypatch


def test_defaults(clean_env):
    cfg = ConfigManager()
    assert cfg.can_settings.adapter_type == 'socketcan'
    assert cfg.can_settings.channel == 'vcan0'
    assert cfg.pipeline_settings.topology == 'collector'
    assert cfg.pipeline_settings.stale_ttl == 5.0
    assert cfg.pipeline_settings.collector_capacity == 100
    assert cfg.pipeline_settings.render_period == 0.1
    assert cfg.validate() == []


def test_environment_overrides(clean_env):
    clean_env.setenv('CAN_CHANNEL', 'can1')
    clean_env.setenv('CAN_BITRATE', '500')
    clean_env.setenv('TELEMETRY_TOPOLOGY', 'channel')
    clean_env.setenv('TELEMETRY_TTL', '2.5')
    clean_env.setenv('LOG_LEVEL', 'debug')
    cfg = ConfigManager()
    assert cfg.can_settings.channel == 'can1'
    assert cfg.can_settings.bitrate == 500
    assert cfg.pipeline_settings.topology == 'channel'
    assert cfg.pipeline_settings.stale_ttl == 2.5
    assert cfg.app_settings.log_level == 'DEBUG'


def test_invalid_environment_value_is_ignored(clean_env):
    clean_env.setenv('CAN_BITRATE', 'fast')
    cfg = ConfigManager()
    assert cfg.can_settings.bitrate == 1000


def test_file_overrides_environment(clean_env, tmp_path):
    clean_env.setenv('CAN_CHANNEL', 'can1')
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({
        'can_settings': {'channel': 'can7', 'adapter_type': 'sim'},
        'pipeline_settings': {'channel_policy': 'drop', 'collector_capacity': '50', 'bogus': 1},
    }))
    cfg = ConfigManager(config_file=str(path))
    assert cfg.can_settings.channel == 'can7'
    assert cfg.can_settings.adapter_type == 'sim'
    assert cfg.pipeline_settings.channel_policy == 'drop'
    assert cfg.pipeline_settings.collector_capacity == 50


def test_malformed_file_keeps_defaults(clean_env, tmp_path):
    path = tmp_path / 'config.json'
    path.write_text('{not json')
    cfg = ConfigManager(config_file=str(path))
    assert cfg.can_settings.channel == 'vcan0'


def test_save_and_reload(clean_env, tmp_path):
    cfg = ConfigManager()
    cfg.pipeline_settings.keepalive_enabled = True
    cfg.can_settings.channel = 'can3'
    path = tmp_path / 'nested' / 'saved.json'
    assert cfg.save_to_file(str(path))

    reloaded = ConfigManager(config_file=str(path))
    assert reloaded.pipeline_settings.keepalive_enabled is True
    assert reloaded.can_settings.channel == 'can3'
    assert reloaded.can_settings.interface is None


def test_validation_errors():
    settings = PipelineSettings(topology='mesh', collector_capacity=0, channel_policy='spill', stale_ttl=0)
    errors = settings.validate()
    assert len(errors) == 4


def test_require_valid_raises(clean_env):
    cfg = ConfigManager()
    cfg.can_settings.adapter_type = 'pcan'
    with pytest.raises(ConfigurationError):
        cfg.require_valid()


def test_configure_logging_sets_root_level(clean_env):
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging('warning')
        assert root.level == logging.WARNING
        configure_logging('nonsense')
        assert root.level == logging.INFO
    finally:
        root.setLevel(previous)
