"""Configuration loading, validation and environment overrides."""
import json

import pytest

from headfit.core import config_loader
from headfit.core.config_file import find_config_path, read_config_file
from headfit.core.config_loader import (
    TrackingConfig,
    apply_env_overrides,
    get_config,
    load_config,
)


def _write(tmp_path, data, name="tracking_config.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_defaults_are_valid():
    config = TrackingConfig()
    config.validate()
    assert config.kalman.position.process_noise == 4.0
    assert config.kalman.position.measurement_noise == 0.015
    assert config.kalman.rotation.process_noise == 3.5
    assert config.kalman.scale.measurement_noise == 0.025
    assert config.confidence.threshold == 0.5
    assert config.loss.lost_timeout_ms == 1000.0


def test_load_merges_over_defaults(tmp_path):
    path = _write(tmp_path, {
        "kalman": {"position": {"process_noise": 1.5}},
        "confidence": {"stabilization_frames": 8},
        "landmarks": {"jitter_sample": [1, 33, 263]},
        "calibration": {"product_multipliers": {"helmet": 1.2}},
    })
    config = load_config(path)

    assert config.kalman.position.process_noise == 1.5
    assert config.kalman.position.measurement_noise == 0.015
    assert config.confidence.stabilization_frames == 8
    assert config.landmarks.jitter_sample == (1, 33, 263)
    assert config.calibration.product_multipliers["helmet"] == 1.2
    assert config.calibration.product_multipliers["glasses"] == 0.7
    assert config.config_path == path


def test_unknown_key_rejected(tmp_path):
    with pytest.raises(ValueError, match="kalman.position.gain"):
        load_config(_write(tmp_path, {"kalman": {"position": {"gain": 1.0}}}))


def test_property_names_are_not_config_keys():
    with pytest.raises(ValueError):
        TrackingConfig.from_dict({"config_path": "x"})


def test_out_of_range_rejected(tmp_path):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, {"confidence": {"threshold": 1.5}}))
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, {"calibration": {"min_scale": 0.02}}))
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, {"kalman": {"scale": {"measurement_noise": 0.0}}}))


def test_missing_explicit_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.json")


def test_malformed_json_raises(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        read_config_file(path)

    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        read_config_file(path)


def test_to_dict_round_trip():
    config = TrackingConfig()
    config.transform.mirror_x = False
    config.loss.max_missed_frames = 12
    data = json.loads(json.dumps(config.to_dict()))
    assert TrackingConfig.from_dict(data) == config


def test_env_config_path(tmp_path, monkeypatch):
    path = _write(tmp_path, {"loss": {"max_missed_frames": 7}}, name="custom.json")
    monkeypatch.setenv("HEADFIT_CONFIG", str(path))
    assert find_config_path() == path
    assert load_config().loss.max_missed_frames == 7


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("HEADFIT_LOG_LEVEL", "debug")
    monkeypatch.setenv("HEADFIT_CONFIDENCE_THRESHOLD", "0.7")
    monkeypatch.setenv("HEADFIT_LOST_TIMEOUT_MS", "1500")
    config = apply_env_overrides(TrackingConfig())
    assert config.logging.level == "DEBUG"
    assert config.confidence.threshold == 0.7
    assert config.loss.lost_timeout_ms == 1500.0


def test_bad_env_overrides_ignored(monkeypatch):
    monkeypatch.setenv("HEADFIT_CONFIDENCE_THRESHOLD", "high")
    monkeypatch.setenv("HEADFIT_LOST_TIMEOUT_MS", "-5")
    config = apply_env_overrides(TrackingConfig())
    assert config.confidence.threshold == 0.5
    assert config.loss.lost_timeout_ms == 1000.0


def test_get_config_singleton(tmp_path, monkeypatch):
    monkeypatch.setattr(config_loader, "_config_instance", None)
    path = _write(tmp_path, {"loss": {"max_missed_frames": 9}})

    first = get_config(path)
    assert get_config() is first
    assert first.loss.max_missed_frames == 9

    path.write_text(json.dumps({"loss": {"max_missed_frames": 4}}), encoding="utf-8")
    assert get_config(path, reload=True).loss.max_missed_frames == 4
