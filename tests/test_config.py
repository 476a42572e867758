import argparse

import numpy as np
import pytest

import sarima_forecaster_src.config_utils as cu
from config import ConfigurationError, ConfigurationManager, deep_merge
from sarima_forecaster_src.config_utils import WorkflowConfig, get_config_value, initialize_config
from sarima_forecaster_src.parsing_utils import (
    parse_candidate_specs,
    parse_exponent_grid,
    parse_horizons,
    validate_log_level,
)


def test_packaged_defaults_are_valid():
    manager = ConfigurationManager()
    assert manager.validate_configuration() == {}
    assert manager.get("diagnostics.lags") == 22
    assert manager.get("forecast.horizons") == [12, 24]
    assert manager.get("missing.key", "fallback") == "fallback"
    assert len(manager.get("model.candidates")) == 3


def test_user_file_is_deep_merged(tmp_path):
    cfg = tmp_path / "user.yaml"
    cfg.write_text("pruning:\n  threshold: 1.5\nforecast:\n  horizons: [6]\n", encoding="utf-8")
    manager = ConfigurationManager(cfg)
    assert manager.get("pruning.threshold") == 1.5
    assert manager.get("pruning.enabled") is True
    assert manager.get("forecast.horizons") == [6]
    assert manager.loaded_configs[-1] == str(cfg)


def test_missing_or_malformed_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        ConfigurationManager(tmp_path / "nope.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigurationManager(bad)


def test_validation_reports_bad_sections(tmp_path):
    cfg = tmp_path / "bad_values.yaml"
    cfg.write_text(
        "differencing:\n  period: 1\ndiagnostics:\n  lags: 0\nspectral:\n  significance_level: 0.2\n"
        "forecast:\n  horizons: [12, -1]\nmodel:\n  candidates: []\n",
        encoding="utf-8",
    )
    errors = ConfigurationManager(cfg).validate_configuration()
    assert set(errors) == {"differencing", "diagnostics", "spectral", "forecast", "model"}


def test_deep_merge_keeps_untouched_keys():
    target = {"a": {"b": 1, "c": 2}, "d": 3}
    deep_merge(target, {"a": {"b": 10}})
    assert target == {"a": {"b": 10, "c": 2}, "d": 3}


def test_get_config_value_priority(tmp_path, monkeypatch):
    cfg = tmp_path / "user.yaml"
    cfg.write_text("diagnostics:\n  lags: 30\n", encoding="utf-8")
    monkeypatch.setattr(cu, "config_manager", ConfigurationManager(cfg))

    args = argparse.Namespace(lags=12, threshold=None)
    assert get_config_value("diagnostics.lags", 22, args, "lags") == 12
    assert get_config_value("diagnostics.lags", 22, args, "threshold") == 30
    assert get_config_value("diagnostics.unknown", 5, args, "threshold") == 5

    monkeypatch.setattr(cu, "config_manager", None)
    assert get_config_value("diagnostics.lags", 22) == 22


def test_workflow_config_resolves_cli_overrides(monkeypatch):
    monkeypatch.setattr(cu, "config_manager", None)
    initialize_config()
    args = argparse.Namespace(
        candidates=["(0,1,1)x(0,1,1)12"], exponents="0,1", d=None, D=1, period=None,
        train_start=None, train_end="2010-12", test_start=None, test_end=None,
        date_column=None, value_column=None, max_lag=None, no_prune=True, threshold=None,
        lags=None, horizons="24,12", output_dir=None, figures=False,
    )
    cfg = WorkflowConfig.from_sources(args)
    assert [c.label for c in cfg.candidates] == ["(0,1,1)x(0,1,1)12"]
    assert cfg.exponent_grid.tolist() == [0.0, 1.0]
    assert cfg.d == 1 and cfg.D == 1 and cfg.s == 12
    assert cfg.prune is False
    assert cfg.horizons == [12, 24]
    assert cfg.train_end == "2010-12"
    assert cfg.diagnostic_lags == 22
    assert len(WorkflowConfig.from_sources(None).candidates) == 3


def test_parsers():
    assert np.allclose(parse_exponent_grid("-1:1:0.5"), [-1.0, -0.5, 0.0, 0.5, 1.0])
    assert len(parse_exponent_grid(None)) == 41
    assert parse_horizons("24,12,12") == [12, 24]
    with pytest.raises(ValueError):
        parse_horizons("0")
    specs = parse_candidate_specs(["(1,1,0)", "(1,1,0)", {"spec": "(0,1,1)x(0,1,1)12"}])
    assert [s.label for s in specs] == ["(1,1,0)", "(0,1,1)x(0,1,1)12"]
    with pytest.raises(ValueError):
        parse_candidate_specs([])
    assert validate_log_level("debug") == "DEBUG"
    with pytest.raises(ValueError):
        validate_log_level("LOUD")


def test_fitdf_is_read_from_config(tmp_path, monkeypatch):
    monkeypatch.setattr(cu, "config_manager", None)
    initialize_config()
    assert WorkflowConfig.from_sources(None).diagnostic_fitdf is None

    cfg = tmp_path / "fitdf.yaml"
    cfg.write_text("diagnostics:\n  fitdf: 0\n  lags: 22\n", encoding="utf-8")
    initialize_config(cfg)
    resolved = WorkflowConfig.from_sources(None)
    assert resolved.diagnostic_fitdf == 0
    assert resolved.diagnostic_lags == 22

    args = argparse.Namespace(fitdf=3)
    assert WorkflowConfig.from_sources(args).diagnostic_fitdf == 3

    bad = tmp_path / "bad_fitdf.yaml"
    bad.write_text("diagnostics:\n  fitdf: -1\n", encoding="utf-8")
    assert "diagnostics" in ConfigurationManager(bad).validate_configuration()
