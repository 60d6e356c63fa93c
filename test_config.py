#!/usr/bin/env python3
"""
Test suite for configuration system.

Tests configuration loading, validation, environment variable overrides,
and fail-fast behavior.
"""

import os
import tempfile

import pytest
import yaml

from smartstock import config
from smartstock.config_models import DEFAULT_PORTFOLIO_PROMPT, LedgerConfig


@pytest.fixture(autouse=True)
def reset_config(monkeypatch):
    """Every test starts without a cached config or SMARTSTOCK_* overrides."""
    for env_name in config.ENV_OVERRIDES:
        monkeypatch.delenv(env_name, raising=False)
    config._config = None
    yield
    config._config = None


def write_config(content: str) -> str:
    handle = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False)
    with handle:
        handle.write(content)
    return handle.name


def test_config_loading():
    """A full config file is loaded and cached."""
    print("\n🧪 Test 1: Config Loading")
    path = write_config(
        "user_id: alice\n"
        "storage:\n"
        "  backend: hybrid\n"
        "  gcp:\n"
        "    bucket_name: my-ledger\n"
        "prices:\n"
        "  default_suffix: .TWO\n"
        "ai:\n"
        "  model: gpt-4.1\n"
    )
    try:
        cfg = config.load_config(path)

        assert isinstance(cfg, LedgerConfig)
        assert cfg.user_id == "alice"
        assert cfg.storage.backend == "hybrid"
        assert cfg.storage.gcp.bucket_name == "my-ledger"
        assert cfg.prices.default_suffix == ".TWO"
        assert cfg.ai.model == "gpt-4.1"
        assert config.get_config() is cfg
        assert config.get_user_id() == "alice"
        assert config.get_storage_backend() == "hybrid"
        assert config.get_ai_model() == "gpt-4.1"
        print("   ✅ Config loaded successfully")
    finally:
        os.remove(path)


def test_empty_file_uses_defaults():
    """An empty config file is valid; every section has defaults."""
    print("\n🧪 Test 2: Defaults")
    path = write_config("")
    try:
        cfg = config.load_config(path)

        assert cfg.user_id == "default"
        assert cfg.storage.backend == "local"
        assert cfg.storage.local.data_dir == "."
        assert cfg.prices.max_price == 100000
        assert cfg.ai.portfolio_prompt == DEFAULT_PORTFOLIO_PROMPT
        assert config.get_log_level() == "INFO"
        print("   ✅ Defaults applied")
    finally:
        os.remove(path)


def test_env_overrides(monkeypatch):
    """SMARTSTOCK_* variables win over the file."""
    print("\n🧪 Test 3: Environment Variable Overrides")
    path = write_config("user_id: alice\nstorage:\n  backend: local\n")
    monkeypatch.setenv("SMARTSTOCK_USER_ID", "bob")
    monkeypatch.setenv("SMARTSTOCK_STORAGE_BACKEND", "gcp")
    monkeypatch.setenv("SMARTSTOCK_GCP_BUCKET", "override-bucket")
    monkeypatch.setenv("SMARTSTOCK_LOG_LEVEL", "DEBUG")
    try:
        cfg = config.load_config(path)

        assert cfg.user_id == "bob"
        assert cfg.storage.backend == "gcp"
        assert cfg.storage.gcp.bucket_name == "override-bucket"
        assert cfg.logging.level == "DEBUG"
        print("   ✅ Overrides applied")
    finally:
        os.remove(path)


def test_missing_file_fails_fast():
    print("\n🧪 Test 4: Missing Config File")
    with pytest.raises(FileNotFoundError):
        config.load_config("/nonexistent/config.yaml")


@pytest.mark.parametrize("content", [
    "storage:\n  backend: dropbox\n",
    "user_id: ../../etc\n",
    "storage:\n  gcp:\n    bucket_name: ab\n",
    "prices:\n  max_price: -1\n",
    "logging:\n  level: LOUD\n",
    "- just\n- a list\n",
])
def test_invalid_values_rejected(content):
    """Validation errors surface as ValueError."""
    path = write_config(content)
    try:
        with pytest.raises(ValueError):
            config.load_config(path)
    finally:
        os.remove(path)


def test_invalid_yaml_syntax():
    path = write_config("storage: [unclosed\n")
    try:
        with pytest.raises(yaml.YAMLError):
            config.load_config(path)
    finally:
        os.remove(path)


def test_reload_config_reads_file_again():
    path = write_config("user_id: first\n")
    try:
        assert config.load_config(path).user_id == "first"

        with open(path, "w") as f:
            f.write("user_id: second\n")

        assert config.load_config(path).user_id == "first"
        assert config.reload_config(path).user_id == "second"
    finally:
        os.remove(path)


def test_example_config_is_valid():
    """The shipped config.yaml.example loads cleanly."""
    example = os.path.join(os.path.dirname(os.path.abspath(__file__)), "config.yaml.example")
    cfg = config.load_config(example)
    assert cfg.storage.backend == "local"
