"""Tests for environment-driven configuration."""

import importlib

import pytest

from smartwallet.core import config


@pytest.fixture
def reload_config(monkeypatch):
    """Reload the config module under a patched environment, then restore it."""

    def _reload(**env):
        for key in ("SMARTWALLET_NETWORK", "SMARTWALLET_CHAIN_ID", "SMARTWALLET_ENTRY_POINT",
                    "SMARTWALLET_DEFAULT_CALL_GAS", "SMARTWALLET_MAX_CALL_DEPTH"):
            monkeypatch.delenv(key, raising=False)
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return importlib.reload(config)

    yield _reload

    monkeypatch.undo()
    importlib.reload(config)


def _expect_configuration_error(reload_config, **env):
    # reload() re-creates the exception class, so compare by name
    with pytest.raises(Exception) as exc_info:
        reload_config(**env)
    assert type(exc_info.value).__name__ == "ConfigurationError"
    return exc_info.value


class TestDefaults:
    def test_devnet_defaults(self, reload_config):
        cfg = reload_config()
        assert cfg.NETWORK is cfg.NetworkType.DEVNET
        assert cfg.CHAIN_ID == 31337
        assert cfg.ENTRY_POINT_ADDRESS == "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"
        assert cfg.DEFAULT_CALL_GAS == 30_000_000
        assert cfg.MAX_CALL_DEPTH == 64

    @pytest.mark.parametrize("network,chain_id", [("mainnet", 1), ("testnet", 11155111), ("DEVNET", 31337)])
    def test_chain_id_follows_network(self, reload_config, network, chain_id):
        cfg = reload_config(SMARTWALLET_NETWORK=network)
        assert cfg.CHAIN_ID == chain_id


class TestOverrides:
    def test_hex_chain_id(self, reload_config):
        assert reload_config(SMARTWALLET_CHAIN_ID="0x89").CHAIN_ID == 137

    def test_entry_point_override(self, reload_config):
        address = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
        assert reload_config(SMARTWALLET_ENTRY_POINT=address).ENTRY_POINT_ADDRESS == address

    def test_depth_override(self, reload_config):
        assert reload_config(SMARTWALLET_MAX_CALL_DEPTH="16").MAX_CALL_DEPTH == 16

    def test_mainnet_chain_mismatch_is_logged(self, reload_config, caplog):
        with caplog.at_level("WARNING", logger="smartwallet.core.config"):
            reload_config(SMARTWALLET_NETWORK="mainnet", SMARTWALLET_CHAIN_ID="5")
        assert any(getattr(r, "event", None) == "config.chain_id_mismatch" for r in caplog.records)


class TestInvalidValues:
    def test_unknown_network(self, reload_config):
        error = _expect_configuration_error(reload_config, SMARTWALLET_NETWORK="moonnet")
        assert "SMARTWALLET_NETWORK" in str(error)

    def test_non_numeric_chain_id(self, reload_config):
        _expect_configuration_error(reload_config, SMARTWALLET_CHAIN_ID="one")

    def test_zero_chain_id(self, reload_config):
        _expect_configuration_error(reload_config, SMARTWALLET_CHAIN_ID="0")

    def test_short_entry_point(self, reload_config):
        _expect_configuration_error(reload_config, SMARTWALLET_ENTRY_POINT="0x1234")

    def test_non_hex_entry_point(self, reload_config):
        _expect_configuration_error(reload_config, SMARTWALLET_ENTRY_POINT="0x" + "zz" * 20)
