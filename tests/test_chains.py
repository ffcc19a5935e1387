"""Tests for the chain registry and settings."""

import pytest

from bridgeflow.chains import ChainID, ChainRegistry, ExecutionFamily
from bridgeflow.config import Settings, get_settings
from bridgeflow.errors import ConfigurationError


class TestChainRegistry:
    """Tests for chain lookup."""

    def test_families(self, registry):
        assert registry.family_of(ChainID.SOLANA) == ExecutionFamily.INSTRUCTION
        assert registry.family_of(ChainID.APTOS) == ExecutionFamily.MODULE
        for chain_id in (ChainID.POLYGON, ChainID.ETHEREUM, ChainID.BASE, ChainID.AVALANCHE, ChainID.ARBITRUM):
            assert registry.family_of(chain_id) == ExecutionFamily.ACCOUNT

    def test_family_wire_names(self):
        assert ExecutionFamily.ACCOUNT.value == "EVM"
        assert ExecutionFamily.INSTRUCTION.value == "SVM"
        assert ExecutionFamily.MODULE.value == "MVM"

    def test_get_by_plain_int(self, registry):
        chain = registry.get(11)
        assert chain.name == "Arbitrum"
        assert chain.native_currency.symbol == "ETH"

    def test_unknown_chain_raises(self, registry):
        with pytest.raises(ConfigurationError):
            registry.get(999)
        with pytest.raises(ConfigurationError):
            registry.get(None)

    def test_usdc_on_every_chain(self, registry):
        for chain in registry.all():
            assert registry.token_address(chain.chain_id)

    def test_missing_token_raises(self, registry):
        assert registry.token_address(ChainID.APTOS, "apt") == "0x1::aptos_coin::AptosCoin"
        with pytest.raises(ConfigurationError):
            registry.token_address(ChainID.SOLANA, "APT")

    def test_rpc_overrides(self):
        registry = ChainRegistry(rpc_overrides={ChainID.BASE: "https://base.example"})

        assert registry.get(ChainID.BASE).rpc_url == "https://base.example"
        assert registry.get(ChainID.ETHEREUM).rpc_url == "https://eth.llamarpc.com"
        # Shared defaults untouched
        assert ChainRegistry().get(ChainID.BASE).rpc_url == "https://mainnet.base.org"

    def test_from_settings(self):
        settings = Settings(solana_rpc="https://sol.example")

        registry = ChainRegistry.from_settings(settings)

        assert registry.get(ChainID.SOLANA).rpc_url == "https://sol.example"


class TestConfig:
    """Tests for configuration module."""

    def test_get_settings(self):
        """Test getting settings from the environment."""
        settings = get_settings()

        assert settings.api_key == "test-key"
        assert settings.api_base_url == "https://bridge.test"
        assert settings.poll_max_attempts == 200

    def test_settings_safe_dict_redacts_secrets(self):
        settings = Settings(api_key="secret", evm_main_private_key="0xkey")
        safe = settings.get_safe_dict()

        assert safe["api_key"] == "***"
        assert safe["keys"]["evm"] == "***"
        assert safe["keys"]["solana"] == "(not set)"
        assert "secret" not in str(safe)
        assert "0xkey" not in str(safe)

    def test_rpc_override_lookup(self):
        settings = Settings(aptos_rpc="https://aptos.example")

        assert settings.get_rpc_override("Aptos") == "https://aptos.example"
        assert settings.get_rpc_override("unknown") is None
