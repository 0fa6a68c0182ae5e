"""Tests for polyclob.registry — chain / risk-class contract resolution."""

from unittest.mock import patch

import pytest

from polyclob.constants import AMOY, CONTRACTS, ORDER_DOMAIN_NAME, POLYGON
from polyclob.errors import InvalidContractForChain, UnsupportedChain
from polyclob.registry import get_contract_config, resolve


class TestGetContractConfig:
    def test_known_chains(self):
        assert get_contract_config(POLYGON)["exchange"] == CONTRACTS[POLYGON]["exchange"]
        assert get_contract_config(AMOY)["exchange"] == CONTRACTS[AMOY]["exchange"]

    @pytest.mark.parametrize("chain_id", [1, 0, "abc", None])
    def test_unsupported(self, chain_id):
        with pytest.raises(UnsupportedChain):
            get_contract_config(chain_id)


class TestResolve:
    def test_standard_exchange(self):
        info = resolve(POLYGON)
        assert info.verifying_contract == "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"
        assert info.domain_name == ORDER_DOMAIN_NAME
        assert info.domain_version == "1"
        assert info.chain_id == POLYGON

    def test_neg_risk_exchange(self):
        info = resolve(POLYGON, neg_risk=True)
        assert info.verifying_contract == "0xC5d563A36AE78145C45a50134d48A1215220f80a"

    def test_risk_classes_differ(self):
        assert resolve(AMOY).verifying_contract != resolve(AMOY, neg_risk=True).verifying_contract

    def test_unsupported_chain(self):
        with pytest.raises(UnsupportedChain):
            resolve(56)

    def test_missing_address(self):
        broken = {POLYGON: {"exchange": ""}}
        with patch.dict("polyclob.registry.CONTRACTS", broken, clear=True):
            with pytest.raises(InvalidContractForChain):
                resolve(POLYGON)

    def test_malformed_address(self):
        broken = {POLYGON: {"exchange": "0x1234", "neg_risk_exchange": "not-an-address"}}
        with patch.dict("polyclob.registry.CONTRACTS", broken, clear=True):
            with pytest.raises(InvalidContractForChain):
                resolve(POLYGON, neg_risk=True)
