"""Tests for PoolRegistry."""

import json

import pytest
from pydantic import ValidationError

from weighted_pool.api.registry import PoolRegistry
from tests.helpers import E18, make_pool

POOLS_DOCUMENT = {
    "pools": {
        "lst": {
            "assets": ["steth", "reth"],
            "weights": [str(E18 // 2), str(E18 // 2)],
            "amplification": str(10 * E18),
            "rates": [str(E18), str(11 * E18 // 10)],
            "balances": [str(110 * E18), str(100 * E18)],
            "feeRate": str(3 * 10**14),
            "staking": "staking",
        },
        "empty": {
            "assets": ["a", "b", "c"],
            "weights": [str(E18 // 2), str(E18 // 4), str(E18 // 4)],
            "amplification": str(E18),
        },
    }
}


class TestPoolRegistry:
    """Pool lookup by id."""

    def test_empty(self):
        registry = PoolRegistry()
        assert len(registry) == 0
        assert registry.ids() == []
        assert registry.get("main") is None

    def test_add_and_get(self):
        pool = make_pool()
        registry = PoolRegistry()
        registry.add("main", pool)
        assert registry.get("main") is pool
        assert len(registry) == 1

    def test_ids_sorted(self):
        registry = PoolRegistry({"b": make_pool(), "a": make_pool()})
        assert registry.ids() == ["a", "b"]

    def test_add_replaces(self):
        first, second = make_pool(), make_pool()
        registry = PoolRegistry({"main": first})
        registry.add("main", second)
        assert registry.get("main") is second
        assert len(registry) == 1


class TestPoolsFile:
    """Loading pools from a JSON document."""

    def test_load_json(self):
        registry = PoolRegistry()
        registry.load_json(POOLS_DOCUMENT)
        assert registry.ids() == ["empty", "lst"]

        lst = registry.get("lst")
        assert lst.supply > 0
        assert lst.virtual_balance(0) == 110 * E18
        assert lst.virtual_balance(1) == 110 * E18
        assert lst.fee_rate == 3 * 10**14
        assert lst.staking == "staking"
        assert registry.get("empty").supply == 0

    def test_load_file(self, tmp_path):
        path = tmp_path / "pools.json"
        path.write_text(json.dumps(POOLS_DOCUMENT))
        registry = PoolRegistry()
        registry.load_file(path)
        assert len(registry) == 2

    def test_loaded_pool_quotes(self):
        registry = PoolRegistry()
        registry.load_json(POOLS_DOCUMENT)
        assert registry.get("lst").get_dy(0, 1, E18) > 0

    def test_malformed_document(self):
        registry = PoolRegistry()
        with pytest.raises(ValidationError):
            registry.load_json({"pools": {"bad": {"assets": ["a", "b"], "weights": ["-1", "1"]}}})
        assert len(registry) == 0
