"""Integration tests for the quote API."""

from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from fastapi.testclient import TestClient

from weighted_pool import __version__
from weighted_pool.api import endpoints
from weighted_pool.api import main as api_main
from weighted_pool.api.endpoints import get_registry
from weighted_pool.api.main import app, configure_logging
from weighted_pool.api.registry import PoolRegistry
from tests.helpers import E18, make_pool, seed_pool

EXAMPLE_POOLS = Path(__file__).parents[2] / "pools.example.json"


@pytest.fixture
def registry() -> PoolRegistry:
    """Registry with one seeded pool and one empty pool."""
    main = make_pool()
    seed_pool(main)
    return PoolRegistry({"main": main, "empty": make_pool()})


@pytest.fixture
def client(registry) -> Iterator[TestClient]:
    """Create a test client serving the test registry."""
    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestStateEndpoints:
    """Tests for health and pool state."""

    def test_health_check(self, client):
        """Health endpoint returns ok."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}

    def test_list_pools(self, client):
        """Pool ids come back sorted."""
        response = client.get("/pools")
        assert response.status_code == 200
        assert response.json() == ["empty", "main"]

    def test_pool_state(self, client):
        """State uses camelCase keys and decimal strings."""
        response = client.get("/pools/main")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "main"
        assert data["supply"] == str(400 * E18)
        assert data["vbSum"] == str(400 * E18)
        assert data["feeRate"] == "0"
        assert data["paused"] is False
        assert data["ramp"] is None
        assert len(data["assets"]) == 4
        first = data["assets"][0]
        assert first["virtualBalance"] == str(100 * E18)
        assert first["weight"] == str(E18 // 4)
        assert first["lowerBand"] == "0"

    def test_unknown_pool(self, client):
        """Unknown pool ids return 404."""
        response = client.get("/pools/missing")
        assert response.status_code == 404


class TestQuoteEndpoints:
    """Tests for the quote endpoints."""

    def test_swap_quote_matches_pool(self, client, registry):
        """Swap quote equals the pool's own quote."""
        response = client.post(
            "/pools/main/quote/swap",
            json={"assetIn": 0, "assetOut": 1, "amount": str(10 * E18)},
        )
        assert response.status_code == 200
        assert response.json() == {"amount": str(registry.get("main").get_dy(0, 1, 10 * E18))}

    def test_swap_exact_out_quote(self, client, registry):
        response = client.post(
            "/pools/main/quote/swap-exact-out",
            json={"assetIn": 2, "assetOut": 3, "amount": str(E18)},
        )
        assert response.status_code == 200
        amount = int(response.json()["amount"])
        assert amount == registry.get("main").get_dx(2, 3, E18)
        assert amount > E18

    def test_add_liquidity_quote(self, client, registry):
        amounts = [E18, 0, 2 * E18, 0]
        response = client.post(
            "/pools/main/quote/add-liquidity",
            json={"amounts": [str(a) for a in amounts]},
        )
        assert response.status_code == 200
        assert response.json() == {"amount": str(registry.get("main").get_add_lp(amounts))}

    def test_remove_liquidity_quote(self, client):
        """Balanced withdrawal of a quarter of supply pays a quarter of each asset."""
        response = client.post("/pools/main/quote/remove-liquidity", json={"shares": str(100 * E18)})
        assert response.status_code == 200
        assert response.json() == {"amounts": [str(25 * E18)] * 4}

    def test_remove_liquidity_single_quote(self, client, registry):
        response = client.post(
            "/pools/main/quote/remove-liquidity-single",
            json={"asset": 1, "shares": str(10 * E18)},
        )
        assert response.status_code == 200
        assert response.json() == {"amount": str(registry.get("main").get_remove_single_lp(1, 10 * E18))}

    def test_quotes_do_not_commit(self, client, registry):
        """Quoting leaves the pool untouched."""
        pool = registry.get("main")
        before = pool.ledger
        client.post("/pools/main/quote/swap", json={"assetIn": 0, "assetOut": 1, "amount": str(E18)})
        assert pool.ledger == before


class TestQuoteErrors:
    """Tests for rejected quotes."""

    def test_unknown_pool(self, client):
        response = client.post(
            "/pools/missing/quote/swap",
            json={"assetIn": 0, "assetOut": 1, "amount": "1"},
        )
        assert response.status_code == 404

    def test_index_out_of_range(self, client):
        response = client.post(
            "/pools/main/quote/swap",
            json={"assetIn": 0, "assetOut": 4, "amount": "1"},
        )
        assert response.status_code == 422

    def test_same_asset(self, client):
        """Malformed arguments map to ValueError."""
        response = client.post(
            "/pools/main/quote/swap",
            json={"assetIn": 1, "assetOut": 1, "amount": str(E18)},
        )
        assert response.status_code == 422
        assert response.json()["error"] == "ValueError"

    def test_empty_pool(self, client):
        """Pool errors carry their class name."""
        response = client.post(
            "/pools/empty/quote/swap",
            json={"assetIn": 0, "assetOut": 1, "amount": str(E18)},
        )
        assert response.status_code == 422
        assert response.json()["error"] == "InsufficientLiquidityError"

    @pytest.mark.parametrize("amount", ["-1", "abc", str(2**256)])
    def test_invalid_uint(self, client, amount):
        response = client.post(
            "/pools/main/quote/swap",
            json={"assetIn": 0, "assetOut": 1, "amount": amount},
        )
        assert response.status_code == 422


class TestLogging:
    def test_configure_logging(self):
        """Debug logging installs a structlog configuration."""
        configure_logging(debug=True)
        try:
            assert structlog.is_configured()
        finally:
            structlog.reset_defaults()


class TestPoolsFile:
    """Pools loaded at startup."""

    def test_startup_loads_pools_file(self, monkeypatch):
        """The example pools file is served once the app starts."""
        monkeypatch.setattr(api_main, "POOLS_FILE", str(EXAMPLE_POOLS))
        monkeypatch.setattr(endpoints, "DEFAULT_REGISTRY", PoolRegistry())

        with TestClient(app) as client:
            assert client.get("/pools").json() == ["lst-eth"]
            state = client.get("/pools/lst-eth").json()
            assert state["feeRate"] == str(3 * 10**14)
            assert int(state["supply"]) > 0

    def test_startup_without_pools_file(self, monkeypatch):
        monkeypatch.setattr(api_main, "POOLS_FILE", None)
        monkeypatch.setattr(endpoints, "DEFAULT_REGISTRY", PoolRegistry())

        with TestClient(app) as client:
            assert client.get("/pools").json() == []
