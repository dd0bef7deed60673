"""Tests for product and currency registries."""

from app.services.reference_data import CurrencyRegistry, ProductRegistry
from core.models import Currency, Product


def make_product(pair_id, **overrides):
    base, quote = pair_id.split("-")
    return Product(id=pair_id, base_currency=base, quote_currency=quote, **overrides)


class TestRegistryUpdate:
    """Tests for change detection."""

    def test_added_entries(self):
        registry = CurrencyRegistry()
        update = registry.update([Currency(id="BTC", name="Bitcoin")])

        assert [c.id for c in update.added] == ["BTC"]
        assert update.changes == ["BTC: added."]
        assert "BTC" in registry

    def test_unchanged_listing_reports_nothing(self):
        registry = CurrencyRegistry()
        registry.update([Currency(id="BTC")])
        update = registry.update([Currency(id="BTC")])

        assert not update
        assert update.changes == []

    def test_changed_field(self):
        registry = ProductRegistry()
        registry.update([make_product("BTC-USD")])
        update = registry.update([make_product("BTC-USD", trading_disabled=True)])

        assert [p.id for p in update.updated] == ["BTC-USD"]
        assert update.changes == ["BTC-USD: ['trading disabled'] changed from 'False' to 'True'"]
        assert registry.get("BTC-USD").trading_disabled is True


class TestProductFilter:
    """Tests for ProductRegistry.filter()."""

    def setup_method(self):
        self.registry = ProductRegistry()
        self.registry.update([
            make_product("ETH-USD"),
            make_product("BTC-USD"),
            make_product("BTC-EUR"),
            make_product("USDT-USD", stable_pair=True),
            make_product("DOGE-USD", trading_disabled=True),
            make_product("OLD-USD", status="delisted"),
        ])

    def test_include_quote(self):
        ids = [p.id for p in self.registry.filter(include=["EUR"])]
        assert ids == ["BTC-EUR"]

    def test_sorted_by_id(self):
        ids = [p.id for p in self.registry.filter(include=["USD"], stable_pairs=False, disabled_trades=False)]
        assert ids == ["BTC-USD", "ETH-USD"]

    def test_exclude_currency_or_pair(self):
        ids = [p.id for p in self.registry.filter(include=["USD"], exclude=["ETH", "USDT-USD"])]
        assert "ETH-USD" not in ids
        assert "USDT-USD" not in ids
        assert "BTC-USD" in ids

    def test_keep_everything(self):
        assert len(self.registry.filter()) == 6


class TestPrecision:
    """Tests for increment-based rounding."""

    def test_to_fixed(self):
        registry = ProductRegistry()
        registry.update([make_product("BTC-USD", base_increment=0.00000001, quote_increment=0.01)])

        assert registry.precision("BTC-USD") == (8, 2)
        assert registry.to_fixed("BTC-USD", 101.23456, "quote") == 101.23
        assert registry.to_fixed("BTC-USD", 0.123456789, "base") == 0.12345679

    def test_unknown_pair_uses_eight_places(self):
        assert ProductRegistry().to_fixed("NOPE-USD", 1.123456789, "quote") == 1.12345679
