"""Tests for CLI commands."""

import json
from decimal import Decimal

import pytest
from typer.testing import CliRunner

from cart_copilot.bootstrap import DEFAULT_CATEGORIES, DEFAULT_STORES
from cart_copilot.main import app

runner = CliRunner()


@pytest.fixture
def cart(temp_data_dir):
    """Invoke the CLI in JSON mode against the temp data dir."""

    def _invoke(*args):
        return runner.invoke(app, ["--json", "--data-dir", str(temp_data_dir), *args])

    return _invoke


def payload(result):
    return json.loads(result.stdout)


class TestStartup:
    """Tests for the global callback."""

    def test_first_run_bootstraps(self, cart):
        """Any command seeds the default catalog first."""
        result = cart("store", "list")
        assert result.exit_code == 0
        assert len(payload(result)["data"]["stores"]) == len(DEFAULT_STORES)

    def test_bootstrap_command(self, cart):
        first = payload(cart("bootstrap"))
        assert first["data"]["bootstrapped"] is True
        assert first["data"]["category_count"] == len(DEFAULT_CATEGORIES)

        second = payload(cart("bootstrap"))
        assert second["data"]["bootstrapped"] is False
        assert second["data"]["store_count"] == len(DEFAULT_STORES)

    @pytest.mark.parametrize("content", ["{broken", "null", "[]"])
    def test_corrupt_data_is_fatal(self, cart, temp_data_dir, content):
        (temp_data_dir / "cart_copilot.json").write_text(content)

        result = cart("store", "list")
        assert result.exit_code == 1
        data = payload(result)
        assert data["success"] is False
        assert data["error_code"] == "PERSISTENCE_ERROR"

    def test_rich_output(self, temp_data_dir):
        result = runner.invoke(app, ["--data-dir", str(temp_data_dir), "category", "list"])
        assert result.exit_code == 0
        assert "Categories" in result.stdout


class TestStoreCommands:
    """Tests for store subcommands."""

    def test_add_and_remove(self, cart):
        added = payload(cart("store", "add", "Corner Market", "--address", "3 Oak"))
        assert added["data"]["store"]["address"] == "3 Oak"

        result = cart("store", "remove", "corner market")
        assert result.exit_code == 0

    def test_remove_unknown(self, cart):
        result = cart("store", "remove", "Nowhere")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "NOT_FOUND"


class TestCategoryCommands:
    """Tests for category subcommands."""

    def test_add_category(self, cart):
        result = cart("category", "add", "Garden", "--tax-rate", "0.0825", "--emoji", "🌱")
        assert result.exit_code == 0
        assert payload(result)["data"]["category"]["tax_rate"] == 0.0825

    def test_bad_tax_rate(self, cart):
        result = cart("category", "add", "Garden", "--tax-rate", "8.25")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "VALIDATION_ERROR"

    def test_remove_category_in_use(self, cart):
        cart("item", "add", "Sponges", "--price", "3", "--category", "Household")

        result = cart("category", "remove", "Household")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "VALIDATION_ERROR"


class TestItemCommands:
    """Tests for item subcommands."""

    def test_add_item(self, cart):
        result = cart("item", "add", "Paper Towels", "--price", "10", "--category", "Household")
        assert result.exit_code == 0

        item = payload(result)["data"]["item"]
        assert Decimal(item["tax"]) == Decimal("0.825")

    def test_add_item_uses_default_category(self, cart):
        item = payload(cart("item", "add", "Mystery"))["data"]["item"]
        assert item["category"] == "Other"

    def test_negative_price(self, cart):
        cart("item", "add", "Milk", "--price", "3.49", "--category", "Groceries")

        result = cart("item", "price", "Milk", "--", "-1")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "INVALID_PRICE"

    @pytest.mark.parametrize("bad_price", ["inf", "nan"])
    def test_non_finite_price(self, cart, bad_price):
        cart("item", "add", "Milk", "--price", "3.49", "--category", "Groceries")

        result = cart("item", "price", "Milk", bad_price)
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "INVALID_PRICE"

        data = payload(cart("item", "history", "Milk"))["data"]
        assert data["current_price"] == "3.49"
        assert data["price_history"] == []

    def test_add_with_non_finite_price(self, cart):
        result = cart("item", "add", "Milk", "--price", "inf", "--category", "Groceries")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "INVALID_PRICE"

    def test_zero_unit(self, cart):
        cart("item", "add", "Eggs", "--category", "Groceries")

        result = cart("item", "unit", "Eggs", "0")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "INVALID_UNIT"

    def test_price_history(self, cart):
        cart("item", "add", "Milk", "--price", "3.49", "--category", "Groceries")
        cart("item", "price", "Milk", "3.99")

        data = payload(cart("item", "history", "Milk"))["data"]
        assert data["current_price"] == "3.99"
        assert [h["price"] for h in data["price_history"]] == ["3.49"]

    def test_list_and_search(self, cart):
        cart("item", "add", "Milk", "--category", "Groceries", "--favorite")
        cart("item", "add", "Soap", "--category", "Household")

        assert payload(cart("item", "list"))["data"]["total_items"] == 2
        found = payload(cart("item", "list", "--search", "mil"))["data"]["items"]
        assert [i["name"] for i in found] == ["Milk"]
        favorites = payload(cart("item", "list", "--favorites"))["data"]["items"]
        assert [i["name"] for i in favorites] == ["Milk"]

    def test_scan_and_cancel(self, cart):
        cart("item", "add", "Milk", "--category", "Groceries")

        scanned = payload(cart("item", "scan", "Milk", "--upc", "012345678905"))
        assert scanned["data"]["item"]["upc"] == "012345678905"

        cancelled = cart("item", "scan", "Milk")
        assert cancelled.exit_code == 0
        assert payload(cancelled) == {"warning": "Scan cancelled"}

    def test_photo(self, cart, tmp_path):
        cart("item", "add", "Milk", "--category", "Groceries")
        photo = tmp_path / "milk.png"
        photo.write_bytes(b"\x89PNG")

        result = cart("item", "photo", "Milk", str(photo))
        assert result.exit_code == 0
        assert payload(result)["data"]["item"]["has_photo"] is True

    def test_show_unknown(self, cart):
        result = cart("item", "show", "Nothing")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "NOT_FOUND"


class TestTripCommands:
    """Tests for trip subcommands."""

    @pytest.fixture
    def trip_id(self, cart):
        cart("item", "add", "Paper Towels", "--price", "10.00", "--category", "Household")
        return payload(cart("trip", "new", "Costco", "--date", "2024-05-04"))["data"]["trip"]["id"]

    def test_trip_flow(self, cart, trip_id):
        """Add lines and read back exact totals."""
        added = payload(cart("trip", "add", trip_id, "Paper Towels", "--quantity", "2"))
        assert Decimal(added["data"]["line"]["total"]) == Decimal("21.65")

        cart("trip", "quick-add", trip_id, "Apples", "--price", "2.00", "--category", "Produce")

        detail = payload(cart("trip", "show", trip_id))["data"]["trip_detail"]
        assert detail["date"].startswith("2024-05-04")
        assert len(detail["items"]) == 2
        assert Decimal(detail["subtotal"]) == Decimal("22.00")
        assert Decimal(detail["tax"]) == Decimal("1.685")
        assert Decimal(detail["total"]) == Decimal("23.685")

    def test_zero_quantity(self, cart, trip_id):
        line = payload(cart("trip", "add", trip_id, "Paper Towels"))["data"]["line"]

        result = cart("trip", "qty", line["id"], "0")
        assert result.exit_code == 1
        assert payload(result)["error_code"] == "INVALID_QUANTITY"

    def test_remove_line_and_delete_trip(self, cart, trip_id):
        line = payload(cart("trip", "add", trip_id, "Paper Towels"))["data"]["line"]

        assert cart("trip", "remove-item", line["id"]).exit_code == 0
        assert payload(cart("trip", "show", trip_id))["data"]["trip_detail"]["items"] == []

        assert cart("trip", "delete", trip_id).exit_code == 0
        assert payload(cart("trip", "list"))["data"]["trips"] == []

    def test_list_trips(self, cart, trip_id):
        cart("trip", "add", trip_id, "Paper Towels")

        data = payload(cart("trip", "list"))["data"]
        assert data["total_trips"] == 1
        assert Decimal(data["total_spent"]) == Decimal("10.825")
