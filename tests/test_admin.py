"""Tests for the admin console panels."""
from datetime import datetime, timezone

import pytest

from storefront.admin import AdminConsole, format_cents, slugify
from storefront.admin.analytics import summarize_orders
from storefront.backend import BackendError
from storefront.config import NOT_CONFIGURED


@pytest.fixture
def admin_tables():
    return {
        "app_user_roles": [
            {"user_id": "admin_1", "role": "admin"},
            {"user_id": "user_1", "role": "customer"},
        ],
        "products": [
            {
                "id": "p1", "name": "Linen Shirt", "slug": "linen-shirt", "status": "active",
                "price_cents": 4900, "currency": "USD", "inventory_count": 6, "category_id": "c1",
                "categories": {"id": "c1", "name": "Apparel", "slug": "apparel", "description": None},
                "created_at": "2026-09-01T10:00:00+00:00",
            },
            {
                "id": "p2", "name": "Gift Card", "slug": "gift-card", "status": "draft",
                "price_cents": 2500, "currency": "USD", "inventory_count": 0, "category_id": None,
                "categories": None, "created_at": "2026-10-01T10:00:00+00:00",
            },
        ],
        "categories": [
            {"id": "c1", "name": "Apparel", "slug": "apparel", "description": None, "position": 1},
        ],
        "admin_order_summary": [
            {"id": "o1", "status": "pending", "total_cents": 6000, "currency": "USD",
             "placed_at": "2026-10-01T09:00:00+00:00", "email": "a@example.com", "item_count": 2},
            {"id": "o2", "status": "fulfilled", "total_cents": 2500, "currency": "USD",
             "placed_at": "2026-10-05T09:00:00+00:00", "email": "b@example.com", "item_count": 1},
            {"id": "o3", "status": "processing", "total_cents": 1000, "currency": "USD",
             "placed_at": "2026-10-07T09:00:00+00:00", "item_count": 1},
        ],
        "settings": [
            {"key": "hero_banner", "value": {"title": "Summer sale"}, "description": "Homepage hero"},
        ],
        "media": [],
    }


@pytest.fixture
def admin_backend(fake_backend_cls, admin_tables):
    return fake_backend_cls(tables=admin_tables)


@pytest.fixture
def console(admin_backend):
    return AdminConsole(admin_backend)


def test_slugify():
    assert slugify("  Summer Hats & Caps ") == "summer-hats-caps"


def test_format_cents():
    assert format_cents(123456) == "USD 1,234.56"
    assert format_cents(500, "EUR") == "EUR 5.00"


class TestAdminSession:
    @pytest.mark.asyncio
    async def test_admin_role(self, console):
        assert await console.session.refresh("admin_1") == "admin"
        assert console.session.is_admin

    @pytest.mark.asyncio
    async def test_customer_role(self, console):
        assert await console.session.refresh("user_1") == "customer"
        assert not console.session.is_admin

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_role(self, console):
        assert await console.session.refresh("stranger") is None
        assert not console.session.is_admin

    @pytest.mark.asyncio
    async def test_lookup_failure(self, console, admin_backend):
        admin_backend.errors["select_one"] = BackendError("permission denied")
        assert await console.session.refresh("admin_1") is None
        assert console.session.error == "permission denied"

    @pytest.mark.asyncio
    async def test_disabled_console(self):
        console = AdminConsole(None)
        assert await console.session.refresh("admin_1") is None
        assert console.session.error == NOT_CONFIGURED
        assert not await console.catalog.load()
        assert console.catalog.error == NOT_CONFIGURED


class TestCatalogAdmin:
    @pytest.mark.asyncio
    async def test_load_groups_by_category(self, console):
        assert await console.catalog.load()
        groups = dict(console.catalog.grouped_products())
        assert [p.id for p in groups["Apparel"]] == ["p1"]
        assert [p.id for p in groups["Uncategorized"]] == ["p2"]
        assert [c.name for c in console.catalog.categories] == ["Apparel"]

    @pytest.mark.asyncio
    async def test_adjust_inventory(self, console, admin_backend):
        await console.catalog.load()
        admin_backend.rpc_results["admin_adjust_inventory"] = [{"id": "p1", "inventory_count": 9}]

        product = await console.catalog.adjust_inventory("p1", "3", reason="Restock")

        assert product.inventory_count == 9
        assert console.catalog.get("p1").inventory_count == 9
        assert console.catalog.message == "Inventory adjusted. New quantity: 9"
        _, name, params = admin_backend.calls_for("rpc")[0]
        assert name == "admin_adjust_inventory"
        assert params["p_quantity_delta"] == 3
        assert params["p_reason"] == "Restock"
        assert params["p_context"] == {"source": "admin-console"}

    @pytest.mark.asyncio
    async def test_adjust_inventory_rejects_non_number(self, console, admin_backend):
        assert await console.catalog.adjust_inventory("p1", "lots") is None
        assert console.catalog.error == "Please provide a valid number"
        assert admin_backend.calls_for("rpc") == []

    @pytest.mark.asyncio
    async def test_adjust_inventory_without_record(self, console):
        assert await console.catalog.adjust_inventory("p1", -2) is None
        assert console.catalog.error == "Inventory update did not return a product record"

    @pytest.mark.asyncio
    async def test_toggle_status(self, console, admin_backend):
        await console.catalog.load()
        assert await console.catalog.toggle_status("p1") == "draft"
        assert console.catalog.message == "Linen Shirt is now draft"
        assert admin_backend.calls_for("update")[0][1:] == ("products", {"status": "draft"}, {"id": "p1"})
        assert await console.catalog.toggle_status("p2") == "active"

    @pytest.mark.asyncio
    async def test_toggle_failure_keeps_status(self, console, admin_backend):
        await console.catalog.load()
        admin_backend.errors["update"] = BackendError("row level security")
        assert await console.catalog.toggle_status("p1") is None
        assert console.catalog.get("p1").status == "active"
        assert console.catalog.error == "row level security"
        assert console.catalog.message is None

    @pytest.mark.asyncio
    async def test_create_category(self, console, admin_backend):
        assert await console.catalog.create_category(" Home Goods ", "Kitchen and decor")
        _, table, values = admin_backend.calls_for("insert")[0]
        assert table == "categories"
        assert values == {"name": "Home Goods", "slug": "home-goods", "description": "Kitchen and decor"}
        assert console.catalog.message == "Category created successfully"
        assert len(console.catalog.categories) == 2

    @pytest.mark.asyncio
    async def test_create_category_requires_name(self, console, admin_backend):
        assert not await console.catalog.create_category("   ")
        assert console.catalog.error == "Category name is required"
        assert admin_backend.calls_for("insert") == []


class TestOrderAdmin:
    @pytest.mark.asyncio
    async def test_load_newest_first(self, console):
        assert await console.orders.load()
        assert [o.id for o in console.orders.orders] == ["o3", "o2", "o1"]
        assert console.orders.revenue_total == 9500
        assert console.orders.open_orders == 2

    @pytest.mark.asyncio
    async def test_update_status(self, console, admin_backend):
        await console.orders.load()
        admin_backend.rpc_results["admin_update_order_status"] = {"id": "o1", "status": "fulfilled"}
        assert await console.orders.update_status("o1", "fulfilled", "  shipped via UPS ")
        _, name, params = admin_backend.calls_for("rpc")[0]
        assert name == "admin_update_order_status"
        assert params == {"p_order_id": "o1", "p_status": "fulfilled", "p_notes": "shipped via UPS"}
        assert console.orders.message == "Order status updated to fulfilled"

    @pytest.mark.asyncio
    async def test_update_status_rejects_unknown_status(self, console, admin_backend):
        assert not await console.orders.update_status("o1", "lost")
        assert admin_backend.calls_for("rpc") == []

    @pytest.mark.asyncio
    async def test_update_status_failure(self, console, admin_backend):
        admin_backend.errors["rpc"] = BackendError("order is already refunded")
        assert not await console.orders.update_status("o1", "cancelled")
        assert console.orders.error == "order is already refunded"

    @pytest.mark.asyncio
    async def test_load_detail(self, console, admin_backend):
        admin_backend.tables["orders"] = [{
            "id": "o1", "status": "pending", "total_cents": 6000, "currency": "USD",
            "placed_at": "2026-10-01T09:00:00+00:00", "notes": None,
            "order_items": [{
                "id": 1, "quantity": 2, "unit_price_cents": 3000, "subtotal_cents": 6000,
                "product_id": "p1", "products": {"id": "p1", "name": "Linen Shirt", "slug": "linen-shirt"},
            }],
        }]
        detail = await console.orders.load_detail("o1")
        assert detail.order_items[0].product_name == "Linen Shirt"
        assert console.orders.selected is detail

    @pytest.mark.asyncio
    async def test_load_detail_missing(self, console, admin_backend):
        admin_backend.tables["orders"] = []
        assert await console.orders.load_detail("nope") is None
        assert console.orders.error is None


class TestContentAdmin:
    @pytest.mark.asyncio
    async def test_load(self, console):
        assert await console.content.load()
        assert console.content.get_setting("hero_banner").value == {"title": "Summer sale"}

    @pytest.mark.asyncio
    async def test_save_setting(self, console, admin_backend):
        assert await console.content.save_setting("hero_banner", '{"title": "Autumn sale"}')
        _, table, values = admin_backend.calls_for("upsert")[0]
        assert table == "settings"
        assert values["value"] == {"title": "Autumn sale"}
        assert console.content.message == "Setting saved successfully"
        assert console.content.get_setting("hero_banner").value == {"title": "Autumn sale"}

    @pytest.mark.asyncio
    async def test_invalid_json_never_reaches_backend(self, console, admin_backend):
        assert not await console.content.save_setting("hero_banner", "{title: oops")
        assert console.content.error == "Setting JSON is invalid"
        assert admin_backend.calls_for("upsert") == []

    @pytest.mark.asyncio
    async def test_upload_media(self, console, admin_backend):
        admin_backend.function_results["admin-upload-media"] = {
            "uploadUrl": "https://storage.example.com/signed/abc",
            "path": "products/p1/photo.png",
        }
        path = await console.content.upload_media("p1", "photo.png", b"\x89PNG", alt_text=" Front ")
        assert path == "products/p1/photo.png"
        _, name, body = admin_backend.calls_for("invoke_function")[0]
        assert name == "admin-upload-media"
        assert body == {"productId": "p1", "fileName": "photo.png", "contentType": "image/png", "altText": "Front"}
        assert admin_backend.uploads == [("https://storage.example.com/signed/abc", b"\x89PNG", "image/png")]
        assert console.content.message == "Media asset uploaded and registered"

    @pytest.mark.asyncio
    async def test_upload_without_url(self, console, admin_backend):
        assert await console.content.upload_media("p1", "photo.png", b"data") is None
        assert console.content.error == "Upload URL was not returned from the server"
        assert admin_backend.uploads == []

    @pytest.mark.asyncio
    async def test_upload_requires_product(self, console, admin_backend):
        assert await console.content.upload_media("", "photo.png", b"data") is None
        assert console.content.error == "Provide a product ID to associate the media with"
        assert admin_backend.calls_for("invoke_function") == []


class TestAnalytics:
    def test_summarize_orders_groups_by_utc_day(self):
        by_status, daily = summarize_orders([
            {"status": "fulfilled", "total_cents": 1000, "placed_at": "2026-10-18T12:00:00+00:00"},
            {"status": "fulfilled", "total_cents": 500, "placed_at": "2026-10-18T22:00:00-05:00"},
            {"status": "pending", "total_cents": 250, "placed_at": "2026-10-19T01:00:00+00:00"},
        ])
        assert by_status == {"fulfilled": 1500, "pending": 250}
        assert [(d.date, d.total_cents) for d in daily] == [("2026-10-18", 1000), ("2026-10-19", 750)]

    @pytest.mark.asyncio
    async def test_load_report(self, console, admin_backend):
        admin_backend.tables["orders"] = [
            {"status": "fulfilled", "total_cents": 1000, "placed_at": "2026-10-18T12:00:00+00:00"},
            {"status": "fulfilled", "total_cents": 9999, "placed_at": "2026-08-01T12:00:00+00:00"},
        ]
        admin_backend.tables["inventory_events"] = [
            {"id": f"e{i}", "product_id": "p1", "quantity_delta": 1, "reason": "Restock",
             "resulting_quantity": i, "created_at": f"2026-10-{10 + i:02d}T00:00:00+00:00"}
            for i in range(7)
        ]
        admin_backend.tables["admin_audit_logs"] = [
            {"id": 1, "action": "order_status_changed", "target_table": "orders", "target_id": "o1",
             "created_at": "2026-10-18T00:00:00+00:00", "metadata": None},
        ]

        report = await console.analytics.load(now=datetime(2026, 10, 19, tzinfo=timezone.utc))

        assert report.revenue_by_status == {"fulfilled": 1000}
        assert report.revenue_total == 1000
        assert len(report.inventory_events) == 5
        assert report.inventory_events[0].id == "e6"
        assert report.audit_log[0].metadata == {}
