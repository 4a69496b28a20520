"""
Storefront MCP Server.

Exposes the store over stdio: catalog browsing, cart, checkout with a
confirmation-code gate before the order is placed, account sign-in and
order history, plus admin console tools for users holding the admin role.
"""
import asyncio
import json
import logging
import secrets
import time
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Awaitable, Callable

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .admin import AdminConsole, format_cents
from .config import load_config
from .output_sanitizer import redact_card_number, redact_email, sanitize_output
from .store import Store, cart_item_view, order_view, product_view

logger = logging.getLogger(__name__)

# Confirmation code TTL
_CONFIRMATION_TTL = 300  # 5 minutes

Handler = Callable[[dict], Awaitable[Any]]


def _generate_confirmation_code() -> str:
    """Generate a 6-character alphanumeric confirmation code."""
    return secrets.token_hex(3).upper()


def _schema(properties: dict | None = None, required: list[str] | None = None) -> dict:
    return {"type": "object", "properties": properties or {}, "required": required or []}


_CONFIRMATION_PROP = {
    "confirmation_code": {
        "type": "string",
        "description": "Code returned by the first call. Omit it to get a code; pass it to execute.",
    },
}


TOOLS = [
    # --- catalog ---
    Tool(
        name="list_products",
        description=(
            "List catalog products using the current filters. Any filter passed here "
            "is merged into the saved filters (search, category, price range, sort, tags)."
        ),
        inputSchema=_schema({
            "search_term": {"type": "string", "description": "Case-insensitive text matched against name and description"},
            "category": {"type": "string", "description": "Category name, or 'all'"},
            "min_price": {"type": "number"},
            "max_price": {"type": "number"},
            "sort": {"type": "string", "enum": ["featured", "price-asc", "price-desc", "newest"]},
            "tags": {"type": "array", "items": {"type": "string"}},
        }),
    ),
    Tool(
        name="get_product",
        description="Get one product (with variants) by slug or id.",
        inputSchema=_schema({"slug": {"type": "string", "description": "Product slug or id"}}, ["slug"]),
    ),
    Tool(
        name="refresh_catalog",
        description="Reload the catalog from the backend.",
        inputSchema=_schema(),
    ),
    # --- cart ---
    Tool(
        name="view_cart",
        description="Show cart lines, item count and subtotal.",
        inputSchema=_schema(),
    ),
    Tool(
        name="add_to_cart",
        description="Add a product (optionally a specific variant) to the cart.",
        inputSchema=_schema({
            "product": {"type": "string", "description": "Product slug or id"},
            "quantity": {"type": "integer", "default": 1},
            "variant_id": {"type": "string"},
        }, ["product"]),
    ),
    Tool(
        name="update_cart_item",
        description="Set the quantity of a cart line. A quantity of 0 removes it.",
        inputSchema=_schema({
            "item_id": {"type": "string", "description": "Cart line id from view_cart"},
            "quantity": {"type": "integer"},
        }, ["item_id", "quantity"]),
    ),
    Tool(
        name="remove_cart_item",
        description="Remove a cart line.",
        inputSchema=_schema({"item_id": {"type": "string"}}, ["item_id"]),
    ),
    Tool(
        name="clear_cart",
        description="Remove every cart line.",
        inputSchema=_schema(),
    ),
    # --- checkout ---
    Tool(
        name="checkout_status",
        description="Show the checkout step, submission status, shipping details and last order.",
        inputSchema=_schema(),
    ),
    Tool(
        name="go_to_checkout_step",
        description="Move the checkout to a step. Validate the current step's details before moving forward.",
        inputSchema=_schema({
            "step": {"type": "string", "enum": ["cart", "shipping", "payment", "review", "confirmation"]},
        }, ["step"]),
    ),
    Tool(
        name="update_shipping",
        description=(
            "Merge shipping fields (name, email, phone, address1, address2, city, state, "
            "postal_code, country) into the checkout."
        ),
        inputSchema=_schema({"fields": {"type": "object"}}, ["fields"]),
    ),
    Tool(
        name="update_payment",
        description=(
            "Merge payment fields (method: card|paypal|apple-pay, cardholder, card_number, "
            "expiry, cvc). Card data is never echoed back or sent to the backend."
        ),
        inputSchema=_schema({"fields": {"type": "object"}}, ["fields"]),
    ),
    Tool(
        name="preview_checkout",
        description=(
            "Preview the order: REDACTED shipping and payment summary, cart lines and subtotal, "
            "and a confirmation code. Does NOT place the order."
        ),
        inputSchema=_schema(),
    ),
    Tool(
        name="confirm_purchase",
        description=(
            "Place the order. REQUIRES the confirmation_code returned by preview_checkout; "
            "the user must explicitly provide it."
        ),
        inputSchema=_schema({"confirmation_code": {"type": "string"}}, ["confirmation_code"]),
    ),
    Tool(
        name="reset_checkout",
        description="Return the checkout to the shipping step with empty details.",
        inputSchema=_schema(),
    ),
    # --- account ---
    Tool(
        name="sign_in",
        description="Email a one-time sign-in code to the address.",
        inputSchema=_schema({"email": {"type": "string"}}, ["email"]),
    ),
    Tool(
        name="verify_sign_in",
        description="Complete sign-in with the emailed code.",
        inputSchema=_schema({"email": {"type": "string"}, "code": {"type": "string"}}, ["email", "code"]),
    ),
    Tool(
        name="sign_out",
        description="Sign out and forget the saved session.",
        inputSchema=_schema(),
    ),
    Tool(
        name="list_orders",
        description="Show the signed-in customer's orders, newest first.",
        inputSchema=_schema({"refresh": {"type": "boolean", "default": True}}),
    ),
    # --- admin ---
    Tool(
        name="admin_catalog",
        description="[admin] Products grouped by category with stock and status, plus categories.",
        inputSchema=_schema(),
    ),
    Tool(
        name="admin_adjust_inventory",
        description="[admin] Apply a signed stock adjustment to a product. Audit logged; needs confirmation.",
        inputSchema=_schema({
            "product_id": {"type": "string"},
            "delta": {"type": "integer", "description": "Units to add (negative to deduct)"},
            "reason": {"type": "string"},
            **_CONFIRMATION_PROP,
        }, ["product_id", "delta"]),
    ),
    Tool(
        name="admin_toggle_product_status",
        description="[admin] Switch a product between active and draft. Needs confirmation.",
        inputSchema=_schema({"product_id": {"type": "string"}, **_CONFIRMATION_PROP}, ["product_id"]),
    ),
    Tool(
        name="admin_create_category",
        description="[admin] Create a catalog category. Needs confirmation.",
        inputSchema=_schema({
            "name": {"type": "string"},
            "description": {"type": "string"},
            **_CONFIRMATION_PROP,
        }, ["name"]),
    ),
    Tool(
        name="admin_orders",
        description="[admin] All orders newest first, lifetime revenue and open order count.",
        inputSchema=_schema(),
    ),
    Tool(
        name="admin_order_detail",
        description="[admin] One order with its line items.",
        inputSchema=_schema({"order_id": {"type": "string"}}, ["order_id"]),
    ),
    Tool(
        name="admin_update_order_status",
        description="[admin] Move an order to a new status with an optional note. Audit logged; needs confirmation.",
        inputSchema=_schema({
            "order_id": {"type": "string"},
            "status": {"type": "string", "enum": ["pending", "processing", "fulfilled", "cancelled", "refunded"]},
            "notes": {"type": "string"},
            **_CONFIRMATION_PROP,
        }, ["order_id", "status"]),
    ),
    Tool(
        name="admin_content",
        description="[admin] Storefront settings and the latest media uploads.",
        inputSchema=_schema(),
    ),
    Tool(
        name="admin_save_setting",
        description="[admin] Replace a setting's JSON value. Needs confirmation.",
        inputSchema=_schema({
            "key": {"type": "string"},
            "value_json": {"type": "string", "description": "The new value as a JSON document"},
            **_CONFIRMATION_PROP,
        }, ["key", "value_json"]),
    ),
    Tool(
        name="admin_upload_media",
        description="[admin] Upload a local file as product media. Needs confirmation.",
        inputSchema=_schema({
            "product_id": {"type": "string"},
            "file_path": {"type": "string"},
            "alt_text": {"type": "string"},
            "content_type": {"type": "string"},
            **_CONFIRMATION_PROP,
        }, ["product_id", "file_path"]),
    ),
    Tool(
        name="admin_analytics",
        description="[admin] 30-day revenue by status, daily sales, recent inventory events and audit log.",
        inputSchema=_schema(),
    ),
]


class StorefrontTools:
    """Maps MCP tool calls onto one Store and AdminConsole."""

    def __init__(self, store: Store, admin: AdminConsole | None = None, debug_dir: Path | None = None):
        self.store = store
        self.admin = admin or AdminConsole(store.backend)
        self._debug_dir = debug_dir
        self._pending_confirmations: dict[str, dict] = {}
        self._handlers: dict[str, Handler] = {
            "list_products": self._handle_list_products,
            "get_product": self._handle_get_product,
            "refresh_catalog": self._handle_refresh_catalog,
            "view_cart": self._handle_view_cart,
            "add_to_cart": self._handle_add_to_cart,
            "update_cart_item": self._handle_update_cart_item,
            "remove_cart_item": self._handle_remove_cart_item,
            "clear_cart": self._handle_clear_cart,
            "checkout_status": self._handle_checkout_status,
            "go_to_checkout_step": self._handle_go_to_checkout_step,
            "update_shipping": self._handle_update_shipping,
            "update_payment": self._handle_update_payment,
            "preview_checkout": self._handle_preview_checkout,
            "confirm_purchase": self._handle_confirm_purchase,
            "reset_checkout": self._handle_reset_checkout,
            "sign_in": self._handle_sign_in,
            "verify_sign_in": self._handle_verify_sign_in,
            "sign_out": self._handle_sign_out,
            "list_orders": self._handle_list_orders,
            "admin_catalog": self._handle_admin_catalog,
            "admin_adjust_inventory": self._handle_admin_adjust_inventory,
            "admin_toggle_product_status": self._handle_admin_toggle_product_status,
            "admin_create_category": self._handle_admin_create_category,
            "admin_orders": self._handle_admin_orders,
            "admin_order_detail": self._handle_admin_order_detail,
            "admin_update_order_status": self._handle_admin_update_order_status,
            "admin_content": self._handle_admin_content,
            "admin_save_setting": self._handle_admin_save_setting,
            "admin_upload_media": self._handle_admin_upload_media,
            "admin_analytics": self._handle_admin_analytics,
        }

    def list_tools(self) -> list[Tool]:
        return list(TOOLS)

    async def call(self, name: str, arguments: dict) -> str:
        """Dispatch a tool call and return sanitized text. Errors become text, never exceptions."""
        handler = self._handlers.get(name)
        if handler is None:
            return f"Unknown tool: {name}"
        try:
            result = await handler(arguments)
            text = result if isinstance(result, str) else json.dumps(result, indent=2, default=str)
            sanitized = sanitize_output(text)
        except Exception as e:
            logger.exception("Tool %s failed", name)
            sanitized = sanitize_output(f"Error: {e}")
        self._debug_log(name, arguments, sanitized)
        return sanitized

    def _debug_log(self, tool_name: str, args: dict, result: str) -> None:
        """Append a tool call entry to the debug log file, when enabled."""
        if self._debug_dir is None:
            return
        try:
            self._debug_dir.mkdir(parents=True, exist_ok=True)
            log_file = self._debug_dir / f"session_{datetime.now().strftime('%Y-%m-%d')}.log"
            timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
            entry = (
                f"\n{'=' * 80}\n"
                f"[{timestamp}] TOOL: {tool_name}\n"
                f"ARGS: {sanitize_output(json.dumps(args, indent=2, default=str))}\n"
                f"RESPONSE:\n{result}\n"
            )
            with open(log_file, "a") as f:
                f.write(entry)
        except OSError as e:
            logger.debug("Debug log write failed: %s", e)

    # -----------------------------------------------------------------------
    # Confirmation gate
    # -----------------------------------------------------------------------

    def _cleanup_expired_confirmations(self) -> None:
        now = time.time()
        expired = [k for k, v in self._pending_confirmations.items() if now - v["created_at"] > _CONFIRMATION_TTL]
        for k in expired:
            del self._pending_confirmations[k]

    def _issue_confirmation(self, action: str, params: dict) -> str:
        self._cleanup_expired_confirmations()
        code = _generate_confirmation_code()
        self._pending_confirmations[code] = {"created_at": time.time(), "action": action, "params": params}
        return code

    def _consume_confirmation(self, code: str, action: str, params: dict) -> bool:
        """Accept a code once, and only for the action and arguments it was issued for."""
        self._cleanup_expired_confirmations()
        code = (code or "").strip().upper()
        entry = self._pending_confirmations.get(code)
        if entry is None or entry["action"] != action or entry["params"] != params:
            return False
        del self._pending_confirmations[code]
        return True

    def _gate(self, action: str, args: dict, prompt: str) -> dict | None:
        """
        Two-step confirmation for mutating admin tools. Returns a response to
        send back, or None when the call carries a valid code and may proceed.
        """
        params = {k: v for k, v in args.items() if k != "confirmation_code"}
        code = args.get("confirmation_code")
        if not code:
            code = self._issue_confirmation(action, params)
            return {
                "status": "confirmation_required",
                "confirmation_code": code,
                "message": f"{prompt} To proceed, call {action} again with confirmation_code={code}.",
            }
        if not self._consume_confirmation(code, action, params):
            return {
                "status": "rejected",
                "message": f"Invalid or expired confirmation code. Call {action} without a code to get a new one.",
            }
        return None

    # -----------------------------------------------------------------------
    # Catalog
    # -----------------------------------------------------------------------

    async def _handle_list_products(self, args: dict) -> dict:
        catalog = self.store.catalog
        if not catalog.products and self.store.configured:
            await catalog.refresh()

        changes: dict[str, Any] = {}
        for field in ("search_term", "category", "sort"):
            if args.get(field) is not None:
                changes[field] = args[field]
        if args.get("tags") is not None:
            changes["tags"] = tuple(args["tags"])
        if args.get("min_price") is not None or args.get("max_price") is not None:
            low, high = catalog.filters.price_range
            changes["price_range"] = (
                _decimal(args.get("min_price"), low),
                _decimal(args.get("max_price"), high),
            )

        if changes:
            catalog.set_filters(**changes)

        products = self.store.filtered_products
        return {
            "status": "error" if catalog.error else "ok",
            "error": catalog.error or self.store.status_message,
            "count": len(products),
            "products": [product_view(p) for p in products],
            "categories": self.store.categories,
            "filters": catalog.filters.model_dump(mode="json"),
        }

    async def _handle_get_product(self, args: dict) -> dict:
        catalog = self.store.catalog
        product = catalog.get_cached(args["slug"]) or await catalog.fetch_product_by_slug(args["slug"])
        if product is None:
            if catalog.error:
                return {"status": "error", "message": catalog.error}
            return {"status": "not_found", "message": f"No product with slug or id '{args['slug']}'."}
        return {"status": "ok", "product": {**product_view(product), "description": product.description}}

    async def _handle_refresh_catalog(self, args: dict) -> dict:
        await self.store.catalog.refresh()
        catalog = self.store.catalog
        return {
            "status": "error" if catalog.error else "ok",
            "error": catalog.error or self.store.status_message,
            "products": len(catalog.products),
            "categories": self.store.categories,
        }

    # -----------------------------------------------------------------------
    # Cart
    # -----------------------------------------------------------------------

    def _cart_view(self) -> dict:
        cart = self.store.cart
        return {
            "items": [cart_item_view(item) for item in cart.items],
            "count": cart.count,
            "subtotal": str(cart.subtotal),
        }

    async def _handle_view_cart(self, args: dict) -> dict:
        return {"status": "ok", **self._cart_view()}

    async def _handle_add_to_cart(self, args: dict) -> dict:
        key = args["product"]
        catalog = self.store.catalog
        product = catalog.get_cached(key) or await catalog.fetch_product_by_slug(key)
        if product is None:
            return {"status": "error", "message": catalog.error or f"No product with slug or id '{key}'."}

        variant_id = args.get("variant_id")
        if variant_id and product.find_variant(variant_id) is None:
            return {"status": "error", "message": f"{product.name} has no variant '{variant_id}'."}

        item = self.store.cart.add_item(product, quantity=int(args.get("quantity", 1)), variant_id=variant_id)
        return {"status": "added", "item": cart_item_view(item), **self._cart_view()}

    async def _handle_update_cart_item(self, args: dict) -> dict:
        if self.store.cart.get(args["item_id"]) is None:
            return {"status": "error", "message": f"No cart line '{args['item_id']}'."}
        self.store.cart.update_item_quantity(args["item_id"], int(args["quantity"]))
        return {"status": "updated", **self._cart_view()}

    async def _handle_remove_cart_item(self, args: dict) -> dict:
        self.store.cart.remove_item(args["item_id"])
        return {"status": "removed", **self._cart_view()}

    async def _handle_clear_cart(self, args: dict) -> dict:
        self.store.cart.clear()
        return {"status": "cleared", **self._cart_view()}

    # -----------------------------------------------------------------------
    # Checkout
    # -----------------------------------------------------------------------

    async def _handle_checkout_status(self, args: dict) -> dict:
        return {**self.store.snapshot()["checkout"], "cart": self._cart_view()}

    async def _handle_go_to_checkout_step(self, args: dict) -> dict:
        self.store.checkout.go_to_step(args["step"])
        return {"status": "ok", "step": self.store.checkout.step}

    async def _handle_update_shipping(self, args: dict) -> dict:
        self.store.checkout.update_shipping(**args["fields"])
        return {"status": "updated", "shipping": self.store.checkout.shipping.model_dump()}

    async def _handle_update_payment(self, args: dict) -> dict:
        self.store.checkout.update_payment(**args["fields"])
        return {"status": "updated", "payment": self._payment_summary()}

    def _payment_summary(self) -> dict:
        payment = self.store.checkout.payment
        return {
            "method": payment.method,
            "cardholder": payment.cardholder,
            "card": redact_card_number(payment.card_number) if payment.card_number else None,
        }

    def _purchase_params(self) -> dict:
        """What a purchase confirmation is bound to: the cart as previewed."""
        cart = self.store.cart
        return {"items": [(item.id, item.quantity) for item in cart.items], "subtotal": str(cart.subtotal)}

    async def _handle_preview_checkout(self, args: dict) -> dict:
        """Preview the order with redacted details and issue a confirmation code."""
        if not self.store.configured:
            return {"status": "error", "message": self.store.status_message}
        if not self.store.cart.items:
            return {"status": "error", "message": "Your cart is empty. Use add_to_cart first."}

        shipping = self.store.checkout.shipping
        name_parts = shipping.name.split()
        redacted_name = f"{name_parts[0]} {name_parts[-1][0]}." if len(name_parts) > 1 else shipping.name
        code = self._issue_confirmation("confirm_purchase", self._purchase_params())

        return {
            "status": "preview",
            "confirmation_code": code,
            "message": (
                f"Review your order details below. To place the order, "
                f"provide the confirmation code: {code}"
            ),
            "shipping_to": {
                "name": redacted_name,
                "city": shipping.city,
                "state": shipping.state,
                "country": shipping.country,
            },
            "email": redact_email(shipping.email) if shipping.email else None,
            "paying_with": self._payment_summary(),
            **self._cart_view(),
        }

    async def _handle_confirm_purchase(self, args: dict) -> dict:
        """Place the order if the confirmation code matches the previewed cart."""
        if not self._consume_confirmation(args["confirmation_code"], "confirm_purchase", self._purchase_params()):
            return {
                "status": "rejected",
                "message": "Invalid or expired confirmation code, or the cart changed. Run preview_checkout again.",
            }

        order = await self.store.checkout.place_order()
        checkout = self.store.checkout
        if order is None:
            return {"status": "error", "message": checkout.error or "The order was not submitted."}
        return {"status": "placed", "step": checkout.step, "order": order_view(order)}

    async def _handle_reset_checkout(self, args: dict) -> dict:
        self.store.checkout.reset()
        return {"status": "ok", "step": self.store.checkout.step}

    # -----------------------------------------------------------------------
    # Account
    # -----------------------------------------------------------------------

    async def _handle_sign_in(self, args: dict) -> dict:
        account = self.store.account
        if not self.store.configured:
            return {"status": "error", "message": self.store.status_message}
        await account.sign_in_with_otp(args["email"])
        if account.error:
            return {"status": "error", "message": account.error}
        return {"status": "sent", "message": "Check your email for a sign-in code, then call verify_sign_in."}

    async def _handle_verify_sign_in(self, args: dict) -> dict:
        account = self.store.account
        if not self.store.configured:
            return {"status": "error", "message": self.store.status_message}
        if not await account.verify_otp(args["email"], args["code"]):
            return {"status": "error", "message": account.error}
        profile = account.profile
        return {
            "status": "signed_in",
            "profile": {
                "email": redact_email(profile.email) if profile and profile.email else None,
                "full_name": profile.full_name if profile else None,
            },
        }

    async def _handle_sign_out(self, args: dict) -> dict:
        account = self.store.account
        await account.sign_out()
        if account.error:
            return {"status": "error", "message": account.error}
        return {"status": "signed_out"}

    async def _handle_list_orders(self, args: dict) -> dict:
        account = self.store.account
        if account.profile is None:
            return {"status": "error", "message": "Sign in to see your orders."}
        if args.get("refresh", True):
            await account.refresh_orders()
        return {
            "status": "error" if account.error else "ok",
            "error": account.error,
            "orders": [order_view(order) for order in account.orders],
        }

    # -----------------------------------------------------------------------
    # Admin
    # -----------------------------------------------------------------------

    async def _require_admin(self) -> dict | None:
        user_id = self.store.account.user_id
        if not user_id:
            return {"status": "error", "message": "Sign in with an administrator account first."}
        session = self.admin.session
        await session.refresh(user_id)
        if session.error:
            return {"status": "error", "message": session.error}
        if not session.is_admin:
            return {"status": "forbidden", "message": "Only administrators can use admin tools."}
        return None

    @staticmethod
    def _panel_result(panel, ok: bool, **data: Any) -> dict:
        return {
            "status": "ok" if ok else "error",
            "message": panel.message if ok else panel.error,
            **data,
        }

    async def _handle_admin_catalog(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        panel = self.admin.catalog
        if not await panel.load():
            return self._panel_result(panel, False)
        return {
            "status": "ok",
            "groups": [
                {
                    "category": name,
                    "products": [
                        {
                            "id": p.id,
                            "name": p.name,
                            "status": p.status,
                            "price": format_cents(p.price_cents, p.currency),
                            "inventory": p.inventory_count,
                        }
                        for p in products
                    ],
                }
                for name, products in panel.grouped_products()
            ],
            "categories": [c.model_dump() for c in panel.categories],
        }

    async def _handle_admin_adjust_inventory(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        try:
            delta = int(args["delta"])
        except (TypeError, ValueError):
            return {"status": "error", "message": "Please provide a valid number"}
        if reply := self._gate(
            "admin_adjust_inventory", args,
            f"Apply an adjustment of {delta} units to product {args['product_id']}? This action will be logged.",
        ):
            return reply
        panel = self.admin.catalog
        product = await panel.adjust_inventory(
            args["product_id"], delta, reason=args.get("reason") or "Manual admin adjustment",
        )
        ok = panel.error is None
        return self._panel_result(panel, ok, product=product.model_dump() if product else None)

    async def _handle_admin_toggle_product_status(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        panel = self.admin.catalog
        product = panel.get(args["product_id"])
        if product is None and await panel.load():
            product = panel.get(args["product_id"])
        if product is None:
            return {"status": "error", "message": panel.error or f"Unknown product: {args['product_id']}"}
        next_status = "draft" if product.status == "active" else "active"
        if reply := self._gate("admin_toggle_product_status", args, f"Switch {product.name} to {next_status}?"):
            return reply
        status = await panel.toggle_status(product.id)
        return self._panel_result(panel, status is not None, product_status=status)

    async def _handle_admin_create_category(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        name = (args.get("name") or "").strip()
        if not name:
            return {"status": "error", "message": "Category name is required"}
        if reply := self._gate("admin_create_category", args, f"Create category '{name}'?"):
            return reply
        panel = self.admin.catalog
        ok = await panel.create_category(name, args.get("description") or "")
        return self._panel_result(panel, ok)

    async def _handle_admin_orders(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        panel = self.admin.orders
        if not await panel.load():
            return self._panel_result(panel, False)
        currency = panel.orders[0].currency if panel.orders else "USD"
        return {
            "status": "ok",
            "revenue_lifetime": format_cents(panel.revenue_total, currency),
            "open_orders": panel.open_orders,
            "orders": [order.model_dump(mode="json") for order in panel.orders],
        }

    async def _handle_admin_order_detail(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        panel = self.admin.orders
        detail = await panel.load_detail(args["order_id"])
        if detail is None:
            if panel.error:
                return {"status": "error", "message": panel.error}
            return {"status": "not_found", "message": f"No order '{args['order_id']}'."}
        return {"status": "ok", "order": detail.model_dump(mode="json")}

    async def _handle_admin_update_order_status(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        order_id, status = args["order_id"], args["status"]
        if reply := self._gate(
            "admin_update_order_status", args,
            f"Move order {order_id[:8]} to {status}? This action will be audit logged.",
        ):
            return reply
        panel = self.admin.orders
        ok = await panel.update_status(order_id, status, args.get("notes") or "")
        return self._panel_result(panel, ok)

    async def _handle_admin_content(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        panel = self.admin.content
        if not await panel.load():
            return self._panel_result(panel, False)
        return {
            "status": "ok",
            "settings": [s.model_dump(mode="json") for s in panel.settings],
            "media": [m.model_dump(mode="json") for m in panel.media],
        }

    async def _handle_admin_save_setting(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        try:
            json.loads(args["value_json"])
        except (TypeError, ValueError):
            return {"status": "error", "message": "Setting JSON is invalid"}
        if reply := self._gate(
            "admin_save_setting", args,
            f"Update setting {args['key']}? This action impacts the storefront content.",
        ):
            return reply
        panel = self.admin.content
        ok = await panel.save_setting(args["key"], args["value_json"])
        return self._panel_result(panel, ok)

    async def _handle_admin_upload_media(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        path = Path(args["file_path"]).expanduser()
        if not path.is_file():
            return {"status": "error", "message": f"Select a file to upload: {path} does not exist"}
        if reply := self._gate(
            "admin_upload_media", args,
            f"Generate an upload URL and attach {path.name} to product {args['product_id']}?",
        ):
            return reply
        panel = self.admin.content
        stored = await panel.upload_media(
            args["product_id"],
            path.name,
            path.read_bytes(),
            content_type=args.get("content_type"),
            alt_text=args.get("alt_text") or "",
        )
        return self._panel_result(panel, stored is not None, path=stored)

    async def _handle_admin_analytics(self, args: dict) -> dict:
        if denied := await self._require_admin():
            return denied
        panel = self.admin.analytics
        report = await panel.load()
        if report is None:
            return self._panel_result(panel, False)
        return {
            "status": "ok",
            "revenue_total": format_cents(report.revenue_total),
            **report.model_dump(mode="json"),
        }


def _decimal(value: Any, default: Decimal) -> Decimal:
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return default


def create_server(tools: StorefrontTools) -> Server:
    """Register the tool surface on a new MCP server."""
    server = Server("storefront")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return tools.list_tools()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        text = await tools.call(name, arguments or {})
        return [TextContent(type="text", text=text)]

    return server


async def main():
    """Run the MCP server over stdio."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    logger.info("Storefront MCP server starting...")

    config = load_config()
    async with Store.from_config(config) as store:
        tools = StorefrontTools(store, debug_dir=config.debug_dir if config else None)
        server = create_server(tools)
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())


def run():
    """Sync entry point for console_scripts."""
    asyncio.run(main())
