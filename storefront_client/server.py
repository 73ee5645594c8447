"""
Storefront MCP Server.

Exposes the storefront client over stdio for Claude Code, Codex CLI, and Gemini CLI:
login, catalog browsing, cart management, the four-step checkout with a
human-in-the-loop confirmation code before the order is placed, order
tracking, and customer support chat.
"""
import asyncio
import json
import logging
import secrets
import time
from datetime import datetime

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from .checkout import REGIONS, Step
from .checkout.orchestrator import CheckoutOrchestrator
from .config import Settings
from .context import StorefrontContext
from .errors import (
    AuthenticationRequired,
    StockConflict,
    StorefrontError,
    ValidationFailed,
)
from .models import Cart, Order
from .orders import render_timeline
from .output_sanitizer import redact_email, sanitize_output

logger = logging.getLogger(__name__)


def _debug_log(tool_name: str, args: dict, result: str) -> None:
    """Append a tool call entry to the debug log file."""
    try:
        debug_dir = _get_context().settings.debug_dir
        debug_dir.mkdir(parents=True, exist_ok=True)
        log_file = debug_dir / f"session_{datetime.now().strftime('%Y-%m-%d')}.log"
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        entry = (
            f"\n{'='*80}\n"
            f"[{timestamp}] TOOL: {tool_name}\n"
            f"ARGS: {sanitize_output(json.dumps(args, indent=2))}\n"
            f"RESPONSE:\n{result}\n"
        )

        with open(log_file, "a") as f:
            f.write(entry)
    except Exception as e:
        logger.debug("Debug log write failed: %s", e)


server = Server("storefront-client")

# Lazy-initialized session context
_context: StorefrontContext | None = None

# Confirmation gate state (in-memory, single-process)
_pending_confirmations: dict[str, dict] = {}

# Confirmation code TTL
_CONFIRMATION_TTL = 300  # 5 minutes


def _get_context() -> StorefrontContext:
    global _context
    if _context is None:
        _context = StorefrontContext(Settings())
    return _context


def _generate_confirmation_code() -> str:
    """Generate a 6-character alphanumeric confirmation code."""
    return secrets.token_hex(3).upper()


def _cleanup_expired_confirmations() -> None:
    """Remove expired confirmation codes."""
    now = time.time()
    expired = [k for k, v in _pending_confirmations.items() if now - v["created_at"] > _CONFIRMATION_TTL]
    for k in expired:
        del _pending_confirmations[k]


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

_ADDRESS_PROPERTIES = {
    "saved_index": {
        "type": "integer",
        "description": "Use a saved address by index instead of entering a new one",
    },
    "street": {"type": "string"},
    "city": {"type": "string"},
    "region": {
        "type": "string",
        "description": "Region (state), e.g. 'Metro Manila', 'Calabarzon'. Drives the delivery fee.",
    },
    "zip_code": {"type": "string"},
    "country": {"type": "string", "default": "Philippines"},
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="login",
            description="Log in to the store. The session is remembered (encrypted) across restarts.",
            inputSchema={
                "type": "object",
                "properties": {
                    "email": {"type": "string"},
                    "password": {"type": "string"},
                    "admin": {
                        "type": "boolean",
                        "description": "Log in through the admin endpoint",
                        "default": False,
                    },
                },
                "required": ["email", "password"],
            },
        ),
        Tool(
            name="register",
            description="Create a customer account and log in.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "email": {"type": "string"},
                    "password": {"type": "string"},
                },
                "required": ["name", "email", "password"],
            },
        ),
        Tool(
            name="logout",
            description="Log out. Clears the saved session, the local cart and any checkout in progress.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="session_status",
            description="Show whether you are logged in, as whom, and how many items are in the cart.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="search_products",
            description="Search the catalog by text, category and price range.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Text to match in name or description"},
                    "category": {"type": "string"},
                    "min_price": {"type": "number"},
                    "max_price": {"type": "number"},
                    "featured": {
                        "type": "boolean",
                        "description": "Only featured products",
                        "default": False,
                    },
                },
                "required": [],
            },
        ),
        Tool(
            name="catalog_filters",
            description="List the categories, sizes and colors available in the catalog.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="get_product_details",
            description="Get one product's details: price, stock, sizes and colors.",
            inputSchema={
                "type": "object",
                "properties": {"product_id": {"type": "string"}},
                "required": ["product_id"],
            },
        ),
        Tool(
            name="view_cart",
            description="Show the cart as the server has it, including the server-computed total.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="add_to_cart",
            description=(
                "Add a product to the cart. The price is taken from the catalog. "
                "If stock is short, the response says how many are available."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string"},
                    "quantity": {"type": "integer", "default": 1},
                    "size": {"type": "string"},
                    "color": {"type": "string"},
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="update_cart_item",
            description="Change a cart line's quantity (minimum 1; use remove_cart_item to remove).",
            inputSchema={
                "type": "object",
                "properties": {
                    "item_id": {"type": "string"},
                    "quantity": {"type": "integer"},
                },
                "required": ["item_id", "quantity"],
            },
        ),
        Tool(
            name="remove_cart_item",
            description="Remove one line from the cart.",
            inputSchema={
                "type": "object",
                "properties": {"item_id": {"type": "string"}},
                "required": ["item_id"],
            },
        ),
        Tool(
            name="clear_cart",
            description="Remove every line from the cart.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="start_checkout",
            description="Start checkout. Requires login and a non-empty cart. Preselects your saved address.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="checkout_address",
            description=(
                "Step 1: set the shipping address, either a saved one by index or a new one. "
                f"Regions: {', '.join(REGIONS)}."
            ),
            inputSchema={
                "type": "object",
                "properties": _ADDRESS_PROPERTIES,
                "required": [],
            },
        ),
        Tool(
            name="checkout_delivery",
            description="Step 2: choose 'standard' (3-5 days) or 'priority' (1-2 days) delivery.",
            inputSchema={
                "type": "object",
                "properties": {
                    "method": {"type": "string", "enum": ["standard", "priority"]},
                },
                "required": ["method"],
            },
        ),
        Tool(
            name="checkout_payment",
            description=(
                "Step 3: choose the payment method. GCash and PayMaya need account name, "
                "account number, reference number and payment date (YYYY-MM-DD)."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "method": {"type": "string", "enum": ["cash_on_delivery", "gcash", "paymaya"]},
                    "account_name": {"type": "string"},
                    "account_number": {"type": "string"},
                    "reference_number": {"type": "string"},
                    "date_created": {"type": "string"},
                },
                "required": ["method"],
            },
        ),
        Tool(
            name="checkout_next",
            description=(
                "Validate the current checkout step and move to the next. At the review step it "
                "returns a confirmation code that the user must provide to place_order; calling it "
                "again at review issues a new code."
            ),
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="checkout_back",
            description="Go back one checkout step.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="checkout_status",
            description="Show the current checkout step, delivery fee and order total.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="place_order",
            description=(
                "Place the order. REQUIRES the confirmation_code returned when the review step was reached. "
                "The user must explicitly provide this code to authorize the order."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "confirmation_code": {
                        "type": "string",
                        "description": "The 6-character code from checkout_next",
                    },
                },
                "required": ["confirmation_code"],
            },
        ),
        Tool(
            name="list_orders",
            description="List your orders with their status.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="view_order",
            description="Show one order with its progress (placed, processing, shipped, delivered).",
            inputSchema={
                "type": "object",
                "properties": {"order_id": {"type": "string"}},
                "required": ["order_id"],
            },
        ),
        Tool(
            name="support_chat",
            description=(
                "Chat with the support team. 'open' loads conversations and starts watching the open one, "
                "'send' posts a message, 'refresh' re-reads it, 'new' starts a fresh conversation, "
                "'close' stops watching."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "action": {
                        "type": "string",
                        "enum": ["open", "send", "refresh", "new", "close"],
                    },
                    "conversation_id": {"type": "string"},
                    "text": {"type": "string"},
                },
                "required": ["action"],
            },
        ),
        Tool(
            name="ask_faq",
            description="Ask the self-service FAQ bot (shipping, payments, returns, orders).",
            inputSchema={
                "type": "object",
                "properties": {"question": {"type": "string"}},
                "required": ["question"],
            },
        ),
    ]


# ---------------------------------------------------------------------------
# Tool dispatch
# ---------------------------------------------------------------------------

_HANDLERS = {}


def _handler(name: str):
    def register(fn):
        _HANDLERS[name] = fn
        return fn
    return register


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    handler = _HANDLERS.get(name)
    if handler is None:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]

    try:
        try:
            result = await handler(arguments)
        except StorefrontError as e:
            result = _error_result(e)

        if isinstance(result, str):
            text = result
        else:
            text = json.dumps(result, indent=2, default=str)
        sanitized = sanitize_output(text)

        _debug_log(name, arguments, sanitized)
        return [TextContent(type="text", text=sanitized)]

    except Exception as e:
        logger.exception("Tool %s failed", name)
        error_text = f"Error: {str(e)}"
        _debug_log(name, arguments, error_text)
        return [TextContent(type="text", text=error_text)]


def _error_result(e: StorefrontError) -> dict:
    """Map the error taxonomy onto tool result statuses."""
    if isinstance(e, AuthenticationRequired):
        return {
            "status": "auth_required",
            "message": e.message,
            "next": "Ask the user to log in again with the login tool.",
        }
    if isinstance(e, StockConflict):
        return {"status": "stock_conflict", **e.to_dict()}
    if isinstance(e, ValidationFailed):
        return {"status": "validation_error", "errors": e.field_errors}
    return {"status": "error", "message": str(e)}


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def _cart_result(cart: Cart, status: str = "ok") -> dict:
    return {
        "status": status,
        "items": [
            {
                "item_id": item.id,
                "product": item.product_name,
                "product_id": item.product_id,
                "price": item.price,
                "quantity": item.quantity,
                "size": item.size,
                "color": item.color,
            }
            for item in cart.items
        ],
        "total": cart.total_amount,
    }


def _order_result(order: Order) -> dict:
    return {
        "order_id": order.id,
        "status": order.order_status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "delivery_fee": order.delivery_fee,
        "total": order.total_amount,
        "shipping_to": order.shipping_address.display() if order.shipping_address else None,
        "items": [{"product": i.product_name, "quantity": i.quantity, "price": i.price}
                  for i in order.items],
        "placed_at": order.created_at.isoformat() if order.created_at else None,
    }


def _require_checkout() -> CheckoutOrchestrator:
    checkout = _get_context().checkout
    if checkout is None:
        raise StorefrontError("No checkout in progress. Use start_checkout first.")
    return checkout


# ---------------------------------------------------------------------------
# Session tools
# ---------------------------------------------------------------------------

@_handler("login")
async def _handle_login(args: dict) -> dict:
    ctx = _get_context()
    if args.get("admin"):
        await ctx.session.login_admin(args["email"], args["password"])
    else:
        await ctx.session.login(args["email"], args["password"])
    if not ctx.session.is_admin:
        await ctx.cart.load()
    return await _handle_session_status({})


@_handler("register")
async def _handle_register(args: dict) -> dict:
    ctx = _get_context()
    await ctx.session.register(args["name"], args["email"], args["password"])
    await ctx.cart.load()
    return await _handle_session_status({})


@_handler("logout")
async def _handle_logout(args: dict) -> dict:
    await _get_context().session.logout()
    _pending_confirmations.clear()
    return {"status": "logged_out"}


@_handler("session_status")
async def _handle_session_status(args: dict) -> dict:
    ctx = _get_context()
    if not ctx.session.is_valid():
        return {"status": "logged_out", "message": "Not logged in. Use the login tool."}
    user = ctx.session.user
    return {
        "status": "logged_in",
        "user": user.name if user else None,
        "email": redact_email(user.email) if user and user.email else None,
        "role": ctx.session.role,
        "cart_items": ctx.cart.item_count,
        "cart_total": ctx.cart.subtotal,
    }


# ---------------------------------------------------------------------------
# Catalog tools
# ---------------------------------------------------------------------------

@_handler("search_products")
async def _handle_search_products(args: dict) -> str:
    """Search the catalog. Returns guided text."""
    catalog = _get_context().catalog
    if args.get("featured"):
        products = await catalog.featured()
    else:
        products = await catalog.list_products(
            query=args.get("query"),
            category=args.get("category"),
            min_price=args.get("min_price"),
            max_price=args.get("max_price"),
        )

    label = args.get("query") or args.get("category") or ("featured" if args.get("featured") else "all")
    lines = [f"Products matching \"{label}\":", ""]
    for i, p in enumerate(products, 1):
        stock = f"{p.stock} in stock" if p.stock > 0 else "OUT OF STOCK"
        lines.append(f"  {i}. {p.name}  (id: {p.id})")
        lines.append(f"     Price: ₱{p.price:,.2f} | {stock}")
        if p.sizes or p.colors:
            lines.append(f"     Sizes: {', '.join(p.sizes) or '-'} | Colors: {', '.join(p.colors) or '-'}")
        lines.append("")
    lines.append(f"Found {len(products)} products.")
    lines.append("")
    lines.append("=== NEXT STEPS ===")
    lines.append("  - get_product_details(product_id) for sizes, colors and stock")
    lines.append("  - add_to_cart(product_id, quantity, size, color) to buy")
    return "\n".join(lines)


@_handler("catalog_filters")
async def _handle_catalog_filters(args: dict) -> dict:
    return {"status": "ok", **(await _get_context().catalog.filter_options())}


@_handler("get_product_details")
async def _handle_get_product_details(args: dict) -> dict:
    product = await _get_context().catalog.get(args["product_id"])
    return {"status": "ok", "product": product.model_dump(mode="json")}


# ---------------------------------------------------------------------------
# Cart tools
# ---------------------------------------------------------------------------

@_handler("view_cart")
async def _handle_view_cart(args: dict) -> dict:
    cart = await _get_context().cart.load()
    return _cart_result(cart)


@_handler("add_to_cart")
async def _handle_add_to_cart(args: dict) -> dict:
    ctx = _get_context()
    product = await ctx.catalog.get(args["product_id"])
    cart = await ctx.cart.add_item(
        product.id,
        quantity=args.get("quantity", 1),
        price=product.price,
        size=args.get("size"),
        color=args.get("color"),
    )
    return _cart_result(cart, status="added")


@_handler("update_cart_item")
async def _handle_update_cart_item(args: dict) -> dict:
    cart = await _get_context().cart.update_item(args["item_id"], args["quantity"])
    return _cart_result(cart, status="updated")


@_handler("remove_cart_item")
async def _handle_remove_cart_item(args: dict) -> dict:
    cart = await _get_context().cart.remove_item(args["item_id"])
    return _cart_result(cart, status="removed")


@_handler("clear_cart")
async def _handle_clear_cart(args: dict) -> dict:
    cart = await _get_context().cart.clear()
    return _cart_result(cart, status="cleared")


# ---------------------------------------------------------------------------
# Checkout tools
# ---------------------------------------------------------------------------

@_handler("start_checkout")
async def _handle_start_checkout(args: dict) -> dict:
    checkout = _get_context().new_checkout()
    view = await checkout.start()
    return {"status": "checkout", **view}


@_handler("checkout_address")
async def _handle_checkout_address(args: dict) -> dict:
    checkout = _require_checkout()
    if args.get("saved_index") is not None:
        checkout.select_saved_address(args["saved_index"])
    else:
        checkout.enter_address(
            street=args.get("street"),
            city=args.get("city"),
            state=args.get("region"),
            zip_code=args.get("zip_code"),
            country=args.get("country"),
        )
    return {"status": "checkout", **checkout.view()}


@_handler("checkout_delivery")
async def _handle_checkout_delivery(args: dict) -> dict:
    checkout = _require_checkout()
    checkout.set_delivery_method(args["method"])
    return {"status": "checkout", **checkout.view()}


@_handler("checkout_payment")
async def _handle_checkout_payment(args: dict) -> dict:
    checkout = _require_checkout()
    checkout.set_payment_method(args["method"])
    checkout.set_payment_details(
        account_name=args.get("account_name"),
        account_number=args.get("account_number"),
        reference_number=args.get("reference_number"),
        date_created=args.get("date_created"),
    )
    return {"status": "checkout", **checkout.view()}


def _revoke_confirmations(checkout: CheckoutOrchestrator) -> None:
    """Drop codes issued for ``checkout``; the reviewed order is no longer current."""
    for code in [k for k, v in _pending_confirmations.items() if v["checkout"] is checkout]:
        del _pending_confirmations[code]


@_handler("checkout_next")
async def _handle_checkout_next(args: dict) -> dict:
    """Advance one step. At the review step, issue a fresh confirmation code."""
    checkout = _require_checkout()
    if checkout.step is Step.REVIEW:
        view = checkout.view()
    else:
        view = checkout.next()
    if checkout.step is not Step.REVIEW:
        return {"status": "checkout", **view}

    _cleanup_expired_confirmations()
    _revoke_confirmations(checkout)
    code = _generate_confirmation_code()
    _pending_confirmations[code] = {"created_at": time.time(), "checkout": checkout}
    return {
        "status": "review",
        "confirmation_code": code,
        "message": (
            "Review the order below. To place it, the user must provide "
            f"the confirmation code: {code}"
        ),
        **view,
    }


@_handler("checkout_back")
async def _handle_checkout_back(args: dict) -> dict:
    checkout = _require_checkout()
    view = checkout.back()
    _revoke_confirmations(checkout)
    return {"status": "checkout", **view}


@_handler("checkout_status")
async def _handle_checkout_status(args: dict) -> dict:
    return {"status": "checkout", **_require_checkout().view()}


@_handler("place_order")
async def _handle_place_order(args: dict) -> dict:
    """
    Place the order if the confirmation code is valid for the current checkout.

    The code is spent only when the order is created. A failed submission
    leaves the checkout at review and the code valid for a retry.
    """
    code = args["confirmation_code"].strip().upper()

    _cleanup_expired_confirmations()

    confirmation = _pending_confirmations.get(code)
    if confirmation is None or confirmation["checkout"] is not _get_context().checkout:
        return {
            "status": "rejected",
            "message": "Invalid or expired confirmation code. Run checkout_next at the review step for a new code.",
        }

    order = await confirmation["checkout"].place_order()
    _pending_confirmations.pop(code, None)
    return {
        "status": "placed",
        "message": "Order placed successfully!",
        "order": _order_result(order),
        "next": f"Use view_order(\"{order.id}\") to follow its progress.",
    }



# ---------------------------------------------------------------------------
# Order tools
# ---------------------------------------------------------------------------

@_handler("list_orders")
async def _handle_list_orders(args: dict) -> dict:
    orders = await _get_context().orders.list_mine()
    return {"status": "ok", "orders": [_order_result(o) for o in orders]}


@_handler("view_order")
async def _handle_view_order(args: dict) -> dict:
    order = await _get_context().orders.get(args["order_id"])
    return {"status": "ok", "order": _order_result(order), "progress": render_timeline(order)}


# ---------------------------------------------------------------------------
# Support tools
# ---------------------------------------------------------------------------

def _format_conversation(chat) -> dict:
    conv = chat.selected
    result = {"unread": chat.unread_count, "polling": chat.polling}
    if conv is None:
        result["conversation"] = None
        result["conversations"] = [
            {"id": c.id, "title": c.title, "status": c.status} for c in chat.conversations
        ]
        return result
    result["conversation"] = {
        "id": conv.id,
        "title": conv.title,
        "status": conv.status,
        "messages": [
            {"from": "support" if m.sender == "admin" else "you", "text": m.text}
            for m in conv.messages
        ],
    }
    return result


@_handler("support_chat")
async def _handle_support_chat(args: dict) -> dict:
    chat = _get_context().chat
    action = args["action"]

    if action == "open":
        await chat.open(args.get("conversation_id"))
    elif action == "send":
        await chat.send(args.get("text", ""))
    elif action == "refresh":
        await chat.refresh()
    elif action == "new":
        chat.new_conversation()
    elif action == "close":
        await chat.close()
        return {"status": "closed"}
    else:
        return {"status": "error", "message": f"Unknown action: {action}"}

    return {"status": "ok", **_format_conversation(chat)}


@_handler("ask_faq")
async def _handle_ask_faq(args: dict) -> dict:
    faq = _get_context().faq
    question = args["question"]
    return {
        "status": "ok",
        "answer": faq.answer(question),
        "suggested_questions": faq.suggestions(question),
    }


# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------

async def main():
    """Run the MCP server over stdio."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    logger.info("Storefront MCP server starting...")

    ctx = _get_context()
    try:
        if await ctx.restore():
            logger.info("Resumed saved session")
    except StorefrontError as e:
        logger.warning("Could not resume saved session: %s", e)

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await ctx.aclose()


def run():
    """Sync entry point for console_scripts."""
    asyncio.run(main())
