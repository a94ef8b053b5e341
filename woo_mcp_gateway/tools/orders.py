"""Order tools: status lookup, creation and updates."""

import json
import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from woo_mcp_gateway.infra.error_handler import BusinessRuleError, UpstreamError
from woo_mcp_gateway.models.tool import ToolDescriptor, ToolResult
from woo_mcp_gateway.tools.geo import state_code

logger = logging.getLogger(__name__)

# Orders in these states can no longer be edited
LOCKED_STATUSES = ("completed", "refunded")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class GetOrderInput(BaseModel):
    orderId: int = Field(..., gt=0, description="Numeric order ID (e.g. 1234)")


class CreateOrderInput(BaseModel):
    paymentMethod: Literal["online", "cod"] = Field(..., description="online or cod (cash on delivery)")
    # A string on purpose: several agent runtimes mangle nested arrays in tool calls
    items: str = Field(
        ...,
        description='JSON string of products. Exact example: \'[{"productId": 10282, "quantity": 1}]\'',
    )
    firstName: str
    lastName: str
    email: str = Field(..., pattern=EMAIL_PATTERN)
    phone: Optional[str] = None
    address: str
    city: str
    state: Optional[str] = None
    country: str = "CO"
    note: Optional[str] = None
    shippingMethodId: Optional[str] = None
    couponCode: Optional[str] = None


class UpdateOrderInput(BaseModel):
    orderId: int = Field(..., gt=0, description="ID of the order to modify")
    status: Optional[Literal["pending", "processing", "on-hold", "cancelled", "completed"]] = Field(
        None, description="New status. Use 'cancelled' to cancel."
    )
    firstName: Optional[str] = Field(None, description="New first name")
    lastName: Optional[str] = Field(None, description="New last name")
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, description="New email")
    phone: Optional[str] = Field(None, description="New phone")
    address: Optional[str] = Field(None, description="New address (street and number)")
    city: Optional[str] = Field(None, description="New city")
    state: Optional[str] = Field(None, description="State/department code (e.g. 'CUN', 'ANT')")
    country: Optional[str] = Field(None, min_length=2, max_length=2, description="Country code (e.g. 'CO', 'MX')")
    note: Optional[str] = Field(None, description="Note to add to the order")


def parse_line_items(raw_items: str) -> List[Dict[str, Any]]:
    """
    Turn the agent's JSON item string into WooCommerce line items.

    Tolerates a wrapping pair of quotes and escaped quotes, which language
    models frequently add.

    Raises:
        ValueError: If no items can be read or a product id is not numeric
    """
    cleaned = raw_items.strip()
    if len(cleaned) >= 2 and cleaned.startswith('"') and cleaned.endswith('"'):
        cleaned = cleaned[1:-1]
    cleaned = cleaned.replace('\\"', '"')

    try:
        items = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not read the products, check the JSON format: {e}") from e

    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, list) or not items:
        raise ValueError("Could not read the products, check the JSON format.")

    line_items = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f"Invalid product entry: {item!r}")
        product_id = item.get("productId", item.get("product_id"))
        try:
            line_item = {
                "product_id": int(product_id),
                "quantity": int(item.get("quantity") or 1),
            }
        except (TypeError, ValueError):
            raise ValueError(f"The product ID is not a valid number. Received: {json.dumps(items)}")
        variation_id = item.get("variationId", item.get("variation_id"))
        if variation_id:
            line_item["variation_id"] = int(variation_id)
        line_items.append(line_item)
    return line_items


def build_order_payload(args: CreateOrderInput, line_items: List[Dict[str, Any]]) -> Dict[str, Any]:
    cash_on_delivery = args.paymentMethod == "cod"
    state = state_code(args.state or "")
    address = {
        "first_name": args.firstName,
        "last_name": args.lastName,
        "address_1": args.address,
        "city": args.city,
        "state": state,
        "country": args.country,
    }
    return {
        "payment_method": "cod" if cash_on_delivery else "bacs",
        "payment_method_title": "Cash on delivery" if cash_on_delivery else "Online payment",
        "set_paid": False,
        "status": "processing" if cash_on_delivery else "pending",
        "customer_note": args.note,
        "billing": {**address, "email": args.email, "phone": args.phone},
        "shipping": address,
        "line_items": line_items,
        "shipping_lines": (
            [{"method_id": args.shippingMethodId, "method_title": "Shipping"}] if args.shippingMethodId else []
        ),
        "coupon_lines": [{"code": args.couponCode}] if args.couponCode else [],
    }


def summarize_order(order: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a WooCommerce order to what an agent needs to answer a shopper."""
    billing = order.get("billing") or {}
    shipping = order.get("shipping") or {}
    shipping_lines = order.get("shipping_lines") or []
    return {
        "id": order.get("id"),
        "status": order.get("status"),
        "currency": order.get("currency"),
        "total": order.get("total"),
        "date_created": order.get("date_created"),
        "date_modified": order.get("date_modified"),
        "payment_method": order.get("payment_method_title"),
        "shipping_method": shipping_lines[0].get("method_title") if shipping_lines else "Not specified",
        "customer_note": order.get("customer_note") or "(No customer notes)",
        "customer": {
            "name": f"{billing.get('first_name', '')} {billing.get('last_name', '')}".strip(),
            "email": billing.get("email"),
            "phone": billing.get("phone"),
        },
        "shipping_address": {
            "address": shipping.get("address_1"),
            "city": shipping.get("city"),
            "state": shipping.get("state"),
            "country": shipping.get("country"),
        },
        "line_items": [
            {
                "product": item.get("name"),
                "quantity": item.get("quantity"),
                "total": item.get("total"),
                "variation_id": item.get("variation_id") or None,
            }
            for item in order.get("line_items") or []
        ],
    }


class GetOrderTool(ToolDescriptor):
    name = "getOrderStatus"
    description = "Gets the status, total, shipping method and notes of an order by its ID."
    input_model = GetOrderInput
    error_label = "Error fetching order"

    async def execute(self, client, args):
        try:
            response = await client.get(f"orders/{args.orderId}")
        except UpstreamError as e:
            if e.status_code == 404:
                return ToolResult.error(f"Order #{args.orderId} does not exist in this store.")
            raise
        return ToolResult.payload(summarize_order(response.data))


class CreateOrderTool(ToolDescriptor):
    name = "createOrder"
    description = "Creates an order in the store. IMPORTANT: items must be sent as a JSON text string."
    input_model = CreateOrderInput
    error_label = "Error creating order"

    async def execute(self, client, args):
        line_items = parse_line_items(args.items)
        payload = build_order_payload(args, line_items)
        logger.info(f"Creating order with {len(line_items)} line item(s)")

        response = await client.post("orders", payload)
        order = response.data

        payment_link = None
        if args.paymentMethod == "online":
            payment_link = (
                f"{client.store_url}/{client.checkout_path}/order-pay/{order['id']}/"
                f"?pay_for_order=true&key={order.get('order_key', '')}"
            )

        return ToolResult.payload({
            "success": True,
            "order_id": order.get("id"),
            "total": order.get("total"),
            "payment_link": payment_link,
            "message": "Order created. Pay here." if payment_link else "Order created successfully.",
        })


def _merge_address(current: Dict[str, Any], args: UpdateOrderInput, include_email: bool) -> Dict[str, Any]:
    """Overlay the supplied contact fields onto an existing address block."""
    changes = {
        "first_name": args.firstName,
        "last_name": args.lastName,
        "address_1": args.address,
        "city": args.city,
        "state": args.state,
        "country": args.country,
        "phone": args.phone,
    }
    if include_email:
        changes["email"] = args.email
    return {**(current or {}), **{key: value for key, value in changes.items() if value}}


class UpdateOrderTool(ToolDescriptor):
    name = "updateOrder"
    description = (
        "Manages orders. Allows CANCELLING (status='cancelled') or correcting contact and "
        "shipping details. Does NOT change products."
    )
    input_model = UpdateOrderInput
    error_label = "Error updating order"

    async def execute(self, client, args):
        try:
            current = (await client.get(f"orders/{args.orderId}")).data
        except UpstreamError as e:
            if e.status_code == 404:
                return ToolResult.error(f"Error: order #{args.orderId} does not exist.")
            raise

        if current.get("status") in LOCKED_STATUSES:
            raise BusinessRuleError(
                f"Order #{args.orderId} cannot be edited because it is already '{current['status']}'."
            )

        update: Dict[str, Any] = {}
        if args.status:
            update["status"] = args.status
        if args.note:
            update["customer_note"] = args.note

        contact_fields = (
            args.firstName, args.lastName, args.email, args.phone,
            args.address, args.city, args.state, args.country,
        )
        if any(contact_fields):
            update["billing"] = _merge_address(current.get("billing"), args, include_email=True)
            update["shipping"] = _merge_address(current.get("shipping"), args, include_email=False)

        if not update:
            return ToolResult.text("No data was sent to update.")

        updated = (await client.put(f"orders/{args.orderId}", update)).data
        shipping = updated.get("shipping") or {}
        return ToolResult.payload({
            "success": True,
            "id": updated.get("id"),
            "status": updated.get("status"),
            "updated_fields": list(update),
            "new_shipping": {
                "address": shipping.get("address_1"),
                "city": shipping.get("city"),
                "state": shipping.get("state"),
            },
            "message": "Order updated successfully.",
        })
