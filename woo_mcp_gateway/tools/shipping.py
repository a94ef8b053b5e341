"""Shipping rate tool.

WooCommerce exposes no "quote shipping" endpoint, so the rate is obtained by
creating a throwaway pending order for the destination, reading the shipping
lines the carrier plugin attaches, and deleting the order again.
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from woo_mcp_gateway.infra.error_handler import UpstreamError
from woo_mcp_gateway.models.tool import ToolDescriptor, ToolResult
from woo_mcp_gateway.tools.geo import normalize_city, normalize_state_code

logger = logging.getLogger(__name__)

FALLBACK_METHOD_ID = "coordinadora"
FALLBACK_METHOD_TITLE = "Coordinadora"


class PackageDimensions(BaseModel):
    length: str
    width: str
    height: str


class GetShippingInput(BaseModel):
    productId: int = Field(..., gt=0, description="Product ID.")
    city: str = Field(..., min_length=1, description="City (e.g. MEDELLIN).")
    stateCode: str = Field(..., min_length=1, description="State/department (e.g. CO-ANT).")
    postcode: str = Field(..., description="Postal code (e.g. 05001000).")
    countryCode: str = Field("CO", min_length=2, max_length=2)
    weight: Optional[str] = None
    dimensions: Optional[PackageDimensions] = None


class GetShippingTool(ToolDescriptor):
    name = "getShippingMethods"
    description = (
        "Calculates real shipping rates for a product and destination, normalising the "
        "location the way Colombian carriers expect."
    )
    input_model = GetShippingInput
    error_label = "API error"

    async def execute(self, client, args):
        city = normalize_city(args.city)
        state = normalize_state_code(args.stateCode, args.countryCode)
        dimensions = args.dimensions
        logger.info(f"Simulating shipping to {city} ({state}) for product {args.productId}")

        # The carrier plugin needs weight and size to quote a rate
        order = (await client.post("orders", {
            "status": "pending",
            "shipping": {
                "city": city,
                "state": state,
                "postcode": args.postcode,
                "country": args.countryCode,
            },
            "line_items": [
                {
                    "product_id": args.productId,
                    "quantity": 1,
                    "meta_data": [
                        {"key": "_weight", "value": args.weight or "1"},
                        {"key": "_length", "value": dimensions.length if dimensions else "10"},
                        {"key": "_width", "value": dimensions.width if dimensions else "10"},
                        {"key": "_height", "value": dimensions.height if dimensions else "93"},
                    ],
                }
            ],
        })).data
        order_id = order["id"]

        try:
            if not order.get("shipping_lines"):
                logger.info(f"No shipping method attached to order {order_id}, forcing {FALLBACK_METHOD_ID}")
                order = (await client.put(f"orders/{order_id}", {
                    "shipping_lines": [
                        {"method_id": FALLBACK_METHOD_ID, "method_title": FALLBACK_METHOD_TITLE}
                    ],
                })).data

            options = [
                {"method_title": line.get("method_title"), "cost": _cost(line.get("total"))}
                for line in order.get("shipping_lines") or []
            ]
        finally:
            try:
                await client.delete(f"orders/{order_id}", {"force": True})
            except UpstreamError as e:
                logger.error(
                    f"Could not delete temporary shipping order {order_id}: {e}",
                    extra={"order_id": order_id},
                )

        if options and options[0]["cost"] > 0:
            return ToolResult.payload({
                "location": f"{city}, {state}",
                "shipping_options": options,
            })

        return ToolResult.text(
            f"Could not get a {FALLBACK_METHOD_TITLE} rate. Check that postcode {args.postcode} "
            "is served and that the carrier plugin has no weight restrictions."
        )


def _cost(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
