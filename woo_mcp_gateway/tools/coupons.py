"""Coupon validation tool."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from woo_mcp_gateway.models.tool import ToolDescriptor, ToolResult


class CheckCouponInput(BaseModel):
    code: str = Field(..., min_length=1, description="Coupon code to check (e.g. 'SUMMER2025')")


def _as_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _parse_expiry(value: Optional[str]) -> Optional[datetime]:
    """WooCommerce sends site-local ISO timestamps without an offset; treat them as UTC."""
    if not value:
        return None
    if value.endswith("Z"):
        # fromisoformat only accepts the Z suffix from Python 3.11
        value = f"{value[:-1]}+00:00"
    expiry = datetime.fromisoformat(value)
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry


def coupon_restrictions(coupon: dict) -> List[str]:
    """Human-readable restrictions the agent should warn the shopper about."""
    restrictions = []
    if _as_float(coupon.get("minimum_amount")) > 0:
        restrictions.append(f"Minimum spend required: ${coupon['minimum_amount']}")
    if _as_float(coupon.get("maximum_amount")) > 0:
        restrictions.append(f"Maximum spend allowed: ${coupon['maximum_amount']}")
    if coupon.get("individual_use"):
        restrictions.append("Cannot be combined with other coupons.")
    if coupon.get("exclude_sale_items"):
        restrictions.append("Does not apply to items already on sale.")
    if coupon.get("product_ids"):
        restrictions.append("Only valid for specific products.")
    if coupon.get("excluded_product_ids"):
        restrictions.append("Not valid for some excluded products.")
    if coupon.get("product_categories"):
        restrictions.append("Limited to certain categories.")
    return restrictions


class CheckCouponTool(ToolDescriptor):
    name = "checkCoupon"
    description = "Checks whether a coupon code is valid and returns its details, restrictions and discount."
    input_model = CheckCouponInput
    error_label = "Error checking coupon"

    async def execute(self, client, args):
        response = await client.get("coupons", {"code": args.code})
        if not response.data:
            return ToolResult.text(f"The coupon '{args.code}' does not exist.")

        coupon = response.data[0]

        expiry = _parse_expiry(coupon.get("date_expires"))
        if expiry is not None and datetime.now(timezone.utc) > expiry:
            return ToolResult.text(
                f"The coupon '{args.code}' exists but EXPIRED on {coupon['date_expires']}."
            )

        return ToolResult.payload({
            "valid": True,
            "code": coupon.get("code"),
            "discount_type": coupon.get("discount_type"),  # percent, fixed_cart, fixed_product
            "amount": _as_float(coupon.get("amount")),
            "description": coupon.get("description") or "No description",
            "restrictions": coupon_restrictions(coupon),
            "usage_limit": coupon.get("usage_limit"),
            "usage_count": coupon.get("usage_count"),
            "expires_at": coupon.get("date_expires") or "Never",
        })
