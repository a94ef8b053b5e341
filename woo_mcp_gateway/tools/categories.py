"""Category listing tool."""

from typing import Optional

from pydantic import BaseModel, Field

from woo_mcp_gateway.models.tool import ToolDescriptor, ToolResult


class GetCategoriesInput(BaseModel):
    parent: Optional[int] = Field(None, ge=0, description="Parent category ID (0 for top level). Optional.")


class GetCategoriesTool(ToolDescriptor):
    name = "getStoreCategories"
    description = (
        "Gets the store's product categories. Use it when the user asks what kind of "
        "products the store sells in general."
    )
    input_model = GetCategoriesInput

    async def execute(self, client, args):
        response = await client.get(
            "products/categories",
            {
                "per_page": 20,
                "hide_empty": True,
                "parent": args.parent or 0,
                "orderby": "count",
                "order": "desc",
            },
        )
        categories = [
            {
                "id": c.get("id"),
                "name": c.get("name"),
                "count": c.get("count"),
                "slug": c.get("slug"),
                "description": c.get("description"),
            }
            for c in response.data or []
        ]
        return ToolResult.payload(categories)
