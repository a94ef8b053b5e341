"""Product catalogue tools."""

from pydantic import BaseModel, Field

from woo_mcp_gateway.models.tool import ToolDescriptor, ToolResult

PAGE_SIZE = 5


class ListProductsInput(BaseModel):
    pass


class SearchProductsInput(BaseModel):
    keyword: str = Field(..., min_length=1, description="Name or term to search for (e.g. 'sneakers', 'cap')")


class ListProductsTool(ToolDescriptor):
    name = "listProducts"
    description = "Lists the latest 5 products of the store."
    input_model = ListProductsInput
    error_label = "Error listing products"

    async def execute(self, client, args):
        response = await client.get("products", {"per_page": PAGE_SIZE})
        products = [
            {
                "id": p.get("id"),
                "name": p.get("name"),
                "price": p.get("price"),
                "permalink": p.get("permalink"),
            }
            for p in response.data or []
        ]
        return ToolResult.payload(products)


class SearchProductsTool(ToolDescriptor):
    name = "searchProducts"
    description = "Searches published products of the store by keyword."
    input_model = SearchProductsInput
    error_label = "Error searching products"

    async def execute(self, client, args):
        response = await client.get(
            "products",
            {"search": args.keyword, "per_page": PAGE_SIZE, "status": "publish"},
        )
        products = [
            {
                "id": p.get("id"),
                "name": p.get("name"),
                "price": p.get("price"),
                "stock_status": p.get("stock_status"),
                "permalink": p.get("permalink"),
            }
            for p in response.data or []
        ]
        if not products:
            return ToolResult.text(f'No products found matching "{args.keyword}".')
        return ToolResult.payload(products)
