"""Shopping tool schemas.

Each tool the chat model may call has a typed argument model. Together they
form a closed union discriminated by ``tool``, so an unknown tool name fails
parsing just like a malformed argument does. The OpenAI function-calling
declarations are derived from the same names and kept beside the models.
"""

import json
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator

from src.pipelines.retrieval.models import SearchConstraints

from ..exceptions import ToolArgumentError


TOOLSET_VERSION = "2024.1"

UNKNOWN_TOOL_MESSAGE = "Unknown function"
INVALID_ARGUMENTS_MESSAGE = "Invalid arguments"


class ToolArgs(BaseModel):
    """Base for tool argument models.

    Fields use snake_case in Python and the camelCase names the model sees.
    Unexpected extra arguments are ignored; blank strings become ``None``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def strip_strings(cls, data: Any) -> Any:
        # the discriminator must reach validation untouched
        if not isinstance(data, dict):
            return data
        stripped = {}
        for key, value in data.items():
            if key != "tool" and isinstance(value, str):
                value = value.strip() or None
            stripped[key] = value
        return stripped

    def canonical_arguments(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"tool"})


class SearchProductsArgs(ToolArgs):
    tool: Literal["searchProducts"] = "searchProducts"
    query: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    min_price: Optional[float] = Field(default=None, alias="minPrice", ge=0)
    max_price: Optional[float] = Field(default=None, alias="maxPrice", ge=0)
    min_rating: Optional[float] = Field(default=None, alias="minRating", ge=0, le=5)

    def to_constraints(self) -> SearchConstraints:
        return SearchConstraints(
            query=self.query,
            category=self.category,
            brand=self.brand,
            min_price=Decimal(str(self.min_price)) if self.min_price is not None else None,
            max_price=Decimal(str(self.max_price)) if self.max_price is not None else None,
            min_rating=self.min_rating,
        )


class GetProductDetailsArgs(ToolArgs):
    tool: Literal["getProductDetails"] = "getProductDetails"
    product_id: Optional[str] = Field(default=None, alias="productId")
    product_name: Optional[str] = Field(default=None, alias="productName")

    @model_validator(mode="after")
    def require_reference(self) -> "GetProductDetailsArgs":
        if not self.product_id and not self.product_name:
            raise ValueError("productId or productName is required")
        return self


class GetCategoriesArgs(ToolArgs):
    tool: Literal["getCategories"] = "getCategories"


class GetFeaturedProductsArgs(ToolArgs):
    tool: Literal["getFeaturedProducts"] = "getFeaturedProducts"


class CompareProductsArgs(ToolArgs):
    tool: Literal["compareProducts"] = "compareProducts"
    product_names: List[str] = Field(..., alias="productNames", min_length=1)

    @field_validator("product_names")
    @classmethod
    def drop_blank_names(cls, v: List[str]) -> List[str]:
        names = [name.strip() for name in v if name and name.strip()]
        if not names:
            raise ValueError("productNames must contain at least one name")
        return names


class GetProductsByBrandArgs(ToolArgs):
    tool: Literal["getProductsByBrand"] = "getProductsByBrand"
    brand: str


ToolCall = Annotated[
    Union[
        SearchProductsArgs,
        GetProductDetailsArgs,
        GetCategoriesArgs,
        GetFeaturedProductsArgs,
        CompareProductsArgs,
        GetProductsByBrandArgs,
    ],
    Field(discriminator="tool"),
]

_tool_call_adapter: TypeAdapter = TypeAdapter(ToolCall)

TOOL_NAMES = (
    "searchProducts",
    "getProductDetails",
    "getCategories",
    "getFeaturedProducts",
    "compareProducts",
    "getProductsByBrand",
)


def parse_tool_call(name: str, arguments: Optional[Dict[str, Any]]) -> ToolCall:
    """Validate a raw tool call from the model.

    Raises:
        ToolArgumentError: If the tool is unknown or the arguments are malformed
    """
    if name not in TOOL_NAMES:
        raise ToolArgumentError(UNKNOWN_TOOL_MESSAGE, tool_name=name, errors=[f"Available tools: {', '.join(TOOL_NAMES)}"])
    if arguments is not None and not isinstance(arguments, dict):
        raise ToolArgumentError(INVALID_ARGUMENTS_MESSAGE, tool_name=name, errors=["arguments must be an object"])

    payload = {**(arguments or {}), "tool": name}
    try:
        return _tool_call_adapter.validate_python(payload)
    except ValidationError as e:
        errors = []
        for err in e.errors():
            location = ".".join(str(part) for part in err["loc"][1:]) or name
            errors.append(f"{location}: {err['msg']}")
        raise ToolArgumentError(INVALID_ARGUMENTS_MESSAGE, tool_name=name, errors=errors) from e


def signature(call: ToolArgs) -> str:
    """Idempotency key: tool name plus canonical JSON of the validated arguments."""
    return f"{call.tool}:{json.dumps(call.canonical_arguments(), sort_keys=True, separators=(',', ':'))}"


def _function(name: str, description: str, properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required or [],
            },
        },
    }


TOOL_SCHEMAS: List[Dict[str, Any]] = [
    _function(
        "searchProducts",
        "Search for products with optional filters. Use this when user wants to find products "
        "by category, brand, price range, or search query.",
        {
            "query": {"type": "string", "description": "Search text for product name, description, or brand"},
            "category": {"type": "string", "description": "Product category to filter by (e.g., 'Headphones', 'Running Shoes')"},
            "brand": {"type": "string", "description": "Brand to restrict results to"},
            "minPrice": {"type": "number", "description": "Minimum price in INR"},
            "maxPrice": {"type": "number", "description": "Maximum price in INR"},
            "minRating": {"type": "number", "description": "Minimum rating (0-5)"},
        },
    ),
    _function(
        "getProductDetails",
        "Get detailed information about a specific product. Use when user asks about a specific product.",
        {
            "productId": {"type": "string", "description": "Product ID"},
            "productName": {"type": "string", "description": "Product name to search for"},
        },
    ),
    _function(
        "getCategories",
        "Get all available product categories. Use when user asks what categories are available.",
        {},
    ),
    _function(
        "getFeaturedProducts",
        "Get featured/popular products. Use when user asks for recommendations or popular items.",
        {},
    ),
    _function(
        "compareProducts",
        "Compare multiple products. Use when user wants to compare specific products.",
        {
            "productNames": {
                "type": "array",
                "items": {"type": "string"},
                "description": "List of product names to compare",
            },
        },
        required=["productNames"],
    ),
    _function(
        "getProductsByBrand",
        "Get products from a specific brand. Use when user asks for products from a brand.",
        {"brand": {"type": "string", "description": "Brand name"}},
        required=["brand"],
    ),
]
