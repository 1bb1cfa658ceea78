"""Shopping tools exposed to the chat model."""

from .executor import ToolContext, ToolExecutor, ToolResult
from .schemas import (
    TOOL_NAMES,
    TOOL_SCHEMAS,
    TOOLSET_VERSION,
    CompareProductsArgs,
    GetCategoriesArgs,
    GetFeaturedProductsArgs,
    GetProductDetailsArgs,
    GetProductsByBrandArgs,
    SearchProductsArgs,
    ToolCall,
    parse_tool_call,
    signature,
)

__all__ = [
    "ToolContext",
    "ToolExecutor",
    "ToolResult",
    "TOOL_NAMES",
    "TOOL_SCHEMAS",
    "TOOLSET_VERSION",
    "CompareProductsArgs",
    "GetCategoriesArgs",
    "GetFeaturedProductsArgs",
    "GetProductDetailsArgs",
    "GetProductsByBrandArgs",
    "SearchProductsArgs",
    "ToolCall",
    "parse_tool_call",
    "signature",
]
