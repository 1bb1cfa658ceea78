"""System prompt and canned answers for the shopping assistant."""

from typing import Optional

from .models import UserContext


DEFAULT_ANSWER = "I found some products that might interest you!"

FALLBACK_MESSAGE = "I found some products for you. Let me know if you'd like more details!"

# (trigger words, answer) checked in order against the lowercased user message;
# audio comes before phones because "headphone" contains "phone"
MOCK_RESPONSES = (
    (("laptop", "computer"),
     "I'd recommend checking out our laptop collection! We have options from brands like "
     "Dell, HP, and Lenovo. What's your budget range?"),
    (("headphone", "earphone"),
     "For audio, I'd suggest looking at Sony, JBL, or boAt. Do you prefer over-ear "
     "headphones or earbuds?"),
    (("phone", "mobile"),
     "Looking for a smartphone? We have great options from Apple, Samsung, and OnePlus. "
     "What features matter most to you?"),
)

GENERIC_MOCK_RESPONSE = (
    "I'm here to help you find the perfect products! You can ask me to search for items, "
    "compare products, or get recommendations."
)

TOOL_EXAMPLES = """
Here are some examples of how to use the tools:

**User:** "Show me some wireless headphones"
**Tool Call:** `searchProducts(query="wireless headphones")`

**User:** "Find laptops under {currency}50000"
**Tool Call:** `searchProducts(query="laptops", maxPrice=50000)`

**User:** "Recommend me some good running shoes from Nike"
**Tool Call:** `getProductsByBrand(brand="Nike")`

**User:** "Compare the Samsung Galaxy S23 and iPhone 15"
**Tool Call:** `compareProducts(productNames=["Samsung Galaxy S23", "iPhone 15"])`
"""


def mock_response(user_message: str) -> str:
    """Keyword-triggered answer used when the chat model is unavailable."""
    lowered = user_message.lower()
    for triggers, answer in MOCK_RESPONSES:
        if any(word in lowered for word in triggers):
            return answer
    return GENERIC_MOCK_RESPONSE


def build_system_prompt(
    user_context: Optional[UserContext] = None,
    store_name: str = "CartIQ",
    currency_symbol: str = "₹",
) -> str:
    parts = [
        f"You are {store_name}, a helpful AI shopping assistant for an Indian e-commerce platform. ",
        "Help users find products, compare items, and make purchase decisions. ",
        "Use the available tools to search for real products from our catalog. ",
        "Always be helpful, concise, and recommend products based on user needs. ",
        f"Prices are in Indian Rupees ({currency_symbol}). ",
        "\n",
        TOOL_EXAMPLES.format(currency=currency_symbol),
        "\n\n",
    ]

    if user_context is not None and not user_context.is_empty():
        parts.append("USER CONTEXT:\n")
        if user_context.price_preference:
            parts.append(f"- Price preference: {user_context.price_preference}\n")
        if user_context.preferred_categories:
            parts.append(f"- Interested in: {', '.join(user_context.preferred_categories)}\n")
        if user_context.recently_viewed:
            parts.append("- Recently viewed products\n")

    parts.append("\nWhen showing products, mention key details like name, price, rating, and why it's relevant.")
    return "".join(parts)
