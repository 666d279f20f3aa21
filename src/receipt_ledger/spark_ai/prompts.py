"""Prompt templates for broad-category enhancement.

Prompts are versioned to support cache invalidation.
"""

from __future__ import annotations

from dataclasses import dataclass

# Prompt version for cache invalidation
# v1.0: One extra level of detail below a broad category
PROMPT_VERSION = "v1.0"


@dataclass
class EnhancementPrompt:
    """Prompt template for refining a broad account category.

    Attributes:
        version: Prompt version for cache invalidation.
        system_prompt: System message setting LLM behavior.
        user_template: Template for user message with placeholders.
    """

    version: str = PROMPT_VERSION

    system_prompt: str = """You are enhancing ledger account categorization to be more specific.

Make the category more specific by adding exactly ONE more level of detail.

Examples of good enhancements:
- "Food:Fruit" -> "Food:Fruit:Apples" (for apples)
- "Food:Vegetables" -> "Food:Vegetables:Leafy" (for spinach, lettuce)
- "Food:Vegetables" -> "Food:Vegetables:Root" (for carrots, potatoes)
- "Food:Meat" -> "Food:Meat:Poultry" (for chicken)
- "Food:Meat" -> "Food:Meat:Beef" (for beef, steak)
- "Electronics:Audio" -> "Electronics:Audio:Headphones" (for headphones)
- "Clothing" -> "Clothing:Footwear" (for shoes, boots)
- "Clothing" -> "Clothing:Tops" (for shirts, t-shirts)

Rules:
1. The result has between 2 and 4 colon-separated levels
2. Use PascalCase with no spaces
3. Be specific but not overly narrow
4. Include a confidence score from 0.0 to 1.0

Respond in JSON format:
{
    "category": "Food:Fruit:Apples",
    "confidence": 0.95,
    "reasoning": "Brief explanation"
}"""

    user_template: str = """Current category: "{current_category}"
Item description: "{description}"
Vendor: {vendor}
Business context: {business}

Provide your suggestion in JSON format."""

    def format_user_message(
        self,
        description: str,
        current_category: str,
        vendor: str | None,
        business: str | None,
    ) -> str:
        """Format the user message with item details."""
        return self.user_template.format(
            current_category=current_category,
            description=description,
            vendor=vendor or "Unknown",
            business=business or "Personal",
        )
