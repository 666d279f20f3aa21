"""Optional completion-service enhancement for broad account categories.

Disabled by default. When enabled, broad categories such as Food:Fruit are
refined by an Ollama-compatible model; any failure keeps the original.
"""

from receipt_ledger.spark_ai.prompts import EnhancementPrompt
from receipt_ledger.spark_ai.service import (
    CategoryEnhancer,
    CategorySuggestion,
    EnhancementError,
)

__all__ = ["CategoryEnhancer", "CategorySuggestion", "EnhancementError", "EnhancementPrompt"]
