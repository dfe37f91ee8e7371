"""AI Agents package."""

from financepro.agents.actions import (
    AI_CATEGORY,
    SUPPORTED_TOOLS,
    AIActionExecutor,
    build_financial_context,
)
from financepro.agents.ai_agents import (
    AdvisorAgent,
    AIServiceError,
    ExtractedTransaction,
    ExtractionRejectedError,
    LocalAdvisor,
    MessageExtractionAgent,
    extract_action,
    strip_code_fences,
)

__all__ = [
    "AI_CATEGORY",
    "SUPPORTED_TOOLS",
    "AIActionExecutor",
    "build_financial_context",
    "AdvisorAgent",
    "AIServiceError",
    "ExtractedTransaction",
    "ExtractionRejectedError",
    "LocalAdvisor",
    "MessageExtractionAgent",
    "extract_action",
    "strip_code_fences",
]
