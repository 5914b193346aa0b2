"""LLM access for the fallback stages.

Provides a narrow completion interface, an Ollama implementation, and the
prompt templates for payer-name extraction and email summaries.
"""

from remit_match.llm.client import LLMClient, LLMConcurrencyLimiter, LLMError, OllamaClient
from remit_match.llm.prompts import PROMPT_VERSION, CompanyNamePrompt, EmailSummaryPrompt

__all__ = [
    "LLMClient",
    "LLMConcurrencyLimiter",
    "LLMError",
    "OllamaClient",
    "PROMPT_VERSION",
    "CompanyNamePrompt",
    "EmailSummaryPrompt",
]
