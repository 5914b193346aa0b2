"""
Company (payer) name extraction.

Provides:
- CompanyNameExtractor: ordered stage chain
- Buyer-order (BO1) pattern stage
- LLM stage for notes without a buyer-order line

Stages are pluggable and testable without a model.
"""

from .base import CompanyNameStage
from .company import (
    BuyerOrderPatternStage,
    CompanyNameExtractor,
    LLMCompanyStage,
    extract_bo1_value,
)

__all__ = [
    "CompanyNameExtractor",
    "CompanyNameStage",
    "BuyerOrderPatternStage",
    "LLMCompanyStage",
    "extract_bo1_value",
]
