"""
Base company-name stage interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas.evidence import CompanyExtraction
from ..schemas.payment_notes import ParsedLine


class CompanyNameStage(ABC):
    """
    Base class for company-name extraction stages.

    Each stage implements one way of finding the payer:
    - Buyer-order field pattern
    - LLM reading of the full notes
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stage name for logging."""
        pass

    @abstractmethod
    def can_extract(self, lines: list[ParsedLine], payment_notes: str) -> bool:
        """
        Check if this stage is responsible for the given notes.

        The first responsible stage decides the result; later stages are
        not consulted even if it finds nothing.
        """
        pass

    @abstractmethod
    def extract(
        self,
        lines: list[ParsedLine],
        payment_notes: str,
        model: Optional[str] = None,
    ) -> Optional[CompanyExtraction]:
        """
        Extract the payer name.

        Args:
            lines: Parsed lines of the notes
            payment_notes: Raw note text
            model: LLM model for stages that use one

        Returns:
            CompanyExtraction, or None if no usable name was found
        """
        pass
