"""
Tier benefits applied to an embedder-defined context (checkout, shipping quote, ...)
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional
from loguru import logger

from .models import Tier


class Benefit(ABC):
    """
    A capability granted by a tier, identified by a label listed in Tier.benefits
    """

    id: str = ""

    @abstractmethod
    def is_applicable(self, context: Any) -> bool:
        """Whether this benefit applies to the given context"""

    @abstractmethod
    def apply(self, context: Any) -> Any:
        """Return the context with the benefit applied"""


class BenefitProcessor:
    """
    Registry of benefit implementations keyed by id
    """

    def __init__(self, benefits: Optional[Iterable[Benefit]] = None):
        self.logger = logger
        self._benefits: Dict[str, Benefit] = {}
        for benefit in benefits or []:
            self.register(benefit)

    def register(self, benefit: Benefit) -> None:
        if not benefit.id:
            raise ValueError(f"{type(benefit).__name__} has no id")
        self._benefits[benefit.id] = benefit

    def get(self, benefit_id: str) -> Optional[Benefit]:
        return self._benefits.get(benefit_id)

    def apply_benefits(self, tier: Optional[Tier], context: Any) -> Any:
        """
        Apply every registered benefit the tier grants, in tier order

        Args:
            tier: Tier whose benefit labels are applied; None applies nothing
            context: Embedder-defined context passed through each benefit

        Returns:
            The resulting context
        """
        if tier is None:
            return context

        for benefit_id in tier.benefits:
            benefit = self._benefits.get(benefit_id)
            if benefit is None:
                self.logger.debug(f"No implementation registered for benefit '{benefit_id}'")
                continue
            if not benefit.is_applicable(context):
                self.logger.debug(f"Benefit '{benefit_id}' not applicable")
                continue
            context = benefit.apply(context)
            self.logger.debug(f"Applied benefit '{benefit_id}' for tier {tier.id}")

        return context
