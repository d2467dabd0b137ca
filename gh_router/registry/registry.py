"""Descriptor registry.

The registry maps a capability identifier to its operation card. It is built
once from a list of cards, validated up front and never mutated afterwards;
the engine receives it through its dependencies instead of reaching for a
module-level instance.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from ..errors import CapabilityNotFoundError, DescriptorValidationError
from .types import OperationCard, validate_operation_card


class DescriptorRegistry:
    """
    Immutable, validated mapping of capability ids to operation cards.

    Notes:
        - Construction raises ``DescriptorValidationError`` for the first card
          with structural problems (including composite steps that reference
          unknown or composite capabilities) and for duplicate ids.
        - ``lookup`` raises ``CapabilityNotFoundError``; ``get`` returns ``None``.
    """

    def __init__(self, cards: Iterable[OperationCard]) -> None:
        """
        Build and validate the registry.

        Args:
            cards: Operation cards in declaration order.

        Raises:
            DescriptorValidationError: If a card is malformed or an id is repeated.
        """
        self._cards: Dict[str, OperationCard] = {}
        for card in cards:
            if card.capability_id in self._cards:
                raise DescriptorValidationError(card.capability_id, ["duplicate capability_id"])
            problems = validate_operation_card(card)
            if problems:
                raise DescriptorValidationError(card.capability_id, problems)
            self._cards[card.capability_id] = card

        for card in self._cards.values():
            problems = self._check_composite_references(card)
            if problems:
                raise DescriptorValidationError(card.capability_id, problems)

    def _check_composite_references(self, card: OperationCard) -> List[str]:
        if card.composite is None:
            return []
        problems: List[str] = []
        for step in card.composite.steps:
            target = self._cards.get(step.capability)
            if target is None:
                problems.append(f"step '{step.id}' references unknown capability '{step.capability}'")
            elif target.is_composite:
                problems.append(f"step '{step.id}' references composite capability '{step.capability}'")
        return problems

    @classmethod
    def builtin(cls) -> "DescriptorRegistry":
        """Return a registry over the built-in GitHub operation cards."""
        from .cards import builtin_cards

        return cls(builtin_cards())

    def lookup(self, capability_id: str) -> OperationCard:
        """
        Retrieve the card for a capability.

        Args:
            capability_id: Dot-namespaced capability identifier.

        Returns:
            The registered operation card.

        Raises:
            CapabilityNotFoundError: If no card is registered under the id.
        """
        try:
            return self._cards[capability_id]
        except KeyError:
            raise CapabilityNotFoundError(capability_id) from None

    def get(self, capability_id: str) -> Optional[OperationCard]:
        return self._cards.get(capability_id)

    def has(self, capability_id: str) -> bool:
        return capability_id in self._cards

    def list_all(self, domain: Optional[str] = None) -> List[OperationCard]:
        """
        List cards in declaration order.

        Args:
            domain: Optional leading namespace segment (``issue`` for ``issue.view``).

        Returns:
            Matching operation cards.
        """
        if domain is None:
            return list(self._cards.values())
        return [card for card in self._cards.values() if card.domain == domain]

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, capability_id: object) -> bool:
        return capability_id in self._cards
