"""Operation cards and the registry that serves them."""

from .cards import builtin_cards
from .registry import DescriptorRegistry
from .types import (
    AlwaysRule,
    CliHints,
    CompositeBlock,
    CompositeStep,
    EnvFlagRule,
    GraphqlHints,
    InputBinding,
    InputFieldRule,
    OperationCard,
    RestEndpoint,
    RestHints,
    RoutingBlock,
    SuitabilityRule,
    validate_operation_card,
)

__all__ = [
    "AlwaysRule",
    "CliHints",
    "CompositeBlock",
    "CompositeStep",
    "DescriptorRegistry",
    "EnvFlagRule",
    "GraphqlHints",
    "InputBinding",
    "InputFieldRule",
    "OperationCard",
    "RestEndpoint",
    "RestHints",
    "RoutingBlock",
    "SuitabilityRule",
    "builtin_cards",
    "validate_operation_card",
]
