"""Operation card (capability descriptor) models.

An operation card is the static definition of one capability: which transport
it prefers, which ones it falls back to, which suitability rules can
disqualify a transport, the per-transport execution hints used to build the
adapter request, and optionally a composite step list.

Suitability rules are a closed set of predicate variants discriminated by
``kind`` so that they can be evaluated structurally:

- ``always``: the gated transport is always applicable.
- ``env_flag``: applicable when an ambient flag has the expected value.
- ``input_field``: applicable when an input field is (or is not) present.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field, model_validator

from ..schemas.base import BaseSchema
from ..schemas.enums import MergeStrategy, ReasonCode, RouteSource

JsonSchema = Dict[str, Any]


class AlwaysRule(BaseSchema):
    kind: Literal["always"] = "always"
    transport: RouteSource
    reason: Optional[ReasonCode] = None


class EnvFlagRule(BaseSchema):
    kind: Literal["env_flag"] = "env_flag"
    transport: RouteSource
    flag: str = Field(..., min_length=1)
    expected: bool = True
    reason: Optional[ReasonCode] = None


class InputFieldRule(BaseSchema):
    kind: Literal["input_field"] = "input_field"
    transport: RouteSource
    field: str = Field(..., min_length=1)
    present: bool = True
    reason: Optional[ReasonCode] = None


SuitabilityRule = Annotated[Union[AlwaysRule, EnvFlagRule, InputFieldRule], Field(discriminator="kind")]


class RoutingBlock(BaseSchema):
    preferred: RouteSource
    fallbacks: List[RouteSource] = Field(default_factory=list)
    suitability: List[SuitabilityRule] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)

    def candidates(self) -> List[RouteSource]:
        """Return ``[preferred, *fallbacks]`` without duplicates, in declared order."""
        ordered: List[RouteSource] = []
        for route in [self.preferred, *self.fallbacks]:
            if route not in ordered:
                ordered.append(route)
        return ordered


class CliHints(BaseSchema):
    """CLI execution hints.

    ``command`` is split on whitespace; ``args`` tokens and the entries of
    ``optional_args`` are ``str.format`` templates over the request input.
    ``optional_args`` groups are only emitted when their input field is set.
    """

    command: str = Field(..., min_length=1)
    args: List[str] = Field(default_factory=list)
    optional_args: Dict[str, List[str]] = Field(default_factory=dict)
    json_fields: List[str] = Field(default_factory=list)
    timeout_ms: Optional[int] = Field(default=None, gt=0)


class GraphqlHints(BaseSchema):
    operation_name: str = Field(..., min_length=1)
    document: str = Field(..., min_length=1)
    variables: Optional[Dict[str, str]] = Field(
        default=None,
        description="Variable name -> input field. When omitted the whole input is sent as variables.",
    )
    result_path: Optional[str] = Field(
        default=None,
        description="Dotted path under ``data`` holding the payload, e.g. ``repository.issue``.",
    )
    timeout_ms: Optional[int] = Field(default=None, gt=0)


class RestEndpoint(BaseSchema):
    method: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)


class RestHints(BaseSchema):
    endpoints: List[RestEndpoint] = Field(..., min_length=1)
    timeout_ms: Optional[int] = Field(default=None, gt=0)


class InputBinding(BaseSchema):
    """Either a constant ``value`` or a field-path ``source`` for one step input."""

    source: Optional[str] = None
    value: Any = None

    @model_validator(mode="after")
    def _one_of(self) -> "InputBinding":
        if self.source is not None and self.value is not None:
            raise ValueError("input binding takes either 'source' or 'value', not both")
        return self


class CompositeStep(BaseSchema):
    id: str = Field(..., min_length=1)
    capability: str = Field(..., min_length=1)
    input: Dict[str, InputBinding] = Field(default_factory=dict)
    foreach: Optional[str] = Field(default=None, description="Field path of the collection to repeat over.")
    when_any: List[str] = Field(
        default_factory=list,
        description="Step ids (success) or '<step_id>.<path>' (truthy output); any match runs the step.",
    )
    merge: MergeStrategy = MergeStrategy.last


class CompositeBlock(BaseSchema):
    steps: List[CompositeStep] = Field(..., min_length=1)


class OperationCard(BaseSchema):
    capability_id: str = Field(..., min_length=1)
    version: str = "1.0.0"
    description: str = ""
    input_schema: JsonSchema = Field(default_factory=lambda: {"type": "object"})
    output_schema: JsonSchema = Field(default_factory=lambda: {"type": "object"})
    routing: Optional[RoutingBlock] = None
    cli: Optional[CliHints] = None
    graphql: Optional[GraphqlHints] = None
    rest: Optional[RestHints] = None
    composite: Optional[CompositeBlock] = None

    @property
    def domain(self) -> str:
        return self.capability_id.split(".", 1)[0]

    @property
    def is_composite(self) -> bool:
        return self.composite is not None

    def required_inputs(self) -> List[str]:
        required = self.input_schema.get("required")
        if not isinstance(required, list):
            return []
        return [item for item in required if isinstance(item, str)]

    def required_outputs(self) -> List[str]:
        required = self.output_schema.get("required")
        if not isinstance(required, list):
            return []
        return [item for item in required if isinstance(item, str)]

    def hints_for(self, route: RouteSource) -> Optional[BaseSchema]:
        if route == RouteSource.cli:
            return self.cli
        if route == RouteSource.graphql:
            return self.graphql
        if route == RouteSource.rest:
            return self.rest
        raise ValueError(f"unknown route: {route}")


def validate_operation_card(card: OperationCard) -> List[str]:
    """Return the structural problems of a single card (empty when sane).

    Cross-card checks (composite steps referencing registered capabilities)
    are done by the registry.
    """
    problems: List[str] = []
    if "." not in card.capability_id:
        problems.append("capability_id must be dot-namespaced")

    if card.composite is None and card.routing is None:
        problems.append("non-composite card must declare routing")

    if card.routing is not None:
        routing = card.routing
        if routing.preferred in routing.fallbacks:
            problems.append(f"fallbacks repeat preferred transport '{routing.preferred.value}'")
        if len(set(routing.fallbacks)) != len(routing.fallbacks):
            problems.append("fallbacks contain duplicates")
        for route in routing.candidates():
            if card.hints_for(route) is None:
                problems.append(f"routed transport '{route.value}' has no execution hints")

    if card.composite is not None:
        seen: List[str] = []
        for step in card.composite.steps:
            if step.id in seen:
                problems.append(f"duplicate composite step id '{step.id}'")
            for guard in step.when_any:
                if guard.split(".", 1)[0] not in seen:
                    problems.append(f"step '{step.id}' guard '{guard}' does not reference an earlier step")
            for target, binding in step.input.items():
                if binding.source and binding.source.startswith("steps."):
                    ref = binding.source.split(".")[1] if binding.source.count(".") >= 1 else ""
                    if ref not in seen:
                        problems.append(f"step '{step.id}' input '{target}' references unknown step '{ref}'")
            if step.foreach and step.foreach.startswith("steps."):
                ref = step.foreach.split(".")[1]
                if ref not in seen:
                    problems.append(f"step '{step.id}' foreach references unknown step '{ref}'")
            seen.append(step.id)
    return problems
