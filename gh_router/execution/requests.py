"""Build transport requests from a card's execution hints and the task input."""

from __future__ import annotations

import string
from typing import Any, Dict, List, Mapping, Optional, Set
from urllib.parse import quote

from ..adapters.base import TransportRequest
from ..errors import RequestBuildError
from ..registry.types import CliHints, GraphqlHints, OperationCard, RestHints
from ..routing.suitability import is_present
from ..schemas.enums import RouteSource
from ..schemas.task import TaskRequest

_BODYLESS_METHODS = {"GET", "HEAD", "DELETE"}
_formatter = string.Formatter()


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_format_value(v) for v in value)
    return str(value)


def template_fields(template: str) -> Set[str]:
    return {name for _, name, _, _ in _formatter.parse(template) if name}


def render_template(capability_id: str, template: str, input: Mapping[str, Any], *, quote_values: bool = False) -> str:
    values: Dict[str, str] = {}
    for name in template_fields(template):
        if not is_present(input, name):
            raise RequestBuildError(capability_id, f"missing input field '{name}'")
        rendered = _format_value(input[name])
        values[name] = quote(rendered, safe="") if quote_values else rendered
    try:
        return template.format_map(values)
    except (KeyError, IndexError, ValueError) as exc:
        raise RequestBuildError(capability_id, f"bad template '{template}': {exc}") from exc


def build_transport_request(
    card: OperationCard,
    route: RouteSource,
    request: TaskRequest,
    *,
    default_timeout_ms: int,
) -> TransportRequest:
    """Translate ``request`` into the ``route`` adapter's request shape.

    Raises:
        RequestBuildError: If the card has no hints for ``route`` or a template
            references an input field that is not set.
    """
    hints = card.hints_for(route)
    if hints is None:
        raise RequestBuildError(card.capability_id, f"no execution hints for transport '{route.value}'")

    timeout_ms = request.options.timeout_ms or getattr(hints, "timeout_ms", None) or default_timeout_ms

    if isinstance(hints, CliHints):
        return _build_cli(card.capability_id, hints, request.input, timeout_ms)
    if isinstance(hints, GraphqlHints):
        return _build_graphql(card.capability_id, hints, request.input, timeout_ms)
    if isinstance(hints, RestHints):
        return _build_rest(card.capability_id, hints, request.input, timeout_ms)
    raise RequestBuildError(card.capability_id, f"unsupported hints for transport '{route.value}'")


def _build_cli(capability_id: str, hints: CliHints, input: Mapping[str, Any], timeout_ms: int) -> TransportRequest:
    args: List[str] = [render_template(capability_id, token, input) for token in hints.args]
    for field, tokens in hints.optional_args.items():
        if is_present(input, field):
            args.extend(render_template(capability_id, token, input) for token in tokens)
    return TransportRequest(
        capability_id=capability_id,
        route=RouteSource.cli,
        timeout_ms=timeout_ms,
        command=hints.command.split(),
        args=args,
        json_fields=list(hints.json_fields),
    )


def _build_graphql(
    capability_id: str, hints: GraphqlHints, input: Mapping[str, Any], timeout_ms: int
) -> TransportRequest:
    if hints.variables is None:
        variables = dict(input)
    else:
        variables = {var: input[field] for var, field in hints.variables.items() if input.get(field) is not None}
    return TransportRequest(
        capability_id=capability_id,
        route=RouteSource.graphql,
        timeout_ms=timeout_ms,
        operation=hints.operation_name,
        document=hints.document,
        variables=variables,
        result_path=hints.result_path,
    )


def _build_rest(capability_id: str, hints: RestHints, input: Mapping[str, Any], timeout_ms: int) -> TransportRequest:
    endpoint = hints.endpoints[0]
    method = endpoint.method.upper()
    path = render_template(capability_id, endpoint.path, input, quote_values=True)
    used = template_fields(endpoint.path)
    rest = {k: v for k, v in input.items() if k not in used and v is not None}

    params: Dict[str, Any] = {}
    body: Optional[Dict[str, Any]] = None
    if method in _BODYLESS_METHODS:
        params = {k: _format_value(v) for k, v in rest.items()}
    elif rest:
        body = rest
    return TransportRequest(
        capability_id=capability_id,
        route=RouteSource.rest,
        timeout_ms=timeout_ms,
        method=method,
        path=path,
        params=params,
        body=body,
    )
