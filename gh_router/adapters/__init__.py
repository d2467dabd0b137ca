"""Transport adapters: GitHub CLI, GraphQL and REST."""

from .base import TransportAdapter, TransportRequest, TransportResponse
from .cli import CliAdapter, CliCommandRunner, CliRunResult, SafeCliCommandRunner
from .graphql import GraphqlAdapter
from .rest import RestAdapter

__all__ = [
    "CliAdapter",
    "CliCommandRunner",
    "CliRunResult",
    "GraphqlAdapter",
    "RestAdapter",
    "SafeCliCommandRunner",
    "TransportAdapter",
    "TransportRequest",
    "TransportResponse",
]
