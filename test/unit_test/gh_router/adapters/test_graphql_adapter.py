from __future__ import annotations

import json as _json
from typing import Any, Dict, List

import httpx
import pytest

from gh_router.adapters.base import TransportRequest
from gh_router.adapters.graphql import GraphqlAdapter, extract_path
from gh_router.errors import GraphqlResponseError
from gh_router.schemas.enums import ErrorCode, RouteSource

GRAPHQL_URL = "https://mock.github.test/graphql"


def _request(result_path: str = "repository.issues") -> TransportRequest:
    return TransportRequest(
        capability_id="issue.list",
        route=RouteSource.graphql,
        timeout_ms=2_000,
        operation="IssueList",
        document="query IssueList { x }",
        variables={"owner": "octo", "name": "hello", "first": 2},
        result_path=result_path,
    )


def _adapter(body: Dict[str, Any], seen: List[httpx.Request], status: int = 200, headers=None) -> GraphqlAdapter:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, json=body, headers=headers or {})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GraphqlAdapter("ghp_test", url=GRAPHQL_URL, client=client)


def test_extract_path() -> None:
    data = {"repository": {"issue": {"number": 1}}}
    assert extract_path(data, "repository.issue") == {"number": 1}
    assert extract_path(data, "repository.missing.deeper") is None
    assert extract_path(data, None) is data


@pytest.mark.asyncio
async def test_connection_unwrapped_with_pagination_and_cost() -> None:
    seen: List[httpx.Request] = []
    body = {
        "data": {
            "repository": {
                "issues": {
                    "nodes": [{"number": 2}, {"number": 1}],
                    "pageInfo": {"hasNextPage": True, "endCursor": "Y3Vyc29y"},
                }
            }
        }
    }
    adapter = _adapter(body, seen, headers={"x-ratelimit-remaining": "4999", "x-ratelimit-used": "1"})

    response = await adapter.run(_request())

    assert response.data == [{"number": 2}, {"number": 1}]
    assert response.pagination == {"has_next_page": True, "end_cursor": "Y3Vyc29y"}
    assert response.cost == {"rate_limit_remaining": 4999, "rate_limit_used": 1}

    sent = seen[0]
    assert sent.method == "POST"
    assert sent.headers["Authorization"] == "Bearer ghp_test"
    payload = _json.loads(sent.content.decode("utf-8"))
    assert payload["operationName"] == "IssueList"
    assert payload["variables"] == {"owner": "octo", "name": "hello", "first": 2}
    await adapter.aclose()


@pytest.mark.asyncio
async def test_plain_object_result() -> None:
    seen: List[httpx.Request] = []
    adapter = _adapter({"data": {"repository": {"issue": {"number": 7, "title": "Bug"}}}}, seen)
    response = await adapter.run(_request("repository.issue"))
    assert response.data == {"number": 7, "title": "Bug"}
    assert response.pagination is None


@pytest.mark.parametrize(
    "error_type,code",
    [
        ("NOT_FOUND", ErrorCode.validation),
        ("FORBIDDEN", ErrorCode.auth),
        ("RATE_LIMITED", ErrorCode.rate_limit),
        ("SOMETHING_NEW", None),
    ],
)
@pytest.mark.asyncio
async def test_graphql_errors_raise_typed_failure(error_type: str, code) -> None:
    seen: List[httpx.Request] = []
    adapter = _adapter({"data": None, "errors": [{"type": error_type, "message": "nope"}]}, seen)
    with pytest.raises(GraphqlResponseError) as exc_info:
        await adapter.run(_request())
    assert exc_info.value.code == code
    assert exc_info.value.messages == ["nope"]


@pytest.mark.asyncio
async def test_missing_data_is_server_failure() -> None:
    seen: List[httpx.Request] = []
    adapter = _adapter({}, seen)
    with pytest.raises(GraphqlResponseError) as exc_info:
        await adapter.run(_request())
    assert exc_info.value.code == ErrorCode.server


@pytest.mark.asyncio
async def test_http_error_status_raises() -> None:
    seen: List[httpx.Request] = []
    adapter = _adapter({"message": "Bad credentials"}, seen, status=401)
    with pytest.raises(httpx.HTTPStatusError):
        await adapter.run(_request())
