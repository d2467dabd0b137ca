from __future__ import annotations

import asyncio

import httpx
import pytest

from gh_router.errors import CliCommandError, GraphqlResponseError, RequestBuildError, TransportFailure
from gh_router.execution.classifier import classify_error, classify_message
from gh_router.schemas.enums import ErrorCode


def _status_error(status: int, headers=None) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://mock.github.test/repos/o/r")
    response = httpx.Response(status, headers=headers or {}, request=request)
    return httpx.HTTPStatusError(f"status {status}", request=request, response=response)


class TestClassifyMessage:
    @pytest.mark.parametrize(
        "message,code",
        [
            ("HTTP 401: Bad credentials", ErrorCode.auth),
            ("You are not logged in to any GitHub hosts. Run gh auth login", ErrorCode.auth),
            ("API rate limit exceeded for user", ErrorCode.rate_limit),
            ("network timeout", ErrorCode.network),
            ("connect ECONNREFUSED 127.0.0.1:443", ErrorCode.network),
            ("operation timed out", ErrorCode.timeout),
            ("502 Bad Gateway", ErrorCode.server),
            ("Could not resolve to an Issue with the number of 999", ErrorCode.validation),
            ("something odd happened", ErrorCode.unknown),
        ],
    )
    def test_keyword_tables(self, message: str, code: ErrorCode) -> None:
        assert classify_message(message) == code

    @pytest.mark.parametrize(
        "message,code",
        [
            ("HTTP 503", ErrorCode.server),
            ("gh: request failed with status code 422", ErrorCode.validation),
            ("HTTP 403: Resource not accessible by integration", ErrorCode.auth),
            ("HTTP 429", ErrorCode.rate_limit),
            ("unexpected reply 5031 from proxy", ErrorCode.unknown),
        ],
    )
    def test_status_codes_match_only_as_tokens(self, message: str, code: ErrorCode) -> None:
        assert classify_message(message) == code

    def test_not_found_phrase_wins_over_other_keywords(self) -> None:
        message = "Could not resolve to a Repository with the name 'octo/network-tools'."
        assert classify_message(message) == ErrorCode.validation


class TestClassifyError:
    def test_transport_failure_keeps_code_and_override(self) -> None:
        err = classify_error(TransportFailure(ErrorCode.server, "boom", retryable=False, details={"a": 1}))
        assert err.code == ErrorCode.server
        assert err.retryable is False
        assert err.details == {"a": 1}

    def test_transport_failure_without_code_uses_message(self) -> None:
        err = classify_error(CliCommandError("gh issue view", 1, "HTTP 404: Not Found"))
        assert err.code == ErrorCode.validation
        assert err.retryable is False
        assert err.details == {"exit_code": 1, "command": "gh issue view"}

    @pytest.mark.parametrize("number", [1500, 4013, 4291, 502])
    def test_issue_numbers_in_not_found_messages_are_not_status_codes(self, number: int) -> None:
        stderr = f"GraphQL: Could not resolve to an Issue with the number of {number}."
        err = classify_error(CliCommandError("gh issue view", 1, stderr))
        assert err.code == ErrorCode.validation
        assert err.retryable is False

    def test_cli_error_without_stderr_mentions_exit_code(self) -> None:
        err = classify_error(CliCommandError("gh pr view", 2, ""))
        assert "exited with code 2" in err.message

    def test_graphql_response_error(self) -> None:
        err = classify_error(GraphqlResponseError(["API rate limit exceeded"]))
        assert err.code == ErrorCode.rate_limit
        assert err.retryable is True
        assert err.details == {"errors": ["API rate limit exceeded"]}

    def test_request_build_error_is_validation(self) -> None:
        err = classify_error(RequestBuildError("issue.view", "missing input field 'owner'"))
        assert err.code == ErrorCode.validation
        assert err.retryable is False

    @pytest.mark.parametrize(
        "exc",
        [asyncio.TimeoutError(), httpx.ReadTimeout("read timed out")],
    )
    def test_timeouts(self, exc: BaseException) -> None:
        err = classify_error(exc)
        assert err.code == ErrorCode.timeout
        assert err.retryable is True
        assert err.message

    def test_transport_error_is_network(self) -> None:
        err = classify_error(httpx.ConnectError("connection refused"))
        assert err.code == ErrorCode.network
        assert err.retryable is True

    @pytest.mark.parametrize(
        "status,headers,code",
        [
            (401, None, ErrorCode.auth),
            (403, None, ErrorCode.auth),
            (403, {"x-ratelimit-remaining": "0"}, ErrorCode.rate_limit),
            (429, None, ErrorCode.rate_limit),
            (404, None, ErrorCode.validation),
            (422, None, ErrorCode.validation),
            (500, None, ErrorCode.server),
            (503, None, ErrorCode.server),
        ],
    )
    def test_http_status(self, status: int, headers, code: ErrorCode) -> None:
        err = classify_error(_status_error(status, headers))
        assert err.code == code
        assert err.details == {"status": status}

    def test_missing_executable_is_adapter_unsupported(self) -> None:
        err = classify_error(FileNotFoundError(2, "No such file or directory", "gh"))
        assert err.code == ErrorCode.adapter_unsupported
        assert err.retryable is False

    def test_unclassified_is_unknown(self) -> None:
        err = classify_error(RuntimeError("weird"))
        assert err.code == ErrorCode.unknown
        assert err.retryable is False
