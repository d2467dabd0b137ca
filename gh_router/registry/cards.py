"""Built-in GitHub operation cards.

Input field names are snake_case and shared across transports: CLI argument
templates, GraphQL variable mappings and REST path templates all read from the
same request input.
"""

from __future__ import annotations

from typing import List

from ..schemas.enums import MergeStrategy, ReasonCode, RouteSource
from .types import (
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
)

_REPO_REQUIRED = ["owner", "name"]
_ISSUE_REQUIRED = ["owner", "name", "issue_number"]
_PR_REQUIRED = ["owner", "name", "pr_number"]

_REPO_VIEW_QUERY = """
query RepoView($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    id
    name
    nameWithOwner
    isPrivate
    stargazerCount
    forkCount
    url
    defaultBranchRef { name }
  }
}
"""

_ISSUE_VIEW_QUERY = """
query IssueView($owner: String!, $name: String!, $issueNumber: Int!) {
  repository(owner: $owner, name: $name) {
    issue(number: $issueNumber) {
      id
      number
      title
      state
      url
      body
      labels(first: 20) { nodes { name } }
    }
  }
}
"""

_ISSUE_LIST_QUERY = """
query IssueList($owner: String!, $name: String!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    issues(first: $first, after: $after, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes { id number title state url }
      pageInfo { endCursor hasNextPage }
    }
  }
}
"""

_ISSUE_COMMENTS_QUERY = """
query IssueCommentsList($owner: String!, $name: String!, $issueNumber: Int!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    issue(number: $issueNumber) {
      comments(first: $first, after: $after) {
        nodes { id body createdAt url author { login } }
        pageInfo { endCursor hasNextPage }
      }
    }
  }
}
"""

_PR_VIEW_QUERY = """
query PrView($owner: String!, $name: String!, $prNumber: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $prNumber) {
      id
      number
      title
      state
      url
      isDraft
      body
      labels(first: 20) { nodes { name } }
    }
  }
}
"""

_PR_LIST_QUERY = """
query PrList($owner: String!, $name: String!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    pullRequests(first: $first, after: $after, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes { id number title state url isDraft }
      pageInfo { endCursor hasNextPage }
    }
  }
}
"""

_REPO_VARS = {"owner": "owner", "name": "name"}
_LIST_VARS = {"owner": "owner", "name": "name", "first": "first", "after": "after"}


def _schema(required: List[str]) -> dict:
    return {"type": "object", "required": list(required)}


def builtin_cards() -> List[OperationCard]:
    """Return fresh instances of the built-in operation cards, in declaration order."""
    return [
        OperationCard(
            capability_id="repo.view",
            description="Fetch repository metadata.",
            input_schema=_schema(_REPO_REQUIRED),
            output_schema=_schema(["name"]),
            routing=RoutingBlock(preferred=RouteSource.cli, fallbacks=[RouteSource.graphql, RouteSource.rest]),
            cli=CliHints(
                command="repo view",
                args=["{owner}/{name}"],
                json_fields=["id", "name", "nameWithOwner", "isPrivate", "stargazerCount", "forkCount", "url"],
            ),
            graphql=GraphqlHints(
                operation_name="RepoView",
                document=_REPO_VIEW_QUERY,
                variables=_REPO_VARS,
                result_path="repository",
            ),
            rest=RestHints(endpoints=[RestEndpoint(method="GET", path="/repos/{owner}/{name}")]),
        ),
        OperationCard(
            capability_id="issue.view",
            description="Fetch one issue with body and labels.",
            input_schema=_schema(_ISSUE_REQUIRED),
            output_schema=_schema(["number", "title"]),
            routing=RoutingBlock(preferred=RouteSource.graphql, fallbacks=[RouteSource.cli, RouteSource.rest]),
            cli=CliHints(
                command="issue view",
                args=["{issue_number}", "--repo", "{owner}/{name}"],
                json_fields=["id", "number", "title", "state", "url", "body", "labels"],
            ),
            graphql=GraphqlHints(
                operation_name="IssueView",
                document=_ISSUE_VIEW_QUERY,
                variables={"owner": "owner", "name": "name", "issueNumber": "issue_number"},
                result_path="repository.issue",
            ),
            rest=RestHints(endpoints=[RestEndpoint(method="GET", path="/repos/{owner}/{name}/issues/{issue_number}")]),
        ),
        OperationCard(
            capability_id="issue.list",
            description="List repository issues, newest first.",
            input_schema={**_schema(_REPO_REQUIRED), "properties": {"first": {"type": "integer", "default": 30}}},
            output_schema={"type": "array"},
            routing=RoutingBlock(
                preferred=RouteSource.cli,
                fallbacks=[RouteSource.graphql],
                suitability=[
                    InputFieldRule(
                        transport=RouteSource.cli,
                        field="after",
                        present=False,
                        reason=ReasonCode.card_preferred,
                    ),
                ],
                notes=["The CLI cannot resume from a cursor; cursor pages go through GraphQL."],
            ),
            cli=CliHints(
                command="issue list",
                args=["--repo", "{owner}/{name}"],
                optional_args={"first": ["--limit", "{first}"], "state": ["--state", "{state}"]},
                json_fields=["id", "number", "title", "state", "url"],
            ),
            graphql=GraphqlHints(
                operation_name="IssueList",
                document=_ISSUE_LIST_QUERY,
                variables=_LIST_VARS,
                result_path="repository.issues",
            ),
        ),
        OperationCard(
            capability_id="issue.comments.list",
            description="List comments on an issue.",
            input_schema=_schema(_ISSUE_REQUIRED),
            output_schema={"type": "array"},
            routing=RoutingBlock(preferred=RouteSource.graphql, fallbacks=[RouteSource.rest]),
            graphql=GraphqlHints(
                operation_name="IssueCommentsList",
                document=_ISSUE_COMMENTS_QUERY,
                variables={
                    "owner": "owner",
                    "name": "name",
                    "issueNumber": "issue_number",
                    "first": "first",
                    "after": "after",
                },
                result_path="repository.issue.comments",
            ),
            rest=RestHints(
                endpoints=[RestEndpoint(method="GET", path="/repos/{owner}/{name}/issues/{issue_number}/comments")]
            ),
        ),
        OperationCard(
            capability_id="issue.labels.add",
            description="Add labels to an issue.",
            input_schema=_schema([*_ISSUE_REQUIRED, "labels"]),
            routing=RoutingBlock(preferred=RouteSource.cli, fallbacks=[RouteSource.rest]),
            cli=CliHints(
                command="issue edit",
                args=["{issue_number}", "--repo", "{owner}/{name}", "--add-label", "{labels}"],
            ),
            rest=RestHints(
                endpoints=[RestEndpoint(method="POST", path="/repos/{owner}/{name}/issues/{issue_number}/labels")]
            ),
        ),
        OperationCard(
            capability_id="issue.comment.create",
            description="Post a comment on an issue.",
            input_schema=_schema([*_ISSUE_REQUIRED, "body"]),
            routing=RoutingBlock(preferred=RouteSource.cli, fallbacks=[RouteSource.rest]),
            cli=CliHints(
                command="issue comment",
                args=["{issue_number}", "--repo", "{owner}/{name}", "--body", "{body}"],
            ),
            rest=RestHints(
                endpoints=[RestEndpoint(method="POST", path="/repos/{owner}/{name}/issues/{issue_number}/comments")]
            ),
        ),
        OperationCard(
            capability_id="pr.view",
            description="Fetch one pull request.",
            input_schema=_schema(_PR_REQUIRED),
            output_schema=_schema(["number", "title"]),
            routing=RoutingBlock(
                preferred=RouteSource.graphql,
                fallbacks=[RouteSource.cli],
                suitability=[
                    EnvFlagRule(
                        transport=RouteSource.graphql,
                        flag="github_token",
                        expected=True,
                        reason=ReasonCode.efficiency_gain,
                    ),
                ],
            ),
            cli=CliHints(
                command="pr view",
                args=["{pr_number}", "--repo", "{owner}/{name}"],
                json_fields=["id", "number", "title", "state", "url", "isDraft", "body", "labels"],
            ),
            graphql=GraphqlHints(
                operation_name="PrView",
                document=_PR_VIEW_QUERY,
                variables={"owner": "owner", "name": "name", "prNumber": "pr_number"},
                result_path="repository.pullRequest",
            ),
        ),
        OperationCard(
            capability_id="pr.list",
            description="List pull requests, newest first.",
            input_schema=_schema(_REPO_REQUIRED),
            output_schema={"type": "array"},
            routing=RoutingBlock(preferred=RouteSource.graphql, fallbacks=[RouteSource.cli]),
            cli=CliHints(
                command="pr list",
                args=["--repo", "{owner}/{name}"],
                optional_args={"first": ["--limit", "{first}"], "state": ["--state", "{state}"]},
                json_fields=["id", "number", "title", "state", "url", "isDraft"],
            ),
            graphql=GraphqlHints(
                operation_name="PrList",
                document=_PR_LIST_QUERY,
                variables=_LIST_VARS,
                result_path="repository.pullRequests",
            ),
        ),
        OperationCard(
            capability_id="pr.reviews.request",
            description="Request reviews on a pull request.",
            input_schema=_schema([*_PR_REQUIRED, "reviewers"]),
            routing=RoutingBlock(preferred=RouteSource.cli, fallbacks=[RouteSource.rest]),
            cli=CliHints(
                command="pr edit",
                args=["{pr_number}", "--repo", "{owner}/{name}", "--add-reviewer", "{reviewers}"],
            ),
            rest=RestHints(
                endpoints=[
                    RestEndpoint(method="POST", path="/repos/{owner}/{name}/pulls/{pr_number}/requested_reviewers")
                ]
            ),
        ),
        OperationCard(
            capability_id="issue.triage",
            description="View an issue, label it, then leave a triage comment.",
            input_schema=_schema([*_ISSUE_REQUIRED, "labels", "comment"]),
            composite=CompositeBlock(
                steps=[
                    CompositeStep(
                        id="view",
                        capability="issue.view",
                        input={
                            "owner": InputBinding(source="input.owner"),
                            "name": InputBinding(source="input.name"),
                            "issue_number": InputBinding(source="input.issue_number"),
                        },
                    ),
                    CompositeStep(
                        id="label",
                        capability="issue.labels.add",
                        when_any=["view"],
                        input={
                            "owner": InputBinding(source="input.owner"),
                            "name": InputBinding(source="input.name"),
                            "issue_number": InputBinding(source="steps.view.number"),
                            "labels": InputBinding(source="input.labels"),
                        },
                    ),
                    CompositeStep(
                        id="comment",
                        capability="issue.comment.create",
                        when_any=["label"],
                        input={
                            "owner": InputBinding(source="input.owner"),
                            "name": InputBinding(source="input.name"),
                            "issue_number": InputBinding(source="steps.view.number"),
                            "body": InputBinding(source="input.comment"),
                        },
                    ),
                ]
            ),
        ),
        OperationCard(
            capability_id="issue.comments.bulk_create",
            description="Post one comment per entry of ``comments`` on the same issue.",
            input_schema=_schema([*_ISSUE_REQUIRED, "comments"]),
            composite=CompositeBlock(
                steps=[
                    CompositeStep(
                        id="post",
                        capability="issue.comment.create",
                        foreach="input.comments",
                        merge=MergeStrategy.array,
                        input={
                            "owner": InputBinding(source="input.owner"),
                            "name": InputBinding(source="input.name"),
                            "issue_number": InputBinding(source="input.issue_number"),
                            "body": InputBinding(source="item"),
                        },
                    ),
                ]
            ),
        ),
    ]
