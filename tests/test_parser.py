"""Tests for GraphQL response parsing."""

import json

import pytest

from git_yearbook.exceptions import (
    MalformedResponseError,
    NotFoundError,
    TransientRateLimitError,
)
from git_yearbook.models import GitHubActivity, OwnerKind
from git_yearbook.parser import ResponseParser
from git_yearbook.transport import TransportResponse
from tests.fixtures.github_responses import (
    activity_payload,
    as_response,
    commits_payload,
    make_commit_nodes,
    not_found_error,
    rate_limited_payload,
    repositories_payload,
    user_id_payload,
)


@pytest.fixture
def parser():
    return ResponseParser()


class TestDecode:
    """Test envelope decoding."""

    def test_invalid_json(self, parser):
        with pytest.raises(MalformedResponseError):
            parser.decode("<html>Bad gateway</html>")

    def test_non_object_payload(self, parser):
        with pytest.raises(MalformedResponseError):
            parser.decode("[1, 2, 3]")

    def test_rate_limit_error_in_payload(self, parser):
        with pytest.raises(TransientRateLimitError):
            parser.decode(json.dumps(rate_limited_payload()))

    def test_rate_limit_detected_from_message(self, parser):
        payload = {"errors": [{"message": "You have exceeded a secondary rate limit."}]}
        with pytest.raises(TransientRateLimitError):
            parser.decode(json.dumps(payload))


class TestParseRepositories:
    """Test repository page parsing, including the dual owner lookup."""

    def test_organization_section(self, parser):
        payload = repositories_payload(
            [("api", True), ("docs", False)], has_next_page=True, end_cursor="repo-2"
        )

        page = parser.parse_repositories(as_response(payload), "acme")

        assert page.owner_kind == OwnerKind.ORGANIZATION
        assert [r.name for r in page.repositories] == ["api", "docs"]
        assert [r.has_default_branch for r in page.repositories] == [True, False]
        assert page.page_info.next_cursor() == "repo-2"

    def test_user_section_when_transport_signaled_failure(self, parser):
        """A failed status with a NOT_FOUND organization marker uses the user data."""
        payload = repositories_payload([("dotfiles", True)], section="user", login="bob")

        page = parser.parse_repositories(as_response(payload, ok=False), "bob")

        assert page.owner_kind == OwnerKind.USER
        assert [r.name for r in page.repositories] == ["dotfiles"]

    def test_user_section_with_null_sibling_and_success_status(self, parser):
        payload = repositories_payload(
            [("dotfiles", True)], section="user", login="bob", sibling_error=False
        )

        page = parser.parse_repositories(as_response(payload), "bob")

        assert page.owner_kind == OwnerKind.USER

    def test_failed_status_without_marker_is_malformed(self, parser):
        payload = repositories_payload(
            [("dotfiles", True)], section="user", login="bob", sibling_error=False
        )

        with pytest.raises(MalformedResponseError):
            parser.parse_repositories(as_response(payload, ok=False), "bob")

    def test_unknown_login(self, parser):
        payload = {
            "data": {"organization": None, "user": None},
            "errors": [
                not_found_error("organization", "ghost"),
                not_found_error("user", "ghost"),
            ],
        }

        with pytest.raises(NotFoundError) as exc_info:
            parser.parse_repositories(as_response(payload, ok=False), "ghost")

        assert exc_info.value.login == "ghost"

    def test_both_sections_null_without_markers(self, parser):
        payload = {"data": {"organization": None, "user": None}}

        with pytest.raises(MalformedResponseError):
            parser.parse_repositories(as_response(payload), "ghost")

    def test_unrecognized_error_is_malformed(self, parser):
        payload = repositories_payload([("api", True)], sibling_error=False)
        payload["errors"] = [{"type": "FORBIDDEN", "message": "Resource not accessible"}]

        with pytest.raises(MalformedResponseError):
            parser.parse_repositories(as_response(payload), "acme")

    def test_missing_data(self, parser):
        with pytest.raises(MalformedResponseError):
            parser.parse_repositories(as_response({"errors": []}), "acme")

    def test_invalid_connection_shape(self, parser):
        payload = {"data": {"organization": {"repositories": {"nodes": "nope"}}, "user": None}}

        with pytest.raises(MalformedResponseError):
            parser.parse_repositories(as_response(payload), "acme")

    def test_accepts_plain_text(self, parser):
        page = parser.parse_repositories(json.dumps(repositories_payload([])), "acme")

        assert page.repositories == []
        assert page.page_info.next_cursor() is None


class TestParseCommits:
    """Test commit history parsing."""

    def test_commits_in_upstream_order(self, parser):
        payload = commits_payload(
            make_commit_nodes(3), has_next_page=True, end_cursor="commit-3"
        )

        page = parser.parse_commits(as_response(payload), "api", "acme")

        assert [c.id for c in page.commits] == ["c0000", "c0001", "c0002"]
        assert all(c.repository == "api" for c in page.commits)
        assert page.commits[0].author_name == "Bob"
        assert page.page_info.next_cursor() == "commit-3"

    def test_missing_author_name_becomes_unknown(self, parser):
        nodes = make_commit_nodes(2, author_name=None)
        nodes[1]["author"] = None

        page = parser.parse_commits(as_response(commits_payload(nodes)), "api", "acme")

        assert [c.author_name for c in page.commits] == ["Unknown", "Unknown"]

    def test_no_default_branch_is_empty_final_page(self, parser):
        payload = commits_payload([], default_branch=False)

        page = parser.parse_commits(as_response(payload), "empty", "acme")

        assert page.commits == []
        assert page.page_info.next_cursor() is None

    def test_missing_repository(self, parser):
        payload = {
            "data": {"organization": {"repository": None}, "user": None},
            "errors": [
                not_found_error("user", "acme"),
                not_found_error("organization", "acme", "repository"),
            ],
        }

        with pytest.raises(NotFoundError):
            parser.parse_commits(as_response(payload, ok=False), "gone", "acme")

    def test_missing_history_is_malformed(self, parser):
        payload = {
            "data": {
                "organization": {"repository": {"defaultBranchRef": {"target": {}}}},
                "user": None,
            }
        }

        with pytest.raises(MalformedResponseError):
            parser.parse_commits(as_response(payload), "api", "acme")

    def test_user_owned_history(self, parser):
        payload = commits_payload(make_commit_nodes(1), section="user", login="bob")

        page = parser.parse_commits(as_response(payload, ok=False), "dotfiles", "bob")

        assert page.owner_kind == OwnerKind.USER
        assert len(page.commits) == 1


class TestParseActivity:
    """Test activity page parsing."""

    def test_sums_counts_across_repositories(self, parser):
        payload = activity_payload(
            [("api", 12, 4, 3), ("web", 8, 1, 0)], has_next_page=True, end_cursor="repo-2"
        )

        page = parser.parse_activity(as_response(payload), "acme")

        assert page.owner_kind == OwnerKind.ORGANIZATION
        assert page.activity == GitHubActivity(commits=20, pull_requests=5, issues=3)
        assert page.repository_count == 2
        assert page.page_info.next_cursor() == "repo-2"

    def test_repository_without_default_branch(self, parser):
        """Empty repositories add no commits but keep their pull requests and issues."""
        payload = activity_payload([("api", 2, 0, 0), ("empty", None, 1, 6)])

        page = parser.parse_activity(as_response(payload), "acme")

        assert page.activity == GitHubActivity(commits=2, pull_requests=1, issues=6)
        assert page.repository_count == 2

    def test_reviews_are_not_counted(self, parser):
        page = parser.parse_activity(as_response(activity_payload([("api", 1, 1, 1)])), "acme")
        assert page.activity.reviews == 0

    def test_user_section_when_transport_signaled_failure(self, parser):
        payload = activity_payload([("dotfiles", 3, 0, 1)], section="user", login="bob")

        page = parser.parse_activity(as_response(payload, ok=False), "bob")

        assert page.owner_kind == OwnerKind.USER
        assert page.activity.commits == 3

    def test_failed_status_without_marker_is_malformed(self, parser):
        payload = activity_payload(
            [("dotfiles", 3, 0, 1)], section="user", login="bob", sibling_error=False
        )

        with pytest.raises(MalformedResponseError):
            parser.parse_activity(as_response(payload, ok=False), "bob")

    def test_unknown_login(self, parser):
        payload = {
            "data": {"organization": None, "user": None},
            "errors": [
                not_found_error("organization", "ghost"),
                not_found_error("user", "ghost"),
            ],
        }

        with pytest.raises(NotFoundError):
            parser.parse_activity(as_response(payload, ok=False), "ghost")

    def test_missing_history_count(self, parser):
        payload = activity_payload([("api", 1, 0, 0)])
        payload["data"]["organization"]["repositories"]["nodes"][0]["defaultBranchRef"] = {
            "target": {}
        }

        with pytest.raises(MalformedResponseError):
            parser.parse_activity(as_response(payload), "acme")

    def test_missing_pull_request_count(self, parser):
        payload = activity_payload([("api", 1, 0, 0)])
        del payload["data"]["organization"]["repositories"]["nodes"][0]["pullRequests"]

        with pytest.raises(MalformedResponseError):
            parser.parse_activity(as_response(payload), "acme")

    def test_rate_limited(self, parser):
        with pytest.raises(TransientRateLimitError):
            parser.parse_activity(as_response(rate_limited_payload()), "acme")


class TestParseUserId:
    def test_resolves_id(self, parser):
        assert parser.parse_user_id(as_response(user_id_payload("U_1")), "bob") == "U_1"

    def test_unknown_user(self, parser):
        with pytest.raises(NotFoundError):
            parser.parse_user_id(as_response(user_id_payload(None, "ghost")), "ghost")

    def test_missing_id_is_malformed(self, parser):
        payload = {"data": {"user": {}}}
        with pytest.raises(MalformedResponseError):
            parser.parse_user_id(TransportResponse(text=json.dumps(payload)), "bob")
