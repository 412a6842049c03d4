"""GraphQL query builders for repository, commit and activity listing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

DEFAULT_PAGE_SIZE = 100

_PAGE_INFO = "pageInfo { hasNextPage endCursor }"

REPOSITORIES_QUERY = f"""
query($login: String!, $first: Int!, $after: String) {{
  organization(login: $login) {{
    repositories(first: $first, after: $after, orderBy: {{field: NAME, direction: ASC}}) {{
      {_PAGE_INFO}
      nodes {{ name defaultBranchRef {{ name }} }}
    }}
  }}
  user(login: $login) {{
    repositories(first: $first, after: $after, ownerAffiliations: OWNER, orderBy: {{field: NAME, direction: ASC}}) {{
      {_PAGE_INFO}
      nodes {{ name defaultBranchRef {{ name }} }}
    }}
  }}
}}
"""

COMMITS_QUERY = f"""
query($login: String!, $name: String!, $first: Int!, $after: String,
      $since: GitTimestamp!, $until: GitTimestamp!, $author: CommitAuthor) {{
  organization(login: $login) {{
    repository(name: $name) {{ ...DefaultBranchHistory }}
  }}
  user(login: $login) {{
    repository(name: $name) {{ ...DefaultBranchHistory }}
  }}
}}

fragment DefaultBranchHistory on Repository {{
  defaultBranchRef {{
    target {{
      ... on Commit {{
        history(first: $first, after: $after, since: $since, until: $until, author: $author) {{
          {_PAGE_INFO}
          nodes {{ oid message committedDate author {{ name }} }}
        }}
      }}
    }}
  }}
}}
"""

ACTIVITY_QUERY = f"""
query($login: String!, $first: Int!, $after: String,
      $since: GitTimestamp!, $until: GitTimestamp!, $author: CommitAuthor) {{
  organization(login: $login) {{
    repositories(first: $first, after: $after, orderBy: {{field: NAME, direction: ASC}}) {{
      ...RepositoryActivity
    }}
  }}
  user(login: $login) {{
    repositories(first: $first, after: $after, ownerAffiliations: OWNER, orderBy: {{field: NAME, direction: ASC}}) {{
      ...RepositoryActivity
    }}
  }}
}}

fragment RepositoryActivity on RepositoryConnection {{
  {_PAGE_INFO}
  nodes {{
    name
    defaultBranchRef {{
      target {{
        ... on Commit {{
          history(since: $since, until: $until, author: $author) {{ totalCount }}
        }}
      }}
    }}
    pullRequests(states: [OPEN, CLOSED, MERGED]) {{ totalCount }}
    issues(states: [OPEN, CLOSED]) {{ totalCount }}
  }}
}}
"""

USER_ID_QUERY = """
query($login: String!) {
  user(login: $login) { id }
}
"""


@dataclass(frozen=True)
class GraphQLQuery:
    """A GraphQL document together with its variables."""

    query: str
    variables: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON request body understood by the GraphQL endpoint."""
        return {"query": self.query, "variables": self.variables}


def _validate_page_size(page_size: int) -> None:
    if not 1 <= page_size <= 100:
        raise ValueError(f"page_size must be between 1 and 100, got {page_size}")


def since_timestamp(from_date: date) -> str:
    """Start of ``from_date`` in UTC, as a GitTimestamp."""
    return f"{from_date.isoformat()}T00:00:00Z"


def until_timestamp(to_date: date) -> str:
    """End of ``to_date`` in UTC, as a GitTimestamp."""
    return f"{to_date.isoformat()}T23:59:59Z"


def repositories_query(
    login: str,
    cursor: str | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> GraphQLQuery:
    """Build the query listing one page of repositories owned by ``login``.

    Args:
        login: Organization or user login
        cursor: endCursor of the previous page, None for the first page
        page_size: Number of repositories per page (max 100)
    """
    _validate_page_size(page_size)
    return GraphQLQuery(
        query=REPOSITORIES_QUERY,
        variables={"login": login, "first": page_size, "after": cursor},
    )


def commits_query(
    login: str,
    repository: str,
    from_date: date,
    to_date: date,
    author_id: str | None = None,
    cursor: str | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> GraphQLQuery:
    """Build the query listing one page of default-branch commits.

    Args:
        login: Organization or user login owning the repository
        repository: Repository name
        from_date: First day of the range (inclusive)
        to_date: Last day of the range (inclusive)
        author_id: Node id of the author to filter on, None for all authors
        cursor: endCursor of the previous page, None for the first page
        page_size: Number of commits per page (max 100)
    """
    _validate_page_size(page_size)
    return GraphQLQuery(
        query=COMMITS_QUERY,
        variables={
            "login": login,
            "name": repository,
            "first": page_size,
            "after": cursor,
            "since": since_timestamp(from_date),
            "until": until_timestamp(to_date),
            "author": {"id": author_id} if author_id is not None else None,
        },
    )


def user_id_query(login: str) -> GraphQLQuery:
    """Build the query resolving a user login to its node id."""
    return GraphQLQuery(query=USER_ID_QUERY, variables={"login": login})


def activity_query(
    login: str,
    from_date: date,
    to_date: date,
    author_id: str | None = None,
    cursor: str | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> GraphQLQuery:
    """Build the query counting activity over one page of repositories.

    Commit counts cover the default branch within the date range; pull
    request and issue counts are per-repository totals.
    """
    _validate_page_size(page_size)
    return GraphQLQuery(
        query=ACTIVITY_QUERY,
        variables={
            "login": login,
            "first": page_size,
            "after": cursor,
            "since": since_timestamp(from_date),
            "until": until_timestamp(to_date),
            "author": {"id": author_id} if author_id is not None else None,
        },
    )
