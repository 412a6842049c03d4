"""Resolution of author logins to GitHub node ids."""

import logging

from git_yearbook.parser import ResponseParser
from git_yearbook.queries import user_id_query
from git_yearbook.retry import RetryPolicy
from git_yearbook.transport import LookupHint, Transport

logger = logging.getLogger(__name__)


class UserIdResolver:
    """Resolve a login to the opaque id used by the commit author filter.

    Results are memoized for the lifetime of the resolver only; they are
    never written to the persistent commit cache.
    """

    def __init__(
        self,
        transport: Transport,
        retry_policy: RetryPolicy | None = None,
        parser: ResponseParser | None = None,
    ) -> None:
        self.transport = transport
        self.retry_policy = retry_policy if retry_policy is not None else RetryPolicy()
        self.parser = parser if parser is not None else ResponseParser()
        self._resolved: dict[str, str] = {}

    async def resolve(self, login: str) -> str:
        """Resolve ``login`` to its node id.

        Raises:
            NotFoundError: If the login does not exist
            TransientRateLimitError: If rate limiting outlasts the retry policy
        """
        if login in self._resolved:
            return self._resolved[login]

        query = user_id_query(login)

        async def fetch() -> str:
            response = await self.transport.execute(query, LookupHint.DIRECT)
            return self.parser.parse_user_id(response, login)

        user_id = await self.retry_policy.execute(fetch)
        logger.debug(f"Resolved login '{login}' to id {user_id}")
        self._resolved[login] = user_id
        return user_id
