"""Login/authorize workflow on top of the discovered method table."""

from __future__ import annotations

from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from loguru import logger

from cortexrpc.config.schema import CredentialsConfig
from cortexrpc.rpc.protocol import AUTH_PARAM, AuthState
from cortexrpc.rpc.registry import MethodRegistry
from cortexrpc.utils.exceptions import CortexError, ErrorCategory


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    READY = "ready"
    AUTHORIZED = "authorized"
    CLOSED = "closed"


def _username_of(entry: Any) -> str | None:
    if isinstance(entry, dict):
        entry = entry.get("username")
    return entry if isinstance(entry, str) and entry else None


class AuthSession:
    """Discover, log in and authorize; holds the resulting token in ``auth_state``.

    Only one user may be logged in to the service: a different logged-in user is
    logged out before the requested one logs in.
    """

    def __init__(
        self,
        registry: MethodRegistry,
        auth_state: AuthState,
        closer: Callable[[], Awaitable[None]],
    ):
        self._registry = registry
        self.auth_state = auth_state
        self._closer = closer
        self.state = SessionState.DISCONNECTED

    def mark_ready(self) -> None:
        if self.state is SessionState.DISCONNECTED:
            self.state = SessionState.READY

    async def init(self, credentials: CredentialsConfig | Mapping[str, Any] | None = None) -> str:
        """Log in as needed and authorize; returns the auth token."""
        creds = (
            credentials
            if isinstance(credentials, CredentialsConfig)
            else CredentialsConfig.model_validate(dict(credentials or {}))
        )
        username = creds.username

        logged_in = await self._registry.invoke("getUserLogin")
        users = [u for u in map(_username_of, logged_in or []) if u]
        if users and users[0] != username:
            logger.info(f"init: Logging out other user {users[0]}")
            await self._registry.invoke("logout", {"username": users[0]})
            users = []
        elif username:
            logger.info("init: Reusing existing login" if users else "init: No user logged in")
        else:
            logger.info("init: Logging in anonymously")

        if not users and username and creds.password:
            logger.info(f"init: Logging in as {username}")
            await self._registry.invoke("login", creds.login_params())

        result = await self._registry.invoke("authorize", creds.authorize_params())
        token = result.get(AUTH_PARAM) if isinstance(result, dict) else None
        if not token:
            raise CortexError("authorize returned no token", code="AUTH_TOKEN_MISSING", category=ErrorCategory.REMOTE)
        self.auth_state.token = token
        self.state = SessionState.AUTHORIZED
        logger.info("init: Got auth token")
        return token

    async def create_session(self, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Any:
        """Create a session and remember its id."""
        result = await self._registry.invoke("createSession", params, **kwargs)
        session_id = result.get("id") if isinstance(result, dict) else None
        if session_id:
            self.auth_state.session_id = str(session_id)
            logger.info(f"session: Created {session_id}")
        return result

    async def close(self) -> None:
        await self._closer()
        self.auth_state.clear()
        self.state = SessionState.CLOSED
