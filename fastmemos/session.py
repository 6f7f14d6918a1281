"""
FastMemos Session - Login state, URL normalization, and memo submission.

The controller is the only thing the UI talks to. It owns the session
state machine:

    LOGGED_OUT --connect--> AUTHENTICATING --ok--> LOGGED_IN
    AUTHENTICATING --error--> the state connect started from
    LOGGED_IN --create_memo--> SUBMITTING --done/error--> LOGGED_IN
    any --logout--> LOGGED_OUT

State changes are published to subscribers as immutable SessionSnapshot
objects.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import httpx

from .client import ApiResult, MemoClient
from .config import SettingsStore, get_effective_settings
from .errors import MemosError, ErrorCode, unexpected_error
from .logging import get_logger
from .models import MemoDraft, Visibility
from .secret_store import SecretStore, ACCESS_TOKEN_KEY, USERNAME_KEY

logger = get_logger(__name__)


class SessionState(str, Enum):
    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    LOGGED_IN = "logged_in"
    SUBMITTING = "submitting"


BUSY_STATES = (SessionState.AUTHENTICATING, SessionState.SUBMITTING)


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session for the UI."""
    state: SessionState
    server_url: str = ""
    username: str = ""
    default_visibility: Visibility = Visibility.PRIVATE
    last_error: Optional[MemosError] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state in (SessionState.LOGGED_IN, SessionState.SUBMITTING)

    @property
    def is_loading(self) -> bool:
        return self.state in (SessionState.AUTHENTICATING, SessionState.SUBMITTING)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "server_url": self.server_url,
            "username": self.username,
            "is_authenticated": self.is_authenticated,
            "is_loading": self.is_loading,
            "default_visibility": self.default_visibility.value,
            "last_error": self.last_error.to_dict() if self.last_error else None,
        }


Observer = Callable[[SessionSnapshot], None]


def normalize_server_url(raw: str) -> str:
    """
    Normalize a user-typed server URL.

    Trims whitespace, defaults the scheme to https, and strips one
    trailing slash.
    """
    url = raw.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = "https://" + url
    if url.endswith("/"):
        url = url[:-1]
    return url


def parse_server_url(raw: str) -> str:
    """Normalize and check that the result is a usable URL, else INVALID_URL."""
    normalized = normalize_server_url(raw)
    try:
        parsed = httpx.URL(normalized)
    except httpx.InvalidURL as e:
        raise MemosError(ErrorCode.INVALID_URL, cause=e) from e
    if not parsed.host:
        raise MemosError(ErrorCode.INVALID_URL)
    return normalized


class SessionController:
    """
    Owns the single session of this process.

    Usage:
        controller = SessionController(secrets=FileSecretStore())
        await controller.connect("memos.example.com", token)
        await controller.create_memo("Hello world", Visibility.PRIVATE)
    """

    def __init__(
        self,
        secrets: SecretStore,
        settings: Optional[SettingsStore] = None,
        client: Optional[MemoClient] = None,
    ):
        self._secrets = secrets
        self._settings = settings or SettingsStore()
        self._client = client or MemoClient()
        self._observers: list[Observer] = []

        self._server_url = ""
        self._username = ""
        self._default_visibility = Visibility.PRIVATE
        self._last_error: Optional[MemosError] = None
        self._state = SessionState.LOGGED_OUT
        # Bumped by logout so in-flight calls know their session is gone
        self._generation = 0

        self._restore()

    # --- State ---

    def _restore(self) -> None:
        """Pick up the session persisted by a previous run."""
        settings = get_effective_settings(self._settings)
        if settings.server_url:
            try:
                self._server_url = parse_server_url(settings.server_url)
            except MemosError:
                logger.warning("Ignoring invalid server URL %r", settings.server_url)
        self._username = self._secrets.get(USERNAME_KEY) or ""
        try:
            self._default_visibility = Visibility.parse(settings.default_visibility)
        except ValueError:
            logger.warning("Ignoring unknown default visibility %r", settings.default_visibility)
            self._default_visibility = Visibility.PRIVATE

        if self._secrets.get(ACCESS_TOKEN_KEY) and self._server_url:
            self._state = SessionState.LOGGED_IN
            logger.debug("Restored session for %s", self._server_url)

    @property
    def session(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            server_url=self._server_url,
            username=self._username,
            default_visibility=self._default_visibility,
            last_error=self._last_error,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _transition(self, state: SessionState, error: Optional[MemosError] = None) -> None:
        self._state = state
        self._last_error = error
        self._publish()

    def _publish(self) -> None:
        snapshot = self.session
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("Session observer failed")

    def _fail(self, state: SessionState, error: MemosError) -> MemosError:
        logger.info("%s: %s", error.code.name, error.message)
        self._transition(state, error)
        return error

    async def _call(self, call: Awaitable[ApiResult], fallback: SessionState) -> ApiResult:
        """Await a client call without ever leaving the session busy."""
        try:
            return await call
        except Exception as e:
            return ApiResult.fail(unexpected_error(e))
        except BaseException:
            # Cancelled: release the busy state before propagating
            if self._state in BUSY_STATES:
                self._transition(fallback)
            raise

    # --- Authentication ---

    async def connect(self, server_url: str, token: str) -> SessionSnapshot:
        """
        Validate the token against the server and log in.

        Nothing is persisted unless validation succeeds. A failed re-login
        leaves an existing session logged in and untouched. A logout while
        validation is in flight wins: the result is discarded.
        """
        if self._state in BUSY_STATES:
            raise MemosError(ErrorCode.BUSY)

        fallback = (
            SessionState.LOGGED_IN if self._state == SessionState.LOGGED_IN
            else SessionState.LOGGED_OUT
        )

        try:
            normalized = parse_server_url(server_url)
        except MemosError as e:
            raise self._fail(fallback, e)

        token = token.strip()
        if not token:
            raise self._fail(
                fallback,
                MemosError(ErrorCode.NOT_AUTHENTICATED, message="Access token is required"),
            )

        generation = self._generation
        self._transition(SessionState.AUTHENTICATING)
        logger.info("Connecting to %s", normalized)

        result = await self._call(self._client.validate_token(normalized, token), fallback)
        if self._generation != generation:
            logger.info("Logged out while connecting to %s; discarding login", normalized)
            raise MemosError(ErrorCode.NOT_AUTHENTICATED, message="Login cancelled by logout")
        if result.error is not None:
            raise self._fail(fallback, result.error)

        self._secrets.set(ACCESS_TOKEN_KEY, token)
        if result.username:
            self._secrets.set(USERNAME_KEY, result.username)
            self._username = result.username
        self._settings.update(server_url=normalized)
        self._server_url = normalized

        self._transition(SessionState.LOGGED_IN)
        logger.info("Connected to %s", normalized)
        return self.session

    def logout(self) -> SessionSnapshot:
        """Forget the token, username and server URL. Never fails."""
        self._generation += 1
        self._secrets.delete(ACCESS_TOKEN_KEY)
        self._secrets.delete(USERNAME_KEY)
        self._settings.clear_server_url()
        self._server_url = ""
        self._username = ""
        self._transition(SessionState.LOGGED_OUT)
        logger.info("Logged out")
        return self.session

    # --- Memos ---

    def new_draft(self, content: str = "") -> MemoDraft:
        """Start a draft with the default visibility."""
        return MemoDraft(content=content, visibility=self._default_visibility)

    async def create_memo(
        self,
        content: str,
        visibility: Union[Visibility, str, None] = None,
    ) -> SessionSnapshot:
        """
        Send a memo to the server.

        Fails with NOT_AUTHENTICATED before any request when there is no
        stored token or server URL. On failure the caller keeps the draft.
        """
        if self._state in BUSY_STATES:
            raise MemosError(ErrorCode.BUSY)

        token = self._secrets.get(ACCESS_TOKEN_KEY)
        if self._state == SessionState.LOGGED_OUT or not token or not self._server_url:
            raise self._fail(SessionState.LOGGED_OUT, MemosError(ErrorCode.NOT_AUTHENTICATED))

        draft = MemoDraft(
            content=content,
            visibility=Visibility.parse(visibility) if visibility else self._default_visibility,
        )
        try:
            request = draft.to_request()
        except MemosError as e:
            raise self._fail(SessionState.LOGGED_IN, e)

        generation = self._generation
        self._transition(SessionState.SUBMITTING)
        result = await self._call(
            self._client.create_memo(self._server_url, token, request.content, draft.visibility),
            SessionState.LOGGED_IN,
        )
        if self._generation != generation:
            # Logged out mid-flight; report the outcome but stay logged out
            if result.error is not None:
                raise result.error
            return self.session
        if result.error is not None:
            raise self._fail(SessionState.LOGGED_IN, result.error)

        self._transition(SessionState.LOGGED_IN)
        return self.session

    async def submit_draft(self, draft: MemoDraft) -> SessionSnapshot:
        """Send a draft and clear it on success. A failed draft is left intact."""
        snapshot = await self.create_memo(draft.content, draft.visibility)
        draft.clear()
        return snapshot

    # --- Settings ---

    def set_default_visibility(self, visibility: Union[Visibility, str]) -> SessionSnapshot:
        self._default_visibility = Visibility.parse(visibility)
        self._settings.update(default_visibility=self._default_visibility.value)
        self._publish()
        return self.session
