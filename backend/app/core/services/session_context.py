from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from app.api.v1.schemas.auth import SignInRequest, SignUpRequest
from app.core.exceptions import AuthError, AuthValidationError
from app.core.models.profile import UserRole
from app.core.schemas.auth import AuthState, SessionInfo
from app.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from app.core.models.profile import Profile, ProfileUpdate
    from app.core.schemas.auth import AuthUser
    from app.core.services.auth_service import AuthService


logger = get_logger(__name__)


def _build(model, **fields):
    try:
        return model(**fields)
    except ValidationError as err:
        first = err.errors()[0]
        field = ".".join(str(loc) for loc in first["loc"])
        raise AuthValidationError(f"{field}: {first['msg']}" if field else first["msg"]) from err


class SessionContext:
    """In-memory auth state for one signed-in user of a long-lived client.

    The context is the only writer of its ``AuthState``. Readers either poll
    ``state`` or register a listener with ``subscribe``. Provider notifications
    can arrive on any thread; they are handed to the event loop the context was
    started on and applied there one by one.

    Usage::

        async with SessionContext(AuthService(create_session_supabase_client())) as ctx:
            await ctx.sign_in("ada@example.com", "secret1")
            print(ctx.user.profile.full_name, ctx.is_admin)
    """

    def __init__(self, auth_service: AuthService) -> None:
        self._auth = auth_service
        self._state = AuthState()
        self._listeners: list[Callable[[AuthState], None]] = []
        self._subscription: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Task[None]] = set()

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def user(self) -> AuthUser | None:
        return self._state.user

    @property
    def session(self) -> SessionInfo | None:
        return self._state.session

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def is_admin(self) -> bool:
        return self._state.is_admin

    @property
    def started(self) -> bool:
        return self._subscription is not None

    def has_role(self, role: UserRole | str) -> bool:
        user = self._state.user
        return user is not None and user.has_role(role)

    def subscribe(self, listener: Callable[[AuthState], None]) -> Callable[[], None]:
        """Call ``listener`` with every new state; returns a function that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, **changes: Any) -> None:
        if "user" in changes:
            user = changes["user"]
            changes["is_admin"] = bool(user and user.is_admin)
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Auth state listener failed")

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to provider notifications and load the current session once."""
        if self.started:
            raise RuntimeError("SessionContext already started")
        self._loop = asyncio.get_running_loop()
        self._subscription = self._auth.on_auth_state_change(self._on_auth_event)
        await self._initialize()

    async def stop(self) -> None:
        """Unsubscribe from the provider and finish handling queued notifications."""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()
        await self.wait_for_pending_events()
        self._loop = None

    async def __aenter__(self) -> SessionContext:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def _initialize(self) -> None:
        try:
            session = await self._auth.get_current_session()
            user = await self._auth.get_current_user() if session else None
            self._publish(session=session, user=user, loading=False)
        except AuthError as err:
            logger.error("Auth initialization failed", extra={"error": err.message})
            self._publish(session=None, user=None, loading=False)

    async def wait_for_pending_events(self) -> None:
        """Wait until every provider notification received so far has been applied."""
        # Let call_soon_threadsafe callbacks queued by the provider create their tasks
        await asyncio.sleep(0)
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- provider notifications ---------------------------------------------

    def _on_auth_event(self, event: Any, session: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_event, event, session)

    def _schedule_event(self, event: Any, session: Any) -> None:
        if self._loop is None:
            return
        task = self._loop.create_task(self._apply_auth_event(event, session))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _apply_auth_event(self, event: Any, session: Any) -> None:
        session_info = SessionInfo.from_provider(session)
        user = getattr(session, "user", None)
        logger.info(
            "Auth state changed",
            extra={"event": str(getattr(event, "value", event)), "email": getattr(user, "email", None)},
        )
        current = await self._auth.get_current_user() if session_info else None
        self._publish(session=session_info, user=current, loading=False)

    # -- operations ----------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> AuthUser | None:
        request = _build(SignInRequest, email=email, password=password)
        self._publish(loading=True)
        try:
            result = await self._auth.sign_in(request)
        except Exception:
            self._publish(loading=False)
            raise
        self._publish(user=result.user, session=result.session, loading=False)
        return result.user

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> AuthUser | None:
        request = _build(SignUpRequest, email=email, password=password, full_name=full_name, role=UserRole.USER)
        self._publish(loading=True)
        try:
            result = await self._auth.sign_up(request)
        except Exception:
            self._publish(loading=False)
            raise
        if result.session is not None:
            self._publish(user=result.user, session=result.session, loading=False)
        else:
            # Email confirmation pending; nobody is signed in yet
            self._publish(loading=False)
        return result.user

    async def sign_out(self) -> None:
        self._publish(loading=True)
        try:
            await self._auth.sign_out()
        except Exception:
            self._publish(loading=False)
            raise
        self._publish(user=None, session=None, loading=False)

    async def update_profile(self, updates: ProfileUpdate) -> Profile:
        profile = await self._auth.update_profile(updates)
        self._publish(user=await self._auth.get_current_user())
        return profile

    async def reset_password(self, email: str) -> None:
        await self._auth.reset_password(email)
