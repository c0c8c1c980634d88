"""Tests for app/core/services/auth_service.py."""

from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from hypothesis import given
from hypothesis import settings as hypothesis_settings
from hypothesis import strategies as st

from app.api.v1.schemas.auth import SignInRequest, SignUpRequest
from app.core.exceptions import (
    AuthValidationError,
    NotAuthenticatedError,
    ProfileNotFoundError,
    ProfileQueryError,
    ProviderAuthError,
)
from app.core.models.profile import AdminProfileUpdate, Profile, ProfileUpdate, UserRole
from app.core.services.auth_service import AuthService

from .fakes import FakeAuthClient, InMemoryProfileRepository, make_session, make_user


class ProviderError(Exception):
    """Stand-in for supabase_auth.errors.AuthApiError."""

    def __init__(self, message: str, status: int, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


def _signed_up(fake_client: FakeAuthClient, email: str, with_session: bool = True):
    user = make_user(email)
    fake_client.auth.sign_up.return_value = SimpleNamespace(
        user=user,
        session=make_session(user) if with_session else None,
    )
    return user


# --- sign_up ---


class TestSignUp:
    @pytest.mark.asyncio
    async def test_role_defaults_to_user(self, auth_service, fake_client, profiles):
        user = _signed_up(fake_client, "a@x.com")

        result = await auth_service.sign_up(SignUpRequest(email="a@x.com", password="secret1"))

        assert result.user.profile.role is UserRole.USER
        assert profiles.rows[UUID(user.id)].role is UserRole.USER

    @pytest.mark.asyncio
    async def test_sends_full_name_and_role_as_metadata(self, auth_service, fake_client):
        _signed_up(fake_client, "ada@example.com")

        await auth_service.sign_up(
            SignUpRequest(
                email="Ada@Example.com",
                password="secret1",
                full_name="Ada Lovelace",
                role=UserRole.INSTRUCTOR,
            )
        )

        credentials = fake_client.auth.sign_up.call_args.args[0]
        assert credentials["email"] == "ada@example.com"
        assert credentials["options"]["data"] == {"full_name": "Ada Lovelace", "role": "instructor"}

    @pytest.mark.asyncio
    async def test_explicit_role_is_stored(self, auth_service, fake_client, profiles):
        user = _signed_up(fake_client, "teach@example.com")

        result = await auth_service.sign_up(
            SignUpRequest(email="teach@example.com", password="secret1", role=UserRole.INSTRUCTOR)
        )

        assert result.user.profile.role is UserRole.INSTRUCTOR
        assert profiles.rows[UUID(user.id)].role is UserRole.INSTRUCTOR

    @pytest.mark.asyncio
    async def test_profile_insert_failure_is_not_surfaced(self, auth_service, fake_client, profiles):
        user = _signed_up(fake_client, "a@x.com")
        profiles.fail_with = ProfileQueryError("new row violates row-level security policy", code="42501")

        result = await auth_service.sign_up(SignUpRequest(email="a@x.com", password="secret1"))

        assert str(result.user.id) == user.id
        assert result.user.profile is None
        assert result.session is not None

    @pytest.mark.asyncio
    async def test_existing_profile_row_is_kept(self, auth_service, fake_client, profiles):
        user = _signed_up(fake_client, "a@x.com")
        profiles.add(Profile(id=UUID(user.id), email="a@x.com", full_name="From trigger"))

        result = await auth_service.sign_up(SignUpRequest(email="a@x.com", password="secret1"))

        assert result.user.profile is None
        assert profiles.rows[UUID(user.id)].full_name == "From trigger"

    @pytest.mark.asyncio
    async def test_pending_confirmation_has_no_session(self, auth_service, fake_client):
        _signed_up(fake_client, "a@x.com", with_session=False)

        result = await auth_service.sign_up(SignUpRequest(email="a@x.com", password="secret1"))

        assert result.user is not None
        assert result.session is None

    @pytest.mark.asyncio
    async def test_provider_error_passes_through(self, auth_service, fake_client, profiles):
        fake_client.auth.sign_up.side_effect = ProviderError(
            "User already registered", status=422, code="user_already_exists"
        )

        with pytest.raises(ProviderAuthError) as exc_info:
            await auth_service.sign_up(SignUpRequest(email="a@x.com", password="secret1"))

        assert exc_info.value.message == "User already registered"
        assert exc_info.value.status == 422
        assert exc_info.value.code == "user_already_exists"
        assert profiles.rows == {}

    @pytest.mark.asyncio
    async def test_weak_password_rejected_before_provider(self, auth_service, fake_client):
        with pytest.raises(AuthValidationError):
            await auth_service.sign_up(SignUpRequest(email="a@x.com", password="123456"))

        fake_client.auth.sign_up.assert_not_called()


# --- sign_in ---


class TestSignIn:
    @pytest.mark.asyncio
    async def test_attaches_profile(self, auth_service, fake_client, profiles):
        user = make_user("ada@example.com")
        profiles.add(Profile(id=UUID(user.id), email=user.email, full_name="Ada", role=UserRole.ADMIN))
        profiles.caller_id = UUID(user.id)
        fake_client.auth.sign_in_with_password.return_value = SimpleNamespace(
            user=user, session=make_session(user)
        )

        result = await auth_service.sign_in(SignInRequest(email="ADA@example.com", password="secret1"))

        assert result.user.profile.full_name == "Ada"
        assert result.user.is_admin
        assert result.session.access_token == "header.payload.signature"
        fake_client.auth.sign_in_with_password.assert_called_once_with(
            {"email": "ada@example.com", "password": "secret1"}
        )

    @pytest.mark.asyncio
    async def test_missing_profile_is_restored_from_metadata(self, auth_service, fake_client, profiles):
        user = make_user("ada@example.com", full_name="Ada", role="instructor")
        profiles.caller_id = UUID(user.id)
        fake_client.auth.sign_in_with_password.return_value = SimpleNamespace(
            user=user, session=make_session(user)
        )

        result = await auth_service.sign_in(SignInRequest(email="ada@example.com", password="secret1"))

        assert result.user.profile.role is UserRole.INSTRUCTOR
        assert profiles.rows[UUID(user.id)].full_name == "Ada"

    @pytest.mark.asyncio
    async def test_unknown_metadata_role_restores_as_user(self, auth_service, fake_client, profiles):
        user = make_user("ada@example.com", role="superuser")
        profiles.caller_id = UUID(user.id)
        fake_client.auth.sign_in_with_password.return_value = SimpleNamespace(
            user=user, session=make_session(user)
        )

        result = await auth_service.sign_in(SignInRequest(email="ada@example.com", password="secret1"))

        assert result.user.profile.role is UserRole.USER

    @pytest.mark.asyncio
    async def test_invalid_credentials(self, auth_service, fake_client):
        fake_client.auth.sign_in_with_password.side_effect = ProviderError(
            "Invalid login credentials", status=400, code="invalid_credentials"
        )

        with pytest.raises(ProviderAuthError, match="Invalid login credentials"):
            await auth_service.sign_in(SignInRequest(email="ada@example.com", password="wrong"))

    @pytest.mark.asyncio
    async def test_profile_read_failure_still_signs_in(self, auth_service, fake_client, profiles):
        user = make_user("ada@example.com")
        fake_client.auth.sign_in_with_password.return_value = SimpleNamespace(
            user=user, session=make_session(user)
        )
        profiles.fail_with = ProfileQueryError("connection reset")

        result = await auth_service.sign_in(SignInRequest(email="ada@example.com", password="secret1"))

        assert result.user.profile is None
        assert result.session is not None


# --- session and user ---


class TestCurrentUser:
    @pytest.mark.asyncio
    async def test_no_session(self, auth_service):
        assert await auth_service.get_current_session() is None
        assert await auth_service.get_current_user() is None

    @pytest.mark.asyncio
    async def test_joins_profile(self, auth_service, fake_client, profiles):
        user = make_user("ada@example.com")
        profiles.add(Profile(id=UUID(user.id), email=user.email, role=UserRole.INSTRUCTOR))
        profiles.caller_id = UUID(user.id)
        fake_client.sign_in_as(user)

        current = await auth_service.get_current_user()
        session = await auth_service.get_current_session()

        assert current.has_role("instructor")
        assert not current.is_admin
        assert session.refresh_token == "refresh-token"

    @pytest.mark.asyncio
    async def test_provider_error_yields_none(self, auth_service, fake_client):
        fake_client.auth.get_user.side_effect = ProviderError("Auth session missing!", status=400)

        assert await auth_service.get_current_user() is None

    @pytest.mark.asyncio
    async def test_session_error_raises(self, auth_service, fake_client):
        fake_client.auth.get_session.side_effect = ProviderError("refresh failed", status=400)

        with pytest.raises(ProviderAuthError):
            await auth_service.get_current_session()

    @pytest.mark.asyncio
    async def test_after_sign_out_there_is_no_user(self, auth_service, fake_client, profiles):
        user = make_user("ada@example.com")
        profiles.add(Profile(id=UUID(user.id), email=user.email))
        fake_client.sign_in_as(user)
        fake_client.auth.sign_out.side_effect = lambda: fake_client.sign_out()

        await auth_service.sign_out()

        assert await auth_service.get_current_user() is None

    @pytest.mark.asyncio
    async def test_sign_out_error(self, auth_service, fake_client):
        fake_client.auth.sign_out.side_effect = ProviderError("network down", status=503)

        with pytest.raises(ProviderAuthError) as exc_info:
            await auth_service.sign_out()
        assert exc_info.value.status == 503


# --- profile updates ---


class TestUpdateProfile:
    @pytest.mark.asyncio
    async def test_requires_authenticated_user(self, auth_service):
        with pytest.raises(NotAuthenticatedError, match="No authenticated user"):
            await auth_service.update_profile(ProfileUpdate(full_name="Ada"))

    @pytest.mark.asyncio
    async def test_updates_only_own_row(self, auth_service, fake_client, profiles):
        user = make_user("ada@example.com")
        other = profiles.add(Profile(id=uuid4(), email="bob@example.com", full_name="Bob"))
        profiles.add(Profile(id=UUID(user.id), email=user.email))
        profiles.caller_id = UUID(user.id)
        fake_client.sign_in_as(user)

        updated = await auth_service.update_profile(ProfileUpdate(full_name="Ada L."))

        assert updated.id == UUID(user.id)
        assert updated.full_name == "Ada L."
        assert profiles.rows[other.id].full_name == "Bob"
        target, changes = profiles.updates[-1]
        assert target == UUID(user.id)
        assert set(changes) == {"full_name", "updated_at"}

    @pytest.mark.asyncio
    async def test_updated_at_increases(self, auth_service, fake_client, profiles):
        user = make_user("ada@example.com")
        profiles.add(Profile(id=UUID(user.id), email=user.email))
        profiles.caller_id = UUID(user.id)
        fake_client.sign_in_as(user)

        first = await auth_service.update_profile(ProfileUpdate(full_name="One"))
        second = await auth_service.update_profile(ProfileUpdate(avatar_url="https://img/2.png"))

        assert second.updated_at > first.updated_at
        assert second.full_name == "One"

    @pytest.mark.asyncio
    async def test_missing_row(self, auth_service, fake_client, profiles):
        user = make_user("ada@example.com")
        profiles.caller_id = UUID(user.id)
        fake_client.sign_in_as(user)

        with pytest.raises(ProfileNotFoundError):
            await auth_service.update_profile(ProfileUpdate(full_name="Ada"))


class TestAdminOperations:
    @staticmethod
    def _setup(fake_client, profiles, caller_role: UserRole):
        caller = make_user("caller@example.com")
        profiles.add(Profile(id=UUID(caller.id), email=caller.email, role=caller_role))
        target = profiles.add(Profile(id=uuid4(), email="target@example.com", full_name="Target"))
        profiles.caller_id = UUID(caller.id)
        fake_client.sign_in_as(caller)
        return target

    @pytest.mark.asyncio
    async def test_admin_updates_other_profile(self, auth_service, fake_client, profiles):
        target = self._setup(fake_client, profiles, UserRole.ADMIN)

        updated = await auth_service.update_profile_by_id(
            target.id, AdminProfileUpdate(role=UserRole.INSTRUCTOR)
        )

        assert updated.role is UserRole.INSTRUCTOR
        assert profiles.rows[target.id].role is UserRole.INSTRUCTOR

    @pytest.mark.asyncio
    async def test_non_admin_update_is_denied(self, auth_service, fake_client, profiles):
        target = self._setup(fake_client, profiles, UserRole.USER)

        with pytest.raises(ProfileNotFoundError, match="not accessible"):
            await auth_service.update_profile_by_id(target.id, AdminProfileUpdate(full_name="Hacked"))

        assert profiles.rows[target.id].full_name == "Target"

    @pytest.mark.asyncio
    async def test_list_profiles_visibility(self, auth_service, fake_client, profiles):
        self._setup(fake_client, profiles, UserRole.USER)
        assert len(await auth_service.list_profiles()) == 1

        admin_service = AuthService(fake_client, InMemoryProfileRepository())
        admin_repo = admin_service.profiles
        self._setup(fake_client, admin_repo, UserRole.ADMIN)
        assert len(await admin_service.list_profiles()) == 2
        assert len(await admin_service.list_profiles(role=UserRole.ADMIN)) == 1

    @pytest.mark.asyncio
    async def test_get_profile_hidden(self, auth_service, fake_client, profiles):
        target = self._setup(fake_client, profiles, UserRole.USER)

        with pytest.raises(ProfileNotFoundError):
            await auth_service.get_profile(target.id)


# --- passwords and roles ---


class TestPasswords:
    @pytest.mark.asyncio
    async def test_reset_uses_redirect(self, auth_service, fake_client):
        await auth_service.reset_password("Ada@Example.com")

        fake_client.auth.reset_password_for_email.assert_called_once_with(
            "ada@example.com",
            {"redirect_to": "https://app.example.com/reset-password"},
        )

    def test_default_redirect_comes_from_site_url(self, fake_client, profiles):
        service = AuthService(fake_client, profiles)
        assert service.password_reset_redirect_url == "https://app.example.com/reset-password"

    @pytest.mark.asyncio
    async def test_reset_error(self, auth_service, fake_client):
        fake_client.auth.reset_password_for_email.side_effect = ProviderError(
            "For security purposes, you can only request this after 60 seconds.", status=429
        )

        with pytest.raises(ProviderAuthError) as exc_info:
            await auth_service.reset_password("ada@example.com")
        assert exc_info.value.status == 429

    @pytest.mark.asyncio
    async def test_update_password(self, auth_service, fake_client):
        await auth_service.update_password("n3w-secret")

        fake_client.auth.update_user.assert_called_once_with({"password": "n3w-secret"})

    @pytest.mark.asyncio
    async def test_update_password_rejects_short(self, auth_service, fake_client):
        with pytest.raises(AuthValidationError):
            await auth_service.update_password("abc")
        fake_client.auth.update_user.assert_not_called()


class TestRoles:
    @pytest.mark.asyncio
    async def test_has_role_without_user(self, auth_service):
        assert await auth_service.has_role(UserRole.USER) is False
        assert await auth_service.is_admin() is False

    @pytest.mark.asyncio
    async def test_is_admin(self, auth_service, fake_client, profiles):
        user = make_user("root@example.com")
        profiles.add(Profile(id=UUID(user.id), email=user.email, role=UserRole.ADMIN))
        profiles.caller_id = UUID(user.id)
        fake_client.sign_in_as(user)

        assert await auth_service.is_admin() is True
        assert await auth_service.has_role("instructor") is False

    @pytest.mark.asyncio
    async def test_unknown_role_is_false(self, auth_service, fake_client, profiles):
        user = make_user("root@example.com")
        profiles.add(Profile(id=UUID(user.id), email=user.email))
        profiles.caller_id = UUID(user.id)
        fake_client.sign_in_as(user)

        assert await auth_service.has_role("owner") is False

    def test_subscription_is_forwarded(self, auth_service, fake_client):
        callback = lambda event, session: None  # noqa: E731

        subscription = auth_service.on_auth_state_change(callback)

        assert subscription is fake_client.subscription
        assert fake_client.callbacks == [callback]


@hypothesis_settings(max_examples=50, deadline=None)
@given(
    full_name=st.one_of(st.none(), st.text(min_size=1, max_size=40)),
    role=st.one_of(st.none(), st.sampled_from(list(UserRole))),
)
def test_signup_role_property(full_name, role):
    """Property: the stored role is the requested one, or 'user' when omitted."""
    import anyio

    fake_client = FakeAuthClient()
    profiles = InMemoryProfileRepository()
    service = AuthService(fake_client, profiles, password_reset_redirect_url="https://x/reset")
    user = _signed_up(fake_client, "prop@example.com")

    async def run():
        return await service.sign_up(
            SignUpRequest(email="prop@example.com", password="secret1", full_name=full_name, role=role)
        )

    result = anyio.run(run)

    expected = role or UserRole.USER
    assert result.user.profile.role is expected
    assert profiles.rows[UUID(user.id)].role is expected
    assert profiles.rows[UUID(user.id)].id == result.user.id
