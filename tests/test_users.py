"""Tests for registration, login, tokens and account management."""

import pytest
import jwt

from fintrack.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from fintrack.core.schemas import (
    FamilyCreate, InviteMember, LoginRequest, MemberUpdate, PasswordChange, RegisterRequest, UserUpdate,
)
from fintrack.core.security import ACCESS, REFRESH, decode_token
from fintrack.models import Family, FamilyRole, User
from fintrack.services.family_service import FamilyService
from fintrack.services.user_service import UserService


class TestRegisterAndLogin:
    def test_register_returns_tokens(self, db, ctx_for, settings):
        result = UserService(ctx_for()).register(RegisterRequest(
            name="  Dana  ", email="Dana@Example.com", password="hunter22",
        ))
        user = result["user"]
        assert user.name == "Dana"
        assert user.email == "dana@example.com"
        assert user.password_hash != "hunter22"

        access = decode_token(settings, result["token"], ACCESS)
        refresh = decode_token(settings, result["refresh_token"], REFRESH)
        assert access["sub"] == str(user.id)
        assert refresh["sub"] == str(user.id)

    def test_duplicate_email(self, ctx_for, alice):
        with pytest.raises(ConflictError) as exc_info:
            UserService(ctx_for()).register(RegisterRequest(
                name="Alice again", email="ALICE@example.com", password="secret123",
            ))
        assert exc_info.value.error_code == "USER_EXISTS"

    def test_short_password(self, ctx_for):
        with pytest.raises(ValidationError):
            UserService(ctx_for()).register(RegisterRequest(name="Dana", email="dana@example.com", password="123"))

    def test_invalid_email(self, ctx_for):
        with pytest.raises(ValidationError):
            UserService(ctx_for()).register(RegisterRequest(name="Dana", email="dana", password="secret123"))

    def test_login(self, ctx_for, alice):
        result = UserService(ctx_for()).login(LoginRequest(email="alice@example.com", password="secret123"))
        assert result["user"].id == alice.id

    @pytest.mark.parametrize("email,password", [
        ("alice@example.com", "wrong-password"),
        ("nobody@example.com", "secret123"),
    ])
    def test_bad_credentials_share_one_error(self, ctx_for, alice, email, password):
        with pytest.raises(AuthenticationError) as exc_info:
            UserService(ctx_for()).login(LoginRequest(email=email, password=password))
        assert exc_info.value.error_code == "INVALID_CREDENTIALS"
        assert exc_info.value.message == "Invalid email or password"

    def test_remember_me_extends_access_token(self, ctx_for, settings, alice):
        service = UserService(ctx_for())
        short = service.login(LoginRequest(email=alice.email, password="secret123"))
        long = service.login(LoginRequest(email=alice.email, password="secret123", remember_me=True))

        def lifetime(token):
            payload = jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
            return payload["exp"] - payload["iat"]

        assert lifetime(short["token"]) == settings.access_token_days * 86400
        assert lifetime(long["token"]) == settings.remember_me_token_days * 86400


class TestTokens:
    def test_refresh_issues_new_pair(self, ctx_for, settings, alice):
        service = UserService(ctx_for())
        login = service.login(LoginRequest(email=alice.email, password="secret123"))
        refreshed = service.refresh(login["refresh_token"])
        assert refreshed["user"].id == alice.id
        assert decode_token(settings, refreshed["token"], ACCESS)["sub"] == str(alice.id)

    def test_access_token_is_not_a_refresh_token(self, ctx_for, alice):
        service = UserService(ctx_for())
        login = service.login(LoginRequest(email=alice.email, password="secret123"))
        with pytest.raises(AuthenticationError) as exc_info:
            service.refresh(login["token"])
        assert exc_info.value.error_code == "INVALID_TOKEN"

    def test_garbage_token(self, settings):
        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(settings, "not-a-jwt", ACCESS)
        assert exc_info.value.error_code == "INVALID_TOKEN"


class TestProfile:
    def test_update_profile(self, ctx_for, alice):
        user = UserService(ctx_for(alice)).update_profile(UserUpdate(name="Alice Smith", avatar="https://x/a.png"))
        assert user.name == "Alice Smith"
        assert user.avatar == "https://x/a.png"

    def test_me_requires_authentication(self, ctx_for):
        with pytest.raises(AuthenticationError):
            UserService(ctx_for()).me()

    def test_user_visible_only_through_shared_family(self, ctx_for, alice, bob, carol):
        with pytest.raises(NotFoundError):
            UserService(ctx_for(alice)).get_user(bob.id)

        family = FamilyService(ctx_for(alice)).create_family(FamilyCreate(name="Home"))
        FamilyService(ctx_for(alice)).invite_member(family.id, InviteMember(email=bob.email))

        assert UserService(ctx_for(alice)).get_user(bob.id).id == bob.id
        assert UserService(ctx_for(bob)).get_user(alice.id).id == alice.id
        with pytest.raises(NotFoundError):
            UserService(ctx_for(carol)).get_user(alice.id)

    def test_user_sees_self(self, ctx_for, alice):
        assert UserService(ctx_for(alice)).get_user(alice.id).id == alice.id


class TestPasswordChange:
    def test_change_password(self, ctx_for, alice):
        assert UserService(ctx_for(alice)).change_password(
            PasswordChange(current_password="secret123", new_password="better456")
        )
        result = UserService(ctx_for()).login(LoginRequest(email=alice.email, password="better456"))
        assert result["user"].id == alice.id

    def test_wrong_current_password(self, ctx_for, alice):
        with pytest.raises(ValidationError, match="Current password is incorrect"):
            UserService(ctx_for(alice)).change_password(
                PasswordChange(current_password="nope", new_password="better456")
            )

    def test_new_password_must_differ(self, ctx_for, alice):
        with pytest.raises(ValidationError):
            UserService(ctx_for(alice)).change_password(
                PasswordChange(current_password="secret123", new_password="secret123")
            )


class TestDeleteAccount:
    def test_wrong_password(self, ctx_for, alice):
        with pytest.raises(ValidationError):
            UserService(ctx_for(alice)).delete_account("wrong")

    def test_solo_family_is_removed_with_account(self, db, ctx_for, alice):
        family = FamilyService(ctx_for(alice)).create_family(FamilyCreate(name="Just me"))
        family_id, alice_id = family.id, alice.id

        assert UserService(ctx_for(alice)).delete_account("secret123")
        assert db.query(User).filter(User.id == alice_id).first() is None
        assert db.query(Family).filter(Family.id == family_id).first() is None

    def test_last_admin_with_other_members_is_blocked(self, ctx_for, alice, bob):
        family = FamilyService(ctx_for(alice)).create_family(FamilyCreate(name="Home"))
        FamilyService(ctx_for(alice)).invite_member(family.id, InviteMember(email=bob.email))

        with pytest.raises(ConflictError) as exc_info:
            UserService(ctx_for(alice)).delete_account("secret123")
        assert exc_info.value.error_code == "LAST_ADMIN"

    def test_allowed_after_promoting_another_admin(self, db, ctx_for, alice, bob):
        service = FamilyService(ctx_for(alice))
        family = service.create_family(FamilyCreate(name="Home"))
        membership = service.invite_member(family.id, InviteMember(email=bob.email))
        service.update_member(family.id, membership.id, MemberUpdate(role=FamilyRole.admin))
        family_id = family.id

        assert UserService(ctx_for(alice)).delete_account("secret123")
        remaining = db.query(Family).filter(Family.id == family_id).one()
        assert [m.user_id for m in remaining.members] == [bob.id]
