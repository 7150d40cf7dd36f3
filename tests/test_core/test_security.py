"""
Test suite for access tokens and actor roles.

Covers token creation and decoding, expiry, tampering, malformed claims,
and role inclusion rules for ``both`` and ``admin``.
"""

import uuid
from datetime import timedelta

import pytest
from jose import jwt

from courier.core.config import get_settings
from courier.core.security import (
    ActorContext,
    ActorRole,
    TokenError,
    actor_from_token,
    create_access_token,
    decode_token,
)


class TestAccessTokens:
    """Test suite for token round trips and rejection."""

    def test_token_resolves_to_actor(self):
        user_id = uuid.uuid4()
        token = create_access_token(user_id, ActorRole.PARTNER)

        actor = actor_from_token(token)

        assert actor == ActorContext(user_id=user_id, role=ActorRole.PARTNER)

    def test_expired_token(self):
        token = create_access_token(
            uuid.uuid4(), ActorRole.CUSTOMER, expires_delta=timedelta(seconds=-1)
        )

        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_token_signed_with_another_key(self):
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "role": "customer", "type": "access"},
            "another-secret-key-of-sufficient-length",
            algorithm=get_settings().jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code == "TOKEN_INVALID"

    def test_empty_token(self):
        with pytest.raises(TokenError) as exc_info:
            decode_token("")

        assert exc_info.value.code == "EMPTY_TOKEN"

    def test_non_access_token_rejected(self):
        settings = get_settings()
        refresh = jwt.encode(
            {"sub": str(uuid.uuid4()), "role": "customer", "type": "refresh"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(TokenError) as exc_info:
            actor_from_token(refresh)

        assert exc_info.value.code == "TOKEN_TYPE_INVALID"

    @pytest.mark.parametrize(
        "claims,code",
        [
            ({"role": "customer"}, "TOKEN_CLAIMS_MISSING"),
            ({"sub": "not-a-uuid", "role": "customer"}, "TOKEN_CLAIMS_INVALID"),
            ({"sub": str(uuid.UUID(int=1)), "role": "driver"}, "TOKEN_CLAIMS_INVALID"),
        ],
    )
    def test_malformed_claims(self, claims, code):
        settings = get_settings()
        token = jwt.encode(
            {**claims, "type": "access"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            actor_from_token(token)

        assert exc_info.value.code == code


class TestActorRoles:
    """Test suite for role inclusion."""

    @pytest.mark.parametrize(
        "role,allowed,expected",
        [
            (ActorRole.CUSTOMER, (ActorRole.CUSTOMER,), True),
            (ActorRole.CUSTOMER, (ActorRole.PARTNER,), False),
            (ActorRole.BOTH, (ActorRole.PARTNER,), True),
            (ActorRole.BOTH, (ActorRole.CUSTOMER,), True),
            (ActorRole.BOTH, (ActorRole.ADMIN,), False),
            (ActorRole.ADMIN, (ActorRole.PARTNER,), True),
        ],
    )
    def test_has_role(self, role, allowed, expected):
        actor = ActorContext(user_id=uuid.uuid4(), role=role)
        assert actor.has_role(*allowed) is expected

    def test_role_properties(self):
        dual = ActorContext(user_id=uuid.uuid4(), role=ActorRole.BOTH)

        assert dual.is_customer and dual.is_partner
        assert not dual.is_admin

    def test_role_parsing_is_case_insensitive(self):
        assert ActorRole.from_string("Partner") == ActorRole.PARTNER
