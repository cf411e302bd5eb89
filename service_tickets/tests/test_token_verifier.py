"""
Unit tests for bearer token verification.
"""

import pytest
from datetime import timedelta

from jose import jwt

from shared.errors import AuthenticationError
from service_tickets.app.auth.token_verifier import TokenVerifier, Identity, AuthErrorReason

from conftest import TEST_SECRET, make_token


class TestTokenVerifier:
    """Test cases for TokenVerifier."""

    @pytest.fixture
    def verifier(self):
        """Create TokenVerifier instance."""
        return TokenVerifier(TEST_SECRET)

    def test_requires_secret(self):
        """An empty secret is a configuration error."""
        with pytest.raises(ValueError):
            TokenVerifier("")

    def test_rejects_non_hmac_algorithm(self):
        """Only HMAC algorithms are accepted."""
        with pytest.raises(ValueError):
            TokenVerifier(TEST_SECRET, algorithms=["RS256"])

    def test_verify_valid_token(self, verifier):
        """A valid bearer header yields the subject and permissions."""
        token = make_token(["tickets.PUT", "categories.POST"], sub="admin")

        identity = verifier.verify(f"Bearer {token}")

        assert isinstance(identity, Identity)
        assert identity.subject == "admin"
        assert identity.permissions == frozenset({"tickets.PUT", "categories.POST"})
        assert identity.has_permission("tickets.PUT")
        assert not identity.has_permission("tickets.put")
        assert identity.expires_at is not None

    def test_scheme_is_case_insensitive(self, verifier):
        """The scheme is compared lowercased."""
        token = make_token([])

        identity = verifier.verify(f"BEARER {token}")

        assert identity.subject == "admin"

    def test_missing_header(self, verifier):
        """No header at all."""
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(None)

        assert exc_info.value.reason == AuthErrorReason.MISSING_HEADER.value
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "authorization header is not provided"

    def test_empty_header(self, verifier):
        """An empty header counts as missing."""
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify("")

        assert exc_info.value.reason == AuthErrorReason.MISSING_HEADER.value

    def test_single_field_header(self, verifier):
        """A header with only one field is malformed."""
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify("Bearer")

        assert exc_info.value.reason == AuthErrorReason.MALFORMED_HEADER.value
        assert exc_info.value.message == "invalid authorization header format"

    def test_unsupported_scheme(self, verifier):
        """Only bearer credentials are accepted."""
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify("Basic dXNlcjpwYXNz")

        assert exc_info.value.reason == AuthErrorReason.UNSUPPORTED_SCHEME.value
        assert exc_info.value.message == "unsupported authorization type basic"

    def test_expired_token(self, verifier):
        """Expired tokens are rejected as expired."""
        token = make_token(["tickets.PUT"], expires_in=timedelta(minutes=-5))

        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(f"Bearer {token}")

        assert exc_info.value.reason == AuthErrorReason.EXPIRED.value
        assert exc_info.value.message == "token has expired"

    def test_wrong_secret(self, verifier):
        """A signature made with another secret is invalid."""
        token = make_token(["tickets.PUT"], secret="some-other-secret")

        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(f"Bearer {token}")

        assert exc_info.value.reason == AuthErrorReason.INVALID_TOKEN.value

    def test_unexpected_signing_method(self):
        """A token signed with an algorithm outside the accepted set is rejected."""
        verifier = TokenVerifier(TEST_SECRET, algorithms=["HS512"])
        token = make_token(["tickets.PUT"], algorithm="HS256")

        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(f"Bearer {token}")

        assert exc_info.value.reason == AuthErrorReason.INVALID_SIGNATURE_METHOD.value

    def test_garbage_token(self, verifier):
        """Tokens that are not JWTs are invalid."""
        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify("Bearer not-a-jwt")

        assert exc_info.value.reason == AuthErrorReason.INVALID_TOKEN.value

    def test_malformed_permissions_claim(self, verifier):
        """The permissions claim must be a list of strings."""
        token = make_token(permissions="tickets.PUT")

        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(f"Bearer {token}")

        assert exc_info.value.reason == AuthErrorReason.INVALID_TOKEN.value

    def test_empty_permissions_claim_grants_nothing(self, verifier):
        """A token with no permissions is valid but grants nothing."""
        token = make_token([])

        identity = verifier.verify_token(token)

        assert identity.permissions == frozenset()

    def test_token_without_expiry_is_rejected(self, verifier):
        """Tokens must carry an exp claim."""
        token = jwt.encode({"sub": "admin", "permissions": ["categories.POST"]}, TEST_SECRET, algorithm="HS256")

        with pytest.raises(AuthenticationError) as exc_info:
            verifier.verify(f"Bearer {token}")

        assert exc_info.value.reason == AuthErrorReason.INVALID_TOKEN.value
