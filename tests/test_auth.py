import pytest
from jose import jwt

from order_api.auth import Identity, create_access_token, decode_token, identity_from_claims
from order_api.core.config import get_settings
from order_api.models import UserRole


def test_token_resolves_to_identity():
    token = create_access_token(7, UserRole.BRANCH_MANAGER, "Mike")

    identity = identity_from_claims(decode_token(token))

    assert identity == Identity(id=7, name="Mike", role=UserRole.BRANCH_MANAGER)


def test_unknown_role_does_not_resolve():
    assert identity_from_claims({"sub": "7", "role": "CHEF"}) is None


def test_missing_subject_does_not_resolve():
    assert identity_from_claims({"role": "CUSTOMER"}) is None


def test_non_numeric_subject_does_not_resolve():
    assert identity_from_claims({"sub": "abc", "role": "CUSTOMER"}) is None


@pytest.mark.asyncio
async def test_token_signed_with_another_secret_is_rejected(client, seed):
    settings = get_settings()
    forged = jwt.encode(
        {"sub": str(seed.super_admin_id), "role": "SUPER_ADMIN"},
        "not-the-secret",
        algorithm=settings.jwt_algorithm,
    )

    r = await client.get("/order", headers={"Authorization": f"Bearer {forged}"})

    assert r.status_code == 401
