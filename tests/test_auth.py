import time

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from lois.api.auth import SupabaseAuthMiddleware
from lois.api.dependencies import get_user_id
from lois.settings import AuthSettings

SECRET = "test-secret-with-at-least-32-bytes!!"


@pytest.fixture
def client():
    app = FastAPI()
    app.add_middleware(SupabaseAuthMiddleware, settings=AuthSettings(SUPABASE_JWT_SECRET=SECRET))

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/me")
    async def me(user_id: str = Depends(get_user_id)):
        return {"user_id": user_id}

    return TestClient(app)


def _token(**overrides):
    claims = {"sub": "user-123", "aud": "authenticated", "exp": int(time.time()) + 300}
    claims.update(overrides)
    return jwt.encode(claims, SECRET, algorithm="HS256")


def test_public_path_needs_no_token(client):
    assert client.get("/health").status_code == 200


def test_missing_header_is_401(client):
    response = client.get("/me")

    assert response.status_code == 401
    assert response.json() == {"detail": "Missing Authorization header"}


def test_valid_token_sets_user(client):
    response = client.get("/me", headers={"Authorization": f"Bearer {_token()}"})

    assert response.status_code == 200
    assert response.json() == {"user_id": "user-123"}


@pytest.mark.parametrize("header", [
    "Token abc",
    "Bearer not-a-jwt",
    f"Bearer {jwt.encode({'sub': 'x', 'aud': 'authenticated'}, 'some-other-secret-of-32-bytes!!!', algorithm='HS256')}",
])
def test_bad_credentials_are_401(client, header):
    assert client.get("/me", headers={"Authorization": header}).status_code == 401


def test_wrong_audience_is_401(client):
    response = client.get("/me", headers={"Authorization": f"Bearer {_token(aud='anon')}"})

    assert response.status_code == 401


def test_expired_token_is_401(client):
    response = client.get("/me", headers={"Authorization": f"Bearer {_token(exp=int(time.time()) - 60)}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"


def test_preflight_is_not_authenticated(client):
    response = client.options("/me")

    assert response.status_code != 401
