"""API tests for account, generation and gallery endpoints.

Runs the FastAPI app in-process via httpx.ASGITransport. Lifespan does not run
under ASGITransport, so the test session factory, UoW factory and fake gateway
are placed on app.state directly.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from promptcanvas.app import app
from promptcanvas.repositories.generated_image import GeneratedImageRepository
from promptcanvas.repositories.user import UserRepository
from promptcanvas.services.auth import create_session_token
from promptcanvas.services.exceptions import UploadFailure

# Password the create_user fixture assigns by default
PASSWORD = "correct horse battery staple"


@pytest_asyncio.fixture
async def client(session_factory, uow_factory, gateway):
    app.state.session_factory = session_factory
    app.state.uow_factory = uow_factory
    app.state.gateway = gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _login(client, email="fox@example.com", password=PASSWORD):
    response = await client.post("/auth", json={"email": email, "password": password})
    assert response.status_code == 200
    return response


def _assert_no_store(response):
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert response.headers["pragma"] == "no-cache"
    assert response.headers["expires"] == "0"


class TestAccountEndpoints:
    @pytest.mark.asyncio
    async def test_register_grants_ten_credits(self, client):
        response = await client.post(
            "/auth/register",
            json={"email": "new@example.com", "password": "pw", "name": "New"},
        )

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "new@example.com"
        assert user["name"] == "New"
        assert user["credits"] == 10
        assert "password_hash" not in user

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client, create_user):
        await create_user(email="dup@example.com")

        response = await client.post(
            "/auth/register",
            json={"email": "dup@example.com", "password": "pw", "name": "Dup"},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "User already exists"}

    @pytest.mark.asyncio
    async def test_login_sets_http_only_cookie(self, client, create_user):
        user = await create_user()

        response = await _login(client)

        assert response.json() == {
            "user": {"id": str(user.id), "email": "fox@example.com", "name": "Fox"}
        }
        set_cookie = response.headers["set-cookie"]
        assert set_cookie.startswith("auth_token=")
        assert "HttpOnly" in set_cookie
        assert "samesite=lax" in set_cookie.lower()
        assert "Max-Age=86400" in set_cookie

    @pytest.mark.asyncio
    async def test_login_rejects_bad_credentials(self, client, create_user):
        await create_user()

        wrong_password = await client.post(
            "/auth", json={"email": "fox@example.com", "password": "nope"}
        )
        unknown_email = await client.post(
            "/auth", json={"email": "nobody@example.com", "password": "nope"}
        )

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json() == {"detail": "Invalid credentials"}
        assert "set-cookie" not in wrong_password.headers

    @pytest.mark.asyncio
    async def test_current_user_strips_password_hash(self, client, create_user):
        user = await create_user(credits=7)
        await _login(client)

        response = await client.get("/auth/user")

        assert response.status_code == 200
        _assert_no_store(response)
        body = response.json()["user"]
        assert body["id"] == str(user.id)
        assert body["credits"] == 7
        assert body["image"] is None
        assert "createdAt" in body
        assert "password_hash" not in body
        assert "passwordHash" not in body

    @pytest.mark.asyncio
    async def test_current_user_without_session(self, client):
        response = await client.get("/auth/user")

        assert response.status_code == 200
        assert response.json() == {"user": None}
        _assert_no_store(response)

    @pytest.mark.asyncio
    async def test_expired_session_is_anonymous(self, client, create_user, settings):
        user = await create_user()
        token = create_session_token(
            user.id,
            user.email,
            settings.jwt_secret,
            now=datetime.now(timezone.utc) - timedelta(hours=25),
        )
        client.cookies.set("auth_token", token)

        response = await client.get("/auth/user")

        assert response.json() == {"user": None}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method, path", [("DELETE", "/auth"), ("POST", "/auth/logout")])
    async def test_logout_clears_session(self, client, create_user, method, path):
        await create_user()
        await _login(client)

        response = await client.request(method, path)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert (await client.get("/auth/user")).json() == {"user": None}

    @pytest.mark.asyncio
    async def test_logout_without_session(self, client):
        response = await client.delete("/auth")

        assert response.status_code == 200
        assert response.json() == {"success": True}


class TestGenerateEndpoint:
    @pytest.mark.asyncio
    async def test_generate_requires_session(self, client, gateway):
        response = await client.post("/generate", json={"prompt": "a red fox in snow"})

        assert response.status_code == 401
        assert gateway.generate_calls == []

    @pytest.mark.asyncio
    async def test_forged_session_is_rejected(self, client, create_user):
        user = await create_user()
        forged = create_session_token(
            user.id, user.email, "not-the-server-secret-but-long-enough-000"
        )
        client.cookies.set("auth_token", forged)

        response = await client.post("/generate", json={"prompt": "a red fox in snow"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_generate_spends_one_credit(self, client, create_user):
        """A user with 10 credits generates an image and ends with 9."""
        # Arrange
        await create_user(credits=10)
        await _login(client)

        # Act
        response = await client.post("/generate", json={"prompt": "a red fox in snow"})

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["requestId"] == "req-1"
        assert body["imageUrl"].startswith("https://storage.example.com/")
        assert "promptId" in body

        me = (await client.get("/auth/user")).json()["user"]
        assert me["credits"] == 9

    @pytest.mark.asyncio
    async def test_generate_without_credits(self, client, create_user, gateway):
        await create_user(credits=0)
        await _login(client)

        response = await client.post("/generate", json={"prompt": "a red fox in snow"})

        assert response.status_code == 402
        assert response.json() == {"detail": "Insufficient credits"}
        assert gateway.generate_calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{}, {"prompt": ""}, {"prompt": None}, {"prompt": 5}])
    async def test_generate_invalid_prompt(self, client, create_user, payload):
        await create_user(credits=10)
        await _login(client)

        response = await client.post("/generate", json=payload)

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid prompt"}
        me = (await client.get("/auth/user")).json()["user"]
        assert me["credits"] == 10

    @pytest.mark.asyncio
    async def test_generate_failure_keeps_credits(self, client, create_user, gateway):
        await create_user(credits=10)
        await _login(client)
        gateway.persist_failure = UploadFailure("s3 said no: AccessDenied")

        response = await client.post("/generate", json={"prompt": "a red fox in snow"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to generate image"}
        assert "AccessDenied" not in response.text
        me = (await client.get("/auth/user")).json()["user"]
        assert me["credits"] == 10

    @pytest.mark.asyncio
    async def test_generate_accepts_long_prompt(self, client, create_user):
        await create_user(credits=10)
        await _login(client)

        response = await client.post("/generate", json={"prompt": "x" * 1500})

        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    @pytest.mark.asyncio
    async def test_generate_store_outage_is_generic_500(self, client, create_user, store_outage):
        await create_user(credits=10)
        await _login(client)
        store_outage(GeneratedImageRepository, "record")

        response = await client.post("/generate", json={"prompt": "a red fox in snow"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal Server Error"}
        assert "connection refused" not in response.text
        me = (await client.get("/auth/user")).json()["user"]
        assert me["credits"] == 10

    @pytest.mark.asyncio
    async def test_concurrent_generates_spend_one_credit_once(self, client, create_user, gateway):
        """Five simultaneous requests from a user holding one credit: one 200, four 402."""
        # Arrange
        await create_user(credits=1)
        await _login(client)
        gateway.delay_seconds = 0.05

        # Act
        responses = await asyncio.gather(
            *(client.post("/generate", json={"prompt": f"a red fox #{i}"}) for i in range(5))
        )

        # Assert
        codes = sorted(response.status_code for response in responses)
        assert codes == [200, 402, 402, 402, 402]
        me = (await client.get("/auth/user")).json()["user"]
        assert me["credits"] == 0
        assert len((await client.get("/images")).json()["images"]) == 1


class TestGalleryEndpoint:
    @pytest.mark.asyncio
    async def test_gallery_requires_session(self, client):
        response = await client.get("/images")

        assert response.status_code == 401
        assert response.json() == {"detail": "Authentication required"}

    @pytest.mark.asyncio
    async def test_gallery_lists_generated_images(self, client, create_user):
        user = await create_user(credits=10)
        await _login(client)
        first = (await client.post("/generate", json={"prompt": "an old lighthouse"})).json()
        second = (await client.post("/generate", json={"prompt": "a red fox in snow"})).json()

        response = await client.get("/images")

        assert response.status_code == 200
        _assert_no_store(response)
        images = response.json()["images"]
        assert [image["imageUrl"] for image in images] == [
            second["imageUrl"],
            first["imageUrl"],
        ]
        assert [image["prompt"] for image in images] == ["a red fox in snow", "an old lighthouse"]
        assert all(image["userId"] == str(user.id) for image in images)
        assert images[0]["metadata"]["model"] == "test/flux-model"
        assert "createdAt" in images[0]

    @pytest.mark.asyncio
    async def test_gallery_is_private(self, client, create_user):
        await create_user(email="fox@example.com", credits=10)
        await create_user(email="owl@example.com", credits=10)
        await _login(client, email="fox@example.com")
        await client.post("/generate", json={"prompt": "a red fox in snow"})
        await client.delete("/auth")

        await _login(client, email="owl@example.com")
        response = await client.get("/images")

        assert response.status_code == 200
        assert response.json() == {"images": []}

    @pytest.mark.asyncio
    async def test_gallery_store_outage_is_generic_500(self, client, create_user, store_outage):
        await create_user()
        await _login(client)
        store_outage(GeneratedImageRepository, "list_for_user")

        response = await client.get("/images")

        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to fetch images"}
        assert "connection refused" not in response.text


class TestAccountStoreOutage:
    @pytest.mark.asyncio
    async def test_register_outage(self, client, store_outage):
        store_outage(UserRepository, "get_by_email")

        response = await client.post(
            "/auth/register",
            json={"email": "new@example.com", "password": "pw", "name": "New"},
        )

        assert response.status_code == 500
        assert response.json() == {"detail": "Registration failed"}

    @pytest.mark.asyncio
    async def test_login_outage(self, client, create_user, store_outage):
        await create_user()
        store_outage(UserRepository, "get_by_email")

        response = await client.post(
            "/auth", json={"email": "fox@example.com", "password": PASSWORD}
        )

        assert response.status_code == 500
        assert response.json() == {"detail": "Authentication failed"}
        assert "set-cookie" not in response.headers

    @pytest.mark.asyncio
    async def test_current_user_outage_keeps_no_store(self, client, create_user, store_outage):
        await create_user()
        await _login(client)
        store_outage(UserRepository, "get_by_id")

        response = await client.get("/auth/user")

        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to fetch user"}
        _assert_no_store(response)


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
