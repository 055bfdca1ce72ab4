"""Integration tests for /user/settings."""

import pytest

from tests.helpers import cookie_header, create_password_user, session_cookies


@pytest.fixture
def auth(db_session, token_service):
    return cookie_header(session_cookies(token_service, create_password_user(db_session)))


class TestUserSettings:
    def test_defaults_on_first_read(self, client, auth):
        response = client.get("/user/settings", headers=auth)

        assert response.status_code == 200
        assert response.json()["data"] == {
            "default_llm_model": "llama-3.1-8b-instant",
            "default_platform": "general",
            "theme": "light",
        }

    def test_partial_update_keeps_other_fields(self, client, auth):
        client.put("/user/settings", json={"theme": "dark"}, headers=auth)
        response = client.put(
            "/user/settings", json={"default_platform": "instagram"}, headers=auth
        )

        assert response.status_code == 200
        assert response.json()["data"] == {
            "default_llm_model": "llama-3.1-8b-instant",
            "default_platform": "instagram",
            "theme": "dark",
        }
        assert client.get("/user/settings", headers=auth).json()["data"]["theme"] == "dark"

    @pytest.mark.parametrize(
        "body",
        [{"theme": "neon"}, {"default_llm_model": "gpt-4"}, {"language": "fr"}],
    )
    def test_invalid_values_are_rejected(self, client, auth, body):
        response = client.put("/user/settings", json=body, headers=auth)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_settings_are_per_user(self, client, auth, db_session, token_service):
        other = cookie_header(
            session_cookies(token_service, create_password_user(db_session))
        )
        client.put("/user/settings", json={"theme": "system"}, headers=auth)

        assert client.get("/user/settings", headers=other).json()["data"]["theme"] == "light"

    def test_requires_authentication(self, client):
        assert client.get("/user/settings").status_code == 401
