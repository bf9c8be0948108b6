"""
Contract tests for the profile endpoints.

Profiles are scoped to their owner: other users' profiles behave exactly
like missing ones.
"""

import pytest

PROFILE_BODY = {
    "name": "Living room",
    "url": "http://provider.example:8080/",
    "username": "line-user",
    "password": "line-pass",
}


@pytest.fixture
def owner(make_user):
    return make_user()


@pytest.fixture
def stranger(make_user):
    return make_user(username="other", email="other@mail.com")


class TestCreateProfile:
    """POST /profiles"""

    def test_create_profile(self, client, owner, bearer):
        response = client.post("/profiles", json=PROFILE_BODY, headers=bearer(owner.id))

        assert response.status_code == 201
        body = response.json()
        assert set(body) == {"id", "userId", "name", "url", "username", "password"}
        assert body["userId"] == owner.id
        assert body["url"] == "http://provider.example:8080"
        assert body["password"] == "line-pass"

    def test_credentials_are_kept_byte_exact(self, client, owner, bearer, profile_repo):
        body = {
            **PROFILE_BODY,
            "name": "  Living room ",
            "url": " http://provider.example:8080/ ",
            "username": " u ",
            "password": " pw ",
        }

        response = client.post("/profiles", json=body, headers=bearer(owner.id))

        assert response.status_code == 201
        created = response.json()
        assert created["name"] == "Living room"
        assert created["url"] == "http://provider.example:8080"
        assert created["username"] == " u "
        assert created["password"] == " pw "
        stored = profile_repo.profiles[created["id"]]
        assert stored.credentials().password == " pw "

    def test_whitespace_only_name_is_rejected(self, client, owner, bearer):
        response = client.post("/profiles", json={**PROFILE_BODY, "name": "   "}, headers=bearer(owner.id))

        assert response.status_code == 400

    @pytest.mark.parametrize("field", ["name", "url", "username", "password"])
    def test_create_profile_requires_every_field(self, client, owner, bearer, field):
        body = {**PROFILE_BODY, field: ""}

        response = client.post("/profiles", json=body, headers=bearer(owner.id))

        assert response.status_code == 400

    def test_create_profile_rejects_non_http_url(self, client, owner, bearer):
        body = {**PROFILE_BODY, "url": "ftp://provider.example"}

        response = client.post("/profiles", json=body, headers=bearer(owner.id))

        assert response.status_code == 400

    def test_duplicate_name_for_same_owner(self, client, owner, bearer):
        client.post("/profiles", json=PROFILE_BODY, headers=bearer(owner.id))

        response = client.post("/profiles", json=PROFILE_BODY, headers=bearer(owner.id))

        assert response.status_code == 400
        assert response.json()["detail"] == "A profile with this name already exists"

    def test_same_name_for_different_owners(self, client, owner, stranger, bearer):
        first = client.post("/profiles", json=PROFILE_BODY, headers=bearer(owner.id))
        second = client.post("/profiles", json=PROFILE_BODY, headers=bearer(stranger.id))

        assert first.status_code == 201
        assert second.status_code == 201

    def test_create_profile_needs_token(self, client):
        response = client.post("/profiles", json=PROFILE_BODY)

        assert response.status_code == 401

    def test_create_profile_rejects_invalid_token(self, client):
        response = client.post(
            "/profiles",
            json=PROFILE_BODY,
            headers={"Authorization": "Bearer invalid.token.value"}
        )

        assert response.status_code == 403

    def test_create_profile_rejects_reset_token(self, client, owner, auth_service):
        token = auth_service.create_reset_token(owner.id)

        response = client.post(
            "/profiles",
            json=PROFILE_BODY,
            headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 403


class TestReadProfiles:
    """GET /profiles and GET /profiles/{profileId}"""

    def test_list_only_own_profiles(self, client, owner, stranger, bearer, profile_repo):
        profile_repo.add_profile(owner.id, "Mine", "http://a.example", "u", "p")
        profile_repo.add_profile(stranger.id, "Theirs", "http://b.example", "u", "p")

        response = client.get("/profiles", headers=bearer(owner.id))

        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Mine"]

    def test_list_empty(self, client, owner, bearer):
        response = client.get("/profiles", headers=bearer(owner.id))

        assert response.status_code == 200
        assert response.json() == []

    def test_get_own_profile(self, client, owner, bearer, profile_repo):
        profile = profile_repo.add_profile(owner.id, "Mine", "http://a.example", "u", "p")

        response = client.get(f"/profiles/{profile.id}", headers=bearer(owner.id))

        assert response.status_code == 200
        assert response.json()["id"] == profile.id

    def test_get_foreign_profile_is_not_found(self, client, owner, stranger, bearer, profile_repo):
        profile = profile_repo.add_profile(stranger.id, "Theirs", "http://b.example", "u", "p")

        response = client.get(f"/profiles/{profile.id}", headers=bearer(owner.id))

        assert response.status_code == 404

    def test_get_malformed_id_is_not_found(self, client, owner, bearer):
        response = client.get("/profiles/not-an-object-id", headers=bearer(owner.id))

        assert response.status_code == 404
