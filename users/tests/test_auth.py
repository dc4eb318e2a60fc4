import pytest
from rest_framework_simplejwt.tokens import AccessToken

from .factories import AdminUserFactory, UserFactory

SIGNIN_URL = "/api/v1/auth/token/"


@pytest.mark.django_db
def test_sign_in_with_email_and_read_profile(api_client):
    user = UserFactory(email="Lan@Example.com")

    resp = api_client.post(SIGNIN_URL, {"identifier": "lan@example.com", "password": "pass"}, format="json")
    assert resp.status_code == 200
    access = resp.data["access"]

    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
    profile = api_client.get("/api/v1/account/profile/")
    assert profile.status_code == 200
    assert profile.data["email"] == "lan@example.com"
    assert profile.data["role"] == "customer"
    assert profile.data["id"] == user.id


@pytest.mark.django_db
def test_sign_in_with_phone(api_client):
    UserFactory(phone="0901234567")
    resp = api_client.post(SIGNIN_URL, {"identifier": "0901234567", "password": "pass"}, format="json")
    assert resp.status_code == 200
    assert "refresh" in resp.data


@pytest.mark.django_db
def test_token_carries_role(api_client):
    AdminUserFactory(email="boss@example.com")
    resp = api_client.post(SIGNIN_URL, {"identifier": "boss@example.com", "password": "pass"}, format="json")
    assert AccessToken(resp.data["access"])["role"] == "admin"


@pytest.mark.django_db
def test_wrong_password_and_inactive_user_are_rejected(api_client):
    UserFactory(email="a@example.com")
    UserFactory(email="b@example.com", is_active=False)

    wrong = api_client.post(SIGNIN_URL, {"identifier": "a@example.com", "password": "nope"}, format="json")
    inactive = api_client.post(SIGNIN_URL, {"identifier": "b@example.com", "password": "pass"}, format="json")

    assert wrong.status_code == 400
    assert inactive.status_code == 400


@pytest.mark.django_db
def test_refresh(api_client):
    UserFactory(email="r@example.com")
    tokens = api_client.post(SIGNIN_URL, {"identifier": "r@example.com", "password": "pass"}, format="json").data
    resp = api_client.post(f"{SIGNIN_URL}refresh/", {"refresh": tokens["refresh"]}, format="json")
    assert resp.status_code == 200
    assert "access" in resp.data


@pytest.mark.django_db
def test_profile_requires_auth(api_client):
    assert api_client.get("/api/v1/account/profile/").status_code == 401
