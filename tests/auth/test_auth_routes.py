"""
HTTP tests for the authentication routes.
"""
import pytest

from reveda.auth.federated import FederatedIdentity
from reveda.auth.models import RoleName
from reveda.auth.repository import UserRepository
from reveda.core.audit_service import list_audit_logs

from conftest import bearer

API = "/api/v1/auth"

JANE = {
    "firstName": "Jane",
    "lastName": "Doe",
    "email": "jane@x.com",
    "phoneNumber": "9876543210",
}


def signup_and_verify(client, notifier, payload=JANE):
    assert client.post(f"{API}/signup", json=payload).status_code == 201
    response = client.post(f"{API}/verify-otp", json={"identifier": payload["email"], "otp": notifier.last["code"]})
    assert response.status_code == 200
    return response.json()["data"]


def test_signup_returns_envelope(client, notifier):
    response = client.post(f"{API}/signup", json=JANE)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["email"] == "jane@x.com"
    assert body["data"]["phoneNumber"] == "9876543210"
    assert isinstance(body["data"]["userId"], int)
    assert "otp" not in str(body["data"]).lower()
    assert notifier.last["to"] == "jane@x.com"


@pytest.mark.parametrize("field, value", [
    ("email", "not-an-email"),
    ("phoneNumber", "12345"),
    ("phoneNumber", "5876543210"),
    ("firstName", "J"),
])
def test_signup_validation(client, notifier, field, value):
    response = client.post(f"{API}/signup", json={**JANE, field: value})
    assert response.status_code == 422
    assert response.json()["success"] is False
    assert notifier.sent == []


def test_duplicate_signup_is_conflict(client):
    client.post(f"{API}/signup", json=JANE)
    response = client.post(f"{API}/signup", json={**JANE, "email": "other@x.com"})
    assert response.status_code == 409
    assert response.json() == {"success": False, "message": "User with this email or phone number already exists"}


def test_signup_delivery_failure_is_bad_gateway_and_leaves_no_account(client, notifier, users):
    notifier.fail = True
    response = client.post(f"{API}/signup", json=JANE)
    assert response.status_code == 502
    assert users.find_user_by_email("jane@x.com") is None


def test_full_otp_flow(client, notifier):
    data = signup_and_verify(client, notifier)

    assert data["user"]["isVerified"] is True
    assert data["user"]["role"] == RoleName.PATIENT.value
    assert data["tokens"]["accessToken"]
    assert data["tokens"]["refreshToken"]

    profile = client.get(f"{API}/profile", headers=bearer(data["tokens"]["accessToken"]))
    assert profile.status_code == 200
    assert profile.json()["data"]["user"]["email"] == "jane@x.com"


def test_login_then_verify(client, notifier, make_user):
    make_user(is_verified=True)
    response = client.post(f"{API}/login", json={"identifier": "9876543210"})
    assert response.status_code == 200
    assert notifier.last["channel"] == "sms"

    response = client.post(f"{API}/verify-otp", json={"identifier": "9876543210", "otp": notifier.last["code"]})
    assert response.status_code == 200


def test_login_unknown_user(client):
    response = client.post(f"{API}/login", json={"identifier": "ghost@x.com"})
    assert response.status_code == 404


def test_login_pending_doctor(client, make_user, notifier):
    make_user(role=RoleName.DOCTOR)
    response = client.post(f"{API}/login", json={"identifier": "jane@x.com"})
    assert response.status_code == 403
    assert "pending" in response.json()["message"].lower()
    assert notifier.sent == []


def test_wrong_otp(client, notifier):
    client.post(f"{API}/signup", json=JANE)
    wrong = "000000" if notifier.last["code"] != "000000" else "111111"
    response = client.post(f"{API}/verify-otp", json={"identifier": "jane@x.com", "otp": wrong})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid OTP"


def test_expired_otp(client, notifier, clock):
    client.post(f"{API}/signup", json=JANE)
    clock.advance(minutes=11)
    response = client.post(f"{API}/verify-otp", json={"identifier": "jane@x.com", "otp": notifier.last["code"]})
    assert response.status_code == 400
    assert response.json()["message"] == "OTP expired"


def test_malformed_otp_is_rejected_before_lookup(client):
    response = client.post(f"{API}/verify-otp", json={"identifier": "jane@x.com", "otp": "12ab"})
    assert response.status_code == 422


def test_resend_otp(client, notifier):
    client.post(f"{API}/signup", json=JANE)
    response = client.post(f"{API}/resend-otp", json={"identifier": "jane@x.com"})
    assert response.status_code == 200
    assert len(notifier.sent) == 2


def test_refresh_token(client, notifier):
    data = signup_and_verify(client, notifier)
    response = client.post(f"{API}/refresh-token", json={"refreshToken": data["tokens"]["refreshToken"]})
    assert response.status_code == 200
    tokens = response.json()["data"]["tokens"]
    assert client.get(f"{API}/profile", headers=bearer(tokens["accessToken"])).status_code == 200


def test_refresh_with_access_token_is_unauthorized(client, notifier):
    data = signup_and_verify(client, notifier)
    response = client.post(f"{API}/refresh-token", json={"refreshToken": data["tokens"]["accessToken"]})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_profile_requires_token(client):
    response = client.get(f"{API}/profile")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_profile_with_refresh_token_is_unauthorized(client, notifier):
    data = signup_and_verify(client, notifier)
    assert client.get(f"{API}/profile", headers=bearer(data["tokens"]["refreshToken"])).status_code == 401


def test_profile_for_unverified_user_is_forbidden(client, make_user, token_service):
    user = make_user(is_verified=False)
    response = client.get(f"{API}/profile", headers=bearer(token_service.issue_access_token(user)))
    assert response.status_code == 403


def test_profile_for_deleted_user(client, make_user, token_service, users):
    user = make_user(is_verified=True)
    token = token_service.issue_access_token(user)
    users.delete_user_by_id(user.id)
    response = client.get(f"{API}/profile", headers=bearer(token))
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token. User not found."


def test_google_login(client, google):
    google.identities["good-token"] = FederatedIdentity(
        email="gina@gmail.com", first_name="Gina", last_name="Lee", picture=None, federated_id="sub-1"
    )
    response = client.post(f"{API}/google-login", json={"idToken": "good-token"})
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["email"] == "gina@gmail.com"
    assert user["isVerified"] is True
    assert user["phoneNumber"] is None


def test_google_login_rejects_bad_token(client):
    response = client.post(f"{API}/google-login", json={"idToken": "forged"})
    assert response.status_code == 401


def test_sentinel_token_is_not_honored_outside_development(client):
    response = client.post(f"{API}/google-login", json={"idToken": "mock-google-id-token-dev"})
    assert response.status_code == 401


def test_audit_trail(client, notifier, db):
    signup_and_verify(client, notifier)
    client.post(f"{API}/login", json={"identifier": "ghost@x.com"})

    actions = [entry.action for entry in list_audit_logs(db)]
    assert "SIGNUP_SUCCESS" in actions
    assert "OTP_VERIFY_SUCCESS" in actions
    failed = list_audit_logs(db, action="LOGIN_FAILED")
    assert failed[0].details == {"identifier": "ghost@x.com", "reason": "NotFoundError"}


def test_profile_image_upload(client, notifier, monkeypatch):
    data = signup_and_verify(client, notifier)
    uploaded = []

    def fake_upload(file, user_id):
        uploaded.append(user_id)
        return "https://res.cloudinary.com/demo/profile.png"

    monkeypatch.setattr("reveda.auth.router.upload_profile_image", fake_upload)
    response = client.post(
        f"{API}/profile-image",
        headers=bearer(data["tokens"]["accessToken"]),
        files={"profilePicture": ("me.png", b"\x89PNG fake", "image/png")},
    )
    assert response.status_code == 200
    assert response.json()["data"]["user"]["profilePicture"] == "https://res.cloudinary.com/demo/profile.png"
    assert uploaded == [data["user"]["id"]]


def test_profile_image_rejects_other_types(client, notifier):
    data = signup_and_verify(client, notifier)
    response = client.post(
        f"{API}/profile-image",
        headers=bearer(data["tokens"]["accessToken"]),
        files={"profilePicture": ("me.gif", b"GIF89a", "image/gif")},
    )
    assert response.status_code == 400


def test_profile_image_without_cloudinary(client, notifier, monkeypatch):
    monkeypatch.setattr("reveda.core.cloudinary.is_configured", lambda: False)
    data = signup_and_verify(client, notifier)
    response = client.post(
        f"{API}/profile-image",
        headers=bearer(data["tokens"]["accessToken"]),
        files={"profilePicture": ("me.png", b"\x89PNG fake", "image/png")},
    )
    assert response.status_code == 502


def test_gate_rejections_are_audited(client, db):
    client.get(f"{API}/profile", headers=bearer("garbage"))
    entry = list_audit_logs(db, action="ACCESS_DENIED")[0]
    assert entry.details == {"path": f"{API}/profile", "reason": "InvalidTokenError"}


def test_tokens_are_serialized_from_the_pair(client, notifier, token_service):
    data = signup_and_verify(client, notifier)
    claims = token_service.verify_access_token(data["tokens"]["accessToken"])
    assert token_service.verify_refresh_token(data["tokens"]["refreshToken"]).user_id == claims.user_id


def test_admin_lists_audit_logs(client, notifier, make_user, token_service):
    signup_and_verify(client, notifier)
    admin = make_user(email="admin@reveda.com", phone_number="9000000001", role=RoleName.ADMIN, is_verified=True)

    response = client.get(f"{API}/admin/audit-logs", params={"action": "SIGNUP_SUCCESS"},
                          headers=bearer(token_service.issue_access_token(admin)))
    assert response.status_code == 200
    entries = response.json()["data"]
    assert len(entries) == 1
    assert entries[0]["action"] == "SIGNUP_SUCCESS"
    assert entries[0]["details"] == {"email": "jane@x.com"}
    assert entries[0]["ipAddress"] == "testclient"


def test_audit_logs_are_admin_only(client, notifier):
    data = signup_and_verify(client, notifier)
    response = client.get(f"{API}/admin/audit-logs", headers=bearer(data["tokens"]["accessToken"]))
    assert response.status_code == 403


def test_profile_image_for_user_deleted_during_upload(client, notifier, monkeypatch):
    data = signup_and_verify(client, notifier)
    monkeypatch.setattr("reveda.auth.router.upload_profile_image",
                        lambda file, user_id: "https://res.cloudinary.com/demo/profile.png")
    monkeypatch.setattr(UserRepository, "update_user_by_id", lambda self, user_id, fields: None)
    response = client.post(
        f"{API}/profile-image",
        headers=bearer(data["tokens"]["accessToken"]),
        files={"profilePicture": ("me.png", b"\x89PNG fake", "image/png")},
    )
    assert response.status_code == 404
