"""Tests for signup/OTP/login flows, profile endpoints, admin review and payments."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from accounts import SAMPLE_ADS, generate_otp, seed_defaults
from conftest import auth_header
from database import Ad, Admin, Consultation, Payment, User, VerificationRecord, utcnow
from settings import Settings

SIGNUP = {"fullName": "Asha Verma", "email": "Asha@Example.com", "phone": "9876543210", "password": "secret123"}

LAWYER_SIGNUP = {
    "fullName": "Adv. Priya Nair",
    "email": "priya@example.com",
    "phone": "9123456780",
    "password": "secret123",
    "barCouncilNumber": "KER/221/2012",
    "aadhaarNumber": "123412341234",
    "specialization": "Family Law, Property Law",
    "experience": 11,
}


def _codes(db, token):
    db.expire_all()
    record = db.scalar(select(VerificationRecord).where(VerificationRecord.token == token))
    return record.email_code, record.phone_code


# ---------------------------------------------------------------------------
# User signup & login
# ---------------------------------------------------------------------------


def test_generate_otp_is_six_digits():
    for _ in range(50):
        code = generate_otp()
        assert len(code) == 6 and code.isdigit()


def test_signup_verify_login(client, db_session):
    resp = client.post("/api/user/signup", json=SIGNUP)
    assert resp.status_code == 200
    body = resp.json()
    assert body["verificationToken"]
    assert "emailOtp" not in body

    user = db_session.get(User, body["userId"])
    assert user.email == "asha@example.com"
    assert not user.is_verified

    email_code, phone_code = _codes(db_session, body["verificationToken"])
    verified = client.post(
        "/api/user/verify-otp",
        json={"verificationToken": body["verificationToken"], "emailOtp": email_code, "phoneOtp": phone_code},
    )
    assert verified.status_code == 200
    assert verified.json()["token"]
    assert verified.json()["user"]["isVerified"] is True

    login = client.post("/api/user/login", json={"email": "ASHA@example.com", "password": "secret123"})
    assert login.status_code == 200
    assert login.json()["user"]["email"] == "asha@example.com"


def test_duplicate_signup_is_rejected(client):
    client.post("/api/user/signup", json=SIGNUP)
    resp = client.post("/api/user/signup", json={**SIGNUP, "email": "other@example.com"})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Email or phone already registered"}


def test_blank_signup_field_is_rejected(client):
    assert client.post("/api/user/signup", json={**SIGNUP, "fullName": "  "}).status_code == 422


def test_wrong_otp_is_rejected_and_challenge_survives(client, db_session):
    token = client.post("/api/user/signup", json=SIGNUP).json()["verificationToken"]
    email_code, phone_code = _codes(db_session, token)

    bad = client.post("/api/user/verify-otp", json={"verificationToken": token, "emailOtp": "000000", "phoneOtp": phone_code})
    assert bad.status_code == 400
    assert bad.json() == {"message": "Invalid OTP"}

    good = client.post("/api/user/verify-otp", json={"verificationToken": token, "emailOtp": email_code, "phoneOtp": phone_code})
    assert good.status_code == 200


def test_otp_cannot_be_reused(client, db_session):
    token = client.post("/api/user/signup", json=SIGNUP).json()["verificationToken"]
    email_code, phone_code = _codes(db_session, token)
    payload = {"verificationToken": token, "emailOtp": email_code, "phoneOtp": phone_code}

    assert client.post("/api/user/verify-otp", json=payload).status_code == 200
    again = client.post("/api/user/verify-otp", json=payload)
    assert again.status_code == 400
    assert again.json() == {"message": "Invalid or expired OTP"}


def test_expired_otp_is_rejected(client, db_session):
    token = client.post("/api/user/signup", json=SIGNUP).json()["verificationToken"]
    record = db_session.scalar(select(VerificationRecord).where(VerificationRecord.token == token))
    record.expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()

    resp = client.post(
        "/api/user/verify-otp",
        json={"verificationToken": token, "emailOtp": record.email_code, "phoneOtp": record.phone_code},
    )
    assert resp.status_code == 400
    assert resp.json() == {"message": "OTP expired"}


def test_unknown_token_is_rejected(client):
    resp = client.post("/api/user/verify-otp", json={"verificationToken": "nope", "emailOtp": "123456"})
    assert resp.status_code == 400


def test_expose_otp_echoes_codes(client, monkeypatch):
    monkeypatch.setattr(Settings, "EXPOSE_OTP", True)
    body = client.post("/api/user/signup", json=SIGNUP).json()
    assert len(body["emailOtp"]) == 6
    assert len(body["phoneOtp"]) == 6


def test_login_errors(client, make_user):
    make_user(email="pending@example.com", verified=False)
    make_user(email="ok@example.com")

    assert client.post("/api/user/login", json={"email": "ghost@example.com", "password": "x"}).status_code == 404
    wrong = client.post("/api/user/login", json={"email": "ok@example.com", "password": "wrong"})
    assert wrong.status_code == 400
    assert wrong.json() == {"message": "Invalid credentials"}
    unverified = client.post("/api/user/login", json={"email": "pending@example.com", "password": "secret123"})
    assert unverified.json() == {"message": "Please verify your account first"}


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def test_forgot_and_reset_password(client, db_session, make_user):
    make_user(email="reset@example.com")

    token = client.post("/api/user/forgot-password", json={"email": "reset@example.com"}).json()["verificationToken"]
    email_code, phone_code = _codes(db_session, token)
    assert phone_code is None

    resp = client.post("/api/user/reset-password", json={"verificationToken": token, "otp": email_code, "newPassword": "n3w-pass"})
    assert resp.status_code == 200

    assert client.post("/api/user/login", json={"email": "reset@example.com", "password": "secret123"}).status_code == 400
    assert client.post("/api/user/login", json={"email": "reset@example.com", "password": "n3w-pass"}).status_code == 200


def test_signup_token_cannot_reset_password(client, db_session):
    token = client.post("/api/user/signup", json=SIGNUP).json()["verificationToken"]
    email_code, _ = _codes(db_session, token)
    resp = client.post("/api/user/reset-password", json={"verificationToken": token, "otp": email_code, "newPassword": "x"})
    assert resp.status_code == 400


def test_change_password_flow(client, db_session, make_user):
    user = make_user(email="change@example.com")
    headers = auth_header(user.id, "user")

    token = client.post("/api/user/change-password-request", headers=headers).json()["verificationToken"]
    email_code, _ = _codes(db_session, token)

    other = make_user(name="Intruder")
    stolen = client.post(
        "/api/user/change-password-verify",
        json={"verificationToken": token, "otp": email_code, "newPassword": "hijack"},
        headers=auth_header(other.id, "user"),
    )
    assert stolen.status_code == 400

    resp = client.post(
        "/api/user/change-password-verify",
        json={"verificationToken": token, "otp": email_code, "newPassword": "changed1"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert client.post("/api/user/login", json={"email": "change@example.com", "password": "changed1"}).status_code == 200


# ---------------------------------------------------------------------------
# Lawyers & admin
# ---------------------------------------------------------------------------


def test_lawyer_signup_approval_and_login(client, db_session, admin):
    body = client.post("/api/lawyer/signup", json=LAWYER_SIGNUP).json()
    email_code, phone_code = _codes(db_session, body["verificationToken"])

    verified = client.post(
        "/api/lawyer/verify-otp",
        json={"verificationToken": body["verificationToken"], "emailOtp": email_code, "phoneOtp": phone_code},
    )
    assert verified.json() == {"message": "Verification successful. Awaiting admin approval."}

    login = {"email": "priya@example.com", "password": "secret123"}
    assert client.post("/api/lawyer/login", json=login).json() == {"message": "Account pending admin approval"}

    admin_headers = auth_header(admin.id, "admin")
    pending = client.get("/api/admin/pending-lawyers", headers=admin_headers).json()
    assert [p["id"] for p in pending] == [body["lawyerId"]]
    assert pending[0]["specialization"] == ["Family Law", "Property Law"]

    assert client.post(f"/api/admin/approve-lawyer/{body['lawyerId']}", headers=admin_headers).status_code == 200
    assert client.get("/api/admin/pending-lawyers", headers=admin_headers).json() == []

    resp = client.post("/api/lawyer/login", json=login)
    assert resp.status_code == 200
    assert resp.json()["lawyer"]["accountStatus"] == "active"


def test_user_signup_token_cannot_verify_lawyer(client, db_session):
    token = client.post("/api/user/signup", json=SIGNUP).json()["verificationToken"]
    email_code, phone_code = _codes(db_session, token)
    resp = client.post(
        "/api/lawyer/verify-otp",
        json={"verificationToken": token, "emailOtp": email_code, "phoneOtp": phone_code},
    )
    assert resp.status_code == 400


def test_admin_login(client, admin):
    ok = client.post("/api/admin/login", json={"username": "root", "password": "rootpass"})
    assert ok.status_code == 200
    assert ok.json()["token"]
    assert client.post("/api/admin/login", json={"username": "root", "password": "nope"}).status_code == 400


def test_admin_routes_require_admin_role(client, make_user):
    user = make_user()
    assert client.get("/api/admin/users").status_code == 401
    assert client.get("/api/admin/users", headers=auth_header(user.id, "user")).status_code == 403


def test_expired_token_is_rejected(client, make_user):
    from security import create_access_token

    user = make_user()
    token = create_access_token(user.id, "user", expires_delta=timedelta(seconds=-5))
    resp = client.get("/api/user/profile", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token expired"


def test_deletion_request_and_admin_approval(client, db_session, make_user, admin):
    user_id = make_user().id
    headers = auth_header(user_id, "user")
    client.post("/api/consultation", json={"query": "how to file an fir"}, headers=headers)
    client.post("/api/user/request-deletion", headers=headers)

    admin_headers = auth_header(admin.id, "admin")
    requests = client.get("/api/admin/deletion-requests", headers=admin_headers).json()
    assert [u["id"] for u in requests["users"]] == [user_id]
    assert requests["lawyers"] == []

    resp = client.post(f"/api/admin/approve-deletion/{user_id}", json={"type": "user"}, headers=admin_headers)
    assert resp.status_code == 200

    db_session.expire_all()
    assert db_session.get(User, user_id) is None
    assert db_session.scalar(select(func.count()).select_from(Consultation)) == 0


def test_approve_deletion_of_missing_lawyer(client, admin):
    resp = client.post("/api/admin/approve-deletion/42", json={"type": "lawyer"}, headers=auth_header(admin.id, "admin"))
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Profile, consent, payments, ads
# ---------------------------------------------------------------------------


def test_profile_read_and_update(client, make_user):
    user = make_user()
    headers = auth_header(user.id, "user")

    resp = client.put("/api/user/profile", json={"fullName": "Asha V.", "language": "hi"}, headers=headers)
    assert resp.status_code == 200

    profile = client.get("/api/user/profile", headers=headers).json()
    assert profile["fullName"] == "Asha V."
    assert profile["language"] == "hi"
    assert "passwordHash" not in profile


def test_consent_is_recorded(client, db_session, make_user):
    user = make_user()
    client.post("/api/user/consent", headers=auth_header(user.id, "user"))
    db_session.expire_all()
    assert db_session.get(User, user.id).consent_given is True


def test_upgrade_premium_and_remove_ads(client, db_session, make_user):
    user = make_user()
    headers = auth_header(user.id, "user")

    premium = client.post("/api/user/upgrade-premium", headers=headers)
    assert premium.json()["isPremium"] is True
    assert client.post("/api/user/remove-ads", headers=headers).json()["adsRemoved"] is True

    payments = db_session.scalars(select(Payment).order_by(Payment.id)).all()
    assert [(p.kind, p.amount) for p in payments] == [("premium", 2999), ("ads_removal", 199)]
    assert all(p.transaction_id.startswith("TXN") for p in payments)

    assert client.post("/api/consultation", json={"query": "rti"}, headers=headers).json()["isPremium"] is True


def test_seed_defaults_is_idempotent(db_session):
    seed_defaults(db_session)
    seed_defaults(db_session)
    assert db_session.scalar(select(func.count()).select_from(Admin)) == 1
    assert db_session.scalar(select(func.count()).select_from(Ad)) == len(SAMPLE_ADS)


def test_ads_are_public(client, db_session):
    seed_defaults(db_session)
    ads = client.get("/api/ads").json()
    assert [a["advertiser"] for a in ads] == [a["advertiser"] for a in SAMPLE_ADS]


def test_lawyer_directory_lists_only_approved(client, make_user, make_lawyer):
    user = make_user()
    approved = make_lawyer()
    make_lawyer(name="Adv. Pending", approved=False)

    listed = client.get("/api/lawyers", headers=auth_header(user.id, "user")).json()
    assert [l["id"] for l in listed] == [approved.id]


@pytest.mark.parametrize("value", ["Tax, Cyber Law", ["Tax", " Cyber Law "]])
def test_lawyer_profile_specialization_accepts_string_or_list(client, make_lawyer, value):
    lawyer = make_lawyer()
    resp = client.put("/api/lawyer/profile", json={"specialization": value}, headers=auth_header(lawyer.id, "lawyer"))
    assert resp.json()["specialization"] == ["Tax", "Cyber Law"]
