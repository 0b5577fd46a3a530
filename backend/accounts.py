"""
accounts.py — SamvidhanAI
Signup, OTP verification, login and password flows for users, lawyers, admins.

Pending verifications are VerificationRecord rows keyed by a random token, so
any process can complete a flow another process started. OTP delivery is not
implemented: codes are logged, and echoed in responses when EXPOSE_OTP=true.
"""

import logging
import secrets
from datetime import timedelta
from typing import List, Optional, Union

from pydantic import BaseModel, field_validator
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import Ad, Admin, Lawyer, User, VerificationRecord, utcnow
from security import create_access_token, hash_password, verify_password
from settings import Settings

logger = logging.getLogger("samvidhan.accounts")


class AccountError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------


class UserSignup(BaseModel):
    fullName: str
    email: str
    phone: str
    password: str

    @field_validator("fullName", "email", "phone", "password")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class LawyerSignup(UserSignup):
    barCouncilNumber: str
    aadhaarNumber: str
    specialization: Union[List[str], str] = []
    experience: Optional[int] = None
    courtJurisdiction: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("specialization")
    @classmethod
    def _split_specialization(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        return [s.strip() for s in value if s and s.strip()]


class VerifyOtpRequest(BaseModel):
    verificationToken: str
    emailOtp: str
    phoneOtp: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class AdminLoginRequest(BaseModel):
    username: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    verificationToken: str
    otp: str
    newPassword: str


class ChangePasswordVerify(BaseModel):
    verificationToken: str
    otp: str
    newPassword: str


# ---------------------------------------------------------------------------
# Serialisers
# ---------------------------------------------------------------------------


def user_public(user: User) -> dict:
    return {
        "id": user.id,
        "fullName": user.full_name,
        "email": user.email,
        "phone": user.phone,
        "isVerified": user.is_verified,
        "isPremium": user.is_premium,
        "premiumExpiry": user.premium_expiry,
        "consentGiven": user.consent_given,
        "adsRemoved": user.ads_removed,
        "language": user.language,
        "problemDescription": user.problem_description,
        "accountStatus": user.account_status,
        "deletionRequested": user.deletion_requested,
        "createdAt": user.created_at,
        "lastLogin": user.last_login,
    }


def lawyer_public(lawyer: Lawyer) -> dict:
    return {
        "id": lawyer.id,
        "fullName": lawyer.full_name,
        "email": lawyer.email,
        "phone": lawyer.phone,
        "barCouncilNumber": lawyer.bar_council_number,
        "specialization": list(lawyer.specialization or []),
        "experience": lawyer.experience,
        "courtJurisdiction": lawyer.court_jurisdiction,
        "address": lawyer.address,
        "bio": lawyer.bio,
        "isVerified": lawyer.is_verified,
        "isApproved": lawyer.is_approved,
        "accountStatus": lawyer.account_status,
        "deletionRequested": lawyer.deletion_requested,
        "rating": lawyer.rating,
        "totalReviews": lawyer.total_reviews,
        "createdAt": lawyer.created_at,
    }


# ---------------------------------------------------------------------------
# OTP challenges
# ---------------------------------------------------------------------------


def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def issue_challenge(
    db: Session,
    purpose: str,
    subject_kind: str,
    subject_id: int,
    with_phone: bool = True,
) -> VerificationRecord:
    record = VerificationRecord(
        token=secrets.token_urlsafe(32),
        purpose=purpose,
        subject_kind=subject_kind,
        subject_id=subject_id,
        email_code=generate_otp(),
        phone_code=generate_otp() if with_phone else None,
        expires_at=utcnow() + timedelta(minutes=Settings.OTP_TTL_MINUTES),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(
        "OTP issued: purpose=%s %s=%s email_code=%s phone_code=%s",
        purpose, subject_kind, subject_id, record.email_code, record.phone_code,
    )
    return record


def challenge_payload(record: VerificationRecord, message: str = "OTP sent", **extra) -> dict:
    payload = {"message": message, "verificationToken": record.token, **extra}
    if Settings.EXPOSE_OTP:
        payload["emailOtp"] = record.email_code
        if record.phone_code:
            payload["phoneOtp"] = record.phone_code
    return payload


def consume_challenge(
    db: Session,
    token: str,
    purpose: str,
    email_code: str,
    phone_code: Optional[str] = None,
) -> VerificationRecord:
    record = db.scalar(select(VerificationRecord).where(VerificationRecord.token == token))
    if record is None or record.purpose != purpose or record.consumed:
        raise AccountError("Invalid or expired OTP")
    if record.expires_at < utcnow():
        raise AccountError("OTP expired")

    ok = secrets.compare_digest(record.email_code, (email_code or "").strip())
    if record.phone_code is not None:
        ok = ok and secrets.compare_digest(record.phone_code, (phone_code or "").strip())
    if not ok:
        raise AccountError("Invalid OTP")

    record.consumed = True
    return record


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def signup_user(db: Session, data: UserSignup) -> dict:
    existing = db.scalar(select(User).where(or_(User.email == data.email, User.phone == data.phone)))
    if existing is not None:
        raise AccountError("Email or phone already registered")

    user = User(
        full_name=data.fullName,
        email=data.email,
        phone=data.phone,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AccountError("Email or phone already registered") from exc
    db.refresh(user)

    record = issue_challenge(db, "signup", "user", user.id)
    return challenge_payload(record, userId=user.id)


def verify_user(db: Session, data: VerifyOtpRequest) -> dict:
    record = consume_challenge(db, data.verificationToken, "signup", data.emailOtp, data.phoneOtp)
    if record.subject_kind != "user":
        raise AccountError("Invalid or expired OTP")
    user = db.get(User, record.subject_id)
    if user is None:
        raise AccountError("User not found", status_code=404)

    user.is_verified = True
    user.last_login = utcnow()
    db.commit()
    token = create_access_token(user.id, "user")
    return {"message": "Verification successful", "token": token, "user": user_public(user)}


def login_user(db: Session, data: LoginRequest) -> dict:
    user = db.scalar(select(User).where(User.email == data.email.strip().lower()))
    if user is None:
        raise AccountError("User not found", status_code=404)
    if not verify_password(data.password, user.password_hash):
        raise AccountError("Invalid credentials")
    if not user.is_verified:
        raise AccountError("Please verify your account first")

    user.last_login = utcnow()
    db.commit()
    token = create_access_token(user.id, "user")
    return {"message": "Login successful", "token": token, "user": user_public(user)}


def request_password_reset(db: Session, data: ForgotPasswordRequest) -> dict:
    user = db.scalar(select(User).where(User.email == data.email.strip().lower()))
    if user is None:
        raise AccountError("User not found", status_code=404)
    record = issue_challenge(db, "password_reset", "user", user.id, with_phone=False)
    return challenge_payload(record)


def reset_password(db: Session, data: ResetPasswordRequest) -> dict:
    record = consume_challenge(db, data.verificationToken, "password_reset", data.otp)
    user = db.get(User, record.subject_id)
    if user is None:
        raise AccountError("User not found", status_code=404)
    user.password_hash = hash_password(data.newPassword)
    db.commit()
    return {"message": "Password reset successful"}


def request_password_change(db: Session, user: User) -> dict:
    record = issue_challenge(db, "password_change", "user", user.id, with_phone=False)
    return challenge_payload(record)


def change_password(db: Session, user: User, data: ChangePasswordVerify) -> dict:
    record = consume_challenge(db, data.verificationToken, "password_change", data.otp)
    if record.subject_id != user.id:
        raise AccountError("Invalid or expired OTP")
    user.password_hash = hash_password(data.newPassword)
    db.commit()
    return {"message": "Password changed"}


# ---------------------------------------------------------------------------
# Lawyers
# ---------------------------------------------------------------------------


def signup_lawyer(db: Session, data: LawyerSignup) -> dict:
    existing = db.scalar(
        select(Lawyer).where(
            or_(
                Lawyer.email == data.email,
                Lawyer.phone == data.phone,
                Lawyer.bar_council_number == data.barCouncilNumber,
                Lawyer.aadhaar_number == data.aadhaarNumber,
            )
        )
    )
    if existing is not None:
        raise AccountError("Email, phone or bar council number already registered")

    lawyer = Lawyer(
        full_name=data.fullName,
        email=data.email,
        phone=data.phone,
        password_hash=hash_password(data.password),
        bar_council_number=data.barCouncilNumber,
        aadhaar_number=data.aadhaarNumber,
        specialization=data.specialization,
        experience=data.experience,
        court_jurisdiction=data.courtJurisdiction,
        address=data.address,
        bio=data.bio,
    )
    db.add(lawyer)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise AccountError("Email, phone or bar council number already registered") from exc
    db.refresh(lawyer)

    record = issue_challenge(db, "signup", "lawyer", lawyer.id)
    return challenge_payload(record, lawyerId=lawyer.id)


def verify_lawyer(db: Session, data: VerifyOtpRequest) -> dict:
    record = consume_challenge(db, data.verificationToken, "signup", data.emailOtp, data.phoneOtp)
    if record.subject_kind != "lawyer":
        raise AccountError("Invalid or expired OTP")
    lawyer = db.get(Lawyer, record.subject_id)
    if lawyer is None:
        raise AccountError("Lawyer not found", status_code=404)
    lawyer.is_verified = True
    db.commit()
    return {"message": "Verification successful. Awaiting admin approval."}


def login_lawyer(db: Session, data: LoginRequest) -> dict:
    lawyer = db.scalar(select(Lawyer).where(Lawyer.email == data.email.strip().lower()))
    if lawyer is None:
        raise AccountError("Lawyer not found", status_code=404)
    if not verify_password(data.password, lawyer.password_hash):
        raise AccountError("Invalid credentials")
    if not lawyer.is_verified:
        raise AccountError("Please verify your account first")
    if not lawyer.is_approved:
        raise AccountError("Account pending admin approval")

    lawyer.last_login = utcnow()
    db.commit()
    token = create_access_token(lawyer.id, "lawyer")
    return {"message": "Login successful", "token": token, "lawyer": lawyer_public(lawyer)}


# ---------------------------------------------------------------------------
# Admins
# ---------------------------------------------------------------------------


def login_admin(db: Session, data: AdminLoginRequest) -> dict:
    admin = db.scalar(select(Admin).where(Admin.username == data.username))
    if admin is None:
        raise AccountError("Admin not found", status_code=404)
    if not verify_password(data.password, admin.password_hash):
        raise AccountError("Invalid credentials")
    admin.last_login = utcnow()
    db.commit()
    return {"message": "Login successful", "token": create_access_token(admin.id, "admin")}


def approve_lawyer(db: Session, lawyer_id: int) -> Lawyer:
    lawyer = db.get(Lawyer, lawyer_id)
    if lawyer is None:
        raise AccountError("Lawyer not found", status_code=404)
    lawyer.is_approved = True
    lawyer.account_status = "active"
    db.commit()
    logger.info("Lawyer %s approved", lawyer_id)
    return lawyer


def delete_account(db: Session, kind: str, account_id: int) -> None:
    model = {"user": User, "lawyer": Lawyer}.get(kind)
    if model is None:
        raise AccountError("type must be 'user' or 'lawyer'")
    account = db.get(model, account_id)
    if account is None:
        raise AccountError(f"{kind.capitalize()} not found", status_code=404)
    db.query(VerificationRecord).filter(
        VerificationRecord.subject_kind == kind,
        VerificationRecord.subject_id == account_id,
    ).delete(synchronize_session=False)
    db.delete(account)
    db.commit()
    logger.info("Deleted %s %s", kind, account_id)


# ---------------------------------------------------------------------------
# Startup seeding
# ---------------------------------------------------------------------------

SAMPLE_ADS = [
    {"title": "Legal Documentation Services", "content": "Documents drafted by experts.", "advertiser": "LegalDocs India"},
    {"title": "Property Registration", "content": "Hassle-free property registration.", "advertiser": "PropertyLaw India"},
    {"title": "Divorce Consultation", "content": "Expert divorce lawyers available.", "advertiser": "FamilyLaw Experts"},
]


def seed_defaults(db: Session) -> None:
    """Create the default admin and sample ads if absent."""
    if db.scalar(select(Admin).where(Admin.username == Settings.ADMIN_USERNAME)) is None:
        db.add(Admin(
            username=Settings.ADMIN_USERNAME,
            password_hash=hash_password(Settings.ADMIN_PASSWORD),
        ))
        logger.info("Default admin created: %s", Settings.ADMIN_USERNAME)
    if db.scalar(select(Ad.id).limit(1)) is None:
        db.add_all(Ad(**ad) for ad in SAMPLE_ADS)
        logger.info("Sample ads created")
    db.commit()
