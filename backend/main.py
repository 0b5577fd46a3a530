"""
SamvidhanAI — FastAPI Backend
Legal assistance for Indian citizens: AI consultations, verified lawyers, admin review.

Consultation pipeline (per request):
  1. Keyword match against the curated legal catalog (best single topic)
  2. One Groq call with the matched topic inlined as a hint
  3. Normalize the model's JSON; fall back to catalog citations if malformed
  4. Record the consultation and append it to the user's chat history
"""

import asyncio
import logging
import secrets
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Literal, Optional, Union

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

import accounts
import messaging
from accounts import AccountError, lawyer_public, user_public
from ai_gateway import AIGateway, ConfigurationMissing, UpstreamUnavailable, get_gateway
from consultation import (
    PROCESSING_FAILURE_PAYLOAD,
    SERVICE_UNAVAILABLE_PAYLOAD,
    ConsultationRecordOut,
    ConsultationRequest,
    ConsultationResponse,
    PersistenceFailure,
    UserNotFound,
    ValidationFailure,
    run_consultation,
)
from consultation_pdf import build_consultation_pdf
from database import Ad, Consultation, Lawyer, Payment, SessionLocal, User, get_db, init_db, utcnow
from messaging import LawyerReplyRequest, MessagingError, SendMessageRequest, hub, room_for
from security import InvalidTokenError, Principal, TokenExpiredError, decode_access_token, require_role
from settings import Settings

# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=Settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("samvidhan")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    with SessionLocal() as db:
        accounts.seed_defaults(db)
    if not Settings.GROQ_API_KEY:
        logger.warning("GROQ_API_KEY is not set. AI consultations will return 503 until it is configured.")
    yield


app = FastAPI(title="SamvidhanAI API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AccountError)
async def _account_error(request, exc: AccountError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(MessagingError)
async def _messaging_error(request, exc: MessagingError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


# ---------------------------------------------------------------------------
# Principal loaders
# ---------------------------------------------------------------------------


def current_user(
    principal: Principal = Depends(require_role("user")),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, principal.id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def current_lawyer(
    principal: Principal = Depends(require_role("lawyer")),
    db: Session = Depends(get_db),
) -> Lawyer:
    lawyer = db.get(Lawyer, principal.id)
    if lawyer is None:
        raise HTTPException(status_code=404, detail="Lawyer not found")
    return lawyer


require_admin = require_role("admin")


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------


class UserProfileUpdate(BaseModel):
    fullName: Optional[str] = None
    problemDescription: Optional[str] = None
    language: Optional[str] = None


class LawyerProfileUpdate(BaseModel):
    fullName: Optional[str] = None
    specialization: Optional[Union[List[str], str]] = None
    experience: Optional[int] = None
    courtJurisdiction: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("specialization")
    @classmethod
    def _split(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        return None if value is None else [s.strip() for s in value if s and s.strip()]


class ApproveDeletionRequest(BaseModel):
    type: Literal["user", "lawyer"] = "user"


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/api/health")
async def health(gateway: AIGateway = Depends(get_gateway)):
    return {"status": "ok", "aiConfigured": gateway.configured}


# ---------------------------------------------------------------------------
# User authentication
# ---------------------------------------------------------------------------


@app.post("/api/user/signup")
def user_signup(data: accounts.UserSignup, db: Session = Depends(get_db)):
    return accounts.signup_user(db, data)


@app.post("/api/user/verify-otp")
def user_verify_otp(data: accounts.VerifyOtpRequest, db: Session = Depends(get_db)):
    return accounts.verify_user(db, data)


@app.post("/api/user/login")
def user_login(data: accounts.LoginRequest, db: Session = Depends(get_db)):
    return accounts.login_user(db, data)


@app.post("/api/user/forgot-password")
def user_forgot_password(data: accounts.ForgotPasswordRequest, db: Session = Depends(get_db)):
    return accounts.request_password_reset(db, data)


@app.post("/api/user/reset-password")
def user_reset_password(data: accounts.ResetPasswordRequest, db: Session = Depends(get_db)):
    return accounts.reset_password(db, data)


# ---------------------------------------------------------------------------
# Lawyer authentication
# ---------------------------------------------------------------------------


@app.post("/api/lawyer/signup")
def lawyer_signup(data: accounts.LawyerSignup, db: Session = Depends(get_db)):
    return accounts.signup_lawyer(db, data)


@app.post("/api/lawyer/verify-otp")
def lawyer_verify_otp(data: accounts.VerifyOtpRequest, db: Session = Depends(get_db)):
    return accounts.verify_lawyer(db, data)


@app.post("/api/lawyer/login")
def lawyer_login(data: accounts.LoginRequest, db: Session = Depends(get_db)):
    return accounts.login_lawyer(db, data)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@app.post("/api/admin/login")
def admin_login(data: accounts.AdminLoginRequest, db: Session = Depends(get_db)):
    return accounts.login_admin(db, data)


@app.get("/api/admin/users")
def admin_users(_: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    return [user_public(u) for u in db.scalars(select(User).order_by(User.id))]


@app.get("/api/admin/lawyers")
def admin_lawyers(_: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    return [lawyer_public(l) for l in db.scalars(select(Lawyer).order_by(Lawyer.id))]


@app.get("/api/admin/pending-lawyers")
def admin_pending_lawyers(_: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    pending = db.scalars(
        select(Lawyer).where(Lawyer.is_verified.is_(True), Lawyer.is_approved.is_(False)).order_by(Lawyer.id)
    )
    return [lawyer_public(l) for l in pending]


@app.post("/api/admin/approve-lawyer/{lawyer_id}")
def admin_approve_lawyer(lawyer_id: int, _: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    accounts.approve_lawyer(db, lawyer_id)
    return {"message": "Lawyer approved"}


@app.get("/api/admin/deletion-requests")
def admin_deletion_requests(_: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    users = db.scalars(select(User).where(User.deletion_requested.is_(True)).order_by(User.id))
    lawyers = db.scalars(select(Lawyer).where(Lawyer.deletion_requested.is_(True)).order_by(Lawyer.id))
    return {
        "users": [user_public(u) for u in users],
        "lawyers": [lawyer_public(l) for l in lawyers],
    }


@app.post("/api/admin/approve-deletion/{account_id}")
def admin_approve_deletion(
    account_id: int,
    body: ApproveDeletionRequest,
    _: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    accounts.delete_account(db, body.type, account_id)
    return {"message": "Account deleted"}


# ---------------------------------------------------------------------------
# User profile & history
# ---------------------------------------------------------------------------


@app.get("/api/user/profile")
def user_profile(user: User = Depends(current_user)):
    return user_public(user)


@app.put("/api/user/profile")
def update_user_profile(data: UserProfileUpdate, user: User = Depends(current_user), db: Session = Depends(get_db)):
    if data.fullName is not None and data.fullName.strip():
        user.full_name = data.fullName.strip()
    if data.problemDescription is not None:
        user.problem_description = data.problemDescription
    if data.language is not None:
        user.language = data.language
    db.commit()
    return user_public(user)


@app.post("/api/user/change-password-request")
def user_change_password_request(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return accounts.request_password_change(db, user)


@app.post("/api/user/change-password-verify")
def user_change_password_verify(
    data: accounts.ChangePasswordVerify,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return accounts.change_password(db, user, data)


@app.post("/api/user/request-deletion")
def user_request_deletion(user: User = Depends(current_user), db: Session = Depends(get_db)):
    user.deletion_requested = True
    user.deletion_request_date = utcnow()
    db.commit()
    return {"message": "Deletion request submitted"}


@app.post("/api/user/consent")
def user_consent(user: User = Depends(current_user), db: Session = Depends(get_db)):
    user.consent_given = True
    user.consent_date = utcnow()
    db.commit()
    return {"message": "Consent recorded"}


@app.get("/api/user/chat-history", response_model=List[ConsultationRecordOut])
def user_chat_history(user: User = Depends(current_user)):
    return [ConsultationRecordOut.from_row(h) for h in user.history]


@app.get("/api/user/consultations", response_model=List[ConsultationRecordOut])
def user_consultations(user: User = Depends(current_user)):
    return [ConsultationRecordOut.from_row(c) for c in user.consultations]


@app.get("/api/consultations/{consultation_id}/pdf")
def consultation_pdf(consultation_id: int, user: User = Depends(current_user), db: Session = Depends(get_db)):
    consultation = db.get(Consultation, consultation_id)
    if consultation is None or consultation.user_id != user.id:
        raise HTTPException(status_code=404, detail="Consultation not found")
    pdf_bytes = build_consultation_pdf(consultation, user.full_name)
    filename = f"samvidhan_consultation_{consultation.id}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# AI consultation
# ---------------------------------------------------------------------------


@app.post("/api/consultation", response_model=ConsultationResponse)
async def consultation(
    request: ConsultationRequest,
    principal: Principal = Depends(require_role("user")),
    db: Session = Depends(get_db),
    gateway: AIGateway = Depends(get_gateway),
):
    """Query → catalog match → Groq → normalized answer, recorded to history."""
    try:
        return await run_consultation(db, gateway, principal.id, request)
    except ValidationFailure as exc:
        return JSONResponse(status_code=400, content={"message": str(exc)})
    except ConfigurationMissing:
        return JSONResponse(status_code=503, content=SERVICE_UNAVAILABLE_PAYLOAD)
    except UserNotFound:
        return JSONResponse(status_code=404, content={"message": "User not found"})
    except PersistenceFailure:
        return JSONResponse(status_code=500, content=PROCESSING_FAILURE_PAYLOAD)
    except Exception:
        logger.exception("Consultation failed for user %s", principal.id)
        return JSONResponse(status_code=500, content=PROCESSING_FAILURE_PAYLOAD)


@app.post("/api/transcribe")
async def transcribe(
    audio: UploadFile = File(...),
    _: Principal = Depends(require_role("user")),
    gateway: AIGateway = Depends(get_gateway),
):
    """Accept audio blob → Groq Whisper → English transcript for voice mode."""
    if not gateway.configured:
        return JSONResponse(status_code=503, content=SERVICE_UNAVAILABLE_PAYLOAD)
    data = await audio.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty audio upload")
    try:
        text = await gateway.transcribe(audio.filename or "audio.webm", data)
    except UpstreamUnavailable as exc:
        raise HTTPException(status_code=502, detail=f"Transcription error: {exc}") from exc
    return {"text": text}


# ---------------------------------------------------------------------------
# Premium & ads
# ---------------------------------------------------------------------------


def _record_payment(db: Session, user: User, kind: str, amount: int) -> Payment:
    payment = Payment(
        user_id=user.id,
        kind=kind,
        amount=amount,
        status="completed",
        transaction_id=f"TXN{secrets.token_hex(8).upper()}",
    )
    db.add(payment)
    return payment


@app.post("/api/user/upgrade-premium")
def upgrade_premium(user: User = Depends(current_user), db: Session = Depends(get_db)):
    user.is_premium = True
    user.premium_expiry = utcnow() + timedelta(days=Settings.PREMIUM_DAYS)
    _record_payment(db, user, "premium", Settings.PREMIUM_PRICE_INR)
    db.commit()
    return {"message": "Upgraded to premium", "isPremium": True, "premiumExpiry": user.premium_expiry}


@app.post("/api/user/remove-ads")
def remove_ads(user: User = Depends(current_user), db: Session = Depends(get_db)):
    user.ads_removed = True
    _record_payment(db, user, "ads_removal", Settings.ADS_REMOVAL_PRICE_INR)
    db.commit()
    return {"message": "Ads removed", "adsRemoved": True}


@app.get("/api/ads")
def list_ads(db: Session = Depends(get_db)):
    ads = db.scalars(select(Ad).where(Ad.is_active.is_(True)).order_by(Ad.id))
    return [
        {
            "id": ad.id,
            "title": ad.title,
            "content": ad.content,
            "imageUrl": ad.image_url,
            "link": ad.link,
            "advertiser": ad.advertiser,
        }
        for ad in ads
    ]


# ---------------------------------------------------------------------------
# Lawyers
# ---------------------------------------------------------------------------


@app.get("/api/lawyers")
def list_lawyers(_: Principal = Depends(require_role("user", "admin")), db: Session = Depends(get_db)):
    approved = db.scalars(select(Lawyer).where(Lawyer.is_approved.is_(True)).order_by(Lawyer.id))
    return [lawyer_public(l) for l in approved]


@app.get("/api/lawyer/profile")
def lawyer_profile(lawyer: Lawyer = Depends(current_lawyer)):
    return lawyer_public(lawyer)


@app.put("/api/lawyer/profile")
def update_lawyer_profile(
    data: LawyerProfileUpdate,
    lawyer: Lawyer = Depends(current_lawyer),
    db: Session = Depends(get_db),
):
    if data.fullName is not None and data.fullName.strip():
        lawyer.full_name = data.fullName.strip()
    if data.specialization is not None:
        lawyer.specialization = data.specialization
    if data.experience is not None:
        lawyer.experience = data.experience
    if data.courtJurisdiction is not None:
        lawyer.court_jurisdiction = data.courtJurisdiction
    if data.address is not None:
        lawyer.address = data.address
    if data.bio is not None:
        lawyer.bio = data.bio
    db.commit()
    return lawyer_public(lawyer)


@app.post("/api/lawyer/request-deletion")
def lawyer_request_deletion(lawyer: Lawyer = Depends(current_lawyer), db: Session = Depends(get_db)):
    lawyer.deletion_requested = True
    lawyer.deletion_request_date = utcnow()
    db.commit()
    return {"message": "Deletion request submitted"}


# ---------------------------------------------------------------------------
# Messaging (REST)
# ---------------------------------------------------------------------------


@app.get("/api/lawyer/messages")
def lawyer_messages(lawyer: Lawyer = Depends(current_lawyer), db: Session = Depends(get_db)):
    return messaging.lawyer_inbox(db, lawyer.id)


@app.post("/api/lawyer/reply")
async def lawyer_reply(
    data: LawyerReplyRequest,
    principal: Principal = Depends(require_role("lawyer")),
    db: Session = Depends(get_db),
):
    payload = await asyncio.to_thread(messaging.store_message, db, principal, data.userId, data.message)
    await messaging.relay(payload, principal.role)
    return {"message": "Reply sent", "data": payload}


@app.post("/api/messages")
async def post_message(
    data: SendMessageRequest,
    principal: Principal = Depends(require_role("user", "lawyer")),
    db: Session = Depends(get_db),
):
    payload = await asyncio.to_thread(messaging.store_message, db, principal, data.to, data.message)
    await messaging.relay(payload, principal.role)
    return payload


@app.get("/api/messages/{counterpart_id}")
def get_messages(
    counterpart_id: int,
    principal: Principal = Depends(require_role("user", "lawyer")),
    db: Session = Depends(get_db),
):
    return messaging.thread_messages(db, principal, counterpart_id)


# ---------------------------------------------------------------------------
# Messaging (WebSocket)
# ---------------------------------------------------------------------------


@app.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, token: str = "", db: Session = Depends(get_db)):
    """
    ws://host/ws/chat?token=<jwt>
    Client → {"type": "sendMessage", "to": <id>, "message": "..."}
    Server → {"type": "newMessage", ...} to the recipient,
             {"type": "messageSent", ...} back to the sender.
    """
    try:
        principal = decode_access_token(token)
    except (InvalidTokenError, TokenExpiredError):
        await websocket.close(code=1008)
        return
    if principal.role not in ("user", "lawyer"):
        await websocket.close(code=1008)
        return

    await websocket.accept()
    room = room_for(principal.role, principal.id)
    hub.join(room, websocket)
    await websocket.send_json({"type": "joined", "room": room})
    try:
        while True:
            try:
                event = await websocket.receive_json()
            except (ValueError, KeyError):
                await websocket.send_json({"type": "error", "message": "Malformed event"})
                continue
            if not isinstance(event, dict) or event.get("type") != "sendMessage":
                await websocket.send_json({"type": "error", "message": "Unknown event"})
                continue
            try:
                to_id = int(event.get("to", 0))
                text = str(event.get("message") or "")
                payload = await asyncio.to_thread(messaging.store_message, db, principal, to_id, text)
            except (MessagingError, ValueError, TypeError) as exc:
                await websocket.send_json({"type": "error", "message": getattr(exc, "message", str(exc))})
                continue
            await messaging.relay(payload, principal.role)
            await websocket.send_json({"type": "messageSent", **payload})
    except WebSocketDisconnect:
        logger.info("Socket disconnected: %s", room)
    finally:
        hub.leave(room, websocket)
