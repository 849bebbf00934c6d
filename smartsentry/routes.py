"""SmartSentry Backend — FastAPI Routes"""

import asyncio
import json
import logging
import math
import time
from pathlib import Path
from typing import Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from smartsentry.auth import create_token, decode_token, extract_token, hash_password, verify_password
from smartsentry.chat import get_offline_reply
from smartsentry.config import DB_PATH, GEMINI_API_KEY, GEMINI_MODEL
from smartsentry.db import Database
from smartsentry.models import (
    AuthResponse, ChatReply, ChatRequest, ContactIn, ContactOut, LoginRequest,
    ProfileUpdate, RegisterRequest, SOSStartRequest, UserOut,
)

logger = logging.getLogger("smartsentry")

CHAT_FALLBACK_TEXT = "I'm having trouble connecting right now. For emergencies, please use the SOS feature."

CHAT_SYSTEM_PROMPT = """You are Smart Sentry, an AI safety assistant for a personal safety app.
Your role is to provide helpful, accurate information about personal safety, emergency procedures, and app features.

Key guidelines:
- Always prioritize user safety
- Provide clear, actionable advice for emergencies
- Be empathetic and supportive
- Reference app features when relevant (SOS, trusted contacts, location sharing)
- If user is in immediate danger, urge them to use SOS feature
- Keep responses concise but informative
- Use the provided context about user's profile and contacts when relevant

User context: {context}
"""

RATE_LIMIT = 120  # requests per minute per IP
RATE_WINDOW = 60  # seconds
RATE_EVICT_INTERVAL = 300  # evict stale IPs every 5 minutes


# ─────────────────────────── Dependencies ──────────────────────

def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        db = request.app.state.db = Database(request.app.state.db_path)
    return db


def current_user_id(request: Request, db: Database = Depends(get_db)) -> str:
    token = extract_token(request.headers.get("Authorization"))
    if not token:
        raise HTTPException(status_code=401, detail="No token, authorization denied")
    user_id = decode_token(token)
    if not user_id or db.get_user(user_id) is None:
        raise HTTPException(status_code=401, detail="Token is not valid")
    return user_id


router = APIRouter(prefix="/api")


# ─────────────────────────── Auth ──────────────────────────────

@router.post("/auth/register", status_code=201, response_model=AuthResponse)
async def register(req: RegisterRequest, db: Database = Depends(get_db)):
    if db.find_user_by_email(req.email):
        raise HTTPException(status_code=400, detail="User already exists")

    user = db.create_user(
        name=req.name, email=req.email, mobile=req.mobile, address=req.address,
        password_hash=hash_password(req.password), profile_image=req.profileImage,
    )
    logger.info(f"Registered user {user['id']}")
    return AuthResponse(message="User registered successfully", token=create_token(user["id"]), user=UserOut(**user))


@router.post("/auth/login", response_model=AuthResponse)
async def login(req: LoginRequest, db: Database = Depends(get_db)):
    user = db.find_user_by_email(req.email)
    if not user or not verify_password(req.password, user.pop("password")):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return AuthResponse(message="Login successful", token=create_token(user["id"]), user=UserOut(**user))


# ─────────────────────────── Profile ───────────────────────────

@router.get("/profile", response_model=UserOut)
async def get_profile(user_id: str = Depends(current_user_id), db: Database = Depends(get_db)):
    user = db.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/profile", response_model=UserOut)
async def update_profile(req: ProfileUpdate, user_id: str = Depends(current_user_id),
                         db: Database = Depends(get_db)):
    if req.email and db.email_taken_by_other(req.email, user_id):
        raise HTTPException(status_code=400, detail="Email already in use")
    user = db.update_user(user_id, req.model_dump())
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ─────────────────────────── Contacts ──────────────────────────

@router.get("/contacts", response_model=list[ContactOut])
async def list_contacts(user_id: str = Depends(current_user_id), db: Database = Depends(get_db)):
    return db.list_contacts(user_id)


@router.post("/contacts", status_code=201, response_model=ContactOut)
async def add_contact(req: ContactIn, user_id: str = Depends(current_user_id), db: Database = Depends(get_db)):
    return db.add_contact(user_id, req.name, req.relation, req.phone)


@router.put("/contacts/{contact_id}", response_model=ContactOut)
async def update_contact(contact_id: str, req: ContactIn, user_id: str = Depends(current_user_id),
                         db: Database = Depends(get_db)):
    contact = db.update_contact(user_id, contact_id, req.name, req.relation, req.phone)
    if contact is None:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


@router.delete("/contacts/{contact_id}")
async def delete_contact(contact_id: str, user_id: str = Depends(current_user_id), db: Database = Depends(get_db)):
    if not db.delete_contact(user_id, contact_id):
        raise HTTPException(status_code=404, detail="Contact not found")
    return {"message": "Contact deleted"}


# ─────────────────────────── SOS ───────────────────────────────

@router.post("/sos/start")
async def start_sos(req: SOSStartRequest, user_id: str = Depends(current_user_id), db: Database = Depends(get_db)):
    location = req.location if isinstance(req.location, str) else json.dumps(req.location)
    event = db.log_sos(user_id, req.type, location, req.contactsNotified)
    logger.info(f"SOS {req.type} logged for user {user_id}")
    return {"message": "SOS logged", "id": event["id"]}


def _decode_location(value: Optional[str]):
    if value and value.startswith("{"):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


@router.get("/sos/history")
async def sos_history(limit: int = 50, page: int = 1, user_id: str = Depends(current_user_id),
                      db: Database = Depends(get_db)):
    limit = min(max(limit, 1), 100)
    page = max(page, 1)
    events, total = db.sos_history(user_id, limit, page)
    for e in events:
        e["location"] = _decode_location(e["location"])
    return {
        "success": True,
        "data": events,
        "pagination": {"page": page, "totalPages": max(1, math.ceil(total / limit)), "total": total},
    }


# ─────────────────────────── Chat (Gemini Proxy) ───────────────

def _gemini_reply(message: str, context: dict) -> str:
    import google.generativeai as genai
    genai.configure(api_key=GEMINI_API_KEY)
    model = genai.GenerativeModel(
        GEMINI_MODEL,
        system_instruction=CHAT_SYSTEM_PROMPT.format(context=json.dumps(context, default=str)),
    )

    history = []
    for msg in (context.get("conversationHistory") or [])[-4:]:
        if not isinstance(msg, dict):
            continue
        role = "model" if msg.get("isBot") or msg.get("role") in ("assistant", "model") else "user"
        text = msg.get("text") or msg.get("content") or ""
        if text:
            history.append({"role": role, "parts": [text]})

    chat = model.start_chat(history=history)
    result = chat.send_message(
        message,
        generation_config=genai.types.GenerationConfig(max_output_tokens=500, temperature=0.7),
    )
    return result.text.strip()


@router.post("/chat", response_model=ChatReply)
async def chat(req: ChatRequest, user_id: str = Depends(current_user_id)):
    if not GEMINI_API_KEY:
        return ChatReply(response=get_offline_reply(req.message), offline=True, model="fallback")

    try:
        text = await asyncio.to_thread(_gemini_reply, req.message, req.context)
        return ChatReply(response=text, offline=False, model="gemini")
    except Exception as e:
        logger.warning(f"Gemini chat error: {e}")
        return JSONResponse(
            status_code=500,
            content={"response": CHAT_FALLBACK_TEXT, "offline": True, "model": "fallback"},
        )


@router.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}


# ─────────────────────────── App Setup ─────────────────────────

def create_app(db_path: str | Path = DB_PATH, rate_limit: int = RATE_LIMIT,
               clock: Callable[[], float] = time.time) -> FastAPI:
    """Build the API app. ``rate_limit`` of 0 disables per-IP limiting."""
    app = FastAPI(title="SmartSentry API", version="1.0.0")
    app.state.db_path = db_path
    app.state.db = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    rate_store: dict[str, list[float]] = {}
    app.state.rate_store = rate_store
    last_evict = clock()

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        nonlocal last_evict
        if rate_limit <= 0:
            return await call_next(request)
        client_ip = request.client.host if request.client else "unknown"
        now = clock()

        if now - last_evict > RATE_EVICT_INTERVAL:
            stale_ips = [ip for ip, timestamps in rate_store.items()
                         if not timestamps or now - timestamps[-1] > RATE_WINDOW * 2]
            for ip in stale_ips:
                del rate_store[ip]
            last_evict = now

        recent = [t for t in rate_store.get(client_ip, []) if now - t < RATE_WINDOW]
        if len(recent) >= rate_limit:
            rate_store[client_ip] = recent
            return JSONResponse(status_code=429, content={"message": "Rate limit exceeded. Try again in a minute."})
        recent.append(now)
        rate_store[client_ip] = recent
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) or "body" for err in exc.errors())
        return JSONResponse(status_code=400, content={"message": f"Invalid or missing fields: {fields}"})

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"message": "Server error"})

    app.include_router(router)
    return app


app = create_app()
