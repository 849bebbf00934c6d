"""SmartSentry — Pydantic Models"""

from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

EmergencyType = Literal["manual", "accident", "panic", "shake", "power", "voice", "card", "medical"]
EmergencyStatus = Literal["active", "resolved", "cancelled"]

EMERGENCY_TYPES = ("manual", "accident", "panic", "shake", "power", "voice", "card", "medical")
EMERGENCY_STATUSES = ("active", "resolved", "cancelled")


# ─────────────────────────── Auth / Profile ───────────────────────────

class RegisterRequest(BaseModel):
    name: str
    email: str
    mobile: str
    address: Optional[str] = None
    password: str
    profileImage: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    mobile: str
    address: Optional[str] = None
    profileImage: Optional[str] = None
    createdAt: Optional[str] = None


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserOut


# ─────────────────────────── Contacts ───────────────────────────

class ContactIn(BaseModel):
    name: str
    relation: str
    phone: str


class ContactOut(ContactIn):
    id: str
    userId: str
    createdAt: Optional[str] = None


# ─────────────────────────── SOS / History ───────────────────────────

class SOSStartRequest(BaseModel):
    type: str = "manual"
    # Clients currently send the literal 'Current location'; structured
    # {latitude, longitude, address} objects are accepted too.
    location: Any = "Current location"
    contactsNotified: Optional[int] = None


class NormalizedLocation(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: str = "Unknown location"


class Pagination(BaseModel):
    page: int = 1
    totalPages: int = 1
    total: int = 0


class EmergencyRecord(BaseModel):
    id: str
    type: EmergencyType = "manual"
    status: EmergencyStatus = "active"
    timestamp: str
    location: NormalizedLocation = Field(default_factory=NormalizedLocation)
    duration: Optional[float] = None
    contactsNotified: Optional[int] = None


class CachedCollection(BaseModel):
    """Snapshot of a list resource as persisted by LocalCache."""
    items: list[dict] = []
    fetchedAt: float = 0.0
    pagination: Pagination = Field(default_factory=Pagination)


class HistoryResult(BaseModel):
    data: list[EmergencyRecord]
    pagination: Pagination
    isOffline: bool = False
    fromCache: bool = False


# ─────────────────────────── Chat ───────────────────────────

class ChatRequest(BaseModel):
    message: str
    context: dict = {}


class ChatReply(BaseModel):
    response: str
    offline: bool = False
    model: str = "fallback"


# ─────────────────────────── Offline map / POIs ───────────────────────────

class NearbyPOI(BaseModel):
    name: str
    type: str  # hospital, police, safe_zone
    lat: float
    lng: float
    distance: float  # meters
    icon: str
    address: str = ""
    phone: str = ""


class NetworkState(BaseModel):
    isConnected: bool = True
    isInternetReachable: Optional[bool] = True

    @property
    def is_online(self) -> bool:
        return bool(self.isConnected and self.isInternetReachable is not False)
