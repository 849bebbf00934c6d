"""SmartSentry Backend — SQLite persistence (users, contacts, SOS events)"""

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger("smartsentry.db")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


class Database:
    def __init__(self, path: str | Path):
        self.path = str(path)
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.init()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def init(self):
        conn = self._connect()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    mobile TEXT NOT NULL,
                    address TEXT,
                    password TEXT NOT NULL,
                    profile_image TEXT,
                    created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS contacts (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    relation TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS sos_events (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    type TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'active',
                    location TEXT,
                    contacts_notified INTEGER,
                    timestamp TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_contacts_user ON contacts(user_id);
                CREATE INDEX IF NOT EXISTS idx_sos_user_ts ON sos_events(user_id, timestamp);
            """)
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Database ready at {self.path}")

    # ── Users ──

    @staticmethod
    def _user_dict(row: sqlite3.Row) -> dict:
        return {
            "id": row["id"],
            "name": row["name"],
            "email": row["email"],
            "mobile": row["mobile"],
            "address": row["address"],
            "profileImage": row["profile_image"],
            "createdAt": row["created_at"],
        }

    def create_user(self, name: str, email: str, mobile: str, address: Optional[str],
                    password_hash: str, profile_image: Optional[str] = None) -> dict:
        user_id = _new_id()
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO users (id, name, email, mobile, address, password, profile_image, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (user_id, name, email, mobile, address, password_hash, profile_image, _now()),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._user_dict(row)
        finally:
            conn.close()

    def find_user_by_email(self, email: str) -> Optional[dict]:
        """User dict including the password hash (under 'password'), or None."""
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            if row is None:
                return None
            user = self._user_dict(row)
            user["password"] = row["password"]
            return user
        finally:
            conn.close()

    def get_user(self, user_id: str) -> Optional[dict]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._user_dict(row) if row else None
        finally:
            conn.close()

    def email_taken_by_other(self, email: str, user_id: str) -> bool:
        conn = self._connect()
        try:
            row = conn.execute("SELECT 1 FROM users WHERE email = ? AND id != ?", (email, user_id)).fetchone()
            return row is not None
        finally:
            conn.close()

    def update_user(self, user_id: str, fields: dict) -> Optional[dict]:
        updates = {k: v for k, v in fields.items() if k in ("name", "email", "mobile", "address") and v is not None}
        conn = self._connect()
        try:
            if updates:
                assignments = ", ".join(f"{k} = ?" for k in updates)
                conn.execute(f"UPDATE users SET {assignments} WHERE id = ?", (*updates.values(), user_id))
                conn.commit()
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._user_dict(row) if row else None
        finally:
            conn.close()

    # ── Contacts ──

    @staticmethod
    def _contact_dict(row: sqlite3.Row) -> dict:
        return {
            "id": row["id"],
            "userId": row["user_id"],
            "name": row["name"],
            "relation": row["relation"],
            "phone": row["phone"],
            "createdAt": row["created_at"],
        }

    def list_contacts(self, user_id: str) -> list[dict]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM contacts WHERE user_id = ? ORDER BY created_at", (user_id,)
            ).fetchall()
            return [self._contact_dict(r) for r in rows]
        finally:
            conn.close()

    def add_contact(self, user_id: str, name: str, relation: str, phone: str) -> dict:
        contact_id = _new_id()
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO contacts (id, user_id, name, relation, phone, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (contact_id, user_id, name, relation, phone, _now()),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,)).fetchone()
            return self._contact_dict(row)
        finally:
            conn.close()

    def update_contact(self, user_id: str, contact_id: str, name: str, relation: str, phone: str) -> Optional[dict]:
        conn = self._connect()
        try:
            cur = conn.execute(
                "UPDATE contacts SET name = ?, relation = ?, phone = ? WHERE id = ? AND user_id = ?",
                (name, relation, phone, contact_id, user_id),
            )
            conn.commit()
            if cur.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,)).fetchone()
            return self._contact_dict(row)
        finally:
            conn.close()

    def delete_contact(self, user_id: str, contact_id: str) -> bool:
        conn = self._connect()
        try:
            cur = conn.execute("DELETE FROM contacts WHERE id = ? AND user_id = ?", (contact_id, user_id))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    # ── SOS events ──

    def log_sos(self, user_id: str, sos_type: str, location: str,
                contacts_notified: Optional[int] = None) -> dict:
        event_id = _new_id()
        ts = _now()
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO sos_events (id, user_id, type, status, location, contacts_notified, timestamp) "
                "VALUES (?, ?, ?, 'active', ?, ?, ?)",
                (event_id, user_id, sos_type, location, contacts_notified, ts),
            )
            conn.commit()
        finally:
            conn.close()
        return {"id": event_id, "type": sos_type, "status": "active", "location": location,
                "contactsNotified": contacts_notified, "timestamp": ts}

    def sos_history(self, user_id: str, limit: int, page: int) -> tuple[list[dict], int]:
        """One page of SOS events (newest first) and the total count."""
        offset = (page - 1) * limit
        conn = self._connect()
        try:
            total = conn.execute("SELECT COUNT(*) FROM sos_events WHERE user_id = ?", (user_id,)).fetchone()[0]
            rows = conn.execute(
                "SELECT * FROM sos_events WHERE user_id = ? ORDER BY timestamp DESC, rowid DESC LIMIT ? OFFSET ?",
                (user_id, limit, offset),
            ).fetchall()
        finally:
            conn.close()
        events = [{
            "id": r["id"],
            "type": r["type"],
            "status": r["status"],
            "location": r["location"],
            "contactsNotified": r["contacts_notified"],
            "timestamp": r["timestamp"],
        } for r in rows]
        return events, total
