"""Customer profile persistence with an in-process fallback cache."""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from concierge.errors import PersistenceError
from concierge.logging_config import get_logger
from concierge.models import Contact

logger = get_logger("profile_service")


@dataclass
class Profile:
    wa_id: str
    name: Optional[str] = None
    language: Optional[str] = None
    last_seen_at: Optional[datetime] = None
    human_handoff: bool = False
    name_requested_at: Optional[datetime] = None

    @classmethod
    def from_contact(cls, contact: Contact) -> "Profile":
        return cls(
            wa_id=contact.wa_id,
            name=contact.name,
            language=contact.language,
            last_seen_at=contact.last_seen_at,
            human_handoff=bool(contact.human_handoff),
            name_requested_at=contact.name_requested_at,
        )


class ProfileCache:
    """Process-lifetime profile map used when the database is unavailable.

    Bounded by ``max_entries`` with least-recently-used eviction. When
    ``ttl_seconds`` is set, entries older than that are treated as missing.
    Every successful load or save refreshes the entry. Shared by all request
    threads; every operation holds ``_lock``.
    """

    def __init__(
        self,
        max_entries: int = 10000,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max(1, max_entries)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, tuple[float, Profile]]" = OrderedDict()

    def get(self, wa_id: str) -> Optional[Profile]:
        with self._lock:
            item = self._entries.get(wa_id)
            if item is None:
                return None
            stored_at, profile = item
            if self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds:
                del self._entries[wa_id]
                return None
            self._entries.move_to_end(wa_id)
            return replace(profile)

    def put(self, profile: Profile) -> None:
        with self._lock:
            self._entries[profile.wa_id] = (self._clock(), replace(profile))
            self._entries.move_to_end(profile.wa_id)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, wa_id: str) -> bool:
        return self.get(wa_id) is not None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _latest(*values: Optional[datetime]) -> Optional[datetime]:
    present = [_as_utc(v) for v in values if v is not None]
    return max(present) if present else None


def _rollback(db: Session) -> None:
    try:
        db.rollback()
    except SQLAlchemyError as e:
        logger.warning(f"Rollback failed: {e}")


class ProfileStore:
    """Upsert-by-wa_id profile store backed by the contacts table."""

    def __init__(self, db: Session, cache: ProfileCache):
        self.db = db
        self.cache = cache

    def _find_contact(self, wa_id: str) -> Optional[Contact]:
        try:
            return self.db.query(Contact).filter(Contact.wa_id == wa_id).first()
        except SQLAlchemyError as e:
            _rollback(self.db)
            raise PersistenceError(f"Contact lookup failed: {e}") from e

    def load(self, wa_id: str) -> Profile:
        """Load a profile, falling back to the cache, or start a new one."""
        try:
            contact = self._find_contact(wa_id)
        except PersistenceError as e:
            cached = self.cache.get(wa_id)
            logger.error(
                "Profile load failed, using cache",
                extra={"context": {"wa_id": wa_id, "error": str(e), "cache_hit": cached is not None}},
            )
            return cached or Profile(wa_id=wa_id)

        if contact is None:
            # A save may have landed only in the cache during an outage
            return self.cache.get(wa_id) or Profile(wa_id=wa_id)

        profile = Profile.from_contact(contact)
        self.cache.put(profile)
        return profile

    def _apply(self, contact: Contact, profile: Profile, now: datetime) -> None:
        """Merge ``profile`` into the stored row.

        The handoff flag is only ever raised. The first name prompt time and
        the latest last-seen time are kept.
        """
        if profile.name is not None:
            contact.name = profile.name
        if profile.language is not None:
            contact.language = profile.language
        contact.name_requested_at = contact.name_requested_at or profile.name_requested_at
        contact.last_seen_at = _latest(contact.last_seen_at, profile.last_seen_at)
        contact.human_handoff = bool(contact.human_handoff) or profile.human_handoff
        contact.updated_at = now

    def _upsert(self, profile: Profile, now: datetime) -> Profile:
        contact = self._find_contact(profile.wa_id)
        if contact is None:
            contact = Contact(wa_id=profile.wa_id, created_at=now)
            self.db.add(contact)
        self._apply(contact, profile, now)
        try:
            self.db.commit()
            return Profile.from_contact(contact)
        except SQLAlchemyError:
            _rollback(self.db)
            raise

    def save(self, profile: Profile) -> Profile:
        """Upsert the profile and return the stored result.

        Name and language are kept when the profile omits them. Storage
        failures are logged and ``profile`` is returned unchanged; the cache
        always receives the returned profile.
        """
        now = datetime.now(timezone.utc)
        try:
            try:
                profile = self._upsert(profile, now)
            except IntegrityError:
                # Another request created the contact first; update it instead
                logger.info("Contact insert raced, retrying as update", extra={"context": {"wa_id": profile.wa_id}})
                profile = self._upsert(profile, now)
        except (PersistenceError, SQLAlchemyError) as e:
            logger.error(
                "Profile save failed, kept in cache only",
                extra={"context": {"wa_id": profile.wa_id, "error": str(e)}},
            )
        self.cache.put(profile)
        return profile
