"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).

Both stores expose the same methods and return Pydantic schemas, so services
receive a store through their constructor and never branch on the backend.
Writes that touch the attendance ledger, event counters or user scores are
only performed by ``register_attendance`` and ``mark_checked_in``, each of
which applies its writes as one atomic unit.

SqlStore never leaves a transaction open when a method returns: reads end
their transaction once the result is built, and writes build their result
inside the write transaction before committing. Callers may therefore await
between store calls without holding a database lock.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from fastapi import Depends
from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db, immediate_transaction
from app.core.exceptions import EventNotFoundError, UserProfileMissingError
from app.models import Attendance, Comment, Event, UserBadge, UserProfile
from app.models.enums import CheckInOutcome, RegistrationOutcome
from app.schemas.attendance import AttendanceResponse, ParticipantResponse
from app.schemas.comment import CommentResponse
from app.schemas.event import EventCreate, EventFilter, EventResponse
from app.schemas.user import ProfileCreate, ProfileUpdate, UserProfileResponse
from app.services.firebase_client import get_firestore_client

logger = logging.getLogger(__name__)

RegistrationWrite = Tuple[RegistrationOutcome, Optional[UserProfileResponse]]
CheckInWrite = Tuple[CheckInOutcome, Optional[AttendanceResponse]]


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _sql_profile_out(profile: UserProfile) -> UserProfileResponse:
    return UserProfileResponse(
        id=profile.id,
        email=profile.email,
        display_name=profile.display_name,
        photo_url=profile.photo_url,
        bio=profile.bio,
        points=profile.points or 0,
        events_attended=profile.events_attended or 0,
        badges=profile.badge_names,
        created_at=profile.created_at,
    )


# -------- SQLAlchemy store --------

class SqlStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _reading(self):
        """End the read transaction (and its SQLite shared lock) on exit"""
        try:
            yield self.db
        finally:
            self.db.rollback()

    @contextmanager
    def _writing(self):
        """Run a write in its own transaction, opened with BEGIN IMMEDIATE on SQLite.

        The block commits itself; anything it leaves uncommitted is rolled back.
        """
        if self.db.in_transaction():
            self.db.commit()
        with immediate_transaction():
            try:
                yield self.db
            finally:
                self.db.rollback()

    # Events

    def get_event(self, event_id: str) -> Optional[EventResponse]:
        with self._reading() as db:
            event = db.query(Event).filter(Event.id == event_id).first()
            return EventResponse.model_validate(event) if event else None

    def create_event(self, data: EventCreate, organizer_id: str, organizer_name: Optional[str]) -> EventResponse:
        with self._writing() as db:
            event = Event(
                title=data.title,
                description=data.description,
                venue=data.venue,
                location=data.location,
                date=data.date,
                category=data.category.value,
                type=data.type.value,
                map_link=data.map_link,
                registration_link=data.registration_link,
                organizer_id=organizer_id,
                organizer_name=organizer_name,
                attendee_count=0,
            )
            db.add(event)
            db.flush()
            created = EventResponse.model_validate(event)
            db.commit()
        return created

    def set_event_image(self, event_id: str, image_url: str) -> None:
        with self._writing() as db:
            db.execute(
                update(Event)
                .where(Event.id == event_id)
                .values(image_url=image_url)
                .execution_options(synchronize_session=False)
            )
            db.commit()

    def list_events(self, filters: EventFilter) -> List[EventResponse]:
        with self._reading() as db:
            query = db.query(Event)
            if filters.starts_after:
                query = query.filter(Event.date >= filters.starts_after)
            if filters.starts_before:
                query = query.filter(Event.date <= filters.starts_before)
            if filters.location:
                query = query.filter(func.lower(Event.location).like(f"%{filters.location.lower()}%"))
            if filters.category:
                query = query.filter(Event.category == filters.category.value)
            events = query.order_by(Event.date, Event.id).all()
            return [EventResponse.model_validate(e) for e in events]

    def list_user_events(self, user_id: str) -> List[EventResponse]:
        with self._reading() as db:
            events = (
                db.query(Event)
                .join(Attendance, Attendance.event_id == Event.id)
                .filter(Attendance.user_id == user_id)
                .order_by(Event.date, Event.id)
                .all()
            )
            return [EventResponse.model_validate(e) for e in events]

    # Profiles

    def _load_profile(self, user_id: str) -> Optional[UserProfileResponse]:
        profile = self.db.query(UserProfile).filter(UserProfile.id == user_id).first()
        return _sql_profile_out(profile) if profile else None

    def get_profile(self, user_id: str) -> Optional[UserProfileResponse]:
        with self._reading():
            return self._load_profile(user_id)

    def create_profile(self, user_id: str, data: ProfileCreate) -> UserProfileResponse:
        try:
            with self._writing() as db:
                existing = self._load_profile(user_id)
                if existing:
                    return existing

                db.add(UserProfile(
                    id=user_id,
                    email=data.email,
                    display_name=data.display_name,
                    photo_url=data.photo_url,
                    points=0,
                    events_attended=0,
                ))
                db.flush()
                created = self._load_profile(user_id)
                db.commit()
                return created
        except IntegrityError:
            # Created concurrently by another request
            return self.get_profile(user_id)

    def update_profile(self, user_id: str, data: ProfileUpdate) -> Optional[UserProfileResponse]:
        with self._writing() as db:
            profile = db.query(UserProfile).filter(UserProfile.id == user_id).first()
            if not profile:
                return None
            for field, value in data.model_dump(exclude_none=True).items():
                setattr(profile, field, value)
            db.flush()
            updated = _sql_profile_out(profile)
            db.commit()
            return updated

    def list_profiles_ranked(self, limit: Optional[int] = None) -> List[UserProfileResponse]:
        with self._reading() as db:
            query = db.query(UserProfile).order_by(UserProfile.points.desc(), UserProfile.id.asc())
            if limit:
                query = query.limit(limit)
            return [_sql_profile_out(p) for p in query.all()]

    # Attendance ledger

    def _load_attendance(self, event_id: str, user_id: str) -> Optional[AttendanceResponse]:
        attendance = self.db.query(Attendance).filter(
            Attendance.event_id == event_id,
            Attendance.user_id == user_id
        ).first()
        return AttendanceResponse.model_validate(attendance) if attendance else None

    def get_attendance(self, event_id: str, user_id: str) -> Optional[AttendanceResponse]:
        with self._reading():
            return self._load_attendance(event_id, user_id)

    def list_attendance(self, event_id: str) -> List[ParticipantResponse]:
        with self._reading() as db:
            rows = (
                db.query(Attendance, UserProfile)
                .outerjoin(UserProfile, UserProfile.id == Attendance.user_id)
                .filter(Attendance.event_id == event_id)
                .order_by(Attendance.registered_at, Attendance.id)
                .all()
            )
            return [
                ParticipantResponse(
                    user_id=attendance.user_id,
                    display_name=profile.display_name if profile else None,
                    email=profile.email if profile else None,
                    photo_url=profile.photo_url if profile else None,
                    registered_at=attendance.registered_at,
                    checked_in=attendance.checked_in,
                    checked_in_at=attendance.checked_in_at,
                )
                for attendance, profile in rows
            ]

    def register_attendance(
        self,
        event_id: str,
        user_id: str,
        points: int,
        milestones: Mapping[int, str],
    ) -> RegistrationWrite:
        """Insert the ledger row and bump counters, points and badges in one transaction.

        The unique (event_id, user_id) constraint decides concurrent duplicates:
        the losing insert rolls back every write and reports ALREADY_REGISTERED.
        Any other integrity error propagates.
        """
        try:
            with self._writing() as db:
                if not db.query(Event.id).filter(Event.id == event_id).first():
                    raise EventNotFoundError(event_id)
                if not db.query(UserProfile.id).filter(UserProfile.id == user_id).first():
                    raise UserProfileMissingError(user_id)

                existing = db.query(Attendance.id).filter(
                    Attendance.event_id == event_id,
                    Attendance.user_id == user_id
                ).first()
                if existing:
                    return RegistrationOutcome.ALREADY_REGISTERED, None

                db.add(Attendance(event_id=event_id, user_id=user_id, registered_at=utc_now(), checked_in=False))
                db.flush()

                db.execute(
                    update(Event)
                    .where(Event.id == event_id)
                    .values(attendee_count=Event.attendee_count + 1)
                    .execution_options(synchronize_session=False)
                )
                db.execute(
                    update(UserProfile)
                    .where(UserProfile.id == user_id)
                    .values(
                        points=UserProfile.points + points,
                        events_attended=UserProfile.events_attended + 1,
                    )
                    .execution_options(synchronize_session=False)
                )

                events_attended = db.query(UserProfile.events_attended).filter(UserProfile.id == user_id).scalar()
                badge = milestones.get(events_attended)
                if badge and not db.query(UserBadge.id).filter(
                    UserBadge.user_id == user_id,
                    UserBadge.name == badge
                ).first():
                    db.add(UserBadge(user_id=user_id, name=badge))
                    db.flush()

                db.expire_all()
                profile = self._load_profile(user_id)
                db.commit()
        except IntegrityError:
            # Only a ledger row written by a concurrent registration means "duplicate"
            if self.get_attendance(event_id, user_id) is None:
                raise
            logger.info(f"Concurrent duplicate registration for user {user_id} on event {event_id}")
            return RegistrationOutcome.ALREADY_REGISTERED, None

        return RegistrationOutcome.REGISTERED, profile

    def mark_checked_in(self, event_id: str, user_id: str) -> CheckInWrite:
        """Flip checked_in with a guarded UPDATE; only one caller can match the row."""
        with self._writing() as db:
            result = db.execute(
                update(Attendance)
                .where(
                    Attendance.event_id == event_id,
                    Attendance.user_id == user_id,
                    Attendance.checked_in == False  # noqa: E712
                )
                .values(checked_in=True, checked_in_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            db.expire_all()
            attendance = self._load_attendance(event_id, user_id)
            if result.rowcount == 1:
                db.commit()
                return CheckInOutcome.SUCCESS, attendance

        if attendance is None:
            return CheckInOutcome.NOT_REGISTERED, None
        return CheckInOutcome.ALREADY_CHECKED_IN, attendance

    # Comments

    def add_comment(self, event_id: str, author_id: str, text: str) -> CommentResponse:
        with self._writing() as db:
            comment = Comment(event_id=event_id, author_id=author_id, text=text)
            db.add(comment)
            db.flush()
            author = db.query(UserProfile).filter(UserProfile.id == author_id).first()
            created = self._comment_out(comment, author)
            db.commit()
        return created

    def list_comments(self, event_id: str) -> List[CommentResponse]:
        with self._reading() as db:
            rows = (
                db.query(Comment, UserProfile)
                .outerjoin(UserProfile, UserProfile.id == Comment.author_id)
                .filter(Comment.event_id == event_id)
                .order_by(Comment.created_at, Comment.id)
                .all()
            )
            return [self._comment_out(comment, author) for comment, author in rows]

    @staticmethod
    def _comment_out(comment: Comment, author: Optional[UserProfile]) -> CommentResponse:
        return CommentResponse(
            id=comment.id,
            event_id=comment.event_id,
            text=comment.text,
            created_at=comment.created_at,
            author_id=comment.author_id,
            author_name=(author.display_name if author and author.display_name else "Anonymous"),
            author_photo_url=author.photo_url if author else None,
        )


# -------- Firestore store --------
#
# Shape:
#   events/{event_id}                      event fields + attendee_uids, checked_in_uids
#   events/{event_id}/attendees/{user_id}  attendance ledger (doc id enforces uniqueness)
#   events/{event_id}/comments/{auto_id}
#   users/{user_id}                        profile + points, events_attended, badges

class FirestoreStore:
    def __init__(self, client):
        self.client = client

    def _events(self):
        return self.client.collection("events")

    def _users(self):
        return self.client.collection("users")

    @staticmethod
    def _event_out(doc) -> EventResponse:
        data = doc.to_dict()
        data["id"] = doc.id
        return EventResponse(**data)

    @staticmethod
    def _profile_out(doc) -> UserProfileResponse:
        data = doc.to_dict()
        data["id"] = doc.id
        data["points"] = data.get("points") or 0
        data["events_attended"] = data.get("events_attended") or 0
        data["badges"] = data.get("badges") or []
        return UserProfileResponse(**data)

    # Events

    def get_event(self, event_id: str) -> Optional[EventResponse]:
        doc = self._events().document(event_id).get()
        return self._event_out(doc) if doc.exists else None

    def create_event(self, data: EventCreate, organizer_id: str, organizer_name: Optional[str]) -> EventResponse:
        ref = self._events().document()
        ref.set({
            "title": data.title,
            "description": data.description,
            "venue": data.venue,
            "location": data.location,
            "date": data.date,
            "category": data.category.value,
            "type": data.type.value,
            "map_link": data.map_link,
            "registration_link": data.registration_link,
            "organizer_id": organizer_id,
            "organizer_name": organizer_name,
            "image_url": None,
            "attendee_count": 0,
            "attendee_uids": [],
            "checked_in_uids": [],
            "created_at": firestore.SERVER_TIMESTAMP,
        })
        return self.get_event(ref.id)

    def set_event_image(self, event_id: str, image_url: str) -> None:
        self._events().document(event_id).update({"image_url": image_url})

    def list_events(self, filters: EventFilter) -> List[EventResponse]:
        query = self._events()
        if filters.category:
            query = query.where("category", "==", filters.category.value)
        if filters.starts_after:
            query = query.where("date", ">=", filters.starts_after)
        if filters.starts_before:
            query = query.where("date", "<=", filters.starts_before)
        events = [self._event_out(d) for d in query.order_by("date").get()]
        if filters.location:
            needle = filters.location.lower()
            events = [e for e in events if needle in e.location.lower()]
        return events

    def list_user_events(self, user_id: str) -> List[EventResponse]:
        ledger = self.client.collection_group("attendees").where("user_id", "==", user_id).get()
        refs = [self._events().document(d.get("event_id")) for d in ledger]
        if not refs:
            return []
        events = [self._event_out(d) for d in self.client.get_all(refs) if d.exists]
        return sorted(events, key=lambda e: (e.date, e.id))

    # Profiles

    def get_profile(self, user_id: str) -> Optional[UserProfileResponse]:
        doc = self._users().document(user_id).get()
        return self._profile_out(doc) if doc.exists else None

    def create_profile(self, user_id: str, data: ProfileCreate) -> UserProfileResponse:
        try:
            self._users().document(user_id).create({
                "email": data.email,
                "display_name": data.display_name,
                "photo_url": data.photo_url,
                "bio": None,
                "points": 0,
                "events_attended": 0,
                "badges": [],
                "created_at": firestore.SERVER_TIMESTAMP,
            })
        except AlreadyExists:
            pass
        return self.get_profile(user_id)

    def update_profile(self, user_id: str, data: ProfileUpdate) -> Optional[UserProfileResponse]:
        ref = self._users().document(user_id)
        if not ref.get().exists:
            return None
        changes = data.model_dump(exclude_none=True)
        if changes:
            ref.update(changes)
        return self.get_profile(user_id)

    def list_profiles_ranked(self, limit: Optional[int] = None) -> List[UserProfileResponse]:
        docs = self._users().order_by("points", direction=firestore.Query.DESCENDING).get()
        profiles = sorted((self._profile_out(d) for d in docs), key=lambda p: (-p.points, p.id))
        return profiles[:limit] if limit else profiles

    # Attendance ledger

    def get_attendance(self, event_id: str, user_id: str) -> Optional[AttendanceResponse]:
        doc = self._events().document(event_id).collection("attendees").document(user_id).get()
        return AttendanceResponse(**doc.to_dict()) if doc.exists else None

    def list_attendance(self, event_id: str) -> List[ParticipantResponse]:
        ledger = [
            d.to_dict()
            for d in self._events().document(event_id).collection("attendees").order_by("registered_at").get()
        ]
        if not ledger:
            return []
        profiles: Dict[str, Dict[str, Any]] = {
            d.id: d.to_dict()
            for d in self.client.get_all([self._users().document(row["user_id"]) for row in ledger])
            if d.exists
        }
        results: List[ParticipantResponse] = []
        for row in ledger:
            profile = profiles.get(row["user_id"], {})
            results.append(ParticipantResponse(
                user_id=row["user_id"],
                display_name=profile.get("display_name"),
                email=profile.get("email"),
                photo_url=profile.get("photo_url"),
                registered_at=row.get("registered_at"),
                checked_in=bool(row.get("checked_in")),
                checked_in_at=row.get("checked_in_at"),
            ))
        return results

    def register_attendance(
        self,
        event_id: str,
        user_id: str,
        points: int,
        milestones: Mapping[int, str],
    ) -> RegistrationWrite:
        """Run the read-check-write inside a Firestore transaction (retried by the SDK on contention)."""
        event_ref = self._events().document(event_id)
        user_ref = self._users().document(user_id)
        attendee_ref = event_ref.collection("attendees").document(user_id)

        @firestore.transactional
        def _register(transaction):
            event_snap = event_ref.get(transaction=transaction)
            if not event_snap.exists:
                raise EventNotFoundError(event_id)
            user_snap = user_ref.get(transaction=transaction)
            if not user_snap.exists:
                raise UserProfileMissingError(user_id)
            if attendee_ref.get(transaction=transaction).exists:
                return RegistrationOutcome.ALREADY_REGISTERED

            event = event_snap.to_dict()
            user = user_snap.to_dict()
            events_attended = (user.get("events_attended") or 0) + 1
            badges = list(user.get("badges") or [])
            badge = milestones.get(events_attended)
            if badge and badge not in badges:
                badges.append(badge)

            transaction.create(attendee_ref, {
                "event_id": event_id,
                "user_id": user_id,
                "registered_at": utc_now(),
                "checked_in": False,
                "checked_in_at": None,
            })
            transaction.update(event_ref, {
                "attendee_count": (event.get("attendee_count") or 0) + 1,
                "attendee_uids": firestore.ArrayUnion([user_id]),
            })
            changes = {
                "points": (user.get("points") or 0) + points,
                "events_attended": events_attended,
                "badges": badges,
            }
            transaction.update(user_ref, changes)
            return RegistrationOutcome.REGISTERED

        outcome = _register(self.client.transaction())
        if outcome is RegistrationOutcome.ALREADY_REGISTERED:
            return outcome, None
        return outcome, self.get_profile(user_id)

    def mark_checked_in(self, event_id: str, user_id: str) -> CheckInWrite:
        event_ref = self._events().document(event_id)
        attendee_ref = event_ref.collection("attendees").document(user_id)

        @firestore.transactional
        def _check_in(transaction):
            snap = attendee_ref.get(transaction=transaction)
            if not snap.exists:
                return CheckInOutcome.NOT_REGISTERED
            if snap.get("checked_in"):
                return CheckInOutcome.ALREADY_CHECKED_IN
            transaction.update(attendee_ref, {
                "checked_in": True,
                "checked_in_at": utc_now(),
            })
            transaction.update(event_ref, {"checked_in_uids": firestore.ArrayUnion([user_id])})
            return CheckInOutcome.SUCCESS

        outcome = _check_in(self.client.transaction())
        return outcome, self.get_attendance(event_id, user_id)

    # Comments

    def add_comment(self, event_id: str, author_id: str, text: str) -> CommentResponse:
        _, ref = self._events().document(event_id).collection("comments").add({
            "event_id": event_id,
            "author_id": author_id,
            "text": text,
            "created_at": firestore.SERVER_TIMESTAMP,
        })
        doc = ref.get()
        author = self._users().document(author_id).get()
        return self._comment_out(doc, author.to_dict() if author.exists else {})

    def list_comments(self, event_id: str) -> List[CommentResponse]:
        docs = self._events().document(event_id).collection("comments").order_by("created_at").get()
        if not docs:
            return []
        author_ids = {d.get("author_id") for d in docs}
        authors = {
            a.id: a.to_dict()
            for a in self.client.get_all([self._users().document(uid) for uid in author_ids])
            if a.exists
        }
        return [self._comment_out(d, authors.get(d.get("author_id"), {})) for d in docs]

    @staticmethod
    def _comment_out(doc, author: Dict[str, Any]) -> CommentResponse:
        data = doc.to_dict()
        return CommentResponse(
            id=doc.id,
            event_id=data["event_id"],
            text=data["text"],
            created_at=data.get("created_at"),
            author_id=data["author_id"],
            author_name=author.get("display_name") or "Anonymous",
            author_photo_url=author.get("photo_url"),
        )


def build_store(db: Optional[Session]):
    """Pick the configured backend"""
    if use_firestore():
        return FirestoreStore(get_firestore_client())
    return SqlStore(db)


def get_store(db: Session = Depends(get_db)):
    """FastAPI dependency returning the configured store"""
    return build_store(db)
