"""Shared fixtures: in-memory Firestore and Firebase Auth stand-ins."""

from __future__ import annotations

import copy
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from firebase_admin import auth as firebase_auth
from google.api_core.exceptions import AlreadyExists, FailedPrecondition, NotFound

from app.auth.firebase import get_firebase_auth, get_firestore_db
from app.config import get_access_policy
from app.main import app
from app.services.permissions import AccessPolicy
from app.storage.r2 import get_storage_client

ADMIN_EMAIL = "admin@example.com"

IDENTITIES: Dict[str, Dict[str, Any]] = {
    "admin-token": {"uid": "admin-uid", "email": "Admin@Example.com", "name": "Admin"},
    "writer-token": {"uid": "writer-uid", "email": "writer@example.com", "name": "Writer"},
    "reader-token": {"uid": "reader-uid", "email": "reader@example.com", "name": "Reader"},
    "viewer-token": {"uid": "viewer-uid", "email": "viewer@example.com", "name": "Viewer"},
    "newcomer-token": {"uid": "newcomer-uid", "email": "newcomer@example.com", "name": "Newcomer"},
    "long-name-token": {"uid": "long-name-uid", "email": "admin@example.com", "name": "A" * 300},
}


class FakeWriteOption:
    def __init__(self, last_update_time):
        self.last_update_time = last_update_time


class FakeSnapshot:
    def __init__(self, reference: "FakeDocumentRef", data: Optional[Dict[str, Any]], update_time):
        self.reference = reference
        self.id = reference.id
        self._data = data
        self.update_time = update_time

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data)

    def get(self, field: str) -> Any:
        return (self._data or {}).get(field)


class FakeDocumentRef:
    def __init__(self, db: "FakeFirestore", collection: str, doc_id: str):
        self._db = db
        self._collection = collection
        self.id = doc_id

    @property
    def _docs(self) -> Dict[str, Dict[str, Any]]:
        return self._db.data.setdefault(self._collection, {})

    def get(self) -> FakeSnapshot:
        entry = self._docs.get(self.id)
        if entry is None:
            return FakeSnapshot(self, None, None)
        return FakeSnapshot(self, entry["data"], entry["update_time"])

    def set(self, data: Dict[str, Any]) -> None:
        self._docs[self.id] = {"data": copy.deepcopy(data), "update_time": self._db.tick()}

    def create(self, data: Dict[str, Any]) -> None:
        if self.id in self._docs:
            raise AlreadyExists(f"Document already exists: {self._collection}/{self.id}")
        self.set(data)

    def update(self, data: Dict[str, Any], option: Optional[FakeWriteOption] = None) -> None:
        if option is not None and self._db.before_conditional_update is not None:
            hook, self._db.before_conditional_update = self._db.before_conditional_update, None
            hook(self)
        entry = self._docs.get(self.id)
        if entry is None:
            raise NotFound(f"No document to update: {self._collection}/{self.id}")
        if option is not None and option.last_update_time != entry["update_time"]:
            raise FailedPrecondition("Document was modified")
        entry["data"].update(copy.deepcopy(data))
        entry["update_time"] = self._db.tick()

    def delete(self) -> None:
        self._docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, db: "FakeFirestore", collection: str, filters=(), order=None, limit_to=None, after=None):
        self._db = db
        self._collection = collection
        self._filters = list(filters)
        self._order = order
        self._limit = limit_to
        self._after = after

    def _copy(self, **changes) -> "FakeQuery":
        params = dict(
            filters=self._filters, order=self._order, limit_to=self._limit, after=self._after,
        )
        params.update(changes)
        return FakeQuery(self._db, self._collection, **params)

    def where(self, field: str, op: str, value: Any) -> "FakeQuery":
        return self._copy(filters=self._filters + [(field, op, value)])

    def order_by(self, field: str, direction: str = "ASCENDING") -> "FakeQuery":
        return self._copy(order=(field, direction))

    def limit(self, count: int) -> "FakeQuery":
        return self._copy(limit_to=count)

    def start_after(self, snapshot: FakeSnapshot) -> "FakeQuery":
        return self._copy(after=snapshot)

    def _matches(self, data: Dict[str, Any]) -> bool:
        for field, op, value in self._filters:
            if op == "==" and data.get(field) != value:
                return False
            if op == "array_contains" and value not in (data.get(field) or []):
                return False
        return True

    def _key(self, doc_id: str, data: Dict[str, Any]):
        field = self._order[0] if self._order else None
        return (data.get(field) if field else None, doc_id)

    def stream(self):
        docs = self._db.data.get(self._collection, {})
        matched = [
            (doc_id, entry) for doc_id, entry in docs.items() if self._matches(entry["data"])
        ]
        descending = bool(self._order and self._order[1] == "DESCENDING")
        matched.sort(key=lambda item: self._key(item[0], item[1]["data"]), reverse=descending)

        if self._after is not None:
            cursor_key = self._key(self._after.id, self._after.to_dict() or {})
            if descending:
                matched = [m for m in matched if self._key(m[0], m[1]["data"]) < cursor_key]
            else:
                matched = [m for m in matched if self._key(m[0], m[1]["data"]) > cursor_key]

        if self._limit is not None:
            matched = matched[: self._limit]

        for doc_id, entry in matched:
            ref = FakeDocumentRef(self._db, self._collection, doc_id)
            yield FakeSnapshot(ref, entry["data"], entry["update_time"])

    def get(self) -> List[FakeSnapshot]:
        return list(self.stream())


class FakeCollection(FakeQuery):
    def __init__(self, db: "FakeFirestore", name: str):
        super().__init__(db, name)
        self.name = name

    def document(self, doc_id: Optional[str] = None) -> FakeDocumentRef:
        if doc_id is None:
            doc_id = f"{self.name}-{next(self._db.ids)}"
        return FakeDocumentRef(self._db, self.name, doc_id)

    def add(self, data: Dict[str, Any]):
        ref = self.document()
        ref.set(data)
        return ref.get().update_time, ref


class FakeFirestore:
    """Enough of google.cloud.firestore.Client for the services under test."""

    def __init__(self):
        self.data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.ids = itertools.count(1)
        self._clock = itertools.count(1)
        # Runs once just before the next conditional update, to simulate a race
        self.before_conditional_update: Optional[Callable[[FakeDocumentRef], None]] = None

    def tick(self) -> int:
        return next(self._clock)

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self, name)

    def write_option(self, last_update_time=None) -> FakeWriteOption:
        return FakeWriteOption(last_update_time)

    def doc(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        entry = self.data.get(collection, {}).get(doc_id)
        return copy.deepcopy(entry["data"]) if entry else None


class FakeAuth:
    """Stand-in for the firebase_admin.auth module."""

    def __init__(self, identities: Dict[str, Dict[str, Any]]):
        self.identities = identities
        self.accounts = {claims["uid"] for claims in identities.values()}
        self.deleted: List[str] = []

    def verify_id_token(self, token: str, check_revoked: bool = False) -> Dict[str, Any]:
        if token not in self.identities:
            raise firebase_auth.InvalidIdTokenError("Token signature is invalid")
        return dict(self.identities[token])

    def delete_user(self, uid: str) -> None:
        if uid not in self.accounts:
            raise firebase_auth.UserNotFoundError(f"No user record found for uid {uid}")
        self.accounts.discard(uid)
        self.deleted.append(uid)


class FakeStorage:
    """Stand-in for the boto3 S3 client; records presign calls."""

    def __init__(self):
        self.presigned: List[Dict[str, Any]] = []

    def generate_presigned_url(self, ClientMethod: str, Params: Dict[str, Any], ExpiresIn: int) -> str:
        self.presigned.append({"method": ClientMethod, "params": Params, "expires": ExpiresIn})
        return f"https://r2.example/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


@pytest.fixture()
def fake_db() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture()
def fake_auth() -> FakeAuth:
    return FakeAuth(IDENTITIES)


@pytest.fixture()
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def policy() -> AccessPolicy:
    return AccessPolicy({ADMIN_EMAIL})


@pytest.fixture()
def client(fake_db: FakeFirestore, fake_auth: FakeAuth, fake_storage: FakeStorage, policy: AccessPolicy):
    app.dependency_overrides[get_firestore_db] = lambda: fake_db
    app.dependency_overrides[get_firebase_auth] = lambda: fake_auth
    app.dependency_overrides[get_access_policy] = lambda: policy
    app.dependency_overrides[get_storage_client] = lambda: fake_storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def seed_user(db: FakeFirestore, uid: str, email: str, role: str = "public", can_edit: bool = False) -> None:
    db.collection("users").document(uid).set({
        "uid": uid,
        "email": email,
        "displayName": uid,
        "photoURL": None,
        "role": role,
        "canEdit": can_edit,
        "createdAt": datetime.now(timezone.utc),
    })


_BASE_TIME = datetime(2020, 1, 1, tzinfo=timezone.utc)


def seed_post(
    db: FakeFirestore,
    post_id: str,
    visibility: str = "public",
    allowed_users: Optional[List[str]] = None,
    minutes: int = 0,
    title: Optional[str] = None,
    liked_by: Optional[List[str]] = None,
) -> None:
    created_at = _BASE_TIME + timedelta(minutes=minutes)
    liked_by = liked_by or []
    db.collection("posts").document(post_id).set({
        "title": title or f"Post {post_id}",
        "content": "Hello world",
        "images": [],
        "location": None,
        "createdAt": created_at,
        "updatedAt": created_at,
        "createdBy": "admin-uid",
        "createdByEmail": ADMIN_EMAIL,
        "createdByName": "Admin",
        "visibility": visibility,
        "allowedUsers": allowed_users or [],
        "likesCount": len(liked_by),
        "likedBy": liked_by,
    })
