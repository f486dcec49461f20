"""
Pytest configuration and fixtures for the coaching back office tests.

Provides shared fixtures for:
- An in-memory async Firestore double (the services run against it unchanged)
- Test environment settings
- A FastAPI test client with auth and Firestore dependencies overridden
"""

import copy
import uuid

import pytest
from google.api_core.exceptions import AlreadyExists, NotFound, ServiceUnavailable

from libs.common.settings import get_settings


def _compare(op, left, right):
    if op == "==":
        return left == right
    if op == "!=":
        return left != right
    if op == "in":
        return left in right
    if op == "array-contains":
        return isinstance(left, list) and right in left
    if left is None:
        return False
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    raise ValueError(f"Unsupported operator {op}")


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, store, path):
        self._store = store
        self.path = path
        self.id = path.rsplit("/", 1)[-1]

    def collection(self, name):
        return FakeCollection(self._store, f"{self.path}/{name}")

    async def get(self):
        return FakeSnapshot(self, copy.deepcopy(self._store.docs.get(self.path)))

    async def set(self, data, merge=False):
        self._store.check_write(self.path)
        if merge and self.path in self._store.docs:
            self._store.docs[self.path].update(copy.deepcopy(data))
        else:
            self._store.docs[self.path] = copy.deepcopy(data)

    async def create(self, data):
        if self.path in self._store.docs:
            raise AlreadyExists(f"Document already exists: {self.path}")
        await self.set(data)

    async def update(self, data):
        self._store.check_write(self.path)
        if self.path not in self._store.docs:
            raise NotFound(f"No document to update: {self.path}")
        self._store.docs[self.path].update(copy.deepcopy(data))

    async def delete(self):
        self._store.docs.pop(self.path, None)


class FakeQuery:
    def __init__(self, store, path, filters=(), orders=(), limit_count=None):
        self._store = store
        self._path = path
        self._filters = tuple(filters)
        self._orders = tuple(orders)
        self._limit = limit_count

    def where(self, field_path=None, op_string=None, value=None, *, filter=None):
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return FakeQuery(
            self._store, self._path, self._filters + ((field_path, op_string, value),), self._orders, self._limit
        )

    def order_by(self, field_path, direction="ASCENDING"):
        return FakeQuery(
            self._store, self._path, self._filters, self._orders + ((field_path, direction),), self._limit
        )

    def limit(self, count):
        return FakeQuery(self._store, self._path, self._filters, self._orders, count)

    async def get(self):
        self._store.reads += 1
        prefix = f"{self._path}/"
        rows = [
            (path, data)
            for path, data in self._store.docs.items()
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        ]
        for field, op, value in self._filters:
            rows = [(path, data) for path, data in rows if _compare(op, data.get(field), value)]
        for field, direction in reversed(self._orders):
            # Firestore leaves out documents that lack an ordered field.
            rows = [(path, data) for path, data in rows if data.get(field) is not None]
            rows.sort(key=lambda row: row[1][field], reverse=direction == "DESCENDING")
        if self._limit is not None:
            rows = rows[: self._limit]
        return [
            FakeSnapshot(FakeDocumentReference(self._store, path), copy.deepcopy(data)) for path, data in rows
        ]


class FakeCollection(FakeQuery):
    def __init__(self, store, path):
        super().__init__(store, path)
        self.id = path.rsplit("/", 1)[-1]

    def document(self, document_id=None):
        return FakeDocumentReference(self._store, f"{self._path}/{document_id or uuid.uuid4().hex}")


class FakeBatch:
    def __init__(self, store):
        self._store = store
        self._ops = []

    def create(self, reference, data):
        self._ops.append(("create", reference, data))

    def set(self, reference, data, merge=False):
        self._ops.append(("set", reference, data))

    def update(self, reference, data):
        self._ops.append(("update", reference, data))

    def delete(self, reference):
        self._ops.append(("delete", reference, None))

    async def commit(self):
        # Nothing is applied when any precondition fails.
        for op, reference, data in self._ops:
            if op == "create" and reference.path in self._store.docs:
                raise AlreadyExists(f"Document already exists: {reference.path}")
            if op == "update" and reference.path not in self._store.docs:
                raise NotFound(f"No document to update: {reference.path}")
        for op, reference, data in self._ops:
            if op == "delete":
                await reference.delete()
            else:
                await getattr(reference, op)(data)
        self._store.commits += 1
        return []


class FakeFirestore:
    """In-memory stand-in for ``google.cloud.firestore_v1.async_client.AsyncClient``.

    Documents live in a flat dict keyed by their full path. Paths listed in
    ``failing_paths`` raise ``ServiceUnavailable`` on writes.
    """

    def __init__(self):
        self.docs = {}
        self.failing_paths = set()
        self.reads = 0
        self.commits = 0

    def collection(self, name):
        return FakeCollection(self, name)

    def batch(self):
        return FakeBatch(self)

    async def get_all(self, references, field_paths=None, transaction=None):
        for reference in references:
            yield await reference.get()

    def check_write(self, path):
        if path in self.failing_paths:
            raise ServiceUnavailable(f"Write failed: {path}")

    def seed(self, path, doc_id, data):
        """Store ``data`` at ``{path}/{doc_id}`` and return the id."""
        self.docs[f"{path}/{doc_id}"] = copy.deepcopy(data)
        return doc_id

    def get(self, path, doc_id):
        """Raw stored data, or None."""
        return copy.deepcopy(self.docs.get(f"{path}/{doc_id}"))

    def ids(self, path):
        prefix = f"{path}/"
        return sorted(p[len(prefix):] for p in self.docs if p.startswith(prefix) and "/" not in p[len(prefix):])


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("COACHING_APP_ENV", "test")
    monkeypatch.setenv("COACHING_EXPIRY_SWEEP_ENABLED", "false")
    monkeypatch.delenv("COACHING_OPENAI_API_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_firestore():
    """Provide an empty in-memory Firestore."""
    return FakeFirestore()


@pytest.fixture
def seed_pair(fake_firestore):
    """Seed a player and a coach; returns their ids."""
    fake_firestore.seed("players", "p1", {"name": "Pat Player", "email": "pat@example.com", "status": "active"})
    fake_firestore.seed("coaches", "c1", {"name": "Casey Coach", "email": "casey@example.com", "status": "active"})
    return "c1", "p1"


@pytest.fixture
def api_client(fake_firestore):
    """
    TestClient for the app with Firestore, user and admin dependencies overridden.

    The lifespan is not entered, so neither Firebase nor the sweep task start.
    """
    from fastapi.testclient import TestClient

    from api.auth import User, get_current_admin, get_current_user
    from api.dependencies import get_firestore
    from api.main import app

    user = User(uid="admin-uid", email="admin@example.com")
    app.dependency_overrides[get_firestore] = lambda: fake_firestore
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_current_admin] = lambda: user
    app.state.chat_bridge = None

    yield TestClient(app)

    app.dependency_overrides = {}
    app.state.chat_bridge = None
