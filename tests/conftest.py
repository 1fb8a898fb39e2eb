import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_token, hash_password
from database import create_document, get_db
from main import app
from storage import get_storage

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


class FakeStorage:
    def __init__(self):
        self.uploads = []

    def upload(self, content, filename, folder):
        self.uploads.append((folder, filename, content))
        return f"https://res.cloudinary.test/{folder}/{filename}"


@pytest.fixture
def db():
    return mongomock.MongoClient()["gemora_test"]


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(db, storage):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(name="Ada", role="user", email=None):
        user = create_document(db, "user", {
            "name": name,
            "email": email or f"{name.lower()}@example.com",
            "password": PASSWORD_HASH,
            "role": role,
        })
        return user, {"Authorization": f"Bearer {create_token(user)}"}
    return _make


@pytest.fixture
def user_auth(make_user):
    return make_user("Ada")


@pytest.fixture
def admin_auth(make_user):
    return make_user("Root", role="admin")


@pytest.fixture
def make_gem(db):
    def _make(name="Ruby", status="Approved", count=5, **extra):
        doc = {"name": name, "carat": 1.2, "phoneNumber": "555-0100", "price": 900.0,
               "countInStock": count, "images": ["https://img.test/gem.jpg"], "status": status}
        doc.update(extra)
        return create_document(db, "gem", doc)
    return _make


@pytest.fixture
def make_tool(db):
    def _make(name="Loupe", status="Approved", count=10, **extra):
        doc = {"name": name, "brand": "Zeiss", "category": "Magnifier", "price": 120.0,
               "countInStock": count, "images": ["https://img.test/loupe.jpg"], "status": status}
        doc.update(extra)
        return create_document(db, "tool", doc)
    return _make
