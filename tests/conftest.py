import mongomock
import pytest
from fastapi.testclient import TestClient

import auth
import database
import mailer
import main
import media
from errors import UpstreamError
from media import MediaHost, UploadResult
from resolver import utcnow


class FakeMediaHost(MediaHost):
    def __init__(self):
        self.calls = []
        self.fail = False

    def upload(self, data, folder, resource_type="image", format=None, public_id=None,
               filename=None, content_type=None):
        if self.fail:
            raise UpstreamError("Media upload failed", cause=RuntimeError("boom"))
        self.calls.append({
            "folder": folder,
            "resource_type": resource_type,
            "format": format,
            "public_id": public_id,
            "filename": filename,
            "size": len(data),
        })
        pid = public_id or f"{folder}/file{len(self.calls)}"
        return UploadResult(
            url=f"https://res.cloudinary.com/demo/{resource_type}/upload/v1/{pid}",
            public_id=pid,
            resource_type=resource_type,
        )


class FakeMailer(mailer.Mailer):
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, body):
        if self.fail:
            raise UpstreamError("Failed to send email", cause=RuntimeError("smtp down"))
        self.sent.append((to, subject, body))


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["portfolio_test"]
    monkeypatch.setattr(database, "db", mock_db)
    return mock_db


@pytest.fixture
def media_host():
    return FakeMediaHost()


@pytest.fixture
def mail():
    return FakeMailer()


@pytest.fixture
def client(db, media_host, mail):
    main.app.dependency_overrides[media.get_media_host] = lambda: media_host
    main.app.dependency_overrides[mailer.get_mailer] = lambda: mail
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def _make_user(db, email, role):
    now = utcnow()
    result = db["user"].insert_one({
        "email": email,
        "password": auth.hash_password("secret123"),
        "role": role,
        "profile": {"name": "Ada", "bio": "Engineer"},
        "createdAt": now,
        "updatedAt": now,
    })
    return str(result.inserted_id)


@pytest.fixture
def admin_id(db):
    return _make_user(db, "admin@portfolio.dev", "admin")


@pytest.fixture
def admin_headers(admin_id):
    return {"Authorization": f"Bearer {auth.create_access_token(admin_id, 'admin')}"}


@pytest.fixture
def user_headers(db):
    user_id = _make_user(db, "reader@portfolio.dev", "user")
    return {"Authorization": f"Bearer {auth.create_access_token(user_id, 'user')}"}


@pytest.fixture
def project_form():
    return {
        "title": "Portfolio",
        "description": "A portfolio site",
        "shortDescription": "Site",
        "technologies": "React, Node.js,MongoDB",
        "features": "Auth,Admin",
        "category": "web",
        "status": "completed",
        "isFeatured": "true",
    }
