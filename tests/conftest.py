import pytest
from werkzeug.security import generate_password_hash

from app.registry import create_app
from app.registry.auth import reset_login_attempts
from app.registry.db import session_scope
from app.registry.models import Base, User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    reset_login_attempts()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add_all(
            [
                User(username="admin", password_hash=generate_password_hash("adminpw"), role="admin"),
                User(username="viewer", password_hash=generate_password_hash("viewerpw"), role="user"),
            ]
        )

    yield app
    engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()

