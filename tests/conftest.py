import sys
from pathlib import Path

import pytest

# Ensure project root on path for imports when executing from tests dir
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine

import recipes_api.main as main
from recipes_api.db import enable_sqlite_foreign_keys, get_session
from recipes_api.security import Principal, create_access_token
from recipes_api.schemas import RecipeCreate


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite file per test: ids start at 1 and sessions get real, separate connections."""
    eng = create_engine(f"sqlite:///{tmp_path / 'recipes-test.db'}", connect_args={"check_same_thread": False})
    enable_sqlite_foreign_keys(eng)
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as s:
        yield s


@pytest.fixture
def client(engine, monkeypatch):
    """
    App wired to the per-test database; startup never touches the configured DB.
    """
    monkeypatch.setattr(main, "init_db", lambda: None)
    monkeypatch.setattr(main, "engine", engine)

    def override_get_session():
        with Session(engine, expire_on_commit=False) as s:
            yield s

    main.app.dependency_overrides[get_session] = override_get_session
    yield TestClient(main.app)
    main.app.dependency_overrides.pop(get_session, None)


@pytest.fixture
def auth_headers():
    def _headers(sub: str = "u1") -> dict:
        return {"Authorization": f"Bearer {create_access_token(sub)}"}
    return _headers


@pytest.fixture
def u1():
    return Principal(subject="u1")


@pytest.fixture
def u2():
    return Principal(subject="u2")


def soup_payload(**overrides) -> dict:
    payload = {
        "title": "Soup",
        "description": "Hot water",
        "ingredients": [{"amount": "1", "unit": "L", "description": "water"}],
        "instructions": [{"details": "boil"}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def soup():
    return RecipeCreate.model_validate(soup_payload())
