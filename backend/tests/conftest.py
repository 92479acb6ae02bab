import os
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("ENCRYPTION_SECRET", "0123456789abcdef0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from subnudge import models  # noqa: E402,F401
from subnudge.database import Base  # noqa: E402
from subnudge.services.crypto import FieldCipher, KeyDeriver  # noqa: E402

TEST_SECRET = "0123456789abcdef0123456789abcdef"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def cipher():
    return FieldCipher(KeyDeriver(TEST_SECRET))
