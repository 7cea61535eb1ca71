"""
Pytest configuration for token_server. Use in-memory SQLite so tests don't touch the filesystem.
"""
import os

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["TOKEN_DATABASE_URL"] = "sqlite:///:memory:"
# Seeding is exercised explicitly in tests
if "TOKEN_TRUSTED_ENDPOINTS" in os.environ:
    del os.environ["TOKEN_TRUSTED_ENDPOINTS"]

import pytest  # noqa: E402

from token_server.database import SessionLocal, init_db  # noqa: E402
from token_server.models import Setting, Token  # noqa: E402


@pytest.fixture
def db():
    """Fresh tables per test; rows are removed afterwards."""
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.query(Token).delete()
        session.query(Setting).delete()
        session.commit()
        session.close()
