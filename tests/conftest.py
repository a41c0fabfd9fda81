from __future__ import annotations

import pytest

from fake_supabase import FakeSupabase
from src.app.db import supabase as database


@pytest.fixture
def fake_db(monkeypatch: pytest.MonkeyPatch) -> FakeSupabase:
    db = FakeSupabase()
    monkeypatch.setattr(database, "get_supabase_client", lambda: db)
    return db
