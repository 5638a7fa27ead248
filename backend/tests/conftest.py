from __future__ import annotations

import sys
from collections import defaultdict, deque
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))


@pytest.fixture(autouse=True)
def _reset_rate_limiter(monkeypatch):
    """Give every test an empty rate-limit window and auth switched off."""

    from backend.app.core import observability as obs
    from backend.app.core.config import Settings

    monkeypatch.setattr(obs.TokenAndRateLimitMiddleware, "_buckets", defaultdict(deque), raising=False)
    # Ignore any API_TOKEN exported by the host shell or a local .env.
    monkeypatch.setattr(
        obs,
        "get_settings",
        lambda: Settings(_env_file=None, api_token=None, rate_limit_per_min=60),
    )
    yield
