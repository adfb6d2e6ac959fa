import os
import sys
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# 中文注释: 测试环境允许通过 X-User-Id / X-User-Role 声明身份，且强制使用内存仓储。
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DECISION_STORE", "memory")

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from main import app  # noqa: E402

from confdesk.api.v1.deps import get_decision_service  # noqa: E402
from confdesk.models.paper import ReviewAssignment  # noqa: E402
from confdesk.services.decision_service import DecisionService  # noqa: E402
from confdesk.services.paper_repository import InMemoryPaperRepository  # noqa: E402
from decision_factories import (  # noqa: E402
    FakeNotifier,
    build_service,
    make_paper,
    submitted_reviews,
)

# === 全局测试配置 ===
# 中文注释:
# 1. 显式使用 pytest_asyncio.fixture 解决 STRICT 模式下的生成器问题。
# 2. 决策服务通过 app.dependency_overrides 注入内存仓储 + FakeNotifier。


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def repository() -> InMemoryPaperRepository:
    """
    P1: 2 位作者、必审已提交；P2: 3 位作者、必审已提交；P3: 1 位作者、必审仍 pending。
    """
    repo = InMemoryPaperRepository()
    repo.seed(
        papers=[
            make_paper("P1", authors=2),
            make_paper("P2", authors=3),
            make_paper("P3", authors=1),
        ],
        assignments=[
            *submitted_reviews("P1"),
            *submitted_reviews("P2"),
            ReviewAssignment(paper_id="P3", reviewer_id="rev_9", required=True, status="pending"),
        ],
    )
    return repo


@pytest.fixture
def decision_service(repository, notifier) -> DecisionService:
    return build_service(repository, notifier)


@pytest.fixture
def override_decision_service(decision_service):
    app.dependency_overrides[get_decision_service] = lambda: decision_service
    yield decision_service
    app.dependency_overrides.pop(get_decision_service, None)


@pytest_asyncio.fixture
async def client() -> AsyncGenerator:
    """
    提供一个模拟的异步测试客户端
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver"
    ) as ac:
        yield ac


def generate_test_token(user_id: str = "00000000-0000-0000-0000-000000000000"):
    """
    生成用于测试的 JWT 令牌（HS256，与 SUPABASE_JWT_SECRET 一致）
    """
    secret = os.environ.get("SUPABASE_JWT_SECRET", "mock-secret-replace-later")
    now = datetime.now(timezone.utc)

    payload = {
        "sub": user_id,
        "email": "test@example.com",
        "aud": "authenticated",
        "exp": now + timedelta(hours=1),
        "iat": now,
        "role": "authenticated"
    }

    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_token():
    return generate_test_token()
