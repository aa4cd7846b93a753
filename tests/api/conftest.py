"""HTTP client over the app with an injected pipeline context."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from stepquest.main import create_app


@pytest_asyncio.fixture
async def client(ctx) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(pipeline=ctx)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
