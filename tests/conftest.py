import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from inkwell.infra import memory, postgres
from inkwell.infra.redis import redis_client, set_redis_client
from inkwell.main import app
from inkwell.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Dev mode so X-User-Id authenticates; the in-memory store instead of Postgres."""
	original_env = settings.environment
	original_backend = settings.storage_backend
	settings.environment = "dev"
	settings.storage_backend = "memory"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.storage_backend = original_backend


@pytest.fixture(autouse=True)
def store():
	return memory.reset_store()


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
