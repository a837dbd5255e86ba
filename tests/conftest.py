import pytest

from chat_fixtures import ALICE, BOB, CAROL, run
from db.memory import InMemoryDocumentStore, InMemoryObjectStore
from models.user import ChatSession
from shared.chat import build_services
from shared.config import ChatSettings


@pytest.fixture
def settings():
    return ChatSettings(backend="memory", timezone="UTC")


@pytest.fixture
def db():
    return InMemoryDocumentStore()


@pytest.fixture
def objects():
    return InMemoryObjectStore(bucket="test-bucket")


@pytest.fixture
def services(settings, db, objects):
    return build_services(settings, db=db, objects=objects)


@pytest.fixture
def alice():
    return ChatSession(email=ALICE.email_address, name=ALICE.full_name)


@pytest.fixture
def bob():
    return ChatSession(email=BOB.email_address, name=BOB.full_name)


@pytest.fixture
def carol():
    return ChatSession(email=CAROL.email_address, name=CAROL.full_name)


@pytest.fixture
def registered(services):
    async def _register():
        for user in (ALICE, BOB, CAROL):
            await services.users.insert_user(user)
    run(_register())
    return services
