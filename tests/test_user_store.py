import asyncio
import threading

import pytest

from db.memory import InMemoryDocumentStore
from models.user import ChatAppUser, DirectoryEntry
from store.errors import NotFoundError
from store.user_store import UserStore
from chat_fixtures import ALICE, BOB, run


def test_user_exists_only_after_insert(services):
    assert run(services.users.user_exists(ALICE.email_address)) is False
    run(services.users.insert_user(ALICE))
    assert run(services.users.user_exists(ALICE.email_address)) is True
    assert run(services.users.user_exists("alice-jones-example-com")) is True


def test_insert_then_get_all_users_lists_the_new_entry(services):
    run(services.users.insert_user(ALICE))
    run(services.users.insert_user(BOB))
    users = run(services.users.get_all_users())
    assert users == [
        DirectoryEntry(name="Alice Jones", email="alice-jones-example-com"),
        DirectoryEntry(name="Bob Smith", email="bob-mail-org"),
    ]


def test_insert_writes_the_user_record(services, db):
    run(services.users.insert_user(ALICE))
    assert db.get("alice-jones-example-com") == {"first_name": "Alice", "last_name": "Jones"}
    record = run(services.users.get_user(ALICE.email_address))
    assert record.first_name == "Alice"


def test_get_user_missing(services):
    with pytest.raises(NotFoundError):
        run(services.users.get_user("ghost@example.com"))


def test_insert_keeps_existing_conversations(services, db):
    db.set("alice-jones-example-com/conversations", [{"id": "c1"}])
    run(services.users.insert_user(ALICE))
    assert db.get("alice-jones-example-com/conversations") == [{"id": "c1"}]


def test_get_all_users_without_directory_is_not_found(services):
    with pytest.raises(NotFoundError):
        run(services.users.get_all_users())


def test_get_all_users_rejects_non_array_directory(services, db):
    db.set("users", {"name": "x"})
    with pytest.raises(NotFoundError):
        run(services.users.get_all_users())


def test_malformed_directory_entries_are_skipped(services, db):
    db.set("users", [{"name": "no email"}, {"name": "Bob Smith", "email": "bob-mail-org"}])
    assert run(services.users.get_all_users()) == [DirectoryEntry(name="Bob Smith", email="bob-mail-org")]


def test_search_users_prefix_case_insensitive_and_excludes_self(registered, alice, bob):
    run(registered.users.insert_user(ChatAppUser(first_name="bobby", last_name="Tables", email_address="bt@x.io")))

    results = run(registered.users.search_users(alice, "BO"))
    assert [r.email for r in results] == ["bob-mail-org", "bt-x-io"]
    assert results[0].name == "bob smith"

    assert [r.email for r in run(registered.users.search_users(bob, "bo"))] == ["bt-x-io"]
    assert run(registered.users.search_users(alice, "   ")) == []
    assert run(registered.users.search_users(alice, "zed")) == []


class InterleavingStore(InMemoryDocumentStore):
    """Holds the first two reads of `path` until both have happened."""

    def __init__(self, path: str):
        super().__init__()
        self.path = path
        self.barrier = threading.Barrier(2, timeout=5)
        self.reads = 0
        self.reads_lock = threading.Lock()

    def get_with_etag(self, path):
        result = super().get_with_etag(path)
        if path == self.path:
            with self.reads_lock:
                self.reads += 1
                first_round = self.reads <= 2
            if first_round:
                self.barrier.wait()
        return result


def _insert_concurrently(store: UserStore):
    async def _both():
        await asyncio.gather(store.insert_user(ALICE), store.insert_user(BOB))
    run(_both())


def test_concurrent_inserts_can_lose_an_entry_with_overwrite_mode():
    db = InterleavingStore("users")
    users = UserStore(db, write_mode="overwrite")
    _insert_concurrently(users)
    # both read an empty directory, the second whole-array write wins
    assert len(run(users.get_all_users())) == 1
    # the user records themselves are separate nodes and both survive
    assert run(users.user_exists(ALICE.email_address))
    assert run(users.user_exists(BOB.email_address))


def test_concurrent_inserts_keep_both_entries_with_etag_mode():
    db = InterleavingStore("users")
    users = UserStore(db, write_mode="etag")
    _insert_concurrently(users)
    emails = sorted(u.email for u in run(users.get_all_users()))
    assert emails == ["alice-jones-example-com", "bob-mail-org"]
