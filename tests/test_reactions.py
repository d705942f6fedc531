import pytest
from sqlalchemy import func, select

from eiga.core.errors import CoreError, ErrorKind
from eiga.models.reaction import Reaction, ReactionType
from eiga.realtime.fanout import FilmEvent
from eiga.services.discussions import DiscussionTree
from eiga.services import reactions
from eiga.services.reactions import ReactionLedger

FILM = 7


@pytest.fixture
def comment_id(db, alice):
    return DiscussionTree(db).create(FILM, alice.id, "react to this one")


@pytest.fixture
def ledger(db, notifier):
    return ReactionLedger(db, notifier)


def rows(db):
    return db.execute(select(func.count()).select_from(Reaction)).scalar_one()


def test_first_reaction_is_created(db, ledger, bob, comment_id, notifier):
    result = ledger.set_reaction(bob.id, comment_id, ReactionType.BRILLIANT)

    assert (result.created, result.changed) == (True, True)
    assert ledger.get_reaction(bob.id, comment_id) == "brilliant"
    assert notifier.events == [
        (FILM, FilmEvent.REACTION_NEW, {"comment_id": comment_id, "user_id": bob.id, "type": "brilliant"})
    ]


def test_same_reaction_is_idempotent(db, ledger, bob, comment_id, notifier):
    ledger.set_reaction(bob.id, comment_id, "insightful")
    notifier.events.clear()

    result = ledger.set_reaction(bob.id, comment_id, "insightful")

    assert (result.created, result.changed) == (False, False)
    assert rows(db) == 1
    assert notifier.events == []


def test_new_type_replaces_old(db, ledger, bob, comment_id):
    ledger.set_reaction(bob.id, comment_id, "insightful")

    result = ledger.set_reaction(bob.id, comment_id, "controversial")

    assert (result.created, result.changed) == (False, True)
    assert rows(db) == 1
    assert [r.type for r in ledger.list_for_comment(comment_id)] == ["controversial"]


def test_each_user_gets_one_row(db, ledger, alice, bob, comment_id):
    ledger.set_reaction(alice.id, comment_id, "brilliant")
    ledger.set_reaction(bob.id, comment_id, "brilliant")
    assert rows(db) == 2


def test_unknown_type(ledger, bob, comment_id):
    with pytest.raises(CoreError) as exc:
        ledger.set_reaction(bob.id, comment_id, "meh")
    assert exc.value.kind is ErrorKind.INVALID


def test_unknown_comment(ledger, bob):
    with pytest.raises(CoreError) as exc:
        ledger.set_reaction(bob.id, 12345, "brilliant")
    assert exc.value.kind is ErrorKind.NOT_FOUND


def test_remove(db, ledger, bob, comment_id, notifier):
    ledger.set_reaction(bob.id, comment_id, "brilliant")
    notifier.events.clear()

    assert ledger.remove_reaction(bob.id, comment_id).removed is True
    assert notifier.events == [(FILM, FilmEvent.REACTION_REMOVE, {"comment_id": comment_id, "user_id": bob.id})]

    notifier.events.clear()
    assert ledger.remove_reaction(bob.id, comment_id).removed is False
    assert notifier.events == []
    assert rows(db) == 0


def test_remove_on_unknown_comment(ledger, bob, notifier):
    with pytest.raises(CoreError) as exc:
        ledger.remove_reaction(bob.id, 12345)
    assert exc.value.kind is ErrorKind.NOT_FOUND
    assert notifier.events == []


def test_unsupported_dialect_is_a_server_error(monkeypatch, ledger, bob, comment_id):
    monkeypatch.setattr(reactions, "_UPSERT_BUILDERS", {})
    with pytest.raises(CoreError) as exc:
        ledger.set_reaction(bob.id, comment_id, "brilliant")
    assert exc.value.kind is ErrorKind.SERVER
