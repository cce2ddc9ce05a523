import logging
from types import SimpleNamespace

import pytest

from arena.services.access import (
    ScoreWriteDenied,
    can_write_score,
    grant_score_write,
    hash_pin,
    is_organizer,
    verify_pin,
)


@pytest.fixture(scope="module")
def arena():
    return SimpleNamespace(id="t1", organizer_id="org", scorer_pin_hash=hash_pin("1234"))


def _user(uid, is_admin=False):
    return SimpleNamespace(id=uid, is_admin=is_admin)


def test_pin_hash_round_trip():
    hashed = hash_pin("4321")
    assert hashed != "4321"
    assert verify_pin("4321", hashed)
    assert not verify_pin("1111", hashed)
    assert not verify_pin(None, hashed)
    assert not verify_pin("4321", None)
    assert not verify_pin("4321", "not-a-bcrypt-hash")


def test_organizer_gets_grant_without_pin(arena):
    grant = grant_score_write(_user("org"), arena)
    assert grant.basis == "organizer"
    assert grant.covers("t1")
    assert not grant.covers("t2")


def test_admin_gets_grant(arena):
    assert grant_score_write(_user("root", is_admin=True), arena).basis == "admin"
    assert is_organizer(_user("root", is_admin=True), arena)


def test_scorer_with_correct_pin(arena):
    grant = grant_score_write(_user("umpire"), arena, "1234")
    assert grant.basis == "pin"
    assert grant.actor_id == "umpire"


def test_wrong_pin_is_denied_and_logged(arena, caplog):
    with caplog.at_level(logging.WARNING, logger="arena.services.access"):
        with pytest.raises(ScoreWriteDenied, match="Invalid scorer PIN"):
            grant_score_write(_user("umpire"), arena, "9999")
    assert "Score write denied for user umpire" in caplog.text
    assert not can_write_score(_user("umpire"), arena)
    assert not is_organizer(_user("umpire"), arena)


def test_arena_without_pin_denies_scorers():
    arena = SimpleNamespace(id="t2", organizer_id=None, scorer_pin_hash=None)
    assert not can_write_score(_user("umpire"), arena, "1234")
