import json

from giftbot.store import models as m
from giftbot.store.session_repo import SessionRepo, _filter_session_kwargs


def test_save_and_load_with_ttl(r):
    repo = SessionRepo(r, ttl_sec=600)
    repo.save(m.ChatSession(userId="7", step=m.REGION_SET, card="Amazon", region="US"))

    got = repo.load("7")
    assert got.step == m.REGION_SET
    assert got.region == "US"
    assert got.updatedAtEpoch is not None
    assert 0 < r.ttl("chat_session:7") <= 600


def test_zero_ttl_never_expires(r):
    repo = SessionRepo(r, ttl_sec=0)
    repo.save(m.ChatSession(userId="7"))
    assert r.ttl("chat_session:7") == -1


def test_load_missing_returns_none(r):
    assert SessionRepo(r).load("nobody") is None


def test_delete_reports_whether_a_session_existed(r):
    repo = SessionRepo(r)
    repo.save(m.ChatSession(userId="7"))
    assert repo.delete("7") is True
    assert repo.delete("7") is False


def test_filter_session_kwargs_drops_unknown_fields(r):
    data = {"userId": "7", "step": m.CARD_CHOSEN, "card": "Amazon", "legacy": 1}
    assert "legacy" not in _filter_session_kwargs(data)

    r.set("chat_session:7", json.dumps(data))
    assert SessionRepo(r).load("7").card == "Amazon"
