import logging

import jwt
import pytest
from fastapi.testclient import TestClient

from arena import db
from arena.main import app
from arena.models import Match

API = "/api/v0"
TEST_SECRET = "x" * 32


def token_headers(sub: str) -> dict[str, str]:
    token = jwt.encode({"sub": sub, "username": sub}, TEST_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


ORG = token_headers("org")
SCORER = token_headers("umpire")


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def arena(client):
    """A locked arena with a scorer PIN and two teams."""

    tid = client.post(
        f"{API}/tournaments", json={"name": "Club Night", "scorerPin": "2468"}, headers=ORG
    ).json()["id"]
    client.post(
        f"{API}/tournaments/{tid}/players/import",
        json={"text": "Ana\nBia\nCid\nDan\nEva\nFlo"},
        headers=ORG,
    )
    teams = {}
    for name, players in (("Red", ["Ana", "Bia"]), ("Blue", ["Cid", "Dan"]), ("Gold", ["Eva", "Flo"])):
        resp = client.post(
            f"{API}/tournaments/{tid}/teams",
            json={"name": name, "playerNames": players},
            headers=ORG,
        )
        teams[name] = resp.json()["id"]
    resp = client.patch(f"{API}/tournaments/{tid}", json={"isLocked": True}, headers=ORG)
    assert resp.json()["isLocked"] is True
    return {"id": tid, "teams": teams}


def _schedule(client, arena, a="Red", b="Blue", **rules):
    resp = client.post(
        f"{API}/matches",
        json={
            "tournamentId": arena["id"],
            "teamAId": arena["teams"][a],
            "teamBId": arena["teams"][b],
            **rules,
        },
        headers=ORG,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["id"]


def _point(client, mid, set_index, side, delta=1, headers=ORG, pin=None):
    body = {"setIndex": set_index, "side": side, "delta": delta}
    if pin is not None:
        body["pin"] = pin
    return client.post(f"{API}/matches/{mid}/points", json=body, headers=headers)


def test_schedule_requires_locked_arena(client):
    tid = client.post(f"{API}/tournaments", json={"name": "Open"}, headers=ORG).json()["id"]
    client.post(f"{API}/tournaments/{tid}/players/import", json={"text": "Ana\nBia"}, headers=ORG)
    a = client.post(f"{API}/tournaments/{tid}/teams", json={"name": "A", "playerNames": ["Ana"]}, headers=ORG).json()["id"]
    b = client.post(f"{API}/tournaments/{tid}/teams", json={"name": "B", "playerNames": ["Bia"]}, headers=ORG).json()["id"]

    resp = client.post(
        f"{API}/matches",
        json={"tournamentId": tid, "teamAId": a, "teamBId": b},
        headers=ORG,
    )

    assert resp.status_code == 409
    assert resp.json()["code"] == "tournament_not_locked"


def test_new_match_defaults(client, arena):
    mid = _schedule(client, arena, court=3, umpireName="  Rita ", startTime="2026-05-01T18:00:00+02:00")

    match = client.get(f"{API}/matches/{mid}").json()

    assert match["status"] == "scheduled"
    assert (match["pointsTo"], match["winBy"], match["maxPoint"], match["bestOf"]) == (21, 2, 30, 3)
    assert match["requiredWins"] == 2
    assert match["sets"] == [{"A": 0, "B": 0}] * 3
    assert match["activeSet"] == 0
    assert match["court"] == 3
    assert match["umpireName"] == "Rita"
    assert match["startTime"].startswith("2026-05-01T16:00:00")

    listed = client.get(f"{API}/matches", params={"tournamentId": arena["id"]}).json()
    assert [m["id"] for m in listed] == [mid]


@pytest.mark.parametrize(
    "rules",
    [{"pointsTo": 21, "maxPoint": 20}, {"bestOf": 2}, {"pointsTo": 0}],
    ids=["cap-below-target", "even-best-of", "zero-target"],
)
def test_schedule_rejects_bad_rules(client, arena, rules):
    resp = client.post(
        f"{API}/matches",
        json={
            "tournamentId": arena["id"],
            "teamAId": arena["teams"]["Red"],
            "teamBId": arena["teams"]["Blue"],
            **rules,
        },
        headers=ORG,
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "match_rules_invalid"


def test_schedule_rejects_bad_teams(client, arena):
    red = arena["teams"]["Red"]
    resp = client.post(
        f"{API}/matches",
        json={"tournamentId": arena["id"], "teamAId": red, "teamBId": red},
        headers=ORG,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "match_teams_invalid"
    assert resp.json()["detail"] == "Select two different teams."


def test_schedule_rejects_naive_start_time(client, arena):
    resp = client.post(
        f"{API}/matches",
        json={
            "tournamentId": arena["id"],
            "teamAId": arena["teams"]["Red"],
            "teamBId": arena["teams"]["Blue"],
            "startTime": "2026-05-01T18:00:00",
        },
        headers=ORG,
    )
    assert resp.status_code == 422


def test_schedule_is_organizer_only(client, arena):
    resp = client.post(
        f"{API}/matches",
        json={
            "tournamentId": arena["id"],
            "teamAId": arena["teams"]["Red"],
            "teamBId": arena["teams"]["Blue"],
        },
        headers=SCORER,
    )
    assert resp.status_code == 403


def test_point_needs_pin_for_non_organizers(client, arena):
    mid = _schedule(client, arena)

    resp = _point(client, mid, 0, "A", headers=SCORER)
    assert resp.status_code == 403
    assert resp.json()["code"] == "score_forbidden"

    resp = _point(client, mid, 0, "A", headers=SCORER, pin="0000")
    assert resp.status_code == 403

    resp = _point(client, mid, 0, "a", headers=SCORER, pin="2468")
    assert resp.status_code == 200
    body = resp.json()
    assert body["accepted"] is True
    assert body["result"] == "applied"
    assert body["match"]["status"] == "in_progress"
    assert body["match"]["sets"][0] == {"A": 1, "B": 0}


def test_live_scoring_completes_match(client, arena):
    mid = _schedule(client, arena, pointsTo=11, maxPoint=15, bestOf=1)

    for _ in range(10):
        _point(client, mid, 0, "B")
    for _ in range(10):
        _point(client, mid, 0, "A")
    resp = _point(client, mid, 0, "A")
    assert resp.json()["setOutcome"] is None

    _point(client, mid, 0, "B")
    for _ in range(3):
        _point(client, mid, 0, "A")
        resp = _point(client, mid, 0, "B")
    body = resp.json()
    assert body["match"]["sets"][0] == {"A": 14, "B": 14}
    assert body["match"]["status"] == "in_progress"

    resp = _point(client, mid, 0, "B")
    body = resp.json()
    assert body["match"]["sets"][0] == {"A": 14, "B": 15}
    assert body["setOutcome"] == "B"
    assert body["match"]["status"] == "completed"
    assert body["match"]["winnerId"] == arena["teams"]["Blue"]
    assert body["match"]["completedAt"] is not None

    resp = _point(client, mid, 0, "A", delta=-1)
    assert resp.status_code == 409
    assert resp.json()["code"] == "match_completed"


def test_point_into_decided_set_is_not_applied(client, arena):
    mid = _schedule(client, arena)
    client.put(
        f"{API}/matches/{mid}/score",
        json={"sets": [{"A": 21, "B": 10}]},
        headers=ORG,
    )

    resp = _point(client, mid, 0, "B")

    assert resp.status_code == 200
    body = resp.json()
    assert body["accepted"] is False
    assert body["result"] == "set_decided"
    assert body["setOutcome"] == "A"
    assert body["match"]["sets"][0] == {"A": 21, "B": 10}
    assert body["match"]["activeSet"] == 1


def test_decrement_at_zero_is_clamped(client, arena):
    mid = _schedule(client, arena)

    body = _point(client, mid, 1, "B", delta=-1).json()

    assert body["accepted"] is False
    assert body["result"] == "clamped"
    assert client.get(f"{API}/matches/{mid}").json()["status"] == "scheduled"


@pytest.mark.parametrize("set_index", [3, 10])
def test_point_set_index_out_of_range(client, arena, set_index):
    mid = _schedule(client, arena)

    resp = _point(client, mid, set_index, "A")

    assert resp.status_code == 422
    assert resp.json()["code"] == "match_score_invalid"


def test_point_rejects_bad_delta(client, arena):
    mid = _schedule(client, arena)
    assert _point(client, mid, 0, "A", delta=2).status_code == 422


def test_score_sheet_validation(client, arena):
    mid = _schedule(client, arena)
    url = f"{API}/matches/{mid}/score"

    resp = client.put(url, json={"sets": [{"A": 1, "B": 0}] * 4}, headers=ORG)
    assert resp.status_code == 422
    assert resp.json()["code"] == "match_score_invalid"

    resp = client.put(url, json={"sets": [{"A": 31, "B": 29}]}, headers=ORG)
    assert resp.status_code == 422

    resp = client.put(url, json={"sets": []}, headers=ORG)
    assert resp.status_code == 422

    resp = client.put(url, json={"sets": [{"A": 1, "B": 0}]}, headers=SCORER)
    assert resp.status_code == 403


def test_score_sheet_with_pin_completes_match(client, arena):
    mid = _schedule(client, arena)
    url = f"{API}/matches/{mid}/score"

    resp = client.put(
        url,
        json={"sets": [{"A": 21, "B": 17}, {"A": 19, "B": 21}], "pin": "2468"},
        headers=SCORER,
    )
    body = resp.json()
    assert resp.status_code == 200
    assert body["status"] == "in_progress"
    assert body["activeSet"] == 2
    assert body["setsWon"] == {"A": 1, "B": 1}

    resp = client.put(
        url,
        json={"sets": [{"A": 21, "B": 17}, {"A": 19, "B": 21}, {"A": 30, "B": 29}], "pin": "2468"},
        headers=SCORER,
    )
    body = resp.json()
    assert body["status"] == "completed"
    assert body["winnerId"] == arena["teams"]["Red"]
    assert body["setWinners"] == ["A", "B", "A"]

    resp = client.put(url, json={"sets": [{"A": 0, "B": 0}]}, headers=ORG)
    assert resp.status_code == 409


@pytest.mark.parametrize(
    "sets, detail",
    [
        ([{"A": 30, "B": 30}], "cannot be won by both sides"),
        ([{"A": 21, "B": 0}] * 3, "after the match was decided"),
        ([{"A": 25, "B": 3}], "past its winning point"),
        ([{"A": 21, "B": 19}, {"A": 21, "B": 5}, {"A": 2, "B": 0}], "after the match was decided"),
    ],
)
def test_score_sheet_rejects_unreachable_scores(client, arena, sets, detail):
    mid = _schedule(client, arena)

    resp = client.put(f"{API}/matches/{mid}/score", json={"sets": sets}, headers=ORG)
    assert resp.status_code == 422
    assert resp.json()["code"] == "match_score_invalid"
    assert detail in resp.json()["detail"]

    stored = client.get(f"{API}/matches/{mid}").json()
    assert stored["status"] == "scheduled"
    assert stored["winnerId"] is None

    standings = client.get(f"{API}/tournaments/{arena['id']}/standings").json()
    assert standings["standings"] == []


@pytest.mark.parametrize(
    "sets, status, winner",
    [
        ([{"A": 21, "B": 15}], "in_progress", None),
        ([{"A": 21, "B": 15}, {"A": 23, "B": 21}], "completed", "Red"),
        ([{"A": 30, "B": 20}, {"A": 15, "B": 21}, {"A": 17, "B": 21}], "completed", "Blue"),
        ([{"A": 30, "B": 29}, {"A": 0, "B": 0}, {"A": 0, "B": 0}], "in_progress", None),
    ],
)
def test_saved_sheet_completes_only_on_required_wins(client, arena, sets, status, winner):
    mid = _schedule(client, arena)

    resp = client.put(f"{API}/matches/{mid}/score", json={"sets": sets}, headers=ORG)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == status
    assert body["winnerId"] == (arena["teams"][winner] if winner else None)
    assert (status == "completed") == (max(body["setsWon"].values()) == body["requiredWins"])


def test_unknown_match(client):
    resp = client.get(f"{API}/matches/nope")
    assert resp.status_code == 404
    assert resp.json()["code"] == "match_not_found"


def test_standings_follow_completed_matches(client, arena):
    red, blue, gold = (arena["teams"][n] for n in ("Red", "Blue", "Gold"))
    sheet = f"{API}/matches/{{}}/score"

    m1 = _schedule(client, arena, "Red", "Blue", bestOf=1)
    client.put(sheet.format(m1), json={"sets": [{"A": 21, "B": 19}]}, headers=ORG)
    m2 = _schedule(client, arena, "Blue", "Gold", bestOf=1)
    client.put(sheet.format(m2), json={"sets": [{"A": 21, "B": 3}]}, headers=ORG)
    m3 = _schedule(client, arena, "Gold", "Red", bestOf=1)
    client.put(sheet.format(m3), json={"sets": [{"A": 21, "B": 18}]}, headers=ORG)
    # still open, must not count
    m4 = _schedule(client, arena, "Red", "Gold", bestOf=1)
    client.put(sheet.format(m4), json={"sets": [{"A": 12, "B": 3}]}, headers=ORG)

    resp = client.get(f"{API}/tournaments/{arena['id']}/standings")
    assert resp.status_code == 200
    rows = resp.json()["standings"]

    assert [r["teamId"] for r in rows] == [blue, red, gold]
    assert [r["rank"] for r in rows] == [1, 2, 3]
    assert rows[0]["name"] == "Blue"
    assert {r["teamId"]: (r["played"], r["won"], r["lost"]) for r in rows} == {
        red: (2, 1, 1),
        blue: (2, 1, 1),
        gold: (2, 1, 1),
    }
    assert rows[0]["pointsDiff"] == -2 + 18
    assert resp.json()["rejectedMatchIds"] == []

    # team with matches cannot be removed
    resp = client.delete(f"{API}/tournaments/{arena['id']}/teams/{red}", headers=ORG)
    assert resp.status_code == 409
    assert resp.json()["code"] == "team_in_use"


def _store_raw_match(session_loop, **values):
    async def _insert():
        async with db.AsyncSessionLocal() as session:
            session.add(Match(**values))
            await session.commit()

    session_loop.run_until_complete(_insert())


def test_unreadable_stored_match_is_isolated(client, arena, session_loop, caplog):
    good = _schedule(client, arena)
    _store_raw_match(
        session_loop,
        id="broken",
        tournament_id=arena["id"],
        team_a_id=arena["teams"]["Red"],
        team_b_id=arena["teams"]["Gold"],
        target_points=21,
        golden_point_cap=30,
        best_of=2,
        status="scheduled",
        scores=[],
        court=1,
    )

    with caplog.at_level(logging.ERROR, logger="arena.routers.matches"):
        resp = client.get(f"{API}/matches", params={"tournamentId": arena["id"]})
    assert resp.status_code == 200
    assert [m["id"] for m in resp.json()] == [good]
    assert "broken" in caplog.text

    resp = client.get(f"{API}/matches/broken")
    assert resp.status_code == 500
    assert resp.json()["code"] == "match_data_invalid"

    resp = _point(client, "broken", 0, "A")
    assert resp.status_code == 500
    assert resp.json()["code"] == "match_data_invalid"
