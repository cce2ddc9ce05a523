import logging

import pytest

from arena.scoring.engine import MatchRules, MatchScore, PointStatus, SetScore
from arena.scoring.live import LiveMatch, MatchAlreadyCompleted, MatchStatus
from arena.services.validation import ValidationError


RULES = MatchRules(target_points=21, golden_point_cap=30, best_of=3)


def _play(live, set_index, side, count):
    for _ in range(count):
        live, update = live.score_point(set_index, side, 1)
        assert update.accepted
    return live


def _alternate_to(live, set_index, points):
    for _ in range(points):
        live = _play(live, set_index, "A", 1)
        live = _play(live, set_index, "B", 1)
    return live


def test_full_match_walkthrough(caplog):
    live = LiveMatch.start(RULES)
    assert live.status is MatchStatus.SCHEDULED
    assert live.active_set == 0

    live = _play(live, 0, "B", 10)
    assert live.status is MatchStatus.IN_PROGRESS
    live = _play(live, 0, "A", 21)
    assert live.score.sets[0] == SetScore(21, 10)
    assert live.active_set == 1
    assert live.winner is None

    live = _play(live, 1, "A", 15)
    live = _play(live, 1, "B", 21)
    assert live.score.sets[1] == SetScore(15, 21)
    assert live.active_set == 2
    assert live.status is MatchStatus.IN_PROGRESS

    live = _alternate_to(live, 2, 19)
    with caplog.at_level(logging.INFO, logger="arena.scoring.live"):
        live = _play(live, 2, "A", 2)
    assert live.score.sets[2] == SetScore(21, 19)
    assert live.status is MatchStatus.COMPLETED
    assert live.winner == "A"
    assert "Match decided for side A" in caplog.text

    with pytest.raises(MatchAlreadyCompleted) as exc:
        live.score_point(2, "B", 1)
    assert exc.value.winner == "A"


def test_two_straight_sets_complete_best_of_three():
    live = LiveMatch.start(RULES)
    live = _play(live, 0, "B", 21)
    live = _play(live, 1, "B", 21)

    assert live.is_completed
    assert live.winner == "B"
    assert live.score.sets[2] == SetScore()


def test_rejected_point_leaves_state_unchanged():
    live = _play(LiveMatch.start(RULES), 0, "A", 21)

    after, update = live.score_point(0, "B", 1)

    assert update.status is PointStatus.REJECTED_SET_DECIDED
    assert after is live


def test_clamped_decrement_keeps_match_scheduled():
    live = LiveMatch.start(RULES)

    after, update = live.score_point(0, "A", -1)

    assert update.status is PointStatus.CLAMPED
    assert after.status is MatchStatus.SCHEDULED


def test_active_set_does_not_move_backwards():
    live = _play(LiveMatch.start(RULES), 0, "A", 21)
    assert live.active_set == 1

    # reopen and close set 0 again
    live, _ = live.score_point(0, "A", -1)
    live = _play(live, 0, "A", 1)

    assert live.active_set == 1


def test_restore_derives_completion_from_score():
    score = MatchScore(sets=(SetScore(21, 5), SetScore(21, 7), SetScore()))

    live = LiveMatch.restore(RULES, score, MatchStatus.IN_PROGRESS)

    assert live.status is MatchStatus.COMPLETED
    assert live.winner == "A"


def test_restore_demotes_undecided_completed_status():
    score = MatchScore(sets=(SetScore(21, 5), SetScore(3, 4), SetScore()))

    live = LiveMatch.restore(RULES, score, MatchStatus.COMPLETED)

    assert live.status is MatchStatus.IN_PROGRESS
    assert live.winner is None
    assert live.active_set == 1


def test_replace_score_starts_and_completes():
    live = LiveMatch.start(RULES)

    partial = live.replace_score(
        MatchScore(sets=(SetScore(21, 12), SetScore(4, 2), SetScore()))
    )
    assert partial.status is MatchStatus.IN_PROGRESS
    assert partial.active_set == 1

    done = partial.replace_score(
        MatchScore(sets=(SetScore(21, 12), SetScore(30, 29), SetScore()))
    )
    assert done.is_completed
    assert done.winner == "A"

    with pytest.raises(MatchAlreadyCompleted):
        done.replace_score(MatchScore.blank(3))


@pytest.mark.parametrize(
    "sets",
    [
        ((30, 30), (0, 0), (0, 0)),
        ((21, 0), (21, 0), (21, 0)),
        ((25, 3), (0, 0), (0, 0)),
    ],
)
def test_replace_score_rejects_unreachable_sheets(sets):
    live = LiveMatch.start(RULES)
    with pytest.raises(ValidationError):
        live.replace_score(MatchScore(sets=tuple(SetScore(a, b) for a, b in sets)))
    assert live.status is MatchStatus.SCHEDULED


def test_replaced_sheet_completes_exactly_on_required_wins():
    live = LiveMatch.start(RULES)

    one_set = live.replace_score(
        MatchScore(sets=(SetScore(21, 17), SetScore(), SetScore()))
    )
    assert not one_set.is_completed

    two_sets = live.replace_score(
        MatchScore(sets=(SetScore(21, 17), SetScore(19, 21), SetScore(30, 29)))
    )
    assert two_sets.is_completed
    assert two_sets.winner == "A"
