"""Tests for the Match of the Day heuristic."""

from datetime import datetime, timezone

from fixturecast.etl.base import LeagueTableRow
from fixturecast.scoring.match_of_the_day import (
    get_match_score_breakdown,
    get_prime_time_score,
    get_table_context_score,
    is_rivalry,
    score_match,
    select_match_of_the_day,
)

SATURDAY = datetime(2025, 9, 20, 15, 0, tzinfo=timezone.utc)
TUESDAY = datetime(2025, 9, 23, 19, 0, tzinfo=timezone.utc)


def _row(rank, name):
    return LeagueTableRow(
        rank=rank, team_name=name, played=10, won=5, drawn=3, lost=2, goal_difference=4, points=18
    )


class TestScoreMatch:
    def test_rivalry_on_weekend(self, make_match):
        # (90 + 90) * 1.3 + 50 + 10
        match = make_match(home="Arsenal", away="Chelsea", date=SATURDAY)
        assert score_match(match) == 294

    def test_unknown_teams_and_league(self, make_match):
        match = make_match(home="Nobody FC", away="Somebody FC", league="Sunday League", date=TUESDAY)
        assert score_match(match) == 60

    def test_rounds_half_up(self, make_match):
        # (85 + 30) * 1.1 = 126.5
        match = make_match(home="Tottenham", away="Nobody FC", league="Ligue 1", date=TUESDAY)
        assert score_match(match) == 127

    def test_rivalry_either_direction(self):
        assert is_rivalry("Leeds United", "Manchester United")
        assert is_rivalry("Manchester United", "Leeds United")
        assert not is_rivalry("Arsenal", "Brighton")


class TestSelectMatchOfTheDay:
    def test_empty(self):
        assert select_match_of_the_day([]) is None

    def test_picks_highest_in_window(self, make_match):
        now = datetime(2025, 9, 20, 10, 0, tzinfo=timezone.utc)
        small = make_match(match_id="1", home="Luton", away="Burnley", date=SATURDAY)
        big = make_match(match_id="2", home="Liverpool", away="Manchester United", date=SATURDAY)
        far = make_match(
            match_id="3", home="Real Madrid", away="Barcelona", league="La Liga",
            date=datetime(2025, 9, 27, 15, 0, tzinfo=timezone.utc),
        )
        assert select_match_of_the_day([small, big, far], now=now).id == "2"

    def test_falls_back_to_first_ten(self, make_match):
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        fixtures = [make_match(match_id=str(i), home="Nobody FC", away="Luton") for i in range(12)]
        fixtures[11] = make_match(match_id="11", home="Real Madrid", away="Barcelona")
        fixtures[4] = make_match(match_id="4", home="Arsenal", away="Tottenham")
        assert select_match_of_the_day(fixtures, now=now).id == "4"

    def test_tie_keeps_earlier(self, make_match):
        now = datetime(2025, 9, 20, tzinfo=timezone.utc)
        a = make_match(match_id="a", home="Lazio", away="Roma", league="Serie A")
        b = make_match(match_id="b", home="Roma", away="Lazio", league="Serie A")
        assert select_match_of_the_day([a, b], now=now).id == "a"


class TestBreakdown:
    def test_components(self, make_match):
        breakdown = get_match_score_breakdown(make_match(home="Arsenal", away="Chelsea", date=SATURDAY))
        scores = breakdown["scores"]
        assert scores["baseScore"] == 180
        assert scores["leagueMultiplier"] == 1.3
        assert scores["leagueAdjustedScore"] == 234
        assert scores["rivalry"] == 50
        assert scores["weekendBonus"] == 10
        assert scores["total"] == 294


class TestPrimeTime:
    def test_saturday_evening(self, make_match):
        assert get_prime_time_score(make_match(date=datetime(2025, 9, 20, 19, 0, tzinfo=timezone.utc))) == 55

    def test_friday_night(self, make_match):
        assert get_prime_time_score(make_match(date=datetime(2025, 9, 19, 21, 0, tzinfo=timezone.utc))) == 30

    def test_weekday_morning(self, make_match):
        assert get_prime_time_score(make_match(date=datetime(2025, 9, 23, 9, 0, tzinfo=timezone.utc))) == 0


class TestTableContext:
    TABLE = [_row(i + 1, name) for i, name in enumerate(
        ["A", "B", "C", "D", "E", "F", "G", "H", "I", "J", "K", "L", "M", "N", "O", "P", "Q", "R", "S", "T"]
    )]

    def test_title_race(self, make_match):
        assert get_table_context_score(make_match(home="A", away="C"), self.TABLE) == 40

    def test_relegation_battle(self, make_match):
        assert get_table_context_score(make_match(home="R", away="T"), self.TABLE) == 25

    def test_close_positions(self, make_match):
        assert get_table_context_score(make_match(home="L", away="N"), self.TABLE) == 15

    def test_team_missing(self, make_match):
        assert get_table_context_score(make_match(home="A", away="Z"), self.TABLE) == 0
