"""
Rating Engine Unit Tests

Pure calculations, no database.
"""
import pytest

from botarena.orm.game import Game2v2, DRAW_WINNER, VOID_WINNER
from botarena.services.elo_rating_service import EloRatingService


@pytest.fixture
def rating() -> EloRatingService:
    return EloRatingService(k_factor=32)


class TestExpectedScore:

    def test_equal_ratings(self, rating):
        assert rating.expected_score(1000, 1000) == pytest.approx(0.5)

    def test_200_point_favourite(self, rating):
        assert rating.expected_score(1200, 1000) == pytest.approx(0.7597, abs=1e-4)

    def test_expected_scores_sum_to_one(self, rating):
        assert rating.expected_score(1350, 1110) + rating.expected_score(1110, 1350) == pytest.approx(1.0)


class TestApplyResult:

    def test_favourite_wins(self, rating):
        delta = rating.apply_result("a", 1200, "b", 1000, "a")
        assert (delta.delta_a, delta.delta_b) == (8, -8)
        assert 1200 + delta.delta_a == 1208
        assert 1000 + delta.delta_b == 992

    def test_underdog_wins(self, rating):
        delta = rating.apply_result("a", 1000, "b", 1200, "a")
        assert (delta.delta_a, delta.delta_b) == (24, -24)

    def test_loss_recorded_for_team_a(self, rating):
        delta = rating.apply_result("a", 1000, "b", 1000, "b")
        assert (delta.delta_a, delta.delta_b) == (-16, 16)

    def test_draw_between_equals_changes_nothing(self, rating):
        delta = rating.apply_result("a", 1000, "b", 1000, DRAW_WINNER)
        assert (delta.delta_a, delta.delta_b) == (0, 0)

    def test_draw_moves_favourite_down(self, rating):
        delta = rating.apply_result("a", 1200, "b", 1000, DRAW_WINNER)
        assert (delta.delta_a, delta.delta_b) == (-8, 8)

    def test_void_has_no_rating_impact(self, rating):
        delta = rating.apply_result("a", 1400, "b", 900, VOID_WINNER)
        assert (delta.delta_a, delta.delta_b) == (0, 0)

    @pytest.mark.parametrize("elo_a,elo_b,winner", [
        (1000, 1000, "a"),
        (1543, 987, "b"),
        (800, 1700, "a"),
        (1234, 1233, DRAW_WINNER),
    ])
    def test_zero_sum(self, rating, elo_a, elo_b, winner):
        delta = rating.apply_result("a", elo_a, "b", elo_b, winner)
        assert delta.delta_a + delta.delta_b == 0

    def test_unknown_winner_rejected(self, rating):
        with pytest.raises(ValueError):
            rating.apply_result("a", 1000, "b", 1000, "c")

    def test_k_factor_scales_delta(self):
        delta = EloRatingService(k_factor=16).apply_result("a", 1200, "b", 1000, "a")
        assert delta.delta_a == 4

    def test_k_factor_must_be_positive(self):
        with pytest.raises(ValueError):
            EloRatingService(k_factor=0)

    def test_for_team(self, rating):
        delta = rating.apply_result("a", 1200, "b", 1000, "a")
        assert delta.for_team("a") == 8
        assert delta.for_team("b") == -8
        with pytest.raises(KeyError):
            delta.for_team("c")


class TestRounding:

    @pytest.mark.parametrize("raw,expected", [
        (0.5, 1),
        (-0.5, -1),
        (2.5, 3),
        (-2.5, -3),
        (7.69, 8),
        (-7.4, -7),
        (0.0, 0),
    ])
    def test_half_away_from_zero(self, raw, expected):
        assert EloRatingService.round_delta(raw) == expected


class TestDeltaForGame:

    def test_uses_pre_game_snapshots(self, rating):
        game = Game2v2(
            team1_id="a",
            team2_id="b",
            winner_id="b",
            team1_elo=1200,
            team2_elo=1000,
        )
        delta = rating.delta_for_game(game)
        assert delta.team_a_id == "a"
        assert (delta.delta_a, delta.delta_b) == (-24, 24)
