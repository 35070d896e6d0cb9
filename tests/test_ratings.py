import pytest
from booktracker.models import Ratings
from booktracker.ratings import (round_half_up, calculate_overall_rating, calculate_legacy_overall_rating,
                                 convert_to_star_rating, rating_label)

def make(*values):
    return Ratings(*values)

# ---------- Overall rating ----------
def test_overall_skips_na_ratings():
    r = Ratings(characters=8, world_building=None, plot=6, writing_style=7, enjoyment=None)
    assert calculate_overall_rating(r) == 7.0
    assert convert_to_star_rating(calculate_overall_rating(r)) == 3.5

def test_all_na_is_zero():
    r = Ratings()
    assert calculate_overall_rating(r) == 0.0
    assert convert_to_star_rating(calculate_overall_rating(r)) == 0.0

@pytest.mark.parametrize("value", [1, 5, 10])
def test_single_rating_is_the_overall(value):
    assert calculate_overall_rating(Ratings(plot=value)) == float(value)

@pytest.mark.parametrize("values, expected", [
    ((6, 6, 6, 7, None), 6.3),      # 6.25 rounds up
    ((1, 2, None, None, None), 1.5),
    ((9, 10, 10, None, None), 9.7),  # 9.666...
    ((10, 10, 10, 10, 10), 10.0),
    ((1, 1, 1, 1, 2), 1.2),
    ((3, 4, 4, None, None), 3.7),    # 3.666...
])
def test_overall_rounds_half_up(values, expected):
    assert calculate_overall_rating(make(*values)) == expected

@pytest.mark.parametrize("values", [
    (8, None, 6, 7, None),
    (1, 10, None, None, None),
    (2, 3, 5, 7, 9),
    (None, None, None, None, 4),
    (10, 9, 9, 9, 9),
])
def test_overall_is_rounded_mean_within_bounds(values):
    r = make(*values)
    present = [v for v in values if v is not None]
    overall = calculate_overall_rating(r)
    assert overall == round_half_up(sum(present) / len(present))
    assert min(present) <= overall <= max(present)

# ---------- Legacy rule ----------
def test_legacy_formula_divides_by_five():
    r = Ratings(characters=8, world_building=None, plot=6, writing_style=7, enjoyment=None)
    assert calculate_legacy_overall_rating(r) == 4.2
    assert calculate_legacy_overall_rating(make(10, 10, 10, 10, 10)) == 10.0

def test_formulas_agree_when_nothing_is_na():
    r = make(7, 8, 6, 9, 5)
    assert calculate_legacy_overall_rating(r) == calculate_overall_rating(r) == 7.0

# ---------- Stars ----------
@pytest.mark.parametrize("overall, stars", [
    (0, 0.0), (7.0, 3.5), (10, 5.0), (8.5, 4.3), (6.3, 3.2), (9.7, 4.9),
])
def test_star_rating_on_ten_point_scale_is_half(overall, stars):
    assert convert_to_star_rating(overall) == stars
    assert convert_to_star_rating(overall) == round_half_up(overall / 2)

@pytest.mark.parametrize("overall", [0, 2.5, 3.5, 5])
def test_star_rating_on_five_point_scale_is_unchanged(overall):
    assert convert_to_star_rating(overall, scale=5) == float(overall)

def test_star_rating_rejects_bad_scale():
    with pytest.raises(ValueError):
        convert_to_star_rating(5, scale=0)

def test_round_half_up_uses_decimal_digits():
    # binary floats would round 0.35 down and 2.675 to 2.67
    assert round_half_up(0.35) == 0.4
    assert round_half_up(2.675, 2) == 2.68
    assert round_half_up(0.25) == 0.3

# ---------- Guide ----------
def test_rating_label():
    assert rating_label("Plot", 10).startswith("Perfect plot")
    assert rating_label("Plot", None) == ""
    assert rating_label("Unknown", 5) == ""

def test_ratings_dict_uses_stored_keys():
    r = Ratings.from_dict({"characters": 8, "worldBuilding": None, "plot": "6", "writingStyle": 7})
    assert r.world_building is None and r.plot == 6 and r.enjoyment is None
    assert r.to_dict() == {"characters": 8, "worldBuilding": None, "plot": 6, "writingStyle": 7, "enjoyment": None}
