"""Tests for lastmile/logic/distance.py

Run with:  pytest tests/test_distance.py -v
"""
import math

import pytest

from lastmile.logic.distance import EARTH_RADIUS_KM, distance_km


POINTS = [
    (24.7, 46.6),           # Riyadh
    (21.5433, 39.1728),     # Jeddah
    (26.4207, 50.0888),     # Dammam
    (0.0, 0.0),
    (-33.8688, 151.2093),   # Sydney
    (89.9, -179.9),
]


@pytest.mark.parametrize("a", POINTS)
@pytest.mark.parametrize("b", POINTS)
def test_symmetric(a, b):
    assert distance_km(*a, *b) == pytest.approx(distance_km(*b, *a))


@pytest.mark.parametrize("point", POINTS)
def test_same_point_is_zero(point):
    assert distance_km(*point, *point) == 0.0


@pytest.mark.parametrize("a", POINTS)
@pytest.mark.parametrize("b", POINTS)
def test_never_negative(a, b):
    assert distance_km(*a, *b) >= 0.0


def test_one_degree_of_latitude():
    expected = EARTH_RADIUS_KM * math.pi / 180
    assert distance_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(expected)


def test_fallback_contact_five_point_two_km_north():
    assert distance_km(24.7, 46.6, 24.746764673, 46.6) == pytest.approx(5.2, abs=0.001)


def test_riyadh_to_jeddah_is_roughly_840_km():
    assert 820 < distance_km(24.7, 46.6, 21.5433, 39.1728) < 860


def test_antipodal_points_are_half_the_circumference():
    assert distance_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(math.pi * EARTH_RADIUS_KM)
