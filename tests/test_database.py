"""Tests for lastmile/database.py engine options.

Run with:  pytest tests/test_database.py -v
"""
import pytest
from sqlalchemy.pool import StaticPool

from lastmile.database import _engine_options, check_database_connection


@pytest.mark.parametrize("url,expected", [
    ("postgresql+psycopg2://u:p@db:5432/lastmile", {"pool_pre_ping": True}),
    ("sqlite:///./local.db",                       {"connect_args": {"check_same_thread": False}}),
    ("sqlite://",                                  {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}),
    ("sqlite:///:memory:",                         {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}),
])
def test_engine_options(url, expected):
    assert _engine_options(url) == expected


def test_check_database_connection_against_test_engine():
    # conftest points DATABASE_URL at in-memory sqlite
    assert check_database_connection() is True
