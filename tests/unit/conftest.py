"""Shared fixtures."""

import pytest

from fakes import FakeDialer, FakeVenue, fake_venue


@pytest.fixture
def venue() -> FakeVenue:
    return fake_venue()


@pytest.fixture
def authed_venue() -> FakeVenue:
    return fake_venue(authenticated=True)


@pytest.fixture
def dialer() -> FakeDialer:
    return FakeDialer()
