"""
Shared test configuration and fixtures.

Network collaborators (the identity resolver and XRPC sessions) are replaced with mocks so views
and the navigator can be driven without any I/O.
"""

from typing import List
from unittest.mock import Mock

import pytest

from social.graze.pdsls.views.navigator import Navigator
from tests.test_helpers import make_resolver, make_xrpc_session


@pytest.fixture
def xrpc_session() -> Mock:
    return make_xrpc_session()


@pytest.fixture
def resolver() -> Mock:
    return make_resolver()


@pytest.fixture
def session_factory(xrpc_session) -> Mock:
    return Mock(return_value=xrpc_session)


@pytest.fixture
def navigator(resolver, session_factory) -> Navigator:
    return Navigator(resolver=resolver, session_factory=session_factory)


@pytest.fixture
def notices(navigator) -> List[str]:
    """Every text published to the navigator's notice board, in order."""
    published: List[str] = []
    navigator.notice.subscribe(published.append)
    return published
