"""
Pytest configuration and shared fixtures
"""

import json
import os
import sys
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from solar_c2c.core.domain import (ControlConfiguration, DatumStreamConfiguration,
                                   IntegrationConfiguration)
from solar_c2c.core.events import InMemoryEventAppender
from solar_c2c.core.http import HttpResponse, OAuthCredentials
from solar_c2c.core.stores import InMemoryConfigurationStore


def json_response(data, status=200):
    """HttpResponse with a JSON body"""
    return HttpResponse(status, json.dumps(data))


@pytest.fixture
def transport():
    """Transport mock answering every exchange with an empty JSON object"""
    mock = Mock()
    mock.exchange.return_value = json_response({})
    return mock


@pytest.fixture
def authorization_manager():
    """Authorization manager mock issuing a fixed token"""
    mock = Mock()
    mock.authorize.return_value = OAuthCredentials("test_access_token")
    return mock


@pytest.fixture
def integration_store():
    return InMemoryConfigurationStore()


@pytest.fixture
def control_store():
    return InMemoryConfigurationStore()


@pytest.fixture
def event_appender():
    return InMemoryEventAppender()


@pytest.fixture
def enphase_integration():
    """Enphase integration with every required setting"""
    return IntegrationConfiguration(1, 2, "enphase", {
        "apiKey": "test_api_key",
        "oauthClientId": "test_client_id",
        "oauthClientSecret": "test_client_secret",
        "oauthAccessToken": "test_access_token",
        "oauthRefreshToken": "test_refresh_token",
    })


@pytest.fixture
def mock_integration():
    return IntegrationConfiguration(1, 3, "mock", {"siteIds": ["site-2", "site-1"]})


@pytest.fixture
def mock_control():
    return ControlConfiguration(1, 30, 3, control_id="exportLimit",
                                control_reference="/site-1/inverter-1/exportLimit", node_id=123)


@pytest.fixture
def mock_stream():
    return DatumStreamConfiguration(1, 20, 3, source_value_refs=["/site-1/inverter-1/W",
                                                                 "/site-1/inverter-1/Wh"])


@pytest.fixture
def utc():
    def _utc(*args):
        return datetime(*args, tzinfo=timezone.utc)
    return _utc
