"""
Authorized HTTP requests against provider cloud APIs

Every provider call goes through ``AuthorizedRequestExecutor``: it attaches
credentials using one of two strategies, builds the absolute request URI from
the provider's base URI, and performs exactly one exchange through the
injected transport. Retries and connection pooling belong to the transport.

Usage:
    executor = AuthorizedRequestExecutor(
        RequestsTransport(),
        KeyHeaderAuthorization({"X-API-Key": "apiKey"}),
        "https://monitoringapi.solaredge.com")
    response = executor.get("list sites", integration, "/sites/list")
    sites = response.json()
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Protocol

import requests

from .domain import IntegrationConfiguration, parse_system_identifier
from .errors import RemoteServiceError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30  # seconds


@dataclass
class HttpResponse:
    """Status, body and headers of one HTTP exchange"""
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON; empty bodies decode to None"""
        if self.body is None or self.body == "" or self.body == b"":
            return None
        if isinstance(self.body, (dict, list)):
            return self.body
        return json.loads(self.body)


class HttpTransport(Protocol):
    """Outbound HTTP exchange"""

    def exchange(self, method: str, uri: str, headers: Dict[str, str],
                 body: Optional[str] = None) -> HttpResponse:
        ...


class RequestsTransport:
    """HTTP transport backed by a requests Session"""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def exchange(self, method: str, uri: str, headers: Dict[str, str],
                 body: Optional[str] = None) -> HttpResponse:
        response = self.session.request(method, uri, headers=headers, data=body, timeout=self.timeout)
        return HttpResponse(response.status_code, response.text, dict(response.headers))


@dataclass
class OAuthCredentials:
    """Access token issued for a client registration"""
    access_token: str
    token_type: str = "Bearer"
    expires_at: Optional[datetime] = None


class AuthorizationManager(Protocol):
    """Issues OAuth credentials, owning token caching and refresh"""

    def authorize(self, client_registration_id: str) -> Optional[OAuthCredentials]:
        ...


class SettingsTokenAuthorizationManager:
    """
    Serves the access token stored in the settings of the integration a
    client registration id belongs to

    No grant flow or refresh is performed.
    """

    def __init__(self, integration_store, token_setting: str = "oauthAccessToken"):
        self.integration_store = integration_store
        self.token_setting = token_setting

    def authorize(self, client_registration_id: str) -> Optional[OAuthCredentials]:
        key = parse_system_identifier(client_registration_id)
        config = self.integration_store.get(key) if key else None
        if config is None:
            return None
        token = config.service_property(self.token_setting)
        if not token:
            return None
        return OAuthCredentials(str(token))


class KeyHeaderAuthorization:
    """Copies static key/secret settings into named request headers"""

    def __init__(self, header_settings: Mapping[str, str]):
        self.header_settings = dict(header_settings)

    def apply(self, config: IntegrationConfiguration, headers: Dict[str, str]) -> None:
        for header, setting in self.header_settings.items():
            value = config.service_property(setting)
            if value is None or str(value).strip() == "":
                raise RemoteServiceError(f"Missing credential setting '{setting}'")
            headers[header] = str(value)


class OAuthAuthorization:
    """Adds a bearer token obtained from the authorization manager"""

    def __init__(self, authorization_manager: AuthorizationManager):
        self.authorization_manager = authorization_manager

    def apply(self, config: IntegrationConfiguration, headers: Dict[str, str]) -> None:
        registration_id = config.system_identifier
        try:
            credentials = self.authorization_manager.authorize(registration_id)
        except RemoteServiceError:
            raise
        except Exception as e:
            raise RemoteServiceError(f"Authorization failed for {registration_id}: {e}") from e
        if credentials is None or not credentials.access_token:
            raise RemoteServiceError(f"Authorization not available for {registration_id}")
        headers["Authorization"] = f"{credentials.token_type} {credentials.access_token}"


class AuthorizedRequestExecutor:
    """Builds and performs one authorized request per call"""

    def __init__(self, transport: HttpTransport, authorization, base_uri: str):
        """
        Args:
            transport: HTTP transport collaborator
            authorization: KeyHeaderAuthorization or OAuthAuthorization
            base_uri: Fixed provider base URI, without trailing slash
        """
        self.transport = transport
        self.authorization = authorization
        self.base_uri = base_uri.rstrip("/")

    def uri(self, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
        req = requests.PreparedRequest()
        req.prepare_url(self.base_uri + path, dict(params) if params else None)
        return req.url

    def get(self, description: str, config: IntegrationConfiguration, path: str,
            params: Optional[Mapping[str, Any]] = None) -> HttpResponse:
        return self.request(description, config, "GET", path, params=params)

    def request(self, description: str, config: IntegrationConfiguration, method: str,
                path: str, params: Optional[Mapping[str, Any]] = None,
                body: Any = None) -> HttpResponse:
        """
        Perform one authorized request

        Args:
            description: Short operation name used in log messages
            config: Integration whose credentials authorize the request
            method: HTTP method
            path: Path relative to the base URI
            params: Query parameters
            body: Request body; dicts and lists are sent as JSON

        Returns:
            The 2xx response

        Raises:
            RemoteServiceError: on authorization failure, transport fault or
                non-2xx status
        """
        headers = {"Accept": "application/json"}
        self.authorization.apply(config, headers)

        payload = None
        if body is not None:
            if isinstance(body, (dict, list)):
                payload = json.dumps(body)
                headers["Content-Type"] = "application/json"
            else:
                payload = body

        uri = self.uri(path, params)
        logger.debug(f"{description} for integration {config.key}: {method} {uri}")
        try:
            response = self.transport.exchange(method, uri, headers, payload)
        except requests.RequestException as e:
            logger.warning(f"Communication error {description} for integration {config.key} at {uri}: {e}")
            raise RemoteServiceError(f"Communication error {description}: {e}") from e
        except RemoteServiceError:
            raise
        except Exception as e:
            logger.warning(f"Error {description} for integration {config.key} at {uri}: {e}")
            raise RemoteServiceError(f"Error {description}: {e}") from e

        if not response.ok:
            logger.warning(f"HTTP status {response.status} {description} for integration {config.key} at {uri}")
            raise RemoteServiceError(f"HTTP status {response.status} {description}", status=response.status)
        return response
