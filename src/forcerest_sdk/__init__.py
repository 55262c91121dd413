"""Python client for the Force.com-style REST API."""

from ._version import __version__
from .accounts import InMemoryUserContext, UserAccount, UserContext
from .api import RestApi, RestApiRegistry, is_test_run, set_is_test_run
from .credentials import CallbackCredentialProvider, CredentialProvider
from .dispatch import RestDispatcher, is_status_code_not_found, is_status_code_success
from .exceptions import (
    OAUTH_ERROR_DOMAIN,
    REST_ERROR_CODE,
    REST_ERROR_DOMAIN,
    TRANSPORT_ERROR_DOMAIN,
    ForceRestClientClosedError,
    ForceRestConfigError,
    ForceRestCredentialError,
    ForceRestError,
    ForceRestHTTPError,
    ForceRestNetworkError,
    ForceRestRateLimitError,
    ForceRestSessionExpiredError,
    ForceRestTimeoutError,
    ForceRestValidationError,
)
from .factory import RestRequestFactory
from .models import PlatformError, SessionCredential, SObjectTree, UserIdentity
from .outcomes import RestCancelled, RestDelegate, RestFailure, RestOutcome, RestSuccess, RestTimedOut
from .request import DEFAULT_API_VERSION, RestMethod, RestRequest
from .transport import HttpxTransport, Transport
from .user_agent import user_agent_string

__all__ = [
    "__version__",
    "CallbackCredentialProvider",
    "CredentialProvider",
    "DEFAULT_API_VERSION",
    "ForceRestClientClosedError",
    "ForceRestConfigError",
    "ForceRestCredentialError",
    "ForceRestError",
    "ForceRestHTTPError",
    "ForceRestNetworkError",
    "ForceRestRateLimitError",
    "ForceRestSessionExpiredError",
    "ForceRestTimeoutError",
    "ForceRestValidationError",
    "HttpxTransport",
    "InMemoryUserContext",
    "OAUTH_ERROR_DOMAIN",
    "PlatformError",
    "REST_ERROR_CODE",
    "REST_ERROR_DOMAIN",
    "RestApi",
    "RestApiRegistry",
    "RestCancelled",
    "RestDelegate",
    "RestDispatcher",
    "RestFailure",
    "RestMethod",
    "RestOutcome",
    "RestRequest",
    "RestRequestFactory",
    "RestSuccess",
    "RestTimedOut",
    "SObjectTree",
    "SessionCredential",
    "TRANSPORT_ERROR_DOMAIN",
    "Transport",
    "UserAccount",
    "UserContext",
    "UserIdentity",
    "is_status_code_not_found",
    "is_status_code_success",
    "is_test_run",
    "set_is_test_run",
    "user_agent_string",
]
