"""
saml-aws: turn an Okta SAML login into AWS CLI credentials and keep named
credential profiles refreshed from a single SAML assertion.
"""

from .assertion import (
    ParsedAssertion,
    RoleBinding,
    find_by_account_and_role,
    parse_assertion,
    require_bindings,
)
from .console import ConsoleSelection
from .errors import (
    ConfigFileError,
    InvalidDuration,
    LoginFailure,
    LoginTimeout,
    MalformedAssertion,
    RoleNotAuthorized,
    SamlAwsError,
    TransportFailure,
)
from .profiles import Profile, ProfileStore
from .refresh import LoginResult, RefreshOutcome, perform_login, refresh_profiles
from .resolver import resolve_role
from .sts import Credentials, StsExchanger, resolve_duration

__version__ = "0.1.0"
