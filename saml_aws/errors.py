"""Errors raised by saml-aws."""


class SamlAwsError(Exception):
    """Base class for every error this package raises on purpose."""


class MalformedAssertion(SamlAwsError):
    """The SAML assertion could not be decoded or is not a SAML response."""


class RoleNotAuthorized(SamlAwsError):
    """The assertion holds no binding for the requested account and role."""

    def __init__(self, account_id, role_name, message=None):
        self.account_id = account_id
        self.role_name = role_name
        if message is None:
            message = (
                f"SAML assertion does not authorize role '{role_name}' "
                f"in account {account_id}"
            )
        super().__init__(message)


class InvalidDuration(SamlAwsError):
    """A session duration is missing or outside what STS accepts."""

    def __init__(self, duration, message=None):
        self.duration = duration
        if message is None:
            message = f"Invalid session duration: {duration!r}"
        super().__init__(message)


class TransportFailure(SamlAwsError):
    """A remote collaborator (STS, Okta, AWS sign-in) failed."""


class LoginFailure(TransportFailure):
    """Okta refused or could not complete the login."""


class LoginTimeout(LoginFailure):
    """An interactive login step did not finish in time."""


class ConfigFileError(SamlAwsError):
    """An INI file (config or AWS credentials) cannot be parsed."""
