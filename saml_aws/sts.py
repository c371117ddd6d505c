"""
STS exchange: trade a SAML assertion and a role binding for temporary
credentials, plus the session-duration policy used by logins and refreshes.
"""

import datetime
import logging
from collections import namedtuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import InvalidDuration, TransportFailure

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_SESSION_DURATION = 3600  # 1 hour
MIN_SESSION_DURATION = 900       # STS minimum, 15 minutes
MAX_SESSION_DURATION = 43200     # STS max is 12 h

Credentials = namedtuple(
    "Credentials",
    ["access_key_id", "secret_access_key", "session_token", "expiration"],
)

# ---------------------------------------------------------------------------
# Duration policy
# ---------------------------------------------------------------------------


def validate_duration(duration):
    """Return *duration* if STS would accept it, else raise InvalidDuration."""
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise InvalidDuration(duration, f"Session duration must be an integer, got {duration!r}")
    if not MIN_SESSION_DURATION <= duration <= MAX_SESSION_DURATION:
        raise InvalidDuration(
            duration,
            f"Session duration {duration}s is outside "
            f"{MIN_SESSION_DURATION}-{MAX_SESSION_DURATION}s",
        )
    return duration


def resolve_duration(override=None, stored=None, use_default=False):
    """Pick the session duration for an exchange.

    Precedence is: explicit *override*, then the profile's *stored* duration,
    then DEFAULT_SESSION_DURATION.  The default only applies when
    *use_default* is set, which is the case for a fresh interactive login
    and never for a bulk refresh.  The chosen value is not range-checked
    here; StsExchanger.exchange does that.
    """
    if override is not None:
        return override
    if stored is not None:
        return stored
    if use_default:
        return DEFAULT_SESSION_DURATION
    raise InvalidDuration(None, "No session duration given and none stored for the profile")


# ---------------------------------------------------------------------------
# Exchange
# ---------------------------------------------------------------------------


class StsExchanger:
    """Calls STS AssumeRoleWithSAML.

    The boto3 client is created on first use unless one is passed in.
    AssumeRoleWithSAML is unsigned, so no AWS credentials are needed.
    """

    def __init__(self, client=None, region=None):
        self._client = client
        self.region = region

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("sts", region_name=self.region)
        return self._client

    def exchange(self, principal_arn, role_arn, assertion, duration):
        """Return fresh Credentials for *role_arn*.

        Raises InvalidDuration before any network call when *duration* is out
        of range, and TransportFailure when STS rejects or cannot be reached.
        """
        validate_duration(duration)
        log.debug("AssumeRoleWithSAML %s via %s for %ss", role_arn, principal_arn, duration)
        try:
            response = self.client.assume_role_with_saml(
                RoleArn=role_arn,
                PrincipalArn=principal_arn,
                SAMLAssertion=assertion,
                DurationSeconds=duration,
            )
        except ClientError as exc:
            error = exc.response.get("Error", {})
            raise TransportFailure(
                f"STS refused {role_arn}: {error.get('Code', 'Unknown')}: "
                f"{error.get('Message', exc)}"
            ) from exc
        except BotoCoreError as exc:
            raise TransportFailure(f"Could not reach STS for {role_arn}: {exc}") from exc

        return _credentials_from_response(response["Credentials"])


def _credentials_from_response(creds):
    expiration = creds["Expiration"]
    if isinstance(expiration, str):
        expiration = parse_timestamp(expiration)
    elif expiration.tzinfo is None:
        expiration = expiration.replace(tzinfo=datetime.timezone.utc)
    return Credentials(
        creds["AccessKeyId"],
        creds["SecretAccessKey"],
        creds["SessionToken"],
        expiration,
    )


def parse_timestamp(value):
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def format_timestamp(value):
    """Format an aware datetime as ISO-8601 UTC with a ``Z`` suffix."""
    return value.astimezone(datetime.timezone.utc).isoformat().replace("+00:00", "Z")
