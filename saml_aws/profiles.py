"""
Named credential profiles kept in the AWS shared credentials file.

Besides the usual key material each managed section records which account and
role the credentials belong to and the session duration used to obtain them,
so the profile can be renewed later from a fresh SAML assertion:

    [prod]
    aws_access_key_id = ASIA...
    aws_secret_access_key = ...
    aws_session_token = ...
    aws_session_expiration = 2024-05-01T12:00:00Z
    saml_account_id = 111111111111
    saml_role_name = Admin
    saml_session_duration = 1800

The store does no locking.  Running two saml-aws processes against the same
file at once is not supported; the last writer wins.
"""

import configparser
import logging
import os
import tempfile
from collections import namedtuple

from .errors import ConfigFileError
from .sts import Credentials, format_timestamp, parse_timestamp, validate_duration

log = logging.getLogger(__name__)

AWS_CREDENTIALS_PATH = os.path.expanduser("~/.aws/credentials")

ACCESS_KEY = "aws_access_key_id"
SECRET_KEY = "aws_secret_access_key"
SESSION_TOKEN = "aws_session_token"
EXPIRATION = "aws_session_expiration"
ACCOUNT_ID = "saml_account_id"
ROLE_NAME = "saml_role_name"
DURATION = "saml_session_duration"

MANAGED_KEYS = (ACCESS_KEY, SECRET_KEY, SESSION_TOKEN, EXPIRATION, ACCOUNT_ID, ROLE_NAME, DURATION)


class Profile(namedtuple("Profile", ["name", "account_id", "role_name", "duration", "credentials"])):
    """A stored profile.  Any field but ``name`` may be None."""

    __slots__ = ()

    @property
    def eligible(self):
        """True when the profile records both the account and the role."""
        return bool(self.account_id) and bool(self.role_name)


def _new_parser():
    return configparser.ConfigParser(interpolation=None)


def _read(path):
    parser = _new_parser()
    if os.path.exists(path):
        try:
            parser.read(path)
        except configparser.Error as exc:
            raise ConfigFileError(f"Cannot parse {path}: {exc}") from exc
    return parser


def _write_atomic(parser, path):
    """Write *parser* to *path* by replacing the file in one step.

    The data goes to a temporary file in the same directory, which is then
    renamed over *path*, so readers see either the old or the new content.
    """
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".saml-aws-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as fh:
            parser.write(fh)
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class ProfileStore:
    """Profiles persisted in an AWS shared credentials file."""

    def __init__(self, path=AWS_CREDENTIALS_PATH, config_path=None):
        self.path = os.path.expanduser(path)
        # ~/.aws/config lives next to ~/.aws/credentials
        if config_path is None:
            config_path = os.path.join(os.path.dirname(self.path) or ".", "config")
        self.config_path = os.path.expanduser(config_path)

    def __repr__(self):
        return f"ProfileStore({self.path!r})"

    def get(self, name=None):
        """Return stored profiles in file order.

        With *name* only the profile of that exact name is returned.  An
        empty list means nothing matched.
        """
        parser = _read(self.path)
        return [
            _profile_from_section(section, parser[section])
            for section in parser.sections()
            if name is None or section == name
        ]

    def upsert(self, name, account_id, role_name, duration, credentials):
        """Create profile *name* or overwrite all of its managed fields.

        Keys saml-aws does not manage (``region`` for instance) are kept.
        The file is rewritten atomically, so a failed write leaves the old
        profile untouched.
        """
        if not name:
            raise ValueError("Profile name must not be empty")
        if not account_id or not role_name:
            raise ValueError(f"Profile '{name}' needs both an account ID and a role name")
        if credentials is None:
            raise ValueError(f"No credentials given for profile '{name}'")
        validate_duration(duration)

        parser = _read(self.path)
        if not parser.has_section(name):
            parser.add_section(name)

        values = {
            ACCESS_KEY: credentials.access_key_id,
            SECRET_KEY: credentials.secret_access_key,
            SESSION_TOKEN: credentials.session_token,
            EXPIRATION: format_timestamp(credentials.expiration),
            ACCOUNT_ID: account_id,
            ROLE_NAME: role_name,
            DURATION: str(duration),
        }
        for key in MANAGED_KEYS:
            parser.remove_option(name, key)
        for key, value in values.items():
            parser.set(name, key, value)

        _write_atomic(parser, self.path)
        log.debug("Wrote profile %s to %s", name, self.path)
        return Profile(name, account_id, role_name, duration, credentials)

    def set_region(self, name, region):
        """Record *region* and JSON output for profile *name* in the AWS config file."""
        aws_cfg = _read(self.config_path)

        cfg_section = "default" if name == "default" else f"profile {name}"
        if not aws_cfg.has_section(cfg_section):
            aws_cfg.add_section(cfg_section)
        aws_cfg.set(cfg_section, "region", region)
        aws_cfg.set(cfg_section, "output", "json")

        _write_atomic(aws_cfg, self.config_path)


def _profile_from_section(name, section):
    duration = section.get(DURATION)
    if duration is not None:
        try:
            duration = int(duration)
        except ValueError:
            log.warning("Profile %s has a non-numeric %s %r", name, DURATION, duration)
            duration = None

    credentials = None
    if section.get(ACCESS_KEY):
        expiration = section.get(EXPIRATION)
        if expiration:
            try:
                expiration = parse_timestamp(expiration)
            except ValueError:
                log.warning("Profile %s has an unreadable %s %r", name, EXPIRATION, expiration)
                expiration = None
        credentials = Credentials(
            section.get(ACCESS_KEY),
            section.get(SECRET_KEY),
            section.get(SESSION_TOKEN),
            expiration or None,
        )

    return Profile(
        name,
        section.get(ACCOUNT_ID) or None,
        section.get(ROLE_NAME) or None,
        duration,
        credentials,
    )
