"""
Login and refresh flows.

perform_login exchanges one console selection for credentials and fails as a
whole on any error.  refresh_profiles renews every stored profile from one
shared assertion and records failures per profile instead.
"""

import logging
from collections import namedtuple

from .assertion import parse_assertion, require_bindings
from .errors import ConfigFileError, InvalidDuration, RoleNotAuthorized, TransportFailure
from .resolver import resolve_role
from .sts import resolve_duration

log = logging.getLogger(__name__)

SUCCESS = "success"
FAILURE = "failure"
SKIPPED = "skipped"

LoginResult = namedtuple(
    "LoginResult",
    [
        "account_alias",
        "account_id",
        "principal_name",
        "role_name",
        "expiration",
        "credentials",
        "profile",
    ],
)

RefreshOutcome = namedtuple("RefreshOutcome", ["name", "status", "reason", "expiration"])


# ---------------------------------------------------------------------------
# Single login
# ---------------------------------------------------------------------------


def perform_login(selection, assertion, exchanger, duration=None, profile=None, store=None):
    """Assume the role picked in *selection* and optionally save it as *profile*.

    *duration* falls back to the default session length when not given.
    Every failure propagates; *profile* is only written after STS returned
    credentials.
    """
    if profile and store is None:
        raise ValueError(f"A profile store is required to save profile '{profile}'")

    bindings = require_bindings(parse_assertion(assertion))
    principal_arn, role_arn = resolve_role(bindings, selection.account_id, selection.role_name)
    duration = resolve_duration(duration, use_default=True)

    credentials = exchanger.exchange(principal_arn, role_arn, assertion, duration)

    if profile:
        store.upsert(profile, selection.account_id, selection.role_name, duration, credentials)
        log.info("Saved credentials for %s/%s as profile %s",
                 selection.account_id, selection.role_name, profile)

    return LoginResult(
        selection.account_alias,
        selection.account_id,
        selection.principal_name,
        selection.role_name,
        credentials.expiration,
        credentials,
        profile,
    )


# ---------------------------------------------------------------------------
# Bulk refresh
# ---------------------------------------------------------------------------


def refresh_profiles(assertion, store, exchanger, name=None, override_duration=None):
    """Renew stored profiles with one SAML assertion.

    Visits every profile in *store* (or only the one called *name*) once, in
    store order, and returns one RefreshOutcome per profile.  Profiles that
    do not record an account and role are reported as skipped.  A profile
    that cannot be resolved, exchanged or saved is reported as a failure
    and the pass carries on.  Raises MalformedAssertion before touching any profile
    when the assertion cannot be parsed.
    """
    bindings = require_bindings(parse_assertion(assertion))

    outcomes = []
    for profile in store.get(name):
        if not profile.eligible:
            log.debug("Skipping profile %s: no SAML account/role recorded", profile.name)
            outcomes.append(RefreshOutcome(profile.name, SKIPPED, None, None))
            continue

        try:
            principal_arn, role_arn = resolve_role(bindings, profile.account_id, profile.role_name)
            duration = resolve_duration(override_duration, profile.duration)
            credentials = exchanger.exchange(principal_arn, role_arn, assertion, duration)
        except (RoleNotAuthorized, InvalidDuration, TransportFailure) as exc:
            log.warning("Could not refresh profile %s (%s/%s): %s",
                        profile.name, profile.account_id, profile.role_name, exc)
            outcomes.append(RefreshOutcome(profile.name, FAILURE, str(exc), None))
            continue

        try:
            store.upsert(profile.name, profile.account_id, profile.role_name, duration, credentials)
        except (OSError, ConfigFileError) as exc:
            log.warning("Could not save profile %s: %s", profile.name, exc)
            outcomes.append(RefreshOutcome(profile.name, FAILURE, f"could not save profile: {exc}", None))
            continue
        outcomes.append(RefreshOutcome(profile.name, SUCCESS, None, credentials.expiration))

    return outcomes
