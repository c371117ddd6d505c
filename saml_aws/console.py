"""
AWS console side of an interactive login.

The AWS sign-in page that receives the SAML response lists every account the
principal may enter, headed ``Account: <alias> (<id>)``.  That page is the
only place account aliases show up, so it is scraped here and combined with
the user's account/role choice into a ConsoleSelection.
"""

import logging
import re
from collections import namedtuple

import requests
from bs4 import BeautifulSoup

from .errors import RoleNotAuthorized

log = logging.getLogger(__name__)

SIGNIN_URL = "https://signin.aws.amazon.com/saml"
REQUEST_TIMEOUT = 30

_ACCOUNT_HEADING = re.compile(r"Account:\s*(?:(?P<alias>.+?)\s+)?\(?(?P<id>\d{12})\)?\s*$")

ConsoleSelection = namedtuple(
    "ConsoleSelection", ["account_id", "account_alias", "role_name", "principal_name"]
)

# ---------------------------------------------------------------------------
# Account aliases
# ---------------------------------------------------------------------------


def fetch_account_aliases(assertion, http_session=None, signin_url=SIGNIN_URL):
    """Return ``{account_id: alias}`` from the AWS sign-in role page.

    Aliases are only used for display, so any failure is logged and an empty
    mapping returned.
    """
    session = http_session or requests.Session()
    try:
        resp = session.post(
            signin_url,
            data={"SAMLResponse": assertion},
            allow_redirects=True,
            timeout=REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        log.warning("Could not load account aliases from %s: %s", signin_url, exc)
        return {}
    return parse_account_aliases(resp.text)


def parse_account_aliases(html):
    """Return ``{account_id: alias}`` for every aliased account on the page."""
    soup = BeautifulSoup(html, "lxml")
    aliases = {}
    for tag in soup.find_all("div", class_="saml-account-name"):
        match = _ACCOUNT_HEADING.match(tag.get_text(" ", strip=True))
        if match and match.group("alias"):
            aliases[match.group("id")] = match.group("alias")
    return aliases


# ---------------------------------------------------------------------------
# Account / role selection
# ---------------------------------------------------------------------------


def _group_by_account(bindings):
    """Return {account_id: [binding, ...], ...} preserving insertion order."""
    groups = {}
    for binding in bindings:
        groups.setdefault(binding.account_id, []).append(binding)
    return groups


def _account_label(account_id, aliases):
    alias = aliases.get(account_id)
    return f"{account_id}  {alias}" if alias else account_id


def _choose(prompt, label, count):
    while True:
        try:
            idx = int(prompt(f"\nSelect {label}: ").strip()) - 1
            if 0 <= idx < count:
                return idx
        except ValueError:
            pass
        print("Invalid selection, please try again.")


def select_binding(bindings, aliases=None, account=None, role=None, prompt=input):
    """Interactive (or automatic) account and role selection.

    *account* may be an account ID or alias, *role* a role name.  When the
    pre-selection leaves exactly one binding it is returned without
    prompting.  Raises RoleNotAuthorized when nothing matches.
    """
    aliases = aliases or {}
    if not bindings:
        raise RoleNotAuthorized(
            account, role,
            "No AWS roles found in SAML assertion. "
            "Ensure the identity provider app is configured to include Role attributes.",
        )

    if account or role:
        candidates = [
            b for b in bindings
            if (not account or b.account_id == account or aliases.get(b.account_id) == account)
            and (not role or b.role_name == role)
        ]
        if not candidates:
            raise RoleNotAuthorized(
                account, role,
                f"No role found matching account={account or 'any'}, role={role or 'any'}",
            )
        if len(candidates) == 1:
            return candidates[0]
        bindings = candidates  # fall through to interactive selection

    groups = _group_by_account(bindings)
    account_ids = sorted(groups.keys())

    if len(account_ids) == 1:
        chosen_account = account_ids[0]
    else:
        print("\nAvailable AWS accounts:")
        for i, acct in enumerate(account_ids):
            count = len(groups[acct])
            print(f"  [{i + 1}] {_account_label(acct, aliases)}  ({count} role{'s' if count != 1 else ''})")
        chosen_account = account_ids[_choose(prompt, "account", len(account_ids))]

    account_bindings = groups[chosen_account]
    if len(account_bindings) == 1:
        return account_bindings[0]

    print(f"\nAvailable roles for account {_account_label(chosen_account, aliases)}:")
    for i, binding in enumerate(account_bindings):
        print(f"  [{i + 1}] {binding.role_name}")
        print(f"       {binding.role_arn}")
    return account_bindings[_choose(prompt, "role", len(account_bindings))]


def build_selection(binding, aliases=None, principal_name=None):
    """Return the ConsoleSelection for *binding*; the alias defaults to the account ID."""
    aliases = aliases or {}
    return ConsoleSelection(
        binding.account_id,
        aliases.get(binding.account_id, binding.account_id),
        binding.role_name,
        principal_name,
    )
