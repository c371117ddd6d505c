"""
SAML assertion parsing.

Decodes the base64 SAML response handed out by the identity provider and
extracts the (identity provider, role) ARN pairs it authorizes.  Parsing never
raises: callers receive a ParsedAssertion and branch on its ``ok`` flag.
"""

import base64
import binascii
import logging
import re
import xml.etree.ElementTree as ET
from collections import namedtuple

from .errors import MalformedAssertion

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SAML_ROLE_ATTRIBUTE = "https://aws.amazon.com/SAML/Attributes/Role"
SAML_SESSION_ATTRIBUTE = "https://aws.amazon.com/SAML/Attributes/SessionDuration"
SAML_SESSION_NAME_ATTRIBUTE = "https://aws.amazon.com/SAML/Attributes/RoleSessionName"

ASSERTION_NS = "{urn:oasis:names:tc:SAML:2.0:assertion}"
PROTOCOL_NS = "{urn:oasis:names:tc:SAML:2.0:protocol}"

_WHITESPACE = re.compile(r"\s+")

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class RoleBinding(namedtuple("RoleBinding", ["principal_arn", "role_arn"])):
    """An identity provider ARN paired with a role it may assume."""

    __slots__ = ()

    @property
    def account_id(self):
        return self.role_arn.split(":")[4]

    @property
    def role_name(self):
        return self.role_arn.split("/")[-1]


ParsedAssertion = namedtuple(
    "ParsedAssertion",
    ["ok", "bindings", "session_duration", "principal_name", "error"],
)


def _failure(error):
    return ParsedAssertion(False, (), None, None, error)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def decode_assertion(assertion):
    """Return the XML text of a base64 SAML assertion.

    Raises MalformedAssertion when the blob is not base64 encoded UTF-8.
    """
    if not isinstance(assertion, str) or not assertion.strip():
        raise MalformedAssertion("SAML assertion is empty")
    try:
        raw = base64.b64decode(_WHITESPACE.sub("", assertion), validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise MalformedAssertion(f"SAML assertion is not valid base64: {exc}") from exc


def parse_assertion(assertion):
    """Decode and parse the SAML assertion.

    Returns a ParsedAssertion.  On success ``bindings`` is a tuple of
    RoleBinding in document order with at most one entry per
    (account_id, role_name); an assertion granting no roles is still a
    success.  On failure ``ok`` is False and ``error`` says why.
    """
    try:
        saml_xml = decode_assertion(assertion)
    except MalformedAssertion as exc:
        return _failure(str(exc))

    try:
        root = ET.fromstring(saml_xml)
    except ET.ParseError as exc:
        return _failure(f"SAML assertion is not well-formed XML: {exc}")

    if root.tag not in (f"{PROTOCOL_NS}Response", f"{ASSERTION_NS}Assertion"):
        return _failure(f"Not a SAML 2.0 response (root element {root.tag})")

    bindings = []
    seen = {}
    session_duration = None
    principal_name = None

    for attr in root.iter(f"{ASSERTION_NS}Attribute"):
        attr_name = attr.get("Name", "")
        values = [
            (value_el.text or "").strip()
            for value_el in attr.iter(f"{ASSERTION_NS}AttributeValue")
        ]

        if attr_name == SAML_ROLE_ATTRIBUTE:
            for text in values:
                binding = _parse_role_value(text)
                if binding is None:
                    log.debug("Ignoring unparseable role value %r", text)
                    continue
                key = (binding.account_id, binding.role_name)
                if key in seen:
                    if seen[key] != binding:
                        log.warning(
                            "Duplicate role %s in account %s with a different "
                            "provider, keeping %s",
                            binding.role_name, binding.account_id,
                            seen[key].principal_arn,
                        )
                    continue
                seen[key] = binding
                bindings.append(binding)

        elif attr_name == SAML_SESSION_ATTRIBUTE:
            for text in values:
                try:
                    session_duration = int(text)
                except ValueError:
                    log.debug("Ignoring non-numeric SessionDuration %r", text)

        elif attr_name == SAML_SESSION_NAME_ATTRIBUTE and values and values[0]:
            principal_name = values[0]

    if principal_name is None:
        name_id = root.find(f".//{ASSERTION_NS}Subject/{ASSERTION_NS}NameID")
        if name_id is not None and (name_id.text or "").strip():
            principal_name = name_id.text.strip()

    return ParsedAssertion(True, tuple(bindings), session_duration, principal_name, None)


def _parse_role_value(text):
    """Parse a single Role attribute value into a RoleBinding.

    The value is a comma-separated pair of ARNs:
    ``arn:aws:iam::ACCT:saml-provider/P,arn:aws:iam::ACCT:role/R``
    or in reverse order.  Returns None if the value cannot be parsed.
    """
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2:
        return None

    role_arn = next((p for p in parts if ":role/" in p), None)
    principal_arn = next((p for p in parts if ":saml-provider/" in p), None)

    if not role_arn or not principal_arn or len(role_arn.split(":")) < 6:
        return None

    return RoleBinding(principal_arn, role_arn)


def require_bindings(parsed):
    """Return the bindings of a parsed assertion or raise MalformedAssertion."""
    if not parsed.ok:
        raise MalformedAssertion(parsed.error)
    return parsed.bindings


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def find_by_account_and_role(bindings, account_id, role_name):
    """Return the binding for *account_id* and *role_name*, or None.

    Matching is exact and case-sensitive on both fields.
    """
    for binding in bindings:
        if binding.account_id == account_id and binding.role_name == role_name:
            return binding
    return None
