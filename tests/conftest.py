"""
tests/conftest.py - shared fixtures

Builds base64 SAML responses and fake STS clients so no test touches the network.
"""

import base64
import datetime
from unittest.mock import MagicMock

import pytest

from saml_aws.profiles import ProfileStore
from saml_aws.sts import Credentials, StsExchanger

PROVIDER = "arn:aws:iam::{account}:saml-provider/Okta"
ROLE = "arn:aws:iam::{account}:role/{role}"

EXPIRATION = datetime.datetime(2030, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


def role_value(account, role, reverse=False):
    provider_arn = PROVIDER.format(account=account)
    role_arn = ROLE.format(account=account, role=role)
    return f"{role_arn},{provider_arn}" if reverse else f"{provider_arn},{role_arn}"


def build_saml_xml(role_values, session_duration=None, session_name=None, name_id="jdoe@example.com"):
    attrs = ['<saml2:Attribute Name="https://aws.amazon.com/SAML/Attributes/Role">']
    attrs += [f"<saml2:AttributeValue>{v}</saml2:AttributeValue>" for v in role_values]
    attrs.append("</saml2:Attribute>")
    if session_duration is not None:
        attrs.append(
            '<saml2:Attribute Name="https://aws.amazon.com/SAML/Attributes/SessionDuration">'
            f"<saml2:AttributeValue>{session_duration}</saml2:AttributeValue></saml2:Attribute>"
        )
    if session_name is not None:
        attrs.append(
            '<saml2:Attribute Name="https://aws.amazon.com/SAML/Attributes/RoleSessionName">'
            f"<saml2:AttributeValue>{session_name}</saml2:AttributeValue></saml2:Attribute>"
        )
    subject = f"<saml2:Subject><saml2:NameID>{name_id}</saml2:NameID></saml2:Subject>" if name_id else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<saml2p:Response xmlns:saml2p="urn:oasis:names:tc:SAML:2.0:protocol" ID="id1" Version="2.0">'
        '<saml2:Assertion xmlns:saml2="urn:oasis:names:tc:SAML:2.0:assertion" ID="id2" Version="2.0">'
        f"{subject}"
        f"<saml2:AttributeStatement>{''.join(attrs)}</saml2:AttributeStatement>"
        "</saml2:Assertion></saml2p:Response>"
    )


def encode(xml):
    return base64.b64encode(xml.encode("utf-8")).decode("ascii")


@pytest.fixture
def make_assertion():
    """Return a builder: make_assertion([(account, role), ...], **attrs) -> base64 assertion."""

    def _make(pairs, **kwargs):
        return encode(build_saml_xml([role_value(a, r) for a, r in pairs], **kwargs))

    return _make


def make_credentials(suffix="1", expiration=EXPIRATION):
    return Credentials(f"ASIAKEY{suffix}", f"secret{suffix}", f"token{suffix}", expiration)


def sts_response(suffix="1", expiration=EXPIRATION):
    return {
        "Credentials": {
            "AccessKeyId": f"ASIAKEY{suffix}",
            "SecretAccessKey": f"secret{suffix}",
            "SessionToken": f"token{suffix}",
            "Expiration": expiration,
        }
    }


@pytest.fixture
def mock_sts_client():
    """STS client whose assume_role_with_saml returns fresh keys per call."""
    client = MagicMock()
    counter = {"n": 0}

    def _assume(**kwargs):
        counter["n"] += 1
        return sts_response(str(counter["n"]))

    client.assume_role_with_saml.side_effect = _assume
    return client


@pytest.fixture
def exchanger(mock_sts_client):
    return StsExchanger(client=mock_sts_client)


@pytest.fixture
def store(tmp_path):
    return ProfileStore(str(tmp_path / "credentials"))
