# tests/test_assertion.py
"""
saml_aws/assertion.py tests

- parse_assertion: tagged result, role pairs in either order, attributes
- find_by_account_and_role: exact match or None
- require_bindings: failure tag becomes MalformedAssertion
"""

import base64

import pytest

from conftest import build_saml_xml, encode, role_value
from saml_aws.assertion import (
    RoleBinding,
    decode_assertion,
    find_by_account_and_role,
    parse_assertion,
    require_bindings,
)
from saml_aws.errors import MalformedAssertion


class TestParseAssertion:
    """parse_assertion"""

    def test_extracts_bindings_in_document_order(self, make_assertion):
        parsed = parse_assertion(make_assertion([("111111111111", "Admin"), ("222222222222", "ReadOnly")]))

        assert parsed.ok is True
        assert parsed.error is None
        assert parsed.bindings == (
            RoleBinding("arn:aws:iam::111111111111:saml-provider/Okta", "arn:aws:iam::111111111111:role/Admin"),
            RoleBinding("arn:aws:iam::222222222222:saml-provider/Okta", "arn:aws:iam::222222222222:role/ReadOnly"),
        )

    def test_binding_exposes_account_and_role(self, make_assertion):
        binding = parse_assertion(make_assertion([("111111111111", "Admin")])).bindings[0]

        assert binding.account_id == "111111111111"
        assert binding.role_name == "Admin"

    def test_role_before_provider_is_accepted(self):
        assertion = encode(build_saml_xml([role_value("111111111111", "Admin", reverse=True)]))

        binding = parse_assertion(assertion).bindings[0]

        assert binding.principal_arn == "arn:aws:iam::111111111111:saml-provider/Okta"
        assert binding.role_arn == "arn:aws:iam::111111111111:role/Admin"

    def test_role_with_path_uses_last_segment(self):
        value = "arn:aws:iam::111111111111:saml-provider/Okta,arn:aws:iam::111111111111:role/team/Dev"

        binding = parse_assertion(encode(build_saml_xml([value]))).bindings[0]

        assert binding.role_name == "Dev"

    def test_no_roles_is_a_successful_empty_parse(self):
        parsed = parse_assertion(encode(build_saml_xml([])))

        assert parsed.ok is True
        assert parsed.bindings == ()

    def test_unparseable_role_values_are_ignored(self):
        values = ["garbage", "arn:aws:iam::1:role/A", role_value("111111111111", "Admin")]

        parsed = parse_assertion(encode(build_saml_xml(values)))

        assert [b.role_name for b in parsed.bindings] == ["Admin"]

    def test_duplicate_account_role_kept_once(self):
        other = "arn:aws:iam::111111111111:saml-provider/Other,arn:aws:iam::111111111111:role/Admin"
        values = [role_value("111111111111", "Admin"), role_value("111111111111", "Admin"), other]

        parsed = parse_assertion(encode(build_saml_xml(values)))

        assert len(parsed.bindings) == 1
        assert parsed.bindings[0].principal_arn.endswith("saml-provider/Okta")

    def test_session_duration_attribute(self, make_assertion):
        parsed = parse_assertion(make_assertion([("111111111111", "Admin")], session_duration=7200))

        assert parsed.session_duration == 7200

    def test_session_duration_absent(self, make_assertion):
        assert parse_assertion(make_assertion([("111111111111", "Admin")])).session_duration is None

    def test_principal_name_prefers_role_session_name(self, make_assertion):
        parsed = parse_assertion(make_assertion([("111111111111", "Admin")], session_name="jane"))

        assert parsed.principal_name == "jane"

    def test_principal_name_falls_back_to_name_id(self, make_assertion):
        parsed = parse_assertion(make_assertion([("111111111111", "Admin")]))

        assert parsed.principal_name == "jdoe@example.com"

    def test_assertion_with_embedded_newlines(self, make_assertion):
        assertion = make_assertion([("111111111111", "Admin")])
        wrapped = "\n".join(assertion[i:i + 76] for i in range(0, len(assertion), 76))

        assert parse_assertion(wrapped).ok is True

    @pytest.mark.parametrize(
        "assertion",
        [
            "",
            "   ",
            None,
            "not base64 at all!!",
            base64.b64encode(b"\xff\xfe\xfa").decode(),
            encode("<unclosed>"),
            encode("<html><body>login page</body></html>"),
        ],
    )
    def test_malformed_assertions_fail_without_raising(self, assertion):
        parsed = parse_assertion(assertion)

        assert parsed.ok is False
        assert parsed.bindings == ()
        assert parsed.error


class TestRequireBindings:
    """require_bindings"""

    def test_returns_bindings(self, make_assertion):
        parsed = parse_assertion(make_assertion([("111111111111", "Admin")]))

        assert require_bindings(parsed) == parsed.bindings

    def test_raises_on_failure_tag(self):
        with pytest.raises(MalformedAssertion, match="base64"):
            require_bindings(parse_assertion("not base64 at all!!"))


class TestFindByAccountAndRole:
    """find_by_account_and_role"""

    @pytest.fixture
    def bindings(self, make_assertion):
        pairs = [("111111111111", "Admin"), ("111111111111", "ReadOnly"), ("222222222222", "Admin")]
        return parse_assertion(make_assertion(pairs)).bindings

    def test_exact_match(self, bindings):
        binding = find_by_account_and_role(bindings, "222222222222", "Admin")

        assert binding.role_arn == "arn:aws:iam::222222222222:role/Admin"

    def test_matches_at_most_one(self, bindings):
        matches = [b for b in bindings if (b.account_id, b.role_name) == ("111111111111", "Admin")]

        assert len(matches) == 1
        assert find_by_account_and_role(bindings, "111111111111", "Admin") == matches[0]

    @pytest.mark.parametrize(
        "account_id, role_name",
        [
            ("333333333333", "Admin"),
            ("111111111111", "admin"),
            ("111111111111", "Adm"),
            ("11111111111", "Admin"),
        ],
    )
    def test_no_partial_or_case_insensitive_match(self, bindings, account_id, role_name):
        assert find_by_account_and_role(bindings, account_id, role_name) is None

    def test_empty_bindings(self):
        assert find_by_account_and_role((), "111111111111", "Admin") is None


class TestDecodeAssertion:
    """decode_assertion"""

    def test_returns_xml_text(self, make_assertion):
        assert "saml2p:Response" in decode_assertion(make_assertion([("111111111111", "Admin")]))

    def test_raises_for_empty(self):
        with pytest.raises(MalformedAssertion):
            decode_assertion("")
