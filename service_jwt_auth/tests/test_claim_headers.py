"""
Unit tests for claim header projection.
"""

import jwt
import pytest

from service_jwt_auth.app.auth.claim_headers import project_claim_headers, render_header_value
from service_jwt_auth.app.auth.models import header_safe_value
from service_jwt_auth.app.config import ClaimHeaderMapping
from shared.test_helpers import DEFAULT_HS256_SECRET as HS256_SECRET


def _mappings(pairs):
    return [ClaimHeaderMapping(claim_path=path, header=header) for path, header in pairs]


class TestRenderHeaderValue:
    """Test cases for render_header_value."""

    @pytest.mark.parametrize("value,expected", [
        ("user-1", "user-1"),
        (42, "42"),
        (1.5, "1.5"),
        (True, "true"),
        (False, "false"),
        (["b", "a"], '["b","a"]'),
        ({"z": 1, "a": [True]}, '{"a":[true],"z":1}'),
        ({"name": "名"}, '{"name":"\\u540d"}'),
    ])
    def test_rendering(self, value, expected):
        assert render_header_value(value) == expected


class TestHeaderSafeValue:
    """Test cases for header_safe_value."""

    @pytest.mark.parametrize("text", ["user-1", "caf\u00e9", "a\tb", ""])
    def test_safe_text_is_unchanged(self, text):
        assert header_safe_value(text) == text

    @pytest.mark.parametrize("text,expected", [
        ("\u540d\u524d", '"\\u540d\\u524d"'),
        ("user\r\nX-Admin: true", '"user\\r\\nX-Admin: true"'),
        ("caf\u00e9\n", '"caf\\u00e9\\n"'),
    ])
    def test_unsafe_text_is_json_escaped(self, text, expected):
        rendered = header_safe_value(text)

        assert rendered == expected
        rendered.encode("latin-1")


class TestProjectClaimHeaders:
    """Test cases for project_claim_headers."""

    def test_projects_present_claims(self, make_request, token_generator):
        token = token_generator.generate_hs256_token({
            "sub": "user-9",
            "realm_access": {"roles": ["reader", "writer"]},
            "https://example.com/tenant": "tenant-3",
        })
        request = make_request()

        project_claim_headers(request, token, _mappings([
            ("$.sub", "X-Jwt-Subject"),
            ("$.realm_access.roles", "X-Jwt-Roles"),
            ("$['https://example.com/tenant']", "X-Tenant-ID"),
        ]))

        assert request.forwarded_headers() == {
            "X-Jwt-Subject": "user-9",
            "X-Jwt-Roles": '["reader","writer"]',
            "X-Tenant-ID": "tenant-3",
        }

    def test_absent_and_null_claims_are_skipped(self, make_request):
        token = jwt.encode({"iss": "partner-issuer", "email": None}, HS256_SECRET, algorithm="HS256")
        request = make_request()

        project_claim_headers(request, token, _mappings([
            ("$.email", "X-Email"),
            ("$.profile.name", "X-Name"),
        ]))

        assert request.header_mutations() == []

    def test_missing_token_does_nothing(self, make_request):
        request = make_request()

        project_claim_headers(request, None, _mappings([("$.sub", "X-Jwt-Subject")]))

        assert request.header_mutations() == []

    def test_malformed_token_does_nothing(self, make_request):
        request = make_request()

        project_claim_headers(request, "not-a-jwt", _mappings([("$.sub", "X-Jwt-Subject")]))

        assert request.header_mutations() == []

    def test_non_latin1_and_multiline_claims_are_escaped(self, make_request):
        token = jwt.encode(
            {"iss": "partner-issuer", "name": "名前", "note": "line\r\nX-Admin: true"},
            HS256_SECRET,
            algorithm="HS256",
        )
        request = make_request()

        project_claim_headers(request, token, _mappings([
            ("$.name", "X-Jwt-Name"),
            ("$.note", "X-Jwt-Note"),
        ]))

        assert request.forwarded_headers() == {
            "X-Jwt-Name": '"\\u540d\\u524d"',
            "X-Jwt-Note": '"line\\r\\nX-Admin: true"',
        }
