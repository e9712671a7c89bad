from __future__ import annotations

from blockcheck.engine.normalize import normalize_domain, normalize_inputs


def test_normalize_domain_url_with_scheme_path_and_query():
    assert normalize_domain("https://Example.COM/path?x=1") == "example.com"


def test_normalize_domain_strips_port_from_url():
    assert normalize_domain("http://example.com:8080/index.html") == "example.com"


def test_normalize_domain_plain_with_path():
    assert normalize_domain("example.com/path") == "example.com"


def test_normalize_domain_uppercase_and_whitespace():
    assert normalize_domain("  EXAMPLE.COM \n") == "example.com"


def test_normalize_domain_empty_inputs():
    assert normalize_domain("") == ""
    assert normalize_domain("   ") == ""
    assert normalize_domain(None) == ""


def test_normalize_domain_unparsable_url_falls_back_to_raw():
    assert normalize_domain("http://[::1") == "http://[::1"
    assert normalize_domain("HTTPS://") == "https://"


def test_normalize_domain_plain_keeps_everything_before_first_slash():
    assert normalize_domain("sub.example.co.id:443/x/y") == "sub.example.co.id:443"


def test_normalize_inputs_drops_empty_and_keeps_order():
    pairs = normalize_inputs(["https://B.test/x", "  ", "a.test", ""])
    assert pairs == [(0, "https://B.test/x", "b.test"), (2, "a.test", "a.test")]
