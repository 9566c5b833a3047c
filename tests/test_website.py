"""Tests for website URL helpers."""

import pytest

from company_classifier.services.website import (
    company_name_from_website,
    extract_domain,
    is_valid_url,
    normalize_url,
)


class TestNormalizeUrl:
    @pytest.mark.parametrize("raw,expected", [
        ("acme.com", "https://acme.com"),
        ("http://acme.com/", "http://acme.com"),
        ("  https://acme.com//  ", "https://acme.com"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_url(raw) == expected


class TestValidUrl:
    @pytest.mark.parametrize("url,valid", [
        ("https://acme.com", True),
        ("http://sub.acme.co.uk/path", True),
        ("ftp://acme.com", False),
        ("https://localhost", False),
        ("not a url", False),
    ])
    def test_valid(self, url, valid):
        assert is_valid_url(url) is valid


class TestExtractDomain:
    def test_lowercases_host(self):
        assert extract_domain("https://WWW.Acme.com/about") == "www.acme.com"

    def test_no_host(self):
        assert extract_domain("acme") == ""


class TestCompanyName:
    @pytest.mark.parametrize("website,name", [
        ("https://www.acme.com", "Acme"),
        ("https://get-acme-app.io", "Acme"),
        ("https://the-widget-company.com", "Widget"),
        ("blue-sky.org", "Blue Sky"),
        ("https://192.168.0.1", ""),
    ])
    def test_derived_name(self, website, name):
        assert company_name_from_website(website) == name
