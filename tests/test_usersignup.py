import pytest

from toolchainkit.usersignup import MAX_LENGTH, is_dns1123_label, transform_username

PREFIXES = ["openshift", "kube", "default", "redhat", "sandbox"]
SUFFIXES = ["admin"]


@pytest.mark.parametrize(
    ("expected", "username"),
    [
        ("some", "some@example.com"),
        ("so-me", "so-me@example.com"),
        ("at-example-com", "@example.com"),
        ("at-crt", "@"),
        ("some", "some"),
        ("so-me", "so-me"),
        ("so-me", "so-----me"),
        ("so-me", "so_me"),
        ("so-me", "so me"),
        ("so-me", "so me@example.com"),
        ("so-me", "so.me"),
        ("so-me", "so?me"),
        ("so-me", "so:me"),
        ("so-me", "so:#$%!$%^&me"),
        ("crt-crt", ":#$%!$%^&"),
        ("some1", "some1"),
        ("so1me1", "so1me1"),
        ("crt-me", "-me"),
        ("crt-me", "_me"),
        ("me-crt", "me-"),
        ("me-crt", "me_"),
        ("crt-me-crt", "_me_"),
        ("crt-me-crt", "-me-"),
        ("crt-12345", "12345"),
        ("thisisabout20charact", "thisisabout20characterslong@example.com"),
        ("isexactly20character", "isexactly20character@example.com"),
        ("isexactly20character", "isexactly20character"),
        ("isexactly21characte", "isexactly21characte-r"),
        ("isexactly20charactr", "isexactly20charactr-"),
        ("thisis19characters-c", "thisis19characters-"),
        ("john-crtadmin-crt", "john-crtadmin"),
        ("johny-long-crtad-crt", "johny-long-crtadmin-"),
        ("crt-nshift-test-user", "openshift-test-user"),
        ("crt-kube-test-user", "kube-test-user"),
    ],
)
def test_transform_username(expected, username):
    result = transform_username(username, PREFIXES, SUFFIXES)
    assert is_dns1123_label(result) == []
    assert result == expected
    assert len(result) <= MAX_LENGTH


def test_no_forbidden_affixes():
    assert transform_username("kube-admin", [], []) == "kube-admin"


def test_is_dns1123_label_valid():
    assert is_dns1123_label("my-name") == []
    assert is_dns1123_label("123-abc") == []


@pytest.mark.parametrize("value", ["My-name", "-abc", "abc-", "", "a_b"])
def test_is_dns1123_label_invalid_format(value):
    errors = is_dns1123_label(value)
    assert len(errors) == 1
    assert "RFC 1123 label" in errors[0]


def test_is_dns1123_label_too_long():
    errors = is_dns1123_label("a" * 64)
    assert errors == ["must be no more than 63 characters"]