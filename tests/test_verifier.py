# tests/test_verifier.py
import pytest

from signed_image_proxy.tokens import FailureReason, HostPolicy, Signer, Verifier
from signed_image_proxy.tokens.codec import encode

ALLOW = ("cdn.example.com",)


def make_verifier(clock, allowed_hosts=(), secret="test-secret", same_origin_host=None):
    signer = Signer(secret, clock=clock)
    return signer, Verifier(signer, HostPolicy(allowed_hosts, same_origin_host=same_origin_host))


def test_valid_token_round_trip(clock):
    signer, verifier = make_verifier(clock)
    token = signer.issue_token("https://cdn.example.com/shoe.png", 300).token
    result = verifier.verify(token)
    assert result.ok
    assert result.locator == "https://cdn.example.com/shoe.png"
    assert result.reason is None


@pytest.mark.parametrize(
    "token",
    [
        "",
        "only-one-part",
        "two.parts",
        "a.b.c.d",
        ".123.abc",
        "aGk..abc",
        "aGk.123.",
    ],
)
def test_structural_garbage_is_invalid_format(clock, token):
    _, verifier = make_verifier(clock)
    result = verifier.verify(token)
    assert not result.ok
    assert result.reason is FailureReason.INVALID_FORMAT


def test_undecodable_locator_is_invalid_format(clock):
    _, verifier = make_verifier(clock)
    assert verifier.verify("a!b.1800000000.abcd").reason is FailureReason.INVALID_FORMAT


@pytest.mark.parametrize("expiry", ["soon", "12e9", "-5", "0123", " 17", "1.5"])
def test_non_numeric_expiry_is_bad_expiry(clock, expiry):
    signer, verifier = make_verifier(clock)
    # "1.5" adds a fourth part, which is caught earlier as a format error
    token = f"{encode('/a.png')}.{expiry}.{signer.sign('/a.png', 1800000000)}"
    result = verifier.verify(token)
    assert not result.ok
    assert result.reason in (FailureReason.BAD_EXPIRY, FailureReason.INVALID_FORMAT)


def test_expiry_enforced(clock):
    signer, verifier = make_verifier(clock)
    issued = signer.issue_token("/uploads/a.png", 1)

    assert verifier.verify(issued.token).ok
    clock.advance(1)  # now == expiresAt is still valid
    assert verifier.verify(issued.token).ok
    clock.advance(1)
    result = verifier.verify(issued.token)
    assert not result.ok
    assert result.reason is FailureReason.EXPIRED


def test_wrong_secret_is_bad_signature(clock):
    other, _ = make_verifier(clock, secret="other-secret")
    _, verifier = make_verifier(clock)
    token = other.issue_token("/uploads/a.png", 60).token
    assert verifier.verify(token).reason is FailureReason.BAD_SIGNATURE


def test_non_ascii_signature_does_not_raise(clock):
    _, verifier = make_verifier(clock)
    token = f"{encode('/a.png')}.1800000000.é€"
    assert verifier.verify(token).reason is FailureReason.BAD_SIGNATURE


def test_tamper_any_single_character(clock):
    signer, verifier = make_verifier(clock)
    token = signer.issue_token("https://cdn.example.com/img/shoe.png", 300).token
    allowed = {
        FailureReason.BAD_SIGNATURE,
        FailureReason.INVALID_FORMAT,
        FailureReason.BAD_EXPIRY,
        FailureReason.EXPIRED,
    }

    for i, original in enumerate(token):
        for replacement in "0aZ_-.":
            if replacement == original:
                continue
            tampered = token[:i] + replacement + token[i + 1:]
            result = verifier.verify(tampered)
            assert not result.ok, f"tampered token at {i} ({original!r}->{replacement!r}) verified"
            assert result.reason in allowed


def test_allow_list_blocks_other_hosts(clock):
    signer, verifier = make_verifier(clock, allowed_hosts=ALLOW)
    # correctly signed, but for a host outside the allow-list
    token = signer.issue_token("https://evil.example.com/x.png", 60).token
    result = verifier.verify(token)
    assert not result.ok
    assert result.reason is FailureReason.HOST_NOT_ALLOWED


def test_allow_list_admits_listed_host(clock):
    signer, verifier = make_verifier(clock, allowed_hosts=ALLOW)
    token = signer.issue_token("https://CDN.example.com:8443/x.png", 60).token
    assert verifier.verify(token).ok


def test_root_relative_bypasses_allow_list(clock):
    signer, verifier = make_verifier(clock, allowed_hosts=ALLOW)
    token = signer.issue_token("/uploads/a.png", 60).token
    assert verifier.verify(token).ok


def test_configured_same_origin_host_bypasses_allow_list(clock):
    token_locator = "http://shop.example.com/uploads/a.png"
    signer, verifier = make_verifier(clock, allowed_hosts=ALLOW)
    assert verifier.verify(signer.issue_token(token_locator, 60).token).reason is FailureReason.HOST_NOT_ALLOWED

    signer, verifier = make_verifier(clock, allowed_hosts=ALLOW, same_origin_host="Shop.Example.com")
    assert verifier.verify(signer.issue_token(token_locator, 60).token).ok


def test_only_the_configured_host_counts_as_same_origin(clock):
    signer, verifier = make_verifier(clock, allowed_hosts=ALLOW, same_origin_host="shop.example.com")
    token = signer.issue_token("http://attacker.test/x.png", 60).token
    assert verifier.verify(token).reason is FailureReason.HOST_NOT_ALLOWED


@pytest.mark.parametrize(
    "locator",
    ["javascript:alert(1)", "ftp://cdn.example.com/a.png", "//cdn.example.com/a.png", "not a url", "http://"],
)
def test_unparsable_locator_is_bad_url(clock, locator):
    signer, verifier = make_verifier(clock)
    token = signer.issue_token(locator, 60).token
    assert verifier.verify(token).reason is FailureReason.BAD_URL


def test_empty_allow_list_admits_any_host(clock):
    signer, verifier = make_verifier(clock)
    token = signer.issue_token("https://anything.example.org/x.png", 60).token
    assert verifier.verify(token).ok


def test_verify_never_raises_on_non_string(clock):
    _, verifier = make_verifier(clock)
    assert verifier.verify(None).reason is FailureReason.INVALID_FORMAT
