# tests/test_signer.py
import hashlib
import hmac

import pytest

from signed_image_proxy.tokens.codec import decode
from signed_image_proxy.tokens.signer import Signer


def test_sign_is_hmac_sha256_over_locator_and_expiry():
    signer = Signer("test-secret")
    expected = hmac.new(b"test-secret", b"/uploads/a.png|1700000300", hashlib.sha256).hexdigest()
    assert signer.sign("/uploads/a.png", 1700000300) == expected
    assert len(expected) == 64


def test_sign_is_deterministic():
    a = Signer("test-secret")
    b = Signer("test-secret")
    assert a.sign("/x.png", 123) == b.sign("/x.png", 123)


def test_sign_depends_on_secret_locator_and_expiry():
    signer = Signer("test-secret")
    base = signer.sign("/x.png", 123)
    assert Signer("other-secret").sign("/x.png", 123) != base
    assert signer.sign("/y.png", 123) != base
    assert signer.sign("/x.png", 124) != base


def test_issue_token_layout(clock):
    signer = Signer("test-secret", clock=clock)
    issued = signer.issue_token("https://cdn.example.com/shoe.png", 300)

    assert issued.expires_at == int(clock()) + 300
    encoded, expiry, sig = issued.token.split(".")
    assert decode(encoded) == "https://cdn.example.com/shoe.png"
    assert expiry == str(issued.expires_at)
    assert sig == signer.sign("https://cdn.example.com/shoe.png", issued.expires_at)


def test_same_inputs_same_token(clock):
    signer = Signer("test-secret", clock=clock)
    assert signer.issue_token("/a.png", 60).token == signer.issue_token("/a.png", 60).token


def test_empty_secret_is_fatal():
    with pytest.raises(ValueError, match="IMAGE_PROXY_SECRET"):
        Signer("")


@pytest.mark.parametrize("ttl", [0, -5])
def test_non_positive_ttl_rejected(ttl):
    with pytest.raises(ValueError):
        Signer("test-secret").issue_token("/a.png", ttl)
