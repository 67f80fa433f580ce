import base64
import re

import pytest

from netsmog.auth import codec
from netsmog.auth.secrets import SecretStore
from netsmog.errors import AuthError, AuthFailure

ROUNDS = 4


def _lookup(secrets):
    return SecretStore.from_mapping(secrets).lookup


def test_issue_then_verify_accepts_matching_identity_and_secret() -> None:
    for worker, secret in [("w1", "s1"), ("www1.example.net", "p@ss:word"), ("łódź", "sekret ✓")]:
        token = codec.issue(worker, secret, rounds=ROUNDS)
        codec.verify(worker, _lookup({worker: secret}), token)


def test_token_uses_url_safe_alphabet() -> None:
    token = codec.issue("w1", "s1", rounds=ROUNDS)
    assert re.fullmatch(r"[A-Za-z0-9_=-]+", token)


def test_tokens_are_salted() -> None:
    assert codec.issue("w1", "s1", rounds=ROUNDS) != codec.issue("w1", "s1", rounds=ROUNDS)


def test_token_for_other_secret_is_a_mismatch() -> None:
    token = codec.issue("w1", "s1" + "x", rounds=ROUNDS)
    with pytest.raises(AuthError) as info:
        codec.verify("w1", _lookup({"w1": "s1"}), token)
    assert info.value.reason is AuthFailure.MISMATCH


def test_token_for_other_identity_is_a_mismatch() -> None:
    token = codec.issue("w2", "shared", rounds=ROUNDS)
    with pytest.raises(AuthError) as info:
        codec.verify("w1", _lookup({"w1": "shared", "w2": "shared"}), token)
    assert info.value.reason is AuthFailure.MISMATCH


def test_unknown_worker_is_rejected() -> None:
    token = codec.issue("ghost", "s1", rounds=ROUNDS)
    with pytest.raises(AuthError) as info:
        codec.verify("ghost", _lookup({"w1": "s1"}), token)
    assert info.value.reason is AuthFailure.UNKNOWN_WORKER


def test_missing_worker_header_counts_as_unknown() -> None:
    with pytest.raises(AuthError) as info:
        codec.verify("", _lookup({"": "s1"}), codec.issue("", "s1", rounds=ROUNDS))
    assert info.value.reason is AuthFailure.UNKNOWN_WORKER


@pytest.mark.parametrize(
    "token",
    [
        "",
        "abc",
        base64.urlsafe_b64encode(b"not a bcrypt hash").decode("ascii"),
        "ünïcode",
    ],
)
def test_undecodable_tokens_are_malformed(token: str) -> None:
    with pytest.raises(AuthError) as info:
        codec.verify("w1", _lookup({"w1": "s1"}), token)
    assert info.value.reason is AuthFailure.MALFORMED


def test_long_secrets_round_trip() -> None:
    secret = "s" * 200
    token = codec.issue("w1", secret, rounds=ROUNDS)
    codec.verify("w1", _lookup({"w1": secret}), token)


def test_secrets_differing_past_72_bytes_are_a_mismatch() -> None:
    token = codec.issue("w1", "s" * 80 + "x", rounds=ROUNDS)
    with pytest.raises(AuthError) as info:
        codec.verify("w1", _lookup({"w1": "s" * 80}), token)
    assert info.value.reason is AuthFailure.MISMATCH


def test_long_identity_still_binds_the_secret() -> None:
    worker = "w" * 72
    token = codec.issue(worker, "attacker-guess", rounds=ROUNDS)
    with pytest.raises(AuthError) as info:
        codec.verify(worker, _lookup({worker: "real-secret"}), token)
    assert info.value.reason is AuthFailure.MISMATCH


def test_tokens_claiming_excessive_cost_are_malformed() -> None:
    token = base64.urlsafe_b64encode(b"$2b$31$" + b"a" * 53).decode("ascii")
    with pytest.raises(AuthError) as info:
        codec.verify("w1", _lookup({"w1": "s1"}), token)
    assert info.value.reason is AuthFailure.MALFORMED


def test_unknown_worker_check_uses_the_token_cost(monkeypatch) -> None:
    costs = []
    real = codec._dummy_hash

    def _spy(rounds: int) -> bytes:
        costs.append(rounds)
        return real(rounds)

    monkeypatch.setattr(codec, "_dummy_hash", _spy)
    for token in [codec.issue("ghost", "s1", rounds=5), "garbage"]:
        with pytest.raises(AuthError):
            codec.verify("ghost", _lookup({"w1": "s1"}), token)
    assert costs == [5, codec.DEFAULT_ROUNDS]
