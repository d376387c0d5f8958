from __future__ import annotations

from pathlib import Path

import pytest

from inventory_auth.api.errors import ApiError
from inventory_auth.auth.one_time_codes import OneTimeCodeEngine
from inventory_auth.core.security import one_time_code_matches
from tests.factories import auth_config, make_account, open_repo


def _engine(tmp_path: Path):
    _, repo = open_repo(tmp_path)
    return repo, OneTimeCodeEngine(repo, auth_config())


def test_issue_stores_only_a_digest(tmp_path: Path) -> None:
    repo, engine = _engine(tmp_path)
    account = make_account(repo, "staff@shop.local")

    issued = engine.issue(account)

    record = repo.get_verification(issued.pending_token)
    assert record is not None
    assert record.code_hash != issued.code
    assert one_time_code_matches(issued.code, record.code_hash, "test-secret")
    assert record.used_at is None


def test_verify_consumes_record_once(tmp_path: Path) -> None:
    repo, engine = _engine(tmp_path)
    account = make_account(repo, "staff@shop.local")
    issued = engine.issue(account)

    assert engine.verify(issued.pending_token, issued.code).id == account.id
    with pytest.raises(ApiError) as exc:
        engine.verify(issued.pending_token, issued.code)

    assert exc.value.status_code == 400
    assert exc.value.message == "Verification code already used"


def test_wrong_code_leaves_record_usable(tmp_path: Path) -> None:
    repo, engine = _engine(tmp_path)
    account = make_account(repo, "staff@shop.local")
    issued = engine.issue(account)
    wrong = "000000" if issued.code != "000000" else "111111"

    with pytest.raises(ApiError) as exc:
        engine.verify(issued.pending_token, wrong)

    assert exc.value.status_code == 401
    assert exc.value.message == "Invalid verification code"
    assert engine.verify(issued.pending_token, issued.code).id == account.id


def test_expired_code_is_rejected(tmp_path: Path, monkeypatch) -> None:
    repo, engine = _engine(tmp_path)
    account = make_account(repo, "staff@shop.local")
    issued = engine.issue(account)

    later = issued.expires_at + 1
    monkeypatch.setattr("inventory_auth.auth.one_time_codes.time.time", lambda: later)

    with pytest.raises(ApiError) as exc:
        engine.verify(issued.pending_token, issued.code)

    assert exc.value.message == "Verification code expired"


def test_unknown_pending_token_is_invalid_request(tmp_path: Path) -> None:
    _, engine = _engine(tmp_path)

    with pytest.raises(ApiError) as exc:
        engine.verify("missing", "123456")

    assert exc.value.status_code == 400
    assert exc.value.message == "Invalid verification request"


def test_new_login_invalidates_prior_unconsumed_code(tmp_path: Path) -> None:
    repo, engine = _engine(tmp_path)
    account = make_account(repo, "staff@shop.local")
    first = engine.issue(account)
    second = engine.issue(account)

    with pytest.raises(ApiError) as exc:
        engine.verify(first.pending_token, first.code)

    assert exc.value.message == "Invalid verification request"
    assert engine.verify(second.pending_token, second.code).id == account.id


def test_reissue_rotates_code_on_same_token(tmp_path: Path) -> None:
    repo, engine = _engine(tmp_path)
    account = make_account(repo, "staff@shop.local")
    issued = engine.issue(account)

    reissued, owner = engine.reissue(issued.pending_token)

    assert owner.id == account.id
    assert reissued.pending_token == issued.pending_token
    assert engine.verify(issued.pending_token, reissued.code).id == account.id
