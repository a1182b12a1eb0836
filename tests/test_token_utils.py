from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from jose import jwt

from mangabook.config import ALGORITHM, SECRET_KEY
from mangabook.utils.token_utils import authenticate, create_access_token


def _user(user_id=7):
    return SimpleNamespace(id=user_id, username="alice")


def test_fresh_token_resolves_to_user_id():
    token = create_access_token(_user())

    assert authenticate(token) == 7


def test_token_older_than_24_hours_is_rejected():
    token = create_access_token(_user(), issued_at=datetime.now(timezone.utc) - timedelta(hours=25))

    with pytest.raises(HTTPException) as exc:
        authenticate(token)

    assert exc.value.status_code == 401


def test_token_just_under_24_hours_is_accepted():
    token = create_access_token(_user(), issued_at=datetime.now(timezone.utc) - timedelta(hours=23, minutes=50))

    assert authenticate(token) == 7


def test_token_signed_with_another_key_is_rejected():
    forged = jwt.encode({"id": 7, "exp": datetime.now(timezone.utc) + timedelta(hours=1)}, "x" * 40, algorithm=ALGORITHM)

    with pytest.raises(HTTPException) as exc:
        authenticate(forged)

    assert exc.value.status_code == 401


def test_token_without_subject_is_rejected():
    token = jwt.encode({"exp": datetime.now(timezone.utc) + timedelta(hours=1)}, SECRET_KEY, algorithm=ALGORITHM)

    with pytest.raises(HTTPException):
        authenticate(token)


def test_missing_token_is_rejected():
    with pytest.raises(HTTPException) as exc:
        authenticate(None)

    assert exc.value.detail == "No token provided"
