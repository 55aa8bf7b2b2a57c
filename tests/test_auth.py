import time
from datetime import datetime, timezone
from unittest.mock import Mock

import jwt
import pytest

from repair_tracker.models import Account
from repair_tracker.schemas import UserCreateSchema
from repair_tracker.services.auth import AuthService
from repair_tracker.services.exceptions import AuthError, ConflictError, NotFoundError
from tests.fakes import make_response

SECRET = "auth-test-secret"

OAUTH_CONFIG = {
    'provider': 'microsoft-entra-id',
    'client_id': 'client-1',
    'client_secret': 'client-secret',
    'token_url': 'https://login.test/oauth2/v2.0/token',
    'scope': 'openid offline_access Files.ReadWrite.All',
}


@pytest.fixture
def http_session():
    return Mock()


@pytest.fixture
def auth(db_session, http_session):
    return AuthService(db_session, SECRET, oauth_config=OAUTH_CONFIG, http_session=http_session)


async def add_account(db_session, user, **fields):
    fields.setdefault('provider', 'microsoft-entra-id')
    fields.setdefault('provider_account_id', 'entra-1')
    account = Account(user_id=user.id, **fields)
    db_session.add(account)
    await db_session.commit()
    return account


async def test_session_token_roundtrip(auth, user):
    token = auth.issue_session_token(user, session_id="sess-1")

    session = await auth.verify_session_token(token)

    assert session['user'].id == user.id
    assert session['session_id'] == "sess-1"
    assert session['expires_at'] > datetime.now(timezone.utc)


async def test_session_id_is_generated(auth, user):
    first = await auth.verify_session_token(auth.issue_session_token(user))
    second = await auth.verify_session_token(auth.issue_session_token(user))

    assert first['session_id'] != second['session_id']


async def test_expired_token_is_rejected(db_session, user):
    auth = AuthService(db_session, SECRET, token_expiry_minutes=-1)

    with pytest.raises(AuthError, match="expired"):
        await auth.verify_session_token(auth.issue_session_token(user))


async def test_token_signed_with_other_key_is_rejected(db_session, auth, user):
    token = AuthService(db_session, "other-secret").issue_session_token(user)

    with pytest.raises(AuthError, match="Invalid session token"):
        await auth.verify_session_token(token)


async def test_wrong_token_type_is_rejected(auth, user):
    token = jwt.encode({'user_id': user.id, 'type': 'refresh', 'exp': int(time.time()) + 60}, SECRET, algorithm='HS256')

    with pytest.raises(AuthError, match="type"):
        await auth.verify_session_token(token)


async def test_inactive_user_is_rejected(auth, db_session, user):
    token = auth.issue_session_token(user)
    user.is_active = False
    await db_session.commit()

    with pytest.raises(AuthError):
        await auth.verify_session_token(token)


async def test_create_user_and_lookup(auth):
    user = await auth.create_user(UserCreateSchema(email="Planner@GenThrust.net", name="Planner"))

    found = await auth.get_user_by_email(user.email)

    assert found.id == user.id
    with pytest.raises(ConflictError):
        await auth.create_user(UserCreateSchema(email=user.email))
    with pytest.raises(NotFoundError):
        await auth.get_user_by_email("nobody@genthrust.net")


async def test_record_login(auth, user):
    assert user.last_login is None

    await auth.record_login(user)

    assert user.last_login is not None


async def test_provider_token_still_valid_is_returned(auth, db_session, http_session, user):
    await add_account(db_session, user, access_token="graph-token", refresh_token="refresh-1",
                      expires_at=int(time.time()) + 3600)

    assert await auth.get_provider_access_token(user.id) == "graph-token"
    http_session.post.assert_not_called()


async def test_provider_token_near_expiry_is_refreshed(auth, db_session, http_session, user):
    account = await add_account(db_session, user, access_token="old-token", refresh_token="refresh-1",
                                expires_at=int(time.time()) + 30)
    http_session.post.return_value = make_response(200, {
        'access_token': "new-token", 'expires_in': 3600, 'refresh_token': "refresh-2",
    })

    token = await auth.get_provider_access_token(user.id)

    assert token == "new-token"
    assert account.refresh_token == "refresh-2"
    assert account.expires_at >= int(time.time()) + 3500
    args, kwargs = http_session.post.call_args
    assert args[0] == OAUTH_CONFIG['token_url']
    assert kwargs['data']['grant_type'] == 'refresh_token'
    assert kwargs['data']['refresh_token'] == "refresh-1"
    assert kwargs['data']['client_id'] == "client-1"


async def test_refresh_keeps_old_refresh_token_when_not_rotated(auth, db_session, http_session, user):
    account = await add_account(db_session, user, refresh_token="refresh-1", expires_at=0)
    http_session.post.return_value = make_response(200, {'access_token': "new-token", 'expires_in': 600})

    await auth.get_provider_access_token(user.id)

    assert account.refresh_token == "refresh-1"


async def test_rejected_refresh_is_auth_error(auth, db_session, http_session, user):
    await add_account(db_session, user, refresh_token="revoked", expires_at=0)
    http_session.post.return_value = make_response(400, {'error': 'invalid_grant'})

    with pytest.raises(AuthError):
        await auth.get_provider_access_token(user.id)


async def test_missing_account_or_refresh_token_is_auth_error(auth, db_session, user):
    with pytest.raises(AuthError):
        await auth.get_provider_access_token(user.id)

    await add_account(db_session, user, access_token="old", expires_at=0)
    with pytest.raises(AuthError, match="expired"):
        await auth.get_provider_access_token(user.id)
