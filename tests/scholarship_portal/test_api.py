import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from scholarship_portal.auth import jwt_handler
from scholarship_portal.core import config
from scholarship_portal.database import DATABASE_UNAVAILABLE_DETAIL, get_db
from scholarship_portal.main import app
from scholarship_portal.models.user import Role


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _auth(token: str) -> dict:
    return {'Authorization': f'Bearer {token}'}


def test_root_reports_status(client) -> None:
    assert client.get('/').json() == {'status': 'Scholarship Portal API Running'}


def test_issue_token_in_header_mode_carries_body_claims(client, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'AUTH_TRANSPORT', 'header')

    response = client.post('/jwt', json={'email': 'Student@Example.edu', 'name': 'Sam', 'exp': 1})

    assert response.status_code == 200
    payload = jwt_handler.decode_access_token(response.json()['token'])
    assert payload['email'] == 'student@example.edu'
    assert payload['name'] == 'Sam'
    assert payload['exp'] > 1


def test_issue_token_requires_email(client) -> None:
    assert client.post('/jwt', json={'name': 'Sam'}).status_code == 422


def test_manage_route_requires_credential(client) -> None:
    response = client.get('/scholarship/manage', params={'email': 'mod@example.edu'})

    assert response.status_code == 401


def test_manage_route_rejects_identity_mismatch(client, make_user, token_for) -> None:
    make_user('mod@example.edu', Role.MODERATOR)

    response = client.get(
        '/scholarship/manage',
        params={'email': 'mod@example.edu'},
        headers=_auth(token_for('someone@example.edu')),
    )

    assert response.status_code == 403


def test_manage_route_rejects_applicant_role(client, make_user, token_for) -> None:
    make_user('student@example.edu')

    response = client.get(
        '/scholarship/manage',
        params={'email': 'student@example.edu'},
        headers=_auth(token_for('student@example.edu')),
    )

    assert response.status_code == 403


def test_manage_route_admits_moderator(client, make_user, make_scholarship, token_for) -> None:
    make_user('mod@example.edu', Role.MODERATOR)
    make_scholarship('Merit')

    response = client.get(
        '/scholarship/manage',
        params={'email': 'mod@example.edu'},
        headers=_auth(token_for('mod@example.edu')),
    )

    assert response.status_code == 200
    assert [item['scholarship_name'] for item in response.json()] == ['Merit']
    assert 'rating_sum' not in response.json()[0]


def test_admin_route_path_email_is_separate_from_caller(client, make_user, token_for) -> None:
    make_user('admin@example.edu', Role.ADMIN)
    make_user('student@example.edu')

    response = client.patch(
        '/users/admin/role/student@example.edu',
        params={'email': 'admin@example.edu'},
        headers=_auth(token_for('admin@example.edu')),
        json={'role': 'Moderator'},
    )

    assert response.status_code == 200
    assert response.json()['email'] == 'student@example.edu'
    assert response.json()['role'] == 'Moderator'


def test_public_listing_paginates(client, make_scholarship, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'SCHOLARSHIP_PAGE_SIZE', 8)
    for index in range(1, 12):
        make_scholarship(f'Scholarship {index:02d}')

    response = client.get('/scholarship', params={'page': 2})

    assert response.status_code == 200
    assert [item['scholarship_name'] for item in response.json()] == [
        'Scholarship 09',
        'Scholarship 10',
        'Scholarship 11',
    ]
    assert client.get('/scholarship', params={'page': 0}).status_code == 422


def test_review_lifecycle_over_http(client, make_user, make_scholarship, token_for) -> None:
    make_user('student@example.edu')
    scholarship = make_scholarship(rating_sum=3.0, review_count=1, rating=3.0)
    params = {'email': 'student@example.edu'}
    headers = _auth(token_for('student@example.edu'))

    created = client.post(
        '/reviews',
        params=params,
        headers=headers,
        json={'email': 'student@example.edu', 'scholarship_id': scholarship.id, 'rating': 4, 'comment': 'Great'},
    )

    assert created.status_code == 201
    assert created.json()['scholarship']['rating'] == 3.5
    assert created.json()['scholarship']['review_count'] == 2

    details = client.get(f'/scholarship/details/{scholarship.id}', params=params, headers=headers).json()
    assert (details['rating'], details['review_count']) == (3.5, 2)

    deleted = client.delete(f"/reviews/{created.json()['id']}", params=params, headers=headers)
    assert deleted.status_code == 204

    details = client.get(f'/scholarship/details/{scholarship.id}', params=params, headers=headers).json()
    assert (details['rating'], details['review_count']) == (3.0, 1)


def test_duplicate_application_over_http(client, make_user, make_scholarship, token_for) -> None:
    make_user('student@example.edu')
    scholarship = make_scholarship()
    params = {'email': 'student@example.edu'}
    headers = _auth(token_for('student@example.edu'))
    body = {'email': 'student@example.edu', 'scholarship_id': scholarship.id}

    first = client.post('/applyed', params=params, headers=headers, json=body)
    second = client.post('/applyed', params=params, headers=headers, json=body)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json() == {'detail': 'Already applied.'}


def test_cookie_transport_round_trip(client, make_scholarship, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'AUTH_TRANSPORT', 'cookie')
    scholarship = make_scholarship('Cookie Merit')

    issued = client.post('/jwt', json={'email': 'student@example.edu'})
    assert issued.json() == {'success': True}
    assert 'httponly' in issued.headers['set-cookie'].lower()

    details = client.get(f'/scholarship/details/{scholarship.id}', params={'email': 'student@example.edu'})
    assert details.status_code == 200
    assert details.json()['scholarship_name'] == 'Cookie Merit'

    # A bearer header is ignored once the deployment reads cookies.
    client.post('/logout')
    client.cookies.clear()
    header_only = client.get(
        f'/scholarship/details/{scholarship.id}',
        params={'email': 'student@example.edu'},
        headers=_auth(jwt_handler.create_access_token({'email': 'student@example.edu'})),
    )
    assert header_only.status_code == 401


@pytest.fixture
def unavailable_store_client(session_factory, monkeypatch: pytest.MonkeyPatch):
    def _query(*_args, **_kwargs):
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    def _override_get_db():
        session = session_factory()
        monkeypatch.setattr(session, 'query', _query)
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_store_failure_in_role_check_returns_503(unavailable_store_client, token_for) -> None:
    response = unavailable_store_client.get(
        '/scholarship/manage',
        params={'email': 'mod@example.edu'},
        headers=_auth(token_for('mod@example.edu')),
    )

    assert response.status_code == 503
    assert response.json() == {'detail': DATABASE_UNAVAILABLE_DETAIL}


def test_store_failure_on_public_listing_returns_503(unavailable_store_client) -> None:
    response = unavailable_store_client.get('/scholarship')

    assert response.status_code == 503
    assert response.json() == {'detail': DATABASE_UNAVAILABLE_DETAIL}


def test_public_routes_admit_callers_without_credentials(client, make_scholarship) -> None:
    make_scholarship('Open Merit')

    listing = client.get('/scholarship', params={'email': 'anyone@example.edu'})
    created = client.post('/users', json={'email': 'new@example.edu', 'name': 'New'})

    assert listing.status_code == 200
    assert [item['scholarship_name'] for item in listing.json()] == ['Open Merit']
    assert created.json() == {'success': True, 'created': True}
