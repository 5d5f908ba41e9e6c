from app.models.notification import NotificationOutbox

SIGNUP = {
    "email": "Asha@Example.com",
    "password": "Str0ng!pass",
    "full_name": "Asha Rao",
    "role": "seller",
}


def test_signup_returns_token_and_user(client, db):
    response = client.post("/auth/signup", json=SIGNUP)

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "asha@example.com"
    assert body["user"]["role"] == "seller"
    assert body["user"]["referral_code"].startswith("ASHA")
    events = {e.event for e in db.query(NotificationOutbox).all()}
    assert events == {"account_created", "new_user_registered"}


def test_signup_rejects_weak_password(client):
    response = client.post("/auth/signup", json={**SIGNUP, "password": "password"})
    assert response.status_code == 422


def test_signup_cannot_pick_admin_role(client):
    response = client.post("/auth/signup", json={**SIGNUP, "role": "admin"})
    assert response.status_code == 422


def test_duplicate_email(client):
    client.post("/auth/signup", json=SIGNUP)
    response = client.post("/auth/signup", json=SIGNUP)
    assert response.status_code == 409
    assert response.json()["detail"] == "An account with this email already exists"


def test_signup_with_referral_code(client, db, make_user):
    referrer = make_user()
    referrer.referral_code = "FRIEND1234"
    db.commit()

    response = client.post("/auth/signup", json={**SIGNUP, "referral_code": "friend1234"})
    assert response.status_code == 201

    # a bad code is ignored
    response = client.post("/auth/signup", json={**SIGNUP, "email": "other@example.com", "referral_code": "NOPE"})
    assert response.status_code == 201


def test_signin_and_me(client, make_user):
    user = make_user("buyer", email="buyer@example.com")
    response = client.post("/auth/signin", json={"email": "BUYER@example.com", "password": "Str0ng!pass"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == user.id


def test_signin_wrong_password(client, make_user):
    make_user(email="buyer@example.com")
    response = client.post("/auth/signin", json={"email": "buyer@example.com", "password": "Wr0ng!pass"})
    assert response.status_code == 401


def test_deactivated_account(client, make_user):
    make_user(email="gone@example.com", is_active=False)
    response = client.post("/auth/signin", json={"email": "gone@example.com", "password": "Str0ng!pass"})
    assert response.status_code == 403


def test_signout_revokes_token(client, make_user, auth_headers):
    headers = auth_headers(make_user())
    assert client.post("/auth/signout", headers=headers).status_code == 200
    response = client.get("/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["detail"] == "Token has been revoked"


def test_missing_token(client):
    assert client.get("/auth/me").status_code == 401


def test_health_is_public(client):
    assert client.get("/health").json()["status"] == "ok"


def test_user_row_is_not_exposed_with_password(client):
    body = client.post("/auth/signup", json=SIGNUP).json()
    assert "password_hash" not in body["user"]
