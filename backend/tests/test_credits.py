from prajna import config


def test_grant_uses_default_amount(client):
    response = client.post("/credit/user-1")

    assert response.status_code == 201
    assert response.json()["credit"] == config.DEFAULT_CREDIT_GRANT
    assert client.get("/credit/user-1").json()["credit"] == config.DEFAULT_CREDIT_GRANT


def test_grant_explicit_amount_once(client):
    assert client.post("/credit/user-1", json={"credit": 20}).json()["credit"] == 20
    assert client.post("/credit/user-1", json={"credit": 20}).status_code == 409


def test_zero_grant_gets_default_amount(client):
    response = client.post("/credit/user-1", json={"credit": 0})

    assert response.status_code == 201
    assert response.json()["credit"] == config.DEFAULT_CREDIT_GRANT


def test_update_credit(client):
    client.post("/credit/user-1")

    response = client.patch("/credit/user-1", json={"credit": 3})

    assert response.status_code == 200
    assert response.json()["credit"] == 3


def test_update_requires_amount(client):
    client.post("/credit/user-1")
    assert client.patch("/credit/user-1", json={}).status_code == 400


def test_unknown_user(client):
    assert client.get("/credit/ghost").status_code == 404
    assert client.patch("/credit/ghost", json={"credit": 1}).status_code == 404


def test_check_against_exam_cost(client):
    client.post("/credit/rich", json={"credit": config.EXAM_CREDIT_COST})
    client.post("/credit/poor", json={"credit": config.EXAM_CREDIT_COST - 1})

    rich = client.get("/credit/rich/check").json()
    poor = client.get("/credit/poor/check").json()
    ghost = client.get("/credit/ghost/check").json()

    assert rich == {"user_id": "rich", "credit": config.EXAM_CREDIT_COST,
                    "required": config.EXAM_CREDIT_COST, "sufficient": True}
    assert poor["sufficient"] is False
    assert ghost["credit"] == 0 and ghost["sufficient"] is False
    assert client.get("/credit/poor/check", params={"required": 1}).json()["sufficient"] is True
