# tests/test_addons_api.py


def _create(client, **overrides):
    payload = {"productId": "123", "name": "Gift Wrap", "price": 5.0, "type": "checkbox"}
    payload.update(overrides)
    return client.post("/api/addons", json=payload)


def test_create_and_list_round_trip(client):
    response = _create(client)
    assert response.status_code == 200
    created = response.json()
    assert created["productId"] == "123"
    assert created["price"] == 5.0
    assert created["active"] is True

    listed = client.get("/api/addons/123").json()
    assert len(listed) == 1
    assert listed[0]["id"] == created["id"]
    assert listed[0]["name"] == "Gift Wrap"
    assert listed[0]["type"] == "checkbox"


def test_create_missing_name_is_400(client):
    response = client.post("/api/addons", json={"productId": "123", "price": 1, "type": "checkbox"})
    assert response.status_code == 400
    assert "name" in response.json()["detail"]


def test_create_bad_price_is_400(client):
    assert _create(client, price="free").status_code == 400


def test_list_unknown_product_is_empty(client):
    assert client.get("/api/addons/does-not-exist").json() == []


def test_list_is_scoped_by_shop(client):
    _create(client, shop="a.myshopify.com")
    _create(client, shop="b.myshopify.com", name="Card")

    listed = client.get("/api/addons/123", params={"shop": "b.myshopify.com"}).json()

    assert [a["name"] for a in listed] == ["Card"]
    assert client.get("/api/addons/123").json() == []


def test_list_all_addons_of_shop(client):
    _create(client, shop="a.myshopify.com")
    _create(client, productId="456", shop="a.myshopify.com")

    listed = client.get("/api/addons", params={"shop": "a.myshopify.com"}).json()

    assert [a["productId"] for a in listed] == ["456", "123"]


def test_dropdown_round_trip(client):
    response = _create(client, name="Engraving", type="dropdown", price=1.0,
                       options=[{"label": "Short", "value": "short", "price": 2.0}])
    assert response.status_code == 200
    assert response.json()["options"] == [{"label": "Short", "value": "short", "price": 2.0}]


def test_update_addon(client):
    addon_id = _create(client).json()["id"]

    response = client.put(f"/api/addons/{addon_id}", json={"price": 7.5})

    assert response.status_code == 200
    assert response.json()["price"] == 7.5
    assert response.json()["name"] == "Gift Wrap"


def test_update_unknown_addon_is_404(client):
    assert client.put("/api/addons/999", json={"name": "x"}).status_code == 404


def test_delete_twice(client):
    addon_id = _create(client).json()["id"]

    first = client.delete(f"/api/addons/{addon_id}")
    second = client.delete(f"/api/addons/{addon_id}")

    assert first.status_code == 200
    assert first.json() == {"id": addon_id, "active": False, "message": "Add-on deleted successfully"}
    assert second.status_code == 200
    assert second.json()["active"] is False
    assert client.get("/api/addons/123").json() == []


def test_delete_unknown_addon_is_404(client):
    assert client.delete("/api/addons/999").status_code == 404


def test_malformed_field_types_are_400(client):
    assert _create(client, name=123).status_code == 400
    assert _create(client, required="yes").status_code == 400
    assert _create(client, shop=["a"]).status_code == 400
    assert _create(client, type="dropdown", options="short").status_code == 400
    assert client.get("/api/addons/123").json() == []


def test_malformed_update_is_400(client):
    addon_id = _create(client).json()["id"]

    assert client.put(f"/api/addons/{addon_id}", json={"active": "nope"}).status_code == 400
    assert client.put(f"/api/addons/{addon_id}", json={"name": {"x": 1}}).status_code == 400
    assert client.get("/api/addons/123").json()[0]["name"] == "Gift Wrap"
