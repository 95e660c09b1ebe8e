# tests/test_oauth_and_products.py
import hashlib
import hmac
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from addons_app.config import settings
from addons_app.services import session_service, shopify_service
from addons_app.services.shopify_service import normalize_shop_domain, verify_shopify_hmac

SECRET = "shpss_test_secret"


def _response(status=200, body=None):
    response = MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.json.return_value = body if body is not None else {}
    response.content = b"{}" if body is not None else b""
    response.text = str(body)
    return response


def _signed(params):
    message = "&".join(f"{k}={v}" for k, v in sorted(params.items()))
    signed = dict(params)
    signed["hmac"] = hmac.new(SECRET.encode(), message.encode(), hashlib.sha256).hexdigest()
    return signed


@pytest.fixture
def app_credentials(monkeypatch):
    monkeypatch.setattr(settings, "shopify_api_key", "api-key")
    monkeypatch.setattr(settings, "shopify_api_secret", SECRET)
    monkeypatch.setattr(settings, "verify_oauth_hmac", True)
    monkeypatch.setattr(settings, "storefront_script_url", "")


@pytest.fixture
def shopify_http(monkeypatch):
    http = MagicMock()
    monkeypatch.setattr(shopify_service, "http", http)
    return http


@pytest.mark.parametrize("raw, expected", [
    ("mystore", "mystore.myshopify.com"),
    ("https://MyStore.myshopify.com/", "mystore.myshopify.com"),
    ("mystore.myshopify.com", "mystore.myshopify.com"),
])
def test_normalize_shop_domain(raw, expected):
    assert normalize_shop_domain(raw) == expected


def test_verify_hmac():
    params = _signed({"code": "abc", "shop": "s.myshopify.com", "timestamp": "1"})
    assert verify_shopify_hmac(params, SECRET)
    params["code"] = "tampered"
    assert not verify_shopify_hmac(params, SECRET)


def test_install_redirects_to_shopify(client, app_credentials):
    response = client.get("/auth", params={"shop": "mystore"}, follow_redirects=False)

    assert response.status_code in (302, 307)
    location = urlparse(response.headers["location"])
    assert location.netloc == "mystore.myshopify.com"
    assert location.path == "/admin/oauth/authorize"
    query = parse_qs(location.query)
    assert query["client_id"] == ["api-key"]
    assert query["state"] == ["mystore.myshopify.com"]
    assert query["redirect_uri"][0].endswith("/auth/callback")


def test_install_without_shop_is_400(client, app_credentials):
    assert client.get("/auth", follow_redirects=False).status_code == 400


def test_callback_stores_session(client, db_session, app_credentials, shopify_http):
    shopify_http.post.return_value = _response(body={"access_token": "tok", "scope": "read_products"})
    shopify_http.request.return_value = _response(body={"shop": {"domain": "www.store.com"}})
    params = _signed({"code": "abc", "shop": "store.myshopify.com",
                      "state": "store.myshopify.com", "timestamp": "1"})

    response = client.get("/auth/callback", params=params)

    assert response.status_code == 200
    session = session_service.get_session(db_session, "store.myshopify.com")
    assert session.access_token == "tok"
    assert session.domain == "www.store.com"

    status = client.get("/auth/status", params={"shop": "store"}).json()
    assert status["installed"] is True
    assert status["scope"] == "read_products"


def test_callback_rejects_bad_hmac(client, db_session, app_credentials, shopify_http):
    params = _signed({"code": "abc", "shop": "store.myshopify.com", "timestamp": "1"})
    params["hmac"] = "0" * 64

    response = client.get("/auth/callback", params=params)

    assert response.status_code == 403
    shopify_http.post.assert_not_called()
    assert session_service.get_session(db_session, "store.myshopify.com") is None


def test_callback_missing_code_is_400(client, app_credentials):
    assert client.get("/auth/callback", params={"shop": "store.myshopify.com"}).status_code == 400


def test_callback_token_exchange_failure_is_500(client, db_session, app_credentials, shopify_http):
    shopify_http.post.return_value = _response(status=400, body={"error": "invalid_request"})
    params = _signed({"code": "abc", "shop": "store.myshopify.com", "timestamp": "1"})

    response = client.get("/auth/callback", params=params)

    assert response.status_code == 500
    assert session_service.get_session(db_session, "store.myshopify.com") is None


def test_callback_installs_script_tag(client, monkeypatch, app_credentials, shopify_http):
    src = "https://addons.example.com/static/product-addons.js"
    monkeypatch.setattr(settings, "storefront_script_url", src)
    shopify_http.post.return_value = _response(body={"access_token": "tok", "scope": "write_script_tags"})
    shopify_http.request.side_effect = [
        _response(body={"shop": {"domain": "store.myshopify.com"}}),
        _response(body={"script_tags": []}),
        _response(body={"script_tag": {"id": 1, "src": src}}),
    ]
    params = _signed({"code": "abc", "shop": "store.myshopify.com", "timestamp": "1"})

    assert client.get("/auth/callback", params=params).status_code == 200

    method, url = shopify_http.request.call_args_list[-1].args[:2]
    assert method == "POST"
    assert url.endswith("/script_tags.json")


def test_products_require_install(client):
    response = client.get("/api/products", params={"shop": "store.myshopify.com"})
    assert response.status_code == 401


def test_products_passthrough(client, db_session, shopify_http):
    session_service.store_session(db_session, "store.myshopify.com", "tok")
    shopify_http.request.return_value = _response(body={"products": [{"id": 1, "title": "Mug"}]})

    response = client.get("/api/products", params={"shop": "store"})

    assert response.status_code == 200
    assert response.json() == [{"id": 1, "title": "Mug"}]
    kwargs = shopify_http.request.call_args.kwargs
    assert kwargs["headers"]["X-Shopify-Access-Token"] == "tok"


def test_products_upstream_error_is_500(client, db_session, shopify_http):
    session_service.store_session(db_session, "store.myshopify.com", "tok")
    shopify_http.request.return_value = _response(status=503, body={"errors": "unavailable"})

    assert client.get("/api/products", params={"shop": "store"}).status_code == 500


def test_resolve_shop(client, db_session):
    session_service.store_session(db_session, "store.myshopify.com", "tok", domain="www.store.com")

    assert client.get("/api/resolve-shop", params={"domain": "store.com"}).json() == {
        "domain": "store.com", "shop": "store.myshopify.com",
    }
    assert client.get("/api/resolve-shop", params={"domain": "x.myshopify.com"}).json()["shop"] == "x.myshopify.com"
    assert client.get("/api/resolve-shop", params={"domain": "unknown.com"}).status_code == 404


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["database"] == "healthy"
