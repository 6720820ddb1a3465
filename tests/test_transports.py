import base64
import json
from types import SimpleNamespace
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

import handler as lambda_entry
import main
from server import create_app

ORIGIN = "http://localhost:5173"

LAMBDA_CONTEXT = SimpleNamespace(
    function_name="coinly-api-dev-trpc",
    aws_request_id="req-1",
    get_remaining_time_in_millis=lambda: 30000,
)

SIGN_IN = {"email": "demo@example.com", "password": "DemoPassword123"}


def event(method, path, body=None, headers=None, query=None, base64_body=False):
    result = {
        "version": "2.0",
        "rawPath": path,
        "headers": headers or {"origin": ORIGIN},
        "requestContext": {"http": {"method": method, "sourceIp": "127.0.0.1"}},
        "queryStringParameters": query,
    }
    if body is not None:
        if base64_body:
            result["body"] = base64.b64encode(body.encode("utf-8")).decode("ascii")
            result["isBase64Encoded"] = True
        else:
            result["body"] = body
    return result


@pytest.fixture
def lambda_services(services, monkeypatch):
    monkeypatch.setattr(lambda_entry, "_services", services)
    return services


class TestDecodeBody:
    def test_plain(self):
        assert lambda_entry.decode_body({"body": '{"a": 1}'}) == '{"a": 1}'

    def test_base64(self):
        body = base64.b64encode(b'{"a": 1}').decode("ascii")
        assert lambda_entry.decode_body({"body": body, "isBase64Encoded": True}) == '{"a": 1}'

    def test_double_encoded(self):
        body = json.dumps(json.dumps({"a": 1}))
        assert json.loads(lambda_entry.decode_body({"body": body})) == {"a": 1}

    def test_missing(self):
        assert lambda_entry.decode_body({}) is None


class TestLambdaHandler:
    def test_preflight(self, lambda_services):
        response = lambda_entry.handler(
            event("OPTIONS", "/trpc/planner.getPlans"), LAMBDA_CONTEXT
        )
        assert response["statusCode"] == 204
        headers = response["headers"]
        assert headers["Access-Control-Allow-Origin"] == ORIGIN
        assert "POST" in headers["Access-Control-Allow-Methods"]
        assert "authorization" in headers["Access-Control-Allow-Headers"]

    def test_sign_in_sets_cookies(self, lambda_services):
        response = lambda_entry.handler(
            event("POST", "/dev/trpc/auth.signIn", json.dumps(SIGN_IN), base64_body=True),
            LAMBDA_CONTEXT,
        )
        assert response["statusCode"] == 200
        assert response["headers"]["Access-Control-Allow-Origin"] == ORIGIN
        assert response["headers"]["Access-Control-Allow-Credentials"] == "true"
        assert response["headers"]["Vary"] == "Origin"
        assert "Access-Control-Allow-Methods" not in response["headers"]
        assert len(response["cookies"]) == 2

        body = json.loads(response["body"])
        assert body["result"]["data"]["expiresIn"] == 3600

    def test_query_with_cookie(self, lambda_services, demo_token):
        response = lambda_entry.handler(
            {
                **event("GET", "/trpc/planner.getPlans"),
                "cookies": [f"access_token={quote(demo_token, safe='')}"],
            },
            LAMBDA_CONTEXT,
        )
        assert response["statusCode"] == 200
        assert len(json.loads(response["body"])["result"]["data"]) == 3

    def test_query_input_from_query_string(self, lambda_services, demo_token):
        response = lambda_entry.handler(
            event(
                "GET",
                "/trpc/planner.getPlan",
                headers={"origin": ORIGIN, "Authorization": f"Bearer {demo_token}"},
                query={"input": json.dumps({"planId": "demo_plan_3"})},
            ),
            LAMBDA_CONTEXT,
        )
        assert json.loads(response["body"])["result"]["data"]["title"] == "Emergency Fund"

    def test_error_envelope(self, lambda_services):
        response = lambda_entry.handler(
            event("GET", "/trpc/planner.getPlans"), LAMBDA_CONTEXT
        )
        assert response["statusCode"] == 401
        body = json.loads(response["body"])
        assert body["error"]["data"]["path"] == "planner.getPlans"
        assert "cookies" not in response

    def test_unlisted_origin_gets_first_allowed(self, lambda_services):
        response = lambda_entry.handler(
            event("GET", "/trpc/health", headers={"origin": "https://evil.example.com"}),
            LAMBDA_CONTEXT,
        )
        assert response["headers"]["Access-Control-Allow-Origin"] == ORIGIN

    def test_unexpected_failure_is_500(self, lambda_services, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(lambda_entry, "handle_rpc_request", explode)
        response = lambda_entry.handler(event("GET", "/trpc/health"), LAMBDA_CONTEXT)
        assert response["statusCode"] == 500
        assert json.loads(response["body"]) == {"error": "Internal server error"}
        assert response["headers"]["Access-Control-Allow-Origin"] == ORIGIN

    def test_cold_start_failure_keeps_cors(self, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("table unavailable")

        monkeypatch.setattr(lambda_entry, "_services", None)
        monkeypatch.setattr(lambda_entry, "build_services", explode)
        monkeypatch.setenv("ALLOWED_ORIGINS", ORIGIN)

        response = lambda_entry.handler(event("POST", "/trpc/auth.signIn"), LAMBDA_CONTEXT)
        assert response["statusCode"] == 500
        assert response["headers"]["Access-Control-Allow-Origin"] == ORIGIN
        assert response["headers"]["Access-Control-Allow-Credentials"] == "true"


class TestHealthz:
    def test_healthz(self):
        response = main.healthz(event("GET", "/health"), LAMBDA_CONTEXT)
        assert response["statusCode"] == 200
        body = json.loads(response["body"])
        assert body["ok"] is True
        assert body["status"] == "healthy"


class TestDevServer:
    @pytest.fixture
    def client(self, services):
        return TestClient(create_app(services))

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_sign_in_then_query(self, client):
        response = client.post("/trpc/auth.signIn", json=SIGN_IN)
        assert response.status_code == 200
        cookies = response.headers.get_list("set-cookie")
        assert [cookie.split("=")[0] for cookie in cookies] == [
            "access_token",
            "refresh_token",
        ]

        token = response.json()["result"]["data"]["accessToken"]
        response = client.get(
            "/trpc/planner.getPlans", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200
        assert len(response.json()["result"]["data"]) == 3

    def test_query_input(self, client):
        response = client.get(
            "/trpc/hello.hello", params={"input": json.dumps({"name": "Dev"})}
        )
        assert response.json()["result"]["data"] == {"message": "Hello Dev"}

    def test_method_mismatch(self, client):
        response = client.get("/trpc/auth.signIn")
        assert response.status_code == 405

    def test_cors_preflight(self, client):
        response = client.options(
            "/trpc/planner.getPlans",
            headers={"Origin": ORIGIN, "Access-Control-Request-Method": "GET"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == ORIGIN
        assert response.headers["access-control-allow-credentials"] == "true"
        assert response.headers["access-control-max-age"] == "43200"
