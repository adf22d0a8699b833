"""
Unit tests for URL router.
"""

import pytest

from todoserver.errors import NotFoundError, ValidationError
from todoserver.http.router import Router
from todoserver.http.request import HTTPRequest
from todoserver.http.response import HTTPResponse, ResponseBuilder, HTTPStatus


def make_request(method: str, path: str) -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, path=path)


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    """Echo the path params as JSON."""
    return ResponseBuilder().json(request.path_params).build()


@pytest.fixture
def todo_router() -> Router:
    router = Router()
    router.add_route("/healthz", dummy_handler, method="GET")
    router.add_route("/todos", dummy_handler, method="GET")
    router.add_route("/todos", dummy_handler, method="POST")
    router.add_route("/todos/*id", dummy_handler, method="GET")
    router.add_route("/todos/*id", dummy_handler, method="PUT")
    router.add_route("/todos/*id", dummy_handler, method="DELETE")
    return router


class TestRouter:
    """Tests for Router class."""

    def test_add_route(self):
        router = Router()
        router.add_route("/todos", dummy_handler, method="get")

        assert len(router.routes) == 1
        assert router.routes[0].path == "/todos"
        assert router.routes[0].method == "GET"

    def test_duplicate_route_rejected(self):
        router = Router()
        router.add_route("/todos", dummy_handler, method="GET")

        with pytest.raises(ValueError):
            router.add_route("/todos", dummy_handler, method="GET")

    def test_match_static_path(self, todo_router: Router):
        match = todo_router.match("GET", "/todos")
        assert match is not None
        assert match.route.path == "/todos"

    def test_match_with_method(self, todo_router: Router):
        assert todo_router.match("POST", "/todos").route.method == "POST"
        assert todo_router.match("PUT", "/todos") is None

    def test_wildcard_captures_id(self, todo_router: Router):
        match = todo_router.match("GET", "/todos/42")
        assert match.params == {"id": "42"}

    def test_wildcard_captures_empty_and_nested(self, todo_router: Router):
        """The item route takes whatever follows "/todos/"."""
        assert todo_router.match("GET", "/todos/").params == {"id": ""}
        assert todo_router.match("GET", "/todos/1/2").params == {"id": "1/2"}

    def test_no_trailing_slash_folding(self, todo_router: Router):
        assert todo_router.match("GET", "/healthz/") is None
        assert todo_router.match("GET", "/healthz") is not None

    def test_root_pattern(self):
        router = Router()
        router.add_route("/", dummy_handler, method="GET")

        assert router.match("GET", "/") is not None
        assert router.match("GET", "/x") is None

    def test_param_segment(self):
        router = Router()
        router.add_route("/users/:id", dummy_handler, method="GET")

        assert router.match("GET", "/users/7").params == {"id": "7"}
        assert router.match("GET", "/users/") is None
        assert router.match("GET", "/users/7/8") is None

    def test_get_allowed_methods(self, todo_router: Router):
        assert todo_router.get_allowed_methods("/todos") == ["GET", "POST"]
        assert todo_router.get_allowed_methods("/todos/9") == ["DELETE", "GET", "PUT"]
        assert todo_router.get_allowed_methods("/nope") == []


class TestRouterHandle:
    """Dispatch and error rendering."""

    def test_handle_success(self, todo_router: Router):
        response = todo_router.handle(make_request("GET", "/todos/5"))

        assert response.status == HTTPStatus.OK
        assert response.body == b'{"id":"5"}\n'

    def test_handle_not_found(self, todo_router: Router):
        response = todo_router.handle(make_request("GET", "/unknown"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"not found\n"

    def test_handle_method_not_allowed(self, todo_router: Router):
        response = todo_router.handle(make_request("PATCH", "/todos/1"))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.body == b"method not allowed\n"
        assert response.headers["Allow"] == "DELETE, GET, PUT"

    def test_method_checked_before_handler(self, todo_router: Router):
        """A bad id with an unsupported method is a 405, not a 400."""
        response = todo_router.handle(make_request("PATCH", "/todos/abc"))
        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED

    def test_handler_errors_rendered(self):
        router = Router()

        @router.get("/bad")
        def bad(request):
            raise ValidationError("invalid id")

        @router.get("/gone")
        def gone(request):
            raise NotFoundError()

        bad_response = router.handle(make_request("GET", "/bad"))
        assert bad_response.status == HTTPStatus.BAD_REQUEST
        assert bad_response.body == b"invalid id\n"

        gone_response = router.handle(make_request("GET", "/gone"))
        assert gone_response.status == HTTPStatus.NOT_FOUND

    def test_unexpected_errors_propagate(self):
        router = Router()

        @router.get("/boom")
        def boom(request):
            raise KeyError("boom")

        with pytest.raises(KeyError):
            router.handle(make_request("GET", "/boom"))

    def test_dispatch_raises(self, todo_router: Router):
        with pytest.raises(NotFoundError):
            todo_router.dispatch(make_request("GET", "/unknown"))

    def test_path_params_in_request(self, todo_router: Router):
        request = make_request("DELETE", "/todos/42")
        todo_router.handle(request)

        assert request.path_params == {"id": "42"}


class TestRouterDecorators:
    """Tests for decorator-style route registration."""

    def test_get_decorator(self):
        router = Router()

        @router.get("/test")
        def test_handler(request):
            return ResponseBuilder().text("test").build()

        assert len(router.routes) == 1
        assert router.routes[0].method == "GET"

    def test_route_multiple_methods(self):
        router = Router()

        @router.route("/items", methods=["GET", "POST"])
        def items(request):
            return ResponseBuilder().text("items").build()

        assert router.get_allowed_methods("/items") == ["GET", "POST"]
