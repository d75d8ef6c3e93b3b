import pytest

from errors import MethodNotAllowed, NotFound
from routing import COLLECTION, FIXED, ITEM, Route, Router


@pytest.fixture
def router():
    return Router()


class TestResolve:
    def test_collection_list_and_create(self, router):
        match = router.resolve("GET", "/api/patients")
        assert (match.resource, match.kind, match.identifier) == ("patients", COLLECTION, None)
        assert match.operation == "list"
        assert router.resolve("post", "/api/patients").operation == "create"

    def test_trailing_slash_is_collection(self, router):
        assert router.resolve("GET", "/api/doctors/").operation == "list"

    @pytest.mark.parametrize("method,operation", [("GET", "get"), ("PUT", "update"), ("DELETE", "delete")])
    def test_item_operations(self, router, method, operation):
        match = router.resolve(method, "/api/bills/BILL7")
        assert match.kind == ITEM
        assert match.identifier == "BILL7"
        assert match.operation == operation

    def test_action_suffix(self, router):
        match = router.resolve("POST", "/api/bills/BILL1/pay")
        assert match.identifier == "BILL1"
        assert match.action == "pay"
        assert match.operation == "pay"
        assert router.resolve("PUT", "/api/appointments/APP2/complete").operation == "complete"

    def test_fixed_routes(self, router):
        assert router.resolve("GET", "/health").kind == FIXED
        assert router.resolve("POST", "/api/auth/login").resource == "login"
        assert router.resolve("DELETE", "/api/patients/deleteAll").operation == "deleteAll"

    def test_delete_all_wins_over_item(self, router):
        match = router.resolve("DELETE", "/api/patients/deleteAll")
        assert match.resource == "deleteAll"
        assert match.identifier is None

    def test_malformed_ids_are_passed_through(self, router):
        assert router.resolve("GET", "/api/patients/NOPE").identifier == "NOPE"


class TestRejections:
    @pytest.mark.parametrize("path", [
        "/",
        "/api",
        "/api/unknown",
        "/api/patientsX",
        "/api/bills/BILL1/refund",
        "/api/patients/PAT1/pay",
        "/api/bills/BILL1/pay/again",
        "/api/bills//pay",
        "/health/deep",
    ])
    def test_unroutable_is_not_found(self, router, path):
        with pytest.raises(NotFound):
            router.resolve("GET", path)

    @pytest.mark.parametrize("method,path", [
        ("PUT", "/api/patients"),
        ("DELETE", "/api/doctors"),
        ("POST", "/api/patients/PAT1"),
        ("GET", "/api/bills/BILL1/pay"),
        ("POST", "/health"),
        ("GET", "/api/auth/login"),
        ("GET", "/api/patients/deleteAll"),
        ("PATCH", "/api/users/admin"),
    ])
    def test_unsupported_method(self, router, method, path):
        with pytest.raises(MethodNotAllowed):
            router.resolve(method, path)


def test_custom_table_is_ordered_longest_first():
    router = Router([Route("/a", "a", frozenset({"GET"})), Route("/a/b", "b", frozenset({"GET"}), fixed=True)])
    assert [r.prefix for r in router.routes] == ["/a/b", "/a"]
    assert router.resolve("GET", "/a/b").resource == "b"


def test_allows(router):
    assert router.allows("/api/users/admin")
    assert not router.allows("/nowhere")
