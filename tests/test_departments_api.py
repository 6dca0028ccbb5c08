import pytest

from conftest import assert_tree_consistent, auth_header, ids, make_principal
from hrms.api import deps
from hrms.core.security import create_access_token
from hrms.main import app

BASE = "/api/v1/departments"


def _as(*roles: str) -> None:
    principal = make_principal(*roles)

    async def _get_principal():
        return principal

    app.dependency_overrides[deps.get_current_principal] = _get_principal


def test_create_department_returns_enveloped_201(client, store, fake_db):
    response = client.post(BASE, json={"name": "  IT  ", "description": "Tech"})

    assert response.status_code == 201
    body = response.json()
    assert body["code"] == "created"
    assert body["details"] == {}
    data = body["data"]
    assert data["name"] == "IT"
    assert data["dep_path"] == f"/{data['id']}/"
    assert data["level"] == 0
    assert data["employee_count"] == 0
    assert fake_db.committed
    assert fake_db.refreshed == [store.rows[data["id"]]]


def test_create_child_reports_parent_name(client, seed):
    seed(("IT", None))

    data = client.post(BASE, json={"name": "Dev", "parent_id": 1}).json()["data"]

    assert data["parent_id"] == 1
    assert data["parent_name"] == "IT"
    assert data["dep_path"] == "/1/2/"
    assert data["level"] == 1


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "A"},
        {"name": "   "},
        {"name": "x" * 101},
        {"name": "Valid", "description": "d" * 501},
        {"name": "Valid", "parent_id": 0},
    ],
)
def test_create_rejects_invalid_payloads(client, store, payload):
    response = client.post(BASE, json=payload)

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["data"] is None
    assert body["details"]["errors"]
    assert store.rows == {}


def test_duplicate_name_conflicts(client, seed):
    seed(("Sales", None))

    response = client.post(BASE, json={"name": "SALES"})

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "already_exists"
    assert body["details"]["name"] == "SALES"


def test_missing_department_is_404(client):
    response = client.get(f"{BASE}/42")

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "not_found"
    assert body["message"] == "Department not found with id: 42"
    assert body["details"]["department_id"] == 42


def test_list_and_lookup_endpoints(client, store, seed):
    seed(("IT", None), ("Dev", 1), ("Web", 2), ("HR", None))
    store.employee_counts[3] = 5

    listing = client.get(BASE).json()["data"]
    assert listing["total"] == 4
    assert ids(listing["items"]) == [1, 2, 3, 4]

    by_name = client.get(f"{BASE}/by-name", params={"name": "Web"}).json()["data"]
    assert by_name["id"] == 3
    assert by_name["employee_count"] == 5
    assert by_name["parent_name"] == "Dev"

    level = client.get(f"{BASE}/levels/0").json()["data"]
    assert ids(level["items"]) == [1, 4]

    children = client.get(f"{BASE}/1/children").json()["data"]
    assert ids(children["items"]) == [2]

    ancestors = client.get(f"{BASE}/3/ancestors").json()["data"]
    assert [item["name"] for item in ancestors["items"]] == ["IT", "Dev"]


def test_negative_level_is_invalid_operation(client):
    response = client.get(f"{BASE}/levels/-1")

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_operation"


def test_tree_and_subtree(client, store, seed):
    seed(("IT", None), ("Dev", 1), ("Web", 2), ("HR", None))
    store.employee_counts[2] = 3

    tree = client.get(f"{BASE}/tree").json()["data"]
    assert [node["name"] for node in tree] == ["IT", "HR"]
    dev = tree[0]["children"][0]
    assert dev["employee_count"] == 3
    assert dev["is_parent"] is True
    assert [node["name"] for node in dev["children"]] == ["Web"]
    assert tree[1]["children"] == []

    subtree = client.get(f"{BASE}/2/subtree").json()["data"]
    assert subtree["name"] == "Dev"
    assert subtree["level"] == 1
    assert [node["id"] for node in subtree["children"]] == [3]


def test_update_replaces_fields_and_moves(client, store, seed):
    seed(("IT", None), ("Dev", 1), ("HR", None))

    response = client.put(f"{BASE}/2", json={"name": "Engineering", "parent_id": 3})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Engineering"
    assert data["dep_path"] == "/3/2/"
    assert data["parent_name"] == "HR"
    assert store.rows[1].is_parent is False
    assert_tree_consistent(store)


def test_move_endpoint(client, store, seed):
    seed(("IT", None), ("Dev", 1), ("Web", 2))

    response = client.put(f"{BASE}/2/move", json={"new_parent_id": None})
    assert response.status_code == 200
    assert response.json()["data"]["dep_path"] == "/2/"
    assert store.rows[3].dep_path == "/2/3/"
    assert_tree_consistent(store)


def test_move_into_descendant_is_rejected(client, store, fake_db, seed):
    seed(("IT", None), ("Dev", 1))

    response = client.put(f"{BASE}/1/move", json={"new_parent_id": 2})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "invalid_operation"
    assert body["message"] == "Cannot move department to its own child"
    assert not fake_db.committed
    assert store.rows[1].dep_path == "/1/"


def test_delete_with_children_conflicts(client, seed):
    seed(("IT", None), ("Dev", 1))

    response = client.delete(f"{BASE}/1")

    assert response.status_code == 409
    assert response.json()["code"] == "conflict"
    assert response.json()["message"] == "Cannot delete department with children"


def test_delete_with_employees_conflicts(client, store, seed):
    seed(("IT", None))
    store.employee_counts[1] = 2

    response = client.delete(f"{BASE}/1")

    assert response.status_code == 409
    assert response.json()["details"]["employee_count"] == 2


def test_delete_leaf_returns_empty_envelope(client, store, fake_db, seed):
    seed(("IT", None), ("Dev", 1))

    response = client.delete(f"{BASE}/2")

    assert response.status_code == 200
    body = response.json()
    assert body["code"] == "ok"
    assert body["data"] is None
    assert fake_db.committed
    assert store.rows[1].is_parent is False


def test_rebuild_paths_endpoint(client, store, fake_db, seed):
    seed(("IT", None), ("Dev", 1))
    store.rows[2].dep_path = "/stale/"

    response = client.post(f"{BASE}/rebuild-paths")

    assert response.status_code == 200
    assert response.json()["data"] == {"changed": 1}
    assert fake_db.committed
    assert_tree_consistent(store)


def test_employee_role_can_read_but_not_write(client, seed):
    seed(("IT", None))
    _as("EMPLOYEE")

    assert client.get(BASE).status_code == 200
    response = client.post(BASE, json={"name": "Dev"})
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"
    assert response.json()["message"] == "Missing permission: department.manage"


def test_hr_manager_can_manage_but_not_delete(client, seed):
    seed(("IT", None))
    _as("HR_MANAGER")

    assert client.post(BASE, json={"name": "Dev"}).status_code == 201
    assert client.delete(f"{BASE}/1").status_code == 403
    assert client.post(f"{BASE}/rebuild-paths").status_code == 403


def test_missing_token_is_401(client):
    app.dependency_overrides.pop(deps.get_current_principal)

    response = client.get(BASE)

    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"
    assert response.headers["www-authenticate"] == "Bearer"


def test_real_bearer_token_is_accepted(client, seed, patch_jwt_keys):
    app.dependency_overrides.pop(deps.get_current_principal)
    seed(("IT", None))

    token = create_access_token("emp-7", roles=["EMPLOYEE"])
    ok = client.get(f"{BASE}/1", headers=auth_header(token))
    assert ok.status_code == 200
    assert ok.json()["data"]["name"] == "IT"

    denied = client.delete(f"{BASE}/1", headers=auth_header(token))
    assert denied.status_code == 403

    bad = client.get(f"{BASE}/1", headers=auth_header("garbage"))
    assert bad.status_code == 401
