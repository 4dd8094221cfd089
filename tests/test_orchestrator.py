from __future__ import annotations

import json
from pathlib import Path

import pytest

import codescan
from codescan.errors import LoadError, MergeError
from codescan.orchestrator import Orchestrator, read_base_document
from codescan.spec.document import Document
from codescan.spec.merge import merge_documents

from tests._fixtures.petstore import PETSTORE_DOCUMENT, PETSTORE_FILES

SCENARIO = {
    "api/pets.go": """
        package api

        // swagger:route GET /pets pets listPets
        //
        // Lists pets.
        //
        // Responses:
        //   200: body:[]Pet
        func ListPets() {}

        // swagger:model
        type Pet struct {
            // required: true
            Name string
        }
    """
}

UNREFERENCED = {
    "api/pets.go": """
        package api

        // swagger:route GET /health health healthCheck
        //
        // Responses:
        //   200: description: healthy
        func Health() {}

        // swagger:model
        type Pet struct {
            // required: true
            Name string
        }
    """
}


def test_scenario_array_response_references_model(go_repo) -> None:
    go_repo.write(SCENARIO)

    spec = go_repo.spec()

    response = spec["paths"]["/pets"]["get"]["responses"]["200"]
    assert response["schema"] == {"type": "array", "items": {"$ref": "#/definitions/Pet"}}
    assert spec["definitions"]["Pet"]["required"] == ["Name"]


def test_scenario_unreferenced_model_needs_scan_models(go_repo) -> None:
    go_repo.write(UNREFERENCED)

    assert "definitions" not in go_repo.spec()
    assert go_repo.spec(scan_models=True)["definitions"]["Pet"] == {
        "type": "object",
        "required": ["Name"],
        "properties": {"Name": {"type": "string"}},
    }


def test_scenario_merge_keeps_base_path_untouched(go_repo) -> None:
    go_repo.write(SCENARIO)
    users = {
        "get": {
            "summary": "Lists users.",
            "responses": {"200": {"description": "OK", "x-cache": True}},
        }
    }
    base = {"swagger": "2.0", "info": {"title": "Users"}, "paths": {"/users": users}}
    original = json.dumps(users, sort_keys=True)

    spec = go_repo.spec(input_spec=base)

    assert set(spec["paths"]) == {"/pets", "/users"}
    assert json.dumps(spec["paths"]["/users"], sort_keys=True) == original
    assert json.dumps(base["paths"]["/users"], sort_keys=True) == original


def test_runs_are_deterministic(go_repo) -> None:
    go_repo.write(PETSTORE_FILES)

    first = go_repo.run()
    second = go_repo.run()

    assert first == second
    assert first.to_json() == second.to_json()
    assert first.to_yaml() == second.to_yaml()


def test_merging_a_document_into_itself_changes_nothing(go_repo) -> None:
    go_repo.write(PETSTORE_FILES)
    document = go_repo.run()

    merged = merge_documents(document, document)

    assert merged == document
    assert merged.to_json() == document.to_json()
    assert merge_documents(document, json.loads(document.to_json())).to_json() == document.to_json()


def test_self_referencing_pointer_yields_one_definition(go_repo) -> None:
    go_repo.write(
        {
            "api/tree.go": """
                package api

                // swagger:route GET /tree tree getTree
                //
                // Responses:
                //   200: body:Node
                func GetTree() {}

                // Node is a tree node.
                type Node struct {
                    Value string `json:"value"`
                    Next *Node `json:"next"`
                }
            """
        }
    )

    spec = go_repo.spec()

    assert spec["definitions"] == {
        "Node": {
            "description": "Node is a tree node.",
            "type": "object",
            "properties": {"value": {"type": "string"}, "next": {"$ref": "#/definitions/Node"}},
        }
    }


@pytest.mark.parametrize(
    ("include", "exclude"),
    [((), ()), (("pets",), ()), ((), ("store",)), (("pets", "store"), ("pets",)), (("missing",), ())],
)
def test_retained_operations_satisfy_tag_filters(go_repo, include, exclude) -> None:
    go_repo.write(PETSTORE_FILES)

    document = go_repo.run(include_tags=include, exclude_tags=exclude)

    all_ops = {
        (path, method): set(op.get("tags", ()))
        for path, item in PETSTORE_DOCUMENT["paths"].items()
        for method, op in item.items()
    }
    kept = {(path, method) for path, method, _ in document.operations()}
    for key, tags in all_ops.items():
        allowed = (not include or bool(tags & set(include))) and not tags & set(exclude)
        assert (key in kept) is allowed


ALIASED = {
    "api/items.go": """
        package api

        // swagger:route GET /items items listItems
        //
        // Responses:
        //   200: body:Item
        func ListItems() {}

        // ItemID identifies an item.
        type ItemID = string

        // Item is an item.
        type Item struct {
            ID ItemID `json:"id"`
            // The parent item id.
            Parent ItemID `json:"parent"`
        }
    """
}


def test_transparent_aliases_win_over_ref_aliases(go_repo) -> None:
    go_repo.write(ALIASED)

    spec = go_repo.spec(ref_aliases=True, transparent_aliases=True)

    assert list(spec["definitions"]) == ["Item"]
    assert spec["definitions"]["Item"]["properties"] == {
        "id": {"type": "string"},
        "parent": {"description": "The parent item id.", "type": "string"},
    }


def test_documented_alias_field_with_ref_aliases(go_repo) -> None:
    go_repo.write(ALIASED)

    plain = go_repo.spec(ref_aliases=True)
    with_ref = go_repo.spec(ref_aliases=True, desc_with_ref=True)

    assert plain["definitions"]["Item"]["properties"] == {
        "id": {"$ref": "#/definitions/ItemID"},
        "parent": {"description": "The parent item id.", "type": "string"},
    }
    assert plain["definitions"]["ItemID"] == {"description": "ItemID identifies an item.", "type": "string"}
    assert with_ref["definitions"]["Item"]["properties"]["parent"] == {
        "description": "The parent item id.",
        "$ref": "#/definitions/ItemID",
    }


@pytest.mark.parametrize("nullable", [False, True])
def test_pointer_nullability(go_repo, nullable: bool) -> None:
    go_repo.write(
        {
            "api/user.go": """
                package api

                // swagger:route GET /user users getUser
                //
                // Responses:
                //   200: body:User
                func GetUser() {}

                type User struct {
                    Plain string `json:"plain"`
                    Pointer *string `json:"pointer"`
                }
            """
        }
    )

    properties = go_repo.spec(set_x_nullable_for_pointers=nullable)["definitions"]["User"]["properties"]

    if nullable:
        assert properties["plain"] == {"type": "string"}
        assert properties["pointer"] == {"type": "string", "x-nullable": True}
    else:
        assert properties["plain"] == properties["pointer"] == {"type": "string"}


def test_excluded_packages_contribute_nothing(go_repo) -> None:
    go_repo.write(PETSTORE_FILES)
    go_repo.write(
        {
            "admin/admin.go": """
                package admin

                // swagger:route DELETE /admin/pets admin purgePets
                func Purge() {}
            """
        }
    )

    assert "/admin/pets" in go_repo.spec()["paths"]
    assert "/admin/pets" not in go_repo.spec(exclude=("admin",))["paths"]
    assert list(go_repo.spec(packages=("./admin",))["paths"]) == ["/admin/pets"]


def test_run_helper_and_package_exports(go_repo, monkeypatch: pytest.MonkeyPatch) -> None:
    go_repo.write(PETSTORE_FILES)
    monkeypatch.chdir(go_repo.path())

    document = codescan.run()

    assert isinstance(document, codescan.Document)
    assert document.to_dict() == PETSTORE_DOCUMENT
    assert codescan.__version__ == "0.1.0"


def test_orchestrator_reports_load_errors(tmp_path: Path) -> None:
    with pytest.raises(LoadError, match="no go.mod"):
        Orchestrator().run(codescan.Options(work_dir=str(tmp_path)))


def test_read_base_document_accepts_json_and_yaml(tmp_path: Path) -> None:
    json_file = tmp_path / "base.json"
    json_file.write_text('{"swagger": "2.0", "paths": {}}', encoding="utf-8")
    yaml_file = tmp_path / "base.yaml"
    yaml_file.write_text("swagger: '2.0'\npaths:\n  /users: {}\n", encoding="utf-8")

    assert read_base_document(json_file) == {"swagger": "2.0", "paths": {}}
    assert read_base_document(yaml_file) == {"swagger": "2.0", "paths": {"/users": {}}}


@pytest.mark.parametrize("text", ["- just\n- a list\n", "key: [unclosed\n"])
def test_read_base_document_rejects_bad_input(tmp_path: Path, text: str) -> None:
    path = tmp_path / "base.yaml"
    path.write_text(text, encoding="utf-8")

    with pytest.raises(MergeError):
        read_base_document(path)

    with pytest.raises(MergeError, match="cannot read base document"):
        read_base_document(tmp_path / "missing.json")


def test_base_document_instance_is_accepted(go_repo) -> None:
    go_repo.write(SCENARIO)
    base = Document(info={"title": "Base", "version": "3"}, paths={"/users": {"get": {"responses": {}}}})

    document = go_repo.run(input_spec=base)

    assert document.info == {"title": "Base", "version": "3"}
    assert set(document.paths) == {"/pets", "/users"}
