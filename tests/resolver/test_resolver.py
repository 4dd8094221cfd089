from __future__ import annotations

from typing import Any

import pytest

from codescan.annotations import AnnotationExtractor
from codescan.errors import AnnotationError, ConflictError, ResolutionError
from codescan.resolver import TypeResolver

MODELS = "example.com/petstore/models"


def _resolver(go_repo, files: Any, **options: Any) -> TypeResolver:
    if isinstance(files, str):
        files = {"models/models.go": files}
    go_repo.write(files)
    universe = go_repo.load(**options)
    annotations = AnnotationExtractor().extract(universe)
    return TypeResolver(universe, annotations, go_repo.options(**options))


def _definition(resolver: TypeResolver, name: str, package: str = MODELS) -> dict:
    ref = resolver.resolve_model((package, name))
    assert ref.ref is not None
    return resolver.definitions[ref.ref].to_dict()


def test_struct_fields_become_properties(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        import "time"

        // Pet is a pet in the store.
        //
        // swagger:model
        type Pet struct {
            // The pet identifier.
            //
            // Required: true
            // Minimum: 1
            ID int64 `json:"id"`
            Name string `json:"name,omitempty"`
            Tags []string `json:"tags"`
            Born time.Time `json:"born"`
            Weight float32 `json:"weight,string"`
            Photo []byte `json:"photo"`
            secret string
            Skip string `json:"-"`
            Attrs map[string]int `json:"attrs"`
            Extra interface{} `json:"extra"`
            Plain bool
        }
        """,
    )

    pet = _definition(resolver, "Pet")

    assert pet["description"] == "Pet is a pet in the store."
    assert pet["type"] == "object"
    assert pet["required"] == ["id"]
    assert list(pet["properties"]) == ["id", "name", "tags", "born", "weight", "photo", "attrs", "extra", "Plain"]
    assert pet["properties"] == {
        "id": {"description": "The pet identifier.", "type": "integer", "format": "int64", "minimum": 1},
        "name": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
        "born": {"type": "string", "format": "date-time"},
        "weight": {"type": "string"},
        "photo": {"type": "string", "format": "byte"},
        "attrs": {"type": "object", "additionalProperties": {"type": "integer", "format": "int64"}},
        "extra": {"type": "object"},
        "Plain": {"type": "boolean"},
    }


def test_embedded_models_compose_and_plain_structs_promote(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        // swagger:model
        type Base struct {
            ID string `json:"id"`
        }

        type Audit struct {
            // Required: true
            CreatedBy string `json:"createdBy"`
            Name int `json:"name"`
        }

        // swagger:model
        type Dog struct {
            Base
            *Audit
            Name string `json:"name"`
        }
        """,
    )

    dog = _definition(resolver, "Dog")

    assert dog == {
        "allOf": [
            {"$ref": "#/definitions/Base"},
            {
                "type": "object",
                "required": ["createdBy"],
                "properties": {"createdBy": {"type": "string"}, "name": {"type": "string"}},
            },
        ]
    }
    assert resolver.definitions["Base"].to_dict() == {
        "type": "object",
        "properties": {"id": {"type": "string"}},
    }
    assert "Audit" not in resolver.definitions


def test_pointer_fields_are_nullable_when_requested(go_repo) -> None:
    source = """
        package models

        // swagger:model
        type Owner struct {
            Pet *Pet `json:"pet"`
            Nick *string `json:"nick"`
        }

        type Pet struct {
            Name string `json:"name"`
        }
        """
    nullable = _definition(_resolver(go_repo, source, set_x_nullable_for_pointers=True), "Owner")
    plain = _definition(_resolver(go_repo, {}, set_x_nullable_for_pointers=False), "Owner")

    assert nullable["properties"] == {
        "pet": {"$ref": "#/definitions/Pet", "x-nullable": True},
        "nick": {"type": "string", "x-nullable": True},
    }
    assert plain["properties"] == {"pet": {"$ref": "#/definitions/Pet"}, "nick": {"type": "string"}}


def test_map_keys_must_be_strings(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        type Key string

        // swagger:model
        type Good struct {
            Counts map[Key]int `json:"counts"`
        }

        // swagger:model
        type Bad struct {
            Counts map[int]string `json:"counts"`
        }
        """,
    )

    assert _definition(resolver, "Good")["properties"]["counts"] == {
        "type": "object",
        "additionalProperties": {"type": "integer", "format": "int64"},
    }
    with pytest.raises(ResolutionError, match="map key type int is not a string"):
        resolver.resolve_model((MODELS, "Bad"))


ALIASES = """
    package models

    type ID = string

    type Code string

    // swagger:model
    type Item struct {
        ID ID `json:"id"`
        Code Code `json:"code"`
    }
    """


@pytest.mark.parametrize(
    ("options", "expected", "definitions"),
    [
        ({}, {"id": {"type": "string"}, "code": {"type": "string"}}, {"Item"}),
        (
            {"ref_aliases": True},
            {"id": {"$ref": "#/definitions/ID"}, "code": {"$ref": "#/definitions/Code"}},
            {"Item", "ID", "Code"},
        ),
        (
            {"ref_aliases": True, "transparent_aliases": True},
            {"id": {"type": "string"}, "code": {"type": "string"}},
            {"Item"},
        ),
    ],
)
def test_alias_options(go_repo, options, expected, definitions) -> None:
    resolver = _resolver(go_repo, ALIASES, **options)

    assert _definition(resolver, "Item")["properties"] == expected
    assert set(resolver.definitions) == definitions


def test_enum_values_come_from_typed_constants(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        // Status of a pet.
        // swagger:enum
        type Status string

        const (
            StatusAvailable Status = "available"
            StatusSold Status = "sold"
            Unrelated = "x"
        )

        // Level is a numeric level.
        // swagger:model
        type Level int

        // swagger:enum Level
        const (
            Low Level = iota + 1
            High
        )

        // swagger:model
        type Pet struct {
            Status Status `json:"status"`
            Level Level `json:"level"`
        }
        """,
    )

    pet = _definition(resolver, "Pet")

    assert pet["properties"]["status"] == {"type": "string", "enum": ["available", "sold"]}
    assert pet["properties"]["level"] == {"$ref": "#/definitions/Level"}
    assert resolver.definitions["Level"].to_dict() == {
        "description": "Level is a numeric level.",
        "type": "integer",
        "format": "int64",
        "enum": [1, 2],
    }


def test_strfmt_on_types_and_fields(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        // swagger:strfmt email
        type Email string

        // swagger:type string date
        type Day struct{ Y, M, D int }

        // swagger:model
        type User struct {
            Email Email `json:"email"`
            // swagger:strfmt hostname
            Host string `json:"host"`
            Birthday Day `json:"birthday"`
        }
        """,
    )

    assert _definition(resolver, "User")["properties"] == {
        "email": {"type": "string", "format": "email"},
        "host": {"type": "string", "format": "hostname"},
        "birthday": {"type": "string", "format": "date"},
    }


def test_self_reference_terminates(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        // swagger:model
        type Node struct {
            // The children.
            Children []*Node `json:"children"`
            // The parent node.
            Parent *Node `json:"parent"`
        }
        """,
    )

    node = _definition(resolver, "Node")

    assert node["properties"] == {
        "children": {"description": "The children.", "type": "array", "items": {"$ref": "#/definitions/Node"}},
        "parent": {"$ref": "#/definitions/Node"},
    }


def test_mutual_recursion_produces_two_definitions(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        // swagger:model
        type A struct {
            B *B `json:"b"`
        }

        type B struct {
            A []A `json:"a"`
        }
        """,
    )

    assert _definition(resolver, "A") == {"type": "object", "properties": {"b": {"$ref": "#/definitions/B"}}}
    assert resolver.definitions["B"].to_dict() == {
        "type": "object",
        "properties": {"a": {"type": "array", "items": {"$ref": "#/definitions/A"}}},
    }


@pytest.mark.parametrize(
    ("desc_with_ref", "expected"),
    [
        (
            False,
            {
                "description": "Who owns the pet.",
                "type": "object",
                "properties": {"name": {"type": "string"}},
            },
        ),
        (True, {"description": "Who owns the pet.", "$ref": "#/definitions/Owner"}),
    ],
)
def test_field_description_next_to_reference(go_repo, desc_with_ref, expected) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        // swagger:model
        type Owner struct {
            Name string `json:"name"`
        }

        // swagger:model
        type Pet struct {
            // Who owns the pet.
            Owner Owner `json:"owner"`
        }
        """,
        desc_with_ref=desc_with_ref,
    )

    assert _definition(resolver, "Pet")["properties"]["owner"] == expected


def test_discriminators(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        // swagger:model
        // swagger:discriminator kind
        type Animal struct {
            Kind string `json:"kind"`
            Name string `json:"name"`
        }

        // swagger:model
        type Shape struct {
            // Discriminator: true
            Type string `json:"type"`
        }
        """,
    )

    animal = _definition(resolver, "Animal")
    shape = _definition(resolver, "Shape")

    assert animal["discriminator"] == "kind"
    assert animal["required"] == ["kind"]
    assert shape["discriminator"] == "type"
    assert shape["required"] == ["type"]


def test_named_collections_are_definitions(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        """
        package models

        // swagger:model
        type Pet struct {
            Name string `json:"name"`
        }

        // Pets is a list of pets.
        type Pets []Pet
        """,
    )

    assert _definition(resolver, "Pets") == {
        "description": "Pets is a list of pets.",
        "type": "array",
        "items": {"$ref": "#/definitions/Pet"},
    }


def test_model_name_override_and_conflicts(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        {
            "a/pet.go": """
                package a

                // swagger:model pet
                type Pet struct {
                    Name string `json:"name"`
                }
            """,
            "b/pet.go": """
                package b

                // swagger:model pet
                type Animal struct {
                    Age int `json:"age"`
                }
            """,
            "c/pet.go": """
                package c

                // swagger:model pet
                type Same struct {
                    Name string `json:"name"`
                }
            """,
        },
    )

    assert resolver.resolve_model(("example.com/petstore/a", "Pet")).ref == "pet"
    assert resolver.resolve_model(("example.com/petstore/c", "Same")).ref == "pet"
    with pytest.raises(ConflictError, match="definition pet is declared by"):
        resolver.resolve_model(("example.com/petstore/b", "Animal"))


@pytest.mark.parametrize(
    ("field", "message"),
    [
        ("Events chan int", "unsupported channel type"),
        ("Callback func()", "unsupported function type"),
        ("Err error", "error interface"),
        ("Z complex128", "complex number type"),
        ("Lock sync.Mutex", "unsupported standard library type sync.Mutex"),
        ("Box Box[int]", "unsupported generic type"),
        ("Named Namer", "interfaces with methods"),
        ("Missing Missing", "undefined type Missing"),
        ("Hidden Hidden", "marked swagger:ignore"),
    ],
)
def test_unsupported_types_raise(go_repo, field: str, message: str) -> None:
    resolver = _resolver(
        go_repo,
        f"""
        package models

        import "sync"

        var _ sync.Mutex

        type Box[T any] struct{{ Value T }}

        type Namer interface{{ Name() string }}

        // swagger:ignore
        type Hidden struct{{}}

        // swagger:model
        type Holder struct {{
            {field}
        }}
        """,
    )

    with pytest.raises(ResolutionError, match=message) as excinfo:
        resolver.resolve_model((MODELS, "Holder"))

    assert excinfo.value.position is not None
    assert excinfo.value.position.file == "models/models.go"


def test_types_from_unloaded_packages_are_opaque(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        {
            "models/models.go": """
                package models

                import "github.com/acme/kit/money"

                // swagger:model
                type Price struct {
                    Amount money.Amount `json:"amount"`
                }
            """,
            "vendor/github.com/acme/kit/money/money.go": """
                package money

                type Amount struct {
                    Cents int `json:"cents"`
                }
            """,
        },
        exclude_deps=True,
    )

    assert _definition(resolver, "Price")["properties"]["amount"] == {"type": "object"}


def test_types_from_loaded_dependencies_resolve(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        {
            "models/models.go": """
                package models

                import kit "github.com/acme/kit/money"

                // swagger:model
                type Price struct {
                    Amount kit.Amount `json:"amount"`
                }
            """,
            "vendor/github.com/acme/kit/money/money.go": """
                package money

                type Amount struct {
                    Cents int `json:"cents"`
                }
            """,
        },
    )

    assert _definition(resolver, "Price")["properties"]["amount"] == {"$ref": "#/definitions/Amount"}
    assert resolver.definitions["Amount"].to_dict() == {
        "type": "object",
        "properties": {"cents": {"type": "integer", "format": "int64"}},
    }


PARAMS = """
    package models

    type Pet struct {
        Name string `json:"name"`
    }

    // swagger:parameters getPet
    type GetPetParams struct {
        // The pet id.
        // in: path
        ID int64 `json:"id"`
        // in: query
        // collection format: csv
        Tags []string `json:"tags"`
        // in: header
        // Required: true
        Token string `json:"X-Token"`
        // in: body
        Body Pet
        internal string
    }

    // A list of pets.
    // swagger:response petsResponse
    type PetsResponse struct {
        // The rate limit.
        XRateLimit int `json:"X-Rate-Limit"`
        // in: body
        Body []Pet
    }

    // swagger:parameters badLocation
    type BadLocation struct {
        // in: cookie
        Session string `json:"session"`
    }

    // swagger:response badHeader
    type BadHeader struct {
        Owner Pet `json:"owner"`
    }
    """


def test_parameters_struct_fields_become_parameters(go_repo) -> None:
    resolver = _resolver(go_repo, PARAMS)

    assert resolver.resolve_parameters((MODELS, "GetPetParams")) == [
        {
            "name": "id",
            "in": "path",
            "description": "The pet id.",
            "required": True,
            "type": "integer",
            "format": "int64",
        },
        {"name": "tags", "in": "query", "type": "array", "items": {"type": "string"}, "collectionFormat": "csv"},
        {"name": "X-Token", "in": "header", "required": True, "type": "string"},
        {"name": "Body", "in": "body", "schema": {"$ref": "#/definitions/Pet"}},
    ]


def test_response_struct_body_and_headers(go_repo) -> None:
    resolver = _resolver(go_repo, PARAMS)

    assert resolver.resolve_response((MODELS, "PetsResponse"), "petsResponse") == {
        "description": "A list of pets.",
        "schema": {"type": "array", "items": {"$ref": "#/definitions/Pet"}},
        "headers": {
            "X-Rate-Limit": {"description": "The rate limit.", "type": "integer", "format": "int64"}
        },
    }


def test_invalid_parameter_location_and_header_shape(go_repo) -> None:
    resolver = _resolver(go_repo, PARAMS)

    with pytest.raises(AnnotationError, match="invalid parameter location 'cookie'"):
        resolver.resolve_parameters((MODELS, "BadLocation"))
    with pytest.raises(ResolutionError, match="must be a primitive or an array of primitives"):
        resolver.resolve_response((MODELS, "BadHeader"), "badHeader")


def test_resolve_type_name_finds_types_across_packages(go_repo) -> None:
    resolver = _resolver(
        go_repo,
        {
            "api/routes.go": """
                package api

                import "example.com/petstore/models"

                var _ models.Pet
            """,
            "models/models.go": """
                package models

                type Pet struct {
                    Name string `json:"name"`
                }

                type Error struct {
                    Message string `json:"message"`
                }
            """,
            "other/other.go": """
                package other

                type Error struct {
                    Code int `json:"code"`
                }
            """,
        },
    )
    api = "example.com/petstore/api"

    assert resolver.resolve_type_name("models.Pet", api, "api/routes.go").ref == "Pet"
    assert resolver.resolve_type_name("Pet", api, "api/routes.go").ref == "Pet"
    assert resolver.resolve_type_name("string", api, "api/routes.go").to_dict() == {"type": "string"}
    with pytest.raises(AnnotationError, match="type Error is ambiguous"):
        resolver.resolve_type_name("Error", api, "api/routes.go")
