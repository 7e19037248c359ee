from pathlib import Path

import pytest
import yaml

from spec_reconciler.errors import UnsupportedFormat
from spec_reconciler.parser.detect import detect_format
from spec_reconciler.parser.loader import document_info, extract_endpoints, load_file, parse_document
from spec_reconciler.parser.swagger import parse_openapi
from spec_reconciler.reconcile.fields import find_cycles

FIXTURES = Path(__file__).parent / "fixtures"


def _petstore() -> dict:
    return yaml.safe_load((FIXTURES / "petstore.yaml").read_text(encoding="utf-8"))


def _find(endpoints, method, path):
    return [e for e in endpoints if e.method == method and e.path == path][0]


class TestDetectFormat:
    def test_detect_openapi_yaml(self):
        assert detect_format((FIXTURES / "petstore.yaml").read_text()) == ("openapi", "3.0.3")

    def test_detect_swagger_json(self):
        assert detect_format((FIXTURES / "users.swagger.json").read_text()) == ("swagger", "2.0")

    def test_detect_postman(self):
        assert detect_format((FIXTURES / "sample.postman.json").read_text()) == ("postman", "2.1.0")

    def test_detect_curl(self):
        assert detect_format("curl https://api.example.com/pets")[0] == "curl"

    def test_detect_unknown_format(self):
        assert detect_format("# API Docs\nSome text") == ("unknown", None)
        assert detect_format("key: [unclosed") == ("unknown", None)


class TestOpenApiParser:
    def test_parse_petstore_endpoints_count(self):
        endpoints = parse_openapi(_petstore(), spec_id=3)
        assert len(endpoints) == 3
        assert all(e.spec_id == 3 and e.source == "openapi" for e in endpoints)

    def test_parse_get_pets(self):
        get_pets = _find(parse_openapi(_petstore()), "GET", "/pets")
        assert get_pets.name == "List all pets"
        assert get_pets.operation_id == "listPets"
        assert get_pets.tags == ["pets"]
        assert [p.name for p in get_pets.request.parameters] == ["limit", "status"]
        limit, status = get_pets.request.parameters
        assert limit.type == "integer"
        assert limit.max == 100
        assert limit.required is False
        assert status.enum == ["available", "sold"]
        assert get_pets.auth.type == "none"
        assert get_pets.auth.required is False

    def test_list_response_fields_come_from_items(self):
        get_pets = _find(parse_openapi(_petstore()), "GET", "/pets")
        success = get_pets.responses.success
        assert success.status == 200
        assert [f.name for f in success.fields] == ["name", "tag", "id", "owner"]
        assert isinstance(success.example, list)
        assert [e.status for e in get_pets.responses.errors] == [500]

    def test_parse_post_pets_has_body(self):
        post_pets = _find(parse_openapi(_petstore()), "POST", "/pets")
        body = post_pets.request.body
        assert body.required is True
        assert [(f.name, f.required) for f in body.fields] == [("name", True), ("tag", False)]
        assert body.example == {"name": "Rex", "tag": "string"}
        assert post_pets.responses.success.status == 201
        assert post_pets.auth.type == "bearer"
        assert post_pets.auth.bearer_format == "JWT"

    def test_path_level_parameter(self):
        get_pet = _find(parse_openapi(_petstore()), "GET", "/pets/{petId}")
        param = get_pet.request.parameters[0]
        assert param.name == "petId"
        assert param.location == "path"
        assert param.required is True
        assert param.type == "integer"

    def test_error_example(self):
        get_pet = _find(parse_openapi(_petstore()), "GET", "/pets/{petId}")
        error = get_pet.responses.errors[0]
        assert error.status == 404
        assert error.content_type == "application/json"
        assert error.example == {"code": 404, "message": "Pet not found"}

    def test_recursive_ref_is_cut(self):
        get_pet = _find(parse_openapi(_petstore()), "GET", "/pets/{petId}")
        owner = [f for f in get_pet.responses.success.fields if f.name == "owner"][0]
        pets = owner.properties[1]
        assert pets.type == "array"
        assert pets.items.type == "object"
        assert pets.items.properties is None
        assert find_cycles(get_pet.responses.success.fields) == []


class TestSwaggerParser:
    def _endpoints(self):
        return parse_openapi(yaml.safe_load((FIXTURES / "users.swagger.json").read_text()))

    def test_source_and_count(self):
        endpoints = self._endpoints()
        assert len(endpoints) == 3
        assert all(e.source == "swagger" for e in endpoints)

    def test_query_param_types_on_parameter(self):
        page = _find(self._endpoints(), "GET", "/users").request.parameters[0]
        assert (page.type, page.min, page.default) == ("integer", 1, 1)

    def test_body_parameter(self):
        post = _find(self._endpoints(), "POST", "/users")
        assert post.request.parameters == []
        assert post.request.body.required is True
        assert [f.name for f in post.request.body.fields] == ["id", "email", "tags"]
        assert post.request.body.fields[2].items.type == "string"
        assert post.request.content_type == "application/json"

    def test_form_data_upload(self):
        put = _find(self._endpoints(), "PUT", "/users/{id}/avatar")
        assert put.request.content_type == "multipart/form-data"
        assert put.request.body.fields[0].type == "file"
        assert put.responses.success.status == 204

    def test_api_key_auth(self):
        auth = _find(self._endpoints(), "GET", "/users").auth
        assert auth.type == "apiKey"
        assert auth.location == "header"
        assert auth.name == "X-API-Key"


class TestLoader:
    def test_parse_document(self):
        parsed = load_file(FIXTURES / "petstore.yaml")
        assert parsed.format == "openapi"
        assert parsed.version == "3.0.3"
        assert isinstance(parsed.document, dict)

    def test_document_info(self):
        info = document_info(load_file(FIXTURES / "users.swagger.json"))
        assert info.name == "Users API"
        assert info.version == "0.3.0"
        assert info.base_url == "https://api.example.com/v1"

        assert document_info(load_file(FIXTURES / "petstore.yaml")).base_url == "https://petstore.example.com/v1"

    def test_unknown_document(self):
        with pytest.raises(UnsupportedFormat):
            parse_document("# API Docs\nSome text", "doc.md")

    def test_invalid_yaml(self):
        with pytest.raises(UnsupportedFormat):
            parse_document("key: [unclosed", "doc.yaml")

    def test_openapi_not_enriched(self):
        endpoints = extract_endpoints(load_file(FIXTURES / "petstore.yaml"))
        get_pets = _find(endpoints, "GET", "/pets")
        assert [e.status for e in get_pets.responses.errors] == [500]
