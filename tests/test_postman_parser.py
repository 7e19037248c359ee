import json
from pathlib import Path

from spec_reconciler.parser.loader import document_info, extract_endpoints, load_file
from spec_reconciler.parser.postman import parse_postman

FIXTURES = Path(__file__).parent / "fixtures"


def _collection() -> dict:
    return json.loads((FIXTURES / "sample.postman.json").read_text(encoding="utf-8"))


def _find(endpoints, method, path):
    return [e for e in endpoints if e.method == method and e.path == path][0]


class TestPostmanParser:
    def test_parse_collection_count(self):
        endpoints = parse_postman(_collection())
        assert [(e.method, e.path) for e in endpoints] == [
            ("GET", "/users"),
            ("GET", "/users/{userId}"),
            ("POST", "/users"),
            ("GET", "/health"),
        ]
        assert all(e.source == "postman" for e in endpoints)

    def test_folder_becomes_tag(self):
        endpoints = parse_postman(_collection())
        assert endpoints[0].tags == ["Users"]
        assert endpoints[3].tags == []

    def test_query_and_header_params(self):
        list_users = _find(parse_postman(_collection()), "GET", "/users")
        params = {(p.name, p.location): p for p in list_users.request.parameters}
        assert params[("page", "query")].example == "1"
        assert ("Authorization", "header") in params
        assert list_users.auth.type == "bearer"

    def test_path_variable(self):
        get_user = _find(parse_postman(_collection()), "GET", "/users/{userId}")
        param = get_user.request.parameters[0]
        assert (param.name, param.location, param.required, param.example) == ("userId", "path", True, "42")

    def test_saved_response(self):
        get_user = _find(parse_postman(_collection()), "GET", "/users/{userId}")
        success = get_user.responses.success
        assert success.status == 200
        assert success.example == {"id": 42, "email": "ada@example.com"}
        assert [(f.name, f.type) for f in success.fields] == [("id", "integer"), ("email", "string")]

    def test_raw_json_body(self):
        create = _find(parse_postman(_collection()), "POST", "/users")
        assert create.request.content_type == "application/json"
        assert [(f.name, f.type) for f in create.request.body.fields] == [
            ("name", "string"),
            ("email", "string"),
            ("is_active", "boolean"),
        ]
        assert all(p.name != "Content-Type" for p in create.request.parameters)

    def test_missing_status_left_for_defaults(self):
        create = _find(parse_postman(_collection()), "POST", "/users")
        assert create.responses.success.status is None


class TestPostmanWithSmartDefaults:
    def test_enriched_on_extract(self):
        endpoints = extract_endpoints(load_file(FIXTURES / "sample.postman.json"))
        get_user = _find(endpoints, "GET", "/users/{userId}")
        assert get_user.request.parameters[0].type == "integer"
        assert [e.status for e in get_user.responses.errors] == [401, 403, 404, 500]

        create = _find(endpoints, "POST", "/users")
        assert create.responses.success.status == 201
        assert create.request.body.fields[1].format == "email"

        page = _find(endpoints, "GET", "/users").request.parameters[0]
        assert (page.type, page.min, page.default) == ("integer", 1, 1)

    def test_smart_defaults_off(self):
        endpoints = extract_endpoints(load_file(FIXTURES / "sample.postman.json"), smart_defaults=False)
        assert _find(endpoints, "POST", "/users").responses.errors == []

    def test_document_info(self):
        info = document_info(load_file(FIXTURES / "sample.postman.json"))
        assert info.name == "Users Collection"
        assert info.base_url == "https://api.example.com"
