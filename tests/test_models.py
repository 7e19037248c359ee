from spec_reconciler.parser.base import (
    CanonicalAuth,
    CanonicalEndpoint,
    CanonicalField,
    CanonicalParameter,
    Spec,
    TestCase,
)


class TestCanonicalParameter:
    def test_location_alias(self):
        param = CanonicalParameter.model_validate({"name": "limit", "in": "query", "type": "integer"})
        assert param.location == "query"
        assert param.model_dump(by_alias=True)["in"] == "query"

    def test_populate_by_name(self):
        param = CanonicalParameter(name="X-Trace", location="header")
        assert param.location == "header"

    def test_path_param_always_required(self):
        param = CanonicalParameter.model_validate({"name": "id", "in": "path", "required": False})
        assert param.required is True

    def test_defaults(self):
        param = CanonicalParameter(name="q")
        assert param.location == "query"
        assert param.type == "string"
        assert param.required is False
        assert param.items is None


class TestCanonicalField:
    def test_nested_structure(self):
        field = CanonicalField.model_validate(
            {
                "name": "order",
                "type": "object",
                "properties": [
                    {"name": "lines", "type": "array", "items": {"type": "object", "properties": [{"name": "sku"}]}}
                ],
            }
        )
        assert field.properties[0].items.properties[0].name == "sku"
        assert field.properties[0].items.name == ""


class TestCanonicalEndpoint:
    def test_method_upper_cased(self):
        endpoint = CanonicalEndpoint(method=" get ", path="/pets")
        assert endpoint.method == "GET"
        assert endpoint.key == ("GET", "/pets")

    def test_defaults(self):
        endpoint = CanonicalEndpoint(method="GET", path="/pets")
        assert endpoint.request.content_type == "application/json"
        assert endpoint.request.parameters == []
        assert endpoint.request.body is None
        assert endpoint.responses.success.status == 200
        assert endpoint.responses.errors == []
        assert endpoint.auth is None
        assert endpoint.deprecated is False

    def test_well_formed(self):
        assert CanonicalEndpoint(method="GET", path="/pets").is_well_formed()
        assert not CanonicalEndpoint(path="/pets").is_well_formed()
        assert not CanonicalEndpoint(method="GET").is_well_formed()

    def test_auth_alias(self):
        auth = CanonicalAuth.model_validate({"type": "apiKey", "in": "header", "name": "X-API-Key"})
        assert auth.location == "header"
        assert auth.required is True


class TestSpecAndTestCase:
    def test_spec_defaults(self):
        spec = Spec(name="Petstore")
        assert spec.version == "1.0.0"
        assert spec.is_latest is True
        assert spec.previous_version_id is None

    def test_test_case_links(self):
        test = TestCase(spec_id=1, name="list pets", source_endpoint_id=3, current_endpoint_id=3)
        assert test.source_endpoint_id == test.current_endpoint_id == 3
        assert test.is_custom_endpoint is False
