import pytest

from oas_aggregator.errors import UNSUPPORTED_VERSION, VALIDATION_ERROR, InvalidSpecError
from oas_aggregator.parser.validate import validate_spec


def _doc(**overrides):
    doc = {"openapi": "3.0.3", "info": {"title": "T", "version": "1"}, "paths": {}}
    doc.update(overrides)
    return doc


class TestValidateSpec:
    def test_minimal_document_passes(self):
        validate_spec(_doc(), "api.yaml")

    def test_openapi_31_passes(self):
        validate_spec(_doc(openapi="3.1.0"), "api.yaml")

    def test_missing_openapi(self):
        doc = _doc()
        del doc["openapi"]
        with pytest.raises(InvalidSpecError, match="openapi"):
            validate_spec(doc, "api.yaml")

    def test_missing_paths(self):
        doc = _doc()
        del doc["paths"]
        with pytest.raises(InvalidSpecError, match="paths") as exc:
            validate_spec(doc, "api.yaml")
        assert exc.value.code == VALIDATION_ERROR
        assert exc.value.source == "api.yaml"

    def test_swagger_2_rejected(self):
        with pytest.raises(InvalidSpecError) as exc:
            validate_spec({"swagger": "2.0", "info": {}, "paths": {}}, "old.yaml")
        assert exc.value.code == UNSUPPORTED_VERSION

    def test_unsupported_version(self):
        with pytest.raises(InvalidSpecError) as exc:
            validate_spec(_doc(openapi="4.0.0"), "api.yaml")
        assert exc.value.code == UNSUPPORTED_VERSION

    def test_missing_info_title(self):
        with pytest.raises(InvalidSpecError, match="info.title"):
            validate_spec(_doc(info={"version": "1"}), "api.yaml")

    def test_path_must_start_with_slash(self):
        with pytest.raises(InvalidSpecError):
            validate_spec(_doc(paths={"users": {}}), "api.yaml")

    def test_root_must_be_mapping(self):
        with pytest.raises(InvalidSpecError):
            validate_spec(["not", "a", "spec"], "api.yaml")
