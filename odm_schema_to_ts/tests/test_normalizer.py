#!/usr/bin/env python3

import pytest

from odm_schema_to_ts.ir_nodes import FieldType, NormalizedField, NormalizedModel
from odm_schema_to_ts.normalizer import normalize_field, normalize_model, validate_schema


class TestNormalizeField:
    """Test filling in field defaults"""

    def test_required_defaults_to_true(self):
        """A field without an explicit required marker is required"""
        field = normalize_field({"name": "email", "type": "string"})
        assert field.required is True

    def test_only_explicit_false_is_optional(self):
        assert normalize_field({"name": "a", "type": "string", "required": False}).required is False
        assert normalize_field({"name": "a", "type": "string", "required": None}).required is True
        assert normalize_field({"name": "a", "type": "string", "required": 0}).required is True

    def test_all_defaults_are_filled(self):
        field = normalize_field({"name": "age"})
        assert field == NormalizedField(name="age", type=FieldType.ANY)
        assert field.is_array is False
        assert field.enum_values == ()
        assert field.reference_to is None
        assert field.nested is None

    def test_type_names_are_coerced(self):
        assert normalize_field({"name": "a", "type": "NUMBER"}).type is FieldType.NUMBER
        assert normalize_field({"name": "a", "type": "bogus"}).type is FieldType.ANY

    def test_array_of_is_coerced(self):
        field = normalize_field({"name": "tags", "type": "array", "is_array": True, "array_of": "string"})
        assert field.is_array
        assert field.array_of is FieldType.STRING

    def test_enum_without_values_is_not_an_enum(self):
        field = normalize_field({"name": "role", "type": "string", "is_enum": True, "enum_values": []})
        assert field.is_enum is False

    def test_enum_values_become_a_tuple(self):
        field = normalize_field({"name": "role", "type": "string", "is_enum": True, "enum_values": ["a", "b"]})
        assert field.is_enum
        assert field.enum_values == ("a", "b")

    def test_nested_fields_are_normalized_recursively(self):
        field = normalize_field(
            {
                "name": "profile",
                "type": "object",
                "nested": [{"name": "bio", "type": "string"}, {"name": "age", "type": "number", "required": False}],
            }
        )
        assert field.nested == (
            NormalizedField(name="bio", type=FieldType.STRING),
            NormalizedField(name="age", type=FieldType.NUMBER, required=False),
        )

    def test_normalized_field_is_returned_unchanged(self):
        field = NormalizedField(name="x", type=FieldType.STRING)
        assert normalize_field(field) is field


class TestNormalizeModel:
    """Test building NormalizedModel"""

    def test_table_name_defaults_to_model_name(self):
        model = normalize_model({"model_name": "User", "fields": []})
        assert model.table_name == "User"
        assert model.source == "unknown"

    def test_explicit_values_are_kept(self):
        model = normalize_model({"model_name": "User", "table_name": "users", "source": "odm", "file_path": "/m/user.py"})
        assert model.table_name == "users"
        assert model.source == "odm"
        assert model.file_path == "/m/user.py"

    def test_field_order_is_preserved(self):
        names = ["zeta", "alpha", "mid", "beta"]
        model = normalize_model({"model_name": "M", "fields": [{"name": n, "type": "string"} for n in names]})
        assert model.field_names() == names

    def test_scenario_required_default(self):
        """{name: {type: String, required: true}, age: Number} gives two required fields"""
        model = normalize_model(
            {
                "model_name": "User",
                "fields": [
                    {"name": "name", "type": "string", "required": True},
                    {"name": "age", "type": "number"},
                ],
            }
        )
        assert [(f.name, f.type, f.required) for f in model.fields] == [
            ("name", FieldType.STRING, True),
            ("age", FieldType.NUMBER, True),
        ]


class TestValidateSchema:
    """Test model validation (never raises)"""

    def test_valid_model(self):
        model = NormalizedModel(model_name="User", table_name="User", fields=(NormalizedField(name="a", type=FieldType.STRING),))
        result = validate_schema(model)
        assert result.valid
        assert result.errors == []

    def test_missing_name(self):
        result = validate_schema(NormalizedModel(model_name="", table_name=""))
        assert not result.valid
        assert "Model must have a name" in result.errors

    def test_mapping_without_fields(self):
        result = validate_schema({"model_name": "User"})
        assert not result.valid
        assert "Model must have a fields sequence" in result.errors

    def test_fields_must_not_be_a_string(self):
        result = validate_schema({"model_name": "User", "fields": "abc"})
        assert not result.valid

    def test_reports_every_bad_field(self):
        result = validate_schema({"model_name": "User", "fields": [{"name": "", "type": "string"}, {"name": "b"}]})
        assert result.errors == ["Field at index 0 must have a name", 'Field "b" must have a type']

    def test_garbage_does_not_raise(self):
        result = validate_schema(42)
        assert not result.valid


if __name__ == "__main__":
    pytest.main([__file__])
