import pytest
from pydantic import ValidationError

from app.services.resource_schema import FASHION, POKEMON, FieldSpec, ResourceSchema
from app.services.sql_guardrails import is_safe_identifier, validate_identifier


class TestIdentifierGuard:

    @pytest.mark.parametrize("name", ["fashion_tb", "_x", "Color2"])
    def test_accepts_plain_identifiers(self, name):
        assert validate_identifier(name) == name

    @pytest.mark.parametrize("name", ["", "1abc", "name; DROP", "a-b", "x" * 64, 'q"uote'])
    def test_rejects_unsafe_identifiers(self, name):
        assert not is_safe_identifier(name)
        with pytest.raises(ValueError):
            validate_identifier(name)

    def test_descriptor_with_unsafe_table_is_rejected(self):
        with pytest.raises(ValueError):
            ResourceSchema("bad", "Bad", "bads", "bad table", (FieldSpec("name", str, "TEXT"),))

    def test_field_named_like_primary_key_is_rejected(self):
        with pytest.raises(ValueError):
            ResourceSchema("bad", "Bad", "bads", "bad_tb", (FieldSpec("id", int, "INTEGER"),))


class TestDescriptors:

    def test_columns_start_with_primary_key(self):
        assert POKEMON.columns == ["id", "name", "height", "weight", "avatar"]
        assert FASHION.columns[-1] == "color"

    def test_color_is_optional_for_fashion(self):
        assert "color" not in FASHION.required_fields
        model = FASHION.create_model()
        body = model(name="Shirt", height=1, weight=2, avatar="a")
        assert body.color is None

    def test_create_model_coerces_numeric_strings(self):
        body = POKEMON.create_model()(name="Pikachu", height="0.4", weight="6", avatar="url")
        assert body.height == 0.4
        assert body.weight == 6.0

    def test_create_model_requires_fields(self):
        with pytest.raises(ValidationError):
            POKEMON.create_model()(name="Pikachu")

    def test_update_model_tracks_only_sent_fields(self):
        body = POKEMON.update_model()(weight=7)
        assert body.model_dump(exclude_unset=True) == {"weight": 7.0}


class TestRequestValueConstraints:

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "Infinity", "nan"])
    def test_create_model_rejects_non_finite_floats(self, value):
        with pytest.raises(ValidationError):
            POKEMON.create_model()(name="Pikachu", height=value, weight=6, avatar="url")

    def test_update_model_rejects_non_finite_floats(self):
        with pytest.raises(ValidationError):
            FASHION.update_model()(height=float("-inf"))

    def test_text_fields_reject_nul(self):
        with pytest.raises(ValidationError):
            FASHION.update_model()(color="re\x00d")

    def test_optional_text_field_still_accepts_none(self):
        assert FASHION.update_model()(color=None).color is None
