"""Tests for fake form data generation."""

import re

from src.models.plan import FieldMapping, FormField
from src.skills.data_generator import DataGenerator, _snake_case


class TestFromMapping:
    def test_seeded_output_is_reproducible(self):
        mapping = FieldMapping(namespace="person", method="firstName")

        assert DataGenerator(seed=42).from_mapping(mapping) == DataGenerator(seed=42).from_mapping(mapping)

    def test_email(self):
        value = DataGenerator(seed=1).from_mapping(FieldMapping(namespace="internet", method="email"))
        assert "@" in value

    def test_array_element_nested_options(self):
        mapping = FieldMapping(namespace="helpers", method="arrayElement", options=[["Admin", "Agent"]])
        assert DataGenerator(seed=1).from_mapping(mapping) in ("Admin", "Agent")

    def test_array_element_flat_options(self):
        mapping = FieldMapping(namespace="helpers", method="arrayElement", options=["Red", "Blue"])
        assert DataGenerator(seed=1).from_mapping(mapping) in ("Red", "Blue")

    def test_number_int_bounds(self):
        mapping = FieldMapping(namespace="number", method="int", options=[{"min": 18, "max": 20}])
        for _ in range(10):
            assert 18 <= int(DataGenerator().from_mapping(mapping)) <= 20

    def test_dates_are_iso(self):
        value = DataGenerator(seed=5).from_mapping(FieldMapping(namespace="date", method="past"))
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", value)

    def test_lorem_words_joined(self):
        mapping = FieldMapping(namespace="lorem", method="words", options=[4])
        assert len(DataGenerator(seed=2).from_mapping(mapping).split()) == 4

    def test_unmapped_method_uses_snake_case(self):
        value = DataGenerator(seed=9).from_mapping(FieldMapping(namespace="location", method="latitude"))
        float(value)

    def test_unknown_method_falls_back_to_generic_text(self):
        value = DataGenerator(seed=3).from_mapping(FieldMapping(namespace="nope", method="doesNotExist"))
        assert len(value.split()) == 2

    def test_array_element_without_options_falls_back(self):
        value = DataGenerator(seed=3).from_mapping(FieldMapping(namespace="helpers", method="arrayElement"))
        assert len(value.split()) == 2


class TestFallbackValue:
    def test_keyword_from_label(self):
        generator = DataGenerator(seed=1)
        assert "@" in generator.fallback_value(FormField(key="Work email", label="Work email"))
        assert generator.fallback_value(FormField(key="Mobile", label="Mobile")).isdigit()

    def test_input_type(self):
        generator = DataGenerator(seed=1)
        assert generator.fallback_value(FormField(key="qty", input_type="number")).isdigit()
        assert generator.fallback_value(FormField(key="site", input_type="url")).startswith("http")

    def test_select_uses_first_option(self):
        field = FormField(key="Role", tag="select", options=["admin", "agent"])
        assert DataGenerator().fallback_value(field) == "admin"

    def test_value_for_prefers_mapping(self):
        generator = DataGenerator(seed=1)
        field = FormField(key="Email", label="Email", input_type="email")
        mapping = FieldMapping(namespace="helpers", method="arrayElement", options=[["fixed"]])

        assert generator.value_for(field, mapping) == "fixed"
        assert "@" in generator.value_for(field)


def test_snake_case():
    assert _snake_case("streetAddress") == "street_address"
    assert _snake_case("email") == "email"
