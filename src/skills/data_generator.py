"""Dispatches faker-js style field mappings onto the Python Faker library."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any, Optional

from faker import Faker

from src.models.plan import FieldMapping, FormField

logger = logging.getLogger(__name__)

# faker-js (namespace, method) -> Faker provider method.
# Pairs not listed fall back to the snake_case form of the method name.
FAKER_JS_METHODS: dict[tuple[str, str], str] = {
    ("person", "firstName"): "first_name",
    ("person", "lastName"): "last_name",
    ("person", "middleName"): "first_name",
    ("person", "fullName"): "name",
    ("person", "prefix"): "prefix",
    ("person", "suffix"): "suffix",
    ("person", "jobTitle"): "job",
    ("person", "bio"): "sentence",
    ("internet", "email"): "email",
    ("internet", "exampleEmail"): "email",
    ("internet", "userName"): "user_name",
    ("internet", "username"): "user_name",
    ("internet", "displayName"): "user_name",
    ("internet", "password"): "password",
    ("internet", "url"): "url",
    ("internet", "domainName"): "domain_name",
    ("phone", "number"): "phone_number",
    ("phone", "phoneNumber"): "phone_number",
    ("location", "streetAddress"): "street_address",
    ("location", "secondaryAddress"): "secondary_address",
    ("location", "city"): "city",
    ("location", "state"): "state",
    ("location", "zipCode"): "postcode",
    ("location", "country"): "country",
    ("location", "countryCode"): "country_code",
    ("company", "name"): "company",
    ("company", "catchPhrase"): "catch_phrase",
    ("company", "buzzPhrase"): "bs",
    ("lorem", "word"): "word",
    ("lorem", "sentence"): "sentence",
    ("lorem", "sentences"): "paragraph",
    ("lorem", "paragraph"): "paragraph",
    ("lorem", "paragraphs"): "text",
    ("lorem", "text"): "text",
    ("date", "past"): "past_date",
    ("date", "recent"): "past_date",
    ("date", "future"): "future_date",
    ("date", "soon"): "future_date",
    ("date", "birthdate"): "date_of_birth",
    ("number", "int"): "random_int",
    ("number", "float"): "pyfloat",
    ("string", "uuid"): "uuid4",
    ("finance", "amount"): "pricetag",
    ("color", "human"): "color_name",
}


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _stringify(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()[:10]
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


class DataGenerator:
    """Produces realistic values for form fields."""

    def __init__(self, seed: Optional[int] = None, locale: str = "en_US"):
        self.faker = Faker(locale)
        if seed is not None:
            self.faker.seed_instance(seed)

    def generic_text(self) -> str:
        return " ".join(self.faker.words(2))

    def from_mapping(self, mapping: FieldMapping) -> str:
        """Generate a value for a faker-js mapping; generic text on any dispatch error."""
        try:
            return _stringify(self._dispatch(mapping))
        except Exception as e:
            logger.debug("Faker dispatch failed for %s.%s: %s",
                         mapping.namespace, mapping.method, e)
            return self.generic_text()

    def value_for(self, field: FormField, mapping: FieldMapping | None = None) -> str:
        """Value for ``field``: its mapping if there is one, else a guess from its label and type."""
        if mapping is not None:
            return self.from_mapping(mapping)
        return self.fallback_value(field)

    def fallback_value(self, field: FormField) -> str:
        """Keyword match on label/name/placeholder, then on the input type."""
        if field.is_select:
            return field.options[0] if field.options else ""
        hint = f"{field.label} {field.name} {field.placeholder}".lower()
        if "email" in hint:
            return self.faker.email()
        if "password" in hint:
            return self.faker.password(length=12)
        if "username" in hint:
            return self.faker.user_name()
        if "name" in hint:
            return self.faker.name()
        if "phone" in hint or "mobile" in hint:
            return self.faker.numerify("##########")
        if "address" in hint:
            return self.faker.street_address()
        if "city" in hint:
            return self.faker.city()
        if "zip" in hint or "postal" in hint:
            return self.faker.postcode()
        if "date" in hint:
            return self.faker.date()
        if any(word in hint for word in ("quantity", "amount", "price", "age")):
            return str(self.faker.random_int(1, 100))

        match field.input_type:
            case "email":
                return self.faker.email()
            case "number":
                return str(self.faker.random_int(1, 100))
            case "url":
                return self.faker.url()
            case "password":
                return self.faker.password(length=12)
            case "tel":
                return self.faker.numerify("##########")
            case "date":
                return self.faker.date()
            case "textarea":
                return self.faker.sentence()
            case _:
                return self.generic_text()

    def _dispatch(self, mapping: FieldMapping) -> Any:
        namespace, method = mapping.namespace, mapping.method
        options = list(mapping.options or [])

        if (namespace, method) == ("helpers", "arrayElement"):
            choices = options[0] if options and isinstance(options[0], list) else options
            if not choices:
                raise ValueError("arrayElement needs a non-empty options list")
            return self.faker.random_element(choices)

        if (namespace, method) == ("lorem", "words"):
            count = int(options[0]) if options and isinstance(options[0], (int, float)) else 3
            return self.faker.words(count)

        if (namespace, method) == ("number", "int") and options and isinstance(options[0], dict):
            bounds = options[0]
            return self.faker.random_int(int(bounds.get("min", 0)), int(bounds.get("max", 9999)))

        name = FAKER_JS_METHODS.get((namespace, method), _snake_case(method))
        provider = getattr(self.faker, name)
        # Remaining options are faker-js specific and are not forwarded.
        return provider()
