import pytest

from recipes_api.errors import InputValidationError
from recipes_api.validation import validate_recipe_create, validate_recipe_update

from conftest import soup_payload


def _fields(exc_info):
    return [e["field"] for e in exc_info.value.errors]


def test_valid_create_is_parsed_and_trimmed():
    data = validate_recipe_create(soup_payload(title="  Soup  "))
    assert data.title == "Soup"
    assert data.ingredients[0].unit == "L"


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"title": ""}, "title"),
        ({"ingredients": []}, "ingredients"),
        ({"instructions": []}, "instructions"),
        ({"ingredients": [{"amount": "1", "unit": "", "description": "water"}]}, "ingredients.0.unit"),
        ({"instructions": [{"details": 3}]}, "instructions.0.details"),
        ({"id": 5}, "id"),
        ({"version": 1}, "version"),
    ],
)
def test_create_reports_field(overrides, field):
    with pytest.raises(InputValidationError) as exc:
        validate_recipe_create(soup_payload(**overrides))
    assert _fields(exc) == [field]


def test_create_reports_every_missing_field():
    with pytest.raises(InputValidationError) as exc:
        validate_recipe_create({})
    assert sorted(_fields(exc)) == ["ingredients", "instructions", "title"]


def test_create_requires_an_object():
    with pytest.raises(InputValidationError) as exc:
        validate_recipe_create("Soup")
    assert _fields(exc) == ["body"]


def test_update_accepts_partial_body():
    data = validate_recipe_update({"description": "Still hot", "version": 3})
    assert data.description == "Still hot"
    assert data.title is None
    assert data.version == 3


def test_update_needs_something_to_change():
    for body in ({}, {"version": 2}, {"version": None}):
        with pytest.raises(InputValidationError) as exc:
            validate_recipe_update(body)
        assert _fields(exc) == ["body"]


def test_update_rejects_author_and_bad_version():
    with pytest.raises(InputValidationError) as exc:
        validate_recipe_update({"title": "x", "author": "u2", "version": 0})
    assert sorted(_fields(exc)) == ["author", "version"]


def test_update_rejects_explicit_nulls():
    with pytest.raises(InputValidationError) as exc:
        validate_recipe_update({"title": None, "ingredients": None, "description": "x"})
    assert exc.value.errors == [
        {"field": "title", "message": "may not be null"},
        {"field": "ingredients", "message": "may not be null"},
    ]


def test_update_reports_nulls_together_with_other_errors():
    with pytest.raises(InputValidationError) as exc:
        validate_recipe_update({"instructions": None, "version": 0})
    assert sorted(_fields(exc)) == ["instructions", "version"]
