import pytest

from coercion import BOOLEAN, DATE, INTEGER, LIST, OBJECT, STRING, coerce, schema_for, split_list, unflatten
from schemas import Blog, Profile, Project, Showcase, Skill, WorkExperience


def test_schema_is_derived_from_model_declarations():
    schema = schema_for(Project)

    assert schema["title"].required and schema["title"].kind == STRING
    assert schema["technologies"].kind == LIST and schema["technologies"].default == []
    assert schema["isActive"].kind == BOOLEAN and schema["isActive"].default is True
    assert schema["order"].kind == INTEGER and schema["order"].default == 0
    assert schema["liveUrl"].nullable and schema["liveUrl"].default is None

    personal = schema_for(Profile)["personalInfo"]
    assert personal.kind == OBJECT
    assert personal.children["socialLinks"].children["github"].kind == STRING


def test_split_list_trims_and_drops_empty_items():
    assert split_list("React, Node.js,MongoDB") == ["React", "Node.js", "MongoDB"]
    assert split_list(" a ,, b ,") == ["a", "b"]
    assert split_list("") == []


def test_comma_string_becomes_ordered_list():
    record = coerce(Project, {"technologies": "React, Node.js,MongoDB", "features": ""})

    assert record["technologies"] == ["React", "Node.js", "MongoDB"]
    assert record["features"] == []


def test_absent_list_stays_not_provided():
    assert "tags" not in coerce(Showcase, {"title": "x"})


@pytest.mark.parametrize("raw, expected", [("true", True), ("false", False), (True, True), (False, False)])
def test_boolean_strings(raw, expected):
    assert coerce(Project, {"isActive": raw}) == {"isActive": expected}


@pytest.mark.parametrize("raw", ["yes", "True", "1", "", 1, None])
def test_other_boolean_values_are_not_provided(raw):
    assert coerce(Project, {"isFeatured": raw}) == {}


@pytest.mark.parametrize("raw, expected", [("3", 3), (" 12 ", 12), ("-2", -2), (7, 7), (4.0, 4)])
def test_integer_strings(raw, expected):
    assert coerce(Blog, {"readingTime": raw}) == {"readingTime": expected}


@pytest.mark.parametrize("raw", ["abc", "12abc", "", "1.5", True,
                                 pytest.param("9" * 5000, id="too-many-digits")])
def test_non_numeric_integers_are_not_provided(raw):
    assert coerce(Blog, {"readingTime": raw}) == {}


def test_dates_pass_through_and_blank_dates_are_not_provided():
    schema = schema_for(WorkExperience)
    assert schema["startDate"].kind == DATE and schema["endDate"].nullable

    record = coerce(WorkExperience, {"startDate": "2022-01-01", "endDate": "", "isCurrentJob": "true"})

    assert record == {"startDate": "2022-01-01", "isCurrentJob": True}
    assert coerce(WorkExperience, {"endDate": "  "}) == {}


def test_bracket_keys_become_nested_objects():
    record = coerce(Profile, {
        "personalInfo[name]": "Ada",
        "personalInfo[socialLinks][github]": "gh",
        "hero[headline]": "Hello",
        "isActive": "false",
    })

    assert record == {
        "personalInfo": {"name": "Ada", "socialLinks": {"github": "gh"}},
        "hero": {"headline": "Hello"},
        "isActive": False,
    }


def test_nested_object_only_built_when_a_leaf_is_present():
    record = coerce(Profile, {"personalInfo[name]": "Ada"})

    assert "hero" not in record
    assert "socialLinks" not in record["personalInfo"]


def test_nested_lists_are_split():
    record = coerce(Profile, {"about[highlights]": "Fast, Reliable"})

    assert record == {"about": {"highlights": ["Fast", "Reliable"]}}


def test_bracket_keys_merge_into_native_object():
    record = coerce(Profile, {
        "personalInfo": {"name": "Ada", "title": "Engineer"},
        "personalInfo[title]": "Architect",
    })

    assert record["personalInfo"] == {"name": "Ada", "title": "Architect"}


def test_unflatten_keeps_plain_keys_and_ignores_empty_segments():
    assert unflatten({"a": "1", "b[c]": "2", "d[]": "3"}) == {"a": "1", "b": {"c": "2"}}


def test_unknown_keys_are_dropped():
    assert coerce(Skill, {"name": "Python", "_id": "abc", "createdAt": "now"}) == {"name": "Python"}


def test_explicit_null_kept_only_for_nullable_fields():
    record = coerce(Project, {"liveUrl": None, "title": None, "images": None})

    assert record == {"liveUrl": None}


def test_malformed_nested_object_is_not_provided():
    assert coerce(Profile, {"personalInfo": "Ada"}) == {}


def test_json_and_form_bodies_normalize_identically():
    as_json = {
        "title": "Site",
        "tags": ["a", "b"],
        "order": 2,
        "isActive": False,
    }
    as_form = {
        "title": "Site",
        "tags": "a,b",
        "order": "2",
        "isActive": "false",
    }

    assert coerce(Showcase, as_json) == coerce(Showcase, as_form) == as_json


def test_coercion_is_idempotent():
    body = {
        "personalInfo[socialLinks][linkedin]": "li",
        "about[images]": "a.png, b.png",
        "isActive": "true",
    }
    once = coerce(Profile, body)

    assert coerce(Profile, once) == once


def test_empty_body():
    assert coerce(Project, None) == {}
    assert coerce(Project, {}) == {}
