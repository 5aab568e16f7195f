import pytest
from pydantic import ValidationError

from build_orders.shared.schemas import BuildOrderCreate, BuildOrderUpdate, StepIn

from conftest import build_order_payload, step_payload


def error_fields(exc: ValidationError) -> set:
    return {".".join(str(p) for p in err["loc"]) for err in exc.errors()}


def test_valid_payload_passes_through_unchanged():
    payload = build_order_payload()
    model = BuildOrderCreate.model_validate(payload)
    assert model.model_dump(by_alias=True) == payload


def test_snake_case_names_are_accepted():
    model = StepIn.model_validate({
        "order": 2, "time_minutes": 3, "time_seconds": 15, "villager_count": 12,
        "action": "Loom", "description": "", "resources": {"wood": 0, "food": 0, "gold": 50, "stone": 0},
    })
    assert model.time_seconds == 15


def test_is_public_defaults_to_private():
    payload = build_order_payload()
    del payload["isPublic"]
    assert BuildOrderCreate.model_validate(payload).is_public is False


@pytest.mark.parametrize("title, ok", [("", False), ("a" * 100, True), ("a" * 101, False)])
def test_title_bounds(title, ok):
    payload = build_order_payload(title=title)
    if ok:
        assert BuildOrderCreate.model_validate(payload).title == title
    else:
        with pytest.raises(ValidationError) as exc:
            BuildOrderCreate.model_validate(payload)
        assert "title" in error_fields(exc.value)


def test_description_limits():
    BuildOrderCreate.model_validate(build_order_payload(description="d" * 2000))
    with pytest.raises(ValidationError) as exc:
        BuildOrderCreate.model_validate(build_order_payload(description="d" * 2001))
    assert "description" in error_fields(exc.value)

    with pytest.raises(ValidationError) as exc:
        BuildOrderCreate.model_validate(build_order_payload(steps=[step_payload(description="d" * 1001)]))
    assert "steps.0.description" in error_fields(exc.value)


def test_civilization_required():
    with pytest.raises(ValidationError) as exc:
        BuildOrderCreate.model_validate(build_order_payload(civilization=""))
    assert "civilization" in error_fields(exc.value)


@pytest.mark.parametrize("field, value, ok", [
    ("timeSeconds", 59, True),
    ("timeSeconds", 60, False),
    ("timeSeconds", -1, False),
    ("timeMinutes", 60, True),
    ("timeMinutes", 61, False),
    ("villagerCount", 200, True),
    ("villagerCount", 201, False),
    ("order", -1, False),
    ("action", "", False),
    ("action", "a" * 200, True),
    ("action", "a" * 201, False),
])
def test_step_bounds(field, value, ok):
    payload = build_order_payload(steps=[step_payload(**{field: value})])
    if ok:
        BuildOrderCreate.model_validate(payload)
    else:
        with pytest.raises(ValidationError) as exc:
            BuildOrderCreate.model_validate(payload)
        assert f"steps.0.{field}" in error_fields(exc.value)


def test_negative_resource_rejected():
    step = step_payload(resources={"wood": 0, "food": -5, "gold": 0, "stone": 0})
    with pytest.raises(ValidationError) as exc:
        BuildOrderCreate.model_validate(build_order_payload(steps=[step]))
    assert "steps.0.resources.food" in error_fields(exc.value)


def test_counts_must_be_integers():
    with pytest.raises(ValidationError):
        StepIn.model_validate(step_payload(villagerCount=2.5))
    with pytest.raises(ValidationError):
        StepIn.model_validate(step_payload(timeSeconds="30"))


def test_update_is_partial_with_same_bounds():
    assert BuildOrderUpdate.model_validate({}).changes() == {}
    assert BuildOrderUpdate.model_validate({"title": "New"}).changes() == {"title": "New"}
    with pytest.raises(ValidationError):
        BuildOrderUpdate.model_validate({"title": "a" * 101})
    with pytest.raises(ValidationError):
        BuildOrderUpdate.model_validate({"steps": [step_payload(timeSeconds=60)]})


def test_update_rejects_explicit_null():
    with pytest.raises(ValidationError) as exc:
        BuildOrderUpdate.model_validate({"steps": None})
    assert "steps may not be null" in str(exc.value)


def test_resources_description_and_map_type_are_required():
    step = step_payload()
    del step["description"]
    del step["resources"]["stone"]
    payload = build_order_payload(steps=[step])
    del payload["mapType"]
    with pytest.raises(ValidationError) as exc:
        BuildOrderCreate.model_validate(payload)
    assert error_fields(exc.value) == {"steps.0.description", "steps.0.resources.stone", "mapType"}


@pytest.mark.parametrize("value", ["yes", "true", 1, 0])
def test_is_public_must_be_a_boolean(value):
    with pytest.raises(ValidationError) as exc:
        BuildOrderCreate.model_validate(build_order_payload(isPublic=value))
    assert error_fields(exc.value) == {"isPublic"}
    with pytest.raises(ValidationError) as exc:
        BuildOrderUpdate.model_validate({"isPublic": value})
    assert error_fields(exc.value) == {"isPublic"}
