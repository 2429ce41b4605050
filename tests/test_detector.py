import pytest
from playwright.async_api import Error as PlaywrightError

from autofill_agent.detector import build_fields, classify, detect_fields
from autofill_agent.errors import DetectionError
from autofill_agent.models import ElementSnapshot, FieldType

from fakes import FakePage

SCAN = [
    {"tag": "input", "id": "user", "name": "username", "type": "text", "placeholder": "Username", "label": "User"},
    {"tag": "input", "name": "remember", "type": "checkbox", "label": "Remember me"},
    {"tag": "input", "name": "plan", "type": "radio"},
    {"tag": "input", "type": "button", "classes": ["go"]},
    {"tag": "input", "sameTagIndex": 5},
    {"tag": "textarea", "name": "bio", "placeholder": "About you"},
    {"tag": "select", "id": "country", "label": "Country"},
    {"tag": "button", "type": "button", "text": "  Cancel "},
    {"tag": "button", "type": "button", "text": " Sign In now ", "classes": ["primary"]},
    {"tag": "button", "type": "submit", "text": "Go", "sameTagIndex": 3},
]


def _snapshots():
    return [ElementSnapshot.model_validate(item) for item in SCAN]


def test_input_types_are_mapped():
    kinds = [classify(element) for element in _snapshots()]
    assert kinds[:5] == [
        FieldType.input,
        FieldType.checkbox,
        FieldType.radio,
        FieldType.submit,
        FieldType.input,
    ]
    assert kinds[5] == FieldType.textarea
    assert kinds[6] == FieldType.select


def test_buttons_need_submit_type_or_keyword():
    kinds = [classify(element) for element in _snapshots()[7:]]
    assert kinds == [None, FieldType.submit, FieldType.submit]


def test_ids_are_sequential_across_kinds_and_skip_rejected_buttons():
    fields = build_fields(_snapshots())
    assert [field.id for field in fields] == [f"field-{n}" for n in range(1, 10)]
    assert fields[-2].selector == "button.primary"
    assert fields[-2].value == "Sign In now"
    assert fields[-1].selector == "button:nth-child(3)"


def test_advisory_metadata_is_carried():
    fields = build_fields(_snapshots())
    first = fields[0]
    assert first.selector == 'input[id="user"]'
    assert first.label == "User"
    assert first.placeholder == "Username"
    assert first.name == "username"
    assert first.value == ""
    select = fields[6]
    assert select.type == FieldType.select
    assert select.placeholder is None
    assert select.label == "Country"


@pytest.mark.asyncio
async def test_detect_fields_runs_scan_on_page():
    page = FakePage(scan=SCAN)
    fields = await detect_fields(page)
    assert len(fields) == 9
    assert fields[2].type == FieldType.radio
    assert fields[2].selector == 'input[name="plan"]'


@pytest.mark.asyncio
async def test_detect_fields_reports_scan_failure():
    page = FakePage(scan=PlaywrightError("Execution context was destroyed"))
    with pytest.raises(DetectionError):
        await detect_fields(page)


@pytest.mark.asyncio
async def test_empty_page_yields_no_fields():
    assert await detect_fields(FakePage(scan=[])) == []
