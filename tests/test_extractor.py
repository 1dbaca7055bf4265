"""
Tests for field extraction.
"""

import pytest

from autofill.extractor import (
    FieldExtractor,
    collect_label_candidates,
    locate_form_frame,
    release,
    structural_key,
)
from autofill.form_models import FieldKind

from conftest import FakeElement, FakeFrame, FakePage, text_input


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_extracts_text_fields_in_document_order():
    page = FakePage([
        text_input("Your Name", name="n1"),
        text_input("Email", name="e1"),
    ])

    fields = await FieldExtractor().extract(page)

    assert [f.label_candidates for f in fields] == [["Your Name"], ["Email"]]
    assert [f.order for f in fields] == [0, 1]
    assert all(f.kind == FieldKind.SHORT_TEXT for f in fields)


@pytest.mark.asyncio
async def test_search_text_is_normalized_and_non_empty():
    page = FakePage([
        text_input("Full-Name:", name="applicant_fullName", placeholder="e.g. JANE"),
        FakeElement(type="text"),  # nothing identifies it
    ])

    fields = await FieldExtractor().extract(page)

    assert len(fields) == 1
    text = fields[0].search_text
    assert text == text.lower()
    assert "full name" in text
    assert "applicant fullname" in text
    assert ":" not in text and "_" not in text


@pytest.mark.asyncio
async def test_unlabeled_email_input_keeps_type_hint():
    page = FakePage([FakeElement(type="email")])

    fields = await FieldExtractor().extract(page)

    assert len(fields) == 1
    assert fields[0].search_text == "email"
    assert fields[0].input_type == "email"


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"disabled": True},
    {"readOnly": True},
    {"width": 0, "height": 0},
    {"display": "none"},
    {"visibility": "hidden"},
    {"skip": True},
])
async def test_rejects_non_fillable_elements(overrides):
    element = text_input("Name", name="name", **overrides)
    page = FakePage([element])

    fields = await FieldExtractor().extract(page)

    assert fields == []
    assert element.disposed


@pytest.mark.asyncio
@pytest.mark.parametrize("input_type", ["password", "hidden", "submit", "file", "button", "range"])
async def test_rejects_ignored_input_types(input_type):
    page = FakePage([text_input("Password", name="pw", type=input_type)])

    assert await FieldExtractor().extract(page) == []


@pytest.mark.asyncio
async def test_kind_mapping():
    page = FakePage([
        FakeElement(tag="textarea", name="about", labels={"explicit": ["About you"]}),
        FakeElement(type="date", name="dob"),
        FakeElement(tag="select", name="gender", options=[{"value": "M", "text": "M"}]),
        FakeElement(type="checkbox", name="agree", value="on"),
        FakeElement(tag="div", contentEditable=True, aria_label="Cover letter"),
        FakeElement(name="untyped"),
        FakeElement(tag="select", name="skills", multiple=True),
    ])

    fields = await FieldExtractor().extract(page)

    assert [f.kind for f in fields] == [
        FieldKind.LONG_TEXT,
        FieldKind.DATE,
        FieldKind.SINGLE_SELECT,
        FieldKind.CHECKBOX,
        FieldKind.LONG_TEXT,
        FieldKind.SHORT_TEXT,
    ]
    select = fields[2]
    assert [(o.value, o.text) for o in select.options] == [("M", "M")]


@pytest.mark.asyncio
async def test_select_options_keep_dom_index_past_disabled_placeholder():
    page = FakePage([
        FakeElement(tag="select", name="gender", options=[
            {"value": "male", "text": "Male", "index": 1},
            {"value": "female", "text": "Female", "index": 2},
        ]),
    ])

    fields = await FieldExtractor().extract(page)

    assert [(o.text, o.index) for o in fields[0].options] == [("Male", 1), ("Female", 2)]


@pytest.mark.asyncio
async def test_radio_inputs_grouped_by_name():
    female = FakeElement(type="radio", name="sex", id="sex_f", value="female",
                         labels={"explicit": ["Woman"], "legend": "Gender"})
    male = FakeElement(type="radio", name="sex", id="sex_m", value="male",
                       labels={"explicit": ["Man"], "legend": "Gender"})
    loose = FakeElement(type="radio", value="yes", labels={"following": "Yes", "siblings": ["Subscribe?"]})
    page = FakePage([female, male, loose])

    fields = await FieldExtractor().extract(page)

    assert len(fields) == 2
    group = fields[0]
    assert group.kind == FieldKind.RADIO_GROUP
    assert [(o.value, o.text) for o in group.options] == [("female", "Woman"), ("male", "Man")]
    assert [o.handle for o in group.options] == [female, male]
    assert group.label_candidates == ["Gender"]
    assert "sex" in group.search_text
    assert [(o.value, o.text) for o in fields[1].options] == [("yes", "Yes")]


def test_label_candidates_priority_order():
    labels = {
        "explicit": ["Email"],
        "enclosing": "Email address",
        "siblings": ["Contact"],
        "ancestors": ["Step 1"],
        "accessible": ["Your email"],
        "question": "Question text",
    }

    assert collect_label_candidates(labels) == [
        "Email", "Email address", "Contact", "Step 1", "Your email",
    ]


def test_question_text_only_when_nothing_else():
    assert collect_label_candidates({"question": "What is your roll number?"}) == [
        "What is your roll number?"
    ]


def test_duplicate_labels_removed():
    labels = {"explicit": ["Name"], "enclosing": "Name", "siblings": ["name", "First"]}

    assert collect_label_candidates(labels) == ["Name", "First"]


def test_structural_key():
    base = {"tag": "input", "id": "a", "name": "n", "className": "c", "type": "text", "value": "x"}
    assert structural_key(base) == "input|a|n|c"
    assert structural_key(dict(base, type="radio")) == "input|a|n|c|x"
    assert structural_key(dict(base, id="", name="")) == ""


@pytest.mark.asyncio
async def test_label_probe_cached_within_ttl():
    clock = FakeClock()
    element = text_input("Name", name="name", id="name")
    page = FakePage([element])
    extractor = FieldExtractor(cache_ttl=10.0, clock=clock)

    await extractor.extract(page)
    clock.now = 5.0
    await extractor.extract(page)
    assert element.label_probes == 1

    clock.now = 16.0
    await extractor.extract(page)
    assert element.label_probes == 2


@pytest.mark.asyncio
async def test_expired_entries_purged_on_extract():
    clock = FakeClock()
    extractor = FieldExtractor(cache_ttl=10.0, clock=clock)
    await extractor.extract(FakePage([text_input("Name", name="name")]))
    assert extractor.cache_size == 1

    clock.now = 11.0
    await extractor.extract(FakePage([]))
    assert extractor.cache_size == 0


@pytest.mark.asyncio
async def test_elements_without_identity_not_cached():
    element = text_input("Name")
    extractor = FieldExtractor()

    await extractor.extract(FakePage([element]))
    await extractor.extract(FakePage([element]))

    assert element.label_probes == 2
    assert extractor.cache_size == 0


@pytest.mark.asyncio
async def test_probe_failure_skips_element():
    broken = text_input("Name", name="name")
    broken.fail_probes = True
    page = FakePage([broken, text_input("Email", name="email")])

    fields = await FieldExtractor().extract(page)

    assert [f.raw_attributes["name"] for f in fields] == ["email"]


@pytest.mark.asyncio
async def test_batches_cover_every_element():
    page = FakePage([text_input(f"Question {i}", name=f"q{i}") for i in range(60)])

    fields = await FieldExtractor(batch_size=25).extract(page)

    assert len(fields) == 60


@pytest.mark.asyncio
async def test_release_disposes_all_handles():
    female = FakeElement(type="radio", name="sex", value="female", labels={"explicit": ["Woman"]})
    male = FakeElement(type="radio", name="sex", value="male", labels={"explicit": ["Man"]})
    name = text_input("Name", name="name")
    fields = await FieldExtractor().extract(FakePage([name, female, male]))

    await release(fields)

    assert name.disposed and female.disposed and male.disposed


@pytest.mark.asyncio
async def test_locate_form_frame_prefers_main_frame_with_fields():
    page = FakePage([text_input("Name")], child_frames=[FakeFrame([text_input("A"), text_input("B")])])

    assert await locate_form_frame(page) is page


@pytest.mark.asyncio
async def test_locate_form_frame_falls_back_to_busiest_iframe():
    small = FakeFrame([text_input("A")], url="https://ads.example.com")
    form = FakeFrame([text_input("A"), text_input("B")], url="https://forms.example.com")
    page = FakePage([], child_frames=[small, form])

    assert await locate_form_frame(page) is form
