"""
Tests for the pattern matcher.
"""

import pytest

from autofill.config import Profile
from autofill.errors import NoMatchesFoundError
from autofill.form_models import FieldDescriptor, FieldKind, FieldOption, MatchStrategy
from autofill.matcher import PatternMatcher


def make_field(labels=(), kind=FieldKind.SHORT_TEXT, input_type="text", order=0, options=None, **attrs):
    raw = {"name": "", "id": "", "placeholder": "", "class": "", "aria-label": ""}
    raw.update(attrs)
    if input_type not in ("text", "select", "textarea", "radio", "checkbox"):
        raw["type"] = input_type
    return FieldDescriptor(
        handle=object(),
        kind=kind,
        input_type=input_type,
        raw_attributes=raw,
        label_candidates=list(labels),
        options=options or [],
        order=order,
    )


@pytest.fixture
def matcher():
    return PatternMatcher()


def test_name_label_and_unlabeled_email(matcher, jane):
    name_field = make_field(["Your Name"])
    email_field = make_field(input_type="email", order=1)

    results = matcher.match([name_field, email_field], jane)

    by_field = {id(r.field): r for r in results}
    assert len(results) == 2
    assert by_field[id(name_field)].data_key == "full_name"
    assert by_field[id(name_field)].strategy == MatchStrategy.EXACT_KEYWORD
    assert by_field[id(email_field)].data_key == "email"
    assert by_field[id(email_field)].value == "jane@x.edu"


def test_gender_select_matched(matcher):
    field = make_field(
        ["Gender"], kind=FieldKind.SINGLE_SELECT, input_type="select",
        options=[FieldOption("M", "M"), FieldOption("F", "F")],
    )

    results = matcher.match([field], Profile(gender="Male"))

    assert [r.data_key for r in results] == ["gender"]


def test_radio_group_named_sex_matched(matcher):
    field = make_field(
        kind=FieldKind.RADIO_GROUP, input_type="radio", name="sex",
        options=[FieldOption("female", "Woman"), FieldOption("male", "Man")],
    )

    results = matcher.match([field], Profile(gender="Male"))

    assert [r.data_key for r in results] == ["gender"]


def test_empty_profile_matches_nothing(matcher):
    fields = [make_field(["Your Name"]), make_field(input_type="email", order=1)]

    assert matcher.match(fields, Profile()) == []


def test_require_matches_raises(matcher):
    with pytest.raises(NoMatchesFoundError) as excinfo:
        matcher.match([make_field(["Your Name"])], Profile(), require_matches=True)

    assert "custom fields" in str(excinfo.value)


def test_whitespace_values_are_not_sources(matcher):
    results = matcher.match([make_field(["Your Name"])], Profile(full_name="   "))

    assert results == []


def test_exact_keyword_confidence_normalized_and_capped(matcher):
    results = matcher.match([make_field(["Phone"])], Profile(phone="9876543210"))

    assert results[0].confidence == 1.0
    assert results[0].matched_keywords == ["phone"]


def test_at_most_one_result_per_field_above_threshold(matcher):
    profile = Profile(full_name="Jane Doe", email="jane@x.edu", phone="9876543210")
    fields = [
        make_field(["Contact name and email"]),
        make_field(["Mobile number"], order=1),
        make_field(["Anything else?"], order=2),
    ]

    results = matcher.match(fields, profile)

    assert len({id(r.field) for r in results}) == len(results)
    assert all(r.confidence > matcher.min_confidence for r in results)


def test_longest_keyword_total_wins(matcher):
    profile = Profile(email="jane@x.edu", phone="9876543210")

    results = matcher.match([make_field(["Contact phone number"])], profile)

    # phone scores contact + phone + number + the two phrases; email only contact
    assert results[0].data_key == "phone"


def test_partial_word_match(matcher):
    results = matcher.match([make_field(["Special area"])], Profile(specialization="CSE"))

    assert results[0].data_key == "specialization"
    assert results[0].strategy == MatchStrategy.PARTIAL_WORD
    assert results[0].confidence <= 0.8


def test_custom_field_exact(matcher):
    profile = Profile(custom_fields={"Preferred location": "Bengaluru"})

    results = matcher.match([make_field(["Preferred location for posting"])], profile)

    assert results[0].data_key == "Preferred location"
    assert results[0].value == "Bengaluru"
    assert results[0].strategy == MatchStrategy.CUSTOM_FIELD
    assert results[0].confidence == 1.0


def test_custom_field_beats_builtin_on_higher_score(matcher):
    profile = Profile(full_name="Jane Doe", custom_fields={"father name": "John Doe"})

    results = matcher.match([make_field(["Father name"])], profile)

    assert results[0].data_key == "father name"


def test_custom_field_partial_words(matcher):
    profile = Profile(custom_fields={"hostel block": "MH-2"})

    results = matcher.match([make_field(["Which hostel are you in?"])], profile)

    assert results[0].data_key == "hostel block"
    assert results[0].confidence == pytest.approx(6 / 8)


def test_positional_fallback_for_first_fields(matcher, jane):
    fields = [make_field(["Question one"]), make_field(["Question two"], order=1)]

    results = matcher.match(fields, jane)

    assert [(r.data_key, r.strategy) for r in results] == [
        ("full_name", MatchStrategy.POSITIONAL),
        ("email", MatchStrategy.POSITIONAL),
    ]
    assert [r.confidence for r in results] == [0.3, 0.3]


def test_positional_fallback_not_beyond_first_fields(matcher):
    fields = [make_field([f"Question {i}"], order=i) for i in range(6)]
    profile = Profile(full_name="Jane Doe")

    results = matcher.match(fields, profile)

    assert [r.field for r in results] == [fields[0]]


def test_positional_fallback_can_be_turned_off(matcher, jane):
    fields = [make_field(["Question one"]), make_field(input_type="email", order=1)]

    results = matcher.match(fields, jane, positional=False)

    assert [r.data_key for r in results] == ["email"]


def test_date_kind_fallback(matcher):
    profile = Profile(date_of_birth="2004-03-08")
    fields = [
        make_field(["Question one"]),
        make_field(["When?"], kind=FieldKind.DATE, input_type="date", order=5),
    ]

    results = matcher.match(fields, profile)

    assert len(results) == 1
    assert results[0].data_key == "date_of_birth"
    assert results[0].strategy in (MatchStrategy.ELEMENT_KIND, MatchStrategy.PARTIAL_WORD)


def test_url_kind_fallback(matcher):
    profile = Profile(linkedin_url="https://linkedin.com/in/jane")
    fields = [make_field(["Question"], input_type="url", order=7)]
    fields[0].raw_attributes.pop("type")

    results = matcher.match(fields, profile)

    assert results[0].data_key == "linkedin_url"
    assert results[0].strategy == MatchStrategy.ELEMENT_KIND
    assert results[0].confidence == 0.4


def test_results_sorted_by_confidence_stable(matcher):
    profile = Profile(full_name="Jane Doe", email="jane@x.edu", phone="9876543210")
    fields = [
        make_field(["Question"], order=0),  # positional, 0.3
        make_field(["Email"], order=1),  # exact, 1.0
        make_field(["Phone"], order=2),  # exact, 1.0
    ]

    results = matcher.match(fields, profile)

    assert [r.field for r in results] == [fields[1], fields[2], fields[0]]
