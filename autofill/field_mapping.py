"""
Field mapping module: keyword tables, fallbacks and option alias tables.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from .form_models import FieldKind, FieldOption, normalize_text


# Keywords per profile attribute. Matching is substring-based against a field's
# normalized search text, so longer keywords score higher.
FIELD_KEYWORDS: Dict[str, List[str]] = {
    "full_name": [
        "name", "full name", "your name", "applicant name", "candidate name",
        "first name", "last name", "fname", "lname", "fullname", "complete name",
        "legal name",
    ],
    "email": [
        "email", "e-mail", "email address", "contact email", "university email",
        "college email", "mail", "e mail", "electronic mail", "contact", "reach",
    ],
    "phone": [
        "phone", "mobile", "telephone", "contact number", "phone number",
        "mobile number", "cell", "tel", "contact", "number",
    ],
    "student_number": [
        "student", "registration", "id number", "student id", "enrollment",
        "roll number", "id", "student number", "reg", "registration number",
    ],
    "tenth_marks": [
        "10th", "tenth", "10 grade", "tenth grade", "class 10", "ssc",
        "matriculation", "10th marks", "tenth marks", "10th percentage", "class x",
    ],
    "twelfth_marks": [
        "12th", "twelfth", "12 grade", "twelfth grade", "class 12", "hsc",
        "intermediate", "12th marks", "twelfth marks", "12th percentage", "class xii",
    ],
    "ug_cgpa": [
        "cgpa", "gpa", "undergraduate", "ug cgpa", "college gpa", "university gpa",
        "graduation", "grade point",
    ],
    "degree": [
        "degree", "qualification", "bachelor", "programme", "program", "course",
    ],
    "specialization": [
        "specialization", "specialisation", "major", "branch", "stream",
        "discipline", "field of study",
    ],
    "gender": ["gender", "sex", "male", "female", "gender identity", "sex identity"],
    "campus": ["campus", "college", "university", "institution", "vit", "amaravathi", "ap"],
    "date_of_birth": [
        "date of birth", "dob", "birth date", "birthdate", "birthday", "born",
    ],
    "linkedin_url": [
        "linkedin", "linked in", "linkedin profile", "linkedin url",
        "professional profile", "linked-in", "professional", "social",
    ],
    "github_url": [
        "github", "git hub", "github profile", "github url", "repository",
        "code profile", "git-hub", "coding", "repo",
    ],
    "leetcode_url": [
        "leetcode", "leet code", "coding profile", "algorithm profile",
        "competitive programming", "leet-code", "coding", "algorithm",
    ],
    "resume_url": [
        "resume", "cv", "curriculum vitae", "resume link", "cv link", "document",
        "curriculum", "resume url",
    ],
    "portfolio_url": [
        "portfolio", "website", "personal website", "portfolio website",
        "work samples", "personal site", "portfolio url", "site",
    ],
}

# Field index -> (attribute, confidence); only the first few fields qualify.
POSITIONAL_FALLBACKS: Dict[int, Tuple[str, float]] = {
    0: ("full_name", 0.3),
    1: ("email", 0.3),
    2: ("phone", 0.2),
    3: ("student_number", 0.2),
}
POSITIONAL_FIELD_LIMIT = 5

# HTML input type -> attribute
INPUT_TYPE_FALLBACKS: Dict[str, str] = {
    "email": "email",
    "tel": "phone",
    "url": "linkedin_url",
}
KIND_FALLBACKS: Dict[FieldKind, str] = {
    FieldKind.DATE: "date_of_birth",
}
KIND_FALLBACK_CONFIDENCE = 0.4

# Attributes whose values are dates and get reformatted on write
DATE_ATTRIBUTES = {"date_of_birth"}

# Alias tables: attribute -> variant tag -> accepted option labels/values
ALIAS_TABLES: Dict[str, Dict[str, List[str]]] = {
    "gender": {
        "male": ["male", "m", "man", "boy", "masculine"],
        "female": ["female", "f", "woman", "girl", "feminine"],
        "other": [
            "other", "others", "o", "non-binary", "nonbinary", "non binary",
            "prefer not to say", "prefer not to disclose",
        ],
    },
    "campus": {
        "vit-ap": [
            "vit-ap", "vit ap", "vitap", "vit amaravathi", "vit amravati",
            "vit-ap university", "amaravathi", "amravati", "ap", "andhra pradesh",
        ],
    },
}

TRUTHY_VALUES = {"true", "yes", "1", "on"}


def is_truthy(value: str) -> bool:
    """Check whether a profile value means 'checked'."""
    return (value or "").strip().lower() in TRUTHY_VALUES


def canonical_variant(data_key: str, value: str) -> Optional[str]:
    """Find the alias-table variant a profile value belongs to."""
    table = ALIAS_TABLES.get(data_key)
    if not table:
        return None
    value_norm = normalize_text(value)
    for variant, aliases in table.items():
        if value_norm == normalize_text(variant):
            return variant
        if value_norm in (normalize_text(alias) for alias in aliases):
            return variant
    return None


def _alias_matches(alias: str, candidate: str) -> bool:
    """Short aliases ("m", "ap") must equal the whole candidate; longer ones match whole words."""
    if not alias or not candidate:
        return False
    if len(alias) <= 2:
        return candidate == alias
    return re.search(rf"\b{re.escape(alias)}\b", candidate) is not None


def match_option(
    options: Sequence[FieldOption],
    value: str,
    data_key: str = "",
) -> Optional[int]:
    """Resolve the option index to select for a value.

    Order: exact value/text match, alias table for the attribute, then a
    generic substring match in either direction.
    """
    value_norm = normalize_text(value)
    if not value_norm:
        return None

    normalized = [(normalize_text(opt.value), normalize_text(opt.text)) for opt in options]

    # Step 1: exact
    for index, (opt_value, opt_text) in enumerate(normalized):
        if value_norm in (opt_value, opt_text):
            return index

    # Step 2: aliases
    variant = canonical_variant(data_key, value)
    if variant:
        aliases = [normalize_text(a) for a in ALIAS_TABLES[data_key][variant]]
        for alias in aliases:
            for index, (opt_value, opt_text) in enumerate(normalized):
                if _alias_matches(alias, opt_value) or _alias_matches(alias, opt_text):
                    return index

    # Step 3: substring, never landing on another variant ("male" in "female")
    rivals = []
    if variant:
        rivals = [
            normalize_text(alias)
            for other, other_aliases in ALIAS_TABLES[data_key].items() if other != variant
            for alias in other_aliases
        ]
    for index, (opt_value, opt_text) in enumerate(normalized):
        if any(_alias_matches(alias, opt_value) or _alias_matches(alias, opt_text) for alias in rivals):
            continue
        for candidate in (opt_text, opt_value):
            if not candidate:
                continue
            if value_norm in candidate:
                return index
            if len(candidate) >= 3 and candidate in value_norm:
                return index

    return None
