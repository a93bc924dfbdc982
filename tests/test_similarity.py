import pytest

from provider_prefill.similarity import normalize_label, similarity


def test_normalize_label_strips_punctuation_and_case():
    assert normalize_label("NPI #") == "npi"
    assert normalize_label("  Zip-Code ") == "zipcode"
    assert normalize_label("") == ""


@pytest.mark.parametrize("label", ["NPI #", "Phone Number", "x", ""])
def test_identical_labels_score_one(label):
    assert similarity(label, label) == 1.0


def test_equal_after_normalization():
    assert similarity("NPI #", "npi#") == 1.0
    assert similarity("Date of Birth", "date_of_birth") == 1.0


def test_containment_scores_point_eight():
    assert similarity("Phone", "Phone Number") == 0.8
    assert similarity("Phone Number", "Phone") == 0.8


def test_empty_label_is_not_contained():
    assert similarity("", "Phone") == 0.0
    assert similarity("###", "Phone") == 0.0


def test_unrelated_labels_score_zero():
    assert similarity("Gender", "Phone Number") == 0.0


@pytest.mark.parametrize(
    "first, second",
    [("NPI", "DEA"), ("Mailing Address", "Address"), ("a", "ab"), ("", "")],
)
def test_score_is_bounded_and_symmetric(first, second):
    score = similarity(first, second)
    assert 0.0 <= score <= 1.0
    assert score == similarity(second, first)
