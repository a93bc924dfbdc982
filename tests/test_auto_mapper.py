from provider_prefill.auto_mapper import ProviderFieldMapper, merge_mappings, summarize_coverage
from provider_prefill.models import FieldKind, FieldMapping, PDFFieldDescriptor, ProviderRecord
from provider_prefill.settings import MatcherSettings


def _fields(*names):
    return [PDFFieldDescriptor(name=name, kind=FieldKind.TEXT) for name in names]


def test_category_boost_raises_containment_score():
    provider = ProviderRecord(name="A", data={"Address": "1 Main St"})
    mapping = ProviderFieldMapper().map_field("Mailing Address", provider)

    assert mapping.provider_field == "Address"
    assert mapping.confidence >= 0.85
    assert mapping.suggested_value == "1 Main St"


def test_contact_email_never_maps_to_phone_columns():
    provider = ProviderRecord(name="A", data={"Phone Number": "555-0100", "Fax": "555-0101"})
    mapping = ProviderFieldMapper().map_field("Contact Email", provider)

    assert mapping.provider_field == ""
    assert mapping.confidence == 0.0


def test_contact_email_picks_email_column():
    provider = ProviderRecord(
        name="A", data={"Phone Number": "555-0100", "Email": "a@example.com"}
    )
    mapping = ProviderFieldMapper().map_field("Contact Email", provider)
    assert mapping.provider_field == "Email"


def test_excluded_field_gets_empty_mapping():
    provider = ProviderRecord(name="A", data={"Name": "Jane", "Clinic Name": "Acme"})
    mapping = ProviderFieldMapper().map_field("Clinic Name", provider)

    assert mapping.provider_field == ""
    assert mapping.confidence == 0.0
    assert mapping.suggested_value == ""


def test_blank_provider_values_are_not_candidates():
    provider = ProviderRecord(name="A", data={"Phone Number": "   "})
    mapping = ProviderFieldMapper().map_field("Phone", provider)
    assert mapping.provider_field == ""
    assert mapping.confidence == 0.0


def test_below_threshold_keeps_raw_score():
    mapper = ProviderFieldMapper(MatcherSettings(confidence_threshold=0.9))
    provider = ProviderRecord(name="A", data={"Phone Number": "555-0100"})

    mapping = mapper.map_field("Phone", provider)

    assert mapping.provider_field == ""
    assert mapping.suggested_value == ""
    assert mapping.confidence == 0.85
    assert mapping.confidence_label == "High"


def test_first_candidate_wins_on_tie():
    provider = ProviderRecord(name="A", data={"Cell": "1", "Mobile": "2"})
    mapping = ProviderFieldMapper().map_field("Telephone", provider)
    assert mapping.provider_field == "Cell"
    assert mapping.confidence == 0.85


def test_exact_match_beats_category_boost():
    provider = ProviderRecord(name="A", data={"Phone Number": "1", "Phone": "2"})
    mapping = ProviderFieldMapper().map_field("phone", provider)
    assert mapping.provider_field == "Phone"
    assert mapping.confidence == 1.0


def test_map_fields_sorted_by_confidence_and_stable(jane_doe):
    provider = ProviderRecord(
        name=jane_doe.name, data={**jane_doe.data, "Email": "jane@example.com"}
    )
    mappings = ProviderFieldMapper().map_fields(
        _fields("Clinic Name", "Phone", "Gender", "Email", "NPI Number"), provider
    )

    assert [m.pdf_field for m in mappings] == [
        "Email",
        "Phone",
        "NPI Number",
        "Clinic Name",
        "Gender",
    ]
    assert [m.confidence for m in mappings] == [1.0, 0.85, 0.85, 0.0, 0.0]


def test_map_fields_is_deterministic(jane_doe):
    fields = _fields("NPI Number", "Phone", "Clinic Name")
    mapper = ProviderFieldMapper()
    first = [m.to_dict() for m in mapper.map_fields(fields, jane_doe)]
    second = [m.to_dict() for m in mapper.map_fields(fields, jane_doe)]
    assert first == second


def test_merge_mappings_custom_overrides_and_clears():
    auto = [
        FieldMapping("NPI Number", "NPI #", 0.85, "123"),
        FieldMapping("Phone", "Phone Number", 0.85, "555"),
        FieldMapping("Gender", "", 0.3),
    ]
    effective, cleared = merge_mappings(
        auto, {"Phone": "", "Gender": "Sex", "Clinic Name": "Practice"}, 0.5
    )

    assert effective == {"NPI Number": "NPI #", "Gender": "Sex", "Clinic Name": "Practice"}
    assert cleared == {"Phone"}


def test_merge_mappings_ignores_low_confidence_auto_entries():
    auto = [FieldMapping("Phone", "Phone Number", 0.85, "555")]
    effective, cleared = merge_mappings(auto, None, 0.9)
    assert effective == {}
    assert cleared == set()


def test_summarize_coverage(jane_doe):
    mappings = [
        FieldMapping("NPI Number", "NPI #", 0.85),
        FieldMapping("E-mail", "Email", 0.85),
        FieldMapping("Clinic Name", "", 0.0),
        FieldMapping("Phone", "Phone Number", 0.85),
    ]
    coverage = summarize_coverage(mappings, jane_doe)

    assert coverage.will_fill == 2
    assert coverage.missing_data == 1
    assert coverage.unmapped == 1
    assert coverage.coverage == 50
    assert coverage.to_dict()["coverage"] == 50


def test_summarize_coverage_empty():
    coverage = summarize_coverage([], ProviderRecord(name="A"))
    assert coverage.total_fields == 0
    assert coverage.coverage == 0
