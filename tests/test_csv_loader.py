from provider_prefill.csv_loader import (
    filter_by_state,
    license_state_counts,
    licensed_states,
    parse_provider_csv,
    parse_provider_csv_file,
)
from provider_prefill.models import ProviderRecord


def test_parses_provider_columns(sample_csv):
    parsed = parse_provider_csv(sample_csv)

    assert [p.name for p in parsed.providers] == ["Dr. Jane Doe", "Dr. John Smith"]
    jane = parsed.providers[0]
    assert jane.data == {
        "NOTES": "Prefers email",
        "Address": "1 Main St",
        "NPI #": "1234567890",
        "Phone Number": "555-123-4567",
        "TX License": "L-100",
    }
    assert parsed.all_fields == ["Address", "CA", "NOTES", "NPI #", "Phone Number", "TX License"]


def test_terminated_section_is_dropped(sample_csv):
    names = [p.name for p in parse_provider_csv(sample_csv).providers]
    assert not any("term" in name.lower() for name in names)


def test_quoted_multiline_names_and_commas():
    csv_text = (
        ',"Dr. Ana\nLopez, MD"\n'
        'Address,"10 Elm St, Suite 4"\n'
    )
    parsed = parse_provider_csv(csv_text)

    assert parsed.providers[0].name == "Dr. Ana Lopez, MD"
    assert parsed.providers[0].data == {"Address": "10 Elm St, Suite 4"}


def test_empty_input():
    parsed = parse_provider_csv("")
    assert parsed.providers == []
    assert parsed.all_fields == []


def test_parse_file(tmp_path, sample_csv):
    path = tmp_path / "export.csv"
    path.write_text(sample_csv, encoding="utf-8")
    assert len(parse_provider_csv_file(path).providers) == 2


def test_licensed_states_and_filter(sample_csv):
    providers = parse_provider_csv(sample_csv).providers

    assert licensed_states(providers[0]) == ["TX"]
    assert licensed_states(providers[1]) == ["CA"]
    assert [p.name for p in filter_by_state(providers, " tx ")] == ["Dr. Jane Doe"]
    assert license_state_counts(providers) == {"CA": 1, "TX": 1}


def test_blank_license_does_not_count():
    provider = ProviderRecord(name="A", data={"NY License": "  ", "NYC Notes": "x"})
    assert licensed_states(provider) == []
