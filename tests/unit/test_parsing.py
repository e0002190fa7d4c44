from school_pipeline.common.parsing import (
    clean_text,
    is_parseable_decimal,
    is_parseable_number,
    parse_float,
    parse_int,
    split_name_and_number,
)


def test_parse_int_german_formats():
    assert parse_int("1.234") == 1234
    assert parse_int(" 45 % ") == 45
    assert parse_int("1\xa0234") == 1234
    assert parse_int("12,5") == 125


def test_parse_float_german_formats():
    assert parse_float("45,6 %") == 45.6
    assert parse_float("12,5") == 12.5
    assert parse_float("7") == 7.0


def test_unparseable_numbers_become_zero():
    assert parse_int("") == 0
    assert parse_float("") == 0.0
    assert parse_int(None) == 0
    assert parse_float(None) == 0.0
    assert parse_int("k.A.") == 0
    assert parse_float("-") == 0.0


def test_parseable_checks():
    assert is_parseable_number("1.234")
    assert not is_parseable_number("k.A.")
    assert is_parseable_decimal("17,1 %")
    assert not is_parseable_decimal("n/a")


def test_split_name_and_number():
    assert split_name_and_number("Gymnasium Alpha - 01Y01") == ("Gymnasium Alpha", "01Y01")
    assert split_name_and_number("NoDelimiterName") == ("NoDelimiterName", "")
    assert split_name_and_number("") == ("", "")


def test_split_uses_last_delimiter():
    name, number = split_name_and_number("Schule am See - Standort Nord - 07K02")
    assert name == "Schule am See - Standort Nord"
    assert number == "07K02"


def test_clean_text_collapses_whitespace():
    assert clean_text("  Englisch,\n   Französisch ") == "Englisch, Französisch"
    assert clean_text(None) == ""
