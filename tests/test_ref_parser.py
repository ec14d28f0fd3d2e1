import pytest
from holyverso.ref_parser import parse_reference, validate_coordinates


def test_parse_reference_single_verse():
    book, ch, vs, vs_end = parse_reference("John 3:16")
    assert book == "John"
    assert ch == 3
    assert vs == 16
    assert vs_end is None


def test_parse_reference_range():
    book, ch, vs, vs_end = parse_reference("1 Corinthians 13:4-7")
    assert book == "1 Corinthians"
    assert ch == 13
    assert vs == 4
    assert vs_end == 7


def test_parse_reference_compact():
    book, ch, vs, vs_end = parse_reference("Gen1:1")
    assert book == "Gen"
    assert ch == 1
    assert vs == 1
    assert vs_end is None


def test_parse_reference_collapses_whitespace():
    book, ch, vs, _ = parse_reference("  Song of   Solomon  2:4 ")
    assert book == "Song of Solomon"
    assert (ch, vs) == (2, 4)


@pytest.mark.parametrize("label", ["John", "John 3", "John 0:1", "John 3:0", "John 3:7-2", ""])
def test_parse_reference_invalid(label):
    with pytest.raises(ValueError):
        parse_reference(label)


def test_validate_coordinates():
    assert validate_coordinates(3, 16, 16)
    assert validate_coordinates(3, 16, None)
    assert not validate_coordinates(0, 1, 1)
    assert not validate_coordinates(3, 5, 4)
    assert not validate_coordinates(None, 1, 1)
