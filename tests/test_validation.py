import pytest

from upload_server.validation import InvalidFilenameError, is_valid_filename, validate_filename


@pytest.mark.parametrize("name", ["report.txt", "a", ".hidden", "name with spaces", "x" * 500, "ünïcödé.bin"])
def test_accepts_plain_names(name):
    assert is_valid_filename(name)
    assert validate_filename(name) == name


@pytest.mark.parametrize("name", ["", ".", "...", "..", "../etc/passwd", "a/b", "/abs", "dir\\file", "a..b", "..hidden"])
def test_rejects_traversal_and_separators(name):
    assert not is_valid_filename(name)
    with pytest.raises(InvalidFilenameError):
        validate_filename(name)


def test_error_message_names_the_file():
    with pytest.raises(InvalidFilenameError, match="a/b"):
        validate_filename("a/b")
