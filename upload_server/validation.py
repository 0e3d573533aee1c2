PATH_SEPARATORS = ("/", "\\")
PARENT_DIR_TOKEN = ".."


class InvalidFilenameError(ValueError):
    pass


def is_valid_filename(filename: str) -> bool:
    """Check that a name cannot step outside the directory it is joined to."""
    # Dot-only names resolve to the directory itself
    if not filename or not filename.strip("."):
        return False
    if any(sep in filename for sep in PATH_SEPARATORS):
        return False
    return PARENT_DIR_TOKEN not in filename


def validate_filename(filename: str) -> str:
    """Return the filename unchanged or raise InvalidFilenameError."""
    if not is_valid_filename(filename):
        raise InvalidFilenameError(f"invalid filename: \"{filename}\"")
    return filename
