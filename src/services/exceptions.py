"""Shared exceptions for service layer operations."""


class ConfigurationError(Exception):
    """Raised when a required setting (e.g. JWT_SECRET) is missing at use time."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class DuplicateEmailError(Exception):
    """Raised when registering an email that already has an account."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"A user with email '{email}' already exists")


class InvalidCredentialsError(Exception):
    """Raised when the email is unknown or the password does not match."""

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class DuplicateUrlError(Exception):
    """Raised when a bookmark with the same URL already exists for the user."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"A bookmark with URL '{url}' already exists")


class BookmarkNotFoundError(Exception):
    """
    Raised when a bookmark does not exist or belongs to another user.

    The two cases are deliberately indistinguishable to callers.
    """

    def __init__(self, bookmark_id: int) -> None:
        self.bookmark_id = bookmark_id
        super().__init__(f"Bookmark not found: {bookmark_id}")


class ReorderMismatchError(Exception):
    """Raised when a reorder request is not exactly the user's full bookmark set."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Reorder must list every bookmark exactly once "
            f"(expected {expected}, received {received})",
        )
