"""Share identifier allocation and validation."""

import secrets

from .types import SHARE_ID_ALPHABET, SHARE_ID_LENGTH, InvalidIdError


_ALLOWED = frozenset(SHARE_ID_ALPHABET)
_CONSTRUCT_TOKEN = object()


class ShareId:
    """
    A validated share identifier.

    Instances only come from generate_share_id() or validate_share_id(),
    so holding one means the value is safe to use as a storage key.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str, _token: object = None) -> None:
        if _token is not _CONSTRUCT_TOKEN:
            raise TypeError("Use generate_share_id() or validate_share_id() to obtain a ShareId")
        self._value = value

    @property
    def value(self) -> str:
        """The identifier text."""
        return self._value

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"ShareId({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ShareId):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


def generate_share_id() -> ShareId:
    """
    Draw a new share id from a CSPRNG.

    Each of the 6 characters is uniform over the 62 ASCII alphanumerics.
    Uniqueness is not checked here; the blob store rejects collisions.

    Returns:
        A fresh ShareId
    """
    value = "".join(secrets.choice(SHARE_ID_ALPHABET) for _ in range(SHARE_ID_LENGTH))
    return ShareId(value, _CONSTRUCT_TOKEN)


def validate_share_id(text: str) -> ShareId:
    """
    Validate client-supplied identifier text.

    Args:
        text: Candidate identifier

    Returns:
        ShareId wrapping the text

    Raises:
        InvalidIdError: If the length is not 6 or a character is not an
            ASCII letter or digit
    """
    if not isinstance(text, str):
        raise InvalidIdError(str(text))

    if len(text) != SHARE_ID_LENGTH or not all(c in _ALLOWED for c in text):
        raise InvalidIdError(text)

    return ShareId(text, _CONSTRUCT_TOKEN)
