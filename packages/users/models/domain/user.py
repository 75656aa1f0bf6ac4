import re
from pydantic import BaseModel

from common.core.exceptions import ValidationError

_DOMAIN_SUFFIX = re.compile(r"@.*$")


def normalize_username(username: str) -> str:
    """
    Strip any ``@domain`` suffix so ``alice@example.org`` and ``alice`` are
    the same account.
    """
    normalized = _DOMAIN_SUFFIX.sub("", (username or "").strip())
    if not normalized:
        raise ValidationError("invalid username")
    return normalized


class User(BaseModel):
    id: int
    username: str

    class Config:
        from_attributes = True
