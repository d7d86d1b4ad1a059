"""Member - participant identity (sellers and bidders)."""

import uuid
from dataclasses import dataclass, field

from auctionhouse.core.errors import ValidationError
from auctionhouse.utils.validation import validate_name


@dataclass(frozen=True)
class Member:
    """
    A participant identity.

    Attributes:
        name: Display name
        unique_id: Stable identifier (uuid4 hex unless given)
    """
    name: str
    unique_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        valid, error = validate_name(self.name)
        if not valid:
            raise ValidationError(error)
        valid, error = validate_name(self.unique_id, "unique_id")
        if not valid:
            raise ValidationError(error)
