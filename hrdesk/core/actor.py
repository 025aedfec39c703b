"""
Actor — the explicit (role, id, unit) triple passed into every engine call.

Authorization in the service layer is a pure function of the actor and the
item; nothing is read from ambient request/session state.

Usage:
    from hrdesk.core.actor import Actor, Role

    reviewer = Actor(id="u-17", role=Role.UNIT_REVIEWER, unit_id=8)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hrdesk.core.exceptions import ValidationError


class Role(str, Enum):
    SUBMITTER = "submitter"
    UNIT_REVIEWER = "unit_reviewer"
    CENTRAL_REVIEWER = "central_reviewer"


REVIEWER_ROLES = frozenset({Role.UNIT_REVIEWER, Role.CENTRAL_REVIEWER})


@dataclass(frozen=True)
class Actor:
    """Who is performing an engine operation."""
    id: str
    role: Role
    unit_id: int | None = None

    @classmethod
    def build(cls, actor_id, role, unit_id=None) -> Actor:
        """Validate raw values (from a token or headers) into an Actor."""
        if not actor_id:
            raise ValidationError("Actor id is required", details={"actor_id": "missing"})
        try:
            role = Role(role)
        except ValueError:
            raise ValidationError(
                f"Unknown role '{role}'",
                details={"role": f"must be one of {sorted(r.value for r in Role)}"},
            ) from None
        if unit_id in (None, ""):
            unit_id = None
        else:
            try:
                unit_id = int(unit_id)
            except (TypeError, ValueError):
                raise ValidationError("unit_id must be an integer", details={"unit_id": unit_id}) from None
        if role == Role.UNIT_REVIEWER and unit_id is None:
            raise ValidationError("A unit reviewer must carry a unit_id", details={"unit_id": "missing"})
        return cls(id=str(actor_id), role=role, unit_id=unit_id)

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    def reviews_unit(self, unit_id: int | None) -> bool:
        """True if this actor is the unit reviewer of ``unit_id``."""
        return self.role == Role.UNIT_REVIEWER and self.unit_id is not None and self.unit_id == unit_id

    def to_dict(self) -> dict:
        return {"id": self.id, "role": self.role.value, "unit_id": self.unit_id}
