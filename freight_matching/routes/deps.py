from fastapi import Depends, HTTPException, status, Header
from dataclasses import dataclass
from typing import Optional
import enum
from uuid import UUID

from ..models.rating import PartyKind
from ..models.ride import Ride
from ..schemas.rating import Party


class Role(str, enum.Enum):
    SHIPPER = "shipper"
    DRIVER = "driver"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    id: UUID
    role: Role

    @property
    def party(self) -> Party:
        """The actor as a rating party (shippers and admins rate as users)"""
        kind = PartyKind.DRIVER if self.role == Role.DRIVER else PartyKind.USER
        return Party(kind=kind, id=self.id)


async def get_current_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_role: Optional[str] = Header(None),
) -> Actor:
    """Actor identity forwarded by the authenticating gateway"""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing actor identity headers",
        )
    try:
        return Actor(id=UUID(x_actor_id), role=Role(x_actor_role.strip().lower()))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid actor identity headers",
        )


def require_roles(*roles: Role):
    """Dependency factory restricting a route to the given roles"""

    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
        return actor

    return checker


def ensure_ride_owner(ride: Ride, actor: Actor):
    """Shippers may only act on their own rides; admins on any"""
    if actor.role == Role.SHIPPER and ride.shipper_id != actor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )


def ensure_ride_driver(ride: Ride, actor: Actor):
    """Drivers may only act on rides assigned to them"""
    if actor.role == Role.DRIVER and ride.assigned_driver_id != actor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only assigned driver can update this ride",
        )
