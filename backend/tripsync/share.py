"""Public, read-only trip links.

A trip has at most one active token. Enabling again rotates it, which breaks
previously handed out links.
"""

from sqlmodel import Session, select

from .errors import NotFound
from .models.models import Trip
from .permissions import ensure_can_manage
from .utils.utils import generate_urlsafe

TOKEN_BYTES = 24


def share_url(token: str) -> str:
    return f"/s/t/{token}"


def enable_public_share(session: Session, trip: Trip, username: str) -> str:
    ensure_can_manage(trip, username)

    token = generate_urlsafe(TOKEN_BYTES)
    trip.share_enabled = True
    trip.share_token = token
    session.add(trip)
    session.commit()
    session.refresh(trip)
    return token


def disable_public_share(session: Session, trip: Trip, username: str):
    ensure_can_manage(trip, username)

    trip.share_enabled = False
    trip.share_token = None
    session.add(trip)
    session.commit()


def resolve_public_share(session: Session, token: str | None) -> Trip:
    # Wrong and disabled tokens both surface as NotFound
    if not token:
        raise NotFound()

    trip = session.exec(select(Trip).where(Trip.share_token == token, Trip.share_enabled.is_(True))).first()
    if not trip:
        raise NotFound()
    return trip
