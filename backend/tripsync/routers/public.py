from fastapi import APIRouter

from ..deps import SessionDep
from ..models.models import TripPublicRead
from ..share import resolve_public_share

router = APIRouter(prefix="/api/public", tags=["public"])


@router.get("/trips/{token}", response_model=TripPublicRead)
def read_public_trip(session: SessionDep, token: str) -> TripPublicRead:
    return TripPublicRead.serialize(resolve_public_share(session, token))
