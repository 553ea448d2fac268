from collections import Counter
from math import ceil
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy import distinct, func
from sqlmodel import select

from ..config import settings
from ..deps import BrokerDep, OriginDep, SessionDep, get_current_username
from ..errors import Conflict, InvalidArgument, NotFound
from ..models.models import (Budget, MemberRole, Trip, TripBulkDelete,
                             TripComment, TripCommentCreate, TripCommentRead,
                             TripCreate, TripExpense, TripExpenseCreate,
                             TripExpenseRead, TripMember, TripMemberCreate,
                             TripMemberRead, TripMemberUpdate, TripPage,
                             TripPagination, TripRead, TripReadBase,
                             TripReceipt, TripReceiptRead, TripShareURL,
                             TripStats, TripStatsMonth, TripStatsRecent,
                             TripUpdate, User)
from ..permissions import ensure_can_edit, ensure_can_manage, ensure_can_read
from ..realtime.events import EventType, emit
from ..share import disable_public_share, enable_public_share, share_url
from ..utils.date import months_ago
from ..utils.utils import remove_receipt, save_receipt

router = APIRouter(prefix="/api/trips", tags=["trips"])

_SORTS = {
    "created_at": Trip.created_at.asc(),
    "-created_at": Trip.created_at.desc(),
    "title": Trip.title.asc(),
    "-title": Trip.title.desc(),
}


def get_trip_or_404(session, trip_id: int) -> Trip:
    trip = session.get(Trip, trip_id)
    if not trip:
        raise NotFound()
    return trip


def _visible_to(username: str):
    return (Trip.user == username) | (TripMember.user == username)


@router.get("", response_model=TripPage)
def read_trips(
    session: SessionDep,
    current_user: Annotated[str, Depends(get_current_username)],
    favorite: bool | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1)] = 10,
    sort: Literal["created_at", "-created_at", "title", "-title"] = "-created_at",
) -> TripPage:
    limit = min(limit, settings.TRIPS_PAGE_MAX)

    conditions = [_visible_to(current_user)]
    if favorite is not None:
        conditions.append(Trip.is_favorite.is_(favorite))

    total = session.exec(
        select(func.count(distinct(Trip.id))).select_from(Trip).outerjoin(TripMember).where(*conditions)
    ).one()
    trips = session.exec(
        select(Trip)
        .outerjoin(TripMember)
        .where(*conditions)
        .distinct()
        .order_by(_SORTS[sort])
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    total_pages = ceil(total / limit)
    return TripPage(
        trips=[TripReadBase.serialize(trip) for trip in trips],
        pagination=TripPagination(
            current_page=page,
            total_pages=total_pages,
            total_trips=total,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
    )


@router.get("/stats/overview", response_model=TripStats)
def read_trip_stats(
    session: SessionDep, current_user: Annotated[str, Depends(get_current_username)]
) -> TripStats:
    total = session.exec(select(func.count(Trip.id)).where(Trip.user == current_user)).one()
    favorites = session.exec(
        select(func.count(Trip.id)).where(Trip.user == current_user, Trip.is_favorite.is_(True))
    ).one()

    trips = session.exec(
        select(Trip).where(Trip.user == current_user).order_by(Trip.created_at.desc())
    ).all()

    countries = []
    for trip in trips:
        name = trip.country.get("name")
        if name and name not in countries:
            countries.append(name)

    recent = [
        TripStatsRecent(
            id=trip.id,
            title=trip.title,
            country=trip.country.get("name"),
            flag=trip.country.get("flag"),
            created_at=trip.created_at,
        )
        for trip in trips[:5]
    ]

    since = months_ago(6)
    recent_trips = session.exec(
        select(Trip.created_at).where(Trip.user == current_user, Trip.created_at >= since)
    ).all()
    per_month = Counter((created.year, created.month) for created in recent_trips)

    return TripStats(
        total_trips=total,
        favorite_trips=favorites,
        countries_count=len(countries),
        countries_visited=countries[:10],
        recent_trips=recent,
        trips_over_time=[
            TripStatsMonth(year=year, month=month, count=count)
            for (year, month), count in sorted(per_month.items())
        ],
    )


@router.post("/bulk-delete")
def bulk_delete_trips(
    data: TripBulkDelete,
    session: SessionDep,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> dict:
    if not data.trip_ids:
        raise InvalidArgument("Trip IDs array is required")
    if len(data.trip_ids) > settings.BULK_DELETE_MAX:
        raise InvalidArgument(f"Cannot delete more than {settings.BULK_DELETE_MAX} trips at once")

    trips = session.exec(select(Trip).where(Trip.id.in_(data.trip_ids), Trip.user == current_user)).all()
    deleted_ids = [trip.id for trip in trips]
    for trip in trips:
        session.delete(trip)
    session.commit()

    for trip_id in deleted_ids:
        emit(broker, trip_id, EventType.TRIP_DELETED, {}, current_user, origin)
        broker.close_room(trip_id)
    return {"deleted_count": len(deleted_ids)}


@router.get("/{trip_id}", response_model=TripRead)
def read_trip(
    session: SessionDep, trip_id: int, current_user: Annotated[str, Depends(get_current_username)]
) -> TripRead:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_read(db_trip, current_user)
    return TripRead.serialize(db_trip)


@router.post("", response_model=TripRead)
def create_trip(
    trip: TripCreate, session: SessionDep, current_user: Annotated[str, Depends(get_current_username)]
) -> TripRead:
    new_trip = Trip(
        title=trip.title,
        notes=trip.notes or "",
        start_date=trip.start_date,
        end_date=trip.end_date,
        is_favorite=trip.is_favorite,
        country=trip.country.model_dump(),
        budget=(trip.budget or Budget()).model_dump(),
        user=current_user,
    )

    session.add(new_trip)
    session.commit()
    session.refresh(new_trip)
    return TripRead.serialize(new_trip)


@router.put("/{trip_id}", response_model=TripRead)
def update_trip(
    session: SessionDep,
    trip_id: int,
    trip: TripUpdate,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> TripRead:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    trip_data = trip.model_dump(exclude_unset=True)
    for key in ("title", "is_favorite", "country", "budget"):
        if key in trip_data and trip_data[key] is None:
            raise InvalidArgument(f"Field {key} cannot be null")

    for key, value in trip_data.items():
        setattr(db_trip, key, value)

    session.add(db_trip)
    session.commit()
    session.refresh(db_trip)

    emit(
        broker,
        trip_id,
        EventType.TRIP_UPDATED,
        {"fields": trip.model_dump(mode="json", exclude_unset=True)},
        current_user,
        origin,
    )
    return TripRead.serialize(db_trip)


@router.delete("/{trip_id}")
def delete_trip(
    session: SessionDep,
    trip_id: int,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
):
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_manage(db_trip, current_user)

    session.delete(db_trip)
    session.commit()
    emit(broker, trip_id, EventType.TRIP_DELETED, {}, current_user, origin)
    broker.close_room(trip_id)
    return {}


@router.patch("/{trip_id}/favorite")
def toggle_favorite(
    session: SessionDep,
    trip_id: int,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> dict:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    db_trip.is_favorite = not db_trip.is_favorite
    session.add(db_trip)
    session.commit()

    emit(
        broker,
        trip_id,
        EventType.FAVORITE_TOGGLED,
        {"is_favorite": db_trip.is_favorite},
        current_user,
        origin,
    )
    return {"is_favorite": db_trip.is_favorite}


@router.get("/{trip_id}/share", response_model=TripShareURL)
def get_shared_trip_url(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[str, Depends(get_current_username)],
) -> TripShareURL:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_manage(db_trip, current_user)

    if not (db_trip.share_enabled and db_trip.share_token):
        raise NotFound()
    return TripShareURL(url=share_url(db_trip.share_token), token=db_trip.share_token)


@router.post("/{trip_id}/share", response_model=TripShareURL)
def create_shared_trip(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[str, Depends(get_current_username)],
) -> TripShareURL:
    db_trip = get_trip_or_404(session, trip_id)
    token = enable_public_share(session, db_trip, current_user)
    return TripShareURL(url=share_url(token), token=token)


@router.delete("/{trip_id}/share")
def delete_shared_trip(
    session: SessionDep,
    trip_id: int,
    current_user: Annotated[str, Depends(get_current_username)],
):
    db_trip = get_trip_or_404(session, trip_id)
    disable_public_share(session, db_trip, current_user)
    return {}


@router.get("/{trip_id}/members", response_model=list[TripMemberRead])
def read_trip_members(
    session: SessionDep, trip_id: int, current_user: Annotated[str, Depends(get_current_username)]
) -> list[TripMemberRead]:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_read(db_trip, current_user)

    members = [TripMemberRead(user=db_trip.user, role=MemberRole.OWNER, added_at=db_trip.created_at)]
    # Some trips carry an explicit owner record, the owner is already listed above
    members.extend(TripMemberRead.serialize(m) for m in db_trip.memberships if m.user != db_trip.user)
    return members


@router.post("/{trip_id}/members", response_model=TripMemberRead)
def add_trip_member(
    session: SessionDep,
    trip_id: int,
    data: TripMemberCreate,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> TripMemberRead:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_manage(db_trip, current_user)

    if data.role == MemberRole.OWNER:
        raise InvalidArgument("Ownership cannot be granted to a member")

    if db_trip.user == data.user or any(m.user == data.user for m in db_trip.memberships):
        raise Conflict()

    if not session.get(User, data.user):
        raise NotFound()

    new_member = TripMember(trip_id=trip_id, user=data.user, role=data.role, added_by=current_user)
    session.add(new_member)
    session.commit()
    session.refresh(new_member)

    member = TripMemberRead.serialize(new_member)
    emit(broker, trip_id, EventType.MEMBER_ADDED, {"member": member.model_dump(mode="json")}, current_user, origin)
    return member


def _get_member_or_404(db_trip: Trip, username: str) -> TripMember:
    member = next((m for m in db_trip.memberships if m.user == username), None)
    if not member:
        raise NotFound()
    return member


@router.put("/{trip_id}/members/{username}", response_model=TripMemberRead)
def update_trip_member(
    session: SessionDep,
    trip_id: int,
    username: str,
    data: TripMemberUpdate,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> TripMemberRead:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_manage(db_trip, current_user)

    if data.role == MemberRole.OWNER or username == db_trip.user:
        raise InvalidArgument("Ownership cannot be transferred through membership")

    db_member = _get_member_or_404(db_trip, username)
    db_member.role = data.role
    session.add(db_member)
    session.commit()
    session.refresh(db_member)

    member = TripMemberRead.serialize(db_member)
    emit(broker, trip_id, EventType.MEMBER_UPDATED, {"member": member.model_dump(mode="json")}, current_user, origin)
    return member


@router.delete("/{trip_id}/members/{username}")
def delete_trip_member(
    session: SessionDep,
    trip_id: int,
    username: str,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
):
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_manage(db_trip, current_user)

    if username == db_trip.user:
        raise InvalidArgument("The owner cannot be removed")

    session.delete(_get_member_or_404(db_trip, username))
    session.commit()

    emit(broker, trip_id, EventType.MEMBER_REMOVED, {"user": username}, current_user, origin)
    broker.evict(trip_id, username)
    return {}


@router.get("/{trip_id}/comments", response_model=list[TripCommentRead])
def read_comments(
    session: SessionDep, trip_id: int, current_user: Annotated[str, Depends(get_current_username)]
) -> list[TripCommentRead]:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_read(db_trip, current_user)
    return [TripCommentRead.serialize(c) for c in db_trip.comments]


@router.post("/{trip_id}/comments", response_model=TripCommentRead)
def create_comment(
    session: SessionDep,
    trip_id: int,
    data: TripCommentCreate,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> TripCommentRead:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    db_comment = TripComment(content=data.content, user=current_user, trip_id=trip_id)
    session.add(db_comment)
    session.commit()
    session.refresh(db_comment)

    comment = TripCommentRead.serialize(db_comment)
    emit(
        broker, trip_id, EventType.COMMENT_ADDED, {"comment": comment.model_dump(mode="json")}, current_user, origin
    )
    return comment


@router.delete("/{trip_id}/comments/{comment_id}")
def delete_comment(
    session: SessionDep,
    trip_id: int,
    comment_id: int,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
):
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    db_comment = session.get(TripComment, comment_id)
    if not db_comment or db_comment.trip_id != trip_id:
        raise NotFound()

    session.delete(db_comment)
    session.commit()
    emit(broker, trip_id, EventType.COMMENT_REMOVED, {"comment_id": comment_id}, current_user, origin)
    return {}


@router.get("/{trip_id}/expenses", response_model=list[TripExpenseRead])
def read_expenses(
    session: SessionDep, trip_id: int, current_user: Annotated[str, Depends(get_current_username)]
) -> list[TripExpenseRead]:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_read(db_trip, current_user)
    return [TripExpenseRead.serialize(e) for e in db_trip.expenses]


@router.post("/{trip_id}/expenses", response_model=TripExpenseRead)
def create_expense(
    session: SessionDep,
    trip_id: int,
    data: TripExpenseCreate,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
) -> TripExpenseRead:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    db_expense = TripExpense(**data.model_dump(), trip_id=trip_id)
    session.add(db_expense)
    session.commit()
    session.refresh(db_expense)

    expense = TripExpenseRead.serialize(db_expense)
    emit(
        broker, trip_id, EventType.EXPENSE_ADDED, {"expense": expense.model_dump(mode="json")}, current_user, origin
    )
    return expense


@router.delete("/{trip_id}/expenses/{expense_id}")
def delete_expense(
    session: SessionDep,
    trip_id: int,
    expense_id: int,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
):
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    db_expense = session.get(TripExpense, expense_id)
    if not db_expense or db_expense.trip_id != trip_id:
        raise NotFound()

    session.delete(db_expense)
    session.commit()
    emit(broker, trip_id, EventType.EXPENSE_REMOVED, {"expense_id": expense_id}, current_user, origin)
    return {}


@router.post("/{trip_id}/receipts", response_model=list[TripReceiptRead])
async def upload_receipts(
    trip_id: int,
    session: SessionDep,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
    files: list[UploadFile] = File(...),
) -> list[TripReceiptRead]:
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    if len(files) > settings.RECEIPT_MAX_FILES:
        raise InvalidArgument(f"Cannot upload more than {settings.RECEIPT_MAX_FILES} receipts at once")
    if any(file.content_type not in settings.RECEIPT_ALLOWED_TYPES for file in files):
        raise InvalidArgument("Unsupported receipt type")

    db_receipts = []
    stored = []
    try:
        for file in files:
            stored_filename = await save_receipt(trip_id, file)
            if not stored_filename:
                raise InvalidArgument("Bad request")
            stored.append(stored_filename)

            db_receipt = TripReceipt(
                filename=stored_filename,
                original_name=file.filename or stored_filename,
                size=file.size or 0,
                mime_type=file.content_type,
                uploaded_by=current_user,
                trip_id=trip_id,
            )
            session.add(db_receipt)
            db_receipts.append(db_receipt)

        session.commit()
    except Exception:
        # All or nothing, files written before the failure have no row
        session.rollback()
        for filename in stored:
            remove_receipt(trip_id, filename)
        raise

    for db_receipt in db_receipts:
        session.refresh(db_receipt)

    receipts = [TripReceiptRead.serialize(r) for r in db_receipts]
    emit(
        broker,
        trip_id,
        EventType.RECEIPTS_UPLOADED,
        {"receipts": [r.model_dump(mode="json") for r in receipts]},
        current_user,
        origin,
    )
    return receipts


@router.delete("/{trip_id}/receipts/{receipt_id}")
def delete_receipt(
    session: SessionDep,
    trip_id: int,
    receipt_id: int,
    broker: BrokerDep,
    origin: OriginDep,
    current_user: Annotated[str, Depends(get_current_username)],
):
    db_trip = get_trip_or_404(session, trip_id)
    ensure_can_edit(db_trip, current_user)

    db_receipt = session.get(TripReceipt, receipt_id)
    if not db_receipt or db_receipt.trip_id != trip_id:
        raise NotFound()

    session.delete(db_receipt)
    session.commit()
    emit(broker, trip_id, EventType.RECEIPT_REMOVED, {"receipt_id": receipt_id}, current_user, origin)
    return {}
