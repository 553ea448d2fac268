from datetime import UTC, date, datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, StringConstraints
from sqlalchemy import JSON, Column, Index, MetaData, event
from sqlalchemy.orm import Session, object_session
from sqlmodel import Field, Relationship, SQLModel

from ..config import settings
from ..utils.utils import remove_receipt

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

SQLModel.metadata = MetaData(naming_convention=convention)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@event.listens_for(Session, "after_commit")
def cleanup_after_commit(session):
    if hasattr(session, "_receipts_to_delete"):
        for receipt in session._receipts_to_delete:
            remove_receipt(receipt.trip_id, receipt.filename)
        delattr(session, "_receipts_to_delete")


class MemberRole(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


class ItineraryStatusEnum(str, Enum):
    PLANNED = "planned"
    DONE = "done"
    CANCELLED = "cancelled"


class ExpenseCategoryEnum(str, Enum):
    FOOD = "food"
    TRANSPORT = "transport"
    ACCOMMODATION = "accommodation"
    ACTIVITIES = "activities"
    SHOPPING = "shopping"
    HEALTH = "health"
    ENTERTAINMENT = "entertainment"
    MISCELLANEOUS = "miscellaneous"


class AuthParams(BaseModel):
    register_enabled: bool


class LoginRegisterModel(BaseModel):
    username: Annotated[
        str,
        StringConstraints(min_length=1, max_length=19, pattern=r"^[a-zA-Z0-9_-]+$"),
    ]
    password: str


class Token(BaseModel):
    access_token: str
    refresh_token: str


class TripShareURL(BaseModel):
    url: str
    token: str


class User(SQLModel, table=True):
    username: str = Field(primary_key=True)
    password: str
    currency: str = settings.DEFAULT_CURRENCY
    created_at: datetime = Field(default_factory=_utcnow)


class UserRead(BaseModel):
    username: str
    currency: str

    @classmethod
    def serialize(cls, obj: User) -> "UserRead":
        return cls(username=obj.username, currency=obj.currency)


class CountryInfo(BaseModel):
    name: Annotated[str, StringConstraints(min_length=1)]
    capital: str | None = None
    population: int | None = None
    currency: str | None = None
    flag: str | None = None
    region: str | None = None
    subregion: str | None = None
    languages: list[str] = []
    timezones: list[str] = []


class BudgetPlanned(BaseModel):
    flights: float = 0
    hotels: float = 0
    food: float = 0


class Budget(BaseModel):
    currency: str = settings.DEFAULT_CURRENCY
    total_estimated: float = 0
    planned: BudgetPlanned = BudgetPlanned()


class TripBase(SQLModel):
    title: str = Field(max_length=100)
    notes: str | None = Field(default=None, max_length=1000)
    start_date: date | None = None
    end_date: date | None = None
    is_favorite: bool = False


class Trip(TripBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    user: str = Field(foreign_key="user.username", ondelete="CASCADE", index=True)
    country: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    budget: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    share_enabled: bool = False
    share_token: str | None = Field(default=None, index=True, unique=True)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow})

    itinerary: list["ItineraryItem"] = Relationship(
        back_populates="trip",
        sa_relationship_kwargs={
            "order_by": lambda: [ItineraryItem.day, ItineraryItem.order, ItineraryItem.id]
        },
        cascade_delete=True,
    )
    memberships: list["TripMember"] = Relationship(
        back_populates="trip",
        sa_relationship_kwargs={"order_by": lambda: TripMember.id},
        cascade_delete=True,
    )
    comments: list["TripComment"] = Relationship(
        back_populates="trip",
        sa_relationship_kwargs={"order_by": lambda: TripComment.id},
        cascade_delete=True,
    )
    expenses: list["TripExpense"] = Relationship(back_populates="trip", cascade_delete=True)
    receipts: list["TripReceipt"] = Relationship(back_populates="trip", cascade_delete=True)

    __table_args__ = (Index("idx_trip_user_created", "user", "created_at"),)


class TripCreate(TripBase):
    title: Annotated[str, StringConstraints(min_length=1, max_length=100)]
    country: CountryInfo
    budget: Budget | None = None


class TripUpdate(TripBase):
    title: Annotated[str, StringConstraints(min_length=1, max_length=100)] | None = None
    is_favorite: bool | None = None
    country: CountryInfo | None = None
    budget: Budget | None = None


class TripReadBase(TripBase):
    id: int
    owner: str
    country: CountryInfo
    days: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def serialize(cls, obj: Trip) -> "TripReadBase":
        return cls(
            id=obj.id,
            owner=obj.user,
            title=obj.title,
            notes=obj.notes,
            start_date=obj.start_date,
            end_date=obj.end_date,
            is_favorite=obj.is_favorite,
            country=CountryInfo(**obj.country),
            days=len({item.day for item in obj.itinerary}),
            created_at=obj.created_at,
            updated_at=obj.updated_at,
        )


class TripRead(TripBase):
    id: int
    owner: str
    country: CountryInfo
    budget: Budget
    itinerary: list["ItineraryItemRead"]
    members: list["TripMemberRead"]
    comments: list["TripCommentRead"]
    expenses: list["TripExpenseRead"]
    receipts: list["TripReceiptRead"]
    shared: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def serialize(cls, obj: Trip) -> "TripRead":
        return cls(
            id=obj.id,
            owner=obj.user,
            title=obj.title,
            notes=obj.notes,
            start_date=obj.start_date,
            end_date=obj.end_date,
            is_favorite=obj.is_favorite,
            country=CountryInfo(**obj.country),
            budget=Budget(**obj.budget),
            itinerary=[ItineraryItemRead.serialize(item) for item in obj.itinerary],
            members=[TripMemberRead.serialize(m) for m in obj.memberships],
            comments=[TripCommentRead.serialize(c) for c in obj.comments],
            expenses=[TripExpenseRead.serialize(e) for e in obj.expenses],
            receipts=[TripReceiptRead.serialize(r) for r in obj.receipts],
            shared=bool(obj.share_enabled and obj.share_token),
            created_at=obj.created_at,
            updated_at=obj.updated_at,
        )


class TripPublicRead(TripBase):
    """Read-only, anonymized projection served through a public share link."""

    id: int
    country: CountryInfo
    budget: Budget
    itinerary: list["ItineraryItemRead"]
    expenses: list["TripExpenseRead"]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def serialize(cls, obj: Trip) -> "TripPublicRead":
        return cls(
            id=obj.id,
            title=obj.title,
            notes=obj.notes,
            start_date=obj.start_date,
            end_date=obj.end_date,
            is_favorite=obj.is_favorite,
            country=CountryInfo(**obj.country),
            budget=Budget(**obj.budget),
            itinerary=[ItineraryItemRead.serialize(item) for item in obj.itinerary],
            expenses=[TripExpenseRead.serialize(e) for e in obj.expenses],
            created_at=obj.created_at,
            updated_at=obj.updated_at,
        )


class TripPagination(BaseModel):
    current_page: int
    total_pages: int
    total_trips: int
    has_next_page: bool
    has_prev_page: bool


class TripPage(BaseModel):
    trips: list[TripReadBase]
    pagination: TripPagination


class TripBulkDelete(BaseModel):
    trip_ids: list[int]


class TripStatsRecent(BaseModel):
    id: int
    title: str
    country: str | None
    flag: str | None
    created_at: datetime


class TripStatsMonth(BaseModel):
    year: int
    month: int
    count: int


class TripStats(BaseModel):
    total_trips: int
    favorite_trips: int
    countries_count: int
    countries_visited: list[str]
    recent_trips: list[TripStatsRecent]
    trips_over_time: list[TripStatsMonth]


class TripMember(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    user: str = Field(foreign_key="user.username", ondelete="CASCADE")
    role: MemberRole = Field(default=MemberRole.VIEWER)
    added_by: str | None = Field(default=None, foreign_key="user.username", ondelete="SET NULL")
    added_at: datetime = Field(default_factory=_utcnow)

    trip_id: int = Field(foreign_key="trip.id", ondelete="CASCADE", index=True)
    trip: Trip | None = Relationship(back_populates="memberships")

    __table_args__ = (Index("idx_tripmember_trip_user", "trip_id", "user"),)


class TripMemberCreate(BaseModel):
    user: str
    role: MemberRole = MemberRole.VIEWER


class TripMemberUpdate(BaseModel):
    role: MemberRole


class TripMemberRead(BaseModel):
    user: str
    role: MemberRole
    added_by: str | None = None
    added_at: datetime | None = None

    @classmethod
    def serialize(cls, obj: TripMember) -> "TripMemberRead":
        return cls(user=obj.user, role=obj.role, added_by=obj.added_by, added_at=obj.added_at)


class ItineraryItemBase(SQLModel):
    title: str
    location: str | None = None
    day: int = 1
    start_time: str | None = None
    end_time: str | None = None
    notes: str | None = Field(default=None, max_length=500)
    status: ItineraryStatusEnum = ItineraryStatusEnum.PLANNED
    lat: float | None = None
    lng: float | None = None
    cost: float = 0


class ItineraryItem(ItineraryItemBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    order: int = 0

    trip_id: int = Field(foreign_key="trip.id", ondelete="CASCADE", index=True)
    trip: Trip | None = Relationship(back_populates="itinerary")

    __table_args__ = (Index("idx_itineraryitem_trip_day_order", "trip_id", "day", "order"),)


class ItineraryItemCreate(ItineraryItemBase):
    title: Annotated[str, StringConstraints(min_length=1)]
    day: int | None = None
    notes: Annotated[str, StringConstraints(max_length=500)] | None = None


class ItineraryItemUpdate(ItineraryItemBase):
    title: Annotated[str, StringConstraints(min_length=1)] | None = None
    day: int | None = None
    order: int | None = None
    status: ItineraryStatusEnum | None = None
    cost: float | None = None
    notes: Annotated[str, StringConstraints(max_length=500)] | None = None


class ItineraryItemRead(ItineraryItemBase):
    id: int
    order: int

    @classmethod
    def serialize(cls, obj: ItineraryItem) -> "ItineraryItemRead":
        return cls(
            id=obj.id,
            title=obj.title,
            location=obj.location,
            day=obj.day,
            start_time=obj.start_time,
            end_time=obj.end_time,
            notes=obj.notes,
            status=obj.status,
            order=obj.order,
            lat=obj.lat,
            lng=obj.lng,
            cost=obj.cost,
        )


class ItineraryReorder(BaseModel):
    day: int
    item_ids: list[int]


class ItineraryDayDuplicate(BaseModel):
    from_day: int
    to_day: int


class TripComment(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    user: str | None = Field(default=None, foreign_key="user.username", ondelete="SET NULL")
    content: str = Field(max_length=1000)
    created_at: datetime = Field(default_factory=_utcnow)

    trip_id: int = Field(foreign_key="trip.id", ondelete="CASCADE", index=True)
    trip: Trip | None = Relationship(back_populates="comments")


class TripCommentCreate(BaseModel):
    content: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)]


class TripCommentRead(BaseModel):
    id: int
    user: str | None
    content: str
    created_at: datetime

    @classmethod
    def serialize(cls, obj: TripComment) -> "TripCommentRead":
        return cls(id=obj.id, user=obj.user, content=obj.content, created_at=obj.created_at)


class TripExpenseBase(SQLModel):
    title: str
    amount: float
    category: ExpenseCategoryEnum = ExpenseCategoryEnum.MISCELLANEOUS
    date: datetime = Field(default_factory=_utcnow)
    currency: str = settings.DEFAULT_CURRENCY
    notes: str | None = None


class TripExpense(TripExpenseBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=_utcnow)

    trip_id: int = Field(foreign_key="trip.id", ondelete="CASCADE", index=True)
    trip: Trip | None = Relationship(back_populates="expenses")


class TripExpenseCreate(TripExpenseBase):
    title: Annotated[str, StringConstraints(min_length=1)]


class TripExpenseRead(TripExpenseBase):
    id: int
    created_at: datetime

    @classmethod
    def serialize(cls, obj: TripExpense) -> "TripExpenseRead":
        return cls(
            id=obj.id,
            title=obj.title,
            amount=obj.amount,
            category=obj.category,
            date=obj.date,
            currency=obj.currency,
            notes=obj.notes,
            created_at=obj.created_at,
        )


class TripReceiptBase(SQLModel):
    original_name: str
    size: int
    mime_type: str | None = None


class TripReceipt(TripReceiptBase, table=True):
    id: int | None = Field(default=None, primary_key=True)
    filename: str
    uploaded_at: datetime = Field(default_factory=_utcnow)
    uploaded_by: str | None = Field(default=None, foreign_key="user.username", ondelete="SET NULL")

    trip_id: int = Field(foreign_key="trip.id", ondelete="CASCADE", index=True)
    trip: Trip | None = Relationship(back_populates="receipts")


@event.listens_for(TripReceipt, "after_delete")
def mark_receipt_for_deletion(mapper, connection, target: TripReceipt):
    session = object_session(target)
    if not session:
        return
    if not hasattr(session, "_receipts_to_delete"):
        session._receipts_to_delete = []
    session._receipts_to_delete.append(target)


class TripReceiptRead(TripReceiptBase):
    id: int
    uploaded_at: datetime
    uploaded_by: str | None

    @classmethod
    def serialize(cls, obj: TripReceipt) -> "TripReceiptRead":
        return cls(
            id=obj.id,
            original_name=obj.original_name,
            size=obj.size,
            mime_type=obj.mime_type,
            uploaded_at=obj.uploaded_at,
            uploaded_by=obj.uploaded_by,
        )
