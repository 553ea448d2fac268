from typing import Annotated

from fastapi import Depends, Header
from fastapi.requests import HTTPConnection
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from .db.core import get_engine
from .errors import AuthFailed
from .models.models import User
from .realtime.broker import RoomBroker
from .security import decode_token

oauth_password_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_session():
    with Session(get_engine()) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]


def get_current_username(
    token: Annotated[str | None, Depends(oauth_password_scheme)], session: SessionDep
) -> str:
    username = decode_token(token)
    if not session.get(User, username):
        raise AuthFailed()
    return username


def get_broker(connection: HTTPConnection) -> RoomBroker:
    return connection.app.state.broker


BrokerDep = Annotated[RoomBroker, Depends(get_broker)]


def get_origin_connection(x_connection_id: Annotated[str | None, Header()] = None) -> str | None:
    return x_connection_id


OriginDep = Annotated[str | None, Depends(get_origin_connection)]
