class TripError(Exception):
    status_code = 400
    detail = "Bad request"

    def __init__(self, detail: str | None = None):
        if detail:
            self.detail = detail
        super().__init__(self.detail)


class NotFound(TripError):
    status_code = 404
    detail = "Not found"


class PermissionDenied(TripError):
    status_code = 403
    detail = "Forbidden"


class InvalidArgument(TripError):
    status_code = 400
    detail = "Bad request"


class Conflict(TripError):
    status_code = 409
    detail = "The resource already exists"


class AuthRequired(TripError):
    status_code = 401
    detail = "auth_required"


class AuthFailed(TripError):
    status_code = 401
    detail = "auth_failed"
