"""Domain errors. Each carries the HTTP status it is reported with."""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingField(AppError):
    status_code = 400


class DuplicateIdentity(AppError):
    status_code = 400


class InvalidCredentials(AppError):
    status_code = 401


class MissingToken(AppError):
    status_code = 401


class InvalidToken(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404
