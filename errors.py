"""
Error taxonomy

Every failure a request can hit maps to one of these classes. Each carries the
HTTP status it renders as; main.py turns them into ``{"msg": ...}`` bodies.
"""

from fastapi import status


class LedgerError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_msg = "Server error"

    def __init__(self, msg: str = None):
        self.msg = msg or self.default_msg
        super().__init__(self.msg)


class InvalidInput(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_msg = "Please enter all fields"


class DuplicateUser(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_msg = "User already exists"


class InvalidCredentials(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_msg = "Invalid credentials"


class Unauthorized(LedgerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_msg = "Token is not valid"


class NotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_msg = "User not found"


class CategoryNotFound(NotFound):
    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Budget category '{category}' not found.")


class InternalFailure(LedgerError):
    pass
