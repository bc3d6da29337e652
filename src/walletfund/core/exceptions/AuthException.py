from fastapi import HTTPException


class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Authentication failed"):
        super().__init__(status_code=401, detail=detail)


class MissingTokenError(AuthenticationError):
    def __init__(self):
        super().__init__(detail="No token found. Please log in.")
