from fastapi import HTTPException


class DepositNotFoundException(HTTPException):
    def __init__(self, message: str = "Deposit attempt not found"):
        super().__init__(status_code=404, detail=message)


class DepositValidationException(HTTPException):
    def __init__(self, message: str = "Deposit validation failed"):
        super().__init__(status_code=400, detail=message)


class DepositInitializationException(HTTPException):
    def __init__(self, message: str = "Failed to initialize payment"):
        super().__init__(status_code=400, detail=message)


class UpstreamUnavailableException(HTTPException):
    def __init__(self, message: str = "Network error. Please try again."):
        super().__init__(status_code=503, detail=message)
