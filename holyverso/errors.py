class AppError(Exception):
    """Domain failure carrying an HTTP status and a stable machine-readable code."""

    def __init__(self, message: str, code: str, status_code: int = 400, details=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details

    def to_payload(self) -> dict:
        return {"error": {"message": self.message, "code": self.code}}


class BibleApiError(AppError):
    def __init__(self, message: str, code: str = "BIBLE_API_ERROR", status_code: int = 502, details=None):
        super().__init__(message, code, status_code, details)
