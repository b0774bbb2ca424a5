from fastapi import HTTPException, status


class AssessorException(HTTPException):
    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class NotFoundError(AssessorException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(detail=detail, status_code=status.HTTP_404_NOT_FOUND)


class BadRequestError(AssessorException):
    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_400_BAD_REQUEST)


class AssessmentApiError(Exception):
    """Raised by the API client when the assessment service answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(body or f"Request failed: {status_code}")


class IngestionBusyError(RuntimeError):
    """Raised when an ingestion run is requested while another one is still in flight."""
