# ============================================================================
# Custom Exceptions
# ============================================================================
from typing import Optional

class MathWizardException(Exception):
    """Base exception for Math Wizard"""
    def __init__(
        self,
        detail: str,
        status_code: int = 400,
        error_code: Optional[str] = None
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code or "MATH_WIZARD_ERROR"
        super().__init__(self.detail)

class InvalidInput(MathWizardException):
    def __init__(self, message: str = "Please enter a valid number (e.g. 42, 0.5, or 1/2)."):
        super().__init__(
            detail=message,
            status_code=400,
            error_code="INVALID_INPUT"
        )

class PersistenceFailure(MathWizardException):
    def __init__(self, operation: str):
        super().__init__(
            detail=f"Could not save {operation}. Your progress continues locally.",
            status_code=503,
            error_code="PERSISTENCE_FAILURE"
        )

class ChallengeNotFound(MathWizardException):
    def __init__(self, reference: str):
        super().__init__(
            detail=f"Challenge not found: {reference}",
            status_code=404,
            error_code="CHALLENGE_NOT_FOUND"
        )

class ChallengeJoinRejected(MathWizardException):
    def __init__(self, message: str = "Challenge not found or already started."):
        super().__init__(
            detail=message,
            status_code=409,
            error_code="CHALLENGE_JOIN_REJECTED"
        )

class SessionNotFound(MathWizardException):
    def __init__(self, session_id: str):
        super().__init__(
            detail=f"Practice session not found or expired: {session_id}",
            status_code=404,
            error_code="SESSION_NOT_FOUND"
        )

class ChallengeSubmitRejected(MathWizardException):
    def __init__(self, message: str = "All challenge questions have already been answered."):
        super().__init__(
            detail=message,
            status_code=409,
            error_code="CHALLENGE_SUBMIT_REJECTED"
        )
