# Schemas package
from .common import ApiResponse, Pagination
from .user import (
    StudentCreate, FacultyCreate, ManagerCreate, UserResponse, StudentSummary,
    FacultySummary, ManagerAction, AccountStatusUpdate, EligibilityResponse
)
from .book import BookCreate, BookUpdate, BookResponse, BookListResponse, BookImportRequest, BookImportResult
from .rental import AssignBookRequest, ReturnBookRequest, RentalResponse, RentalConfirmation
from .book_request import BookRequestCreate, RequestDecision, BookRequestResponse, FacultyAssignBookRequest
from .notification import NotificationResponse, NotificationListResponse
