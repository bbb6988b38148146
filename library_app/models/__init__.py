# Models package
from .user import User, UserRole, UserStatus, AccountStatus
from .book import Book, BookStatus
from .rental import Rental, RentalStatus, CloseMode, OPEN_RENTAL_STATUSES, CLOSE_MODE_STATUS
from .book_request import BookRequest, RequestType, RequestStatus
from .notification import Notification, NotificationType, NotificationStatus
