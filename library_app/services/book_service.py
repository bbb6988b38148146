"""
Service for the book catalog.

Rental state (status, current rental/holder, counters) is owned by
RentalService; this module only creates books and edits descriptive fields.
"""

import logging
import math
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, cast, String
from sqlalchemy.exc import IntegrityError

from library_app.core.exceptions import ConflictError, InternalError, NotFoundError
from library_app.models.book import Book, BookStatus
from library_app.schemas.book import BookCreate, BookUpdate
from library_app.utils.validators import clean_cell, safe_int, split_genres

logger = logging.getLogger(__name__)


class BookService:
    """Service for managing the catalog."""

    @staticmethod
    async def create_book(
        db: AsyncSession,
        book_data: BookCreate
    ) -> Book:
        """Create a new book, AVAILABLE with zero counters."""
        isbn = book_data.isbn.strip() if book_data.isbn else None
        if isbn:
            existing = await db.execute(select(Book.id).where(Book.isbn == isbn))
            if existing.scalar():
                raise ConflictError("A book with this ISBN already exists")

        book = Book(
            isbn=isbn,
            title=book_data.title.strip(),
            author=book_data.author.strip(),
            genre=[g.strip() for g in book_data.genre if g and g.strip()],
            publisher=book_data.publisher,
            published_year=book_data.published_year,
            edition=book_data.edition,
            description=book_data.description,
            physical_id=book_data.physical_id,
            cover_image=book_data.cover_image,
            rental_status=BookStatus.AVAILABLE,
            total_rentals=0
        )
        db.add(book)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("A book with this ISBN or physical ID already exists")
        await db.refresh(book)
        logger.info(f"Created book: {book.title} ({book.isbn})")
        return book

    @staticmethod
    async def import_books(
        db: AsyncSession,
        rows: List[Dict[str, Any]]
    ) -> dict:
        """
        Import already-parsed spreadsheet rows.

        Column headers are matched loosely ("ISBN"/"isbn", "Published Year"/
        "publishedYear"). Rows whose ISBN is already catalogued are skipped.
        """
        results = {"imported": 0, "skipped": 0, "errors": []}

        def pick(row: Dict[str, Any], *keys: str) -> Any:
            for key in keys:
                if key in row:
                    return row[key]
            return None

        try:
            existing = await db.execute(select(Book.isbn).where(Book.isbn.isnot(None)))
            seen_isbns = set(existing.scalars().all())

            for index, row in enumerate(rows, start=1):
                isbn = clean_cell(pick(row, "ISBN", "isbn"))
                if isbn and isbn in seen_isbns:
                    results["skipped"] += 1
                    continue

                title = clean_cell(pick(row, "Title", "title"))
                if not title and not isbn:
                    results["errors"].append(f"Row {index}: missing title and ISBN")
                    continue

                db.add(Book(
                    isbn=isbn,
                    title=title or "Untitled",
                    author=clean_cell(pick(row, "Author", "author"), "Unknown"),
                    genre=split_genres(pick(row, "Genre", "genre")),
                    publisher=clean_cell(pick(row, "Publisher", "publisher")),
                    published_year=safe_int(pick(row, "Published Year", "publishedYear", "year")),
                    edition=clean_cell(pick(row, "Edition", "edition")),
                    description=clean_cell(pick(row, "Description", "description")),
                    physical_id=clean_cell(pick(row, "Physical ID", "physicalId")),
                    rental_status=BookStatus.AVAILABLE,
                    total_rentals=0
                ))
                if isbn:
                    seen_isbns.add(isbn)
                results["imported"] += 1

            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error(f"Book import failed on a duplicate key: {e}")
            raise ConflictError("Import contains a duplicate ISBN or physical ID")
        except Exception as e:
            await db.rollback()
            logger.error(f"Book import failed: {e}")
            raise InternalError("Failed to import books")

        logger.info(f"Imported {results['imported']} books, skipped {results['skipped']}")
        return results

    @staticmethod
    async def get_book_by_id(
        db: AsyncSession,
        book_id: UUID
    ) -> Book:
        """Get a book by its ID."""
        result = await db.execute(
            select(Book).where(Book.id == book_id).execution_options(populate_existing=True)
        )
        book = result.scalars().first()
        if not book:
            raise NotFoundError("Book not found")
        return book

    @staticmethod
    def _search_conditions(
        search: Optional[str] = None,
        genre: Optional[str] = None,
        available: Optional[bool] = None
    ) -> list:
        conditions = []
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            conditions.append(or_(
                Book.title.ilike(pattern),
                Book.author.ilike(pattern),
                Book.isbn.ilike(pattern)
            ))
        if genre and genre.strip() and genre.strip().lower() != "all":
            # genre is a JSON list; match the quoted element in its text form
            conditions.append(func.lower(cast(Book.genre, String)).like(f'%"{genre.strip().lower()}"%'))
        if available:
            conditions.append(Book.rental_status == BookStatus.AVAILABLE)
        return conditions

    @staticmethod
    async def search_books(
        db: AsyncSession,
        search: Optional[str] = None,
        genre: Optional[str] = None,
        available: Optional[bool] = None,
        page: int = 1,
        limit: int = 20
    ) -> dict:
        """Search the catalog with pagination, ordered by title."""
        page = max(1, page)
        conditions = BookService._search_conditions(search, genre, available)

        query = select(Book).where(*conditions).order_by(Book.title, Book.id)
        query = query.offset((page - 1) * limit).limit(limit)
        result = await db.execute(query)
        books = list(result.scalars().all())

        count_result = await db.execute(select(func.count(Book.id)).where(*conditions))
        total = count_result.scalar() or 0
        total_pages = math.ceil(total / limit) if limit else 0

        return {
            "books": books,
            "pagination": {
                "current_page": page,
                "total_pages": total_pages,
                "total_books": total,
                "books_per_page": limit,
                "has_next_page": page < total_pages,
                "has_prev_page": page > 1
            }
        }

    @staticmethod
    async def get_genres(db: AsyncSession) -> List[str]:
        """Distinct genres across the catalog, sorted."""
        result = await db.execute(select(Book.genre))
        genres = set()
        for genre_list in result.scalars().all():
            for genre in genre_list or []:
                if genre:
                    genres.add(genre)
        return sorted(genres, key=str.lower)

    @staticmethod
    async def update_book(
        db: AsyncSession,
        book_id: UUID,
        book_data: BookUpdate
    ) -> Book:
        """Update descriptive fields of a book."""
        book = await BookService.get_book_by_id(db, book_id)

        # Update only provided fields
        update_data = book_data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(book, field, value)

        try:
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Update book error: {e}")
            raise InternalError("Failed to update book")
        await db.refresh(book)
        logger.info(f"Updated book: {book.title}")
        return book
