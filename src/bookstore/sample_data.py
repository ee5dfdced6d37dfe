from __future__ import annotations

from bookstore.mongo_api import Book, BookstoreClient, WriteSummary

REFACTORING = Book(
    title="Refactoring",
    author="Martin Fowler",
    genre="Programming",
    published_year=1999,
    price=31.5,
    in_stock=True,
    pages=448,
    publisher="Addison-Wesley",
)

SAMPLE_BOOKS: tuple[Book, ...] = (
    Book("To Kill a Mockingbird", "Harper Lee", "Fiction", 1960, 12.99, True, 336, "J. B. Lippincott & Co."),
    Book("1984", "George Orwell", "Dystopian", 1949, 10.99, True, 328, "Secker & Warburg"),
    Book("Animal Farm", "George Orwell", "Political Satire", 1945, 8.5, False, 112, "Secker & Warburg"),
    Book("The Great Gatsby", "F. Scott Fitzgerald", "Fiction", 1925, 9.99, True, 180, "Charles Scribner's Sons"),
    Book("Dune", "Frank Herbert", "Science Fiction", 1965, 15.99, True, 688, "Chilton Books"),
    Book("The Martian", "Andy Weir", "Science Fiction", 2011, 14.99, True, 384, "Crown Publishing"),
    Book("Project Hail Mary", "Andy Weir", "Science Fiction", 2021, 19.99, True, 496, "Ballantine Books"),
    Book("Artemis", "Andy Weir", "Science Fiction", 2017, 13.5, False, 320, "Crown Publishing"),
    Book("Atomic Habits", "James Clear", "Self-Help", 2018, 16.99, True, 320, "Avery"),
    Book("Deep Work", "Cal Newport", "Self-Help", 2016, 14.5, True, 304, "Grand Central Publishing"),
    Book("The Hobbit", "J.R.R. Tolkien", "Fantasy", 1937, 14.99, True, 310, "George Allen & Unwin"),
    Book("Brave New World", "Aldous Huxley", "Dystopian", 1932, 11.5, False, 311, "Chatto & Windus"),
    Book("Klara and the Sun", "Kazuo Ishiguro", "Fiction", 2021, 18.0, True, 303, "Faber & Faber"),
    Book("The Pragmatic Programmer", "Andrew Hunt", "Programming", 1999, 39.99, False, 352, "Addison-Wesley"),
)


def seed_books(client: BookstoreClient, *, drop: bool = False) -> WriteSummary:
    if drop:
        client.drop_books()
    return client.insert_books(SAMPLE_BOOKS)
