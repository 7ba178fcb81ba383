"""MenuSkip - removes recurring menus and loading screens from long-form video."""

__version__ = "1.0.0"
