"""Base exception for the qexpr package."""


class QueryError(Exception):
    """Raised when a query or query expression cannot be built or used."""
    pass


class QueryValueError(QueryError):
    """Raised when a bound value does not fit the field it is compared to."""
    pass
