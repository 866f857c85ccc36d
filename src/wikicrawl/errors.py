"""
Error types raised by the crawl pipeline and the path finder.

Every error carries a stable ``code`` used by the supervisor to count repeated
failures of the same kind.
"""


class WikicrawlError(Exception):
    code = "wikicrawl"


class StorageError(WikicrawlError):
    """A query failed. The query text is kept for the crash log."""
    code = "storage"

    def __init__(self, query: str, cause: BaseException):
        self.query = query
        self.cause = cause
        super().__init__(f"{type(cause).__name__}: {cause}\nquery: {query}")


class FatalResolutionError(WikicrawlError):
    """An upstream response matched none of the known formats."""
    code = "resolution_format"

    def __init__(self, token: str, source: str, body: str):
        self.token = token
        self.source = source
        self.body = body
        super().__init__(f"no match in {source} body for link {token!r}: {body[:500]}")


class BuggedPageError(WikicrawlError):
    """A page has no usable outbound links."""
    code = "bugged_page"

    def __init__(self, page, reason: str = "no links found"):
        self.page = page
        self.reason = reason
        super().__init__(f"{reason} in {page}")


class NoPathError(WikicrawlError):
    code = "no_path"

    def __init__(self, start, end):
        self.start = start
        self.end = end
        super().__init__(f"No path found from {start} to {end}")


class PageNotFoundError(WikicrawlError):
    """No stored or upstream page matches the user input."""
    code = "page_not_found"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"no page found for {name!r}")


def error_code(exc: BaseException) -> str:
    """Return the stable classification code of any exception."""
    if isinstance(exc, WikicrawlError):
        return exc.code
    return f"unexpected:{type(exc).__name__}"
