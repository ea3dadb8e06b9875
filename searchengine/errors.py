class SearchEngineError(Exception):
    """Failure reported to callers as a failed result with ``message``."""

    message = "Внутренняя ошибка поискового движка"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class AlreadyRunningError(SearchEngineError):
    message = "Индексация уже запущена"


class NotRunningError(SearchEngineError):
    message = "Индексация не запущена"


class OutOfScopeError(SearchEngineError):
    message = (
        "Данная страница находится за пределами сайтов, "
        "указанных в конфигурационном файле"
    )


class EmptyQueryError(SearchEngineError):
    message = "Задан пустой поисковый запрос"


class SiteNotFoundError(SearchEngineError):
    message = "Указанный сайт не проиндексирован"


class NetworkError(SearchEngineError):
    """I/O failure while fetching a page."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"{type(cause).__name__} {cause}".strip())


def describe_error(exc: BaseException) -> str:
    """``<ErrorKind> <message>`` as stored in ``Site.last_error``."""
    if isinstance(exc, NetworkError):
        return exc.message
    return f"{type(exc).__name__} {exc}".strip()
