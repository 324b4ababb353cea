"""Exceptions raised by the notification core.

None of these are fatal to the process: the worst outcome of any of them is
that one court's pass is retried on the next scheduler tick.
"""


class NotifierError(Exception):
    """Base exception for all court notifier errors."""

    pass


class FetchError(NotifierError):
    """Raised when a court's session listing cannot be retrieved."""

    def __init__(self, message: str, court: str | None = None) -> None:
        """Initialize the exception with context information.

        Args:
            message: The error message
            court: Name of the court whose listing failed
        """
        self.court = court
        self.message = f"{message}" + (f" Court: {court}" if court else "")
        super().__init__(self.message)


class DeliveryError(NotifierError):
    """Raised by a sender when one message could not be delivered."""

    def __init__(self, message: str, chat_id: int | None = None) -> None:
        self.chat_id = chat_id
        self.message = f"{message}" + (f" Chat: {chat_id}" if chat_id is not None else "")
        super().__init__(self.message)


class FilterError(NotifierError):
    """Raised when a subscription filter string is malformed."""

    def __init__(self, message: str, filter_value: object = None) -> None:
        self.filter_value = filter_value
        super().__init__(f"{message}: {filter_value!r}")


class ConsistencyError(NotifierError):
    """Raised when the atomic per-court commit fails."""

    def __init__(self, message: str, court: str | None = None) -> None:
        self.court = court
        self.message = f"{message}" + (f" Court: {court}" if court else "")
        super().__init__(self.message)


class InvalidCourtName(NotifierError):
    """Raised for court names the source cannot know."""

    def __init__(self, court: str) -> None:
        self.court = court
        super().__init__(f"Invalid court name: {court!r}")
