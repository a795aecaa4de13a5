"""
Ошибки комнат и ходов.
Все они уходят только запросившему клиенту как roomError и не меняют состояние.
"""


class RelayError(Exception):
    message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class RoomNotFound(RelayError):
    message = "Game not found"


class RoomFull(RelayError):
    message = "Game is full"


class IllegalMove(RelayError):
    message = "Invalid move"


class StalePosition(RelayError):
    message = "Position is out of date"


class TransportUnavailable(RelayError):
    message = "Connection unavailable"
