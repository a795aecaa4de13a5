"""
Правила игры через python-chess.
Позиция — строка FEN, ход — пара полей (from, to) и необязательное превращение.
"""
from dataclasses import dataclass
from typing import Iterable

import chess
from chess import Board

from .constants import SEATS
from .errors import IllegalMove


@dataclass(frozen=True)
class Move:
    from_sq: str
    to_sq: str
    promotion: str | None = None

    @property
    def uci(self) -> str:
        return self.from_sq + self.to_sq + (self.promotion or "")

    def as_dict(self) -> dict:
        """lastMove для клиента: только поля, без превращения."""
        return {"from": self.from_sq, "to": self.to_sq}


@dataclass(frozen=True)
class Outcome:
    status: str  # "ongoing" | "checkmate" | "draw"
    winner: str | None = None
    reason: str | None = None  # stalemate | threefoldRepetition | insufficientMaterial | other

    @property
    def is_over(self) -> bool:
        return self.status != "ongoing"

    def as_dict(self) -> dict:
        payload = {"status": self.status}
        if self.winner:
            payload["winner"] = self.winner
        if self.reason:
            payload["reason"] = self.reason
        return payload


ONGOING = Outcome("ongoing")


def _side(color: chess.Color) -> str:
    return SEATS[0] if color == chess.WHITE else SEATS[1]


def same_position(a: str, b: str) -> bool:
    """
    Совпадение позиций по расстановке, очереди хода и рокировкам.
    Поле en passant и счётчики разные библиотеки пишут по-разному.
    """
    return a.split()[:3] == b.split()[:3]


class ChessRules:
    def initial_position(self) -> str:
        return chess.STARTING_FEN

    def _board(self, position: str) -> Board:
        try:
            return Board(position)
        except ValueError:
            raise IllegalMove("Invalid position")

    def side_to_move(self, position: str) -> str:
        return _side(self._board(position).turn)

    def apply_move(self, position: str, move: Move) -> str:
        """Применить ход к позиции. IllegalMove если ход невозможен."""
        board = self._board(position)
        try:
            m = chess.Move.from_uci(move.uci)
        except ValueError:
            raise IllegalMove()
        if m not in board.legal_moves:
            raise IllegalMove()
        board.push(m)
        return board.fen()

    def is_terminal(self, position: str, moves: Iterable[Move] | None = None) -> Outcome:
        """
        Классифицировать позицию. С историей ходов доигрываем партию
        с начала, чтобы видеть троекратное повторение.
        """
        if moves is not None:
            board = Board()
            for move in moves:
                board.push_uci(move.uci)
        else:
            board = self._board(position)
        if board.is_checkmate():
            # Мат ставит сторона, которая не на ходу
            return Outcome("checkmate", winner=_side(not board.turn))
        if board.is_stalemate():
            return Outcome("draw", reason="stalemate")
        if board.is_insufficient_material():
            return Outcome("draw", reason="insufficientMaterial")
        # Только уже случившиеся ничьи, без "можно потребовать следующим ходом"
        if board.is_repetition(3):
            return Outcome("draw", reason="threefoldRepetition")
        if board.halfmove_clock >= 100:
            return Outcome("draw", reason="other")
        return ONGOING
