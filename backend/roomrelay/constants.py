"""Константы протокола и комнат."""
import string

# Места в комнате: индекс — порядок входа
SEATS: list[str] = ["white", "black"]
ROOM_CAPACITY = len(SEATS)

ROOM_ID_ALPHABET = string.ascii_letters + string.digits + "_-"

# client -> server
CREATE_ROOM = "createRoom"
JOIN_ROOM = "joinRoom"
SUBMIT_MOVE = "submitMove"
RESET_ROOM = "resetRoom"

# server -> client
ROOM_CREATED = "roomCreated"
ROOM_JOINED = "roomJoined"
PEER_JOINED = "peerJoined"
MOVE_APPLIED = "moveApplied"
ROOM_RESET = "roomReset"
ROOM_EXPIRED = "roomExpired"
ROOM_ERROR = "roomError"
PEER_DISCONNECTED = "peerDisconnected"
