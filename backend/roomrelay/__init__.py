"""roomrelay: сервер комнат для партии вдвоём через WebSocket."""
