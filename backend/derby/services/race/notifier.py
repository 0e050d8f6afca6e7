class SocketIONotifier:
    """Delivers engine events to connected clients.

    ``to`` targets one connection; without it the event goes to everyone in
    the namespace, optionally skipping one sid.
    """

    def __init__(self, socketio, namespace: str = '/'):
        self._socketio = socketio
        self._namespace = namespace

    def send(self, event: str, payload=None, to=None, skip=None) -> None:
        args = () if payload is None else (payload,)
        self._socketio.emit(event, *args, to=to, skip_sid=skip, namespace=self._namespace)
