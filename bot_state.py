# bot_state.py
import threading

import config


class SessionState:
    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZING = "INITIALIZING"
    AWAITING_SCAN = "AWAITING_SCAN"   # a QR is waiting to be scanned
    READY = "READY"
    DISCONNECTED = "DISCONNECTED"
    AUTH_FAILED = "AUTH_FAILED"
    DESTROYED = "DESTROYED"


class ClientHandle:
    """
    The one live engine client and everything derived from it.

    Engine callbacks arrive on the engine's own thread while HTTP requests run
    on Flask's threads, so every field is read and written under `lock`.
    `generation` is bumped each time a new client is created; callbacks carry
    the generation they were registered with and are dropped once it is stale.
    """

    def __init__(self, session_id=config.DEFAULT_SESSION_ID):
        self.lock = threading.Lock()
        self.client = None
        self.qr = None
        self.ready = False
        self.session_id = session_id
        self.state = SessionState.UNINITIALIZED
        self.generation = 0

