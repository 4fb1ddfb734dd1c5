# session_controller.py
"""
Drives the lifecycle of the single WhatsApp client: (re)initialize, disconnect,
delete the stored sessions. The ClientHandle it owns is the only place the live
client is kept, and a new client is never created before the old one is gone.

Overlapping initialize() calls are not queued: the last one to register its
client wins and the loser destroys the client it built.
"""
import storage_manager as sm
import config
from audit_log import append_log
from bot_state import ClientHandle, SessionState
from errors import EngineDestroyFailure, EngineInitFailure, FilesystemError, GatewayError, InvalidArgument


class SessionController:

    def __init__(self, engine_factory, handle=None):
        """
        engine_factory(session_id, data_path) must return a client exposing
        on(event, callback), initialize(), destroy() and send_message().
        """
        self._engine_factory = engine_factory
        self.handle = handle or ClientHandle()

    # --- Queries ---

    def current_session(self):
        with self.handle.lock:
            return self.handle.session_id

    def get_qr(self):
        with self.handle.lock:
            return self.handle.qr

    def is_ready(self):
        with self.handle.lock:
            return self.handle.ready

    def has_client(self):
        with self.handle.lock:
            return self.handle.client is not None

    def get_client(self):
        with self.handle.lock:
            return self.handle.client, self.handle.session_id

    @property
    def generation(self):
        with self.handle.lock:
            return self.handle.generation

    def status(self):
        with self.handle.lock:
            return {"ready": self.handle.ready, "session": self.handle.session_id, "state": self.handle.state}

    # --- Lifecycle ---

    def initialize(self, session_id=config.DEFAULT_SESSION_ID):
        """
        Replaces whatever client is live with a fresh one bound to `session_id`.
        Raises EngineInitFailure (or FilesystemError / InvalidArgument) if the
        new client cannot start; the state is then DISCONNECTED.
        """
        with self.handle.lock:
            previous = self.handle.client
            self.handle.client = None
            self.handle.generation += 1
            generation = self.handle.generation
            self.handle.qr = None
            self.handle.ready = False
            self.handle.session_id = session_id
            self.handle.state = SessionState.INITIALIZING

        if previous is not None:
            self._destroy_quietly(previous, session_id)

        engine = None
        try:
            data_path = sm.ensure_session_dir(session_id)
            sm.remove_stale_locks_in_dir(data_path)

            engine = self._engine_factory(session_id, data_path)
            self._wire_events(engine, generation, session_id)

            with self.handle.lock:
                superseded = self.handle.generation != generation
                if not superseded:
                    self.handle.client = engine
            if superseded:
                print(f"⚠️ Initialization of '{session_id}' was overtaken by a newer request.")
                self._destroy_quietly(engine, session_id)
                return False

            print(f"📱 Starting WhatsApp client for session '{session_id}'...")
            engine.initialize()
        except (FilesystemError, InvalidArgument) as e:
            append_log(f"INIT_CLIENT_ERROR session={session_id} err={e}")
            with self.handle.lock:
                if self.handle.generation == generation:
                    self.handle.state = SessionState.DISCONNECTED
            raise
        except Exception as e:
            append_log(f"INIT_CLIENT_ERROR session={session_id} err={e}")
            self._drop_failed_client(engine, generation, session_id)
            raise EngineInitFailure(str(e)) from e

        append_log(f"INIT_CLIENT session={session_id}")
        return True

    def disconnect(self):
        """Destroys the live client, if any. Always succeeds."""
        with self.handle.lock:
            client = self.handle.client
            self.handle.client = None
            self.handle.ready = False
            session_id = self.handle.session_id
            if client is not None:
                self.handle.generation += 1
                self.handle.state = SessionState.DESTROYED

        if client is not None:
            self._destroy_quietly(client, session_id)
            append_log(f"CLIENT_DISCONNECTED session={session_id}")
            print(f"🔌 Session '{session_id}' disconnected.")
        return True

    def delete_session(self):
        """
        Wipes every stored session from disk and starts over with the default one.
        Only a failure to delete the folder is reported; a failed restart is just logged.
        """
        with self.handle.lock:
            client = self.handle.client
            self.handle.client = None
            self.handle.ready = False
            self.handle.qr = None
            self.handle.generation += 1
            self.handle.state = SessionState.DESTROYED
            session_id = self.handle.session_id

        if client is not None:
            self._destroy_quietly(client, session_id)

        if sm.delete_sessions_root():
            append_log("SESSIONS_ROOT_DELETED")

        try:
            self.initialize(config.DEFAULT_SESSION_ID)
        except GatewayError as e:
            append_log(f"REINIT_AFTER_DELETE_ERROR session={config.DEFAULT_SESSION_ID} err={e}")
            print(f"⚠️ Could not restart the default session after delete: {e}")
        return True

    def run_janitor(self, session_id=None):
        if session_id:
            removed = sm.remove_stale_locks_in_dir(sm.session_path(session_id))
            append_log(f"ADMIN_CLEAN session={session_id}")
        else:
            removed = sm.cleanup_session_locks()
            append_log("ADMIN_CLEAN all sessions")
        return removed

    # --- Engine events ---

    def _wire_events(self, engine, generation, session_id):
        engine.on("qr", lambda qr: self._on_qr(generation, session_id, qr))
        engine.on("ready", lambda *args: self._on_ready(generation, session_id))
        engine.on("auth_failure", lambda msg=None: self._on_auth_failure(generation, session_id, msg))
        engine.on("disconnected", lambda reason=None: self._on_disconnected(generation, session_id, reason))

    def _on_qr(self, generation, session_id, qr):
        with self.handle.lock:
            if generation != self.handle.generation:
                return
            self.handle.qr = qr
            self.handle.state = SessionState.AWAITING_SCAN
        append_log(f"QR_GENERATED session={session_id}")

    def _on_ready(self, generation, session_id):
        with self.handle.lock:
            if generation != self.handle.generation:
                return
            self.handle.ready = True
            self.handle.qr = None
            self.handle.state = SessionState.READY
        append_log(f"READY session={session_id}")
        print(f"✅ WhatsApp session '{session_id}' is ready.")

    def _on_auth_failure(self, generation, session_id, msg):
        with self.handle.lock:
            if generation != self.handle.generation:
                return
            self.handle.ready = False
            self.handle.state = SessionState.AUTH_FAILED
        append_log(f"AUTH_FAILURE session={session_id} msg={msg}")
        print(f"❌ Authentication failed for session '{session_id}': {msg}")

    def _on_disconnected(self, generation, session_id, reason):
        with self.handle.lock:
            if generation != self.handle.generation:
                return
            self.handle.ready = False
            self.handle.state = SessionState.DISCONNECTED
        append_log(f"DISCONNECTED session={session_id} reason={reason}")
        print(f"🔌 Session '{session_id}' was disconnected: {reason}")

    # --- Best-effort cleanup ---

    def _destroy_quietly(self, client, session_id):
        """Destroys a client and logs any failure instead of raising it."""
        try:
            client.destroy()
            return True
        except Exception as e:
            failure = EngineDestroyFailure(str(e))
            append_log(f"DESTROY_ERROR session={session_id} err={failure}")
            print(f"⚠️ Error destroying client: {failure}")
            return False

    def _drop_failed_client(self, engine, generation, session_id):
        with self.handle.lock:
            current = self.handle.generation == generation
            if current:
                self.handle.client = None
                self.handle.state = SessionState.DISCONNECTED
        if current and engine is not None:
            self._destroy_quietly(engine, session_id)
