# run_server.py
import json
import time
import logging
import threading

from flask import Flask, g, request
from flask_cors import CORS

import config
import audit_log
import storage_manager as sm
import selenium_handler as sh
from api_routes import api  # Import the Blueprint from our routes file
from errors import GatewayError
from message_dispatcher import MessageDispatcher
from session_controller import SessionController


def _request_body():
    """Best-effort text of the request body for the audit log."""
    try:
        if request.files or request.form:
            fields = request.form.to_dict()
            fields.update({name: f"<file {f.filename}>" for name, f in request.files.items()})
            return json.dumps(fields)
        body = request.get_data(cache=True, as_text=True)
        return body or None
    except Exception:
        return "<unreadable>"


def register_request_logging(app):
    """Writes one audit record per request once the response is ready."""

    @app.before_request
    def start_timer():
        g.request_started = time.time()

    @app.after_request
    def log_request(response):
        duration_ms = int((time.time() - g.get('request_started', time.time())) * 1000)
        audit_log.append_log(audit_log.format_request_entry(
            ip=request.remote_addr,
            method=request.method,
            path=request.full_path.rstrip('?'),
            status=response.status_code,
            duration_ms=duration_ms,
            headers=dict(request.headers),
            body=_request_body(),
        ))
        return response


def create_app(engine_factory=None):
    """
    Builds the Flask app around a fresh SessionController.
    Tests pass their own engine_factory; the server uses the Selenium client.
    """
    app = Flask(__name__, static_folder='static', static_url_path='')
    CORS(app)

    controller = SessionController(engine_factory or sh.create_client)
    app.config['SESSION_CONTROLLER'] = controller
    app.config['MESSAGE_DISPATCHER'] = MessageDispatcher(controller)

    app.register_blueprint(api)
    register_request_logging(app)

    @app.route('/')
    def index():
        return app.send_static_file('index.html')

    return app


def start_default_session(controller):
    """Starts the default session in the background so the server can answer while Chrome boots."""
    def worker():
        try:
            controller.initialize(config.DEFAULT_SESSION_ID)
        except GatewayError as e:
            print(f"❌ Init default client failed: {e}")

    thread = threading.Thread(target=worker, name="default-session-init", daemon=True)
    thread.start()
    return thread


if __name__ == '__main__':
    # Chrome may have died holding its profile locks last time.
    sm.cleanup_session_locks()

    app = create_app()
    start_default_session(app.config['SESSION_CONTROLLER'])

    log = logging.getLogger('werkzeug')
    log.setLevel(logging.ERROR)

    print(f"🚀 Server listening on http://{config.HOST}:{config.PORT}")
    audit_log.append_log(f"SERVER_START port={config.PORT}")
    app.run(host=config.HOST, port=config.PORT, threaded=True)
