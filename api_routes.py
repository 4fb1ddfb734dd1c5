# api_routes.py
import io
import base64

import qrcode
from flask import Blueprint, request, jsonify, current_app, Response

import config
import audit_log
import storage_manager as sm
from errors import InvalidArgument

api = Blueprint('api', __name__)


def get_controller():
    return current_app.config['SESSION_CONTROLLER']


def get_dispatcher():
    return current_app.config['MESSAGE_DISPATCHER']


def qr_to_data_url(value):
    """Renders the raw QR payload as a PNG data URL the browser can show directly."""
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=8, border=4)
    qr.add_data(value)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


@api.route('/qr', methods=['GET'])
def get_qr():
    controller = get_controller()
    qr_value = controller.get_qr()
    session_id = controller.current_session()
    if not qr_value:
        return jsonify({"error": "QR not available", "session": session_id}), 404
    try:
        return jsonify({"qr": qr_to_data_url(qr_value), "session": session_id})
    except Exception as e:
        print(f"❌ Could not render QR: {e}")
        return jsonify({"error": "Error generating QR"}), 500


@api.route('/status', methods=['GET'])
def get_status():
    return jsonify(get_controller().status())


@api.route('/session', methods=['GET'])
def get_session():
    try:
        exists = sm.sessions_folder_exists()
    except OSError as e:
        return jsonify({"error": str(e)}), 500
    return jsonify({"session": get_controller().current_session(), "sessionsFolderExists": exists})


@api.route('/connect', methods=['POST'])
def connect():
    controller = get_controller()
    try:
        controller.initialize(controller.current_session())
        return jsonify({"ok": True})
    except Exception as e:
        return jsonify({"error": str(e)}), 500


@api.route('/disconnect', methods=['POST'])
def disconnect():
    try:
        get_controller().disconnect()
        return jsonify({"ok": True})
    except Exception as e:
        return jsonify({"error": str(e)}), 500


@api.route('/session', methods=['DELETE'])
def delete_session():
    try:
        get_controller().delete_session()
        return jsonify({"ok": True})
    except Exception as e:
        return jsonify({"error": str(e)}), 500


@api.route('/send-message', methods=['POST'])
def send_message_endpoint():
    # The UI posts multipart form data; JSON bodies are accepted for scripts.
    data = request.form if request.form else (request.get_json(silent=True) or {})
    number = data.get('number')
    message = data.get('message')
    upload = request.files.get('file')

    if not number:
        return jsonify({"error": "number required"}), 400
    if not message and not upload:
        return jsonify({"error": "message or file required"}), 400

    media_bytes = mimetype = filename = None
    if upload:
        media_bytes = upload.read()
        mimetype = upload.mimetype
        filename = upload.filename

    try:
        message_id = get_dispatcher().send(number, message, media_bytes, mimetype, filename)
        return jsonify({"ok": True, "id": message_id})
    except InvalidArgument as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return jsonify({"error": str(e)}), 500


@api.route('/logs', methods=['GET'])
def get_logs():
    lines = request.args.get('lines', config.LOG_TAIL_DEFAULT_LINES, type=int)
    try:
        return Response(audit_log.tail_log(lines), mimetype='text/plain')
    except OSError as e:
        return jsonify({"error": str(e)}), 500


@api.route('/admin/cleanup', methods=['POST'])
def admin_cleanup():
    data = request.get_json(silent=True) or {}
    try:
        get_controller().run_janitor(data.get('sessionId'))
        return jsonify({"ok": True})
    except InvalidArgument as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return jsonify({"error": str(e)}), 500
