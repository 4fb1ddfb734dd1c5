# controller.py
import os
import time

import requests

import config

API_BASE_URL = os.getenv("GATEWAY_URL", f"http://127.0.0.1:{config.PORT}")


def get_status():
    """Calls the API to get the readiness of the current session."""
    try:
        response = requests.get(f"{API_BASE_URL}/status", timeout=10)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        print(f"❌ API Error: Could not get status. Is the server running? Error: {e}")
        return None


def get_session_info():
    try:
        response = requests.get(f"{API_BASE_URL}/session", timeout=10)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        print(f"❌ API Error: Could not get session info. Error: {e}")
        return None


def get_qr():
    """Returns the QR as a data URL, or None while no QR is pending."""
    try:
        response = requests.get(f"{API_BASE_URL}/qr", timeout=10)
        if response.status_code == 200:
            return response.json().get('qr')
        elif response.status_code == 404:
            return None
        else:
            response.raise_for_status()
            return None
    except requests.exceptions.RequestException as e:
        print(f"❌ API Error: Could not get QR. Error: {e}")
        return None


def connect():
    """Asks the server to (re)start the current session."""
    try:
        response = requests.post(f"{API_BASE_URL}/connect", timeout=120)
        if response.status_code != 200:
            print(f"❌ API Error: Server responded with status {response.status_code}. Message: {response.text}")
            return False
        print("📱 Connection started.")
        return True
    except requests.exceptions.RequestException as e:
        print(f"❌ API Connection Error: Could not connect to the server. Error: {e}")
        return False


def disconnect():
    try:
        response = requests.post(f"{API_BASE_URL}/disconnect", timeout=30)
        response.raise_for_status()
        print("🔌 Disconnected.")
        return True
    except requests.exceptions.RequestException as e:
        print(f"❌ API Error: Could not disconnect. Error: {e}")
        return False


def delete_session():
    """Deletes every stored session on the server; the default session restarts afterwards."""
    try:
        response = requests.delete(f"{API_BASE_URL}/session", timeout=120)
        response.raise_for_status()
        print("🗑️ Sessions deleted.")
        return True
    except requests.exceptions.RequestException as e:
        print(f"❌ API Error: Could not delete sessions. Error: {e}")
        return False


def send_message_via_api(phone_number, text=None, file_path=None):
    """
    Calls the send endpoint for either text or a file (text becomes the caption).
    Returns the message id, or None on failure.
    """
    if not text and not file_path:
        print("❌ Error: You must provide either text or a file_path to send.")
        return None

    data = {"number": phone_number, "message": text or ""}
    try:
        if file_path:
            with open(file_path, "rb") as f:
                files = {"file": (os.path.basename(file_path), f)}
                response = requests.post(f"{API_BASE_URL}/send-message", data=data, files=files, timeout=120)
        else:
            response = requests.post(f"{API_BASE_URL}/send-message", data=data, timeout=120)

        if response.status_code != 200:
            print(f"❌ API Error: Server responded with status {response.status_code}. Message: {response.text}")
            return None

        message_id = response.json().get('id')
        print(f"\n✅ Message sent. id={message_id}")
        return message_id

    except OSError as e:
        # RequestException is an OSError as well.
        print(f"\n❌ Could not send message: {e}")
        return None


def get_logs(lines=config.LOG_TAIL_DEFAULT_LINES):
    try:
        response = requests.get(f"{API_BASE_URL}/logs", params={"lines": lines}, timeout=10)
        response.raise_for_status()
        return response.text
    except requests.exceptions.RequestException as e:
        print(f"❌ API Error: Could not read logs. Error: {e}")
        return None


def admin_cleanup(session_id=None):
    """Removes stale browser lock files for one session, or for all of them."""
    payload = {"sessionId": session_id} if session_id else {}
    try:
        response = requests.post(f"{API_BASE_URL}/admin/cleanup", json=payload, timeout=30)
        response.raise_for_status()
        return True
    except requests.exceptions.RequestException as e:
        print(f"❌ API Error: Could not clean locks. Error: {e}")
        return False


def wait_for_qr(timeout=config.QR_POLL_TIMEOUT_SECONDS, interval=config.QR_POLL_INTERVAL_SECONDS, on_tick=None):
    """
    Polls until a QR shows up, the session turns ready, or `timeout` passes.
    Returns ('qr', data_url), ('ready', None) or ('timeout', None).
    """
    deadline = time.time() + timeout
    while True:
        status = get_status()
        if status and status.get('ready'):
            return 'ready', None
        qr = get_qr()
        if qr:
            return 'qr', qr
        if on_tick:
            on_tick()
        if time.time() + interval > deadline:
            return 'timeout', None
        time.sleep(interval)
