# config.py
import os

# ==============================================================================
# --- PATHS ---
# ==============================================================================

# Everything the gateway writes lives next to this file unless overridden.
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# One sub-folder per session holds the browser profile (authentication state).
SESSIONS_ROOT = os.getenv("GATEWAY_SESSIONS_DIR", os.path.join(BASE_DIR, "sessions"))

# The audit log read back by GET /logs.
LOG_DIR = os.getenv("GATEWAY_LOG_DIR", os.path.join(BASE_DIR, "logs"))
LOG_FILE = os.path.join(LOG_DIR, "requests.log")


# ==============================================================================
# --- SESSION SETTINGS ---
# ==============================================================================

# The session used at startup and after the sessions folder is wiped.
DEFAULT_SESSION_ID = "default"

# Suffix WhatsApp uses for individual chat addresses (e.g. 15550001111@c.us).
ADDRESS_DOMAIN = "c.us"


# ==============================================================================
# --- SERVER SETTINGS ---
# ==============================================================================

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))

# Default number of lines returned by GET /logs.
LOG_TAIL_DEFAULT_LINES = 200


# ==============================================================================
# --- BROWSER SETTINGS ---
# ==============================================================================

WHATSAPP_WEB_URL = "https://web.whatsapp.com"

# Set GATEWAY_HEADLESS=0 to watch the browser while debugging.
HEADLESS = os.getenv("GATEWAY_HEADLESS", "1") != "0"

# Flags needed to run Chrome inside containers and small VMs.
CHROME_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-gpu",
    "--no-zygote",
]


# ==============================================================================
# --- TIMINGS (in seconds) ---
# ==============================================================================

# How often the engine watcher checks the page for a new QR / login state.
ENGINE_POLL_INTERVAL_SECONDS = 1

# How long to wait for the page to show either the QR or the chat list.
LOGIN_TIMEOUT_SECONDS = 60

# How long to wait for a chat to open before a send is considered failed.
SEND_TIMEOUT_SECONDS = 20

# Clients poll GET /qr at this interval and give up after the timeout.
QR_POLL_INTERVAL_SECONDS = 5
QR_POLL_TIMEOUT_SECONDS = 30
