# selenium_handler.py
"""
WhatsApp Web client driven through Selenium/Chrome.

Each client owns one Chrome instance whose profile lives in the session folder,
so a scanned QR survives restarts. A background watcher thread reads the page
and reports what it sees through the 'qr', 'ready', 'auth_failure' and
'disconnected' events.
"""
import os
import sys
import json
import time
import random
import shutil
import tempfile
import threading

import config
from media import MessageMedia, SentMessage

from selenium import webdriver
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.chrome.options import Options
from selenium.common.exceptions import TimeoutException, StaleElementReferenceException, WebDriverException
from selenium.webdriver.support.ui import WebDriverWait
from selenium.webdriver.support import expected_conditions as EC
from webdriver_manager.chrome import ChromeDriverManager

SELECTORS_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "selectors.json")


def load_selectors(filename=SELECTORS_FILE):
    """Loads selectors from a JSON file."""
    try:
        with open(filename, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        print(f"❌ FATAL ERROR: Selector file '{filename}' not found. Please create it next to the script.")
        sys.exit(1)
    except json.JSONDecodeError:
        print(f"❌ FATAL ERROR: Could not decode JSON from '{filename}'. Please check its format.")
        sys.exit(1)

SELECTORS = load_selectors()


def _locator(key):
    selector_value = SELECTORS[key]
    by = By.XPATH if selector_value.startswith(('//', './', '(')) else By.CSS_SELECTOR
    return by, selector_value


def get_element(driver, key, timeout=10, find_all=False, wait_condition=EC.presence_of_element_located, suppress_error=False, context_message=None):
    """Safely finds elements, reporting detailed, contextual errors on failure."""
    try:
        locator = _locator(key)
        wait = WebDriverWait(driver, timeout)
        if find_all:
            wait_condition = EC.presence_of_all_elements_located if wait_condition == EC.presence_of_element_located else wait_condition
        return wait.until(wait_condition(locator))
    except TimeoutException:
        if not suppress_error:
            print(f"\n- - - - - [ DIAGNOSTIC INFO ] - - - - -")
            if context_message: print(f"❗ GOAL: {context_message}")
            else: print("❗ GOAL: A required element could not be found.")
            print(f"   - FAILED SELECTOR KEY: '{key}'")
            print(f"   - SELECTOR PATH USED: '{SELECTORS.get(key, 'N/A')}'")
            print(f"- - - - - - - - - - - - - - - - - - - - -")
        return [] if find_all else None
    except StaleElementReferenceException:
        if not suppress_error: print(f"⚠️ Warning: Element for selector key '{key}' became stale.")
        return [] if find_all else None


def find_now(driver, key):
    """Returns the first element matching `key` right now, without waiting."""
    elements = driver.find_elements(*_locator(key))
    return elements[0] if elements else None


def build_driver(data_path):
    """Starts Chrome on the given profile folder. Raises WebDriverException if Chrome cannot start."""
    options = Options()
    if config.HEADLESS:
        options.add_argument("--headless=new")
    options.add_argument(f"--user-data-dir={os.path.abspath(data_path)}")
    options.add_argument("--profile-directory=Default")
    options.add_argument("--window-size=1280,900")
    for arg in config.CHROME_ARGS:
        options.add_argument(arg)

    try:
        print("🌐 Checking for latest ChromeDriver...")
        service = Service(ChromeDriverManager().install())
    except Exception as e:
        # Selenium Manager can still resolve a cached driver when offline.
        print(f"⚠️ Could not connect to download ChromeDriver: {e}")
        service = Service()

    return webdriver.Chrome(service=service, options=options)


class WhatsAppWebClient:

    # --- Humanization Settings ---
    MIN_WORD_DELAY = 0.05
    MAX_WORD_DELAY = 0.2

    def __init__(self, session_id, data_path):
        self.session_id = session_id
        self.data_path = data_path
        self.driver = None
        self._listeners = {}
        self._stop = threading.Event()
        self._watcher = None
        # Only one thread may touch the browser at a time.
        self._browser_lock = threading.Lock()
        self._last_qr = None
        self._ready = False
        self._scanned = False

    # --- Events ---

    def on(self, event, callback):
        self._listeners.setdefault(event, []).append(callback)

    def emit(self, event, *args):
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(*args)
            except Exception as e:
                print(f"⚠️ Listener for '{event}' failed: {e}")

    # --- Lifecycle ---

    def initialize(self):
        """Opens WhatsApp Web and waits until it shows either a QR code or the chat list."""
        self._stop.clear()
        self.driver = build_driver(self.data_path)
        try:
            print("📱 Navigating to WhatsApp Web...")
            self.driver.get(config.WHATSAPP_WEB_URL)
            WebDriverWait(self.driver, config.LOGIN_TIMEOUT_SECONDS).until(
                lambda d: find_now(d, "qr_code") is not None or find_now(d, "login_check") is not None
            )
        except WebDriverException as e:
            if "net::ERR_NAME_NOT_RESOLVED" in (e.msg or "") or "net::ERR_INTERNET_DISCONNECTED" in (e.msg or ""):
                print("\n❌ Network Error: Could not connect to WhatsApp. Please check your internet connection.")
            else:
                print(f"\n❌ A WebDriver error occurred during startup: {e}")
            self._quit_driver()
            raise

        self._check_page()
        self._watcher = threading.Thread(target=self._watch, name=f"whatsapp-watcher-{self.session_id}", daemon=True)
        self._watcher.start()

    def destroy(self):
        self._stop.set()
        with self._browser_lock:
            self._quit_driver()
        if self._watcher and self._watcher is not threading.current_thread():
            self._watcher.join(timeout=config.ENGINE_POLL_INTERVAL_SECONDS * 5)
        self._watcher = None

    def _quit_driver(self):
        if self.driver:
            try:
                self.driver.quit()
            finally:
                self.driver = None

    # --- Page watcher ---

    def _watch(self):
        while not self._stop.wait(config.ENGINE_POLL_INTERVAL_SECONDS):
            try:
                if not self._check_page():
                    break
            except WebDriverException as e:
                if self._stop.is_set():
                    break
                self._ready = False
                self.emit("disconnected", f"BROWSER_ERROR {e.msg or e}")
                break

    def _check_page(self):
        """Reads the page once and fires events. Returns False once the session is over."""
        with self._browser_lock:
            if self.driver is None:
                return False
            logged_in = find_now(self.driver, "login_check") is not None
            qr_value = None
            if not logged_in:
                qr_element = find_now(self.driver, "qr_code")
                qr_value = qr_element.get_attribute("data-ref") if qr_element else None

        if logged_in:
            self._scanned = False
            if not self._ready:
                self._ready = True
                self._last_qr = None
                self.emit("ready")
            return True

        if qr_value:
            if self._ready:
                # WhatsApp went back to the pairing screen: the phone logged us out.
                self._ready = False
                self.emit("disconnected", "LOGOUT")
                return False
            if self._scanned:
                self._scanned = False
                self.emit("auth_failure", "QR was scanned but the phone did not finish linking")
            if qr_value != self._last_qr:
                self._last_qr = qr_value
                self.emit("qr", qr_value)
        elif self._last_qr and not self._ready:
            # The QR disappeared without the chat list: the phone is linking.
            self._scanned = True
        return True

    # --- Sending ---

    def send_message(self, chat_id, content, caption=None):
        """
        Opens the chat for `chat_id` and sends `content` (text or MessageMedia).
        Returns a SentMessage carrying WhatsApp's id for the new bubble.
        """
        phone = chat_id.split("@")[0]
        with self._browser_lock:
            if self.driver is None:
                raise RuntimeError("WhatsApp client is not running")

            self.driver.get(f"{config.WHATSAPP_WEB_URL}/send?phone={phone}")
            if not get_element(self.driver, "reply_message_box", timeout=config.SEND_TIMEOUT_SECONDS, context_message="Wait for the chat to open."):
                if find_now(self.driver, "invalid_number_popup") is not None:
                    raise RuntimeError(f"The number '{phone}' is not on WhatsApp.")
                raise RuntimeError(f"Could not open a chat with '{phone}'.")

            before = self._last_outgoing_id()
            if isinstance(content, MessageMedia):
                self._send_media(content, caption)
            else:
                self._send_text(content)
            message_id = self._wait_for_new_outgoing(before)

        return SentMessage(message_id, chat_id)

    def _send_text(self, text):
        """Types the message word-by-word; line breaks use Shift+Enter so they don't send early."""
        message_box = get_element(self.driver, "reply_message_box")
        if not message_box:
            raise RuntimeError("Could not find message box to send reply.")
        message_box.click()
        time.sleep(0.3)

        lines = text.split("\n")
        for line_number, line in enumerate(lines):
            words = line.split(" ")
            for i, word in enumerate(words):
                message_box.send_keys(word)
                if i < len(words) - 1:
                    message_box.send_keys(" ")
                    time.sleep(random.uniform(self.MIN_WORD_DELAY, self.MAX_WORD_DELAY))
            if line_number < len(lines) - 1:
                message_box.send_keys(Keys.SHIFT, Keys.ENTER)

        message_box.send_keys(Keys.ENTER)

    def _send_media(self, media, caption=None):
        """
        Attaches the file through the hidden <input type=file>, which bypasses
        the OS file dialog, then adds the caption and sends.
        """
        temp_dir = tempfile.mkdtemp(prefix="wa-upload-")
        file_path = os.path.join(temp_dir, os.path.basename(media.filename or "attachment"))
        try:
            with open(file_path, "wb") as f:
                f.write(media.to_bytes())

            attach_btn = get_element(self.driver, "attach_button", timeout=10)
            if not attach_btn:
                raise RuntimeError("Could not find the 'Attach' button.")
            attach_btn.click()
            time.sleep(1)

            file_input = get_element(self.driver, "attach_document_option", timeout=5)
            if not file_input:
                raise RuntimeError("Could not find the file input element for documents.")
            print(f"   📎 Attaching file: {media.filename} ({media.mimetype})")
            file_input.send_keys(file_path)

            caption_box = get_element(self.driver, "caption_input", timeout=15, context_message="Wait for file preview screen to load.")
            if not caption_box:
                raise RuntimeError("Timed out waiting for file preview screen.")
            if caption:
                caption_box.click()
                caption_box.send_keys(caption)

            send_btn = get_element(self.driver, "send_file_button", timeout=10, wait_condition=EC.element_to_be_clickable)
            if not send_btn:
                raise RuntimeError("Could not find the final 'Send' button.")
            send_btn.click()
            # The upload must finish before the temp file goes away.
            time.sleep(3)
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    def _last_outgoing_id(self):
        bubbles = self.driver.find_elements(*_locator("outgoing_messages"))
        return bubbles[-1].get_attribute("data-id") if bubbles else None

    def _wait_for_new_outgoing(self, previous_id, timeout=config.SEND_TIMEOUT_SECONDS):
        start_time = time.time()
        while time.time() - start_time < timeout:
            try:
                current_id = self._last_outgoing_id()
            except StaleElementReferenceException:
                current_id = None
            if current_id and current_id != previous_id:
                return current_id
            time.sleep(0.5)
        raise TimeoutException("The sent message never appeared in the chat.")


def create_client(session_id, data_path):
    """Engine factory handed to the SessionController."""
    return WhatsAppWebClient(session_id, data_path)
