#!/usr/bin/env python3
# gateway_console.py
import os
import base64

from tqdm import tqdm

import config
import controller as api

QR_IMAGE_FILE = "whatsapp_qr.png"


def save_qr_image(data_url, filename=QR_IMAGE_FILE):
    """Writes a 'data:image/png;base64,...' QR to disk so it can be opened and scanned."""
    _, encoded = data_url.split(",", 1)
    with open(filename, "wb") as f:
        f.write(base64.b64decode(encoded))
    return os.path.abspath(filename)


def show_status():
    status = api.get_status()
    info = api.get_session_info()
    if not status or not info:
        return
    print("\n--- Session Status ---")
    print(f"  Session:          {status['session']}")
    print(f"  State:            {status.get('state', 'N/A')}")
    print(f"  Ready:            {'yes' if status['ready'] else 'no'}")
    print(f"  Sessions folder:  {'present' if info['sessionsFolderExists'] else 'missing'}")


def connect_and_wait_for_qr():
    if not api.connect():
        return
    ticks = max(1, config.QR_POLL_TIMEOUT_SECONDS // config.QR_POLL_INTERVAL_SECONDS)
    with tqdm(total=ticks, desc="⏳ Waiting for QR", unit="poll") as bar:
        outcome, qr = api.wait_for_qr(on_tick=lambda: bar.update(1))

    if outcome == 'ready':
        print("✅ Session is already linked and ready.")
    elif outcome == 'qr':
        path = save_qr_image(qr)
        print(f"📷 QR saved to '{path}'. Open it and scan it with WhatsApp on your phone.")
    else:
        print("⚠️ No QR yet. The browser may still be starting; try option 2 again in a moment.")


def send_message_prompt():
    print("\nThis tool can send a text message, or a file with an optional caption.")
    number = input("Enter the full phone number WITH country code (e.g., +880123...): ").strip()
    if not number:
        print("❌ ERROR: A phone number is required.")
        return

    file_path = input("Enter the FULL path to the file (or press Enter to skip): ").strip()
    if file_path:
        if not os.path.exists(file_path):
            print(f"❌ FILE NOT FOUND at '{file_path}'. Aborting.")
            return
        text = input("Enter an optional caption for the file (or press Enter to skip): ").strip()
    else:
        text = input("Enter the message text to send: ").strip()
        if not text:
            print("❌ ERROR: You must provide a message if not sending a file.")
            return

    api.send_message_via_api(number, text=text, file_path=file_path or None)


def delete_sessions_prompt():
    answer = input("This deletes every stored session and restarts the default one. Continue? (y/N): ").strip().lower()
    if answer == 'y':
        api.delete_session()


def show_logs():
    raw = input("How many lines? (default 50): ").strip()
    lines = int(raw) if raw.isdigit() else 50
    content = api.get_logs(lines)
    if content is not None:
        print("\n--- Audit Log ---\n" + (content or "(empty)"))


def clean_locks_prompt():
    session_id = input("Session to clean (press Enter for all sessions): ").strip()
    if api.admin_cleanup(session_id or None):
        print(f"🧹 Lock files cleaned for {session_id or 'all sessions'}.")


def main():
    print(f"Using gateway at {api.API_BASE_URL}")
    actions = {
        '1': show_status,
        '2': connect_and_wait_for_qr,
        '3': api.disconnect,
        '4': send_message_prompt,
        '5': delete_sessions_prompt,
        '6': show_logs,
        '7': clean_locks_prompt,
    }
    while True:
        print("\n" + "="*40 + "\n       WhatsApp Gateway Menu\n" + "="*40)
        print("1. Show Session Status")
        print("2. Connect & Get QR")
        print("3. Disconnect")
        print("4. Send Message / File")
        print("5. Delete All Sessions")
        print("6. Show Audit Log")
        print("7. Clean Browser Lock Files")
        print("8. Exit")
        choice = input("Enter your choice (1-8): ").strip()

        if choice == '8':
            print("👋 Exiting program."); break
        action = actions.get(choice)
        if action:
            action()
        else:
            print("❌ Invalid choice.")


if __name__ == "__main__":
    main()
