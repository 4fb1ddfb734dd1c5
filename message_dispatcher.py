# message_dispatcher.py
import re

import config
from audit_log import append_log
from errors import InvalidArgument, NotInitialized, SendFailed
from media import MessageMedia


def normalize_address(number):
    """'+1 (555) 000-1111' -> '15550001111@c.us'"""
    digits = re.sub(r"[^0-9]", "", number or "")
    return f"{digits}@{config.ADDRESS_DOMAIN}"


class MessageDispatcher:
    """Sends one text or media message through the controller's live client."""

    def __init__(self, controller):
        self.controller = controller

    def send(self, number, text=None, media_bytes=None, mimetype=None, filename=None):
        client, session_id = self.controller.get_client()
        if client is None:
            raise NotInitialized()
        if not number:
            raise InvalidArgument("number required")
        if not text and media_bytes is None:
            raise InvalidArgument("message or file required")

        chat_id = normalize_address(number)
        try:
            if media_bytes is not None:
                media = MessageMedia.from_bytes(media_bytes, mimetype, filename)
                sent = client.send_message(chat_id, media, caption=text or None)
                event = "SENT_MEDIA"
            else:
                sent = client.send_message(chat_id, text)
                event = "SENT_TEXT"
        except Exception as e:
            append_log(f"SEND_ERROR to={chat_id} session={session_id} err={e}")
            print(f"❌ Failed to send to {chat_id}: {e}")
            raise SendFailed(e) from e

        append_log(f"{event} to={chat_id} session={session_id} id={sent.id}")
        print(f"💬 Message sent to {chat_id} (id={sent.id}).")
        return sent.id
