# media.py
import base64


class MessageMedia:
    """An attachment ready to be handed to the engine: base64 data plus its MIME type and file name."""

    def __init__(self, mimetype, data, filename=None):
        self.mimetype = mimetype
        self.data = data
        self.filename = filename

    @classmethod
    def from_bytes(cls, raw, mimetype, filename=None):
        return cls(mimetype or "application/octet-stream", base64.b64encode(raw).decode("ascii"), filename)

    def to_bytes(self):
        return base64.b64decode(self.data)

    def __repr__(self):
        return f"MessageMedia(mimetype={self.mimetype!r}, filename={self.filename!r}, size={len(self.data)})"


class SentMessage:
    """What the engine returns after a successful send."""

    def __init__(self, id, chat_id):
        self.id = id
        self.chat_id = chat_id
