import json

from .utils import auto_repr


@auto_repr
class Output(object):
    """The serialized body of a response.
    """

    __slots__ = ('body', 'media_type', 'charset')

    def __init__(self, body=None, media_type=None, charset=None):
        self.body = body
        self.media_type = media_type
        self.charset = charset

    @property
    def text(self):
        return self.body.decode(self.charset) if self.charset else None


def serialize(value, media_type, charset='utf-8'):
    """Turn whatever a handler passed to ``send`` into an :class:`Output`.

    Strings are encoded, ``None`` becomes an empty body, dicts and lists are
    dumped as JSON (which also switches the media type), bytes pass through,
    and anything else is stringified.
    """
    if isinstance(value, bytes):
        return Output(value, media_type, None)
    if value is None:
        value = ''
    elif isinstance(value, (dict, list, tuple)):
        media_type = 'application/json'
        value = json.dumps(value)
    elif not isinstance(value, str):
        value = str(value)
    return Output(value.encode(charset), media_type, charset)
