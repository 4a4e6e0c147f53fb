import posixpath
from urllib.parse import parse_qs, unquote, unquote_plus, urlsplit

from .mapping import CaseInsensitiveMapping, Mapping


def path_decode(raw):
    return unquote(raw, encoding='utf8', errors='replace')


def normalize(decoded):
    """Collapse ``.``, ``..`` and duplicate slashes out of a decoded URL path.

    The result always starts with a slash and keeps a trailing slash if the
    input had one, so ``/a/../b/`` becomes ``/b/``.

    >>> normalize('/a/./b/../c/')
    '/a/c/'
    >>> normalize('/../../etc/passwd')
    '/etc/passwd'
    """
    normalized = posixpath.normpath('/' + decoded.lstrip('/'))
    if normalized.startswith('//'):
        normalized = '/' + normalized.lstrip('/')
    if decoded.endswith('/') and normalized != '/':
        normalized += '/'
    return normalized


class Path(object):
    """Represent the path of a resource.

    Attributes:
        raw: the path as it appeared in the request line - :class:`str`
        decoded: the percent-decoded form of the path - :class:`str`
        normalized: :attr:`decoded` with dot segments resolved - :class:`str`
    """

    __slots__ = ('raw', 'decoded', 'normalized')

    def __init__(self, raw):
        self.raw = raw or '/'
        self.decoded = path_decode(self.raw)
        self.normalized = normalize(self.decoded)

    def __repr__(self):
        return 'Path(%r)' % self.raw


class Querystring(Mapping):
    """Represent an HTTP querystring.

    Attributes:
        raw: the unparsed form of the querystring - :class:`str`
        decoded: the decoded form of the querystring - :class:`str`
    """

    def __init__(self, raw, errors='replace'):
        """Takes a string of type application/x-www-form-urlencoded.
        """
        self.decoded = unquote_plus(raw, errors=errors)
        self.raw = raw
        as_dict = parse_qs(raw, keep_blank_values=True, strict_parsing=False, errors=errors)
        Mapping.__init__(self, as_dict)


class Request(object):
    """An inbound HTTP request, as far as dispatching cares.

    Args:
        method (str): the request method, e.g. ``'GET'``
        url (str): the request target, e.g. ``'/docs/?sort=name'``
        headers: anything :class:`dict` accepts, or a list of pairs
        body_stream: a binary file-like object to read the body from
    """

    def __init__(self, method, url, headers=(), body_stream=None):
        self.method = method.upper()
        self.url = url
        parts = urlsplit(url)
        self.path = Path(parts.path)
        self.querystring = Querystring(parts.query)
        self.headers = CaseInsensitiveMapping()
        pairs = headers.items() if hasattr(headers, 'items') else headers
        for name, value in pairs:
            self.headers.add(name, value)
        self._body_stream = body_stream
        self._body = None

    @property
    def body(self):
        """The raw request body as :class:`bytes`, read on first access.
        """
        if self._body is None:
            length = int(self.headers.get('Content-Length') or 0)
            if self._body_stream is None or length <= 0:
                self._body = b''
            else:
                self._body = self._body_stream.read(length)
        return self._body

    def __repr__(self):
        return '<Request %s %s>' % (self.method, self.url)
