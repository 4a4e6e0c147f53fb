"""
A :class:`RequestContext` is created for every request. It owns the response
status and headers, the script timeout, and the one and only ``close`` that
finishes the response and writes the request's log line. Handlers, scripts and
plugins all talk to the client through it.

The context moves through four states::

    created -> dispatching -> responding -> closed

``responding`` means the status line and headers are on the wire. Once
``closed``, further sends are dropped, which is what happens to a script
that keeps going after its timeout fired.

The response itself is written to a *transport*, any object with these
methods:

``start(status, headers)``
    send the status line and the headers (a dict)
``write(data)``
    send some body bytes
``end()``
    finish the response
"""
from datetime import datetime, timezone
from http import HTTPStatus
import logging
import os
import pprint
import threading
import traceback
from urllib.parse import urlsplit

from .exceptions import ScriptTimeout
from .output import serialize
from .utils import Constant, html_encode, http_date


log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

STATUS_MESSAGES = { 302: '302 Found'
                  , 304: '304 Not Modified'
                  , 404: '404 Not Found'
                  , 500: '500 Internal Server Error'
                   }


class State(object):
    """The attributes of this class are constants for the context's states."""

    created = Constant('created')
    dispatching = Constant('dispatching')
    responding = Constant('responding')
    closed = Constant('closed')


def get_http_status(status):
    """Return the status line text for a status code, e.g. ``'404 Not Found'``.
    """
    if status in STATUS_MESSAGES:
        return STATUS_MESSAGES[status]
    try:
        return '%d %s' % (status, HTTPStatus(status).phrase)
    except ValueError:
        return str(status)


def format_error(error, with_traceback):
    if with_traceback and isinstance(error, BaseException) and error.__traceback__:
        return ''.join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip()
    return str(error)


class RequestContext(object):
    """The per-request state shared by everything that handles the request.

    Args:
        request_processor: the :class:`~dirserve.request_processor.RequestProcessor`
        request: the :class:`~dirserve.http.request.Request`
        transport: where the response goes, see the module docs
        config: the :class:`~dirserve.configuration.Config` snapshot for this request

    Attributes you can use from scripts:

    - ``request``, ``config``
    - ``status_code``: set it before calling :meth:`send` to change the status
    - ``headers``: a dict of response headers used by :meth:`send`
    - ``error``: the error recorded for this request, if any
    """

    def __init__(self, request_processor, request, transport, config):
        self.request_processor = request_processor
        self.request = request
        self.transport = transport
        self.config = config
        self.status_code = None
        self.headers = {'Content-Type': 'text/html; charset=utf-8'}
        self.error = None
        self.state = State.created
        self.lock = threading.RLock()
        self.done = threading.Event()
        self.timeout = threading.Timer(config.script_timeout, self.on_timeout)
        self.timeout.daemon = True
        self.timeout.start()

    # Helpers for scripts
    # ===================

    html_encode = staticmethod(html_encode)
    get_http_status = staticmethod(get_http_status)

    def get_content_type(self, fspath):
        return self.request_processor.guess_media_type(fspath)

    def get_redirect_url(self, path=None):
        """Return the URL to redirect to for ``path`` (the request path by
        default), keeping the querystring.

        With ``relative_redirects`` on this is just the path, otherwise it's
        an absolute URL built from the ``Host`` header.
        """
        parts = urlsplit(self.request.url)
        url = path if path is not None else parts.path
        if parts.query:
            url += '?' + parts.query
        if self.config.relative_redirects:
            return url
        host = self.request.headers.get('Host') or '%s:%s' % (self.config.hostname, self.config.port)
        return 'http://' + host + url

    @property
    def responded(self):
        """:obj:`True` once the status line has been sent (or the request closed).
        """
        return self.state is State.responding or self.state is State.closed

    @property
    def closed(self):
        return self.state is State.closed

    # Lifecycle
    # =========

    def process(self):
        """Run the request through the handler chain. Call this once.
        """
        with self.lock:
            if self.state is not State.created:
                raise RuntimeError("a request context can only be processed once")
            self.state = State.dispatching
        try:
            if not self.request_processor.chain.dispatch(self):
                self.send(404)
        except Exception as err:
            self.send(err)

    def on_timeout(self):
        with self.lock:
            if self.state is State.closed:
                return
            log.debug("Script timeout for %s %s", self.request.method, self.request.url)
            if self.state is State.responding:
                self.close(ScriptTimeout(self.config.script_timeout))
            else:
                self.send(ScriptTimeout(self.config.script_timeout))

    def wait(self, timeout=None):
        """Block until the context is closed. Returns :obj:`True` if it is.
        """
        return self.done.wait(timeout)

    # Responding
    # ==========

    def send(self, status_or_error=None, value=None):
        """Send a complete response and close the context.

        Args:
            status_or_error: a status code, or an error (an exception or a
                message) which makes this a 500, or :obj:`None` for success
            value: the body; for a 302 it's the redirect target instead

        Bodies can be strings, bytes, :obj:`None`, or dicts and lists, which
        are sent as JSON. Anything else is stringified.

        Returns:
            :obj:`False` if the context was already closed and nothing was sent
        """
        with self.lock:
            if self.state is State.closed:
                log.debug("Dropping send(%r) for %s %s, already closed",
                          status_or_error, self.request.method, self.request.url)
                return False

            is_status = isinstance(status_or_error, int) and not isinstance(status_or_error, bool)

            if self.state is State.responding:
                # the status line is gone already, all we can add is the body
                if status_or_error and not is_status:
                    self.close(status_or_error)
                    return True
                self.write(serialize(value, None).body)
                self.close()
                return True

            if is_status and status_or_error:
                self.error = None
                self.status_code = status_or_error
            elif status_or_error:
                self.error = status_or_error
                if self.status_code is None or self.status_code < 400:
                    self.status_code = 500
            elif self.status_code is None:
                self.status_code = 200

            status = self.status_code
            if status == 302:
                body = self.get_http_status(status).encode('ascii')
                self.write_head(302, {'Location': value, 'Content-Length': str(len(body))})
                self.write(body)
                self.close()
                return True
            if status == 304:
                self.write_head(304)
                self.close()
                return True
            if status in (404, 500) and not value:
                value = self.get_http_status(status)

            output = serialize(value, self.headers.get('Content-Type'))
            if output.media_type:
                self.headers['Content-Type'] = output.media_type
            body = output.body
            if self.error is not None and self.config.debug:
                body += self.render_error_detail().encode('utf8')
            self.headers['Content-Length'] = str(len(body))

            self.write_head(status, self.headers)
            self.write(body)
            self.close()
            return True

    def write_head(self, status, headers=None):
        """Send the status line and headers.

        Unlike :meth:`send` this only uses the headers you pass, not
        :attr:`headers`.
        """
        with self.lock:
            if self.state is State.closed:
                return False
            if self.state is State.responding:
                raise RuntimeError("the response headers were already sent")
            self.status_code = status
            self.state = State.responding
            try:
                self.transport.start(status, dict(headers or {}))
            except OSError as err:
                self.close(err)
                return False
            return True

    def write(self, data):
        """Send some body bytes (strings are UTF-8 encoded).

        If the headers haven't been sent yet they're sent first, using
        :attr:`status_code` (200 if unset) and :attr:`headers`.
        """
        with self.lock:
            if self.state is State.closed:
                return False
            if self.state is not State.responding:
                self.write_head(self.status_code or 200, self.headers)
                if self.state is State.closed:
                    return False
            if isinstance(data, str):
                data = data.encode('utf8')
            try:
                self.transport.write(data)
            except OSError as err:
                # the client went away; all we can do is log it
                self.close(err)
                return False
            return True

    def send_file(self, fspath):
        """Send a file, honoring ``If-Modified-Since`` if the config says so.
        """
        with self.lock:
            if self.state is State.closed:
                return False
            st = os.stat(fspath)
            last_modified = http_date(st.st_mtime)
            if_modified_since = self.request.headers.get('If-Modified-Since')
            if self.config.use_if_modified_since and if_modified_since == last_modified:
                self.write_head(304)
                self.close()
                return True

            with open(fspath, 'rb') as fh:
                self.write_head(200, { 'Last-Modified': last_modified
                                     , 'Content-Type': self.get_content_type(fspath)
                                     , 'Content-Length': str(st.st_size)
                                      })
                try:
                    while self.state is State.responding:
                        chunk = fh.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        self.write(chunk)
                except OSError as err:
                    self.close(err)
                    return True
            self.close()
            return True

    def close(self, error=None):
        """Finish the response and log it. Only the first call does anything.
        """
        with self.lock:
            if self.state is State.closed:
                return
            if error is not None:
                self.error = error
            if self.state is not State.responding:
                self.write_head(self.status_code or 200, {'Content-Length': '0'})
                if self.state is State.closed:
                    # write_head failed and closed us already
                    return
            self.state = State.closed
            self.timeout.cancel()
            try:
                self.transport.end()
            except OSError as err:
                log.debug("Couldn't finish %s %s: %s", self.request.method, self.request.url, err)
            self.log_request()
            self.done.set()

    # Reporting
    # =========

    def log_request(self):
        timestamp = datetime.now(timezone.utc).isoformat(timespec='milliseconds')
        timestamp = timestamp.replace('+00:00', 'Z')
        detail = ''
        if self.error is not None:
            detail = '\t' + format_error(self.error, self.config.debug)
        level = logging.ERROR if self.error is not None else logging.INFO
        log.log(level, '%s\t%s\t%s\t%s%s', timestamp, self.status_code,
                self.request.method, self.request.url, detail)

    def render_error_detail(self):
        """Render the error and a dump of this context as HTML, for debug mode.
        """
        dump = { 'request': self.request
               , 'method': self.request.method
               , 'url': self.request.url
               , 'request_headers': dict(self.request.headers)
               , 'status_code': self.status_code
               , 'headers': self.headers
               , 'config': { name: value for name, value in vars(self.config).items()
                             if name != 'hidden_compiled' }
                }
        return ('<hr /><pre>' + html_encode(format_error(self.error, True)) + '</pre>' +
                '<hr /><pre>' + html_encode(pprint.pformat(dump)) + '</pre>')
