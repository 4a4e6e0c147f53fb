"""
An HTTP front end for :class:`~dirserve.request_processor.RequestProcessor`,
built on the standard library's threading HTTP server. Each connection gets a
thread; the request processor doesn't care.
"""
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
import logging

from .http.request import Request


log = logging.getLogger(__name__)


class HandlerTransport(object):
    """Writes a response through a :class:`BaseHTTPRequestHandler`.

    Bodies of ``HEAD`` responses are swallowed, headers still go out.
    """

    def __init__(self, handler):
        self.handler = handler
        self.head_only = handler.command == 'HEAD'

    def start(self, status, headers):
        self.handler.send_response(status)
        for name, value in headers.items():
            self.handler.send_header(name, str(value))
        self.handler.end_headers()

    def write(self, data):
        if not self.head_only:
            self.handler.wfile.write(data)

    def end(self):
        self.handler.wfile.flush()


class RequestHandler(BaseHTTPRequestHandler):
    """Hands every request, whatever its method, to the request processor.
    """

    server_version = 'dirserve'

    def __getattr__(self, name):
        # BaseHTTPRequestHandler looks for do_<METHOD>; we take them all
        if name.startswith('do_'):
            return self.handle_request
        raise AttributeError(name)

    def handle_request(self):
        request = Request(self.command, self.path, self.headers.items(), self.rfile)
        context = self.server.request_processor.process(request, HandlerTransport(self))
        # a script may still be running; its timeout will close the context
        context.wait()

    def log_message(self, format, *args):
        # the request context writes the real access log
        log.debug("%s - " + format, self.address_string(), *args)


class Server(ThreadingHTTPServer):
    """A threading HTTP server that dispatches through a request processor.

    Raises :class:`OSError` from the constructor if the address can't be bound.
    """

    daemon_threads = True

    def __init__(self, address, request_processor):
        self.request_processor = request_processor
        ThreadingHTTPServer.__init__(self, address, RequestHandler)
