"""
This module provides helpers for testing dirserve sites and dirserve itself.
"""
from contextlib import contextmanager
from io import BytesIO
import os
import textwrap
import time

from filesystem_tree import FilesystemTree

from .configuration import DEFAULT_FILENAME
from .http.mapping import CaseInsensitiveMapping
from .http.request import Request
from .request_processor import RequestProcessor


class RecordingTransport(object):
    """A transport that keeps the response in memory.
    """

    def __init__(self, head_only=False):
        self.head_only = head_only
        self.status = None
        self.headers = CaseInsensitiveMapping()
        self.chunks = []
        self.starts = 0
        self.ended = False
        self.context = None

    def start(self, status, headers):
        self.starts += 1
        self.status = status
        self.headers = CaseInsensitiveMapping(headers)

    def write(self, data):
        if not self.head_only:
            self.chunks.append(data)

    def end(self):
        self.ended = True

    @property
    def body(self):
        return b''.join(self.chunks)

    @property
    def text(self):
        return self.body.decode('utf8')


class Harness(object):
    """A harness to be used in the dirserve test suite itself, and handy for
    testing scripts and plugins.

    ``harness.fs`` is a throwaway directory that serves as the root, with the
    config file (if you write one) at ``harness.fs.root/dirserve.yml``.
    """

    def __init__(self):
        self.fs = FilesystemTree()
        self.environ = {}
        self._request_processor = None
        # every file we write gets a distinct, increasing mtime
        self._clock = int(time.time() - 3600) * 10**9

    def teardown(self):
        self.fs.remove()

    def resolve(self, path=''):
        return os.path.realpath(os.path.join(self.fs.root, path))

    @property
    def config_path(self):
        return self.resolve(DEFAULT_FILENAME)

    def hydrate_request_processor(self, **kwargs):
        if (self._request_processor is None) or kwargs:
            self._request_processor = RequestProcessor(self.config_path, self.environ, **kwargs)
        return self._request_processor

    request_processor = property(hydrate_request_processor)

    def write(self, path, contents='', dedent=True):
        """Write a file under the root, creating directories as needed.

        Returns: the file's absolute path
        """
        fspath = self.resolve(path)
        os.makedirs(os.path.dirname(fspath), exist_ok=True)
        if isinstance(contents, str):
            if dedent:
                contents = textwrap.dedent(contents)
            contents = contents.encode('utf8')
        with open(fspath, 'wb') as fh:
            fh.write(contents)
        self.tick(fspath)
        return fspath

    def mkdir(self, path):
        fspath = self.resolve(path)
        os.makedirs(fspath, exist_ok=True)
        return fspath

    def tick(self, fspath):
        """Give ``fspath`` an mtime newer than anything we've written before.

        Returns: the new mtime in nanoseconds
        """
        self._clock += 10**9
        os.utime(fspath, ns=(self._clock, self._clock))
        return self._clock

    def write_config(self, contents):
        return self.write(DEFAULT_FILENAME, contents)

    def hit(self, url='/', method='GET', headers=None, body=None, wait=10):
        """Send a request through our machinery and return the transport.

        The transport also carries the request's ``context``. We wait up to
        ``wait`` seconds for the context to close.
        """
        headers = dict(headers or {})
        stream = None
        if body is not None:
            stream = BytesIO(body)
            headers.setdefault('Content-Length', str(len(body)))
        request = Request(method, url, headers, stream)
        transport = RecordingTransport(head_only=(method.upper() == 'HEAD'))
        transport.context = self.request_processor.process(request, transport)
        if wait:
            transport.context.wait(wait)
        return transport


@contextmanager
def chdir(path):
    """A context manager that temporarily changes the working directory.
    """
    back_to = os.getcwd()
    os.chdir(path)
    try:
        yield back_to
    finally:
        os.chdir(back_to)
