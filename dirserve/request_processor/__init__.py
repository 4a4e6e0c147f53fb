"""
The request processor refreshes the configuration, builds a
:class:`~dirserve.context.RequestContext` for each request, and runs it
through the handler chain.
"""
import logging
import mimetypes
import os

from ..configuration import ConfigStore
from ..context import RequestContext
from ..resources import Resources
from .dispatcher import HandlerChain


log = logging.getLogger(__name__)

MIME_TYPES = os.path.join(os.path.dirname(__file__), 'mime.types')
DEFAULT_MEDIA_TYPE = 'application/octet-stream'


class RequestProcessor(object):
    """A request processor that isn't tied to any particular HTTP server.

    Args:
        config_path: the YAML config file to watch, see
            :class:`~dirserve.configuration.ConfigStore`
        environ: where to look for ``DIRSERVE_*`` variables, defaults to
            :data:`os.environ`

    The ``kwargs`` are knob values, see :data:`~dirserve.configuration.KNOBS`
    for valid keys and default values. The config file wins over them.
    """

    def __init__(self, config_path=None, environ=None, **kwargs):
        self.config_store = ConfigStore(config_path, environ, **kwargs)
        self.resources = Resources()
        self.chain = HandlerChain(self.resources)

        # It turns out that init'ing mimetypes is somewhat expensive, so we
        # keep our own table rather than touching the global one.
        self.media_types = mimetypes.MimeTypes(filenames=(MIME_TYPES,))

    @property
    def config(self):
        """The snapshot published by the last successful refresh.
        """
        return self.config_store.current

    def process(self, request, transport):
        """Process a request.

        Args:
            request (Request): the inbound request
            transport: the object the response is written to, see
                :class:`~dirserve.context.RequestContext`

        Returns:
            the :class:`~dirserve.context.RequestContext`; it may still be open
            if a script hasn't responded yet, call its ``wait`` method to block
            until it's closed

        """
        try:
            config = self.config_store.refresh()
        except Exception as err:
            # serve the failure with the last good configuration
            context = RequestContext(self, request, transport, self.config_store.current)
            context.send(err)
            return context

        context = RequestContext(self, request, transport, config)
        context.process()
        return context

    def guess_media_type(self, filename):
        """Guess the media type of a file by looking at its extension.

        The lookup is case-insensitive and ignores content encodings, so
        ``foo.tar.gz`` is ``application/x-gzip``. Returns
        :data:`DEFAULT_MEDIA_TYPE` if the extension is unknown.
        """
        extension = os.path.splitext(filename)[1].lower()
        return self.media_types.types_map[True].get(extension, DEFAULT_MEDIA_TYPE)
