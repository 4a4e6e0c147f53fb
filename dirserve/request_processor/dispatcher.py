"""
This module implements the handler chain: the ordered list of ways to answer
a request that is tried until one of them responds.

Handler entries are strings of the form ``kind:argument``:

``plugins:<file-or-directory>``
    Run a plugin file, or every ``.py`` file in a directory in sorted order,
    for every request. A plugin that returns something truthy, or that has
    already responded, ends the chain.

``scripts:<directory>``
    Map the request path onto ``<directory>/<path>.py``. If that file exists
    it is run and ends the chain, otherwise the next entry is tried.

``default:<directory>``
    Serve files and directory listings from ``<directory>``. This always
    responds.

Arguments are relative to the configured ``root_directory``.
"""
import logging
import os

from ..configuration import NAME
from ..exceptions import UnrecognizedHandler
from ..http.resource import FileServer, is_subpath
from ..resources import SCRIPT_EXTENSION, is_script
from ..utils import auto_repr, Constant


log = logging.getLogger(__name__)


class HandlerKind(object):
    """The attributes of this class are constants for the kinds of handler entry."""

    plugins = Constant('plugins')
    "Run plugins for every request."

    scripts = Constant('scripts')
    "Run the script that matches the request path, if there is one."

    default = Constant('default')
    "Serve from the filesystem."

    unrecognized = Constant('unrecognized')
    "Anything else; responds with a server error."


DEFAULT_ARGUMENTS = { HandlerKind.plugins: './' + NAME + '_plugins'
                    , HandlerKind.scripts: './' + NAME + '_scripts'
                    , HandlerKind.default: '.'
                     }


@auto_repr
class HandlerSpec(object):
    """One parsed entry of the ``handlers`` knob."""

    __slots__ = ('kind', 'argument', 'raw')

    def __init__(self, kind, argument, raw):
        self.kind = kind
        "A :class:`HandlerKind` constant."

        self.argument = argument
        "The path after the colon, or the kind's default."

        self.raw = raw
        "The entry as it was configured."

    @classmethod
    def parse(cls, raw):
        """Given a ``kind:argument`` string, return a :class:`HandlerSpec`.

        The kind is case-insensitive, and the argument is optional.
        """
        name, colon, argument = raw.partition(':')
        kind = getattr(HandlerKind, name.strip().lower(), None)
        if not isinstance(kind, Constant) or kind is HandlerKind.unrecognized:
            return cls(HandlerKind.unrecognized, argument, raw)
        return cls(kind, argument if colon else DEFAULT_ARGUMENTS[kind], raw)


class HandlerChain(object):
    """Walk the configured handlers in order until one of them responds.

    Args:
        resources: the :class:`~dirserve.resources.Resources` cache scripts
            and plugins are run through
    """

    def __init__(self, resources):
        self.resources = resources
        self.file_server = FileServer()

    def dispatch(self, context):
        """Dispatch a request.

        Returns:
            :obj:`True` if an entry took responsibility for the request,
            :obj:`False` if the chain ran out of entries

        Exceptions raised by handlers aren't caught here, the context takes
        care of them.
        """
        root = context.config.root_directory
        for raw in context.config.handlers:
            spec = HandlerSpec.parse(raw)
            if spec.kind is HandlerKind.plugins:
                if self.run_plugins(context, os.path.join(root, spec.argument)):
                    return True
            elif spec.kind is HandlerKind.scripts:
                script = self.find_script(context, os.path.join(root, spec.argument))
                if script is not None:
                    self.resources.execute(script, context)
                    return True
            elif spec.kind is HandlerKind.default:
                return self.file_server.serve(context, spec.argument)
            else:
                context.send(UnrecognizedHandler(spec.raw))
                return True
        return False

    def run_plugins(self, context, fspath):
        """Run a plugin file, or the plugins in a directory, until one is done.
        """
        fspath = os.path.realpath(fspath)
        log.debug("Finding plugins in %s", fspath)

        if os.path.isfile(fspath):
            plugins = [fspath] if is_script(fspath) else []
        elif os.path.isdir(fspath):
            plugins = []
            for name in sorted(os.listdir(fspath)):
                plugin = os.path.join(fspath, name)
                if is_script(name) and os.path.isfile(plugin):
                    plugins.append(plugin)
        else:
            return False

        for plugin in plugins:
            handled = self.resources.execute(plugin, context)
            if handled or context.responded:
                return True
        return False

    def find_script(self, context, scripts_dir):
        """Interpret the request path as a path into ``scripts_dir``.

        Returns:
            the filesystem path of the matching script, or :obj:`None`
        """
        scripts_dir = os.path.realpath(scripts_dir)
        name = context.request.path.normalized
        if name.endswith('/'):
            name = name[:-1]
        if '\x00' in name:
            return None
        fspath = os.path.realpath(os.path.join(scripts_dir, name.lstrip('/') + SCRIPT_EXTENSION))
        if is_subpath(fspath, scripts_dir) and os.path.isfile(fspath):
            log.debug("Found script %s", fspath)
            return fspath
        log.debug("No script %s", fspath)
        return None
