"""
Scripts and plugins are Python files that define a ``handle(context)``
function. This module loads them, keeps them in a cache keyed by their
canonical filesystem path, and reloads them when their modification time
changes.
"""
import logging
import os
import types

from .exceptions import ScriptError
from .utils import auto_repr


log = logging.getLogger(__name__)

SCRIPT_EXTENSION = '.py'


def is_script(fspath):
    """Given a filesystem path, return a boolean.
    """
    return os.path.splitext(fspath)[1].lower() == SCRIPT_EXTENSION


@auto_repr
class Entry(object):
    """An entry in a script cache.
    """
    __slots__ = ('fspath', 'mtime', 'module')

    def __init__(self, fspath, mtime, module):
        #: The canonical filesystem path [string]
        self.fspath = fspath
        #: The timestamp of the last change, in nanoseconds [int]
        self.mtime = mtime
        #: The loaded module [types.ModuleType]
        self.module = module


class Resources(object):
    """This class implements loading scripts, caching them, and running them.
    """

    __slots__ = ('cache',)

    def __init__(self):
        self.cache = {}

    def get(self, fspath):
        """Return a loaded module, with caching.

        The cache entry is replaced as a whole when the file's modification
        time differs from the one we loaded, so concurrent readers see either
        the old module or the new one.
        """
        fspath = os.path.realpath(fspath)
        mtime = os.stat(fspath).st_mtime_ns

        # Get a cache Entry object.
        entry = self.cache.get(fspath)

        if getattr(entry, 'mtime', None) != mtime:  # cache miss
            log.debug("Loading script %s", fspath)
            module = self.load(fspath)
            entry = self.cache[fspath] = Entry(fspath, mtime, module)

        return entry.module

    def load(self, fspath):
        """Compile and run a script file, returning it as a module, without caching.
        """
        with open(fspath, 'rb') as fh:
            source = fh.read()
        name = os.path.splitext(os.path.basename(fspath))[0]
        module = types.ModuleType(name)
        module.__file__ = fspath
        code = compile(source, fspath, 'exec')
        exec(code, module.__dict__)
        if not callable(getattr(module, 'handle', None)):
            raise ScriptError(fspath, "scripts must define a handle(context) function")
        return module

    def execute(self, fspath, context):
        """Run the script at ``fspath`` against a request context.

        Returns:
            whatever the script's ``handle`` function returns

        Load errors and exceptions raised by the script aren't caught here.
        """
        module = self.get(fspath)
        return module.handle(context)
