"""
This module defines all of the custom exceptions used across dirserve.
"""


class ConfigurationError(Exception):
    """This is an error in any part of our configuration.
    """

    def __init__(self, msg):
        Exception.__init__(self)
        self.msg = msg

    def __str__(self):
        return self.msg


class UnrecognizedHandler(Exception):
    """A handler entry names a kind we don't know about (HTTP status code 500).
    """

    def __init__(self, entry):
        Exception.__init__(self)
        self.entry = entry

    def __str__(self):
        return "Unrecognised handler: %s" % self.entry


class ScriptError(Exception):
    """A script or plugin file can't be used as one.
    """

    def __init__(self, fspath, msg):
        Exception.__init__(self)
        self.fspath = fspath
        self.msg = msg

    def __str__(self):
        return "%s: %s" % (self.fspath, self.msg)


class ScriptTimeout(Exception):
    """A request outlived :attr:`~dirserve.configuration.Config.script_timeout`.
    """

    def __init__(self, seconds):
        Exception.__init__(self)
        self.seconds = seconds

    def __str__(self):
        return "Script timeout"


class AttemptedBreakout(Exception):
    """Raised when a request path resolves to a file outside the root it's
    being served from.
    """

    def __init__(self, sym_path, real_path):
        Exception.__init__(self)
        self.sym_path = sym_path
        self.real_path = real_path

    def __str__(self):
        if self.real_path == self.sym_path:
            return "%r isn't inside a known resource directory" % self.sym_path
        return "%r is a symlink to %r" % (self.sym_path, self.real_path)
