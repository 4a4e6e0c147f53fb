"""
Configuration for dirserve comes from three places, later ones winning:

1. the defaults in :data:`KNOBS`,
2. ``DIRSERVE_*`` environment variables (and keyword arguments given to
   :class:`ConfigStore`),
3. the YAML config file.

The result is published as an immutable :class:`Config` snapshot. The
:class:`ConfigStore` checks the config file's modification time before every
request and publishes a fresh snapshot when it changes.
"""
from copy import deepcopy
import logging
import os
import threading

import yaml

from . import parse
from ..exceptions import ConfigurationError
from ..hidden import compile_hidden
from ..utils import Constant


log = logging.getLogger(__name__)

NAME = 'dirserve'
DEFAULT_FILENAME = NAME + '.yml'
ENV_PREFIX = NAME.upper() + '_'

DEFAULT_HIDDEN = [
    {'pattern': r'^/' + NAME + r'_(?:scripts|plugins)(/|$)', 'modifiers': ''},
    '/' + DEFAULT_FILENAME,
    '/' + NAME + '.sh',
    '/' + NAME + '.cmd',
    '/web.config',
    {'pattern': r'.*/\.(?:hg|svn|git)(/|$)', 'modifiers': ''},
    {'pattern': r'.*\.' + NAME + '$', 'modifiers': 'i'},
    '/.hgignore',
]

#: name -> (default, parser). Callable defaults are called at configure time.
KNOBS = \
    { 'handlers': ( [ 'plugins:./' + NAME + '_plugins'
                    , 'scripts:./' + NAME + '_scripts'
                    , 'default:.'
                     ], parse.handlers)
    , 'script_timeout': (5, parse.positive_number)
    , 'index_file': ('index.html', parse.optional_string)
    , 'root_directory': ('.', parse.string)
    , 'list_directories': (True, parse.yes_no)
    , 'hostname': ('localhost', parse.string)
    , 'port': (8080, parse.port)
    , 'debug': (False, parse.yes_no)
    , 'hidden': (DEFAULT_HIDDEN, parse.hidden)
    , 'add_hidden': ([], parse.hidden)
    , 'use_if_modified_since': (True, parse.yes_no)
    , 'use_if_modified_since_listing': (True, parse.yes_no)
    , 'relative_redirects': (True, parse.yes_no)
     }

#: Names that are computed by the store and can't be set from outside.
COMPUTED = ('hidden_compiled', 'config_path', 'config_modified', 'extra')


def configure(knobs, d, env_prefix, kwargs, overrides, environ):
    """Fill ``d`` with knob values, in increasing order of precedence.
    """
    for name, (default, func) in sorted(knobs.items()):

        # set the default value for this variable
        d[name] = default() if callable(default) else deepcopy(default)

        def update(value, extend):
            if extend:
                if not isinstance(d[name], list):
                    raise ConfigurationError("Can't extend %s, it isn't a list." % name)
                d[name] += value
            else:
                d[name] = value

        # get from the environment
        if env_prefix:
            envvar = env_prefix + name.upper()
            raw = environ.get(envvar, '').strip()
            if raw:
                update(*parse_conf_var(raw, func, 'environment', envvar))

        # get from kwargs
        raw = kwargs.get(name)
        if raw is not None:
            update(*parse_conf_var(raw, func, 'kwargs', name))

        # get from the config file
        if name in overrides:
            update(parse_value(overrides[name], func, 'config file', name), False)


def parse_conf_var(raw, from_unicode, context, name_in_context):
    extend = False
    if isinstance(raw, str) and raw[:1] == '+':
        raw = raw[1:]
        extend = True
    return parse_value(raw, from_unicode, context, name_in_context), extend


def parse_value(value, func, context, name_in_context):
    try:
        return func(value)
    except ValueError as error:
        error_detail = error.args[0] if error.args else ''

    msg = "Got a bad value '%s' for %s variable %s:"
    msg %= (value, context, name_in_context)
    if error_detail:
        msg += " " + error_detail + "."
    raise ConfigurationError(msg)


class Config(object):
    """An immutable snapshot of the configuration.

    Every knob in :data:`KNOBS` is an attribute, along with the computed
    ``hidden_compiled``, ``config_path`` and ``config_modified`` (a POSIX
    timestamp, or :obj:`None` when there's no config file). Keys from the
    config file that aren't knobs end up in ``extra``, and can be read as
    attributes too.
    """

    def __init__(self, values, extra=None, config_path=None, config_modified=None):
        for name, value in values.items():
            if isinstance(value, list):
                value = tuple(value)
            object.__setattr__(self, name, value)
        object.__setattr__(self, 'extra', dict(extra or {}))
        object.__setattr__(self, 'config_path', config_path)
        object.__setattr__(self, 'config_modified', config_modified)
        object.__setattr__(self, 'hidden_compiled', compile_hidden(self.hidden, self.add_hidden))

    def __getattr__(self, name):
        # only called for names that aren't real attributes
        try:
            return self.__dict__['extra'][name]
        except KeyError:
            raise AttributeError(name)

    def __setattr__(self, name, value):
        raise AttributeError("configuration snapshots cannot be modified")

    def __delattr__(self, name):
        raise AttributeError("configuration snapshots cannot be modified")

    def get(self, name, default=None):
        return getattr(self, name, default)

    def __repr__(self):
        return '<Config %s>' % (self.config_path or 'defaults')


#: The mtime we pretend to have seen before the first refresh.
NEVER = Constant('NEVER')


class ConfigStore(object):
    """Holds the active :class:`Config` and reloads it when the file changes.

    Args:
        config_path: the YAML file to watch; defaults to ``dirserve.yml`` in
            the current directory. It's fine for the file not to exist.
        environ: the environment to read ``DIRSERVE_*`` variables from
        kwargs: knob values that beat the environment but lose to the file
    """

    def __init__(self, config_path=None, environ=None, **kwargs):
        unknown = set(kwargs) - set(KNOBS)
        if unknown:
            raise ConfigurationError("Unknown configuration keys: %s" % ', '.join(sorted(unknown)))
        self.config_path = os.path.abspath(config_path or DEFAULT_FILENAME)
        self.environ = os.environ if environ is None else environ
        self.kwargs = kwargs
        self.lock = threading.Lock()
        self.mtime = NEVER
        self.current = self.build({}, None)

    def refresh(self):
        """Return the current snapshot, reloading the config file if its
        modification time differs from the last one we saw.

        Raises:
            ConfigurationError: if the file can't be parsed or has bad values;
                the previous snapshot stays in place
        """
        with self.lock:
            try:
                mtime = os.stat(self.config_path).st_mtime_ns
            except FileNotFoundError:
                mtime = None
            if mtime == self.mtime:
                return self.current

            if mtime is None:
                log.debug("No config file at %s, using defaults", self.config_path)
                config = self.build({}, None)
            else:
                log.debug("Loading config from %s", self.config_path)
                config = self.build(self.read(), mtime)

            self.current, self.mtime = config, mtime
            return config

    def read(self):
        try:
            with open(self.config_path, encoding='utf8') as fh:
                data = yaml.safe_load(fh)
        except yaml.YAMLError as err:
            raise ConfigurationError("Couldn't parse %s: %s" % (self.config_path, err))
        if data is None:
            # zero byte config files are allowed
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError("%s must contain a mapping, not %s"
                                     % (self.config_path, type(data).__name__))
        return data

    def build(self, overrides, mtime):
        """Build a snapshot from defaults plus the given file overrides.
        """
        values, extra = {}, {}
        configure(KNOBS, values, ENV_PREFIX, self.kwargs, overrides, self.environ)
        for name, value in overrides.items():
            name = str(name)
            if name in KNOBS:
                continue
            if name.startswith('_') or name in COMPUTED:
                log.warning("Ignoring %s from %s, it can't be set", name, self.config_path)
                continue
            extra[name] = value

        base = os.path.dirname(self.config_path)
        values['root_directory'] = os.path.realpath(os.path.join(base, values['root_directory']))

        if mtime is None:
            return Config(values, extra)
        return Config(values, extra, self.config_path, mtime / 1e9)
