"""
Usage::

    python -m dirserve                          # serve the current directory
    python -m dirserve site/dirserve.yml        # serve site/ with that config
    python -m dirserve http://0.0.0.0:8000      # listen somewhere else

"""
import argparse
import errno
import logging
import os
import re
import sys

from .exceptions import ConfigurationError
from .request_processor import RequestProcessor
from .server import Server


log = logging.getLogger('dirserve')


def parse_listen(target):
    """Given ``[http://]host[:port]``, return ``(hostname, port)``.

    Either part may be missing, in which case it's :obj:`None`.

    >>> parse_listen('http://localhost:8000')
    ('localhost', 8000)
    >>> parse_listen(':9000')
    (None, 9000)
    """
    if re.match(r'^https:', target, re.I):
        raise ConfigurationError("https isn't supported, use a TLS terminating proxy")
    target = re.sub(r'^\w*://', '', target).rstrip('/')
    hostname, _, port = target.partition(':')
    try:
        port = int(port) if port else None
    except ValueError:
        raise ConfigurationError("Bad port in %r" % target)
    return hostname or None, port


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='dirserve',
        description="Serve a directory over HTTP, with plugins and scripts.",
    )
    parser.add_argument(
        'target', nargs='?',
        help="a config file to load (its directory becomes the root), "
             "or the address to listen on, e.g. http://localhost:8080",
    )
    parser.add_argument('--debug', action='store_true', help="log and show more detail")
    args = parser.parse_args(argv)

    logging.basicConfig(format='%(message)s', level=logging.DEBUG if args.debug else logging.INFO)

    config_path, kwargs = None, {}
    try:
        if args.target and os.path.isfile(args.target):
            config_path = args.target
        elif args.target:
            hostname, port = parse_listen(args.target)
            if hostname:
                kwargs['hostname'] = hostname
            if port is not None:
                kwargs['port'] = port
        if args.debug:
            kwargs['debug'] = True
        request_processor = RequestProcessor(config_path, **kwargs)
        config = request_processor.config_store.refresh()
    except ConfigurationError as err:
        log.error("Error: %s", err)
        return 1

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    hostname = '' if config.hostname == '*' else config.hostname
    log.info("Starting server on http://%s:%s", config.hostname, config.port)
    try:
        server = Server((hostname, config.port), request_processor)
    except OSError as err:
        # ensure a nice message is shown when the server won't start
        if err.errno == errno.EADDRINUSE:
            log.error("Error: Address already in use.")
        else:
            log.error("Error: %s", err)
        return 1

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
