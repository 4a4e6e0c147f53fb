import logging
import os
import stat
from urllib.parse import quote

import mimeparse

from ..exceptions import AttemptedBreakout
from ..hidden import is_hidden
from ..utils import auto_repr, Constant, html_encode, http_date


log = logging.getLogger(__name__)


def is_subpath(path, root):
    return path == root or path.startswith(root.rstrip(os.path.sep) + os.path.sep)


def resolve_resource(root, url_path):
    """Map a normalized URL path onto the filesystem under ``root``.

    :raises AttemptedBreakout:
        if the result, after following symlinks, isn't inside ``root``

    This function doesn't fully protect against attackers who have the ability
    to create and delete symlinks inside the root whenever they want, but it
    makes the attack more difficult and detectable.
    """
    fspath = os.path.join(root, url_path.lstrip('/'))
    real_path = os.path.realpath(fspath)
    if not is_subpath(real_path, root):
        raise AttemptedBreakout(fspath, real_path)
    return fspath


class EntryKind(object):
    """The attributes of this class are constants for directory entry types."""

    file = Constant('file')
    directory = Constant('directory')
    unknown = Constant('unknown')
    "The entry couldn't be stat'ed, e.g. a dangling symlink."


@auto_repr
class ListingEntry(object):
    __slots__ = ('name', 'kind')

    def __init__(self, name, kind):
        self.name = name
        self.kind = kind


@auto_repr
class DirectoryListing(object):
    """The contents of a directory, as far as the client is allowed to see.
    """

    __slots__ = ('url_path', 'has_parent', 'entries', 'last_modified')

    def __init__(self, url_path, has_parent, entries, last_modified):
        self.url_path = url_path
        "The URL path of the directory, with a trailing slash."

        self.has_parent = has_parent
        "Whether to link to ``..``; :obj:`False` only at the root."

        self.entries = entries
        "A list of :class:`ListingEntry` objects, sorted by name."

        self.last_modified = last_modified
        "The newest modification time among the entries and the config file."


def list_directory(fspath, url_path, hidden_compiled, config_modified):
    """Build a :class:`DirectoryListing` for a directory.

    Hidden entries are left out. An entry that can't be stat'ed is listed
    with kind :attr:`EntryKind.unknown` rather than failing the listing.
    The config file's mtime counts towards ``last_modified`` because it
    decides what is hidden.
    """
    last_modified = config_modified or 0
    entries = []
    for name in sorted(os.listdir(fspath)):
        if is_hidden(hidden_compiled, url_path + name):
            continue
        try:
            st = os.stat(os.path.join(fspath, name))
        except OSError:
            entries.append(ListingEntry(name, EntryKind.unknown))
            continue
        last_modified = max(last_modified, st.st_mtime)
        kind = EntryKind.directory if stat.S_ISDIR(st.st_mode) else EntryKind.file
        entries.append(ListingEntry(name, kind))
    return DirectoryListing(url_path, url_path != '/', entries, last_modified)


def quote_name(name):
    # what encodeURIComponent leaves alone
    return quote(name, safe="!*'()")


def render_html(listing):
    html = []
    html.append('<!DOCTYPE html>\n')
    html.append('<html>\n')
    html.append('\t<head>\n')
    html.append('\t\t<title>' + html_encode(listing.url_path) + '</title>\n')
    html.append('\t\t<meta charset="UTF-8" />\n')
    html.append('\t</head>\n')
    html.append('\t<body>\n')
    html.append('\t\t<div class="directory-listing">\n')

    if listing.has_parent:
        html.append('\t\t\t<div class="parent directory"><a href="..">..</a></div>\n')

    for entry in listing.entries:
        if entry.kind is EntryKind.directory:
            # directory urls need a trailing slash
            html.append('\t\t\t<div class="directory"><a href="' +
                        html_encode(quote_name(entry.name)) + '/">' +
                        html_encode(entry.name) + '/</a></div>\n')
        elif entry.kind is EntryKind.file:
            html.append('\t\t\t<div class="file"><a href="' +
                        html_encode(quote_name(entry.name)) + '">' +
                        html_encode(entry.name) + '</a></div>\n')
        else:
            html.append('\t\t\t<div class="unknown">' + html_encode(entry.name) + '</div>\n')

    html.append('\t\t</div>\n')
    html.append('\t</body>\n')
    html.append('</html>')
    return ''.join(html)


def render_json(listing):
    return { 'path': listing.url_path
           , 'parent': '..' if listing.has_parent else None
           , 'entries': [{'name': e.name, 'type': e.kind.name} for e in listing.entries]
           , 'last_modified': http_date(listing.last_modified)
            }


#: Media types a listing can be rendered as. On a tie mimeparse picks the
#: last one, so HTML goes last.
LISTING_RENDERERS = { 'application/json': render_json
                    , 'text/html': render_html
                     }
LISTING_TYPES = list(LISTING_RENDERERS)


def negotiate_listing_type(accept_header):
    """Pick a media type for a directory listing from an ``Accept`` header.

    Anything we can't satisfy or can't parse falls back to HTML.
    """
    if accept_header:
        try:
            best_match = mimeparse.best_match(LISTING_TYPES, accept_header)
        except ValueError:
            # Unparseable accept header
            best_match = None
        if best_match:
            return best_match
    return 'text/html'


class FileServer(object):
    """Serve files and directory listings from a directory under the root.

    This is the ``default`` handler; :meth:`serve` always responds.
    """

    def serve(self, context, argument):
        """Respond to the request from the directory ``argument``.

        Returns: :obj:`True`, always.
        """
        config = context.config
        path = context.request.path
        if is_hidden(config.hidden_compiled, path.decoded) or \
           is_hidden(config.hidden_compiled, path.normalized):
            context.send(404)
            return True

        root = os.path.realpath(os.path.join(config.root_directory, argument or '.'))
        try:
            fspath = resolve_resource(root, path.normalized)
            st = os.stat(fspath)
        except AttemptedBreakout as err:
            log.debug("Refusing to serve %s: %s", path.raw, err)
            context.send(404)
            return True
        except (OSError, ValueError):
            # ValueError is an embedded null byte
            context.send(404)
            return True

        if stat.S_ISREG(st.st_mode):
            context.send_file(fspath)
        elif stat.S_ISDIR(st.st_mode):
            self.serve_directory(context, fspath)
        else:
            context.send(404)
        return True

    def serve_directory(self, context, fspath):
        config = context.config
        path = context.request.path

        # if not listing directories send 404
        if not config.list_directories:
            return context.send(404)

        if not path.raw.endswith('/'):
            return context.send(302, context.get_redirect_url(path.raw + '/'))

        if config.index_file:
            index = os.path.join(fspath, config.index_file)
            if os.path.isfile(index):
                return context.send_file(index)

        listing = list_directory(
            fspath, path.normalized, config.hidden_compiled, config.config_modified
        )
        last_modified = http_date(listing.last_modified)
        if_modified_since = context.request.headers.get('If-Modified-Since')
        if config.use_if_modified_since_listing and if_modified_since == last_modified:
            return context.send(304)

        context.headers['Last-Modified'] = last_modified
        media_type = negotiate_listing_type(context.request.headers.get('Accept'))
        if media_type == 'text/html':
            context.headers['Content-Type'] = 'text/html; charset=utf-8'
        return context.send(None, LISTING_RENDERERS[media_type](listing))
