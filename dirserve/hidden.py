"""
Hidden paths are URL paths that are neither served nor listed.

A hidden specification is either a literal URL path (``'/web.config'``),
matched by equality, or a mapping with a regular expression ``pattern`` and
optional ``modifiers`` (``i``, ``m``, ``s``), matched anywhere in the path.
"""
import re

from .exceptions import ConfigurationError


MODIFIERS = { 'i': re.IGNORECASE
            , 'm': re.MULTILINE
            , 's': re.DOTALL
             }


def compile_pattern(spec):
    """Given a ``{pattern, modifiers}`` mapping, return a compiled regex.
    """
    flags = 0
    for modifier in spec.get('modifiers') or '':
        try:
            flags |= MODIFIERS[modifier]
        except KeyError:
            msg = "Unknown modifier %r for hidden pattern %r, expected any of %s."
            raise ConfigurationError(msg % (modifier, spec['pattern'], ''.join(sorted(MODIFIERS))))
    try:
        return re.compile(spec['pattern'], flags)
    except re.error as err:
        raise ConfigurationError("Bad hidden pattern %r: %s." % (spec['pattern'], err))


def compile_hidden(*spec_lists):
    """Flatten one or more lists of hidden specifications into a matchable tuple.

    Literal strings are kept as they are, patterns are compiled. Order is
    preserved, so :func:`is_hidden` checks entries in the order they were
    configured.
    """
    compiled = []
    for specs in spec_lists:
        for spec in specs:
            if isinstance(spec, str):
                compiled.append(spec)
            else:
                compiled.append(compile_pattern(spec))
    return tuple(compiled)


def is_hidden(compiled, path):
    """Return :obj:`True` if the URL path matches any compiled entry.
    """
    for entry in compiled:
        if isinstance(entry, str):
            if entry == path:
                return True
        elif entry.search(path):
            return True
    return False
