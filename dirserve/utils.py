from email.utils import formatdate


REPR_TEMPLATE = """
def __repr__(self):
    return '{}({})' % ({})
"""

def auto_repr(cls):
    """Generates a `__repr__` method for the given class, using `__slots__`.

    >>> @auto_repr
    ... class Foo(object):
    ...     __slots__ = ['bar']
    ...     def __init__(self, bar):
    ...         self.bar = bar

    >>> Foo(0)
    Foo(bar=0)
    """
    slots = cls.__slots__
    repr_slots = ', '.join('{}=%r'.format(attr) for attr in slots)
    repr_values = ', '.join('self.' + attr for attr in slots)
    if len(slots) == 1:
        repr_values += ','
    repr_def = REPR_TEMPLATE.format(cls.__name__, repr_slots, repr_values)
    namespace = dict(__name__='auto_repr_%s' % cls.__name__)
    exec(repr_def, namespace)
    cls.__repr__ = namespace['__repr__']
    cls.__repr__._source = repr_def
    return cls


class Constant(object):
    """A simple class that creates lightweight constants.

    >>> c = Constant('OK')
    >>> c
    OK
    >>> c.name
    'OK'
    >>> c == c
    True

    >>> c.name = 'KO'
    Traceback (most recent call last):
    ...
    AttributeError: constants cannot be modified

    >>> c2 = Constant('OK')
    >>> c2 == c
    False
    """

    __slots__ = 'name'

    def __init__(self, name):
        object.__setattr__(self, 'name', name)

    def __repr__(self):
        return self.name

    def __setattr__(self, name, value):
        raise AttributeError("constants cannot be modified")


def html_encode(value):
    """Escape the five characters that matter in HTML text and attributes.

    >>> html_encode('<a href="x">Tom & Jerry\\'s</a>')
    '&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&apos;s&lt;/a&gt;'
    """
    return (str(value).replace('&', '&amp;')
                      .replace('"', '&quot;')
                      .replace("'", '&apos;')
                      .replace('<', '&lt;')
                      .replace('>', '&gt;'))


def http_date(timestamp):
    """Format a POSIX timestamp the way ``Last-Modified`` headers want it.

    >>> http_date(0)
    'Thu, 01 Jan 1970 00:00:00 GMT'
    """
    return formatdate(timestamp, usegmt=True)
