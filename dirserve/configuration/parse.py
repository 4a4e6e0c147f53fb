"""
Parsers for configuration knobs.

Each parser takes a raw value and returns the parsed one, or raises
:class:`ValueError` with a short explanation. Raw values come either from the
environment, in which case they're strings, or from the YAML config file, in
which case they're whatever YAML made of them.
"""
import yaml


def string(value):
    if not isinstance(value, str):
        raise ValueError("must be a string")
    return value

def optional_string(value):
    if value is None or value is False:
        return ''
    return string(value)

def yes_no(s):
    if isinstance(s, bool):
        return s
    if not isinstance(s, str):
        raise ValueError("must be either yes/true/1 or no/false/0")
    s = s.lower()
    if s in ['yes', 'true', '1']:
        return True
    if s in ['no', 'false', '0']:
        return False
    raise ValueError("must be either yes/true/1 or no/false/0")

def positive_number(value):
    if isinstance(value, bool):
        raise ValueError("must be a positive number")
    if isinstance(value, str):
        value = float(value)
    if not isinstance(value, (int, float)) or value <= 0:
        raise ValueError("must be a positive number")
    return value

def port(value):
    if isinstance(value, str):
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 65535:
        raise ValueError("must be an integer between 0 and 65535")
    return value

def list_(value):
    # populate out with a single copy of each non-empty item, preserving order
    if isinstance(value, str):
        value = value.split(',')
    if not isinstance(value, (list, tuple)):
        raise ValueError("must be a list")
    out = []
    for v in value:
        v = string(v).strip()
        if v and not v in out:
            out.append(v)
    return out

def handlers(value):
    out = list_(value)
    for entry in out:
        if entry.partition(':')[0].strip() == '':
            raise ValueError("handler %r has no kind" % entry)
    return out

def hidden(value):
    """Parse a list of hidden specifications.

    From the environment this is a comma-separated list of literal paths, or
    a YAML flow sequence if you need patterns::

        DIRSERVE_HIDDEN="[/secret, {pattern: '\\.bak$', modifiers: i}]"

    """
    if isinstance(value, str):
        value = yaml.safe_load(value) if value.lstrip().startswith('[') else value.split(',')
    if not isinstance(value, (list, tuple)):
        raise ValueError("must be a list")
    out = []
    for spec in value:
        if isinstance(spec, str):
            spec = spec.strip()
            if spec:
                out.append(spec)
        elif isinstance(spec, dict):
            if not isinstance(spec.get('pattern'), str):
                raise ValueError("pattern entries need a 'pattern' string")
            modifiers = optional_string(spec.get('modifiers'))
            out.append({'pattern': spec['pattern'], 'modifiers': modifiers})
        else:
            raise ValueError("entries must be strings or {pattern, modifiers} mappings")
    return out
