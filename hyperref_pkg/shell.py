"""
Page shell (prelude) compilation and rendering.

The shell is plain HTML with slot markers::

    <title>@@@SLOT_TITLE@@@</title>
    @@@SLOT_STYLES@@@
    @@@IF_DATE@@@<time>@@@SLOT_DATE@@@</time>@@@END_DATE@@@
    @@@IF_TIME_TO_READ@@@<span>@@@SLOT_TIME_TO_READ@@@</span>@@@END_TIME_TO_READ@@@
    <main>@@@SLOT_CONTENT@@@</main>

It is validated and compiled once per run into a Jinja2 template that uses
delimiters which cannot clash with HTML, so substitution is a single pass and
inserted content is never scanned for markers.
"""

import logging
import re

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError
from markupsafe import Markup

from .errors import ConfigurationError, MissingRequiredSlot, ShellTemplateError, UnbalancedBlock, UnknownSlot
from .utils import content_hash

logger = logging.getLogger(__name__)

MARKER_RE = re.compile(r'@@@(SLOT|IF|END)_([A-Z][A-Z0-9_]*)@@@')

REQUIRED_SLOTS = ('CONTENT', 'STYLES')
OPTIONAL_SLOTS = ('TITLE',)
# conditional block name -> template variable holding its value
CONDITIONAL_BLOCKS = {
    'DATE': 'date',
    'TIME_TO_READ': 'time_to_read',
}

DELIMITERS = {
    'block_start_string': '[[%',
    'block_end_string': '%]]',
    'variable_start_string': '[[=',
    'variable_end_string': '=]]',
    'comment_start_string': '[[#',
    'comment_end_string': '#]]',
}

SHELL_ENV = Environment(
    autoescape=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
    **DELIMITERS
)


def _variable(name):
    return f"{DELIMITERS['variable_start_string']} {name} {DELIMITERS['variable_end_string']}"


def _statement(body):
    return f"{DELIMITERS['block_start_string']} {body} {DELIMITERS['block_end_string']}"


def _check_literal(text, source):
    for delimiter in DELIMITERS.values():
        if delimiter in text:
            raise ShellTemplateError(f"shell text contains reserved sequence '{delimiter}'", source)
    return text


def compile_shell(text, source=None):
    """
    Validate a shell and compile it.

    Args:
        text: Shell source
        source: Shell path, for error messages

    Returns:
        CompiledShell

    Raises:
        MissingRequiredSlot: SLOT_CONTENT or SLOT_STYLES is absent
        UnknownSlot: a marker names a slot or block nobody produces
        UnbalancedBlock: IF/END markers do not pair up, or a value slot sits outside its block
    """
    parts = []
    open_blocks = []
    seen = set()
    position = 0

    for match in MARKER_RE.finditer(text):
        parts.append(_check_literal(text[position:match.start()], source))
        position = match.end()
        marker, name = match.group(1), match.group(2)

        if marker == 'SLOT':
            if name in REQUIRED_SLOTS or name in OPTIONAL_SLOTS:
                parts.append(_variable(name.lower()))
            elif name in CONDITIONAL_BLOCKS:
                if name not in open_blocks:
                    raise UnbalancedBlock(f"@@@SLOT_{name}@@@ used outside @@@IF_{name}@@@", source)
                parts.append(_variable(CONDITIONAL_BLOCKS[name]))
            else:
                raise UnknownSlot(f"unknown slot @@@SLOT_{name}@@@", source)
            seen.add(name)
        elif marker == 'IF':
            if name not in CONDITIONAL_BLOCKS:
                raise UnknownSlot(f"unknown conditional block @@@IF_{name}@@@", source)
            if name in open_blocks:
                raise UnbalancedBlock(f"@@@IF_{name}@@@ opened twice", source)
            open_blocks.append(name)
            parts.append(_statement(f"if {CONDITIONAL_BLOCKS[name]} is not none"))
        else:
            if name not in CONDITIONAL_BLOCKS:
                raise UnknownSlot(f"unknown conditional block @@@END_{name}@@@", source)
            if not open_blocks or open_blocks[-1] != name:
                raise UnbalancedBlock(f"@@@END_{name}@@@ does not close the innermost open block", source)
            open_blocks.pop()
            parts.append(_statement('endif'))

    parts.append(_check_literal(text[position:], source))

    if open_blocks:
        raise UnbalancedBlock(f"@@@IF_{open_blocks[-1]}@@@ is never closed", source)
    for name in REQUIRED_SLOTS:
        if name not in seen:
            raise MissingRequiredSlot(f"shell has no @@@SLOT_{name}@@@", source)

    try:
        template = SHELL_ENV.from_string(''.join(parts))
    except TemplateSyntaxError as e:
        raise ShellTemplateError(f"cannot compile shell: {e}", source)
    return CompiledShell(template, seen, content_hash(text))


def load_shell(path):
    """Read and compile the shell at ``path``."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except (IOError, OSError) as e:
        raise ConfigurationError(f"cannot read page shell: {e}", path)
    shell = compile_shell(text, path)
    logger.debug(f"compiled page shell {path} (slots: {', '.join(sorted(shell.slots))})")
    return shell


class CompiledShell:
    def __init__(self, template, slots, source_hash=None):
        self.template = template
        self.slots = frozenset(slots)
        self.source_hash = source_hash

    def render(self, content, styles, front_matter):
        """
        Substitute one page into the shell.

        ``content`` and ``styles`` are inserted as markup; title, date and
        reading time are escaped. Conditional blocks are dropped when their
        field has no value.
        """
        return self.template.render(
            content=Markup(content),
            styles=Markup(styles),
            title=front_matter.title,
            date=front_matter.display_date(),
            time_to_read=front_matter.time_to_read,
        )
