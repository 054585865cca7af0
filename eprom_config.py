"""Config file interpreter.

Each line is one of:

	CHIP=<2732|2764|27128|27256|27512>
	OUT=<filename>
	ADDRESS=<device address>
	AUTOFEED=<ON|OFF>
	CONVERSION TABLE <0-3> [statement]
	PETSCII
	RAW / ASCII
	<from>:<to> or <from>|<to>

Keywords are case insensitive, numbers may be decimal, 0x hex or 0 octal.
Lines starting with # or ; are comments.
"""

import logging
import re
from collections import namedtuple
from dataclasses import dataclass
from typing import Optional

from eprom_image import (
	CHIPS, DEFAULT_CHIP, EpromError, TABLE_OFFSETS,
	generate_decode_logic, new_image, set_builtin_translation,
	set_character_remap, set_identity_mapping,
)


log = logging.getLogger(__name__)


COMMENT_CHARS = '#;'

_NUMBER = re.compile(r'^([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)$')
_CONVERSION_TABLE = re.compile(r'^CONVERSION\s+TABLE(?:\s+([^\s:|]+))?(?:[\s:|]+(.*))?$', re.IGNORECASE)


Directive = namedtuple('Directive', ['lineno', 'text', 'kind', 'value'])


class ConfigError(EpromError):
	def __init__(self, lineno, text, reason):
		self.lineno = lineno
		self.text = text
		self.reason = reason
		super().__init__("line {}: {}: '{}'".format(lineno, reason, text.strip()))


@dataclass
class InterpreterState:
	chip: int = DEFAULT_CHIP
	address: int = 4
	autofeed: bool = False
	table: int = 0
	out: Optional[str] = None


def parse_number(text):
	"""Parse an integer the way C's strtol(s, NULL, 0) reads it"""
	match = _NUMBER.match(text.strip())
	if not match:
		raise ValueError("Illegal or no value")
	sign, digits = match.groups()
	if digits[:2].lower() == '0x':
		value = int(digits[2:], 16)
	elif digits.startswith('0'):
		value = int(digits, 8)
	else:
		value = int(digits, 10)
	return -value if sign == '-' else value


def parse_line(text, lineno):
	"""Turn one raw config line into a list of directives"""
	line = text.strip()
	if not line or line[0] in COMMENT_CHARS:
		return []
	return _parse_statement(line, lineno, text)


def _number(value, lineno, text):
	try:
		return parse_number(value)
	except ValueError as e:
		raise ConfigError(lineno, text, str(e))


def _parse_statement(line, lineno, text):
	if '=' in line:
		return [_parse_assignment(line, lineno, text)]

	match = _CONVERSION_TABLE.match(line)
	if match:
		number, rest = match.groups()
		if number is None:
			raise ConfigError(lineno, text, "Syntax error")
		table = _number(number, lineno, text)
		if not (0 <= table < len(TABLE_OFFSETS)):
			raise ConfigError(lineno, text, "Illegal value (must be 0-3)")
		directives = [Directive(lineno, text, 'table', table)]
		# anything after the table number is a statement of its own
		if rest and rest.strip():
			directives += _parse_statement(rest.strip(), lineno, text)
		return directives

	keyword = line.upper()
	if keyword == 'PETSCII':
		return [Directive(lineno, text, 'petscii', None)]
	if keyword in ('RAW', 'ASCII'):
		return [Directive(lineno, text, 'raw', None)]

	return [_parse_remap(line, lineno, text)]


def _parse_assignment(line, lineno, text):
	key, value = line.split('=', 1)
	key, value = key.strip().upper(), value.strip()
	log.debug("'%s'='%s'", key, value)

	if key == 'CHIP':
		try:
			chip = parse_number(value)
		except ValueError:
			raise ConfigError(lineno, text, "Illegal value, legal values are: {}".format(
				', '.join(str(c) for c in sorted(CHIPS)),
			))
		if chip not in CHIPS:
			raise ConfigError(lineno, text, "Illegal chip {}".format(value))
		return Directive(lineno, text, 'chip', chip)
	if key == 'OUT':
		if not value:
			raise ConfigError(lineno, text, "Filename expected")
		return Directive(lineno, text, 'out', value)
	if key == 'ADDRESS':
		# range is checked when generating the logic
		return Directive(lineno, text, 'address', _number(value, lineno, text))
	if key == 'AUTOFEED':
		flag = value.upper()
		if flag not in ('ON', 'OFF'):
			raise ConfigError(lineno, text, "Syntax error")
		return Directive(lineno, text, 'autofeed', flag == 'ON')
	raise ConfigError(lineno, text, "Unknown identifier '{}'".format(key))


def _parse_remap(line, lineno, text):
	sep = ':' if ':' in line else '|' if '|' in line else None
	if sep is None:
		raise ConfigError(lineno, text, "Syntax error")
	from_, to = line.split(sep, 1)
	from_, to = _number(from_, lineno, text), _number(to, lineno, text)
	for value in (from_, to):
		if not (0 <= value < 256):
			raise ConfigError(lineno, text, "Character value {} out of range 0-255".format(value))
	return Directive(lineno, text, 'remap', (from_, to))


def parse_config(lines):
	directives = []
	for lineno, text in enumerate(lines, 1):
		directives += parse_line(text, lineno)
	return directives


def apply_directive(directive, state, image):
	kind, value = directive.kind, directive.value
	if kind == 'chip':
		state.chip = value
	elif kind == 'out':
		# an explicitly given filename wins
		if state.out is None:
			state.out = value
	elif kind == 'address':
		state.address = value
	elif kind == 'autofeed':
		state.autofeed = value
	elif kind == 'table':
		log.debug("Conversion Table: %d", value)
		state.table = value
	elif kind == 'petscii':
		log.debug("PETSCII")
		set_builtin_translation(image, state.table)
	elif kind == 'raw':
		log.debug("RAW")
		set_identity_mapping(image, state.table)
	elif kind == 'remap':
		set_character_remap(image, state.table, *value)
	else:
		raise ValueError("Unknown directive kind {!r}".format(kind))


def build_image(lines, out=None):
	"""Run a whole config and return (image, final state).
	All config errors are raised before the image is touched.
	"""
	directives = parse_config(lines)

	# the last CHIP wins, and the image can't change size once allocated
	chip = DEFAULT_CHIP
	for directive in directives:
		if directive.kind == 'chip':
			chip = directive.value
	image = new_image(chip)

	state = InterpreterState(out=out)
	for directive in directives:
		apply_directive(directive, state, image)

	generate_decode_logic(image, state.address, state.autofeed)
	return image, state
