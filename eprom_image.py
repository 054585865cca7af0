"""EPROM image for the printer interface decode logic.

Every byte of the image is the output of the interface's logic for one
state of its address lines:

	A0-A7    IEEE-488 data lines (inverted, so value v sits at 255 - v)
	A8       Q0, conversion table select bit 0
	A9       Q6, printing enabled
	A10      /ATN, inverted: high while a bus command is being sent
	A11      Q1, conversion table select bit 1
	A12-A15  device address switch, one 4 KB table block per position

The data lines feed back into the latch:

	D0-D1    next conversion table (secondary address)
	D5       autofeed
	D6       printing enabled (next Q6)
	D7       store
"""

import logging
from collections import namedtuple


log = logging.getLogger(__name__)


BLOCK_SIZE = 4096
MAX_TABLES = 16

# address line weights
Q0 = 256
Q6 = 512
ATN = 1024
Q1 = 2048

# {conversion table: offset}, tables 0-3 are the Q1:Q0 pairs
TABLE_OFFSETS = tuple((table & 1) * Q0 + (table >> 1 & 1) * Q1 for table in range(4))

# IEEE-488 commands
LISTEN = 0x20
UNLISTEN = 0x3F
SECONDARY = 0x60
OPEN = 0xF0

# data line bits
STORE = 128
PRINT = 64
AUTOFEED = 32

MIN_ADDRESS = 4
MAX_ADDRESS = 30
# usually taken by floppy drives
FLOPPY_ADDRESSES = range(8, 12)


ChipProfile = namedtuple('ChipProfile', ['chip', 'capacity', 'tables'])

CHIPS = {
	chip: ChipProfile(chip, capacity, capacity // BLOCK_SIZE)
	for chip, capacity in [
		(2732, 4096),
		(2764, 8192),
		(27128, 16384),
		(27256, 32768),
		(27512, 65536),
	]
}
DEFAULT_CHIP = 27512


class EpromError(Exception):
	pass


class ChipError(EpromError):
	pass


class AddressRangeError(EpromError):
	pass


class ImageBoundsError(EpromError):
	pass


def chip_profile(chip):
	try:
		return CHIPS[chip]
	except KeyError:
		raise ChipError("Illegal chip {}, legal values are: {}".format(
			chip, ', '.join(str(c) for c in sorted(CHIPS)),
		))


class Image:
	"""Fixed size, zero filled EPROM contents for one chip."""

	def __init__(self, chip=DEFAULT_CHIP):
		self.profile = chip_profile(chip)
		self.data = bytearray(self.profile.capacity)

	@property
	def table_count(self):
		return self.profile.tables

	def __len__(self):
		return len(self.data)

	def __getitem__(self, addr):
		return self.data[addr]

	def set(self, addr, value):
		if not (0 <= addr < len(self.data)):
			raise ImageBoundsError("Address 0x{:05x} outside {} byte image".format(addr, len(self.data)))
		self.data[addr] = value & 0xff

	def to_bytes(self):
		return bytes(self.data)


def rom_address(block, value, table=0, printing=True, attention=False):
	"""Sum of the address line weights for one logic state.
	Value is the byte on the bus, before inversion.
	"""
	addr = block * BLOCK_SIZE
	if attention:
		addr += ATN
	addr += TABLE_OFFSETS[table]
	if printing:
		addr += Q6
	addr += 255 - value
	return addr


def char_address(block, table, value):
	# characters only get translated while printing is enabled
	return rom_address(block, value, table)


def control_address(block, table, printing, command):
	return rom_address(block, command, table, printing, attention=True)


def set_translation(image, table, translate):
	for block in range(image.table_count):
		for value in range(256):
			image.set(char_address(block, table, value), translate(value))


def set_identity_mapping(image, table):
	set_translation(image, table, lambda value: value)


def petscii_to_ascii(value):
	# shifted letters -> upper case
	if 192 < value < 219:
		return value - 128
	# unshifted letters -> lower case
	if 64 < value < 91:
		return value + 32
	# pi
	if value == 255:
		return ord('~')
	return value


def set_builtin_translation(image, table, translate=petscii_to_ascii):
	set_translation(image, table, translate)


def set_character_remap(image, table, from_, to):
	for name, value in (('from', from_), ('to', to)):
		if not (0 <= value < 256):
			raise ValueError("{} value {} out of range 0-255".format(name, value))
	log.debug("%3d / 0x%02X ---> %3d / 0x%02X", from_, from_, to, to)
	# smaller chips hold fewer than MAX_TABLES blocks
	for block in range(image.table_count):
		image.set(char_address(block, table, from_), to)


def new_image(chip=DEFAULT_CHIP):
	"""Allocate an image with all conversion tables set to raw"""
	image = Image(chip)
	for table in range(len(TABLE_OFFSETS)):
		set_identity_mapping(image, table)
	return image


def effective_addresses(device_address, tables):
	"""Bus address decoded by each table block.
	The address switch is inverted, so block 0 answers to the highest address.
	"""
	addresses = [device_address + tables - 1 - block for block in range(tables)]
	for address in addresses:
		if not (MIN_ADDRESS <= address <= MAX_ADDRESS):
			raise AddressRangeError("Resulting device address {} not in the range of {}-{}".format(
				address, MIN_ADDRESS, MAX_ADDRESS,
			))
	for address in addresses:
		if address in FLOPPY_ADDRESSES:
			log.warning("The resulting device address %d is usually used by floppy drives", address)
	return addresses


def generate_decode_logic(image, device_address, autofeed=False):
	"""Fill in the IEEE-488 command decoding for every table block.

	LISTEN enables printing and resets the conversion table, UNLISTEN
	disables printing. While printing is enabled, the secondary address
	sent with OPEN or SECONDARY selects the conversion table.
	"""
	addresses = effective_addresses(device_address, image.table_count)
	extra = AUTOFEED if autofeed else 0
	for block, address in enumerate(addresses):
		for table in range(len(TABLE_OFFSETS)):
			for printing in (False, True):
				image.set(control_address(block, table, printing, LISTEN + address), PRINT | STORE | extra)
				image.set(control_address(block, table, printing, UNLISTEN), STORE | extra)
				if not printing:
					continue
				for secondary in range(4):
					value = secondary | PRINT | STORE | extra
					image.set(control_address(block, table, printing, OPEN + secondary), value)
					image.set(control_address(block, table, printing, SECONDARY + secondary), value)
	return addresses
