import logging
import os

import argh

from eprom_config import build_image
from eprom_image import EpromError


log = logging.getLogger('mkeprom')


if os.name == 'nt':
	DEFAULT_CONFIG = 'EPROM.CFG'
	DEFAULT_OUT = 'EPROM.BIN'
else:
	DEFAULT_CONFIG = 'eprom.cfg'
	DEFAULT_OUT = 'eprom.bin'


def read_config(filename):
	# latin-1 maps every byte, so comments in any 8-bit charset are fine
	try:
		with open(filename, encoding='latin-1') as f:
			return f.read().split('\n')
	except OSError as e:
		raise argh.CommandError("unable to open config file {}: {}".format(filename, e.strerror))


def write_image(filename, data):
	# only a complete image may replace the output file
	tmp = filename + '.tmp'
	try:
		with open(tmp, 'wb') as f:
			f.write(data)
		os.replace(tmp, filename)
	except OSError as e:
		if os.path.exists(tmp):
			os.remove(tmp)
		raise argh.CommandError("unable to write image file {}: {}".format(filename, e.strerror))


@argh.arg('config', nargs='?', default=DEFAULT_CONFIG, help="config file")
@argh.arg('-o', '--out', help="filename for EPROM binary, overrides OUT= in the config")
@argh.arg('-D', '--debug', help="output debug information")
def main(config, *, out=None, debug=False):
	"""Build the EPROM image for the PROXA printer interface"""
	logging.basicConfig(
		level=logging.DEBUG if debug else logging.INFO,
		format='%(levelname)s: %(message)s',
	)
	lines = read_config(config)
	try:
		image, state = build_image(lines, out=out)
	except EpromError as e:
		raise argh.CommandError("{}: {}".format(config, e))
	out = state.out or DEFAULT_OUT
	log.debug("%d byte image for %d, device address %d, autofeed %s",
		len(image), state.chip, state.address, 'on' if state.autofeed else 'off')
	# the image is only written once it is complete
	write_image(out, image.to_bytes())
	return "{} written successfully.".format(out)


def cli():
	argh.dispatch_command(main)


if __name__ == '__main__':
	cli()
