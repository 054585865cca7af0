import sys
import tempfile
import unittest
from pathlib import Path
from subprocess import PIPE, run
from unittest import mock

import argh

import mkeprom as cli
from eprom_image import LISTEN, PRINT, STORE, char_address, control_address


SCRIPT = Path(__file__).resolve().parents[1] / 'mkeprom.py'


def mkeprom(cwd, *args):
	return run(
		[sys.executable, str(SCRIPT)] + list(args),
		cwd=str(cwd),
		stdout=PIPE,
		stderr=PIPE,
		encoding='utf-8',
	)


class TestMkeprom(unittest.TestCase):
	def test_writes_image(self):
		with tempfile.TemporaryDirectory() as td:
			root = Path(td)
			(root / 'proxa.cfg').write_text(
				'; PROXA with a 2732\n'
				'CHIP=2732\n'
				'ADDRESS=4\n'
				'CONVERSION TABLE 1 PETSCII\n'
				'193:42\n',
				encoding='utf-8',
			)
			proc = mkeprom(root, 'proxa.cfg', '-o', 'out.bin')
			self.assertEqual(proc.returncode, 0, msg=proc.stderr)
			self.assertIn('out.bin written successfully.', proc.stdout)

			data = (root / 'out.bin').read_bytes()
			self.assertEqual(len(data), 4096)
			self.assertEqual(data[char_address(0, 1, 193)], 42)
			self.assertEqual(data[char_address(0, 1, 194)], ord('B'))
			self.assertEqual(data[char_address(0, 0, 193)], 193)
			self.assertEqual(data[control_address(0, 0, False, LISTEN + 4)], STORE | PRINT)

	def test_defaults_and_out_directive(self):
		with tempfile.TemporaryDirectory() as td:
			root = Path(td)
			(root / 'eprom.cfg').write_text('CHIP=2764\nADDRESS=20\n', encoding='utf-8')
			proc = mkeprom(root)
			self.assertEqual(proc.returncode, 0, msg=proc.stderr)
			self.assertEqual(len((root / 'eprom.bin').read_bytes()), 8192)

			(root / 'named.cfg').write_text('CHIP=2732\nOUT=named.bin\n', encoding='utf-8')
			proc = mkeprom(root, 'named.cfg')
			self.assertEqual(proc.returncode, 0, msg=proc.stderr)
			self.assertEqual(len((root / 'named.bin').read_bytes()), 4096)

			proc = mkeprom(root, 'named.cfg', '-o', 'override.bin')
			self.assertEqual(proc.returncode, 0, msg=proc.stderr)
			self.assertTrue((root / 'override.bin').exists())

	def test_config_error_writes_nothing(self):
		with tempfile.TemporaryDirectory() as td:
			root = Path(td)
			(root / 'bad.cfg').write_text('CHIP=2732\nAUTOFEED=sometimes\n', encoding='utf-8')
			proc = mkeprom(root, 'bad.cfg', '-o', 'bad.bin')
			self.assertNotEqual(proc.returncode, 0)
			self.assertIn('line 2', proc.stderr)
			self.assertIn('AUTOFEED=sometimes', proc.stderr)
			self.assertFalse((root / 'bad.bin').exists())

	def test_address_error_writes_nothing(self):
		with tempfile.TemporaryDirectory() as td:
			root = Path(td)
			(root / 'bad.cfg').write_text('CHIP=2732\nADDRESS=31\n', encoding='utf-8')
			proc = mkeprom(root, 'bad.cfg', '-o', 'bad.bin')
			self.assertNotEqual(proc.returncode, 0)
			self.assertIn('4-30', proc.stderr)
			self.assertFalse((root / 'bad.bin').exists())

	def test_floppy_address_warning(self):
		with tempfile.TemporaryDirectory() as td:
			root = Path(td)
			(root / 'eprom.cfg').write_text('CHIP=2732\nADDRESS=8\n', encoding='utf-8')
			proc = mkeprom(root)
			self.assertEqual(proc.returncode, 0, msg=proc.stderr)
			self.assertIn('WARNING', proc.stderr)
			self.assertIn('floppy', proc.stderr)

	def test_missing_config(self):
		with tempfile.TemporaryDirectory() as td:
			proc = mkeprom(Path(td), 'missing.cfg')
			self.assertNotEqual(proc.returncode, 0)
			self.assertIn('missing.cfg', proc.stderr)

	def test_latin1_config(self):
		with tempfile.TemporaryDirectory() as td:
			root = Path(td)
			(root / 'eprom.cfg').write_bytes(b'; Umlaute f\xfcr den Drucker\nCHIP=2732\n0x5b|0xc4\n')
			proc = mkeprom(root, '-o', 'umlaut.bin')
			self.assertEqual(proc.returncode, 0, msg=proc.stderr)
			data = (root / 'umlaut.bin').read_bytes()
			self.assertEqual(data[char_address(0, 0, 0x5b)], 0xc4)

	def test_line_numbers_only_count_newlines(self):
		with tempfile.TemporaryDirectory() as td:
			root = Path(td)
			(root / 'eprom.cfg').write_bytes(b'; page\x0cbreak\x1cand\x85more\nCHIP=2732\nAUTOFEED=x\n')
			proc = mkeprom(root)
			self.assertNotEqual(proc.returncode, 0)
			self.assertIn('line 3', proc.stderr)


class TestWriteImage(unittest.TestCase):
	def test_writes_whole_file(self):
		with tempfile.TemporaryDirectory() as td:
			out = Path(td) / 'eprom.bin'
			out.write_bytes(b'old')
			cli.write_image(str(out), bytes(range(256)))
			self.assertEqual(out.read_bytes(), bytes(range(256)))
			self.assertEqual([p.name for p in Path(td).iterdir()], ['eprom.bin'])

	def test_failed_write_leaves_nothing(self):
		with tempfile.TemporaryDirectory() as td:
			out = Path(td) / 'eprom.bin'
			with mock.patch('mkeprom.os.replace', side_effect=OSError(28, 'No space left on device')):
				with self.assertRaises(argh.CommandError) as cm:
					cli.write_image(str(out), bytes(4096))
			self.assertIn('No space left on device', str(cm.exception))
			self.assertEqual(list(Path(td).iterdir()), [])

	def test_failed_write_keeps_old_image(self):
		with tempfile.TemporaryDirectory() as td:
			out = Path(td) / 'eprom.bin'
			out.write_bytes(b'old')
			with mock.patch('mkeprom.os.replace', side_effect=OSError(5, 'Input/output error')):
				with self.assertRaises(argh.CommandError):
					cli.write_image(str(out), bytes(4096))
			self.assertEqual(out.read_bytes(), b'old')
			self.assertEqual([p.name for p in Path(td).iterdir()], ['eprom.bin'])


if __name__ == '__main__':
	unittest.main()
