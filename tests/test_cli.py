"""
Tests for the modrtu command line interface
"""

import io
import json
import unittest
from unittest.mock import patch, MagicMock

from modrtu.__main__ import main, execute_command
from modrtu.rtu import Status


class TestExecuteCommand(unittest.TestCase):

    def setUp(self):
        self.master = MagicMock()

    def test_read_coils(self):
        self.master.read_coils.return_value = (Status.OK, b'\x03')
        success, result = execute_command(self.master, 1, 2, 'rc', ['0x10', '3'])
        self.assertTrue(success)
        self.assertEqual(result['values'], [True, True, False])
        self.master.read_coils.assert_called_once_with(1, 2, 16, 3)

    def test_read_registers_failure(self):
        self.master.read_input_registers.return_value = (Status.TIMEOUT, None)
        success, result = execute_command(self.master, 1, 1, 'ri', ['0', '1'])
        self.assertFalse(success)
        self.assertEqual(result['status'], 'TIMEOUT')
        self.assertNotIn('values', result)

    def test_write_single(self):
        self.master.write_single_coil.return_value = Status.OK
        self.master.write_single_register.return_value = Status.OK
        self.assertTrue(execute_command(self.master, 1, 1, 'wc', ['5', 'on'])[0])
        self.assertTrue(execute_command(self.master, 1, 1, 'wr', ['5', '0xFF'])[0])
        self.master.write_single_coil.assert_called_once_with(1, 1, 5, True)
        self.master.write_single_register.assert_called_once_with(1, 1, 5, 255)

    def test_write_multiple(self):
        self.master.write_multiple_coils.return_value = Status.OK
        self.master.write_multiple_registers.return_value = Status.ILLEGAL_DATA_VALUE
        self.assertTrue(execute_command(self.master, 1, 1, 'wmc', ['0', '1', '0', 'true'])[0])
        success, result = execute_command(self.master, 1, 1, 'wmr', ['0', '1', '2'])
        self.assertFalse(success)
        self.assertEqual(result['status'], 'ILLEGAL_DATA_VALUE')
        self.master.write_multiple_coils.assert_called_once_with(1, 1, 0, [True, False, True])
        self.master.write_multiple_registers.assert_called_once_with(1, 1, 0, [1, 2])

    def test_missing_arguments(self):
        success, result = execute_command(self.master, 1, 1, 'rh', ['0'])
        self.assertFalse(success)
        self.assertIn('error', result)


@patch('modrtu.__main__.load_env_files')
class TestMain(unittest.TestCase):

    def run_main(self, argv):
        with patch('sys.stdout', new_callable=io.StringIO) as stdout:
            code = main(argv)
        return code, stdout.getvalue()

    def test_crc(self, _):
        code, output = self.run_main(['crc', '010300000001'])
        self.assertEqual(code, 0)
        data = json.loads(output)
        self.assertEqual(data['crc'], '0x0A84')
        self.assertEqual(data['adu'], '010300000001840a')

    def test_crc_invalid_hex(self, _):
        code, _ = self.run_main(['crc', 'zz'])
        self.assertEqual(code, 1)

    @patch('modrtu.__main__.find_serial_ports', return_value=['/dev/ttyUSB0'])
    def test_ports(self, _ports, _env):
        code, output = self.run_main(['ports'])
        self.assertEqual(code, 0)
        self.assertIn('/dev/ttyUSB0', output)

    @patch('modrtu.__main__.ModbusMaster')
    def test_cmd(self, mock_master_class, _):
        master = mock_master_class.return_value.__enter__.return_value
        master.init.return_value = Status.OK
        master.read_holding_registers.return_value = (Status.OK, [1, 2])

        code, output = self.run_main(['cmd', '--port', '2', '--slave', '3', 'rh', '0', '2'])

        self.assertEqual(code, 0)
        self.assertEqual(json.loads(output)['values'], [1, 2])
        master.init.assert_called_once_with(2)
        master.read_holding_registers.assert_called_once_with(2, 3, 0, 2)

    @patch('modrtu.__main__.ModbusMaster')
    def test_cmd_init_failure(self, mock_master_class, _):
        master = mock_master_class.return_value.__enter__.return_value
        master.init.return_value = Status.ERROR

        code, output = self.run_main(['cmd', 'rh', '0', '1'])

        self.assertEqual(code, 1)
        self.assertEqual(json.loads(output)['status'], 'ERROR')
        master.read_holding_registers.assert_not_called()

    @patch('modrtu.__main__.ModbusMaster')
    def test_cmd_bad_number(self, mock_master_class, _):
        master = mock_master_class.return_value.__enter__.return_value
        master.init.return_value = Status.OK
        code, output = self.run_main(['cmd', 'wr', '0', 'abc'])
        self.assertEqual(code, 1)
        self.assertIn('error', json.loads(output))

    @patch('modrtu.__main__.scan_for_slaves', return_value={4: Status.OK})
    @patch('modrtu.__main__.ModbusMaster')
    def test_scan(self, mock_master_class, mock_scan, _):
        master = mock_master_class.return_value.__enter__.return_value
        master.init.return_value = Status.OK

        code, output = self.run_main(['scan', '--first', '1', '--last', '10'])

        self.assertEqual(code, 0)
        self.assertEqual(json.loads(output), {'4': 'OK'})
        mock_scan.assert_called_once_with(master, 1, range(1, 11))


if __name__ == '__main__':
    unittest.main()
