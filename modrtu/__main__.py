"""
modrtu - Main entry point for running as a module
"""

import sys
import json
import argparse
import logging

from . import load_env_files
from .config import DEFAULT_PORT_CONFIGS
from .rtu import (
    ModbusMaster, Status, calculate_crc, crc_bytes, unpack_bits,
    find_serial_ports, scan_for_slaves
)

# Configure logging
logger = logging.getLogger(__name__)

READ_COMMANDS = {
    'rc': 'read_coils',
    'rd': 'read_discrete_inputs',
    'rh': 'read_holding_registers',
    'ri': 'read_input_registers',
}

WRITE_COMMANDS = {
    'wc': 'write_single_coil',
    'wr': 'write_single_register',
    'wmc': 'write_multiple_coils',
    'wmr': 'write_multiple_registers',
}


def _parse_int(text: str) -> int:
    return int(text, 0)


def _parse_bool(text: str) -> bool:
    return text.lower() in ('1', 'true', 'on')


def execute_command(master: ModbusMaster, port: int, slave: int, command: str, args):
    """
    Run one Modbus operation described by a short command

    Args:
        master: Master with the port already initialized
        port: Logical port id
        slave: Slave address
        command: rc, rd, rh, ri (address count) or wc, wr (address value)
            or wmc, wmr (address value...)
        args: Command arguments as strings

    Returns:
        Tuple[bool, dict]: Success flag and a JSON-serializable result
    """
    if command in READ_COMMANDS:
        if len(args) != 2:
            return False, {'error': f'{command} expects: address count'}
        address, count = _parse_int(args[0]), _parse_int(args[1])
        status, data = getattr(master, READ_COMMANDS[command])(port, slave, address, count)
        result = {'command': command, 'slave': slave, 'address': address,
                  'count': count, 'status': status.name}
        if status is Status.OK:
            result['values'] = unpack_bits(data, count) if command in ('rc', 'rd') else data
        return status is Status.OK, result

    if command in WRITE_COMMANDS:
        if len(args) < 2:
            return False, {'error': f'{command} expects: address value...'}
        address = _parse_int(args[0])
        if command == 'wc':
            values = _parse_bool(args[1])
        elif command == 'wr':
            values = _parse_int(args[1])
        elif command == 'wmc':
            values = [_parse_bool(arg) for arg in args[1:]]
        else:
            values = [_parse_int(arg) for arg in args[1:]]
        status = getattr(master, WRITE_COMMANDS[command])(port, slave, address, values)
        return status is Status.OK, {'command': command, 'slave': slave, 'address': address,
                                     'values': values, 'status': status.name}

    return False, {'error': f'Unknown command: {command}'}


def _add_port_arguments(parser):
    parser.add_argument('--port', type=int, default=1,
                        choices=sorted(DEFAULT_PORT_CONFIGS), help='Logical Modbus port')
    parser.add_argument('--slave', type=int, default=1, help='Slave address (1-247)')


def main(argv=None):
    """Main entry point for the modrtu module"""
    # Load environment variables
    load_env_files()

    # Parse command line arguments
    parser = argparse.ArgumentParser(description='modrtu - Modbus RTU master')
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Direct command execution
    cmd_parser = subparsers.add_parser('cmd', help='Execute Modbus command directly')
    _add_port_arguments(cmd_parser)
    cmd_parser.add_argument('operation',
                            choices=sorted(list(READ_COMMANDS) + list(WRITE_COMMANDS)),
                            help='rc/rd/rh/ri (read), wc/wr (write single), wmc/wmr (write multiple)')
    cmd_parser.add_argument('args', nargs='*', help='Command arguments')

    # CRC helper
    crc_parser = subparsers.add_parser('crc', help='Compute the Modbus CRC16 of a hex frame')
    crc_parser.add_argument('frame', help='Frame bytes as hex, e.g. 010300000001')

    # Port listing
    subparsers.add_parser('ports', help='List serial ports')

    # Scan command
    scan_parser = subparsers.add_parser('scan', help='Scan for Modbus slaves')
    scan_parser.add_argument('--port', type=int, default=1,
                             choices=sorted(DEFAULT_PORT_CONFIGS), help='Logical Modbus port')
    scan_parser.add_argument('--first', type=int, default=1, help='First slave address')
    scan_parser.add_argument('--last', type=int, default=247, help='Last slave address')

    # REST API command
    rest_parser = subparsers.add_parser('rest', help='Run REST API server')
    rest_parser.add_argument('--port', type=int, default=1,
                             choices=sorted(DEFAULT_PORT_CONFIGS), help='Logical Modbus port')
    rest_parser.add_argument('--host', default='0.0.0.0', help='Host to bind the server')
    rest_parser.add_argument('--api-port', type=int, default=5000, help='Port to bind the server')
    rest_parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    args = parser.parse_args(argv)

    if args.command == 'crc':
        try:
            frame = bytes.fromhex(args.frame)
        except ValueError:
            print(f"Error: invalid hex frame: {args.frame}")
            return 1
        print(json.dumps({
            'frame': frame.hex(),
            'crc': f"0x{calculate_crc(frame):04X}",
            'wire': crc_bytes(frame).hex(),
            'adu': (frame + crc_bytes(frame)).hex()
        }, indent=2))
        return 0

    if args.command == 'ports':
        for device in find_serial_ports():
            print(device)
        return 0

    if args.command not in ('cmd', 'scan', 'rest'):
        # Default to help if no command specified
        parser.print_help()
        return 0

    with ModbusMaster() as master:
        status = master.init(args.port)
        if status is not Status.OK:
            print(json.dumps({'error': f'Failed to initialize port {args.port}',
                              'status': status.name}, indent=2))
            return 1

        if args.command == 'cmd':
            try:
                success, response = execute_command(master, args.port, args.slave,
                                                    args.operation, args.args)
            except ValueError as e:
                success, response = False, {'error': str(e)}
            # Output response as JSON
            print(json.dumps(response, indent=2))
            return 0 if success else 1

        if args.command == 'scan':
            found = scan_for_slaves(master, args.port, range(args.first, args.last + 1))
            print(json.dumps({str(slave): status.name for slave, status in found.items()}, indent=2))
            return 0 if found else 1

        from .api import create_rest_app
        app = create_rest_app(master, args.port, debug=args.debug)
        app.run(host=args.host, port=args.api_port, debug=args.debug)
        return 0


if __name__ == '__main__':
    sys.exit(main())
