"""
modrtu.api.rest - REST API on top of the Modbus RTU master
"""

import logging

from flask import Flask, request, jsonify

from ..rtu import ModbusMaster, Status, unpack_bits

# Configure logging
logger = logging.getLogger(__name__)


def http_status(status: Status) -> int:
    """HTTP status code reported for a Modbus status"""
    if status is Status.OK:
        return 200
    if status is Status.INVALID_PARAM:
        return 400
    if status is Status.NOT_INITIALIZED:
        return 409
    if status is Status.TIMEOUT:
        return 504
    if status.is_exception:
        return 502
    return 500


def error_response(status: Status, message: str):
    return jsonify({
        'error': message,
        'status': status.name,
        'description': status.description
    }), http_status(status)


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.lower() in ('1', 'true', 'on')
    return bool(value)


def create_rest_app(master: ModbusMaster, port: int, debug: bool = False) -> Flask:
    """
    Create Flask application for one Modbus port

    Args:
        master: Master owning the port (the port should already be initialized)
        port: Logical port the endpoints talk to
        debug: Enable debug mode (default: False)

    Returns:
        Flask application
    """
    app = Flask(__name__)

    # Configure logging
    if not debug:
        log = logging.getLogger('werkzeug')
        log.setLevel(logging.ERROR)

    def unit_arg() -> int:
        return request.args.get('unit', default=1, type=int)

    @app.route('/api/status', methods=['GET'])
    def get_status():
        """Get port configuration and state"""
        config = master.port_configs.get(port)
        return jsonify({
            'port': port,
            'status': 'initialized' if master.is_initialized(port) else 'not initialized',
            'device': config.device if config else None,
            'baudrate': config.baudrate if config else None,
            'parity': config.parity if config else None
        })

    def read_bits(kind: str, reader, address: int, count: int):
        unit = unit_arg()
        status, data = reader(port, unit, address, count)
        if status is not Status.OK:
            return error_response(status, f'Failed to read {kind}')
        values = unpack_bits(data, count)
        return jsonify({
            'address': address,
            'count': count,
            'values': values,
            'values_dict': {str(i): val for i, val in enumerate(values, address)},
            'unit': unit
        })

    def read_registers(kind: str, reader, address: int, count: int):
        unit = unit_arg()
        status, values = reader(port, unit, address, count)
        if status is not Status.OK:
            return error_response(status, f'Failed to read {kind}')
        return jsonify({
            'address': address,
            'count': count,
            'values': values,
            'values_dict': {str(i): val for i, val in enumerate(values, address)},
            'hex_values': [f"0x{val:04X}" for val in values],
            'unit': unit
        })

    @app.route('/api/coils/<int:address>/<int:count>', methods=['GET'])
    def read_coils(address, count):
        """Read multiple coils"""
        return read_bits('coils', master.read_coils, address, count)

    @app.route('/api/discrete_inputs/<int:address>/<int:count>', methods=['GET'])
    def read_discrete_inputs(address, count):
        """Read discrete inputs"""
        return read_bits('discrete inputs', master.read_discrete_inputs, address, count)

    @app.route('/api/holding_registers/<int:address>/<int:count>', methods=['GET'])
    def read_holding_registers(address, count):
        """Read holding registers"""
        return read_registers('holding registers', master.read_holding_registers, address, count)

    @app.route('/api/input_registers/<int:address>/<int:count>', methods=['GET'])
    def read_input_registers(address, count):
        """Read input registers"""
        return read_registers('input registers', master.read_input_registers, address, count)

    @app.route('/api/coils/<int:address>', methods=['POST'])
    def write_coil(address):
        """Write single coil"""
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({'error': 'Invalid JSON data'}), 400
        if 'value' not in data:
            return jsonify({'error': 'Missing value parameter'}), 400

        value = _parse_bool(data['value'])
        unit = data.get('unit', 1)
        if not isinstance(unit, int) or isinstance(unit, bool):
            return jsonify({'error': 'Unit must be an integer'}), 400

        status = master.write_single_coil(port, unit, address, value)
        if status is not Status.OK:
            return error_response(status, f'Failed to write coil {address}')
        return jsonify({
            'success': True,
            'address': address,
            'value': value,
            'value_display': 'ON' if value else 'OFF',
            'unit': unit
        })

    @app.route('/api/coils/<int:address>/multiple', methods=['POST'])
    def write_coils(address):
        """Write multiple coils"""
        data = request.get_json(silent=True)
        if data is None or not isinstance(data.get('values'), list):
            return jsonify({'error': 'Missing values list'}), 400

        values = [_parse_bool(value) for value in data['values']]
        unit = data.get('unit', 1)
        if not isinstance(unit, int) or isinstance(unit, bool):
            return jsonify({'error': 'Unit must be an integer'}), 400

        status = master.write_multiple_coils(port, unit, address, values)
        if status is not Status.OK:
            return error_response(status, f'Failed to write coils from {address}')
        return jsonify({
            'success': True,
            'address': address,
            'count': len(values),
            'values': values,
            'unit': unit
        })

    @app.route('/api/holding_registers/<int:address>', methods=['POST'])
    def write_holding_register(address):
        """Write holding register"""
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({'error': 'Invalid JSON data'}), 400
        if 'value' not in data:
            return jsonify({'error': 'Missing value parameter'}), 400

        try:
            value = int(data['value'])
        except (TypeError, ValueError):
            return jsonify({'error': 'Value must be an integer'}), 400
        unit = data.get('unit', 1)
        if not isinstance(unit, int) or isinstance(unit, bool):
            return jsonify({'error': 'Unit must be an integer'}), 400

        status = master.write_single_register(port, unit, address, value)
        if status is not Status.OK:
            return error_response(status, f'Failed to write register {address}')
        return jsonify({
            'success': True,
            'address': address,
            'value': value,
            'value_hex': f"0x{value:04X}",
            'unit': unit
        })

    @app.route('/api/holding_registers/<int:address>/multiple', methods=['POST'])
    def write_holding_registers(address):
        """Write multiple holding registers"""
        data = request.get_json(silent=True)
        if data is None or not isinstance(data.get('values'), list):
            return jsonify({'error': 'Missing values list'}), 400

        try:
            values = [int(value) for value in data['values']]
        except (TypeError, ValueError):
            return jsonify({'error': 'Values must be integers'}), 400
        unit = data.get('unit', 1)
        if not isinstance(unit, int) or isinstance(unit, bool):
            return jsonify({'error': 'Unit must be an integer'}), 400

        status = master.write_multiple_registers(port, unit, address, values)
        if status is not Status.OK:
            return error_response(status, f'Failed to write registers from {address}')
        return jsonify({
            'success': True,
            'address': address,
            'count': len(values),
            'values': values,
            'unit': unit
        })

    @app.route('/api/docs', methods=['GET'])
    def get_docs():
        """Get API documentation"""
        return jsonify({
            'endpoints': [
                {'path': '/api/status', 'method': 'GET',
                 'description': 'Get port configuration and state'},
                {'path': '/api/coils/<address>/<count>', 'method': 'GET',
                 'description': 'Read coils', 'params': ['unit (query, optional)']},
                {'path': '/api/discrete_inputs/<address>/<count>', 'method': 'GET',
                 'description': 'Read discrete inputs', 'params': ['unit (query, optional)']},
                {'path': '/api/holding_registers/<address>/<count>', 'method': 'GET',
                 'description': 'Read holding registers', 'params': ['unit (query, optional)']},
                {'path': '/api/input_registers/<address>/<count>', 'method': 'GET',
                 'description': 'Read input registers', 'params': ['unit (query, optional)']},
                {'path': '/api/coils/<address>', 'method': 'POST',
                 'description': 'Write single coil',
                 'body': {'value': 'boolean/int/string', 'unit': 'int (optional)'}},
                {'path': '/api/coils/<address>/multiple', 'method': 'POST',
                 'description': 'Write multiple coils',
                 'body': {'values': 'list of boolean/int/string', 'unit': 'int (optional)'}},
                {'path': '/api/holding_registers/<address>', 'method': 'POST',
                 'description': 'Write holding register',
                 'body': {'value': 'int', 'unit': 'int (optional)'}},
                {'path': '/api/holding_registers/<address>/multiple', 'method': 'POST',
                 'description': 'Write multiple holding registers',
                 'body': {'values': 'list of int', 'unit': 'int (optional)'}},
            ]
        })

    return app
