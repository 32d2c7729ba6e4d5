import logging

from flask import Blueprint, jsonify

from fleetsim.devicesimulation.application.fleet import FleetRunner

logger = logging.getLogger(__name__)


class DeviceController:
    """
    REST API Controller for simulated devices

    Endpoints:
    - GET /devices - State and counters of every device
    - GET /devices/<device_id> - State and counters of one device
    """

    def __init__(self, fleet_runner: FleetRunner):
        self.fleet_runner = fleet_runner
        self.blueprint = Blueprint('devices', __name__)
        self._register_routes()

    def _register_routes(self):
        """Register all routes for this controller"""
        self.blueprint.add_url_rule(
            '/devices',
            'list_devices',
            self.list_devices,
            methods=['GET']
        )

        self.blueprint.add_url_rule(
            '/devices/<device_id>',
            'get_device',
            self.get_device,
            methods=['GET']
        )

    def list_devices(self):
        """
        GET /devices

        Response (200):
        {
            "devices": [
                {
                    "deviceId": "device1000",
                    "state": "connected",
                    "epoch": 1,
                    "intervalMs": 1003.2,
                    "stats": {"messagesSent": 12, ...}
                }
            ],
            "count": 1
        }
        """
        devices = self.fleet_runner.snapshot()
        return jsonify({
            'devices': devices,
            'count': len(devices)
        }), 200

    def get_device(self, device_id: str):
        """
        GET /devices/<device_id>

        Response (404):
        {"error": "Device not found: device9999"}
        """
        device = self.fleet_runner.get_device(device_id)

        if device is None:
            return jsonify({'error': f"Device not found: {device_id}"}), 404

        return jsonify(device.snapshot()), 200

    def get_blueprint(self):
        """Get Flask Blueprint"""
        return self.blueprint
