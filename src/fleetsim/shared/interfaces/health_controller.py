import logging

from flask import Blueprint, jsonify

import fleetsim

logger = logging.getLogger(__name__)


class HealthController:
    """
    Controller for health and info endpoints
    """

    def __init__(self, fleet_runner):
        """
        Initialize controller with the running fleet

        Args:
            fleet_runner: FleetRunner whose devices are reported
        """
        self.fleet_runner = fleet_runner
        self.blueprint = Blueprint('health', __name__)
        self._register_routes()

    def _register_routes(self):
        """Register all routes"""
        self.blueprint.add_url_rule(
            '/health',
            'health_check',
            self.health_check,
            methods=['GET']
        )

        self.blueprint.add_url_rule(
            '/info',
            'info',
            self.info,
            methods=['GET']
        )

    def health_check(self):
        """
        GET /health

        healthy (200) when every device is connected, degraded (503) otherwise
        """
        try:
            total = len(self.fleet_runner.devices)
            connected = self.fleet_runner.connected_count()
            healthy = self.fleet_runner.is_running() and total > 0 and connected == total

            status = {
                'status': 'healthy' if healthy else 'degraded',
                'fleet_running': self.fleet_runner.is_running(),
                'devices_connected': connected,
                'devices_total': total
            }

            status_code = 200 if healthy else 503
            return jsonify(status), status_code

        except Exception as e:
            logger.error(f"Error in health check: {e}", exc_info=True)
            return jsonify({'error': 'Internal server error'}), 500

    def info(self):
        """
        GET /info

        Application info endpoint
        """
        try:
            roster = self.fleet_runner.roster
            return jsonify({
                'name': 'Device Fleet Simulator',
                'version': fleetsim.__version__,
                'hub': roster.hub_name,
                'publishing': {
                    'frequency_ms': roster.frequency_ms,
                    'randomness_ms': roster.randomness_ms,
                    'reconnect_delay_s': self.fleet_runner.settings.reconnect_delay
                },
                'devices_count': len(self.fleet_runner.devices)
            }), 200

        except Exception as e:
            logger.error(f"Error in info endpoint: {e}", exc_info=True)
            return jsonify({'error': 'Internal server error'}), 500

    def get_blueprint(self):
        """Get Flask Blueprint"""
        return self.blueprint
