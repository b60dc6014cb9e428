import atexit
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from listing_scraper.orchestration.orchestrator import JobOrchestrator
from listing_scraper.orchestration.status_reporter import StatusReporter
from listing_scraper.routes.scrape import scrape_bp
from listing_scraper.utils.config import get_config
from listing_scraper.utils.logging_config import setup_flask_logging, get_logger

VERSION = '1.0.0'

def create_app(orchestrator: Optional[JobOrchestrator] = None, start_workers: bool = True,
               testing: bool = False):
    """Build the Flask app around one orchestrator and its worker pool"""
    app = Flask(__name__)
    app.testing = testing

    config = get_config()
    CORS(app, origins=config.app.cors_origins)

    app.register_blueprint(scrape_bp, url_prefix='/api')
    setup_flask_logging(app)

    orchestrator = orchestrator or JobOrchestrator(config=config.scraping)
    reporter = StatusReporter(orchestrator.store, orchestrator.queue)
    app.extensions['listing_scraper'] = {'orchestrator': orchestrator, 'reporter': reporter}

    if start_workers:
        orchestrator.start()
        atexit.register(orchestrator.shutdown)

    @app.before_request
    def _log_incoming():
        get_logger().debug(f"{request.method} {request.path}")

    @app.after_request
    def _log_outgoing(response):
        get_logger().debug(f"{request.method} {request.path} -> {response.status_code}")
        return response

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Always 200; reports configuration problems and whether workers are up"""
        validation = config.validate_config()
        summary = validation['config_summary']
        return jsonify({
            'status': 'healthy' if validation['valid'] else 'unhealthy',
            'configuration': {
                'issues': validation['issues'],
                'scraping': summary['scraping'],
                'app': summary['app']
            },
            'workers_running': orchestrator.queue.is_running,
            'version': VERSION
        }), 200

    return app
