"""
Flask application for the TasiPulse trigger service.

Provides the HTTP endpoints a scheduler calls to run the pipeline, plus
read-only access to the drafts saved by the last draft run.
"""

import hmac
from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS
from tasipulse.config import settings
from tasipulse.scripts.draft_store import DraftStore
from tasipulse.scripts.error_logger import initialize_error_logging, log_exception
from tasipulse.scripts.errors import FatalPipelineError, PipelineBusyError
from tasipulse.scripts.pipeline import is_running, run_pipeline

# Initialize centralized error logging (catches all unhandled exceptions)
initialize_error_logging()

# Initialize Flask app
app = Flask(__name__)

# Request size limit (1MB, triggers carry no payload worth more)
app.config['MAX_CONTENT_LENGTH'] = 1 * 1024 * 1024

# Enable CORS for the drafts review page
CORS(app)


def _provided_secret() -> str:
    """Trigger secret from the header, the query string or a JSON body."""
    secret = request.headers.get('X-Trigger-Secret') or request.args.get('secret')
    if not secret:
        data = request.get_json(silent=True) or {}
        secret = data.get('secret', '') if isinstance(data, dict) else ''
    return secret or ''


def _is_authorized() -> bool:
    expected = settings.TRIGGER_SECRET
    # No secret configured means the endpoint is open (local development)
    if not expected:
        return True
    return hmac.compare_digest(_provided_secret().encode('utf-8'), expected.encode('utf-8'))


@app.route('/health', methods=['GET'])
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON response with status and service information
    """
    return jsonify({
        'status': 'healthy',
        'service': 'tasipulse',
        'version': '1.0.0',
        'pipeline_running': is_running()
    }), 200


@app.route('/run', methods=['POST'])
def run():
    """
    Run the pipeline once, synchronously.

    Returns:
        200 with the run summary, 401 on a bad secret, 409 while another
        run is in progress, 500 when the run failed as a whole
    """
    if not _is_authorized():
        return jsonify({'error': 'Unauthorized'}), 401

    try:
        summary = run_pipeline()
    except PipelineBusyError:
        return jsonify({'error': 'Pipeline already running'}), 409
    except FatalPipelineError as e:
        log_exception(e, context="run")
        return jsonify({
            'success': False,
            'error': str(e),
            'summary': e.summary
        }), 500
    except Exception as e:
        log_exception(e, context="run")
        return jsonify({'success': False, 'error': str(e)}), 500

    return jsonify(summary), 200


@app.route('/api/drafts', methods=['GET'])
def list_drafts():
    """List saved drafts, lowest index first."""
    try:
        return jsonify(DraftStore().list_drafts()), 200
    except OSError as e:
        log_exception(e, context="list_drafts")
        return jsonify({'error': 'Failed to read drafts'}), 500


@app.route('/drafts/file/<path:filename>', methods=['GET'])
def get_draft_file(filename):
    """Serve one draft image or caption file."""
    store = DraftStore()
    path = store.get_file(filename)
    if path is None:
        return jsonify({'error': 'Not found'}), 404
    return send_from_directory(str(store.drafts_dir), path.name)


@app.errorhandler(404)
def not_found(error):
    """Handle 404 errors."""
    return jsonify({'error': 'Not found'}), 404


@app.errorhandler(500)
def internal_error(error):
    """Handle 500 errors."""
    return jsonify({'error': 'Internal server error'}), 500


@app.errorhandler(413)
def request_entity_too_large(error):
    """Handle 413 errors (request too large)."""
    return jsonify({'error': 'Request payload too large'}), 413


@app.after_request
def set_security_headers(response):
    """Add security headers to all responses."""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    return response


if __name__ == '__main__':
    """Run Flask development server."""
    app.run(
        host='0.0.0.0',
        port=settings.PORT,
        debug=False
    )
