"""
Listing scrape routes.
Handles URL submission, job status polling, manual retries and queue statistics.
"""

from flask import Blueprint, request, jsonify, current_app

from listing_scraper.extraction.errors import JobNotFoundError
from listing_scraper.storage.memory_store import JobStatus
from listing_scraper.utils.logging_config import get_logger

scrape_bp = Blueprint('scrape', __name__)
logger = get_logger()

def _orchestrator():
    return current_app.extensions['listing_scraper']['orchestrator']

def _reporter():
    return current_app.extensions['listing_scraper']['reporter']

@scrape_bp.route('/scrape', methods=['POST'])
def submit_scrape_job():
    """Submit a listing URL for scraping"""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or 'url' not in data:
            return jsonify({'error': 'Missing required field: url'}), 400

        submission = _orchestrator().submit(data['url'])
        if not submission.accepted:
            return jsonify({
                'error': 'Invalid listing URL',
                'validation': submission.validation.to_dict()
            }), 400

        return jsonify(submission.to_dict()), 202

    except Exception as e:
        logger.error(f"Error submitting scrape job: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to submit scrape job', 'details': str(e)}), 500

@scrape_bp.route('/scrape/validate', methods=['POST'])
def validate_listing_url():
    """Validate a URL without creating a job"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or 'url' not in data:
        return jsonify({'error': 'Missing required field: url'}), 400

    outcome = _orchestrator().validator.validate(data['url'])
    return jsonify(outcome.to_dict())

@scrape_bp.route('/scrape/jobs/<job_id>', methods=['GET'])
def get_scrape_job(job_id):
    """Get the current state of a job"""
    snapshot = _reporter().get_status(job_id)
    if snapshot is None:
        return jsonify({'error': 'Job not found'}), 404
    return jsonify(snapshot.to_dict())

@scrape_bp.route('/scrape/jobs', methods=['GET'])
def list_scrape_jobs():
    """List jobs, newest first, with optional status filter"""
    try:
        status_param = request.args.get('status')
        limit = request.args.get('limit', type=int)

        status = None
        if status_param:
            try:
                status = JobStatus(status_param.lower())
            except ValueError:
                valid = ', '.join(s.value for s in JobStatus)
                return jsonify({'error': f'Invalid status. Must be one of: {valid}'}), 400

        snapshots = _reporter().list_jobs(status=status, limit=limit)
        return jsonify({
            'jobs': [snapshot.to_dict(include_result=False) for snapshot in snapshots],
            'total': len(snapshots)
        })

    except Exception as e:
        logger.error(f"Error listing scrape jobs: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to list jobs', 'details': str(e)}), 500

@scrape_bp.route('/scrape/jobs/<job_id>/events', methods=['GET'])
def get_scrape_job_events(job_id):
    """Get lifecycle events for a job"""
    if _reporter().get_status(job_id) is None:
        return jsonify({'error': 'Job not found'}), 404
    events = _reporter().get_events(job_id)
    return jsonify({'job_id': job_id, 'events': [event.to_dict() for event in events]})

@scrape_bp.route('/scrape/jobs/<job_id>/retry', methods=['POST'])
def retry_scrape_job(job_id):
    """Resubmit a finished job"""
    try:
        submission = _orchestrator().retry(job_id)
        return jsonify(submission.to_dict()), 202 if submission.created else 200

    except JobNotFoundError:
        return jsonify({'error': 'Job not found'}), 404
    except Exception as e:
        logger.error(f"Error retrying scrape job {job_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to retry job', 'details': str(e)}), 500

@scrape_bp.route('/scrape/stats', methods=['GET'])
def get_scrape_stats():
    """Get job and worker statistics"""
    return jsonify(_reporter().get_queue_stats())
