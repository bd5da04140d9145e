"""
Download Management API
=======================

REST API endpoints for download queue management and control.

Endpoints:
- POST   /api/downloads/queue                 - Hand a source to a download client
- GET    /api/downloads/queue                 - Get queue items
- GET    /api/downloads/queue/<id>            - Get specific queue item
- DELETE /api/downloads/queue/<id>            - Remove queue item (and client download)
- POST   /api/downloads/queue/<id>/pause      - Pause download
- POST   /api/downloads/queue/<id>/resume     - Resume download
- POST   /api/downloads/queue/<id>/import     - Import a Completed item now
- GET    /api/downloads/history               - Import ledger
- POST   /api/downloads/clients/<name>/test   - Test client connection
- POST   /api/downloads/poll                  - Poll clients immediately
- GET    /api/downloads/status                - Get service status
- POST   /api/downloads/service/start         - Start monitoring service
- POST   /api/downloads/service/stop          - Stop monitoring service
- POST   /api/downloads/service/reload        - Reload configuration
"""

from flask import Blueprint, request, jsonify

from services.service_manager import get_download_management_service
from utils.logger import get_module_logger

logger = get_module_logger("API.DownloadManagement")

# Create blueprint
download_management_bp = Blueprint('download_management', __name__)


def _status_code(result):
    return 200 if result.get('success') else 400


# ============================================================================
# QUEUE MANAGEMENT ENDPOINTS
# ============================================================================

@download_management_bp.route('/queue', methods=['POST'])
def add_to_queue():
    """
    Add an event download to the queue.

    Request JSON:
    {
        "event_id": 12,                         # Required: Library event
        "source_uri": "magnet:?xt=...",         # Required: magnet, .torrent or .nzb URL
        "client": "qbittorrent",                # Optional: Download client name
        "title": "UFC 300",                     # Optional: Display title
        "category": "boutarchive"               # Optional: Client category
    }
    """
    try:
        data = request.get_json(silent=True)

        if not data:
            return jsonify({
                'success': False,
                'error': 'No JSON data provided'
            }), 400

        event_id = data.get('event_id')
        source_uri = data.get('source_uri')
        if event_id is None or not source_uri:
            return jsonify({
                'success': False,
                'error': 'event_id and source_uri are required'
            }), 400

        dm_service = get_download_management_service()
        result = dm_service.add_to_queue(
            int(event_id),
            source_uri,
            client_name=data.get('client'),
            title=data.get('title'),
            category=data.get('category'),
        )
        return jsonify(result), _status_code(result)

    except Exception as e:
        logger.error(f"Error adding to download queue: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/queue', methods=['GET'])
def get_queue():
    """
    Get download queue items with optional filtering.

    Query Parameters:
    - status: Comma separated statuses (e.g. Downloading,Completed)
    - client: Download client name
    """
    status_param = request.args.get('status')
    status_filter = [s.strip() for s in status_param.split(',') if s.strip()] if status_param else None

    try:
        dm_service = get_download_management_service()
        queue_items = dm_service.get_queue(
            status_filter=status_filter,
            client_name=request.args.get('client')
        )
    except ValueError as e:
        return jsonify({
            'success': False,
            'error': str(e)
        }), 400
    except Exception as e:
        logger.error(f"Error getting download queue: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500

    return jsonify({
        'success': True,
        'downloads': queue_items,
        'total': len(queue_items)
    })


@download_management_bp.route('/queue/<int:queue_id>', methods=['GET'])
def get_download(queue_id: int):
    try:
        dm_service = get_download_management_service()
        download = dm_service.get_download(queue_id)

        if not download:
            return jsonify({
                'success': False,
                'error': 'Download not found'
            }), 404

        return jsonify({
            'success': True,
            'download': download
        })

    except Exception as e:
        logger.error(f"Error getting download {queue_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/queue/<int:queue_id>', methods=['DELETE'])
def remove_download(queue_id: int):
    """
    Remove a download from its client and the queue.

    Query Parameters:
    - delete_files: Also delete downloaded data (default: false)
    """
    try:
        delete_files = request.args.get('delete_files', 'false').lower() in ('1', 'true', 'yes')
        dm_service = get_download_management_service()
        result = dm_service.remove_download(queue_id, delete_files=delete_files)
        return jsonify(result), _status_code(result)

    except Exception as e:
        logger.error(f"Error removing download {queue_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/queue/<int:queue_id>/pause', methods=['POST'])
def pause_download(queue_id: int):
    """Pause a Queued or Downloading item."""
    try:
        dm_service = get_download_management_service()
        result = dm_service.pause_download(queue_id)
        return jsonify(result), _status_code(result)

    except Exception as e:
        logger.error(f"Error pausing download {queue_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/queue/<int:queue_id>/resume', methods=['POST'])
def resume_download(queue_id: int):
    try:
        dm_service = get_download_management_service()
        result = dm_service.resume_download(queue_id)
        return jsonify(result), _status_code(result)

    except Exception as e:
        logger.error(f"Error resuming download {queue_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/queue/<int:queue_id>/import', methods=['POST'])
def import_download(queue_id: int):
    """
    Import a Completed item on the request thread.

    Returns:
    {
        "success": true,
        "queue_id": 7,
        "destination": "/library/UFC 300/UFC 300 - 2024-04-13 - WEBDL-1080p.mkv"
    }
    """
    try:
        dm_service = get_download_management_service()
        result = dm_service.import_now(queue_id)
        return jsonify(result), _status_code(result)

    except Exception as e:
        logger.error(f"Error importing download {queue_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


# ============================================================================
# HISTORY & CLIENT ENDPOINTS
# ============================================================================

@download_management_bp.route('/history', methods=['GET'])
def get_history():
    """
    Import ledger entries, newest first.

    Query Parameters:
    - event_id: Only records for this event
    - limit: Maximum number of results (default: 100)
    """
    try:
        event_id = request.args.get('event_id', type=int)
        limit = request.args.get('limit', default=100, type=int)

        dm_service = get_download_management_service()
        history = dm_service.get_history(event_id=event_id, limit=limit)
        return jsonify({
            'success': True,
            'history': history,
            'total': len(history)
        })

    except Exception as e:
        logger.error(f"Error getting import history: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/clients/<string:client_name>/test', methods=['POST'])
def test_client(client_name: str):
    try:
        dm_service = get_download_management_service()
        result = dm_service.test_client(client_name)
        return jsonify(result), _status_code(result)

    except Exception as e:
        logger.error(f"Error testing download client {client_name}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/poll', methods=['POST'])
def poll_now():
    """Poll one client (?client=name) or every enabled client right away."""
    try:
        dm_service = get_download_management_service()
        results = dm_service.poll_now(request.args.get('client'))
        return jsonify({
            'success': True,
            'results': results
        })

    except Exception as e:
        logger.error(f"Error polling download clients: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


# ============================================================================
# SERVICE CONTROL ENDPOINTS
# ============================================================================

@download_management_bp.route('/status', methods=['GET'])
def get_service_status():
    try:
        dm_service = get_download_management_service()
        return jsonify({
            'success': True,
            'status': dm_service.get_service_status()
        })

    except Exception as e:
        logger.error(f"Error getting service status: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/service/start', methods=['POST'])
def start_service():
    try:
        dm_service = get_download_management_service()
        dm_service.start_monitoring()
        return jsonify({
            'success': True,
            'message': 'Download monitoring started'
        })

    except Exception as e:
        logger.error(f"Error starting download monitoring: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/service/stop', methods=['POST'])
def stop_service():
    try:
        dm_service = get_download_management_service()
        dm_service.stop_monitoring()
        return jsonify({
            'success': True,
            'message': 'Download monitoring stopped'
        })

    except Exception as e:
        logger.error(f"Error stopping download monitoring: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500


@download_management_bp.route('/service/reload', methods=['POST'])
def reload_service():
    """Re-read [download_management] and client sections from config.txt."""
    try:
        dm_service = get_download_management_service()
        if not dm_service.reload_configuration():
            return jsonify({
                'success': False,
                'error': 'Failed to reload download management configuration'
            }), 500
        return jsonify({
            'success': True,
            'message': 'Download management configuration reloaded'
        })

    except Exception as e:
        logger.error(f"Error reloading download management configuration: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 500
