"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server with WebSocket support for scratchnet networks.

This module provides endpoints for:
- Creating, inspecting and deleting in-memory networks
- Setting weights from matrix literals or randomizing them
- Training networks with real-time progress updates via WebSockets
- Running inference on a network

Networks live only in this process's memory; nothing is written to disk.

The server uses:
- Flask for REST API endpoints
- Flask-SocketIO for WebSocket communication
- Gevent for cooperative background training tasks
"""

import os
import sys
import uuid
import logging
from typing import Dict, Any, List, Optional

import gevent
import numpy as np
from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

from scratchnet.exceptions import MatrixError
from scratchnet.matrix import Matrix
from scratchnet.network import NeuralNetwork
from scratchnet.xor_data import load_xor_data

# ============================================================================
# LOGGING SETUP
# ============================================================================

def configure_logging() -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    is_production = os.getenv('FLASK_ENV') == 'production'

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if is_production:
        for logger_name in ['socketio', 'engineio', 'engineio.server',
                            'socketio.server', 'werkzeug']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        logging.getLogger('scratchnet').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": "*"}})

is_production = os.getenv('FLASK_ENV') == 'production'

# SocketIO pushes per-epoch training updates to connected clients
socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode='gevent',
    logger=not is_production,
    engineio_logger=not is_production,
    ping_timeout=60,
    ping_interval=25
)

# ============================================================================
# GLOBAL STATE
# ============================================================================

# Networks currently loaded in memory: {network_id: network_info}
active_networks: Dict[str, Dict[str, Any]] = {}

# Training jobs being tracked: {job_id: job_info}
training_jobs: Dict[str, Dict[str, Any]] = {}

MAX_NUM_INPUTS = 64
MAX_NUM_LAYERS = 16
DEFAULT_DECIMAL_PLACES = 10


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def network_summary(
    network_id: str,
    decimal_places: Optional[int] = None
) -> Dict[str, Any]:
    """
    Describe a network for JSON responses.

    Args:
        network_id: Identifier of a network in active_networks
        decimal_places: If given, include the weights as matrix literals
            rendered with this many decimal places

    Returns:
        dict: Network metadata
    """
    info = active_networks[network_id]
    net = info['network']
    summary = {
        'network_id': network_id,
        'num_inputs': net.num_inputs,
        'num_layers': net.num_layers,
        'trained': info['trained'],
        'error': info['error']
    }
    if decimal_places is not None:
        summary['weights'] = [
            weight.to_canonical_string(decimal_places)
            for weight in net.get_weights()
        ]
    return summary


def parse_training_data(raw: Any, num_inputs: int) -> List[tuple]:
    """
    Validate a JSON training set of ``[[inputs], [targets]]`` pairs.

    Raises:
        ValueError: If the data is not a list of pairs of numeric vectors of
            length num_inputs
    """
    if not isinstance(raw, list) or not raw:
        raise ValueError('data must be a non-empty list of [inputs, targets] pairs')

    data = []
    for index, pair in enumerate(raw):
        if not isinstance(pair, list) or len(pair) != 2:
            raise ValueError(f'data[{index}] must be an [inputs, targets] pair')
        inputs, targets = pair
        for name, vector in (('inputs', inputs), ('targets', targets)):
            if (not isinstance(vector, list) or len(vector) != num_inputs or
                    not all(isinstance(v, (int, float)) for v in vector)):
                raise ValueError(
                    f'data[{index}] {name} must be {num_inputs} numbers'
                )
        data.append(([float(v) for v in inputs], [float(v) for v in targets]))
    return data


def cleanup_finished_training_jobs() -> None:
    """
    Remove completed or failed training jobs from memory.

    This prevents the training_jobs dictionary from growing indefinitely.
    Only removes jobs that are no longer active (completed or failed).
    """
    finished_statuses = {'completed', 'failed'}
    jobs_to_remove = [
        job_id for job_id, job_info in training_jobs.items()
        if job_info.get('status') in finished_statuses
    ]

    for job_id in jobs_to_remove:
        del training_jobs[job_id]

    if jobs_to_remove:
        logger.info(f"Cleaned up {len(jobs_to_remove)} finished training job(s)")


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/api/status', methods=['GET'])
def get_status():
    """
    Return server status and statistics.

    Returns counts of active networks and training jobs that are
    currently in progress (status='pending' or 'training').
    """
    active_statuses = ('pending', 'training')
    active_training = sum(
        1 for job in training_jobs.values()
        if job.get('status') in active_statuses
    )

    return jsonify({
        'status': 'online',
        'active_networks': len(active_networks),
        'training_jobs': active_training
    }), 200


@app.route('/api/networks', methods=['POST'])
def create_network():
    """
    Create a new neural network.

    Request body (all optional):
        {
            'num_inputs': 2,
            'num_layers': 2,
            'randomize': true,
            'seed': 42
        }

    Returns:
        JSON with network_id, shape, and status
    """
    data = request.get_json(silent=True) or {}
    num_inputs = data.get('num_inputs', 2)
    num_layers = data.get('num_layers', 2)
    randomize = data.get('randomize', True)
    seed = data.get('seed')

    if (not isinstance(num_inputs, int) or isinstance(num_inputs, bool) or
            not 1 <= num_inputs <= MAX_NUM_INPUTS):
        logger.warning(f"Invalid num_inputs requested: {num_inputs}")
        return jsonify({
            'error': f'num_inputs must be an integer between 1 and {MAX_NUM_INPUTS}'
        }), 400
    if (not isinstance(num_layers, int) or isinstance(num_layers, bool) or
            not 1 <= num_layers <= MAX_NUM_LAYERS):
        logger.warning(f"Invalid num_layers requested: {num_layers}")
        return jsonify({
            'error': f'num_layers must be an integer between 1 and {MAX_NUM_LAYERS}'
        }), 400
    if seed is not None and not isinstance(seed, int):
        return jsonify({'error': 'seed must be an integer'}), 400

    network_id = str(uuid.uuid4())
    net = NeuralNetwork(num_inputs, num_layers, rng=np.random.default_rng(seed))
    if randomize:
        net.randomize_weights()

    active_networks[network_id] = {
        'network': net,
        'trained': False,
        'error': None
    }

    logger.info(
        f"Created network {network_id} with {num_layers} layer(s) "
        f"of width {num_inputs}"
    )

    return jsonify({
        'network_id': network_id,
        'num_inputs': num_inputs,
        'num_layers': num_layers,
        'status': 'created'
    }), 201


@app.route('/api/networks', methods=['GET'])
def list_networks():
    """List all networks held in memory."""
    networks = [network_summary(nid) for nid in active_networks]
    logger.debug(f"Listing {len(networks)} network(s)")
    return jsonify({'networks': networks}), 200


@app.route('/api/networks/<network_id>', methods=['GET'])
def get_network(network_id: str):
    """
    Return one network's metadata and weights.

    Query parameters:
        decimal_places: precision of the weight literals (default 10)
    """
    if network_id not in active_networks:
        return jsonify({'error': 'Network not found'}), 404

    decimal_places = request.args.get(
        'decimal_places', DEFAULT_DECIMAL_PLACES, type=int
    )
    if decimal_places < 0:
        return jsonify({'error': 'decimal_places must be non-negative'}), 400

    return jsonify(network_summary(network_id, decimal_places)), 200


@app.route('/api/networks/<network_id>', methods=['DELETE'])
def delete_network_endpoint(network_id: str):
    """Delete a network from memory."""
    if network_id not in active_networks:
        logger.warning(f"Delete attempted for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    del active_networks[network_id]
    logger.info(f"Deleted network {network_id}")

    return jsonify({'network_id': network_id, 'deleted': True}), 200


@app.route('/api/networks', methods=['DELETE'])
def delete_all_networks():
    """Delete all networks from memory."""
    deleted_count = len(active_networks)
    active_networks.clear()

    logger.info(f"Deleted all networks: {deleted_count} total")

    return jsonify({
        'deleted_count': deleted_count,
        'message': f'Successfully deleted {deleted_count} network(s)'
    }), 200


@app.route('/api/networks/<network_id>/weights', methods=['PUT'])
def set_network_weights(network_id: str):
    """
    Replace a network's weights.

    Request body:
        {'weights': ['[[1,0.75],[0.5,0.25]]', '[[0.25,0.5],[0.75,1]]']}

    Each entry is a matrix literal for one layer, first layer first.
    """
    if network_id not in active_networks:
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    literals = data.get('weights')
    if not isinstance(literals, list) or not all(isinstance(s, str) for s in literals):
        return jsonify({'error': 'weights must be a list of matrix literals'}), 400

    net = active_networks[network_id]['network']
    try:
        matrices = [Matrix.from_literal(text) for text in literals]
        net.set_weights(matrices)
    except ValueError as e:
        logger.warning(f"Rejected weights for network {network_id}: {e}")
        return jsonify({'error': str(e)}), 400

    active_networks[network_id]['trained'] = False
    active_networks[network_id]['error'] = None
    logger.info(f"Set weights for network {network_id}")

    return jsonify(network_summary(network_id, DEFAULT_DECIMAL_PLACES)), 200


@app.route('/api/networks/<network_id>/randomize', methods=['POST'])
def randomize_network_weights(network_id: str):
    """
    Draw fresh random weights.

    Request body (optional):
        {'seed': 42}
    """
    if network_id not in active_networks:
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    seed = data.get('seed')
    if seed is not None and not isinstance(seed, int):
        return jsonify({'error': 'seed must be an integer'}), 400

    net = active_networks[network_id]['network']
    rng = np.random.default_rng(seed) if seed is not None else None
    net.randomize_weights(rng)

    active_networks[network_id]['trained'] = False
    active_networks[network_id]['error'] = None
    logger.info(f"Randomized weights for network {network_id}")

    return jsonify(network_summary(network_id, DEFAULT_DECIMAL_PLACES)), 200


@app.route('/api/networks/<network_id>/execute', methods=['POST'])
def execute_network(network_id: str):
    """
    Run inference.

    Request body:
        {'inputs': [1, 0]}

    Returns:
        JSON with the output vector and the index of its largest value
    """
    if network_id not in active_networks:
        logger.warning(f"Execute requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    net = active_networks[network_id]['network']
    if not net.weights:
        return jsonify({'error': 'Network has no weights'}), 400

    data = request.get_json(silent=True) or {}
    inputs = data.get('inputs')
    if (not isinstance(inputs, list) or len(inputs) != net.num_inputs or
            not all(isinstance(v, (int, float)) for v in inputs)):
        return jsonify({
            'error': f'inputs must be a list of {net.num_inputs} numbers'
        }), 400

    try:
        output = net.execute([float(v) for v in inputs])
    except MatrixError as e:
        logger.warning(f"Execute failed for network {network_id}: {e}")
        return jsonify({'error': str(e)}), 400

    values = output.as_flat_sequence()
    return jsonify({
        'network_id': network_id,
        'inputs': inputs,
        'output': values,
        'output_literal': output.to_canonical_string(DEFAULT_DECIMAL_PLACES),
        'predicted_class': int(np.argmax(values))
    }), 200


@app.route('/api/networks/<network_id>/train', methods=['POST'])
def train_network(network_id: str):
    """
    Start training a network in the background.

    Request body (all optional):
        {
            'data': [[[1, 1], [0, 1]], ...],
            'epochs': 1000,
            'learning_rate': 0.1
        }

    Without 'data' the XOR truth table is used.

    Returns:
        JSON with job_id, network_id, and status
    """
    if network_id not in active_networks:
        logger.warning(f"Training requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    net = active_networks[network_id]['network']
    if not net.weights:
        return jsonify({'error': 'Network has no weights'}), 400

    data = request.get_json(silent=True) or {}
    epochs = data.get('epochs', 1000)
    learning_rate = data.get('learning_rate', 0.1)

    if not isinstance(epochs, int) or isinstance(epochs, bool) or epochs < 1:
        return jsonify({'error': 'epochs must be a positive integer'}), 400
    if not isinstance(learning_rate, (int, float)) or learning_rate <= 0:
        return jsonify({'error': 'learning_rate must be a positive number'}), 400

    if 'data' in data:
        try:
            training_data = parse_training_data(data['data'], net.num_inputs)
        except ValueError as e:
            return jsonify({'error': str(e)}), 400
    elif net.num_inputs == 2:
        training_data = load_xor_data()
    else:
        return jsonify({
            'error': 'data is required for networks with num_inputs != 2'
        }), 400

    cleanup_finished_training_jobs()
    job_id = str(uuid.uuid4())

    training_jobs[job_id] = {
        'network_id': network_id,
        'status': 'pending',
        'progress': 0,
        'epochs': epochs
    }

    logger.info(
        f"Created training job {job_id} for network {network_id}: "
        f"epochs={epochs}, lr={learning_rate}, examples={len(training_data)}"
    )

    # Run training in background so we can return immediately
    socketio.start_background_task(
        train_network_task,
        network_id, job_id, training_data, epochs, float(learning_rate)
    )

    return jsonify({
        'job_id': job_id,
        'network_id': network_id,
        'status': 'training_started'
    }), 202


def train_network_task(
    network_id: str,
    job_id: str,
    training_data: List[tuple],
    epochs: int,
    learning_rate: float
) -> None:
    """
    Background task that trains a neural network.

    Sends progress updates via WebSocket as training progresses.
    """
    net = active_networks[network_id]['network']

    def on_epoch_complete(data: Dict[str, Any]) -> None:
        """Called after each training epoch to send progress updates."""
        progress = (data['epoch'] / data['total_epochs']) * 100

        training_jobs[job_id]['status'] = 'training'
        training_jobs[job_id]['progress'] = progress
        training_jobs[job_id]['error'] = data['error']

        socketio.emit('training_update', {
            'job_id': job_id,
            'network_id': network_id,
            'epoch': data['epoch'],
            'total_epochs': data['total_epochs'],
            'error': data['error'],
            'elapsed_time': data['elapsed_time'],
            'progress': progress
        })

    def yield_to_other_tasks() -> None:
        # Let gevent send queued messages and serve HTTP requests
        gevent.sleep(0)

    try:
        logger.info(f"Starting training for job {job_id}")

        net.train(
            training_data,
            learning_rate,
            epochs,
            callback=on_epoch_complete,
            yield_func=yield_to_other_tasks
        )

        error = net.total_error(training_data)

        active_networks[network_id]['trained'] = True
        active_networks[network_id]['error'] = error

        training_jobs[job_id]['status'] = 'completed'
        training_jobs[job_id]['error'] = error
        training_jobs[job_id]['progress'] = 100

        logger.info(f"Training completed for job {job_id}: error {error:.6f}")

        socketio.emit('training_complete', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'completed',
            'error': error,
            'progress': 100
        })
        gevent.sleep(0)

    except Exception as e:
        logger.exception(f"Training failed for job {job_id}: {e}")

        training_jobs[job_id]['status'] = 'failed'
        training_jobs[job_id]['message'] = str(e)

        socketio.emit('training_error', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'failed',
            'message': str(e)
        })
        gevent.sleep(0)


@app.route('/api/training/<job_id>', methods=['GET'])
def get_training_status(job_id: str):
    """Get the current status of a training job."""
    if job_id in training_jobs:
        return jsonify(training_jobs[job_id]), 200

    logger.warning(f"Status requested for non-existent job: {job_id}")
    return jsonify({'error': 'Training job not found'}), 404


# ============================================================================
# SERVER STARTUP
# ============================================================================

def main() -> None:
    """Run the server with WebSocket support."""
    is_cloud = bool(os.environ.get('PORT'))
    port = int(os.environ.get('PORT', 8000))

    if is_cloud:
        logger.info(f"Starting server in production mode on port {port}")
    else:
        logger.info(f"Starting server at http://localhost:{port}/")

    try:
        socketio.run(
            app,
            host='0.0.0.0',
            port=port,
            debug=not is_cloud,
            use_reloader=False
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            sys.exit(1)
        else:
            raise


if __name__ == '__main__':
    main()
