"""
Cooking Aide Web Application

Flask API for advice, checklist generation/update and per-client session
orchestration.
"""

import atexit
import os
import sys
import threading
from pathlib import Path

# Add project root to path for imports
ROOT_DIR = Path(__file__).parent.parent.parent
sys.path.insert(0, str(ROOT_DIR))

# Load .env file from root directory
from dotenv import load_dotenv
load_dotenv(ROOT_DIR / '.env')

import yaml
from flask import Flask, Response, request, jsonify
from flask_cors import CORS

from aide import Checklist, ChecklistItem, Mode, SessionOrchestrator, build_services
from aide.core.checklist import utc_timestamp


def load_config(config_path: str = None) -> dict:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = Path(__file__).parent / 'config.yaml'

    with open(config_path) as f:
        config = yaml.safe_load(f) or {}

    # Expand environment variables
    def expand_env(obj):
        if isinstance(obj, str) and obj.startswith('${') and obj.endswith('}'):
            env_var = obj[2:-1]
            return os.environ.get(env_var, '')
        elif isinstance(obj, dict):
            return {k: expand_env(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [expand_env(item) for item in obj]
        return obj

    return expand_env(config)


class OrchestratorPool:
    """One SessionOrchestrator per client id, created on first use."""

    def __init__(self, factory):
        self._factory = factory
        self._lock = threading.Lock()
        self._orchestrators = {}

    def get(self, client_id: str) -> SessionOrchestrator:
        client_id = str(client_id or 'default')
        with self._lock:
            orchestrator = self._orchestrators.get(client_id)
            if orchestrator is None:
                orchestrator = self._factory()
                self._orchestrators[client_id] = orchestrator
            return orchestrator

    def close(self, client_id: str) -> bool:
        """Shut down and forget one client's orchestrator."""
        with self._lock:
            orchestrator = self._orchestrators.pop(str(client_id or 'default'), None)
        if orchestrator is None:
            return False
        orchestrator.shutdown()
        return True

    def shutdown(self) -> None:
        with self._lock:
            orchestrators = list(self._orchestrators.values())
            self._orchestrators = {}
        for orchestrator in orchestrators:
            orchestrator.shutdown()

    def __contains__(self, client_id: str) -> bool:
        with self._lock:
            return client_id in self._orchestrators

    def __len__(self) -> int:
        with self._lock:
            return len(self._orchestrators)


def _error(message: str, status: int, details: str = None):
    body = {'success': False, 'error': message}
    if details:
        body['details'] = details
    return jsonify(body), status


def create_app(config_path: str = None, config: dict = None, llm=None, speaker=None, scheduler=None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_path: YAML config path (default: apps/web/config.yaml)
        config: Already-loaded config dict (skips file loading)
        llm: Optional LLM client override
        speaker: Optional TTS override
        scheduler: Optional scheduler for orchestrators
    """
    if config is None:
        config = load_config(config_path)

    # Debug: confirm env loading (do not print secret values)
    env_openai = os.environ.get('OPENAI_API_KEY', '')
    print(f"[env] .env path={ROOT_DIR / '.env'} exists={os.path.exists(ROOT_DIR / '.env')}")
    print(f"[env] OPENAI_API_KEY loaded={bool(env_openai)} length={len(env_openai)}")

    # Trim whitespace from API keys to avoid hidden trailing spaces
    for section in ('openai', 'anthropic'):
        if isinstance(config.get(section, {}).get('api_key'), str):
            config[section]['api_key'] = config[section]['api_key'].strip()

    services = build_services(config, llm=llm, speaker=speaker)
    advisor = services['advisor']
    generator = services['generator']
    reconciler = services['reconciler']
    vision = services['vision']
    tts = services['speaker']

    pool = OrchestratorPool(lambda: SessionOrchestrator(
        services['backend'],
        config=config,
        scheduler=scheduler,
        speaker=tts,
    ))
    # Cancel timers and end advice sessions when the server process exits
    atexit.register(pool.shutdown)

    app = Flask(__name__)
    CORS(app)
    app.config['aide_config'] = config
    app.config['services'] = services
    app.config['orchestrators'] = pool

    # ─────────────────────────────────────────────────────────────
    # Backend routes
    # ─────────────────────────────────────────────────────────────

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok', 'message': 'Cooking Aide API is running'})

    @app.route('/api/config', methods=['GET'])
    def get_config():
        """Get frontend-relevant timing and feature flags."""
        return jsonify({
            'success': True,
            'modes': [mode.value for mode in Mode],
            'advice': {'cooldown_ms': advisor.cooldown_ms},
            'checklist': {
                'generate_delay_ms': int(config.get('checklist', {}).get('generate_delay_ms', 10000)),
                'poll_interval_ms': int(config.get('checklist', {}).get('poll_interval_ms', 5000)),
                'max_items': generator.max_items,
            },
            'observations': {'capacity': int(config.get('observations', {}).get('capacity', 10))},
            'vision': {'enabled': vision.enabled, 'max_image_chars': vision.max_image_chars},
            'speech': {'enabled': tts is not None},
        })

    @app.route('/api/chatgpt/advice', methods=['POST'])
    def advice():
        """Advice for one vision observation (rate limited per session)."""
        data = request.get_json(silent=True) or {}
        vision_result = data.get('visionResult')
        if not vision_result:
            return _error('Vision result is required', 400)

        try:
            result = advisor.get_advice(
                vision_result,
                session_id=data.get('sessionId') or 'default',
                context_hint=data.get('recipeContext', ''),
                mode=data.get('mode', 'cooking'),
            )
        except Exception as e:
            print(f"[advisor] ChatGPT API Error: {e}")
            return _error('Failed to get advice from ChatGPT', 500, str(e))

        if result.rate_limited:
            return jsonify(result.to_dict()), 429
        return jsonify(result.to_dict())

    @app.route('/api/chatgpt/checklist', methods=['POST'])
    def checklist():
        """Generate a checklist from accumulated observations."""
        data = request.get_json(silent=True) or {}
        descriptions = data.get('videoDescriptions')
        if not isinstance(descriptions, list) or not descriptions:
            return _error('Video descriptions array is required', 400)

        try:
            result = generator.generate(
                descriptions,
                context_hint=data.get('recipeContext', ''),
                mode=data.get('mode', 'cooking'),
            )
        except ValueError as e:
            return _error(str(e), 400)
        except Exception as e:
            print(f"[checklist] Checklist API Error: {e}")
            return _error('Failed to generate checklist', 500, str(e))

        return jsonify({
            'title': result.title,
            'checklist': [item.to_dict() for item in result.items],
            'timestamp': utc_timestamp(),
        })

    @app.route('/api/chatgpt/checklist-update', methods=['POST'])
    def checklist_update():
        """Report newly completed ids and newly discovered items."""
        data = request.get_json(silent=True) or {}
        current = data.get('currentChecklist')
        descriptions = data.get('videoDescriptions')

        if not isinstance(current, list) or not current:
            return _error('Current checklist is required', 400)
        if not isinstance(descriptions, list) or not descriptions:
            return _error('Video descriptions are required', 400)

        items = [
            ChecklistItem.from_dict(raw, fallback_id=str(index + 1))
            for index, raw in enumerate(current)
            if isinstance(raw, dict)
        ]
        current_checklist = Checklist(title=str(data.get('title') or ''), items=items)

        try:
            delta = reconciler.reconcile(current_checklist, descriptions, mode=data.get('mode', 'cooking'))
        except ValueError as e:
            return _error(str(e), 400)
        except Exception as e:
            print(f"[checklist] Checklist Update API Error: {e}")
            return _error('Failed to update checklist', 500, str(e))

        return jsonify({**delta.to_dict(), 'timestamp': utc_timestamp()})

    @app.route('/api/chatgpt/session/end', methods=['POST'])
    def end_session():
        """Drop advice history for a session id."""
        data = request.get_json(silent=True) or {}
        session_id = data.get('sessionId')
        if not session_id:
            return _error('sessionId required', 400)
        return jsonify({'success': True, 'ended': advisor.end_session(session_id)})

    # ─────────────────────────────────────────────────────────────
    # Session orchestration
    # ─────────────────────────────────────────────────────────────

    def _orchestrator(data: dict = None) -> SessionOrchestrator:
        client_id = (data or {}).get('client_id') or request.args.get('client_id') or 'default'
        return pool.get(client_id)

    def _result(result: dict, orchestrator: SessionOrchestrator, status: int = 400):
        body = {**result, 'session': orchestrator.snapshot()}
        if not result.get('success'):
            return jsonify(body), status
        return jsonify(body)

    @app.route('/api/session/source', methods=['POST'])
    def session_source():
        """Select a capture source; starts a fresh session."""
        data = request.get_json(silent=True) or {}
        orchestrator = _orchestrator(data)
        return _result(orchestrator.select_source(data.get('source', '')), orchestrator)

    @app.route('/api/session/start', methods=['POST'])
    def session_start():
        data = request.get_json(silent=True) or {}
        orchestrator = _orchestrator(data)
        return _result(orchestrator.start(), orchestrator, status=409)

    @app.route('/api/session/stop', methods=['POST'])
    def session_stop():
        data = request.get_json(silent=True) or {}
        orchestrator = _orchestrator(data)
        return _result(orchestrator.stop(), orchestrator, status=409)

    @app.route('/api/session/mode', methods=['POST'])
    def session_mode():
        data = request.get_json(silent=True) or {}
        orchestrator = _orchestrator(data)
        return _result(orchestrator.set_mode(data.get('mode', '')), orchestrator)

    @app.route('/api/session/context', methods=['POST'])
    def session_context():
        """Set the free-text hint (dish name, math topic)."""
        data = request.get_json(silent=True) or {}
        orchestrator = _orchestrator(data)
        orchestrator.set_context_hint(data.get('context', ''))
        return _result({'success': True}, orchestrator)

    @app.route('/api/session/observation', methods=['POST'])
    def session_observation():
        """Feed one observation text from a client-side vision SDK."""
        data = request.get_json(silent=True) or {}
        text = data.get('text')
        if not text:
            return _error('text required', 400)
        orchestrator = _orchestrator(data)
        accepted = orchestrator.on_observation(text)
        return jsonify({'success': True, 'accepted': accepted, 'session': orchestrator.snapshot()})

    @app.route('/api/session/toggle', methods=['POST'])
    def session_toggle():
        """Manually toggle a checklist item."""
        data = request.get_json(silent=True) or {}
        orchestrator = _orchestrator(data)
        return _result(orchestrator.toggle_item(data.get('item_id', '')), orchestrator, status=404)

    @app.route('/api/session/close', methods=['POST'])
    def session_close():
        """Shut down a client's session and release its orchestrator."""
        data = request.get_json(silent=True) or {}
        client_id = data.get('client_id') or request.args.get('client_id') or 'default'
        if not pool.close(client_id):
            return _error('unknown client', 404)
        print(f"[orchestrator] closed client {client_id}")
        return jsonify({'success': True, 'client_id': client_id})

    @app.route('/api/session/state', methods=['GET'])
    def session_state():
        orchestrator = _orchestrator()
        return jsonify({'success': True, 'session': orchestrator.snapshot()})

    # ─────────────────────────────────────────────────────────────
    # Vision and speech
    # ─────────────────────────────────────────────────────────────

    @app.route('/api/vision/frame', methods=['POST'])
    def vision_frame():
        """Describe a camera frame and feed the text to the client's session."""
        data = request.get_json(silent=True) or {}
        image_data_url = data.get('image')
        if not image_data_url:
            return _error('image required', 400)

        orchestrator = _orchestrator(data)
        result = vision.describe_frame(image_data_url, mode=orchestrator.mode, prompt=data.get('prompt'))
        if not result.get('success'):
            return jsonify(result), 400

        accepted = orchestrator.on_observation(result['text'])
        return jsonify({**result, 'accepted': accepted, 'session': orchestrator.snapshot()})

    @app.route('/api/speech/warning', methods=['POST'])
    def speech_warning():
        """Synthesize a warning message to audio."""
        data = request.get_json(silent=True) or {}
        text = data.get('text')
        if not text:
            return _error('text required', 400)
        if tts is None:
            return _error('speech disabled', 400)

        try:
            audio = tts.synthesize(text)
        except Exception as e:
            print(f"[speech] TTS error: {e}")
            return _error('Failed to synthesize speech', 500, str(e))
        return Response(audio, mimetype=tts.mimetype)

    return app


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Cooking Aide API Server')
    parser.add_argument('--config', '-c', help='Path to config file')
    parser.add_argument('--port', '-p', type=int, default=int(os.environ.get('PORT', 3001)), help='Port to listen on')
    parser.add_argument('--host', default='0.0.0.0', help='Host to bind to')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    args = parser.parse_args()

    app = create_app(args.config)

    print("=" * 60)
    print("Cooking Aide API Server")
    print("=" * 60)
    print(f"Running on http://{args.host}:{args.port}")
    print("=" * 60)

    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == '__main__':
    main()
