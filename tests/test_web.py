"""
Tests for the Flask API using the test client and a scripted LLM.
"""
import json

import pytest

from apps.web.main import create_app
from conftest import FakeLLM, ManualScheduler


def make_config(**overrides):
    config = {
        'openai': {'api_key': ''},
        'llm': {'provider': 'openai'},
        'advice': {'cooldown_ms': 8000, 'history_messages': 10},
        'checklist': {'generate_delay_ms': 10000, 'poll_interval_ms': 5000, 'max_items': 10},
        'observations': {'capacity': 10},
        'vision': {'enabled': True},
        'speech': {'enabled': False},
        'orchestrator': {'backend': 'local'},
    }
    config.update(overrides)
    return config


class FakeSpeaker:
    mimetype = 'audio/mpeg'

    def synthesize(self, text):
        return b'ID3audio'


class FakeResponses:
    def create(self, **kwargs):
        class Response:
            output_text = 'Onions sizzling in a pan'
        return Response()


class FakeVisionClient:
    responses = FakeResponses()


class TestAdviceRoutes:
    """Advice, checklist and checklist-update endpoints."""

    def setup_method(self):
        self.llm = FakeLLM(default='Stir the pot.')
        self.scheduler = ManualScheduler()
        self.app = create_app(config=make_config(), llm=self.llm, scheduler=self.scheduler)
        self.client = self.app.test_client()

    def post(self, path, body):
        return self.client.post(path, data=json.dumps(body), content_type='application/json')

    def test_health(self):
        response = self.client.get('/api/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'ok'

    def test_config(self):
        data = self.client.get('/api/config').get_json()
        assert data['advice']['cooldown_ms'] == 8000
        assert data['modes'] == ['cooking', 'math']
        assert data['speech']['enabled'] is False

    def test_advice_requires_vision_result(self):
        response = self.post('/api/chatgpt/advice', {})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Vision result is required'

    def test_advice_then_rate_limited(self):
        body = {'visionResult': 'Pan is smoking', 'sessionId': 'abc'}
        first = self.post('/api/chatgpt/advice', body)
        assert first.status_code == 200
        assert first.get_json()['advice'] == 'Stir the pot.'
        assert 'timestamp' in first.get_json()

        second = self.post('/api/chatgpt/advice', body)
        assert second.status_code == 429
        assert second.get_json()['error'] == 'Rate limited'
        assert second.get_json()['retryAfterMs'] > 0

        other = self.post('/api/chatgpt/advice', dict(body, sessionId='xyz'))
        assert other.status_code == 200

    def test_advice_llm_failure_is_500(self):
        self.llm.responses = [RuntimeError('OpenAI API key is not configured')]
        response = self.post('/api/chatgpt/advice', {'visionResult': 'obs', 'sessionId': 'err'})
        assert response.status_code == 500
        assert response.get_json()['details'] == 'OpenAI API key is not configured'

    def test_end_session(self):
        self.post('/api/chatgpt/advice', {'visionResult': 'obs', 'sessionId': 'abc'})
        response = self.post('/api/chatgpt/session/end', {'sessionId': 'abc'})
        assert response.get_json()['ended'] is True
        assert self.post('/api/chatgpt/advice', {'visionResult': 'obs', 'sessionId': 'abc'}).status_code == 200

    def test_checklist_requires_descriptions(self):
        assert self.post('/api/chatgpt/checklist', {'videoDescriptions': []}).status_code == 400
        assert self.post('/api/chatgpt/checklist', {}).status_code == 400

    def test_checklist_generated(self):
        self.llm.responses = [json.dumps({'title': 'Omelette', 'checklist': [
            {'id': '1', 'text': 'Crack eggs', 'completed': False},
        ]})]
        response = self.post('/api/chatgpt/checklist', {'videoDescriptions': ['Eggs on counter']})
        data = response.get_json()
        assert response.status_code == 200
        assert data['title'] == 'Omelette'
        assert data['checklist'][0]['text'] == 'Crack eggs'

    def test_checklist_fallback_on_bad_reply(self):
        self.llm.responses = ['not json at all']
        data = self.post('/api/chatgpt/checklist', {'videoDescriptions': ['x'], 'mode': 'math'}).get_json()
        assert data['title'] == 'Math Problem Steps'
        assert len(data['checklist']) == 1

    def test_checklist_update(self):
        self.llm.responses = ['{"completedIds": ["1", "2"], "newItems": [{"text": "Serve"}]}']
        response = self.post('/api/chatgpt/checklist-update', {
            'currentChecklist': [
                {'id': '1', 'text': 'Crack eggs', 'completed': True},
                {'id': '2', 'text': 'Whisk', 'completed': False},
            ],
            'videoDescriptions': ['Whisking eggs'],
        })
        data = response.get_json()
        assert response.status_code == 200
        assert data['completedIds'] == ['2']
        assert data['newItems'] == [{'id': '3', 'text': 'Serve', 'completed': False}]

    @pytest.mark.parametrize('body', [
        {'videoDescriptions': ['x']},
        {'currentChecklist': [{'id': '1', 'text': 'a'}]},
    ])
    def test_checklist_update_validation(self, body):
        assert self.post('/api/chatgpt/checklist-update', body).status_code == 400


class TestSessionRoutes:
    """Per-client session orchestration endpoints."""

    def setup_method(self):
        self.llm = FakeLLM(default='Looks good.')
        self.scheduler = ManualScheduler()
        self.app = create_app(config=make_config(), llm=self.llm, speaker=FakeSpeaker(),
                              scheduler=self.scheduler)
        self.client = self.app.test_client()

    def post(self, path, body):
        return self.client.post(path, data=json.dumps(body), content_type='application/json')

    def test_session_flow(self):
        assert self.post('/api/session/start', {'client_id': 'c1'}).status_code == 409

        response = self.post('/api/session/source', {'client_id': 'c1', 'source': 'camera-0'})
        assert response.get_json()['session']['state'] == 'ready'

        assert self.post('/api/session/start', {'client_id': 'c1'}).status_code == 200
        self.post('/api/session/context', {'client_id': 'c1', 'context': 'omelette'})

        response = self.post('/api/session/observation', {'client_id': 'c1', 'text': 'Eggs in a bowl'})
        data = response.get_json()
        assert data['accepted'] is True
        assert data['session']['advice']['advice'] == 'Looks good.'
        assert data['session']['pending']['generation'] is True

        assert self.post('/api/session/stop', {'client_id': 'c1'}).status_code == 200
        assert self.post('/api/session/stop', {'client_id': 'c1'}).status_code == 409

    def test_clients_are_isolated(self):
        self.post('/api/session/source', {'client_id': 'a', 'source': 'camera-0'})
        state = self.client.get('/api/session/state?client_id=b').get_json()
        assert state['session']['state'] == 'idle'

    def test_observation_requires_text(self):
        assert self.post('/api/session/observation', {'client_id': 'c1'}).status_code == 400

    def test_mode_switch(self):
        self.post('/api/session/source', {'client_id': 'c1', 'source': 'camera-0'})
        response = self.post('/api/session/mode', {'client_id': 'c1', 'mode': 'math'})
        assert response.get_json()['session']['session']['mode'] == 'math'
        assert self.post('/api/session/mode', {'client_id': 'c1', 'mode': 'baking'}).status_code == 400

    def test_toggle_unknown_item(self):
        response = self.post('/api/session/toggle', {'client_id': 'c1', 'item_id': '9'})
        assert response.status_code == 404

    def test_speech_warning(self):
        response = self.post('/api/speech/warning', {'text': 'Wait! It looks like you skipped: Boil water.'})
        assert response.status_code == 200
        assert response.mimetype == 'audio/mpeg'
        assert response.data == b'ID3audio'

    def test_vision_frame_rejects_non_data_url(self):
        response = self.post('/api/vision/frame', {'client_id': 'c1', 'image': 'http://example.com/x.png'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'image must be a data URL'

    def test_vision_frame_feeds_observation(self):
        self.app.config['services']['vision']._openai_client = FakeVisionClient()
        self.post('/api/session/source', {'client_id': 'c1', 'source': 'camera-0'})
        self.post('/api/session/start', {'client_id': 'c1'})

        response = self.post('/api/vision/frame', {'client_id': 'c1', 'image': 'data:image/jpeg;base64,AAAA'})
        data = response.get_json()
        assert data['text'] == 'Onions sizzling in a pan'
        assert data['accepted'] is True
        assert data['session']['observations'] == ['Onions sizzling in a pan']

    def test_close_releases_client(self):
        self.post('/api/session/source', {'client_id': 'c1', 'source': 'camera-0'})
        self.post('/api/session/start', {'client_id': 'c1'})
        pool = self.app.config['orchestrators']
        orchestrator = pool.get('c1')
        assert 'c1' in pool

        response = self.post('/api/session/close', {'client_id': 'c1'})

        assert response.status_code == 200
        assert 'c1' not in pool
        assert orchestrator.state.value == 'idle'
        assert self.scheduler.active_timers == []
        assert self.post('/api/session/close', {'client_id': 'c1'}).status_code == 404


def test_pool_shutdown_registered_at_exit(monkeypatch):
    registered = []
    monkeypatch.setattr('apps.web.main.atexit.register', registered.append)
    scheduler = ManualScheduler()
    app = create_app(config=make_config(), llm=FakeLLM(default='ok'), scheduler=scheduler)
    client = app.test_client()
    for client_id in ('a', 'b'):
        client.post('/api/session/source', data=json.dumps({'client_id': client_id, 'source': 'cam'}),
                    content_type='application/json')
        client.post('/api/session/start', data=json.dumps({'client_id': client_id}),
                    content_type='application/json')
    pool = app.config['orchestrators']
    orchestrators = [pool.get('a'), pool.get('b')]
    assert registered == [pool.shutdown]

    registered[0]()

    assert len(pool) == 0
    assert all(o.state.value == 'idle' for o in orchestrators)
