import requests

from phraseotomy.schemas import StartTurnRequest
from phraseotomy.services.games.turns import get_game_state, start_turn
from phraseotomy.services.games.whisp import WhispClient


class FakeResponse:
    def __init__(self, payload=None, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f'{self.status} error')

    def json(self):
        if self.payload is None:
            raise ValueError('no json')
        return self.payload


class FakeHTTP:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({'url': url, 'headers': headers, 'json': json, 'timeout': timeout})
        if self.exc:
            raise self.exc
        return self.response


def _reply(text):
    return FakeResponse({'choices': [{'message': {'content': text}}]})


def test_whisp_returns_first_word():
    http = FakeHTTP(_reply(' Tides.\n'))
    client = WhispClient(api_key='k', session=http)
    assert client.generate('Lighthouse', 'Coast') == 'Tides'
    sent = http.calls[0]
    assert sent['headers']['Authorization'] == 'Bearer k'
    assert 'Lighthouse' in sent['json']['messages'][1]['content']


def test_whisp_disabled_without_key():
    http = FakeHTTP(_reply('never'))
    client = WhispClient(api_key='', session=http, fallback='story')
    assert client.generate('Lighthouse') == 'story'
    assert http.calls == []


def test_whisp_falls_back_on_errors():
    assert WhispClient(api_key='k', session=FakeHTTP(exc=requests.Timeout('slow'))).generate('x') == 'story'
    assert WhispClient(api_key='k', session=FakeHTTP(FakeResponse(status=502))).generate('x') == 'story'
    assert WhispClient(api_key='k', session=FakeHTTP(FakeResponse({'choices': []}))).generate('x') == 'story'
    assert WhispClient(api_key='k', session=FakeHTTP(_reply('   '))).generate('x') == 'story'


def test_start_turn_stores_whisp_and_hides_it_from_guessers(store, started_game):
    sid = started_game('a', 'b')
    hint = WhispClient(api_key='k', session=FakeHTTP(_reply('Tides')))
    req = StartTurnRequest(session_id=sid, player_id='a', theme_id='coast', theme_name='Coast',
                           element_name='Lighthouse', secret_element='custom:Lighthouse', turn_mode='elements')
    result = start_turn(store, req, hint)
    assert result.data['whisp'] == 'Tides'
    assert result.data['turn']['secret_element'] == 'Lighthouse'

    storyteller_view = get_game_state(store, sid, 'a').data
    assert storyteller_view['current_turn']['whisp'] == 'Tides'
    assert storyteller_view['is_storyteller'] is True

    guesser_view = get_game_state(store, sid, 'b').data
    assert guesser_view['current_turn']['whisp'] is None
    assert guesser_view['current_turn']['secret_element'] is None
    assert guesser_view['current_turn']['turn_mode'] == 'elements'
