def test_health(client):
    res = client.get('/api/health')
    assert res.status_code == 200
    assert res.get_json() == {'ok': True}


def test_get_room(client, hosted_store):
    hosted_store.set('rooms/ABC123', {'name': 'Room', 'players': {'p1': {'name': 'Ann'}}})
    res = client.get('/api/rooms/abc123')
    assert res.status_code == 200
    assert res.get_json()['players']['p1']['name'] == 'Ann'


def test_get_missing_room(client):
    res = client.get('/api/rooms/ZZZ999')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'room_not_found'}


def test_get_room_bad_code(client):
    res = client.get('/api/rooms/abc')
    assert res.status_code == 400
    assert res.get_json() == {'error': 'invalid_room_code'}


def test_words(client):
    res = client.get('/api/words?count=5')
    assert res.status_code == 200
    words = res.get_json()['words']
    assert len(words) == 5
    assert len({w['text'] for w in words}) == 5
    assert all(w['category'] for w in words)


def test_words_default_count(client):
    assert len(client.get('/api/words').get_json()['words']) == 3
    assert len(client.get('/api/words?count=lots').get_json()['words']) == 3


def test_words_out_of_range(client):
    res = client.get('/api/words?count=10000')
    assert res.status_code == 400
    assert res.get_json() == {'error': 'count_out_of_range'}


def test_cors_headers_on_api(client):
    res = client.get('/api/health', headers={'Origin': 'http://example.com'})
    assert res.headers.get('Access-Control-Allow-Origin') in ('*', 'http://example.com')
