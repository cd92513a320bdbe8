from oddword.store.base import SERVER_TIMESTAMP


def _values(sio_client):
    return [pkt['args'][0] for pkt in sio_client.get_received() if pkt['name'] == 'store:value']


def test_socket_connects(sio_client):
    assert sio_client.is_connected()


def test_set_and_once(sio_client, hosted_store):
    ack = sio_client.emit('store:set', {'path': 'rooms/ABC123', 'value': {'name': 'Room'}}, callback=True)
    assert ack == {'ok': True}
    assert hosted_store.once('rooms/ABC123/name') == 'Room'

    ack = sio_client.emit('store:once', {'path': 'rooms/ABC123'}, callback=True)
    assert ack == {'ok': True, 'value': {'name': 'Room'}}


def test_update_resolves_server_timestamp(sio_client, hosted_store):
    ack = sio_client.emit(
        'store:update',
        {'path': 'rooms/ABC123', 'value': {'startTime': dict(SERVER_TIMESTAMP), 'status': 'playing'}},
        callback=True,
    )
    assert ack == {'ok': True}
    assert isinstance(hosted_store.once('rooms/ABC123/startTime'), int)


def test_update_needs_mapping(sio_client):
    ack = sio_client.emit('store:update', {'path': 'rooms/ABC123', 'value': 3}, callback=True)
    assert ack == {'ok': False, 'error': 'invalid_payload'}


def test_remove(sio_client, hosted_store):
    hosted_store.set('rooms/ABC123', {'name': 'Room'})
    ack = sio_client.emit('store:remove', {'path': 'rooms/ABC123'}, callback=True)
    assert ack == {'ok': True}
    assert hosted_store.once('rooms/ABC123') is None


def test_paths_outside_rooms_rejected(sio_client, hosted_store):
    ack = sio_client.emit('store:set', {'path': 'admin/flags', 'value': 1}, callback=True)
    assert ack == {'ok': False, 'error': 'invalid_path'}
    ack = sio_client.emit('store:once', {'path': 'rooms/a.b'}, callback=True)
    assert ack == {'ok': False, 'error': 'invalid_path'}
    assert hosted_store.once('admin') is None


def test_invalid_value_rejected(sio_client):
    ack = sio_client.emit('store:set', {'path': 'rooms/ABC123', 'value': {'a.b': 1}}, callback=True)
    assert ack == {'ok': False, 'error': 'invalid_key'}


def test_subscribe_pushes_current_value_then_changes(sio_client, hosted_store):
    hosted_store.set('rooms/ABC123/status', 'waiting')
    sio_client.get_received()

    ack = sio_client.emit('store:subscribe', {'path': 'rooms/ABC123'}, callback=True)
    assert ack == {'ok': True}
    assert _values(sio_client) == [{'path': 'rooms/ABC123', 'value': {'status': 'waiting'}}]

    hosted_store.set('rooms/ABC123/status', 'playing')
    assert _values(sio_client) == [{'path': 'rooms/ABC123', 'value': {'status': 'playing'}}]


def test_subscribe_twice_keeps_one_listener(sio_client, hosted_store):
    sio_client.emit('store:subscribe', {'path': 'rooms/ABC123'}, callback=True)
    sio_client.emit('store:subscribe', {'path': 'rooms/ABC123'}, callback=True)
    assert hosted_store.listener_count('rooms/ABC123') == 1


def test_unsubscribe_stops_pushes(sio_client, hosted_store):
    sio_client.emit('store:subscribe', {'path': 'rooms/ABC123'}, callback=True)
    ack = sio_client.emit('store:unsubscribe', {'path': 'rooms/ABC123'}, callback=True)
    assert ack == {'ok': True}
    sio_client.get_received()

    hosted_store.set('rooms/ABC123/status', 'playing')
    assert _values(sio_client) == []
    assert hosted_store.listener_count() == 0


def test_disconnect_drops_subscriptions(flask_app, hosted_store):
    sio = flask_app.extensions['socketio']
    other = sio.test_client(flask_app)
    other.emit('store:subscribe', {'path': 'rooms/ABC123'}, callback=True)
    other.emit('store:subscribe', {'path': 'rooms/XYZ789'}, callback=True)
    assert hosted_store.listener_count() == 2

    other.disconnect()
    assert hosted_store.listener_count() == 0


def test_time(sio_client):
    ack = sio_client.emit('store:time', {}, callback=True)
    assert ack['ok'] is True
    assert isinstance(ack['nowMs'], int)
