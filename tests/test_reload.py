import threading

from stw.reload import RELOAD_MESSAGE, ClientRegistry


class GoodClient:
    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)


class BrokenClient:
    def __init__(self, error=BrokenPipeError("gone")):
        self.error = error

    def send(self, message):
        raise self.error


def test_register_and_deregister():
    registry = ClientRegistry()
    client = GoodClient()
    registry.register(client)
    assert client in registry
    assert len(registry) == 1
    registry.deregister(client)
    registry.deregister(client)
    assert len(registry) == 0


def test_broadcast_prunes_failing_clients():
    registry = ClientRegistry()
    good = GoodClient()
    broken = BrokenClient()
    closed = BrokenClient(ValueError("I/O operation on closed file"))
    for client in (good, broken, closed):
        registry.register(client)

    assert registry.broadcast() == 1
    assert good.messages == [RELOAD_MESSAGE]
    assert broken not in registry
    assert closed not in registry
    assert list(registry) == [good]


def test_reload_message_is_a_server_sent_event():
    assert RELOAD_MESSAGE == b"data: reload\n\n"


def test_concurrent_register_and_broadcast():
    registry = ClientRegistry()
    clients = [GoodClient() for _ in range(50)]
    start = threading.Barrier(len(clients) + 1)

    def join(client):
        start.wait()
        registry.register(client)

    def notify():
        start.wait()
        for _ in range(20):
            registry.broadcast()

    threads = [threading.Thread(target=join, args=(c,)) for c in clients]
    threads.append(threading.Thread(target=notify))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == len(clients)
    registry.broadcast()
    assert all(client.messages and client.messages[-1] == RELOAD_MESSAGE for client in clients)
    assert all(len(client.messages) <= 21 for client in clients)
