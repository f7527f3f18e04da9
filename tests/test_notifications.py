from inventory_ledger.notifications import LoggingNotifier, notify_safely


class RecordingNotifier:
    def __init__(self) -> None:
        self.events = []

    def send(self, event, payload) -> None:
        self.events.append((event, dict(payload)))


class BrokenNotifier:
    def send(self, event, payload) -> None:
        raise ConnectionError("mail relay down")


def test_notify_safely_delivers() -> None:
    notifier = RecordingNotifier()

    assert notify_safely(notifier, "return.approved", {"return_id": 1})
    assert notifier.events == [("return.approved", {"return_id": 1})]


def test_notify_safely_logs_failures(caplog) -> None:
    assert notify_safely(BrokenNotifier(), "return.approved", {"return_id": 1}) is False
    assert "return.approved failed" in caplog.text


def test_logging_notifier(caplog) -> None:
    caplog.set_level("INFO", logger="inventory_ledger")
    LoggingNotifier().send("return.restored", {"return_id": 2})
    assert "return.restored" in caplog.text
