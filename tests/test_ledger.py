import pytest
import requests

from truthchain.errors import LedgerUnreachable
from truthchain.ledger import LedgerClient, event_topic, parse_receipt, topic_to_address


class FakeResponse:
    def __init__(self, payload=None, status_code=200, json_error=False):
        self.payload = payload
        self.status_code = status_code
        self.json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.json_error:
            raise ValueError("not json")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, json=None, timeout=None):
        self.requests.append({"url": url, "json": json, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


RECEIPT = {
    "transactionHash": "0x" + "cd" * 32,
    "status": "0x1",
    "to": "0x" + "ab" * 20,
    "logs": [
        {"address": "0x" + "ab" * 20, "topics": ["0x01", "0x02"], "data": "0x1234"},
        {"address": "0x" + "ef" * 20, "topics": [], "data": "0x"},
    ],
}


def test_event_topic_matches_known_signature():
    assert event_topic("Transfer(address,address,uint256)") == (
        "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
    )


def test_topic_to_address_takes_rightmost_20_bytes():
    topic = "0x" + "0" * 24 + "AbCd" * 10
    assert topic_to_address(topic) == "0x" + "abcd" * 10


def test_parse_receipt_keeps_log_order():
    receipt = parse_receipt("0xabc", RECEIPT)
    assert receipt.succeeded is True
    assert receipt.to == "0x" + "ab" * 20
    assert [log.address for log in receipt.logs] == ["0x" + "ab" * 20, "0x" + "ef" * 20]
    assert receipt.logs[0].topics == ("0x01", "0x02")
    assert receipt.logs[0].data == "0x1234"


@pytest.mark.parametrize("status, expected", [("0x0", False), ("0x1", True), (0, False), (None, True)])
def test_parse_receipt_status(status, expected):
    assert parse_receipt("0xabc", dict(RECEIPT, status=status)).succeeded is expected


def test_get_receipt_sends_json_rpc_request():
    session = FakeSession(FakeResponse({"jsonrpc": "2.0", "id": 1, "result": RECEIPT}))
    client = LedgerClient("https://rpc.example", timeout=3, session=session)

    receipt = client.get_receipt("0x" + "cd" * 32)

    assert receipt.transaction_reference == "0x" + "cd" * 32
    sent = session.requests[0]
    assert sent["url"] == "https://rpc.example"
    assert sent["timeout"] == 3
    assert sent["json"]["method"] == "eth_getTransactionReceipt"
    assert sent["json"]["params"] == ["0x" + "cd" * 32]


def test_get_receipt_returns_none_for_unknown_transaction():
    session = FakeSession(FakeResponse({"jsonrpc": "2.0", "id": 1, "result": None}))
    assert LedgerClient("https://rpc.example", session=session).get_receipt("0x00") is None


@pytest.mark.parametrize("session", [
    FakeSession(error=requests.ConnectionError("down")),
    FakeSession(error=requests.Timeout("slow")),
    FakeSession(FakeResponse(status_code=503)),
    FakeSession(FakeResponse(json_error=True)),
    FakeSession(FakeResponse({"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "boom"}})),
    FakeSession(FakeResponse({"jsonrpc": "2.0", "id": 1, "error": "rate limited"})),
    FakeSession(FakeResponse({"jsonrpc": "2.0", "id": 1, "result": dict(RECEIPT, status="0xzz")})),
    FakeSession(FakeResponse({"jsonrpc": "2.0", "id": 1, "result": "0xdead"})),
])
def test_get_receipt_transport_failures_are_ledger_unreachable(session):
    client = LedgerClient("https://rpc.example", session=session)
    with pytest.raises(LedgerUnreachable):
        client.get_receipt("0x00")
    assert len(session.requests) == 1
