"""Pytest configuration and shared fixtures."""

import json
import sys
from concurrent.futures import Future
from pathlib import Path

import pytest

# Add project root to path for imports
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

from txproof.cryptonote import ALPHABET, ENCODED_BLOCK_SIZES  # noqa: E402
from txproof.models import VerificationRequest  # noqa: E402

TX_HASH = "5e665addf6d7c6300670e8a89564ed12b5c1a21c336408e2835668f9a6a0d802"
TX_KEY = "f3ce66c9d395e5e460c8802b2c3c1fff04e508434f9738ee35558aac4678c906"
SPEND_KEY = bytes(range(32))
VIEW_KEY = bytes(range(32, 64))
ADDRESS_HEX = (SPEND_KEY + VIEW_KEY).hex()
AMOUNT = 1_250_000_000_000  # 1.25 XMR
TRADE_DATE = 1_600_000_000


def encode_cryptonote(data: bytes) -> str:
    out = []
    for i in range(0, len(data), 8):
        block = data[i:i + 8]
        num = int.from_bytes(block, "big")
        chars = []
        for _ in range(ENCODED_BLOCK_SIZES[len(block)]):
            num, rem = divmod(num, 58)
            chars.append(ALPHABET[rem])
        out.append("".join(reversed(chars)))
    return "".join(out)


# mainnet prefix 18, checksum bytes are not checked
ADDRESS = encode_cryptonote(b"\x12" + SPEND_KEY + VIEW_KEY + b"\x00\x00\x00\x00")


def proof_json(status="success", outputs=None, **data_overrides) -> str:
    data = {
        "address": ADDRESS_HEX,
        "tx_hash": TX_HASH,
        "viewkey": TX_KEY,
        "tx_timestamp": TRADE_DATE,
        "tx_confirmations": 10,
        "outputs": outputs if outputs is not None else [
            {"amount": AMOUNT, "match": True, "output_idx": 0, "output_pubkey": "ab" * 32},
        ],
    }
    data.update(data_overrides)
    return json.dumps({"status": status, "data": data})


class VirtualClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeTimer:
    def __init__(self, due: float, fn):
        self.due = due
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeUserThread:
    """Runs callbacks inline and keeps delayed ones until time is advanced."""

    def __init__(self, clock: VirtualClock):
        self.clock = clock
        self.timers = []

    def execute(self, fn) -> None:
        fn()

    def run_after(self, fn, delay_sec: float) -> FakeTimer:
        timer = FakeTimer(self.clock.now + delay_sec, fn)
        self.timers.append(timer)
        return timer

    @property
    def pending_timers(self):
        return [t for t in self.timers if not t.cancelled and t.due > self.clock.now]

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.clock.now = timer.due
            timer.fn()
        self.clock.now = target


class FakeExecutor:
    """Runs submitted work synchronously, or holds it back when paused."""

    def __init__(self):
        self.submitted = 0
        self.paused = False
        self.held = []

    def submit(self, fn, *args, **kwargs) -> Future:
        self.submitted += 1
        future = Future()
        if self.paused:
            self.held.append((future, fn, args, kwargs))
        else:
            self._run(future, fn, args, kwargs)
        return future

    def release(self) -> None:
        held, self.held = self.held, []
        for future, fn, args, kwargs in held:
            self._run(future, fn, args, kwargs)

    @staticmethod
    def _run(future, fn, args, kwargs) -> None:
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)


class ScriptedClient:
    """Stands in for ProofHttpClient; each call pops the next scripted answer.

    A script entry is a response body, an exception to raise, or a callable
    returning either.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.calls = []

    def request_with_get(self, param, header_key=None, header_value=None) -> str:
        self.calls.append((param, header_key, header_value))
        answer = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if callable(answer) and not isinstance(answer, type):
            answer = answer()
        if isinstance(answer, BaseException):
            raise answer
        return answer


class Recorder:
    def __init__(self):
        self.results = []
        self.faults = []

    def on_result(self, outcome) -> None:
        self.results.append(outcome)

    def on_fault(self, message, cause) -> None:
        self.faults.append((message, cause))


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def user_thread(clock):
    return FakeUserThread(clock)


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_request(clock):
    def _make(**overrides) -> VerificationRequest:
        fields = dict(
            tx_hash=TX_HASH,
            recipient_address=ADDRESS,
            tx_key=TX_KEY,
            service_address="xmrblocks.bisq.services",
            trade_id="a1b2c3d4-trade",
            amount=AMOUNT,
            trade_date=TRADE_DATE,
            num_required_confirmations=10,
            first_request=clock.now,
        )
        fields.update(overrides)
        return VerificationRequest(**fields)

    return _make
