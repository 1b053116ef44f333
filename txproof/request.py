"""Requests the XMR tx proof for one trade from one proof service.

The request is repeated every 90 sec while the tx is not found or not
confirmed yet, until MAX_REQUEST_PERIOD_SEC (12 hours) after the first
request is reached. Results are delivered on the user thread; once a
terminal result was delivered or ``terminate()`` was called nothing more is
requested or delivered.
"""

import json
import logging
import time
from concurrent.futures import Future
from typing import Callable, Optional

from .config import DEFAULT_USER_AGENT
from .executor import CallbackSink, Cancellable, TaskSubmitter, get_proof_executor, get_user_thread
from .http_client import ProofHttpClient, ProxyProvider
from .models import DetailKind, Outcome, Tag, TransportError, VerificationRequest
from .parser import parse_proof_response

logger = logging.getLogger(__name__)

REPEAT_REQUEST_PERIOD_SEC = 90
MAX_REQUEST_PERIOD_SEC = 12 * 60 * 60

ResultHandler = Callable[[Outcome], None]
FaultHandler = Callable[[str, BaseException], None]
Classifier = Callable[[VerificationRequest, str], Outcome]


class XmrTxProofRequest:
    def __init__(
        self,
        request: VerificationRequest,
        http_client: Optional[ProofHttpClient] = None,
        parser: Classifier = parse_proof_response,
        executor: Optional[TaskSubmitter] = None,
        user_thread: Optional[CallbackSink] = None,
        proxy_provider: Optional[ProxyProvider] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        clock: Callable[[], float] = time.time,
    ):
        self.request = request
        self._http_client = http_client or ProofHttpClient.for_service(
            request.service_address, proxy_provider
        )
        self._parser = parser
        self._executor = executor or get_proof_executor()
        self._user_thread = user_thread or get_user_thread()
        self._user_agent = user_agent
        self._clock = clock

        self._terminated = False
        self._outcome: Optional[Outcome] = None
        self._repeat_timer: Optional[Cancellable] = None

    @property
    def outcome(self) -> Optional[Outcome]:
        """Last result received from the service (or the timeout error)."""
        return self._outcome

    @property
    def terminated(self) -> bool:
        return self._terminated

    def start(self, on_result: ResultHandler, on_fault: FaultHandler) -> None:
        if self._terminated:
            # a re-poll scheduled before terminate() ends up here
            logger.warning("%s is terminated, not requesting again", self)
            return

        if self._is_timeout_reached():
            self._user_thread.execute(lambda: self._deliver_timeout(on_result))
            return

        # Timeout of the single call is handled by the http client.
        future = self._executor.submit(self._request_and_parse)
        future.add_done_callback(
            lambda f: self._user_thread.execute(lambda: self._on_done(f, on_result, on_fault))
        )

    def terminate(self) -> None:
        self._terminated = True
        timer = self._repeat_timer
        if timer is not None:
            timer.cancel()
            self._repeat_timer = None

    def __str__(self) -> str:
        return f"Request at: {self.request.service_address} for trade: {self.request.trade_id}"

    # --------------------------
    # Worker side
    # --------------------------

    def _request_and_parse(self) -> Outcome:
        param = (
            f"/api/outputs?txhash={self.request.tx_hash}"
            f"&address={self.request.recipient_address}"
            f"&viewkey={self.request.tx_key}"
            "&txprove=1"
        )
        logger.info("Param %s for %s", param, self)
        text = self._http_client.request_with_get(param, "User-Agent", self._user_agent)
        try:
            pretty_json = json.dumps(json.loads(text), indent=2)
        except ValueError as e:
            raise TransportError(f"Malformed response: {e}", e) from e
        logger.info("Response json from %s\n%s", self, pretty_json)
        outcome = self._parser(self.request, text)
        logger.info("Result from %s: %s", self, outcome)
        return outcome

    # --------------------------
    # User thread side
    # --------------------------

    def _on_done(self, future: Future, on_result: ResultHandler, on_fault: FaultHandler) -> None:
        try:
            outcome = future.result()
        except Exception as e:
            self._on_failure(e, on_result, on_fault)
            return
        self._on_success(outcome, on_result, on_fault)

    def _on_success(self, outcome: Outcome, on_result: ResultHandler, on_fault: FaultHandler) -> None:
        if not isinstance(outcome, Outcome):
            logger.warning("Unexpected result %s", outcome)
            return
        self._outcome = outcome

        if self._terminated:
            logger.warning("Dropping %s, %s is terminated", outcome, self)
            return

        tag = outcome.tag
        if tag is Tag.PENDING:
            if self._is_timeout_reached():
                self._deliver_timeout(on_result)
            else:
                self._repeat_timer = self._user_thread.run_after(
                    lambda: self.start(on_result, on_fault), REPEAT_REQUEST_PERIOD_SEC
                )
                on_result(outcome)
        elif tag is Tag.SUCCESS:
            logger.info("%s succeeded", self)
            self.terminate()
            on_result(outcome)
        elif tag is Tag.FAILED or tag is Tag.ERROR:
            self.terminate()
            on_result(outcome)
        else:
            logger.warning("Unexpected result %s", outcome)

    def _on_failure(self, error: BaseException, on_result: ResultHandler, on_fault: FaultHandler) -> None:
        if self._terminated:
            logger.warning("Dropping failure %r, %s is terminated", error, self)
            return

        error_message = f"{self} failed with error {error!r}"
        outcome = Outcome.error(DetailKind.CONNECTION_FAILURE, error_message)
        self._outcome = outcome
        self.terminate()
        cause = error.cause if isinstance(error, TransportError) and error.cause else error
        on_fault(error_message, cause)
        on_result(outcome)

    def _deliver_timeout(self, on_result: ResultHandler) -> None:
        if self._terminated:
            return
        logger.warning("%s got no final result within %s hours, giving up", self,
                       MAX_REQUEST_PERIOD_SEC // 3600)
        outcome = Outcome.error(DetailKind.NO_RESULTS_TIMEOUT)
        self._outcome = outcome
        self.terminate()
        on_result(outcome)

    def _is_timeout_reached(self) -> bool:
        return self._clock() - self.request.first_request > MAX_REQUEST_PERIOD_SEC
