"""Settings loaded from the environment (.env)."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

VERSION = "0.1.0"
PRODUCT = "txproof"
DEFAULT_USER_AGENT = f"{PRODUCT}/{VERSION}"

DEFAULT_SERVICE_ADDRESS = "xmrblocks.bisq.services"
DEFAULT_CONFIRMATIONS = 10


@dataclass(frozen=True)
class Settings:
    service_address: str
    socks5_proxy: Optional[str]
    num_required_confirmations: int
    user_agent: str


def load_settings() -> Settings:
    load_dotenv()
    product = os.getenv("XMR_PROOF_USER_AGENT") or PRODUCT
    confirmations = os.getenv("XMR_PROOF_CONFIRMATIONS")
    return Settings(
        service_address=os.getenv("XMR_PROOF_SERVICE") or DEFAULT_SERVICE_ADDRESS,
        socks5_proxy=os.getenv("XMR_PROOF_SOCKS5_PROXY") or None,
        num_required_confirmations=int(confirmations) if confirmations else DEFAULT_CONFIRMATIONS,
        user_agent=f"{product}/{VERSION}",
    )
