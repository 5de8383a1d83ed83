from urllib3.util.retry import Retry
import requests
from requests.adapters import HTTPAdapter
from typing import Optional

# Operation-level retries live in coreutils.retry; the adapter only
# re-establishes connections that were refused before a request was sent.
CONNECT_RETRY_STRATEGY = Retry(
    total=None,
    connect=2,
    read=0,
    status=0,
    other=0,
    backoff_factor=1,
    raise_on_status=False,
)


def new_session(https_proxy: Optional[str] = None) -> requests.Session:
    """Create a new requests session with connect retries and optional proxy"""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=CONNECT_RETRY_STRATEGY)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    if https_proxy:
        session.proxies.update({"http": https_proxy, "https": https_proxy})
    else:
        # Ignore proxy settings inherited from the environment
        session.trust_env = False

    session.headers.update(
        {"User-Agent": "icm-extractor/1.0", "Accept": "application/json"}
    )

    return session
