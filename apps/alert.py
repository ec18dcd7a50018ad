import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter, Retry

from core.settings import Settings, load_settings

_session = requests.Session()
retries = Retry(total=3, backoff_factor=0.5, status_forcelist=[500, 502, 503, 504])
_session.mount("https://", HTTPAdapter(max_retries=retries))


def send(text: str, settings: Optional[Settings] = None) -> bool:
    """
    Post `text` to the configured Telegram chat.

    Without a bot token the message is only logged. Failures are logged and
    never raised, so alerts cannot break a trading run.
    """
    settings = settings or load_settings()
    if not settings.telegram_token or not settings.telegram_chat_id:
        logging.info("Alert (telegram not configured):\n%s", text)
        return False

    url = f"https://api.telegram.org/bot{settings.telegram_token}/sendMessage"
    try:
        resp = _session.post(
            url,
            json={"chat_id": settings.telegram_chat_id, "text": text},
            timeout=settings.request_timeout,
        )
        resp.raise_for_status()
        return True
    except Exception as exc:
        logging.error("Telegram failed: %s", exc)
        return False
