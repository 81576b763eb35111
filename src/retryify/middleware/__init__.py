"""retryify.middleware -- composable wrappers around a send operation.

This sub-package provides:

* :mod:`.engine` -- the shared, cancellable retry loop.
* :mod:`.retry_after_header` -- ``Retry-After`` header parsing.
* :mod:`.retry_after` -- retry on the server's ``Retry-After`` delay.
* :mod:`.retry_status` -- retry on status code with a backoff policy.
* :mod:`.authorization` -- ``Authorization`` injection and refresh on 401.
* :mod:`.base_url`, :mod:`.headers`, :mod:`.cookies`, :mod:`.query_params`,
  :mod:`.response_error`, :mod:`.request_log` -- request shaping, error
  mapping and logging.
* :mod:`.compose` -- stacking middlewares.
"""

from __future__ import annotations

from .authorization import validate_token, with_authorization
from .base_url import resolve_target, with_base_url
from .compose import compose, pipeline
from .cookies import with_cookie, with_cookies
from .engine import DISPOSE_REASON, RetryLoop, dispose_body, policy_delay
from .headers import with_header, with_headers
from .query_params import merge_query, with_query_param, with_query_params
from .request_log import with_logging
from .response_error import default_error_mapper, with_response_error
from .retry_after import with_retry_after
from .retry_after_header import parse_http_date, parse_retry_after
from .retry_status import with_retry_status

__all__ = [
    "DISPOSE_REASON",
    "RetryLoop",
    "compose",
    "default_error_mapper",
    "dispose_body",
    "merge_query",
    "parse_http_date",
    "parse_retry_after",
    "pipeline",
    "policy_delay",
    "resolve_target",
    "validate_token",
    "with_authorization",
    "with_base_url",
    "with_cookie",
    "with_cookies",
    "with_header",
    "with_headers",
    "with_logging",
    "with_query_param",
    "with_query_params",
    "with_response_error",
    "with_retry_after",
    "with_retry_status",
]
