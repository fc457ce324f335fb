"""
This module implements the security headers that are sent with every
response.
"""

from ._pipeline import Stage


DEFAULT_SECURITY_HEADERS = {
    "x-content-type-options": "nosniff",
    "x-frame-options": "DENY",
    "referrer-policy": "no-referrer-when-downgrade",
    "permissions-policy": "geolocation=(), microphone=(), camera=()",
}


class SecurityHeadersStage(Stage):
    """ Pipeline stage that sets the security headers. The defaults can be
    overridden via the config. Content-Security-Policy is only sent when
    configured, and Strict-Transport-Security only when configured and
    the request came in over https.
    """

    name = "security"

    def __init__(self, config):
        self._headers = dict(DEFAULT_SECURITY_HEADERS)
        self._headers.update(config.security_header_overrides)
        if config.csp_header:
            self._headers["content-security-policy"] = config.csp_header
        self._hsts = None
        if config.hsts_max_age:
            self._hsts = f"max-age={config.hsts_max_age:d}; includeSubDomains"

    @property
    def headers(self):
        """ The headers that are set on every response (a copy).
        """
        return dict(self._headers)

    def process(self, request, response):
        response.headers.update(self._headers)
        if self._hsts and request.scheme == "https":
            response.headers["strict-transport-security"] = self._hsts
        return response
