# Copyright contributors to the ORO Commerce MCP Server project
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import requests
from requests.adapters import HTTPAdapter
import ssl
import logging
import threading
import time
from validator_collection import checkers

from .Exceptions import AuthenticationError

class CustomHTTPAdapter(HTTPAdapter):
    """
    A class that modifies the default behaviour with regards to certificates in order to
        - accept self-signed certificates
        - skip hostname verification
    """
    def __init__(self, certfile=None):
         self.certfile = certfile
         HTTPAdapter.__init__(self)

    def init_poolmanager(self, *args, **kwargs):
        context = ssl.create_default_context(cafile = self.certfile)
        context.verify_flags = ssl.VERIFY_ALLOW_PROXY_CERTS | ssl.VERIFY_X509_TRUSTED_FIRST | ssl.VERIFY_X509_PARTIAL_CHAIN
        kwargs['ssl_context'] = context
        kwargs['assert_hostname'] = False
        return super().init_poolmanager(*args, **kwargs)

class Credentials:
    """
    Holds the connection settings of an ORO Commerce back-office API and the OAuth2 access token.

    The token is obtained with a client-credentials grant and renewed proactively,
    TOKEN_EXPIRY_MARGIN seconds before the expiry declared by the server.
    """

    TOKEN_PATH          = '/oauth2-token'
    TOKEN_EXPIRY_MARGIN = 300   # seconds
    DEFAULT_TIMEOUT     = 30    # seconds

    # headers sent with every API request
    DEFAULT_HEADERS = {
        'Content-Type':       'application/json',
        'Accept':             'application/json',
        'X-Include':          'noHateoas;totalCount',
        'X-Integration-Type': 'ERP',
    }

    def __init__(self, shop_url, client_id=None, client_secret=None,
                 verify_ssl=True, ssl_cert_path=None,
                 timeout=DEFAULT_TIMEOUT):

        # Get logger for this class with explicit name to ensure consistency
        self.logger = logging.getLogger("orocommerce_mcp_server.Credentials")

        # remove the ending / and check the URL of the shop
        if not shop_url:
            raise ValueError("Please set the URL of the ORO Commerce shop")
        self.shop_url = shop_url.rstrip('/')
        if not checkers.is_url(self.shop_url, allow_special_ips=True):
            raise ValueError("'"+self.shop_url+"' is not a valid URL")

        if not client_id or not client_secret:
            raise ValueError("Both 'client_id' and 'client_secret' are required for the client credentials authentication.")

        if verify_ssl:
            import certifi
            self.cacert = ssl_cert_path if ssl_cert_path else certifi.where()
        else:
            self.cacert = False

        self.token_url     = self.shop_url + Credentials.TOKEN_PATH
        self.client_id     = client_id
        self.client_secret = client_secret
        self.verify_ssl    = verify_ssl
        self.ssl_cert_path = ssl_cert_path
        self.timeout       = timeout

        # the credential: only modified by refresh_token()
        self.access_token = None
        self.token_expiry = None
        self._token_lock  = threading.Lock()

    def has_valid_token(self) -> bool:
        return self.access_token is not None and \
               self.token_expiry is not None and time.time() < self.token_expiry

    def ensure_valid_token(self) -> str:
        """
        Returns an access token that has not reached its (early) expiry,
        requesting a new one from the token endpoint if needed.

        Raises:
            AuthenticationError: if the token could not be obtained
        """
        with self._token_lock:
            if not self.has_valid_token():
                self.refresh_token()
            return self.access_token

    def refresh_token(self):
        """
        Requests a new access token using the client credentials grant.
        The request is form-url-encoded: the ORO token endpoint rejects JSON payloads.
        """
        data = {
            'grant_type':    'client_credentials',
            'client_id':     self.client_id,
            'client_secret': self.client_secret,
        }
        try:
            response = requests.post(self.token_url,
                                     data=data,
                                     verify=self.cacert,
                                     timeout=self.timeout)
            response.raise_for_status() # raise an HTTPError if the request failed
            token_data   = response.json()
            access_token = token_data['access_token']
            expires_in   = float(token_data['expires_in'])
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            self.logger.error("Failed to refresh the ORO Commerce access token: %s", e)
            raise AuthenticationError('Authentication failed with ORO Commerce API') from e

        self.access_token = access_token
        self.token_expiry = time.time() + expires_in - Credentials.TOKEN_EXPIRY_MARGIN
        self.logger.info("ORO Commerce access token refreshed successfully")

    def get_auth(self):
        return {
            'Authorization': f'Bearer {self.ensure_valid_token()}'
        }

    def get_session(self):
        """
        Creates and returns a requests Session object configured with SSL settings
        and the headers expected by the ORO Commerce API (including a valid bearer token)
        """
        session = requests.Session()

        if self.shop_url.startswith('https') and self.verify_ssl:
            session.verify = self.cacert
            session.mount('https://', CustomHTTPAdapter(certfile = self.ssl_cert_path))
        else:
            session.verify = False
            import urllib3
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        session.headers.update(Credentials.DEFAULT_HEADERS)
        session.headers.update(self.get_auth())

        self.logger.debug(f"Session created with URL: {self.shop_url}")
        return session
