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

class OroCommerceError(Exception):
    """Base class of the errors raised by the ORO Commerce MCP server"""


class ParseError(OroCommerceError, ValueError):
    """The OpenAPI document cannot be read or has no 'paths'"""


class AuthenticationError(OroCommerceError):
    """The client-credentials exchange with the token endpoint failed"""


class ToolNotFoundError(OroCommerceError, ValueError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ValidationError(OroCommerceError, ValueError):
    """The arguments of a tool call do not match what the tool expects"""


class UpstreamError(OroCommerceError):
    """
    The ORO Commerce API answered with an error or could not be reached.

    Args:
        message (str): text reported to the AI assistant
        status_code (int): HTTP status, None when no response was received
    """
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
