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

from enum import Enum
import mcp.types as types

class SchemaType(str, Enum):
    """JSON schema types used in the input schema of the tools"""
    STRING  = 'string'
    INTEGER = 'integer'
    NUMBER  = 'number'
    BOOLEAN = 'boolean'
    OBJECT  = 'object'

class EndpointParameter:
    """
    A path, query, header or cookie parameter of an ORO Commerce REST API endpoint.

    Attributes:
        name     (str): name of the parameter
        location (str): 'path', 'query', 'header' or 'cookie'
        required (bool):
        schema   (dict): the OpenAPI schema fragment of the parameter
        type     (SchemaType): the type derived from 'schema'
        description (str):
    """
    def __init__(self, name:str, location:str, required:bool=False, schema:dict|None=None,
                 type:SchemaType=SchemaType.STRING, description:str|None=None):
        self.name        = name
        self.location    = location
        self.required    = required
        self.schema      = schema if schema is not None else {}
        self.type        = type
        self.description = description

    def __repr__(self):
        return f"EndpointParameter({self.name!r}, {self.location!r}, required={self.required})"

class EndpointRequestBody:
    def __init__(self, required:bool=False, description:str|None=None, content:dict|None=None):
        self.required    = required
        self.description = description
        self.content     = content if content is not None else {}

class OroCommerceEndpoint:
    """
    This class encapsulates the metadata and tool description of an ORO Commerce REST API endpoint.
    Instances are created once when the OpenAPI document is loaded and are not modified afterwards
    (except for 'tool', set when the tool is synthesized).

    Attributes:
        path   (str):  path template, eg. /admin/api/accounts/{id}
        method (str):  GET, POST, PUT, PATCH, DELETE,...
        operation_id (str):
        summary (str):
        description (str):
        tags (tuple[str]): categories of the endpoint
        parameters (tuple[EndpointParameter]):
        request_body (EndpointRequestBody): None if the endpoint has no body
        responses (dict): status code -> description
        tool (types.Tool): An object describing the tool, including its name, description, and input schema.
    """
    def __init__(self, path:str, method:str, operation_id:str,
                 summary:str='', description:str='', tags:list[str]=(),
                 parameters:list[EndpointParameter]=(), request_body:EndpointRequestBody|None=None,
                 responses:dict[str, str]|None=None):
        self.path         = path
        self.method       = method.upper()
        self.operation_id = operation_id
        self.summary      = summary or ''
        self.description  = description or ''
        self.tags         = tuple(tags)
        self.parameters   = tuple(parameters)
        self.request_body = request_body
        self.responses    = dict(responses or {})
        self.tool : types.Tool | None = None

    def get_parameters(self, location:str) -> list[EndpointParameter]:
        return [param for param in self.parameters if param.location == location]

    def echo(self) -> dict[str, str]:
        """the endpoint reference echoed in the result of a call"""
        return {'path': self.path, 'method': self.method, 'operationId': self.operation_id}

    def __repr__(self):
        return f"OroCommerceEndpoint({self.method} {self.path}, operation_id={self.operation_id!r})"

class CallResult:
    """
    The normalized outcome of an ORO Commerce REST API call.

    Attributes:
        success (bool):
        data: the payload of the response (success only)
        error (str): the error message (failure only)
        status_code (int): HTTP status of the response, None if no response was received
        endpoint (dict): {path, method, operationId} of the endpoint invoked
    """
    def __init__(self, success:bool, endpoint:dict[str, str], data=None, error:str|None=None, status_code:int|None=None):
        self.success     = success
        self.data        = data
        self.error       = error
        self.status_code = status_code
        self.endpoint    = endpoint

    def __repr__(self):
        return f"CallResult(success={self.success}, status_code={self.status_code}, endpoint={self.endpoint})"
