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

import logging
import json
import re
import requests
from urllib.parse import urlparse
import mcp.types as types
from jsonschema import Draft7Validator

from .OroCommerceEndpoint import OroCommerceEndpoint, EndpointParameter, EndpointRequestBody, CallResult, SchemaType
from .OroCommerceCatalog import OroCommerceCatalog
from .Exceptions import ParseError, UpstreamError

# methods that are not published as tools
SKIPPED_METHODS = ('OPTIONS', 'HEAD')

# methods that send the 'requestBody' argument as the payload of the request
BODY_METHODS = ('POST', 'PUT', 'PATCH')

PLACEHOLDER = re.compile(r'\{[^{}]+\}')

# endpoints available in most ORO Commerce installations, used to check the connection
CONNECTION_CHECK_PATHS = ('/admin/api/accounts', '/admin/api/b2bcustomers', '/admin/api/orders', '/admin/api/extproductattributecolors')

def default_operation_id(method:str, path:str) -> str:
    """operationId used when the OpenAPI document does not provide one, eg. 'get__widgets__id_'"""
    return f"{method}_{re.sub('[^a-zA-Z0-9]', '_', path)}"

def tool_name(operation_id:str) -> str:
    """converts an operationId into a snake case tool name, eg. 'get__widgets__id_' -> 'get_widgets_id'"""
    name = re.sub('[^a-zA-Z0-9]', '_', operation_id)
    name = re.sub('_+', '_', name)
    return name.strip('_').lower()

def schema_type(fragment:dict|None) -> SchemaType:
    """maps the schema fragment of a parameter to one of the types supported in the input schema of the tools"""
    if not fragment:
        return SchemaType.STRING
    explicit_type = fragment.get('type')
    if explicit_type:
        try:
            return SchemaType(explicit_type)
        except ValueError:
            return SchemaType.STRING    # 'array', 'null', ... are sent as strings in the URL
    if fragment.get('format') in ('int32', 'int64'):
        return SchemaType.INTEGER
    return SchemaType.STRING

def resolve_ref(document:dict, fragment):
    """
    Returns the object targeted by a local reference (eg. '#/components/parameters/page'),
    'fragment' itself if it is not a reference, or None if the reference cannot be resolved.
    """
    if not isinstance(fragment, dict) or '$ref' not in fragment:
        return fragment
    ref = fragment['$ref']
    if not isinstance(ref, str) or not ref.startswith('#/'):
        return None     # external references are not supported
    target = document
    for part in ref[2:].split('/'):
        part = part.replace('~1', '/').replace('~0', '~')
        if not isinstance(target, dict) or part not in target:
            return None
        target = target[part]
    return target

# adds a parameter into 'input_schema' (for the MCP server client (the AI agent))
def add_param(input_schema:dict, param_name:str, param_type:str, param_desc:str|None, param_required:bool):
    input_schema.get('properties')[param_name] = {'type':        param_type,
                                                  'description': param_desc or f'{param_name} parameter'}
    if param_required and param_name not in input_schema.get('required', []):
        input_schema.setdefault('required', []).append(param_name)


class OroCommerceManager:

    def __init__(self, credentials):
        """
        :no-index:
        Initializes the OroCommerceManager with the provided credentials.

        Args:
            credentials (Credentials): connection settings and access token of the ORO Commerce API

        Attributes:
            logger (logging.Logger): Logger instance for logging information.
            credentials (Credentials): The provided ORO Commerce credentials.
        """
        # Get logger for this class
        self.logger = logging.getLogger(__name__)

        # Initialize with provided credentials
        self.credentials = credentials

    def load_schema(self, raw) -> dict:
        """
        :no-index:
        Parses an OpenAPI document.

        Args:
            raw (bytes|str): the JSON content of the document

        Returns:
            dict: the parsed document

        Raises:
            ParseError: if the content is not JSON or has no 'paths'
        """
        try:
            document = json.loads(raw)
        except (ValueError, TypeError) as e:
            raise ParseError(f"Invalid OpenAPI document: {e}") from e

        if not isinstance(document, dict) or not isinstance(document.get('paths'), dict):
            raise ParseError("Invalid OpenAPI document: the 'paths' field is missing")

        if 'openapi' not in document and 'swagger' in document:
            self.logger.warning("Swagger %s document: only the OpenAPI 3 structure is supported, some endpoints may be incomplete",
                                document.get('swagger'))
        return document

    def fetch_schema(self, location:str) -> dict:
        """
        :no-index:
        Reads the OpenAPI document from a local file, or downloads it when 'location' is a URL.
        """
        try:
            if urlparse(location).scheme not in ('http', 'https'):
                # file
                self.logger.info("Parsing " + location)
                with open(location, 'rb') as f:
                    return self.load_schema(f.read())
            else:
                session = self.credentials.get_session()
                self.logger.info("Retrieving " + location)
                response = session.get(location, timeout=self.credentials.timeout)

                # Check if the request was successful
                if response.status_code == 200:
                    self.logger.info("successfully retrieved openapi!")
                    return self.load_schema(response.content)
                else:
                    self.logger.error("Request failed with status code: %s", response.status_code)
                    self.logger.error("Response: %s", response.text)
                    raise UpstreamError(response.text, response.status_code)

        except OSError as e:
            self.logger.error("An error occurred: %s", e)
            raise ParseError(f"Cannot read the OpenAPI document {location}: {e}") from e

    def fetch_endpoints(self, location:str) -> list[OroCommerceEndpoint]:
        return self.enumerate_endpoints(self.fetch_schema(location))

    def enumerate_endpoints(self, document:dict) -> list[OroCommerceEndpoint]:
        """
        :no-index:
        Extracts one endpoint per (path, method) pair of the OpenAPI document, except the OPTIONS and HEAD methods.
        """

        def parse_parameters(raw_parameters) -> list[EndpointParameter]:
            parameters = []
            for raw in raw_parameters or []:
                param = resolve_ref(document, raw)
                if not isinstance(param, dict) or not param.get('name') or not param.get('in'):
                    self.logger.debug("ignoring parameter %s", raw)
                    continue
                fragment = resolve_ref(document, param.get('schema')) or {}
                parameters.append(EndpointParameter(name        = param['name'],
                                                    location    = param['in'],
                                                    required    = bool(param.get('required', False)),
                                                    schema      = fragment,
                                                    type        = schema_type(fragment),
                                                    description = param.get('description')))
            return parameters

        def merge_parameters(shared:list[EndpointParameter], own:list[EndpointParameter]):
            # the parameters of the operation override those of the path item
            overridden = {(param.name, param.location) for param in own}
            return [param for param in shared if (param.name, param.location) not in overridden] + own

        def parse_request_body(raw) -> EndpointRequestBody | None:
            body = resolve_ref(document, raw)
            if not isinstance(body, dict):
                return None
            return EndpointRequestBody(required    = bool(body.get('required', False)),
                                       description = body.get('description'),
                                       content     = body.get('content') or {})

        def parse_responses(raw_responses) -> dict[str, str]:
            responses = {}
            for code, raw in (raw_responses or {}).items():
                response = resolve_ref(document, raw)
                if isinstance(response, dict):
                    responses[str(code)] = response.get('description', '')
            return responses

        endpoints = []
        for path, path_item in document.get('paths', {}).items():
            if not isinstance(path_item, dict):
                continue
            shared_parameters = parse_parameters(path_item.get('parameters'))

            for key, operation in path_item.items():
                if key == 'parameters' or not key.isalpha() or not isinstance(operation, dict):
                    continue
                method = key.upper()
                if method in SKIPPED_METHODS:
                    continue

                tags = [tag for tag in operation.get('tags') or [] if isinstance(tag, str)]
                endpoints.append(OroCommerceEndpoint(path         = path,
                                                     method       = method,
                                                     operation_id = operation.get('operationId') or default_operation_id(key, path),
                                                     summary      = operation.get('summary'),
                                                     description  = operation.get('description'),
                                                     tags         = tags,
                                                     parameters   = merge_parameters(shared_parameters, parse_parameters(operation.get('parameters'))),
                                                     request_body = parse_request_body(operation.get('requestBody')),
                                                     responses    = parse_responses(operation.get('responses'))))

        self.logger.info("Found %d endpoints in the OpenAPI document", len(endpoints))
        return endpoints

    def synthesize_tool(self, endpoint:OroCommerceEndpoint) -> types.Tool:
        """
        :no-index:
        Builds the MCP tool of an endpoint and attaches it to the endpoint.
        """
        input_schema = {'type': 'object', 'properties': {}}

        for location in ('path', 'query'):
            for param in endpoint.get_parameters(location):
                if param.name in input_schema['properties']:
                    # a query parameter named like a path parameter cannot be told apart in the flat arguments
                    self.logger.warning("%s %s: %s parameter %s hides another parameter with the same name",
                                        endpoint.method, endpoint.path, location, param.name)
                    continue
                add_param(input_schema,
                          param_name     = param.name,
                          param_type     = param.type.value,
                          param_desc     = param.description,
                          param_required = param.required)

        if endpoint.request_body is not None and endpoint.request_body.required:
            input_schema['properties']['requestBody'] = {'type':        SchemaType.OBJECT.value,
                                                         'description': endpoint.request_body.description or 'Request body data'}
            input_schema.setdefault('required', []).append('requestBody')

        description = endpoint.summary or endpoint.description
        if not description:
            resource = endpoint.path.split('/')[-1].replace('{', '').replace('}', '') or 'resource'
            description = f"{endpoint.method} {resource} from ORO Commerce API"
        description += f"\n\n**Endpoint:** {endpoint.method} {endpoint.path}"
        if endpoint.tags:
            description += f"\n**Categories:** {', '.join(endpoint.tags)}"

        endpoint.tool = types.Tool(
            name=tool_name(endpoint.operation_id),
            title=endpoint.summary or None,
            description=description,
            inputSchema=input_schema,
        )
        return endpoint.tool

    def generate_tools_format(self, endpoints:list[OroCommerceEndpoint],
                              tags: list[str] = (), tools_to_publish: list[str] = (), tools_to_ignore: list[str] = (),
                              reserved_names: list[str] = ()) -> OroCommerceCatalog:
        """
        :no-index:
        Convert the endpoints to the tools format

        Args:
            endpoints (list): the endpoints found in the OpenAPI document
            tags (list): if not empty, only the tools having one of these tags (lower case) are published
            tools_to_publish (list): if not empty, only these tools are published
            tools_to_ignore (list): tools not published (ignored if tools_to_publish is not empty)
            reserved_names (list): names already taken by other tools of the server, never given to an endpoint

        Returns:
            OroCommerceCatalog: the published tools.
        """
        published = []
        for endpoint in endpoints:
            tool = self.synthesize_tool(endpoint)

            # optionally filter out tools based on their tag
            if len(tags) > 0 and not any(tag.lower() in tags for tag in endpoint.tags):
                continue

            # optionally ignore tools based on their name
            if   len(tools_to_publish) > 0 and tool.name not in tools_to_publish:
                continue # ignore this tool as it is not in the list of tools to be published
            elif len(tools_to_publish) == 0 and tool.name in tools_to_ignore:
                continue # ignore this tool as it is in the list of tools to be discarded/not published

            published.append(endpoint)

        catalog = OroCommerceCatalog(published, reserved_names)
        self.logger.info("Successfully generated %d MCP tools for the ORO Commerce REST API", len(catalog))
        return catalog

    def validate_arguments(self, endpoint:OroCommerceEndpoint, arguments:dict) -> list[str]:
        """
        Checks the presence of the required arguments and their types against the input schema of the tool.
        The result is informational: the call is dispatched anyway.
        """
        if endpoint.tool is None:
            return []
        validator = Draft7Validator(endpoint.tool.inputSchema)
        return [error.message for error in validator.iter_errors(arguments)]

    def build_path(self, path:str, path_params:dict|None) -> str:
        for name, value in (path_params or {}).items():
            path = path.replace('{'+name+'}', stringify(value))
        return path

    def invoke_tool(self, endpoint:OroCommerceEndpoint, arguments:dict|None) -> CallResult:
        """
        Invokes the endpoint of a tool with the flat arguments received from the AI agent:
        declared path parameters go in the URL, 'requestBody' is the payload, anything else is a query parameter.
        """
        path_params  = {}
        query_params = {}
        request_body = None

        # the path parameters win over the other parameters having the same name
        locations = {param.name: param.location for param in endpoint.parameters if param.location != 'path'}
        locations.update({param.name: param.location for param in endpoint.get_parameters('path')})
        for name, value in (arguments or {}).items():
            if value is None:
                continue
            if name == 'requestBody':
                request_body = value
            elif locations.get(name) == 'path':
                path_params[name] = value
            elif locations.get(name) in ('header', 'cookie'):
                self.logger.debug("ignoring %s parameter %s", locations.get(name), name)
            else:
                query_params[name] = value

        return self.execute_endpoint(endpoint, path_params, query_params, request_body)

    def execute_endpoint(self, endpoint:OroCommerceEndpoint, path_params:dict|None = None,
                         query_params:dict|None = None, request_body = None) -> CallResult:
        """
        :no-index:
        Invokes an ORO Commerce REST API endpoint.
        Raises an AuthenticationError if no access token could be obtained.

        Args:
            endpoint (OroCommerceEndpoint): the endpoint to invoke
            path_params (dict): values of the placeholders of the path
            query_params (dict): query parameters
            request_body: payload, only sent with POST, PUT and PATCH

        Returns:
            CallResult: the outcome of the call
        """
        path = self.build_path(endpoint.path, path_params)
        if PLACEHOLDER.search(path):
            self.logger.warning("Missing path parameter(s) in %s %s", endpoint.method, path)

        kwargs = {}
        if request_body is not None and endpoint.method in BODY_METHODS:
            kwargs['json'] = request_body

        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug("%s %s query=%s body=%s", endpoint.method, path, query_params, kwargs.get('json'))

        # this call may throw an AuthenticationError
        session = self.credentials.get_session()
        try:
            response = session.request(method=endpoint.method,
                                       url=self.credentials.shop_url + path,
                                       params=query_params or {},
                                       timeout=self.credentials.timeout,
                                       **kwargs)
        except requests.RequestException as e:
            self.logger.error(f"Request error, endpoint: {endpoint.method} {path}, error: {e}")
            return CallResult(success=False, endpoint=endpoint.echo(), error=f'API call failed: {e}')
        finally:
            session.close()

        # check response
        if 200 <= response.status_code < 300:
            self.logger.debug(f"Request successful, status: {response.status_code}")
            return CallResult(success=True, endpoint=endpoint.echo(),
                              data=decode_payload(response),
                              status_code=response.status_code)
        else:
            err = error_message(response)
            self.logger.error(f"Request error, status: {response.status_code}, error: {err}")
            return CallResult(success=False, endpoint=endpoint.echo(),
                              error=f'API call failed: {err}',
                              status_code=response.status_code)

    def check_connection(self, paths=CONNECTION_CHECK_PATHS) -> CallResult:
        """
        Obtains an access token, then GETs the first page of each endpoint of 'paths' until one succeeds.
        Raises an AuthenticationError if no access token could be obtained.

        Returns:
            CallResult: the first successful call, or the last failed one
        """
        self.credentials.ensure_valid_token()

        result = None
        for path in paths:
            endpoint = OroCommerceEndpoint(path=path, method='GET', operation_id=default_operation_id('get', path))
            result = self.execute_endpoint(endpoint, query_params={'page[size]': 1})
            if result.success:
                self.logger.info("Connection to ORO Commerce checked with %s", path)
                return result
            self.logger.warning("Connection check with %s failed: %s", path, result.error)
        return result

def stringify(value) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)

def decode_payload(response):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text

# the most specific error message found in an error response
def error_message(response) -> str:
    payload = decode_payload(response)
    if isinstance(payload, dict):
        if payload.get('message'):
            return str(payload['message'])
        errors = payload.get('errors')
        if isinstance(errors, list) and len(errors) > 0 and isinstance(errors[0], dict):
            detail = errors[0].get('detail') or errors[0].get('title')
            if detail:
                return str(detail)
    elif isinstance(payload, str) and payload.strip():
        return payload
    return response.reason or f'Request failed with status code {response.status_code}'
