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

from typing import Optional
import mcp.types as types
from mcp.server.fastmcp import FastMCP
import logging
import argparse
import os
import sys

from .Credentials import Credentials
from .OroCommerceManager import OroCommerceManager, default_operation_id
from .OroCommerceEndpoint import OroCommerceEndpoint, CallResult
from .OroCommerceCatalog import OroCommerceCatalog
from .ResponseFormatter import format_response, format_endpoint_list, format_statistics, format_tool_documentation
from .ToolTrace import DiskTraceStorage, ToolExecutionTrace
from .Exceptions import ToolNotFoundError, UpstreamError, ValidationError

INSTRUCTIONS = """
ORO Commerce MCP server
This server provides access to the back-office REST API of ORO Commerce.
You can invoke REST API endpoints using the provided tools,
or find endpoints with oro_list_endpoints and call them with oro_execute.
"""

HTTP_METHODS = ['GET', 'POST', 'PUT', 'DELETE', 'PATCH']

META_TOOLS = [
    types.Tool(
        name='oro_list_endpoints',
        description='List the available API endpoints with optional filtering by category, search terms, or HTTP method',
        inputSchema={
            'type': 'object',
            'properties': {
                'category': {'type': 'string', 'description': 'Filter by category/tag (e.g., "products", "orders", "accounts")'},
                'search':   {'type': 'string', 'description': 'Search by keyword (e.g., "kitItems", "lineItems", "addresses")'},
                'method':   {'type': 'string', 'description': 'Filter by HTTP method', 'enum': HTTP_METHODS},
                'limit':    {'type': 'number', 'description': 'Maximum number of results to return (default: 50, max: 200)',
                             'minimum': 1, 'maximum': 200},
            },
        },
    ),
    types.Tool(
        name='oro_execute',
        description='Execute any ORO Commerce API endpoint directly',
        inputSchema={
            'type': 'object',
            'properties': {
                'endpoint':    {'type': 'string', 'description': 'API endpoint path (e.g., "/admin/api/products/{id}/kitItems")'},
                'method':      {'type': 'string', 'description': 'HTTP method', 'enum': HTTP_METHODS},
                'pathParams':  {'type': 'object', 'description': 'Path parameters as key-value pairs (e.g., {"id": "123"})'},
                'queryParams': {'type': 'object', 'description': 'Query parameters as key-value pairs'},
                'requestBody': {'type': 'object', 'description': 'Request body for POST/PUT/PATCH requests'},
            },
            'required': ['endpoint', 'method'],
        },
    ),
    types.Tool(
        name='oro_tool_info',
        description='Get the documentation of a tool: endpoint, parameters, request body and responses',
        inputSchema={
            'type': 'object',
            'properties': {
                'toolName': {'type': 'string', 'description': 'Name of the tool'},
            },
            'required': ['toolName'],
        },
    ),
    types.Tool(
        name='oro_stats',
        description='Get quick statistics about the available API endpoints',
        inputSchema={'type': 'object', 'properties': {}},
    ),
    types.Tool(
        name='oro_help',
        description='Get a workflow guide and examples for using the ORO Commerce API',
        inputSchema={'type': 'object', 'properties': {}},
    ),
    types.Tool(
        name='oro_test_connection',
        description='Check the credentials and the connection to the ORO Commerce API',
        inputSchema={'type': 'object', 'properties': {}},
    ),
]

HELP = """# ORO Commerce API Workflow Guide

## 1. Find endpoints
oro_list_endpoints search="kitItems"
oro_list_endpoints category="products" method="GET"

## 2. Read the documentation of a tool
oro_tool_info toolName="<tool name>"

## 3. Execute API calls
oro_execute endpoint="/admin/api/products" method="GET" queryParams={"page[size]": 10}
oro_execute endpoint="/admin/api/products/{id}/kitItems" method="GET" pathParams={"id": "123"}

## Tips
- Use oro_test_connection if the calls fail with authentication errors
- Use oro_stats for a quick overview of the categories
- Check the required parameters before executing
- A request body is only sent with POST, PUT and PATCH
"""

class MCPServer:

    def __init__(self, credentials: Credentials,
                 openapi: str = 'oro_commerce_swagger_dump.json',
                 tags: list[str] = (), tools: list[str] = (), no_tools: list[str] = (),
                 meta_only: bool = False,
                 trace_storage: Optional[DiskTraceStorage] = None,
                 transport: Optional[str] = 'stdio', host: Optional[str] = '0.0.0.0', port: Optional[int] = 3000, path: Optional[str] = '/mcp'):
        # Get logger for this class
        self.logger = logging.getLogger(__name__)
        self.credentials = credentials
        self.openapi = openapi
        self.tags: list[str] = tags
        self.tools: list[str] = tools       # explicit list of tools to publish
        self.no_tools: list[str] = no_tools # explicit list of tools to discard
        self.meta_only = meta_only          # only publish the meta tools (the endpoints remain reachable with oro_execute)
        self.trace_storage = trace_storage
        self.transport = transport
        self.host      = host
        self.port      = port
        self.path      = path
        self.repository = OroCommerceCatalog()
        self.manager = OroCommerceManager(credentials=credentials)
        self.meta_handlers = {
            'oro_list_endpoints':  self.list_endpoints,
            'oro_execute':         self.execute,
            'oro_tool_info':       self.tool_info,
            'oro_stats':           self.stats,
            'oro_help':            self.help,
            'oro_test_connection': self.check_connection,
        }

    def update_repository(self):
        # generate the MCP tools for the ORO Commerce REST API
        endpoints       = self.manager.fetch_endpoints(self.openapi)
        self.repository = self.manager.generate_tools_format(endpoints, self.tags, self.tools, self.no_tools,
                                                             reserved_names=[tool.name for tool in META_TOOLS])

        if self.trace_storage:
            self.trace_storage.save_configuration(self.repository.values())

    async def list_tools(self) -> list[types.Tool]:
        """
        List available tools.
        Each tool specifies its arguments using JSON Schema validation.
        """
        tools = list(META_TOOLS)
        if not self.meta_only:
            for tool_name, endpoint in self.repository.items():
                tools.append(endpoint.tool)
        return tools

    async def call_tool(self,
        name: str, arguments: dict | None
    ) -> list[types.TextContent]:
        """
        Handle tool execution requests.
        """
        self.logger.info("Invoking tool: %s with arguments: %s", name, arguments)
        arguments = arguments or {}

        handler = self.meta_handlers.get(name)
        if handler is not None:
            response_text = handler(arguments)
        else:
            endpoint : OroCommerceEndpoint = self.repository.get(name)
            if endpoint is None:
                raise ToolNotFoundError(name)

            for error in self.manager.validate_arguments(endpoint, arguments):
                self.logger.warning("Tool %s: %s", name, error)

            # this call may throw an AuthenticationError, handled by Server.call_tool.handler
            result = self.manager.invoke_tool(endpoint, arguments)
            response_text = self.report(endpoint, arguments, result)

        return [
            types.TextContent(
                type="text",
                text=response_text,
            )
        ]

    def report(self, endpoint: OroCommerceEndpoint, arguments: dict, result: CallResult) -> str:
        """traces the execution and formats its result, raises an UpstreamError if the call failed"""
        if self.trace_storage:
            self.trace_storage.save(ToolExecutionTrace(endpoint, arguments, result))

        response_text = format_response(result)
        if not result.success:
            raise UpstreamError(response_text, result.status_code)
        return response_text

    def list_endpoints(self, arguments: dict) -> str:
        category = arguments.get('category')
        search   = arguments.get('search')
        method   = arguments.get('method')
        limit    = arguments.get('limit')
        if limit is not None:
            try:
                limit = int(limit)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Invalid `limit`: {limit!r} is not a number") from e
        endpoints, total = self.repository.filter(category=category, search=search, method=method, limit=limit)
        return format_endpoint_list(endpoints, total, category=category, search=search, method=method)

    def execute(self, arguments: dict) -> str:
        path   = arguments.get('endpoint')
        method = arguments.get('method')
        if not path or not method:
            raise ValidationError('Missing required parameters: `endpoint` and `method` are required. '
                                  'Example: oro_execute endpoint="/admin/api/products" method="GET"')

        endpoint = self.repository.find(method, path)
        if endpoint is None:
            self.logger.debug("%s %s is not a published endpoint", method, path)
            endpoint = OroCommerceEndpoint(path=path, method=method,
                                           operation_id=default_operation_id(method.lower(), path))
            self.manager.synthesize_tool(endpoint)

        result = self.manager.execute_endpoint(endpoint,
                                               path_params =arguments.get('pathParams'),
                                               query_params=arguments.get('queryParams'),
                                               request_body=arguments.get('requestBody'))
        return self.report(endpoint, arguments, result)

    def tool_info(self, arguments: dict) -> str:
        name = arguments.get('toolName')
        endpoint = self.repository.get(name)
        if endpoint is None:
            raise ToolNotFoundError(name)
        return format_tool_documentation(endpoint)

    def stats(self, arguments: dict) -> str:
        return format_statistics(self.repository.statistics())

    def help(self, arguments: dict) -> str:
        return HELP

    def check_connection(self, arguments: dict) -> str:
        # this call may throw an AuthenticationError
        result = self.manager.check_connection()
        if not result.success:
            raise UpstreamError("Connection to ORO Commerce failed\n\n" + format_response(result), result.status_code)
        return "Connection to ORO Commerce successful\n\n" + format_response(result)

    def start(self):
        self.server = FastMCP(name="orocommerce-mcp-server",
                              instructions=INSTRUCTIONS,
                              host=self.host,
                              port=self.port,
                              sse_path=self.path,
                              streamable_http_path=self.path,
                             )
        # Register handlers
        self.server._mcp_server.list_tools()(self.list_tools)
        self.server._mcp_server.call_tool(validate_input=False)(self.call_tool)

        self.server.run(transport=self.transport)

def init_logging(level_name):
    level=getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logging.info(f"Running Python {sys.version_info}. Logging level set to: {logging.getLevelName(level)}")

def create_credentials(args):
    return Credentials(
        shop_url=args.url,
        client_id=args.client_id,
        client_secret=args.client_secret,
        verify_ssl=args.verifyssl != "False",
        ssl_cert_path=args.ssl_cert_path,
    )

def create_trace_storage(args):
    trace = args.trace or []
    if not trace:
        return None
    return DiskTraceStorage(trace_executions   ='EXECUTIONS'    in trace,
                            trace_configuration='CONFIGURATION' in trace,
                            storage_dir=args.traces_dir,
                            max_traces=args.traces_maxsize)

def init(args):
    init_logging(args.log_level)
    credentials = create_credentials(args)
    server = MCPServer(
        credentials=credentials,
        openapi =args.openapi,
        tags    =[tag.lower()  for tag  in args.tags]     if args.tags else [],
        tools   =[tool.lower() for tool in args.tools]    if args.tools else [],
        no_tools=[tool.lower() for tool in args.no_tools] if args.no_tools else [],
        meta_only=args.meta_only == "True",
        trace_storage=create_trace_storage(args),
        transport=args.transport, host=args.host, port=args.port, path=args.mount_path,
    )
    server.update_repository()
    return server

# list-valued options read from the environment are space separated
def env_list(name):
    value = os.getenv(name)
    return value.split() if value else None

def parse_arguments():
    parser = argparse.ArgumentParser(description="ORO Commerce MCP Server")
    parser.add_argument("--url",               type=str, default=os.getenv("ORO_SHOP_URL"), help="ORO Commerce shop URL (eg. https://myshop.example.com)")
    parser.add_argument("--client-id",         type=str, default=os.getenv("ORO_CLIENT_ID"), help="OAuth2 Client ID of the ORO Commerce API application")
    parser.add_argument("--client-secret",     type=str, default=os.getenv("ORO_CLIENT_SECRET"), help="OAuth2 Client Secret of the ORO Commerce API application")
    parser.add_argument("--openapi",           type=str, default=os.getenv("OPENAPI_FILE", "oro_commerce_swagger_dump.json"), help="Path or URL of the OpenAPI document describing the ORO Commerce REST API")
    parser.add_argument("--verifyssl",         type=str, default=os.getenv("VERIFY_SSL", "True"), choices=["True", "False"], help="Disable SSL check. Default is True (SSL verification enabled).")
    parser.add_argument("--ssl-cert-path",     type=str, default=os.getenv("SSL_CERT_PATH"), help="Path to the SSL certificate file. If not provided, defaults to system certificates.")

    # arguments useful when running the MCP server in remote mode
    parser.add_argument("--transport",         type=str, default=os.getenv("TRANSPORT", "stdio"), choices=["stdio", "streamable-http", "sse"], help="Means of communication of the MCP server: local (stdio) or remote.")
    parser.add_argument("--host",              type=str, default=os.getenv("HOST", "0.0.0.0"), help="IP or hostname that the MCP server listens to in remote mode.")
    parser.add_argument("--port",              type=int, default=os.getenv("PORT", 3000), help="Port that the MCP server listens to in remote mode.")
    parser.add_argument("--mount-path",        type=str, default=os.getenv("MOUNT_PATH", "/mcp"), help="Path that the MCP server listens to in remote mode.")

    # Logging-related arguments
    parser.add_argument("--log-level",         type=str, default=os.getenv("LOG_LEVEL", "INFO"),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Set the logging level (default: INFO)")
    parser.add_argument("--trace",             type=str, default=env_list("TRACE"), nargs='+', choices=["EXECUTIONS", "CONFIGURATION"], help="Save traces of the tool executions and/or of the generated tools on disk.")
    parser.add_argument("--traces-dir",        type=str, default=os.getenv("TRACES_DIR"), help="Directory of the traces. Default is ~/.orocommerce-mcp-server/traces")
    parser.add_argument("--traces-maxsize",    type=int, default=os.getenv("TRACES_MAXSIZE", 200), help="Maximum number of execution traces kept on disk.")

    # tools publication
    parser.add_argument("--tags",              type=str, default=env_list("TAGS"),     nargs='+', help="List of Tags (eg. products orders). Useful to keep only the tools whose tag is in the list. If this option is not specified, all the tools are published by the MCP server.")
    parser.add_argument("--tools",             type=str, default=env_list("TOOLS"),    nargs='+', help="Explicit list of tools to publish. All the other tools are filtered out. If this option is not specified, all the tools are published by the MCP server.")
    parser.add_argument("--no-tools",          type=str, default=env_list("NO_TOOLS"), nargs='+', help="Explicit list of tools to discard. All the other tools are published. Option ignored if the option --tools is provided.")
    parser.add_argument("--meta-only",         type=str, default=os.getenv("META_ONLY", "False"), choices=["True", "False"], help="Only publish the meta tools (oro_list_endpoints, oro_execute,...) to keep the list of tools short.")

    return parser.parse_args()

def main():
    args = parse_arguments()
    server = init(args)
    server.start()
