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

from .OroCommerceEndpoint import OroCommerceEndpoint, CallResult

# fields displayed first when previewing an item
KEY_FIELDS = ['id', 'name', 'title', 'sku', 'email', 'status']

PREVIEW_SIZE = 3

def format_item(item) -> str:
    """renders at most 3 fields of an item, the key fields if it has any"""
    if not isinstance(item, dict):
        return str(item)

    fields = [field for field in KEY_FIELDS if field in item][:PREVIEW_SIZE]
    if not fields:
        fields = list(item.keys())[:PREVIEW_SIZE]
    return ', '.join(f'{field}: {item[field]}' for field in fields)

def format_response(result:CallResult) -> str:
    endpoint = result.endpoint
    if not result.success:
        return f"Error: {result.error}\n" \
               f"Endpoint: {endpoint['method']} {endpoint['path']}\n" \
               f"Status Code: {result.status_code or 'Unknown'}"

    # JSON:API documents wrap the resource(s) in 'data'
    data = result.data
    if isinstance(data, dict) and data.get('data') is not None:
        data = data['data']

    is_list    = isinstance(data, list)
    item_count = len(data) if is_list else 1

    text = f"Success: {endpoint['operationId']}\n" \
           f"Endpoint: {endpoint['method']} {endpoint['path']}\n" \
           f"Status: {result.status_code}\n" \
           f"Items: {item_count}\n\n"

    if is_list and len(data) > 0:
        text += '\n'.join(f'{index}. {format_item(item)}' for index, item in enumerate(data[:PREVIEW_SIZE], start=1))
        if len(data) > PREVIEW_SIZE:
            text += f'\n... and {len(data) - PREVIEW_SIZE} more items'
    elif not is_list and data:
        text += format_item(data)
    else:
        text += 'No data returned'
    return text

def format_endpoint_list(endpoints:list[OroCommerceEndpoint], total:int,
                         category:str|None = None, search:str|None = None, method:str|None = None) -> str:
    text = f"# ORO Commerce API Endpoints\n\n**Found:** {total} endpoints"
    if category: text += f" (category: {category})"
    if search:   text += f" (search: {search})"
    if method:   text += f" (method: {method})"
    text += '\n'
    if len(endpoints) < total:
        text += f"**Showing:** First {len(endpoints)} results\n"
    text += '\n'

    for index, endpoint in enumerate(endpoints, start=1):
        text += f"## {index}. {endpoint.method} {endpoint.path}\n"
        text += f"**Tool:** {endpoint.tool.name}\n"
        text += f"**Summary:** {endpoint.summary or 'No description'}\n"
        text += f"**Categories:** {', '.join(endpoint.tags) or 'None'}\n"
        required = [param.name for param in endpoint.parameters if param.required]
        if required:
            text += f"**Required Params:** {', '.join(required)}\n"
        text += '\n'

    if total == 0:
        text += "No endpoints found. Try different search terms or remove filters.\n\n"
        text += "**Available categories:** Use `oro_stats` to see all categories."
    return text

def format_statistics(stats:dict) -> str:
    text  = "# ORO Commerce API Quick Stats\n\n"
    text += f"**Total Endpoints:** {stats['total']}\n"
    text += f"**Categories:** {len(stats['categories'])}\n"
    text += f"**Kit Items APIs:** {stats['with_kit_items']}\n"
    text += f"**Order APIs:** {stats['with_orders']}\n"
    text += f"**Product APIs:** {stats['with_products']}\n"
    text += f"**Relationship APIs:** {stats['relationships']}\n\n"

    text += "**HTTP Methods:**\n"
    for method, count in sorted(stats['by_method'].items(), key=lambda item: -item[1]):
        text += f"- {method}: {count}\n"

    text += "\n**Top Categories:**\n"
    for category, count in sorted(stats['by_category'].items(), key=lambda item: -item[1])[:10]:
        text += f"- {category}: {count}\n"

    text += "\nUse `oro_list_endpoints` to explore specific APIs."
    return text

def format_tool_documentation(endpoint:OroCommerceEndpoint) -> str:
    tool = endpoint.tool
    text  = f"# {tool.name}\n\n"
    text += f"**Description:** {tool.description}\n\n"
    text += f"**Method:** {endpoint.method}\n"
    text += f"**Path:** {endpoint.path}\n"
    text += f"**Operation ID:** {endpoint.operation_id}\n"
    text += f"**Tags:** {', '.join(endpoint.tags)}\n"

    if endpoint.parameters:
        text += "\n**Parameters:**\n"
        for param in endpoint.parameters:
            text += f"- {param.name} ({param.location}, {param.type.value}): {param.description or 'No description'} " \
                    f"{'[Required]' if param.required else '[Optional]'}\n"

    if endpoint.request_body is not None:
        text += f"\n**Request body:** {endpoint.request_body.description or 'Request body data'} " \
                f"{'[Required]' if endpoint.request_body.required else '[Optional]'}\n"
        if endpoint.request_body.content:
            text += f"**Content types:** {', '.join(endpoint.request_body.content)}\n"

    if endpoint.responses:
        text += "\n**Responses:**\n"
        for code, description in endpoint.responses.items():
            text += f"- {code}: {description}\n"
    return text
