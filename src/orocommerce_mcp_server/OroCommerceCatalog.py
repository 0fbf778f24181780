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
from .OroCommerceEndpoint import OroCommerceEndpoint

class OroCommerceCatalog:
    """
    The tools published by the MCP server, indexed by tool name.
    Built once at startup from endpoints whose tool has been synthesized, and read-only afterwards.

    When two endpoints get the same tool name, the first one keeps it and the others are rejected.
    Endpoints whose tool name is reserved (the meta tools of the server) are rejected too.
    """

    DEFAULT_LIMIT = 50
    MAX_LIMIT     = 200

    def __init__(self, endpoints:list[OroCommerceEndpoint] = (), reserved_names:list[str] = ()):
        self.logger = logging.getLogger(__name__)
        self._endpoints : dict[str, OroCommerceEndpoint] = {}
        self.rejected   : list[OroCommerceEndpoint] = []

        for endpoint in endpoints:
            name = endpoint.tool.name
            if name in reserved_names:
                self.logger.error("tool name %s is reserved, ignoring %s", name, endpoint)
                self.rejected.append(endpoint)
            elif name in self._endpoints:
                self.logger.error("tool %s already defined by %s, ignoring %s",
                                  name, self._endpoints[name], endpoint)
                self.rejected.append(endpoint)
            else:
                self._endpoints[name] = endpoint

    def __len__(self):
        return len(self._endpoints)

    def __contains__(self, name):
        return name in self._endpoints

    def __iter__(self):
        return iter(self._endpoints)

    def get(self, name:str) -> OroCommerceEndpoint | None:
        return self._endpoints.get(name)

    def items(self):
        return self._endpoints.items()

    def values(self):
        return self._endpoints.values()

    def find(self, method:str, path:str) -> OroCommerceEndpoint | None:
        """returns the endpoint with this method and path template, if published"""
        method = method.upper()
        for endpoint in self._endpoints.values():
            if endpoint.method == method and endpoint.path == path:
                return endpoint
        return None

    def search(self, query:str) -> list[OroCommerceEndpoint]:
        """endpoints whose tool name, path, description or one of the tags contains 'query' (case insensitive)"""
        query = query.lower()
        return [endpoint for endpoint in self._endpoints.values()
                if query in endpoint.tool.name
                or query in endpoint.path.lower()
                or query in endpoint.tool.description.lower()
                or any(query in tag.lower() for tag in endpoint.tags)]

    def by_category(self, category:str) -> list[OroCommerceEndpoint]:
        return [endpoint for endpoint in self._endpoints.values() if category in endpoint.tags]

    def filter(self, category:str|None = None, search:str|None = None, method:str|None = None,
               limit:int|None = None) -> tuple[list[OroCommerceEndpoint], int]:
        """
        Applies the optional filters in turn.

        Returns:
            the first 'limit' matching endpoints and the total number of matching endpoints
        """
        endpoints = list(self._endpoints.values())
        if category:
            endpoints = [endpoint for endpoint in endpoints if category in endpoint.tags]
        if search:
            found = {id(endpoint) for endpoint in self.search(search)}
            endpoints = [endpoint for endpoint in endpoints if id(endpoint) in found]
        if method:
            endpoints = [endpoint for endpoint in endpoints if endpoint.method == method.upper()]

        limit = OroCommerceCatalog.DEFAULT_LIMIT if limit is None else limit
        limit = max(1, min(int(limit), OroCommerceCatalog.MAX_LIMIT))
        return endpoints[:limit], len(endpoints)

    def categories(self) -> list[str]:
        return sorted({tag for endpoint in self._endpoints.values() for tag in endpoint.tags})

    def statistics(self) -> dict:
        by_method   = {}
        by_category = {}
        # endpoints whose path mentions these resources
        by_resource = {'kititem': 0, 'order': 0, 'product': 0, 'relationship': 0}
        for endpoint in self._endpoints.values():
            by_method[endpoint.method] = by_method.get(endpoint.method, 0) + 1
            for tag in endpoint.tags:
                by_category[tag] = by_category.get(tag, 0) + 1
            path = endpoint.path.lower()
            for resource in by_resource:
                if resource in path:
                    by_resource[resource] += 1
        return {
            'total':       len(self._endpoints),
            'by_method':   by_method,
            'by_category': by_category,
            'categories':  self.categories(),
            'with_kit_items': by_resource['kititem'],
            'with_orders':    by_resource['order'],
            'with_products':  by_resource['product'],
            'relationships':  by_resource['relationship'],
        }
