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

from typing import Iterable, Optional
import json
import os
import glob
import logging
import time
from .OroCommerceEndpoint import OroCommerceEndpoint, CallResult

# name of the file listing the published tools, never counted as an execution trace
CONFIGURATION_FILE = "tools.json"

class ToolExecutionTrace:
    """
    What was sent to an ORO Commerce endpoint and what came back, for one tool call.
    """

    def __init__(self, endpoint: OroCommerceEndpoint, inputs: dict, result: CallResult):
        self.endpoint  = endpoint
        self.inputs    = inputs
        self.success   = result.success
        self.http_code = result.status_code if result.status_code is not None else 'none'
        self.results   = result.data if result.success else result.error
        self.timestamp = f"{time.time_ns():x}"

    @property
    def file_name(self) -> str:
        return f"{self.endpoint.tool.name}-{self.http_code}-{self.timestamp}.json"

    def to_json(self, verbose: bool) -> dict:
        content = {'endpoint': self.endpoint.echo(), 'success': self.success}
        if verbose:
            content['inputs']  = self.inputs
            content['results'] = self.results
        return content

class DiskTraceStorage:
    """
    Writes the tool execution traces, and the list of the published tools, as JSON files in a directory.
    Only the 'max_traces' most recent execution traces are kept.
    """

    def __init__(self, trace_executions: bool, trace_configuration: bool, verbose: bool = True,
                 storage_dir: Optional[str] = None, max_traces: int = 200):
        """
        Args:
            trace_executions: write a file for each tool call
            trace_configuration: write the published tools in tools.json
            verbose: include the arguments and the response in the execution traces
            storage_dir: defaults to ~/.orocommerce-mcp-server/traces
            max_traces: number of execution traces kept (defaults to 200)
        """
        self.logger              = logging.getLogger(__name__)
        self.storage_dir         = storage_dir or os.path.join(os.path.expanduser("~"), ".orocommerce-mcp-server", "traces")
        self.max_traces          = max_traces
        self.verbose             = verbose
        self.trace_executions    = trace_executions
        self.trace_configuration = trace_configuration

        # execution trace files, from the oldest to the newest
        self.trace_files: list[str] = []
        if trace_executions or trace_configuration:
            self.logger.info("Tracing is enabled in %s", self.storage_dir)
            self.trace_files = self._existing_trace_files()

    def _existing_trace_files(self) -> list[str]:
        if not os.path.isdir(self.storage_dir):
            return []
        files = [path for path in glob.glob(os.path.join(self.storage_dir, "*.json"))
                 if os.path.isfile(path) and os.path.basename(path) != CONFIGURATION_FILE]
        return sorted(files, key=os.path.getctime)

    def _write(self, file_name: str, content) -> str:
        os.makedirs(self.storage_dir, exist_ok=True)
        file_path = os.path.join(self.storage_dir, file_name)
        with open(file_path, 'w') as f:
            json.dump(content, f, indent=2, default=str)
        self.logger.debug("Saved traces file %s", file_path)
        return file_path

    def save(self, arg):
        if isinstance(arg, ToolExecutionTrace): self.save_execution(arg)
        else:                                   self.save_configuration(arg)

    def save_configuration(self, endpoints: Iterable[OroCommerceEndpoint]):
        """writes tools.json: the tool, method, path and parameter locations of every published endpoint"""
        if not self.trace_configuration:
            return
        self._write(CONFIGURATION_FILE,
                    [{'tool':       endpoint.tool.model_dump(exclude_none=True),
                      'method':     endpoint.method,
                      'path':       endpoint.path,
                      'parameters': {param.name: param.location for param in endpoint.parameters}}
                     for endpoint in endpoints])

    def save_execution(self, trace: ToolExecutionTrace):
        if not self.trace_executions:
            return
        self.trace_files.append(self._write(trace.file_name, trace.to_json(self.verbose)))
        self._remove_oldest_traces()

    def _remove_oldest_traces(self):
        while len(self.trace_files) > self.max_traces:
            oldest = self.trace_files.pop(0)
            try:
                os.remove(oldest)
                self.logger.debug("Removed traces file %s", oldest)
            except OSError as e:
                self.logger.warning("Cannot remove traces file %s: %s", oldest, e)
