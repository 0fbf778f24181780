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

import pytest
from unittest.mock import Mock
import json
import os
from orocommerce_mcp_server.OroCommerceManager import OroCommerceManager
from orocommerce_mcp_server.OroCommerceEndpoint import OroCommerceEndpoint, EndpointParameter, CallResult
from orocommerce_mcp_server.ToolTrace import DiskTraceStorage, ToolExecutionTrace, CONFIGURATION_FILE

@pytest.fixture
def endpoint():
    endpoint = OroCommerceEndpoint(path='/admin/api/accounts/{id}', method='GET', operation_id='get-account',
                                   parameters=[EndpointParameter('id', 'path', True)])
    OroCommerceManager(credentials=Mock()).synthesize_tool(endpoint)
    return endpoint

def test_execution_trace(endpoint):
    success = ToolExecutionTrace(endpoint, {'id': '1'}, CallResult(True, endpoint.echo(), data={'data': {'id': '1'}}, status_code=200))
    assert success.http_code == 200
    assert success.results == {'data': {'id': '1'}}

    failure = ToolExecutionTrace(endpoint, {'id': '1'}, CallResult(False, endpoint.echo(), error='API call failed: timed out'))
    assert failure.http_code == 'none'
    assert failure.results == 'API call failed: timed out'

def test_save_execution(tmp_path, endpoint):
    storage = DiskTraceStorage(trace_executions=True, trace_configuration=False, storage_dir=str(tmp_path))
    trace = ToolExecutionTrace(endpoint, {'id': '1'}, CallResult(True, endpoint.echo(), data={'data': []}, status_code=200))

    storage.save(trace)

    file_path = tmp_path / f"get_account-200-{trace.timestamp}.json"
    assert file_path.is_file()
    assert json.loads(file_path.read_text()) == {'endpoint': {'path': '/admin/api/accounts/{id}', 'method': 'GET', 'operationId': 'get-account'},
                                                 'success': True,
                                                 'inputs': {'id': '1'},
                                                 'results': {'data': []}}

def test_save_execution_not_verbose(tmp_path, endpoint):
    storage = DiskTraceStorage(trace_executions=True, trace_configuration=False, verbose=False, storage_dir=str(tmp_path / 'traces'))
    trace = ToolExecutionTrace(endpoint, {'id': '1'}, CallResult(False, endpoint.echo(), error='API call failed: Not Found', status_code=404))

    storage.save(trace)

    content = json.loads((tmp_path / 'traces' / trace.file_name).read_text())
    assert content == {'endpoint': endpoint.echo(), 'success': False}
    assert trace.file_name.startswith('get_account-404-')

def test_max_traces(tmp_path, endpoint):
    storage = DiskTraceStorage(trace_executions=True, trace_configuration=False, storage_dir=str(tmp_path), max_traces=3)

    traces = []
    for index in range(5):
        trace = ToolExecutionTrace(endpoint, {'id': str(index)}, CallResult(True, endpoint.echo(), data=None, status_code=200))
        trace.timestamp = f"{index:04x}"
        storage.save(trace)
        traces.append(trace)

    assert sorted(os.listdir(tmp_path)) == [f"get_account-200-{trace.timestamp}.json" for trace in traces[2:]]

def test_tracing_disabled(tmp_path, endpoint):
    storage = DiskTraceStorage(trace_executions=False, trace_configuration=False, storage_dir=str(tmp_path / 'traces'))

    storage.save(ToolExecutionTrace(endpoint, {}, CallResult(True, endpoint.echo(), status_code=200)))
    storage.save([endpoint])

    assert not (tmp_path / 'traces').exists()

def test_save_configuration(tmp_path, endpoint):
    storage = DiskTraceStorage(trace_executions=False, trace_configuration=True, storage_dir=str(tmp_path))

    storage.save([endpoint])

    configuration = json.loads((tmp_path / CONFIGURATION_FILE).read_text())
    assert len(configuration) == 1
    assert configuration[0]['method'] == 'GET'
    assert configuration[0]['path'] == '/admin/api/accounts/{id}'
    assert configuration[0]['parameters'] == {'id': 'path'}
    assert configuration[0]['tool']['name'] == 'get_account'
    assert configuration[0]['tool']['inputSchema']['required'] == ['id']

def test_existing_traces_are_counted(tmp_path, endpoint):
    for index in range(3):
        (tmp_path / f"old-{index}.json").write_text('{}')
    (tmp_path / CONFIGURATION_FILE).write_text('[]')

    storage = DiskTraceStorage(trace_executions=True, trace_configuration=True, storage_dir=str(tmp_path), max_traces=3)
    storage.save(ToolExecutionTrace(endpoint, {}, CallResult(True, endpoint.echo(), status_code=200)))

    remaining = os.listdir(tmp_path)
    assert len(remaining) == 4
    assert CONFIGURATION_FILE in remaining
