SERVICE_NAME = "chatloop"

# Event Names
EVENT_TOOL_CALL = "chatloop.tool_call"
EVENT_API_REQUEST = "chatloop.api_request"
EVENT_API_ERROR = "chatloop.api_error"
EVENT_API_RESPONSE = "chatloop.api_response"

# Metric Names
METRIC_TOOL_CALL_COUNT = "chatloop.tool.call.count"
METRIC_TOOL_CALL_LATENCY = "chatloop.tool.call.latency"
METRIC_API_REQUEST_COUNT = "chatloop.api.request.count"
METRIC_API_REQUEST_LATENCY = "chatloop.api.request.latency"
METRIC_TOKEN_USAGE = "chatloop.token.usage"
