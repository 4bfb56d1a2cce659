"""Process-manager backends the panel can drive.

  - pm2: the ``pm2`` CLI (default)
  - mcp: an MCP process-manager daemon over streamable HTTP
"""

from pm2_panel.supervisor.base import SupervisorClient
from pm2_panel.supervisor.mcp_client import McpProcessManagerClient
from pm2_panel.supervisor.pm2 import Pm2Client

__all__ = ["McpProcessManagerClient", "Pm2Client", "SupervisorClient"]
