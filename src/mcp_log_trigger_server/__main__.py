"""Module entrypoint.

Allows:
    python -m mcp_log_trigger_server
"""

from __future__ import annotations

from mcp_log_trigger_server.server.trigger_server import main

if __name__ == "__main__":
    main()
