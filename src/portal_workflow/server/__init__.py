"""FastAPI server adapter for the workflow engine.

Keep engine logic in `portal_workflow.engine` and persistence in
`portal_workflow.store`; routing and CORS live here.
"""

from __future__ import annotations

__all__ = ["create_app"]

from portal_workflow.server.app import create_app
