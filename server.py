"""
AssistantGate - assistant, topic and message management over REST and MCP.
"""

import os

import uvicorn

from app.main import asgi_app


def main() -> None:
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8080"))
    uvicorn.run(asgi_app, host=host, port=port)


if __name__ == "__main__":
    main()
