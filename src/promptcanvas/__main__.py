"""Server entry point.

Enables execution via: python -m promptcanvas
"""

import uvicorn

from promptcanvas.core.config import Settings


def main() -> None:
    settings = Settings()  # type: ignore[call-arg]
    uvicorn.run("promptcanvas.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
