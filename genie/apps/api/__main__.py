"""Run the API with uvicorn: ``python -m genie.apps.api``."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "genie.apps.api.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,  # configure_logging() owns the handlers
    )


if __name__ == "__main__":
    main()
