"""Main entry point for the task engine."""

import json
import sys
from typing import List, Optional

from .core.config import get_config
from .core.logging_ import get_logger

logger = get_logger(__name__)

USAGE = """
Task Engine - pluggable execution engine

Usage: taskengine [command]

Commands:
    api                      Run the FastAPI server
    types                    List registered task types
    run TYPE [JSON_INPUT]    Execute one task synchronously and print the result

Options:
    --help, -h    Show this help message
"""


def run_api_server() -> None:
    """Run the FastAPI server."""
    import uvicorn
    from .api.main import app

    config = get_config()

    uvicorn.run(
        app,
        host=config.app.host,
        port=config.app.port,
        log_level=config.app.log_level.lower(),
    )


def list_types() -> int:
    from .handlers import default_handlers
    from .tasks import TaskEngine

    with TaskEngine.with_handlers(default_handlers()) as engine:
        for task_type in sorted(engine.list_registered()):
            print(json.dumps(engine.describe(task_type)))
    return 0


def run_task(task_type: str, raw_input: Optional[str]) -> int:
    from .core.database import create_store
    from .handlers import default_handlers
    from .tasks import TaskContext, TaskEngine, TaskEngineError

    try:
        input_data = json.loads(raw_input) if raw_input else {}
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON input: {e}")
        return 2

    store = create_store()
    with TaskEngine.with_handlers(default_handlers(), store=store) as engine:
        try:
            result = engine.run(task_type, TaskContext(input_data=input_data))
        except TaskEngineError as e:
            payload = e.result.to_dict() if e.result is not None else e.to_dict()
            print(json.dumps(payload, indent=2, default=str))
            return 1

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = sys.argv[1:] if argv is None else argv

    if not args:
        logger.info("No command specified. Use 'api', 'types', or 'run'")
        return 1

    command = args[0].lower()

    if command == "api":
        run_api_server()
        return 0

    elif command == "types":
        return list_types()

    elif command == "run" and len(args) >= 2:
        return run_task(args[1], args[2] if len(args) > 2 else None)

    elif command in ("--help", "-h", "help"):
        print(USAGE)
        return 0

    logger.error(f"Unknown command: {' '.join(args)}")
    print(USAGE)
    return 1


if __name__ == "__main__":
    sys.exit(main())
